"""
Tests for apimock Mock Server

Tests the FastAPI server including:
- Serving mocked CRUD over HTTP
- Error envelopes and bodiless statuses
- Form and query translation
- Admin API for metrics, configuration and cache
"""

import pytest
from fastapi.testclient import TestClient

from apimock.mock.backend import HttpBackend
from apimock.mock.config import ApiMockConfig
from apimock.mock.server import MockMetrics, MockServer, create_mock_server


def posts_callback(opts):
    if opts.http_method == 'GET':
        return [{'postId': 1, 'title': 'Hello'}]
    return opts.items


@pytest.fixture
def captured():
    """Request options seen by the echo route."""
    return []


@pytest.fixture
def routes(captured):
    """Posts collection plus an echo route recording its requests."""
    def capture(opts):
        captured.append(opts)
        return {'echo': True}

    return [
        {'path': 'api/posts/:postId', 'data_callback': posts_callback},
        {'path': 'api/echo', 'response_callback': capture}
    ]


@pytest.fixture
def server(routes):
    """Mock server without latency."""
    return MockServer(routes, config=ApiMockConfig(response_delay_ms=0))


@pytest.fixture
def client(server):
    """Test client for the server."""
    return TestClient(server.get_app())


class TestMockMetrics:
    """Test MockMetrics dataclass."""

    def test_to_dict(self):
        """Test metrics conversion with error rate."""
        metrics = MockMetrics(total_requests=4, mocked_responses=3, error_responses=1)

        data = metrics.to_dict()

        assert data['total_requests'] == 4
        assert data['error_rate'] == 25.0
        assert 'uptime_seconds' in data

    def test_error_rate_without_requests(self):
        """Test that an idle server has no error rate."""
        assert MockMetrics().to_dict()['error_rate'] == 0


class TestServing:
    """Test mocked requests over HTTP."""

    def test_get(self, client):
        """Test GET of a collection."""
        response = client.get('/api/posts')

        assert response.status_code == 200
        assert response.json() == [{'postId': 1, 'title': 'Hello'}]

    def test_post(self, client):
        """Test POST with JSON body."""
        response = client.post('/api/posts', json={'title': 'New'})

        assert response.status_code == 201
        assert response.headers['location'] == '/api/posts/2'
        assert response.json() == [{'title': 'New', 'postId': 2}]

    def test_no_content(self, client):
        """Test that 204 responses have no body."""
        response = client.put('/api/posts/1', json={'title': 'Changed'})

        assert response.status_code == 204
        assert response.content == b''
        assert client.get('/api/posts/1').json() == [{'postId': 1, 'title': 'Changed'}]

    def test_error_envelope(self, client):
        """Test 404 envelope for unknown URLs."""
        response = client.get('/api/unknown')

        assert response.status_code == 404
        assert response.json()['error'] == 'Error 404: Not found'
        assert response.json()['statusText'] == 'Not Found'

    def test_query_params(self, client, captured):
        """Test that repeated query keys become lists."""
        client.get('/api/echo?tag=a&tag=b&page=2')

        assert captured[0].query_params == {'tag': ['a', 'b'], 'page': '2'}

    def test_form_body(self, client, captured):
        """Test that urlencoded forms become single-key dicts."""
        response = client.post('/api/echo', data={'name': 'Ada'})

        assert response.json() == {'echo': True}
        assert captured[0].request_body == [{'name': 'Ada'}]

    def test_text_body(self, client, captured):
        """Test that non-JSON bodies are passed as text."""
        client.post('/api/echo', content=b'plain text', headers={'content-type': 'text/plain'})

        assert captured[0].request_body == 'plain text'

    def test_method_without_crud_semantics(self, client):
        """Test that CONNECT reaches the engine and gets its 405 envelope."""
        response = client.request('CONNECT', '/api/posts')

        assert response.status_code == 405
        assert response.json()['error'] == 'Error 405: Method not allowed'

    def test_pass_through_without_upstream(self):
        """Test 404 for passed-through URLs when no upstream is set."""
        server = MockServer(
            [{'path': 'api/posts/:postId', 'data_callback': posts_callback}],
            config=ApiMockConfig(response_delay_ms=0, pass_through_unknown_url=True)
        )
        client = TestClient(server.get_app())

        response = client.get('/elsewhere')

        assert response.status_code == 404
        assert server.metrics.passed_through == 1

    def test_from_backend(self):
        """Test serving an existing backend."""
        backend = HttpBackend(
            [{'path': 'api/posts/:postId', 'data_callback': posts_callback}],
            config=ApiMockConfig(response_delay_ms=0)
        )
        server = MockServer(backend)

        assert server.backend is backend
        assert TestClient(server.get_app()).get('/api/posts/1').status_code == 200


class TestAdminAPI:
    """Test admin endpoints."""

    def test_metrics(self, client):
        """Test that requests are counted."""
        client.get('/api/posts')
        client.get('/api/unknown')

        data = client.get('/__admin__/metrics').json()

        assert data['total_requests'] == 2
        assert data['mocked_responses'] == 1
        assert data['error_responses'] == 1

    def test_reset_metrics(self, client):
        """Test metrics reset."""
        client.get('/api/posts')

        assert client.post('/__admin__/reset').json() == {'status': 'reset'}
        assert client.get('/__admin__/metrics').json()['total_requests'] == 0

    def test_get_config(self, client):
        """Test reading the configuration."""
        data = client.get('/__admin__/config').json()

        assert data['response_delay_ms'] == 0
        assert data['put_update_404'] is True

    def test_update_config(self, client, server):
        """Test changing policies at runtime."""
        response = client.post('/__admin__/config', json={'putUpdate404': False})

        assert response.json() == {'status': 'updated'}
        assert server.config.put_update_404 is False
        assert client.put('/api/posts/5', json={'title': 'x'}).status_code == 201

    def test_update_config_rejects_non_object(self, client):
        """Test 400 for a config body that is not an object."""
        response = client.post('/__admin__/config', json=[1, 2])

        assert response.status_code == 400

    def test_cache(self, client):
        """Test listing and clearing cached collections."""
        client.post('/api/posts', json={'title': 'New'})

        assert client.get('/__admin__/cache').json() == {'total': 1, 'collections': {'api/posts': 2}}

        cleared = client.delete('/__admin__/cache').json()

        assert cleared == {'status': 'cleared', 'entries_cleared': 1}
        assert client.get('/api/posts').json() == [{'postId': 1, 'title': 'Hello'}]

    def test_admin_disabled(self, routes):
        """Test that admin paths go to the mock engine when disabled."""
        server = MockServer(routes, config=ApiMockConfig(response_delay_ms=0, admin_enabled=False))
        client = TestClient(server.get_app())

        response = client.get('/__admin__/metrics')

        assert response.status_code == 404
        assert 'error' in response.json()


class TestCreateMockServer:
    """Test create_mock_server convenience function."""

    def test_policies(self, routes):
        """Test that keyword policies reach the config."""
        server = create_mock_server(routes, port=9000, response_delay_ms=0, post_update_409=True)

        assert server.config.port == 9000
        assert server.config.post_update_409 is True
        assert server.config.response_delay_ms == 0

    def test_upstream_url(self, routes):
        """Test that the upstream URL is normalized."""
        server = create_mock_server(routes, upstream_url='https://api.example.com/')

        assert server.upstream_url == 'https://api.example.com'
