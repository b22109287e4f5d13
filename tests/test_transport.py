"""
Tests for apimock requests Transport

Tests in-process interception of `requests` sessions including:
- Mocked responses and error envelopes
- JSON, form and query string translation
- Pass-through to a real adapter
"""

from unittest.mock import Mock

import pytest
import requests

from apimock.mock.backend import HttpBackend
from apimock.mock.config import ApiMockConfig
from apimock.mock.transport import MockAdapter, mock_session


API = 'https://api.example.com'


def users_callback(opts):
    if opts.http_method == 'GET':
        return [{'id': 1, 'name': 'Ada'}, {'id': 2, 'name': 'Grace'}]
    return opts.items


@pytest.fixture
def captured():
    """Request options seen by the response callback."""
    return []


@pytest.fixture
def backend(captured):
    """Backend serving a host-qualified users collection."""
    def capture(opts):
        captured.append(opts)
        return opts.items

    routes = [
        {'host': API, 'path': 'users/:id', 'data_callback': users_callback},
        {'host': API, 'path': 'echo', 'response_callback': capture}
    ]
    return HttpBackend(routes, config=ApiMockConfig(response_delay_ms=0))


@pytest.fixture
def session(backend):
    """Session with the mock adapter mounted."""
    return mock_session(backend)


class TestMockSession:
    """Test requests sessions answered by the mock engine."""

    def test_get_collection(self, session):
        """Test GET of a collection."""
        response = session.get(f'{API}/users')

        assert response.status_code == 200
        assert response.reason == 'OK'
        assert response.headers['content-type'] == 'application/json'
        assert response.json() == [{'id': 1, 'name': 'Ada'}, {'id': 2, 'name': 'Grace'}]

    def test_post_json(self, session):
        """Test POST with a JSON body."""
        response = session.post(f'{API}/users', json={'name': 'Linus'})

        assert response.status_code == 201
        assert response.headers['Location'] == f'{API}/users/3'
        assert response.json() == [{'name': 'Linus', 'id': 3}]

    def test_no_content(self, session):
        """Test that 204 responses have an empty body."""
        response = session.delete(f'{API}/users/1')

        assert response.status_code == 204
        assert response.content == b''

    def test_error_envelope(self, session):
        """Test that errors carry the envelope as JSON."""
        response = session.get(f'{API}/users/99')

        assert response.status_code == 404
        assert response.reason == 'Not Found'
        assert response.json()['error'] == 'item not found'
        with pytest.raises(requests.HTTPError):
            response.raise_for_status()

    def test_unknown_host(self, session):
        """Test that other hosts get a 404 envelope."""
        response = session.get('https://other.example.com/users')

        assert response.status_code == 404
        assert response.json()['url'] == 'https://other.example.com/users'

    def test_query_params(self, session, captured):
        """Test that repeated query keys become lists."""
        session.get(f'{API}/echo', params={'tag': ['a', 'b'], 'page': '2'})

        assert captured[0].query_params == {'tag': ['a', 'b'], 'page': '2'}

    def test_form_body(self, session, captured):
        """Test that form bodies become single-key dicts."""
        session.post(f'{API}/echo', data={'name': 'Ada', 'role': 'admin'})

        assert captured[0].request_body == [{'name': 'Ada'}, {'role': 'admin'}]

    def test_multipart_body(self, session, captured):
        """Test that multipart parts become single-key dicts, files by filename."""
        session.post(f'{API}/echo', data={'name': 'Ada'}, files={'f': ('a.txt', b'x')})

        assert captured[0].request_body == [{'name': 'Ada'}, {'f': 'a.txt'}]

    def test_headers(self, session, captured):
        """Test that request headers reach the callbacks."""
        session.get(f'{API}/echo', headers={'Authorization': 'Bearer token'})

        assert captured[0].request_headers['Authorization'] == 'Bearer token'


class TestPassThrough:
    """Test forwarding unknown URLs."""

    def test_forwards_to_real_adapter(self):
        """Test that PASS_THROUGH hands the request to the fallback adapter."""
        backend = HttpBackend(
            [{'host': API, 'path': 'users/:id', 'data_callback': users_callback}],
            config=ApiMockConfig(response_delay_ms=0, pass_through_unknown_url=True)
        )
        real_response = requests.Response()
        real_response.status_code = 418
        fallback = Mock()
        fallback.send.return_value = real_response

        session = requests.Session()
        session.mount('https://', MockAdapter(backend, passthrough=fallback))

        response = session.get('https://other.example.com/tea')

        assert response.status_code == 418
        assert fallback.send.call_count == 1
        assert session.get(f'{API}/users').status_code == 200
        assert fallback.send.call_count == 1

    def test_custom_prefixes(self, backend):
        """Test mounting on specific prefixes only."""
        session = mock_session(backend, prefixes=(API,))

        assert session.get_adapter(f'{API}/users').__class__ is MockAdapter
        assert session.get_adapter('https://other.example.com').__class__ is not MockAdapter
