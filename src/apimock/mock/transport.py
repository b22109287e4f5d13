"""
apimock requests Transport

Intercepts outgoing HTTP requests made with `requests` and answers them
from an HttpBackend, in-process and without network I/O.

Example:
    backend = HttpBackend(routes, ApiMockConfig(response_delay_ms=0))
    session = mock_session(backend)

    response = session.get('https://api.example.com/posts/1')
    response.json()  # served by the mock
"""

import json
from typing import Any, Dict, Optional, Sequence, Union

import requests
from requests.adapters import BaseAdapter, HTTPAdapter
from requests.structures import CaseInsensitiveDict

from ..common import parse_body
from .backend import HttpBackend
from .messages import PASS_THROUGH, ErrorResponse, MockRequest, MockResponse


_NO_BODY_STATUSES = (204, 304)


class MockAdapter(BaseAdapter):
    """
    requests transport adapter backed by the mock engine.

    Error envelopes are returned as regular responses carrying the envelope
    as JSON, so `raise_for_status()` behaves as with a real server. URLs
    passed through go to a real HTTPAdapter.
    """

    def __init__(self, backend: HttpBackend, passthrough: Optional[BaseAdapter] = None):
        super().__init__()
        self.backend = backend
        self.passthrough = passthrough or HTTPAdapter()

    def send(self, request: requests.PreparedRequest, stream=False, timeout=None,
             verify=True, cert=None, proxies=None) -> requests.Response:
        mock_request = self.to_mock_request(request)
        result = self.backend.handle_sync(mock_request)

        if result is PASS_THROUGH:
            return self.passthrough.send(
                request, stream=stream, timeout=timeout, verify=verify, cert=cert, proxies=proxies
            )

        return self.build_response(request, result)

    def close(self) -> None:
        self.passthrough.close()

    @staticmethod
    def to_mock_request(request: requests.PreparedRequest) -> MockRequest:
        """Translate a prepared request."""
        headers = dict(request.headers or {})
        content_type = CaseInsensitiveDict(headers).get('Content-Type')
        return MockRequest.from_url(
            method=request.method or 'GET',
            url=request.url or '',
            headers=headers,
            body=parse_body(request.body, content_type)
        )

    @staticmethod
    def build_response(
        request: requests.PreparedRequest,
        result: Union[MockResponse, ErrorResponse]
    ) -> requests.Response:
        """Translate a MockResponse or ErrorResponse."""
        response = requests.Response()
        response.request = request
        response.url = request.url
        response.encoding = 'utf-8'

        if isinstance(result, ErrorResponse):
            status = result.status
            headers: Dict[str, str] = dict(result.headers)
            body: Any = result.to_dict()
            response.reason = result.status_text
        else:
            status = result.status
            headers = dict(result.headers)
            body = result.body
            response.reason = result.status_text

        response.status_code = status
        response.headers = CaseInsensitiveDict(headers)

        if status in _NO_BODY_STATUSES:
            response._content = b''
        else:
            response._content = json.dumps(body).encode('utf-8')

        return response


def mock_session(
    backend: HttpBackend,
    prefixes: Sequence[str] = ('http://', 'https://'),
    session: Optional[requests.Session] = None
) -> requests.Session:
    """
    Mount a MockAdapter on a session.

    Args:
        backend: Mock engine answering the requests
        prefixes: URL prefixes to intercept
        session: Existing session to mount on (a new one if None)

    Returns:
        The session
    """
    session = session or requests.Session()
    adapter = MockAdapter(backend)
    for prefix in prefixes:
        session.mount(prefix, adapter)
    return session
