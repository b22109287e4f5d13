"""
apimock Messages

Request and response envelopes exchanged between the engine and the host
HTTP integration.
"""

from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Dict, Optional

from ..common import URLNormalizer


def status_text(status: int) -> str:
    """Reason phrase for a status code."""
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return 'Unknown Status'


def json_headers() -> Dict[str, str]:
    return {'Content-Type': 'application/json'}


@dataclass
class MockRequest:
    """
    An intercepted HTTP request.

    Attributes:
        method: HTTP method, upper case
        url: URL as requested (relative or absolute), without query string
        query_params: Query parameters; a repeated key maps to a list
        headers: Request headers; a repeated header maps to a list
        body: Decoded body (JSON value, list of single-key dicts for forms)
    """

    method: str
    url: str
    query_params: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, Any] = field(default_factory=dict)
    body: Any = None

    def __post_init__(self):
        self.method = (self.method or 'GET').upper()

    @classmethod
    def from_url(
        cls,
        method: str,
        url: str,
        headers: Optional[Dict[str, Any]] = None,
        body: Any = None
    ) -> 'MockRequest':
        """Create a request, taking query parameters from the URL."""
        base_url, query_params = URLNormalizer.split_query(url)
        return cls(
            method=method,
            url=base_url,
            query_params=query_params,
            headers=dict(headers or {}),
            body=body
        )

    @property
    def url_with_params(self) -> str:
        """URL including the query string."""
        if not self.query_params:
            return self.url
        from urllib.parse import urlencode
        return f"{self.url}?{urlencode(self.query_params, doseq=True)}"


@dataclass
class MockResponse:
    """A successful mocked response."""

    status: int = 200
    headers: Dict[str, str] = field(default_factory=json_headers)
    body: Any = None
    url: Optional[str] = None

    @property
    def status_text(self) -> str:
        return status_text(self.status)


@dataclass
class ErrorResponse:
    """
    Error envelope for a failed mocked request.

    Response callbacks may return one to answer with their own error.
    """

    url: str
    status: int
    error: Any
    headers: Dict[str, str] = field(default_factory=json_headers)
    status_text: str = ''

    def __post_init__(self):
        if not self.status_text:
            self.status_text = status_text(self.status)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'url': self.url,
            'status': self.status,
            'statusText': self.status_text,
            'headers': dict(self.headers),
            'error': self.error
        }


class _PassThrough:
    """Marker returned when an unknown URL should reach the real backend."""

    def __repr__(self) -> str:
        return 'PASS_THROUGH'


PASS_THROUGH = _PassThrough()
