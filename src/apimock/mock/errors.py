"""
apimock Errors

Exception types raised by the mock engine.
"""

from typing import Any, Dict, List, Optional


class ApiMockError(Exception):
    """Base class for all apimock errors."""


class RouteConfigError(ApiMockError, ValueError):
    """Raised at startup when the declared route tree is invalid."""


class MockHttpError(ApiMockError):
    """
    A request that the engine answers with an HTTP error status.

    Raised while resolving or executing a request and converted into an
    ErrorResponse envelope by the backend.

    Attributes:
        status: HTTP status code (400, 404, 405, 409, ...)
        message: Diagnostic message returned as the envelope's error
        searched: Collection that was searched, for 404 diagnostics
    """

    def __init__(
        self,
        status: int,
        message: str,
        searched: Optional[List[Dict[str, Any]]] = None
    ):
        super().__init__(message)
        self.status = status
        self.message = message
        self.searched = searched
