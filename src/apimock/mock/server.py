"""
apimock Mock Server

FastAPI application serving an HttpBackend over HTTP, for clients running
in other processes or for tests using FastAPI's TestClient.

Features:
- Catch-all route feeding every request to the mock engine
- Simulated latency without blocking the event loop
- Pass-through of unknown URLs to an upstream server
- Admin API for metrics, runtime configuration and the data cache
"""

from __future__ import annotations  # Enable forward references for type hints

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Union

try:
    from fastapi import FastAPI, Request, Response
    from fastapi.responses import JSONResponse
    import uvicorn
    FASTAPI_AVAILABLE = True
except ImportError:
    FASTAPI_AVAILABLE = False

from ..common import flatten_multi, form_to_items, parse_body
from .backend import HttpBackend, RoutesSource
from .config import ApiMockConfig
from .messages import PASS_THROUGH, ErrorResponse, MockRequest, MockResponse
from .store import ExternalStorage


_FORM_TYPES = ('multipart/form-data', 'application/x-www-form-urlencoded')
_NO_BODY_STATUSES = (204, 304)
_SKIP_HEADERS = {'content-length', 'transfer-encoding', 'connection', 'content-type'}


@dataclass
class MockMetrics:
    """Track mock server metrics."""

    total_requests: int = 0
    mocked_responses: int = 0
    error_responses: int = 0
    passed_through: int = 0
    start_time: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        uptime_seconds = (datetime.now() - datetime.fromisoformat(self.start_time)).total_seconds()
        return {
            'total_requests': self.total_requests,
            'mocked_responses': self.mocked_responses,
            'error_responses': self.error_responses,
            'passed_through': self.passed_through,
            'error_rate': round((self.error_responses / self.total_requests * 100) if self.total_requests > 0 else 0, 2),
            'uptime_seconds': round(uptime_seconds, 2),
            'start_time': self.start_time
        }


class MockServer:
    """
    FastAPI-based server exposing the mock engine.

    Example:
        server = MockServer(routes)
        server.start(host='0.0.0.0', port=8080)

        # With custom config and a real upstream for unknown URLs
        config = ApiMockConfig(pass_through_unknown_url=True, response_delay_ms=100)
        server = MockServer(routes, config=config, upstream_url='https://api.example.com')
        server.start()
    """

    def __init__(
        self,
        routes: Union[RoutesSource, HttpBackend],
        config: Optional[ApiMockConfig] = None,
        storage: Optional[ExternalStorage] = None,
        upstream_url: Optional[str] = None
    ):
        """
        Initialize mock server.

        Args:
            routes: Root routes (or provider), or a ready HttpBackend
            config: Optional ApiMockConfig, ignored when routes is a backend
            storage: External storage for cache_from_external_storage
            upstream_url: Base URL receiving passed-through requests

        Raises:
            RouteConfigError: If the route tree is invalid
        """
        if not FASTAPI_AVAILABLE:
            raise ImportError("FastAPI is required for mock server. Install with: pip install fastapi uvicorn")

        if isinstance(routes, HttpBackend):
            self.backend = routes
        else:
            self.backend = HttpBackend(routes, config=config, storage=storage)

        self.config = self.backend.config
        self.upstream_url = upstream_url.rstrip('/') if upstream_url else None
        self.metrics = MockMetrics()

        self.logger = logging.getLogger("apimock.server")
        self.logger.setLevel(getattr(logging, self.config.log_level.upper()))

        self.app = self._create_app()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with routes."""
        app = FastAPI(
            title="apimock Server",
            description="Mock REST backend emulating nested resources with CRUD semantics",
            version="1.0.0"
        )

        # Admin API routes
        if self.config.admin_enabled:
            @app.get(f"{self.config.admin_prefix}/metrics")
            async def get_metrics():
                """Get server metrics."""
                return JSONResponse(content=self.metrics.to_dict())

            @app.get(f"{self.config.admin_prefix}/config")
            async def get_config():
                """Get current configuration."""
                return JSONResponse(content=self.config.to_dict())

            @app.post(f"{self.config.admin_prefix}/config")
            async def update_config(request: Request):
                """Update status code policies and latency at runtime."""
                body = await request.json()
                if not isinstance(body, dict):
                    return JSONResponse(content={'error': 'Expected a JSON object'}, status_code=400)

                self.config.update(body)
                return JSONResponse(content={'status': 'updated'})

            @app.get(f"{self.config.admin_prefix}/cache")
            async def get_cache():
                """List cached collections and their sizes."""
                store = self.backend.store
                return JSONResponse(content={
                    'total': len(store),
                    'collections': {
                        key: len(store.get(key).writable_items) for key in store.keys()
                    }
                })

            @app.delete(f"{self.config.admin_prefix}/cache")
            async def clear_cache():
                """Drop cached collections so they are regenerated."""
                cleared = self.backend.reset()
                return JSONResponse(content={
                    'status': 'cleared',
                    'entries_cleared': cleared
                })

            @app.post(f"{self.config.admin_prefix}/reset")
            async def reset_metrics():
                """Reset metrics."""
                self.metrics = MockMetrics()
                return JSONResponse(content={'status': 'reset'})

        # Main catch-all route for mocking
        @app.api_route(
            "/{path:path}",
            methods=["GET", "HEAD", "POST", "PUT", "DELETE", "OPTIONS", "PATCH", "TRACE", "CONNECT"]
        )
        async def mock_request(request: Request, path: str):
            """Handle incoming requests and serve mock responses."""
            return await self._handle_request(request)

        return app

    async def _handle_request(self, request: Request) -> Response:
        """
        Handle incoming request through the mock engine.

        Args:
            request: FastAPI Request object

        Returns:
            FastAPI Response with mocked data
        """
        self.metrics.total_requests += 1

        mock_request = MockRequest(
            method=request.method,
            url=request.url.path,
            query_params=flatten_multi(request.query_params.multi_items()),
            headers=flatten_multi(request.headers.items()),
            body=await self._read_body(request)
        )

        result = await self.backend.handle(mock_request)

        if result is PASS_THROUGH:
            self.metrics.passed_through += 1
            return await self._forward(request)

        if isinstance(result, ErrorResponse):
            self.metrics.error_responses += 1
            return JSONResponse(
                content=result.to_dict(),
                status_code=result.status,
                headers=self._filter_headers(result.headers)
            )

        self.metrics.mocked_responses += 1
        return self._create_response(result)

    async def _read_body(self, request: Request) -> Any:
        """Decode request body; forms become a list of single-key dicts."""
        raw_body = await request.body()  # cached, so the form parser can re-read it
        content_type = request.headers.get('content-type', '')
        media_type = content_type.split(';')[0].strip().lower()

        if media_type in _FORM_TYPES:
            form = await request.form()
            return form_to_items(
                (key, getattr(value, 'filename', value)) for key, value in form.multi_items()
            )

        return parse_body(raw_body, content_type)

    def _create_response(self, response: MockResponse) -> Response:
        """Create FastAPI Response from a mocked response."""
        headers = self._filter_headers(response.headers)

        if response.status in _NO_BODY_STATUSES:
            return Response(status_code=response.status, headers=headers)

        return JSONResponse(content=response.body, status_code=response.status, headers=headers)

    def _filter_headers(self, headers: Dict[str, Any]) -> Dict[str, str]:
        # Filter headers that FastAPI sets itself
        return {
            k: v if isinstance(v, str) else ', '.join(v)
            for k, v in headers.items()
            if k.lower() not in _SKIP_HEADERS
        }

    async def _forward(self, request: Request) -> Response:
        """Forward a passed-through request to the upstream server."""
        if not self.upstream_url:
            self.logger.warning(f"No upstream configured for {request.method} {request.url.path}")
            error = ErrorResponse(url=str(request.url), status=404, error='Error 404: Not found')
            return JSONResponse(content=error.to_dict(), status_code=404)

        import httpx

        url = f"{self.upstream_url}{request.url.path}"
        if request.url.query:
            url = f"{url}?{request.url.query}"

        headers = {
            k: v for k, v in request.headers.items()
            if k.lower() not in ['host', 'content-length']
        }

        async with httpx.AsyncClient(timeout=30.0) as client:
            upstream = await client.request(
                method=request.method,
                url=url,
                headers=headers,
                content=await request.body()
            )

        return Response(
            content=upstream.content,
            status_code=upstream.status_code,
            headers={
                k: v for k, v in upstream.headers.items()
                if k.lower() not in {'content-length', 'transfer-encoding', 'connection', 'content-encoding'}
            }
        )

    def start(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        access_log: bool = True
    ):
        """
        Start the mock server.

        Args:
            host: Host to bind to (overrides config)
            port: Port to bind to (overrides config)
            access_log: Enable access logging
        """
        actual_host = host or self.config.host
        actual_port = port or self.config.port

        print(f"🚀 apimock Server starting...")
        print(f"   Host: {actual_host}:{actual_port}")
        print(f"   Root routes: {len(self.backend.routes)}")
        print(f"   Response delay: {self.config.response_delay_ms}ms")

        if self.config.admin_enabled:
            print(f"   Admin API: http://{actual_host}:{actual_port}{self.config.admin_prefix}/metrics")

        if self.config.pass_through_unknown_url:
            print(f"   Pass-through: {self.upstream_url or 'enabled, no upstream configured'}")

        print()

        uvicorn.run(
            self.app,
            host=actual_host,
            port=actual_port,
            log_level=self.config.log_level,
            access_log=access_log
        )

    def get_app(self) -> FastAPI:
        """
        Get the FastAPI app instance for testing or custom deployment.

        Returns:
            FastAPI application instance
        """
        return self.app


def create_mock_server(
    routes: RoutesSource,
    host: str = "127.0.0.1",
    port: int = 8080,
    response_delay_ms: int = 500,
    pass_through_unknown_url: bool = False,
    upstream_url: Optional[str] = None,
    cache_from_external_storage: bool = False,
    storage: Optional[ExternalStorage] = None,
    **policies: Any
) -> MockServer:
    """
    Convenience function to create and configure a mock server.

    Args:
        routes: Root routes or a provider returning them
        host: Host to bind to
        port: Port to bind to
        response_delay_ms: Simulated latency in milliseconds
        pass_through_unknown_url: Forward unknown URLs instead of 404
        upstream_url: Base URL receiving passed-through requests
        cache_from_external_storage: Persist collections to storage
        storage: External storage (in-memory if None)
        **policies: Status code policies, e.g. put_update_404=False

    Returns:
        Configured MockServer instance
    """
    config = ApiMockConfig(
        host=host,
        port=port,
        response_delay_ms=response_delay_ms,
        pass_through_unknown_url=pass_through_unknown_url,
        cache_from_external_storage=cache_from_external_storage,
        **policies
    )

    return MockServer(routes, config=config, storage=storage, upstream_url=upstream_url)
