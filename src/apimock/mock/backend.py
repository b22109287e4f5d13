"""
apimock HTTP Backend

Entry point of the mock engine: takes an intercepted request, resolves the
resource chain it addresses, runs the CRUD engine and builds the response.

Host integrations (the requests transport adapter, the FastAPI server)
only translate their own request/response types to MockRequest and
MockResponse/ErrorResponse and call handle() or handle_sync().
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from ..common import URLNormalizer
from .config import ApiMockConfig
from .crud import CrudEngine
from .errors import MockHttpError
from .generator import ResponseBuilder
from .matcher import ChainResolver, ResourceLink, RouteMatcher
from .messages import PASS_THROUGH, ErrorResponse, MockRequest, MockResponse
from .routes import RouteNode, RouteRegistry
from .store import ExternalStorage, MockStore


RoutesSource = Union[
    Sequence[Union[RouteNode, Dict[str, Any]]],
    Callable[[], Sequence[Union[RouteNode, Dict[str, Any]]]]
]


class HttpBackend:
    """
    In-process mock of a REST backend.

    Routes are validated when the backend is created; an invalid route tree
    raises RouteConfigError and no backend exists to serve requests.

    Example:
        def posts(opts):
            if opts.http_method == 'GET':
                return [{'postId': 1, 'title': 'Hello'}]
            return opts.items

        backend = HttpBackend([{'path': 'api/posts/:postId', 'data_callback': posts}])
        response = backend.handle_sync(MockRequest('GET', '/api/posts/1'))
        response.body  # [{'postId': 1, 'title': 'Hello'}]
    """

    def __init__(
        self,
        routes: RoutesSource,
        config: Optional[ApiMockConfig] = None,
        storage: Optional[ExternalStorage] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize backend.

        Args:
            routes: Root routes, or a zero-argument callable returning them
            config: Optional ApiMockConfig for engine behavior
            storage: External storage used with cache_from_external_storage
            logger: Logger (defaults to `apimock.engine`)

        Raises:
            RouteConfigError: If the route tree is invalid
        """
        self.config = config or ApiMockConfig()
        self.logger = logger or logging.getLogger("apimock.engine")

        if callable(routes):
            routes = routes()

        self.registry = RouteRegistry(routes)
        self.matcher = RouteMatcher(self.registry.routes, self.registry.root_index)
        self.resolver = ChainResolver()
        self.store = MockStore(
            storage=storage,
            persist=self.config.cache_from_external_storage,
            storage_key=self.config.external_storage_key,
            logger=logger.getChild("store") if logger else None
        )
        self.crud = CrudEngine(self.config, self.store, logger=self.logger)
        self.builder = ResponseBuilder(self.config, logger=self.logger)

        self.logger.debug(f"Loaded {len(self.registry.routes)} root routes")

    @property
    def routes(self) -> List[RouteNode]:
        return self.registry.routes

    def resolve(self, url: str) -> Optional[List[ResourceLink]]:
        """
        Resolve the resource chain a URL addresses.

        Args:
            url: Request URL, with or without leading slash or query

        Returns:
            Resource links, or None if no route matches
        """
        normalized_url = URLNormalizer.normalize_url(url)
        route_index = self.matcher.find_root_index(normalized_url)

        if route_index is None:
            return None

        candidates = self.matcher.dry_match(normalized_url, self.routes[route_index])
        return self.resolver.resolve_first(candidates)

    def dispatch(self, request: MockRequest) -> Union[MockResponse, ErrorResponse, Any]:
        """
        Handle a request synchronously, without simulated latency.

        Returns:
            MockResponse, ErrorResponse, or PASS_THROUGH for an unknown URL
            when pass_through_unknown_url is enabled
        """
        try:
            return self._dispatch(request)
        except MockHttpError as e:
            self._log_error(request, e.message, e.searched)
            return self.make_error(request, e.status, e.message)
        except Exception as e:
            self.logger.exception(f"Error 500: Internal Server Error; {request.method} {request.url}")
            return self.make_error(request, 500, str(e))

    def _dispatch(self, request: MockRequest) -> Union[MockResponse, ErrorResponse, Any]:
        if self.config.show_log:
            self.logger.info(f"req: {request.method} {request.url}")
            self.logger.debug(
                f"req details: query={request.query_params} headers={request.headers} body={request.body}"
            )

        chain = self.resolve(request.url)
        if not chain:
            return self.not_found(request)

        parents = self.crud.resolve_parents(request, chain)
        link = chain[-1]
        result = self.crud.execute(request, link, parents)

        return self.builder.build(request, link, parents, result)

    async def handle(self, request: MockRequest) -> Union[MockResponse, ErrorResponse, Any]:
        """Handle a request, holding successful responses for the configured delay."""
        response = self.dispatch(request)
        if isinstance(response, MockResponse):
            return await self.builder.deliver(response)
        return response

    def handle_sync(self, request: MockRequest) -> Union[MockResponse, ErrorResponse, Any]:
        """Blocking variant of handle()."""
        response = self.dispatch(request)
        if isinstance(response, MockResponse):
            return self.builder.deliver_sync(response)
        return response

    def not_found(self, request: MockRequest) -> Union[ErrorResponse, Any]:
        """Answer a request no route matches."""
        if self.config.pass_through_unknown_url:
            self.logger.debug(f"Passing through {request.method} {request.url}")
            return PASS_THROUGH

        message = 'Error 404: Not found'
        self._log_error(request, message)
        return self.make_error(request, 404, message)

    def make_error(self, request: MockRequest, status: int, message: str) -> ErrorResponse:
        return ErrorResponse(url=request.url_with_params, status=status, error=message)

    def reset(self) -> int:
        """Drop all cached collections; data is regenerated on next access."""
        return self.store.clear()

    def _log_error(self, request: MockRequest, message: str, searched: Any = None) -> None:
        if not self.config.show_log:
            return
        if searched is not None:
            self.logger.warning(f"res: {request.method} {request.url} {message}, searched in: {searched}")
        else:
            self.logger.warning(f"res: {request.method} {request.url} {message}")
