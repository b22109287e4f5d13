"""
apimock Route Registry

Declarative route tree for the mock engine, its validation and the root
path index used to find which root route owns a URL.

A route path ends in a primary key token when it addresses a collection,
for example `api/posts/:postId`. Children continue from the parent's item,
so a child `comments/:commentId` under it serves
`api/posts/123/comments/456`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

from .errors import RouteConfigError


# Path with a primary key, like `one/two/:id`
PATH_WITH_PK = re.compile(r'^(?:[\w-]+/)+:\w+$')

# camelCase route keys accepted alongside the snake_case field names
_ALIASES = {
    'dataCallback': 'data_callback',
    'responseCallback': 'response_callback',
    'propertiesForList': 'properties_for_list',
    'ignoreExternalPersistence': 'ignore_external_persistence',
}


@dataclass
class DataCallbackOptions:
    """Arguments passed to a route's data callback."""

    items: List[Dict[str, Any]] = field(default_factory=list)
    item_id: Optional[str] = None
    http_method: str = 'GET'
    parents: List[Dict[str, Any]] = field(default_factory=list)
    query_params: Dict[str, Any] = field(default_factory=dict)
    request_body: Any = None
    request_headers: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ResponseCallbackOptions(DataCallbackOptions):
    """Arguments passed to a route's response callback."""

    response_body: Any = None


class DataSource(Protocol):
    """Produces the items of a collection; must return a list."""

    def __call__(self, opts: DataCallbackOptions) -> List[Dict[str, Any]]:
        ...


class ResponseShaper(Protocol):
    """Turns the list of items about to be sent into the response body."""

    def __call__(self, opts: ResponseCallbackOptions) -> Any:
        ...


@dataclass
class RouteNode:
    """
    A node of the route tree.

    Attributes:
        path: Path segment(s), ending in `:name` when the node owns a collection
        data_callback: Generates the collection's items
        response_callback: Reshapes the outgoing body
        properties_for_list: Template narrowing items in collection listings
        ignore_external_persistence: Never read/write this route's data externally
        children: Nested routes continuing from this node's item
        host: Optional `scheme://host` prefix, root routes only
    """

    path: str
    data_callback: Optional[DataSource] = None
    response_callback: Optional[ResponseShaper] = None
    properties_for_list: Optional[Dict[str, Any]] = None
    ignore_external_persistence: bool = False
    children: List['RouteNode'] = field(default_factory=list)
    host: Optional[str] = None

    @property
    def has_primary_key(self) -> bool:
        """True if the path ends in a primary key token."""
        return bool(PATH_WITH_PK.match(self.path or ''))

    @classmethod
    def from_dict(cls, data: Union[Dict[str, Any], 'RouteNode']) -> 'RouteNode':
        """Create a route tree from nested dictionaries."""
        if isinstance(data, RouteNode):
            return data

        data = {_ALIASES.get(key, key): value for key, value in data.items()}

        return cls(
            path=data.get('path', ''),
            data_callback=data.get('data_callback'),
            response_callback=data.get('response_callback'),
            properties_for_list=data.get('properties_for_list'),
            ignore_external_persistence=bool(data.get('ignore_external_persistence', False)),
            children=[cls.from_dict(child) for child in data.get('children') or []],
            host=data.get('host')
        )


@dataclass
class RootIndexEntry:
    """Resolved `host/root-path` of a root route, without its primary key."""

    path: str
    length: int
    index: int


class RouteRegistry:
    """
    Validates a route tree and builds the root path index.

    Example:
        registry = RouteRegistry([
            {'path': 'api/posts/:postId', 'data_callback': posts,
             'children': [{'path': 'comments/:commentId', 'data_callback': comments}]}
        ])
        registry.root_index[0].path  # 'api/posts'
    """

    def __init__(self, routes: Sequence[Union[RouteNode, Dict[str, Any]]]):
        """
        Build and validate the registry.

        Args:
            routes: Root routes, as RouteNode instances or dictionaries

        Raises:
            RouteConfigError: If the route tree is invalid
        """
        self.routes: List[RouteNode] = [RouteNode.from_dict(r) for r in routes if r]
        self.validate(self.routes)
        self.root_index: List[RootIndexEntry] = self.build_root_index(self.routes)

    @classmethod
    def validate(cls, routes: Sequence[RouteNode]) -> None:
        """
        Validate every route recursively and check root duplicates.

        Raises:
            RouteConfigError: On the first invalid route found
        """
        for route in routes:
            cls._check_route(route, is_root=True)
        cls._check_root_duplicates(routes)

    @classmethod
    def _check_route(cls, route: RouteNode, parent_path: str = '', is_root: bool = False) -> None:
        is_last_route = not route.children
        path = route.path or ''
        child_path = ' -> '.join(s for s in (parent_path, path) if s)
        has_pk = route.has_primary_key

        if not is_last_route and (not route.data_callback or not has_pk):
            raise RouteConfigError(
                f'Wrong nested routes with path "{child_path}". '
                f'A route with children must have a primary key at the end of its path, '
                f'for example "api/posts/:postId" where ":postId" is the primary key '
                f'of collection "api/posts", and a data_callback.'
            )

        if bool(route.data_callback) != has_pk:
            raise RouteConfigError(
                f'Wrong route with path "{child_path}". '
                f'A route with data_callback must have a primary key at the end of its path, '
                f'and vice versa.'
            )

        if path.endswith('/'):
            raise RouteConfigError(
                f'Wrong route with path "{child_path}". Route path must not have a trailing slash.'
            )

        if route.data_callback is not None and not callable(route.data_callback):
            raise RouteConfigError(f'Route data_callback with path "{path}" is not callable')
        if route.response_callback is not None and not callable(route.response_callback):
            raise RouteConfigError(f'Route response_callback with path "{path}" is not callable')

        if is_root and route.host is not None:
            host = route.host
            if not isinstance(host, str) or not host or host.endswith('/'):
                raise RouteConfigError(
                    f'Wrong host "{host}". A host must be a non-empty string '
                    f'without a trailing slash.'
                )

        for child in route.children:
            cls._check_route(child, child_path)

    @classmethod
    def _check_root_duplicates(cls, routes: Sequence[RouteNode]) -> None:
        existing = set()
        for route in routes:
            key = (route.host or '', cls._root_path(route))
            if key in existing:
                label = ' -> '.join(s for s in key if s)
                raise RouteConfigError(f"Duplicate root route with path: '{label}'")
            existing.add(key)

    @staticmethod
    def _root_path(route: RouteNode) -> str:
        # `part1/part2/:paramName` -> `part1/part2`
        return (route.path or '').split('/:')[0]

    @classmethod
    def build_root_index(cls, routes: Sequence[RouteNode]) -> List[RootIndexEntry]:
        """
        Build root paths with host but without primary key, longest first.

        `https://example.com` + `part1/part2/:paramName` becomes
        `https://example.com/part1/part2`.
        """
        entries = []
        for index, route in enumerate(routes):
            path = '/'.join(s for s in (route.host, cls._root_path(route)) if s)
            entries.append(RootIndexEntry(path=path, length=len(path), index=index))

        return sorted(entries, key=lambda e: e.length, reverse=True)
