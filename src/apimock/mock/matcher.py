"""
apimock Route Matcher

Decides which nested resource a URL addresses.

Matching happens in three steps:
- find the root route owning the URL by its root path (longest first)
- dry match: align URL segments with route path segments by count only
- resolve: bind primary keys to URL segments and confirm that the literal
  segments of the URL equal those of the route

For URL `api/posts/123/comments/456` and route
`api/posts/:postId` -> `comments/:commentId` the result is a chain of two
resource links, one per collection (`api/posts` and
`api/posts/123/comments`).
"""

from typing import List, Optional
from dataclasses import dataclass, field

from .routes import RouteNode, RootIndexEntry


@dataclass
class DryMatchCandidate:
    """One plausible alignment of URL segments to route path segments."""

    split_url: List[str]
    split_route: List[str]
    route_chain: List[RouteNode] = field(default_factory=list)
    has_trailing_id: bool = False
    trailing_primary_key: str = ''


@dataclass
class ResourceLink:
    """
    One nesting level of a resolved URL.

    Attributes:
        cache_key: URL prefix identifying the collection, never ending in an id
        route: Route node serving this level
        primary_key: Name of the primary key field ('' when the route has none)
        resource_id: Id bound from the URL, None for a collection URL
    """

    cache_key: str
    route: RouteNode
    primary_key: str
    resource_id: Optional[str] = None


def _is_pk_token(segment: str) -> bool:
    return segment.startswith(':')


class RouteMatcher:
    """
    Finds root routes and produces dry match candidates.

    Example:
        registry = RouteRegistry(routes)
        matcher = RouteMatcher(registry.routes, registry.root_index)

        index = matcher.find_root_index('api/posts/7/comments')
        candidates = matcher.dry_match('api/posts/7/comments', registry.routes[index])
    """

    def __init__(self, routes: List[RouteNode], root_index: List[RootIndexEntry]):
        """
        Initialize matcher.

        Args:
            routes: Root routes, in declaration order
            root_index: Root index sorted by path length, longest first
        """
        self.routes = routes
        self.root_index = root_index

    def find_root_index(self, url: str) -> Optional[int]:
        """
        Find the root route owning a normalized URL.

        One extra character is compared so that root `posts` does not claim
        `posts-other/123`.

        Args:
            url: Normalized URL (no leading slash, no query)

        Returns:
            Index into routes, or None
        """
        for entry in self.root_index:
            part_url = url[:entry.length + 1]
            if part_url == entry.path or part_url == f'{entry.path}/':
                return entry.index

        return None

    def dry_match(self, url: str, root_route: RouteNode) -> List[DryMatchCandidate]:
        """
        Align a URL with every route of a root route's subtree.

        Args:
            url: Normalized URL matched to root_route by its root path
            root_route: Root route owning the URL

        Returns:
            Candidates in depth-first declaration order
        """
        split_url = url.split('/')
        return self._dry_match_node(split_url, root_route, root_route.host or '', [])

    def _dry_match_node(
        self,
        split_url: List[str],
        route: RouteNode,
        parent_path: str,
        parent_chain: List[RouteNode]
    ) -> List[DryMatchCandidate]:
        route_chain = parent_chain + [route]
        route_path = '/'.join(s for s in (parent_path, route.path) if s)
        split_route = route_path.split('/')
        count_url = len(split_url)
        count_route = len(split_route)

        if count_url > count_route:
            # URL goes deeper than this route
            candidates = []
            for child in route.children:
                candidates.extend(self._dry_match_node(split_url, child, route_path, route_chain))
            return candidates

        if count_url < count_route - 1:
            return []

        has_trailing_id = False
        trailing_primary_key = ''

        if count_url == count_route - 1:
            # URL addresses the collection of this route
            last_segment = split_route.pop()
            if not _is_pk_token(last_segment):
                return []
            trailing_primary_key = last_segment[1:]
        else:
            last_segment = split_route[-1]
            if _is_pk_token(last_segment):
                has_trailing_id = True
                trailing_primary_key = last_segment[1:]

        return [DryMatchCandidate(
            split_url=split_url,
            split_route=split_route,
            route_chain=route_chain,
            has_trailing_id=has_trailing_id,
            trailing_primary_key=trailing_primary_key
        )]


class ChainResolver:
    """Turns dry match candidates into chains of resource links."""

    def resolve(self, candidate: DryMatchCandidate) -> Optional[List[ResourceLink]]:
        """
        Bind primary keys and confirm literal segments.

        Args:
            candidate: Dry match, where split_url and split_route have equal length

        Returns:
            Resource links from outermost to innermost, or None if the literal
            segments of the URL differ from the route's
        """
        split_url = candidate.split_url
        routes = candidate.route_chain
        chain: List[ResourceLink] = []
        parts_of_url: List[str] = []
        parts_of_route: List[str] = []

        for i, part in enumerate(candidate.split_route):
            if _is_pk_token(part):
                resource_id = split_url[i] if i < len(split_url) and split_url[i] else None
                chain.append(ResourceLink(
                    # `posts` or `posts/123/comments`, never `posts/123`
                    cache_key='/'.join(split_url[:i]),
                    route=routes[min(len(chain), len(routes) - 1)],
                    primary_key=part[1:],
                    resource_id=resource_id
                ))
            else:
                parts_of_url.append(split_url[i] if i < len(split_url) else '')
                parts_of_route.append(part)

        if not candidate.has_trailing_id:
            chain.append(ResourceLink(
                cache_key='/'.join(split_url),
                route=routes[-1],
                primary_key=candidate.trailing_primary_key
            ))

        if '/'.join(parts_of_route) != '/'.join(parts_of_url):
            return None

        return chain

    def resolve_first(self, candidates: List[DryMatchCandidate]) -> Optional[List[ResourceLink]]:
        """Return the chain of the first candidate that resolves."""
        for candidate in candidates:
            chain = self.resolve(candidate)
            if chain:
                return chain

        return None
