"""
apimock CRUD Engine

Emulates REST semantics of GET/POST/PUT/PATCH/DELETE against the mock
store. Status codes for the ambiguous cases (POST over an existing id, PUT
on a missing id, ...) follow the policies of ApiMockConfig.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace as dc_replace
from typing import Any, Dict, List, Optional, Union

from ..common import clone_json
from .config import ApiMockConfig
from .errors import MockHttpError
from .matcher import ResourceLink
from .messages import MockRequest, json_headers
from .routes import DataCallbackOptions
from .store import CollectionRecord, MockStore


_INT_ID = re.compile(r'^-?\d+$')


@dataclass
class CrudResult:
    """Outcome of a CRUD operation; body None means no content."""

    status: int
    headers: Dict[str, str] = field(default_factory=json_headers)
    body: Any = None


def gen_id(items: List[Any], primary_key: str) -> Union[int, float]:
    """
    Next available id of a collection.

    Args:
        items: Collection items
        primary_key: Name of the primary key field

    Returns:
        One more than the largest numeric id, 1 for an empty collection
    """
    max_id = 0
    for item in items:
        value = item.get(primary_key) if isinstance(item, Mapping) else None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            max_id = max(max_id, value)

    return max_id + 1


def ids_match(value: Any, resource_id: Any) -> bool:
    """
    Loose id comparison between a stored value and an id from the URL.

    URL ids are strings while stored ids are often numbers, so `7` matches
    `"7"` and `"7.0"`.
    """
    if value is None or resource_id is None:
        return False
    if value == resource_id:
        return True
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return float(resource_id) == value
        except (TypeError, ValueError):
            return False
    return str(value) == str(resource_id)


def coerce_id(resource_id: str) -> Any:
    """Turn an integer-looking URL id into an int, leave others as text."""
    if isinstance(resource_id, str) and _INT_ID.match(resource_id):
        return int(resource_id)
    return resource_id


def find_index(items: List[Any], primary_key: str, resource_id: Any) -> Optional[int]:
    """Index of the item whose primary key matches, or None."""
    for index, item in enumerate(items):
        if isinstance(item, Mapping) and ids_match(item.get(primary_key), resource_id):
            return index
    return None


class CrudEngine:
    """
    Executes CRUD operations on a resolved resource chain.

    Example:
        engine = CrudEngine(config, store)
        parents = engine.resolve_parents(request, chain)
        result = engine.execute(request, chain[-1], parents)
    """

    def __init__(
        self,
        config: ApiMockConfig,
        store: MockStore,
        logger: Optional[logging.Logger] = None
    ):
        self.config = config
        self.store = store
        self.logger = logger or logging.getLogger("apimock.engine")

    def _context(
        self,
        request: MockRequest,
        link: ResourceLink,
        parents: List[Dict[str, Any]]
    ) -> DataCallbackOptions:
        return DataCallbackOptions(
            items=[],
            item_id=link.resource_id,
            http_method='GET',
            parents=list(parents),
            query_params=request.query_params,
            request_body=request.body,
            request_headers=request.headers
        )

    def resolve_parents(self, request: MockRequest, chain: List[ResourceLink]) -> List[Dict[str, Any]]:
        """
        Find the parent item of every level but the last.

        Args:
            request: Incoming request
            chain: Resolved resource links

        Returns:
            Parent items, outermost first

        Raises:
            MockHttpError: 404 if a parent item does not exist
        """
        parents: List[Dict[str, Any]] = []

        for link in chain[:-1]:
            record = self.store.get_or_populate(
                link.cache_key, link.route, self._context(request, link, parents)
            )
            index = find_index(record.writable_items, link.primary_key, link.resource_id)

            if index is None:
                raise MockHttpError(
                    404,
                    'item not found',
                    searched=record.writable_items
                )

            parents.append(record.writable_items[index])

        return parents

    def execute(
        self,
        request: MockRequest,
        link: ResourceLink,
        parents: List[Dict[str, Any]]
    ) -> CrudResult:
        """
        Run the request's method against the last resource link.

        Routes without a data callback have no collection and answer 200
        with no body. After a successful write the route's data callback is
        called with the changed items and the request method; what it
        returns is stored.

        Raises:
            MockHttpError: For 400/404/405/409 policy errors
            TypeError: If the data callback does not return a list
        """
        route = link.route
        if not route.data_callback:
            return CrudResult(status=200)

        context = self._context(request, link, parents)
        record = self.store.get_or_populate(link.cache_key, route, context)
        method = request.method

        if method == 'GET':
            return self.get(request, link, record)

        handlers = {
            'POST': self.post,
            'PUT': self.put_or_patch,
            'PATCH': self.put_or_patch,
            'DELETE': self.delete,
        }
        handler = handlers.get(method)
        if handler is None:
            raise MockHttpError(405, 'Error 405: Method not allowed')

        items = clone_json(record.writable_items)
        result = handler(request, link, items)

        written = route.data_callback(dc_replace(context, items=items, http_method=method))
        if not isinstance(written, list):
            raise TypeError(
                f'data_callback of route "{route.path}" should return a list, '
                f'got {type(written).__name__}'
            )
        self.store.replace(link.cache_key, route, written)

        return result

    def get(self, request: MockRequest, link: ResourceLink, record: CollectionRecord) -> CrudResult:
        if link.resource_id is None:
            return CrudResult(status=200, body=record.readonly_items)

        index = find_index(record.writable_items, link.primary_key, link.resource_id)
        if index is None:
            raise MockHttpError(
                404,
                'item not found',
                searched=record.writable_items
            )

        return CrudResult(status=200, body=[record.writable_items[index]])

    def post(self, request: MockRequest, link: ResourceLink, items: List[Any]) -> CrudResult:
        """Create an item; may update an existing one unless post_update_409."""
        primary_key = link.primary_key
        resource_id = link.resource_id

        if resource_id is not None:
            resource_url = request.url.rsplit('/', 1)[0]
            raise MockHttpError(
                405,
                f'Error 405: Method not allowed; POST forbidden on this URI, try on "{resource_url}"'
            )

        if not primary_key:
            raise MockHttpError(
                400,
                'Error 400: Bad Request; POST forbidden on URI without primary key in the route'
            )

        item = self._body_as_item(request)

        if item.get(primary_key) is None:
            item[primary_key] = gen_id(items, primary_key)

        item_id = item[primary_key]
        index = find_index(items, primary_key, item_id)

        if index is None:
            items.append(item)
            headers = json_headers()
            headers['Location'] = f"{request.url.rstrip('/')}/{item_id}"
            return CrudResult(status=201, headers=headers, body=item)

        if self.config.post_update_409:
            raise MockHttpError(
                409,
                f'Error 409: Conflict; item.{primary_key}={item_id} exists '
                f'and may not be updated with POST; use PUT instead.'
            )

        items[index] = item
        if self.config.post_update_204:
            return CrudResult(status=204)
        return CrudResult(status=200, body=item)

    def put_or_patch(self, request: MockRequest, link: ResourceLink, items: List[Any]) -> CrudResult:
        """PUT replaces an item's fields, PATCH merges into them."""
        method = request.method
        update_204 = self.config.put_update_204 if method == 'PUT' else self.config.patch_update_204
        primary_key = link.primary_key
        resource_id = link.resource_id

        if not primary_key:
            raise MockHttpError(
                400,
                f'Error 400: Bad Request; {method} forbidden on URI without primary key in the route'
            )

        if resource_id is None:
            raise MockHttpError(
                405,
                f'Error 405: Method not allowed; {method} forbidden on this URI, '
                f'try on "{request.url}/:{primary_key}"'
            )

        item = self._body_as_item(request)
        has_body_id = item.get(primary_key) is not None

        if has_body_id and not ids_match(item[primary_key], resource_id):
            raise MockHttpError(
                400,
                f'Error 400: Bad request; request with resource ID "{resource_id}" '
                f'does not match item.{primary_key}={item[primary_key]}'
            )

        index = find_index(items, primary_key, resource_id)

        if index is not None:
            stored = items[index]
            if not has_body_id:
                item[primary_key] = stored.get(primary_key)
            if method == 'PUT':
                for key in list(stored.keys()):
                    if key not in item:
                        del stored[key]
            stored.update(item)
            if update_204:
                return CrudResult(status=204)
            return CrudResult(status=200, body=stored)

        if self.config.put_update_404 or method == 'PATCH':
            raise MockHttpError(
                404,
                f'Error 404: Not found; item.{primary_key}={resource_id} '
                f'not found and may not be created with {method}; use POST instead.',
                searched=items
            )

        if not has_body_id:
            item[primary_key] = coerce_id(resource_id)
        items.append(item)
        return CrudResult(status=201, body=item)

    def delete(self, request: MockRequest, link: ResourceLink, items: List[Any]) -> CrudResult:
        primary_key = link.primary_key
        resource_id = link.resource_id

        if not primary_key:
            raise MockHttpError(
                400,
                'Error 400: Bad Request; DELETE forbidden on URI without primary key in the route'
            )

        index = None
        if resource_id is not None:
            index = find_index(items, primary_key, resource_id)

        if resource_id is None or (index is None and self.config.delete_not_found_404):
            if resource_id is not None:
                detail = f'item.{primary_key}={resource_id} not found'
            else:
                detail = f'missing "{primary_key}" field'
            raise MockHttpError(404, f'Error 404: Not found; {detail}', searched=items)

        if index is not None:
            del items[index]

        return CrudResult(status=204)

    def _body_as_item(self, request: MockRequest) -> Dict[str, Any]:
        body = request.body if request.body is not None else {}
        if not isinstance(body, Mapping):
            raise MockHttpError(
                400,
                f'Error 400: Bad Request; {request.method} body must be a JSON object'
            )
        return clone_json(body)
