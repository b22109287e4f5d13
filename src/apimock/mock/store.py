"""
apimock Mock Store

In-memory datasets of the mocked collections, keyed by cache key, with
optional persistence to an external key-value storage.

Each collection keeps two lists:
- writable items: the canonical data, changed by POST/PUT/PATCH/DELETE
- readonly items: read-only views of the writable items returned by
  collection GETs, optionally narrowed to the route's properties_for_list
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace as dc_replace
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence

from ..common import clone_json
from .routes import DataCallbackOptions, RouteNode


class ExternalStorage(Protocol):
    """String-keyed storage holding JSON text, like browser local storage."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class InMemoryStorage:
    """Dict-backed ExternalStorage, mostly useful for tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStorage:
    """
    ExternalStorage persisted to a JSON file.

    The file holds one JSON object mapping storage keys to their text
    values, so it survives between test runs or server restarts.

    Example:
        storage = JsonFileStorage('.apimock-cache.json')
        backend = HttpBackend(routes, config, storage=storage)
    """

    def __init__(self, file_path: str):
        self.file_path = Path(file_path)

    def _read(self) -> Dict[str, str]:
        if not self.file_path.exists():
            return {}
        with open(self.file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file {self.file_path} does not hold a JSON object")
        return data

    def _write(self, data: Dict[str, str]) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.file_path, 'w', encoding='utf-8') as f:
            json.dump(data, f)

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        try:
            data = self._read()
        except ValueError:
            data = {}
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        try:
            data = self._read()
        except ValueError:
            # Unreadable file, nothing worth keeping
            data = {}
        data.pop(key, None)
        self._write(data)


class ReadonlyItem(Mapping):
    """
    Read-only view of a writable item.

    Values are looked up in the source item on every access. Only the keys
    given at creation that the source holds are exposed. There is no item
    assignment.
    """

    __slots__ = ('_source', '_keys')

    def __init__(self, source: Mapping, keys: Optional[Sequence[str]] = None):
        self._source = source
        self._keys = tuple(source.keys() if keys is None else keys)

    def _visible_keys(self) -> List[str]:
        return [key for key in self._keys if key in self._source]

    def __getitem__(self, key: str) -> Any:
        if key not in self._keys:
            raise KeyError(key)
        return self._source[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._visible_keys())

    def __len__(self) -> int:
        return len(self._visible_keys())

    def __repr__(self) -> str:
        return f"ReadonlyItem({dict(self)!r})"


@dataclass
class CollectionRecord:
    """Data of one collection."""

    writable_items: List[Any] = field(default_factory=list)
    readonly_items: List[Any] = field(default_factory=list)


def make_readonly_items(route: RouteNode, writable_items: List[Any]) -> List[Any]:
    """Derive the read-only projection of a collection."""
    template = route.properties_for_list
    keys = list(template.keys()) if template else None

    readonly = []
    for item in writable_items:
        if isinstance(item, Mapping):
            readonly.append(ReadonlyItem(item, keys))
        else:
            readonly.append(item)
    return readonly


class MockStore:
    """
    Cache of collection records, populated lazily from data callbacks.

    Example:
        store = MockStore()
        record = store.get_or_populate('api/posts', posts_route, DataCallbackOptions())
        store.replace('api/posts', posts_route, record.writable_items + [{'id': 3}])
    """

    def __init__(
        self,
        storage: Optional[ExternalStorage] = None,
        persist: bool = False,
        storage_key: str = "apiMockCachedData",
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize store.

        Args:
            storage: External storage used when persist is True
            persist: Synchronize records with the external storage
            storage_key: Storage key holding all persisted records
            logger: Logger (defaults to `apimock.store`)
        """
        self.storage = storage if storage is not None else InMemoryStorage()
        self.persist = persist
        self.storage_key = storage_key
        self.logger = logger or logging.getLogger("apimock.store")
        self.records: Dict[str, CollectionRecord] = {}

    def __contains__(self, cache_key: str) -> bool:
        return cache_key in self.records

    def __len__(self) -> int:
        return len(self.records)

    def keys(self) -> List[str]:
        """Cache keys currently held."""
        return list(self.records.keys())

    def get(self, cache_key: str) -> Optional[CollectionRecord]:
        """Return the cached record without populating it."""
        return self.records.get(cache_key)

    def clear(self) -> int:
        """Drop every in-memory record, returning how many were dropped."""
        count = len(self.records)
        self.records.clear()
        return count

    def get_or_populate(
        self,
        cache_key: str,
        route: RouteNode,
        context: DataCallbackOptions
    ) -> CollectionRecord:
        """
        Return a collection's record, creating it on first access.

        On a miss the record is hydrated from external storage (when enabled
        and not ignored by the route), else generated by calling the route's
        data callback with an empty item list and the GET method.

        Args:
            cache_key: Collection URL prefix
            route: Route serving the collection
            context: Request context passed to the data callback

        Returns:
            The collection record

        Raises:
            TypeError: If the data callback does not return a list
        """
        record = self.records.get(cache_key)
        if record is not None:
            return record

        if self._uses_storage(route):
            record = self._hydrate(cache_key, route)
            if record is not None:
                self.records[cache_key] = record
                self.logger.debug(f"Hydrated {cache_key} from external storage")
                return record

        opts = dc_replace(context, items=[], http_method='GET')
        writable_items = route.data_callback(opts) if route.data_callback else []
        if writable_items is None:
            writable_items = []
        if not isinstance(writable_items, list):
            raise TypeError(
                f'data_callback of route "{route.path}" should return a list, '
                f'got {type(writable_items).__name__}'
            )

        return self.replace(cache_key, route, writable_items)

    def replace(self, cache_key: str, route: RouteNode, writable_items: List[Any]) -> CollectionRecord:
        """
        Overwrite a collection's writable items and regenerate its projection.

        Args:
            cache_key: Collection URL prefix
            route: Route serving the collection
            writable_items: New canonical items

        Returns:
            The new record
        """
        record = CollectionRecord(
            writable_items=writable_items,
            readonly_items=make_readonly_items(route, writable_items)
        )
        self.records[cache_key] = record

        if self._uses_storage(route):
            self._save(cache_key, record)

        return record

    def _uses_storage(self, route: RouteNode) -> bool:
        return self.persist and not route.ignore_external_persistence

    def _load_all(self) -> Dict[str, Any]:
        raw = self.storage.get(self.storage_key)
        if raw is None:
            return {}
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f'Storage key "{self.storage_key}" does not hold a JSON object')
        return data

    def _hydrate(self, cache_key: str, route: RouteNode) -> Optional[CollectionRecord]:
        try:
            entry = self._load_all().get(cache_key)
            if entry is None:
                return None

            items = entry.get('writableItems') if isinstance(entry, dict) else None
            if not isinstance(items, list):
                raise ValueError(f'Malformed persisted data for "{cache_key}"')

            return CollectionRecord(
                writable_items=items,
                readonly_items=make_readonly_items(route, items)
            )
        except (ValueError, TypeError, OSError) as e:
            self._discard_storage(e)
            return None

    def _save(self, cache_key: str, record: CollectionRecord) -> None:
        try:
            data = self._load_all()
            # Read-only projection is derived, never persisted
            data[cache_key] = {'writableItems': clone_json(record.writable_items)}
            self.storage.set(self.storage_key, json.dumps(data))
        except (ValueError, TypeError, OSError) as e:
            self._discard_storage(e)

    def _discard_storage(self, error: Exception) -> None:
        self.logger.warning(f"External storage error: {error}")
        try:
            self.storage.remove(self.storage_key)
        except OSError as e:
            self.logger.error(f'Could not remove storage key "{self.storage_key}": {e}')
            return
        self.logger.warning(f'Removed external storage data with key "{self.storage_key}"')
