"""
apimock Mock Module

In-process HTTP mock engine emulating nested REST resources.

This module provides:
- Route tree validation and matching
- In-memory collections with optional external persistence
- CRUD emulation with configurable status code policies
- requests transport adapter and FastAPI server
"""

from .config import ApiMockConfig
from .errors import ApiMockError, RouteConfigError, MockHttpError
from .routes import (
    RouteNode,
    RootIndexEntry,
    RouteRegistry,
    DataCallbackOptions,
    ResponseCallbackOptions,
    DataSource,
    ResponseShaper
)
from .matcher import RouteMatcher, ChainResolver, DryMatchCandidate, ResourceLink
from .store import MockStore, CollectionRecord, ReadonlyItem, InMemoryStorage, JsonFileStorage
from .crud import CrudEngine, CrudResult, gen_id
from .generator import ResponseBuilder
from .messages import MockRequest, MockResponse, ErrorResponse, PASS_THROUGH
from .backend import HttpBackend
from .transport import MockAdapter, mock_session
from .server import MockServer, MockMetrics, create_mock_server

__all__ = [
    # Configuration and errors
    'ApiMockConfig',
    'ApiMockError',
    'RouteConfigError',
    'MockHttpError',

    # Routes
    'RouteNode',
    'RootIndexEntry',
    'RouteRegistry',
    'DataCallbackOptions',
    'ResponseCallbackOptions',
    'DataSource',
    'ResponseShaper',

    # Matching
    'RouteMatcher',
    'ChainResolver',
    'DryMatchCandidate',
    'ResourceLink',

    # Store
    'MockStore',
    'CollectionRecord',
    'ReadonlyItem',
    'InMemoryStorage',
    'JsonFileStorage',

    # Engine
    'CrudEngine',
    'CrudResult',
    'gen_id',
    'ResponseBuilder',
    'HttpBackend',
    'MockRequest',
    'MockResponse',
    'ErrorResponse',
    'PASS_THROUGH',

    # Adapters
    'MockAdapter',
    'mock_session',
    'MockServer',
    'MockMetrics',
    'create_mock_server',
]
