"""
apimock - In-process HTTP mock engine for nested REST resources.
"""

from .mock import ApiMockConfig, HttpBackend, MockRequest, RouteNode, mock_session, MockServer

__all__ = [
    'ApiMockConfig',
    'HttpBackend',
    'MockRequest',
    'RouteNode',
    'mock_session',
    'MockServer',
]

__version__ = '1.0.0'
