"""
apimock Common Utilities

Shared utilities and helpers used across apimock modules.
"""

from .utils import clone_json, safe_json_parse, flatten_multi, form_to_items, parse_body, parse_multipart
from .url_utils import URLNormalizer

__all__ = [
    'clone_json',
    'safe_json_parse',
    'flatten_multi',
    'form_to_items',
    'parse_body',
    'parse_multipart',
    'URLNormalizer'
]
