"""
apimock Common Utilities

Helpers for working with the JSON value model shared by the engine and its
HTTP adapters.
"""

import io
import json
import math
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from urllib.parse import parse_qsl

from python_multipart import parse_form


def clone_json(value: Any) -> Any:
    """
    Deep-copy a value through the JSON value model.

    Produces the same result as serializing to JSON and parsing it back:
    mappings become dicts with string keys, tuples become lists, callables
    are dropped from mappings and become None inside lists, and non-finite
    floats become None. Dates are rendered in ISO format.

    Args:
        value: Any JSON-compatible value (None passes through)

    Returns:
        An independent copy sharing no containers with the input

    Example:
        item = clone_json(request.body or {})
        item['id'] = 1  # request.body is untouched
    """
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {
            str(key): clone_json(item)
            for key, item in value.items()
            if not callable(item)
        }
    if isinstance(value, (list, tuple)):
        return [None if callable(item) else clone_json(item) for item in value]
    if callable(value):
        return None
    return str(value)


def safe_json_parse(json_string: Optional[Union[str, bytes]], default: Any = None) -> Any:
    """
    Safely parse JSON string with error handling.

    Args:
        json_string: JSON string to parse
        default: Default value to return if parsing fails

    Returns:
        Parsed JSON object, or default if parsing fails
    """
    if not json_string:
        return default

    try:
        return json.loads(json_string)
    except (json.JSONDecodeError, TypeError, ValueError):
        return default


def flatten_multi(pairs: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
    """
    Collapse (key, value) pairs into a dict.

    A key seen once maps to its value, a repeated key maps to the list of
    its values in arrival order. Used for query parameters and headers.

    Example:
        flatten_multi([('tag', 'a'), ('tag', 'b'), ('page', '2')])
        # {'tag': ['a', 'b'], 'page': '2'}
    """
    result: Dict[str, Any] = {}
    for key, value in pairs:
        if key not in result:
            result[key] = value
        elif isinstance(result[key], list):
            result[key].append(value)
        else:
            result[key] = [result[key], value]
    return result


def form_to_items(pairs: Iterable[Tuple[str, Any]]) -> List[Dict[str, Any]]:
    """Convert form fields into a list of single-key dicts, one per field."""
    return [{key: value} for key, value in pairs]


def _decode(raw: bytes) -> str:
    try:
        return raw.decode('utf-8')
    except UnicodeDecodeError:
        return raw.decode('latin-1')


def parse_multipart(content: bytes, content_type: str) -> List[Dict[str, Any]]:
    """
    Parse a multipart/form-data body into single-key dicts.

    Parts are kept in wire order; file parts are reduced to their filename.

    Args:
        content: Raw multipart body
        content_type: Content-Type header carrying the boundary

    Returns:
        One dict per part

    Raises:
        ValueError: If the body is not valid multipart data
    """
    pairs: List[Tuple[str, Any]] = []

    def on_field(field):
        pairs.append((_decode(field.field_name or b''), _decode(field.value or b'')))

    def on_file(file):
        pairs.append((_decode(file.field_name or b''), _decode(file.file_name or b'')))
        file.close()

    headers = {'Content-Type': content_type, 'Content-Length': str(len(content))}
    parse_form(headers, io.BytesIO(content), on_field, on_file)

    return form_to_items(pairs)


def parse_body(content: Optional[Union[str, bytes]], content_type: Optional[str] = None) -> Any:
    """
    Decode a raw request body into the JSON value model.

    JSON bodies are parsed, urlencoded and multipart forms become a list of
    single-key dicts, anything else is returned as text. An empty body is
    None.

    Args:
        content: Raw body as sent on the wire
        content_type: Value of the Content-Type header, if any

    Returns:
        Decoded body
    """
    if content is None or content == b'' or content == '':
        return None

    media_type = (content_type or '').split(';')[0].strip().lower()

    if media_type == 'multipart/form-data':
        raw = content if isinstance(content, bytes) else content.encode('utf-8')
        try:
            return parse_multipart(raw, content_type)
        except ValueError:
            return _decode(raw)

    text = _decode(content) if isinstance(content, bytes) else content

    if media_type == 'application/x-www-form-urlencoded':
        return form_to_items(parse_qsl(text, keep_blank_values=True))

    return safe_json_parse(text, default=text)
