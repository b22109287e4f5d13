"""
Tests for apimock common utilities.

Covers JSON cloning, body decoding, multi-value flattening and URL
normalization.
"""

import math
from datetime import date, datetime

from apimock.common import URLNormalizer, clone_json, flatten_multi, form_to_items, parse_body, safe_json_parse


class TestCloneJson:
    """Test clone_json."""

    def test_independent_copy(self):
        """Test that nested containers are not shared."""
        original = {'id': 1, 'tags': ['a'], 'meta': {'x': 1}}

        copy = clone_json(original)
        copy['tags'].append('b')
        copy['meta']['x'] = 2

        assert original == {'id': 1, 'tags': ['a'], 'meta': {'x': 1}}

    def test_lossy_conversions(self):
        """Test values JSON cannot represent."""
        value = {
            'nan': math.nan,
            'inf': math.inf,
            'fn': lambda: None,
            'tuple': (1, 2),
            'list_fn': [1, print],
            1: 'int key',
            'when': datetime(2024, 1, 2, 3, 4, 5),
            'day': date(2024, 1, 2)
        }

        assert clone_json(value) == {
            'nan': None,
            'inf': None,
            'tuple': [1, 2],
            'list_fn': [1, None],
            '1': 'int key',
            'when': '2024-01-02T03:04:05',
            'day': '2024-01-02'
        }

    def test_scalars(self):
        """Test that scalars pass through."""
        assert clone_json(None) is None
        assert clone_json('text') == 'text'
        assert clone_json(True) is True
        assert clone_json(1.5) == 1.5


class TestSafeJsonParse:
    """Test safe_json_parse."""

    def test_valid(self):
        assert safe_json_parse('{"a": 1}') == {'a': 1}

    def test_invalid_returns_default(self):
        assert safe_json_parse('{oops', default='fallback') == 'fallback'
        assert safe_json_parse('') is None


class TestFlattenMulti:
    """Test flatten_multi and form_to_items."""

    def test_repeated_keys(self):
        """Test that repeated keys collect into lists."""
        pairs = [('tag', 'a'), ('page', '2'), ('tag', 'b'), ('tag', 'c')]

        assert flatten_multi(pairs) == {'tag': ['a', 'b', 'c'], 'page': '2'}

    def test_empty(self):
        assert flatten_multi([]) == {}

    def test_form_to_items(self):
        """Test that every field becomes its own dict."""
        assert form_to_items([('a', '1'), ('a', '2')]) == [{'a': '1'}, {'a': '2'}]


class TestParseBody:
    """Test parse_body."""

    def test_json(self):
        assert parse_body(b'{"title": "x"}', 'application/json') == {'title': 'x'}

    def test_json_without_content_type(self):
        assert parse_body('[1, 2]') == [1, 2]

    def test_form(self):
        """Test urlencoded forms."""
        body = parse_body(b'name=Ada&role=admin', 'application/x-www-form-urlencoded; charset=utf-8')

        assert body == [{'name': 'Ada'}, {'role': 'admin'}]

    def test_text(self):
        assert parse_body(b'plain text', 'text/plain') == 'plain text'

    def test_empty(self):
        assert parse_body(None) is None
        assert parse_body(b'') is None
        assert parse_body('') is None


class TestURLNormalizer:
    """Test URLNormalizer."""

    def test_normalize_relative(self):
        """Test leading slash, trailing slash and query removal."""
        assert URLNormalizer.normalize_url('/api/posts/') == 'api/posts'
        assert URLNormalizer.normalize_url('api/posts?page=2') == 'api/posts'

    def test_normalize_absolute(self):
        """Test that scheme and host are kept."""
        assert URLNormalizer.normalize_url('https://example.com/api/posts?x=1#top') == 'https://example.com/api/posts'

    def test_split_query(self):
        """Test splitting the query string off a URL."""
        base, params = URLNormalizer.split_query('/api/posts?tag=a&tag=b&empty=')

        assert base == '/api/posts'
        assert params == {'tag': ['a', 'b'], 'empty': ''}


class TestParseMultipart:
    """Test multipart/form-data decoding."""

    BODY = (
        b'--xyz\r\n'
        b'Content-Disposition: form-data; name="name"\r\n\r\n'
        b'Ada\r\n'
        b'--xyz\r\n'
        b'Content-Disposition: form-data; name="avatar"; filename="ada.png"\r\n'
        b'Content-Type: image/png\r\n\r\n'
        b'\x89PNG\r\n'
        b'--xyz--\r\n'
    )

    def test_fields_and_files(self):
        """Test that fields keep their value and files their filename."""
        body = parse_body(self.BODY, 'multipart/form-data; boundary=xyz')

        assert body == [{'name': 'Ada'}, {'avatar': 'ada.png'}]

    def test_missing_boundary(self):
        """Test that an unparsable body falls back to text."""
        assert parse_body(b'not multipart', 'multipart/form-data') == 'not multipart'
