"""
apimock URL Utilities

URL normalization shared by the route matcher and the HTTP adapters.
"""

from urllib.parse import urlsplit, urlunsplit, parse_qsl
from typing import Dict, Any, Tuple

from .utils import flatten_multi


class URLNormalizer:
    """Handles URL splitting and normalization for route matching."""

    @staticmethod
    def strip_query(url: str) -> str:
        """
        Remove query string and fragment from a URL.

        Args:
            url: URL, absolute or relative

        Returns:
            URL without query parameters
        """
        parsed = urlsplit(url)
        return urlunsplit((parsed.scheme, parsed.netloc, parsed.path, '', ''))

    @staticmethod
    def split_query(url: str) -> Tuple[str, Dict[str, Any]]:
        """
        Split a URL into its base and its query parameters.

        Repeated query keys yield a list of values.

        Args:
            url: URL possibly carrying a query string

        Returns:
            Tuple of (url without query, query params dict)
        """
        parsed = urlsplit(url)
        params = flatten_multi(parse_qsl(parsed.query, keep_blank_values=True))
        return URLNormalizer.strip_query(url), params

    @staticmethod
    def normalize_url(url: str) -> str:
        """
        Normalize URL for route matching.

        Drops query and fragment, a single leading slash and any trailing
        slash, so `/api/posts/` and `api/posts?x=1` both become `api/posts`.

        Args:
            url: Request URL

        Returns:
            Normalized URL string
        """
        normalized = URLNormalizer.strip_query(url)
        if normalized.startswith('/'):
            normalized = normalized[1:]
        return normalized.rstrip('/')
