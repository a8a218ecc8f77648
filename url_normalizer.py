"""Module for URL normalization and include/exclude filtering.

This module provides the functions that turn raw candidate locations into
the canonical form used in sitemaps:
- Leading slash, collapsed duplicate slashes and fragment removal
- Trailing slash policy applied once
- Base path prefix applied exactly once (normalization is idempotent)
- Lowercase scheme and host for absolute URLs
- Optional tracking parameter removal
- Glob include/exclude filtering of app-relative paths
"""

import logging
import re
from typing import Iterable, List, Optional, Pattern, Sequence, Union
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

from sitemap_models import InvalidPatternError, InvalidUrlError


logger = logging.getLogger(__name__)

DEFAULT_INCLUDE = ('/**',)

# Common tracking parameters to remove
TRACKING_PARAMS = {
    'utm_source', 'utm_medium', 'utm_campaign', 'utm_term', 'utm_content',
    'gclid', 'yclid', 'fbclid', '_openstat', 'mc_cid', 'mc_eid', '_ga', '_gid'
}

# Pagination parameters that should be preserved (not treated as tracking)
PAGINATION_PARAMS = {
    'page', 'p', 'pagenum', 'pagenumber', 'pageno', 'offset', 'start',
    'per_page', 'limit', 'from', 'to', 'num', 'n', 'pg'
}

ALLOWED_SCHEMES = ('http', 'https')

_WHITESPACE_RE = re.compile(r'\s')
_DUPLICATE_SLASHES_RE = re.compile(r'/{2,}')

PatternLike = Union[str, Pattern[str]]


def is_absolute_url(value: str) -> bool:
    """Return True if the value carries a scheme (e.g. https://...)."""
    return bool(urlsplit(value).scheme)


def _check_location(value: str) -> str:
    if not isinstance(value, str):
        raise InvalidUrlError(f"Location must be a string, got {type(value).__name__}")
    value = value.strip()
    if not value:
        raise InvalidUrlError("Location is empty")
    if _WHITESPACE_RE.search(value):
        raise InvalidUrlError(f"Location contains whitespace: {value!r}")
    return value


def normalize_base(base: Optional[str]) -> str:
    """Normalize a base path to '/' or '/segment[/segment...]' without trailing slash."""
    if not base:
        return '/'
    stripped = _DUPLICATE_SLASHES_RE.sub('/', base.strip()).strip('/')
    return '/' + stripped if stripped else '/'


def apply_trailing_slash(path: str, trailing_slash: bool) -> str:
    """Add or remove the trailing slash of a pathname. The root stays '/'."""
    if path == '/':
        return path
    if trailing_slash:
        return path if path.endswith('/') else path + '/'
    return path.rstrip('/') or '/'


def with_base(path: str, base: Optional[str], trailing_slash: bool = False) -> str:
    """Prefix a pathname with the base path unless it already carries it.

    Args:
        path: Pathname starting with '/'.
        base: Base path of the application (e.g. '/docs').
        trailing_slash: Trailing slash policy used when the path is the root.

    Returns:
        The prefixed pathname.
    """
    base = normalize_base(base)
    if base == '/':
        return path
    if path == base or path.startswith(base + '/'):
        return path
    if path == '/':
        return base + '/' if trailing_slash else base
    return base + path


def without_base(path: str, base: Optional[str]) -> str:
    """Strip the base path from a pathname, returning an app-relative path."""
    base = normalize_base(base)
    if base == '/':
        return path
    if path == base:
        return '/'
    if path.startswith(base + '/'):
        return path[len(base):]
    return path


def strip_tracking_params(query: str) -> str:
    """Remove tracking parameters (utm_*, gclid, ...) from a query string.

    Pagination parameters are always preserved.
    """
    if not query:
        return query
    query_params = parse_qs(query, keep_blank_values=True)

    filtered_params = {}
    for key, values in query_params.items():
        key_lower = key.lower()
        if key_lower in PAGINATION_PARAMS:
            filtered_params[key] = values
        elif not (key_lower in TRACKING_PARAMS or key_lower.startswith('utm_')):
            filtered_params[key] = values
    return urlencode(filtered_params, doseq=True) if filtered_params else ''


def normalize_path(
    path: str,
    base: Optional[str] = '/',
    trailing_slash: bool = False,
    strip_tracking: bool = False
) -> str:
    """Normalize a root-relative location into its canonical pathname.

    Re-normalizing a normalized path is a no-op.

    Args:
        path: Candidate path, with or without a leading slash.
        base: Base path prefix applied exactly once.
        trailing_slash: If True, paths end with '/', otherwise they do not.
        strip_tracking: If True, remove tracking parameters from the query string.

    Returns:
        Normalized path (query string kept, fragment dropped).

    Raises:
        InvalidUrlError: If the value is empty, contains whitespace or is an
            absolute URL.
    """
    value = _check_location(path)
    parsed = urlsplit(value)
    if parsed.scheme or parsed.netloc:
        raise InvalidUrlError(f"Expected a path, got an absolute URL: {value!r}")

    pathname = _DUPLICATE_SLASHES_RE.sub('/', '/' + parsed.path.lstrip('/'))
    pathname = apply_trailing_slash(pathname, trailing_slash)
    pathname = with_base(pathname, base, trailing_slash)
    query = strip_tracking_params(parsed.query) if strip_tracking else parsed.query
    return pathname + (f'?{query}' if query else '')


def normalize_url(
    url: str,
    strip_tracking: bool = False,
    trailing_slash: Optional[bool] = None
) -> str:
    """Normalize an absolute URL according to specified rules.

    Args:
        url: URL to normalize.
        strip_tracking: If True, remove tracking parameters from query string.
        trailing_slash: True/False applies the trailing slash policy to the
            path, None leaves it untouched.

    Returns:
        Normalized URL string.

    Raises:
        InvalidUrlError: If the URL has an unsupported scheme or no host.
    """
    value = _check_location(url)
    parsed = urlsplit(value)

    scheme = parsed.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise InvalidUrlError(f"Unsupported URL scheme: {value!r}")
    netloc = parsed.netloc.lower()
    if not netloc:
        raise InvalidUrlError(f"URL has no host: {value!r}")

    path = _DUPLICATE_SLASHES_RE.sub('/', parsed.path) or '/'
    if trailing_slash is not None:
        path = apply_trailing_slash(path, trailing_slash)

    query = strip_tracking_params(parsed.query) if strip_tracking else parsed.query

    # Fragment is always removed (everything after #)
    return urlunsplit((scheme, netloc, path, query, ''))


def site_host(site_url: str) -> str:
    return urlsplit(site_url).netloc.lower()


def resolve_absolute_url(site_url: str, location: str) -> str:
    """Join the site URL with a normalized pathname.

    Absolute http(s) locations are canonicalized and returned without being
    re-based.
    """
    if is_absolute_url(location):
        return normalize_url(location)
    return site_url.rstrip('/') + location


def resolve_asset_url(value: str, site_url: str, base: Optional[str] = '/') -> str:
    """Resolve an image, video or alternative URL against the site URL and base.

    Unlike page locations no trailing slash policy is applied.
    """
    value = _check_location(value)
    if is_absolute_url(value):
        return normalize_url(value)
    if value.startswith('//'):
        return normalize_url(urlsplit(site_url).scheme + ':' + value)
    pathname = with_base('/' + value.lstrip('/'), base)
    return site_url.rstrip('/') + pathname


def filter_key(path: str) -> str:
    """Reduce a pathname to the form used by filters and route rules.

    Query string, fragment and trailing slash are removed.
    """
    pathname = urlsplit(path).path or '/'
    return pathname.rstrip('/') or '/'


def _segment_to_regex(segment: str) -> str:
    if segment == '**':
        return '.*'
    if segment.startswith(':') and len(segment) > 1:
        return '[^/]+'
    parts = re.split(r'(\*+)', segment)
    return ''.join('[^/]*' if part.startswith('*') else re.escape(part) for part in parts if part)


def compile_pattern(pattern: PatternLike) -> Pattern[str]:
    """Compile a glob pattern into a regular expression.

    Supported syntax: '**' matches across segments, '*' within one segment,
    ':name' matches one whole segment. A trailing '/**' also matches the
    prefix itself, so '/blog/**' matches '/blog'. Compiled regular
    expressions are returned unchanged.

    Raises:
        InvalidPatternError: If the pattern is not a string starting with '/'.
    """
    if isinstance(pattern, re.Pattern):
        return pattern
    if not isinstance(pattern, str) or not pattern.startswith('/'):
        raise InvalidPatternError(f"Pattern must be a path starting with '/': {pattern!r}")

    catch_all = pattern.endswith('/**')
    body = pattern[:-3] if catch_all else pattern
    regex = '/'.join(_segment_to_regex(segment) for segment in body.split('/'))
    if catch_all:
        regex += '(?:/.*)?'
    try:
        return re.compile(f'^{regex}$')
    except re.error as e:
        raise InvalidPatternError(f"Pattern {pattern!r} failed to compile: {e}") from e


def compile_patterns(patterns: Iterable[PatternLike]) -> List[Pattern[str]]:
    """Compile patterns, skipping (and logging) the ones that fail."""
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(compile_pattern(pattern))
        except InvalidPatternError as e:
            logger.warning(f"Skipping filter pattern: {e}")
    return compiled


class UrlFilter:
    """Include/exclude glob filter for app-relative paths.

    A path is retained iff it matches at least one include pattern and no
    exclude pattern. Without include patterns every path is included.
    """

    def __init__(
        self,
        include: Optional[Sequence[PatternLike]] = None,
        exclude: Optional[Sequence[PatternLike]] = None
    ) -> None:
        include = DEFAULT_INCLUDE if include is None else include
        self.match_all = not include
        self.include = tuple(compile_patterns(include))
        self.exclude = tuple(compile_patterns(exclude or ()))

    def is_allowed(self, path: str) -> bool:
        key = filter_key(path)
        if any(pattern.match(key) for pattern in self.exclude):
            return False
        return self.match_all or any(pattern.match(key) for pattern in self.include)

    def filter_paths(self, paths: Iterable[str]) -> List[str]:
        """Return the retained paths in input order, duplicates included."""
        return [path for path in paths if self.is_allowed(path)]
