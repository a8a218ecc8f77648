"""Module for turning URL inputs and resolved route rules into sitemap entries.

The entry builder is a pure function of its inputs: the normalized path,
the merged partial entry (url fields and route rules), the per-sitemap
defaults and any externally discovered lastmod.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, TypeVar
from urllib.parse import urlsplit, urlunsplit

from route_rules import EXCLUDED, as_items, merge_partial_entries
from sitemap_models import (
    CHANGEFREQ_VALUES,
    Alternative,
    ImageEntry,
    InvalidUrlError,
    SitemapEntry,
    VideoEntry,
    parse_lastmod,
)
from url_normalizer import (
    is_absolute_url,
    normalize_path,
    normalize_url,
    resolve_absolute_url,
    resolve_asset_url,
    site_host,
    without_base,
)


logger = logging.getLogger(__name__)

LOCATION_KEYS = ('loc', 'path', 'url')
SITEMAP_TAG_KEY = '_sitemap'
VIDEO_URL_FIELDS = ('thumbnail_loc', 'content_loc', 'player_loc')

T = TypeVar('T')


@dataclass
class UrlInput:
    """A candidate URL collected from configuration or a collaborator.

    Attributes:
        path: Normalized path including the base, or an absolute URL for
            locations on another host.
        app_path: Path without base, used by filters and route rules.
        fields: Partial entry fields supplied with the URL.
        sitemap: Optional sitemap name tag used by automatic partitioning.
    """

    path: str
    app_path: str
    fields: Dict[str, Any] = field(default_factory=dict)
    sitemap: Optional[str] = None


def _split_input(raw: Any):
    if isinstance(raw, str):
        return raw, {}, None
    if isinstance(raw, Mapping):
        location = next((raw[key] for key in LOCATION_KEYS if raw.get(key)), None)
        fields_ = {k: v for k, v in raw.items() if k not in LOCATION_KEYS and k != SITEMAP_TAG_KEY}
        tag = raw.get(SITEMAP_TAG_KEY)
        return location, fields_, str(tag) if tag else None
    raise InvalidUrlError(f"Unsupported URL input: {raw!r}")


def to_url_input(
    raw: Any,
    site_url: Optional[str] = None,
    base: Optional[str] = '/',
    trailing_slash: bool = False,
    strip_tracking: bool = False
) -> UrlInput:
    """Normalize one raw URL input.

    Absolute URLs on the site host are turned into paths; absolute URLs on
    other hosts are kept absolute. With strip_tracking, tracking query
    parameters are removed from the location.

    Raises:
        InvalidUrlError: If the location cannot be normalized.
    """
    location, fields_, tag = _split_input(raw)
    if not location:
        raise InvalidUrlError(f"URL input has no location: {raw!r}")
    location = str(location).strip()

    if is_absolute_url(location):
        absolute = normalize_url(location, strip_tracking, trailing_slash)
        parts = urlsplit(absolute)
        if not site_url or parts.netloc != site_host(site_url):
            return UrlInput(path=absolute, app_path=parts.path or '/', fields=fields_, sitemap=tag)
        location = urlunsplit(('', '', parts.path, parts.query, ''))

    path = normalize_path(location, base, trailing_slash, strip_tracking)
    return UrlInput(path=path, app_path=without_base(path, base), fields=fields_, sitemap=tag)


def collect_url_inputs(
    urls: Iterable[Any],
    site_url: Optional[str] = None,
    base: Optional[str] = '/',
    trailing_slash: bool = False,
    strip_tracking: bool = False
) -> List[UrlInput]:
    """Normalize raw URL inputs, dropping the ones that are not valid URLs.

    Order is preserved and duplicates are kept.
    """
    inputs = []
    for raw in urls:
        try:
            inputs.append(to_url_input(raw, site_url, base, trailing_slash, strip_tracking))
        except InvalidUrlError as e:
            logger.warning(f"Dropping URL input: {e}")
    return inputs


def merge_duplicate_inputs(inputs: Iterable[UrlInput]) -> List[UrlInput]:
    """Merge inputs that normalize to the same path.

    The first occurrence keeps its position; fields are merged in input order.
    """
    merged: Dict[str, UrlInput] = {}
    for item in inputs:
        existing = merged.get(item.path)
        if existing is None:
            merged[item.path] = UrlInput(item.path, item.app_path, dict(item.fields), item.sitemap)
            continue
        logger.debug(f"Merging duplicate URL input {item.path}")
        existing.fields = merge_partial_entries(existing.fields, item.fields)
        existing.sitemap = existing.sitemap or item.sitemap
    return list(merged.values())


def _convert_all(values: Iterable[Any], convert: Callable[[Any], T], kind: str, loc: str) -> List[T]:
    converted = []
    for value in values:
        try:
            converted.append(convert(value))
        except (ValueError, TypeError) as e:
            logger.warning(f"Dropping {kind} for {loc}: {e}")
    return converted


def _resolve_lastmod(value: Any, loc: str) -> Optional[datetime]:
    try:
        return parse_lastmod(value)
    except ValueError as e:
        logger.warning(f"Dropping lastmod for {loc}: {e}")
        return None


def _resolve_changefreq(value: Any, loc: str) -> Optional[str]:
    if value is None:
        return None
    if value not in CHANGEFREQ_VALUES:
        logger.warning(f"Dropping changefreq for {loc}: {value!r} is not one of {', '.join(CHANGEFREQ_VALUES)}")
        return None
    return value


def _resolve_priority(value: Any, loc: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool):
        logger.warning(f"Dropping priority for {loc}: {value!r} is not a number")
        return None
    try:
        priority = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Dropping priority for {loc}: {value!r} is not a number")
        return None
    if not 0.0 <= priority <= 1.0:
        logger.warning(f"Dropping priority for {loc}: {priority} is outside [0.0, 1.0]")
        return None
    return priority


def build_entry(
    path: str,
    merged: Any,
    defaults: Optional[Mapping[str, Any]] = None,
    *,
    site_url: str,
    base: Optional[str] = '/',
    auto_lastmod: bool = False,
    discovered_lastmod: Any = None
) -> Optional[SitemapEntry]:
    """Build the final sitemap entry for a normalized path.

    Precedence for every field is merged value > default > absent. List
    fields only fall back to the defaults when the merged entry does not
    carry the field at all.

    Args:
        path: Normalized path including base (or an absolute URL).
        merged: Merged partial entry, or EXCLUDED.
        defaults: Per-sitemap default fields.
        site_url: Absolute site URL used to build absolute locations.
        base: Base path, used to resolve relative asset URLs.
        auto_lastmod: If True, use discovered_lastmod when no source supplied one.
        discovered_lastmod: Lastmod collected by an external data source.

    Returns:
        The SitemapEntry, or None if the path is excluded.
    """
    if merged is EXCLUDED:
        return None
    merged = merged or {}
    defaults = defaults or {}
    loc = resolve_absolute_url(site_url, path)

    def pick(name: str) -> Any:
        value = merged.get(name)
        return defaults.get(name) if value is None else value

    def pick_list(name: str) -> List[Any]:
        value = merged[name] if name in merged else defaults.get(name)
        if not value:
            return []
        return as_items(name, value) or []

    lastmod = _resolve_lastmod(pick('lastmod'), loc)
    if lastmod is None and auto_lastmod and discovered_lastmod is not None:
        lastmod = _resolve_lastmod(discovered_lastmod, loc)

    def to_alternative(value: Any) -> Alternative:
        alternative = Alternative.from_value(value)
        return Alternative(alternative.hreflang, resolve_asset_url(alternative.href, site_url, base))

    def to_image(value: Any) -> ImageEntry:
        image = ImageEntry.from_value(value)
        return ImageEntry(
            loc=resolve_asset_url(image.loc, site_url, base),
            caption=image.caption,
            geo_location=image.geo_location,
            title=image.title,
            license=image.license,
        )

    def to_video(value: Any) -> VideoEntry:
        video = VideoEntry.from_value(value)
        urls = {
            name: resolve_asset_url(getattr(video, name), site_url, base)
            for name in VIDEO_URL_FIELDS if getattr(video, name)
        }
        return replace(video, **urls)

    return SitemapEntry(
        loc=loc,
        lastmod=lastmod,
        changefreq=_resolve_changefreq(pick('changefreq'), loc),
        priority=_resolve_priority(pick('priority'), loc),
        alternatives=_convert_all(pick_list('alternatives'), to_alternative, 'alternative', loc),
        images=_convert_all(pick_list('images'), to_image, 'image', loc),
        videos=_convert_all(pick_list('videos'), to_video, 'video', loc),
    )
