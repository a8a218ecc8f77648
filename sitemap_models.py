"""Data model shared by the sitemap build pipeline.

This module defines the typed records the pipeline passes around:
- SitemapEntry and its assets (alternatives, images, videos)
- SitemapIndexEntry for sitemap index documents
- CacheRecord for rendered documents kept in a cache storage
- The exception hierarchy raised by the pipeline
"""

import logging
from dataclasses import dataclass, field, fields
from datetime import date, datetime, timezone
from typing import Any, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict


logger = logging.getLogger(__name__)

CHANGEFREQ_VALUES = ('always', 'hourly', 'daily', 'weekly', 'monthly', 'yearly', 'never')


class SitemapError(Exception):
    """Base class for errors raised while building sitemaps."""


class ConfigurationError(SitemapError):
    """Raised when the configuration cannot produce a valid sitemap."""


class InvalidUrlError(SitemapError, ValueError):
    """Raised when a location cannot be normalized to a valid URL."""


class InvalidPatternError(SitemapError, ValueError):
    """Raised when an include/exclude or route rule pattern cannot be compiled."""


def parse_lastmod(value: Union[str, date, datetime, None]) -> Optional[datetime]:
    """Convert a lastmod value into a timezone-aware datetime.

    Args:
        value: A datetime, a date or an ISO-8601 string ('Z' suffix accepted).

    Returns:
        Aware datetime (naive values are assumed to be UTC), or None for None.

    Raises:
        ValueError: If the value cannot be interpreted as a timestamp.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith('Z') or text.endswith('z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Unsupported lastmod value: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_lastmod(value: datetime) -> str:
    """Format a lastmod timestamp the way sitemaps expect it (W3C datetime)."""
    return value.isoformat(timespec='seconds')


@dataclass(frozen=True)
class Alternative:
    """A localized version of a URL, rendered as <xhtml:link rel="alternate">."""

    hreflang: str
    href: str

    @classmethod
    def from_value(cls, value: Any) -> 'Alternative':
        """Create an alternative from a mapping or a (hreflang, href) pair.

        Args:
            value: An Alternative, a mapping with 'hreflang' and 'href', or a
                two-item sequence.

        Returns:
            The Alternative.

        Raises:
            ValueError: If the value has another shape or misses a field.
        """
        if isinstance(value, Alternative):
            return value
        if isinstance(value, Mapping):
            hreflang, href = value.get('hreflang'), value.get('href')
        elif isinstance(value, (list, tuple)) and len(value) == 2:
            hreflang, href = value
        else:
            raise ValueError(f"Unsupported alternative: {value!r}")
        if not hreflang or not href:
            raise ValueError(f"Alternative needs both hreflang and href: {value!r}")
        return cls(hreflang=str(hreflang), href=str(href))


@dataclass(frozen=True)
class ImageEntry:
    """An <image:image> record attached to a URL."""

    loc: str
    caption: Optional[str] = None
    geo_location: Optional[str] = None
    title: Optional[str] = None
    license: Optional[str] = None

    @classmethod
    def from_value(cls, value: Any) -> 'ImageEntry':
        """Create an image record from a URL string or a mapping.

        Mappings use 'loc' (or 'url', as produced by page scanning); unknown
        keys are ignored.

        Raises:
            ValueError: If the value is neither a string nor a mapping with a location.
        """
        if isinstance(value, ImageEntry):
            return value
        if isinstance(value, str):
            return cls(loc=value)
        if not isinstance(value, Mapping):
            raise ValueError(f"Unsupported image: {value!r}")
        # discovered images use 'url', declared ones use 'loc'
        loc = value.get('loc') or value.get('url')
        if not loc:
            raise ValueError(f"Image is missing 'loc': {value!r}")
        known = {f.name for f in fields(cls)} - {'loc'}
        return cls(loc=str(loc), **{k: v for k, v in value.items() if k in known})


@dataclass(frozen=True)
class VideoEntry:
    """A <video:video> record attached to a URL.

    Field order matches the element order of the video sitemap extension.
    """

    thumbnail_loc: str
    title: str
    description: str
    content_loc: Optional[str] = None
    player_loc: Optional[str] = None
    duration: Optional[int] = None
    expiration_date: Any = None
    rating: Optional[float] = None
    view_count: Optional[int] = None
    publication_date: Any = None
    family_friendly: Optional[bool] = None
    requires_subscription: Optional[bool] = None
    live: Optional[bool] = None
    tag: Optional[str] = None

    @classmethod
    def from_value(cls, value: Any) -> 'VideoEntry':
        """Create a video record from a mapping, ignoring unknown keys.

        Raises:
            ValueError: If thumbnail_loc, title or description is missing.
        """
        if isinstance(value, VideoEntry):
            return value
        if not isinstance(value, Mapping):
            raise ValueError(f"Unsupported video: {value!r}")
        missing = [name for name in ('thumbnail_loc', 'title', 'description') if not value.get(name)]
        if missing:
            raise ValueError(f"Video is missing required fields {missing}: {value!r}")
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in value.items() if k in known})


@dataclass
class SitemapEntry:
    """One <url> record of a sitemap. Only loc is required."""

    loc: str
    lastmod: Optional[datetime] = None
    changefreq: Optional[str] = None
    priority: Optional[float] = None
    alternatives: List[Alternative] = field(default_factory=list)
    images: List[ImageEntry] = field(default_factory=list)
    videos: List[VideoEntry] = field(default_factory=list)


@dataclass(frozen=True)
class SitemapIndexEntry:
    """One <sitemap> record of a sitemap index."""

    sitemap: str
    lastmod: datetime


class CacheRecord(BaseModel):
    """A rendered document stored in a cache storage.

    Storages that persist records can use model_dump_json() and
    model_validate_json().

    Attributes:
        value: The rendered XML string.
        expires_at: Expiry as a POSIX timestamp in seconds.
    """

    model_config = ConfigDict(frozen=True)

    value: str
    expires_at: float
