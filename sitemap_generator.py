"""Module for rendering sitemap entries into XML and text documents.

This module provides functions to convert sitemap entries into:
- XML sitemap format (sitemaps.org protocol with image, video and
  hreflang extensions)
- XML sitemap index format
- Plain text format (one URL per line)

Rendering is a pure function of the entries and the render options.
"""

from dataclasses import dataclass, fields
from datetime import date, datetime
from typing import Any, Iterable, List, Union

from sitemap_models import ImageEntry, SitemapEntry, SitemapIndexEntry, VideoEntry, format_lastmod


SITEMAP_NS = 'http://www.sitemaps.org/schemas/sitemap/0.9'
XSI_NS = 'http://www.w3.org/2001/XMLSchema-instance'
IMAGE_NS = 'http://www.google.com/schemas/sitemap-image/1.1'
VIDEO_NS = 'http://www.google.com/schemas/sitemap-video/1.1'
XHTML_NS = 'http://www.w3.org/1999/xhtml'
SCHEMA_LOCATION = (
    f'{SITEMAP_NS} {SITEMAP_NS}/sitemap.xsd '
    f'{IMAGE_NS} {IMAGE_NS}/sitemap-image.xsd'
)
CREDITS_COMMENT = '<!-- XML Sitemap generated by Sitemap Builder -->'
INDENT = '    '


@dataclass(frozen=True)
class RenderOptions:
    """Options shared by the sitemap and sitemap index renderers.

    Attributes:
        xsl: Stylesheet href for the xml-stylesheet instruction, or False.
        credits: Whether to append the generator comment.
    """

    xsl: Union[str, bool] = False
    credits: bool = True


def escape_value_for_xml(value: Any) -> str:
    """Escape a value for use as XML text or attribute content.

    Booleans become 'yes'/'no', datetimes use the W3C format and any other
    value is converted with str() before escaping.
    """
    if value is True or value is False:
        return 'yes' if value else 'no'
    if isinstance(value, datetime):
        value = format_lastmod(value)
    elif isinstance(value, date):
        value = value.isoformat()
    return (
        str(value)
        .replace('&', '&amp;')
        .replace('<', '&lt;')
        .replace('>', '&gt;')
        .replace('"', '&quot;')
        .replace("'", '&apos;')
    )


def _element(tag: str, value: Any) -> str:
    return f'<{tag}>{escape_value_for_xml(value)}</{tag}>'


def _render_image(image: ImageEntry) -> str:
    children = [
        _element(f'image:{f.name}', getattr(image, f.name))
        for f in fields(image) if getattr(image, f.name) is not None
    ]
    return f"<image:image>{''.join(children)}</image:image>"


def _render_video(video: VideoEntry) -> str:
    children = [
        _element(f'video:{f.name}', getattr(video, f.name))
        for f in fields(video) if getattr(video, f.name) is not None
    ]
    return f"<video:video>{''.join(children)}</video:video>"


def render_url(entry: SitemapEntry) -> str:
    """Render one <url> element, omitting every absent optional field."""
    parts = [_element('loc', entry.loc)]
    if entry.lastmod is not None:
        parts.append(_element('lastmod', entry.lastmod))
    if entry.changefreq is not None:
        parts.append(_element('changefreq', entry.changefreq))
    if entry.priority is not None:
        parts.append(_element('priority', entry.priority))
    for alternative in entry.alternatives:
        parts.append(
            f'<xhtml:link rel="alternate" hreflang="{escape_value_for_xml(alternative.hreflang)}" '
            f'href="{escape_value_for_xml(alternative.href)}" />'
        )
    parts.extend(_render_image(image) for image in entry.images)
    parts.extend(_render_video(video) for video in entry.videos)
    return f"<url>{''.join(parts)}</url>"


def _wrap(lines: List[str], options: RenderOptions) -> str:
    declaration = '<?xml version="1.0" encoding="UTF-8"?>'
    if options.xsl:
        declaration += f'<?xml-stylesheet type="text/xsl" href="{escape_value_for_xml(options.xsl)}"?>'
    lines.insert(0, declaration)
    if options.credits:
        lines.append(CREDITS_COMMENT)
    return '\n'.join(lines)


def render_sitemap(entries: Iterable[SitemapEntry], options: RenderOptions = RenderOptions()) -> str:
    """Generate an XML sitemap document from sitemap entries.

    Args:
        entries: Entries in document order.
        options: Stylesheet and credits options.

    Returns:
        String containing the XML sitemap.
    """
    lines = [
        f'<urlset xmlns:xsi="{XSI_NS}" xmlns:video="{VIDEO_NS}" xmlns:xhtml="{XHTML_NS}" '
        f'xmlns:image="{IMAGE_NS}" xsi:schemaLocation="{SCHEMA_LOCATION}" xmlns="{SITEMAP_NS}">'
    ]
    lines.extend(INDENT + render_url(entry) for entry in entries)
    lines.append('</urlset>')
    return _wrap(lines, options)


def render_sitemap_index(entries: Iterable[SitemapIndexEntry], options: RenderOptions = RenderOptions()) -> str:
    """Generate an XML sitemap index referencing sub-sitemaps.

    Args:
        entries: One entry per sub-sitemap.
        options: Stylesheet and credits options.

    Returns:
        String containing the XML sitemap index.
    """
    lines = [f'<sitemapindex xmlns="{SITEMAP_NS}">']
    for entry in entries:
        lines.append(
            f"{INDENT}<sitemap>{_element('loc', entry.sitemap)}{_element('lastmod', entry.lastmod)}</sitemap>"
        )
    lines.append('</sitemapindex>')
    return _wrap(lines, options)


def entries_to_text(entries: Iterable[SitemapEntry]) -> str:
    """Convert sitemap entries to a plain text sitemap.

    Each URL is placed on a separate line, in document order.

    Args:
        entries: Entries to convert.

    Returns:
        String with one URL per line.
    """
    return '\n'.join(entry.loc for entry in entries)
