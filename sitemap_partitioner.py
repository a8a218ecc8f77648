"""Module for assigning URL inputs to named sitemaps.

Three modes are supported:
- Single sitemap (sitemaps=False): one sitemap named 'sitemap'
- Named sitemaps (sitemaps={name: settings}): each name has its own
  include/exclude filters, defaults and extra urls
- Automatic partitioning (sitemaps=True): names come from the configured
  policy, either the '_sitemap' tag of each input or its first path segment
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from entry_builder import UrlInput
from route_rules import merge_partial_entries
from sitemap_config import DEFAULT_PARTITION_NAME, SitemapModuleConfig
from url_normalizer import UrlFilter, filter_key


logger = logging.getLogger(__name__)

SINGLE_SITEMAP_NAME = 'sitemap'
INDEX_FILENAME = 'sitemap_index.xml'


def sitemap_filename(name: str, multi: bool = True) -> str:
    """Return the document filename of a sitemap ('{name}-sitemap.xml')."""
    if not multi:
        return f'{SINGLE_SITEMAP_NAME}.xml'
    return f'{name}-sitemap.xml'


def tag_partition_name(item: UrlInput) -> str:
    return item.sitemap or DEFAULT_PARTITION_NAME


def segment_partition_name(item: UrlInput) -> str:
    segments = [segment for segment in filter_key(item.app_path).split('/') if segment]
    # root-level pages share the default sitemap
    if len(segments) < 2:
        return DEFAULT_PARTITION_NAME
    return segments[0]


AUTO_PARTITION_NAMERS: Dict[str, Callable[[UrlInput], str]] = {
    'tag': tag_partition_name,
    'segment': segment_partition_name,
}


@dataclass
class SitemapPartition:
    """A sitemap document and the rules deciding which inputs it holds.

    Attributes:
        name: Sitemap name.
        url_filter: Include/exclude filter applied to app paths.
        defaults: Default entry fields for this sitemap.
        urls: Extra URL inputs that only belong to this sitemap.
        selector: Optional extra predicate (used by automatic partitioning).
        multi: Whether the sitemap is part of a sitemap index.
    """

    name: str
    url_filter: UrlFilter
    defaults: Dict[str, Any] = field(default_factory=dict)
    urls: List[Any] = field(default_factory=list)
    selector: Optional[Callable[[UrlInput], bool]] = None
    multi: bool = False

    @property
    def filename(self) -> str:
        return sitemap_filename(self.name, self.multi)

    def accepts(self, item: UrlInput) -> bool:
        if self.selector is not None and not self.selector(item):
            return False
        return self.url_filter.is_allowed(item.app_path)

    def select(self, inputs: Iterable[UrlInput]) -> List[UrlInput]:
        """Return the accepted inputs in order, duplicates included."""
        return [item for item in inputs if self.accepts(item)]


def _auto_selector(namer: Callable[[UrlInput], str], name: str) -> Callable[[UrlInput], bool]:
    return lambda item: namer(item) == name


def resolve_partitions(config: SitemapModuleConfig, inputs: Iterable[UrlInput]) -> List[SitemapPartition]:
    """Resolve the sitemaps a build produces.

    Args:
        config: Effective configuration.
        inputs: Shared URL inputs (used to discover names in automatic mode).

    Returns:
        Partitions in configuration order (first-seen order in automatic mode).
    """
    if not config.sitemaps:
        return [SitemapPartition(
            name=SINGLE_SITEMAP_NAME,
            url_filter=UrlFilter(config.include, config.exclude),
            defaults=dict(config.defaults),
        )]

    if config.sitemaps is True:
        namer = AUTO_PARTITION_NAMERS[config.auto_partition]
        global_filter = UrlFilter(config.include, config.exclude)
        names: List[str] = []
        for item in inputs:
            if not global_filter.is_allowed(item.app_path):
                continue
            name = namer(item)
            if name not in names:
                names.append(name)
        logger.debug(f"Automatic partitioning ({config.auto_partition}) produced sitemaps: {names}")
        return [
            SitemapPartition(
                name=name,
                url_filter=global_filter,
                defaults=dict(config.defaults),
                selector=_auto_selector(namer, name),
                multi=True,
            )
            for name in names
        ]

    partitions = []
    for name, settings in config.sitemaps.items():
        include = config.include if settings.include is None else settings.include
        exclude = config.exclude if settings.exclude is None else settings.exclude
        partitions.append(SitemapPartition(
            name=name,
            url_filter=UrlFilter(include, exclude),
            defaults=merge_partial_entries(config.defaults, settings.defaults),
            urls=list(settings.urls),
            multi=True,
        ))
    return partitions
