"""Sitemap build orchestration.

Runs the pipeline for every sitemap of a configuration:

    URL inputs -> normalize/filter -> route rules -> entries -> XML

All collaborator data (prerendered routes, API urls, discovered images and
lastmod values) must be resolved before a SitemapBuilder is created.
"""

import concurrent.futures
import logging
import time
from datetime import datetime, timezone
from functools import partial
from itertools import repeat
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from entry_builder import UrlInput, build_entry, collect_url_inputs, merge_duplicate_inputs
from route_rules import (
    EXCLUDED,
    RouteResolver,
    RouteRuleMatcher,
    apply_resolver,
    merge_discovered_images,
    merge_partial_entries,
)
from sitemap_cache import CacheStorage, SitemapCache
from sitemap_config import SitemapModuleConfig
from sitemap_generator import RenderOptions, entries_to_text, render_sitemap, render_sitemap_index
from sitemap_models import InvalidUrlError, SitemapEntry, SitemapError, SitemapIndexEntry
from sitemap_partitioner import INDEX_FILENAME, SitemapPartition, resolve_partitions
from url_normalizer import filter_key, normalize_path, resolve_absolute_url, with_base


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_keys(mapping: Optional[Mapping[str, Any]], trailing_slash: bool) -> Mapping[str, Any]:
    normalized = {}
    for path, value in (mapping or {}).items():
        try:
            normalized[filter_key(normalize_path(path, '/', trailing_slash))] = value
        except InvalidUrlError as e:
            logger.warning(f"Ignoring discovered data: {e}")
    return MappingProxyType(normalized)


class SitemapBuilder:
    """Builds sitemap documents from a configuration and resolved inputs.

    Attributes:
        config: Validated configuration.
        resolver: Route rule resolver (a RouteRuleMatcher by default).
        partitions: The sitemaps this build produces.
        render_options: Stylesheet and credits options.
        cache: Optional cache of rendered sitemaps.
    """

    def __init__(
        self,
        config: SitemapModuleConfig,
        urls: Optional[Iterable[Any]] = None,
        route_rule_matcher: Optional[RouteResolver] = None,
        discovered_images: Optional[Mapping[str, Sequence[Any]]] = None,
        discovered_lastmod: Optional[Mapping[str, Any]] = None,
        cache_storage: Optional[CacheStorage] = None,
        now: Callable[[], datetime] = _utcnow
    ) -> None:
        """Initialize the builder.

        Args:
            config: Sitemap configuration. It is validated here, before any
                generation is attempted.
            urls: Extra URL inputs (prerendered routes, API urls), placed
                before the configured urls.
            route_rule_matcher: Callable returning the merged rules for a path
                (default: a RouteRuleMatcher over config.route_rules).
            discovered_images: Images found on rendered pages, by path.
            discovered_lastmod: Lastmod values from an external source, by path.
            cache_storage: Storage for rendered sitemaps (used when
                config.cache_ttl > 0).
            now: Returns the current time, used for index lastmod fallbacks.

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        config.validate()
        self.config = config
        self.resolver: RouteResolver = (
            route_rule_matcher if route_rule_matcher is not None else RouteRuleMatcher(config.route_rules)
        )
        self.discovered_images = _normalize_keys(discovered_images, config.trailing_slash)
        self.discovered_lastmod = _normalize_keys(discovered_lastmod, config.trailing_slash)
        self.now = now
        self.inputs: List[UrlInput] = self._collect(list(urls or []) + list(config.urls))
        self.partitions: List[SitemapPartition] = resolve_partitions(config, self.inputs)
        self.render_options = RenderOptions(xsl=config.stylesheet_url(), credits=config.credits)
        self.cache: Optional[SitemapCache] = None
        if cache_storage is not None and config.cache_ttl > 0:
            self.cache = SitemapCache(cache_storage, config.cache_ttl, config.version_token())

    def _collect(self, urls: Iterable[Any]) -> List[UrlInput]:
        return collect_url_inputs(
            urls,
            self.config.site_url,
            self.config.base,
            self.config.trailing_slash,
            self.config.strip_tracking,
        )

    @property
    def sitemap_names(self) -> List[str]:
        return [partition.name for partition in self.partitions]

    def partition(self, sitemap_name: str) -> SitemapPartition:
        for partition in self.partitions:
            if partition.name == sitemap_name:
                return partition
        raise SitemapError(f"Unknown sitemap {sitemap_name!r}, expected one of {self.sitemap_names}")

    def _build_one(self, partition: SitemapPartition, item: UrlInput) -> Optional[SitemapEntry]:
        rules = apply_resolver(self.resolver, item.app_path)
        if rules is EXCLUDED:
            logger.debug(f"Skipping {item.path}: excluded by route rules")
            return None
        key = filter_key(item.app_path)
        try:
            merged = merge_partial_entries(item.fields, rules)
            images = self.discovered_images.get(key)
            if images:
                merged = merge_discovered_images(merged, images)
            return build_entry(
                item.path,
                merged,
                partition.defaults,
                site_url=self.config.site_url,
                base=self.config.base,
                auto_lastmod=self.config.auto_lastmod,
                discovered_lastmod=self.discovered_lastmod.get(key),
            )
        except (TypeError, ValueError) as e:
            # one malformed input must not fail the whole sitemap
            logger.warning(f"Skipping {item.path}: {e}")
            return None

    def build_entries(self, sitemap_name: str) -> List[SitemapEntry]:
        """Build the entries of one sitemap in input order.

        Raises:
            SitemapError: If the sitemap name is unknown.
        """
        partition = self.partition(sitemap_name)
        inputs = partition.select(self.inputs + self._collect(partition.urls))
        inputs = merge_duplicate_inputs(inputs)

        if self.config.workers > 1 and len(inputs) > 1:
            with concurrent.futures.ThreadPoolExecutor(max_workers=self.config.workers) as pool:
                # map() yields results in input order
                results = list(pool.map(self._build_one, repeat(partition), inputs))
        else:
            results = [self._build_one(partition, item) for item in inputs]
        return [entry for entry in results if entry is not None]

    def build_sitemap(self, sitemap_name: str) -> str:
        """Build and render one sitemap document, using the cache when enabled."""
        def render() -> str:
            start = time.time()
            entries = self.build_entries(sitemap_name)
            xml = render_sitemap(entries, self.render_options)
            logger.info(f"Built {sitemap_name} with {len(entries)} URLs ({(time.time() - start) * 1000:.0f}ms)")
            return xml

        if self.cache is None:
            return render()
        return self.cache.get_or_render(sitemap_name, render)

    def build_text(self, sitemap_name: str) -> str:
        """Build one sitemap as plain text, one URL per line."""
        return entries_to_text(self.build_entries(sitemap_name))

    def sitemap_url(self, partition: SitemapPartition) -> str:
        """Absolute URL of a sitemap document."""
        return resolve_absolute_url(self.config.site_url, with_base('/' + partition.filename, self.config.base))

    def index_entry(self, partition: SitemapPartition, entries: Sequence[SitemapEntry]) -> SitemapIndexEntry:
        """Aggregate the index record of a sub-sitemap.

        lastmod is the most recent entry lastmod, or the current time when no
        entry has one.
        """
        lastmods = [entry.lastmod for entry in entries if entry.lastmod is not None]
        return SitemapIndexEntry(
            sitemap=self.sitemap_url(partition),
            lastmod=max(lastmods) if lastmods else self.now(),
        )

    def build_sitemap_index(self) -> str:
        """Build the sitemap index document.

        Raises:
            SitemapError: If the configuration produces a single sitemap.
        """
        if not self.config.is_multi_sitemap:
            raise SitemapError("A sitemap index is only built when 'sitemaps' is enabled")
        index = [self.index_entry(partition, self.build_entries(partition.name)) for partition in self.partitions]
        return render_sitemap_index(index, self.render_options)

    def public_sitemap_url(self) -> str:
        """URL to advertise (e.g. in robots.txt): the index or the single sitemap."""
        filename = INDEX_FILENAME if self.config.is_multi_sitemap else self.partitions[0].filename
        return resolve_absolute_url(self.config.site_url, with_base('/' + filename, self.config.base))

    def build_all(self) -> Dict[str, str]:
        """Build every document of the configuration.

        Returns:
            Mapping of document filename to XML, the index first when
            multi-sitemap mode is active. Empty when generation is disabled.
        """
        if not self.config.enabled:
            logger.debug("Sitemap generation is disabled.")
            return {}

        documents: Dict[str, str] = {}
        index: List[SitemapIndexEntry] = []
        for partition in self.partitions:
            entries = self.build_entries(partition.name)
            render = partial(render_sitemap, entries, self.render_options)
            documents[partition.filename] = render() if self.cache is None else \
                self.cache.get_or_render(partition.name, render)
            logger.info(f"Built /{partition.filename} with {len(entries)} URLs")
            index.append(self.index_entry(partition, entries))

        if self.config.is_multi_sitemap:
            index_xml = render_sitemap_index(index, self.render_options)
            documents = {INDEX_FILENAME: index_xml, **documents}
        return documents
