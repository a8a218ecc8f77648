"""Route rule matching and partial entry merging.

Route rules are configuration fragments keyed by a path pattern:

    {
        '/blog/**': {'sitemap': {'priority': 0.5}},
        '/blog/post-1': {'sitemap': {'priority': 0.9, 'images': [{'loc': '/cover.jpg'}]}},
        '/secret': {'index': False},
    }

All rules matching a path are merged from least to most specific, so the
most specific rule wins for scalar fields while list fields accumulate.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Pattern, Sequence, Tuple, Union

from sitemap_models import InvalidPatternError, parse_lastmod
from url_normalizer import compile_pattern, filter_key


logger = logging.getLogger(__name__)

ARRAY_FIELDS = ('alternatives', 'images', 'videos')


class _Excluded:
    """Sentinel returned when a matching rule removes the path from sitemaps."""

    def __repr__(self) -> str:
        return 'EXCLUDED'

    def __bool__(self) -> bool:
        return False


EXCLUDED = _Excluded()

PartialEntry = Dict[str, Any]
ResolvedRules = Union[PartialEntry, _Excluded]


def _most_recent(current: Optional[datetime], value: Any) -> Optional[datetime]:
    try:
        candidate = parse_lastmod(value)
    except ValueError as e:
        logger.warning(f"Ignoring invalid lastmod {value!r}: {e}")
        return current
    if current is None or (candidate is not None and candidate > current):
        return candidate
    return current


def as_items(name: str, value: Any) -> Optional[List[Any]]:
    # a single image/video/alternative may be given without the list
    if isinstance(value, (Mapping, str)):
        return [value]
    if isinstance(value, (list, tuple)):
        return list(value)
    logger.warning(f"Ignoring {name}: expected a list, got {type(value).__name__}")
    return None


def merge_partial_entries(*partials: Optional[Mapping[str, Any]]) -> PartialEntry:
    """Merge partial entries in precedence order (last has the highest).

    Rules per field:
    - lastmod: the most recent timestamp wins
    - alternatives, images, videos: concatenated in order; None clears
      everything accumulated so far
    - any other field: the last non-None value wins

    Args:
        *partials: Partial entries ordered from lowest to highest precedence.

    Returns:
        A new merged partial entry. Inputs are not modified.
    """
    merged: PartialEntry = {}
    for partial in partials:
        if not partial:
            continue
        for name, value in partial.items():
            if name in ARRAY_FIELDS:
                if value is None:
                    merged[name] = []
                    continue
                items = as_items(name, value)
                if items is not None:
                    merged[name] = list(merged.get(name, [])) + items
            elif name == 'lastmod':
                if value is not None:
                    merged[name] = _most_recent(merged.get(name), value)
            elif value is not None:
                merged[name] = value
    return merged


def _image_loc(image: Any) -> Optional[str]:
    if isinstance(image, Mapping):
        return image.get('loc') or image.get('url')
    if isinstance(image, str):
        return image
    return None


def merge_discovered_images(merged: Mapping[str, Any], discovered: Sequence[Any]) -> PartialEntry:
    """Append images discovered on the rendered page to a merged entry.

    Discovered images have the lowest precedence: when a declared image has
    the same loc, the declared metadata wins on conflicting fields. They are
    still appended, never deduplicated.
    """
    declared = {}
    for image in merged.get('images', []):
        loc = _image_loc(image)
        if loc and isinstance(image, Mapping):
            declared.setdefault(loc, image)

    appended = []
    for image in discovered:
        loc = _image_loc(image)
        base = dict(image) if isinstance(image, Mapping) else {'loc': loc}
        explicit = declared.get(loc)
        appended.append({**base, **explicit} if explicit else base)

    result = dict(merged)
    result['images'] = list(merged.get('images', [])) + appended
    return result


def rule_to_partial(rule: Any) -> ResolvedRules:
    """Extract the sitemap partial entry carried by one route rule.

    Returns EXCLUDED when the rule sets 'index: False' or 'sitemap: False'.
    """
    if rule is EXCLUDED:
        return EXCLUDED
    if not isinstance(rule, Mapping):
        return {}
    if rule.get('index') is False or rule.get('sitemap') is False:
        return EXCLUDED
    sitemap = rule.get('sitemap')
    if isinstance(sitemap, Mapping):
        return dict(sitemap)
    return {}


def _specificity(pattern: Any, order: int) -> Tuple[int, int, int]:
    if isinstance(pattern, re.Pattern):
        return (0, 0, order)
    segments = [segment for segment in pattern.strip('/').split('/') if segment]
    literal = sum(1 for segment in segments if '*' not in segment and not segment.startswith(':'))
    if '**' in pattern:
        kind = 0
    elif literal < len(segments):
        kind = 1
    else:
        kind = 2
    return (literal, kind, order)


@dataclass(frozen=True)
class RouteRuleMatch:
    """A compiled route rule."""

    pattern: Any
    rule: Mapping[str, Any]
    regex: Pattern[str]
    specificity: Tuple[int, int, int]


class RouteRuleMatcher:
    """Immutable matcher over configured route rules.

    The compiled rules are sorted once at construction, so a single matcher
    can be shared read-only between threads.
    """

    def __init__(self, route_rules: Optional[Mapping[Any, Any]] = None) -> None:
        compiled = []
        for order, (pattern, rule) in enumerate((route_rules or {}).items()):
            if not isinstance(rule, Mapping):
                logger.warning(f"Skipping route rule {pattern!r}: expected a mapping, got {type(rule).__name__}")
                continue
            try:
                regex = compile_pattern(pattern)
            except InvalidPatternError as e:
                logger.warning(f"Skipping route rule: {e}")
                continue
            compiled.append(RouteRuleMatch(
                pattern=pattern,
                rule=MappingProxyType(dict(rule)),
                regex=regex,
                specificity=_specificity(pattern, order),
            ))
        self._rules: Tuple[RouteRuleMatch, ...] = tuple(sorted(compiled, key=lambda match: match.specificity))

    def __len__(self) -> int:
        return len(self._rules)

    def matches(self, path: str) -> List[RouteRuleMatch]:
        """Return the rules matching a path, ordered least to most specific."""
        key = filter_key(path)
        return [match for match in self._rules if match.regex.match(key)]

    def resolve(self, path: str, discovered_images: Optional[Sequence[Any]] = None) -> ResolvedRules:
        """Merge every rule matching the path into one partial entry.

        Args:
            path: App-relative path (without base).
            discovered_images: Images found on the rendered page, merged in as
                the lowest-precedence source.

        Returns:
            The merged partial entry, or EXCLUDED if any matching rule
            disables indexing.
        """
        partials = []
        for match in self.matches(path):
            partial = rule_to_partial(match.rule)
            if partial is EXCLUDED:
                logger.debug(f"Path {path} excluded by route rule {match.pattern!r}")
                return EXCLUDED
            partials.append(partial)
        merged = merge_partial_entries(*partials)
        if discovered_images:
            merged = merge_discovered_images(merged, discovered_images)
        return merged

    __call__ = resolve


RouteResolver = Callable[[str], Any]


def apply_resolver(resolver: RouteResolver, path: str) -> ResolvedRules:
    """Run a route resolver for a path, treating failures as "no rules".

    The resolver may be a RouteRuleMatcher or any callable supplied by a
    routing layer returning either a merged partial entry or a merged route
    rule ({'index': ..., 'sitemap': {...}}).
    """
    try:
        result = resolver(path)
    except Exception as e:
        logger.warning(f"Route rule lookup failed for {path}, ignoring rules: {e}")
        return {}
    if result is EXCLUDED:
        return EXCLUDED
    if isinstance(result, Mapping) and ('index' in result or 'sitemap' in result):
        return rule_to_partial(result)
    return dict(result) if isinstance(result, Mapping) else {}
