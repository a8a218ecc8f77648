"""Configuration for the sitemap build.

Configuration is read from a mapping (usually a JSON file) with environment
variable fallbacks for the site URL and the trailing slash policy. Values are
type-checked by pydantic models; any validation failure is reported as a
ConfigurationError.
"""

import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Union
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError, field_validator

from sitemap_models import ConfigurationError
from url_normalizer import DEFAULT_INCLUDE, normalize_base, with_base


logger = logging.getLogger(__name__)

# Configuration Constants
VERSION: str = "1.0.0"
DEFAULT_XSL: str = '/__sitemap__/style.xsl'
DEFAULT_PARTITION_NAME: str = 'pages'
AUTO_PARTITION_POLICIES = ('tag', 'segment')
SITE_URL_ENV: str = 'SITEMAP_SITE_URL'
TRAILING_SLASH_ENV: str = 'SITEMAP_TRAILING_SLASH'


def _jsonable(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if hasattr(value, 'pattern'):
        return f're:{value.pattern}'
    return value


def _describe(error: ValidationError) -> str:
    return '; '.join(
        f"{'.'.join(str(part) for part in item['loc']) or 'config'}: {item['msg']}" for item in error.errors()
    )


class SitemapConfig(BaseModel):
    """Settings of one named sitemap.

    include/exclude of None inherit the global filters.
    """

    model_config = ConfigDict(extra='ignore')

    include: Optional[List[Any]] = None
    exclude: Optional[List[Any]] = None
    defaults: Dict[str, Any] = Field(default_factory=dict)
    urls: List[Any] = Field(default_factory=list)


class SitemapModuleConfig(BaseModel):
    """Effective configuration of a sitemap build.

    Attributes:
        site_url: Absolute site URL used for every <loc>.
        base: Base path of the application, applied once to every path.
        trailing_slash: Whether paths end with a trailing slash.
        auto_lastmod: Use externally discovered lastmod values when no source supplied one.
        strip_tracking: Remove tracking query parameters (utm_*, gclid, ...) from URL inputs.
        include: Glob patterns a path must match (one of).
        exclude: Glob patterns a path must not match.
        defaults: Default entry fields.
        urls: Explicit URL inputs.
        sitemaps: False (single sitemap), True (automatic partitioning) or
            a mapping of sitemap name to SitemapConfig.
        auto_partition: Policy used when sitemaps is True ('tag' or 'segment').
        route_rules: Mapping of path pattern to route rule.
        cache_ttl: Seconds rendered sitemaps are cached, 0 or less disables caching.
        xsl: Stylesheet URL, or False to omit the stylesheet instruction.
        credits: Whether to append the generator comment.
        workers: Number of threads building entries.
        enabled: Whether sitemaps are generated at all.
        api_urls_endpoint: Optional endpoint returning extra URL inputs as JSON.
    """

    model_config = ConfigDict(extra='ignore')

    site_url: Optional[str] = None
    base: str = '/'
    trailing_slash: StrictBool = False
    auto_lastmod: StrictBool = True
    strip_tracking: StrictBool = False
    include: List[Any] = Field(default_factory=lambda: list(DEFAULT_INCLUDE))
    exclude: List[Any] = Field(default_factory=list)
    defaults: Dict[str, Any] = Field(default_factory=dict)
    urls: List[Any] = Field(default_factory=list)
    sitemaps: Union[StrictBool, Dict[str, SitemapConfig]] = False
    auto_partition: Literal['tag', 'segment'] = 'tag'
    route_rules: Dict[Any, Any] = Field(default_factory=dict)
    cache_ttl: float = 0
    xsl: Union[StrictBool, str] = DEFAULT_XSL
    credits: StrictBool = True
    workers: int = Field(default=1, ge=1)
    enabled: StrictBool = True
    api_urls_endpoint: Optional[str] = None

    @field_validator('site_url')
    @classmethod
    def _check_site_url(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        parsed = urlsplit(value)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValueError(f"must be an absolute http(s) URL, got {value!r}")
        return value

    @field_validator('sitemaps', mode='before')
    @classmethod
    def _expand_sitemaps(cls, value: Any) -> Any:
        # 'name: null' and 'name: true' configure a sitemap with inherited settings
        if isinstance(value, Mapping):
            return {name: {} if settings is None or settings is True else settings
                    for name, settings in value.items()}
        return value

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], environ: Optional[Mapping[str, str]] = None) -> 'SitemapModuleConfig':
        """Create a configuration from a mapping.

        Args:
            data: Configuration keys (see the class attributes).
            environ: Environment used for fallbacks (default: os.environ).

        Returns:
            The configuration. The site URL presence is checked by validate().

        Raises:
            ConfigurationError: If a value has the wrong type or is out of range.
        """
        environ = os.environ if environ is None else environ
        unknown = sorted(set(data) - set(cls.model_fields))
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")

        values = {key: value for key, value in data.items() if key in cls.model_fields}
        if not values.get('site_url') and environ.get(SITE_URL_ENV):
            values['site_url'] = environ[SITE_URL_ENV]
        if 'trailing_slash' not in values and TRAILING_SLASH_ENV in environ:
            values['trailing_slash'] = str(environ[TRAILING_SLASH_ENV]).strip().lower() == 'true'

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {_describe(e)}") from e

    @classmethod
    def from_file(cls, path: Union[str, Path], environ: Optional[Mapping[str, str]] = None) -> 'SitemapModuleConfig':
        """Load a configuration from a JSON file."""
        file_path = Path(path)
        try:
            data = json.loads(file_path.read_text(encoding='utf-8'))
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file {file_path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in configuration file {file_path}: {e}") from e
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Configuration file {file_path} must contain a JSON object")
        return cls.from_dict(data, environ)

    def validate(self) -> None:
        """Check the configuration before any generation is attempted.

        Raises:
            ConfigurationError: If the site URL is missing.
        """
        if not self.site_url:
            raise ConfigurationError(
                f"Please set a 'site_url' (or the {SITE_URL_ENV} environment variable) to generate sitemaps."
            )

    @property
    def is_multi_sitemap(self) -> bool:
        return bool(self.sitemaps)

    def stylesheet_url(self) -> Union[str, bool]:
        """Return the stylesheet href (base applied to relative URLs) or False."""
        if self.xsl is False:
            return False
        xsl = DEFAULT_XSL if self.xsl is True else self.xsl
        if urlsplit(xsl).scheme:
            return xsl
        return with_base('/' + xsl.lstrip('/'), normalize_base(self.base))

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()

    def version_token(self) -> str:
        """Return a short digest of the effective configuration.

        Any configuration change produces a different token, which in turn
        invalidates cached sitemaps.
        """
        payload = json.dumps(_jsonable(self.to_dict()), sort_keys=True, default=str)
        digest = hashlib.sha256(f'{VERSION}:{payload}'.encode('utf-8')).hexdigest()
        return digest[:12]
