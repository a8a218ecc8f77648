import pytest

from helpers import SITE_URL
from sitemap_config import SitemapModuleConfig


@pytest.fixture
def make_config():
    """Factory for configurations that ignore the process environment."""

    def factory(**overrides) -> SitemapModuleConfig:
        data = {"site_url": SITE_URL, "auto_lastmod": False}
        data.update(overrides)
        return SitemapModuleConfig.from_dict(data, environ={})

    return factory
