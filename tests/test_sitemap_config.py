import json

import pytest

from sitemap_config import SitemapConfig
from sitemap_config import SitemapModuleConfig
from sitemap_models import ConfigurationError


class TestFromDict:
    """Tests for building configurations from mappings."""

    def test_defaults(self):
        config = SitemapModuleConfig.from_dict({"site_url": "https://example.com"}, environ={})
        assert config.base == "/"
        assert config.trailing_slash is False
        assert config.include == ["/**"]
        assert config.sitemaps is False
        assert config.xsl == "/__sitemap__/style.xsl"
        assert not config.is_multi_sitemap

    def test_environment_fallbacks(self):
        environ = {"SITEMAP_SITE_URL": "https://env.example.com", "SITEMAP_TRAILING_SLASH": "true"}
        config = SitemapModuleConfig.from_dict({}, environ=environ)
        assert config.site_url == "https://env.example.com"
        assert config.trailing_slash is True

    def test_explicit_values_beat_environment(self):
        environ = {"SITEMAP_SITE_URL": "https://env.example.com", "SITEMAP_TRAILING_SLASH": "true"}
        config = SitemapModuleConfig.from_dict(
            {"site_url": "https://example.com", "trailing_slash": False}, environ=environ
        )
        assert config.site_url == "https://example.com"
        assert config.trailing_slash is False

    def test_named_sitemaps(self):
        config = SitemapModuleConfig.from_dict(
            {"site_url": "https://example.com", "sitemaps": {"posts": {"include": ["/blog/**"]}, "pages": None}},
            environ={},
        )
        assert config.sitemaps == {
            "posts": SitemapConfig(include=["/blog/**"]),
            "pages": SitemapConfig(),
        }
        assert config.is_multi_sitemap

    def test_malformed_sitemaps(self):
        with pytest.raises(ConfigurationError):
            SitemapModuleConfig.from_dict({"sitemaps": "yes"}, environ={})
        with pytest.raises(ConfigurationError):
            SitemapModuleConfig.from_dict({"sitemaps": {"posts": ["/blog"]}}, environ={})

    def test_unknown_keys_are_ignored(self, caplog):
        config = SitemapModuleConfig.from_dict({"site_url": "https://example.com", "colour": "blue"}, environ={})
        assert not hasattr(config, "colour")
        assert "colour" in caplog.text


class TestValidate:
    """Tests for configuration validation."""

    @pytest.mark.parametrize("site_url", [None, "", "example.com", "ftp://example.com"])
    def test_invalid_site_url(self, site_url):
        with pytest.raises(ConfigurationError):
            SitemapModuleConfig.from_dict({"site_url": site_url}, environ={}).validate()

    def test_unknown_partition_policy(self):
        with pytest.raises(ConfigurationError, match="auto_partition"):
            SitemapModuleConfig.from_dict({"site_url": "https://example.com", "auto_partition": "random"}, environ={})

    @pytest.mark.parametrize("workers", [0, -2, "many", 1.5])
    def test_workers(self, workers):
        with pytest.raises(ConfigurationError, match="workers"):
            SitemapModuleConfig.from_dict({"site_url": "https://example.com", "workers": workers}, environ={})

    def test_numeric_strings_are_accepted(self):
        config = SitemapModuleConfig.from_dict(
            {"site_url": "https://example.com", "workers": "4", "cache_ttl": "60"}, environ={}
        )
        assert config.workers == 4
        assert config.cache_ttl == 60.0


class TestValueTypes:
    """Tests for rejecting values of the wrong type."""

    @pytest.mark.parametrize("key", ["trailing_slash", "auto_lastmod", "strip_tracking", "credits", "enabled"])
    @pytest.mark.parametrize("value", ["false", "true", 0, 1, None])
    def test_flags_must_be_booleans(self, key, value):
        with pytest.raises(ConfigurationError, match=key):
            SitemapModuleConfig.from_dict({"site_url": "https://example.com", key: value}, environ={})

    def test_string_trailing_slash_is_not_truthy(self):
        # "false" must never enable trailing slashes
        with pytest.raises(ConfigurationError, match="trailing_slash"):
            SitemapModuleConfig.from_dict(
                {"site_url": "https://example.com", "trailing_slash": "false", "urls": ["/about"]}, environ={}
            )

    @pytest.mark.parametrize("key", ["include", "exclude", "urls"])
    def test_lists_must_be_lists(self, key):
        with pytest.raises(ConfigurationError, match=key):
            SitemapModuleConfig.from_dict({"site_url": "https://example.com", key: "/about"}, environ={})

    def test_named_sitemap_include_must_be_a_list(self):
        with pytest.raises(ConfigurationError, match="sitemaps"):
            SitemapModuleConfig.from_dict(
                {"site_url": "https://example.com", "sitemaps": {"pages": {"include": "/about"}}}, environ={}
            )

    @pytest.mark.parametrize("key", ["defaults", "route_rules"])
    def test_mappings_must_be_mappings(self, key):
        with pytest.raises(ConfigurationError, match=key):
            SitemapModuleConfig.from_dict({"site_url": "https://example.com", key: ["/about"]}, environ={})

    def test_xsl_accepts_false_or_a_string(self):
        with pytest.raises(ConfigurationError, match="xsl"):
            SitemapModuleConfig.from_dict({"site_url": "https://example.com", "xsl": 3}, environ={})

    def test_message_names_every_invalid_key(self):
        with pytest.raises(ConfigurationError) as excinfo:
            SitemapModuleConfig.from_dict({"workers": "many", "credits": "no"}, environ={})
        assert "workers" in str(excinfo.value)
        assert "credits" in str(excinfo.value)

class TestStylesheetUrl:
    """Tests for the stylesheet href."""

    def test_base_is_applied(self):
        config = SitemapModuleConfig.from_dict({"site_url": "https://example.com", "base": "/base"}, environ={})
        assert config.stylesheet_url() == "/base/__sitemap__/style.xsl"

    def test_absolute_stylesheet(self):
        config = SitemapModuleConfig.from_dict(
            {"site_url": "https://example.com", "base": "/base", "xsl": "https://cdn.example.org/style.xsl"},
            environ={},
        )
        assert config.stylesheet_url() == "https://cdn.example.org/style.xsl"

    def test_disabled(self):
        config = SitemapModuleConfig.from_dict({"site_url": "https://example.com", "xsl": False}, environ={})
        assert config.stylesheet_url() is False


class TestVersionToken:
    """Tests for the configuration version token."""

    def test_stable_for_equal_configurations(self):
        data = {"site_url": "https://example.com", "urls": ["/a"]}
        first = SitemapModuleConfig.from_dict(data, environ={})
        second = SitemapModuleConfig.from_dict(dict(data), environ={})
        assert first.version_token() == second.version_token()
        assert len(first.version_token()) == 12

    def test_changes_with_configuration(self):
        first = SitemapModuleConfig.from_dict({"site_url": "https://example.com", "urls": ["/a"]}, environ={})
        second = SitemapModuleConfig.from_dict({"site_url": "https://example.com", "urls": ["/b"]}, environ={})
        assert first.version_token() != second.version_token()


class TestFromFile:
    """Tests for loading JSON configuration files."""

    def test_loads_json(self, tmp_path):
        path = tmp_path / "sitemap.json"
        path.write_text(json.dumps({"site_url": "https://example.com", "urls": ["/"]}), encoding="utf-8")
        config = SitemapModuleConfig.from_file(path, environ={})
        assert config.urls == ["/"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Cannot read"):
            SitemapModuleConfig.from_file(tmp_path / "missing.json", environ={})

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "sitemap.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            SitemapModuleConfig.from_file(path, environ={})

    def test_non_object(self, tmp_path):
        path = tmp_path / "sitemap.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="JSON object"):
            SitemapModuleConfig.from_file(path, environ={})
