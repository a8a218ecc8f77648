import json

import pytest
import responses

import main
from helpers import locs


@pytest.fixture(autouse=True)
def isolated(monkeypatch):
    """Keep the CLI away from global logging and the real environment."""
    monkeypatch.setattr(main, "setup_logging", lambda verbose=False, log_file=None: None)
    monkeypatch.delenv("SITEMAP_SITE_URL", raising=False)
    monkeypatch.delenv("SITEMAP_TRAILING_SLASH", raising=False)


def _write_config(tmp_path, **data):
    path = tmp_path / "sitemap.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestMain:
    """Tests for the command line entry point."""

    def test_writes_single_sitemap_and_stylesheet(self, tmp_path):
        config = _write_config(tmp_path, site_url="https://example.com", urls=["/", "/about"])
        output = tmp_path / "dist"

        assert main.main(["--config", config, "--output-dir", str(output)]) == 0

        xml = (output / "sitemap.xml").read_text(encoding="utf-8")
        assert locs(xml) == ["https://example.com/", "https://example.com/about"]
        assert (output / "__sitemap__" / "style.xsl").exists()

    def test_writes_index_and_sitemaps(self, tmp_path):
        config = _write_config(
            tmp_path,
            site_url="https://example.com",
            base="/base",
            urls=["/", "/blog/post-1"],
            sitemaps={"pages": {"exclude": ["/blog/**"]}, "posts": {"include": ["/blog/**"]}},
        )
        output = tmp_path / "dist"

        assert main.main(["--config", config, "--output-dir", str(output)]) == 0

        assert sorted(path.name for path in output.glob("*.xml")) == [
            "pages-sitemap.xml",
            "posts-sitemap.xml",
            "sitemap_index.xml",
        ]
        assert (output / "__sitemap__" / "style.xsl").exists()

    def test_prerendered_pages(self, tmp_path):
        pages = tmp_path / "pages"
        (pages / "about").mkdir(parents=True)
        (pages / "index.html").write_text("<main><h1>Home</h1></main>", encoding="utf-8")
        (pages / "about" / "index.html").write_text("<main><img src='/team.jpg'></main>", encoding="utf-8")
        config = _write_config(tmp_path, site_url="https://example.com", xsl=False)
        output = tmp_path / "dist"

        assert main.main(["--config", config, "--output-dir", str(output), "--pages-dir", str(pages)]) == 0

        xml = (output / "sitemap.xml").read_text(encoding="utf-8")
        assert locs(xml) == ["https://example.com/", "https://example.com/about"]
        assert "<image:loc>https://example.com/team.jpg</image:loc>" in xml
        assert not (output / "__sitemap__").exists()

    @responses.activate
    def test_api_urls(self, tmp_path):
        responses.add(responses.GET, "https://example.com/api/urls", json=["/blog/post-1"])
        config = _write_config(
            tmp_path, site_url="https://example.com", urls=["/"], api_urls_endpoint="https://example.com/api/urls"
        )
        output = tmp_path / "dist"

        assert main.main(["--config", config, "--output-dir", str(output)]) == 0

        xml = (output / "sitemap.xml").read_text(encoding="utf-8")
        assert locs(xml) == ["https://example.com/blog/post-1", "https://example.com/"]

    @responses.activate
    def test_api_failure_exit_code(self, tmp_path):
        responses.add(responses.GET, "https://example.com/api/urls", status=503)
        config = _write_config(tmp_path, site_url="https://example.com", api_urls_endpoint="https://example.com/api/urls")

        assert main.main(["--config", config, "--output-dir", str(tmp_path / "dist")]) == 2

    def test_missing_site_url_exit_code(self, tmp_path):
        config = _write_config(tmp_path, urls=["/"])
        output = tmp_path / "dist"

        assert main.main(["--config", config, "--output-dir", str(output)]) == 2
        assert not output.exists()

    def test_invalid_value_type_exit_code(self, tmp_path):
        config = _write_config(tmp_path, site_url="https://example.com", urls=["/"], workers="lots")
        output = tmp_path / "dist"

        assert main.main(["--config", config, "--output-dir", str(output)]) == 2
        assert not output.exists()

    def test_writes_text_sitemaps(self, tmp_path):
        config = _write_config(
            tmp_path,
            site_url="https://example.com",
            urls=["/", "/blog/post-1"],
            sitemaps={"pages": {"exclude": ["/blog/**"]}, "posts": {"include": ["/blog/**"]}},
        )
        output = tmp_path / "dist"

        assert main.main(["--config", config, "--output-dir", str(output), "--text"]) == 0

        assert (output / "pages-sitemap.txt").read_text(encoding="utf-8") == "https://example.com/"
        assert (output / "posts-sitemap.txt").read_text(encoding="utf-8") == "https://example.com/blog/post-1"
        assert not (output / "sitemap_index.txt").exists()

    def test_text_is_not_written_by_default(self, tmp_path):
        config = _write_config(tmp_path, site_url="https://example.com", urls=["/"])
        output = tmp_path / "dist"

        assert main.main(["--config", config, "--output-dir", str(output)]) == 0
        assert not list(output.glob("*.txt"))

    def test_disabled(self, tmp_path):
        config = _write_config(tmp_path, site_url="https://example.com", enabled=False)
        output = tmp_path / "dist"

        assert main.main(["--config", config, "--output-dir", str(output)]) == 0
        assert not output.exists()

    def test_requires_config(self):
        with pytest.raises(SystemExit):
            main.main([])
