from helpers import SITE_URL
from page_scanner import collect_discovered_images
from page_scanner import load_rendered_pages
from page_scanner import route_for_file
from page_scanner import scan_page_images


PAGE = """
<html>
  <body>
    <header><img src="/logo.png" alt="Logo"></header>
    <main>
      <h1>About</h1>
      <img src="/team.jpg">
      <img src="office.png">
      <img src="https://cdn.example.org/hero.webp">
      <img src="data:image/gif;base64,R0lGODlhAQABAAAAACw=">
      <img alt="no source">
    </main>
    <footer><img src="/footer.png"></footer>
  </body>
</html>
"""


class TestScanPageImages:
    """Tests for image discovery in rendered HTML."""

    def test_only_images_inside_main(self):
        images = scan_page_images(PAGE, SITE_URL)
        assert images == [
            {"loc": "https://example.com/team.jpg"},
            {"loc": "https://example.com/office.png"},
            {"loc": "https://cdn.example.org/hero.webp"},
        ]

    def test_page_without_main(self):
        assert scan_page_images("<html><body><img src='/a.png'></body></html>", SITE_URL) == []


class TestRenderedPages:
    """Tests for reading prerendered pages."""

    def test_route_for_file(self):
        assert route_for_file("index.html") == "/"
        assert route_for_file("about.html") == "/about"
        assert route_for_file("blog/index.html") == "/blog"
        assert route_for_file("blog/post-1/index.html") == "/blog/post-1"

    def test_load_and_collect(self, tmp_path):
        (tmp_path / "index.html").write_text("<main><img src='/home.jpg'></main>", encoding="utf-8")
        (tmp_path / "blog").mkdir()
        (tmp_path / "blog" / "index.html").write_text("<main><p>No images</p></main>", encoding="utf-8")
        (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

        pages = load_rendered_pages(tmp_path)
        assert [route for route, _ in pages] == ["/", "/blog"]
        assert collect_discovered_images(pages, SITE_URL) == {"/": [{"loc": "https://example.com/home.jpg"}]}
