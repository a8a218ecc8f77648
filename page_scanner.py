"""Discovery of images on prerendered pages.

Only images inside the first <main> element are collected, so layout
images (logos, icons in headers and footers) stay out of the sitemap. The
resulting map is passed to the builder as discovered_images.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Tuple, Union
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup


logger = logging.getLogger(__name__)

ALLOWED_IMAGE_SCHEMES = ('http', 'https')


def scan_page_images(html: str, site_url: str) -> List[Dict[str, str]]:
    """Extract the image sources of a rendered page.

    Args:
        html: Rendered HTML document.
        site_url: Absolute site URL used to resolve relative sources.

    Returns:
        Image descriptors ({'loc': absolute_url}) in document order.
    """
    soup = BeautifulSoup(html, 'html.parser')
    main = soup.find('main')
    if main is None:
        return []

    images = []
    for img in main.find_all('img', src=True):
        src = img['src'].strip()
        if not src:
            continue
        absolute_url = urljoin(site_url, src)
        # Skip data: URIs and other non-web sources
        if urlparse(absolute_url).scheme not in ALLOWED_IMAGE_SCHEMES:
            logger.debug(f"Skipping image source {src[:60]} (unsupported scheme)")
            continue
        images.append({'loc': absolute_url})
    return images


def route_for_file(relative_path: Union[str, Path]) -> str:
    """Map a prerendered file path to its route ('blog/index.html' -> '/blog')."""
    parts = list(Path(relative_path).with_suffix('').parts)
    if parts and parts[-1] == 'index':
        parts = parts[:-1]
    return '/' + '/'.join(parts)


def load_rendered_pages(directory: Union[str, Path]) -> List[Tuple[str, str]]:
    """Read every prerendered HTML file below a directory.

    Returns:
        (route, html) pairs sorted by route.
    """
    root = Path(directory)
    pages = []
    for file_path in sorted(root.rglob('*.html')):
        try:
            html = file_path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read rendered page {file_path}: {e}")
            continue
        pages.append((route_for_file(file_path.relative_to(root)), html))
    pages.sort(key=lambda page: page[0])
    return pages


def collect_discovered_images(pages: Iterable[Tuple[str, str]], site_url: str) -> Dict[str, List[Dict[str, str]]]:
    """Build the path -> images map from (route, html) pairs.

    Routes without images are left out.
    """
    discovered: Dict[str, List[Dict[str, str]]] = {}
    for route, html in pages:
        images = scan_page_images(html, site_url)
        if images:
            discovered.setdefault(route, []).extend(images)
    logger.info(f"Discovered {sum(len(images) for images in discovered.values())} images on {len(discovered)} pages")
    return discovered
