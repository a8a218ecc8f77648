"""Sitemap Builder - command line entry point.

Loads a JSON configuration, gathers the inputs supplied by collaborators
(prerendered pages, an API endpoint), builds every sitemap document and
writes them to an output directory.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlsplit

from page_scanner import collect_discovered_images, load_rendered_pages
from sitemap_builder import SitemapBuilder
from sitemap_config import VERSION, SitemapModuleConfig
from sitemap_models import ConfigurationError
from url_normalizer import without_base
from url_sources import UrlSourceError, fetch_api_urls
from xsl_stylesheet import generate_xsl_stylesheet


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Configure console (and optional file) logging."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def gather_inputs(config: SitemapModuleConfig, pages_dir: Optional[str]) -> Dict[str, Any]:
    """Resolve every collaborator input before the build starts.

    Returns:
        Keyword arguments for SitemapBuilder (urls, discovered_images).

    Raises:
        UrlSourceError: If the API endpoint cannot be fetched.
    """
    urls: List[Any] = []
    discovered_images: Dict[str, List[Dict[str, str]]] = {}

    if pages_dir:
        pages = load_rendered_pages(pages_dir)
        # Routes with a dot are files (feeds, robots.txt), not pages
        urls.extend(route for route, _ in pages if '.' not in route)
        discovered_images = collect_discovered_images(pages, config.site_url)
        logger.info(f"Loaded {len(pages)} prerendered pages from {pages_dir}")

    if config.api_urls_endpoint:
        urls.extend(fetch_api_urls(config.api_urls_endpoint))

    return {'urls': urls, 'discovered_images': discovered_images}


def write_documents(builder: SitemapBuilder, documents: Dict[str, str], output_dir: Path) -> List[Path]:
    """Write the rendered documents (and the stylesheet) to a directory."""
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for filename, xml in documents.items():
        path = output_dir / filename
        path.write_text(xml, encoding='utf-8')
        written.append(path)

    xsl = builder.render_options.xsl
    if xsl and not urlsplit(xsl).scheme:
        relative = without_base(xsl, builder.config.base).lstrip('/')
        path = output_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(generate_xsl_stylesheet(), encoding='utf-8')
        written.append(path)
    return written


def run(args: argparse.Namespace) -> int:
    try:
        config = SitemapModuleConfig.from_file(args.config)
        config.validate()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    if not config.enabled:
        logger.info("Sitemap generation is disabled.")
        return 0

    try:
        inputs = gather_inputs(config, args.pages_dir)
    except UrlSourceError as e:
        logger.error(f"Failed to load URL inputs: {e}")
        return 2

    builder = SitemapBuilder(config, **inputs)
    documents = builder.build_all()
    if args.text:
        for partition in builder.partitions:
            documents[str(Path(partition.filename).with_suffix('.txt'))] = builder.build_text(partition.name)
    written = write_documents(builder, documents, Path(args.output_dir))
    for path in written:
        logger.info(f"  ├─ {path}")
    logger.info(f"Sitemap available at {builder.public_sitemap_url()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Build XML sitemaps from a JSON configuration.")
    parser.add_argument('--config', required=True, help="Path to the JSON configuration file")
    parser.add_argument('--output-dir', default='dist', help="Directory the documents are written to")
    parser.add_argument('--pages-dir', default='', help="Directory of prerendered HTML pages to scan for routes and images")
    parser.add_argument('--text', action='store_true', help="Also write each sitemap as a plain text list of URLs")
    parser.add_argument('--log-file', default='', help="Optional log file")
    parser.add_argument('--verbose', action='store_true', help="Enable debug logging")
    parser.add_argument('--version', action='version', version=f'%(prog)s {VERSION}')
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the application.

    Returns:
        Exit code (0 on success, 2 on configuration or input errors).
    """
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.log_file or None)
    return run(args)


if __name__ == '__main__':
    sys.exit(main())
