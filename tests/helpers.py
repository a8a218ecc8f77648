import xml.etree.ElementTree as ET

SITE_URL = "https://example.com"
SITEMAP_NS = "{http://www.sitemaps.org/schemas/sitemap/0.9}"


def parse_xml(xml: str) -> ET.Element:
    return ET.fromstring(xml.encode("utf-8"))


def locs(xml: str) -> list:
    """Return the text of every sitemaps.org <loc> element in document order."""
    return [node.text for node in parse_xml(xml).iter(f"{SITEMAP_NS}loc")]
