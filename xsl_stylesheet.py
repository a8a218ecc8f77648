"""XSLT document referenced by the xml-stylesheet instruction.

Browsers apply it to render sitemaps and sitemap indexes as HTML tables.
"""

XSL_STYLESHEET = """<?xml version="1.0" encoding="UTF-8"?>
<xsl:stylesheet version="2.0"
                xmlns:html="http://www.w3.org/TR/REC-html40"
                xmlns:image="http://www.google.com/schemas/sitemap-image/1.1"
                xmlns:sitemap="http://www.sitemaps.org/schemas/sitemap/0.9"
                xmlns:xsl="http://www.w3.org/1999/XSL/Transform">
  <xsl:output method="html" version="1.0" encoding="UTF-8" indent="yes"/>
  <xsl:template match="/">
    <html xmlns="http://www.w3.org/1999/xhtml">
      <head>
        <title>XML Sitemap</title>
        <meta http-equiv="Content-Type" content="text/html; charset=utf-8"/>
        <style type="text/css">
          body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif; color: #333; margin: 2rem; }
          table { border-collapse: collapse; width: 100%; font-size: 14px; }
          th { text-align: left; border-bottom: 2px solid #ddd; padding: 8px; }
          td { border-bottom: 1px solid #eee; padding: 8px; }
          a { color: #0078d4; text-decoration: none; }
          .count { color: #666; margin-bottom: 1rem; }
        </style>
      </head>
      <body>
        <h1>XML Sitemap</h1>
        <xsl:if test="count(sitemap:sitemapindex/sitemap:sitemap) &gt; 0">
          <p class="count">This index contains <xsl:value-of select="count(sitemap:sitemapindex/sitemap:sitemap)"/> sitemaps.</p>
          <table>
            <tr><th>Sitemap</th><th>Last Modified</th></tr>
            <xsl:for-each select="sitemap:sitemapindex/sitemap:sitemap">
              <xsl:variable name="sitemapURL"><xsl:value-of select="sitemap:loc"/></xsl:variable>
              <tr>
                <td><a href="{$sitemapURL}"><xsl:value-of select="sitemap:loc"/></a></td>
                <td><xsl:value-of select="sitemap:lastmod"/></td>
              </tr>
            </xsl:for-each>
          </table>
        </xsl:if>
        <xsl:if test="count(sitemap:sitemapindex/sitemap:sitemap) &lt; 1">
          <p class="count">This sitemap contains <xsl:value-of select="count(sitemap:urlset/sitemap:url)"/> URLs.</p>
          <table>
            <tr><th>URL</th><th>Images</th><th>Last Modified</th><th>Change Frequency</th><th>Priority</th></tr>
            <xsl:for-each select="sitemap:urlset/sitemap:url">
              <xsl:variable name="itemURL"><xsl:value-of select="sitemap:loc"/></xsl:variable>
              <tr>
                <td><a href="{$itemURL}"><xsl:value-of select="sitemap:loc"/></a></td>
                <td><xsl:value-of select="count(image:image)"/></td>
                <td><xsl:value-of select="sitemap:lastmod"/></td>
                <td><xsl:value-of select="sitemap:changefreq"/></td>
                <td><xsl:value-of select="sitemap:priority"/></td>
              </tr>
            </xsl:for-each>
          </table>
        </xsl:if>
      </body>
    </html>
  </xsl:template>
</xsl:stylesheet>
"""


def generate_xsl_stylesheet() -> str:
    """Return the XSLT document served at the configured stylesheet URL."""
    return XSL_STYLESHEET
