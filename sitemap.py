"""
sitemap.xml

Fixed site pages plus one entry per published blog post.
"""

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional
from xml.sax.saxutils import escape

logger = logging.getLogger(__name__)

# (path, priority, changefreq)
STATIC_PAGES = [
    ("/", "1.0", "daily"),
    ("/blog", "0.9", "daily"),
    ("/videos", "0.9", "daily"),
    ("/about", "0.8", "monthly"),
    ("/contact", "0.7", "monthly"),
    ("/privacy-policy", "0.5", "yearly"),
    ("/terms-of-service", "0.5", "yearly"),
    ("/disclaimer", "0.5", "yearly"),
]

HEADER = '<?xml version="1.0" encoding="UTF-8"?>\n<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
FOOTER = "</urlset>"


def _url_entry(loc: str, lastmod: str, changefreq: str, priority: str) -> str:
    return (
        "  <url>\n"
        f"    <loc>{escape(loc)}</loc>\n"
        f"    <lastmod>{lastmod}</lastmod>\n"
        f"    <changefreq>{changefreq}</changefreq>\n"
        f"    <priority>{priority}</priority>\n"
        "  </url>"
    )


def _lastmod(blog: Dict[str, Any], today: str) -> str:
    value = blog.get("created_at") or blog.get("createdAt")
    if isinstance(value, str) and value:
        return value.split("T")[0]
    return today


def build_sitemap(site_url: str, blogs: Iterable[Dict[str, Any]], today: Optional[str] = None) -> str:
    today = today or date.today().isoformat()
    entries: List[str] = [
        _url_entry(f"{site_url}{path}", today, changefreq, priority)
        for path, priority, changefreq in STATIC_PAGES
    ]
    for blog in blogs:
        if not blog.get("slug"):
            continue
        entries.append(_url_entry(f"{site_url}/blog/{blog['slug']}", _lastmod(blog, today), "weekly", "0.8"))
    return "\n".join([HEADER, *entries, FOOTER])


def fallback_sitemap(site_url: str, today: Optional[str] = None) -> str:
    today = today or date.today().isoformat()
    return "\n".join([HEADER, _url_entry(f"{site_url}/", today, "daily", "1.0"), FOOTER])
