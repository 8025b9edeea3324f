from sitemap import STATIC_PAGES, build_sitemap, fallback_sitemap


def test_static_pages_and_blogs():
    xml = build_sitemap(
        "https://news.example",
        [
            {"slug": "budget-2024", "createdAt": "2024-02-01T10:00:00.000Z"},
            {"slug": "undated"},
            {"createdAt": "2024-01-01T00:00:00.000Z"},
        ],
        today="2024-03-01",
    )
    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert xml.count("<url>") == len(STATIC_PAGES) + 2
    assert (
        "<loc>https://news.example/blog/budget-2024</loc>\n"
        "    <lastmod>2024-02-01</lastmod>\n"
        "    <changefreq>weekly</changefreq>\n"
        "    <priority>0.8</priority>"
    ) in xml
    assert "<loc>https://news.example/blog/undated</loc>\n    <lastmod>2024-03-01</lastmod>" in xml
    assert "<loc>https://news.example/privacy-policy</loc>" in xml


def test_slugs_are_escaped():
    xml = build_sitemap("https://news.example", [{"slug": "q&a"}], today="2024-03-01")
    assert "/blog/q&amp;a</loc>" in xml


def test_fallback_has_only_the_home_page():
    xml = fallback_sitemap("https://news.example", today="2024-03-01")
    assert xml.count("<url>") == 1
    assert "<loc>https://news.example/</loc>" in xml
    assert xml.rstrip().endswith("</urlset>")
