from pathlib import Path

from forge.collections import Collections, build_collections, sort_pages
from forge.config import CollectionConfig, SiteConfig
from forge.content import PageInfo
from forge.frontmatter import FrontMatter


def make_page(url, content_type="blog", **fields):
    return PageInfo(
        content_path=Path(f"content{url}.md"),
        url=url,
        content_type=content_type,
        frontmatter=FrontMatter(data=dict(fields)),
    )


def registry(*pages):
    return {page.url: page for page in pages}


def test_default_sort_is_date_descending(tmp_path):
    pages = registry(
        make_page("/blog/a", date="2024-01-01"),
        make_page("/blog/b", date="2024-03-01"),
        make_page("/blog/c", date="2023-12-31"),
    )
    collections = build_collections(pages, SiteConfig(project_root=tmp_path))
    assert collections["blog"] == ("/blog/b", "/blog/a", "/blog/c")


def test_configured_sort_key_and_order(tmp_path):
    config = SiteConfig(
        project_root=tmp_path,
        collections={"docs": CollectionConfig("docs", sort_by="order", sort_order="asc")},
    )
    pages = registry(
        make_page("/docs/b", "docs", order="2"),
        make_page("/docs/a", "docs", order="1"),
        make_page("/docs/c", "docs", order="3"),
    )
    assert build_collections(pages, config)["docs"] == ("/docs/a", "/docs/b", "/docs/c")


def test_sort_is_lexical_on_raw_strings():
    pages = [make_page("/n/a", order="10"), make_page("/n/b", order="9")]
    ordered = sort_pages(pages, "order", descending=False)
    assert [p.url for p in ordered] == ["/n/a", "/n/b"]


def test_missing_field_sorts_as_empty_string():
    pages = [make_page("/blog/undated"), make_page("/blog/dated", date="2024-01-01")]
    assert [p.url for p in sort_pages(pages)] == ["/blog/dated", "/blog/undated"]
    ascending = sort_pages(pages, descending=False)
    assert [p.url for p in ascending] == ["/blog/undated", "/blog/dated"]


def test_sort_is_stable_for_ties():
    pages = [make_page(f"/blog/{name}", date="2024-01-01") for name in "abc"]
    assert [p.url for p in sort_pages(pages)] == ["/blog/a", "/blog/b", "/blog/c"]


def test_reserved_pages_type_is_excluded(tmp_path):
    pages = registry(
        make_page("/", "pages"),
        make_page("/about", "pages"),
        make_page("/blog/a", date="2024-01-01"),
        make_page("/faq", "page"),
    )
    collections = build_collections(pages, SiteConfig(project_root=tmp_path))
    assert set(collections) == {"blog", "page"}


def test_collections_hold_urls_and_resolve_against_registry():
    a = make_page("/blog/a")
    b = make_page("/blog/b")
    collections = Collections({"blog": ["/blog/a", "/blog/b"]})
    assert collections["blog"] == ("/blog/a", "/blog/b")
    assert collections.resolve("blog", {"/blog/a": a, "/blog/b": b}) == [a, b]
    assert collections.resolve("blog", {"/blog/b": b}) == [b]
    assert collections.resolve("missing", {}) == []
    assert len(collections) == 1
