import logging
from pathlib import PurePosixPath

import pytest

from conftest import write
from forge.config import load_config
from forge.content import ContentDiscovery, UrlDeriver, is_standalone_html
from forge.errors import FrontMatterError


@pytest.mark.parametrize(
    ("rel", "expected"),
    [
        ("pages/index.md", ("pages", "/")),
        ("pages/about.md", ("pages", "/about")),
        ("pages/docs/setup.md", ("pages", "/docs/setup")),
        ("pages/404.md", ("pages", "/404")),
        ("blog/hello.md", ("blog", "/blog/hello")),
        ("blog/index.md", ("blog", "/blog")),
        ("blog/2024/index.md", ("blog", "/blog/2024")),
        ("blog/2024/recap.html", ("blog", "/blog/2024/recap")),
        ("index.md", ("page", "/")),
        ("about.html", ("page", "/about")),
    ],
)
def test_url_derivation(rel, expected):
    assert UrlDeriver().derive(PurePosixPath(rel)) == expected


def test_discover_builds_pages(project):
    pages = ContentDiscovery(load_config(project)).discover()
    assert list(pages) == ["/blog/hello", "/"]
    home = pages["/"]
    assert home.content_type == "pages"
    assert home.frontmatter.get("title") == "Home"
    assert "<h1>Welcome</h1>" in home.html_content
    assert home.needs_template
    assert pages["/blog/hello"].content_type == "blog"


def test_discovery_is_idempotent(project):
    discovery = ContentDiscovery(load_config(project))
    first = discovery.discover()
    second = discovery.discover()
    assert list(first) == list(second)
    for url in first:
        assert first[url].html_content == second[url].html_content
        assert first[url].frontmatter.to_dict() == second[url].frontmatter.to_dict()


def test_skips_hidden_backup_and_unsupported_files(project):
    write(project / "content" / "blog" / ".draft.md", "hidden")
    write(project / "content" / "blog" / "~backup.md", "backup")
    write(project / "content" / "blog" / "notes.txt", "text")
    pages = ContentDiscovery(load_config(project)).discover()
    assert set(pages) == {"/", "/blog/hello"}


def test_standalone_html_skips_templates(project):
    write(project / "templates" / "pages.html", "<main>{{ content }}</main>")
    write(
        project / "content" / "pages" / "landing.html",
        "---\ntitle: Landing\n---\n<!DOCTYPE html><html><body>Hi</body></html>",
    )
    write(project / "content" / "pages" / "snippet.html", "<p>Just a fragment</p>")
    pages = ContentDiscovery(load_config(project)).discover()

    landing = pages["/landing"]
    assert landing.is_standalone
    assert landing.template_path is None
    assert landing.html_content.startswith("<!DOCTYPE html>")

    snippet = pages["/snippet"]
    assert not snippet.is_standalone
    assert snippet.template_path == project / "templates" / "pages.html"


def test_markdown_is_never_standalone(project):
    write(project / "content" / "pages" / "raw.md", "<html>inline</html>\n")
    pages = ContentDiscovery(load_config(project)).discover()
    assert pages["/raw"].needs_template


def test_is_standalone_html_markers():
    assert is_standalone_html("<!DOCTYPE html><p>x</p>")
    assert is_standalone_html("<html lang='en'></html>")
    assert not is_standalone_html("<div>fragment</div>")


def test_template_resolution_by_content_type(project):
    write(project / "templates" / "blog.html", "<article>{{ content }}</article>")
    pages = ContentDiscovery(load_config(project)).discover()
    assert pages["/blog/hello"].template_path == project / "templates" / "blog.html"
    assert pages["/"].template_path is None


def test_base_template_is_never_a_page_template(project):
    write(project / "content" / "base" / "x.md", "body")
    pages = ContentDiscovery(load_config(project)).discover()
    assert pages["/base/x"].template_path is None


def test_configured_template_missing_logs_warning(project, caplog):
    write(
        project / "forge.yaml",
        "site_name: Test Site\ncollections:\n  blog:\n    template: post.html\n",
    )
    write(project / "templates" / "blog.html", "<article>{{ content }}</article>")
    with caplog.at_level(logging.WARNING, logger="forge"):
        pages = ContentDiscovery(load_config(project)).discover()
    assert pages["/blog/hello"].template_path is None
    assert "post.html" in caplog.text


def test_configured_template_is_used(project):
    write(
        project / "forge.yaml",
        "site_name: Test Site\ncollections:\n  blog:\n    template: post.html\n",
    )
    write(project / "templates" / "post.html", "<article>{{ content }}</article>")
    pages = ContentDiscovery(load_config(project)).discover()
    assert pages["/blog/hello"].template_path == project / "templates" / "post.html"


def test_duplicate_url_last_file_wins(project, caplog):
    # hello.html sorts before hello.md
    write(project / "content" / "blog" / "hello.html", "<p>html version</p>")
    with caplog.at_level(logging.WARNING, logger="forge"):
        pages = ContentDiscovery(load_config(project)).discover()
    assert "<em>world</em>" in pages["/blog/hello"].html_content
    assert "Duplicate URL" in caplog.text


def test_bad_front_matter_aborts_discovery(project):
    write(project / "content" / "blog" / "broken.md", "---\ntitle: [oops\n---\nBody")
    with pytest.raises(FrontMatterError) as excinfo:
        ContentDiscovery(load_config(project)).discover()
    assert excinfo.value.source_path.name == "broken.md"
