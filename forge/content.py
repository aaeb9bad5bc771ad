"""Content discovery for Forge.

This module turns the files under the content directory into ``PageInfo``
records. It is responsible for routing (file location to URL), front matter
extraction, body rendering and per-page template resolution.

Key classes:
- PageInfo: One discovered content file.
- FileContentLoader: Finds content files under the content root.
- UrlDeriver: Maps a content-relative path to (content_type, url).
- TemplateResolver: Picks the per-type template for a page.
- ContentDiscovery: Builds the full url -> PageInfo mapping.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from . import frontmatter as fm
from .config import BASE_TEMPLATE, RESERVED_CONTENT_TYPE, SiteConfig
from .errors import ForgeIOError
from .frontmatter import FrontMatter
from .renderers import RendererRegistry, default_renderer_registry

logger = logging.getLogger(__name__)

ERROR_PAGE_URL = "/404"
ROOT_CONTENT_TYPE = "page"
_DOCUMENT_MARKERS = ("<!DOCTYPE", "<html")


@dataclass(frozen=True)
class PageInfo:
    """Represents one discovered content file.

    Attributes:
        content_path: Source file location.
        url: Canonical route derived from the directory structure.
        content_type: Top-level content folder name; the collection key.
        frontmatter: Parsed front matter.
        html_content: Body converted to HTML.
        needs_template: False for standalone pages.
        template_path: Per-type template, or None.
    """

    content_path: Path
    url: str
    content_type: str
    frontmatter: FrontMatter = field(default_factory=FrontMatter)
    html_content: str = ""
    needs_template: bool = True
    template_path: Path | None = None

    @property
    def is_standalone(self) -> bool:
        return not self.needs_template

    @property
    def is_error_page(self) -> bool:
        return self.url == ERROR_PAGE_URL


def is_standalone_html(body: str) -> bool:
    """Return True if an HTML body is already a complete document."""
    return any(marker in body for marker in _DOCUMENT_MARKERS)


class FileContentLoader:
    """Finds content files under the content root.

    Attributes:
        content_dir: Directory containing site content.
    """

    def __init__(self, content_dir: Path, renderers: RendererRegistry | None = None):
        self.content_dir = content_dir
        self.renderers = renderers or default_renderer_registry

    def iter_files(self) -> list[Path]:
        """Return every renderable content file, in sorted path order."""
        files: list[Path] = []
        for path in sorted(self.content_dir.rglob("*")):
            if not path.is_file() or path.name.startswith((".", "~")):
                continue
            if self.renderers.supports(path):
                files.append(path)
        return files


class UrlDeriver:
    """Derives URLs for pages.

    Routing rule, relative to the content root:

    - The first path segment is the content type.
    - Under ``pages`` the URL is ``/`` for ``index`` and ``/<rest>`` otherwise.
    - Under any other folder the URL is ``/<content_type>`` followed by
      ``/<rest>`` unless the rest is an ``index`` file.
    - A file directly in the content root has content type ``page``.

    ``<rest>`` keeps nested directories and drops the extension; a trailing
    ``index`` segment is dropped.
    """

    def derive(self, rel: PurePosixPath | Path) -> tuple[str, str]:
        """Derive (content_type, url) for a content-relative path."""
        parts = list(PurePosixPath(rel.as_posix()).with_suffix("").parts)
        if len(parts) == 1:
            content_type = ROOT_CONTENT_TYPE
            rest = parts
            prefix: list[str] = []
        else:
            content_type = parts[0]
            rest = parts[1:]
            prefix = [] if content_type == RESERVED_CONTENT_TYPE else [content_type]

        if rest and rest[-1] == "index":
            rest = rest[:-1]
        segments = prefix + rest
        return content_type, "/" + "/".join(segments)


class TemplateResolver:
    """Resolves the per-type template for non-standalone pages.

    Prefers the collection's configured template, else ``<content_type>.html``.
    The base template is never used as a per-page template.
    """

    def __init__(self, config: SiteConfig):
        self.config = config
        self.templates_dir = config.templates_path

    def resolve(self, content_type: str) -> Path | None:
        collection = self.config.collections.get(content_type)
        if collection is not None and collection.template:
            candidate = self.templates_dir / collection.template
            if candidate.is_file() and candidate.name != BASE_TEMPLATE:
                return candidate
            logger.warning(
                "Template '%s' not found for collection '%s'",
                collection.template,
                content_type,
            )
            return None

        candidate = self.templates_dir / f"{content_type}.html"
        if candidate.is_file() and candidate.name != BASE_TEMPLATE:
            return candidate
        return None


class ContentDiscovery:
    """Builds PageInfo records for every content file.

    Attributes:
        config: Site configuration.
        renderers: Registry of body renderers.
        url_deriver: URL deriver instance.
        template_resolver: Template resolver instance.
    """

    def __init__(self, config: SiteConfig, renderers: RendererRegistry | None = None):
        self.config = config
        self.renderers = renderers or default_renderer_registry
        self.loader = FileContentLoader(config.content_path, self.renderers)
        self.url_deriver = UrlDeriver()
        self.template_resolver = TemplateResolver(config)

    def discover(self) -> dict[str, PageInfo]:
        """Build the url -> PageInfo mapping for the whole content tree.

        Raises:
            FrontMatterError: On the first file with malformed front matter.
            ForgeIOError: If a content file cannot be read.
        """
        pages: dict[str, PageInfo] = {}
        for path in self.loader.iter_files():
            page = self.build(path)
            if page.url in pages:
                logger.warning(
                    "Duplicate URL %s: %s replaces %s",
                    page.url,
                    path,
                    pages[page.url].content_path,
                )
            pages[page.url] = page
        return pages

    def build(self, path: Path) -> PageInfo:
        """Build a PageInfo from a content file.

        Args:
            path: Path to the source file.

        Returns:
            PageInfo record.
        """
        rel = path.relative_to(self.loader.content_dir)
        content_type, url = self.url_deriver.derive(rel)
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ForgeIOError(f"Cannot read file: {exc}", path, exc) from exc

        metadata, body = fm.parse(raw, path)
        renderer = self.renderers.get_renderer(path)
        html = renderer.render(body)
        standalone = renderer.source_type == "html" and is_standalone_html(body)

        template_path = None if standalone else self.template_resolver.resolve(content_type)
        return PageInfo(
            content_path=path,
            url=url,
            content_type=content_type,
            frontmatter=metadata,
            html_content=html,
            needs_template=not standalone,
            template_path=template_path,
        )
