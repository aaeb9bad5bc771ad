"""Site building for Forge.

``SiteBuilder`` owns the page registry, the build version and the template
engine. It discovers content into a fresh registry generation, renders pages
through the body, per-type and base template passes, and writes the static
output tree.

Key classes:
- SiteBuilder: Discovery, rendering and export.
- BuildVersion: Millisecond build stamp carried in reload notifications.
- DiscoveryResult, RebuildResult, PageResult, BuildReport: Outcomes.
"""

from __future__ import annotations

import logging
import shutil
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .assets import AssetPipeline, AssetReport
from .collections import build_collections
from .config import SiteConfig, load_config
from .content import ContentDiscovery, PageInfo
from .errors import ConfigError, ErrorKind, ForgeError, ForgeIOError, RenderError, error_kind
from .minify import Minifier
from .registry import PageRegistry, SiteSnapshot
from .renderers import RendererRegistry
from .templates import TemplateEngine, serialize_collection, serialize_page

logger = logging.getLogger(__name__)

DEV_SCRIPT = '\n<script defer src="/livereload.js"></script>\n'


class BuilderState(str, Enum):
    UNINITIALIZED = "uninitialized"
    DISCOVERING = "discovering"
    READY = "ready"


class BuildVersion:
    """Wall-clock millisecond stamp, strictly increasing with every bump."""

    def __init__(self, initial: int = 0):
        self._lock = threading.Lock()
        self._value = initial

    def current(self) -> int:
        with self._lock:
            return self._value

    def bump(self) -> int:
        now = int(time.time() * 1000)
        with self._lock:
            self._value = max(self._value + 1, now)
            return self._value


@dataclass(frozen=True)
class DiscoveryResult:
    page_count: int
    collection_count: int
    duration_ms: float


@dataclass(frozen=True)
class RebuildResult:
    """Outcome of a watcher-triggered rebuild.

    Attributes:
        ok: True if the new registry generation was swapped in.
        change_type: Classification of the triggering change.
        version: Build version after the rebuild (unchanged on failure).
        page_count: Pages in the new registry.
        error_kind: Kind of the failure, when not ok.
        error: Failure message, when not ok.
    """

    ok: bool
    change_type: str
    version: int
    page_count: int = 0
    error_kind: ErrorKind | None = None
    error: str | None = None


@dataclass(frozen=True)
class PageResult:
    url: str
    ok: bool
    output_path: Path | None = None
    error_kind: ErrorKind | None = None
    error: str | None = None


@dataclass
class BuildReport:
    """Outcome of a full build.

    Attributes:
        output_dir: Directory the site was written to.
        pages: One result per page, in registry order.
        assets: Static asset counts, when the pipeline ran.
        duration_ms: Wall time of the build.
    """

    output_dir: Path
    pages: list[PageResult] = field(default_factory=list)
    assets: AssetReport | None = None
    duration_ms: float = 0.0

    @property
    def succeeded(self) -> int:
        return sum(1 for p in self.pages if p.ok)

    @property
    def failed(self) -> int:
        return sum(1 for p in self.pages if not p.ok)

    @property
    def ok(self) -> bool:
        return self.failed == 0


def inject_dev_scripts(html: str) -> str:
    """Insert the live-reload script tag before ``</head>``, or append it."""
    head_close = html.find("</head>")
    if head_close == -1:
        return html + DEV_SCRIPT
    return html[:head_close] + DEV_SCRIPT + html[head_close:]


def page_output_path(output_dir: Path, url: str) -> Path:
    """Map a page URL to ``<output>/<url>/index.html``."""
    rel = url.strip("/")
    return output_dir / rel / "index.html" if rel else output_dir / "index.html"


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty."""
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


class SiteBuilder:
    """Discovers, renders and exports a site.

    A single writer (discovery) swaps registry generations under the
    registry's exclusive lock; any number of request threads render from the
    current generation under the shared lock.

    Attributes:
        config: Site configuration.
        dev_mode: Inject the live-reload script into rendered pages.
        registry: Current pages and collections.
        version: Build version stamp.
        engine: Template engine.
        state: Lifecycle state.
    """

    def __init__(
        self,
        config: SiteConfig,
        dev_mode: bool = False,
        version: BuildVersion | None = None,
        engine: TemplateEngine | None = None,
        renderers: RendererRegistry | None = None,
    ):
        self.config = config
        self.dev_mode = dev_mode
        self.registry = PageRegistry()
        self.version = version or BuildVersion()
        self.engine = engine or TemplateEngine(config.templates_path)
        self.discovery = ContentDiscovery(config, renderers)
        self.minifier = Minifier(config)
        self.state = BuilderState.UNINITIALIZED
        self._discovery_lock = threading.Lock()
        self._base_lock = threading.Lock()
        self._base_template: str | None = None
        self.reload_base_template()

    @classmethod
    def from_project(cls, project_root: Path, dev_mode: bool = False) -> SiteBuilder:
        return cls(load_config(project_root), dev_mode=dev_mode)

    # -- discovery -------------------------------------------------------

    def discover_content(self) -> DiscoveryResult:
        """Build a new registry generation and swap it in.

        The new pages and collections are built off to the side; the current
        generation keeps serving until the swap. On failure the previous
        generation and state are left in place.

        Raises:
            ConfigError: If the content directory does not exist.
            FrontMatterError: On malformed front matter in any file.
            ForgeIOError: If a content file cannot be read.
        """
        with self._discovery_lock:
            previous = self.state
            self.state = BuilderState.DISCOVERING
            start = time.perf_counter()
            try:
                content_dir = self.config.content_path
                if not content_dir.is_dir():
                    raise ConfigError("Content directory not found", content_dir)
                pages = self.discovery.discover()
                collections = build_collections(pages, self.config)
            except Exception:
                self.state = previous
                raise

            self.registry.replace(pages, collections)
            self.state = BuilderState.READY

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Discovered %d pages in %d collections (%.1fms)",
            len(pages),
            len(collections),
            duration_ms,
        )
        return DiscoveryResult(len(pages), len(collections), duration_ms)

    def rebuild(self, change_type: str) -> RebuildResult:
        """Re-run discovery and stamp a new version.

        Never raises for site errors; the outcome is reported in the result.
        """
        try:
            if change_type == "template":
                self.reload_base_template()
            discovered = self.discover_content()
        except (ForgeError, OSError) as exc:
            kind = error_kind(exc)
            logger.error("Rebuild after %s change failed (%s): %s", change_type, kind.value, exc)
            return RebuildResult(
                ok=False,
                change_type=change_type,
                version=self.version.current(),
                error_kind=kind,
                error=str(exc),
            )
        version = self.version.bump()
        logger.info("Rebuilt after %s change (version %d)", change_type, version)
        return RebuildResult(
            ok=True,
            change_type=change_type,
            version=version,
            page_count=discovered.page_count,
        )

    def reload_base_template(self) -> bool:
        """Re-read ``base.html``. Returns True if a base template is present."""
        path = self.config.base_template_path
        try:
            text = path.read_text(encoding="utf-8") if path.is_file() else None
        except OSError as exc:
            raise ForgeIOError(f"Cannot read base template: {exc}", path, exc) from exc
        with self._base_lock:
            self._base_template = text
        if text is None:
            logger.debug("No base template at %s", path)
        return text is not None

    # -- readers ---------------------------------------------------------

    def get_page(self, url: str) -> PageInfo | None:
        return self.registry.get(url)

    def pages(self) -> dict[str, PageInfo]:
        return dict(self.registry.snapshot().pages)

    def collections(self) -> dict[str, list[PageInfo]]:
        snapshot = self.registry.snapshot()
        return {name: snapshot.collection_pages(name) for name in snapshot.collections}

    def error_page(self) -> PageInfo | None:
        return self.registry.snapshot().error_page

    # -- rendering -------------------------------------------------------

    def _context(
        self,
        snapshot: SiteSnapshot,
        page: PageInfo,
        content: str | None = None,
        version: int | None = None,
    ) -> dict[str, Any]:
        context: dict[str, Any] = {
            "site": self.config.site_variables(),
            "page": serialize_page(page),
            "collections": {
                name: serialize_collection(snapshot.collection_pages(name))
                for name in snapshot.collections
            },
        }
        if content is not None:
            context["content"] = content
        if version is not None:
            context["version"] = str(version)
        return context

    def render_page(self, page: PageInfo) -> str:
        """Render a page to a complete HTML document.

        Raises:
            RenderError: If any template pass fails.
            ForgeIOError: If the per-type template cannot be read.
        """
        if page.is_standalone:
            return page.html_content

        with self.registry.reading() as snapshot:
            body = self.engine.render(page.html_content, self._context(snapshot, page), page.url)

            if page.template_path is not None and page.template_path.is_file():
                try:
                    template_text = page.template_path.read_text(encoding="utf-8")
                except OSError as exc:
                    raise ForgeIOError(
                        f"Cannot read template: {exc}", page.template_path, exc
                    ) from exc
                body = self.engine.render(
                    template_text, self._context(snapshot, page, content=body), page.url
                )

            with self._base_lock:
                base_template = self._base_template
            if base_template is None:
                return body

            html = self.engine.render(
                base_template,
                self._context(snapshot, page, content=body, version=self.version.current()),
                page.url,
            )

        if self.dev_mode:
            html = inject_dev_scripts(html)
        return html

    # -- output ----------------------------------------------------------

    def build_page(self, url: str, output_dir: Path | None = None) -> Path:
        """Render one page, minify it per config and write it.

        Returns:
            The written file path.
        """
        page = self.registry.get(url)
        if page is None:
            raise RenderError("Page not found", url)
        html = self.minifier.html(self.render_page(page))
        out_path = page_output_path(output_dir or self.config.output_path, url)
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_text(html, encoding="utf-8")
        except OSError as exc:
            raise ForgeIOError(f"Cannot write file: {exc}", out_path, exc) from exc
        return out_path

    def build_all(self, output_dir: Path | None = None) -> BuildReport:
        """Write every page, continuing past per-page errors."""
        output_dir = output_dir or self.config.output_path
        report = BuildReport(output_dir=output_dir)
        start = time.perf_counter()
        for url in self.registry.snapshot().pages:
            try:
                path = self.build_page(url, output_dir)
            except ForgeError as exc:
                logger.error("Failed to build %s: %s", url, exc)
                report.pages.append(PageResult(url, False, error_kind=exc.kind, error=str(exc)))
                continue
            logger.debug("Built %s -> %s", url, path)
            report.pages.append(PageResult(url, True, output_path=path))
        report.duration_ms = (time.perf_counter() - start) * 1000
        return report

    def export_static_site(self, output_dir: Path | None = None) -> BuildReport:
        """Clean the output directory, write every page and copy assets.

        Raises:
            ConfigError: If the output directory is the project root or above it.
            ForgeIOError: If the output directory or an asset cannot be written.
        """
        output_dir = output_dir or self.config.output_path
        root = self.config.project_root.resolve()
        if output_dir.resolve() in (root, *root.parents):
            raise ConfigError("Output directory must not contain the project", output_dir)
        start = time.perf_counter()
        try:
            ensure_clean_dir(output_dir)
        except OSError as exc:
            raise ForgeIOError(f"Cannot prepare output directory: {exc}", output_dir, exc) from exc

        report = self.build_all(output_dir)
        report.assets = AssetPipeline(self.config.static_path, output_dir, self.minifier).run()
        report.duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Built %d pages (%d failed) and %d assets into %s",
            report.succeeded,
            report.failed,
            report.assets.total,
            output_dir,
        )
        return report
