"""Static asset pipeline for Forge.

Copies the static directory into ``<output>/static``. CSS, JavaScript and
HTML files pass through the configured minifier; everything else is copied
byte for byte. Files are processed concurrently in a thread pool.

Key classes:
- BaseAssetProcessor: Interface for one kind of asset.
- CSSProcessor, JSProcessor, HTMLProcessor: Minifying processors.
- StaticAssetProcessor: Byte-for-byte fallback.
- AssetProcessorRegistry: Picks a processor by priority.
- AssetPipeline: Runs the registry over the static tree.
"""

from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ForgeIOError
from .minify import Minifier

logger = logging.getLogger(__name__)

STATIC_URL_PREFIX = "static"


@dataclass
class AssetReport:
    """Per-category counts for one pipeline run."""

    css: int = 0
    js: int = 0
    html: int = 0
    copied: int = 0
    output_dir: Path | None = None
    categories: Counter = field(default_factory=Counter, repr=False)

    @property
    def total(self) -> int:
        return self.css + self.js + self.html + self.copied


class BaseAssetProcessor(ABC):
    """Base class for asset processors.

    Each subclass handles one type of asset. ``category`` names the counter
    the processor contributes to in an ``AssetReport``.
    """

    category = "copied"

    @property
    @abstractmethod
    def priority(self) -> int:
        """Return processor priority (higher = checked first)."""
        ...

    @abstractmethod
    def can_process(self, path: Path) -> bool:
        ...

    @abstractmethod
    def process(self, source: Path, dest: Path) -> None:
        """Process an asset file.

        Args:
            source: Source asset path.
            dest: Destination path for processed asset.

        Raises:
            OSError: If the source cannot be read or dest written.
        """
        ...

    def ensure_dest_dir(self, dest: Path) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)


class _TextMinifyProcessor(BaseAssetProcessor):
    """Reads a text asset, transforms it and writes the result."""

    extension = ""

    def __init__(self, transform: Callable[[str], str]):
        self.transform = transform

    def can_process(self, path: Path) -> bool:
        return path.suffix.lower() == self.extension

    def process(self, source: Path, dest: Path) -> None:
        self.ensure_dest_dir(dest)
        text = source.read_text(encoding="utf-8")
        dest.write_text(self.transform(text), encoding="utf-8")


class CSSProcessor(_TextMinifyProcessor):
    category = "css"
    extension = ".css"

    @property
    def priority(self) -> int:
        return 90


class JSProcessor(_TextMinifyProcessor):
    category = "js"
    extension = ".js"

    @property
    def priority(self) -> int:
        return 80


class HTMLProcessor(_TextMinifyProcessor):
    category = "html"
    extension = ".html"

    @property
    def priority(self) -> int:
        return 70


class StaticAssetProcessor(BaseAssetProcessor):
    """Copies static assets without modification.

    This is the fallback processor for assets that don't need
    special processing (images, fonts, etc.).
    """

    @property
    def priority(self) -> int:
        return 0

    def can_process(self, path: Path) -> bool:
        return True

    def process(self, source: Path, dest: Path) -> None:
        self.ensure_dest_dir(dest)
        shutil.copyfile(source, dest)


class AssetProcessorRegistry:
    """Registry for asset processors, checked highest priority first."""

    def __init__(self):
        self._processors: list[BaseAssetProcessor] = []

    def register(self, processor: BaseAssetProcessor) -> None:
        self._processors.append(processor)
        self._processors.sort(key=lambda p: p.priority, reverse=True)

    def get_processor(self, path: Path) -> BaseAssetProcessor | None:
        for processor in self._processors:
            if processor.can_process(path):
                return processor
        return None

    def process(self, source: Path, dest: Path) -> str | None:
        """Process an asset using the appropriate processor.

        Returns:
            The processor's category, or None if no processor matched.

        Raises:
            ForgeIOError: If the asset cannot be read or written.
        """
        processor = self.get_processor(source)
        if processor is None:
            return None
        try:
            processor.process(source, dest)
        except (OSError, UnicodeDecodeError) as exc:
            raise ForgeIOError(f"Cannot process asset: {exc}", source, exc) from exc
        return processor.category


def create_default_registry(minifier: Minifier) -> AssetProcessorRegistry:
    """Create a registry with the default processors."""
    registry = AssetProcessorRegistry()
    registry.register(CSSProcessor(minifier.css))
    registry.register(JSProcessor(minifier.js))
    registry.register(HTMLProcessor(minifier.html))
    registry.register(StaticAssetProcessor())
    return registry


class AssetPipeline:
    """Copies the static directory into the output tree.

    Attributes:
        static_dir: Directory containing source assets.
        output_dir: Site output directory; assets land in ``output_dir/static``.
        processor_registry: Registry of asset processors.
        max_workers: Thread pool size, or None for the executor default.
    """

    def __init__(
        self,
        static_dir: Path,
        output_dir: Path,
        minifier: Minifier,
        processor_registry: AssetProcessorRegistry | None = None,
        max_workers: int | None = None,
    ):
        self.static_dir = static_dir
        self.output_dir = output_dir
        self.processor_registry = processor_registry or create_default_registry(minifier)
        self.max_workers = max_workers

    @property
    def target_dir(self) -> Path:
        return self.output_dir / STATIC_URL_PREFIX

    def run(self) -> AssetReport:
        """Process every static file.

        Returns:
            AssetReport with per-category counts.

        Raises:
            ForgeIOError: On the first asset that cannot be processed.
        """
        report = AssetReport(output_dir=self.target_dir)
        if not self.static_dir.is_dir():
            logger.info("No static directory at %s; skipping assets", self.static_dir)
            return report

        sources = [p for p in sorted(self.static_dir.rglob("*")) if p.is_file()]
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [
                pool.submit(
                    self.processor_registry.process,
                    source,
                    self.target_dir / source.relative_to(self.static_dir),
                )
                for source in sources
            ]
            categories = [future.result() for future in futures]

        report.categories.update(c for c in categories if c is not None)
        report.css = report.categories["css"]
        report.js = report.categories["js"]
        report.html = report.categories["html"]
        report.copied = report.categories["copied"]
        logger.debug("Processed %d static assets into %s", report.total, self.target_dir)
        return report
