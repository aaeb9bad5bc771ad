"""File watching for the Forge dev server.

A watchdog observer reports changes under the content, templates and static
folders to ``ChangeListener``. The listener classifies each change, asks the
builder for a full rebuild, and on success broadcasts the new version through
the notifier it was constructed with.
"""

from __future__ import annotations

import logging
from pathlib import Path

from watchdog.events import FileCreatedEvent, FileModifiedEvent, FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .builder import RebuildResult, SiteBuilder
from .config import SiteConfig
from .livereload import LiveReloadNotifier

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({".md", ".yaml", ".yml", ".html", ".css", ".js"})
_ACTED_EVENTS = (FileCreatedEvent, FileModifiedEvent)


def is_relevant(path: Path) -> bool:
    if path.name.startswith((".", "~")):
        return False
    return path.suffix.lower() in ALLOWED_EXTENSIONS


def _is_within(path: Path, folder: Path) -> bool:
    try:
        path.absolute().relative_to(folder.absolute())
    except ValueError:
        return False
    return True


def classify_change(path: Path, config: SiteConfig) -> str:
    """Classify a changed file.

    Checked in order: under the templates folder, ``.css``, ``.js``,
    ``.yaml``/``.yml``, under the content folder; anything else is a plain
    ``reload``.
    """
    suffix = path.suffix.lower()
    if _is_within(path, config.templates_path):
        return "template"
    if suffix == ".css":
        return "css"
    if suffix == ".js":
        return "js"
    if suffix in (".yaml", ".yml"):
        return "config"
    if _is_within(path, config.content_path):
        return "content"
    return "reload"


class ChangeListener(FileSystemEventHandler):
    """Rebuilds the site and notifies live-reload clients on file changes.

    Attributes:
        builder: Site builder to rebuild.
        notifier: Notifier that receives successful rebuilds.
    """

    def __init__(self, builder: SiteBuilder, notifier: LiveReloadNotifier):
        super().__init__()
        self.builder = builder
        self.notifier = notifier

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or not isinstance(event, _ACTED_EVENTS):
            return
        path = Path(event.src_path if isinstance(event.src_path, str) else event.src_path.decode())
        if not is_relevant(path):
            return
        self.handle_change(path)

    def handle_change(self, path: Path) -> RebuildResult:
        change_type = classify_change(path, self.builder.config)
        logger.info("%s changed (%s)", path.name, change_type)
        result = self.builder.rebuild(change_type)
        if result.ok:
            self.notifier.broadcast(change_type, result.version)
        else:
            logger.error("Not reloading clients; rebuild failed: %s", result.error)
        return result


def start_watcher(builder: SiteBuilder, notifier: LiveReloadNotifier) -> Observer:
    """Schedule a recursive watch on each source folder and start observing.

    Missing folders are skipped with a warning.
    """
    config = builder.config
    listener = ChangeListener(builder, notifier)
    observer = Observer()
    for folder in (config.content_path, config.templates_path, config.static_path):
        if not folder.is_dir():
            logger.warning("Not watching %s: directory does not exist", folder)
            continue
        observer.schedule(listener, str(folder), recursive=True)
        logger.debug("Watching %s", folder)
    observer.start()
    return observer
