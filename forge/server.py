"""HTTP servers for Forge.

Two front doors share one request handler:

- DevServer: renders pages on demand from the builder's registry, serves
  ``/static``, ``/version`` and the live-reload client, and runs the file
  watcher and WebSocket transport alongside.
- PreviewServer: serves a finished build from the output directory.

Routing is done by ``DevRouter``/``PreviewRouter``, which map a request path
to a ``Response`` without touching sockets.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from urllib.parse import unquote, urlsplit

from markupsafe import escape

from .assets import STATIC_URL_PREFIX
from .builder import SiteBuilder
from .content import ERROR_PAGE_URL
from .errors import ConfigError, ForgeError, ForgeIOError
from .livereload import LIVERELOAD_SCRIPT, LiveReloadNotifier, WebSocketTransport
from .watcher import start_watcher

logger = logging.getLogger(__name__)

MIME_TYPES = {
    ".html": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".json": "application/json",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".pdf": "application/pdf",
    ".xml": "application/xml",
    ".txt": "text/plain",
}
DEFAULT_MIME_TYPE = "application/octet-stream"

_WS_URL_PLACEHOLDER = re.compile(r"\{\{\s*livereload_ws_url\s*\}\}")
_NOT_FOUND_HTML = "<h1>404 - Page Not Found</h1><p>URL: {url}</p>"
_PREVIEW_NOT_FOUND_HTML = (
    "<h1>404 - Page Not Found</h1><p>The page you're looking for doesn't exist.</p>"
)


def guess_content_type(path: str | Path) -> str:
    return MIME_TYPES.get(Path(path).suffix.lower(), DEFAULT_MIME_TYPE)


@dataclass
class Response:
    status: int = 200
    body: bytes = b""
    content_type: str = "text/html"

    @classmethod
    def html(cls, text: str, status: int = 200) -> Response:
        return cls(status, text.encode("utf-8"), MIME_TYPES[".html"])


def _request_path(raw_path: str) -> str:
    return unquote(urlsplit(raw_path).path) or "/"


def _read_under(root: Path, rel: str) -> bytes | None:
    """Read ``root/rel`` if it is a file inside ``root``."""
    root = root.resolve()
    candidate = (root / rel.lstrip("/")).resolve()
    if candidate != root and root not in candidate.parents:
        return None
    if not candidate.is_file():
        return None
    return candidate.read_bytes()


def _static_response(static_dir: Path, path: str) -> Response:
    rel = path[len(STATIC_URL_PREFIX) + 1 :]
    body = _read_under(static_dir, rel)
    if body is None:
        return Response(404, b"", "text/plain")
    return Response(200, body, guess_content_type(rel))


def _is_static(path: str) -> bool:
    prefix = f"/{STATIC_URL_PREFIX}"
    return path == prefix or path.startswith(prefix + "/")


class DevRouter:
    """Maps dev server request paths to responses.

    Attributes:
        builder: Builder whose registry pages are rendered from.
        ws_url: WebSocket URL substituted into the live-reload client.
    """

    def __init__(self, builder: SiteBuilder, ws_url: str):
        self.builder = builder
        self.ws_url = ws_url

    def dispatch(self, raw_path: str) -> Response:
        path = _request_path(raw_path)
        if _is_static(path):
            return _static_response(self.builder.config.static_path, path)
        if path == "/version":
            body = json.dumps({"version": self.builder.version.current()})
            return Response(200, body.encode("utf-8"), MIME_TYPES[".json"])
        if path == "/livereload.js":
            script = _WS_URL_PLACEHOLDER.sub(self.ws_url, LIVERELOAD_SCRIPT)
            return Response(200, script.encode("utf-8"), guess_content_type(path))
        return self._page(path)

    def _page(self, path: str) -> Response:
        page = self.builder.get_page(path)
        status = 200
        if page is None:
            page = self.builder.get_page(ERROR_PAGE_URL)
            status = 404
            if page is None:
                return Response.html(_NOT_FOUND_HTML.format(url=escape(path)), 404)
        try:
            return Response.html(self.builder.render_page(page), status)
        except ForgeError as exc:
            logger.error("Error rendering %s: %s", page.url, exc)
            message = escape(str(exc))
            return Response.html(f"<h1>500 - Error rendering page</h1><pre>{message}</pre>", 500)


class PreviewRouter:
    """Maps preview request paths to files in the output directory."""

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir

    def dispatch(self, raw_path: str) -> Response:
        path = _request_path(raw_path)
        if _is_static(path):
            return _static_response(self.output_dir / STATIC_URL_PREFIX, path)
        if path == "/":
            body = _read_under(self.output_dir, "index.html")
            if body is None:
                return Response.html("<h1>500 - Error loading page</h1>", 500)
            return Response(200, body, MIME_TYPES[".html"])

        if len(path) > 1 and path.endswith("/"):
            path = path[:-1]
        rel = path if path.endswith(".html") else f"{path}/index.html"
        body = _read_under(self.output_dir, rel)
        if body is not None:
            return Response(200, body, MIME_TYPES[".html"])

        error_page = _read_under(self.output_dir, "404/index.html")
        if error_page is None:
            return Response.html(_PREVIEW_NOT_FOUND_HTML, 404)
        return Response(404, error_page, MIME_TYPES[".html"])


class _RequestHandler(BaseHTTPRequestHandler):
    """Writes a router's Response with Content-Length and Content-Type."""

    server_version = "Forge"

    def do_GET(self) -> None:
        self._respond(include_body=True)

    def do_HEAD(self) -> None:
        self._respond(include_body=False)

    def _respond(self, include_body: bool) -> None:
        response = self.server.router.dispatch(self.path)
        self.send_response(response.status)
        self.send_header("Content-Type", response.content_type)
        self.send_header("Content-Length", str(len(response.body)))
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        self.end_headers()
        if include_body:
            self.wfile.write(response.body)

    def log_request(self, code="-", size="-") -> None:
        logger.info("%s %s %s", self.command, self.path, code)

    def log_message(self, format, *args) -> None:
        logger.debug(format, *args)


class _RouterHTTPServer(HTTPServer):
    allow_reuse_address = True

    def __init__(self, address: tuple[str, int], router):
        super().__init__(address, _RequestHandler)
        self.router = router


class DevServer:
    """Development server: on-demand rendering plus live reload.

    Attributes:
        builder: Site builder, already discovered.
        host: Interface to bind.
        port: HTTP port.
        ws_port: WebSocket port.
    """

    def __init__(
        self,
        builder: SiteBuilder,
        host: str = "0.0.0.0",
        port: int | None = None,
        ws_port: int | None = None,
    ):
        self.builder = builder
        self.host = host
        self.port = builder.config.port if port is None else port
        self.ws_port = builder.config.ws_port if ws_port is None else ws_port
        self.notifier = LiveReloadNotifier()
        self.transport: WebSocketTransport | None = None
        self.httpd: _RouterHTTPServer | None = None
        self.observer = None
        self._http_thread: threading.Thread | None = None

    @property
    def ws_url(self) -> str:
        return f"ws://localhost:{self.ws_port}"

    def start(self) -> None:
        """Start the WebSocket transport, HTTP loop and watcher.

        Raises:
            TransportError: If the WebSocket port cannot be bound.
            ForgeIOError: If the HTTP port cannot be bound.
        """
        self.transport = WebSocketTransport(self.notifier, self.host, self.ws_port)
        self.transport.start()
        router = DevRouter(self.builder, self.ws_url)
        try:
            self.httpd = _RouterHTTPServer((self.host, self.port), router)
        except OSError as exc:
            self.notifier.stop()
            raise ForgeIOError(
                f"HTTP server failed to start (port {self.port}): {exc}", original_error=exc
            ) from exc
        self._http_thread = threading.Thread(
            target=self.httpd.serve_forever, name="forge-http", daemon=True
        )
        self._http_thread.start()
        self.observer = start_watcher(self.builder, self.notifier)

    def stop(self) -> None:
        """Shut down: HTTP loop, watcher, notifier, thread joins, socket close."""
        if self.httpd is not None:
            self.httpd.shutdown()
        if self.observer is not None:
            self.observer.stop()
        self.notifier.stop()
        if self.observer is not None:
            self.observer.join()
        if self._http_thread is not None:
            self._http_thread.join()
        if self.httpd is not None:
            self.httpd.server_close()
        logger.info("Dev server stopped")


class PreviewServer:
    """Serves a finished build from the output directory."""

    def __init__(self, output_dir: Path, host: str = "0.0.0.0", port: int = 8080):
        if not output_dir.is_dir():
            raise ConfigError("Build directory not found; run the build command first", output_dir)
        self.output_dir = output_dir
        self.host = host
        self.port = port

    def stats(self) -> tuple[int, int]:
        """Return (file_count, total_bytes) of the output directory."""
        files = [p for p in self.output_dir.rglob("*") if p.is_file()]
        return len(files), sum(p.stat().st_size for p in files)

    def serve_forever(self) -> None:  # pragma: no cover - integration path
        httpd = _RouterHTTPServer((self.host, self.port), PreviewRouter(self.output_dir))
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            logger.info("Preview server stopped")
        finally:
            httpd.server_close()
