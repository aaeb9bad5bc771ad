"""Live-reload notification for the Forge dev server.

``LiveReloadNotifier`` is a thread-safe registry of subscribers. A rebuild
broadcasts ``{"type": <change_type>, "version": <int>}`` to every subscriber;
one failing subscriber never stops the others.

``WebSocketTransport`` runs a ``websockets`` server on its own asyncio loop
thread and registers each browser connection as a subscriber.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from typing import Protocol

import websockets

from .errors import TransportError

logger = logging.getLogger(__name__)

SEND_TIMEOUT = 5.0
START_TIMEOUT = 5.0

LIVERELOAD_SCRIPT = """\
(function () {
  var url = "{{ livereload_ws_url }}";
  var retryDelay = 1000;

  function connect() {
    var socket = new WebSocket(url);
    socket.onopen = function () {
      console.log("[forge] live reload connected");
    };
    socket.onmessage = function (event) {
      var data = {};
      try {
        data = JSON.parse(event.data || "{}");
      } catch (err) {
        return;
      }
      console.log("[forge] " + (data.type || "change") + " changed, reloading");
      window.location.reload();
    };
    socket.onclose = function () {
      setTimeout(connect, retryDelay);
    };
  }

  connect();
})();
"""


class Subscriber(Protocol):
    closed: bool

    def send(self, message: str) -> None: ...

    def close(self) -> None: ...


class Transport(Protocol):
    def close(self) -> None: ...


def reload_message(change_type: str, version: int) -> str:
    return json.dumps({"type": change_type, "version": version})


class LiveReloadNotifier:
    """Thread-safe subscriber registry with broadcast.

    Attributes:
        transport: Server owning the subscriber connections, closed on stop.
    """

    def __init__(self, transport: Transport | None = None):
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []
        self._stopped = False
        self.transport = transport

    def attach(self, transport: Transport) -> None:
        self.transport = transport

    @property
    def stopped(self) -> bool:
        with self._lock:
            return self._stopped

    def add(self, subscriber: Subscriber) -> bool:
        """Register a subscriber. Returns False once the notifier is stopped."""
        with self._lock:
            if self._stopped:
                return False
            if subscriber not in self._subscribers:
                self._subscribers.append(subscriber)
            total = len(self._subscribers)
        logger.debug("Subscriber added (%d connected)", total)
        return True

    def remove(self, subscriber: Subscriber) -> None:
        with self._lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

    def count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def broadcast(self, change_type: str, version: int) -> int:
        """Send a reload message to every open subscriber.

        Sends happen outside the lock against a snapshot of the registry.

        Returns:
            Number of subscribers the message was delivered to.
        """
        with self._lock:
            if self._stopped:
                return 0
            targets = list(self._subscribers)

        message = reload_message(change_type, version)
        sent = 0
        for subscriber in targets:
            if subscriber.closed:
                continue
            try:
                subscriber.send(message)
            except Exception as exc:
                logger.warning("Failed to notify live-reload subscriber: %s", exc)
                continue
            sent += 1
        logger.info("Sent %s reload (version %d) to %d client(s)", change_type, version, sent)
        return sent

    def stop(self) -> None:
        """Disconnect everyone and close the transport. Safe to call twice."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            subscribers = list(self._subscribers)
            self._subscribers.clear()
            transport = self.transport

        for subscriber in subscribers:
            try:
                subscriber.close()
            except Exception as exc:
                logger.debug("Error closing subscriber: %s", exc)
        if transport is not None:
            transport.close()


class _WebSocketSubscriber:
    """Adapts a connection living on the transport's loop to ``Subscriber``."""

    def __init__(self, websocket, loop: asyncio.AbstractEventLoop):
        self.websocket = websocket
        self.loop = loop
        self.closed = False

    def send(self, message: str) -> None:
        if self.loop.is_closed():
            raise TransportError("WebSocket loop is closed")
        future = asyncio.run_coroutine_threadsafe(self.websocket.send(message), self.loop)
        try:
            future.result(timeout=SEND_TIMEOUT)
        except websockets.ConnectionClosed as exc:
            self.closed = True
            raise TransportError(f"Connection closed: {exc}", original_error=exc) from exc

    def close(self) -> None:
        if self.closed or self.loop.is_closed():
            return
        self.closed = True
        asyncio.run_coroutine_threadsafe(self.websocket.close(), self.loop)


class WebSocketTransport:
    """WebSocket server running on a dedicated asyncio loop thread.

    Attributes:
        notifier: Registry that connections are added to.
        host: Interface to bind.
        port: Port to bind; 0 picks a free port, see ``bound_port``.
    """

    def __init__(self, notifier: LiveReloadNotifier, host: str = "0.0.0.0", port: int = 8081):
        self.notifier = notifier
        self.host = host
        self.port = port
        self.bound_port: int | None = None
        self._loop = asyncio.new_event_loop()
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()
        self._stop_event: asyncio.Event | None = None
        self._error: OSError | None = None
        notifier.attach(self)

    def start(self) -> None:
        """Start serving; returns once the socket is bound.

        Raises:
            TransportError: If the server cannot bind its port.
        """
        self._thread = threading.Thread(target=self._run, name="forge-websocket", daemon=True)
        self._thread.start()
        self._ready.wait(START_TIMEOUT)
        if self._error is not None:
            raise TransportError(
                f"WebSocket server failed to start (port {self.port}): {self._error}",
                original_error=self._error,
            )

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._serve())
        except OSError as exc:
            self._error = exc
        finally:
            self._ready.set()
            self._loop.close()

    async def _serve(self) -> None:
        self._stop_event = asyncio.Event()
        async with websockets.serve(self._handler, self.host, self.port) as server:
            self.bound_port = next(iter(server.sockets)).getsockname()[1]
            self._ready.set()
            await self._stop_event.wait()

    async def _handler(self, websocket) -> None:
        subscriber = _WebSocketSubscriber(websocket, self._loop)
        if not self.notifier.add(subscriber):
            await websocket.close()
            return
        logger.info("Live-reload client connected from %s", websocket.remote_address)
        try:
            async for message in websocket:
                logger.debug("Ignoring client message: %r", message)
        except websockets.ConnectionClosedError as exc:
            logger.debug("Live-reload connection dropped: %s", exc)
        finally:
            subscriber.closed = True
            self.notifier.remove(subscriber)
            logger.info("Live-reload client disconnected")

    def close(self) -> None:
        """Stop the server and join the loop thread."""
        if self._stop_event is not None and not self._loop.is_closed():
            try:
                self._loop.call_soon_threadsafe(self._stop_event.set)
            except RuntimeError:
                logger.debug("WebSocket loop already closed")
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(START_TIMEOUT)
