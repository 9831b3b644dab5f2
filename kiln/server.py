"""Development server for Kiln.

Serves the built site with live reload for local authoring:
- Injects a reload script into HTML responses.
- Answers missing paths with a 404 (serving the built 404 page when present).
- Watches the stylesheet, page and template sources and rebuilds what changed.
- Tells connected browsers to reload over a websocket after each rebuild.

Rebuilds run one at a time on the server's event loop. Requests that arrive
while a rebuild is running are queued and merged, and a pending full build
replaces any partial one.

Key classes:
- DevServer: Main class for running the development server.
- _ReloadHandler: HTTP request handler that injects the reload script.
- _ChangeHandler: File system event handler that requests rebuilds.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import dataclasses
import enum
import functools
import os
import threading
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .assets import render_styles
from .build import build_site
from .content import build_pages
from .fs import move_file, remove_tree
from .html_utils import inject_reload_script
from .logging import get_logger
from .site import Site

logger = get_logger("server")

PACKAGE_DIR = Path(__file__).parent

CHANGE_EVENTS = {"created", "modified", "deleted", "moved"}

BROADCAST_TIMEOUT = 2.0

NOT_FOUND_DOCUMENT = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>404 Not Found</title></head>
<body><h1>404 Not Found</h1><p>The requested page does not exist.</p></body>
</html>
"""


class ServerState(enum.Enum):
    IDLE = "idle"
    WATCHING = "watching"
    REBUILDING = "rebuilding"
    CLOSED = "closed"


class RebuildTarget(enum.Enum):
    """What a source change requires to be rebuilt."""

    STYLES = "styles"
    PAGES = "pages"
    FULL = "full"


class _ReloadHandler(SimpleHTTPRequestHandler):
    """HTTP request handler that serves the output directory for GET only.

    Attributes:
        reload_script: Script injected into every HTML response.
        mime_types: Content types by lowercase file extension.
    """

    reload_script_template = """<script>
(() => {{
  const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
  ws.onmessage = (event) => {{
    if (event.data === 'reload') location.reload();
    if (event.data === 'shutdown') ws.close();
  }};
}})();
</script>
"""
    reload_script = reload_script_template.format(ws_port=3001)

    mime_types = {
        ".html": "text/html",
        ".js": "text/javascript",
        ".css": "text/css",
        ".json": "application/json",
        ".xml": "application/xml",
        ".txt": "text/plain",
        ".ico": "image/x-icon",
        ".png": "image/png",
        ".jpg": "image/jpg",
        ".gif": "image/gif",
        ".svg": "image/svg+xml",
        ".wav": "audio/wav",
        ".mp4": "video/mp4",
        ".woff": "application/font-woff",
        ".ttf": "application/font-ttf",
        ".eot": "application/vnd.ms-fontobject",
        ".otf": "application/font-otf",
        ".wasm": "application/wasm",
    }

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache")
        super().end_headers()

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def do_GET(self):
        target = self._resolve_path()
        try:
            payload = target.read_bytes()
        except (FileNotFoundError, NotADirectoryError):
            self._serve_404()
            return
        except OSError as exc:
            logger.error("Could not read %s: %s", target, exc)
            self._send(500, b"Internal server error", "text/plain")
            return

        content_type = self.mime_types.get(target.suffix.lower(), "application/octet-stream")
        if content_type == "text/html":
            payload = self._with_reload_script(payload)
        self._send(200, payload, content_type)

    def do_HEAD(self):
        self.send_response(405)
        self.send_header("Allow", "GET")
        self.send_header("Content-Length", "0")
        self.end_headers()

    def _resolve_path(self) -> Path:
        """Map the request path into the output directory.

        ``/`` and paths ending in a slash resolve to ``index.html``, as does
        any path naming a directory.
        """
        translated = self.translate_path(self.path)
        if translated.endswith("/") or os.path.isdir(translated):
            translated = os.path.join(translated, "index.html")
        return Path(translated)

    def _serve_404(self):
        """Serve the built 404 page when present, else a fixed document."""
        error_page = Path(self.directory) / "404" / "index.html"
        try:
            payload = error_page.read_bytes()
        except OSError:
            payload = NOT_FOUND_DOCUMENT.encode("utf-8")
        self._send(404, self._with_reload_script(payload), "text/html")

    def _with_reload_script(self, payload: bytes) -> bytes:
        html = payload.decode("utf-8", errors="replace")
        return inject_reload_script(html, self.reload_script).encode("utf-8")

    def _send(self, status: int, payload: bytes, content_type: str) -> None:
        if content_type.startswith("text/"):
            content_type = f"{content_type}; charset=utf-8"
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)


class DevServer:
    """Development server with live reload functionality.

    Attributes:
        site: Site being served and rebuilt.
        http_port: Port for the HTTP server.
        ws_port: Port for WebSocket connections.
        state: Current ServerState.
        _observer: File system observer for source changes.
        _ws_clients: Set of connected WebSocket clients.
        _loop: Event loop running the websocket server and rebuilds.
        _pending: Rebuild targets waiting for the current rebuild to finish.
    """

    def __init__(self, site: Site, http_port: int | None = None, ws_port: int | None = None):
        """Initialize the development server.

        Args:
            site: Site to build and serve.
            http_port: Optional override for the HTTP port.
            ws_port: Optional override for the WebSocket port. Defaults to
                the HTTP port plus one when only http_port is overridden.
        """
        self.site = site
        config = site.config
        self.http_port = int(http_port or config.port)
        if ws_port is not None:
            self.ws_port = ws_port
        elif http_port is not None:
            self.ws_port = self.http_port + 1
        else:
            self.ws_port = config.ws_port
        self.output_dir = config.out
        self._staging_dir = config.out.with_name(f"{config.out.name}.staging")
        self.state = ServerState.IDLE
        self._reload_script = _ReloadHandler.reload_script_template.format(ws_port=self.ws_port)
        self._observer: Observer | None = None
        self._httpd: ThreadingHTTPServer | None = None
        self._loop_thread: threading.Thread | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._stopped = asyncio.Event()
        self._pending: set[RebuildTarget] = set()
        self._worker: asyncio.Task | None = None

    def run(self) -> None:  # pragma: no cover - integration path
        """Build the site, start serving and watching, and block until Ctrl-C."""
        try:
            asyncio.run(build_site(self.site))
        except Exception as exc:
            logger.error("Initial build failed: %s", exc)

        self._loop_thread = threading.Thread(target=self._run_loop, daemon=True)
        self._loop_thread.start()
        threading.Thread(target=self._start_http, daemon=True).start()
        self._start_watcher()
        self.state = ServerState.WATCHING
        try:
            while self.state is not ServerState.CLOSED:
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Shutting down")
            self.broadcast_shutdown()
            self.close()

    def close(self) -> None:
        """Stop watchers, both listeners and the event loop."""
        if self.state is ServerState.CLOSED:
            return
        self.state = ServerState.CLOSED
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        if self._httpd:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None
        if self._loop.is_running():
            self._loop.call_soon_threadsafe(self._stopped.set)
        else:
            self._stopped.set()
        if self._loop_thread:
            self._loop_thread.join(timeout=5)

    def _start_http(self) -> None:  # pragma: no cover - integration path
        handler_cls = type(
            "_ReloadHandlerWithPort",
            (_ReloadHandler,),
            {"reload_script": self._reload_script},
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        try:
            self._httpd = ThreadingHTTPServer(("", self.http_port), handler)
        except OSError as exc:
            logger.error("HTTP server failed to start (port %d): %s", self.http_port, exc)
            return
        logger.info("Serving %s at http://localhost:%d", self.output_dir, self.http_port)
        self._httpd.serve_forever()

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._serve_ws())
        finally:
            self._loop.close()

    async def _serve_ws(self) -> None:
        """Run the websocket server until close() is called.

        When the port cannot be bound the loop keeps running so rebuilds
        still happen; browsers just are not reloaded.
        """
        try:
            async with websockets.serve(self._ws_handler, "", self.ws_port):
                logger.debug("Reload channel listening on port %d", self.ws_port)
                await self._stopped.wait()
        except OSError as exc:
            logger.error("WebSocket server failed to start (port %d): %s", self.ws_port, exc)
            await self._stopped.wait()
        await self._cancel_worker()

    async def _cancel_worker(self) -> None:
        """Cancel a rebuild still running when the server closes."""
        worker = self._worker
        if worker is None or worker.done():
            return
        worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            logger.debug("Cancelled pending rebuild")

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def broadcast_shutdown(self) -> None:
        self._broadcast("shutdown")

    def _broadcast(self, message: str) -> None:
        """Send a message to every client from outside the event loop."""
        if not self._loop.is_running():
            logger.debug("Event loop not running; dropping %r", message)
            return
        future = asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)
        try:
            future.result(timeout=BROADCAST_TIMEOUT)
        except concurrent.futures.TimeoutError:
            logger.warning("Timed out sending %r to clients", message)

    async def _async_broadcast(self, message: str) -> None:
        stale = set()
        for ws in list(self._ws_clients):
            try:
                await ws.send(message)
            except Exception:
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)

    def request_rebuild(self, target: RebuildTarget) -> None:
        """Schedule a rebuild from any thread."""
        if self._loop.is_closed():
            logger.debug("Server closed; ignoring %s rebuild", target.name.lower())
            return
        self._loop.call_soon_threadsafe(self._enqueue, target)

    def _enqueue(self, target: RebuildTarget) -> None:
        self._pending.add(target)
        if self._worker is None or self._worker.done():
            self._worker = self._loop.create_task(self._drain())

    async def _drain(self) -> None:
        while self._pending:
            pending, self._pending = self._pending, set()
            if RebuildTarget.FULL in pending:
                await self._rebuild(RebuildTarget.FULL)
                continue
            for target in (RebuildTarget.STYLES, RebuildTarget.PAGES):
                if target in pending:
                    await self._rebuild(target)

    async def _rebuild(self, target: RebuildTarget) -> None:
        """Rebuild target and tell clients to reload when it succeeds.

        A failed rebuild is logged; the previous output keeps being served.
        """
        self.state = ServerState.REBUILDING
        try:
            await self._build(target)
        except Exception as exc:
            logger.error("Rebuild failed: %s", exc)
        else:
            await self._async_broadcast("reload")
        finally:
            if self.state is ServerState.REBUILDING:
                self.state = ServerState.WATCHING

    async def _build(self, target: RebuildTarget) -> None:
        site = self.site
        if target is RebuildTarget.FULL:
            logger.info("Rebuilding site")
            await self._build_full()
            return
        if target is RebuildTarget.STYLES:
            logger.info("Rendering styles")
            before = dict(site.state.styles)
            await render_styles(site, site.config.assets.style_entry_path)
            if site.state.styles == before:
                return
        # Pages link the hashed stylesheet, so a new hash needs new pages.
        logger.info("Rendering pages")
        site.reset_pages()
        await build_pages(site)

    async def _build_full(self) -> None:
        """Build into a staging directory and swap it in on success.

        The served output is only replaced once the whole build succeeded,
        so a failing rebuild leaves the previous site in place.
        """
        site = self.site
        out = site.config.out
        staging_dir = self._staging_dir
        staging = Site(dataclasses.replace(site.config, out=staging_dir))
        await build_site(staging)
        await self._activate_staging(staging_dir)
        site.state.pages = staging.state.pages
        site.state.styles = {
            name: out / Path(emitted).name for name, emitted in staging.state.styles.items()
        }

    async def _activate_staging(self, staging_dir: Path) -> None:
        await remove_tree(self.output_dir, recursive=True, force=True)
        await move_file(staging_dir, self.output_dir)

    def _start_watcher(self) -> None:
        config = self.site.config
        watches = [
            (config.assets.style, RebuildTarget.STYLES, True),
            (config.content.pages, RebuildTarget.PAGES, False),
            (PACKAGE_DIR, RebuildTarget.FULL, True),
        ]
        observer = Observer()
        for path, target, recursive in watches:
            if not Path(path).is_dir():
                logger.warning("Not watching missing directory %s", path)
                continue
            observer.schedule(_ChangeHandler(self, target), str(path), recursive=recursive)
        observer.start()
        self._observer = observer


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, server: DevServer, target: RebuildTarget):
        super().__init__()
        self.server = server
        self.target = target

    def on_any_event(self, event):
        if event.is_directory or event.event_type not in CHANGE_EVENTS:
            return
        path = Path(os.fsdecode(event.src_path))
        if "__pycache__" in path.parts or path.name.endswith("~"):
            return
        logger.info("Change detected in %s", path.name)
        self.server.request_rebuild(self.target)
