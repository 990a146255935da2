"""Live preview server for Fleen.

Unlike a full build, the preview renders each request on the fly straight
from the site root:
- ``/`` serves the configured default document.
- ``/foo.html`` falls back to rendering ``foo.md`` when no such file exists.
- Raw files are passed through byte for byte with a guessed content type.
- Directories, underscore paths and missing files are 404s.
- A render error is a 500 carrying the error text, for that request only.

HTML responses get a live reload script injected; a watchdog observer on the
site root tells connected browsers to reload on any change.

Key classes:
- PreviewServer: Runs the HTTP server, websocket server and watcher.
- _PreviewHandler: HTTP request handler resolving each request.
- _ChangeHandler: File system event handler triggering reloads.
"""

from __future__ import annotations

import asyncio
import json
import threading
import time
from collections.abc import Callable
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .content import DEFAULT_DOCUMENT, resolve_request
from .errors import FleenError
from .outputs import Hidden, RawFile, Rendered
from .renderers import MarkdownRenderer

RELOAD_MESSAGE = json.dumps({"type": "reload"})


class _PreviewHandler(SimpleHTTPRequestHandler):
    """HTTP request handler that renders the site root per request.

    Attributes:
        root: Site root directory.
        default_document: Document served for ``/``.
        renderer: Markdown renderer shared by all requests (stateless).
        reload_script: JavaScript injected into HTML pages.
    """

    root: Path = Path(".")
    default_document: str = DEFAULT_DOCUMENT
    renderer: MarkdownRenderer | None = None

    reload_script_template = """
    <script>
    (() => {{
      const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
      ws.onmessage = (event) => {{
        const data = JSON.parse(event.data || '{{}}');
        if (data.type === 'reload') location.reload();
      }};
    }})();
    </script>
    """
    reload_script = ""

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def list_directory(self, path):  # pragma: no cover - send_head never lists
        return self._send_not_found()

    def _send_bytes(self, status: int, body: bytes, content_type: str):
        self.send_response(status)
        self.send_header("Content-type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)
        return None

    def _send_html(self, content: str):
        if self.reload_script:
            if "</body>" in content:
                content = content.replace("</body>", f"{self.reload_script}</body>")
            else:
                content += self.reload_script
        return self._send_bytes(200, content.encode("utf-8"), "text/html; charset=utf-8")

    def _send_not_found(self):
        return self._send_bytes(404, b"Not found", "text/plain; charset=utf-8")

    def _send_error_text(self, message: str):
        return self._send_bytes(500, message.encode("utf-8"), "text/plain; charset=utf-8")

    def send_head(self):
        try:
            output = resolve_request(
                self.path, self.root, self.default_document, self.renderer
            )
        except FleenError as exc:
            return self._send_error_text(exc.message)
        except OSError:
            return self._send_not_found()

        if isinstance(output, (Rendered, Hidden)):
            return self._send_html(output.content)
        if isinstance(output, RawFile):
            source = self.root / output.path
            try:
                data = source.read_bytes()
            except OSError as exc:
                return self._send_error_text(f"Error reading {output.path}: {exc}")
            return self._send_bytes(200, data, self.guess_type(str(source)))
        return self._send_not_found()


class PreviewServer:
    """Live preview server for a site root.

    Attributes:
        root: Site root directory.
        http_port: Port for the HTTP server (0 picks a free port on start).
        ws_port: Port for the live reload websocket server.
        default_document: Document served for ``/``.
        live_reload: Whether to run the websocket server and watcher.
        on_change: Called with no arguments on every filesystem change,
            typically a tree cache's invalidate().
    """

    def __init__(
        self,
        root: Path,
        http_port: int = 3000,
        ws_port: int | None = None,
        default_document: str = DEFAULT_DOCUMENT,
        renderer: MarkdownRenderer | None = None,
        live_reload: bool = True,
        on_change: Callable[[], None] | None = None,
    ):
        self.root = root
        self.http_port = http_port
        self.ws_port = ws_port if ws_port is not None else http_port + 1
        self.default_document = default_document
        self.renderer = renderer or MarkdownRenderer()
        self.live_reload = live_reload
        self.on_change = on_change
        self._httpd: ThreadingHTTPServer | None = None
        self._observer: Observer | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._ws_stop: asyncio.Future | None = None
        self._last_reload_at = 0.0
        self._debounce_seconds = 0.1

    @property
    def url(self) -> str:
        return f"http://localhost:{self.http_port}"

    def handler_class(self) -> type[_PreviewHandler]:
        """Build a handler class bound to this server's root and settings."""
        reload_script = (
            _PreviewHandler.reload_script_template.format(ws_port=self.ws_port)
            if self.live_reload
            else ""
        )
        return type(
            "_PreviewHandlerForSite",
            (_PreviewHandler,),
            {
                "root": self.root,
                "default_document": self.default_document,
                "renderer": self.renderer,
                "reload_script": reload_script,
            },
        )

    def start(self) -> None:
        """Start serving in the background and return immediately.

        Raises:
            OSError: If the HTTP port cannot be bound.
        """
        self._httpd = ThreadingHTTPServer(("", self.http_port), self.handler_class())
        self.http_port = self._httpd.server_address[1]
        threading.Thread(target=self._httpd.serve_forever, daemon=True).start()
        print(f"Serving {self.root} at {self.url}")
        if self.live_reload:
            threading.Thread(target=self._start_ws, daemon=True).start()
        self._start_watcher()

    def serve_forever(self) -> None:  # pragma: no cover - integration path
        """Start, then block until interrupted."""
        self.start()
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        """Stop the HTTP server, watcher and websocket server."""
        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        if self._ws_stop is not None:
            self._loop.call_soon_threadsafe(self._finish_ws)

    def _finish_ws(self) -> None:
        if self._ws_stop is not None and not self._ws_stop.done():
            self._ws_stop.set_result(None)

    def _start_ws(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            print(f"WebSocket server failed to start (port {self.ws_port}): {exc}")

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        self._ws_stop = self._loop.create_future()
        async with websockets.serve(self._track_client, "0.0.0.0", self.ws_port):
            await self._ws_stop

    async def _track_client(self, websocket) -> None:
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _send_reload(self) -> None:
        asyncio.run_coroutine_threadsafe(self._reload_clients(), self._loop)

    async def _reload_clients(self) -> None:
        """Tell every browser to reload, dropping clients whose send fails."""
        clients = list(self._ws_clients)
        results = await asyncio.gather(
            *(client.send(RELOAD_MESSAGE) for client in clients),
            return_exceptions=True,
        )
        for client, result in zip(clients, results):
            if isinstance(result, Exception):
                self._ws_clients.discard(client)

    def _start_watcher(self) -> None:
        if not self.live_reload and self.on_change is None:
            return
        observer = Observer()
        observer.schedule(_ChangeHandler(self), str(self.root), recursive=True)
        observer.start()
        self._observer = observer

    def notify_change(self) -> None:
        """React to a source change: invalidate caches and reload browsers."""
        if self.on_change is not None:
            self.on_change()
        if not self.live_reload:
            return
        now = time.time()
        if now - self._last_reload_at < self._debounce_seconds:
            return
        self._last_reload_at = now
        print("Change detected; reloading...")
        self._send_reload()


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, server: PreviewServer):
        super().__init__()
        self.server = server

    def on_any_event(self, event):
        path = Path(event.src_path).resolve()
        try:
            rel = path.relative_to(self.server.root.resolve())
        except ValueError:
            return
        # Editor swap files, .git and friends
        if any(part.startswith(".") for part in rel.parts):
            return
        self.server.notify_change()
