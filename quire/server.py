"""Development server behind ``quire serve``.

The site is built into a hidden staging directory which then replaces
the destination, so the HTTP server never sees a half-written site.
Watchdog reports source changes, each change triggers a rebuild, and
pages open in a browser are told to reload over a websocket.

Key classes:
- DevServer: Build, serve, watch and rebuild loop.
- ReloadBroadcaster: Websocket endpoint that pushes reload messages.
- SiteRequestHandler: HTTP handler adding the reload script to HTML pages.
"""

from __future__ import annotations

import asyncio
import functools
import io
import json
import os
import shutil
import threading
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import build_site, load_config
from .errors import QuireError

RELOAD_SCRIPT = """<script>
(() => {{
  const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
  ws.onmessage = (event) => {{
    if (JSON.parse(event.data).type === 'reload') location.reload();
  }};
}})();
</script>
"""

RELOAD_MESSAGE = json.dumps({"type": "reload"})


def inject_reload_script(html: str, script: str) -> str:
    """Insert ``script`` before the last ``</body>``, or append it."""
    head, closing, tail = html.rpartition("</body>")
    if not closing:
        return html + script
    return f"{head}{script}</body>{tail}"


def _page_for(path: Path) -> Path | None:
    # Directories serve index.html; "/about" falls back to about.html
    if path.is_dir():
        path = path / "index.html"
    elif not path.exists() and not path.suffix:
        path = path.with_name(path.name + ".html")
    return path if path.is_file() else None


class SiteRequestHandler(SimpleHTTPRequestHandler):
    """Serves the built site without caching or directory listings.

    Attributes:
        reload_script: Markup added to every HTML response.
    """

    reload_script = ""

    def end_headers(self):
        self.send_header("Cache-Control", "no-store")
        super().end_headers()

    def send_head(self):
        page = _page_for(Path(self.translate_path(self.path)))
        if page is None:
            return self._not_found()
        if page.suffix == ".html":
            return self._html(200, page.read_text(encoding="utf-8"))
        return super().send_head()

    def _html(self, status: int, html: str) -> io.BytesIO:
        body = inject_reload_script(html, self.reload_script).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        return io.BytesIO(body)

    def _not_found(self) -> io.BytesIO | None:
        custom = Path(self.directory) / "404.html"
        if custom.is_file():
            return self._html(404, custom.read_text(encoding="utf-8"))
        self.send_error(404, "File not found")
        return None


class ReloadBroadcaster:
    """Websocket endpoint telling connected pages to reload.

    The event loop runs on its own thread; ``reload`` may be called from
    any other thread.
    """

    def __init__(self, port: int):
        self.port = port
        self.clients: set = set()
        self.loop = asyncio.new_event_loop()

    def run(self) -> None:
        asyncio.set_event_loop(self.loop)
        try:
            self.loop.run_until_complete(self._serve())
        except OSError as exc:
            print(f"Live reload disabled, websocket port {self.port} unavailable: {exc}")

    async def _serve(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self.handler, "localhost", self.port):
            await asyncio.Future()

    async def handler(self, websocket) -> None:
        self.clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self.clients.discard(websocket)

    def reload(self) -> None:
        if self.loop.is_running():
            asyncio.run_coroutine_threadsafe(self.send_all(RELOAD_MESSAGE), self.loop)

    async def send_all(self, message: str) -> None:
        for websocket in list(self.clients):
            try:
                await websocket.send(message)
            except websockets.ConnectionClosed:
                self.clients.discard(websocket)

    def stop(self) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)


class DevServer:
    """Builds the site, serves it and rebuilds it when sources change.

    Attributes:
        project_root: Site root directory.
        output_dir: Destination directory served over HTTP.
        staging_dir: Hidden directory each build writes to first.
        http_port: HTTP port (``--port``, then ``port`` in the config).
        ws_port: Websocket port (``--ws-port``, then ``ws_port``, then
            the HTTP port plus one).
        broadcaster: Websocket reload endpoint.
    """

    def __init__(self, project_root: Path, http_port: int | None = None, ws_port: int | None = None):
        """Read the site configuration.

        Raises:
            QuireError: If ``_config.yml`` cannot be loaded.
        """
        self.project_root = project_root
        config = load_config(project_root) if project_root.is_dir() else {}
        self.output_dir = project_root / str(config.get("destination", "_site"))
        self.staging_dir = self.output_dir.with_name(f".{self.output_dir.name}.staging")
        self.http_port = int(http_port or config.get("port", 4000))
        self.ws_port = int(ws_port or config.get("ws_port") or self.http_port + 1)
        self.reload_script = RELOAD_SCRIPT.format(ws_port=self.ws_port)
        self.broadcaster = ReloadBroadcaster(self.ws_port)
        self._observer: Observer | None = None
        self._lock = threading.Lock()
        self._signature: tuple | None = None

    def start(self, include_drafts: bool = False) -> None:  # pragma: no cover - integration path
        self.build(include_drafts)
        self._signature = self.source_signature()
        threading.Thread(target=self._serve_http, daemon=True).start()
        threading.Thread(target=self.broadcaster.run, daemon=True).start()
        self._observer = self.watch(include_drafts)
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
        self.broadcaster.stop()

    def build(self, include_drafts: bool) -> bool:
        """Build into the staging directory and swap it into place.

        Per-item failures are printed and the rest of the site is still
        published. A failure of the whole build (unreadable config or
        data, missing root) is printed and the previous output is kept.

        Returns:
            True if new output was published.
        """
        staging = self._fresh_staging()
        try:
            result = build_site(
                self.project_root,
                include_drafts=include_drafts,
                root_url=f"http://localhost:{self.http_port}",
                output_dir_override=staging,
            )
        except QuireError as exc:
            shutil.rmtree(staging)
            print(f"Build failed: {exc}")
            return False
        for failure in result.failures:
            print(f"Build error in {failure.source_path}: {failure.message}")
        print(f"Built {len(result.written)} pages")
        self._swap_in(staging)
        return True

    def rebuild(self, include_drafts: bool) -> None:
        """Rebuild after a change and reload connected pages.

        Skipped while another rebuild is running and when no source file
        changed since the last one.
        """
        if not self._lock.acquire(blocking=False):
            return
        try:
            signature = self.source_signature()
            if signature == self._signature:
                return
            self._signature = signature
            print("Change detected; rebuilding...")
            if self.build(include_drafts):
                self.broadcaster.reload()
        finally:
            self._lock.release()

    def watch(self, include_drafts: bool) -> Observer:
        observer = Observer()
        observer.schedule(_SourceChangeHandler(self, include_drafts), str(self.project_root), recursive=True)
        observer.start()
        return observer

    def is_ignored(self, path: Path) -> bool:
        """Return True for paths whose changes never trigger a rebuild."""
        for generated in (self.output_dir, self.staging_dir, self._previous_dir):
            if path == generated or path.is_relative_to(generated):
                return True
        try:
            rel = path.relative_to(self.project_root)
        except ValueError:
            return True
        return any(part.startswith(".") for part in rel.parts)

    def source_signature(self) -> tuple:
        """Names, mtimes and sizes of every watched source file."""
        if not self.project_root.is_dir():
            return ()
        entries = []
        for path in sorted(self.project_root.rglob("*")):
            if self.is_ignored(path) or not path.is_file():
                continue
            try:
                stat = path.stat()
            except FileNotFoundError:
                continue  # removed during the walk
            rel = path.relative_to(self.project_root).as_posix()
            entries.append((rel, stat.st_mtime_ns, stat.st_size))
        return tuple(entries)

    @property
    def _previous_dir(self) -> Path:
        return self.output_dir.with_name(f".{self.output_dir.name}.previous")

    def _fresh_staging(self) -> Path:
        if self.staging_dir.exists():
            shutil.rmtree(self.staging_dir)
        self.staging_dir.mkdir(parents=True)
        return self.staging_dir

    def _swap_in(self, staging: Path) -> None:
        # The old output moves aside first; only the rename gap has no site
        previous = self._previous_dir
        if previous.exists():
            shutil.rmtree(previous)
        if self.output_dir.exists():
            os.replace(self.output_dir, previous)
        os.replace(staging, self.output_dir)
        if previous.exists():
            shutil.rmtree(previous)

    def _serve_http(self) -> None:  # pragma: no cover - integration path
        handler_cls = type(
            "BoundSiteRequestHandler", (SiteRequestHandler,), {"reload_script": self.reload_script}
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        httpd = ThreadingHTTPServer(("", self.http_port), handler)
        print(f"Serving {self.output_dir} at http://localhost:{self.http_port}")
        httpd.serve_forever()


class _SourceChangeHandler(FileSystemEventHandler):
    def __init__(self, server: DevServer, include_drafts: bool):
        super().__init__()
        self.server = server
        self.include_drafts = include_drafts

    def on_any_event(self, event):
        if event.is_directory or self.server.is_ignored(Path(event.src_path)):
            return
        self.server.rebuild(self.include_drafts)
