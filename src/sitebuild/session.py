"""The process-scoped `serve` session.

Created when `serve` starts and torn down when it returns. It owns everything
that lives only while the dev server runs: the notifier and its clients, the
watch bindings, the file watcher and the HTTP server thread.
"""

from __future__ import annotations

import threading
import webbrowser
from pathlib import Path
from typing import Iterable, Optional

from werkzeug.serving import make_server

from .core import Runner, TaskResult
from .errors import BuildError
from .livereload import ReloadNotifier
from .logging import get_logger
from .server import create_app
from .utils import _get, dev_root
from .watch import FileWatcher, WatchBinding


class ServeSession:
    def __init__(self, runner: Runner, params: dict, open_browser: Optional[bool] = None):
        self.runner = runner
        self.params = params
        self.root = Path(dev_root(params))
        self.host = _get(params, "serve", "host", default="127.0.0.1")
        self.port = int(_get(params, "serve", "port", default=3000))
        self.cors = bool(_get(params, "serve", "cors", default=True))
        self.open_browser = (
            bool(_get(params, "serve", "open", default=False))
            if open_browser is None
            else open_browser
        )
        self.interval = float(_get(params, "watch", "interval", default=0.3))
        self.polling = bool(_get(params, "watch", "polling", default=False))
        self.notifier = ReloadNotifier(self.root)
        self.bindings: list[WatchBinding] = []
        self.watcher: Optional[FileWatcher] = None
        self.fatal: Optional[BaseException] = None
        self.logger = get_logger("serve")
        self._server = None
        self._server_thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        for b in _get(params, "watch", "bindings", default=[]) or []:
            self.watch(b["patterns"], b["task"])

    def watch(self, patterns: Iterable[str], task_name: str) -> WatchBinding:
        """Re-run `task_name` whenever a file matching `patterns` changes."""
        self.runner.registry.task(task_name)
        binding = WatchBinding(patterns, task_name, self.rebuild, on_error=self._fail)
        self.bindings.append(binding)
        return binding

    def rebuild(self, name: str) -> TaskResult:
        result = self.runner.run_task(name)
        if result.ok:
            artifacts = result.output if isinstance(result.output, list) else ()
            self.notifier.notify(result.kind, artifacts)
        return result

    def _fail(self, name: str, exc: BaseException) -> None:
        self.logger.error("Watched task %s failed fatally, stopping: %s", name, exc)
        self.fatal = exc
        self._stop.set()

    @property
    def url(self) -> str:
        port = self._server.server_port if self._server is not None else self.port
        return f"http://{self.host}:{port}/"

    def start(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        app = create_app(self.root, self.notifier, cors=self.cors)
        self._server = make_server(self.host, self.port, app, threaded=True)
        self._server_thread = threading.Thread(
            target=self._server.serve_forever, name="serve-http", daemon=True
        )
        self._server_thread.start()
        self.watcher = FileWatcher(self.bindings, interval=self.interval, polling=self.polling)
        self.watcher.start()
        self.logger.info("Serving %s at %s", self.root, self.url)
        if self.open_browser:
            webbrowser.open(self.url)

    def stop(self) -> None:
        self._stop.set()

    def serve_forever(self) -> None:
        self.start()
        try:
            while not self._stop.wait(0.5):
                pass
        except KeyboardInterrupt:
            self.logger.info("Interrupted, shutting down")
        finally:
            self.close()
        if self.fatal is not None:
            raise BuildError("serve", self.fatal)

    def close(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None
        for b in self.bindings:
            b.wait_idle(timeout=30)
        self.notifier.close()
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._server_thread is not None:
            self._server_thread.join(timeout=5)
            self._server_thread = None

    def __enter__(self) -> "ServeSession":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.close()
