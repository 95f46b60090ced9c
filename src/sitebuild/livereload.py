"""Live-reload notifier: a registry of connected browser channels.

Messages are plain dicts, serialized by the dev server as Server-Sent Events:
`{"type": "inject", "paths": [...]}` swaps stylesheets in place,
`{"type": "reload"}` reloads the page.
"""

from __future__ import annotations

import itertools
import queue
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .logging import get_logger


INJECT_KINDS = {"style"}

CLIENT_SCRIPT = """(function () {
  if (!window.EventSource) { return; }
  var source = new EventSource("/__livereload/events");
  source.onmessage = function (event) {
    var msg = JSON.parse(event.data);
    if (msg.type === "inject") {
      var stamp = "livereload=" + Date.now();
      document.querySelectorAll('link[rel="stylesheet"]').forEach(function (link) {
        var href = link.getAttribute("href") || "";
        var bare = href.split("?")[0];
        var hit = msg.paths.length === 0 || msg.paths.some(function (p) {
          return bare === p || bare.endsWith(p) || ("/" + bare) === p;
        });
        if (hit) { link.setAttribute("href", bare + "?" + stamp); }
      });
    } else if (msg.type === "reload") {
      window.location.reload();
    }
  };
})();
"""


class ClientChannel:
    """One connected browser. The server drains `queue` into the response."""

    _ids = itertools.count(1)

    def __init__(self):
        self.id = next(self._ids)
        self.queue: "queue.Queue[Optional[dict]]" = queue.Queue()

    def send(self, message: Optional[dict]) -> None:
        self.queue.put(message)

    def get(self, timeout: Optional[float] = None) -> Optional[dict]:
        return self.queue.get(timeout=timeout)


class ReloadNotifier:
    def __init__(self, served_root: Path | str):
        self.served_root = Path(served_root)
        self._clients: Dict[int, ClientChannel] = {}
        self._lock = threading.Lock()
        self.logger = get_logger("livereload")

    def connect(self) -> ClientChannel:
        channel = ClientChannel()
        with self._lock:
            self._clients[channel.id] = channel
        self.logger.debug("Client %d connected", channel.id)
        return channel

    def disconnect(self, channel: ClientChannel) -> None:
        with self._lock:
            self._clients.pop(channel.id, None)
        self.logger.debug("Client %d disconnected", channel.id)

    @property
    def clients(self) -> List[ClientChannel]:
        with self._lock:
            return list(self._clients.values())

    def message_for(self, kind: Optional[str], artifacts: Iterable = ()) -> dict:
        if kind in INJECT_KINDS:
            paths = []
            for a in artifacts or ():
                p = Path(a)
                if p.suffix != ".css":
                    continue
                try:
                    paths.append("/" + p.relative_to(self.served_root).as_posix())
                except ValueError:
                    paths.append("/" + p.name)
            return {"type": "inject", "paths": paths}
        return {"type": "reload"}

    def notify(self, kind: Optional[str], artifacts: Iterable = ()) -> dict:
        """Broadcast the message for a finished task of `kind`."""
        message = self.message_for(kind, artifacts)
        clients = self.clients
        for c in clients:
            c.send(message)
        self.logger.info(
            "%s -> %d client(s)",
            "inject " + ", ".join(message["paths"]) if message["type"] == "inject" else "reload",
            len(clients),
        )
        return message

    def close(self) -> None:
        """Release every open stream; the server ends a stream on `None`."""
        for c in self.clients:
            c.send(None)
        with self._lock:
            self._clients.clear()
