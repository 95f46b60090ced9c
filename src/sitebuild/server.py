"""Flask dev server for the dev output root, with live-reload events."""

from __future__ import annotations

import json
import queue
from datetime import datetime
from pathlib import Path

from flask import Flask, Response, abort, jsonify, send_from_directory
from flask_cors import CORS

from .livereload import CLIENT_SCRIPT, ReloadNotifier


CLIENT_TAG = '<script src="/__livereload/client.js"></script>'
KEEPALIVE_SECONDS = 15


def inject_client(html: str) -> str:
    idx = html.lower().rfind("</body>")
    if idx == -1:
        return html + CLIENT_TAG
    return html[:idx] + CLIENT_TAG + html[idx:]


def create_app(root: Path | str, notifier: ReloadNotifier, cors: bool = True) -> Flask:
    root = Path(root).resolve()
    app = Flask(__name__, static_folder=None)
    if cors:
        CORS(app)

    @app.route("/__sitebuild/health")
    def health_check():
        return jsonify(
            {
                "status": "healthy",
                "root": str(root),
                "clients": len(notifier.clients),
                "timestamp": datetime.now().isoformat(),
            }
        )

    @app.route("/__livereload/client.js")
    def client_js():
        return Response(CLIENT_SCRIPT, mimetype="application/javascript")

    @app.route("/__livereload/events")
    def events():
        channel = notifier.connect()

        def stream():
            try:
                yield "retry: 1000\n\n"
                while True:
                    try:
                        message = channel.get(timeout=KEEPALIVE_SECONDS)
                    except queue.Empty:
                        yield ": keepalive\n\n"
                        continue
                    if message is None:
                        return
                    yield f"data: {json.dumps(message)}\n\n"
            finally:
                notifier.disconnect(channel)

        return Response(
            stream(),
            mimetype="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @app.route("/", defaults={"path": ""})
    @app.route("/<path:path>")
    def static_file(path: str):
        target = (root / path).resolve()
        if root != target and root not in target.parents:
            abort(404)
        if target.is_dir():
            target = target / "index.html"
        if not target.is_file():
            abort(404)
        if target.suffix == ".html":
            html = target.read_text(encoding="utf-8")
            return Response(inject_client(html), mimetype="text/html")
        response = send_from_directory(root, target.relative_to(root).as_posix())
        response.headers["Cache-Control"] = "no-store"
        return response

    return app
