import requests

from src.sitebuild.session import ServeSession


def test_default_bindings_mirror_the_source_tree(runner, params):
    session = ServeSession(runner, params, open_browser=False)
    assert [(b.patterns, b.target) for b in session.bindings] == [
        (["site/**/*.njk"], "html"),
        (["site/**/*.scss"], "styles"),
        (["site/**/*.js"], "scripts"),
        (["site/assets/**/*.*"], "assets"),
    ]


def test_successful_style_rebuild_injects_css(runner, params):
    session = ServeSession(runner, params, open_browser=False)
    channel = session.notifier.connect()

    result = session.rebuild("styles")

    assert result.ok
    assert channel.get(timeout=1) == {"type": "inject", "paths": ["/css/bundle.css"]}


def test_successful_markup_rebuild_reloads(runner, params):
    session = ServeSession(runner, params, open_browser=False)
    channel = session.notifier.connect()
    assert session.rebuild("html").ok
    assert channel.get(timeout=1) == {"type": "reload"}


def test_broken_stylesheet_keeps_the_session_alive(project, runner, params):
    session = ServeSession(runner, params, open_browser=False)
    assert session.rebuild("styles").ok
    good_css = (project / "tmp" / "css" / "bundle.css").read_text(encoding="utf-8")

    channel = session.notifier.connect()
    (project / "site" / "scss" / "index.scss").write_text("body { color: red;\n", encoding="utf-8")
    binding = next(b for b in session.bindings if b.target == "styles")
    binding.trigger()
    assert binding.wait_idle(timeout=10)

    assert session.fatal is None
    assert channel.queue.empty()
    # The previous stylesheet is still what gets served
    assert (project / "tmp" / "css" / "bundle.css").read_text(encoding="utf-8") == good_css


def test_io_failure_in_a_watched_run_stops_the_session(runner, params, monkeypatch):
    def unwritable(ctx):
        raise PermissionError("read-only")

    session = ServeSession(runner, params, open_browser=False)
    monkeypatch.setattr(runner.registry.tasks["html"], "fn", unwritable)
    binding = next(b for b in session.bindings if b.target == "html")
    binding.trigger()
    assert binding.wait_idle(timeout=5)
    assert session.fatal is not None
    assert session._stop.is_set()


def test_session_serves_the_dev_root_over_http(project, runner, params):
    (project / "tmp").mkdir()
    (project / "tmp" / "index.html").write_text("<html><body>live</body></html>", encoding="utf-8")
    with ServeSession(runner, params, open_browser=False) as session:
        body = requests.get(session.url, timeout=5).text
    assert "live" in body
    assert "/__livereload/client.js" in body
