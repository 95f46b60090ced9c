import json
from pathlib import Path

import pytest
from PIL import Image

from src.sitebuild.config import DEFAULTS, deep_merge
from src.sitebuild.core import Runner, TaskRegistry
from src.sitebuild.errors import TransformError


LAYOUT = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <title>{% block title %}Site{% endblock %}</title>
    <link rel="stylesheet" href="css/bundle.css">
</head>
<body>
    {% block content %}{% endblock %}
    <script src="js/bundle.js"></script>
</body>
</html>
"""

INDEX_SCSS = """@import "variables";
@import "card";

body {
    margin: 0;
    padding: 0;
    color: $text;
    font-family: system-ui, sans-serif;
}

.page {
    max-width: 960px;
    margin: 0 auto;

    &__title {
        font-size: 2rem;
        line-height: 1.2;
    }

    &__lead {
        font-size: 1.25rem;
        color: lighten($text, 20%);
    }
}
"""

CARD_SCSS = """.card {
    border: 1px solid $text;
    border-radius: 4px;

    &__body {
        padding: 1rem;
    }
}
"""

INDEX_JS = """import { greet } from "./greet.js";

document.addEventListener("DOMContentLoaded", () => {
    const title = document.querySelector(".page__title");
    if (title) {
        title.textContent = greet("world");
    }
});
"""


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def project(tmp_path, monkeypatch):
    """A small site tree in a temp dir, with the cwd switched to it."""
    monkeypatch.chdir(tmp_path)
    site = tmp_path / "site"
    write(site / "layouts" / "base.njk", LAYOUT)
    write(
        site / "pages" / "index.njk",
        '{% extends "layouts/base.njk" %}\n'
        "{% block title %}Home{% endblock %}\n"
        '{% block content %}<h1 class="page__title">Home</h1>{% endblock %}\n',
    )
    write(
        site / "pages" / "about" / "team.njk",
        '{% extends "layouts/base.njk" %}\n'
        '{% block content %}<p class="page__lead">Team</p>{% endblock %}\n',
    )
    write(site / "scss" / "index.scss", INDEX_SCSS)
    write(site / "scss" / "core" / "_variables.scss", "$text: #1d1d1f;\n")
    write(site / "components" / "_card.scss", CARD_SCSS)
    (site / "blocks").mkdir(parents=True)
    write(site / "js" / "index.js", INDEX_JS)
    write(site / "js" / "greet.js", "export const greet = (name) => `Hello, ${name}!`;\n")

    img_dir = site / "assets" / "img"
    img_dir.mkdir(parents=True)
    Image.effect_noise((64, 64), 40).convert("RGB").save(img_dir / "photo.jpg", quality=98)
    Image.linear_gradient("L").resize((64, 64)).convert("RGB").save(img_dir / "gradient.png")
    write(site / "assets" / "icons" / "logo.svg", '<svg xmlns="http://www.w3.org/2000/svg"/>\n')
    return tmp_path


@pytest.fixture
def params(project):
    return deep_merge(DEFAULTS, {"serve": {"open": False, "port": 0}, "watch": {"interval": 0.05}})


@pytest.fixture(scope="session")
def registry():
    return TaskRegistry.discover("src.tasks")


@pytest.fixture
def runner(registry, params):
    return Runner(registry, params, name="test")


@pytest.fixture
def fake_esbuild(monkeypatch):
    """Stand-in for the esbuild executable.

    Wraps the entry in an IIFE; "minifies" by collapsing whitespace. A source
    containing `@@syntax-error` fails like a real compile error.
    """
    from src.tasks import scripts

    calls = []

    def fake_bundle(entry, outfile, options, binary="esbuild", metafile=None):
        calls.append({"entry": Path(entry), "outfile": Path(outfile), "options": dict(options)})
        source = Path(entry).read_text(encoding="utf-8")
        if "@@syntax-error" in source:
            raise TransformError("Expected \";\" but found \"@\"", f"{entry}:1")
        text = "(() => {\n" + source + "\n})();\n"
        if options.get("minify"):
            text = " ".join(text.split())
        Path(outfile).write_text(text, encoding="utf-8")
        if options.get("sourcemap"):
            Path(str(outfile) + ".map").write_text('{"version":3}', encoding="utf-8")
        if metafile is not None:
            Path(metafile).write_text(
                json.dumps({"inputs": {str(entry): {"bytes": len(source)}}}), encoding="utf-8"
            )

    monkeypatch.setattr(scripts, "bundle", fake_bundle)
    return calls


@pytest.fixture
def no_checker(monkeypatch):
    """Fail loudly if a test reaches the real HTML checker."""
    from src.tasks import validate

    def boom(*args, **kwargs):
        raise AssertionError("network checker called")

    monkeypatch.setattr(validate, "check_markup", boom)
