"""Page rendering tasks.

Renders `site/pages/**/*.njk` with Jinja2 (the page templates use the Nunjucks
subset Jinja understands: extends, block, include, set, for, if) and writes one
`.html` file per page, keeping the directory layout below the pages folder.
The prod variant rewrites references to the unminified bundles.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Sequence, Tuple

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from ..sitebuild import Profile, TransformError, task
from ..sitebuild.utils import (
    dev_root,
    pages_glob,
    prod_root,
    static_prefix,
    template_paths,
)


def _template_name(page: Path, search_paths: Sequence[Path]) -> str:
    page = page.resolve()
    for base in search_paths:
        try:
            return page.relative_to(base.resolve()).as_posix()
        except ValueError:
            continue
    raise TransformError("page is outside every template search path", str(page))


def render_pages(
    pages: List[Path], search_paths: Sequence[str], pages_base: Path
) -> Dict[Path, str]:
    """Render pages to {output path relative to the root: html}."""
    paths = [Path(s) for s in search_paths] + [pages_base]
    env = Environment(
        loader=FileSystemLoader([str(p) for p in paths]),
        autoescape=select_autoescape(["html", "njk"]),
        keep_trailing_newline=True,
    )
    rendered: Dict[Path, str] = {}
    for page in pages:
        name = _template_name(page, paths)
        try:
            html = env.get_template(name).render()
        except TemplateError as e:
            lineno = getattr(e, "lineno", None)
            where = getattr(e, "filename", None) or str(page)
            location = f"{where}:{lineno}" if lineno else where
            raise TransformError(f"{type(e).__name__}: {e.message or e}", location) from e
        rendered[page.relative_to(pages_base).with_suffix(".html")] = html
    return rendered


def rewrite_references(html: str, rewrites: Sequence[Tuple[str, str]]) -> str:
    for old, new in rewrites:
        html = html.replace(old, new)
    return html


def _build_pages(ctx) -> list[Path]:
    if not ctx.inputs:
        ctx.logger.info("No pages matched %s", pages_glob(ctx.params))
        return []
    base = static_prefix(pages_glob(ctx.params))
    rendered = render_pages(ctx.inputs, template_paths(ctx.params), base)
    rewrites = ctx.options.get("rewrites", [])
    written: list[Path] = []
    for rel, html in sorted(rendered.items()):
        out = ctx.output_dir / rel
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(rewrite_references(html, rewrites), encoding="utf-8")
        written.append(out)
    ctx.logger.info("Rendered %d page(s) into %s", len(written), ctx.output_dir)
    return written


@task(
    name="html",
    inputs=lambda p: [pages_glob(p)],
    outputs=lambda p: [dev_root(p)],
    profile=Profile.DEV,
    kind="markup",
)
def html(ctx):
    """Render pages into the dev root."""
    return _build_pages(ctx)


@task(
    name="htmlProd",
    inputs=lambda p: [pages_glob(p)],
    outputs=lambda p: [prod_root(p)],
    profile=Profile.PROD,
    kind="markup",
)
def html_prod(ctx):
    """Render pages into the prod root, pointing them at minified bundles."""
    return _build_pages(ctx)
