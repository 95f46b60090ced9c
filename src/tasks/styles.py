"""Stylesheet tasks: SCSS entry -> single bundle via libsass.

Dev writes `css/bundle.css` plus a sourcemap. Prod writes `css/bundle.min.css`
after vendor prefixing and minification, and never a map.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import sass
import tinycss2

from ..sitebuild import Profile, TransformError, task
from ..sitebuild.utils import dev_root, prod_root, style_includes, styles_entry


# Properties still shipped with vendor prefixes for the browsers we target
VENDOR_PREFIXES: Dict[str, List[str]] = {
    "appearance": ["-webkit-", "-moz-"],
    "backdrop-filter": ["-webkit-"],
    "box-decoration-break": ["-webkit-"],
    "clip-path": ["-webkit-"],
    "hyphens": ["-webkit-"],
    "mask": ["-webkit-"],
    "mask-image": ["-webkit-"],
    "print-color-adjust": ["-webkit-"],
    "tab-size": ["-moz-"],
    "text-size-adjust": ["-webkit-", "-moz-"],
    "user-select": ["-webkit-", "-moz-"],
}

# At-rules whose block holds rules rather than declarations
RULE_LIST_AT_RULES = {"media", "supports", "document", "layer", "container", "keyframes"}

_SASS_LOCATION = re.compile(r"on line (?P<line>\d+)(?::\d+)? of (?P<file>[^\s]+)")


def _compile_error(e: sass.CompileError, fallback: str) -> TransformError:
    text = str(e).strip()
    m = _SASS_LOCATION.search(text)
    location = f"{m.group('file')}:{m.group('line')}" if m else fallback
    first = text.splitlines()[0] if text else "sass compile error"
    return TransformError(first, location)


def compile_styles(
    entry: Path,
    include_paths: List[str],
    out_css: Path,
    sourcemap: bool = False,
    output_style: str = "expanded",
) -> Tuple[str, Optional[str]]:
    """Compile one entry file. Returns (css, sourcemap json or None)."""
    kwargs = dict(
        filename=str(entry),
        include_paths=[str(p) for p in include_paths],
        output_style=output_style,
    )
    try:
        if sourcemap:
            css, smap = sass.compile(
                source_map_filename=str(out_css.with_name(out_css.name + ".map")),
                output_filename_hint=str(out_css),
                source_map_contents=True,
                **kwargs,
            )
            return css, smap
        return sass.compile(**kwargs), None
    except sass.CompileError as e:
        raise _compile_error(e, str(entry)) from e


def _parse_error(node) -> TransformError:
    return TransformError(
        f"cannot prefix stylesheet: {node.message}",
        f"<compiled css>:{node.source_line}",
    )


def _prefix_declarations(tokens) -> str:
    out = []
    for node in tinycss2.parse_declaration_list(tokens, skip_comments=False, skip_whitespace=False):
        if node.type == "error":
            raise _parse_error(node)
        if node.type != "declaration":
            out.append(node.serialize())
            continue
        value = tinycss2.serialize(node.value).strip()
        important = " !important" if node.important else ""
        for prefix in VENDOR_PREFIXES.get(node.lower_name, ()):
            out.append(f"{prefix}{node.name}: {value}{important}; ")
        out.append(f"{node.name}: {value}{important};")
    return "".join(out)


def _prefix_rules(nodes) -> str:
    out = []
    for node in nodes:
        if node.type == "error":
            raise _parse_error(node)
        if node.type == "qualified-rule":
            body = _prefix_declarations(node.content)
            out.append(f"{tinycss2.serialize(node.prelude)}{{{body}}}")
        elif node.type == "at-rule" and node.content is not None:
            keyword = node.lower_at_keyword
            if keyword.startswith("-"):
                keyword = keyword.split("-", 2)[-1]
            if keyword in RULE_LIST_AT_RULES:
                inner = tinycss2.parse_rule_list(
                    node.content, skip_comments=False, skip_whitespace=False
                )
                body = _prefix_rules(inner)
            else:
                body = _prefix_declarations(node.content)
            out.append(f"@{node.at_keyword}{tinycss2.serialize(node.prelude)}{{{body}}}")
        else:
            out.append(node.serialize())
    return "".join(out)


def autoprefix(css: str) -> str:
    """Add vendor-prefixed copies ahead of each listed declaration.

    The stylesheet is tokenized with tinycss2, so strings, `url(...)` and other
    function arguments are never split, whatever characters they contain.
    """
    rules = tinycss2.parse_stylesheet(css, skip_comments=False, skip_whitespace=False)
    return _prefix_rules(rules)


def minify_css(css: str) -> str:
    try:
        return sass.compile(string=css, output_style="compressed")
    except sass.CompileError as e:
        raise _compile_error(e, "<post-processed css>") from e


def _build_styles(ctx) -> list[Path]:
    if not ctx.inputs:
        ctx.logger.info("No stylesheet entry at %s", styles_entry(ctx.params))
        return []
    opts = ctx.options
    out_css = ctx.output_dir / opts["outfile"]
    css, smap = compile_styles(
        ctx.inputs[0],
        style_includes(ctx.params),
        out_css,
        sourcemap=opts["sourcemap"],
        output_style=opts["output_style"],
    )
    if opts["autoprefix"]:
        css = autoprefix(css)
    if opts["minify"]:
        css = minify_css(css)

    out_css.parent.mkdir(parents=True, exist_ok=True)
    out_css.write_text(css, encoding="utf-8")
    written = [out_css]
    if smap is not None:
        out_map = out_css.with_name(out_css.name + ".map")
        out_map.write_text(smap, encoding="utf-8")
        written.append(out_map)
    ctx.logger.info("Wrote %s (%d bytes)", out_css, out_css.stat().st_size)
    return written


@task(
    name="styles",
    inputs=lambda p: [styles_entry(p)],
    outputs=lambda p: [f"{dev_root(p)}/css"],
    profile=Profile.DEV,
    kind="style",
)
def styles(ctx):
    """Compile SCSS into css/bundle.css with a sourcemap."""
    return _build_styles(ctx)


@task(
    name="stylesProd",
    inputs=lambda p: [styles_entry(p)],
    outputs=lambda p: [f"{prod_root(p)}/css"],
    profile=Profile.PROD,
    kind="style",
)
def styles_prod(ctx):
    """Compile, prefix and minify SCSS into css/bundle.min.css."""
    return _build_styles(ctx)
