from __future__ import annotations

"""Small helpers for reading build paths from config params and matching globs."""

import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List


def _get(d: Dict, *keys, default=None):
    cur = d
    for k in keys:
        if not isinstance(cur, dict):
            return default
        cur = cur.get(k)
        if cur is None:
            return default
    return cur


def dev_root(p: Dict) -> str:
    return _get(p, "project", "dev_root", default="tmp")


def prod_root(p: Dict) -> str:
    return _get(p, "project", "prod_root", default="build")


def pages_glob(p: Dict) -> str:
    return _get(p, "paths", "pages", default="site/pages/**/*.njk")


def template_paths(p: Dict) -> List[str]:
    return list(_get(p, "paths", "templates", default=["site"]))


def styles_entry(p: Dict) -> str:
    return _get(p, "paths", "styles", default="site/scss/index.scss")


def style_includes(p: Dict) -> List[str]:
    return list(
        _get(
            p,
            "paths",
            "style_includes",
            default=["site/blocks", "site/components", "site/scss/core"],
        )
    )


def scripts_entry(p: Dict) -> str:
    return _get(p, "paths", "scripts", default="site/js/index.js")


def assets_glob(p: Dict) -> str:
    return _get(p, "paths", "assets", default="site/assets/**/*")


def esbuild_bin(p: Dict) -> str:
    return _get(p, "scripts", "esbuild", default="esbuild")


def has_magic(pattern: str) -> bool:
    return any(ch in pattern for ch in "*?[")


def static_prefix(pattern: str) -> Path:
    """Longest leading directory of `pattern` that contains no wildcard."""
    parts = Path(pattern).parts
    fixed: list[str] = []
    for part in parts:
        if has_magic(part):
            break
        fixed.append(part)
    if len(fixed) == len(parts):
        # Plain file path: its directory is the prefix
        return Path(*fixed).parent if fixed else Path(".")
    return Path(*fixed) if fixed else Path(".")


@lru_cache(maxsize=256)
def _glob_regex(pattern: str) -> re.Pattern:
    pattern = pattern.replace("\\", "/")
    i, n = 0, len(pattern)
    out = []
    while i < n:
        c = pattern[i]
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif c == "*":
            out.append("[^/]*")
            i += 1
        elif c == "?":
            out.append("[^/]")
            i += 1
        elif c == "[":
            j = pattern.find("]", i + 1)
            if j == -1:
                out.append(re.escape(c))
                i += 1
            else:
                body = pattern[i + 1 : j]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = j + 1
        else:
            out.append(re.escape(c))
            i += 1
    return re.compile("".join(out) + r"\Z")


def match_glob(path: str | Path, pattern: str) -> bool:
    """Match a relative path against a glob where `**` spans directories."""
    candidate = Path(path).as_posix()
    if candidate.startswith("./"):
        candidate = candidate[2:]
    pat = pattern[2:] if pattern.startswith("./") else pattern
    return bool(_glob_regex(pat).match(candidate))


def expand_globs(patterns: Iterable[str]) -> list[Path]:
    """Expand glob patterns to existing files, sorted and de-duplicated.

    Non-glob entries are kept only if the file exists, so a missing script
    entry yields an empty input set instead of an error.
    """
    found: set[Path] = set()
    for pat in patterns:
        if not has_magic(pat):
            p = Path(pat)
            if p.is_file():
                found.add(p)
            continue
        base = static_prefix(pat)
        if not base.is_dir():
            continue
        for root, _, files in os.walk(base):
            for file in files:
                p = Path(root) / file
                if match_glob(p, pat):
                    found.add(p)
    return sorted(found)
