"""Script tasks: bundle the JS entry with the esbuild executable.

The bundle is a single self-executing file (`--format=iife`). `analyzeBundle`
runs the prod bundle into a temporary directory with `--metafile` and reports
sizes without leaving anything behind.
"""

from __future__ import annotations

import json
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional

from ..sitebuild import Profile, TransformError, task, variants
from ..sitebuild.utils import dev_root, esbuild_bin, prod_root, scripts_entry


def esbuild_command(
    binary: str,
    entry: Path,
    outfile: Path,
    minify: bool = False,
    sourcemap: bool = False,
    legal_comments: Optional[str] = None,
    metafile: Optional[Path] = None,
) -> List[str]:
    cmd = [
        binary,
        str(entry),
        "--bundle",
        "--format=iife",
        "--platform=browser",
        f"--outfile={outfile}",
        "--log-level=warning",
    ]
    if minify:
        cmd.append("--minify")
    if sourcemap:
        cmd.append("--sourcemap")
    if legal_comments:
        cmd.append(f"--legal-comments={legal_comments}")
    if metafile is not None:
        cmd.append(f"--metafile={metafile}")
    return cmd


def bundle(
    entry: Path,
    outfile: Path,
    options: dict,
    binary: str = "esbuild",
    metafile: Optional[Path] = None,
) -> None:
    """Run esbuild. Compile errors surface as TransformError."""
    cmd = esbuild_command(
        binary,
        entry,
        outfile,
        minify=options.get("minify", False),
        sourcemap=options.get("sourcemap", False),
        legal_comments=options.get("legal_comments"),
        metafile=metafile,
    )
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise TransformError(f"esbuild executable not found: {binary}") from e
    if proc.returncode != 0:
        detail = (proc.stderr or proc.stdout or "").strip()
        raise TransformError(f"esbuild failed: {detail}", str(entry))


def _build_scripts(ctx) -> list[Path]:
    if not ctx.inputs:
        ctx.logger.info("No script entry at %s", scripts_entry(ctx.params))
        return []
    outfile = ctx.output_dir / ctx.options["outfile"]
    outfile.parent.mkdir(parents=True, exist_ok=True)
    bundle(ctx.inputs[0], outfile, ctx.options, binary=esbuild_bin(ctx.params))
    written = [outfile]
    smap = outfile.with_name(outfile.name + ".map")
    if ctx.options["sourcemap"] and smap.exists():
        written.append(smap)
    ctx.logger.info("Wrote %s (%d bytes)", outfile, outfile.stat().st_size)
    return written


@task(
    name="scripts",
    inputs=lambda p: [scripts_entry(p)],
    outputs=lambda p: [f"{dev_root(p)}/js"],
    profile=Profile.DEV,
    kind="script",
)
def scripts(ctx):
    """Bundle the script entry into js/bundle.js with a sourcemap."""
    return _build_scripts(ctx)


@task(
    name="scriptsProd",
    inputs=lambda p: [scripts_entry(p)],
    outputs=lambda p: [f"{prod_root(p)}/js"],
    profile=Profile.PROD,
    kind="script",
)
def scripts_prod(ctx):
    """Bundle and minify the script entry into js/bundle.min.js."""
    return _build_scripts(ctx)


@task(
    name="analyzeBundle",
    inputs=lambda p: [scripts_entry(p)],
)
def analyze_bundle(ctx):
    """Report the minified bundle size and its largest inputs."""
    if not ctx.inputs:
        ctx.logger.info("No script entry at %s, nothing to analyze", scripts_entry(ctx.params))
        return {"bytes": 0, "inputs": []}
    options = variants.select("script", Profile.PROD)
    with tempfile.TemporaryDirectory(prefix="sitebuild-analyze-") as tmp:
        outfile = Path(tmp) / options["outfile"]
        meta_path = Path(tmp) / "meta.json"
        bundle(ctx.inputs[0], outfile, options, binary=esbuild_bin(ctx.params), metafile=meta_path)
        size = outfile.stat().st_size
        try:
            meta = json.loads(meta_path.read_text(encoding="utf-8"))
        except (FileNotFoundError, json.JSONDecodeError):
            meta = {}

    inputs = sorted(
        (
            {"path": path, "bytes": int(info.get("bytes", 0))}
            for path, info in (meta.get("inputs") or {}).items()
        ),
        key=lambda d: d["bytes"],
        reverse=True,
    )
    ctx.logger.info("%s: %d bytes (%.1f KiB)", options["outfile"], size, size / 1024)
    for item in inputs[:10]:
        ctx.logger.info("  %8d  %s", item["bytes"], item["path"])
    return {"bytes": size, "inputs": inputs}
