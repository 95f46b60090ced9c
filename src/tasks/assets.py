"""Asset tasks: copy `site/assets/**` into the output roots.

Prod recompresses JPEG and PNG files with Pillow; every other file is copied
as-is. `compressImages` is the destructive variant that rewrites the source
images in place and is not part of any pipeline.
"""

from __future__ import annotations

import io
import shutil
from pathlib import Path
from typing import Dict

from PIL import Image, UnidentifiedImageError

from ..sitebuild import Profile, TransformError, task
from ..sitebuild.utils import _get, assets_glob, dev_root, prod_root, static_prefix


JPEG_SUFFIXES = {".jpg", ".jpeg"}
PNG_SUFFIXES = {".png"}


def image_settings(params: Dict) -> Dict:
    return {
        "jpeg_quality": int(_get(params, "images", "jpeg_quality", default=75)),
        "png_colors": int(_get(params, "images", "png_colors", default=256)),
    }


def optimize_image(src: Path, jpeg_quality: int = 75, png_colors: int = 256) -> bytes | None:
    """Recompressed bytes for a JPEG/PNG, or None for other file types."""
    suffix = src.suffix.lower()
    if suffix not in JPEG_SUFFIXES | PNG_SUFFIXES:
        return None
    try:
        with Image.open(src) as img:
            img.load()
            buf = io.BytesIO()
            if suffix in JPEG_SUFFIXES:
                if img.mode not in ("RGB", "L"):
                    img = img.convert("RGB")
                img.save(buf, format="JPEG", quality=jpeg_quality, optimize=True, progressive=True)
            else:
                if img.mode in ("RGBA", "LA") or "transparency" in img.info:
                    img = img.convert("RGBA").quantize(
                        colors=png_colors, method=Image.Quantize.FASTOCTREE
                    )
                elif img.mode != "P":
                    img = img.convert("RGB").quantize(colors=png_colors)
                img.save(buf, format="PNG", optimize=True)
    except (UnidentifiedImageError, Image.DecompressionBombError) as e:
        raise TransformError(f"cannot decode image: {e}", str(src)) from e
    return buf.getvalue()


def _copy_assets(ctx) -> list[Path]:
    base = static_prefix(assets_glob(ctx.params))
    optimize = ctx.options.get("optimize", False)
    settings = image_settings(ctx.params)
    written: list[Path] = []
    saved = 0
    for src in ctx.inputs:
        out = ctx.output_dir / src.relative_to(base)
        out.parent.mkdir(parents=True, exist_ok=True)
        data = optimize_image(src, **settings) if optimize else None
        if data is None:
            shutil.copyfile(src, out)
        else:
            original = src.stat().st_size
            # Keep the source when recompression would not shrink it
            if len(data) >= original:
                shutil.copyfile(src, out)
            else:
                out.write_bytes(data)
                saved += original - len(data)
        written.append(out)
    if optimize:
        ctx.logger.info("Copied %d asset(s), saved %d bytes", len(written), saved)
    else:
        ctx.logger.info("Copied %d asset(s)", len(written))
    return written


@task(
    name="assets",
    inputs=lambda p: [assets_glob(p)],
    outputs=lambda p: [f"{dev_root(p)}/assets"],
    profile=Profile.DEV,
    kind="asset",
)
def assets(ctx):
    """Copy assets into the dev root."""
    return _copy_assets(ctx)


@task(
    name="assetsProd",
    inputs=lambda p: [assets_glob(p)],
    outputs=lambda p: [f"{prod_root(p)}/assets"],
    profile=Profile.PROD,
    kind="asset",
)
def assets_prod(ctx):
    """Copy assets into the prod root, recompressing images."""
    return _copy_assets(ctx)


@task(
    name="compressImages",
    inputs=lambda p: [assets_glob(p)],
)
def compress_images(ctx):
    """Recompress source images in place (overwrites site/assets)."""
    settings = image_settings(ctx.params)
    report = {"files": 0, "saved": 0}
    for src in ctx.inputs:
        data = optimize_image(src, **settings)
        if data is None:
            continue
        original = src.stat().st_size
        if len(data) < original:
            src.write_bytes(data)
            report["files"] += 1
            report["saved"] += original - len(data)
            ctx.logger.info("%s: %d -> %d bytes", src, original, len(data))
    ctx.logger.info("Compressed %d image(s), saved %d bytes", report["files"], report["saved"])
    return report
