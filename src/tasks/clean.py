"""Clean task: wipe both output roots before a fresh build."""

from __future__ import annotations

import shutil
from pathlib import Path

from ..sitebuild import task
from ..sitebuild.utils import dev_root, prod_root


@task(
    name="clean",
    outputs=lambda p: [dev_root(p), prod_root(p)],
)
def clean(ctx):
    """Remove the dev and prod output roots entirely."""
    removed: list[Path] = []
    for root in ctx.outputs:
        if root.exists():
            shutil.rmtree(root)
            removed.append(root)
            ctx.logger.info("Removed %s", root)
    return removed
