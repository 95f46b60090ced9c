"""Dev server task and the top-level pipelines."""

from __future__ import annotations

from ..sitebuild import Pipeline, Profile, parallel, sequence, task
from ..sitebuild.session import ServeSession
from ..sitebuild.utils import dev_root


@task(
    name="serve",
    outputs=lambda p: [dev_root(p)],
    profile=Profile.DEV,
)
def serve(ctx):
    """Serve the dev root with live reload and rebuild on change."""
    ServeSession(ctx.runner, ctx.params).serve_forever()


dev = Pipeline(
    "dev",
    sequence("clean", parallel("html", "styles", "scripts", "assets")),
    description="Clean, then build the dev bundle into the dev root.",
)

build = Pipeline(
    "build",
    sequence("clean", parallel("htmlProd", "stylesProd", "scriptsProd", "assetsProd")),
    description="Clean, then build the optimized bundle into the prod root.",
)

default = Pipeline(
    "default",
    sequence("dev", "serve"),
    description="Build the dev bundle and serve it with live reload.",
)
