from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from .config import load_config
from .core import Pipeline, Runner, TaskRegistry
from .errors import BuildError, ConfigError
from .logging import attach_log_file, get_logger


app = typer.Typer(add_completion=False, help="Static-site build orchestrator CLI")
log = get_logger("cli")

TASKS_PACKAGE = "src.tasks"


def _registry() -> TaskRegistry:
    return TaskRegistry.discover(TASKS_PACKAGE)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to YAML config (default configs/base.yaml)"
    ),
):
    """Without a command, build the dev bundle and serve it (`default`)."""
    ctx.obj = {"config": config}
    if ctx.invoked_subcommand is None:
        execute("default", config)


@app.command("list")
def list_tasks():
    """List tasks and pipelines."""
    registry = _registry()
    if not registry.tasks:
        typer.echo("No tasks discovered.")
        raise typer.Exit(code=0)
    typer.echo("Tasks:")
    for name in sorted(registry.tasks):
        spec = registry.tasks[name]
        typer.echo(f"- {name:<15} [{spec.profile.value}] {spec.description}")
    typer.echo("Pipelines:")
    for name in sorted(registry.pipelines):
        typer.echo(f"- {name:<15} {registry.pipelines[name].description}")


@app.command()
def graph(name: str = typer.Argument("default", help="Task or pipeline name")):
    """Print the composition tree of a pipeline."""
    registry = _registry()
    try:
        target = registry.resolve(name)
    except KeyError:
        typer.echo(f"Task not found: {name}")
        raise typer.Exit(code=1)
    typer.echo(name)
    if isinstance(target, Pipeline):
        for line in target.describe().splitlines():
            typer.echo(f"  {line}")


@app.command()
def run(
    ctx: typer.Context,
    name: str = typer.Argument("default", help="Task or pipeline name to run"),
):
    """Run a task or pipeline by name."""
    execute(name, (ctx.obj or {}).get("config"))


def execute(name: str, config: Optional[str] = None) -> None:
    try:
        params = load_config(config)
    except ConfigError as e:
        log.error("%s", e)
        raise typer.Exit(code=1)
    log_file = params.get("project", {}).get("log_file")
    if log_file:
        attach_log_file(Path(log_file))

    registry = _registry()
    if name not in registry.names():
        typer.echo(f"Task not found: {name}")
        raise typer.Exit(code=1)

    runner = Runner(registry, params, name=name)
    try:
        results = runner.run(name)
    except (BuildError, OSError) as e:
        log.error("%s aborted: %s", name, e)
        raise typer.Exit(code=1)
    skipped = [r.name for r in results if not r.ok]
    if skipped:
        log.warning("Skipped after errors: %s", ", ".join(skipped))
    log.info("Finished %s (%d task(s))", name, len(results))


def main():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
