from __future__ import annotations

import importlib
import pkgutil
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from logging import Logger
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .errors import BuildError, TransformError
from .logging import get_logger
from .utils import expand_globs
from . import variants
from .variants import ErrorPolicy, Profile


# Allow static lists or callables that build paths from params
PathSpec = Union[List[str], Callable[[dict], List[str]]]


@dataclass
class TaskSpec:
    name: str
    inputs: PathSpec
    outputs: PathSpec
    fn: Callable[["TaskContext"], Any]
    profile: Profile = Profile.ANY
    kind: Optional[str] = None
    description: str = ""


def task(
    name: str,
    inputs: PathSpec = (),
    outputs: PathSpec = (),
    profile: Profile = Profile.ANY,
    kind: Optional[str] = None,
):
    """Decorator to declare a build task on a function.

    The wrapped function receives a single `TaskContext` and returns the list of
    artifacts it wrote, or a report dict for tasks that write nothing.
    """

    def deco(fn: Callable[["TaskContext"], Any]):
        doc = (fn.__doc__ or "").strip().splitlines()
        spec = TaskSpec(
            name=name,
            inputs=inputs,
            outputs=outputs,
            fn=fn,
            profile=profile,
            kind=kind,
            description=doc[0] if doc else "",
        )
        setattr(fn, "_task_spec", spec)
        return fn

    return deco


# --- Composition tree -------------------------------------------------------


@dataclass(frozen=True)
class Step:
    name: str


@dataclass(frozen=True)
class Sequence:
    children: Tuple["Node", ...]


@dataclass(frozen=True)
class Parallel:
    children: Tuple["Node", ...]


Node = Union[Step, Sequence, Parallel]


def _as_node(item: Union[str, Node]) -> Node:
    if isinstance(item, str):
        return Step(item)
    if isinstance(item, (Step, Sequence, Parallel)):
        return item
    raise TypeError(f"Not a task name or composition node: {item!r}")


def sequence(*items: Union[str, Node]) -> Sequence:
    return Sequence(tuple(_as_node(i) for i in items))


def parallel(*items: Union[str, Node]) -> Parallel:
    return Parallel(tuple(_as_node(i) for i in items))


def step_names(node: Node) -> list[str]:
    """Names referenced by a tree, depth first, without resolving pipelines."""
    if isinstance(node, Step):
        return [node.name]
    out: list[str] = []
    for child in node.children:
        out.extend(step_names(child))
    return out


def describe(node: Node, indent: int = 0) -> str:
    pad = "  " * indent
    if isinstance(node, Step):
        return f"{pad}{node.name}"
    label = "sequence" if isinstance(node, Sequence) else "parallel"
    lines = [f"{pad}{label}"]
    lines.extend(describe(c, indent + 1) for c in node.children)
    return "\n".join(lines)


class Pipeline:
    def __init__(self, name: str, root: Node, description: str = ""):
        self.name = name
        self.root = _as_node(root)
        self.description = description

    def leaves(self) -> list[str]:
        return step_names(self.root)

    def describe(self) -> str:
        return describe(self.root)

    def __repr__(self) -> str:
        return f"Pipeline({self.name!r})"


# --- Registry ---------------------------------------------------------------


class TaskRegistry:
    def __init__(self):
        self.tasks: Dict[str, TaskSpec] = {}
        self.pipelines: Dict[str, Pipeline] = {}
        self.logger = get_logger("registry")

    def register(self, spec: TaskSpec) -> TaskSpec:
        if spec.name in self.tasks or spec.name in self.pipelines:
            raise ValueError(f"Duplicate task name: {spec.name}")
        self.tasks[spec.name] = spec
        return spec

    def add_pipeline(self, pipeline: Pipeline) -> Pipeline:
        if pipeline.name in self.tasks or pipeline.name in self.pipelines:
            raise ValueError(f"Duplicate pipeline name: {pipeline.name}")
        self.pipelines[pipeline.name] = pipeline
        return pipeline

    def resolve(self, name: str) -> Union[TaskSpec, Pipeline]:
        if name in self.tasks:
            return self.tasks[name]
        if name in self.pipelines:
            return self.pipelines[name]
        raise KeyError(f"Unknown task or pipeline: {name}")

    def task(self, name: str) -> TaskSpec:
        if name not in self.tasks:
            raise KeyError(f"Unknown task: {name}")
        return self.tasks[name]

    def names(self) -> list[str]:
        return sorted(self.tasks) + sorted(self.pipelines)

    def validate(self) -> None:
        """Every pipeline step resolves and no pipeline contains itself."""

        def visit(name: str, stack: tuple[str, ...]) -> None:
            if name in stack:
                raise ValueError("Cycle detected: " + " -> ".join(stack + (name,)))
            target = self.resolve(name)
            if isinstance(target, Pipeline):
                for leaf in target.leaves():
                    visit(leaf, stack + (name,))

        for name in self.pipelines:
            visit(name, ())

    @classmethod
    def discover(cls, package: str = "src.tasks") -> "TaskRegistry":
        """Import all modules in `package` and collect tasks and pipelines."""
        registry = cls()
        try:
            pkg = importlib.import_module(package)
        except ModuleNotFoundError:
            registry.logger.warning("No tasks package found: %s", package)
            return registry
        for m in pkgutil.iter_modules(pkg.__path__, prefix=f"{package}."):
            try:
                mod = importlib.import_module(m.name)
            except ImportError as e:
                registry.logger.warning("Failed to import %s: %s", m.name, e)
                continue
            for attr_name in dir(mod):
                obj = getattr(mod, attr_name)
                spec = getattr(obj, "_task_spec", None)
                if isinstance(spec, TaskSpec) and spec.name not in registry.tasks:
                    registry.register(spec)
                elif isinstance(obj, Pipeline) and obj.name not in registry.pipelines:
                    registry.add_pipeline(obj)
        registry.validate()
        return registry


# --- Execution --------------------------------------------------------------


@dataclass
class TaskContext:
    spec: TaskSpec
    params: dict
    options: dict
    inputs: list[Path]
    outputs: list[Path]
    logger: Logger
    runner: "Runner"

    @property
    def profile(self) -> Profile:
        return self.spec.profile

    @property
    def output_dir(self) -> Path:
        if not self.outputs:
            raise ValueError(f"Task {self.spec.name} declares no output directory")
        return self.outputs[0]


@dataclass
class TaskResult:
    name: str
    status: str
    output: Any = None
    error: Optional[str] = None
    elapsed: float = 0.0
    kind: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class Runner:
    """Executes composition trees against a registry.

    `sequence` children run back to back; `parallel` children run on a thread
    pool. Each leaf applies the error policy of its profile.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        params: dict,
        name: str = "run",
        max_workers: Optional[int] = None,
    ):
        self.registry = registry
        self.params = params
        self.name = name
        self.max_workers = max_workers
        self.logger = get_logger(self.name)

    def run(self, target: Union[str, Node]) -> list[TaskResult]:
        node = _as_node(target)
        self.logger.info("Plan:\n%s", describe(node))
        return self._run_node(node, ())

    def _run_node(self, node: Node, stack: tuple[str, ...]) -> list[TaskResult]:
        if isinstance(node, Step):
            target = self.registry.resolve(node.name)
            if isinstance(target, Pipeline):
                if target.name in stack:
                    raise ValueError(f"Cycle detected at pipeline {target.name}")
                self.logger.info("Pipeline: %s", target.name)
                return self._run_node(target.root, stack + (target.name,))
            return [self.run_task(target.name)]
        if isinstance(node, Sequence):
            results: list[TaskResult] = []
            for child in node.children:
                results.extend(self._run_node(child, stack))
            return results
        return self._run_parallel(node.children, stack)

    def _run_parallel(
        self, children: Tuple[Node, ...], stack: tuple[str, ...]
    ) -> list[TaskResult]:
        if not children:
            return []
        pool = ThreadPoolExecutor(
            max_workers=self.max_workers or len(children),
            thread_name_prefix="sitebuild",
        )
        futures = {pool.submit(self._run_node, c, stack): i for i, c in enumerate(children)}
        collected: dict[int, list[TaskResult]] = {}
        try:
            for fut in as_completed(futures):
                collected[futures[fut]] = fut.result()  # will raise if a child failed
        except BaseException:
            pool.shutdown(wait=False, cancel_futures=True)
            raise
        pool.shutdown(wait=True)
        return [r for i in sorted(collected) for r in collected[i]]

    def run_task(self, name: str) -> TaskResult:
        spec = self.registry.task(name)
        step_logger = get_logger(f"{self.name}.{name}")
        ctx = TaskContext(
            spec=spec,
            params=self.params,
            options=variants.select(spec.kind, spec.profile),
            inputs=expand_globs(_resolve_paths(spec.inputs, self.params)),
            outputs=[Path(p) for p in _resolve_paths(spec.outputs, self.params)],
            logger=step_logger,
            runner=self,
        )
        policy = variants.error_policy(spec.profile)
        started = time.perf_counter()
        step_logger.info("Run: %s", name)
        try:
            output = spec.fn(ctx)
        except TransformError as e:
            if policy is ErrorPolicy.ABORT:
                step_logger.error("Step failed (%s): %s", name, e)
                raise BuildError(name, e) from e
            step_logger.error("Step skipped (%s): %s", name, e)
            return TaskResult(
                name=name,
                status="skipped",
                error=str(e),
                elapsed=time.perf_counter() - started,
                kind=spec.kind,
            )
        except OSError as e:
            # I/O failures are fatal in every profile
            step_logger.error("I/O failure in %s: %s", name, e)
            raise BuildError(name, e) from e
        result = TaskResult(
            name=name,
            status="ok",
            output=output,
            elapsed=time.perf_counter() - started,
            kind=spec.kind,
        )
        step_logger.info("Done: %s (%.2fs)", name, result.elapsed)
        return result


def _resolve_paths(paths_spec: PathSpec, params: dict) -> list[str]:
    """Resolve a static list of paths or a callable(params) into a list[str]."""
    if callable(paths_spec):
        paths = paths_spec(params)
    else:
        paths = paths_spec
    if paths is None:
        return []
    return [str(p) for p in paths]
