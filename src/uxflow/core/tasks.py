"""Task definition builder and the YAML-backed task catalog."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from uxflow.agents.schemas import AgentPrompt, AgentSpec, TaskDescriptor, TaskIO

logger = logging.getLogger(__name__)

CATALOG_DIR = Path(__file__).resolve().parent.parent / "processes" / "catalog"


class CatalogError(Exception):
    """Raised when a task catalog file is missing or malformed."""


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class TaskContext(BaseModel):
    """Per-invocation values the host hands to a task factory."""

    effect_id: str

    @property
    def io(self) -> TaskIO:
        return task_io(self.effect_id)


def task_io(effect_id: str) -> TaskIO:
    """Return the persisted-file layout for an effect.

    Hosts expect ``tasks/<effectId>/input.json`` and
    ``tasks/<effectId>/result.json``; the paths are relative to the run dir.
    """
    return TaskIO(
        input_json_path=f"tasks/{effect_id}/input.json",
        output_json_path=f"tasks/{effect_id}/result.json",
    )


TaskFactory = Callable[[dict[str, Any], TaskContext], TaskDescriptor]


class TaskDef(BaseModel):
    """A registered task: a name plus a factory producing its descriptor."""

    model_config = ConfigDict(frozen=True)

    name: str
    factory: TaskFactory

    def build(self, args: dict[str, Any], effect_id: str) -> TaskDescriptor:
        return self.factory(args, TaskContext(effect_id=effect_id))


def define_task(name: str, factory: TaskFactory) -> TaskDef:
    """Register *factory* under *name*."""
    return TaskDef(name=name, factory=factory)


# ---------------------------------------------------------------------------
# Catalog entries
# ---------------------------------------------------------------------------


class _SafeArgs(dict):
    """format_map helper that leaves unknown placeholders untouched."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


class TaskTemplate(BaseModel):
    """One task entry of a catalog YAML file."""

    name: str
    title: str
    agent: str = "general-purpose"
    role: str
    task: str
    context: Union[str, list[str]] = "*"
    instructions: list[str] = Field(default_factory=list)
    output_format: str = "JSON"
    output_schema: dict[str, Any] = Field(default_factory=dict)
    labels: list[str] = Field(default_factory=list)

    def render_title(self, args: dict[str, Any]) -> str:
        values = _SafeArgs({k: v for k, v in args.items() if isinstance(v, (str, int, float))})
        return self.title.format_map(values)

    def select_context(self, args: dict[str, Any]) -> dict[str, Any]:
        if self.context == "*":
            return dict(args)
        return {key: args.get(key) for key in self.context}

    def describe(self, args: dict[str, Any], ctx: TaskContext) -> TaskDescriptor:
        return TaskDescriptor(
            title=self.render_title(args),
            agent=AgentSpec(
                name=self.agent,
                prompt=AgentPrompt(
                    role=self.role,
                    task=self.task,
                    context=self.select_context(args),
                    instructions=self.instructions,
                    output_format=self.output_format,
                ),
                output_schema=self.output_schema,
            ),
            io=ctx.io,
            labels=self.labels,
        )

    def as_task(self) -> TaskDef:
        return define_task(self.name, self.describe)


class TaskCatalog:
    """Task definitions loaded from a catalog YAML file.

    The file maps task names to entries::

        tasks:
          responsive-design-audit:
            title: "Phase 1: Responsive Design Audit - {projectName}"
            role: ...
            output_schema: {type: object, ...}
    """

    def __init__(self, templates: list[TaskTemplate], source: Path | None = None) -> None:
        self.source = source
        self._templates = {t.name: t for t in templates}
        self._tasks = {t.name: t.as_task() for t in templates}

    @classmethod
    def from_dict(cls, data: dict, source: Path | None = None) -> TaskCatalog:
        tasks = (data or {}).get("tasks")
        if not isinstance(tasks, dict) or not tasks:
            raise CatalogError(f"Catalog {source or '<dict>'} has no 'tasks' mapping.")

        templates: list[TaskTemplate] = []
        for name, entry in tasks.items():
            try:
                templates.append(TaskTemplate.model_validate({"name": name, **entry}))
            except (ValidationError, TypeError) as exc:
                raise CatalogError(f"Invalid task '{name}' in {source or '<dict>'}: {exc}") from exc
        return cls(templates, source=source)

    @classmethod
    def from_yaml(cls, path: str | Path) -> TaskCatalog:
        path = Path(path)
        if not path.exists():
            raise CatalogError(f"Catalog not found at {path}")
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        catalog = cls.from_dict(data, source=path)
        logger.debug("Loaded %d task(s) from %s", len(catalog), path)
        return catalog

    @classmethod
    def for_process(cls, slug: str) -> TaskCatalog:
        """Load the bundled catalog for a process, e.g. ``"responsive_design"``."""
        return cls.from_yaml(CATALOG_DIR / f"{slug}.yaml")

    def __getitem__(self, name: str) -> TaskDef:
        try:
            return self._tasks[name]
        except KeyError:
            raise KeyError(
                f"Unknown task '{name}'. Available: {', '.join(sorted(self._tasks))}"
            ) from None

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def names(self) -> list[str]:
        return list(self._tasks)

    def template(self, name: str) -> TaskTemplate:
        if name not in self._templates:
            raise KeyError(f"Unknown task '{name}'.")
        return self._templates[name]

    def templates(self) -> list[TaskTemplate]:
        return list(self._templates.values())
