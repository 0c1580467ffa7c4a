"""Pydantic models for agent task descriptors, artifacts, and breakpoints."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Artifact(BaseModel):
    """Reference to a file produced by an agent task."""

    model_config = ConfigDict(extra="allow", frozen=True)

    path: str | None = None
    format: str | None = None
    label: str | None = None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class AgentPrompt(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    role: str
    task: str
    context: dict[str, Any] = Field(default_factory=dict)
    instructions: list[str] = Field(default_factory=list)
    output_format: str = Field(default="JSON", alias="outputFormat")


class AgentSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = "general-purpose"
    prompt: AgentPrompt
    output_schema: dict[str, Any] = Field(default_factory=dict, alias="outputSchema")


class TaskIO(BaseModel):
    """Where the host persists a task's input and result JSON."""

    model_config = ConfigDict(populate_by_name=True)

    input_json_path: str = Field(alias="inputJsonPath")
    output_json_path: str = Field(alias="outputJsonPath")


class TaskDescriptor(BaseModel):
    """Declarative description of one agent task invocation."""

    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["agent"] = "agent"
    title: str
    agent: AgentSpec
    io: TaskIO
    labels: list[str] = Field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        """Return the camelCase wire shape consumed by agent hosts."""
        return self.model_dump(by_alias=True, mode="json")


class BreakpointRequest(BaseModel):
    """A human-review pause point raised by a process."""

    title: str
    question: str
    context: dict[str, Any] = Field(default_factory=dict)
    severity: Literal["info", "warning"] = "info"


class BreakpointDecision(BaseModel):
    """How a breakpoint was resolved.

    Processes never branch on the decision; it is recorded for audit only.
    """

    approved: bool = True
    response: str | None = None
    resolved_by: str = "auto"
    notified: list[str] = Field(default_factory=list)
