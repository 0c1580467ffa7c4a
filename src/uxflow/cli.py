"""CLI entrypoint — uxflow list, describe, validate, run."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError
from pydantic import ValidationError

from uxflow.agents.dispatch import DispatchError
from uxflow.config import RuntimeConfig
from uxflow.core.runner import FanOutPhase, ProcessDefinition
from uxflow.core.tasks import CatalogError
from uxflow.processes.registry import get_process, list_processes
from uxflow.runtime.host import TaskResultError, run_process


def _load_process(name: str) -> ProcessDefinition:
    try:
        return get_process(name)
    except KeyError as exc:
        click.echo(f"Error: {exc.args[0]}", err=True)
        sys.exit(1)


def _load_inputs(path: str | None, exit_code: int = 1) -> dict[str, Any]:
    """Read process inputs from a JSON or YAML file; ``-`` reads stdin.

    Unreadable or malformed files exit with *exit_code*.
    """
    if path is None:
        return {}
    try:
        text = sys.stdin.read() if path == "-" else Path(path).read_text()
        data = yaml.safe_load(text)
    except (OSError, yaml.YAMLError) as exc:
        click.echo(f"Error: cannot read inputs from {path}: {exc}", err=True)
        sys.exit(exit_code)
    if data is None:
        return {}
    if not isinstance(data, dict):
        click.echo("Error: inputs must be a JSON/YAML object", err=True)
        sys.exit(exit_code)
    return data


def _phase_markers(phase) -> str:
    markers = []
    if isinstance(phase, FanOutPhase):
        over = phase.over if isinstance(phase.over, str) else "<computed>"
        markers.append(f"fan-out over {over}")
    if phase.conditional:
        markers.append("conditional")
    if phase.stop is not None:
        markers.append(f"stop: {phase.stop.reason}")
    for bp in (*phase.before, *phase.breakpoints):
        kind = "gate" if bp.is_gate else "review"
        markers.append(f"{kind}: {bp.title}")
    return f"  [{'; '.join(markers)}]" if markers else ""


@click.group()
@click.version_option(package_name="uxflow")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """uxflow — Agent-driven UX/UI design workflows."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command(name="list")
def list_cmd() -> None:
    """Show the bundled processes."""
    for definition in list_processes():
        click.echo(f"{definition.name:<20} {definition.process_id}")
        click.echo(f"{'':<20} {definition.title}")


@cli.command()
@click.argument("process_name", metavar="PROCESS")
def describe(process_name: str) -> None:
    """Print the phases and input fields of PROCESS."""
    definition = _load_process(process_name)
    click.echo(f"{definition.title} ({definition.process_id})")

    click.echo("\nInputs:")
    model = definition.inputs_model
    for name, field in model.model_fields.items():
        alias = field.alias or name
        if field.is_required():
            click.echo(f"  {alias} (required)")
        else:
            default = field.get_default(call_default_factory=True)
            click.echo(f"  {alias} = {json.dumps(default, default=str)}")

    click.echo("\nPhases:")
    for idx, phase in enumerate(definition.phases, 1):
        click.echo(f"  {idx:>2}. {phase.name} -> {phase.task}{_phase_markers(phase)}")


@cli.command()
@click.argument("process_name", metavar="PROCESS")
@click.option(
    "--inputs", "inputs_path", type=click.Path(), default=None,
    help="JSON/YAML file with process inputs (or - for stdin).",
)
def validate(process_name: str, inputs_path: str | None) -> None:
    """Check PROCESS wiring, its catalog schemas and optional inputs."""
    definition = _load_process(process_name)
    problems: list[str] = []

    try:
        catalog = definition.catalog
    except CatalogError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    problems.extend(definition.validate_definition())
    for template in catalog.templates():
        try:
            Draft202012Validator.check_schema(template.output_schema)
        except SchemaError as exc:
            problems.append(f"Task '{template.name}' has an invalid output schema: {exc.message}")

    if inputs_path is not None:
        try:
            definition.parse_inputs(_load_inputs(inputs_path))
        except ValidationError as exc:
            for error in exc.errors():
                loc = ".".join(str(p) for p in error["loc"])
                problems.append(f"Input '{loc}': {error['msg']}")

    if problems:
        click.echo(f"{definition.name}: {len(problems)} problem(s)")
        for problem in problems:
            click.echo(f"  - {problem}")
        sys.exit(1)

    click.echo(f"{definition.name}: OK ({len(definition.phases)} phases, {len(catalog)} tasks)")


@cli.command()
@click.argument("process_name", metavar="PROCESS")
@click.option(
    "--inputs", "inputs_path", type=click.Path(), required=True,
    help="JSON/YAML file with process inputs (or - for stdin).",
)
@click.option("--config", "config_path", type=click.Path(), default=None, help="Path to uxflow.yaml")
@click.option("--runs-dir", type=click.Path(), default=None, help="Directory for run records.")
@click.option("--run-id", default=None, help="Explicit run id.")
@click.option(
    "--breakpoints", "breakpoint_mode",
    type=click.Choice(["auto", "prompt"]), default=None,
    help="How breakpoints are resolved.",
)
@click.option("--json-output", "json_out", is_flag=True, help="Output as JSON")
@click.pass_context
def run(
    ctx: click.Context,
    process_name: str,
    inputs_path: str,
    config_path: str | None,
    runs_dir: str | None,
    run_id: str | None,
    breakpoint_mode: str | None,
    json_out: bool,
) -> None:
    """Execute PROCESS with agent tasks and record the run."""
    definition = _load_process(process_name)
    inputs = _load_inputs(inputs_path, exit_code=2)

    try:
        config = RuntimeConfig.discover(config_path)
    except (OSError, ValidationError, yaml.YAMLError) as exc:
        click.echo(f"Error: invalid config: {exc}", err=True)
        sys.exit(2)

    updates: dict[str, Any] = {}
    if runs_dir:
        updates["runs_dir"] = Path(runs_dir)
    breakpoints = config.breakpoints
    if breakpoint_mode:
        breakpoints = breakpoints.model_copy(update={"mode": breakpoint_mode})
    if json_out:
        # Notifications must not interleave with the JSON document on stdout
        breakpoints = breakpoints.model_copy(
            update={"channels": [c for c in breakpoints.channels if c.type != "stdout"]}
        )
    updates["breakpoints"] = breakpoints
    config = config.model_copy(update=updates)

    level = logging.DEBUG if ctx.obj.get("verbose") else config.log_level.upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        output, store = asyncio.run(run_process(definition, inputs, config=config, run_id=run_id))
    except ValidationError as exc:
        click.echo(f"Error: invalid inputs for {definition.name}:\n{exc}", err=True)
        sys.exit(2)
    except (DispatchError, TaskResultError, CatalogError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)
    except (ValueError, OSError) as exc:
        click.echo(f"Error: cannot record run: {exc}", err=True)
        sys.exit(2)

    if json_out:
        click.echo(json.dumps(output, indent=2, default=str))
    else:
        _print_output(output, store.run_dir)

    if not output.get("success"):
        sys.exit(1)


def _print_output(output: dict[str, Any], run_dir: Path) -> None:
    if output.get("success"):
        click.echo(click.style("SUCCESS", fg="green", bold=True))
    else:
        click.echo(click.style("STOPPED", fg="red", bold=True))
        click.echo(f"  Reason: {output.get('reason')} (phase '{output.get('phase')}')")
    click.echo(f"  Run: {output['metadata'].get('runId')}")
    click.echo(f"  Duration: {output.get('duration')}ms")
    artifacts = output.get("artifacts") or []
    click.echo(f"  Artifacts: {len(artifacts)}")
    for artifact in artifacts:
        label = f" ({artifact['label']})" if artifact.get("label") else ""
        click.echo(f"    - {artifact.get('path')}{label}")
    click.echo(f"  Output: {run_dir / 'state' / 'output.json'}")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
