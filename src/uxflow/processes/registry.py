"""Process registry — look up bundled process definitions by id or short name."""

from __future__ import annotations

from uxflow.core.runner import ProcessDefinition
from uxflow.processes import ab_testing, design_qa, design_sprint, responsive_design, wcag_compliance

PROCESSES: tuple[ProcessDefinition, ...] = (
    responsive_design.DEFINITION,
    wcag_compliance.DEFINITION,
    ab_testing.DEFINITION,
    design_qa.DEFINITION,
    design_sprint.DEFINITION,
)


def _aliases(definition: ProcessDefinition) -> set[str]:
    return {
        definition.process_id,
        definition.name,
        definition.catalog_slug,
        definition.process_id.rsplit("/", 1)[-1],
    }


def get_process(name: str) -> ProcessDefinition:
    """Return the definition registered under *name*.

    Accepts the full process id, the short name (``design-qa``) or the
    module name (``design_qa``).

    Raises:
        KeyError: If no process matches; the message lists the known names.
    """
    for definition in PROCESSES:
        if name in _aliases(definition):
            return definition
    available = ", ".join(d.name for d in PROCESSES)
    raise KeyError(f"Unknown process '{name}'. Available: {available}")


def list_processes() -> list[ProcessDefinition]:
    return list(PROCESSES)
