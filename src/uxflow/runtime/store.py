"""Run directory persistence — journal, task io files, and final output."""

from __future__ import annotations

import itertools
import json
import logging
import os
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from uxflow.agents.schemas import TaskDescriptor

logger = logging.getLogger(__name__)

RUN_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$")


def new_run_id(now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d%H%M%S")
    return f"run-{stamp}-{uuid.uuid4().hex[:8]}"


def validate_run_id(run_id: str) -> None:
    """Reject run ids that could escape the runs directory."""
    if Path(run_id).name != run_id or run_id in {".", ".."}:
        raise ValueError("Run id must not contain path separators.")
    if not RUN_ID_RE.fullmatch(run_id):
        raise ValueError(f"Invalid run_id format: {run_id!r}")


def _atomic_write_json(data: Any, target: Path) -> None:
    tmp_path = target.with_name(f".{target.name}.tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, default=str)
            handle.write("\n")
        os.replace(tmp_path, target)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


class RunStore:
    """Owns one run directory::

        <runs_dir>/<run_id>/
          run.json
          journal.jsonl
          tasks/<effectId>/task.json
          tasks/<effectId>/input.json
          tasks/<effectId>/result.json
          state/output.json
    """

    def __init__(self, runs_dir: str | Path, run_id: Optional[str] = None) -> None:
        self.run_id = run_id or new_run_id()
        validate_run_id(self.run_id)
        self.run_dir = Path(runs_dir) / self.run_id
        self._seq = 0
        self._effects = itertools.count(1)

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def create(self, process_id: str, inputs: dict[str, Any]) -> Path:
        if self.run_dir.exists():
            raise FileExistsError(f"Run directory already exists: {self.run_dir}")
        (self.run_dir / "tasks").mkdir(parents=True)
        (self.run_dir / "state").mkdir()
        _atomic_write_json(
            {
                "runId": self.run_id,
                "processId": process_id,
                "createdAt": _utc_now(),
                "inputs": inputs,
            },
            self.run_dir / "run.json",
        )
        self.append_event("RUN_CREATED", {"processId": process_id})
        logger.info("Created run %s at %s", self.run_id, self.run_dir)
        return self.run_dir

    def new_effect_id(self) -> str:
        index = next(self._effects)
        return f"ef-{index:04d}-{uuid.uuid4().hex[:6]}"

    # ------------------------------------------------------------------
    # Task io
    # ------------------------------------------------------------------

    def write_task_input(
        self,
        effect_id: str,
        descriptor: TaskDescriptor,
        args: dict[str, Any],
    ) -> Path:
        task_dir = self.run_dir / "tasks" / effect_id
        task_dir.mkdir(parents=True, exist_ok=True)
        _atomic_write_json(descriptor.to_json(), task_dir / "task.json")
        input_path = self.run_dir / descriptor.io.input_json_path
        _atomic_write_json(args, input_path)
        return input_path

    def write_task_result(self, descriptor: TaskDescriptor, result: Any) -> Path:
        output_path = self.run_dir / descriptor.io.output_json_path
        output_path.parent.mkdir(parents=True, exist_ok=True)
        _atomic_write_json(result, output_path)
        return output_path

    def read_task_result(self, effect_id: str) -> Any:
        path = self.run_dir / "tasks" / effect_id / "result.json"
        return json.loads(path.read_text(encoding="utf-8"))

    def write_output(self, output: dict[str, Any]) -> Path:
        path = self.run_dir / "state" / "output.json"
        _atomic_write_json(output, path)
        return path

    # ------------------------------------------------------------------
    # Journal
    # ------------------------------------------------------------------

    @property
    def journal_path(self) -> Path:
        return self.run_dir / "journal.jsonl"

    def append_event(self, event_type: str, data: dict[str, Any]) -> dict[str, Any]:
        """Append one event line; sequence numbers start at 1."""
        self._seq += 1
        entry = {
            "seq": self._seq,
            "id": uuid.uuid4().hex,
            "recordedAt": _utc_now(),
            "type": event_type,
            "data": data,
        }
        with open(self.journal_path, "a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry, default=str) + "\n")
        return entry

    def load_journal(self) -> list[dict[str, Any]]:
        if not self.journal_path.exists():
            return []
        entries: list[dict[str, Any]] = []
        for line in self.journal_path.read_text(encoding="utf-8").splitlines():
            if line.strip():
                entries.append(json.loads(line))
        return entries


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()
