"""Subprocess dispatch of agent tasks to Claude Code headless or Codex CLI."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Optional

from uxflow.agents.schemas import TaskDescriptor

logger = logging.getLogger(__name__)


class DispatchError(Exception):
    """Raised when an agent task cannot be executed or its reply is unusable."""


# ---------------------------------------------------------------------------
# Prompt rendering
# ---------------------------------------------------------------------------


def render_prompt(descriptor: TaskDescriptor) -> str:
    """Render a task descriptor into a single prompt string.

    The agent is told to reply with exactly one JSON object matching the
    descriptor's output schema.
    """
    prompt = descriptor.agent.prompt
    lines = [
        f"# {descriptor.title}",
        "",
        f"Role: {prompt.role}",
        f"Task: {prompt.task}",
        "",
        "## Context",
        json.dumps(prompt.context, indent=2, default=str),
    ]
    if prompt.instructions:
        lines.extend(["", "## Instructions"])
        lines.extend(prompt.instructions)
    lines.extend(
        [
            "",
            "## Output",
            prompt.output_format,
            "Reply with a single JSON object (no prose) that validates against this JSON schema:",
            json.dumps(descriptor.agent.output_schema, indent=2),
            "",
            f"Write any files you produce relative to the task input at {descriptor.io.input_json_path}.",
        ]
    )
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Output parsing
# ---------------------------------------------------------------------------


def _strip_fences(text: str) -> str:
    """Return the body of the first markdown code fence, or *text* unchanged."""
    if "```" not in text:
        return text
    inner_lines: list[str] = []
    in_fence = False
    for line in text.splitlines():
        if line.strip().startswith("```") and not in_fence:
            in_fence = True
            continue
        if line.strip().startswith("```") and in_fence:
            break
        if in_fence:
            inner_lines.append(line)
    return "\n".join(inner_lines).strip() if inner_lines else text


def _first_json_object(text: str) -> Optional[dict[str, Any]]:
    text = _strip_fences(text.strip())
    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    # Fall back to the outermost {...} span inside surrounding prose.
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        try:
            parsed = json.loads(text[start : end + 1])
        except json.JSONDecodeError:
            return None
        if isinstance(parsed, dict):
            return parsed
    return None


def _parse_claude_output(raw: str, stderr: str = "") -> dict[str, Any]:
    """Parse the JSON output from ``claude -p --output-format json``.

    Claude Code wraps the model's reply in an envelope like::

        {"type": "result", "result": "<model text>", "is_error": false, ...}

    The inner ``result`` text must contain the task's JSON object, optionally
    inside a markdown code fence.
    """
    raw = raw.strip()
    if not raw:
        raise DispatchError(f"Empty response from claude. stderr={stderr[:200]}")

    try:
        envelope = json.loads(raw)
    except json.JSONDecodeError:
        envelope = None

    if isinstance(envelope, dict) and envelope.get("type") == "result":
        if envelope.get("is_error"):
            raise DispatchError(f"claude reported an error: {str(envelope.get('result'))[:300]}")
        inner = envelope.get("result")
        if isinstance(inner, dict):
            return inner
        parsed = _first_json_object(str(inner or ""))
    elif isinstance(envelope, dict):
        parsed = envelope
    else:
        parsed = _first_json_object(raw)

    if parsed is None:
        raise DispatchError(f"claude reply contained no JSON object: {raw[:300]}")
    return parsed


def _parse_codex_output(raw: str, stderr: str = "") -> dict[str, Any]:
    """Parse output from ``codex --quiet``: the last JSON object printed."""
    raw = raw.strip()
    if not raw:
        raise DispatchError(f"Empty response from codex. stderr={stderr[:200]}")

    parsed = _first_json_object(raw)
    if parsed is None:
        raise DispatchError(f"codex reply contained no JSON object: {raw[:300]}")
    return parsed


class AgentDispatcher:
    """Executes task descriptors via Claude Code CLI or Codex CLI subprocesses."""

    def __init__(self, workdir: Optional[str] = None) -> None:
        self.workdir = workdir

    # ------------------------------------------------------------------
    # Unified entry point
    # ------------------------------------------------------------------

    async def run_task(
        self,
        descriptor: TaskDescriptor,
        backend: str = "claude",
        max_turns: int = 30,
        timeout: int = 900,
        system_prompt: str = "",
    ) -> dict[str, Any]:
        """Run one agent task and return the JSON object it replied with.

        Args:
            descriptor: The task to execute.
            backend: Either ``"claude"`` or ``"codex"``.
            max_turns: Maximum agentic loop turns (claude only).
            timeout: Wall-clock timeout in seconds.
            system_prompt: Optional system-level instructions (claude only).

        Raises:
            DispatchError: If ``backend`` is unknown, the subprocess fails or
                times out, or the reply holds no JSON object.
        """
        prompt = render_prompt(descriptor)
        logger.debug("Dispatching task %r to %s", descriptor.title, backend)
        if backend == "claude":
            return await self.dispatch_claude(
                prompt, system_prompt=system_prompt, max_turns=max_turns, timeout=timeout
            )
        if backend == "codex":
            return await self.dispatch_codex(prompt, timeout=timeout)
        raise DispatchError(
            f"Unknown agent backend: '{backend}'. Valid backends are 'claude' and 'codex'."
        )

    # ------------------------------------------------------------------
    # Claude
    # ------------------------------------------------------------------

    async def dispatch_claude(
        self,
        prompt: str,
        system_prompt: str = "",
        max_turns: int = 30,
        timeout: int = 900,
    ) -> dict[str, Any]:
        """Run ``claude --print <prompt> --output-format json --max-turns N``."""
        cmd = [
            "claude",
            "--print",
            "--output-format",
            "json",
            "--max-turns",
            str(max_turns),
        ]
        if system_prompt:
            cmd.extend(["--system-prompt", system_prompt])
        cmd.append(prompt)

        return await self._run_subprocess(
            cmd,
            timeout=timeout,
            parser=_parse_claude_output,
            agent_name="claude",
        )

    # ------------------------------------------------------------------
    # Codex
    # ------------------------------------------------------------------

    async def dispatch_codex(
        self,
        prompt: str,
        approval_mode: str = "full-auto",
        timeout: int = 900,
    ) -> dict[str, Any]:
        """Run ``codex --quiet --approval-mode <mode> <prompt>``."""
        cmd = [
            "codex",
            "--quiet",
            "--approval-mode",
            approval_mode,
            prompt,
        ]

        return await self._run_subprocess(
            cmd,
            timeout=timeout,
            parser=_parse_codex_output,
            agent_name="codex",
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run_subprocess(
        self,
        cmd: list[str],
        timeout: int,
        parser: Callable[[str, str], dict[str, Any]],
        agent_name: str,
    ) -> dict[str, Any]:
        """Create and await a subprocess, applying timeout and error handling.

        Args:
            cmd: The full command + args list.
            timeout: Seconds before the process is killed.
            parser: Callable ``(stdout, stderr) -> dict``.
            agent_name: Human-readable name used in error messages.

        Raises:
            DispatchError: On timeout, missing CLI, or non-zero exit code with
                empty output.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.workdir,
            )
        except FileNotFoundError:
            raise DispatchError(
                f"{agent_name} CLI not found. "
                f"Ensure '{cmd[0]}' is installed and on PATH."
            )

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                proc.communicate(),
                timeout=float(timeout),
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.communicate()
            raise DispatchError(
                f"{agent_name} timed out after {timeout}s. "
                f"Command: {' '.join(cmd[:3])}..."
            )

        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")

        if proc.returncode != 0 and not stdout.strip():
            raise DispatchError(
                f"{agent_name} exited with code {proc.returncode}. "
                f"stderr={stderr[:300]}"
            )

        logger.debug(
            "%s returncode=%s stdout_len=%d",
            agent_name,
            proc.returncode,
            len(stdout),
        )
        return parser(stdout, stderr)
