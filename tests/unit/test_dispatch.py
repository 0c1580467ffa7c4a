"""Tests for AgentDispatcher — prompt rendering, subprocess dispatch, CLI arg
verification, JSON reply parsing and timeout handling."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from uxflow.agents.dispatch import (
    AgentDispatcher,
    DispatchError,
    _first_json_object,
    _parse_claude_output,
    _parse_codex_output,
    _strip_fences,
    render_prompt,
)
from uxflow.core.tasks import TaskCatalog

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_proc(
    returncode: int = 0,
    stdout: bytes = b"",
    stderr: bytes = b"",
) -> MagicMock:
    """Build a mock asyncio.subprocess.Process."""
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.kill = MagicMock()
    return proc


def _descriptor():
    catalog = TaskCatalog.from_dict(
        {
            "tasks": {
                "design-audit": {
                    "title": "Audit - {projectName}",
                    "role": "UX auditor",
                    "task": "Audit the designs",
                    "context": ["projectName"],
                    "instructions": ["1. Review pages", "2. Report gaps"],
                    "output_schema": {
                        "type": "object",
                        "required": ["success"],
                        "properties": {"success": {"type": "boolean"}},
                    },
                }
            }
        }
    )
    return catalog["design-audit"].build({"projectName": "Shop", "ignored": 1}, "ef-0001-abcdef")


def _envelope(inner, is_error: bool = False) -> bytes:
    return json.dumps({"type": "result", "result": inner, "is_error": is_error}).encode()


# ---------------------------------------------------------------------------
# Prompt rendering
# ---------------------------------------------------------------------------


class TestRenderPrompt:
    def test_contains_all_sections(self):
        prompt = render_prompt(_descriptor())
        assert prompt.startswith("# Audit - Shop")
        assert "Role: UX auditor" in prompt
        assert "Task: Audit the designs" in prompt
        assert '"projectName": "Shop"' in prompt
        assert '"ignored"' not in prompt
        assert "1. Review pages" in prompt
        assert '"required": [' in prompt
        assert "tasks/ef-0001-abcdef/input.json" in prompt


# ---------------------------------------------------------------------------
# Output parsing
# ---------------------------------------------------------------------------


class TestStripFences:
    def test_no_fence(self):
        assert _strip_fences('{"a": 1}') == '{"a": 1}'

    def test_json_fence(self):
        text = 'Here you go:\n```json\n{"a": 1}\n```\nDone.'
        assert _strip_fences(text) == '{"a": 1}'


class TestFirstJsonObject:
    def test_plain_object(self):
        assert _first_json_object('{"success": true}') == {"success": True}

    def test_object_inside_prose(self):
        assert _first_json_object('Result: {"score": 90} -- end') == {"score": 90}

    def test_array_is_not_an_object(self):
        assert _first_json_object("[1, 2]") is None

    def test_garbage(self):
        assert _first_json_object("no json here") is None


class TestParseClaudeOutput:
    def test_empty_output_raises(self):
        with pytest.raises(DispatchError, match="Empty response"):
            _parse_claude_output("")

    def test_envelope_with_text_result(self):
        raw = _envelope('```json\n{"success": true, "score": 88}\n```').decode()
        assert _parse_claude_output(raw) == {"success": True, "score": 88}

    def test_envelope_with_object_result(self):
        raw = _envelope({"success": True}).decode()
        assert _parse_claude_output(raw) == {"success": True}

    def test_envelope_error_raises(self):
        raw = _envelope("rate limited", is_error=True).decode()
        with pytest.raises(DispatchError, match="rate limited"):
            _parse_claude_output(raw)

    def test_envelope_without_json_raises(self):
        raw = _envelope("I could not finish the task").decode()
        with pytest.raises(DispatchError, match="no JSON object"):
            _parse_claude_output(raw)

    def test_bare_object(self):
        assert _parse_claude_output('{"planApproved": false}') == {"planApproved": False}

    def test_prose_with_object(self):
        assert _parse_claude_output('Sure! {"ok": 1}') == {"ok": 1}


class TestParseCodexOutput:
    def test_empty_output_raises(self):
        with pytest.raises(DispatchError, match="Empty response from codex"):
            _parse_codex_output("   ")

    def test_object(self):
        assert _parse_codex_output('{"validationScore": 95}') == {"validationScore": 95}

    def test_no_object_raises(self):
        with pytest.raises(DispatchError, match="no JSON object"):
            _parse_codex_output("done")


# ---------------------------------------------------------------------------
# AgentDispatcher: subprocess interaction (mocked)
# ---------------------------------------------------------------------------


class TestAgentDispatcherClaude:
    @pytest.fixture()
    def dispatcher(self):
        return AgentDispatcher()

    @pytest.mark.asyncio
    async def test_dispatch_claude_success(self, dispatcher):
        proc = _make_proc(returncode=0, stdout=_envelope('{"success": true}'))

        with patch("asyncio.create_subprocess_exec", return_value=proc) as mock_exec:
            result = await dispatcher.dispatch_claude("do the thing", max_turns=5)

        assert result == {"success": True}

        # Verify CLI arguments.
        call_args = list(mock_exec.call_args[0])
        assert call_args[0] == "claude"
        assert "--print" in call_args
        idx = call_args.index("--output-format")
        assert call_args[idx + 1] == "json"
        idx = call_args.index("--max-turns")
        assert call_args[idx + 1] == "5"
        assert call_args[-1] == "do the thing"

    @pytest.mark.asyncio
    async def test_dispatch_claude_with_system_prompt(self, dispatcher):
        proc = _make_proc(returncode=0, stdout=_envelope("{}"))

        with patch("asyncio.create_subprocess_exec", return_value=proc) as mock_exec:
            await dispatcher.dispatch_claude("prompt", system_prompt="be strict")

        call_args = list(mock_exec.call_args[0])
        idx = call_args.index("--system-prompt")
        assert call_args[idx + 1] == "be strict"

    @pytest.mark.asyncio
    async def test_dispatch_claude_timeout(self, dispatcher):
        proc = MagicMock()
        proc.returncode = -9
        proc.kill = MagicMock()
        proc.communicate = AsyncMock(return_value=(b"", b""))

        with patch("asyncio.create_subprocess_exec", return_value=proc):
            with patch("asyncio.wait_for", side_effect=asyncio.TimeoutError):
                with pytest.raises(DispatchError, match="timed out"):
                    await dispatcher.dispatch_claude("run", timeout=1)

        proc.kill.assert_called_once()

    @pytest.mark.asyncio
    async def test_dispatch_claude_nonzero_exit_no_output(self, dispatcher):
        proc = _make_proc(returncode=1, stdout=b"", stderr=b"error occurred")

        with patch("asyncio.create_subprocess_exec", return_value=proc):
            with pytest.raises(DispatchError, match="exited with code 1"):
                await dispatcher.dispatch_claude("run")

    @pytest.mark.asyncio
    async def test_dispatch_claude_nonzero_exit_with_output(self, dispatcher):
        """Non-zero exit is tolerated if stdout has a parseable reply."""
        proc = _make_proc(returncode=1, stdout=_envelope('{"partial": true}'))

        with patch("asyncio.create_subprocess_exec", return_value=proc):
            result = await dispatcher.dispatch_claude("run")

        assert result == {"partial": True}

    @pytest.mark.asyncio
    async def test_dispatch_claude_not_found(self, dispatcher):
        with patch(
            "asyncio.create_subprocess_exec",
            side_effect=FileNotFoundError("claude not found"),
        ):
            with pytest.raises(DispatchError, match="not found"):
                await dispatcher.dispatch_claude("run")

    @pytest.mark.asyncio
    async def test_workdir_is_passed_as_cwd(self):
        proc = _make_proc(returncode=0, stdout=_envelope("{}"))

        with patch("asyncio.create_subprocess_exec", return_value=proc) as mock_exec:
            await AgentDispatcher(workdir="/tmp/run").dispatch_claude("run")

        assert mock_exec.call_args.kwargs["cwd"] == "/tmp/run"


class TestAgentDispatcherCodex:
    @pytest.mark.asyncio
    async def test_dispatch_codex_success(self):
        proc = _make_proc(returncode=0, stdout=b'log line\n{"success": true}\n')

        with patch("asyncio.create_subprocess_exec", return_value=proc) as mock_exec:
            result = await AgentDispatcher().dispatch_codex("do it")

        assert result == {"success": True}
        call_args = list(mock_exec.call_args[0])
        assert call_args[:4] == ["codex", "--quiet", "--approval-mode", "full-auto"]


class TestRunTask:
    @pytest.mark.asyncio
    async def test_routes_to_claude_with_rendered_prompt(self):
        dispatcher = AgentDispatcher()
        dispatcher.dispatch_claude = AsyncMock(return_value={"success": True})

        result = await dispatcher.run_task(_descriptor(), backend="claude", max_turns=7, timeout=60)

        assert result == {"success": True}
        prompt = dispatcher.dispatch_claude.call_args[0][0]
        assert prompt.startswith("# Audit - Shop")
        assert dispatcher.dispatch_claude.call_args.kwargs == {
            "system_prompt": "",
            "max_turns": 7,
            "timeout": 60,
        }

    @pytest.mark.asyncio
    async def test_routes_to_codex(self):
        dispatcher = AgentDispatcher()
        dispatcher.dispatch_codex = AsyncMock(return_value={"ok": 1})

        assert await dispatcher.run_task(_descriptor(), backend="codex") == {"ok": 1}
        dispatcher.dispatch_codex.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_backend_raises(self):
        with pytest.raises(DispatchError, match="Unknown agent backend"):
            await AgentDispatcher().run_task(_descriptor(), backend="gpt")
