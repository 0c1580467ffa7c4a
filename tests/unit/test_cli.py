"""Tests for the list, describe, validate and run CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from uxflow.agents.dispatch import DispatchError
from uxflow.cli import _load_inputs, cli

ALL_PROCESSES = ["responsive-design", "wcag-compliance", "ab-testing", "design-qa", "design-sprint"]


def _output(success: bool = True, **extra) -> dict:
    output = {
        "success": success,
        "artifacts": [{"path": "ab-testing-output/report.md", "label": "Report"}],
        "duration": 1200,
        "metadata": {"processId": "ux-ui-design/ab-testing", "runId": "run-cli"},
    }
    output.update(extra)
    return output


def _store(run_dir: str = ".uxflow/runs/run-cli") -> MagicMock:
    store = MagicMock()
    store.run_dir = Path(run_dir)
    return store


@pytest.fixture()
def runner():
    return CliRunner()


# ---------------------------------------------------------------------------
# list / describe
# ---------------------------------------------------------------------------


class TestListCommand:
    def test_lists_every_process(self, runner):
        result = runner.invoke(cli, ["list"])
        assert result.exit_code == 0
        for name in ALL_PROCESSES:
            assert name in result.output
        assert "specializations/ux-ui-design/design-qa" in result.output
        assert "Design Sprint Facilitation" in result.output


class TestDescribeCommand:
    def test_describe_shows_inputs_and_phases(self, runner):
        result = runner.invoke(cli, ["describe", "ab-testing"])
        assert result.exit_code == 0
        assert "A/B Testing Process (ux-ui-design/ab-testing)" in result.output
        assert '  projectName = "Project"' in result.output
        assert "  sampleSize = 1000" in result.output
        assert "1. experimentPlanning -> experiment-planning" in result.output
        assert "stop: Experiment plan quality insufficient" in result.output
        assert "review: Variation Design Review" in result.output

    def test_describe_marks_required_inputs(self, runner):
        result = runner.invoke(cli, ["describe", "responsive-design"])
        assert result.exit_code == 0
        assert "  projectName (required)" in result.output
        assert "fan-out over pages" in result.output
        assert "conditional" in result.output

    def test_describe_accepts_full_id(self, runner):
        result = runner.invoke(cli, ["describe", "specializations/ux-ui-design/wcag-compliance"])
        assert result.exit_code == 0
        assert "WCAG Compliance Validation" in result.output

    def test_unknown_process(self, runner):
        result = runner.invoke(cli, ["describe", "card-sorting"])
        assert result.exit_code == 1
        assert "Unknown process 'card-sorting'" in result.output
        assert "design-sprint" in result.output


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


class TestValidateCommand:
    @pytest.mark.parametrize("name", ALL_PROCESSES)
    def test_bundled_processes_are_valid(self, runner, name):
        result = runner.invoke(cli, ["validate", name])
        assert result.exit_code == 0, result.output
        assert f"{name}: OK (" in result.output

    def test_valid_inputs(self, runner):
        with runner.isolated_filesystem():
            Path("inputs.yaml").write_text("projectName: Shop\npages: [home, checkout]\n")
            result = runner.invoke(cli, ["validate", "responsive-design", "--inputs", "inputs.yaml"])
        assert result.exit_code == 0

    def test_invalid_inputs_reported(self, runner):
        with runner.isolated_filesystem():
            Path("inputs.json").write_text(json.dumps({"approach": "tablet-first"}))
            result = runner.invoke(cli, ["validate", "responsive-design", "--inputs", "inputs.json"])
        assert result.exit_code == 1
        assert "Input 'projectName'" in result.output
        assert "Input 'approach'" in result.output

    def test_non_mapping_inputs_rejected(self, runner):
        with runner.isolated_filesystem():
            Path("inputs.yaml").write_text("- home\n- checkout\n")
            result = runner.invoke(cli, ["validate", "design-qa", "--inputs", "inputs.yaml"])
        assert result.exit_code == 1
        assert "inputs must be a JSON/YAML object" in result.output


class TestLoadInputs:
    def test_none_path(self):
        assert _load_inputs(None) == {}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "inputs.yaml"
        path.write_text("")
        assert _load_inputs(str(path)) == {}

    def test_json_file(self, tmp_path):
        path = tmp_path / "inputs.json"
        path.write_text('{"projectName": "Shop", "scope": ["home"]}')
        assert _load_inputs(str(path)) == {"projectName": "Shop", "scope": ["home"]}

    @pytest.mark.parametrize("exit_code", [1, 2])
    def test_unreadable_file_exits(self, tmp_path, exit_code):
        with pytest.raises(SystemExit) as excinfo:
            _load_inputs(str(tmp_path / "missing.yaml"), exit_code=exit_code)
        assert excinfo.value.code == exit_code


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


class TestRunCommand:
    def _invoke(self, runner, args, output=None, side_effect=None):
        mock_run = AsyncMock(return_value=(output, _store()), side_effect=side_effect)
        with runner.isolated_filesystem():
            Path("inputs.yaml").write_text("projectName: Shop\n")
            with patch("uxflow.cli.run_process", mock_run):
                result = runner.invoke(cli, ["run", *args, "--inputs", "inputs.yaml"])
        return result, mock_run

    def test_success_summary(self, runner):
        result, mock_run = self._invoke(runner, ["ab-testing"], output=_output())
        assert result.exit_code == 0, result.output
        assert "SUCCESS" in result.output
        assert "Run: run-cli" in result.output
        assert "Duration: 1200ms" in result.output
        assert "- ab-testing-output/report.md (Report)" in result.output
        definition, inputs = mock_run.call_args[0]
        assert definition.name == "ab-testing"
        assert inputs == {"projectName": "Shop"}

    def test_stopped_run_exits_1(self, runner):
        output = _output(
            success=False,
            reason="Pre-launch validation failed",
            phase="prelaunchValidation",
        )
        result, _ = self._invoke(runner, ["ab-testing"], output=output)
        assert result.exit_code == 1
        assert "STOPPED" in result.output
        assert "Pre-launch validation failed (phase 'prelaunchValidation')" in result.output

    def test_json_output(self, runner):
        result, mock_run = self._invoke(runner, ["ab-testing", "--json-output"], output=_output())
        assert result.exit_code == 0
        assert json.loads(result.stdout) == _output()
        config = mock_run.call_args.kwargs["config"]
        assert all(c.type != "stdout" for c in config.breakpoints.channels)

    def test_overrides_reach_config(self, runner):
        result, mock_run = self._invoke(
            runner,
            ["ab-testing", "--runs-dir", "out/runs", "--run-id", "run-7", "--breakpoints", "prompt"],
            output=_output(),
        )
        assert result.exit_code == 0
        kwargs = mock_run.call_args.kwargs
        assert kwargs["run_id"] == "run-7"
        assert kwargs["config"].runs_dir == Path("out/runs")
        assert kwargs["config"].breakpoints.mode == "prompt"

    def test_dispatch_error_exits_2(self, runner):
        result, _ = self._invoke(
            runner, ["ab-testing"], side_effect=DispatchError("claude CLI not found")
        )
        assert result.exit_code == 2
        assert "claude CLI not found" in result.output

    def test_invalid_inputs_exit_2(self, runner):
        with runner.isolated_filesystem():
            Path("inputs.yaml").write_text("pages: [home]\n")
            result = runner.invoke(
                cli, ["run", "responsive-design", "--inputs", "inputs.yaml", "--runs-dir", "runs"]
            )
            assert not Path("runs").exists()
        assert result.exit_code == 2
        assert "invalid inputs for responsive-design" in result.output

    def test_invalid_config_exits_2(self, runner):
        with runner.isolated_filesystem():
            Path("inputs.yaml").write_text("projectName: Shop\n")
            Path("uxflow.yaml").write_text("agent:\n  backend: gpt\n")
            result = runner.invoke(cli, ["run", "design-qa", "--inputs", "inputs.yaml"])
        assert result.exit_code == 2
        assert "invalid config" in result.output

    def test_inputs_required(self, runner):
        result = runner.invoke(cli, ["run", "design-qa"])
        assert result.exit_code == 2
        assert "--inputs" in result.output

    def test_missing_inputs_file_exits_2(self, runner):
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["run", "design-qa", "--inputs", "absent.yaml"])
        assert result.exit_code == 2
        assert "cannot read inputs from absent.yaml" in result.output

    def test_malformed_inputs_file_exits_2(self, runner):
        with runner.isolated_filesystem():
            Path("inputs.yaml").write_text("projectName: [Shop\n")
            result = runner.invoke(cli, ["run", "design-qa", "--inputs", "inputs.yaml"])
        assert result.exit_code == 2
        assert "cannot read inputs from inputs.yaml" in result.output

    def test_path_like_run_id_exits_2(self, runner):
        with runner.isolated_filesystem():
            Path("inputs.yaml").write_text("projectName: Shop\n")
            result = runner.invoke(
                cli,
                ["run", "responsive-design", "--inputs", "inputs.yaml", "--runs-dir", "runs",
                 "--run-id", "../escape"],
            )
            assert not Path("escape").exists()
        assert result.exit_code == 2
        assert "path separators" in result.output

    def test_existing_run_id_exits_2(self, runner):
        with runner.isolated_filesystem():
            Path("inputs.yaml").write_text("projectName: Shop\n")
            Path("runs/run-1").mkdir(parents=True)
            result = runner.invoke(
                cli,
                ["run", "responsive-design", "--inputs", "inputs.yaml", "--runs-dir", "runs",
                 "--run-id", "run-1"],
            )
        assert result.exit_code == 2
        assert "already exists" in result.output
