# tests/test_cli.py
"""
Testes da CLI (click) do Atlas DeployFlow.

`run_pipeline` é substituído por uma função falsa: os testes validam
apenas o mapeamento de status terminal → exit code e a saída textual.
"""

from types import SimpleNamespace

import pytest
from click.testing import CliRunner

from atlas_deployflow import __version__
from atlas_deployflow import cli as cli_module
from atlas_deployflow.core.config.errors import DefaultsNotFoundError
from atlas_deployflow.core.pipeline.types import RunStatus, StageKind, StageResult, StageStatus
from atlas_deployflow.notify.dispatcher import NotificationReport


def _result(status, reason=None, sent=True):
    return SimpleNamespace(
        run_id="run-001",
        status=status,
        reason=reason,
        stages={
            "build": StageResult(stage_id="build", kind=StageKind.BUILD, status=StageStatus.SUCCESS, summary="ok"),
        },
        notification=NotificationReport(sent=sent),
    )


def _invoke(monkeypatch, fake_run):
    monkeypatch.setattr(cli_module, "run_pipeline", fake_run)
    return CliRunner().invoke(
        cli_module.cli,
        ["run", "--defaults", "config/pipeline.defaults.yaml", "--pipeline", "pipelines/demo.yaml", "--run-id", "run-001"],
    )


@pytest.mark.parametrize(
    "status, reason, exit_code",
    [
        (RunStatus.SUCCEEDED, None, 0),
        (RunStatus.FAILED, "stage 'build' failed: BUILD_ERROR", 1),
        (RunStatus.ABORTED, "quality-gate-failed", 2),
    ],
)
def test_exit_code_follows_terminal_status(monkeypatch, status, reason, exit_code):
    calls = []

    def fake_run(**kwargs):
        calls.append(kwargs)
        return _result(status, reason)

    result = _invoke(monkeypatch, fake_run)

    assert result.exit_code == exit_code
    assert f"[RUN] run-001: {status.value}" in result.output
    assert "build: success - ok" in result.output
    assert calls[0]["run_id"] == "run-001"
    assert calls[0]["cancel_event"] is not None


def test_invalid_configuration_exits_3(monkeypatch):
    def fake_run(**kwargs):
        raise DefaultsNotFoundError("Arquivo não encontrado: config/pipeline.defaults.yaml")

    result = _invoke(monkeypatch, fake_run)

    assert result.exit_code == 3
    assert "[ERROR]" in result.output


def test_undelivered_notification_is_reported(monkeypatch):
    result = _invoke(monkeypatch, lambda **kwargs: _result(RunStatus.SUCCEEDED, sent=False))

    assert result.exit_code == 0
    assert "notification not delivered" in result.output


def test_version_option():
    result = CliRunner().invoke(cli_module.cli, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_skipped_notification_is_reported(monkeypatch):
    def fake_run(**kwargs):
        result = _result(RunStatus.SUCCEEDED)
        result.notification = NotificationReport(sent=False, skipped=True)
        return result

    result = _invoke(monkeypatch, fake_run)

    assert result.exit_code == 0
    assert "notification skipped" in result.output
    assert "not delivered" not in result.output


def _invoke_files(tmp_path, *, defaults, pipeline):
    defaults_path = tmp_path / "defaults.yaml"
    pipeline_path = tmp_path / "pipeline.yaml"
    defaults_path.write_text(defaults, encoding="utf-8")
    pipeline_path.write_text(pipeline, encoding="utf-8")
    return CliRunner().invoke(
        cli_module.cli,
        ["run", "--defaults", str(defaults_path), "--pipeline", str(pipeline_path), "--run-id", "run-001"],
    )


@pytest.mark.parametrize(
    "defaults, pipeline",
    [
        ("pipeline:\n  name: [unclosed\n", "stages:\n  - id: build\n    kind: build\n"),
        ("pipeline:\n  name: demo\n", "stages:\n  - id: build\n    kind: build\n    produces: 5\n"),
        ("pipeline:\n  name: demo\n", "stages:\n  - id: sonar\n    kind: static_analysis\n    gate:\n      abort: 'false'\n"),
    ],
)
def test_malformed_files_exit_3_without_traceback(tmp_path, defaults, pipeline):
    result = _invoke_files(tmp_path, defaults=defaults, pipeline=pipeline)

    assert result.exit_code == 3
    assert "[ERROR]" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)
