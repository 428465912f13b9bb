# tests/core/engine/test_runner.py
"""
Testes do StageRunner (execução de um único Stage).

Os testes asseguram que:
- `requires` ausente falha antes de qualquer comando
- exit code diferente de zero levanta a classe de erro da capacidade
- saída capturada é persistida como artefato, inclusive em falha
- `produces` ausente após a execução falha com ArtifactMissingError
- artefatos publicados chegam ao contexto e ao StageResult
"""

from pathlib import Path

import pytest

from atlas_deployflow.core.engine.runner import StageRunner
from atlas_deployflow.core.exceptions import ArtifactMissingError, CommandError
from atlas_deployflow.core.pipeline.stage import StageDefinition
from atlas_deployflow.core.pipeline.types import StageKind, StageStatus

from tests._helpers import scripted_capabilities


@pytest.fixture
def runner(fake_invoker):
    return StageRunner(capabilities=scripted_capabilities(), invoker=fake_invoker)


def test_success_publishes_artifacts(runner, ctx, fake_invoker):
    stage = StageDefinition(
        id="build",
        kind=StageKind.BUILD,
        produces={"image.ref"},
        params={"emit": {"image.ref": "acme/demo:1"}},
    )

    result = runner.run(stage, ctx)

    assert result.status == StageStatus.SUCCESS
    assert result.exit_code == 0
    assert result.artifacts == {"image.ref": "acme/demo:1"}
    assert ctx.get_artifact("image.ref") == "acme/demo:1"
    assert fake_invoker.argvs() == [("fake", "build")]
    assert ctx.events[-1]["message"] == "stage succeeded"


def test_missing_requires_fails_without_running(runner, ctx, fake_invoker):
    stage = StageDefinition(id="deploy", kind=StageKind.DEPLOY, requires={"image.ref"})

    with pytest.raises(ArtifactMissingError) as exc_info:
        runner.run(stage, ctx)

    assert exc_info.value.details["missing"] == ["image.ref"]
    assert exc_info.value.details["phase"] == "before"
    assert fake_invoker.calls == []


def test_non_zero_exit_raises_command_error(runner, ctx, fake_invoker):
    fake_invoker.on("fake", "scan", exit_code=3, stderr="boom")
    stage = StageDefinition(id="scan", kind=StageKind.IMAGE_SCAN, produces={"trivy.report"})

    with pytest.raises(CommandError) as exc_info:
        runner.run(stage, ctx)

    details = exc_info.value.details
    assert details["exit_code"] == 3
    assert details["argv"] == ["fake", "scan"]
    assert details["stderr_tail"] == "boom"
    assert not ctx.has_artifact("trivy.report")


def test_captured_output_is_persisted_even_on_failure(runner, ctx, fake_invoker):
    fake_invoker.on("fake", "sonar", exit_code=1, stdout="ANALYSIS FAILED", stderr="details")
    stage = StageDefinition(id="sonar", kind=StageKind.STATIC_ANALYSIS, capture_output="sonar.log")

    with pytest.raises(CommandError):
        runner.run(stage, ctx)

    log_path = Path(ctx.get_artifact("sonar.log"))
    content = log_path.read_text(encoding="utf-8")
    assert log_path.parent == ctx.workspace / ".atlas" / "outputs"
    assert "$ fake sonar" in content
    assert "ANALYSIS FAILED" in content
    assert "[exit 1]" in content


def test_declared_output_missing_after_run(runner, ctx):
    stage = StageDefinition(id="depcheck", kind=StageKind.DEPENDENCY_SCAN, produces={"dependency_check.report"})

    with pytest.raises(ArtifactMissingError) as exc_info:
        runner.run(stage, ctx)

    assert exc_info.value.details["phase"] == "after"


def test_explicit_command_overrides_capability(runner, ctx, fake_invoker, tmp_path):
    (ctx.workspace / "out.txt").write_text("ok", encoding="utf-8")
    stage = StageDefinition(
        id="lint",
        kind=StageKind.STATIC_ANALYSIS,
        command=("make", "lint"),
        params={"outputs": {"lint.report": "out.txt", "absent": "nope.txt"}},
    )

    result = runner.run(stage, ctx)

    assert fake_invoker.argvs() == [("make", "lint")]
    assert result.artifacts == {"lint.report": str(ctx.workspace / "out.txt")}
    assert not ctx.has_artifact("absent")
