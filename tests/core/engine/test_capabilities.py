# tests/core/engine/test_capabilities.py
"""
Testes da tabela de capacidades padrão.

Cada capacidade é exercitada com um invocador falso: os testes validam
o argv montado, a classe de erro indicada em falhas e os artefatos
publicados, sem executar git, sonar-scanner, dependency-check, trivy,
docker ou kubectl.
"""

import pytest

from atlas_deployflow.core.config.settings import SonarQubeSettings
from atlas_deployflow.core.engine.capabilities import CapabilityTable, default_capabilities
from atlas_deployflow.core.exceptions import (
    ArtifactMissingError,
    BuildError,
    CheckoutError,
    DeployError,
    EngineConfigurationError,
    PushError,
)
from atlas_deployflow.core.pipeline.stage import StageDefinition
from atlas_deployflow.core.pipeline.types import StageKind


@pytest.fixture
def table():
    return default_capabilities(
        sonarqube=SonarQubeSettings(host_url="http://sonar.local:9000", token="s3cr3t")
    )


def _run(table, stage, ctx, invoker):
    return table.resolve(stage)(stage, ctx, invoker)


# -----------------------------------------------------------------------------
# checkout
# -----------------------------------------------------------------------------

def test_checkout_builds_git_clone(table, ctx, fake_invoker):
    stage = StageDefinition(
        id="checkout",
        kind=StageKind.CHECKOUT,
        params={"repo_url": "https://github.com/acme/demo.git", "branch": "develop"},
    )

    out = _run(table, stage, ctx, fake_invoker)

    assert out.ok
    assert fake_invoker.argvs() == [
        ("git", "clone", "--branch", "develop", "--depth", "1", "https://github.com/acme/demo.git", str(ctx.workspace / "source"))
    ]
    assert out.artifacts == {"source": str(ctx.workspace / "source")}


def test_checkout_failure_is_checkout_error(table, ctx, fake_invoker):
    fake_invoker.on("git", "clone", exit_code=128, stderr="Remote branch nope not found")
    stage = StageDefinition(
        id="checkout",
        kind=StageKind.CHECKOUT,
        params={"repo_url": "https://github.com/acme/demo.git", "branch": "nope"},
    )

    out = _run(table, stage, ctx, fake_invoker)

    assert not out.ok
    assert out.error_cls is CheckoutError
    assert out.artifacts == {}


def test_checkout_requires_repo_url(table, ctx, fake_invoker):
    stage = StageDefinition(id="checkout", kind=StageKind.CHECKOUT)
    with pytest.raises(EngineConfigurationError):
        _run(table, stage, ctx, fake_invoker)


# -----------------------------------------------------------------------------
# static analysis
# -----------------------------------------------------------------------------

def test_static_analysis_reads_task_id_from_report_file(table, ctx, fake_invoker):
    source = ctx.workspace / "source"
    ctx.set_artifact("source", str(source))

    def write_report(argv, cwd):
        scannerwork = source / ".scannerwork"
        scannerwork.mkdir(parents=True, exist_ok=True)
        (scannerwork / "report-task.txt").write_text(
            "projectKey=demo\nceTaskId=AXtask42\ndashboardUrl=http://sonar.local:9000/dashboard?id=demo\n",
            encoding="utf-8",
        )

    fake_invoker.on("sonar-scanner", effect=write_report)
    stage = StageDefinition(
        id="sonar",
        kind=StageKind.STATIC_ANALYSIS,
        params={"project_key": "demo", "sources": "src"},
    )

    out = _run(table, stage, ctx, fake_invoker)

    call = fake_invoker.calls[0]
    assert call.argv[0] == "sonar-scanner"
    assert "-Dsonar.projectKey=demo" in call.argv
    assert "-Dsonar.host.url=http://sonar.local:9000" in call.argv
    assert call.env["SONAR_TOKEN"] == "s3cr3t"
    assert all("s3cr3t" not in a for a in call.argv)
    assert call.cwd == source
    assert out.artifacts["sonar.task_id"] == "AXtask42"
    assert out.artifacts["sonar.dashboard_url"].endswith("id=demo")


def test_static_analysis_falls_back_to_stdout(table, ctx, fake_invoker):
    fake_invoker.on(
        "sonar-scanner",
        stdout="INFO: More about the report processing at http://sonar.local:9000/api/ce/task?id=AXfromStdout\n",
    )
    stage = StageDefinition(id="sonar", kind=StageKind.STATIC_ANALYSIS, params={"project_key": "demo"})

    out = _run(table, stage, ctx, fake_invoker)

    assert out.artifacts["sonar.task_id"] == "AXfromStdout"


# -----------------------------------------------------------------------------
# scans
# -----------------------------------------------------------------------------

def test_dependency_scan_publishes_existing_report(table, ctx, fake_invoker):
    def write_report(argv, cwd):
        out_dir = argv[argv.index("--out") + 1]
        (ctx.workspace / out_dir).mkdir(parents=True, exist_ok=True)
        (ctx.workspace / out_dir / "dependency-check-report.xml").write_text("<analysis/>", encoding="utf-8")

    fake_invoker.on("dependency-check.sh", effect=write_report)
    stage = StageDefinition(id="depcheck", kind=StageKind.DEPENDENCY_SCAN, params={"project": "demo"})

    out = _run(table, stage, ctx, fake_invoker)

    argv = fake_invoker.argvs()[0]
    assert argv[argv.index("--format") + 1] == "XML"
    assert argv[argv.index("--scan") + 1] == str(ctx.workspace)
    assert out.artifacts["dependency_check.report"].endswith("dependency-check-report.xml")


def test_image_scan_image_mode_uses_built_image(table, ctx, fake_invoker):
    ctx.set_artifact("image.ref", "registry.acme.io/demo:42")
    stage = StageDefinition(
        id="trivy-image",
        kind=StageKind.IMAGE_SCAN,
        params={"mode": "image", "severity": ["HIGH", "CRITICAL"]},
    )

    _run(table, stage, ctx, fake_invoker)

    argv = fake_invoker.argvs()[0]
    assert argv[:2] == ("trivy", "image")
    assert argv[argv.index("--severity") + 1] == "HIGH,CRITICAL"
    assert argv[-1] == "registry.acme.io/demo:42"


def test_image_scan_image_mode_without_image_ref(table, ctx, fake_invoker):
    stage = StageDefinition(id="trivy-image", kind=StageKind.IMAGE_SCAN, params={"mode": "image"})
    with pytest.raises(ArtifactMissingError):
        _run(table, stage, ctx, fake_invoker)
    assert fake_invoker.calls == []


def test_image_scan_rejects_unknown_mode(table, ctx, fake_invoker):
    stage = StageDefinition(id="trivy", kind=StageKind.IMAGE_SCAN, params={"mode": "repo"})
    with pytest.raises(EngineConfigurationError):
        _run(table, stage, ctx, fake_invoker)


# -----------------------------------------------------------------------------
# build / deploy
# -----------------------------------------------------------------------------

def test_build_logs_in_builds_and_pushes(table, make_ctx, fake_invoker):
    ctx = make_ctx(env={"REG_USER": "bot", "REG_PASS": "hunter2"})
    stage = StageDefinition(
        id="build",
        kind=StageKind.BUILD,
        params={
            "image": "registry.acme.io/demo",
            "tag": "1.2.3",
            "registry": "registry.acme.io",
            "username_env": "REG_USER",
            "password_env": "REG_PASS",
            "build_args": {"VERSION": "1.2.3"},
        },
    )

    out = _run(table, stage, ctx, fake_invoker)

    login, build, push = fake_invoker.calls
    assert login.argv == ("docker", "login", "--username", "bot", "--password-stdin", "registry.acme.io")
    assert login.input_text == "hunter2"
    assert build.argv[:4] == ("docker", "build", "-t", "registry.acme.io/demo:1.2.3")
    assert "VERSION=1.2.3" in build.argv
    assert push.argv == ("docker", "push", "registry.acme.io/demo:1.2.3")
    assert out.artifacts == {"image.ref": "registry.acme.io/demo:1.2.3"}


def test_build_tag_defaults_to_run_id(table, ctx, fake_invoker):
    stage = StageDefinition(id="build", kind=StageKind.BUILD, params={"image": "acme/demo", "push": False})

    out = _run(table, stage, ctx, fake_invoker)

    assert out.artifacts["image.ref"] == f"acme/demo:{ctx.run_id}"
    assert not fake_invoker.ran("docker", "push")


@pytest.mark.parametrize(
    "failing, expected",
    [(("docker", "build"), BuildError), (("docker", "push"), PushError)],
)
def test_build_failures_map_to_error_classes(table, ctx, fake_invoker, failing, expected):
    fake_invoker.on(*failing, exit_code=1)
    stage = StageDefinition(id="build", kind=StageKind.BUILD, params={"image": "acme/demo"})

    out = _run(table, stage, ctx, fake_invoker)

    assert out.error_cls is expected
    assert "image.ref" not in out.artifacts


def test_deploy_applies_each_manifest(table, make_ctx, fake_invoker):
    ctx = make_ctx(env={"KUBECONFIG_PATH": "/secrets/kubeconfig"})
    ctx.set_artifact("source", "/src")
    stage = StageDefinition(
        id="deploy",
        kind=StageKind.DEPLOY,
        params={
            "manifests": ["k8s/deployment.yaml", "k8s/service.yaml"],
            "kubeconfig_env": "KUBECONFIG_PATH",
            "context": "prod",
        },
    )

    out = _run(table, stage, ctx, fake_invoker)

    first, second = fake_invoker.calls
    assert first.argv == ("kubectl", "apply", "-f", "/src/k8s/deployment.yaml", "--context", "prod")
    assert second.argv[3] == "/src/k8s/service.yaml"
    assert first.env["KUBECONFIG"] == "/secrets/kubeconfig"
    assert out.artifacts["deploy.applied"] == ["/src/k8s/deployment.yaml", "/src/k8s/service.yaml"]


def test_deploy_stops_on_first_failure(table, ctx, fake_invoker):
    fake_invoker.on("kubectl", exit_code=1)
    stage = StageDefinition(id="deploy", kind=StageKind.DEPLOY, params={"manifests": ["a.yaml", "b.yaml"]})

    out = _run(table, stage, ctx, fake_invoker)

    assert out.error_cls is DeployError
    assert len(fake_invoker.calls) == 1


# -----------------------------------------------------------------------------
# tabela
# -----------------------------------------------------------------------------

def test_notify_is_not_resolvable_nor_registrable(table):
    stage = StageDefinition(id="notify", kind=StageKind.NOTIFY)
    with pytest.raises(EngineConfigurationError):
        table.resolve(stage)
    with pytest.raises(EngineConfigurationError):
        table.register(StageKind.NOTIFY, lambda s, c, i: None)


def test_unregistered_kind_is_configuration_error(ctx):
    table = CapabilityTable()
    with pytest.raises(EngineConfigurationError):
        table.resolve(StageDefinition(id="build", kind=StageKind.BUILD))


def test_default_table_covers_every_executable_kind(table):
    assert set(table.kinds()) == set(StageKind) - {StageKind.NOTIFY}
