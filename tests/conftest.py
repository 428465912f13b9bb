# tests/conftest.py
"""
Fixtures compartilhados para testes do Atlas DeployFlow.

Este módulo define fixtures reutilizáveis que fornecem:
- configurações mínimas e determinísticas (YAML como string)
- `PipelineSettings` e `ExecutionContext` isolados em `tmp_path`
- colaboradores falsos injetáveis (ver `tests/_helpers.py`)
- uma fábrica de Engine montada com esses colaboradores

Decisões arquiteturais:
    - Nenhum teste invoca ferramentas reais (git, docker, kubectl, ...)
    - Nenhum teste acessa rede ou SMTP real
    - Capacidades de teste publicam artefatos a partir de `params.emit`,
      permitindo cenários de pipeline sem depender do formato de saída
      de cada ferramenta

Invariantes:
    - Fixtures são determinísticas e isoladas por teste
    - Filesystem apenas via `tmp_path`

Limites explícitos:
    - Não substituem testes das capacidades reais (ver test_capabilities)
"""

from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Optional, Sequence

import pytest

from atlas_deployflow.core.config.settings import NotifySettings, PipelineSettings
from atlas_deployflow.core.engine.engine import PipelineEngine
from atlas_deployflow.core.engine.gate import GateEvaluator
from atlas_deployflow.core.engine.runner import StageRunner
from atlas_deployflow.core.pipeline.context import ExecutionContext
from atlas_deployflow.core.pipeline.types import GateVerdict
from atlas_deployflow.notify.dispatcher import NotificationDispatcher

from tests._helpers import FakeClock, FakeGateClient, FakeInvoker, RecordingTransport, scripted_capabilities


# =====================================================
# Config fixtures
# =====================================================

@pytest.fixture
def defaults_yaml() -> str:
    """Configuração base semelhante a `config/pipeline.defaults.yaml`."""
    return """
pipeline:
  name: demo-app
  workspace: runs
engine:
  manifest_dir: null
sonarqube:
  host_url: http://sonar.local:9000
  token_env: SONAR_TOKEN
  request_timeout_s: 10
notify:
  recipients: [team@acme.io]
  attachments: [trivy.report]
  smtp:
    host: smtp.local
    port: 587
    use_tls: true
    username_env: SMTP_USER
    password_env: SMTP_PASS
stages:
  build:
    enabled: true
""".lstrip()


@pytest.fixture
def local_yaml() -> str:
    """Override local: desabilita deploy e troca destinatários."""
    return """
notify:
  recipients: [oncall@acme.io]
stages:
  deploy:
    enabled: false
""".lstrip()


# =====================================================
# Colaboradores falsos
# =====================================================

@pytest.fixture
def fake_invoker() -> FakeInvoker:
    return FakeInvoker()


@pytest.fixture
def recording_transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


# =====================================================
# Settings / Context
# =====================================================

@pytest.fixture
def settings(tmp_path) -> PipelineSettings:
    return PipelineSettings(
        name="demo-app",
        workspace=tmp_path / "runs",
        notify=NotifySettings(recipients=("team@acme.io",)),
    )


@pytest.fixture
def make_ctx(tmp_path):
    def _make(run_id: str = "run-001", **kwargs: Any) -> ExecutionContext:
        workspace = tmp_path / "ws" / run_id
        workspace.mkdir(parents=True, exist_ok=True)
        return ExecutionContext(
            run_id=run_id,
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            workspace=workspace,
            **kwargs,
        )

    return _make


@pytest.fixture
def ctx(make_ctx) -> ExecutionContext:
    return make_ctx()


# =====================================================
# Engine
# =====================================================

@pytest.fixture
def engine_factory(settings, fake_invoker, recording_transport, fake_clock):
    """
    Monta um `PipelineEngine` com capacidades programáveis.

    Retorna uma função `(stages, *, verdicts=None, ...) -> SimpleNamespace`
    com `engine`, `invoker`, `transport` e `gate_client`.
    """

    def _build(
        stages,
        *,
        verdicts: Optional[Sequence[Optional[GateVerdict]]] = None,
        transport=None,
        cancel_event=None,
        settings_override: Optional[PipelineSettings] = None,
    ) -> SimpleNamespace:
        used_settings = settings_override or settings
        used_transport = transport if transport is not None else recording_transport
        gate_client = FakeGateClient(verdicts or [])
        dispatcher = NotificationDispatcher(
            used_transport,
            recipients=used_settings.notify.recipients,
            attachments=used_settings.notify.attachments,
        )
        engine = PipelineEngine(
            stages=stages,
            settings=used_settings,
            runner=StageRunner(capabilities=scripted_capabilities(), invoker=fake_invoker),
            dispatcher=dispatcher,
            gate_evaluator=GateEvaluator(gate_client, clock=fake_clock, sleep=fake_clock.sleep),
            cancel_event=cancel_event,
        )
        return SimpleNamespace(engine=engine, invoker=fake_invoker, transport=used_transport, gate_client=gate_client)

    return _build
