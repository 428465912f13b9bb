"""
Bootstrap — composição dos colaboradores reais do Atlas DeployFlow.

Este é o único ponto que lê o ambiente do processo (como snapshot de
segredos) e decide implementações concretas:

    - `SubprocessInvoker` para comandos externos
    - `SonarQubeGateClient` quando há Stages com gate
    - `SmtpMailTransport` para a notificação terminal

O core permanece livre de estado global: tudo é injetado no Engine.
"""

from __future__ import annotations

import os
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping, Optional, Union

from atlas_deployflow.core.config.loader import load_config
from atlas_deployflow.core.config.settings import PipelineSettings
from atlas_deployflow.core.engine.capabilities import default_capabilities
from atlas_deployflow.core.engine.engine import PipelineEngine, RunResult
from atlas_deployflow.core.engine.gate import GateEvaluator, QualityGateClient
from atlas_deployflow.core.engine.invoker import CommandInvoker, SubprocessInvoker
from atlas_deployflow.core.engine.runner import StageRunner
from atlas_deployflow.core.pipeline.context import ExecutionContext
from atlas_deployflow.core.pipeline.definition import PipelineDefinition, load_pipeline_definition
from atlas_deployflow.integrations.sonarqube import SonarQubeGateClient
from atlas_deployflow.notify.dispatcher import MailTransport, NotificationDispatcher
from atlas_deployflow.notify.smtp import SmtpMailTransport


def new_run_id() -> str:
    return f"{datetime.now(timezone.utc):%Y%m%dT%H%M%SZ}-{uuid.uuid4().hex[:8]}"


def build_engine(
    *,
    definition: PipelineDefinition,
    settings: PipelineSettings,
    invoker: Optional[CommandInvoker] = None,
    transport: Optional[MailTransport] = None,
    gate_client: Optional[QualityGateClient] = None,
    cancel_event: Optional[threading.Event] = None,
) -> PipelineEngine:
    """
    Constrói um `PipelineEngine` com colaboradores reais ou injetados.

    O cliente de quality gate só é criado quando a definição possui
    Stages com gate; sem `sonarqube.host_url` o Engine recusa a definição.
    """
    has_gate = any(s.gate is not None for s in definition.stages)
    if gate_client is None and has_gate and settings.sonarqube.host_url:
        gate_client = SonarQubeGateClient(settings.sonarqube)

    notify = settings.notify
    dispatcher = NotificationDispatcher(
        transport if transport is not None else SmtpMailTransport(notify.smtp),
        recipients=notify.recipients,
        attachments=notify.attachments,
        sender=notify.sender,
        subject_prefix=notify.subject_prefix,
    )
    runner = StageRunner(
        capabilities=default_capabilities(sonarqube=settings.sonarqube),
        invoker=invoker if invoker is not None else SubprocessInvoker(),
    )
    return PipelineEngine(
        stages=definition.stages,
        settings=settings,
        runner=runner,
        dispatcher=dispatcher,
        gate_evaluator=GateEvaluator(gate_client) if gate_client is not None else None,
        cancel_event=cancel_event,
    )


def new_context(settings: PipelineSettings, *, run_id: Optional[str] = None) -> ExecutionContext:
    run_id = run_id or new_run_id()
    workspace = Path(settings.workspace) / run_id
    workspace.mkdir(parents=True, exist_ok=True)
    return ExecutionContext(
        run_id=run_id,
        created_at=datetime.now(timezone.utc),
        workspace=workspace,
        env=dict(settings.env),
        config=settings.raw,
        meta={"pipeline": settings.name},
    )


def run_pipeline(
    *,
    defaults_path: Union[str, Path],
    pipeline_path: Union[str, Path],
    local_path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
    run_id: Optional[str] = None,
    invoker: Optional[CommandInvoker] = None,
    transport: Optional[MailTransport] = None,
    gate_client: Optional[QualityGateClient] = None,
    cancel_event: Optional[threading.Event] = None,
) -> RunResult:
    """Carrega configuração e definição, monta o Engine e executa uma run."""
    config = load_config(
        defaults_path=Path(defaults_path),
        local_path=Path(local_path) if local_path is not None else None,
    )
    definition = load_pipeline_definition(pipeline_path)

    settings = PipelineSettings.from_config(config, secrets=os.environ if environ is None else environ)
    if "name" not in (config.get("pipeline") or {}):
        settings = replace(settings, name=definition.name)

    engine = build_engine(
        definition=definition,
        settings=settings,
        invoker=invoker,
        transport=transport,
        gate_client=gate_client,
        cancel_event=cancel_event,
    )
    return engine.run(new_context(settings, run_id=run_id))
