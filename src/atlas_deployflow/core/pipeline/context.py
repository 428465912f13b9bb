"""
Contexto de execução de uma run do pipeline.

Este módulo define o `ExecutionContext`, o estado mutável com escopo de
run que circula entre Engine, StageRunner e GateEvaluator.

O ExecutionContext é o único meio permitido de:
    - troca indireta de informações entre Stages (artefatos por nome)
    - registro de logs estruturados de execução
    - coleta de warnings não fatais associados a Stages
    - registro do status da run e dos vereditos de quality gate

Princípios fundamentais:
    - Isolamento por execução (cada run possui seu próprio contexto)
    - Ausência de estado global compartilhado
    - Status monotônico: nenhuma transição sai de um estado terminal

Invariantes:
    - Artefatos são indexados por chave explícita
    - Logs sempre incluem `run_id` e `step_id`
    - Warnings são agrupados por `step_id`
    - `notified_at` só é definido depois de um status terminal

Limites explícitos:
    - Não executa Stages
    - Não planeja nem coordena execução
    - Não persiste dados automaticamente
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from atlas_deployflow.core.exceptions import InvalidStatusTransition

from .types import GateVerdict, RunStatus


_ALLOWED_TRANSITIONS: Dict[RunStatus, frozenset] = {
    RunStatus.PENDING: frozenset({RunStatus.RUNNING}),
    RunStatus.RUNNING: frozenset({RunStatus.SUCCEEDED, RunStatus.FAILED, RunStatus.ABORTED}),
    RunStatus.SUCCEEDED: frozenset(),
    RunStatus.FAILED: frozenset(),
    RunStatus.ABORTED: frozenset(),
}


@dataclass
class ExecutionContext:
    """
    Contexto de execução de uma run do pipeline.

    Campos canônicos:
        - run_id: identificador único da execução
        - created_at: timestamp UTC de criação do contexto
        - workspace: diretório de trabalho da run
        - env: variáveis de ambiente repassadas aos comandos externos
        - config: configuração efetiva (defaults + local deep-merge)
        - meta: metadados de execução (ex.: manifest, nome do pipeline)

    Estado mutável:
        - status: RunStatus atual (monotônico)
        - reason: motivo do status terminal (ex.: `quality-gate-failed`)
        - verdicts: vereditos de quality gate por stage_id
        - events: log estruturado de eventos
        - warnings: warnings por step_id
        - notified_at: timestamp do envio da notificação terminal
    """
    run_id: str
    created_at: datetime
    workspace: Path
    env: Dict[str, str] = field(default_factory=dict)
    config: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)

    _artifacts: Dict[str, Any] = field(default_factory=dict, init=False, repr=False)
    _status: RunStatus = field(default=RunStatus.PENDING, init=False)
    reason: Optional[str] = field(default=None, init=False)
    verdicts: Dict[str, GateVerdict] = field(default_factory=dict, init=False)
    events: List[Dict[str, Any]] = field(default_factory=list, init=False)
    warnings: Dict[str, List[str]] = field(default_factory=dict, init=False)
    notified_at: Optional[datetime] = field(default=None, init=False)

    def __post_init__(self) -> None:
        self.workspace = Path(self.workspace)
        self.env = {str(k): str(v) for k, v in (self.env or {}).items()}

    # -----------------------------
    # Status (monotônico)
    # -----------------------------
    @property
    def status(self) -> RunStatus:
        return self._status

    def transition(self, new_status: RunStatus, *, reason: Optional[str] = None) -> None:
        allowed = _ALLOWED_TRANSITIONS[self._status]
        if new_status not in allowed:
            raise InvalidStatusTransition(
                f"Invalid run status transition: {self._status.value} -> {RunStatus(new_status).value}"
            )
        self._status = new_status
        if reason is not None:
            self.reason = reason

    @property
    def notified(self) -> bool:
        return self.notified_at is not None

    def mark_notified(self) -> None:
        if not self._status.is_terminal:
            raise InvalidStatusTransition(
                f"Run cannot be notified while {self._status.value}"
            )
        if self.notified_at is None:
            self.notified_at = datetime.now(timezone.utc)

    # -----------------------------
    # Artifact store
    # -----------------------------
    def set_artifact(self, key: str, value: Any) -> None:
        self._artifacts[key] = value

    def has_artifact(self, key: str) -> bool:
        return key in self._artifacts

    def get_artifact(self, key: str) -> Any:
        if key not in self._artifacts:
            raise KeyError(key)
        return self._artifacts[key]

    def artifact_names(self) -> List[str]:
        return sorted(self._artifacts)

    @property
    def artifacts(self) -> Dict[str, Any]:
        """Cópia rasa do store; mutações devem passar por `set_artifact`."""
        return dict(self._artifacts)

    # -----------------------------
    # Gate verdicts
    # -----------------------------
    def record_verdict(self, *, stage_id: str, verdict: GateVerdict) -> None:
        self.verdicts[stage_id] = verdict

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, step_id: str, level: str, message: str, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "step_id": step_id,
            "level": level,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update(extra)
        self.events.append(event)

    def add_warning(self, *, step_id: str, message: str) -> None:
        if step_id not in self.warnings:
            self.warnings[step_id] = []
        self.warnings[step_id].append(message)
