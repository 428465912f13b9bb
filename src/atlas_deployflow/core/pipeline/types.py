"""
Tipos canônicos do pipeline do Atlas DeployFlow.

Este módulo define as estruturas e enums fundamentais que padronizam
a comunicação entre Stages, StageRunner, Engine e rastreabilidade.

Componentes principais:
    - StageKind   → conjunto fechado de capacidades invocáveis por um Stage
    - StageStatus → estados finais de um Stage (SUCCESS, SKIPPED, FAILED)
    - RunStatus   → ciclo de vida monotônico de uma run
    - GatePolicy  → política aplicada a um veredito de quality gate negativo
    - GateVerdict → veredito imutável de quality gate
    - StageResult → resultado imutável da execução de um Stage

Invariantes:
    - Enums possuem valores textuais canônicos (serializáveis em JSON)
    - GateVerdict e StageResult são imutáveis
    - Tipos não dependem de engine, runner ou integrações

Limites explícitos:
    - Não executa Stages
    - Não decide políticas de execução
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional


class StageKind(str, Enum):
    """
    Conjunto fechado de capacidades que um Stage pode invocar.

    Cada valor corresponde a exatamente uma entrada da tabela de
    capacidades (`CapabilityTable`); não existe despacho por reflexão
    nem por strings arbitrárias de plugin.

    Tipos definidos:
        - CHECKOUT: clone do repositório de código-fonte
        - STATIC_ANALYSIS: submissão para o motor de análise estática
        - GATE: espera pelo veredito externo de quality gate
        - DEPENDENCY_SCAN: varredura de dependências vulneráveis
        - IMAGE_SCAN: varredura de vulnerabilidades em filesystem/imagem
        - BUILD: build e push de imagem de container
        - DEPLOY: aplicação de manifests no cluster
        - NOTIFY: notificação terminal (executada como finalizador)
    """
    CHECKOUT = "checkout"
    STATIC_ANALYSIS = "static_analysis"
    GATE = "gate"
    DEPENDENCY_SCAN = "dependency_scan"
    IMAGE_SCAN = "image_scan"
    BUILD = "build"
    DEPLOY = "deploy"
    NOTIFY = "notify"


class StageStatus(str, Enum):
    """
    Estados finais possíveis da execução de um Stage.

    Estados intermediários (ex.: running) não pertencem a este enum;
    eles vivem apenas no Manifest.
    """
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class RunStatus(str, Enum):
    """
    Ciclo de vida de uma run.

    Transições permitidas:
        PENDING → RUNNING → {SUCCEEDED | FAILED | ABORTED}

    Nenhuma transição sai de um estado terminal.
    """
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_RUN_STATUSES


TERMINAL_RUN_STATUSES: FrozenSet[RunStatus] = frozenset(
    {RunStatus.SUCCEEDED, RunStatus.FAILED, RunStatus.ABORTED}
)


class GatePolicy(str, Enum):
    """Política aplicada quando um quality gate reprova."""
    ABORT = "abort"
    REPORT_ONLY = "report_only"


@dataclass(frozen=True)
class GateVerdict:
    """
    Veredito de quality gate.

    Produzido uma vez por Stage com gate e consumido imediatamente
    pelo Engine. `reason` usa valores estáveis, por exemplo
    `quality-gate-passed`, `quality-gate-failed` ou `timeout`.
    """
    passed: bool
    reason: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"passed": self.passed, "reason": self.reason, "details": dict(self.details)}


@dataclass(frozen=True)
class StageResult:
    """
    Resultado imutável da execução de um Stage.

    Campos:
        - stage_id: identificador único do Stage
        - kind: capacidade invocada
        - status: estado final do Stage
        - summary: resumo textual da execução
        - exit_code: exit code do último comando executado (None se não houve comando)
        - duration_ms: duração da execução em milissegundos
        - artifacts: artefatos publicados no contexto (nome -> valor textual)
        - warnings: avisos não fatais
        - payload: dados adicionais (ex.: `error` serializado, veredito de gate)
    """
    stage_id: str
    kind: StageKind
    status: StageStatus
    summary: str
    exit_code: Optional[int] = None
    duration_ms: int = 0
    artifacts: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage_id": self.stage_id,
            "kind": self.kind.value,
            "status": self.status.value,
            "summary": self.summary,
            "exit_code": self.exit_code,
            "duration_ms": self.duration_ms,
            "artifacts": dict(self.artifacts),
            "warnings": list(self.warnings),
            "payload": dict(self.payload),
        }
