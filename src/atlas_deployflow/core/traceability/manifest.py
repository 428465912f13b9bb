"""
Manifest v1 — rastreabilidade forense de runs no Atlas DeployFlow.

O Manifest consolida, de forma determinística e auditável:
    - metadados da run (run_id, pipeline, versão, status final)
    - hashes das entradas (configuração e definição do pipeline)
    - estado incremental de cada Stage
    - Event Log ordenado de eventos explícitos

Princípios fundamentais:
    - Nenhum evento é emitido implicitamente
    - Toda mutação ocorre por chamadas explícitas da API
    - A ordem do Event Log reflete a ordem real de execução
    - O Manifest é serializável e reconstruível (round-trip JSON)

Decisões arquiteturais:
    - UTC é o timezone canônico para todos os timestamps
    - Segredos nunca são registrados (apenas hashes e nomes de artefatos)

Limites explícitos:
    - Não executa pipeline
    - Não decide políticas de execução
    - Não realiza migração de versões de schema
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


MANIFEST_SCHEMA_VERSION = "1"


def _ensure_tzaware_utc(dt: datetime) -> datetime:
    """Normaliza um timestamp para timezone-aware em UTC (naive é assumido UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _iso(dt: datetime) -> str:
    return _ensure_tzaware_utc(dt).isoformat()


def _ms_between(start: datetime, end: datetime) -> int:
    """Duração em milissegundos, truncada em zero."""
    s = _ensure_tzaware_utc(start)
    e = _ensure_tzaware_utc(end)
    return max(0, int((e - s).total_seconds() * 1000))


@dataclass
class DeployManifest:
    """
    Manifest v1 — registro forense de uma run de pipeline.

    Campos principais:
        - run: metadados da execução (run_id, pipeline, started_at, versão, status)
        - inputs: hashes de configuração e definição do pipeline
        - stages: estado incremental de cada Stage, indexado por stage_id
        - events: Event Log ordenado
    """

    run: Dict[str, Any]
    inputs: Dict[str, Any]
    stages: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Cópia serializável e independente do estado interno."""
        return {
            "schema_version": MANIFEST_SCHEMA_VERSION,
            "run": dict(self.run),
            "inputs": dict(self.inputs),
            "stages": {k: dict(v) for k, v in self.stages.items()},
            "events": [dict(e) for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeployManifest":
        return cls(
            run=dict(data.get("run", {})),
            inputs=dict(data.get("inputs", {})),
            stages={k: dict(v) for k, v in (data.get("stages", {}) or {}).items()},
            events=[dict(e) for e in (data.get("events", []) or [])],
        )


def create_manifest(
    *,
    run_id: str,
    pipeline: str,
    started_at: datetime,
    tool_version: str,
    config_hash: str,
    pipeline_hash: str,
) -> DeployManifest:
    """
    Cria o Manifest inicial de uma run.

    ⚠️ Esta função **não emite eventos implicitamente**: o Event Log inicia
    vazio e `run_started` deve ser registrado explicitamente via `add_event`.
    """
    started_at = _ensure_tzaware_utc(started_at)

    return DeployManifest(
        run={
            "run_id": run_id,
            "pipeline": pipeline,
            "started_at": _iso(started_at),
            "tool_version": tool_version,
            "status": "pending",
        },
        inputs={
            "config_hash": config_hash,
            "pipeline_hash": pipeline_hash,
        },
        stages={},
        events=[],
    )


def add_event(
    manifest: DeployManifest,
    *,
    event_type: str,
    ts: datetime,
    stage_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Adiciona um evento explícito ao Event Log.

    A ordem do Event Log reflete a ordem de chamada; eventos não são
    reordenados por timestamp nem deduplicados.
    """
    ev: Dict[str, Any] = {"event_type": event_type, "timestamp": _iso(ts)}
    if stage_id is not None:
        ev["stage_id"] = stage_id
    if payload is not None:
        ev["payload"] = payload
    manifest.events.append(ev)


def stage_started(manifest: DeployManifest, *, stage_id: str, kind: str, ts: datetime) -> None:
    manifest.stages.setdefault(stage_id, {})
    manifest.stages[stage_id].update(
        {
            "stage_id": stage_id,
            "kind": kind,
            "status": "running",
            "started_at": _iso(ts),
        }
    )
    add_event(manifest, event_type="stage_started", ts=ts, stage_id=stage_id, payload={"kind": kind})


def stage_finished(manifest: DeployManifest, *, stage_id: str, ts: datetime, result: Dict[str, Any]) -> None:
    """
    Registra a conclusão de um Stage a partir de `StageResult.to_dict()`.

    A duração é calculada a partir de `started_at` quando disponível.
    """
    s = manifest.stages.setdefault(stage_id, {"stage_id": stage_id})
    started_iso = s.get("started_at")
    started_dt = datetime.fromisoformat(started_iso) if started_iso else ts

    status = result.get("status", "success")
    s.update(
        {
            "kind": result.get("kind", s.get("kind")),
            "status": status,
            "finished_at": _iso(ts),
            "duration_ms": _ms_between(started_dt, ts),
            "summary": result.get("summary"),
            "exit_code": result.get("exit_code"),
            "warnings": result.get("warnings", []) or [],
            "artifacts": result.get("artifacts", {}) or {},
        }
    )
    if "gate" in (result.get("payload") or {}):
        s["gate"] = result["payload"]["gate"]

    add_event(
        manifest,
        event_type="stage_finished",
        ts=ts,
        stage_id=stage_id,
        payload={"status": status, "duration_ms": s.get("duration_ms", 0)},
    )


def stage_failed(manifest: DeployManifest, *, stage_id: str, ts: datetime, error: Dict[str, Any]) -> None:
    """Marca o Stage como `failed` e registra o `AtlasErrorPayload` serializado."""
    s = manifest.stages.setdefault(stage_id, {"stage_id": stage_id})
    started_iso = s.get("started_at")
    s.update(
        {
            "status": "failed",
            "finished_at": _iso(ts),
            "duration_ms": _ms_between(datetime.fromisoformat(started_iso), ts) if started_iso else 0,
            "error": error,
        }
    )
    add_event(manifest, event_type="stage_failed", ts=ts, stage_id=stage_id, payload={"error": error})


def stage_skipped(manifest: DeployManifest, *, stage_id: str, kind: str, ts: datetime, reason: str) -> None:
    manifest.stages[stage_id] = {
        "stage_id": stage_id,
        "kind": kind,
        "status": "skipped",
        "reason": reason,
    }
    add_event(manifest, event_type="stage_skipped", ts=ts, stage_id=stage_id, payload={"reason": reason})


def run_finished(manifest: DeployManifest, *, status: str, ts: datetime, reason: Optional[str] = None) -> None:
    manifest.run["status"] = status
    manifest.run["finished_at"] = _iso(ts)
    if reason is not None:
        manifest.run["reason"] = reason
    started = manifest.run.get("started_at")
    if started:
        manifest.run["duration_ms"] = _ms_between(datetime.fromisoformat(started), ts)
    add_event(manifest, event_type="run_finished", ts=ts, payload={"status": status, "reason": reason})


def save_manifest(manifest: DeployManifest, path: Path) -> None:
    """
    Persiste o Manifest em JSON determinístico (`sort_keys=True`).

    Diretórios intermediários são criados automaticamente.

    Raises:
        OSError: Em caso de falha ao criar diretórios ou escrever o arquivo.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(manifest.to_dict(), ensure_ascii=False, indent=2, sort_keys=True, default=str),
        encoding="utf-8",
    )


def load_manifest(path: Path) -> DeployManifest:
    data = json.loads(path.read_text(encoding="utf-8"))
    return DeployManifest.from_dict(data)
