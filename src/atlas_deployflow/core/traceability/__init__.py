"""
Pacote de rastreabilidade (traceability) do Atlas DeployFlow — Manifest v1.

API pública exposta:
    - DeployManifest    → estrutura canônica do Manifest
    - create_manifest   → criação explícita do Manifest
    - add_event         → registro explícito de eventos no Event Log
    - stage_started     → marca início de execução de um Stage
    - stage_finished    → registra conclusão de um Stage
    - stage_failed      → registra falha de um Stage
    - stage_skipped     → registra Stage não executado
    - run_finished      → registra o status terminal da run
    - save_manifest     → persistência do Manifest em JSON
    - load_manifest     → restauração determinística do Manifest

Nenhum evento é emitido implicitamente; a ordem do Event Log reflete a
ordem de chamada.
"""

from .manifest import (
    DeployManifest,
    create_manifest,
    add_event,
    stage_started,
    stage_finished,
    stage_failed,
    stage_skipped,
    run_finished,
    save_manifest,
    load_manifest,
)

__all__ = [
    "DeployManifest",
    "create_manifest",
    "add_event",
    "stage_started",
    "stage_finished",
    "stage_failed",
    "stage_skipped",
    "run_finished",
    "save_manifest",
    "load_manifest",
]
