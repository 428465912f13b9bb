"""
Composição do assunto e do corpo da notificação terminal.

O texto é derivado apenas do estado final da run (status, motivo,
resultados por Stage, vereditos e warnings); nenhum segredo ou conteúdo
de artefato é incluído, somente nomes.
"""

from __future__ import annotations

from typing import List, Sequence

from atlas_deployflow.core.pipeline.context import ExecutionContext
from atlas_deployflow.core.pipeline.types import StageResult


def build_subject(ctx: ExecutionContext, *, pipeline: str, prefix: str) -> str:
    status = ctx.status.value.upper()
    subject = f"{pipeline} #{ctx.run_id}: {status}"
    if ctx.reason:
        subject += f" ({ctx.reason})"
    return f"{prefix} {subject}".strip()


def build_body(
    ctx: ExecutionContext,
    *,
    pipeline: str,
    results: Sequence[StageResult],
    attachments: Sequence[str] = (),
) -> str:
    lines: List[str] = [
        f"Pipeline: {pipeline}",
        f"Run: {ctx.run_id}",
        f"Status: {ctx.status.value}",
    ]
    if ctx.reason:
        lines.append(f"Reason: {ctx.reason}")

    lines.append("")
    lines.append("Stages:")
    if not results:
        lines.append("  (none executed)")
    for r in results:
        line = f"  - {r.stage_id} [{r.kind.value}] {r.status.value}"
        if r.exit_code is not None:
            line += f" exit={r.exit_code}"
        if r.duration_ms:
            line += f" {r.duration_ms}ms"
        lines.append(line)
        error = (r.payload or {}).get("error")
        if error:
            lines.append(f"      {error.get('type')}: {error.get('message')}")

    if ctx.verdicts:
        lines.append("")
        lines.append("Quality gates:")
        for stage_id, verdict in ctx.verdicts.items():
            outcome = "passed" if verdict.passed else "failed"
            lines.append(f"  - {stage_id}: {outcome} ({verdict.reason})")

    warnings = [(sid, msg) for sid, msgs in ctx.warnings.items() for msg in msgs]
    if warnings:
        lines.append("")
        lines.append("Warnings:")
        for sid, msg in warnings:
            lines.append(f"  - [{sid}] {msg}")

    if attachments:
        lines.append("")
        lines.append("Attachments: " + ", ".join(attachments))

    return "\n".join(lines) + "\n"
