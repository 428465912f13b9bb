"""
GateEvaluator — espera limitada por um veredito externo de quality gate.

É o único ponto do core com semântica de espera: consulta o cliente
periodicamente até obter um veredito ou esgotar o timeout. Relógio e
sleep são injetáveis para testes determinísticos.
"""

from __future__ import annotations

import time
from typing import Callable, Optional, Protocol

from atlas_deployflow.core.pipeline.types import GateVerdict


REASON_TIMEOUT = "timeout"


class QualityGateClient(Protocol):
    def fetch_verdict(self, submission_id: str) -> Optional[GateVerdict]:
        """Retorna o veredito, ou None enquanto a análise ainda está pendente."""
        ...


class GateEvaluator:
    """Consulta um `QualityGateClient` até o veredito ou o timeout."""

    def __init__(
        self,
        client: QualityGateClient,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.clock = clock
        self.sleep = sleep

    def evaluate(
        self,
        submission_id: str,
        *,
        timeout_s: float,
        poll_interval_s: float,
        timeout_as_pass: bool = False,
    ) -> GateVerdict:
        """
        Bloqueia até o veredito do serviço externo ou até `timeout_s`.

        O cliente é consultado ao menos uma vez, mesmo com `timeout_s=0`.
        No timeout o veredito é `passed=timeout_as_pass, reason="timeout"`.
        Erros do cliente (ex.: `QualityGateUnavailable`) são propagados.
        """
        deadline = self.clock() + max(0.0, float(timeout_s))
        polls = 0
        while True:
            polls += 1
            verdict = self.client.fetch_verdict(submission_id)
            if verdict is not None:
                return verdict

            remaining = deadline - self.clock()
            if remaining <= 0:
                return GateVerdict(
                    passed=bool(timeout_as_pass),
                    reason=REASON_TIMEOUT,
                    details={"submission_id": submission_id, "timeout_s": timeout_s, "polls": polls},
                )
            self.sleep(min(float(poll_interval_s), remaining))
