"""
Cliente HTTP de quality gate para SonarQube.

Implementa `QualityGateClient` sobre a Web API do SonarQube:

    1. GET /api/ce/task?id=<ceTaskId>
         PENDING | IN_PROGRESS → None (ainda sem veredito)
         FAILED | CANCELED     → veredito negativo `analysis-failed`
         SUCCESS               → segue para o passo 2 com `analysisId`
    2. GET /api/qualitygates/project_status?analysisId=<analysisId>
         OK | WARN → `quality-gate-passed`
         ERROR     → `quality-gate-failed`
         NONE      → `no-quality-gate` (aprovado; não há gate associado)

Autenticação: token como usuário em HTTP Basic, senha vazia.
Falhas de transporte, HTTP ou JSON são convertidas em
`QualityGateUnavailable`.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import requests

from atlas_deployflow.core.config.settings import SonarQubeSettings
from atlas_deployflow.core.exceptions import QualityGateUnavailable
from atlas_deployflow.core.pipeline.types import GateVerdict


REASON_PASSED = "quality-gate-passed"
REASON_FAILED = "quality-gate-failed"
REASON_ANALYSIS_FAILED = "analysis-failed"
REASON_NO_GATE = "no-quality-gate"

_PENDING_TASK_STATUSES = {"PENDING", "IN_PROGRESS"}
_FAILED_TASK_STATUSES = {"FAILED", "CANCELED"}
_PASSING_GATE_STATUSES = {"OK", "WARN"}


class SonarQubeGateClient:
    """Consulta o estado de uma submissão de análise e o quality gate resultante."""

    def __init__(self, settings: SonarQubeSettings, *, session: Optional[requests.Session] = None):
        if not settings.host_url:
            raise ValueError("sonarqube.host_url is required for the quality gate client")
        self.base_url = str(settings.host_url).rstrip("/")
        self.timeout = settings.request_timeout_s
        self.session = session if session is not None else requests.Session()
        self.session.verify = settings.verify_tls
        if settings.token:
            self.session.auth = (settings.token, "")

    def _get(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            raise QualityGateUnavailable(
                message=f"SonarQube request failed: {e}",
                details={"url": url, "params": dict(params), "exception_class": e.__class__.__name__},
                hint="Verifique sonarqube.host_url, o token e a conectividade com o servidor.",
            ) from e
        except ValueError as e:
            raise QualityGateUnavailable(
                message="SonarQube returned an invalid JSON response",
                details={"url": url, "params": dict(params)},
            ) from e

    def fetch_verdict(self, submission_id: str) -> Optional[GateVerdict]:
        task = (self._get("/api/ce/task", {"id": submission_id}).get("task") or {})
        task_status = str(task.get("status", "")).upper()

        if task_status in _PENDING_TASK_STATUSES:
            return None
        if task_status in _FAILED_TASK_STATUSES:
            return GateVerdict(
                passed=False,
                reason=REASON_ANALYSIS_FAILED,
                details={"submission_id": submission_id, "task_status": task_status},
            )

        analysis_id = task.get("analysisId")
        if task_status != "SUCCESS" or not analysis_id:
            raise QualityGateUnavailable(
                message=f"Unexpected SonarQube task state: {task_status or 'missing'}",
                details={"submission_id": submission_id, "task_status": task_status},
            )

        project_status = (
            self._get("/api/qualitygates/project_status", {"analysisId": analysis_id}).get("projectStatus") or {}
        )
        gate_status = str(project_status.get("status", "NONE")).upper()
        details = {
            "submission_id": submission_id,
            "analysis_id": analysis_id,
            "gate_status": gate_status,
            "failed_conditions": [
                c.get("metricKey")
                for c in project_status.get("conditions", []) or []
                if str(c.get("status", "")).upper() == "ERROR"
            ],
        }

        if gate_status in _PASSING_GATE_STATUSES:
            return GateVerdict(passed=True, reason=REASON_PASSED, details=details)
        if gate_status == "NONE":
            return GateVerdict(passed=True, reason=REASON_NO_GATE, details=details)
        return GateVerdict(passed=False, reason=REASON_FAILED, details=details)
