"""
Carregamento declarativo de definições de pipeline.

Formato (YAML ou JSON):

    name: demo-app
    stages:
      - id: checkout
        kind: checkout
        params: {repo_url: "https://github.com/acme/demo.git", branch: main}
        produces: [source]
      - id: sonar
        kind: static_analysis
        requires: [source]
        produces: [sonar.task_id]
        gate: {policy: abort, timeout_s: 300}
      - id: notify
        kind: notify
        params: {recipients: ["team@acme.io"], attachments: [trivy.report]}
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

from atlas_deployflow.core.config.errors import InvalidConfigRootTypeError
from atlas_deployflow.core.config.loader import load_mapping_file

from .stage import StageDefinition


@dataclass(frozen=True)
class PipelineDefinition:
    """Pipeline declarado: nome e Stages em ordem de execução."""

    name: str
    stages: Tuple[StageDefinition, ...]


def parse_pipeline_definition(data: Dict[str, Any], *, default_name: str = "pipeline") -> PipelineDefinition:
    stages_raw = data.get("stages")
    if not isinstance(stages_raw, list):
        raise InvalidConfigRootTypeError("Pipeline definition must contain a 'stages' list")

    stages: List[StageDefinition] = []
    for index, raw in enumerate(stages_raw):
        try:
            stages.append(StageDefinition.from_dict(raw))
        except ValueError as e:
            raise ValueError(f"Invalid stage at position {index}: {e}") from e

    return PipelineDefinition(name=str(data.get("name") or default_name), stages=tuple(stages))


def load_pipeline_definition(path: Union[str, Path]) -> PipelineDefinition:
    """Lê um arquivo de definição e constrói os `StageDefinition` correspondentes."""
    p = Path(path)
    return parse_pipeline_definition(load_mapping_file(p), default_name=p.stem)
