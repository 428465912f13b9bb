# tests/core/pipeline/test_registry_unique_stage_id.py
"""
Testes de unicidade de identificadores no StageRegistry.

Os testes asseguram que:
- Stages com `stage.id` distintos são aceitos, em ordem de registro
- Stages com `stage.id` duplicados são rejeitados explicitamente
- a tentativa de duplicidade não corrompe o estado interno

Decisões arquiteturais:
    - `stage.id` é a chave primária de um Stage no registry
    - A unicidade é imposta no momento do registro

Limites explícitos:
    - Não valida artefatos (ver test_planner)
    - Não valida execução de Stages
"""

import pytest

try:
    from atlas_deployflow.core.pipeline.registry import DuplicateStageIdError, StageRegistry
    from atlas_deployflow.core.pipeline.stage import StageDefinition
    from atlas_deployflow.core.pipeline.types import StageKind
except Exception as e:  # noqa: BLE001
    StageRegistry = None
    DuplicateStageIdError = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    """
    Garante que o StageRegistry esteja disponível para os testes.

    Falha imediatamente, sem fallback, quando o registry canônico ou sua
    exceção de duplicidade não podem ser importados.
    """
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing StageRegistry. Implement:"
            "- src/atlas_deployflow/core/pipeline/registry.py (StageRegistry, DuplicateStageIdError)"
            f"Import error: {_IMPORT_ERR}"
        )


def test_registry_rejects_duplicate_stage_id():
    """
    Verifica que o StageRegistry rejeita Stages com identificadores duplicados.

    Invariantes:
        - O primeiro Stage com um dado `stage.id` é aceito
        - O segundo Stage com o mesmo `stage.id` é rejeitado
        - O estado interno do registry não é alterado após a falha
    """
    _require_imports()
    reg = StageRegistry()
    reg.add(StageDefinition(id="checkout", kind=StageKind.CHECKOUT))

    with pytest.raises(DuplicateStageIdError):
        reg.add(StageDefinition(id="checkout", kind=StageKind.BUILD))

    assert len(reg) == 1
    assert reg.get("checkout").kind == StageKind.CHECKOUT


def test_registry_accepts_unique_ids():
    _require_imports()
    reg = StageRegistry.from_stages(
        [
            StageDefinition(id="checkout", kind=StageKind.CHECKOUT),
            StageDefinition(id="sonar", kind=StageKind.STATIC_ANALYSIS),
            StageDefinition(id="build", kind=StageKind.BUILD),
        ]
    )
    assert [s.id for s in reg.list()] == ["checkout", "sonar", "build"]


def test_blank_stage_id_is_rejected_at_definition():
    _require_imports()
    with pytest.raises(ValueError):
        StageDefinition(id="  ", kind=StageKind.BUILD)
