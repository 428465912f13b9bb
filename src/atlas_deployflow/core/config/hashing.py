"""
Hashing canônico de configuração e definição de pipeline.

O hash gerado representa a identidade estrutural das entradas de uma
run e é registrado no Manifest para rastreabilidade.

Política de hashing (v1):
    - Serialização JSON canônica (chaves ordenadas, separadores compactos)
    - Codificação UTF-8
    - Algoritmo SHA-256

Invariantes:
    - Entradas estruturalmente equivalentes produzem o mesmo hash
    - O valor gerado é sempre uma string hexadecimal de 64 caracteres
"""


import hashlib
import json
from typing import Any, Dict, Iterable


def _sha256_canonical(value: Any) -> str:
    canonical_json = json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Gera um hash determinístico da configuração efetiva do pipeline.

    Args:
        config (Dict[str, Any]): Configuração efetiva do pipeline.

    Returns:
        str: Hash SHA-256 hexadecimal da configuração.

    Raises:
        TypeError: Se o objeto fornecido não for um dicionário.
    """

    if not isinstance(config, dict):
        raise TypeError(
            f"Config para hashing deve ser dict, recebido: {type(config).__name__}"
        )

    return _sha256_canonical(config)


def compute_pipeline_hash(stages: Iterable[Any]) -> str:
    """
    Gera um hash determinístico da definição ordenada de Stages.

    A ordem dos Stages participa do hash; a ordem de `produces`/`requires`
    não participa.
    """
    canonical = []
    for stage in stages:
        gate = getattr(stage, "gate", None)
        canonical.append(
            {
                "id": stage.id,
                "kind": getattr(stage.kind, "value", stage.kind),
                "command": list(stage.command),
                "params": dict(stage.params),
                "continue_on_failure": bool(stage.continue_on_failure),
                "produces": sorted(stage.produces),
                "requires": sorted(stage.requires),
                "capture_output": stage.capture_output,
                "timeout_s": stage.timeout_s,
                "gate": None
                if gate is None
                else {
                    "signal_artifact": gate.signal_artifact,
                    "policy": gate.policy.value,
                    "timeout_s": gate.timeout_s,
                    "poll_interval_s": gate.poll_interval_s,
                    "timeout_as_pass": gate.timeout_as_pass,
                },
            }
        )
    return _sha256_canonical(canonical)
