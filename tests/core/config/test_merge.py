# tests/core/config/test_merge.py
"""
Testes da política canônica de deep-merge de configuração.

Política verificada:
    - dict → merge recursivo
    - list → sobrescrita total
    - escalar → sobrescrita
    - conflito de tipo → ConfigTypeConflictError
    - int/float são compatíveis; bool não é numérico
    - entradas nunca são mutadas
"""

import pytest

from atlas_deployflow.core.config.errors import ConfigTypeConflictError
from atlas_deployflow.core.config.merge import deep_merge


def test_merge_simple_override():
    base = {"a": 1, "b": 2}
    override = {"b": 99}

    out = deep_merge(base, override)

    assert out == {"a": 1, "b": 99}
    assert base == {"a": 1, "b": 2}
    assert override == {"b": 99}


def test_merge_nested_dict():
    base = {"notify": {"sender": "ci@acme.io", "smtp": {"host": "a", "port": 25}}}
    override = {"notify": {"smtp": {"port": 587}}}

    out = deep_merge(base, override)

    assert out == {"notify": {"sender": "ci@acme.io", "smtp": {"host": "a", "port": 587}}}


def test_merge_list_override_total():
    base = {"notify": {"recipients": ["a@acme.io", "b@acme.io"]}}
    override = {"notify": {"recipients": ["c@acme.io"]}}

    assert deep_merge(base, override) == {"notify": {"recipients": ["c@acme.io"]}}


def test_merge_adds_new_keys():
    assert deep_merge({"a": 1}, {"stages": {"deploy": {"enabled": False}}}) == {
        "a": 1,
        "stages": {"deploy": {"enabled": False}},
    }


def test_int_and_float_are_compatible():
    assert deep_merge({"timeout_s": 300.0}, {"timeout_s": 30}) == {"timeout_s": 30}


@pytest.mark.parametrize(
    "base, override",
    [
        ({"notify": {"smtp": {}}}, {"notify": "off"}),
        ({"notify": {"recipients": ["a"]}}, {"notify": {"recipients": "a"}}),
        ({"verify_tls": True}, {"verify_tls": 1}),
    ],
)
def test_merge_type_conflict_raises(base, override):
    with pytest.raises(ConfigTypeConflictError):
        deep_merge(base, override)
