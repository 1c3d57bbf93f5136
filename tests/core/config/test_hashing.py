# tests/core/config/test_hashing.py
"""
Testes do hashing de configuração.

O hash identifica a configuração efetiva usada por uma consulta
(`QueryResult.metrics["config_hash"]`) e precisa ser:
- determinístico e independente da ordem das chaves
- igual ao SHA-256 do JSON canônico
- sensível a qualquer mudança de valor

Limites explícitos:
    - Não valida hashing do documento compilado (ver tests/core/document)
"""

import hashlib
import json

import pytest

try:
    from atlas_reasoning.core.config.hashing import compute_config_hash
except Exception as e:  # noqa: BLE001
    compute_config_hash = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _canonical_json_bytes(obj: dict) -> bytes:
    """
    Serialização JSON canônica usada como referência explícita nos testes.

    Decisões arquiteturais:
        - As chaves são ordenadas (`sort_keys=True`)
        - Não há espaços extras (`separators=(",", ":")`)
        - A codificação utilizada é UTF-8
    """
    s = json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return s.encode("utf-8")


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing hashing module. Implement:\n"
            "- src/atlas_reasoning/core/config/hashing.py (compute_config_hash)\n"
            "Policy expected: SHA-256 of canonical JSON serialization.\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_hash_is_deterministic():
    """
    Verifica que o hash é determinístico e independente da ordem das chaves.

    Invariantes:
        - Configurações equivalentes produzem o mesmo hash
        - O hash possui comprimento fixo de 64 caracteres (SHA-256)
    """
    _require_imports()
    h1 = compute_config_hash({"b": 2, "a": 1})
    h2 = compute_config_hash({"a": 1, "b": 2})
    assert h1 == h2
    assert isinstance(h1, str)
    assert len(h1) == 64


def test_hash_matches_sha256_of_canonical_json():
    _require_imports()
    cfg = {"planner": {"strategy": "bounded", "depth_bound": 5}, "montecarlo": {"seed": 42}}
    expected = hashlib.sha256(_canonical_json_bytes(cfg)).hexdigest()
    assert compute_config_hash(cfg) == expected


def test_hash_changes_on_override():
    """Uma mudança de valor (ex.: semente de simulação) altera o hash."""
    _require_imports()
    base = {"montecarlo": {"seed": 42}}
    changed = {"montecarlo": {"seed": 43}}
    assert compute_config_hash(base) != compute_config_hash(changed)


def test_config_and_document_share_canonical_form():
    """
    Configuração e documento usam a mesma serialização canônica.

    Invariantes:
        - Para um mapping serializável, os dois hashes coincidem
        - O par (config_hash, document_hash) identifica uma execução reprodutível
    """
    _require_imports()
    from atlas_reasoning.core.document import compute_document_hash

    obj = {"montecarlo": {"seed": 42, "trials": 1000}, "ação": "simular"}
    assert compute_config_hash(obj) == compute_document_hash(obj)
    assert compute_config_hash(obj) == hashlib.sha256(_canonical_json_bytes(obj)).hexdigest()


def test_hash_rejects_non_dict():
    _require_imports()
    with pytest.raises(TypeError):
        compute_config_hash([("a", 1)])
