# tests/core/knowledge/test_backward_chaining.py
"""
Testes do encadeamento para trás (resolução SLD com detecção de ciclos).

Invariantes:
    - Fatos são tentados antes de regras; regras em ordem de declaração
    - Um objetivo que reaparece na própria prova é ciclo, nunca laço infinito
    - Falha com ciclos registrados → CircularDependency (falha-valor)
"""

import pytest

try:
    from atlas_reasoning.knowledge import CircularDependency, ProofResult, backward_chain, infer
except Exception as e:  # noqa: BLE001
    backward_chain = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing inference module. Implement:\n"
            "- src/atlas_reasoning/knowledge/inference.py (backward_chain)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_ground_query_is_proven_with_proof_tree(ancestry_document):
    _require_imports()
    out = backward_chain("ancestor(ana, davi)", ancestry_document["FACTS"], ancestry_document["RULES"])

    assert isinstance(out, ProofResult)
    assert out.proven is True
    assert out.bindings == ({},)
    assert out.proof.via == "rule"
    assert out.proof.rule_id == "R2"
    assert "ancestor(ana, davi)" in out.proof.explain()


def test_fact_query_is_proven_directly(ancestry_document):
    _require_imports()
    out = backward_chain("parent(ana, bia)", ancestry_document["FACTS"], ancestry_document["RULES"])
    assert out.proven is True
    assert out.proof.via == "fact"


def test_query_with_variable_enumerates_answers(ancestry_document):
    """
    Uma consulta com variável retorna todas as substituições distintas.

    Limites explícitos:
        - A ordem das respostas não é validada
    """
    _require_imports()
    out = backward_chain("ancestor(ana, ?who)", ancestry_document["FACTS"], ancestry_document["RULES"])

    assert out.proven is True
    assert {b["?who"] for b in out.bindings} == {"bia", "caio", "davi"}


def test_unprovable_query_without_cycles(ancestry_document):
    _require_imports()
    out = backward_chain("ancestor(davi, ana)", ancestry_document["FACTS"], ancestry_document["RULES"])

    assert isinstance(out, ProofResult)
    assert out.proven is False
    assert out.proof is None


def test_self_dependent_rules_report_circular_dependency():
    """
    `p` só é provável via `q`, que só é provável via `p`.

    Invariantes:
        - A busca termina
        - O ciclo é reportado na ordem da pilha de prova
    """
    _require_imports()
    out = backward_chain("p", [], ["IF q THEN p", "IF p THEN q"])

    assert isinstance(out, CircularDependency)
    assert out.cycles == (("p", "q", "p"),)
    err = out.to_error().to_dict()
    assert err["type"] == "CIRCULAR_DEPENDENCY"
    assert err["details"]["query"] == "p"


def test_cycle_does_not_block_alternative_proof():
    _require_imports()
    out = backward_chain("p", ["r"], ["IF q THEN p", "IF p THEN q", "IF r THEN p"])

    assert isinstance(out, ProofResult)
    assert out.proven is True
    assert out.cycles


def test_depth_limit_is_reported(ancestry_document):
    _require_imports()
    out = backward_chain("ancestor(ana, davi)", ancestry_document["FACTS"], ancestry_document["RULES"], max_depth=1)

    assert out.proven is False
    assert out.depth_limited is True


def test_negated_query_uses_negation_as_failure(ancestry_document):
    _require_imports()
    out = backward_chain("not parent(davi, ana)", ancestry_document["FACTS"], ancestry_document["RULES"])
    assert out.proven is True
    assert out.proof.via == "naf"


def test_backward_mode_requires_query(ancestry_document):
    _require_imports()
    with pytest.raises(ValueError):
        infer(ancestry_document["FACTS"], ancestry_document["RULES"], mode="backward")
