# tests/core/knowledge/test_forward_chaining.py
"""
Testes do encadeamento para frente.

Cobertura:
- ponto fixo com regras recursivas (ancestralidade)
- idempotência: reaplicar sobre o ponto fixo não deriva nada
- negação por falha contra o conjunto de fatos corrente
- proveniência das derivações
- limite de iterações → InferenceStalled (falha-valor, não exceção)

Invariantes:
    - Fatos iniciais sempre pertencem ao resultado
    - O resultado independe de chamadas anteriores (sem estado global)
"""

import pytest

try:
    from atlas_reasoning.knowledge import (
        Fact,
        InferenceResult,
        InferenceStalled,
        KnowledgeBase,
        forward_chain,
        infer,
    )
except Exception as e:  # noqa: BLE001
    forward_chain = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing inference module. Implement:\n"
            "- src/atlas_reasoning/knowledge/inference.py (forward_chain)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_ancestry_fixpoint(ancestry_document):
    """
    Verifica o fecho transitivo de `parent` em `ancestor`.

    Invariantes:
        - 3 fatos iniciais + 6 ancestrais derivados
        - O fato mais distante (ana → davi) exige um segundo passe
    """
    _require_imports()
    out = forward_chain(ancestry_document["FACTS"], ancestry_document["RULES"])

    assert isinstance(out, InferenceResult)
    assert len(out.facts) == 9
    assert len(out.derived) == 6
    assert Fact.parse("ancestor(ana, davi)") in out.facts
    assert Fact.parse("ancestor(davi, ana)") not in out.facts
    assert out.iterations == 2
    assert out.iterations <= out.bound


def test_single_rule_reaches_fixpoint_in_one_pass():
    _require_imports()
    out = forward_chain(["parent(ana, bia)"], ["IF parent(?x, ?y) THEN ancestor(?x, ?y)"])
    assert out.iterations == 1
    assert out.sorted_facts() == ["ancestor(ana, bia)", "parent(ana, bia)"]


def test_forward_chaining_is_idempotent(ancestry_document):
    _require_imports()
    first = forward_chain(ancestry_document["FACTS"], ancestry_document["RULES"])
    second = forward_chain(list(first.facts), ancestry_document["RULES"])

    assert second.facts == first.facts
    assert second.derived == ()
    assert second.iterations == 0


def test_negation_as_failure():
    """Pinguins são aves, mas não voam: `not penguin(?x)` bloqueia a regra."""
    _require_imports()
    out = forward_chain(
        ["bird(tweety)", "bird(pingu)", "penguin(pingu)"],
        ["IF bird(?x) AND not penguin(?x) THEN flies(?x)"],
    )
    assert Fact.parse("flies(tweety)") in out.facts
    assert Fact.parse("flies(pingu)") not in out.facts


def test_derivations_record_rule_and_support():
    _require_imports()
    out = forward_chain(["parent(ana, bia)"], [{"id": "direct", "if": "parent(?x, ?y)", "then": "ancestor(?x, ?y)"}])

    (d,) = out.derivations
    assert d.rule_id == "direct"
    assert [str(s) for s in d.support] == ["parent(ana, bia)"]
    assert d.iteration == 1
    payload = out.to_dict()
    assert payload["derivations"][0]["rule"] == "direct"


def test_iteration_limit_returns_stalled_value(ancestry_document):
    """
    Um limite explícito menor que o necessário produz `InferenceStalled`.

    Decisões arquiteturais:
        - Falha de convergência é valor de retorno, nunca exceção
        - O último conjunto de fatos acompanha a falha
    """
    _require_imports()
    out = forward_chain(ancestry_document["FACTS"], ancestry_document["RULES"], max_iterations=1)

    assert isinstance(out, InferenceStalled)
    assert out.bound == 1
    assert out.iterations == 2
    err = out.to_error().to_dict()
    assert err["type"] == "INFERENCE_STALLED"
    assert "parent(ana, bia)" in err["details"]["last_facts"]


def test_default_bound_from_rules_and_possible_facts(ancestry_document):
    _require_imports()
    kb = KnowledgeBase.compile(ancestry_document["FACTS"], ancestry_document["RULES"])
    # 4 constantes, consequentes binários: 3 + 16 + 16 = 35 fatos possíveis
    assert kb.facts_possible() == 35
    assert kb.iteration_bound() == 70


def test_infer_dispatch_rejects_unknown_mode():
    _require_imports()
    with pytest.raises(ValueError):
        infer(["a"], [], mode="sideways")
