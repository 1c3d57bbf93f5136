# tests/errors/test_failure_payloads.py
"""
Testes do contrato de falhas do motor (payload canônico via engine).

Cada tipo de falha do catálogo é provocado por um documento mínimo e
verificado no `QueryResult`:
- status FAILED e `payload["error"]` com type/message/details/hint
- `decision_required` quando o chamador precisa relaxar algo explicitamente
- nenhum resultado parcial disfarçado de sucesso

Invariantes:
    - Falhas-valor (UNSATISFIABLE, NO_PLAN_FOUND, ...) mantêm o objeto de
      domínio em `value`
    - Exceções estruturais são convertidas sem expor stack trace

Limites explícitos:
    - Não valida o texto das mensagens (apenas códigos e detalhes)
"""

import pytest

try:
    from atlas_reasoning import QueryStatus, ReasoningEngine
    from atlas_reasoning.planning import SPACE_EXHAUSTED, HeuristicRegistry, HeuristicSpec
except Exception as e:  # noqa: BLE001
    ReasoningEngine = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


PAYLOAD_KEYS = {"type", "message", "details", "hint", "decision_required"}


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing engine failure contract. Implement:\n"
            "- src/atlas_reasoning/core/errors.py (ReasoningErrorPayload + factories)\n"
            "- src/atlas_reasoning/core/engine/engine.py (exception -> payload)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def _failed(result, error_type):
    assert result.status == QueryStatus.FAILED
    err = result.error
    assert err is not None
    assert set(err) == PAYLOAD_KEYS
    assert err["type"] == error_type
    return err


def test_inference_stalled(engine_config, ancestry_document):
    _require_imports()
    cfg = dict(engine_config, inference={"max_iterations": 1})
    r = ReasoningEngine(config=cfg).infer(ancestry_document)

    err = _failed(r, "INFERENCE_STALLED")
    assert err["details"]["bound"] == 1
    assert err["details"]["iterations"] == 2


def test_circular_dependency(engine_config):
    _require_imports()
    doc = {"RULES": ["IF q THEN p", "IF p THEN q"]}
    r = ReasoningEngine(config=engine_config).infer(doc, mode="backward", query="p")

    err = _failed(r, "CIRCULAR_DEPENDENCY")
    assert err["details"]["cycles"] == [["p", "q", "p"]]


def test_unsatisfiable_names_conflicting_constraints(engine_config):
    """
    Conjunto mínimo de restrições conflitantes, com decisão exigida do chamador.
    """
    _require_imports()
    doc = {"VARIABLES": ["x"], "DOMAINS": {"x": "0..9"}, "CONSTRAINTS": ["x < 2", "x > 5"]}
    r = ReasoningEngine(config=engine_config).solve(doc)

    err = _failed(r, "UNSATISFIABLE")
    assert err["decision_required"] is True
    assert err["details"]["conflicting_constraints"] == ["C1", "C2"]
    assert r.value is not None
    assert "nodes" in r.metrics


def test_unbounded_objective(engine_config):
    _require_imports()
    doc = {"OBJECTIVE_FUNCTION": "maximize: x + y", "SUBJECT_TO": ["x - y <= 1"]}
    r = ReasoningEngine(config=engine_config).schedule(doc)

    err = _failed(r, "UNBOUNDED_OBJECTIVE")
    assert err["details"]["sense"] == "maximize"


def test_no_plan_found(engine_config, route_planning_document):
    _require_imports()
    doc = dict(route_planning_document, GOAL_STATE=["at(e)"])
    r = ReasoningEngine(config=engine_config).plan(doc)

    err = _failed(r, "NO_PLAN_FOUND")
    assert err["details"]["reason"] == SPACE_EXHAUSTED
    assert err["details"]["deepest_depth"] == 3
    assert r.metrics["reason"] == SPACE_EXHAUSTED


def test_cycle_detected(engine_config):
    _require_imports()
    doc = {
        "ACTIVITIES": {
            "A": {"duration": 1, "predecessors": ["B"]},
            "B": {"duration": 1, "predecessors": ["A"]},
        }
    }
    r = ReasoningEngine(config=engine_config).schedule(doc)

    err = _failed(r, "CYCLE_DETECTED")
    assert err["details"]["cycle"] == ["A", "B", "A"]
    assert r.value is None


def test_infeasible_schedule(engine_config):
    _require_imports()
    doc = {
        "ACTIVITIES": {"A": {"duration": 2, "resources": {"dev": 2}}},
        "RESOURCES": {"dev": 1},
    }
    r = ReasoningEngine(config=engine_config).schedule(doc)

    err = _failed(r, "INFEASIBLE_SCHEDULE")
    assert err["decision_required"] is True
    assert err["details"]["conflict"]["reason"] == "demand_exceeds_capacity"


@pytest.mark.parametrize(
    "method, doc",
    [
        ("plan", {"INITIAL_STATE": ["a"], "GOAL_STATE": ["b"]}),
        ("schedule", {"ACTIVITIES": {"A": {"duration": 1, "predecessors": ["Z"]}}}),
        ("solve", {"FACTS": ["a"]}),
        ("evaluate", {"DECISION_TREE": {"outcomes": [{"probability": 0.3, "utility": 1}]}}),
        ("infer", {"FACTS": ["parent(?x, bia)"]}),
    ],
)
def test_document_invalid(engine_config, method, doc):
    """
    Documentos estruturalmente inválidos viram DOCUMENT_INVALID.

    Cobertura:
        - seção obrigatória ausente (OPERATORS)
        - predecessor inexistente
        - consulta sem as seções do componente
        - probabilidades que não somam 1
        - fato não ground
    """
    _require_imports()
    r = getattr(ReasoningEngine(config=engine_config), method)(doc)
    _failed(r, "DOCUMENT_INVALID")


def test_engine_configuration_error(engine_config, ancestry_document, file_planning_document):
    _require_imports()
    engine = ReasoningEngine(config=engine_config)

    _failed(engine.infer(ancestry_document, mode="backward"), "ENGINE_CONFIGURATION_ERROR")
    _failed(engine.infer(ancestry_document, mode="sideways"), "ENGINE_CONFIGURATION_ERROR")
    _failed(engine.plan(file_planning_document, strategy="random_walk"), "ENGINE_CONFIGURATION_ERROR")


def _exploding_heuristic(state, goal):
    raise RuntimeError("boom")


def test_unexpected_exception_is_engine_execution_error(engine_config, file_planning_document):
    """
    Exceções inesperadas de extensões (ex.: heurística registrada) são
    encapsuladas sem stack trace.
    """
    _require_imports()
    registry = HeuristicRegistry.v1()
    registry.register(HeuristicSpec(heuristic_id="exploding", fn=_exploding_heuristic))
    engine = ReasoningEngine(config=engine_config, registry=registry)

    r = engine.plan(file_planning_document, strategy="best_first", heuristic="exploding")

    err = _failed(r, "ENGINE_EXECUTION_ERROR")
    assert err["details"] == {"query": "plan", "exc_type": "RuntimeError", "exc_message": "boom"}
    assert r.events[-1]["level"] == "error"
