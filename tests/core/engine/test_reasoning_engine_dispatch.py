# tests/core/engine/test_reasoning_engine_dispatch.py
"""
Testes do dispatch do `ReasoningEngine`.

Este módulo valida que cada operação de topo (infer, solve, plan, schedule,
simulate, sensitivity, evaluate) é despachada para o componente correto e
devolve um `QueryResult` completo:
- status SUCCESS com `payload` serializável e `value` de domínio
- métricas com `config_hash` e `document_hash`
- eventos estruturados da consulta
- warnings não fatais (seções ignoradas, nivelamento de recursos)

Decisões arquiteturais:
    - Um `QueryContext` novo por chamada; o engine não retém estado
    - `run` aceita texto, QueryKind ou `{kind, ...parâmetros}`
    - Tipo de consulta desconhecido é erro de configuração do chamador

Limites explícitos:
    - Falhas tipadas são cobertas em tests/errors
"""

import pytest

try:
    from atlas_reasoning import QueryKind, QueryStatus, ReasoningEngine
    from atlas_reasoning.core.exceptions import EngineConfigurationError
except Exception as e:  # noqa: BLE001
    ReasoningEngine = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing reasoning engine. Implement:\n"
            "- src/atlas_reasoning/core/engine/engine.py (ReasoningEngine)\n"
            "- src/atlas_reasoning/core/query/types.py (QueryKind, QueryResult)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_infer_forward_reports_metrics_and_hashes(engine_config, ancestry_document):
    """
    Verifica o encadeamento para frente via engine.

    Invariantes:
        - `config_hash` é o hash da configuração efetiva do engine
        - `document_hash` é SHA-256 (64 caracteres)
        - O primeiro e o último evento marcam início e fim da consulta
    """
    _require_imports()
    engine = ReasoningEngine(config=engine_config)
    r = engine.infer(ancestry_document)

    assert r.ok
    assert r.kind == QueryKind.INFER
    assert r.metrics["facts"] == 9
    assert r.metrics["derived"] == 6
    assert r.metrics["iterations"] == 2
    assert r.metrics["config_hash"] == engine.config_hash
    assert len(r.metrics["document_hash"]) == 64
    assert "ancestor(ana, davi)" in r.payload["facts"]
    assert r.events[0]["message"] == "query started"
    assert r.events[-1]["message"] == "query finished"
    assert all(ev["query_id"] == r.query_id for ev in r.events)


def test_infer_backward_through_prove_alias(engine_config, ancestry_document):
    """`prove` implica encadeamento para trás; o modo não precisa ser informado."""
    _require_imports()
    engine = ReasoningEngine(config=engine_config)
    r = engine.run(ancestry_document, {"kind": "prove", "query": "ancestor(ana, davi)"})

    assert r.ok
    assert r.kind == QueryKind.INFER
    assert r.metrics["proven"] is True
    assert r.payload["proof"]["rule"] == "R2"


def test_forward_inference_rejects_a_query(engine_config, ancestry_document):
    _require_imports()
    r = ReasoningEngine(config=engine_config).run(ancestry_document, {"kind": "infer", "query": "ancestor(ana, davi)"})

    assert r.status == QueryStatus.FAILED
    assert r.error["type"] == "ENGINE_CONFIGURATION_ERROR"
    assert r.error["details"]["mode"] == "forward"


def test_abandoned_proof_cycle_is_a_warning(engine_config):
    _require_imports()
    doc = {"FACTS": ["r"], "RULES": ["IF q THEN p", "IF p THEN q", "IF r THEN p"]}
    r = ReasoningEngine(config=engine_config).infer(doc, mode="backward", query="p")

    assert r.ok
    assert r.payload["proven"] is True
    assert any(w.startswith("proof cycle abandoned:") for w in r.warnings)


def test_solve_returns_assignment(engine_config, csp_document):
    _require_imports()
    r = ReasoningEngine(config=engine_config).solve(csp_document)

    assert r.ok
    assert r.payload["values"] == {"frontend": "vue", "backend": "fastapi"}
    assert r.metrics["soft_cost"] == 0.0
    assert r.warnings == []


def test_plan_uses_planner_configuration(engine_config, file_planning_document, route_planning_document):
    _require_imports()
    engine = ReasoningEngine(config=engine_config)

    r = engine.plan(file_planning_document)
    assert r.ok
    assert r.metrics["length"] == 1
    assert r.metrics["strategy"] == "breadth_first"

    r2 = engine.run(route_planning_document, {"kind": "plan", "strategy": "best_first", "heuristic": "satisfice"})
    assert r2.ok
    assert r2.metrics["length"] == 3
    assert r2.payload["heuristic"] == "satisfice"


def test_schedule_makespan_and_levelling_warning(engine_config, project_document):
    """
    Verifica agendamento por makespan e o aviso de nivelamento de recursos.

    Invariantes:
        - Sem recursos: cronograma CPM (makespan 12)
        - Com um único `dev`: B é atrasado e o atraso vira warning
    """
    _require_imports()
    engine = ReasoningEngine(config=engine_config)

    r = engine.schedule(project_document)
    assert r.ok
    assert r.metrics["makespan"] == 12.0
    assert r.payload["critical_paths"] == [["A", "B"], ["C"]]

    levelled = {
        "ACTIVITIES": {
            "A": {"duration": 4, "resources": {"dev": 1}},
            "B": {"duration": 3, "resources": {"dev": 1}},
        },
        "RESOURCES": {"dev": {"capacity": 1}},
    }
    r2 = engine.schedule(levelled)
    assert r2.ok
    assert r2.metrics["makespan"] == 7.0
    assert r2.warnings == ["activities delayed by resource levelling: ['B']"]


def test_schedule_linear_objective(engine_config):
    _require_imports()
    doc = {
        "OBJECTIVE_FUNCTION": "minimize: 50*dev + 80*senior",
        "SUBJECT_TO": ["dev + senior >= 100", "senior >= 20"],
    }
    r = ReasoningEngine(config=engine_config).schedule(doc)

    assert r.ok
    assert r.metrics["objective_value"] == pytest.approx(5600.0)
    assert r.payload["values"]["senior"] == pytest.approx(20.0)


def test_simulate_is_reproducible(engine_config, uncertain_project_document):
    _require_imports()
    engine = ReasoningEngine(config=engine_config)

    a = engine.simulate(uncertain_project_document)
    b = engine.run(uncertain_project_document, "simulate")

    assert a.ok and b.ok
    assert a.metrics["trials"] == 200
    assert a.metrics["seed"] == 42
    assert a.payload == b.payload

    c = engine.simulate(uncertain_project_document, seed=7, trials=50)
    assert c.metrics["seed"] == 7
    assert sum(c.payload["histogram"]["counts"]) == 50


def test_sensitivity_through_engine(engine_config, project_document):
    _require_imports()
    r = ReasoningEngine(config=engine_config).sensitivity(project_document)

    assert r.ok
    assert r.metrics["parameters"] == 3
    assert r.metrics["high"] == 2


def test_evaluate_tree_and_risks_with_decide_alias(engine_config, framework_decision_tree, risk_register):
    _require_imports()
    doc = {"DECISION_TREE": framework_decision_tree, "RISKS": risk_register}
    r = ReasoningEngine(config=engine_config).run(doc, "decide")

    assert r.ok
    assert r.kind == QueryKind.EVALUATE
    assert r.payload["decision"]["best_choice"] == "Flask"
    assert r.payload["risks"]["ranked"][0]["id"] == "vendor_delay"
    assert r.metrics["total_exposure"] == pytest.approx(2.05)


def test_unrecognized_section_is_warning(engine_config, ancestry_document):
    _require_imports()
    doc = dict(ancestry_document, NOTES="rascunho")
    r = ReasoningEngine(config=engine_config).infer(doc)

    assert r.ok
    assert r.warnings == ["unrecognized section ignored: NOTES"]


def test_unknown_query_kind_raises(engine_config, ancestry_document):
    _require_imports()
    with pytest.raises(EngineConfigurationError):
        ReasoningEngine(config=engine_config).run(ancestry_document, "dream")


def test_queries_do_not_share_state(engine_config, ancestry_document):
    _require_imports()
    engine = ReasoningEngine(config=engine_config)
    a = engine.infer(dict(ancestry_document, NOTES="x"))
    b = engine.infer(ancestry_document)

    assert a.query_id != b.query_id
    assert a.warnings and not b.warnings
    assert b.status == QueryStatus.SUCCESS
