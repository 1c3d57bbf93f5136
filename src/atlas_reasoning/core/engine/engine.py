# src/atlas_reasoning/core/engine/engine.py
"""
Engine de raciocínio do Atlas Reasoning.

O `ReasoningEngine` recebe um documento compilado e uma consulta, despacha
para o componente correspondente e devolve sempre um `QueryResult`.

Responsabilidades:
    - Resolver a configuração efetiva (defaults + overrides do chamador)
    - Validar o documento compilado antes de qualquer solução
    - Criar um `QueryContext` novo por chamada (eventos + warnings)
    - Compor componentes (o planejador consulta regras de inferência; o
      otimizador valida cronogramas pelo resolvedor de restrições)
    - Converter falhas em payload estruturado (sem stack trace cru)

Conversão de falhas:
    - Falhas-valor (`to_error()`): UNSATISFIABLE, NO_PLAN_FOUND, ...
    - ReasoningException: `error_type` da exceção (ex.: CYCLE_DETECTED)
    - DocumentError: DOCUMENT_INVALID
    - ConfigError: ENGINE_CONFIGURATION_ERROR
    - Qualquer outra exceção: ENGINE_EXECUTION_ERROR

Princípios fundamentais:
    - Nenhum estado é retido entre chamadas (exceto a configuração)
    - Nenhum resultado parcial substitui silenciosamente um resultado exato
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from atlas_reasoning.constraints import LPSolution, solve as solve_csp
from atlas_reasoning.core.config import ConfigError, compute_config_hash, load_config
from atlas_reasoning.core.document import CompiledDocument, DocumentError, coerce_document, compute_document_hash
from atlas_reasoning.core.document import schema as sections
from atlas_reasoning.core.errors import (
    ReasoningErrorPayload,
    cycle_detected,
    document_invalid,
    engine_configuration_error,
    engine_execution_error,
)
from atlas_reasoning.core.exceptions import CycleDetected, EngineConfigurationError, ReasoningException
from atlas_reasoning.core.query import QueryContext, QueryKind, QueryResult, QueryStatus
from atlas_reasoning.decision import DecisionResult, RiskReport, assess_risks, evaluate as evaluate_tree
from atlas_reasoning.knowledge.inference import (
    BACKWARD,
    FORWARD,
    InferenceResult,
    ProofResult,
    backward_chain,
    forward_chain,
)
from atlas_reasoning.planning import HeuristicRegistry, Plan, Planner, PlanningProblem
from atlas_reasoning.scheduling import (
    ActivityNetwork,
    Objective,
    Schedule,
    duration_sensitivity,
    optimize,
    simulate as simulate_network,
)


_ALIASES = {"decide": QueryKind.EVALUATE, "prove": QueryKind.INFER}


@dataclass(frozen=True)
class EvaluationResult:
    """Árvore de decisão avaliada e/ou registro de riscos agregado."""

    decision: Optional[DecisionResult] = None
    risks: Optional[RiskReport] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision": self.decision.to_dict() if self.decision else None,
            "risks": self.risks.to_dict() if self.risks else None,
        }


Handler = Callable[[QueryContext, CompiledDocument], Tuple[Any, Dict[str, Any]]]


class ReasoningEngine:
    """Engine canônico do Atlas Reasoning (dispatch + composição + guardrails)."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        registry: Optional[HeuristicRegistry] = None,
    ):
        self.config: Dict[str, Any] = load_config(overrides=config)
        self.config_hash: str = compute_config_hash(self.config)
        self.registry: HeuristicRegistry = registry or HeuristicRegistry.v1()

    # ------------------------------------------------------------------
    # Guardrails: exceção -> ReasoningErrorPayload
    # ------------------------------------------------------------------

    def _exception_to_error(self, exc: Exception, kind: QueryKind) -> ReasoningErrorPayload:
        """Converte exceções em ReasoningErrorPayload (serializável, acionável).

        Regras:
        - ReasoningException: já vem com error_type/message/details/hint.
        - DocumentError / ConfigError: códigos estáveis de documento/configuração.
        - Outras exceções: encapsular como ENGINE_EXECUTION_ERROR sem expor stack trace.
        """
        if isinstance(exc, CycleDetected):
            return cycle_detected(cycle=list(exc.details.get("cycle", [])))
        if isinstance(exc, ReasoningException):
            return ReasoningErrorPayload(
                type=exc.error_type,
                message=exc.message or "Erro de execução",
                details=dict(exc.details or {}),
                hint=exc.hint,
                decision_required=bool(exc.decision_required),
            )
        if isinstance(exc, DocumentError):
            return document_invalid(message=str(exc) or "Documento compilado inválido")
        if isinstance(exc, ConfigError):
            return engine_configuration_error(
                message=str(exc) or "Configuração inválida",
                details={"exception_class": exc.__class__.__name__},
            )
        return engine_execution_error(
            query=kind.value,
            exc_type=exc.__class__.__name__,
            exc_message=str(exc),
        )

    def _mk_result(
        self,
        *,
        ctx: QueryContext,
        kind: QueryKind,
        status: QueryStatus,
        summary: str,
        metrics: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
        value: Any = None,
    ) -> QueryResult:
        m = {"config_hash": self.config_hash}
        if "document_hash" in ctx.meta:
            m["document_hash"] = ctx.meta["document_hash"]
        m.update(metrics or {})
        return QueryResult(
            query_id=ctx.query_id,
            kind=kind,
            status=status,
            summary=summary,
            metrics=m,
            warnings=ctx.all_warnings(),
            events=list(ctx.events),
            payload=dict(payload or {}),
            value=value,
        )

    def _execute(self, kind: QueryKind, document: Any, handler: Handler, **meta: Any) -> QueryResult:
        ctx = QueryContext.new(config=self.config, meta=meta)
        ctx.log(step_id="engine", level="info", message="query started", kind=kind.value)

        try:
            doc = coerce_document(document)
            ctx.meta["document_hash"] = compute_document_hash(doc.to_dict())
            for key in doc.ignored:
                ctx.add_warning(step_id="document", message=f"unrecognized section ignored: {key}")
            ctx.log(step_id="document", level="info", message="document validated", sections=sorted(doc.sections))

            value, metrics = handler(ctx, doc)
        except Exception as e:
            error = self._exception_to_error(e, kind)
            ctx.log(step_id=kind.value, level="error", message=error.message, error_type=error.type)
            return self._mk_result(
                ctx=ctx,
                kind=kind,
                status=QueryStatus.FAILED,
                summary=error.message,
                payload={"error": error.to_dict()},
            )

        to_error = getattr(value, "to_error", None)
        if callable(to_error):
            error = to_error()
            ctx.log(step_id=kind.value, level="warning", message=error.message, error_type=error.type)
            payload: Dict[str, Any] = {"error": error.to_dict()}
            return self._mk_result(
                ctx=ctx,
                kind=kind,
                status=QueryStatus.FAILED,
                summary=error.message,
                metrics=metrics,
                payload=payload,
                value=value,
            )

        ctx.log(step_id="engine", level="info", message="query finished", kind=kind.value, **metrics)
        return self._mk_result(
            ctx=ctx,
            kind=kind,
            status=QueryStatus.SUCCESS,
            summary=f"{kind.value} succeeded",
            metrics=metrics,
            payload=value.to_dict(),
            value=value,
        )

    # ------------------------------------------------------------------
    # Inferência
    # ------------------------------------------------------------------

    def infer(self, document: Any, *, mode: str = FORWARD, query: Any = None) -> QueryResult:
        """Encadeamento para frente (ponto fixo) ou para trás (prova de `query`)."""

        def handler(ctx: QueryContext, doc: CompiledDocument):
            cfg = ctx.section("inference")
            facts = doc.get(sections.FACTS, [])
            rules = doc.get(sections.RULES, [])
            m = (mode or FORWARD).lower()

            if m == FORWARD:
                if query is not None:
                    raise EngineConfigurationError(
                        message="forward chaining does not take a query; use mode=\"backward\"",
                        details={"mode": m, "query": str(query)},
                    )
                result = forward_chain(facts, rules, max_iterations=cfg.get("max_iterations"))
                ctx.log(step_id="infer", level="info", message="forward chaining finished", iterations=result.iterations)
                metrics: Dict[str, Any] = {"iterations": result.iterations, "bound": result.bound}
                if isinstance(result, InferenceResult):
                    metrics.update({"facts": len(result.facts), "derived": len(result.derived)})
                return result, metrics

            if m == BACKWARD:
                if query is None:
                    raise EngineConfigurationError(
                        message="backward chaining requires a query",
                        details={"mode": m},
                    )
                result = backward_chain(query, facts, rules, max_depth=int(cfg.get("max_proof_depth", 64)))
                metrics = {"cycles": len(result.cycles)}
                if isinstance(result, ProofResult):
                    metrics["proven"] = result.proven
                    for cycle in result.cycles:
                        ctx.add_warning(step_id="infer", message=f"proof cycle abandoned: {' -> '.join(cycle)}")
                    if result.depth_limited:
                        ctx.add_warning(step_id="infer", message="proof depth limit reached on some branch")
                ctx.log(step_id="infer", level="info", message="backward chaining finished", **metrics)
                return result, metrics

            raise EngineConfigurationError(
                message=f"unknown inference mode: {mode}",
                details={"mode": mode, "supported": [FORWARD, BACKWARD]},
            )

        return self._execute(QueryKind.INFER, document, handler, mode=mode)

    # ------------------------------------------------------------------
    # Restrições
    # ------------------------------------------------------------------

    def solve(self, document: Any, *, optimize: Optional[bool] = None) -> QueryResult:
        """Resolve o CSP de VARIABLES/DOMAINS/CONSTRAINTS/SOFT_CONSTRAINTS."""

        def handler(ctx: QueryContext, doc: CompiledDocument):
            if not (doc.has(sections.VARIABLES) or doc.has(sections.DOMAINS)):
                raise DocumentError("document must declare VARIABLES or DOMAINS to solve")
            cfg = ctx.section("csp")
            result = solve_csp(
                doc.get(sections.VARIABLES, []),
                doc.get(sections.DOMAINS),
                doc.get(sections.CONSTRAINTS, []),
                doc.get(sections.SOFT_CONSTRAINTS, []),
                optimize=optimize,
                ordering=str(cfg.get("variable_ordering", "mrv")),
                node_budget=cfg.get("node_budget"),
            )
            metrics = {"nodes": result.nodes}
            if hasattr(result, "soft_cost"):
                metrics["soft_cost"] = result.soft_cost
                if not result.optimal:
                    ctx.add_warning(step_id="solve", message="assignment is not proven cost-optimal")
            ctx.log(step_id="solve", level="info", message="constraint search finished", **metrics)
            return result, metrics

        return self._execute(QueryKind.SOLVE, document, handler)

    # ------------------------------------------------------------------
    # Planejamento
    # ------------------------------------------------------------------

    def plan(
        self,
        document: Any,
        *,
        strategy: Optional[str] = None,
        heuristic: Optional[str] = None,
        depth_bound: Optional[int] = None,
    ) -> QueryResult:
        """Planeja de INITIAL_STATE até GOAL_STATE com OPERATORS (e RULES, se houver)."""

        def handler(ctx: QueryContext, doc: CompiledDocument):
            doc.require(sections.GOAL_STATE, sections.OPERATORS)
            cfg = ctx.section("planner")
            problem = PlanningProblem.build(
                doc.get(sections.INITIAL_STATE, []),
                doc.get(sections.GOAL_STATE),
                doc.get(sections.OPERATORS),
                objects=doc.get(sections.OBJECTS),
                rules=doc.get(sections.RULES, []),
            )
            chosen = strategy or str(cfg.get("strategy", "breadth_first"))
            ctx.log(
                step_id="plan",
                level="info",
                message="search started",
                strategy=chosen,
                operators=len(problem.operators),
                objects=len(problem.objects),
            )
            result = Planner(
                problem,
                strategy=chosen,
                heuristic=heuristic or str(cfg.get("heuristic", "minimize_complexity")),
                depth_bound=depth_bound if depth_bound is not None else cfg.get("depth_bound"),
                node_budget=cfg.get("node_budget"),
                time_budget_s=cfg.get("time_budget_s"),
                registry=self.registry,
            ).plan()
            metrics: Dict[str, Any] = {"expanded": result.expanded, "strategy": chosen}
            if isinstance(result, Plan):
                metrics.update({"length": len(result), "cost": result.cost, "generated": result.generated})
            else:
                metrics.update({"reason": result.reason, "frontier_size": result.frontier_size})
            ctx.log(step_id="plan", level="info", message="search finished", **metrics)
            return result, metrics

        return self._execute(QueryKind.PLAN, document, handler, strategy=strategy)

    # ------------------------------------------------------------------
    # Agendamento
    # ------------------------------------------------------------------

    def _network(self, doc: CompiledDocument) -> ActivityNetwork:
        doc.require(sections.ACTIVITIES)
        return ActivityNetwork.build(
            doc.get(sections.ACTIVITIES),
            doc.get(sections.RESOURCES),
            doc.get(sections.PRECEDENCE, []),
            doc.get(sections.PARALLEL_OK) if doc.has(sections.PARALLEL_OK) else None,
        )

    def schedule(self, document: Any) -> QueryResult:
        """Aplica OBJECTIVE_FUNCTION: cronograma nivelado (makespan) ou programa linear."""

        def handler(ctx: QueryContext, doc: CompiledDocument):
            cfg = ctx.section("scheduler")
            objective = Objective.parse(doc.get(sections.OBJECTIVE_FUNCTION))
            network = None
            if objective.is_makespan or doc.has(sections.ACTIVITIES):
                network = self._network(doc)
                ctx.log(step_id="schedule", level="info", message="activity network built", order=list(network.order))

            result = optimize(
                network,
                objective,
                doc.get(sections.SUBJECT_TO, []),
                horizon=cfg.get("horizon"),
                tolerance=float(cfg.get("tolerance", 1e-9)),
                constraints=doc.get(sections.SCHEDULE_CONSTRAINTS, []),
                method=str(ctx.section("lp").get("method", "highs")),
            )
            metrics: Dict[str, Any] = {"objective": objective.expression, "sense": objective.sense}
            if isinstance(result, Schedule):
                metrics["makespan"] = result.makespan
                delayed = sorted(n for n, d in result.resource_delay.items() if d > 0)
                if delayed:
                    ctx.add_warning(step_id="schedule", message=f"activities delayed by resource levelling: {delayed}")
            elif isinstance(result, LPSolution):
                metrics["objective_value"] = result.objective_value
            ctx.log(step_id="schedule", level="info", message="objective applied", **metrics)
            return result, metrics

        return self._execute(QueryKind.SCHEDULE, document, handler)

    def simulate(
        self,
        document: Any,
        *,
        trials: Optional[int] = None,
        seed: Optional[int] = None,
        deadline: Optional[float] = None,
    ) -> QueryResult:
        """Simulação Monte Carlo do makespan (seed explícita ou `montecarlo.seed`)."""

        def handler(ctx: QueryContext, doc: CompiledDocument):
            cfg = ctx.section("montecarlo")
            network = self._network(doc)
            used_seed = int(seed if seed is not None else cfg.get("seed", 42))
            result = simulate_network(
                network,
                trials=int(trials if trials is not None else cfg.get("trials", 1000)),
                seed=used_seed,
                n_jobs=int(cfg.get("n_jobs", 1)),
                histogram_bins=int(cfg.get("histogram_bins", 20)),
                percentiles=cfg.get("percentiles", [10, 50, 80, 90, 95]),
                deadline=deadline,
                tolerance=float(ctx.section("scheduler").get("tolerance", 1e-9)),
            )
            metrics = {"trials": result.trials, "seed": used_seed, "mean": result.mean}
            ctx.log(step_id="simulate", level="info", message="simulation finished", **metrics)
            return result, metrics

        return self._execute(QueryKind.SIMULATE, document, handler, seed=seed)

    def sensitivity(self, document: Any, *, delta: Optional[float] = None) -> QueryResult:
        """Sensibilidade do makespan à duração de cada atividade."""

        def handler(ctx: QueryContext, doc: CompiledDocument):
            cfg = ctx.section("sensitivity")
            network = self._network(doc)
            result = duration_sensitivity(
                network,
                delta=float(delta if delta is not None else cfg.get("delta", 0.1)),
                thresholds=cfg.get("thresholds"),
                tolerance=float(ctx.section("scheduler").get("tolerance", 1e-9)),
            )
            high = [e.parameter for e in result.entries if e.level == "high"]
            metrics = {"parameters": len(result.entries), "high": len(high)}
            ctx.log(step_id="sensitivity", level="info", message="sensitivity computed", high_parameters=high)
            return result, metrics

        return self._execute(QueryKind.SENSITIVITY, document, handler)

    # ------------------------------------------------------------------
    # Decisão
    # ------------------------------------------------------------------

    def evaluate(self, document: Any) -> QueryResult:
        """Indução retroativa sobre DECISION_TREE e agregação de RISKS."""

        def handler(ctx: QueryContext, doc: CompiledDocument):
            if not (doc.has(sections.DECISION_TREE) or doc.has(sections.RISKS)):
                raise DocumentError("document must declare DECISION_TREE or RISKS to evaluate")
            metrics: Dict[str, Any] = {}
            decision = None
            if doc.has(sections.DECISION_TREE):
                decision = evaluate_tree(
                    doc.get(sections.DECISION_TREE),
                    probability_tolerance=float(ctx.section("decision").get("probability_tolerance", 1e-6)),
                )
                metrics.update({"best_choice": decision.best_choice, "expected_utility": decision.expected_utility})
            risks = None
            if doc.has(sections.RISKS):
                risks = assess_risks(doc.get(sections.RISKS), thresholds=ctx.section("risks").get("severity"))
                metrics.update({"risks": len(risks.ranked), "total_exposure": risks.total_exposure})
            ctx.log(step_id="evaluate", level="info", message="decision analysis finished", **metrics)
            return EvaluationResult(decision=decision, risks=risks), metrics

        return self._execute(QueryKind.EVALUATE, document, handler)

    # ------------------------------------------------------------------
    # Dispatch genérico
    # ------------------------------------------------------------------

    def run(self, document: Any, query: Union[str, QueryKind, Mapping[str, Any]]) -> QueryResult:
        """Despacha uma consulta `kind` (texto, QueryKind ou `{kind, ...parâmetros}`)."""
        params: Dict[str, Any] = {}
        if isinstance(query, Mapping):
            params = {k: v for k, v in query.items() if k != "kind"}
            raw_kind = query.get("kind")
        else:
            raw_kind = query
        kind = self._resolve_kind(raw_kind)
        if str(raw_kind or "").strip().lower() == "prove":
            params.setdefault("mode", BACKWARD)
        method = getattr(self, kind.value)
        return method(document, **params)

    def run_many(self, document: Any, queries: Sequence[Any]) -> List[QueryResult]:
        """Executa consultas em sequência; com `engine.fail_fast`, para na primeira falha."""
        fail_fast = bool((self.config.get("engine") or {}).get("fail_fast", True))
        results: List[QueryResult] = []
        try:
            doc = coerce_document(document)
        except (DocumentError, ReasoningException):
            # cada consulta reporta DOCUMENT_INVALID no próprio resultado
            doc = document
        for q in queries:
            r = self.run(doc, q)
            results.append(r)
            if fail_fast and not r.ok:
                break
        return results

    @staticmethod
    def _resolve_kind(raw: Any) -> QueryKind:
        if isinstance(raw, QueryKind):
            return raw
        text = str(raw or "").strip().lower()
        if text in _ALIASES:
            return _ALIASES[text]
        try:
            return QueryKind(text)
        except ValueError as e:
            raise EngineConfigurationError(
                message=f"unknown query kind: {raw}",
                details={"kind": raw, "supported": [k.value for k in QueryKind]},
            ) from e
