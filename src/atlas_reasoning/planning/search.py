"""
Busca em espaço de estados do planejador STRIPS.

Este módulo implementa o contrato `plan(initial, goal, operators, ...)`:
    - nós são estados mantidos em uma arena (lista) e referenciados por índice;
      a fronteira guarda apenas índices
    - teste de objetivo: estado ⊇ objetivo
    - quando regras são fornecidas, precondições e objetivo são avaliados
      sobre o fechamento do estado por encadeamento para frente; efeitos são
      aplicados ao estado base

Estratégias:
    - breadth_first: FIFO, teste de objetivo na geração (plano mais curto)
    - depth_first: LIFO; o primeiro operador declarado é expandido primeiro;
      conjunto de visitados pelo conteúdo exato do estado
    - bounded: depth_first com `depth_bound`; um estado só é revisitado se
      alcançado em profundidade menor
    - best_first: fila de prioridade com heurística do `HeuristicRegistry`

Desempate entre ações aplicáveis: ordem de declaração do operador, depois
ordem ordenada dos argumentos.

Falhas são valores (`NoPlanFound`) com motivo:
    - space_exhausted: espaço alcançável esgotado
    - depth_bound: busca limitada cortou algum ramo no limite
    - budget_exhausted: orçamento de nós ou de tempo esgotado
"""

from __future__ import annotations

import heapq
import itertools
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from atlas_reasoning.core.errors import ReasoningErrorPayload, no_plan_found
from atlas_reasoning.core.exceptions import DocumentInvalid, EngineConfigurationError, EngineExecutionError
from atlas_reasoning.knowledge.inference import InferenceStalled, KnowledgeBase, forward_chain
from atlas_reasoning.knowledge.terms import Fact, Literal, Rule, coerce_rules, is_variable

from .heuristics import HeuristicRegistry, HeuristicSpec
from .operators import Action, Operator, State, make_state, state_to_list


BREADTH_FIRST = "breadth_first"
DEPTH_FIRST = "depth_first"
BEST_FIRST = "best_first"
BOUNDED = "bounded"

STRATEGIES = (BREADTH_FIRST, DEPTH_FIRST, BEST_FIRST, BOUNDED)

SPACE_EXHAUSTED = "space_exhausted"
DEPTH_BOUND = "depth_bound"
BUDGET_EXHAUSTED = "budget_exhausted"


# ---------------------------------------------------------------------------
# Problema
# ---------------------------------------------------------------------------

def coerce_operators(value: Any) -> Tuple[Operator, ...]:
    """Aceita mapping `nome -> esquema` ou lista de esquemas (ordem preservada)."""
    if value is None:
        return ()
    if isinstance(value, Mapping):
        ops = [Operator.coerce(spec, name=str(name)) for name, spec in value.items()]
    else:
        ops = [Operator.coerce(spec) for spec in value]
    seen = set()
    for op in ops:
        if op.name in seen:
            raise DocumentInvalid(message=f"duplicate operator: {op.name}", details={"operator": op.name})
        seen.add(op.name)
    return tuple(ops)


def _goal_facts(value: Any) -> FrozenSet[Fact]:
    out = set()
    for item in value or ():
        lit = Literal.coerce(item)
        if lit.negated:
            raise DocumentInvalid(
                message=f"goal literal '{lit}' must be positive",
                details={"goal": str(lit)},
            )
        if not lit.fact.is_ground():
            raise DocumentInvalid(message=f"goal fact '{lit.fact}' must be ground", details={"goal": str(lit.fact)})
        out.add(lit.fact)
    return frozenset(out)


@dataclass(frozen=True)
class PlanningProblem:
    """Estado inicial, objetivo, operadores, universo de objetos e regras opcionais."""

    initial: State
    goal: FrozenSet[Fact]
    operators: Tuple[Operator, ...]
    objects: Tuple[str, ...] = ()
    rules: Tuple[Rule, ...] = ()

    @classmethod
    def build(
        cls,
        initial: Iterable[Any],
        goal: Iterable[Any],
        operators: Any,
        *,
        objects: Optional[Iterable[Any]] = None,
        rules: Iterable[Any] = (),
    ) -> "PlanningProblem":
        init = make_state(initial)
        for f in init:
            if not f.is_ground():
                raise DocumentInvalid(message=f"initial fact '{f}' must be ground", details={"fact": str(f)})
        goal_facts = _goal_facts(goal)
        ops = coerce_operators(operators)

        if objects is None:
            found = set()
            for f in itertools.chain(init, goal_facts):
                found.update(f.args)
            for op in ops:
                for f in itertools.chain((l.fact for l in op.preconditions), op.add_effects, op.del_effects):
                    found.update(a for a in f.args if not is_variable(a))
            objs = tuple(sorted(found))
        else:
            objs = tuple(dict.fromkeys(str(o) for o in objects))

        return cls(
            initial=init,
            goal=goal_facts,
            operators=ops,
            objects=objs,
            rules=tuple(coerce_rules(rules)),
        )

    def operator(self, name: str) -> Operator:
        for op in self.operators:
            if op.name == name:
                return op
        raise DocumentInvalid(message=f"unknown operator: {name}", details={"operator": name})

    def instantiate(self, name: str, args: Sequence[str]) -> Action:
        return self.operator(name).instantiate(args)


class _Closure:
    """Cache do fechamento de estados sob as regras do problema."""

    def __init__(self, rules: Tuple[Rule, ...]):
        self.rules = rules
        self._cache: Dict[State, State] = {}

    def __call__(self, state: State) -> State:
        if not self.rules:
            return state
        cached = self._cache.get(state)
        if cached is not None:
            return cached
        kb = KnowledgeBase(facts=tuple(sorted(state, key=str)), rules=self.rules)
        result = forward_chain(kb, ())
        if isinstance(result, InferenceStalled):
            raise EngineExecutionError(
                message="state closure did not reach a fixpoint",
                details={"state": state_to_list(state), "bound": result.bound},
            )
        self._cache[state] = frozenset(result.facts)
        return self._cache[state]


# ---------------------------------------------------------------------------
# Resultados
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Plan:
    """Sequência ordenada de ações que leva o estado inicial ao objetivo."""

    actions: Tuple[Action, ...]
    cost: float
    final_state: State
    strategy: str
    heuristic: Optional[str] = None
    expanded: int = 0
    generated: int = 0

    @property
    def steps(self) -> List[str]:
        return [str(a) for a in self.actions]

    def __len__(self) -> int:
        return len(self.actions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "steps": self.steps,
            "length": len(self.actions),
            "cost": self.cost,
            "final_state": state_to_list(self.final_state),
            "strategy": self.strategy,
            "heuristic": self.heuristic,
            "expanded": self.expanded,
            "generated": self.generated,
        }


@dataclass(frozen=True)
class NoPlanFound:
    """Falha-valor: a busca terminou sem alcançar o objetivo."""

    reason: str
    frontier_size: int
    deepest_state: State
    deepest_depth: int
    expanded: int

    def to_error(self) -> ReasoningErrorPayload:
        return no_plan_found(
            reason=self.reason,
            frontier_size=self.frontier_size,
            deepest_state=state_to_list(self.deepest_state),
            deepest_depth=self.deepest_depth,
            expanded=self.expanded,
        )


@dataclass(frozen=True)
class _Node:
    state: State
    parent: int
    action: Optional[Action]
    depth: int
    cost: float


# ---------------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------------

class Planner:
    """Busca de planos sobre um `PlanningProblem` (escopo de uma chamada)."""

    def __init__(
        self,
        problem: PlanningProblem,
        *,
        strategy: str = BREADTH_FIRST,
        heuristic: str = "minimize_complexity",
        depth_bound: Optional[int] = None,
        node_budget: Optional[int] = None,
        time_budget_s: Optional[float] = None,
        registry: Optional[HeuristicRegistry] = None,
    ):
        if strategy not in STRATEGIES:
            raise EngineConfigurationError(
                message=f"unknown planner strategy: {strategy}",
                details={"strategy": strategy, "supported": list(STRATEGIES)},
            )
        if strategy == BOUNDED and depth_bound is None:
            raise EngineConfigurationError(
                message="bounded strategy requires depth_bound",
                details={"strategy": strategy},
            )
        self.problem = problem
        self.strategy = strategy
        self.heuristic = heuristic
        self.depth_bound = depth_bound
        self.node_budget = node_budget
        self.time_budget_s = time_budget_s
        self.registry = registry or HeuristicRegistry.v1()

        self._view = _Closure(problem.rules)
        self._nodes: List[_Node] = []
        self._expanded = 0
        self._deepest = 0
        self._started = 0.0

    # -----------------------------
    # Arena
    # -----------------------------
    def _add(self, state: State, parent: int, action: Optional[Action], depth: int, cost: float) -> int:
        self._nodes.append(_Node(state=state, parent=parent, action=action, depth=depth, cost=cost))
        idx = len(self._nodes) - 1
        if depth > self._nodes[self._deepest].depth:
            self._deepest = idx
        return idx

    def _is_goal(self, idx: int) -> bool:
        return self.problem.goal <= self._view(self._nodes[idx].state)

    def _successors(self, idx: int) -> Iterator[Tuple[Action, State]]:
        state = self._nodes[idx].state
        view = self._view(state)
        for op in self.problem.operators:
            for action in op.ground(view, self.problem.objects):
                yield action, action.apply(state)

    def _out_of_budget(self) -> bool:
        if self.node_budget is not None and self._expanded >= self.node_budget:
            return True
        if self.time_budget_s is not None and time.monotonic() - self._started >= self.time_budget_s:
            return True
        return False

    def _plan_from(self, idx: int) -> Plan:
        actions: List[Action] = []
        node = self._nodes[idx]
        final = node
        while node.action is not None:
            actions.append(node.action)
            node = self._nodes[node.parent]
        actions.reverse()
        return Plan(
            actions=tuple(actions),
            cost=final.cost,
            final_state=final.state,
            strategy=self.strategy,
            heuristic=self.heuristic if self.strategy == BEST_FIRST else None,
            expanded=self._expanded,
            generated=len(self._nodes),
        )

    def _failure(self, reason: str, frontier_size: int) -> NoPlanFound:
        deepest = self._nodes[self._deepest]
        return NoPlanFound(
            reason=reason,
            frontier_size=frontier_size,
            deepest_state=deepest.state,
            deepest_depth=deepest.depth,
            expanded=self._expanded,
        )

    # -----------------------------
    # Entrada
    # -----------------------------
    def plan(self) -> Union[Plan, NoPlanFound]:
        self._nodes = []
        self._expanded = 0
        self._deepest = 0
        self._started = time.monotonic()

        root = self._add(self.problem.initial, -1, None, 0, 0.0)
        if self._is_goal(root):
            return self._plan_from(root)

        if self.strategy == BREADTH_FIRST:
            return self._breadth_first(root)
        if self.strategy == BEST_FIRST:
            try:
                spec = self.registry.get(self.heuristic)
            except KeyError as e:
                raise EngineConfigurationError(
                    message=f"unknown planner heuristic: {self.heuristic}",
                    details={"heuristic": self.heuristic, "supported": self.registry.list_ids()},
                ) from e
            return self._best_first(root, spec)
        return self._depth_first(root, bound=self.depth_bound if self.strategy == BOUNDED else None)

    def _breadth_first(self, root: int) -> Union[Plan, NoPlanFound]:
        frontier = deque([root])
        visited = {self.problem.initial}
        while frontier:
            if self._out_of_budget():
                return self._failure(BUDGET_EXHAUSTED, len(frontier))
            idx = frontier.popleft()
            self._expanded += 1
            node = self._nodes[idx]
            for action, child in self._successors(idx):
                if child in visited:
                    continue
                visited.add(child)
                cidx = self._add(child, idx, action, node.depth + 1, node.cost + action.cost)
                if self._is_goal(cidx):
                    return self._plan_from(cidx)
                frontier.append(cidx)
        return self._failure(SPACE_EXHAUSTED, 0)

    def _depth_first(self, root: int, *, bound: Optional[int]) -> Union[Plan, NoPlanFound]:
        stack = [root]
        # sem limite: cada estado entra na pilha uma única vez
        visited = {self.problem.initial}
        best_depth: Dict[State, int] = {self.problem.initial: 0}
        cut = False
        while stack:
            if self._out_of_budget():
                return self._failure(BUDGET_EXHAUSTED, len(stack))
            idx = stack.pop()
            node = self._nodes[idx]
            if self._is_goal(idx):
                return self._plan_from(idx)
            if bound is not None and node.depth >= bound:
                if next(self._successors(idx), None) is not None:
                    cut = True
                continue
            self._expanded += 1
            children = []
            for action, child in self._successors(idx):
                depth = node.depth + 1
                if bound is None:
                    if child in visited:
                        continue
                    visited.add(child)
                else:
                    if child in best_depth and best_depth[child] <= depth:
                        continue
                    best_depth[child] = depth
                children.append(self._add(child, idx, action, depth, node.cost + action.cost))
            stack.extend(reversed(children))
        return self._failure(DEPTH_BOUND if cut else SPACE_EXHAUSTED, 0)

    def _best_first(self, root: int, spec: HeuristicSpec) -> Union[Plan, NoPlanFound]:
        goal = self.problem.goal
        counter = itertools.count()
        root_view = self._view(self.problem.initial)
        heap: List[Tuple[float, int, int]] = [(spec.priority(root_view, goal, 0.0), next(counter), root)]
        best_g: Dict[State, float] = {self.problem.initial: 0.0}

        while heap:
            if self._out_of_budget():
                return self._failure(BUDGET_EXHAUSTED, len(heap))
            _, _, idx = heapq.heappop(heap)
            node = self._nodes[idx]
            if best_g.get(node.state, float("inf")) < node.cost:
                continue
            if not spec.goal_test_on_generation and self._is_goal(idx):
                return self._plan_from(idx)
            self._expanded += 1
            for action, child in self._successors(idx):
                g = node.cost + action.cost
                if g >= best_g.get(child, float("inf")):
                    continue
                best_g[child] = g
                cidx = self._add(child, idx, action, node.depth + 1, g)
                if spec.goal_test_on_generation and self._is_goal(cidx):
                    return self._plan_from(cidx)
                heapq.heappush(heap, (spec.priority(self._view(child), goal, g), next(counter), cidx))
        return self._failure(SPACE_EXHAUSTED, 0)


def plan(
    initial_state: Iterable[Any],
    goal_state: Iterable[Any],
    operators: Any,
    strategy: str = BREADTH_FIRST,
    heuristic: str = "minimize_complexity",
    depth_bound: Optional[int] = None,
    *,
    objects: Optional[Iterable[Any]] = None,
    rules: Iterable[Any] = (),
    node_budget: Optional[int] = None,
    time_budget_s: Optional[float] = None,
    registry: Optional[HeuristicRegistry] = None,
) -> Union[Plan, NoPlanFound]:
    """Busca um plano do estado inicial até um estado que contenha o objetivo.

    Args:
        initial_state: fatos ground do estado inicial.
        goal_state: fatos ground que o estado final deve conter.
        operators: esquemas de operadores (mapping nome -> esquema, ou lista).
        strategy: breadth_first | depth_first | best_first | bounded.
        heuristic: id registrado no HeuristicRegistry (usado por best_first).
        depth_bound: limite de profundidade (obrigatório para bounded).
        objects: universo de constantes para parâmetros livres.
        rules: regras de inferência aplicadas ao fechamento de cada estado.

    Returns:
        Plan, ou NoPlanFound com motivo e diagnóstico parcial.
    """
    problem = PlanningProblem.build(initial_state, goal_state, operators, objects=objects, rules=rules)
    return Planner(
        problem,
        strategy=strategy,
        heuristic=heuristic,
        depth_bound=depth_bound,
        node_budget=node_budget,
        time_budget_s=time_budget_s,
        registry=registry,
    ).plan()


# ---------------------------------------------------------------------------
# Validação de planos
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlanValidation:
    valid: bool
    final_state: State
    failed_step: Optional[int] = None
    reason: Optional[str] = None
    unmet: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "final_state": state_to_list(self.final_state),
            "failed_step": self.failed_step,
            "reason": self.reason,
            "unmet": list(self.unmet),
        }


def _as_action(step: Any, problem: PlanningProblem) -> Action:
    if isinstance(step, Action):
        return step
    parsed = Fact.parse(str(step))
    return problem.instantiate(parsed.predicate, parsed.args)


def validate_plan(
    plan: Any,
    initial: Iterable[Any],
    goal: Iterable[Any],
    operators: Any,
    *,
    rules: Iterable[Any] = (),
) -> PlanValidation:
    """Reexecuta `plan` a partir de `initial` e reporta o primeiro passo inválido.

    `plan` pode ser um `Plan` ou uma sequência de `Action`/texto `op(a, b)`.
    """
    problem = PlanningProblem.build(initial, goal, operators, rules=rules)
    view = _Closure(problem.rules)
    steps = plan.actions if isinstance(plan, Plan) else list(plan)

    state = problem.initial
    for i, step in enumerate(steps):
        action = _as_action(step, problem)
        current = view(state)
        if not action.applicable(current):
            unmet = tuple(
                str(l) for l in action.preconditions if (l.fact in current) == l.negated
            )
            return PlanValidation(
                valid=False,
                final_state=state,
                failed_step=i,
                reason=f"preconditions of {action} do not hold",
                unmet=unmet,
            )
        state = action.apply(state)

    missing = tuple(sorted(str(f) for f in problem.goal - view(state)))
    if missing:
        return PlanValidation(
            valid=False,
            final_state=state,
            failed_step=len(steps),
            reason="final state does not contain the goal",
            unmet=missing,
        )
    return PlanValidation(valid=True, final_state=state)
