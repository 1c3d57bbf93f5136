"""
Solver de satisfação de restrições (CSP) do Atlas Reasoning.

Busca por backtracking com pilha explícita (sem recursão), forward checking
e, quando há restrições suaves, branch-and-bound sobre o custo parcial.

Decisões arquiteturais:
    - Ordem de variáveis `mrv`: menor domínio restante, depois maior grau em
      restrições rígidas, depois ordem de declaração; `declared` usa apenas
      a ordem de declaração
    - Consistência de nó: restrições rígidas unárias podam os domínios antes
      da busca
    - Forward checking: após cada atribuição, restrições rígidas com exatamente
      uma variável não atribuída podam o domínio dessa variável; domínio vazio
      provoca backtracking imediato
    - Restrições rígidas sempre prevalecem: restrições suaves nunca podam
      valores, apenas ordenam a tentativa de valores (menor custo incremental
      primeiro, desempate pela ordem do domínio) e definem o custo
    - Orçamento de nós: esgotá-lo encerra a busca sem retornar atribuições
      parciais

Invariantes:
    - Toda `Assignment` retornada satisfaz todas as restrições rígidas
    - `Unsatisfiable(reason="space_exhausted")` cita um conjunto mínimo de
      restrições rígidas conflitantes (ver `conflicts.py`)
    - Mesma entrada ⇒ mesmo resultado (sem aleatoriedade)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from atlas_reasoning.core.errors import ReasoningErrorPayload, unsatisfiable

from .model import Constraint, CSPProblem


SPACE_EXHAUSTED = "space_exhausted"
BUDGET_EXHAUSTED = "budget_exhausted"

MRV = "mrv"
DECLARED = "declared"


@dataclass(frozen=True)
class Assignment:
    """Atribuição completa que satisfaz todas as restrições rígidas."""

    values: Dict[str, Any]
    soft_cost: float = 0.0
    violated_soft: Tuple[str, ...] = ()
    nodes: int = 0
    optimal: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "values": dict(self.values),
            "soft_cost": self.soft_cost,
            "violated_soft": list(self.violated_soft),
            "nodes": self.nodes,
            "optimal": self.optimal,
        }


@dataclass(frozen=True)
class Unsatisfiable:
    """Falha-valor: nenhuma atribuição satisfaz as restrições rígidas."""

    conflicting_constraints: Tuple[str, ...]
    conflict_pairs: Tuple[Tuple[str, str], ...] = ()
    reason: str = SPACE_EXHAUSTED
    nodes: int = 0

    def to_error(self) -> ReasoningErrorPayload:
        return unsatisfiable(
            conflicting_constraints=list(self.conflicting_constraints),
            conflict_pairs=[list(p) for p in self.conflict_pairs],
            reason=self.reason,
            nodes=self.nodes,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conflicting_constraints": list(self.conflicting_constraints),
            "conflict_pairs": [list(p) for p in self.conflict_pairs],
            "reason": self.reason,
            "nodes": self.nodes,
        }


@dataclass
class _Frame:
    var: str
    values: List[Any]
    domains: Dict[str, List[Any]]
    cost_before: float
    cursor: int = 0


@dataclass
class _SearchOutcome:
    best: Optional[Dict[str, Any]] = None
    best_cost: float = math.inf
    nodes: int = 0
    exhausted_budget: bool = False
    wiped_out: List[str] = field(default_factory=list)


class BacktrackingSolver:
    """Backtracking iterativo com forward checking e branch-and-bound."""

    def __init__(
        self,
        problem: CSPProblem,
        *,
        ordering: str = MRV,
        node_budget: Optional[int] = None,
    ):
        if ordering not in (MRV, DECLARED):
            raise ValueError(f"unknown variable ordering: {ordering}")
        self.problem = problem
        self.ordering = ordering
        self.node_budget = node_budget
        self._order = {v: i for i, v in enumerate(problem.variables)}

        self._hard_by_var: Dict[str, List[Constraint]] = {v: [] for v in problem.variables}
        self._soft_by_var: Dict[str, List[Constraint]] = {v: [] for v in problem.variables}
        for c in problem.hard:
            for v in set(c.scope):
                self._hard_by_var[v].append(c)
        for c in problem.soft:
            for v in set(c.scope):
                self._soft_by_var[v].append(c)

        self._degree = {
            v: len({u for c in self._hard_by_var[v] for u in c.scope if u != v}) for v in problem.variables
        }

    # ------------------------------------------------------------------
    # Heurísticas
    # ------------------------------------------------------------------

    def _select(self, domains: Mapping[str, List[Any]], assignment: Mapping[str, Any]) -> str:
        unassigned = [v for v in self.problem.variables if v not in assignment]
        if self.ordering == DECLARED:
            return unassigned[0]
        return min(unassigned, key=lambda v: (len(domains[v]), -self._degree[v], self._order[v]))

    def _incremental_cost(self, var: str, assignment: Mapping[str, Any]) -> float:
        cost = 0.0
        for c in self._soft_by_var[var]:
            if all(s in assignment for s in c.scope) and not c.holds(assignment):
                cost += c.weight
        return cost

    def _ordered_values(self, var: str, values: List[Any], assignment: Dict[str, Any]) -> List[Any]:
        if not self._soft_by_var[var]:
            return list(values)
        scored = []
        for pos, value in enumerate(values):
            assignment[var] = value
            scored.append((self._incremental_cost(var, assignment), pos, value))
        assignment.pop(var, None)
        scored.sort(key=lambda t: (t[0], t[1]))
        return [t[2] for t in scored]

    # ------------------------------------------------------------------
    # Consistência
    # ------------------------------------------------------------------

    def _consistent(self, var: str, assignment: Mapping[str, Any]) -> bool:
        for c in self._hard_by_var[var]:
            if all(s in assignment for s in c.scope) and not c.holds(assignment):
                return False
        return True

    def _forward_check(
        self,
        var: str,
        assignment: Dict[str, Any],
        domains: Dict[str, List[Any]],
    ) -> Tuple[Optional[Dict[str, List[Any]]], Optional[str]]:
        pruned = dict(domains)
        for c in self._hard_by_var[var]:
            open_vars = {s for s in c.scope if s not in assignment}
            if len(open_vars) != 1:
                continue
            target = next(iter(open_vars))
            keep = []
            for value in pruned[target]:
                assignment[target] = value
                if c.holds(assignment):
                    keep.append(value)
            assignment.pop(target, None)
            if len(keep) != len(pruned[target]):
                pruned[target] = keep
            if not keep:
                return None, target
        return pruned, None

    def _node_consistency(self) -> Tuple[Dict[str, List[Any]], List[str]]:
        domains = {v: list(self.problem.domains[v].values) for v in self.problem.variables}
        wiped: List[str] = []
        for c in self.problem.hard:
            scope = set(c.scope)
            if len(scope) != 1:
                continue
            var = next(iter(scope))
            domains[var] = [x for x in domains[var] if c.holds({var: x})]
            if not domains[var] and var not in wiped:
                wiped.append(var)
        return domains, wiped

    # ------------------------------------------------------------------
    # Busca
    # ------------------------------------------------------------------

    def search(self, *, optimize: bool) -> _SearchOutcome:
        out = _SearchOutcome()

        # restrições sem variáveis (constantes)
        for c in self.problem.hard:
            if not c.scope and not c.holds({}):
                return out

        constant_cost = sum(c.weight for c in self.problem.soft if not c.scope and not c.holds({}))

        domains, wiped = self._node_consistency()
        if wiped:
            out.wiped_out = wiped
            return out
        if not self.problem.variables:
            out.best, out.best_cost = {}, constant_cost
            return out

        assignment: Dict[str, Any] = {}
        first = self._select(domains, assignment)
        stack: List[_Frame] = [
            _Frame(
                var=first,
                values=self._ordered_values(first, domains[first], assignment),
                domains=domains,
                cost_before=constant_cost,
            )
        ]
        n_vars = len(self.problem.variables)

        while stack:
            frame = stack[-1]
            if frame.cursor >= len(frame.values):
                stack.pop()
                assignment.pop(frame.var, None)
                continue

            value = frame.values[frame.cursor]
            frame.cursor += 1
            assignment[frame.var] = value

            out.nodes += 1
            if self.node_budget is not None and out.nodes > self.node_budget:
                out.exhausted_budget = True
                break

            if not self._consistent(frame.var, assignment):
                continue

            cost = frame.cost_before + self._incremental_cost(frame.var, assignment)
            if optimize and cost >= out.best_cost:
                continue

            pruned, _ = self._forward_check(frame.var, assignment, frame.domains)
            if pruned is None:
                continue

            if len(assignment) == n_vars:
                out.best, out.best_cost = dict(assignment), cost
                if not optimize or cost == 0:
                    break
                continue

            nxt = self._select(pruned, assignment)
            stack.append(
                _Frame(
                    var=nxt,
                    values=self._ordered_values(nxt, pruned[nxt], assignment),
                    domains=pruned,
                    cost_before=cost,
                )
            )

        return out


def solve(
    variables: Any,
    domains: Optional[Mapping[str, Any]] = None,
    hard_constraints: Any = (),
    soft_constraints: Any = (),
    *,
    optimize: Optional[bool] = None,
    ordering: str = MRV,
    node_budget: Optional[int] = None,
) -> Union[Assignment, Unsatisfiable]:
    """Resolve um CSP.

    `variables` pode ser um `CSPProblem` já construído; caso contrário o
    problema é construído a partir de variáveis/domínios/restrições.

    Args:
        optimize: busca a atribuição de menor custo suave (padrão: True se
            houver restrições suaves).
        ordering: `mrv` ou `declared`.
        node_budget: limite de nós (atribuições tentadas).

    Returns:
        Assignment ou Unsatisfiable.
    """
    from .conflicts import minimal_conflict  # evita import circular

    problem = variables if isinstance(variables, CSPProblem) else CSPProblem.build(
        variables, domains, hard_constraints, soft_constraints
    )
    if optimize is None:
        optimize = bool(problem.soft)

    solver = BacktrackingSolver(problem, ordering=ordering, node_budget=node_budget)
    outcome = solver.search(optimize=optimize)

    if outcome.best is not None:
        check_soft = [c.name for c in problem.soft if not c.holds(outcome.best)]
        return Assignment(
            values={v: outcome.best[v] for v in problem.variables},
            soft_cost=float(outcome.best_cost),
            violated_soft=tuple(check_soft),
            nodes=outcome.nodes,
            optimal=not outcome.exhausted_budget and (optimize or not problem.soft),
        )

    if outcome.exhausted_budget:
        return Unsatisfiable(conflicting_constraints=(), reason=BUDGET_EXHAUSTED, nodes=outcome.nodes)

    core, pairs = minimal_conflict(problem, ordering=ordering, node_budget=node_budget)
    return Unsatisfiable(
        conflicting_constraints=tuple(c.name for c in core),
        conflict_pairs=pairs,
        reason=SPACE_EXHAUSTED,
        nodes=outcome.nodes,
    )
