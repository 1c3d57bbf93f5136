"""
Alocação de recursos por geração serial de cronograma (serial SGS).

Ordem de prioridade:
    - topológica (só entra quem já tem todos os predecessores agendados)
    - empates por menor início tardio (LS do CPM), depois pelo nome

Posicionamento de cada atividade:
    - início candidato mínimo = maior término entre os predecessores
    - candidatos seguintes = términos de atividades já agendadas
    - aceita o primeiro candidato em que, em todo o intervalo:
        - a demanda somada em cada recurso renovável ≤ capacidade
        - atividades com `can_parallel=False` não se sobrepõem a nenhuma outra
    - recursos não renováveis acumulam consumo independente do tempo
    - habilidades exigidas precisam ser oferecidas pelo recurso

Falhas (valor `InfeasibleSchedule`, primeiro conflito irresolúvel):
    - demanda maior que a capacidade
    - habilidade não oferecida pelo recurso
    - consumo acumulado de recurso não renovável excedido
    - nenhum candidato cabe dentro do horizonte

O cronograma candidato é validado pelo resolvedor de restrições
(`check_assignment`) contra a precedência e as `SCHEDULE_CONSTRAINTS`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from atlas_reasoning.constraints.model import Constraint, check_assignment
from atlas_reasoning.core.errors import ReasoningErrorPayload, infeasible_schedule

from .cpm import CPMResult, critical_path
from .network import Activity, ActivityNetwork


SCHEDULE_NAMES = ("start", "finish", "duration", "slack", "makespan")


@dataclass(frozen=True)
class Schedule:
    """Cronograma: início/término por atividade, folgas e makespan."""

    start: Dict[str, float]
    finish: Dict[str, float]
    slack: Dict[str, float]
    resource_delay: Dict[str, float]
    makespan: float
    critical_paths: Tuple[Tuple[str, ...], ...] = ()
    objective: Optional[Dict[str, Any]] = None

    def to_frame(self) -> pd.DataFrame:
        rows = [
            {
                "activity": n,
                "start": self.start[n],
                "finish": self.finish[n],
                "slack": self.slack[n],
                "resource_delay": self.resource_delay[n],
            }
            for n in self.start
        ]
        df = pd.DataFrame(rows, columns=["activity", "start", "finish", "slack", "resource_delay"])
        return df.sort_values(["start", "activity"], kind="mergesort").reset_index(drop=True)

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "makespan": self.makespan,
            "activities": {
                n: {
                    "start": self.start[n],
                    "finish": self.finish[n],
                    "slack": self.slack[n],
                    "resource_delay": self.resource_delay[n],
                }
                for n in self.start
            },
            "critical_paths": [list(p) for p in self.critical_paths],
        }
        if self.objective is not None:
            out["objective"] = dict(self.objective)
        return out


@dataclass(frozen=True)
class InfeasibleSchedule:
    """Falha-valor: nenhum posicionamento satisfaz precedência e capacidade."""

    conflict: Dict[str, Any] = field(default_factory=dict)

    def to_error(self) -> ReasoningErrorPayload:
        return infeasible_schedule(conflict=dict(self.conflict))


@dataclass
class _Placed:
    name: str
    start: float
    finish: float
    activity: Activity


def schedule_constraints(items: Sequence[Any]) -> List[Constraint]:
    """Restrições declaradas sobre `start`, `finish`, `duration`, `slack` e `makespan`."""
    out: List[Constraint] = []
    for i, item in enumerate(items or ()):
        c = Constraint.coerce(item, index=i, hard=True, known=SCHEDULE_NAMES)
        out.append(c)
    return out


def precedence_constraints(network: ActivityNetwork, tolerance: float) -> List[Constraint]:
    out: List[Constraint] = []
    for n in network.order:
        for p in network.activities[n].predecessors:
            out.append(
                Constraint(
                    name=f"{p}->{n}",
                    scope=("start", "finish"),
                    predicate=lambda env, p=p, n=n: env["start"][n] >= env["finish"][p] - tolerance,
                    source=f'start["{n}"] >= finish["{p}"]',
                )
            )
    return out


class SerialScheduler:
    """Geração serial de cronograma sob recursos (escopo de uma chamada)."""

    def __init__(
        self,
        network: ActivityNetwork,
        *,
        horizon: Optional[float] = None,
        tolerance: float = 1e-9,
        cpm: Optional[CPMResult] = None,
    ):
        self.network = network
        self.tolerance = tolerance
        self.cpm = cpm or critical_path(network, tolerance=tolerance)
        total = sum(a.duration for a in network.activities.values())
        self.horizon = float(horizon) if horizon is not None else float(total)

    def _static_conflict(self, a: Activity, consumed: Dict[str, float], at: float) -> Optional[Dict[str, Any]]:
        for rname in sorted(a.resources):
            demand = a.resources[rname]
            res = self.network.resources[rname]
            base = {"activity": a.name, "resource": rname, "time": at, "demand": demand.quantity, "capacity": res.capacity}
            if demand.skill is not None and demand.skill not in res.skills:
                return dict(base, reason="skill_unavailable", skill=demand.skill)
            if res.renewable and demand.quantity > res.capacity + self.tolerance:
                return dict(base, reason="demand_exceeds_capacity")
            if not res.renewable and consumed.get(rname, 0.0) + demand.quantity > res.capacity + self.tolerance:
                return dict(base, reason="non_renewable_exhausted", consumed=consumed.get(rname, 0.0))
        return None

    def _fits(self, a: Activity, t: float, placed: Sequence[_Placed]) -> Optional[Dict[str, Any]]:
        end = t + a.duration
        if a.duration <= 0:
            return None
        overlapping = [
            p for p in placed
            if p.finish - p.start > 0 and p.start < end - self.tolerance and p.finish > t + self.tolerance
        ]
        for p in overlapping:
            if not a.can_parallel or not p.activity.can_parallel:
                return {"activity": a.name, "resource": None, "time": max(t, p.start), "reason": "exclusive", "with": p.name}

        points = sorted({t} | {p.start for p in overlapping if p.start > t})
        for rname in sorted(a.resources):
            res = self.network.resources[rname]
            if not res.renewable:
                continue
            q = a.resources[rname].quantity
            for point in points:
                used = sum(
                    p.activity.resources[rname].quantity
                    for p in overlapping
                    if rname in p.activity.resources and p.start <= point < p.finish
                )
                if used + q > res.capacity + self.tolerance:
                    return {
                        "activity": a.name,
                        "resource": rname,
                        "time": point,
                        "demand": used + q,
                        "capacity": res.capacity,
                        "reason": "capacity",
                    }
        return None

    def _next_activity(self, done: Dict[str, _Placed]) -> str:
        eligible = [
            n for n in self.network.order
            if n not in done and all(p in done for p in self.network.activities[n].predecessors)
        ]
        return min(eligible, key=lambda n: (self.cpm.late_start[n], n))

    def run(self) -> Union[Dict[str, _Placed], InfeasibleSchedule]:
        done: Dict[str, _Placed] = {}
        consumed: Dict[str, float] = {}

        while len(done) < len(self.network.order):
            name = self._next_activity(done)
            a = self.network.activities[name]
            earliest = max((done[p].finish for p in a.predecessors), default=0.0)

            static = self._static_conflict(a, consumed, earliest)
            if static is not None:
                return InfeasibleSchedule(conflict=static)

            placed = list(done.values())
            candidates = sorted({earliest} | {p.finish for p in placed if p.finish > earliest})
            first_conflict: Optional[Dict[str, Any]] = None
            chosen: Optional[float] = None
            for t in candidates:
                if t + a.duration > self.horizon + self.tolerance:
                    break
                conflict = self._fits(a, t, placed)
                if conflict is None:
                    chosen = t
                    break
                if first_conflict is None:
                    first_conflict = conflict

            if chosen is None:
                conflict = first_conflict or {
                    "activity": name,
                    "resource": None,
                    "time": earliest,
                    "reason": "horizon",
                }
                return InfeasibleSchedule(conflict=dict(conflict, horizon=self.horizon))

            for rname, demand in a.resources.items():
                if not self.network.resources[rname].renewable:
                    consumed[rname] = consumed.get(rname, 0.0) + demand.quantity
            done[name] = _Placed(name=name, start=chosen, finish=chosen + a.duration, activity=a)

        return done


def allocate(
    network: ActivityNetwork,
    *,
    horizon: Optional[float] = None,
    tolerance: float = 1e-9,
    constraints: Sequence[Any] = (),
) -> Union[Schedule, InfeasibleSchedule]:
    """Cronograma nivelado por recursos, validado contra precedência e restrições declaradas.

    Returns:
        Schedule, ou InfeasibleSchedule com o primeiro conflito irresolúvel.
    """
    cpm = critical_path(network, tolerance=tolerance)
    placed = SerialScheduler(network, horizon=horizon, tolerance=tolerance, cpm=cpm).run()
    if isinstance(placed, InfeasibleSchedule):
        return placed

    start = {n: placed[n].start for n in network.order}
    finish = {n: placed[n].finish for n in network.order}
    makespan = max(finish.values(), default=0.0)
    resource_delay = {n: start[n] - cpm.early_start[n] for n in network.order}

    moved = any(d > tolerance for d in resource_delay.values())
    if moved:
        slack = _levelled_slack(network, start, finish, makespan)
        # caminho CPM sobrevive se nenhuma atividade dele foi movida nem ganhou folga
        paths = tuple(
            p for p in cpm.critical_paths
            if all(resource_delay[n] <= tolerance and slack[n] <= tolerance for n in p)
        )
    else:
        slack = dict(cpm.slack)
        paths = cpm.critical_paths

    env = {
        "start": start,
        "finish": finish,
        "duration": network.durations(),
        "slack": slack,
        "makespan": makespan,
    }
    declared = schedule_constraints(constraints)
    check = check_assignment(env, precedence_constraints(network, tolerance) + declared)
    if not check.satisfied:
        sources = {c.name: c.source for c in declared}
        return InfeasibleSchedule(
            conflict={
                "constraint": check.violated_hard[0],
                "expression": sources.get(check.violated_hard[0]),
                "violated": list(check.violated_hard),
                "makespan": makespan,
                "reason": "schedule_constraint",
            }
        )

    return Schedule(
        start=start,
        finish=finish,
        slack=slack,
        resource_delay=resource_delay,
        makespan=makespan,
        critical_paths=paths,
    )


def _levelled_slack(
    network: ActivityNetwork,
    start: Mapping[str, float],
    finish: Mapping[str, float],
    makespan: float,
) -> Dict[str, float]:
    """Folga livre sobre os inícios posicionados: atraso possível sem mover sucessores nem o makespan."""
    out: Dict[str, float] = {}
    for n in network.order:
        limit = min((start[s] for s in network.successors.get(n, ())), default=makespan)
        out[n] = max(0.0, limit - finish[n])
    return out
