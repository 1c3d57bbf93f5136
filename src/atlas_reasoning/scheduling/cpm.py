"""
Método do caminho crítico (CPM).

    - passe para frente: ES = max(EF dos predecessores), EF = ES + duração
    - passe para trás a partir do makespan: LF = min(LS dos sucessores), LS = LF - duração
    - folga = LS - ES; atividades críticas têm folga zero (dentro da tolerância)
    - caminhos críticos: cadeias de atividades críticas com EF(pred) = ES(succ),
      iniciando em ES = 0 e terminando em EF = makespan

Todos os caminhos críticos são enumerados, em ordem lexicográfica.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .network import ActivityNetwork


@dataclass(frozen=True)
class CPMResult:
    early_start: Dict[str, float]
    early_finish: Dict[str, float]
    late_start: Dict[str, float]
    late_finish: Dict[str, float]
    slack: Dict[str, float]
    makespan: float
    critical: Tuple[str, ...]
    critical_paths: Tuple[Tuple[str, ...], ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "makespan": self.makespan,
            "activities": {
                n: {
                    "early_start": self.early_start[n],
                    "early_finish": self.early_finish[n],
                    "late_start": self.late_start[n],
                    "late_finish": self.late_finish[n],
                    "slack": self.slack[n],
                }
                for n in self.early_start
            },
            "critical": list(self.critical),
            "critical_paths": [list(p) for p in self.critical_paths],
        }


def critical_path(
    network: ActivityNetwork,
    *,
    durations: Optional[Mapping[str, float]] = None,
    tolerance: float = 1e-9,
) -> CPMResult:
    """Calcula ES/EF/LS/LF, folgas e caminhos críticos da rede.

    `durations` substitui as durações declaradas (ex.: amostras Monte Carlo).
    """
    dur = {n: float((durations or {}).get(n, a.duration)) for n, a in network.activities.items()}

    es: Dict[str, float] = {}
    ef: Dict[str, float] = {}
    for n in network.order:
        preds = network.activities[n].predecessors
        es[n] = max((ef[p] for p in preds), default=0.0)
        ef[n] = es[n] + dur[n]
    makespan = max(ef.values(), default=0.0)

    ls: Dict[str, float] = {}
    lf: Dict[str, float] = {}
    for n in reversed(network.order):
        lf[n] = min((ls[s] for s in network.successors.get(n, ())), default=makespan)
        ls[n] = lf[n] - dur[n]

    slack = {n: ls[n] - es[n] for n in network.order}
    critical = tuple(n for n in network.order if abs(slack[n]) <= tolerance)

    return CPMResult(
        early_start=es,
        early_finish=ef,
        late_start=ls,
        late_finish=lf,
        slack=slack,
        makespan=makespan,
        critical=critical,
        critical_paths=_enumerate_paths(network, critical, es, ef, makespan, tolerance),
    )


def _enumerate_paths(
    network: ActivityNetwork,
    critical: Tuple[str, ...],
    es: Mapping[str, float],
    ef: Mapping[str, float],
    makespan: float,
    tolerance: float,
) -> Tuple[Tuple[str, ...], ...]:
    crit = set(critical)
    paths: List[Tuple[str, ...]] = []

    starts = sorted(n for n in crit if abs(es[n]) <= tolerance)
    for start in starts:
        stack: List[Tuple[str, ...]] = [(start,)]
        while stack:
            path = stack.pop()
            last = path[-1]
            nexts = [
                s
                for s in network.successors.get(last, ())
                if s in crit and abs(ef[last] - es[s]) <= tolerance
            ]
            if not nexts:
                if abs(ef[last] - makespan) <= tolerance:
                    paths.append(path)
                continue
            for s in sorted(nexts, reverse=True):
                stack.append(path + (s,))
    return tuple(sorted(paths))
