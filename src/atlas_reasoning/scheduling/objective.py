"""
Função objetivo do otimizador de cronograma.

Formas aceitas em `OBJECTIVE_FUNCTION`:
    - `minimize(makespan)` / `maximize(quality)` / `minimize: 50*dev + 80*senior`
    - `{minimize: "cost"}` / `{sense: maximize, expression: quality, bounds: {...}}`

`minimize(makespan)` produz o cronograma CPM nivelado por recursos. Qualquer
outra expressão é tratada como programa linear sobre variáveis contínuas de
alocação, sujeito às restrições de `SUBJECT_TO`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from atlas_reasoning.constraints.linear import (
    MAXIMIZE,
    MINIMIZE,
    LPSolution,
    UnboundedObjective,
    solve_linear_program,
)
from atlas_reasoning.constraints.solver import Unsatisfiable
from atlas_reasoning.core.exceptions import DocumentInvalid

from .allocation import InfeasibleSchedule, Schedule, allocate
from .network import ActivityNetwork


MAKESPAN = "makespan"

_CALL_RE = re.compile(r"^\s*(minimize|maximize|min|max)\s*(?:\((.*)\)|:\s*(.+))\s*$", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class Objective:
    sense: str
    expression: str
    bounds: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_makespan(self) -> bool:
        return self.expression.replace(" ", "") == MAKESPAN

    @classmethod
    def parse(cls, value: Any) -> "Objective":
        if isinstance(value, Objective):
            return value
        if value is None:
            return cls(sense=MINIMIZE, expression=MAKESPAN)
        if isinstance(value, str):
            m = _CALL_RE.match(value)
            if not m:
                raise DocumentInvalid(
                    message=f"malformed objective: '{value}'",
                    details={"objective": value},
                )
            expr = (m.group(2) if m.group(2) is not None else m.group(3)).strip()
            return cls(sense=_sense(m.group(1)), expression=expr)
        if isinstance(value, Mapping):
            bounds = value.get("bounds") or {}
            for key in (MINIMIZE, MAXIMIZE):
                if key in value:
                    return cls(sense=key, expression=str(value[key]).strip(), bounds=bounds)
            if "expression" in value:
                return cls(
                    sense=_sense(str(value.get("sense", MINIMIZE))),
                    expression=str(value["expression"]).strip(),
                    bounds=bounds,
                )
        raise DocumentInvalid(message=f"cannot interpret objective: {value!r}", details={})

    def to_dict(self) -> Dict[str, Any]:
        return {"sense": self.sense, "expression": self.expression}


def _sense(raw: str) -> str:
    s = raw.strip().lower()
    if s in ("min", MINIMIZE):
        return MINIMIZE
    if s in ("max", MAXIMIZE):
        return MAXIMIZE
    raise DocumentInvalid(message=f"unknown objective sense: {raw}", details={"sense": raw})


def optimize(
    network: Optional[ActivityNetwork],
    objective: Any = None,
    subject_to: Sequence[Any] = (),
    *,
    horizon: Optional[float] = None,
    tolerance: float = 1e-9,
    constraints: Sequence[Any] = (),
    method: str = "highs",
) -> Union[Schedule, InfeasibleSchedule, LPSolution, Unsatisfiable, UnboundedObjective]:
    """Aplica o objetivo: cronograma nivelado (makespan) ou programa linear.

    `network` só é usada pelo objetivo de makespan. O programa linear é
    definido inteiramente por `objective` e `subject_to`; documentos sem
    ACTIVITIES podem passar `None`.
    """
    obj = Objective.parse(objective)
    if obj.is_makespan:
        if network is None:
            raise DocumentInvalid(message="makespan objective requires ACTIVITIES", details=obj.to_dict())
        if obj.sense != MINIMIZE:
            raise DocumentInvalid(message="makespan can only be minimized", details=obj.to_dict())
        result = allocate(network, horizon=horizon, tolerance=tolerance, constraints=constraints)
        if isinstance(result, Schedule):
            return replace(result, objective=dict(obj.to_dict(), value=result.makespan))
        return result
    return solve_linear_program(
        obj.expression,
        subject_to,
        sense=obj.sense,
        bounds=obj.bounds,
        method=method,
    )


def schedule(
    activities: Any,
    resources: Any = None,
    precedence: Sequence[Any] = (),
    objective: Any = None,
    *,
    parallel_ok: Optional[Sequence[Any]] = None,
    subject_to: Sequence[Any] = (),
    horizon: Optional[float] = None,
    tolerance: float = 1e-9,
    constraints: Sequence[Any] = (),
    method: str = "highs",
) -> Union[Schedule, InfeasibleSchedule, LPSolution, Unsatisfiable, UnboundedObjective]:
    """Constrói a rede de atividades e aplica o objetivo.

    Raises:
        UnknownActivity: precedência referencia atividade inexistente.
        CycleDetected: a precedência forma um ciclo (nenhum cronograma).
    """
    network = ActivityNetwork.build(activities, resources, precedence, parallel_ok)
    return optimize(
        network,
        objective,
        subject_to,
        horizon=horizon,
        tolerance=tolerance,
        constraints=constraints,
        method=method,
    )
