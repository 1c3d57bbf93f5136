"""
HeuristicRegistry v1 — catálogo determinístico de heurísticas do planejador.

Heurísticas suportadas, seus modos de combinação com a profundidade e o
momento do teste de objetivo são centralizados e explícitos, sem descoberta
dinâmica.

Este módulo fornece:
- HeuristicSpec: especificação de uma heurística
- HeuristicRegistry: ponto único de verdade para heurísticas (v1)

Catálogo v1:
- minimize_complexity: h = fatos do objetivo não satisfeitos; prioridade h
- optimize_clarity: h = fatos não satisfeitos + extraneous / (1 + |estado|),
  onde extraneous = fatos do estado fora do objetivo; a fração fica em [0, 1)
  e só desempata estados com o mesmo número de metas pendentes,
  preferindo estados mais enxutos; prioridade h
- satisfice: h = fatos não satisfeitos; prioridade gulosa (apenas h) e teste
  de objetivo na geração (retorna o primeiro nó terminal descoberto)

O best_first ordena a fronteira apenas por h (modo `greedy`). O modo `astar`
(f = g + h, g = custo acumulado do plano) fica disponível para heurísticas
registradas via `register()`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, List, Literal, Optional

from atlas_reasoning.knowledge.terms import Fact


HeuristicFn = Callable[[FrozenSet[Fact], FrozenSet[Fact]], float]
CombineMode = Literal["astar", "greedy"]


def unmet_goals(state: FrozenSet[Fact], goal: FrozenSet[Fact]) -> float:
    return float(len(goal - state))


def clarity_score(state: FrozenSet[Fact], goal: FrozenSet[Fact]) -> float:
    extraneous = len(state - goal)
    return float(len(goal - state)) + extraneous / (1.0 + len(state))


@dataclass(frozen=True)
class HeuristicSpec:
    """Especificação canônica de uma heurística registrada."""

    heuristic_id: str
    fn: HeuristicFn
    mode: CombineMode = "greedy"
    goal_test_on_generation: bool = False
    description: str = ""

    def priority(self, state: FrozenSet[Fact], goal: FrozenSet[Fact], g: float) -> float:
        h = self.fn(state, goal)
        return h if self.mode == "greedy" else g + h


class HeuristicRegistry:
    """Registry determinístico de HeuristicSpec.

    Extensibilidade é explícita: novas heurísticas podem ser registradas via `register()`.
    """

    def __init__(self, specs: Optional[Iterable[HeuristicSpec]] = None):
        self._specs: Dict[str, HeuristicSpec] = {}
        if specs:
            for s in specs:
                self.register(s)

    @classmethod
    def v1(cls) -> "HeuristicRegistry":
        """Factory do catálogo v1 (minimize_complexity, optimize_clarity, satisfice)."""
        return cls(specs=_default_specs_v1())

    def register(self, spec: HeuristicSpec) -> None:
        if not isinstance(spec, HeuristicSpec):
            raise TypeError("spec must be a HeuristicSpec")
        if not isinstance(spec.heuristic_id, str) or not spec.heuristic_id.strip():
            raise ValueError("heuristic_id must be a non-empty string")
        if spec.heuristic_id in self._specs:
            raise ValueError(f"heuristic_id already registered: {spec.heuristic_id}")
        if spec.mode not in ("astar", "greedy"):
            raise ValueError(f"unknown combine mode: {spec.mode}")
        self._specs[spec.heuristic_id] = spec

    def list_ids(self) -> List[str]:
        return sorted(self._specs.keys())

    def get(self, heuristic_id: str) -> HeuristicSpec:
        if heuristic_id not in self._specs:
            raise KeyError(f"unknown heuristic: {heuristic_id}")
        return self._specs[heuristic_id]


def _default_specs_v1() -> List[HeuristicSpec]:
    return [
        HeuristicSpec(
            heuristic_id="minimize_complexity",
            fn=unmet_goals,
            mode="greedy",
            description="Remaining unmet goal facts",
        ),
        HeuristicSpec(
            heuristic_id="optimize_clarity",
            fn=clarity_score,
            mode="greedy",
            description="Unmet goals plus extraneous-fact ratio in [0, 1) as tie-break",
        ),
        HeuristicSpec(
            heuristic_id="satisfice",
            fn=unmet_goals,
            mode="greedy",
            goal_test_on_generation=True,
            description="Greedy on unmet goals; returns the first terminal node discovered",
        ),
    ]
