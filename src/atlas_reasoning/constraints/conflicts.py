"""
Análise de conflitos de problemas insatisfazíveis.

Um conjunto mínimo de restrições rígidas conflitantes é obtido por filtro de
remoção (deletion filter): cada restrição é removida tentativamente; se o
restante continua insatisfazível, ela não é necessária ao conflito e sai do
núcleo. Ao final, remover qualquer restrição do núcleo torna o subproblema
satisfazível.

Pares conflitantes são arestas do grafo de restrições restrito ao núcleo:
duas restrições do núcleo que compartilham ao menos uma variável.

Limites explícitos:
    - Se uma verificação de satisfazibilidade esgota o orçamento de nós, a
      restrição é mantida no núcleo (resultado conservador, nunca menor que
      o verdadeiro)
"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from .model import Constraint, CSPProblem


T = TypeVar("T")


def deletion_filter(items: Sequence[T], is_infeasible: Callable[[List[T]], Optional[bool]]) -> List[T]:
    """Reduz `items` a um subconjunto mínimo ainda inviável.

    `is_infeasible` retorna True (inviável), False (viável) ou None
    (indeterminado; o item é mantido).
    """
    core = list(items)
    for item in list(items):
        trial = [x for x in core if x is not item]
        if is_infeasible(trial) is True:
            core = trial
    return core


def conflict_pairs(core: Sequence[Constraint]) -> Tuple[Tuple[str, str], ...]:
    pairs: List[Tuple[str, str]] = []
    for i, a in enumerate(core):
        for b in core[i + 1:]:
            if set(a.scope) & set(b.scope):
                pairs.append((a.name, b.name))
    return tuple(pairs)


def minimal_conflict(
    problem: CSPProblem,
    *,
    ordering: str = "mrv",
    node_budget: Optional[int] = None,
) -> Tuple[List[Constraint], Tuple[Tuple[str, str], ...]]:
    """Núcleo mínimo insatisfazível das restrições rígidas de `problem`."""
    from .solver import BacktrackingSolver

    def is_infeasible(subset: List[Constraint]) -> Optional[bool]:
        sub = problem.with_hard(subset)
        outcome = BacktrackingSolver(sub, ordering=ordering, node_budget=node_budget).search(optimize=False)
        if outcome.best is not None:
            return False
        if outcome.exhausted_budget:
            return None
        return True

    core = deletion_filter(problem.hard, is_infeasible)
    return core, conflict_pairs(core)
