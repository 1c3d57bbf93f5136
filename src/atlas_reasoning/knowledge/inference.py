"""
Motor de inferência do Atlas Reasoning (encadeamento para frente e para trás).

Este módulo implementa a derivação de conhecimento a partir de fatos e regras
imutáveis, compilados uma única vez em uma `KnowledgeBase` indexada por
(predicado, aridade).

Encadeamento para frente:
    - Passes repetidos sobre todas as regras, em ordem de declaração
    - Uma regra dispara para cada substituição que satisfaz o antecedente no
      conjunto de fatos *corrente* e cujo consequente ainda não está presente
    - Termina no primeiro passe sem disparos (ponto fixo)
    - Passes produtivos são limitados por `|rules| * |facts_possible|`;
      exceder o limite produz `InferenceStalled` com o último conjunto de fatos

Encadeamento para trás:
    - Resolução SLD de uma consulta: fatos primeiro, depois regras cujo
      consequente unifica, em ordem de declaração; antecedentes da esquerda
      para a direita (literais positivos antes dos negados)
    - Um objetivo que reaparece (a menos de renomeação) enquanto sua própria
      prova está aberta é um ciclo: o ramo é abandonado e o ciclo registrado
    - Sem prova e com ciclos registrados → `CircularDependency`

Negação:
    - Negação por falha avaliada contra o conjunto de fatos corrente no
      momento da avaliação (reavaliada a cada passe)

Limites explícitos:
    - Não há estratificação: a ordem das regras pode influenciar o resultado
      de regras com negação (comportamento documentado, determinístico)
    - Não há termos aninhados (argumentos são constantes ou variáveis)
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Set, Tuple, Union

from atlas_reasoning.core.errors import ReasoningErrorPayload, circular_dependency, inference_stalled
from atlas_reasoning.core.exceptions import MalformedTerm

from .terms import (
    Bindings,
    Fact,
    Literal,
    Rule,
    coerce_facts,
    coerce_rules,
    unify,
    variant_key,
)


FORWARD = "forward"
BACKWARD = "backward"


# ---------------------------------------------------------------------------
# Índice de fatos
# ---------------------------------------------------------------------------

class FactIndex:
    """Conjunto de fatos ground indexado por (predicado, aridade), ordem de inserção estável."""

    def __init__(self, facts: Iterable[Fact] = ()):
        self._by_key: Dict[Tuple[str, int], Dict[Fact, None]] = {}
        self._all: Dict[Fact, None] = {}
        for f in facts:
            self.add(f)

    def add(self, fact: Fact) -> bool:
        if fact in self._all:
            return False
        self._all[fact] = None
        self._by_key.setdefault(fact.key, {})[fact] = None
        return True

    def __contains__(self, fact: Fact) -> bool:
        return fact in self._all

    def __len__(self) -> int:
        return len(self._all)

    def __iter__(self) -> Iterator[Fact]:
        return iter(list(self._all))

    def candidates(self, pattern: Fact) -> List[Fact]:
        # cópia: o índice pode crescer durante um passe
        return list(self._by_key.get(pattern.key, {}))

    def frozen(self) -> frozenset:
        return frozenset(self._all)


def match_body(
    literals: Sequence[Literal],
    index: FactIndex,
    bindings: Optional[Bindings] = None,
) -> Iterator[Bindings]:
    """Gera todas as substituições que satisfazem a conjunção contra o índice."""
    bindings = dict(bindings or {})
    if not literals:
        yield bindings
        return

    first, rest = literals[0], literals[1:]
    if first.negated:
        goal = first.fact.substitute(bindings)
        if not goal.is_ground():
            raise MalformedTerm(
                message=f"negated literal '{first}' is not ground at evaluation time",
                details={"literal": str(first)},
            )
        if goal not in index:
            yield from match_body(rest, index, bindings)
        return

    for candidate in index.candidates(first.fact):
        b = unify(first.fact, candidate, bindings)
        if b is not None:
            yield from match_body(rest, index, b)


# ---------------------------------------------------------------------------
# Base de conhecimento compilada
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class KnowledgeBase:
    """Fatos e regras compilados; regras indexadas pelo predicado do consequente."""

    facts: Tuple[Fact, ...]
    rules: Tuple[Rule, ...]
    rules_by_consequent: Mapping[Tuple[str, int], Tuple[Rule, ...]] = field(default_factory=dict)

    @classmethod
    def compile(cls, facts: Iterable[Any], rules: Iterable[Any]) -> "KnowledgeBase":
        fact_list = coerce_facts(facts)
        rule_list = coerce_rules(rules)
        index: Dict[Tuple[str, int], List[Rule]] = {}
        for r in rule_list:
            index.setdefault(r.consequent.key, []).append(r)
        return cls(
            facts=tuple(fact_list),
            rules=tuple(rule_list),
            rules_by_consequent={k: tuple(v) for k, v in index.items()},
        )

    def constants(self) -> Set[str]:
        out: Set[str] = set()
        for f in self.facts:
            out.update(f.args)
        for r in self.rules:
            for lit in r.antecedent:
                out.update(a for a in lit.fact.args if not a.startswith("?"))
            out.update(a for a in r.consequent.args if not a.startswith("?"))
        return out

    def facts_possible(self) -> int:
        """Fatos iniciais + grounding possível de cada consequente sobre as constantes conhecidas."""
        n_constants = max(1, len(self.constants()))
        total = len(self.facts)
        for r in self.rules:
            total += n_constants ** len(r.consequent.variables())
        return total

    def iteration_bound(self) -> int:
        return max(1, len(self.rules) * self.facts_possible())


# ---------------------------------------------------------------------------
# Resultados
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Derivation:
    """Proveniência de um fato derivado."""

    fact: Fact
    rule_id: str
    support: Tuple[Fact, ...]
    iteration: int


@dataclass(frozen=True)
class InferenceResult:
    """Ponto fixo do encadeamento para frente."""

    facts: frozenset
    derived: Tuple[Fact, ...]
    derivations: Tuple[Derivation, ...]
    iterations: int
    bound: int

    def sorted_facts(self) -> List[str]:
        return sorted(str(f) for f in self.facts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "facts": self.sorted_facts(),
            "derived": [str(f) for f in self.derived],
            "derivations": [
                {
                    "fact": str(d.fact),
                    "rule": d.rule_id,
                    "support": [str(s) for s in d.support],
                    "iteration": d.iteration,
                }
                for d in self.derivations
            ],
            "iterations": self.iterations,
            "bound": self.bound,
        }


@dataclass(frozen=True)
class InferenceStalled:
    """Falha-valor: limite de iterações excedido sem ponto fixo."""

    last_facts: frozenset
    iterations: int
    bound: int

    def to_error(self) -> ReasoningErrorPayload:
        return inference_stalled(
            iterations=self.iterations,
            bound=self.bound,
            last_facts=sorted(str(f) for f in self.last_facts),
        )


@dataclass(frozen=True)
class ProofNode:
    """Nó da árvore de prova do encadeamento para trás."""

    goal: str
    via: str  # fact | rule | naf
    rule_id: Optional[str] = None
    children: Tuple["ProofNode", ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"goal": self.goal, "via": self.via}
        if self.rule_id:
            out["rule"] = self.rule_id
        if self.children:
            out["children"] = [c.to_dict() for c in self.children]
        return out

    def explain(self, indent: int = 0) -> str:
        pad = "  " * indent
        tag = f"[{self.via}{': ' + self.rule_id if self.rule_id else ''}]"
        lines = [f"{pad}{self.goal} {tag}"]
        for c in self.children:
            lines.append(c.explain(indent + 1))
        return "\n".join(lines)


@dataclass(frozen=True)
class ProofResult:
    """Resultado do encadeamento para trás."""

    query: str
    proven: bool
    bindings: Tuple[Dict[str, str], ...] = ()
    proof: Optional[ProofNode] = None
    cycles: Tuple[Tuple[str, ...], ...] = ()
    depth_limited: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "proven": self.proven,
            "bindings": [dict(b) for b in self.bindings],
            "proof": self.proof.to_dict() if self.proof else None,
            "cycles": [list(c) for c in self.cycles],
            "depth_limited": self.depth_limited,
        }


@dataclass(frozen=True)
class CircularDependency:
    """Falha-valor: a consulta só poderia ser provada por meio de si mesma."""

    query: str
    cycles: Tuple[Tuple[str, ...], ...]

    def to_error(self) -> ReasoningErrorPayload:
        return circular_dependency(query=self.query, cycles=[list(c) for c in self.cycles])


# ---------------------------------------------------------------------------
# Encadeamento para frente
# ---------------------------------------------------------------------------

def forward_chain(
    facts: Iterable[Any],
    rules: Iterable[Any],
    *,
    max_iterations: Optional[int] = None,
) -> Union[InferenceResult, InferenceStalled]:
    """Deriva o ponto fixo de `facts` sob `rules`.

    Args:
        facts: fatos ground (Fact, texto ou mapping).
        rules: regras (Rule, texto IF/THEN ou mapping).
        max_iterations: sobrescreve o limite `|rules| * |facts_possible|`.

    Returns:
        InferenceResult no ponto fixo, ou InferenceStalled se o limite for excedido.
    """
    kb = facts if isinstance(facts, KnowledgeBase) else KnowledgeBase.compile(facts, rules)
    return _forward(kb, max_iterations=max_iterations)


def _forward(kb: KnowledgeBase, *, max_iterations: Optional[int]) -> Union[InferenceResult, InferenceStalled]:
    bound = int(max_iterations) if max_iterations is not None else kb.iteration_bound()
    index = FactIndex(kb.facts)
    derivations: List[Derivation] = []
    iterations = 0

    while True:
        fired = False
        for rule in kb.rules:
            body = rule.positive_first()
            # materializa antes de inserir: a avaliação do passe usa o conjunto corrente
            for b in list(match_body(body, index)):
                new_fact = rule.consequent.substitute(b)
                if new_fact in index:
                    continue
                # negação reavaliada contra o conjunto corrente (pode ter crescido no passe)
                if any(lit.negated and lit.fact.substitute(b) in index for lit in body):
                    continue
                index.add(new_fact)
                fired = True
                derivations.append(
                    Derivation(
                        fact=new_fact,
                        rule_id=rule.rule_id,
                        support=tuple(l.fact.substitute(b) for l in body if not l.negated),
                        iteration=iterations + 1,
                    )
                )

        if not fired:
            break

        iterations += 1
        if iterations > bound:
            return InferenceStalled(last_facts=index.frozen(), iterations=iterations, bound=bound)

    return InferenceResult(
        facts=index.frozen(),
        derived=tuple(d.fact for d in derivations),
        derivations=tuple(derivations),
        iterations=iterations,
        bound=bound,
    )


# ---------------------------------------------------------------------------
# Encadeamento para trás
# ---------------------------------------------------------------------------

class _Prover:
    """Estado de uma única prova (escopo da chamada)."""

    def __init__(self, kb: KnowledgeBase, *, max_depth: int):
        self.kb = kb
        self.index = FactIndex(kb.facts)
        self.max_depth = max_depth
        self.cycles: List[Tuple[str, ...]] = []
        self.depth_limited = False
        self._fresh = itertools.count(1)

    def solve(
        self,
        goals: Sequence[Literal],
        bindings: Bindings,
        stack: Tuple[Fact, ...],
    ) -> Iterator[Tuple[Bindings, List[ProofNode]]]:
        if not goals:
            yield bindings, []
            return
        first, rest = goals[0], goals[1:]
        for b1, node in self.solve_literal(first, bindings, stack):
            for b2, nodes in self.solve(rest, b1, stack):
                yield b2, [node] + nodes

    def solve_literal(
        self,
        literal: Literal,
        bindings: Bindings,
        stack: Tuple[Fact, ...],
    ) -> Iterator[Tuple[Bindings, ProofNode]]:
        goal = literal.fact.substitute(bindings)

        if literal.negated:
            if not goal.is_ground():
                raise MalformedTerm(
                    message=f"negated goal '{goal}' is not ground at evaluation time",
                    details={"goal": str(goal)},
                )
            proven = next(iter(self.solve_literal(Literal(goal), bindings, stack)), None)
            if proven is None:
                yield bindings, ProofNode(goal=f"not {goal}", via="naf")
            return

        if len(stack) >= self.max_depth:
            self.depth_limited = True
            return

        goal_variant = variant_key(goal)
        for pos, ancestor in enumerate(stack):
            if variant_key(ancestor) == goal_variant:
                self.cycles.append(tuple(str(a) for a in stack[pos:]) + (str(goal),))
                return

        for candidate in self.index.candidates(goal):
            b = unify(goal, candidate, bindings)
            if b is not None:
                yield b, ProofNode(goal=str(candidate), via="fact")

        for rule in self.kb.rules_by_consequent.get(goal.key, ()):
            renamed = rule.rename(str(next(self._fresh)))
            b = unify(goal, renamed.consequent, bindings)
            if b is None:
                continue
            for b2, children in self.solve(renamed.positive_first(), b, stack + (goal,)):
                yield b2, ProofNode(
                    goal=str(goal.substitute(b2)),
                    via="rule",
                    rule_id=rule.rule_id,
                    children=tuple(children),
                )


def backward_chain(
    query: Any,
    facts: Iterable[Any],
    rules: Iterable[Any],
    *,
    max_depth: int = 64,
) -> Union[ProofResult, CircularDependency]:
    """Tenta provar `query` (literal, possivelmente com variáveis).

    Returns:
        ProofResult (provado ou não), ou CircularDependency quando a prova
        falha e algum ramo dependia da própria consulta.
    """
    kb = facts if isinstance(facts, KnowledgeBase) else KnowledgeBase.compile(facts, rules)
    goal = Literal.coerce(query)
    prover = _Prover(kb, max_depth=max_depth)
    query_vars = goal.fact.variables()

    answers: List[Dict[str, str]] = []
    first_proof: Optional[ProofNode] = None
    seen = set()
    for b, nodes in prover.solve((goal,), {}, ()):
        answer = {v: goal.fact.substitute(b).args[goal.fact.args.index(v)] for v in query_vars}
        key = tuple(sorted(answer.items()))
        if key in seen:
            continue
        seen.add(key)
        answers.append(answer)
        if first_proof is None:
            first_proof = nodes[0]
        if not query_vars:
            break

    cycles = tuple(dict.fromkeys(prover.cycles))
    if answers:
        return ProofResult(
            query=str(goal),
            proven=True,
            bindings=tuple(answers),
            proof=first_proof,
            cycles=cycles,
            depth_limited=prover.depth_limited,
        )
    if cycles:
        return CircularDependency(query=str(goal), cycles=cycles)
    return ProofResult(query=str(goal), proven=False, depth_limited=prover.depth_limited)


prove = backward_chain


def infer(
    facts: Iterable[Any],
    rules: Iterable[Any],
    mode: str = FORWARD,
    query: Any = None,
    *,
    max_iterations: Optional[int] = None,
    max_depth: int = 64,
) -> Union[InferenceResult, InferenceStalled, ProofResult, CircularDependency]:
    """Ponto de entrada único: `mode` é `forward` ou `backward` (requer `query`)."""
    mode = (mode or FORWARD).lower()
    if mode == FORWARD:
        return forward_chain(facts, rules, max_iterations=max_iterations)
    if mode == BACKWARD:
        if query is None:
            raise ValueError("backward chaining requires a query")
        return backward_chain(query, facts, rules, max_depth=max_depth)
    raise ValueError(f"unknown inference mode: {mode}")
