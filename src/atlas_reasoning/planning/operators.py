"""
Operadores STRIPS, ações e estados do planejador.

Um `Operator` é um esquema imutável: parâmetros (`?x`), precondição
(conjunção de literais, possivelmente negados) e pós-condição (fatos
adicionados e removidos). Instanciá-lo com argumentos concretos produz uma
`Action`. Estados são `frozenset` de fatos ground.

Formas aceitas no documento compilado:

    OPERATORS:
      create_file:
        pre: [not has_file]
        post: [has_file, not no_file]
      move:
        parameters: [?from, ?to]
        pre: [at(?from), connected(?from, ?to)]
        add: [at(?to)]
        delete: [at(?from)]

Na pós-condição, literais negados são remoções.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from atlas_reasoning.core.exceptions import DocumentInvalid
from atlas_reasoning.knowledge.inference import FactIndex, match_body
from atlas_reasoning.knowledge.terms import Fact, Literal, is_variable, split_conjunction


State = FrozenSet[Fact]


def make_state(facts: Iterable[Any]) -> State:
    return frozenset(Fact.coerce(f) for f in (facts or ()))


def state_to_list(state: Iterable[Fact]) -> List[str]:
    return sorted(str(f) for f in state)


def _literals(value: Any) -> List[Literal]:
    if value is None:
        return []
    if isinstance(value, str):
        return [Literal.parse(p) for p in split_conjunction(value)]
    return [Literal.coerce(v) for v in value]


@dataclass(frozen=True)
class Action:
    """Instância ground de um operador."""

    operator: str
    args: Tuple[str, ...]
    preconditions: Tuple[Literal, ...]
    add_effects: Tuple[Fact, ...]
    del_effects: Tuple[Fact, ...]
    cost: float = 1.0

    def applicable(self, view: FrozenSet[Fact]) -> bool:
        for lit in self.preconditions:
            if (lit.fact in view) == lit.negated:
                return False
        return True

    def apply(self, state: State) -> State:
        return frozenset((state - set(self.del_effects)) | set(self.add_effects))

    def __str__(self) -> str:
        if not self.args:
            return self.operator
        return f"{self.operator}({', '.join(self.args)})"


@dataclass(frozen=True)
class Operator:
    """Esquema de ação (STRIPS) imutável."""

    name: str
    parameters: Tuple[str, ...]
    preconditions: Tuple[Literal, ...]
    add_effects: Tuple[Fact, ...]
    del_effects: Tuple[Fact, ...]
    cost: float = 1.0

    def __post_init__(self) -> None:
        for p in self.parameters:
            if not is_variable(p):
                raise DocumentInvalid(
                    message=f"operator '{self.name}': parameter {p} must start with '?'",
                    details={"operator": self.name},
                )
        declared = set(self.parameters)
        used = set()
        for lit in self.preconditions:
            used.update(lit.fact.variables())
        for f in self.add_effects + self.del_effects:
            used.update(f.variables())
        undeclared = sorted(used - declared)
        if undeclared:
            raise DocumentInvalid(
                message=f"operator '{self.name}' uses undeclared parameters {undeclared}",
                details={"operator": self.name, "parameters": undeclared},
            )
        if self.cost < 0:
            raise DocumentInvalid(message=f"operator '{self.name}' has negative cost", details={})

    @classmethod
    def coerce(cls, value: Any, *, name: Optional[str] = None) -> "Operator":
        if isinstance(value, Operator):
            return value
        if not isinstance(value, Mapping):
            raise DocumentInvalid(message=f"operator must be a mapping: {value!r}", details={"operator": name})
        op_name = str(value.get("name") or name or "").strip()
        if not op_name:
            raise DocumentInvalid(message="operator requires a name", details={})

        pre = _literals(value.get("pre", value.get("preconditions", value.get("PRE"))))
        post = _literals(value.get("post", value.get("effects", value.get("POST"))))
        add = [Fact.coerce(f) for f in value.get("add", ())] + [l.fact for l in post if not l.negated]
        delete = [Fact.coerce(f) for f in value.get("delete", value.get("del", ()))] + [l.fact for l in post if l.negated]

        params = value.get("parameters", value.get("params"))
        if params is None:
            seen: List[str] = []
            for lit in pre:
                seen.extend(v for v in lit.fact.variables() if v not in seen)
            for f in add + delete:
                seen.extend(v for v in f.variables() if v not in seen)
            params = seen

        return cls(
            name=op_name,
            parameters=tuple(str(p) for p in params),
            preconditions=tuple(pre),
            add_effects=tuple(dict.fromkeys(add)),
            del_effects=tuple(dict.fromkeys(delete)),
            cost=float(value.get("cost", 1.0)),
        )

    def instantiate(self, args: Sequence[str]) -> Action:
        if len(args) != len(self.parameters):
            raise DocumentInvalid(
                message=f"operator '{self.name}' expects {len(self.parameters)} arguments, got {len(args)}",
                details={"operator": self.name},
            )
        b = dict(zip(self.parameters, (str(a) for a in args)))
        return self._action(b)

    def _action(self, bindings: Mapping[str, str]) -> Action:
        return Action(
            operator=self.name,
            args=tuple(bindings[p] for p in self.parameters),
            preconditions=tuple(l.substitute(bindings) for l in self.preconditions),
            add_effects=tuple(f.substitute(bindings) for f in self.add_effects),
            del_effects=tuple(f.substitute(bindings) for f in self.del_effects),
            cost=self.cost,
        )

    def ground(self, view: FrozenSet[Fact], objects: Sequence[str]) -> Iterator[Action]:
        """Ações aplicáveis em `view`, em ordem estável de argumentos.

        Literais positivos da precondição são casados contra o estado;
        parâmetros restantes são enumerados sobre `objects`.
        """
        positives = [l for l in self.preconditions if not l.negated]
        index = FactIndex(sorted(view, key=str))
        partials = list(match_body(positives, index))

        candidates: Dict[Tuple[str, ...], Dict[str, str]] = {}
        for b in partials:
            free = [p for p in self.parameters if p not in b]
            for combo in itertools.product(objects, repeat=len(free)):
                full = dict(b)
                full.update(zip(free, combo))
                key = tuple(full[p] for p in self.parameters)
                candidates.setdefault(key, full)

        for key in sorted(candidates):
            action = self._action(candidates[key])
            if action.applicable(view):
                yield action
