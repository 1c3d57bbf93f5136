"""
Modelo do problema de satisfação de restrições (CSP).

Decisões arquiteturais:
    - Restrições são predicados sobre um escopo explícito de variáveis
    - Restrições em texto têm o escopo inferido dos nomes usados na expressão;
      nomes desconhecidos são erro estrutural (nunca tratados como constantes)
    - Restrições suaves carregam peso não negativo (custo de violação)
    - Uma expressão indefinida para uma atribuição (ex.: divisão por zero)
      não é satisfeita

Invariantes:
    - Toda variável declarada possui domínio não vazio
    - O escopo de toda restrição referencia apenas variáveis declaradas
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from atlas_reasoning.core.exceptions import DocumentInvalid, InvalidExpression

from .domains import Domain
from .expressions import Expression


Predicate = Callable[[Mapping[str, Any]], bool]


@dataclass(frozen=True)
class Constraint:
    """Restrição rígida ou suave (com peso) sobre `scope`."""

    name: str
    scope: Tuple[str, ...]
    predicate: Predicate = field(compare=False, repr=False)
    hard: bool = True
    weight: float = 1.0
    source: str = ""

    def holds(self, assignment: Mapping[str, Any]) -> bool:
        try:
            return bool(self.predicate(assignment))
        except ZeroDivisionError:
            return False

    @classmethod
    def from_expression(
        cls,
        text: str,
        *,
        name: str,
        hard: bool = True,
        weight: float = 1.0,
        known: Optional[Iterable[str]] = None,
    ) -> "Constraint":
        expr = Expression.parse(text)
        if known is not None:
            known_set = set(known)
            unknown = [n for n in expr.names if n not in known_set]
            if unknown:
                raise InvalidExpression(
                    message=f"constraint '{name}' references unknown variables: {unknown}",
                    details={"constraint": name, "unknown": unknown},
                )
        return cls(
            name=name,
            scope=expr.names,
            predicate=expr.evaluate,
            hard=hard,
            weight=float(weight),
            source=expr.source,
        )

    @classmethod
    def coerce(
        cls,
        value: Any,
        *,
        index: int,
        hard: bool,
        known: Optional[Iterable[str]] = None,
    ) -> "Constraint":
        """Aceita Constraint, texto ou mapping `{name, expr, weight}`."""
        prefix = "C" if hard else "S"
        default_name = f"{prefix}{index + 1}"
        if isinstance(value, Constraint):
            return value
        if isinstance(value, str):
            return cls.from_expression(value, name=default_name, hard=hard, known=known)
        if isinstance(value, Mapping):
            name = str(value.get("name") or value.get("id") or default_name)
            text = value.get("expr", value.get("expression", value.get("constraint")))
            weight = value.get("weight", 1.0)
            if isinstance(text, str):
                return cls.from_expression(text, name=name, hard=hard, weight=weight, known=known)
            predicate = value.get("predicate")
            scope = value.get("scope")
            if callable(predicate) and scope:
                return cls(name=name, scope=tuple(scope), predicate=predicate, hard=hard, weight=float(weight))
            raise DocumentInvalid(message=f"constraint '{name}' must declare expr", details={"constraint": name})
        raise DocumentInvalid(message=f"cannot interpret constraint: {value!r}", details={"index": index})

    def __str__(self) -> str:
        return self.source or self.name


@dataclass(frozen=True)
class CSPProblem:
    """Variáveis (ordem de declaração), domínios e restrições rígidas/suaves."""

    variables: Tuple[str, ...]
    domains: Mapping[str, Domain]
    hard: Tuple[Constraint, ...] = ()
    soft: Tuple[Constraint, ...] = ()

    def __post_init__(self) -> None:
        for v in self.variables:
            if v not in self.domains:
                raise DocumentInvalid(message=f"variable '{v}' has no domain", details={"variable": v})
            if len(self.domains[v]) == 0:
                raise DocumentInvalid(message=f"variable '{v}' has an empty domain", details={"variable": v})
        declared = set(self.variables)
        names = set()
        for c in self.hard + self.soft:
            if c.name in names:
                raise DocumentInvalid(message=f"duplicate constraint name: {c.name}", details={"constraint": c.name})
            names.add(c.name)
            missing = [s for s in c.scope if s not in declared]
            if missing:
                raise DocumentInvalid(
                    message=f"constraint '{c.name}' references undeclared variables {missing}",
                    details={"constraint": c.name, "variables": missing},
                )
            if not c.hard and c.weight < 0:
                raise DocumentInvalid(message=f"soft constraint '{c.name}' has negative weight", details={})

    @classmethod
    def build(
        cls,
        variables: Any,
        domains: Optional[Mapping[str, Any]] = None,
        hard_constraints: Sequence[Any] = (),
        soft_constraints: Sequence[Any] = (),
    ) -> "CSPProblem":
        """Constrói o problema a partir de estruturas do documento compilado.

        `variables` pode ser uma lista de nomes ou um mapping nome → domínio;
        `domains` (quando presente) tem precedência por variável.
        """
        specs: Dict[str, Any] = {}
        if isinstance(variables, Mapping):
            names = [str(k) for k in variables]
            for k, v in variables.items():
                if v is not None:
                    specs[str(k)] = v
        else:
            names = [str(v) for v in (variables or [])]
        for k, v in (domains or {}).items():
            specs[str(k)] = v
            if str(k) not in names:
                names.append(str(k))

        doms = {n: Domain.from_spec(specs[n], name=n) for n in names if n in specs}
        hard = tuple(
            Constraint.coerce(c, index=i, hard=True, known=names) for i, c in enumerate(hard_constraints or ())
        )
        soft = tuple(
            Constraint.coerce(c, index=i, hard=False, known=names) for i, c in enumerate(soft_constraints or ())
        )
        return cls(variables=tuple(names), domains=doms, hard=hard, soft=soft)

    def with_hard(self, hard: Sequence[Constraint]) -> "CSPProblem":
        return CSPProblem(variables=self.variables, domains=self.domains, hard=tuple(hard), soft=())


@dataclass(frozen=True)
class AssignmentCheck:
    """Avaliação de uma atribuição completa contra um conjunto de restrições."""

    violated_hard: Tuple[str, ...]
    violated_soft: Tuple[str, ...]
    soft_cost: float

    @property
    def satisfied(self) -> bool:
        return not self.violated_hard


def check_assignment(assignment: Mapping[str, Any], constraints: Iterable[Constraint]) -> AssignmentCheck:
    """Avalia todas as restrições sobre uma atribuição completa.

    Raises:
        KeyError: se alguma variável do escopo não estiver atribuída.
    """
    violated_hard: List[str] = []
    violated_soft: List[str] = []
    cost = 0.0
    for c in constraints:
        missing = [v for v in c.scope if v not in assignment]
        if missing:
            raise KeyError(f"constraint '{c.name}' has unassigned variables {missing}")
        if c.holds(assignment):
            continue
        if c.hard:
            violated_hard.append(c.name)
        else:
            violated_soft.append(c.name)
            cost += c.weight
    return AssignmentCheck(violated_hard=tuple(violated_hard), violated_soft=tuple(violated_soft), soft_cost=cost)
