"""
Termos da base de conhecimento: fatos, literais, regras e unificação.

Fatos são proposições atômicas `predicado` ou `predicado(a, b)`. Argumentos
são normalizados para `str`; argumentos iniciados por `?` são variáveis e só
são permitidos em padrões (antecedentes/consequentes de regras, esquemas de
operadores, consultas).

Decisões arquiteturais:
    - Casamento por (predicado, aridade) + argumentos, nunca por texto bruto
      no momento da solução (o texto é interpretado uma única vez, no load)
    - Regras são imutáveis e validadas na construção:
        - consequente nunca é negado
        - variáveis do consequente aparecem em algum literal positivo
        - variáveis de literais negados aparecem em algum literal positivo

Invariantes:
    - Fact/Literal/Rule são frozen dataclasses (hasháveis, seguras para sets)
    - `substitute` nunca muta o termo original
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from atlas_reasoning.core.exceptions import MalformedTerm


VARIABLE_PREFIX = "?"

Bindings = Dict[str, str]

_ATOM_RE = re.compile(r"^\s*([A-Za-z_][\w.\-]*)\s*(?:\((.*)\))?\s*$", re.DOTALL)
_NEGATION_RE = re.compile(r"^\s*(?:not\s+|!|¬|~)\s*(.+)$", re.IGNORECASE | re.DOTALL)
_IF_THEN_RE = re.compile(r"^\s*IF\s+(.+?)\s+THEN\s+(.+?)\s*$", re.IGNORECASE | re.DOTALL)
_ARROW_RE = re.compile(r"^\s*(.+?)\s*(?:=>|->)\s*(.+?)\s*$", re.DOTALL)
_AND_RE = re.compile(r"\s+AND\s+|\s*&&?\s*|\s*∧\s*", re.IGNORECASE)


def split_conjunction(text: str) -> List[str]:
    """Divide `a AND not b` em textos de literais."""
    return [p.strip() for p in _AND_RE.split(text) if p.strip()]


def is_variable(term: str) -> bool:
    return isinstance(term, str) and term.startswith(VARIABLE_PREFIX)


def _split_args(raw: str) -> Tuple[str, ...]:
    if raw is None or not raw.strip():
        return ()
    out: List[str] = []
    for part in raw.split(","):
        token = part.strip().strip("'\"")
        if not token:
            raise MalformedTerm(message=f"empty argument in '{raw}'", details={"args": raw})
        out.append(token)
    return tuple(out)


# ---------------------------------------------------------------------------
# Fact
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Fact:
    """Proposição atômica (predicado + argumentos)."""

    predicate: str
    args: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.predicate, str) or not self.predicate.strip():
            raise MalformedTerm(message="fact predicate must be a non-empty string", details={})
        # normaliza argumentos para str (ex.: números vindos de YAML)
        object.__setattr__(self, "args", tuple(str(a) for a in self.args))

    @classmethod
    def parse(cls, text: str) -> "Fact":
        if not isinstance(text, str):
            raise MalformedTerm(message="fact must be a string", details={"value": repr(text)})
        m = _ATOM_RE.match(text)
        if not m:
            raise MalformedTerm(message=f"malformed fact: '{text}'", details={"fact": text})
        return cls(predicate=m.group(1), args=_split_args(m.group(2)))

    @classmethod
    def coerce(cls, value: Any) -> "Fact":
        """Aceita Fact, texto (`p(a)`) ou mapping `{predicate, args}`."""
        if isinstance(value, Fact):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        if isinstance(value, Mapping) and "predicate" in value:
            return cls(predicate=str(value["predicate"]), args=tuple(value.get("args") or ()))
        raise MalformedTerm(message=f"cannot interpret fact: {value!r}", details={"value": repr(value)})

    @property
    def key(self) -> Tuple[str, int]:
        return (self.predicate, len(self.args))

    def is_ground(self) -> bool:
        return not any(is_variable(a) for a in self.args)

    def variables(self) -> Tuple[str, ...]:
        seen: List[str] = []
        for a in self.args:
            if is_variable(a) and a not in seen:
                seen.append(a)
        return tuple(seen)

    def substitute(self, bindings: Mapping[str, str]) -> "Fact":
        if not bindings or self.is_ground():
            return self
        return Fact(self.predicate, tuple(walk(a, bindings) for a in self.args))

    def __str__(self) -> str:
        if not self.args:
            return self.predicate
        return f"{self.predicate}({', '.join(self.args)})"


# ---------------------------------------------------------------------------
# Literal
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Literal:
    """Fato ou sua negação (negação por falha)."""

    fact: Fact
    negated: bool = False

    @classmethod
    def parse(cls, text: str) -> "Literal":
        if not isinstance(text, str):
            raise MalformedTerm(message="literal must be a string", details={"value": repr(text)})
        m = _NEGATION_RE.match(text)
        if m:
            return cls(fact=Fact.parse(m.group(1)), negated=True)
        return cls(fact=Fact.parse(text), negated=False)

    @classmethod
    def coerce(cls, value: Any) -> "Literal":
        if isinstance(value, Literal):
            return value
        if isinstance(value, Fact):
            return cls(fact=value)
        if isinstance(value, Mapping) and "predicate" in value:
            return cls(fact=Fact.coerce(value), negated=bool(value.get("negated", False)))
        return cls.parse(value)

    def substitute(self, bindings: Mapping[str, str]) -> "Literal":
        return Literal(self.fact.substitute(bindings), self.negated)

    def __str__(self) -> str:
        return f"not {self.fact}" if self.negated else str(self.fact)


# ---------------------------------------------------------------------------
# Rule
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Rule:
    """Implicação IF antecedente (conjunção de literais) THEN consequente."""

    antecedent: Tuple[Literal, ...]
    consequent: Fact
    rule_id: str = ""

    def __post_init__(self) -> None:
        positive_vars = set()
        for lit in self.antecedent:
            if not lit.negated:
                positive_vars.update(lit.fact.variables())

        for v in self.consequent.variables():
            if v not in positive_vars:
                raise MalformedTerm(
                    message=f"rule '{self.rule_id}': consequent variable {v} is not bound by a positive antecedent",
                    details={"rule": self.rule_id, "variable": v},
                )
        for lit in self.antecedent:
            if lit.negated:
                for v in lit.fact.variables():
                    if v not in positive_vars:
                        raise MalformedTerm(
                            message=f"rule '{self.rule_id}': negated literal '{lit}' uses unbound variable {v}",
                            details={"rule": self.rule_id, "variable": v},
                        )

    @classmethod
    def parse(cls, text: str, *, rule_id: str = "") -> "Rule":
        """Interpreta `IF a AND NOT b THEN c` (ou `a AND b => c`)."""
        m = _IF_THEN_RE.match(text) or _ARROW_RE.match(text)
        if not m:
            raise MalformedTerm(message=f"malformed rule: '{text}'", details={"rule": text})
        body, head = m.group(1), m.group(2)
        return cls.build(
            antecedent=split_conjunction(body),
            consequent=head,
            rule_id=rule_id,
        )

    @classmethod
    def build(cls, *, antecedent: Sequence[Any], consequent: Any, rule_id: str = "") -> "Rule":
        if isinstance(consequent, str) and _NEGATION_RE.match(consequent):
            raise MalformedTerm(
                message=f"rule '{rule_id}': negated consequent is not allowed",
                details={"rule": rule_id, "consequent": consequent},
            )
        head = Literal.coerce(consequent)
        if head.negated:
            raise MalformedTerm(
                message=f"rule '{rule_id}': negated consequent is not allowed",
                details={"rule": rule_id, "consequent": str(head)},
            )
        body = tuple(Literal.coerce(a) for a in antecedent)
        return cls(antecedent=body, consequent=head.fact, rule_id=rule_id)

    @classmethod
    def coerce(cls, value: Any, *, index: int = 0) -> "Rule":
        """Aceita Rule, texto IF/THEN ou mapping `{id, if, then}`."""
        default_id = f"R{index + 1}"
        if isinstance(value, Rule):
            return value
        if isinstance(value, str):
            return cls.parse(value, rule_id=default_id)
        if isinstance(value, Mapping):
            rid = str(value.get("id") or value.get("name") or default_id)
            body = value.get("if", value.get("antecedent"))
            head = value.get("then", value.get("consequent"))
            if body is None or head is None:
                raise MalformedTerm(message=f"rule '{rid}' must declare if/then", details={"rule": rid})
            if isinstance(body, str):
                body = split_conjunction(body)
            return cls.build(antecedent=list(body), consequent=head, rule_id=rid)
        raise MalformedTerm(message=f"cannot interpret rule: {value!r}", details={"value": repr(value)})

    def positive_first(self) -> Tuple[Literal, ...]:
        """Antecedente com literais positivos antes dos negados (negação segura)."""
        return tuple(l for l in self.antecedent if not l.negated) + tuple(l for l in self.antecedent if l.negated)

    def rename(self, suffix: str) -> "Rule":
        """Renomeia variáveis (padronização à parte) para uso em resolução."""
        mapping = {}
        for lit in self.antecedent:
            for v in lit.fact.variables():
                mapping[v] = f"{v}#{suffix}"
        for v in self.consequent.variables():
            mapping.setdefault(v, f"{v}#{suffix}")
        if not mapping:
            return self
        return Rule(
            antecedent=tuple(l.substitute(mapping) for l in self.antecedent),
            consequent=self.consequent.substitute(mapping),
            rule_id=self.rule_id,
        )

    def __str__(self) -> str:
        body = " AND ".join(str(l) for l in self.antecedent) or "true"
        return f"IF {body} THEN {self.consequent}"


# ---------------------------------------------------------------------------
# Unificação
# ---------------------------------------------------------------------------

def walk(term: str, bindings: Mapping[str, str]) -> str:
    """Segue a cadeia de substituições de uma variável."""
    seen = set()
    while is_variable(term) and term in bindings:
        if term in seen:
            break
        seen.add(term)
        term = bindings[term]
    return term


def unify(a: Fact, b: Fact, bindings: Optional[Mapping[str, str]] = None) -> Optional[Bindings]:
    """Unifica dois fatos (padrões ou ground). Retorna novas substituições ou None."""
    if a.key != b.key:
        return None
    s: Bindings = dict(bindings or {})
    for x, y in zip(a.args, b.args):
        x = walk(x, s)
        y = walk(y, s)
        if x == y:
            continue
        if is_variable(x):
            s[x] = y
        elif is_variable(y):
            s[y] = x
        else:
            return None
    return s


def variant_key(fact: Fact) -> Tuple[str, Tuple[str, ...]]:
    """Forma canônica de um padrão a menos de renomeação de variáveis."""
    names: Dict[str, str] = {}
    args = []
    for a in fact.args:
        if is_variable(a):
            names.setdefault(a, f"?_{len(names)}")
            args.append(names[a])
        else:
            args.append(a)
    return (fact.predicate, tuple(args))


def coerce_facts(values: Iterable[Any]) -> List[Fact]:
    """Converte uma coleção heterogênea em fatos ground (sem duplicatas, ordem estável)."""
    out: Dict[Fact, None] = {}
    for v in values or ():
        f = Fact.coerce(v)
        if not f.is_ground():
            raise MalformedTerm(message=f"fact '{f}' must be ground", details={"fact": str(f)})
        out[f] = None
    return list(out)


def coerce_rules(values: Iterable[Any]) -> List[Rule]:
    rules = [Rule.coerce(v, index=i) for i, v in enumerate(values or ())]
    seen = set()
    for r in rules:
        if r.rule_id in seen:
            raise MalformedTerm(message=f"duplicate rule id: {r.rule_id}", details={"rule": r.rule_id})
        seen.add(r.rule_id)
    return rules
