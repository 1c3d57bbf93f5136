"""
Schema canônico — documento compilado v1.

O documento compilado é um mapping de seções. Chaves de seção não
diferenciam maiúsculas de minúsculas (`facts`, `FACTS`, `Facts`).

Seções reconhecidas e formas aceitas:

    FACTS, RULES, CONSTRAINTS, SOFT_CONSTRAINTS, OBJECTS,
    INITIAL_STATE, GOAL_STATE, PRECEDENCE, PARALLEL_OK,
    SUBJECT_TO, SCHEDULE_CONSTRAINTS          → lista
    DOMAINS, DECISION_TREE                    → mapping
    VARIABLES, OPERATORS, RESOURCES,
    ACTIVITIES, RISKS                         → lista ou mapping
    OBJECTIVE_FUNCTION                        → texto ou mapping

Seções vazias (`FACTS:` sem conteúdo) equivalem a seções ausentes. Chaves
não reconhecidas são preservadas em `ignored` para que o Engine as reporte
como warning; nunca são interpretadas.

Esta implementação evita dependências externas (ex.: Pydantic), como o
restante do core.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple

from .errors import DocumentValidationError


FACTS = "FACTS"
RULES = "RULES"
VARIABLES = "VARIABLES"
DOMAINS = "DOMAINS"
CONSTRAINTS = "CONSTRAINTS"
SOFT_CONSTRAINTS = "SOFT_CONSTRAINTS"
OPERATORS = "OPERATORS"
OBJECTS = "OBJECTS"
INITIAL_STATE = "INITIAL_STATE"
GOAL_STATE = "GOAL_STATE"
RESOURCES = "RESOURCES"
ACTIVITIES = "ACTIVITIES"
PRECEDENCE = "PRECEDENCE"
PARALLEL_OK = "PARALLEL_OK"
OBJECTIVE_FUNCTION = "OBJECTIVE_FUNCTION"
SUBJECT_TO = "SUBJECT_TO"
SCHEDULE_CONSTRAINTS = "SCHEDULE_CONSTRAINTS"
DECISION_TREE = "DECISION_TREE"
RISKS = "RISKS"

_LIST = (list, tuple)
_MAPPING = (dict,)

_SECTION_TYPES: Dict[str, Tuple[type, ...]] = {
    FACTS: _LIST,
    RULES: _LIST,
    VARIABLES: _LIST + _MAPPING,
    DOMAINS: _MAPPING,
    CONSTRAINTS: _LIST,
    SOFT_CONSTRAINTS: _LIST,
    OPERATORS: _LIST + _MAPPING,
    OBJECTS: _LIST,
    INITIAL_STATE: _LIST,
    GOAL_STATE: _LIST,
    RESOURCES: _LIST + _MAPPING,
    ACTIVITIES: _LIST + _MAPPING,
    PRECEDENCE: _LIST,
    PARALLEL_OK: _LIST,
    OBJECTIVE_FUNCTION: (str,) + _MAPPING,
    SUBJECT_TO: _LIST,
    SCHEDULE_CONSTRAINTS: _LIST,
    DECISION_TREE: _MAPPING,
    RISKS: _LIST + _MAPPING,
}

SECTIONS = tuple(_SECTION_TYPES)


def _expect(cond: bool, msg: str) -> None:
    if not cond:
        raise DocumentValidationError(msg)


@dataclass(frozen=True)
class CompiledDocument:
    """Representação interna explícita do documento compilado (seções normalizadas)."""

    sections: Mapping[str, Any] = field(default_factory=dict)
    ignored: Tuple[str, ...] = ()

    def has(self, name: str) -> bool:
        return name.upper() in self.sections

    def get(self, name: str, default: Any = None) -> Any:
        return self.sections.get(name.upper(), default)

    def require(self, *names: str) -> None:
        missing = [n for n in names if not self.has(n)]
        _expect(not missing, f"document is missing required sections: {missing}")

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.sections)


def validate_document(data: Any) -> CompiledDocument:
    """Valida e materializa um documento compilado v1."""
    _expect(isinstance(data, Mapping), "compiled document must be a mapping/dict")

    sections: Dict[str, Any] = {}
    seen = set()
    ignored = []
    for raw_key, value in data.items():
        _expect(isinstance(raw_key, str) and bool(raw_key.strip()), f"section key must be a non-empty string: {raw_key!r}")
        key = raw_key.strip().upper()
        if key not in _SECTION_TYPES:
            ignored.append(raw_key)
            continue
        _expect(key not in seen, f"duplicate section (case-insensitive): {key}")
        seen.add(key)
        if value is None:
            continue
        allowed = _SECTION_TYPES[key]
        _expect(
            isinstance(value, allowed) or (dict in allowed and isinstance(value, Mapping)),
            f"section {key} must be of type {' or '.join(t.__name__ for t in allowed)}",
        )
        sections[key] = value

    if GOAL_STATE in sections:
        _expect(bool(sections[GOAL_STATE]), "GOAL_STATE must not be empty")
    if DECISION_TREE in sections:
        _expect(bool(sections[DECISION_TREE]), "DECISION_TREE must not be empty")

    return CompiledDocument(sections=sections, ignored=tuple(ignored))
