"""
Rede de atividades (DAG) do otimizador de cronograma.

Este módulo constrói e valida o grafo de precedência das atividades e produz
uma ordem topológica determinística.

Fontes de arestas:
    - `predecessors` de cada atividade
    - pares `PRECEDENCE` (`[A, B]`, `A -> B` ou `{before: A, after: B}`)

`PARALLEL_OK`:
    - quando presente, é autoritativo: atividades listadas recebem
      `can_parallel=True`, as demais `False`
    - quando ausente, vale o `can_parallel` de cada atividade (padrão True)

Decisões arquiteturais:
    - Ordenação topológica determinística (Kahn modificado)
    - Empates resolvidos por ordem lexicográfica do nome
    - Predecessor inexistente → `UnknownActivity` (erro estrutural)
    - Ciclo → `CycleDetected` (fatal, nenhum cronograma é produzido),
      com os membros do ciclo em ordem de percurso

Invariantes:
    - Nenhuma atividade aparece antes de seus predecessores
    - Todas as atividades aparecem exatamente uma vez
    - A mesma rede produz sempre a mesma ordem
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from atlas_reasoning.core.exceptions import CycleDetected, DocumentInvalid, UnknownActivity

from .distributions import DurationDistribution


_EDGE_RE = re.compile(r"^\s*(.+?)\s*(?:->|=>)\s*(.+?)\s*$")


@dataclass(frozen=True)
class ResourceDemand:
    """Demanda de uma atividade sobre um recurso."""

    quantity: float
    skill: Optional[str] = None

    @classmethod
    def coerce(cls, value: Any) -> "ResourceDemand":
        if isinstance(value, ResourceDemand):
            return value
        if isinstance(value, Mapping):
            return cls(
                quantity=float(value.get("quantity", value.get("amount", 1))),
                skill=value.get("skill"),
            )
        return cls(quantity=float(value))


@dataclass(frozen=True)
class Resource:
    name: str
    capacity: float
    renewable: bool = True
    skills: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        if self.capacity < 0:
            raise DocumentInvalid(message=f"resource '{self.name}' has negative capacity", details={"resource": self.name})

    @classmethod
    def coerce(cls, value: Any, *, name: Optional[str] = None) -> "Resource":
        if isinstance(value, Resource):
            return value
        if isinstance(value, Mapping):
            rname = str(value.get("name") or name or "").strip()
            if not rname:
                raise DocumentInvalid(message="resource requires a name", details={})
            return cls(
                name=rname,
                capacity=float(value.get("capacity", 1)),
                renewable=bool(value.get("renewable", True)),
                skills=frozenset(str(s) for s in (value.get("skills") or ())),
            )
        if name is not None and isinstance(value, (int, float)) and not isinstance(value, bool):
            return cls(name=name, capacity=float(value))
        raise DocumentInvalid(message=f"cannot interpret resource: {value!r}", details={"resource": name})


@dataclass(frozen=True)
class Activity:
    name: str
    duration: float
    distribution: Optional[DurationDistribution] = None
    resources: Mapping[str, ResourceDemand] = field(default_factory=dict)
    predecessors: Tuple[str, ...] = ()
    can_parallel: bool = True

    def __post_init__(self) -> None:
        if self.duration < 0:
            raise DocumentInvalid(message=f"activity '{self.name}' has negative duration", details={"activity": self.name})

    @classmethod
    def coerce(cls, value: Any, *, name: Optional[str] = None) -> "Activity":
        if isinstance(value, Activity):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool) and name:
            return cls(name=name, duration=float(value))
        if not isinstance(value, Mapping):
            raise DocumentInvalid(message=f"cannot interpret activity: {value!r}", details={"activity": name})
        aname = str(value.get("name") or name or "").strip()
        if not aname:
            raise DocumentInvalid(message="activity requires a name", details={})

        dist_spec = value.get("distribution")
        if "duration" in value:
            duration = float(value["duration"])
        elif dist_spec is not None:
            duration = DurationDistribution.from_spec(dist_spec, default=0.0).expected()
        else:
            raise DocumentInvalid(message=f"activity '{aname}' requires a duration", details={"activity": aname})

        preds = value.get("predecessors", value.get("depends_on", value.get("after", ())))
        if isinstance(preds, str):
            preds = [p.strip() for p in preds.split(",") if p.strip()]

        resources = value.get("resources", value.get("requires")) or {}
        if not isinstance(resources, Mapping):
            raise DocumentInvalid(message=f"activity '{aname}': resources must be a mapping", details={"activity": aname})

        return cls(
            name=aname,
            duration=duration,
            distribution=DurationDistribution.from_spec(dist_spec, default=duration) if dist_spec is not None else None,
            resources={str(r): ResourceDemand.coerce(q) for r, q in resources.items()},
            predecessors=tuple(dict.fromkeys(str(p) for p in preds)),
            can_parallel=bool(value.get("can_parallel", value.get("parallel", True))),
        )


def _coerce_named(value: Any, factory) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, Mapping):
        return [factory(spec, name=str(n)) for n, spec in value.items()]
    return [factory(spec) for spec in value]


def _edge(value: Any) -> Tuple[str, str]:
    if isinstance(value, Mapping):
        before = value.get("before", value.get("from"))
        after = value.get("after", value.get("to"))
        if before is None or after is None:
            raise DocumentInvalid(message=f"precedence requires before/after: {value!r}", details={})
        return str(before), str(after)
    if isinstance(value, str):
        m = _EDGE_RE.match(value)
        if not m:
            raise DocumentInvalid(message=f"malformed precedence: '{value}'", details={"precedence": value})
        return m.group(1), m.group(2)
    if isinstance(value, Sequence) and len(value) == 2:
        return str(value[0]), str(value[1])
    raise DocumentInvalid(message=f"malformed precedence: {value!r}", details={})


@dataclass(frozen=True)
class ActivityNetwork:
    """DAG validado de atividades, recursos e ordem topológica."""

    activities: Mapping[str, Activity]
    resources: Mapping[str, Resource]
    order: Tuple[str, ...]
    successors: Mapping[str, Tuple[str, ...]]

    @classmethod
    def build(
        cls,
        activities: Any,
        resources: Any = None,
        precedence: Iterable[Any] = (),
        parallel_ok: Optional[Iterable[Any]] = None,
    ) -> "ActivityNetwork":
        acts = _coerce_named(activities, Activity.coerce)
        by_name: Dict[str, Activity] = {}
        for a in acts:
            if a.name in by_name:
                raise DocumentInvalid(message=f"duplicate activity: {a.name}", details={"activity": a.name})
            by_name[a.name] = a

        res: Dict[str, Resource] = {}
        for r in _coerce_named(resources, Resource.coerce):
            if r.name in res:
                raise DocumentInvalid(message=f"duplicate resource: {r.name}", details={"resource": r.name})
            res[r.name] = r

        extra: Dict[str, List[str]] = {}
        for item in precedence or ():
            before, after = _edge(item)
            for n in (before, after):
                if n not in by_name:
                    raise UnknownActivity(
                        message=f"precedence references unknown activity '{n}'",
                        details={"activity": n, "precedence": [before, after]},
                    )
            extra.setdefault(after, []).append(before)

        parallel = None if parallel_ok is None else {str(p) for p in parallel_ok}
        if parallel is not None:
            unknown = sorted(parallel - set(by_name))
            if unknown:
                raise UnknownActivity(message=f"PARALLEL_OK references unknown activities {unknown}", details={"activities": unknown})

        for name, a in list(by_name.items()):
            preds = tuple(dict.fromkeys(a.predecessors + tuple(extra.get(name, ()))))
            for p in preds:
                if p not in by_name:
                    raise UnknownActivity(
                        message=f"activity '{name}' depends on unknown activity '{p}'",
                        details={"activity": name, "predecessor": p},
                    )
            for r, demand in a.resources.items():
                if r not in res:
                    raise DocumentInvalid(
                        message=f"activity '{name}' requires unknown resource '{r}'",
                        details={"activity": name, "resource": r},
                    )
            by_name[name] = replace(
                a,
                predecessors=preds,
                can_parallel=a.can_parallel if parallel is None else name in parallel,
            )

        order, successors = toposort({n: a.predecessors for n, a in by_name.items()})
        return cls(activities=by_name, resources=res, order=tuple(order), successors=successors)

    def durations(self) -> Dict[str, float]:
        return {n: a.duration for n, a in self.activities.items()}

    def with_durations(self, durations: Mapping[str, float]) -> "ActivityNetwork":
        acts = {n: replace(a, duration=float(durations.get(n, a.duration))) for n, a in self.activities.items()}
        return replace(self, activities=acts)


def toposort(deps: Mapping[str, Sequence[str]]) -> Tuple[List[str], Dict[str, Tuple[str, ...]]]:
    """Ordem topológica determinística (Kahn, desempate lexicográfico).

    Returns:
        (ordem, sucessores por atividade)

    Raises:
        UnknownActivity: dependência inexistente.
        CycleDetected: o grafo contém ciclo.
    """
    for name, dlist in deps.items():
        for d in dlist:
            if d not in deps:
                raise UnknownActivity(
                    message=f"activity '{name}' depends on unknown activity '{d}'",
                    details={"activity": name, "predecessor": d},
                )

    incoming_count: Dict[str, int] = {n: len(set(dlist)) for n, dlist in deps.items()}
    outgoing: Dict[str, set] = {n: set() for n in deps}
    for n, dlist in deps.items():
        for d in set(dlist):
            outgoing[d].add(n)

    ready: List[str] = sorted(n for n, c in incoming_count.items() if c == 0)
    order: List[str] = []
    while ready:
        n = ready.pop(0)
        order.append(n)
        for child in sorted(outgoing[n]):
            incoming_count[child] -= 1
            if incoming_count[child] == 0:
                ready.append(child)
                ready.sort()

    if len(order) != len(deps):
        cycle = find_cycle(deps, exclude=set(order))
        raise CycleDetected(
            message=f"cycle detected in activity precedence: {' -> '.join(cycle)}",
            details={"cycle": cycle},
        )
    return order, {n: tuple(sorted(s)) for n, s in outgoing.items()}


def find_cycle(deps: Mapping[str, Sequence[str]], *, exclude: Iterable[str] = ()) -> List[str]:
    """Um ciclo do grafo (predecessor → atividade), fechado no primeiro membro."""
    skip = set(exclude)
    succ: Dict[str, List[str]] = {n: [] for n in deps}
    for n, dlist in deps.items():
        for d in dlist:
            succ[d].append(n)

    color: Dict[str, int] = {}
    for start in sorted(n for n in deps if n not in skip):
        if color.get(start):
            continue
        path: List[str] = [start]
        stack = [iter(sorted(succ[start]))]
        color[start] = 1
        while stack:
            nxt = next(stack[-1], None)
            if nxt is None:
                color[path.pop()] = 2
                stack.pop()
                continue
            if nxt in skip:
                continue
            state = color.get(nxt, 0)
            if state == 1:
                return path[path.index(nxt):] + [nxt]
            if state == 0:
                color[nxt] = 1
                path.append(nxt)
                stack.append(iter(sorted(succ[nxt])))
    return []
