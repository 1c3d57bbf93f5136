"""
Domínios de variáveis do CSP.

Um domínio é um conjunto enumerado de valores discretos ou um intervalo
numérico. Intervalos inteiros enumeram todos os inteiros entre os limites
(inclusive); intervalos com limites `float` exigem `step` explícito, pois o
solver opera sobre valores discretos.

Formas aceitas:
    - lista/tupla/conjunto: `[react, vue]`, `{1, 2, 3}`
    - mapping enumerado: `{values: [...]}`
    - mapping intervalo: `{min: 0, max: 10, step: 2}` (também `low`/`high`)
    - texto intervalo: `"0..10"`
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping, Tuple

import numpy as np

from atlas_reasoning.core.exceptions import DocumentInvalid


ENUMERATED = "enumerated"
INTERVAL = "interval"

_RANGE_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*\.\.\s*(-?\d+(?:\.\d+)?)\s*(?:step\s+(\d+(?:\.\d+)?))?\s*$")


def _number(x: Any) -> Any:
    if isinstance(x, bool):
        raise DocumentInvalid(message="interval bounds must be numeric", details={"value": x})
    if isinstance(x, (int, float)):
        return x
    s = str(x).strip()
    try:
        return int(s)
    except ValueError:
        return float(s)


@dataclass(frozen=True)
class Domain:
    """Conjunto finito e ordenado de valores admissíveis de uma variável."""

    values: Tuple[Any, ...]
    kind: str = ENUMERATED

    def __len__(self) -> int:
        return len(self.values)

    @classmethod
    def enumerated(cls, values: Any) -> "Domain":
        unique = tuple(dict.fromkeys(values))
        return cls(values=unique, kind=ENUMERATED)

    @classmethod
    def interval(cls, low: Any, high: Any, step: Any = None) -> "Domain":
        lo, hi = _number(low), _number(high)
        if lo > hi:
            raise DocumentInvalid(message=f"empty interval {lo}..{hi}", details={"low": lo, "high": hi})
        if step is not None:
            step = _number(step)
            if step <= 0:
                raise DocumentInvalid(message="interval step must be positive", details={"step": step})

        if isinstance(lo, int) and isinstance(hi, int) and (step is None or isinstance(step, int)):
            return cls(values=tuple(range(lo, hi + 1, step or 1)), kind=INTERVAL)

        if step is None:
            raise DocumentInvalid(
                message=f"continuous interval {lo}..{hi} requires an explicit step",
                details={"low": lo, "high": hi},
            )
        grid = np.round(np.arange(lo, hi + step / 2.0, step), 12)
        return cls(values=tuple(float(v) for v in grid if v <= hi + 1e-12), kind=INTERVAL)

    @classmethod
    def from_spec(cls, spec: Any, *, name: str = "") -> "Domain":
        if isinstance(spec, Domain):
            return spec
        if isinstance(spec, range):
            return cls(values=tuple(spec), kind=INTERVAL)
        if isinstance(spec, str):
            m = _RANGE_RE.match(spec)
            if m:
                return cls.interval(m.group(1), m.group(2), m.group(3))
            raise DocumentInvalid(
                message=f"domain of '{name}' must be a list or an interval",
                details={"variable": name, "domain": spec},
            )
        if isinstance(spec, Mapping):
            if "values" in spec:
                return cls.enumerated(spec["values"])
            low = spec.get("min", spec.get("low"))
            high = spec.get("max", spec.get("high"))
            if low is None or high is None:
                raise DocumentInvalid(
                    message=f"interval domain of '{name}' requires min and max",
                    details={"variable": name},
                )
            return cls.interval(low, high, spec.get("step"))
        if isinstance(spec, (set, frozenset)):
            try:
                return cls.enumerated(sorted(spec))
            except TypeError:
                return cls.enumerated(sorted(spec, key=repr))
        if isinstance(spec, (list, tuple)):
            return cls.enumerated(spec)
        raise DocumentInvalid(
            message=f"unsupported domain for '{name}': {spec!r}",
            details={"variable": name},
        )
