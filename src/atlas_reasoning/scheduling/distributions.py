"""
Distribuições de duração para simulação Monte Carlo.

Formas aceitas (`distribution` em uma atividade):
    - número → fixed
    - texto: `fixed(5)`, `uniform(3, 7)`, `triangular(2, 4, 8)`,
      `pert(2, 4, 8)`, `normal(5, 1.5)`
    - mapping: `{type: triangular, low: 2, mode: 4, high: 8}`
      (`{type: normal, mean: 5, std: 1.5}`)

`normal` é truncada em 0: amostras negativas são reamostradas.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import numpy as np

from atlas_reasoning.core.exceptions import DocumentInvalid


FIXED = "fixed"
UNIFORM = "uniform"
TRIANGULAR = "triangular"
PERT = "pert"
NORMAL = "normal"

KINDS = (FIXED, UNIFORM, TRIANGULAR, PERT, NORMAL)

_CALL_RE = re.compile(r"^\s*([A-Za-z_]+)\s*\((.*)\)\s*$")

_POSITIONAL = {
    FIXED: ("value",),
    UNIFORM: ("low", "high"),
    TRIANGULAR: ("low", "mode", "high"),
    PERT: ("low", "mode", "high"),
    NORMAL: ("mean", "std"),
}

_MAX_RESAMPLE_ROUNDS = 64


@dataclass(frozen=True)
class DurationDistribution:
    kind: str
    low: Optional[float] = None
    mode: Optional[float] = None
    high: Optional[float] = None
    mean: Optional[float] = None
    std: Optional[float] = None

    def __post_init__(self) -> None:
        if self.kind not in KINDS:
            raise DocumentInvalid(message=f"unknown distribution: {self.kind}", details={"kind": self.kind})
        if self.kind == NORMAL:
            if self.mean is None or self.std is None or self.std < 0:
                raise DocumentInvalid(message="normal distribution requires mean and std >= 0", details={})
            return
        lo = self.low if self.low is not None else self.mode
        hi = self.high if self.high is not None else self.mode
        mode = self.mode if self.mode is not None else lo
        if lo is None or hi is None or mode is None:
            raise DocumentInvalid(message=f"{self.kind} distribution requires bounds", details={"kind": self.kind})
        if not (lo <= mode <= hi):
            raise DocumentInvalid(
                message=f"{self.kind} distribution requires low <= mode <= high",
                details={"low": lo, "mode": mode, "high": hi},
            )
        if lo < 0:
            raise DocumentInvalid(message="durations cannot be negative", details={"low": lo})

    @classmethod
    def fixed(cls, value: float) -> "DurationDistribution":
        return cls(kind=FIXED, low=float(value), mode=float(value), high=float(value))

    @classmethod
    def from_spec(cls, spec: Any, *, default: float) -> "DurationDistribution":
        if spec is None:
            return cls.fixed(default)
        if isinstance(spec, DurationDistribution):
            return spec
        if isinstance(spec, (int, float)) and not isinstance(spec, bool):
            return cls.fixed(spec)
        if isinstance(spec, str):
            m = _CALL_RE.match(spec)
            if not m:
                raise DocumentInvalid(message=f"malformed distribution: '{spec}'", details={"distribution": spec})
            kind = m.group(1).lower()
            if kind not in _POSITIONAL:
                raise DocumentInvalid(message=f"unknown distribution: {kind}", details={"distribution": spec})
            try:
                values = [float(v) for v in m.group(2).split(",") if v.strip()]
            except ValueError as e:
                raise DocumentInvalid(message=f"non-numeric distribution parameter: '{spec}'", details={}) from e
            names = _POSITIONAL[kind]
            if len(values) != len(names):
                raise DocumentInvalid(
                    message=f"{kind} expects {len(names)} parameters, got {len(values)}",
                    details={"distribution": spec},
                )
            return cls._build(kind, dict(zip(names, values)))
        if isinstance(spec, Mapping):
            kind = str(spec.get("type", spec.get("kind", FIXED))).lower()
            params = {k: float(v) for k, v in spec.items() if k not in ("type", "kind") and v is not None}
            if kind == FIXED and "value" not in params:
                params["value"] = float(default)
            return cls._build(kind, params)
        raise DocumentInvalid(message=f"cannot interpret distribution: {spec!r}", details={})

    @classmethod
    def _build(cls, kind: str, params: Dict[str, float]) -> "DurationDistribution":
        if kind == FIXED:
            return cls.fixed(params.get("value", params.get("mode", 0.0)))
        if kind == NORMAL:
            return cls(kind=kind, mean=params.get("mean"), std=params.get("std", params.get("sd")))
        if kind == UNIFORM:
            return cls(kind=kind, low=params.get("low", params.get("min")), high=params.get("high", params.get("max")),
                       mode=params.get("low", params.get("min")))
        return cls(
            kind=kind,
            low=params.get("low", params.get("min", params.get("optimistic"))),
            mode=params.get("mode", params.get("likely", params.get("most_likely"))),
            high=params.get("high", params.get("max", params.get("pessimistic"))),
        )

    def expected(self) -> float:
        if self.kind == FIXED:
            return float(self.mode)
        if self.kind == UNIFORM:
            return (self.low + self.high) / 2.0
        if self.kind == TRIANGULAR:
            return (self.low + self.mode + self.high) / 3.0
        if self.kind == PERT:
            return (self.low + 4.0 * self.mode + self.high) / 6.0
        return float(self.mean)

    def sample(self, rng: np.random.Generator) -> float:
        if self.kind == FIXED:
            return float(self.mode)
        if self.kind == UNIFORM:
            return float(rng.uniform(self.low, self.high))
        if self.kind == TRIANGULAR:
            if self.low == self.high:
                return float(self.low)
            return float(rng.triangular(self.low, self.mode, self.high))
        if self.kind == PERT:
            span = self.high - self.low
            if span == 0:
                return float(self.low)
            alpha = 1.0 + 4.0 * (self.mode - self.low) / span
            beta = 1.0 + 4.0 * (self.high - self.mode) / span
            return float(self.low + span * rng.beta(alpha, beta))
        for _ in range(_MAX_RESAMPLE_ROUNDS):
            value = float(rng.normal(self.mean, self.std))
            if value >= 0:
                return value
        return 0.0

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.kind}
        for k in ("low", "mode", "high", "mean", "std"):
            v = getattr(self, k)
            if v is not None:
                out[k] = v
        return out
