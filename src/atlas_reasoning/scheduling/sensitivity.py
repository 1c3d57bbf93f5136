"""
Análise de sensibilidade (perturbação de um parâmetro por vez).

Para cada parâmetro de entrada:
    - perturba o valor base por um delta relativo (`x * (1 + delta)`);
      parâmetros com base zero recebem perturbação absoluta `delta`
    - recalcula o objetivo
    - razão normalizada = (Δout/out) / (Δin/in); quando a entrada ou a saída
      base é zero, usa a razão absoluta Δout/Δin
    - classifica |razão| contra os limiares do chamador:
      high (≥ thresholds.high), medium (≥ thresholds.medium), low
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

import pandas as pd

from atlas_reasoning.core.exceptions import EngineConfigurationError

from .cpm import critical_path
from .network import ActivityNetwork


HIGH = "high"
MEDIUM = "medium"
LOW = "low"


@dataclass(frozen=True)
class SensitivityEntry:
    parameter: str
    base_input: float
    perturbed_input: float
    base_output: float
    perturbed_output: float
    ratio: float
    absolute: bool
    level: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parameter": self.parameter,
            "base_input": self.base_input,
            "perturbed_input": self.perturbed_input,
            "base_output": self.base_output,
            "perturbed_output": self.perturbed_output,
            "ratio": self.ratio,
            "absolute": self.absolute,
            "level": self.level,
        }


@dataclass(frozen=True)
class SensitivityReport:
    delta: float
    thresholds: Dict[str, float]
    entries: Tuple[SensitivityEntry, ...]

    def entry(self, parameter: str) -> SensitivityEntry:
        for e in self.entries:
            if e.parameter == parameter:
                return e
        raise KeyError(parameter)

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame([e.to_dict() for e in self.entries])
        if df.empty:
            return df
        df["magnitude"] = df["ratio"].abs()
        df = df.sort_values(["magnitude", "parameter"], ascending=[False, True], kind="mergesort")
        return df.drop(columns=["magnitude"]).reset_index(drop=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "delta": self.delta,
            "thresholds": dict(self.thresholds),
            "entries": [e.to_dict() for e in self.entries],
        }


def classify(ratio: float, thresholds: Mapping[str, float]) -> str:
    magnitude = abs(ratio)
    if magnitude >= float(thresholds[HIGH]):
        return HIGH
    if magnitude >= float(thresholds[MEDIUM]):
        return MEDIUM
    return LOW


def analyze_sensitivity(
    fn: Callable[[Mapping[str, float]], float],
    inputs: Mapping[str, float],
    *,
    delta: float = 0.1,
    thresholds: Optional[Mapping[str, float]] = None,
    parameters: Optional[Iterable[str]] = None,
) -> SensitivityReport:
    """Sensibilidade de `fn(inputs)` a cada parâmetro (um por vez)."""
    if delta == 0:
        raise EngineConfigurationError(message="sensitivity.delta must be non-zero", details={"delta": delta})
    th = {HIGH: 0.5, MEDIUM: 0.1}
    th.update({k: float(v) for k, v in (thresholds or {}).items()})
    if th[MEDIUM] > th[HIGH]:
        raise EngineConfigurationError(message="sensitivity thresholds require medium <= high", details=th)

    base = {k: float(v) for k, v in inputs.items()}
    out0 = float(fn(base))
    entries = []
    for name in (list(parameters) if parameters is not None else list(base)):
        x0 = base[name]
        x1 = x0 * (1.0 + delta) if x0 != 0 else float(delta)
        out1 = float(fn({**base, name: x1}))
        absolute = x0 == 0 or out0 == 0
        if absolute:
            ratio = (out1 - out0) / (x1 - x0)
        else:
            ratio = ((out1 - out0) / out0) / ((x1 - x0) / x0)
        entries.append(
            SensitivityEntry(
                parameter=name,
                base_input=x0,
                perturbed_input=x1,
                base_output=out0,
                perturbed_output=out1,
                ratio=ratio,
                absolute=absolute,
                level=classify(ratio, th),
            )
        )
    return SensitivityReport(delta=float(delta), thresholds=th, entries=tuple(entries))


def duration_sensitivity(
    network: ActivityNetwork,
    *,
    delta: float = 0.1,
    thresholds: Optional[Mapping[str, float]] = None,
    tolerance: float = 1e-9,
) -> SensitivityReport:
    """Sensibilidade do makespan (CPM) à duração de cada atividade."""

    def makespan(durations: Mapping[str, float]) -> float:
        return critical_path(network, durations=durations, tolerance=tolerance).makespan

    return analyze_sensitivity(
        makespan,
        {n: network.activities[n].duration for n in network.order},
        delta=delta,
        thresholds=thresholds,
    )
