"""
Registro de riscos: agregação e ranqueamento por exposição.

exposure = probability × impact

    - ranking por exposição decrescente (empates: id crescente)
    - exposição total = soma das exposições
    - severidade por limiares `risks.severity`:
        high   (exposure ≥ high)
        medium (exposure ≥ medium)
        low

O registro não é otimizado: apenas agregado e ordenado.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd

from atlas_reasoning.core.exceptions import DocumentInvalid


@dataclass(frozen=True)
class RiskEntry:
    risk_id: str
    probability: float
    impact: float
    mitigation: Optional[str] = None
    description: str = ""

    def __post_init__(self) -> None:
        if not 0.0 <= self.probability <= 1.0:
            raise DocumentInvalid(
                message=f"risk '{self.risk_id}' probability must be within [0, 1]",
                details={"risk": self.risk_id, "probability": self.probability},
            )
        if self.impact < 0:
            raise DocumentInvalid(message=f"risk '{self.risk_id}' has negative impact", details={"risk": self.risk_id})

    @property
    def exposure(self) -> float:
        return self.probability * self.impact

    @classmethod
    def coerce(cls, value: Any, *, index: int = 0, risk_id: Optional[str] = None) -> "RiskEntry":
        if isinstance(value, RiskEntry):
            return value
        if not isinstance(value, Mapping):
            raise DocumentInvalid(message=f"cannot interpret risk: {value!r}", details={"index": index})
        rid = str(value.get("id") or value.get("name") or risk_id or f"RISK{index + 1}")
        for key in ("probability", "impact"):
            if key not in value:
                raise DocumentInvalid(message=f"risk '{rid}' requires {key}", details={"risk": rid})
        mitigation = value.get("mitigation")
        return cls(
            risk_id=rid,
            probability=float(value["probability"]),
            impact=float(value["impact"]),
            mitigation=None if mitigation is None else str(mitigation),
            description=str(value.get("description", "")),
        )


@dataclass(frozen=True)
class RiskReport:
    ranked: Tuple[RiskEntry, ...]
    total_exposure: float
    severity: Dict[str, str]
    thresholds: Dict[str, float]
    frame: pd.DataFrame = field(default=None, compare=False, repr=False)

    def by_severity(self) -> Dict[str, List[str]]:
        out: Dict[str, List[str]] = {"high": [], "medium": [], "low": []}
        for r in self.ranked:
            out[self.severity[r.risk_id]].append(r.risk_id)
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ranked": [
                {
                    "id": r.risk_id,
                    "probability": r.probability,
                    "impact": r.impact,
                    "exposure": r.exposure,
                    "mitigation": r.mitigation,
                    "severity": self.severity[r.risk_id],
                }
                for r in self.ranked
            ],
            "total_exposure": self.total_exposure,
            "by_severity": self.by_severity(),
            "thresholds": dict(self.thresholds),
        }


def coerce_risks(value: Any) -> List[RiskEntry]:
    if value is None:
        return []
    if isinstance(value, Mapping):
        risks = [RiskEntry.coerce(v, index=i, risk_id=str(k)) for i, (k, v) in enumerate(value.items())]
    else:
        risks = [RiskEntry.coerce(v, index=i) for i, v in enumerate(value)]
    seen = set()
    for r in risks:
        if r.risk_id in seen:
            raise DocumentInvalid(message=f"duplicate risk id: {r.risk_id}", details={"risk": r.risk_id})
        seen.add(r.risk_id)
    return risks


def assess_risks(risks: Any, *, thresholds: Optional[Mapping[str, float]] = None) -> RiskReport:
    """Agrega o registro de riscos e ranqueia por exposição."""
    th = {"high": 0.5, "medium": 0.2}
    th.update({k: float(v) for k, v in (thresholds or {}).items()})

    entries = coerce_risks(risks)
    df = pd.DataFrame(
        [
            {
                "id": r.risk_id,
                "probability": r.probability,
                "impact": r.impact,
                "exposure": r.exposure,
                "mitigation": r.mitigation,
            }
            for r in entries
        ],
        columns=["id", "probability", "impact", "exposure", "mitigation"],
    )
    df = df.sort_values(["exposure", "id"], ascending=[False, True], kind="mergesort").reset_index(drop=True)
    df["severity"] = [
        "high" if e >= th["high"] else "medium" if e >= th["medium"] else "low" for e in df["exposure"]
    ]

    by_id = {r.risk_id: r for r in entries}
    return RiskReport(
        ranked=tuple(by_id[i] for i in df["id"]),
        total_exposure=float(df["exposure"].sum()),
        severity=dict(zip(df["id"], df["severity"])),
        thresholds=th,
        frame=df,
    )
