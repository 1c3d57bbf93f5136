"""
Simulação Monte Carlo da duração do projeto.

Cada tentativa:
    - usa um gerador `numpy` próprio, semeado por
      `SeedSequence(seed, spawn_key=(trial,))` (independe da ordem de execução)
    - amostra a duração de cada atividade (ordem topológica)
    - recalcula o CPM e registra makespan e atividades críticas

Tentativas rodam via `joblib.Parallel` (`montecarlo.n_jobs`). A agregação é
feita sobre um `pandas.DataFrame` ordenado pelo índice da tentativa, então o
resultado é o mesmo para qualquer `n_jobs`. Mesma semente ⇒ mesmo agregado.

Limites explícitos:
    - O makespan simulado é o do CPM (precedência), sem nivelamento de recursos
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from atlas_reasoning.core.exceptions import EngineConfigurationError

from .cpm import critical_path
from .network import ActivityNetwork


@dataclass(frozen=True)
class MonteCarloResult:
    trials: int
    seed: int
    mean: float
    std: float
    minimum: float
    maximum: float
    percentiles: Dict[int, float]
    histogram: Dict[str, List[float]]
    criticality: Dict[str, float]
    deadline: Optional[float] = None
    deadline_probability: Optional[float] = None
    samples: pd.DataFrame = field(default=None, compare=False, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trials": self.trials,
            "seed": self.seed,
            "mean": self.mean,
            "std": self.std,
            "min": self.minimum,
            "max": self.maximum,
            "percentiles": {f"p{k}": v for k, v in self.percentiles.items()},
            "histogram": {k: list(v) for k, v in self.histogram.items()},
            "criticality": dict(self.criticality),
            "deadline": self.deadline,
            "deadline_probability": self.deadline_probability,
        }


def _run_trial(network: ActivityNetwork, trial: int, seed: int, tolerance: float) -> Dict[str, Any]:
    rng = np.random.default_rng(np.random.SeedSequence(entropy=seed, spawn_key=(trial,)))
    durations: Dict[str, float] = {}
    for name in network.order:
        a = network.activities[name]
        durations[name] = a.distribution.sample(rng) if a.distribution is not None else a.duration
    cpm = critical_path(network, durations=durations, tolerance=tolerance)
    row: Dict[str, Any] = {"trial": trial, "makespan": cpm.makespan}
    critical = set(cpm.critical)
    for name in network.order:
        row[f"critical:{name}"] = name in critical
    return row


def simulate(
    network: ActivityNetwork,
    *,
    trials: int = 1000,
    seed: int = 42,
    n_jobs: int = 1,
    histogram_bins: int = 20,
    percentiles: Sequence[int] = (10, 50, 80, 90, 95),
    deadline: Optional[float] = None,
    tolerance: float = 1e-9,
) -> MonteCarloResult:
    """Simula `trials` execuções do projeto e agrega a distribuição do makespan."""
    if int(trials) < 1:
        raise EngineConfigurationError(message="montecarlo.trials must be >= 1", details={"trials": trials})
    if int(histogram_bins) < 1:
        raise EngineConfigurationError(
            message="montecarlo.histogram_bins must be >= 1",
            details={"histogram_bins": histogram_bins},
        )

    rows = Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(_run_trial)(network, t, int(seed), tolerance) for t in range(int(trials))
    )
    df = pd.DataFrame(rows).sort_values("trial", kind="mergesort").reset_index(drop=True)

    makespans = df["makespan"].to_numpy(dtype=float)
    counts, edges = np.histogram(makespans, bins=int(histogram_bins))
    pct = {int(p): float(np.percentile(makespans, p)) for p in percentiles}
    criticality = {name: float(df[f"critical:{name}"].mean()) for name in network.order}

    probability = None
    if deadline is not None:
        probability = float((df["makespan"] <= float(deadline) + tolerance).mean())

    return MonteCarloResult(
        trials=int(trials),
        seed=int(seed),
        mean=float(df["makespan"].mean()),
        std=float(df["makespan"].std(ddof=0)),
        minimum=float(df["makespan"].min()),
        maximum=float(df["makespan"].max()),
        percentiles=pct,
        histogram={"counts": [int(c) for c in counts], "edges": [float(e) for e in edges]},
        criticality=criticality,
        deadline=None if deadline is None else float(deadline),
        deadline_probability=probability,
        samples=df,
    )
