"""Otimização de cronograma: rede de atividades, CPM, recursos, objetivo, Monte Carlo e sensibilidade."""

from .allocation import InfeasibleSchedule, Schedule, SerialScheduler, allocate, schedule_constraints  # noqa: F401
from .cpm import CPMResult, critical_path  # noqa: F401
from .distributions import DurationDistribution  # noqa: F401
from .montecarlo import MonteCarloResult, simulate  # noqa: F401
from .network import Activity, ActivityNetwork, Resource, ResourceDemand, find_cycle, toposort  # noqa: F401
from .objective import Objective, optimize, schedule  # noqa: F401
from .sensitivity import SensitivityEntry, SensitivityReport, analyze_sensitivity, classify, duration_sensitivity  # noqa: F401
