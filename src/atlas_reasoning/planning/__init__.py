"""Planejamento STRIPS: operadores, heurísticas e estratégias de busca."""

from .heuristics import HeuristicRegistry, HeuristicSpec, clarity_score, unmet_goals  # noqa: F401
from .operators import Action, Operator, State, make_state, state_to_list  # noqa: F401
from .search import (  # noqa: F401
    BEST_FIRST,
    BOUNDED,
    BREADTH_FIRST,
    BUDGET_EXHAUSTED,
    DEPTH_BOUND,
    DEPTH_FIRST,
    SPACE_EXHAUSTED,
    STRATEGIES,
    NoPlanFound,
    Plan,
    Planner,
    PlanningProblem,
    PlanValidation,
    coerce_operators,
    plan,
    validate_plan,
)
