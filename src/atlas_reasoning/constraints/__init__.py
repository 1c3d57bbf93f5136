"""Satisfação de restrições (CSP), análise de conflitos e programação linear."""

from .conflicts import conflict_pairs, deletion_filter, minimal_conflict  # noqa: F401
from .domains import Domain  # noqa: F401
from .expressions import Expression  # noqa: F401
from .linear import (  # noqa: F401
    MAXIMIZE,
    MINIMIZE,
    LinearConstraint,
    LinearExpr,
    LPSolution,
    UnboundedObjective,
    parse_linear,
    solve_linear_program,
)
from .model import AssignmentCheck, Constraint, CSPProblem, check_assignment  # noqa: F401
from .solver import (  # noqa: F401
    BUDGET_EXHAUSTED,
    SPACE_EXHAUSTED,
    Assignment,
    BacktrackingSolver,
    Unsatisfiable,
    solve,
)
