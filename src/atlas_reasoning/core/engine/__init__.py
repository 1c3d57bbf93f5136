"""Atlas Reasoning — Engine (core).

Dispatch de consultas sobre um documento compilado, composição de
componentes e conversão de falhas em payload estruturado.
"""

from .engine import EvaluationResult, ReasoningEngine  # noqa: F401
