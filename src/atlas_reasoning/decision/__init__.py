"""Análise de decisão: árvores (indução retroativa) e registro de riscos."""

from .risks import RiskEntry, RiskReport, assess_risks, coerce_risks  # noqa: F401
from .tree import CHANCE, DECISION, LEAF, DecisionNode, DecisionResult, evaluate  # noqa: F401
