"""Base de conhecimento e inferência (encadeamento para frente e para trás)."""

from .inference import (  # noqa: F401
    BACKWARD,
    FORWARD,
    CircularDependency,
    Derivation,
    FactIndex,
    InferenceResult,
    InferenceStalled,
    KnowledgeBase,
    ProofNode,
    ProofResult,
    backward_chain,
    forward_chain,
    infer,
    match_body,
    prove,
)
from .terms import Fact, Literal, Rule, coerce_facts, coerce_rules, unify  # noqa: F401
