"""
Árvores de decisão avaliadas por indução retroativa.

Nós:
    - folha: `utility`
    - chance: `outcomes` (lista de {probability, utility | nó aninhado});
      EU = Σ p × EU(filho); probabilidades somam 1 dentro da tolerância
    - decisão: `options`/`choices` (mapping nome → nó ou lista com `name`);
      escolhe o filho de maior EU (empates: ordem de declaração)

Uma opção pode declarar `probability` (prior, ex.: Flask p=0.9): o valor é
registrado no resultado mas não pondera o nó de decisão.

Exemplo:

    DECISION_TREE:
      name: framework
      options:
        Flask:
          probability: 0.9
          outcomes:
            - {probability: 0.95, utility: 8}
            - {probability: 0.05, utility: 3}
        FastAPI:
          probability: 0.1
          outcomes:
            - {probability: 0.8, utility: 9}
            - {probability: 0.2, utility: 2}

    → Flask (7.75) sobre FastAPI (7.6)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from atlas_reasoning.core.exceptions import DocumentInvalid


LEAF = "leaf"
CHANCE = "chance"
DECISION = "decision"


@dataclass(frozen=True)
class DecisionNode:
    """Nó da árvore (folha, chance ou decisão), imutável."""

    name: str
    kind: str
    utility: Optional[float] = None
    prior: Optional[float] = None
    # chance: (probabilidade, filho); decisão: (None, filho)
    children: Tuple[Tuple[Optional[float], "DecisionNode"], ...] = ()

    @classmethod
    def coerce(cls, value: Any, *, name: str = "root", prior: Optional[float] = None) -> "DecisionNode":
        if isinstance(value, DecisionNode):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return cls(name=name, kind=LEAF, utility=float(value), prior=prior)
        if not isinstance(value, Mapping):
            raise DocumentInvalid(message=f"decision node '{name}' must be a mapping", details={"node": name})

        node_name = str(value.get("name", name))
        node_prior = value.get("probability", prior)
        node_prior = None if node_prior is None else float(node_prior)

        options = value.get("options", value.get("choices"))
        outcomes = value.get("outcomes")
        if options is not None and outcomes is not None:
            raise DocumentInvalid(
                message=f"decision node '{node_name}' cannot declare both options and outcomes",
                details={"node": node_name},
            )

        if options is not None:
            children = []
            for opt_name, opt in _named_items(options, node_name):
                children.append((None, cls.coerce(opt, name=opt_name)))
            if not children:
                raise DocumentInvalid(message=f"decision node '{node_name}' has no options", details={"node": node_name})
            return cls(name=node_name, kind=DECISION, prior=node_prior, children=tuple(children))

        if outcomes is not None:
            children = []
            for i, out in enumerate(outcomes):
                if not isinstance(out, Mapping) or "probability" not in out:
                    raise DocumentInvalid(
                        message=f"outcome {i} of '{node_name}' requires a probability",
                        details={"node": node_name, "outcome": i},
                    )
                p = float(out["probability"])
                if p < 0:
                    raise DocumentInvalid(message=f"negative probability in '{node_name}'", details={"node": node_name})
                child_value = {k: v for k, v in out.items() if k != "probability"}
                child_name = str(out.get("name", f"{node_name}[{i}]"))
                if set(child_value) <= {"utility", "name"}:
                    if "utility" not in child_value:
                        raise DocumentInvalid(
                            message=f"outcome {i} of '{node_name}' requires a utility or a nested node",
                            details={"node": node_name, "outcome": i},
                        )
                    child = cls(name=child_name, kind=LEAF, utility=float(child_value["utility"]))
                else:
                    child = cls.coerce(child_value, name=child_name)
                children.append((p, child))
            if not children:
                raise DocumentInvalid(message=f"chance node '{node_name}' has no outcomes", details={"node": node_name})
            return cls(name=node_name, kind=CHANCE, prior=node_prior, children=tuple(children))

        if "utility" in value:
            return cls(name=node_name, kind=LEAF, utility=float(value["utility"]), prior=node_prior)

        raise DocumentInvalid(
            message=f"decision node '{node_name}' must declare options, outcomes or utility",
            details={"node": node_name},
        )


def _named_items(options: Any, parent: str) -> List[Tuple[str, Any]]:
    if isinstance(options, Mapping):
        return [(str(k), v) for k, v in options.items()]
    out = []
    for i, opt in enumerate(options):
        if isinstance(opt, Mapping) and "name" in opt:
            out.append((str(opt["name"]), opt))
        else:
            out.append((f"{parent}[{i}]", opt))
    return out


@dataclass(frozen=True)
class DecisionResult:
    """Resultado da indução retroativa."""

    best_choice: Optional[str]
    expected_utility: float
    choice_values: Dict[str, float] = field(default_factory=dict)
    priors: Dict[str, Optional[float]] = field(default_factory=dict)
    policy: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "best_choice": self.best_choice,
            "expected_utility": self.expected_utility,
            "choice_values": dict(self.choice_values),
            "priors": dict(self.priors),
            "policy": dict(self.policy),
        }


class _Evaluator:
    def __init__(self, tolerance: float):
        self.tolerance = tolerance
        self.policy: Dict[str, str] = {}

    def value(self, node: DecisionNode, path: str) -> float:
        if node.kind == LEAF:
            return float(node.utility)
        if node.kind == CHANCE:
            total_p = sum(p for p, _ in node.children)
            if abs(total_p - 1.0) > self.tolerance:
                raise DocumentInvalid(
                    message=f"probabilities of '{path}' sum to {total_p}, expected 1",
                    details={"node": path, "sum": total_p},
                )
            return sum(p * self.value(child, f"{path}/{child.name}") for p, child in node.children)

        best_name: Optional[str] = None
        best_value = float("-inf")
        for _, child in node.children:
            v = self.value(child, f"{path}/{child.name}")
            if v > best_value:
                best_name, best_value = child.name, v
        self.policy[path] = best_name
        return best_value


def evaluate(decision_tree: Any, *, probability_tolerance: float = 1e-6) -> DecisionResult:
    """Avalia a árvore por indução retroativa.

    Returns:
        DecisionResult com a melhor escolha da raiz, sua utilidade esperada, o
        valor de cada opção da raiz e a política ótima (nó de decisão → escolha).

    Raises:
        DocumentInvalid: árvore malformada ou probabilidades que não somam 1.
    """
    root = DecisionNode.coerce(decision_tree)
    ev = _Evaluator(probability_tolerance)
    eu = ev.value(root, root.name)

    if root.kind != DECISION:
        return DecisionResult(best_choice=None, expected_utility=eu, policy=ev.policy)

    choice_values: Dict[str, float] = {}
    priors: Dict[str, Optional[float]] = {}
    for _, child in root.children:
        choice_values[child.name] = ev.value(child, f"{root.name}/{child.name}")
        priors[child.name] = child.prior
    return DecisionResult(
        best_choice=ev.policy[root.name],
        expected_utility=eu,
        choice_values=choice_values,
        priors=priors,
        policy=ev.policy,
    )
