"""
Programação linear sobre variáveis contínuas de alocação.

Expressões lineares são lidas com a mesma linguagem restrita das restrições
(`50*dev + 80*senior`, `dev + senior >= 100`) e avaliadas simbolicamente:
o resultado é um `LinearExpr` (coeficientes + constante). Produtos entre
variáveis e divisões por variáveis são rejeitados.

O problema é resolvido por `scipy.optimize.linprog` (HiGHS por padrão).

Decisões arquiteturais:
    - Variáveis contínuas com limite inferior 0, salvo declaração explícita
    - Desigualdades estritas (`<`, `>`) são tratadas como não estritas
    - Inviabilidade reutiliza o contrato `Unsatisfiable` do CSP: o conjunto
      mínimo de restrições conflitantes é obtido por filtro de remoção
    - Objetivo ilimitado → `UnboundedObjective`
"""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.optimize import linprog

from atlas_reasoning.core.errors import ReasoningErrorPayload, unbounded_objective
from atlas_reasoning.core.exceptions import InvalidExpression

from .conflicts import deletion_filter
from .expressions import normalize_source
from .solver import SPACE_EXHAUSTED, Unsatisfiable


MINIMIZE = "minimize"
MAXIMIZE = "maximize"


@dataclass(frozen=True)
class LinearExpr:
    """Σ coef·var + constante."""

    coefficients: Dict[str, float] = field(default_factory=dict)
    constant: float = 0.0

    def __add__(self, other: "LinearExpr") -> "LinearExpr":
        coefs = dict(self.coefficients)
        for k, v in other.coefficients.items():
            coefs[k] = coefs.get(k, 0.0) + v
        return LinearExpr(coefs, self.constant + other.constant)

    def scale(self, k: float) -> "LinearExpr":
        return LinearExpr({n: c * k for n, c in self.coefficients.items()}, self.constant * k)

    def __sub__(self, other: "LinearExpr") -> "LinearExpr":
        return self + other.scale(-1.0)

    @property
    def is_constant(self) -> bool:
        return all(v == 0 for v in self.coefficients.values())

    def evaluate(self, values: Mapping[str, float]) -> float:
        return self.constant + sum(c * float(values.get(n, 0.0)) for n, c in self.coefficients.items())


def _linear(node: ast.AST, source: str) -> LinearExpr:
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return LinearExpr({}, float(node.value))
    if isinstance(node, ast.Name):
        return LinearExpr({node.id: 1.0}, 0.0)
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.USub, ast.UAdd)):
        inner = _linear(node.operand, source)
        return inner.scale(-1.0) if isinstance(node.op, ast.USub) else inner
    if isinstance(node, ast.BinOp):
        left, right = _linear(node.left, source), _linear(node.right, source)
        if isinstance(node.op, ast.Add):
            return left + right
        if isinstance(node.op, ast.Sub):
            return left - right
        if isinstance(node.op, ast.Mult):
            if left.is_constant:
                return right.scale(left.constant)
            if right.is_constant:
                return left.scale(right.constant)
        if isinstance(node.op, ast.Div) and right.is_constant and right.constant != 0:
            return left.scale(1.0 / right.constant)
    raise InvalidExpression(message=f"expression is not linear: '{source}'", details={"expression": source})


def parse_linear(text: str) -> LinearExpr:
    source = normalize_source(str(text))
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as e:
        raise InvalidExpression(message=f"invalid expression syntax: '{text}'", details={"expression": text}) from e
    return _linear(tree.body, str(text))


_CMP = {ast.LtE: "<=", ast.Lt: "<=", ast.GtE: ">=", ast.Gt: ">=", ast.Eq: "=="}


@dataclass(frozen=True)
class LinearConstraint:
    """`expr (<=|>=|==) 0`, com nome e texto de origem."""

    name: str
    expr: LinearExpr
    op: str
    source: str = ""

    @classmethod
    def parse(cls, text: str, *, name: str) -> "LinearConstraint":
        source = normalize_source(str(text))
        try:
            tree = ast.parse(source, mode="eval")
        except SyntaxError as e:
            raise InvalidExpression(message=f"invalid constraint syntax: '{text}'", details={"expression": text}) from e
        body = tree.body
        if not isinstance(body, ast.Compare) or len(body.ops) != 1 or type(body.ops[0]) not in _CMP:
            raise InvalidExpression(
                message=f"linear constraint must be a single comparison: '{text}'",
                details={"expression": text},
            )
        lhs = _linear(body.left, str(text))
        rhs = _linear(body.comparators[0], str(text))
        return cls(name=name, expr=lhs - rhs, op=_CMP[type(body.ops[0])], source=str(text).strip())

    def satisfied(self, values: Mapping[str, float], tol: float = 1e-7) -> bool:
        v = self.expr.evaluate(values)
        if self.op == "<=":
            return v <= tol
        if self.op == ">=":
            return v >= -tol
        return abs(v) <= tol


@dataclass(frozen=True)
class LPSolution:
    values: Dict[str, float]
    objective_value: float
    sense: str
    objective: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "values": dict(self.values),
            "objective_value": self.objective_value,
            "sense": self.sense,
            "objective": self.objective,
        }


@dataclass(frozen=True)
class UnboundedObjective:
    """Falha-valor: objetivo ilimitado."""

    objective: str
    sense: str

    def to_error(self) -> ReasoningErrorPayload:
        return unbounded_objective(objective=self.objective, sense=self.sense)


def _coerce_constraints(items: Sequence[Any]) -> List[LinearConstraint]:
    out: List[LinearConstraint] = []
    for i, item in enumerate(items or ()):
        if isinstance(item, LinearConstraint):
            out.append(item)
        elif isinstance(item, Mapping):
            name = str(item.get("name") or item.get("id") or f"L{i + 1}")
            out.append(LinearConstraint.parse(item.get("expr", item.get("expression", "")), name=name))
        else:
            out.append(LinearConstraint.parse(str(item), name=f"L{i + 1}"))
    return out


def _bounds_for(names: Sequence[str], bounds: Optional[Mapping[str, Any]]) -> List[Tuple[Optional[float], Optional[float]]]:
    out = []
    for n in names:
        spec = (bounds or {}).get(n)
        if spec is None:
            out.append((0.0, None))
        elif isinstance(spec, Mapping):
            lo = spec.get("min", spec.get("low", 0.0))
            hi = spec.get("max", spec.get("high"))
            out.append((None if lo is None else float(lo), None if hi is None else float(hi)))
        else:
            lo, hi = spec
            out.append((None if lo is None else float(lo), None if hi is None else float(hi)))
    return out


def _run_linprog(
    objective: LinearExpr,
    sense: str,
    constraints: Sequence[LinearConstraint],
    names: Sequence[str],
    bounds: List[Tuple[Optional[float], Optional[float]]],
    method: str,
):
    col = {n: i for i, n in enumerate(names)}
    c = np.zeros(len(names))
    for n, v in objective.coefficients.items():
        c[col[n]] = v
    if sense == MAXIMIZE:
        c = -c

    a_ub, b_ub, a_eq, b_eq = [], [], [], []
    for lc in constraints:
        row = np.zeros(len(names))
        for n, v in lc.expr.coefficients.items():
            row[col[n]] = v
        rhs = -lc.expr.constant
        if lc.op == "<=":
            a_ub.append(row)
            b_ub.append(rhs)
        elif lc.op == ">=":
            a_ub.append(-row)
            b_ub.append(-rhs)
        else:
            a_eq.append(row)
            b_eq.append(rhs)

    return linprog(
        c,
        A_ub=np.array(a_ub) if a_ub else None,
        b_ub=np.array(b_ub) if b_ub else None,
        A_eq=np.array(a_eq) if a_eq else None,
        b_eq=np.array(b_eq) if b_eq else None,
        bounds=bounds,
        method=method,
    )


def _status(
    objective: LinearExpr,
    sense: str,
    constraints: Sequence[LinearConstraint],
    names: Sequence[str],
    bounds: List[Tuple[Optional[float], Optional[float]]],
    method: str,
):
    """Executa o linprog e separa o status ambíguo "unbounded or infeasible" do HiGHS."""
    res = _run_linprog(objective, sense, constraints, names, bounds, method)
    if res.status == 4 and "unbounded" in str(res.message).lower():
        # objetivo nulo: viável => ilimitado; inviável => inviável
        probe = _run_linprog(LinearExpr(), MINIMIZE, constraints, names, bounds, method)
        if probe.status == 0:
            return 3, res
        if probe.status == 2:
            return 2, res
    return res.status, res


def solve_linear_program(
    objective: Union[str, LinearExpr],
    constraints: Sequence[Any] = (),
    *,
    sense: str = MINIMIZE,
    bounds: Optional[Mapping[str, Any]] = None,
    method: str = "highs",
) -> Union[LPSolution, Unsatisfiable, UnboundedObjective]:
    """Otimiza um objetivo linear sujeito a restrições lineares.

    Args:
        objective: expressão linear (texto ou LinearExpr).
        constraints: restrições `expr op expr` (texto, mapping ou LinearConstraint).
        sense: `minimize` ou `maximize`.
        bounds: limites por variável (`{x: {min, max}}` ou `(lo, hi)`); padrão `[0, ∞)`.
        method: método do `scipy.optimize.linprog`.

    Returns:
        LPSolution, Unsatisfiable (restrições conflitantes) ou UnboundedObjective.
    """
    sense = (sense or MINIMIZE).lower()
    if sense not in (MINIMIZE, MAXIMIZE):
        raise InvalidExpression(message=f"unknown objective sense: {sense}", details={"sense": sense})

    obj_text = objective if isinstance(objective, str) else "<expr>"
    obj = parse_linear(objective) if isinstance(objective, str) else objective
    lcs = _coerce_constraints(constraints)

    names: List[str] = []
    for coefs in [obj.coefficients] + [lc.expr.coefficients for lc in lcs] + [dict.fromkeys(bounds or {})]:
        for n in coefs:
            if n not in names:
                names.append(n)
    var_bounds = _bounds_for(names, bounds)

    status, res = _status(obj, sense, lcs, names, var_bounds, method)

    if status == 0:
        values = {n: float(x) for n, x in zip(names, res.x)}
        return LPSolution(
            values=values,
            objective_value=float(obj.evaluate(values)),
            sense=sense,
            objective=str(obj_text).strip(),
        )

    if status == 3:
        return UnboundedObjective(objective=str(obj_text).strip(), sense=sense)

    if status == 2:
        def is_infeasible(subset: List[LinearConstraint]) -> Optional[bool]:
            st, _ = _status(obj, sense, subset, names, var_bounds, method)
            if st == 2:
                return True
            if st in (0, 3):
                return False
            return None

        core = deletion_filter(lcs, is_infeasible)
        pairs = []
        for i, a in enumerate(core):
            for b in core[i + 1:]:
                if set(a.expr.coefficients) & set(b.expr.coefficients):
                    pairs.append((a.name, b.name))
        return Unsatisfiable(
            conflicting_constraints=tuple(lc.name for lc in core),
            conflict_pairs=tuple(pairs),
            reason=SPACE_EXHAUSTED,
        )

    raise RuntimeError(f"linear program solver failed: {res.message}")
