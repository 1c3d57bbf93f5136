"""
Linguagem restrita de expressões de restrição.

Restrições declaradas em texto (`x + y <= 10`, `frontend != backend`,
`x in {1, 3}`, `finish["B"] <= 20`) são interpretadas uma única vez via `ast`
e avaliadas sobre um ambiente (variável → valor) sem `eval`.

Construções suportadas:
    - comparações (inclusive encadeadas): < <= > >= == != in, not in
    - aritmética: + - * / // % ** e unários + -
    - lógica: and, or, not (também AND/OR/NOT em maiúsculas)
    - literais numéricos, strings, booleanos, conjuntos/listas/tuplas
    - indexação com chave constante: `start["A"]`
    - funções: abs, min, max

Um `=` isolado é lido como igualdade (`x = 3` ≡ `x == 3`).
"""

from __future__ import annotations

import ast
import operator
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Tuple

from atlas_reasoning.core.exceptions import InvalidExpression


_KEYWORDS_RE = [
    (re.compile(r"\bAND\b"), "and"),
    (re.compile(r"\bOR\b"), "or"),
    (re.compile(r"\bNOT\b"), "not"),
    (re.compile(r"\bIN\b"), "in"),
    (re.compile(r"(?<![<>!=])=(?!=)"), "=="),
    (re.compile(r"≤"), "<="),
    (re.compile(r"≥"), ">="),
    (re.compile(r"≠"), "!="),
]

_BIN_OPS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_CMP_OPS: Dict[type, Callable[[Any, Any], bool]] = {
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}

_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "abs": abs,
    "min": min,
    "max": max,
}


def normalize_source(text: str) -> str:
    out = text.strip()
    for pattern, repl in _KEYWORDS_RE:
        out = pattern.sub(repl, out)
    return out


def _validate(node: ast.AST, source: str) -> None:
    allowed = (
        ast.Expression, ast.Compare, ast.BoolOp, ast.UnaryOp, ast.BinOp,
        ast.Name, ast.Constant, ast.Load, ast.Set, ast.List, ast.Tuple,
        ast.Subscript, ast.Call, ast.And, ast.Or, ast.Not, ast.USub, ast.UAdd,
    )
    for child in ast.walk(node):
        if isinstance(child, (ast.operator, ast.cmpop)):
            if type(child) not in _BIN_OPS and type(child) not in _CMP_OPS:
                raise InvalidExpression(message=f"unsupported operator in '{source}'", details={"expression": source})
            continue
        if not isinstance(child, allowed):
            raise InvalidExpression(
                message=f"unsupported construct {type(child).__name__} in '{source}'",
                details={"expression": source},
            )
        if isinstance(child, ast.Call):
            if not isinstance(child.func, ast.Name) or child.func.id not in _FUNCTIONS or child.keywords:
                raise InvalidExpression(message=f"unsupported call in '{source}'", details={"expression": source})
        if isinstance(child, ast.Subscript):
            key = child.slice
            if not isinstance(key, ast.Constant) or not isinstance(child.value, ast.Name):
                raise InvalidExpression(
                    message=f"subscript must be name[constant] in '{source}'",
                    details={"expression": source},
                )


def _collect_names(tree: ast.AST) -> Tuple[Tuple[str, ...], Tuple[Tuple[str, Any], ...]]:
    names: List[str] = []
    subscripts: List[Tuple[str, Any]] = []
    call_funcs = {id(n.func) for n in ast.walk(tree) if isinstance(n, ast.Call)}

    for node in ast.walk(tree):
        if isinstance(node, ast.Subscript):
            subscripts.append((node.value.id, node.slice.value))
        if isinstance(node, ast.Name) and id(node) not in call_funcs and node.id not in names:
            names.append(node.id)
    # ordem de aparição no texto
    positions = {n: min(x.col_offset for x in ast.walk(tree) if isinstance(x, ast.Name) and x.id == n) for n in names}
    names.sort(key=lambda n: positions[n])
    return tuple(names), tuple(subscripts)


@dataclass(frozen=True)
class Expression:
    """Expressão compilada, avaliável sobre um ambiente nome → valor."""

    source: str
    names: Tuple[str, ...]
    subscripts: Tuple[Tuple[str, Any], ...] = ()
    tree: ast.Expression = field(default=None, compare=False, repr=False)

    @classmethod
    def parse(cls, text: str) -> "Expression":
        if not isinstance(text, str) or not text.strip():
            raise InvalidExpression(message="expression must be a non-empty string", details={"expression": repr(text)})
        source = normalize_source(text)
        try:
            tree = ast.parse(source, mode="eval")
        except SyntaxError as e:
            raise InvalidExpression(
                message=f"invalid expression syntax: '{text}'",
                details={"expression": text, "error": str(e)},
            ) from e
        _validate(tree, text)
        names, subscripts = _collect_names(tree)
        return cls(source=text.strip(), names=names, subscripts=subscripts, tree=tree)

    def evaluate(self, env: Mapping[str, Any]) -> Any:
        return _eval(self.tree.body, env)

    def __str__(self) -> str:
        return self.source


def _eval(node: ast.AST, env: Mapping[str, Any]) -> Any:
    if isinstance(node, ast.Constant):
        return node.value
    if isinstance(node, ast.Name):
        if node.id in env:
            return env[node.id]
        raise KeyError(node.id)
    if isinstance(node, ast.BoolOp):
        if isinstance(node.op, ast.And):
            result: Any = True
            for v in node.values:
                result = _eval(v, env)
                if not result:
                    return result
            return result
        result = False
        for v in node.values:
            result = _eval(v, env)
            if result:
                return result
        return result
    if isinstance(node, ast.UnaryOp):
        operand = _eval(node.operand, env)
        if isinstance(node.op, ast.Not):
            return not operand
        if isinstance(node.op, ast.USub):
            return -operand
        return +operand
    if isinstance(node, ast.BinOp):
        return _BIN_OPS[type(node.op)](_eval(node.left, env), _eval(node.right, env))
    if isinstance(node, ast.Compare):
        left = _eval(node.left, env)
        for op, comparator in zip(node.ops, node.comparators):
            right = _eval(comparator, env)
            if not _CMP_OPS[type(op)](left, right):
                return False
            left = right
        return True
    if isinstance(node, ast.Set):
        return frozenset(_eval(e, env) for e in node.elts)
    if isinstance(node, (ast.List, ast.Tuple)):
        return tuple(_eval(e, env) for e in node.elts)
    if isinstance(node, ast.Subscript):
        container = _eval(node.value, env)
        return container[node.slice.value]
    if isinstance(node, ast.Call):
        return _FUNCTIONS[node.func.id](*[_eval(a, env) for a in node.args])
    raise InvalidExpression(message=f"cannot evaluate node {type(node).__name__}", details={})
