"""Restricted arithmetic for formula-based earnings.

Formulas are parsed with :mod:`ast` and walked node by node; nothing is ever
passed to ``eval``. Allowed:

  - numbers and the variables supplied by the caller
  - + - * / % ** and unary + -
  - min(), max(), round(), abs()

Anything else (attribute access, subscripts, comparisons, other calls) is
rejected with :class:`CalculationError`.
"""

from __future__ import annotations

import ast
import math
import operator
from typing import Callable, Dict, Mapping

from .errors import CalculationError


def _round(value: float, ndigits: float = 0) -> float:
    if ndigits != int(ndigits):
        raise ValueError(f"round() digits must be whole, got {ndigits}")
    return round(value, int(ndigits))


ALLOWED_FUNCTIONS: Dict[str, Callable[..., float]] = {
    "min": min,
    "max": max,
    "round": _round,
    "abs": abs,
}

_BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPERATORS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

MAX_EXPONENT = 16


def formula_variables(
    base_salary: float = 0.0,
    hours_worked: float = 0.0,
    days_worked: int = 0,
    base_hourly_rate: float = 0.0,
    custom_inputs: Mapping[str, float] = None,
) -> Dict[str, float]:
    variables = {
        "base_salary": base_salary,
        "hours_worked": hours_worked,
        "days_worked": days_worked,
        "base_hourly_rate": base_hourly_rate,
    }
    variables.update(custom_inputs or {})
    return variables


def evaluate(expression: str, variables: Mapping[str, float]) -> float:
    try:
        tree = ast.parse(expression, mode="eval")
    except SyntaxError as exc:
        raise CalculationError(f"Invalid formula {expression!r}: {exc.msg}", formula=expression) from None

    try:
        value = float(_evaluate(tree.body, expression, variables))
        finite = math.isfinite(value)
    except (ArithmeticError, ValueError, TypeError) as exc:
        raise CalculationError(f"Formula {expression!r} failed: {exc}", formula=expression) from exc

    if not finite:
        raise CalculationError(f"Formula {expression!r} did not produce a finite number", formula=expression)
    return value


def _evaluate(node: ast.AST, expression: str, variables: Mapping[str, float]):
    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise CalculationError(f"Disallowed constant in {expression!r}: {node.value!r}", formula=expression)
        # float arithmetic throughout, so oversized powers overflow instead of growing
        return float(node.value)

    if isinstance(node, ast.Name):
        if node.id not in variables:
            raise CalculationError(f"Unknown variable {node.id!r} in {expression!r}", formula=expression)
        return float(variables[node.id])

    if isinstance(node, ast.BinOp):
        op = _BINARY_OPERATORS.get(type(node.op))
        if op is None:
            raise CalculationError(
                f"Disallowed operator {type(node.op).__name__} in {expression!r}", formula=expression
            )
        left = _evaluate(node.left, expression, variables)
        right = _evaluate(node.right, expression, variables)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise CalculationError(f"Exponent too large in {expression!r}", formula=expression)
        return op(left, right)

    if isinstance(node, ast.UnaryOp):
        op = _UNARY_OPERATORS.get(type(node.op))
        if op is None:
            raise CalculationError(
                f"Disallowed operator {type(node.op).__name__} in {expression!r}", formula=expression
            )
        return op(_evaluate(node.operand, expression, variables))

    if isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name) or node.func.id not in ALLOWED_FUNCTIONS or node.keywords:
            raise CalculationError(f"Disallowed function call in {expression!r}", formula=expression)
        args = [_evaluate(arg, expression, variables) for arg in node.args]
        return ALLOWED_FUNCTIONS[node.func.id](*args)

    raise CalculationError(f"Disallowed expression {type(node).__name__} in {expression!r}", formula=expression)
