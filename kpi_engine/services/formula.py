"""
Safe arithmetic formula evaluation.

Formulas are parsed with ``ast`` and walked node by node; only numeric
literals, variable names, unary +/-, binary + - * / and parentheses are
accepted. Nothing is passed to ``eval``.
"""

from __future__ import annotations

import ast
from typing import Mapping

from kpi_engine.core.exceptions import CalculationError

_BINARY_OPS = (ast.Add, ast.Sub, ast.Mult, ast.Div)
_UNARY_OPS = (ast.UAdd, ast.USub)


def parse_formula(formula: str) -> ast.Expression:
    """
    Parse and whitelist-check a formula.

    Raises:
        CalculationError: If the formula is empty, malformed, or uses
            anything beyond the supported arithmetic.
    """
    if not formula or not formula.strip():
        raise CalculationError("Formula is empty")
    try:
        tree = ast.parse(formula.strip(), mode="eval")
    except SyntaxError as exc:
        raise CalculationError(f"Malformed formula: {formula!r}", details=str(exc)) from exc

    for node in ast.walk(tree):
        if isinstance(node, (ast.Expression, ast.Load, ast.Name) + _BINARY_OPS + _UNARY_OPS):
            continue
        if isinstance(node, (ast.BinOp, ast.UnaryOp)):
            continue
        if isinstance(node, ast.Constant) and _is_number(node.value):
            continue
        raise CalculationError(
            f"Unsupported expression component in formula: {type(node).__name__}",
            details={"formula": formula},
        )
    return tree


def formula_variables(formula: str) -> set[str]:
    """Names referenced by a formula."""
    tree = parse_formula(formula)
    return {node.id for node in ast.walk(tree) if isinstance(node, ast.Name)}


def evaluate_formula(formula: str, variables: Mapping[str, float]) -> float:
    """
    Evaluate a formula over named sub-metric results.

    Division by zero yields 0.0, matching the ratio zero guard.
    """
    tree = parse_formula(formula)
    return float(_eval(tree.body, variables))


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _eval(node: ast.AST, variables: Mapping[str, float]) -> float:
    if isinstance(node, ast.Constant):
        return float(node.value)
    if isinstance(node, ast.Name):
        if node.id not in variables:
            raise CalculationError(f"Unknown variable in formula: {node.id}")
        return float(variables[node.id])
    if isinstance(node, ast.UnaryOp):
        operand = _eval(node.operand, variables)
        return -operand if isinstance(node.op, ast.USub) else operand
    if isinstance(node, ast.BinOp):
        left = _eval(node.left, variables)
        right = _eval(node.right, variables)
        if isinstance(node.op, ast.Add):
            return left + right
        if isinstance(node.op, ast.Sub):
            return left - right
        if isinstance(node.op, ast.Mult):
            return left * right
        if right == 0:
            return 0.0
        return left / right
    raise CalculationError(f"Unsupported expression component in formula: {type(node).__name__}")
