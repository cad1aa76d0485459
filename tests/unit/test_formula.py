"""
Unit tests for safe formula evaluation.
"""

import pytest

from kpi_engine.core.exceptions import CalculationError
from kpi_engine.services.formula import evaluate_formula, formula_variables, parse_formula


class TestEvaluateFormula:
    """Tests for arithmetic over named sub-metrics."""

    def test_basic_arithmetic(self):
        result = evaluate_formula("(revenue - cost) / revenue * 100", {"revenue": 200.0, "cost": 50.0})
        assert result == pytest.approx(75.0)

    def test_operator_precedence(self):
        assert evaluate_formula("a + b * 2", {"a": 1, "b": 3}) == 7.0

    def test_unary_minus(self):
        assert evaluate_formula("-a + 10", {"a": 4}) == 6.0

    def test_numeric_literals(self):
        assert evaluate_formula("2.5 * 4", {}) == 10.0

    def test_division_by_zero_yields_zero(self):
        assert evaluate_formula("a / b", {"a": 10.0, "b": 0.0}) == 0.0

    def test_nested_division_by_zero_yields_zero(self):
        assert evaluate_formula("1 + a / (b - b)", {"a": 5, "b": 3}) == 1.0

    def test_unknown_variable_raises(self):
        with pytest.raises(CalculationError, match="Unknown variable"):
            evaluate_formula("a + missing", {"a": 1})


class TestParseFormula:
    """Tests for the expression whitelist."""

    @pytest.mark.parametrize(
        "formula",
        [
            "__import__('os').system('true')",
            "a ** 2",
            "a % 2",
            "a // 2",
            "a if b else c",
            "a.real",
            "[a, b]",
            "'text'",
            "a < b",
            "lambda: 1",
        ],
    )
    def test_rejects_non_arithmetic(self, formula):
        with pytest.raises(CalculationError):
            parse_formula(formula)

    def test_rejects_empty(self):
        with pytest.raises(CalculationError, match="empty"):
            parse_formula("   ")

    def test_rejects_malformed(self):
        with pytest.raises(CalculationError, match="Malformed"):
            parse_formula("a + * b")

    def test_rejects_boolean_literal(self):
        with pytest.raises(CalculationError):
            parse_formula("a + True")

    def test_formula_variables(self):
        assert formula_variables("(completed + 0.5 * partial) / total") == {"completed", "partial", "total"}
