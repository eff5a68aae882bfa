"""Tests for custom exceptions.

This module tests the exception classes raised while building, compiling and
deciding trees, ensuring proper inheritance, attribute storage, and
catchability patterns.
"""

from __future__ import annotations

import pytest
from pytest_check import check

from dtree.exceptions import (
    CyclicTreeError,
    DecisionTreeError,
    EvaluationError,
    EvaluationTypeError,
    ExpressionError,
    ExpressionSyntaxError,
    InvalidConditionError,
    InvalidOutcomeError,
    MissingParameterError,
    NotCompiledError,
    ParseErrorDict,
    TreeDocumentError,
    UndecidableError,
    UnsupportedExpressionError,
)


class TestDecisionTreeErrors:
    """Tests for the DecisionTreeError hierarchy."""

    @pytest.mark.parametrize(
        "error",
        [
            InvalidOutcomeError("1+1"),
            InvalidConditionError("salary", "not a binary expression"),
            UndecidableError("Decision reached no outcome"),
            CyclicTreeError(["a > 1", "a > 1"]),
            NotCompiledError("a > 1"),
            TreeDocumentError("Invalid tree document"),
        ],
        ids=["outcome", "condition", "undecidable", "cyclic", "not_compiled", "document"],
    )
    def test_catchable_as_base(self, error: DecisionTreeError) -> None:
        """Every tree error should be catchable as DecisionTreeError.

        Args:
            error: An instance of a DecisionTreeError subclass.
        """
        with pytest.raises(DecisionTreeError):
            raise error

    @pytest.mark.parametrize(
        "error",
        [InvalidOutcomeError("x y"), InvalidConditionError("x", "reason"), TreeDocumentError("bad")],
        ids=["outcome", "condition", "document"],
    )
    def test_validation_errors_are_value_errors(self, error: Exception) -> None:
        """Input validation failures should also be ValueErrors.

        Args:
            error: A validation error instance.
        """
        with check:
            assert isinstance(error, ValueError)

    def test_evaluation_errors_are_not_tree_errors(self) -> None:
        """Evaluator failures propagate unwrapped, outside the DecisionTreeError hierarchy."""
        with check:
            assert not issubclass(EvaluationError, DecisionTreeError)

    def test_invalid_outcome_message(self) -> None:
        error = InvalidOutcomeError("1+1", reason="not a single literal or identifier")

        with check:
            assert error.value == "1+1"
        with check:
            assert str(error) == "Invalid outcome: '1+1' (not a single literal or identifier)"
        with check:
            assert "value='1+1'" in repr(error)

    def test_invalid_condition_stores_errors(self) -> None:
        errors = [ParseErrorDict(description="Required keyword missing", line=1, col=9)]

        error = InvalidConditionError("salary >=", "does not parse", errors=errors)

        with check:
            assert error.predicate == "salary >="
        with check:
            assert error.errors == errors
        with check:
            assert str(error) == "Invalid condition 'salary >=': does not parse"

    def test_invalid_condition_defaults_to_empty_errors(self) -> None:
        with check:
            assert InvalidConditionError("x", "reason").errors == []

    def test_undecidable_attributes(self) -> None:
        error = UndecidableError("No branch", predicate="a > 1", value=False)

        with check:
            assert error.predicate == "a > 1"
        with check:
            assert error.value is False
        with check:
            assert "predicate='a > 1'" in repr(error)

    def test_cyclic_tree_message(self) -> None:
        error = CyclicTreeError(["a > 1", "b > 2", "a > 1"])

        with check:
            assert error.cycle == ["a > 1", "b > 2", "a > 1"]
        with check:
            assert str(error) == "Decision tree contains a cycle: 'a > 1' -> 'b > 2' -> 'a > 1'"

    def test_not_compiled_names_predicate(self) -> None:
        error = NotCompiledError("a > 1")

        with check:
            assert error.predicate == "a > 1"
        with check:
            assert "initialize" in str(error)

    def test_tree_document_format_details(self) -> None:
        error = TreeDocumentError(
            "Invalid tree document: 2 error(s)",
            errors=[
                {"loc": ("root", "outcome", "value"), "msg": "Field required"},
                {"loc": (), "msg": "Input should be an object"},
            ],
        )

        with check:
            assert error.format_details() == "root.outcome.value: Field required\n<document>: Input should be an object"


class TestExpressionErrors:
    """Tests for the ExpressionError hierarchy."""

    def test_syntax_error_attributes(self) -> None:
        error = ExpressionSyntaxError("Expression syntax error", expression="a >", errors=[])

        with check:
            assert isinstance(error, ExpressionError)
        with check:
            assert error.expression == "a >"
        with check:
            assert error.errors == []

    def test_unsupported_expression_node_type(self) -> None:
        error = UnsupportedExpressionError("Unsupported", expression="a LIKE 'b'", node_type="Like")

        with check:
            assert error.node_type == "Like"
        with check:
            assert isinstance(error, ExpressionError)

    def test_missing_parameter_is_key_error(self) -> None:
        error = MissingParameterError("salary", expression="salary > 1")

        with check:
            assert isinstance(error, EvaluationError)
        with check:
            assert isinstance(error, KeyError)
        with check:
            assert str(error) == "No parameter 'salary' found"
        with check:
            assert error.parameter == "salary"

    def test_evaluation_type_error_is_type_error(self) -> None:
        error = EvaluationTypeError(">", ("number", "string"), expression="a > b")

        with check:
            assert isinstance(error, EvaluationError)
        with check:
            assert isinstance(error, TypeError)
        with check:
            assert str(error) == "Operator '>' cannot be applied to number, string"
        with check:
            assert error.operand_types == ("number", "string")
