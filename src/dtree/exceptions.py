"""Custom exceptions for decision tree construction, compilation and evaluation.

Tree exceptions (subclass DecisionTreeError):
- InvalidOutcomeError: Raised when an outcome value is not a single literal token.
- InvalidConditionError: Raised when a predicate does not parse, is not a binary
  expression, or is rejected by the expression compiler.
- UndecidableError: Raised when a decision walk cannot reach an outcome.
- CyclicTreeError: Raised when a condition is reachable from itself.
- NotCompiledError: Raised when an uncompiled condition is evaluated.
- TreeDocumentError: Raised when a serialized tree document is malformed.

Expression exceptions (subclass ExpressionError):
- ExpressionSyntaxError: Raised when expression text cannot be parsed.
- UnsupportedExpressionError: Raised when an expression uses an operator or
  construct outside the supported grammar.
- EvaluationError: Base class for failures while evaluating against parameters.
  Catch this to handle any evaluation failure.
- MissingParameterError: Raised when an expression references an absent parameter.
- EvaluationTypeError: Raised when operand types do not suit an operator.
"""

from __future__ import annotations

from typing import Any, TypedDict


class ParseErrorDict(TypedDict, total=False):
    """Typed dictionary representing a single expression parse error.

    All fields are optional because tokenizer failures carry less detail than
    parser failures.

    Attributes:
        description (str): Human-readable explanation of the error.
        line (int): Line number where the error occurred (1-indexed).
        col (int): Column number where the error occurred (1-indexed).
        start_context (str): Text appearing before the error location.
        highlight (str): The problematic text segment that caused the error.
        end_context (str): Text appearing after the error location.
    """

    description: str
    line: int
    col: int
    start_context: str
    highlight: str
    end_context: str


# =============================================================================
# Decision tree errors
# =============================================================================


class DecisionTreeError(Exception):
    """Base exception for all decision tree errors.

    Catching this exception catches every failure raised by tree construction,
    compilation and the decision walk. Evaluator failures propagate unwrapped
    and are rooted at ExpressionError instead.
    """


class InvalidOutcomeError(DecisionTreeError, ValueError):
    """Raised when an outcome value is not a single literal or identifier token.

    Attributes:
        value (Any): The rejected outcome value.

    Examples:
        >>> err = InvalidOutcomeError(value="1+1")
        >>> err.value
        '1+1'
    """

    value: Any

    def __init__(self, value: Any, reason: str | None = None) -> None:
        """Initialize InvalidOutcomeError.

        Args:
            value (Any): The rejected outcome value.
            reason (str | None): Optional explanation appended to the message.
        """
        message = f"Invalid outcome: {value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.value = value

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Detailed string representation including message and value.
        """
        return f"{self.__class__.__name__}(message={str(self)!r}, value={self.value!r})"


class InvalidConditionError(DecisionTreeError, ValueError):
    """Raised when a condition predicate cannot be used to branch.

    A predicate is invalid when it does not parse, when it parses to something
    other than a binary expression, or when the expression compiler rejects it.

    Attributes:
        predicate (str): The rejected predicate text.
        errors (list[ParseErrorDict]): Parse error details, empty when the text
            parsed but was rejected for another reason.

    Examples:
        >>> err = InvalidConditionError(predicate="salary", reason="not a binary expression")
        >>> str(err)
        "Invalid condition 'salary': not a binary expression"
    """

    predicate: str
    errors: list[ParseErrorDict]

    def __init__(
        self,
        predicate: str,
        reason: str,
        *,
        errors: list[ParseErrorDict] | None = None,
    ) -> None:
        """Initialize InvalidConditionError.

        Args:
            predicate (str): The rejected predicate text.
            reason (str): Why the predicate was rejected.
            errors (list[ParseErrorDict] | None): Parse error details, if any.
        """
        super().__init__(f"Invalid condition {predicate!r}: {reason}")
        self.predicate = predicate
        self.errors = errors or []

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Detailed string representation including message, predicate, and errors.
        """
        return (
            f"{self.__class__.__name__}("
            f"message={str(self)!r}, predicate={self.predicate!r}, errors={self.errors!r})"
        )


class UndecidableError(DecisionTreeError):
    """Raised when a decision walk terminates without an outcome.

    This happens when a condition has no branch for the value its predicate
    evaluated to, when a branch leads nowhere, or when the tree is empty.

    Attributes:
        predicate (str | None): Predicate of the last condition visited, or None
            when the walk never reached a condition.
        value (Any): The evaluated value that had no branch, or None when the
            walk stopped for another reason.
    """

    predicate: str | None
    value: Any

    def __init__(self, message: str, *, predicate: str | None = None, value: Any = None) -> None:
        """Initialize UndecidableError.

        Args:
            message (str): Description of where the walk stopped.
            predicate (str | None): Predicate of the last condition visited.
            value (Any): The evaluated value that had no branch.
        """
        super().__init__(message)
        self.predicate = predicate
        self.value = value

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Detailed string representation including message, predicate, and value.
        """
        return (
            f"{self.__class__.__name__}("
            f"message={str(self)!r}, predicate={self.predicate!r}, value={self.value!r})"
        )


class CyclicTreeError(DecisionTreeError):
    """Raised when a condition can be reached again from one of its own branches.

    Attributes:
        cycle (list[str]): Predicates of the conditions forming the cycle, in
            traversal order.

    Examples:
        >>> err = CyclicTreeError(cycle=["a > 1", "b > 2", "a > 1"])
        >>> str(err)
        "Decision tree contains a cycle: 'a > 1' -> 'b > 2' -> 'a > 1'"
    """

    cycle: list[str]

    def __init__(self, cycle: list[str]) -> None:
        """Initialize CyclicTreeError.

        Args:
            cycle (list[str]): Predicates of the conditions forming the cycle.
        """
        path = " -> ".join(repr(predicate) for predicate in cycle)
        super().__init__(f"Decision tree contains a cycle: {path}")
        self.cycle = cycle

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Detailed string representation including message and cycle.
        """
        return f"{self.__class__.__name__}(message={str(self)!r}, cycle={self.cycle!r})"


class NotCompiledError(DecisionTreeError):
    """Raised when a condition is evaluated before it has been compiled.

    Conditions decoded from a document carry no executable state until
    ``Tree.initialize()`` (or ``Condition.compile()``) has run.

    Attributes:
        predicate (str): Predicate of the uncompiled condition.
    """

    predicate: str

    def __init__(self, predicate: str) -> None:
        """Initialize NotCompiledError.

        Args:
            predicate (str): Predicate of the uncompiled condition.
        """
        super().__init__(f"Condition {predicate!r} has not been compiled; call Tree.initialize() first")
        self.predicate = predicate


class TreeDocumentError(DecisionTreeError, ValueError):
    """Raised when a serialized tree document is structurally malformed.

    Attributes:
        errors (list[dict[str, Any]]): Validation error details, one entry per
            problem, each with at least ``loc`` and ``msg`` keys.
    """

    errors: list[dict[str, Any]]

    def __init__(self, message: str, *, errors: list[dict[str, Any]] | None = None) -> None:
        """Initialize TreeDocumentError.

        Args:
            message (str): Description of the document error.
            errors (list[dict[str, Any]] | None): Validation error details.
        """
        super().__init__(message)
        self.errors = errors or []

    def format_details(self) -> str:
        """Format one line per document problem.

        Returns:
            str: Multi-line string with the location and message of each error.

        Examples:
            >>> err = TreeDocumentError(
            ...     "Invalid tree document",
            ...     errors=[{"loc": ("root", "outcome", "value"), "msg": "Value error, Invalid outcome: '1+1'"}],
            ... )
            >>> print(err.format_details())
            root.outcome.value: Value error, Invalid outcome: '1+1'
        """
        lines = []
        for error in self.errors:
            location = ".".join(str(part) for part in error.get("loc", ())) or "<document>"
            lines.append(f"{location}: {error.get('msg', '')}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Detailed string representation including message and errors.
        """
        return f"{self.__class__.__name__}(message={str(self)!r}, errors={self.errors!r})"


# =============================================================================
# Expression errors
# =============================================================================


class ExpressionError(Exception):
    """Base exception for expression parsing and evaluation errors.

    Attributes:
        expression (str | None): The expression text involved, if known.
    """

    expression: str | None

    def __init__(self, message: str, expression: str | None = None) -> None:
        """Initialize ExpressionError.

        Args:
            message (str): Description of the error.
            expression (str | None): The expression text involved.
        """
        super().__init__(message)
        self.expression = expression

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Detailed string representation including message and expression.
        """
        return f"{self.__class__.__name__}(message={str(self)!r}, expression={self.expression!r})"


class ExpressionSyntaxError(ExpressionError):
    """Raised when expression text is empty or cannot be parsed.

    Attributes:
        errors (list[ParseErrorDict]): Parse error details reported by the parser.
    """

    errors: list[ParseErrorDict]

    def __init__(
        self,
        message: str,
        *,
        expression: str | None = None,
        errors: list[ParseErrorDict] | None = None,
    ) -> None:
        """Initialize ExpressionSyntaxError.

        Args:
            message (str): Description of the syntax error.
            expression (str | None): The text that failed to parse.
            errors (list[ParseErrorDict] | None): Parse error details.
        """
        super().__init__(message, expression=expression)
        self.errors = errors or []

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Detailed string representation including message, expression, and errors.
        """
        return (
            f"{self.__class__.__name__}("
            f"message={str(self)!r}, expression={self.expression!r}, errors={self.errors!r})"
        )


class UnsupportedExpressionError(ExpressionError):
    """Raised when an expression contains a construct the evaluator does not define.

    Attributes:
        node_type (str): Name of the unsupported expression node, e.g. ``"Like"``.
    """

    node_type: str

    def __init__(self, message: str, *, expression: str | None = None, node_type: str = "") -> None:
        """Initialize UnsupportedExpressionError.

        Args:
            message (str): Description of the unsupported construct.
            expression (str | None): The expression text containing it.
            node_type (str): Name of the unsupported expression node.
        """
        super().__init__(message, expression=expression)
        self.node_type = node_type


class EvaluationError(ExpressionError):
    """Raised when an expression fails to evaluate against supplied parameters."""


class MissingParameterError(EvaluationError, KeyError):
    """Raised when an expression references a parameter that was not supplied.

    Attributes:
        parameter (str): Name of the missing parameter.
    """

    parameter: str

    def __init__(self, parameter: str, *, expression: str | None = None) -> None:
        """Initialize MissingParameterError.

        Args:
            parameter (str): Name of the missing parameter.
            expression (str | None): The expression that referenced it.
        """
        super().__init__(f"No parameter {parameter!r} found", expression=expression)
        self.parameter = parameter

    def __str__(self) -> str:
        """Return the plain message (KeyError would otherwise quote it).

        Returns:
            str: The error message.
        """
        return str(self.args[0])


class EvaluationTypeError(EvaluationError, TypeError):
    """Raised when an operator is applied to operands of unsuitable types.

    Attributes:
        operator (str): The operator symbol, e.g. ``">="``.
        operand_types (tuple[str, ...]): Type names of the operands.
    """

    operator: str
    operand_types: tuple[str, ...]

    def __init__(
        self,
        operator: str,
        operand_types: tuple[str, ...],
        *,
        expression: str | None = None,
    ) -> None:
        """Initialize EvaluationTypeError.

        Args:
            operator (str): The operator symbol.
            operand_types (tuple[str, ...]): Type names of the operands.
            expression (str | None): The expression being evaluated.
        """
        super().__init__(
            f"Operator {operator!r} cannot be applied to {', '.join(operand_types)}",
            expression=expression,
        )
        self.operator = operator
        self.operand_types = operand_types
