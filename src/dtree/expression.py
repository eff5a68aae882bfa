"""Expression parsing and evaluation built on SQLglot.

Predicates and outcome values are parsed with SQLglot as standalone SQL
expressions. The evaluator walks the parsed tree directly against a mapping of
parameter names to scalar values; it never generates or executes SQL.

Logical operators are ``AND``, ``OR`` and ``NOT``. In the default dialect
``||`` is string concatenation and ``&&`` is not a logical operator, so predicates written
with C-style operators are rejected. Set ``DTREE_DIALECT=mysql`` to read
``&&`` as ``AND`` and ``||`` as ``OR``.
"""

from __future__ import annotations

import operator
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Final

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, TokenError
from sqlglot.tokens import TokenType

from dtree.exceptions import (
    EvaluationError,
    EvaluationTypeError,
    ExpressionSyntaxError,
    MissingParameterError,
    ParseErrorDict,
    UnsupportedExpressionError,
)
from dtree.settings import get_settings

__all__ = [
    "CompiledExpression",
    "Scalar",
    "compile_expression",
    "evaluate_expression",
    "is_binary_expression",
    "is_literal_expression",
    "is_single_token",
    "parse_expression",
]

type Scalar = bool | int | float | str


# =============================================================================
# Constants
# =============================================================================

_ORDERINGS: Final[dict[type[exp.Expression], tuple[str, Callable[[Any, Any], bool]]]] = {
    exp.GT: (">", operator.gt),
    exp.GTE: (">=", operator.ge),
    exp.LT: ("<", operator.lt),
    exp.LTE: ("<=", operator.le),
}

_ARITHMETIC: Final[dict[type[exp.Expression], tuple[str, Callable[[Any, Any], Any]]]] = {
    exp.Sub: ("-", operator.sub),
    exp.Mul: ("*", operator.mul),
    exp.Div: ("/", operator.truediv),
    exp.Mod: ("%", operator.mod),
}

# Every node type the evaluator knows how to reduce.
_SUPPORTED_NODES: Final[tuple[type[exp.Expression], ...]] = (
    exp.Column,
    exp.Identifier,
    exp.Literal,
    exp.Boolean,
    exp.Paren,
    exp.Neg,
    exp.Not,
    exp.And,
    exp.Or,
    exp.EQ,
    exp.NEQ,
    exp.Add,
    *_ORDERINGS,
    *_ARITHMETIC,
)

# Token types that stand alone as a literal; any other single token must read as a word.
_LITERAL_TOKENS: Final[frozenset[TokenType]] = frozenset({
    TokenType.STRING,
    TokenType.NUMBER,
    TokenType.IDENTIFIER,
    TokenType.VAR,
})


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class CompiledExpression:
    """A parsed expression checked against the supported grammar.

    Attributes:
        text (str): The original expression text.
        expression (exp.Expression): The parsed SQLglot expression tree.
        parameters (frozenset[str]): Names of the parameters the expression reads.

    Examples:
        >>> compiled = compile_expression("salary >= 50000")
        >>> sorted(compiled.parameters)
        ['salary']
        >>> compiled.evaluate({"salary": 60000})
        True
    """

    text: str
    expression: exp.Expression = field(repr=False)
    parameters: frozenset[str]

    def evaluate(self, params: Mapping[str, Any]) -> Scalar:
        """Evaluate this expression against a parameter mapping.

        Args:
            params (Mapping[str, Any]): Parameter names mapped to scalar values.

        Returns:
            Scalar: The value the expression reduces to.
        """
        return evaluate_expression(self, params)


# =============================================================================
# Public Interface
# =============================================================================


def parse_expression(text: str) -> exp.Expression:
    """Parse text as a single SQLglot expression using the configured dialect.

    Args:
        text (str): Expression text, e.g. ``"salary >= 50000"``.

    Returns:
        exp.Expression: The parsed expression tree.

    Raises:
        ExpressionSyntaxError: If the text is empty, whitespace-only, or not a
            valid expression. The exception's ``errors`` attribute carries the
            parser's error details when available.

    Examples:
        >>> isinstance(parse_expression("a == b"), exp.EQ)
        True
    """
    if not text or not text.strip():
        raise ExpressionSyntaxError("Expression cannot be empty or whitespace-only", expression=text, errors=[])

    try:
        expression = sqlglot.parse_one(text, dialect=get_settings().dialect)
    except ParseError as e:
        errors: list[ParseErrorDict] = [
            ParseErrorDict(
                description=error_dict.get("description", ""),
                line=error_dict.get("line", 0),
                col=error_dict.get("col", 0),
                start_context=error_dict.get("start_context", ""),
                highlight=error_dict.get("highlight", ""),
                end_context=error_dict.get("end_context", ""),
            )
            for error_dict in e.errors
        ]
        raise ExpressionSyntaxError(f"Expression syntax error: {e}", expression=text, errors=errors) from e
    except TokenError as e:
        raise ExpressionSyntaxError(
            f"Expression syntax error: {e}",
            expression=text,
            errors=[ParseErrorDict(description=str(e))],
        ) from e

    if expression is None:
        raise ExpressionSyntaxError("No expression was parsed", expression=text, errors=[])
    return expression


def is_binary_expression(expression: exp.Expression) -> bool:
    """Return True if the expression is two operands joined by an operator.

    Parenthesized, unary and atomic expressions are not binary.

    Args:
        expression (exp.Expression): A parsed expression.

    Returns:
        bool: Whether the top-level node is a binary operator.
    """
    return isinstance(expression, exp.Binary)


def is_single_token(text: str) -> bool:
    """Return True if the text tokenizes to exactly one literal or word.

    Words SQLglot reserves as keywords (``null``, ``any``, ``current_date``)
    count as words here, so they can serve as outcome values even though they
    do not parse as identifiers.

    Args:
        text (str): Candidate outcome text.

    Returns:
        bool: Whether the text is one string, number, identifier or keyword token.

    Examples:
        >>> is_single_token("null")
        True
        >>> is_single_token("1 + 1")
        False
    """
    try:
        tokens = sqlglot.tokenize(text, dialect=get_settings().dialect)
    except TokenError:
        return False
    if len(tokens) != 1 or tokens[0].comments:
        return False
    token = tokens[0]
    return token.token_type in _LITERAL_TOKENS or token.text.isidentifier()


def is_literal_expression(expression: exp.Expression) -> bool:
    """Return True if the expression is a single literal or identifier token.

    Accepts string and numeric literals, ``TRUE``/``FALSE``, bare unqualified
    identifiers (quoted or not), and negated numeric literals such as ``-5``.

    Args:
        expression (exp.Expression): A parsed expression.

    Returns:
        bool: Whether the expression is atomic.

    Examples:
        >>> is_literal_expression(parse_expression("decline"))
        True
        >>> is_literal_expression(parse_expression("1 + 1"))
        False
    """
    if isinstance(expression, exp.Neg):
        operand = expression.this
        return isinstance(operand, exp.Literal) and not operand.is_string
    if isinstance(expression, (exp.Literal, exp.Boolean)):
        return True
    if isinstance(expression, exp.Column):
        return not expression.table and isinstance(expression.this, exp.Identifier)
    return False


def compile_expression(text: str) -> CompiledExpression:
    """Parse text and check every node against the supported grammar.

    Args:
        text (str): Expression text.

    Returns:
        CompiledExpression: The executable expression.

    Raises:
        ExpressionSyntaxError: If the text does not parse.
        UnsupportedExpressionError: If the expression uses an operator, function
            or construct the evaluator does not define.
    """
    expression = parse_expression(text)
    for node in expression.walk():
        if not isinstance(node, _SUPPORTED_NODES):
            node_type = type(node).__name__
            raise UnsupportedExpressionError(
                f"Unsupported expression {node_type!r} in {text!r}",
                expression=text,
                node_type=node_type,
            )
        if isinstance(node, exp.Column) and node.table:
            raise UnsupportedExpressionError(
                f"Qualified parameter {node.sql()!r} in {text!r}",
                expression=text,
                node_type="Column",
            )
    parameters = frozenset(column.name for column in expression.find_all(exp.Column))
    return CompiledExpression(text=text, expression=expression, parameters=parameters)


def evaluate_expression(compiled: CompiledExpression, params: Mapping[str, Any]) -> Scalar:
    """Evaluate a compiled expression against a parameter mapping.

    Booleans are never treated as numbers, equality between different scalar
    kinds is False, and ``AND``/``OR`` short-circuit so parameters on the
    untaken side need not be supplied.

    Args:
        compiled (CompiledExpression): The expression to evaluate.
        params (Mapping[str, Any]): Parameter names mapped to scalar values.
            A parameter mapped to None counts as missing.

    Returns:
        Scalar: The value the expression reduces to.

    Raises:
        MissingParameterError: If a referenced parameter is absent or None.
        EvaluationTypeError: If an operator is applied to unsuitable operands.
        EvaluationError: On division or modulo by zero.

    Examples:
        >>> evaluate_expression(compile_expression("free_coffee == true"), {"free_coffee": True})
        True
    """
    return _Evaluator(compiled.text, params).visit(compiled.expression)


# =============================================================================
# Private helpers
# =============================================================================


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _kind(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if _is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    return type(value).__name__


def _literal_value(literal: exp.Literal) -> Scalar:
    text = literal.this
    if literal.is_string:
        return text
    try:
        return int(text)
    except ValueError:
        return float(text)


def _values_equal(left: Any, right: Any) -> bool:
    if _kind(left) != _kind(right):
        return False
    return left == right


class _Evaluator:
    """Reduces a SQLglot expression tree to a scalar for one parameter set."""

    def __init__(self, text: str, params: Mapping[str, Any]) -> None:
        self._text = text
        self._params = params

    def visit(self, node: exp.Expression) -> Scalar:
        match node:
            case exp.Paren():
                return self.visit(node.this)
            case exp.Column():
                return self._parameter(node.name)
            case exp.Literal():
                return _literal_value(node)
            case exp.Boolean():
                return bool(node.this)
            case exp.Neg():
                value = self.visit(node.this)
                if not _is_number(value):
                    raise EvaluationTypeError("-", (_kind(value),), expression=self._text)
                return -value
            case exp.Not():
                return not self._boolean("NOT", self.visit(node.this))
            case exp.And():
                # Short-circuit: the right side is only read when needed
                return self._boolean("AND", self.visit(node.left)) and self._boolean("AND", self.visit(node.right))
            case exp.Or():
                return self._boolean("OR", self.visit(node.left)) or self._boolean("OR", self.visit(node.right))
            case exp.EQ():
                return _values_equal(self.visit(node.left), self.visit(node.right))
            case exp.NEQ():
                return not _values_equal(self.visit(node.left), self.visit(node.right))
            case exp.Add():
                return self._add(self.visit(node.left), self.visit(node.right))
        node_class = type(node)
        if node_class in _ORDERINGS:
            symbol, compare = _ORDERINGS[node_class]
            left, right = self.visit(node.left), self.visit(node.right)
            if not (_is_number(left) and _is_number(right)) and not (isinstance(left, str) and isinstance(right, str)):
                raise EvaluationTypeError(symbol, (_kind(left), _kind(right)), expression=self._text)
            return compare(left, right)
        if node_class in _ARITHMETIC:
            symbol, apply = _ARITHMETIC[node_class]
            left, right = self.visit(node.left), self.visit(node.right)
            if not (_is_number(left) and _is_number(right)):
                raise EvaluationTypeError(symbol, (_kind(left), _kind(right)), expression=self._text)
            if symbol in {"/", "%"} and right == 0:
                raise EvaluationError(f"Division by zero in {self._text!r}", expression=self._text)
            return apply(left, right)
        raise UnsupportedExpressionError(
            f"Unsupported expression {node_class.__name__!r} in {self._text!r}",
            expression=self._text,
            node_type=node_class.__name__,
        )

    def _parameter(self, name: str) -> Scalar:
        value = self._params.get(name)
        if value is None:
            raise MissingParameterError(name, expression=self._text)
        return value

    def _boolean(self, symbol: str, value: Any) -> bool:
        if not isinstance(value, bool):
            raise EvaluationTypeError(symbol, (_kind(value),), expression=self._text)
        return value

    def _add(self, left: Any, right: Any) -> Scalar:
        if (_is_number(left) and _is_number(right)) or (isinstance(left, str) and isinstance(right, str)):
            return left + right
        raise EvaluationTypeError("+", (_kind(left), _kind(right)), expression=self._text)
