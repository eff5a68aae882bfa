"""dtree: data-driven decision trees evaluated against named parameters."""

from loguru import logger

from dtree.exceptions import (
    CyclicTreeError,
    DecisionTreeError,
    EvaluationError,
    ExpressionError,
    InvalidConditionError,
    InvalidOutcomeError,
    MissingParameterError,
    NotCompiledError,
    TreeDocumentError,
    UndecidableError,
)
from dtree.logging import PACKAGE_NAME, enable_logging
from dtree.models import Branch, Condition, DecisionStep, DecisionTrace, Node, Outcome, Tree
from dtree.polars_utils import decide_frame

logger.disable(PACKAGE_NAME)  # noqa: RUF067 - Disable logging for the dtree package by default

__all__ = [
    "Branch",
    "Condition",
    "CyclicTreeError",
    "DecisionStep",
    "DecisionTrace",
    "DecisionTreeError",
    "EvaluationError",
    "ExpressionError",
    "InvalidConditionError",
    "InvalidOutcomeError",
    "MissingParameterError",
    "Node",
    "NotCompiledError",
    "Outcome",
    "Tree",
    "TreeDocumentError",
    "UndecidableError",
    "decide_frame",
    "enable_logging",
]
