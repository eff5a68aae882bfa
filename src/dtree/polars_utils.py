"""Utility functions for running decisions over Polars DataFrames."""

from __future__ import annotations

from typing import Literal

import polars as pl
from loguru import logger

from dtree.exceptions import EvaluationError, UndecidableError
from dtree.models import Tree

__all__ = ["decide_frame"]


def decide_frame(
    tree: Tree,
    frame: pl.DataFrame,
    *,
    on_error: Literal["raise", "null"] = "raise",
    name: str = "outcome",
) -> pl.Series:
    """Decide every row of a DataFrame, using its columns as parameters.

    Null cells count as absent parameters, so a row only needs values for the
    columns read along its own path through the tree.

    Args:
        tree (Tree): A compiled decision tree.
        frame (pl.DataFrame): One row per decision; column names are parameter names.
        on_error (Literal["raise", "null"]): ``"raise"`` (default) propagates the
            first undecidable or evaluation failure. ``"null"`` records a null
            for that row and continues.
        name (str): Name of the returned Series. Defaults to ``"outcome"``.

    Returns:
        pl.Series: One outcome per row, in row order. When outcomes mix types
            (e.g. strings and integers) the Series has dtype ``pl.Object`` so
            every value matches what ``Tree.decide`` returns.

    Raises:
        UndecidableError: If a row is undecidable and ``on_error="raise"``.
        EvaluationError: If a predicate fails on a row and ``on_error="raise"``.

    Examples:
        >>> frame = pl.DataFrame({"salary": [40000, 60000]})
        >>> decide_frame(tree, frame).to_list()  # doctest: +SKIP
        ['decline', 'accept']
    """
    outcomes = []
    failed_rows = 0
    for row in frame.iter_rows(named=True):
        try:
            outcomes.append(tree.decide(row))
        except (UndecidableError, EvaluationError):
            if on_error == "raise":
                raise
            outcomes.append(None)
            failed_rows += 1
    if failed_rows:
        logger.warning("Rows without a decision set to null", failed_rows=failed_rows, total_rows=frame.height)
    try:
        return pl.Series(name=name, values=outcomes, strict=True)
    except (TypeError, pl.exceptions.PolarsError):
        logger.debug("Outcomes have mixed types; returning an Object series", series=name)
        return pl.Series(name=name, values=outcomes, dtype=pl.Object)
