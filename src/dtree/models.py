"""Decision tree models: outcomes, conditions, branches, nodes and trees.

A tree is a graph of `Node` objects, each holding exactly one `Condition`
(a decision point) or `Outcome` (a terminal value). Conditions branch on the
value their predicate evaluates to.

Trees have a two-phase lifecycle. The persisted fields (predicate text, branch
lists and outcome values) are plain pydantic data and round-trip through JSON.
The executable state of a condition (its compiled predicate and branch lookup
table) is derived, held in private attributes, and rebuilt by
`Tree.initialize()`. Trees built with `Condition.from_predicate` are compiled
as they are built; trees decoded with `Tree.model_validate` are not, and must be
initialized before `decide` is called. `Tree.from_document` and
`Tree.from_json` decode and initialize in one step.

Examples:
    >>> decline = Outcome.from_value("decline")
    >>> accept = Outcome.from_value("accept")
    >>> salary = Condition.from_predicate("salary >= 50000")
    >>> salary.add_branch(True, accept)
    >>> salary.add_branch(False, decline)
    >>> tree = Tree(root=salary)
    >>> tree.decide({"salary": 60000})
    'accept'
"""

from __future__ import annotations

import math
from collections import deque
from collections.abc import Mapping
from graphlib import CycleError, TopologicalSorter
from typing import Any, Self

from loguru import logger
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    SerializerFunctionWrapHandler,
    ValidationError,
    field_validator,
    model_serializer,
    model_validator,
)

from dtree.exceptions import (
    CyclicTreeError,
    EvaluationError,
    ExpressionError,
    ExpressionSyntaxError,
    InvalidConditionError,
    InvalidOutcomeError,
    NotCompiledError,
    TreeDocumentError,
    UndecidableError,
)
from dtree.expression import (
    CompiledExpression,
    Scalar,
    compile_expression,
    is_binary_expression,
    is_literal_expression,
    is_single_token,
    parse_expression,
)
from dtree.logging import DECISION_LEVEL

__all__ = [
    "Branch",
    "BranchKey",
    "Condition",
    "DecisionStep",
    "DecisionTrace",
    "Node",
    "Outcome",
    "Tree",
    "branch_key",
]

# Branch values are keyed by scalar kind so True never matches 1 and 1 matches 1.0.
type BranchKey = tuple[str, Scalar]


def branch_key(value: Scalar) -> BranchKey:
    """Return the lookup key used for a branch value.

    Booleans, numbers and strings live in separate key spaces. Integers and
    floats share the numeric space, so ``1`` and ``1.0`` select the same branch.

    Args:
        value (Scalar): A branch value or an evaluated predicate value.

    Returns:
        BranchKey: A ``(kind, value)`` tuple.

    Examples:
        >>> branch_key(True) == branch_key(1)
        False
        >>> branch_key(1) == branch_key(1.0)
        True
    """
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, (int, float)):
        return ("number", value)
    return (type(value).__name__, value)


def _coerce_node(value: Any) -> Any:
    """Accept a bare Condition/Outcome as a Node and an empty mapping as no node."""
    if isinstance(value, (Condition, Outcome)):
        return Node.of(value)
    if isinstance(value, Mapping) and not value:
        return None
    return value


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------


class Outcome(BaseModel):
    """A terminal decision value.

    The value must read as one literal or identifier token, so outcome text can
    never be mistaken for a condition.

    Attributes:
        value (Scalar): The value returned when a decision reaches this outcome.

    Examples:
        >>> Outcome.from_value("decline").value
        'decline'
        >>> Outcome.from_value("1+1")
        Traceback (most recent call last):
        ...
        dtree.exceptions.InvalidOutcomeError: Invalid outcome: '1+1' (not a single literal or identifier)
    """

    model_config = ConfigDict(frozen=True)

    value: Scalar = Field(description="Literal value returned when a decision reaches this outcome.")

    @field_validator("value", mode="after")
    @classmethod
    def _validate_single_token(cls, value: Scalar) -> Scalar:
        """Validate that the value is a single literal or identifier token.

        Args:
            value (Scalar): The candidate outcome value.

        Returns:
            Scalar: The value, unchanged.

        Raises:
            InvalidOutcomeError: If ``str(value)`` does not parse to one token.
        """
        _check_outcome_value(value)
        return value

    @classmethod
    def from_value(cls, value: Any) -> Outcome:
        """Create a validated outcome.

        Args:
            value (Any): An integer, float, boolean or string literal. Strings may
                be bare (``decline``) or quoted (``'decline'``).

        Returns:
            Outcome: The new outcome.

        Raises:
            InvalidOutcomeError: If the value is empty, malformed, compound, or
                contains an operator.
        """
        _check_outcome_value(value)
        try:
            return cls(value=value)
        except ValidationError as e:
            raise InvalidOutcomeError(value, reason="unsupported value type") from e


def _check_outcome_value(value: Any) -> None:
    # inf and nan have no JSON form
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidOutcomeError(value, reason="not a finite number")
    if is_single_token(str(value)):
        return
    try:
        expression = parse_expression(str(value))
    except ExpressionSyntaxError as e:
        raise InvalidOutcomeError(value, reason="does not parse") from e
    if not is_literal_expression(expression):
        raise InvalidOutcomeError(value, reason="not a single literal or identifier")


def _compile_predicate(predicate: str) -> CompiledExpression:
    """Compile predicate text, enforcing the binary-expression rule.

    A bare identifier or literal is reserved for outcomes: ``approved`` could
    mean ``approved == true`` or the string outcome ``approved``.
    """
    try:
        expression = parse_expression(predicate)
    except ExpressionSyntaxError as e:
        raise InvalidConditionError(predicate, "does not parse", errors=e.errors) from e
    if not is_binary_expression(expression):
        raise InvalidConditionError(predicate, "not a binary expression")
    try:
        return compile_expression(predicate)
    except ExpressionError as e:
        raise InvalidConditionError(predicate, str(e)) from e


# ---------------------------------------------------------------------------
# Branch, Condition, Node
# ---------------------------------------------------------------------------


class Branch(BaseModel):
    """One persisted entry of a condition's branch table.

    Attributes:
        value (Scalar): The predicate value that selects this branch.
        next_node (Node | None): The node to continue at, or None for a dead end.
    """

    model_config = ConfigDict(frozen=True)

    value: Scalar = Field(description="Predicate value that selects this branch.")
    next_node: Node | None = Field(default=None, description="Node reached when this branch is taken.")

    @field_validator("next_node", mode="before")
    @classmethod
    def _coerce_next_node(cls, value: Any) -> Any:
        return _coerce_node(value)


class Condition(BaseModel):
    """A decision point that branches on the value of a predicate.

    Attributes:
        predicate (str): Binary expression text, e.g. ``"salary >= 50000"``.
        branches (list[Branch]): Branches in insertion order. When two branches
            share a value the later one wins.

    Examples:
        >>> condition = Condition.from_predicate("commutation_hour >= 2")
        >>> condition.add_branch(True, Outcome.from_value("decline"))
        >>> condition.next({"commutation_hour": 3}).outcome.value
        'decline'
    """

    predicate: str = Field(description="Binary expression evaluated against the decision parameters.")
    branches: list[Branch] = Field(default_factory=list, description="Branches keyed by predicate value.")

    _compiled: CompiledExpression | None = PrivateAttr(default=None)
    _branch_table: dict[BranchKey, Node | None] | None = PrivateAttr(default=None)

    @classmethod
    def from_predicate(cls, predicate: str) -> Condition:
        """Create a compiled condition with no branches.

        Args:
            predicate (str): Binary expression text.

        Returns:
            Condition: The new, compiled condition.

        Raises:
            InvalidConditionError: If the predicate does not parse, is not a
                binary expression, or uses an unsupported construct.
        """
        compiled = _compile_predicate(predicate)
        condition = cls(predicate=predicate)
        condition._compiled = compiled
        condition._branch_table = {}
        return condition

    @property
    def is_compiled(self) -> bool:
        """Whether the predicate and branch table are ready for evaluation."""
        return self._compiled is not None and self._branch_table is not None

    @property
    def parameters(self) -> frozenset[str]:
        """Parameter names read by the compiled predicate.

        Raises:
            NotCompiledError: If the condition has not been compiled.
        """
        if self._compiled is None:
            raise NotCompiledError(self.predicate)
        return self._compiled.parameters

    def add_branch(self, value: Scalar, next_node: Node | Condition | Outcome | None) -> None:
        """Add a branch, replacing any earlier branch for the same value.

        The value is not checked against what the predicate can produce; a
        branch that can never match simply never fires.

        Args:
            value (Scalar): Predicate value that selects the branch.
            next_node (Node | Condition | Outcome | None): Where the branch leads.
        """
        branch = Branch(value=value, next_node=next_node)
        if self._branch_table is not None:
            self._branch_table[branch_key(branch.value)] = branch.next_node
        self.branches.append(branch)

    def compile(self) -> None:
        """Rebuild the compiled predicate and branch table from persisted fields.

        Idempotent. Later branches overwrite earlier ones with the same value.

        Raises:
            InvalidConditionError: If the persisted predicate is not valid.
        """
        compiled = _compile_predicate(self.predicate)
        branch_table: dict[BranchKey, Node | None] = {}
        for branch in self.branches:
            branch_table[branch_key(branch.value)] = branch.next_node
        self._compiled = compiled
        self._branch_table = branch_table
        logger.debug("Condition compiled", predicate=self.predicate, branches=len(branch_table))

    def evaluate(self, params: Mapping[str, Any]) -> Scalar:
        """Evaluate the predicate against a parameter mapping.

        Args:
            params (Mapping[str, Any]): Parameter names mapped to scalar values.

        Returns:
            Scalar: The predicate value.

        Raises:
            NotCompiledError: If the condition has not been compiled.
            EvaluationError: If evaluation fails; propagated unwrapped.
        """
        if self._compiled is None:
            raise NotCompiledError(self.predicate)
        return self._compiled.evaluate(params)

    def next(self, params: Mapping[str, Any]) -> Node | None:
        """Evaluate the predicate and return the node its branch leads to.

        Args:
            params (Mapping[str, Any]): Parameter names mapped to scalar values.

        Returns:
            Node | None: The selected node; None if the branch has no next node.

        Raises:
            NotCompiledError: If the condition has not been compiled.
            EvaluationError: If evaluation fails; propagated unwrapped.
            UndecidableError: If no branch matches the evaluated value.
        """
        return self._select(self.evaluate(params))

    def _select(self, value: Scalar) -> Node | None:
        if self._branch_table is None:
            raise NotCompiledError(self.predicate)
        try:
            return self._branch_table[branch_key(value)]
        except (KeyError, TypeError):
            raise UndecidableError(
                f"No branch of {self.predicate!r} matches value {value!r}",
                predicate=self.predicate,
                value=value,
            ) from None


class Node(BaseModel):
    """One position in a tree: exactly one of a condition or an outcome.

    Attributes:
        condition (Condition | None): Set when this node is a decision point.
        outcome (Outcome | None): Set when this node is terminal.

    Examples:
        >>> Node.of(Outcome.from_value("accept")).is_outcome
        True
    """

    model_config = ConfigDict(frozen=True)

    condition: Condition | None = Field(default=None, description="Decision point held by this node.")
    outcome: Outcome | None = Field(default=None, description="Terminal value held by this node.")

    @model_validator(mode="after")
    def _validate_exactly_one_payload(self) -> Self:
        """Validate that exactly one of condition and outcome is set.

        Returns:
            Self: The validated model instance.

        Raises:
            ValueError: If both or neither payload is set.
        """
        if (self.condition is None) == (self.outcome is None):
            raise ValueError("Node must hold exactly one of 'condition' or 'outcome'")
        return self

    @model_serializer(mode="wrap")
    def _serialize_payload_only(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        return {key: value for key, value in data.items() if value is not None}

    @classmethod
    def of(cls, payload: Condition | Outcome) -> Node:
        """Wrap a condition or outcome in a node.

        Args:
            payload (Condition | Outcome): The node payload.

        Returns:
            Node: The new node.
        """
        if isinstance(payload, Condition):
            return cls(condition=payload)
        return cls(outcome=payload)

    @property
    def is_condition(self) -> bool:
        """Whether this node is a decision point."""
        return self.condition is not None

    @property
    def is_outcome(self) -> bool:
        """Whether this node is terminal."""
        return self.outcome is not None


# ---------------------------------------------------------------------------
# Decision traces
# ---------------------------------------------------------------------------


class DecisionStep(BaseModel):
    """One condition visited during a decision.

    Attributes:
        predicate (str): The condition's predicate text.
        value (Scalar): What the predicate evaluated to.
    """

    model_config = ConfigDict(frozen=True)

    predicate: str = Field(description="Predicate text of the visited condition.")
    value: Scalar = Field(description="Value the predicate evaluated to.")


class DecisionTrace(BaseModel):
    """The outcome of a decision and the path taken to reach it.

    Attributes:
        outcome (Scalar): The decided outcome value.
        steps (list[DecisionStep]): Conditions visited, root first. Empty when
            the root is an outcome.
    """

    model_config = ConfigDict(frozen=True)

    outcome: Scalar = Field(description="The decided outcome value.")
    steps: list[DecisionStep] = Field(default_factory=list, description="Conditions visited, root first.")


# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------


class Tree(BaseModel):
    """A decision tree and the decision walk over it.

    Attributes:
        root (Node | None): The root node. A tree without a root is valid but
            every decision on it is undecidable.

    Note:
        ``decide`` only reads compiled state, so a compiled tree may be shared
        across threads. ``add_branch`` and ``initialize`` must not run
        concurrently with decisions on the same tree.
    """

    root: Node | None = Field(default=None, description="Root node of the tree.")

    @field_validator("root", mode="before")
    @classmethod
    def _coerce_root(cls, value: Any) -> Any:
        return _coerce_node(value)

    # -- Serialization --------------------------------------------------------

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> Tree:
        """Decode a tree document and compile it.

        Args:
            document (Mapping[str, Any]): A decoded JSON document of the form
                ``{"root": Node | null}``.

        Returns:
            Tree: The compiled tree.

        Raises:
            TreeDocumentError: If the document is structurally malformed.
            InvalidConditionError: If a predicate fails to compile.
            CyclicTreeError: If a condition is reachable from itself.
        """
        try:
            tree = cls.model_validate(document)
        except ValidationError as e:
            raise _document_error(e) from e
        tree.initialize()
        return tree

    @classmethod
    def from_json(cls, data: str | bytes) -> Tree:
        """Decode a JSON tree document and compile it.

        Args:
            data (str | bytes): JSON text of the form ``{"root": Node | null}``.

        Returns:
            Tree: The compiled tree.

        Raises:
            TreeDocumentError: If the text is not JSON or the document is malformed.
            InvalidConditionError: If a predicate fails to compile.
            CyclicTreeError: If a condition is reachable from itself.
        """
        try:
            tree = cls.model_validate_json(data)
        except ValidationError as e:
            raise _document_error(e) from e
        tree.initialize()
        return tree

    def to_document(self) -> dict[str, Any]:
        """Encode the persisted fields as a JSON-compatible document.

        Returns:
            dict[str, Any]: The tree document.
        """
        return self.model_dump(mode="json")

    def to_json(self, *, indent: int | None = None) -> str:
        """Encode the persisted fields as JSON text.

        Args:
            indent (int | None): Indentation for pretty printing.

        Returns:
            str: The JSON tree document.
        """
        return self.model_dump_json(indent=indent)

    # -- Compilation ----------------------------------------------------------

    def initialize(self) -> None:
        """Compile every condition reachable from the root.

        Conditions are collected breadth-first, each distinct condition once,
        checked for cycles, then compiled in that order. The first failure is
        raised; conditions compiled before it stay compiled.

        Raises:
            CyclicTreeError: If a condition is reachable from itself.
            InvalidConditionError: If a predicate fails to compile.
        """
        if self.root is None or self.root.condition is None:
            return

        conditions = _collect_conditions(self.root.condition)
        for condition in conditions:
            try:
                condition.compile()
            except InvalidConditionError as e:
                logger.warning("Tree initialization failed", predicate=condition.predicate, reason=str(e))
                raise
        logger.info("Tree initialized", conditions=len(conditions))

    # -- Decisions ------------------------------------------------------------

    def decide(self, params: Mapping[str, Any]) -> Scalar:
        """Walk from the root to an outcome for the given parameters.

        Args:
            params (Mapping[str, Any]): Parameter names mapped to scalar values.
                Only parameters read along the taken path are required.

        Returns:
            Scalar: The outcome value.

        Raises:
            UndecidableError: If the tree is empty, a branch is missing for an
                evaluated value, or a branch leads nowhere.
            EvaluationError: If a predicate fails to evaluate; propagated unwrapped.
            NotCompiledError: If a visited condition has not been compiled.
            CyclicTreeError: If the walk revisits a condition.
        """
        return self._walk(params).outcome

    def explain(self, params: Mapping[str, Any]) -> DecisionTrace:
        """Decide and report the path taken.

        Args:
            params (Mapping[str, Any]): Parameter names mapped to scalar values.

        Returns:
            DecisionTrace: The outcome and every condition visited.

        Raises:
            UndecidableError: As for ``decide``.
            EvaluationError: As for ``decide``.
            NotCompiledError: As for ``decide``.
            CyclicTreeError: As for ``decide``.
        """
        return self._walk(params)

    def _walk(self, params: Mapping[str, Any]) -> DecisionTrace:
        node = self.root
        steps: list[DecisionStep] = []
        visited: set[int] = set()
        while node is not None and node.condition is not None:
            condition = node.condition
            if id(condition) in visited:
                raise CyclicTreeError([step.predicate for step in steps] + [condition.predicate])
            visited.add(id(condition))
            try:
                value = condition.evaluate(params)
                steps.append(DecisionStep(predicate=condition.predicate, value=value))
                node = condition._select(value)
            except (EvaluationError, UndecidableError) as e:
                logger.warning("Decision failed", predicate=condition.predicate, error=repr(e))
                raise
            logger.debug("Condition evaluated", predicate=condition.predicate, value=value)

        if node is None or node.outcome is None:
            last_predicate = steps[-1].predicate if steps else None
            logger.warning("Decision undecidable", predicate=last_predicate)
            raise UndecidableError("Decision reached no outcome", predicate=last_predicate)

        logger.log(DECISION_LEVEL, "Decision reached", outcome=node.outcome.value, depth=len(steps))
        return DecisionTrace(outcome=node.outcome.value, steps=steps)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _collect_conditions(root: Condition) -> list[Condition]:
    """Collect every condition reachable from root, breadth-first, without repeats.

    Raises:
        CyclicTreeError: If any collected condition is reachable from itself.
    """
    conditions: dict[int, Condition] = {id(root): root}
    graph: dict[int, set[int]] = {}
    queue = deque([root])
    while queue:
        head = queue.popleft()
        children: set[int] = set()
        for branch in head.branches:
            if branch.next_node is None or branch.next_node.condition is None:
                continue
            child = branch.next_node.condition
            children.add(id(child))
            if id(child) not in conditions:
                conditions[id(child)] = child
                queue.append(child)
        graph[id(head)] = children

    try:
        TopologicalSorter(graph).prepare()
    except CycleError as e:
        cycle = [conditions[condition_id].predicate for condition_id in e.args[1]]
        logger.warning("Tree initialization failed", reason="cycle", cycle=cycle)
        raise CyclicTreeError(cycle) from e

    return list(conditions.values())


def _document_error(error: ValidationError) -> TreeDocumentError:
    errors = [{"loc": detail["loc"], "msg": detail["msg"], "type": detail["type"]} for detail in error.errors()]
    logger.warning("Tree document rejected", error_count=len(errors))
    return TreeDocumentError(f"Invalid tree document: {error.error_count()} error(s)", errors=errors)


Branch.model_rebuild()
Condition.model_rebuild()
Node.model_rebuild()
Tree.model_rebuild()
