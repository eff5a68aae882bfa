"""Tests for decoding and encoding tree documents."""

from __future__ import annotations

import json

import pytest
from pytest_check import check

from dtree.exceptions import CyclicTreeError, InvalidConditionError, TreeDocumentError
from dtree.models import Branch, Condition, Outcome, Tree


class TestRoundTrip:
    """Encoding then decoding a tree should preserve its document and its decisions."""

    def test_document_round_trip(self, offer_tree: Tree, offer_document: dict) -> None:
        """The built offer tree should encode to exactly the offer document."""
        with check:
            assert offer_tree.to_document() == offer_document

    def test_json_round_trip_preserves_document(self, offer_tree: Tree) -> None:
        # Act
        decoded = Tree.from_json(offer_tree.to_json())

        # Assert
        with check:
            assert decoded.to_document() == offer_tree.to_document()

    def test_json_round_trip_preserves_decisions(self, offer_tree: Tree) -> None:
        decoded = Tree.from_json(offer_tree.to_json(indent=2))
        params = {"salary": 50000, "commutation_hour": 1, "free_coffee": True}

        with check:
            assert decoded.decide(params) == offer_tree.decide(params) == "accept"

    def test_json_accepts_bytes(self, offer_document: dict) -> None:
        tree = Tree.from_json(json.dumps(offer_document).encode())

        with check:
            assert tree.decide({"salary": 1}) == "decline"

    def test_branch_value_types_survive(self) -> None:
        """Integer and float branch values should keep their JSON types."""
        condition = Condition.from_predicate("x + 0")
        condition.add_branch(1, Outcome.from_value("whole"))
        condition.add_branch(2.5, Outcome.from_value("fraction"))
        tree = Tree(root=condition)

        decoded = Tree.from_json(tree.to_json())

        values = [branch.value for branch in decoded.root.condition.branches]  # type: ignore[union-attr]
        with check:
            assert values == [1, 2.5]
        with check:
            assert [type(value) for value in values] == [int, float]
        with check:
            assert decoded.decide({"x": 2.5}) == "fraction"

    @pytest.mark.parametrize("word", ["null", "any", "current_date"], ids=["null", "any", "current_date"])
    def test_keyword_outcomes_round_trip(self, word: str) -> None:
        """Outcome words that SQL reserves should encode and decode as plain strings.

        Args:
            word: A one-word outcome that is also a SQL keyword.
        """
        condition = Condition.from_predicate("a > 1")
        condition.add_branch(True, Outcome.from_value(word))
        tree = Tree(root=condition)

        decoded = Tree.from_json(tree.to_json())

        with check:
            assert decoded.decide({"a": 2}) == word

    def test_null_next_node_round_trips(self) -> None:
        condition = Condition.from_predicate("a > 1")
        condition.add_branch(True, None)
        tree = Tree(root=condition)

        document = tree.to_document()

        with check:
            assert document["root"]["condition"]["branches"] == [{"value": True, "next_node": None}]
        with check:
            assert Tree.from_document(document).to_document() == document


class TestDecoding:
    """Decoding documents in the supported shapes."""

    @pytest.mark.parametrize("document", [{"root": None}, {}, {"root": {}}], ids=["null", "absent", "empty"])
    def test_empty_roots(self, document: dict) -> None:
        """A null, absent or empty root should decode to a tree with no root.

        Args:
            document: A document without a root node.
        """
        tree = Tree.from_document(document)

        with check:
            assert tree.root is None
        with check:
            assert tree.to_document() == {"root": None}

    def test_empty_next_node_decodes_to_none(self) -> None:
        document = {
            "root": {"condition": {"predicate": "a > 1", "branches": [{"value": True, "next_node": {}}]}},
        }

        tree = Tree.from_document(document)

        branch = tree.root.condition.branches[0]  # type: ignore[union-attr]
        with check:
            assert branch.next_node is None

    def test_outcome_root(self) -> None:
        tree = Tree.from_document({"root": {"outcome": {"value": "accept"}}})

        with check:
            assert tree.decide({}) == "accept"

    def test_decoded_tree_is_compiled(self, offer_document: dict) -> None:
        tree = Tree.from_document(offer_document)

        with check:
            assert tree.root.condition.is_compiled  # type: ignore[union-attr]

    def test_model_validate_does_not_compile(self, offer_document: dict) -> None:
        tree = Tree.model_validate(offer_document)

        with check:
            assert not tree.root.condition.is_compiled  # type: ignore[union-attr]


class TestMalformedDocuments:
    """Documents that cannot describe a valid tree."""

    @pytest.mark.parametrize(
        "document",
        [
            {"root": {"condition": {"branches": []}}},
            {"root": {"outcome": {"value": "a", "extra": 1}, "condition": {"predicate": "a > 1", "branches": []}}},
            {"root": {"outcome": {}}},
            {"root": {"outcome": {"value": "1+1"}}},
            {"root": {"condition": {"predicate": "a > 1", "branches": [{"next_node": None}]}}},
            {"root": "accept"},
        ],
        ids=[
            "condition_without_predicate",
            "node_with_both_payloads",
            "outcome_without_value",
            "outcome_expression",
            "branch_without_value",
            "root_not_an_object",
        ],
    )
    def test_structural_errors_raise_tree_document_error(self, document: dict) -> None:
        """Structural problems should be reported as TreeDocumentError with details.

        Args:
            document: A malformed tree document.
        """
        with pytest.raises(TreeDocumentError) as exc_info:
            Tree.from_document(document)

        with check:
            assert len(exc_info.value.errors) >= 1
        with check:
            assert exc_info.value.format_details() != ""

    def test_error_details_name_the_location(self) -> None:
        with pytest.raises(TreeDocumentError) as exc_info:
            Tree.from_document({"root": {"outcome": {"value": "1+1"}}})

        details = exc_info.value.format_details()
        with check:
            assert "root" in details
        with check:
            assert "Invalid outcome" in details

    @pytest.mark.parametrize("data", ["not json", '{"root": ', "[]"], ids=["text", "truncated", "array"])
    def test_invalid_json_raises_tree_document_error(self, data: str) -> None:
        """Text that is not a JSON tree document should raise TreeDocumentError.

        Args:
            data: Invalid JSON text.
        """
        with pytest.raises(TreeDocumentError):
            Tree.from_json(data)

    def test_invalid_predicate_raises_invalid_condition(self) -> None:
        """A well-formed document with a non-binary predicate fails when compiled."""
        document = {"root": {"condition": {"predicate": "approved", "branches": []}}}

        with pytest.raises(InvalidConditionError):
            Tree.from_document(document)


class TestEncodingSharedStructure:
    """Encoding trees whose conditions are shared."""

    def test_shared_subtree_is_written_at_each_position(self) -> None:
        shared = Condition.from_predicate("b > 1")
        shared.add_branch(True, Outcome.from_value("yes"))
        root = Condition.from_predicate("a > 1")
        root.add_branch(True, shared)
        root.add_branch(False, shared)

        document = Tree(root=root).to_document()

        branches = document["root"]["condition"]["branches"]
        with check:
            assert branches[0]["next_node"] == branches[1]["next_node"]

    def test_self_referencing_condition_is_rejected(self) -> None:
        """Cycles can only be built in memory; initializing such a tree fails."""
        condition = Condition(predicate="a > 1")
        condition.branches.append(Branch(value=True, next_node=condition))

        with pytest.raises(CyclicTreeError):
            Tree(root=condition).initialize()
