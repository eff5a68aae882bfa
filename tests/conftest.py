"""Shared pytest fixtures for dtree tests.

The offer tree used throughout the suite:

                 salary >= 50000
                /               \
             true               false
              /                    \
    commutation_hour >= 2        decline
        /             \
     false            true
      /                 \
  free_coffee == true   decline
     /          \
   true        false
    /            \
  accept       decline
"""

from __future__ import annotations

import copy
from collections.abc import Iterator

import pytest

from dtree.models import Condition, Outcome, Tree
from dtree.settings import get_settings


def build_offer_tree() -> Tree:
    """Build the offer tree with the imperative builder API.

    Returns:
        Tree: A compiled offer tree.
    """
    decline = Outcome.from_value("decline")
    accept = Outcome.from_value("accept")

    salary = Condition.from_predicate("salary >= 50000")
    commutation_hour = Condition.from_predicate("commutation_hour >= 2")
    free_coffee = Condition.from_predicate("free_coffee == true")

    salary.add_branch(True, commutation_hour)
    salary.add_branch(False, decline)
    commutation_hour.add_branch(True, decline)
    commutation_hour.add_branch(False, free_coffee)
    free_coffee.add_branch(True, accept)
    free_coffee.add_branch(False, decline)

    return Tree(root=salary)


OFFER_TREE_DOCUMENT = {
    "root": {
        "condition": {
            "predicate": "salary >= 50000",
            "branches": [
                {
                    "value": True,
                    "next_node": {
                        "condition": {
                            "predicate": "commutation_hour >= 2",
                            "branches": [
                                {"value": True, "next_node": {"outcome": {"value": "decline"}}},
                                {
                                    "value": False,
                                    "next_node": {
                                        "condition": {
                                            "predicate": "free_coffee == true",
                                            "branches": [
                                                {"value": True, "next_node": {"outcome": {"value": "accept"}}},
                                                {"value": False, "next_node": {"outcome": {"value": "decline"}}},
                                            ],
                                        }
                                    },
                                },
                            ],
                        }
                    },
                },
                {"value": False, "next_node": {"outcome": {"value": "decline"}}},
            ],
        }
    }
}


@pytest.fixture
def offer_tree() -> Tree:
    """Provide a freshly built, compiled offer tree.

    Returns:
        Tree: The offer tree.
    """
    return build_offer_tree()


@pytest.fixture
def offer_document() -> dict:
    """Provide a private copy of the offer tree document.

    Returns:
        dict: The offer tree as a decoded JSON document.
    """
    return copy.deepcopy(OFFER_TREE_DOCUMENT)


@pytest.fixture(autouse=True)
def fresh_settings() -> Iterator[None]:
    """Drop cached settings before and after each test so env changes never leak.

    Yields:
        None: Nothing; used only for setup/teardown side effects.
    """
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
