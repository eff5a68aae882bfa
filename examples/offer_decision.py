"""Decides job offers with a tree loaded from ``offer_tree.json``.

The tree:

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

Key concepts shown here:

- ``Tree.from_json`` decodes and compiles a tree document in one step.
- ``explain`` returns the outcome together with every condition visited.
- ``decide_frame`` decides one row per offer in a Polars DataFrame.
- ``enable_logging`` surfaces one ``DECISION`` record per decision on stderr.
"""

from pathlib import Path

import polars as pl

from dtree import Tree, decide_frame, enable_logging

tree = Tree.from_json(Path(__file__).with_name("offer_tree.json").read_text())

with enable_logging(level="DECISION"):
    params = {"salary": 100000, "commutation_hour": 2, "free_coffee": True}
    print(f"\nOutcome: {tree.decide(params)}\n")

    trace = tree.explain({"salary": 60000, "commutation_hour": 1, "free_coffee": True})
    for step in trace.steps:
        print(f"  {step.predicate} -> {step.value}")
    print(f"  => {trace.outcome}\n")

    offers = pl.DataFrame({
        "salary": [45000, 60000, 60000, None],
        "commutation_hour": [1, 1, 3, 1],
        "free_coffee": [True, True, True, False],
    })
    # The last offer has no salary, so its outcome is null
    print(offers.with_columns(decide_frame(tree, offers, on_error="null")))

# Logging automatically disabled here
