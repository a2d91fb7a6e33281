"""
Runtime helpers: leaf stores and evaluation scheduling.
"""

from sqeval.runtime.leaves import LeafStore, split_spaces
from sqeval.runtime.schedule import evaluate_plans, iterate

__all__ = [
    "LeafStore",
    "split_spaces",
    "evaluate_plans",
    "iterate",
]
