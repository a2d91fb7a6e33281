"""
Contraction-graph construction and common-subnetwork factorization.
"""

from sqeval.topology.network import contraction_graph, label_graph, tensor_slots
from sqeval.topology.factorize import (
    factorize_sum,
    hoist_common,
    largest_common_subgraph,
    largest_common_subnet,
)

__all__ = [
    "contraction_graph",
    "label_graph",
    "tensor_slots",
    "factorize_sum",
    "hoist_common",
    "largest_common_subgraph",
    "largest_common_subnet",
]
