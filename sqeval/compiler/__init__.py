"""
Compiler: binarization of expressions and structural fingerprints.
"""

from sqeval.compiler.binarize import (
    Combinator,
    PlanBuilder,
    balanced_fold,
    binarize,
    check_sum_layouts,
    left_fold,
    product_layout,
)
from sqeval.compiler.cost import node_ops, ops_count
from sqeval.compiler.hashing import (
    canonical_orientation,
    fingerprint_constant,
    fingerprint_internal,
    fingerprint_tensor,
    hash_node,
    product_topology,
    repetition_pattern,
    sum_topology,
    swappable,
)

__all__ = [
    "Combinator",
    "PlanBuilder",
    "balanced_fold",
    "binarize",
    "check_sum_layouts",
    "left_fold",
    "product_layout",
    "node_ops",
    "ops_count",
    "canonical_orientation",
    "fingerprint_constant",
    "fingerprint_internal",
    "fingerprint_tensor",
    "hash_node",
    "product_topology",
    "repetition_pattern",
    "sum_topology",
    "swappable",
]
