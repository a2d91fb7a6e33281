"""
sqeval/compiler/cost.py

Operation counts of evaluation plans.

A PRODUCT node costs the product of the extents of every distinct index
of its two operands (free and contracted). Leaves, constants and sums are
free. Nodes with equal fingerprints are counted once per plan, since the
cache computes them once.
"""

from __future__ import annotations

from math import prod
from typing import Optional, Set

from sqeval.core.registry import IndexSpaceRegistry
from sqeval.ir.schema import Fingerprint, Handle, NodeKind, Plan


def node_ops(plan: Plan, handle: Handle, registry: IndexSpaceRegistry) -> int:
    """Multiply-add count of one node, children excluded."""
    node = plan[handle]
    if node.kind != NodeKind.PRODUCT:
        return 0
    seen = dict.fromkeys(plan[node.left].layout.indices + plan[node.right].layout.indices)
    return prod(registry.extent(idx.space) for idx in seen)


def ops_count(plan: Plan, registry: IndexSpaceRegistry, handle: Optional[Handle] = None) -> int:
    """
    Total operation count of a plan, or of the subtree under handle.

    Args:
        plan: Plan to cost
        registry: Registry holding the space extents
        handle: Subtree root (the plan root if None)

    Returns:
        Sum of node_ops over distinct fingerprints
    """
    counted: Set[Fingerprint] = set()
    total = 0
    stack = [plan.root if handle is None else handle]
    while stack:
        h = stack.pop()
        node = plan[h]
        if node.fingerprint in counted:
            continue
        counted.add(node.fingerprint)
        total += node_ops(plan, h, registry)
        stack.extend(node.children)
    return total
