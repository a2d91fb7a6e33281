"""
sqeval/compiler/hashing.py

Structural fingerprints for plan nodes.

Fingerprints are 64-bit integers derived from a blake2b digest of a
canonical repr, so they are stable across processes. They never depend
on literal index names:

- Leaf: label, symmetry, bra-ket relation, per-slot spaces and the
  repetition pattern of indices inside the tensor.
- Internal: kind, child fingerprints, child prefactors and a positional
  topology (which slots are identified with which).

Leaves whose bra-ket relation allows it are oriented canonically before
hashing, which is what makes bra/ket-swapped variants collide.
"""

from __future__ import annotations

import hashlib
from typing import Dict, Optional, Tuple

from sqeval.core.config import EvalConfig, resolve_config
from sqeval.expr.index import Index, space_string
from sqeval.expr.tensor import BraKetSymmetry, IndexedTensor
from sqeval.ir.schema import Fingerprint, Layout, NodeKind, Plan

DIGEST_SIZE = 8


def _digest(payload: Tuple) -> Fingerprint:
    h = hashlib.blake2b(repr(payload).encode("utf-8"), digest_size=DIGEST_SIZE)
    return int.from_bytes(h.digest(), "big")


def scalar_key(s: complex) -> Tuple[float, float]:
    c = complex(s)
    # + 0.0 folds -0.0 into 0.0
    return (c.real + 0.0, c.imag + 0.0)


def repetition_pattern(indices: Tuple[Index, ...]) -> Tuple[int, ...]:
    """
    Renaming-invariant shape of index repetitions.

    Each slot gets the rank of its index's first occurrence, e.g.
    (i, j, i, a) -> (0, 1, 0, 2).
    """
    first: Dict[Index, int] = {}
    return tuple(first.setdefault(idx, len(first)) for idx in indices)


def _proto_shape(indices: Tuple[Index, ...]) -> Tuple[str, ...]:
    return tuple(space_string(idx.proto) for idx in indices)


def _orientation_key(bra: Tuple[Index, ...], ket: Tuple[Index, ...]) -> Tuple:
    return (
        space_string(bra),
        space_string(ket),
        repetition_pattern(bra + ket),
        _proto_shape(bra + ket),
    )


def swappable(tensor: IndexedTensor, config: EvalConfig) -> bool:
    """Whether bra and ket of this tensor may be exchanged freely."""
    if tensor.braket == BraKetSymmetry.SYMMETRIC:
        return True
    if tensor.braket == BraKetSymmetry.CONJUGATE:
        return not config.complex_valued
    return False


def canonical_orientation(tensor: IndexedTensor, config: Optional[EvalConfig] = None) -> IndexedTensor:
    """
    Return the tensor with bra and ket swapped if that orientation sorts first.

    Only tensors whose bra-ket relation permits the swap under config are
    ever reoriented; ties keep the given orientation.
    """
    cfg = resolve_config(config)
    if not swappable(tensor, cfg):
        return tensor
    if _orientation_key(tensor.ket, tensor.bra) < _orientation_key(tensor.bra, tensor.ket):
        return tensor.adjoint()
    return tensor


def fingerprint_tensor(tensor: IndexedTensor, config: Optional[EvalConfig] = None) -> Fingerprint:
    """Renaming-invariant fingerprint of a tensor leaf."""
    t = canonical_orientation(tensor, config)
    return _digest((
        NodeKind.LEAF.value,
        t.label,
        t.symmetry.value,
        t.braket.value,
        _orientation_key(t.bra, t.ket),
    ))


def fingerprint_constant() -> Fingerprint:
    """Fingerprint shared by every constant node; the value lives in the prefactor."""
    return _digest((NodeKind.CONSTANT.value,))


def product_topology(left: Layout, right: Layout) -> Tuple[int, ...]:
    """For each left slot, the right slot carrying the same index, or -1."""
    rpos = right.positions()
    return tuple(rpos.get(idx, -1) for idx in left.indices)


def sum_topology(left: Layout, right: Layout) -> Tuple[int, ...]:
    """For each right slot, the left slot carrying the same index."""
    lpos = left.positions()
    return tuple(lpos[idx] for idx in right.indices)


def fingerprint_internal(
    kind: NodeKind,
    left: Fingerprint,
    right: Fingerprint,
    left_scalar: complex,
    right_scalar: complex,
    topology: Tuple[int, ...],
) -> Fingerprint:
    """
    Fingerprint of a PRODUCT or SUM node.

    Child prefactors are part of the key because the node's value folds
    them in.
    """
    if kind not in (NodeKind.PRODUCT, NodeKind.SUM):
        raise ValueError(f"Not an internal node kind: {kind}")
    return _digest((
        kind.value,
        left,
        right,
        scalar_key(left_scalar),
        scalar_key(right_scalar),
        tuple(topology),
    ))


def hash_node(plan: Plan, handle: int, config: Optional[EvalConfig] = None) -> Fingerprint:
    """
    Recompute the fingerprint of one plan node from its contents.

    Children contribute through their recorded fingerprints.
    """
    node = plan[handle]
    if node.kind == NodeKind.LEAF:
        return fingerprint_tensor(node.tensor, config)
    if node.kind == NodeKind.CONSTANT:
        return fingerprint_constant()
    if node.kind in (NodeKind.PRODUCT, NodeKind.SUM):
        l, r = plan[node.left], plan[node.right]
        if node.kind == NodeKind.PRODUCT:
            topo = product_topology(l.layout, r.layout)
        else:
            topo = sum_topology(l.layout, r.layout)
        return fingerprint_internal(node.kind, l.fingerprint, r.fingerprint, l.scalar, r.scalar, topo)
    raise TypeError(f"Unknown node kind {node.kind}")
