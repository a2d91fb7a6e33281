"""
sqeval/topology/network.py

Contraction graph of a tensor network.

The contraction graph G = (F, E) has:
- Nodes: factor positions, labelled by the factor's structural fingerprint
- Edges: both directions between factors sharing indices, labelled by the
  sorted (source slot, target slot) pairs of the shared indices

A slot is (role, position) with role "bra" or "ket". Positions are kept
for symmetric and antisymmetric tensors too: edge labels must agree with
the positional product topology of the fingerprints, or a matched
subnetwork would not binarize to a shared subtree.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

import networkx as nx

from sqeval.compiler.hashing import canonical_orientation, fingerprint_tensor
from sqeval.core.config import EvalConfig, resolve_config
from sqeval.expr.index import Index
from sqeval.expr.tensor import IndexedTensor

Slot = Tuple[str, int]
SlotPair = Tuple[Slot, Slot]


def tensor_slots(tensor: IndexedTensor) -> List[Slot]:
    """Slot label of every index position of a tensor (bra then ket)."""
    slots: List[Slot] = []
    for role, group in (("bra", tensor.bra), ("ket", tensor.ket)):
        for k in range(len(group)):
            slots.append((role, k))
    return slots


def contraction_graph(
    factors: Sequence[IndexedTensor],
    config: Optional[EvalConfig] = None,
) -> nx.DiGraph:
    """
    Build the contraction graph of a list of tensors.

    Args:
        factors: Tensors of one product, in order
        config: Configuration deciding canonical orientation

    Returns:
        DiGraph with node attribute "label" and edge attribute "slots"
    """
    cfg = resolve_config(config)
    g = nx.DiGraph()
    occurrences: Dict[Index, List[Tuple[int, Slot]]] = defaultdict(list)

    for p, t in enumerate(factors):
        if not isinstance(t, IndexedTensor):
            raise TypeError(f"Contraction graph factors must be tensors, got {type(t).__name__}")
        oriented = canonical_orientation(t, cfg)
        g.add_node(p, label=fingerprint_tensor(oriented, cfg), tensor=oriented)
        for idx, slot in zip(oriented.indices, tensor_slots(oriented)):
            occurrences[idx].append((p, slot))

    pairs: Dict[Tuple[int, int], List[SlotPair]] = defaultdict(list)
    for occ in occurrences.values():
        for x in range(len(occ)):
            for y in range(x + 1, len(occ)):
                (p, sp), (q, sq) = occ[x], occ[y]
                if p == q:
                    continue
                pairs[(p, q)].append((sp, sq))
                pairs[(q, p)].append((sq, sp))

    for (p, q), slots in pairs.items():
        g.add_edge(p, q, slots=tuple(sorted(slots)))
    return g


def label_graph(labels: Sequence) -> nx.DiGraph:
    """Edgeless graph whose nodes carry the given labels."""
    g = nx.DiGraph()
    for p, lab in enumerate(labels):
        g.add_node(p, label=lab)
    return g
