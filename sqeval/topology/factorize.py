"""
sqeval/topology/factorize.py

Common-subnetwork factorization.

Given two products (or two sums), find the largest set of factors in each
whose induced, edge-labelled contraction graphs are isomorphic. Once those
factors are moved to the front of both products, a left fold builds the
same subtree in both plans, and the cache computes it once.

Search is exhaustive from the largest size down, so results are exact and
deterministic; networks in this domain have a handful of factors.
"""

from __future__ import annotations

import logging
from collections import Counter
from itertools import combinations
from typing import List, Optional, Sequence, Tuple

import networkx as nx
from networkx.algorithms.isomorphism import DiGraphMatcher

from sqeval.compiler.binarize import binarize
from sqeval.compiler.hashing import scalar_key
from sqeval.core.config import EvalConfig, resolve_config
from sqeval.expr.nodes import Expr, Product, Sum
from sqeval.expr.tensor import IndexedTensor
from sqeval.topology.network import contraction_graph, label_graph

logger = logging.getLogger(__name__)

Subnet = Tuple[List[int], List[int]]

MIN_MATCH = 2


def _node_match(n1, n2) -> bool:
    return n1["label"] == n2["label"]


def _edge_match(e1, e2) -> bool:
    return e1["slots"] == e2["slots"]


def _factor_tensors(p: Product) -> List[IndexedTensor]:
    out = []
    for f in p.factors:
        if not isinstance(f, IndexedTensor):
            raise TypeError(f"Product factors must be tensors for factorization, got {type(f).__name__}")
        out.append(f)
    return out


def _summand_label(s: Expr, config: EvalConfig):
    plan = binarize(s, config)
    pp = plan.postprocess
    if pp is None:
        return (plan.fingerprint, scalar_key(plan.scalar), None)
    # operator slots as positions in the natural layout
    pos = plan.layout.positions()
    slots = tuple(pos[idx] for idx in pp.layout.indices)
    return (plan.fingerprint, scalar_key(plan.scalar), (pp.kind.value, pp.policy.value, slots))


def _graphs(a: Expr, b: Expr, config: EvalConfig) -> Tuple[nx.DiGraph, nx.DiGraph]:
    if isinstance(a, Product) and isinstance(b, Product):
        return (
            contraction_graph(_factor_tensors(a), config),
            contraction_graph(_factor_tensors(b), config),
        )
    if isinstance(a, Sum) and isinstance(b, Sum):
        return (
            label_graph([_summand_label(s, config) for s in a.summands]),
            label_graph([_summand_label(s, config) for s in b.summands]),
        )
    raise TypeError(
        f"Can only factorize Product/Product or Sum/Sum, got {type(a).__name__}/{type(b).__name__}"
    )


def largest_common_subgraph(ga: nx.DiGraph, gb: nx.DiGraph) -> Subnet:
    """
    Largest node subsets with isomorphic induced labelled subgraphs.

    Among maximum matches the lexicographically smallest ascending A list is
    chosen, then the lexicographically smallest B list paired with it.

    Returns:
        (positions in ga, corresponding positions in gb); ([], []) if no
        match of at least two nodes exists
    """
    na, nb = ga.number_of_nodes(), gb.number_of_nodes()
    labels_a = {n: ga.nodes[n]["label"] for n in ga.nodes}
    labels_b = {n: gb.nodes[n]["label"] for n in gb.nodes}
    nodes_a = sorted(ga.nodes)
    nodes_b = sorted(gb.nodes)

    for k in range(min(na, nb), MIN_MATCH - 1, -1):
        b_by_labels = {}
        for cb in combinations(nodes_b, k):
            key = frozenset(Counter(labels_b[n] for n in cb).items())
            b_by_labels.setdefault(key, []).append(cb)

        for ca in combinations(nodes_a, k):
            key = frozenset(Counter(labels_a[n] for n in ca).items())
            candidates = b_by_labels.get(key)
            if not candidates:
                continue
            sub_a = ga.subgraph(ca)
            best: Optional[List[int]] = None
            for cb in candidates:
                matcher = DiGraphMatcher(
                    sub_a, gb.subgraph(cb), node_match=_node_match, edge_match=_edge_match
                )
                for mapping in matcher.isomorphisms_iter():
                    pos_b = [mapping[n] for n in ca]
                    if best is None or pos_b < best:
                        best = pos_b
            if best is not None:
                return list(ca), best
    return [], []


def largest_common_subnet(a: Expr, b: Expr, config: Optional[EvalConfig] = None) -> Subnet:
    """
    Find the largest common subnetwork of two products or two sums.

    Products are compared factor by factor through their contraction graphs;
    sums are compared summand by summand through plan fingerprints and
    prefactors, with no edges.

    Args:
        a: Product or Sum
        b: Product or Sum (same kind as a)
        config: Configuration for fingerprints

    Returns:
        (positions in a, positions in b), position k of one list matching
        position k of the other

    Raises:
        TypeError: Mixed kinds, or non-tensor factors in a product
    """
    cfg = resolve_config(config)
    ga, gb = _graphs(a, b, cfg)
    pos_a, pos_b = largest_common_subgraph(ga, gb)
    logger.debug("Common subnetwork of size %d: %s ~ %s", len(pos_a), pos_a, pos_b)
    return pos_a, pos_b


def hoist_common(
    a: Product,
    b: Product,
    config: Optional[EvalConfig] = None,
) -> Tuple[Product, Product, int]:
    """
    Move the largest common subnetwork to the front of both products.

    Matched factors come first in corresponding order; the remaining factors
    keep their relative order. Binarized with left_fold, both products then
    share the subtree over their first k factors.

    Returns:
        (reordered a, reordered b, k)
    """
    pos_a, pos_b = largest_common_subnet(a, b, config)
    if not pos_a:
        return a, b, 0
    return _front(a, pos_a), _front(b, pos_b), len(pos_a)


def _front(p: Product, positions: Sequence[int]) -> Product:
    chosen = set(positions)
    order = list(positions) + [k for k in range(len(p.factors)) if k not in chosen]
    return Product(tuple(p.factors[k] for k in order), p.scalar)


def _hoistable(e: Expr, config: EvalConfig) -> bool:
    if not isinstance(e, Product) or len(e.factors) < MIN_MATCH:
        return False
    return all(
        isinstance(f, IndexedTensor) and f.label not in config.operator_labels
        for f in e.factors
    )


def factorize_sum(expr: Sum, config: Optional[EvalConfig] = None) -> Sum:
    """
    Hoist common subnetworks across the terms of a sum.

    Every pair of tensor-only product terms is scored by the size of its
    largest common subnetwork. Pairs are then taken greedily, largest first
    (ties by position), and each term joins at most one pair, so the
    shared subtree of a pair is never disturbed by a later reordering.
    Other terms are left untouched; term order is preserved.

    Args:
        expr: Sum to factorize
        config: Configuration for fingerprints

    Returns:
        Sum with reordered product factors

    Raises:
        TypeError: If expr is not a Sum
    """
    if not isinstance(expr, Sum):
        raise TypeError(f"factorize_sum expects a Sum, got {type(expr).__name__}")
    cfg = resolve_config(config)
    terms = list(expr.summands)
    eligible = [k for k, t in enumerate(terms) if _hoistable(t, cfg)]

    scored = []
    for x, i in enumerate(eligible):
        for j in eligible[x + 1:]:
            pos_a, pos_b = largest_common_subnet(terms[i], terms[j], cfg)
            if pos_a:
                scored.append((-len(pos_a), i, j, pos_a, pos_b))
    scored.sort(key=lambda s: s[:3])

    used = set()
    for neg_k, i, j, pos_a, pos_b in scored:
        if i in used or j in used:
            continue
        terms[i] = _front(terms[i], pos_a)
        terms[j] = _front(terms[j], pos_b)
        used.update((i, j))
        logger.debug("Terms %d and %d share %d factors", i, j, -neg_k)
    logger.info("Factorized %d of %d terms into %d pairs", len(used), len(terms), len(used) // 2)
    return Sum(tuple(terms))
