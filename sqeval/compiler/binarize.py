"""
sqeval/compiler/binarize.py

Binarization of expression trees into evaluation plans.

A flat product or sum of n elements becomes a binary tree with n leaves
(or subtrees) and n - 1 internal nodes. The pairing order comes from a
combinator: left_fold (default) or balanced_fold. Each node is
fingerprinted as it is created.

Antisymmetrizer/symmetrizer operator tensors at the top level are not
data; they are stripped and recorded as the plan's post-processing.
"""

from __future__ import annotations

import dataclasses
import logging
from collections import Counter
from typing import Callable, List, Optional, Sequence, Tuple

from sqeval.compiler.hashing import (
    canonical_orientation,
    fingerprint_constant,
    fingerprint_internal,
    fingerprint_tensor,
    product_topology,
    sum_topology,
)
from sqeval.core.config import EvalConfig, resolve_config
from sqeval.core.errors import MalformedCombinationError
from sqeval.expr.nodes import Constant, Expr, Product, Sum
from sqeval.expr.tensor import IndexedTensor
from sqeval.ir.schema import (
    Handle,
    Layout,
    NodeKind,
    PermutationPolicy,
    Plan,
    PlanNode,
    PostProcess,
    SymmetrizeRequest,
)

logger = logging.getLogger(__name__)

Join = Callable[[Handle, Handle], Handle]
Combinator = Callable[[Sequence[Handle], Join], Handle]


def left_fold(handles: Sequence[Handle], join: Join) -> Handle:
    """((h0 h1) h2) h3 ..."""
    if not handles:
        raise ValueError("Cannot combine an empty sequence")
    acc = handles[0]
    for h in handles[1:]:
        acc = join(acc, h)
    return acc


def balanced_fold(handles: Sequence[Handle], join: Join) -> Handle:
    """Pair neighbours level by level: ((h0 h1) (h2 h3)) ..."""
    if not handles:
        raise ValueError("Cannot combine an empty sequence")
    level = list(handles)
    while len(level) > 1:
        nxt = [join(level[k], level[k + 1]) for k in range(0, len(level) - 1, 2)]
        if len(level) % 2:
            nxt.append(level[-1])
        level = nxt
    return level[0]


def product_layout(left: Layout, right: Layout) -> Layout:
    """
    Output layout of contracting two layouts.

    Indices occurring once are free and keep their role and order (left
    first); indices occurring twice are summed.
    """
    counts = Counter(left.indices + right.indices)
    over = sorted(idx.full_label for idx, n in counts.items() if n > 2)
    if over:
        raise MalformedCombinationError(
            f"Indices {over} occur more than twice in product of {left} and {right}"
        )
    bra = tuple(i for i in left.bra + right.bra if counts[i] == 1)
    ket = tuple(i for i in left.ket + right.ket if counts[i] == 1)
    return Layout(bra, ket)


def check_sum_layouts(left: Layout, right: Layout) -> None:
    """Raise MalformedCombinationError unless right is a role-preserving permutation of left."""
    if len(left.bra) != len(right.bra) or len(left.ket) != len(right.ket):
        raise MalformedCombinationError(f"Rank mismatch in sum: {left} + {right}")
    if Counter(left.bra) != Counter(right.bra) or Counter(left.ket) != Counter(right.ket):
        raise MalformedCombinationError(f"Index roles disagree in sum: {left} + {right}")


class PlanBuilder:
    """
    Incremental plan arena.

    Nodes are appended in creation order, so children precede parents.
    """

    def __init__(self, config: Optional[EvalConfig] = None):
        self.config = resolve_config(config)
        self.nodes: List[PlanNode] = []

    def _append(self, **kw) -> Handle:
        h = len(self.nodes)
        self.nodes.append(PlanNode(handle=h, **kw))
        return h

    def add_leaf(self, tensor: IndexedTensor) -> Handle:
        t = canonical_orientation(tensor, self.config)
        return self._append(
            kind=NodeKind.LEAF,
            layout=Layout.of(t),
            scalar=1,
            fingerprint=fingerprint_tensor(t, self.config),
            tensor=t,
        )

    def add_constant(self, value) -> Handle:
        return self._append(
            kind=NodeKind.CONSTANT,
            layout=Layout(),
            scalar=value,
            fingerprint=fingerprint_constant(),
        )

    def add_product(self, left: Handle, right: Handle) -> Handle:
        l, r = self.nodes[left], self.nodes[right]
        layout = product_layout(l.layout, r.layout)
        topo = product_topology(l.layout, r.layout)
        fp = fingerprint_internal(NodeKind.PRODUCT, l.fingerprint, r.fingerprint, l.scalar, r.scalar, topo)
        return self._append(
            kind=NodeKind.PRODUCT, layout=layout, scalar=1, fingerprint=fp,
            left=left, right=right, topology=topo,
        )

    def add_sum(self, left: Handle, right: Handle) -> Handle:
        l, r = self.nodes[left], self.nodes[right]
        check_sum_layouts(l.layout, r.layout)
        topo = sum_topology(l.layout, r.layout)
        fp = fingerprint_internal(NodeKind.SUM, l.fingerprint, r.fingerprint, l.scalar, r.scalar, topo)
        return self._append(
            kind=NodeKind.SUM, layout=l.layout, scalar=1, fingerprint=fp,
            left=left, right=right, topology=topo,
        )

    def rescale(self, handle: Handle, factor) -> None:
        """Multiply a node's prefactor; only valid before a parent refers to it."""
        if factor == 1:
            return
        node = self.nodes[handle]
        self.nodes[handle] = dataclasses.replace(node, scalar=node.scalar * factor)

    def build(self, root: Handle, postprocess: Optional[SymmetrizeRequest] = None) -> Plan:
        return Plan(nodes=tuple(self.nodes), root=root, postprocess=postprocess)


class _Binarizer:
    def __init__(self, config: EvalConfig, combinator: Combinator):
        self.config = config
        self.combinator = combinator
        self.builder = PlanBuilder(config)

    def is_operator(self, e: Expr) -> bool:
        return isinstance(e, IndexedTensor) and e.label in self.config.operator_labels

    def visit(self, e: Expr) -> Handle:
        if isinstance(e, IndexedTensor):
            if self.is_operator(e):
                raise MalformedCombinationError(
                    f"Operator {e!r} may only appear as a factor of the top-level product"
                )
            return self.builder.add_leaf(e)
        if isinstance(e, Constant):
            return self.builder.add_constant(e.value)
        if isinstance(e, Product):
            return self.visit_product(e.factors, e.scalar)
        if isinstance(e, Sum):
            handles = [self.visit(s) for s in e.summands]
            return self.combinator(handles, self.builder.add_sum)
        raise TypeError(f"Unknown expression node {type(e).__name__}")

    def visit_product(self, factors: Sequence[Expr], scalar) -> Handle:
        items: List[Expr] = []
        for f in factors:
            if isinstance(f, Constant):
                scalar = scalar * f.value
            else:
                items.append(f)
        if not items:
            return self.builder.add_constant(scalar)
        handles = [self.visit(f) for f in items]
        counts = Counter(i for h in handles for i in self.builder.nodes[h].layout.indices)
        over = sorted(idx.full_label for idx, n in counts.items() if n > 2)
        if over:
            raise MalformedCombinationError(f"Indices {over} occur more than twice in one product")
        root = self.combinator(handles, self.builder.add_product)
        self.builder.rescale(root, scalar)
        return root

    def request_for(self, op: IndexedTensor, policy: Optional[PermutationPolicy]) -> SymmetrizeRequest:
        if len(op.bra) != len(op.ket):
            raise MalformedCombinationError(f"Operator {op!r} needs equal bra and ket rank")
        if op.label == self.config.antisymmetrizer_label:
            kind = PostProcess.ANTISYMMETRIZE
            default = PermutationPolicy.INDEPENDENT
        else:
            kind = PostProcess.SYMMETRIZE
            default = PermutationPolicy.JOINT
        return SymmetrizeRequest(kind, Layout(op.bra, op.ket), policy or default)

    def strip_operator(self, e: Expr) -> Tuple[Expr, Optional[IndexedTensor]]:
        """Split a top-level product into (product without operator, operator)."""
        if not isinstance(e, Product):
            return e, None
        ops = [f for f in e.factors if self.is_operator(f)]
        if not ops:
            return e, None
        if len(ops) > 1:
            raise MalformedCombinationError(f"More than one operator in product: {ops}")
        rest = tuple(f for f in e.factors if not self.is_operator(f))
        return Product(rest, e.scalar), ops[0]

    def run(self, expr: Expr, scale, policy: Optional[PermutationPolicy]) -> Plan:
        op: Optional[IndexedTensor] = None
        if isinstance(expr, Sum):
            parts = [self.strip_operator(s) for s in expr.summands]
            found = {o for _, o in parts}
            if len(found) > 1:
                raise MalformedCombinationError(
                    "Summands carry different (or missing) operators; cannot hoist"
                )
            op = found.pop()
            if op is not None:
                expr = Sum(tuple(s for s, _ in parts))
        else:
            expr, op = self.strip_operator(expr)

        root = self.visit(expr)
        self.builder.rescale(root, scale)

        request = None
        if op is not None:
            request = self.request_for(op, policy)
            natural = self.builder.nodes[root].layout
            if Counter(natural.indices) != Counter(request.layout.indices):
                raise MalformedCombinationError(
                    f"Operator {op!r} does not act on the free indices {natural}"
                )
        plan = self.builder.build(root, request)
        logger.debug("Binarized expression into %d nodes (root fp %016x)", len(plan), plan.fingerprint)
        return plan


def binarize(
    expr: Expr,
    config: Optional[EvalConfig] = None,
    *,
    combinator: Combinator = left_fold,
    scale=1,
    policy: Optional[PermutationPolicy] = None,
) -> Plan:
    """
    Turn an expression into a binary evaluation plan.

    Args:
        expr: Tensor, Constant, Product or Sum
        config: Index convention and complex flag (default_config() if None)
        combinator: Pairing strategy for flat products and sums
        scale: Extra overall factor applied to the root prefactor
        policy: Permutation policy for an operator found in expr; defaults to
            INDEPENDENT for the antisymmetrizer, JOINT for the symmetrizer

    Returns:
        Plan

    Raises:
        MalformedCombinationError: Incompatible sum operands, an index used
            more than twice in a product, or misplaced operators
        TypeError: Unknown expression node
    """
    cfg = resolve_config(config)
    return _Binarizer(cfg, combinator).run(expr, scale, policy)
