"""
sqeval/ir/schema.py

Evaluation-plan schema.

Key types:
- Layout: ordered bra/ket indices of a node's output
- NodeKind: LEAF, CONSTANT, PRODUCT or SUM
- PlanNode: one node of a binary evaluation tree
- Plan: arena of PlanNodes addressed by integer handles
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from numbers import Number
from typing import Dict, Iterator, List, Optional, Tuple

from sqeval.core.registry import IndexSpaceRegistry
from sqeval.expr.index import Index, space_string
from sqeval.expr.tensor import IndexedTensor

Handle = int
Fingerprint = int


class NodeKind(Enum):
    LEAF = "leaf"
    CONSTANT = "constant"
    PRODUCT = "product"
    SUM = "sum"


class PostProcess(Enum):
    """Permutational post-processing applied to a plan's root value."""
    NONE = "none"
    ANTISYMMETRIZE = "antisymmetrize"
    SYMMETRIZE = "symmetrize"


class PermutationPolicy(Enum):
    """
    How output slots are permuted during (anti)symmetrization.

    INDEPENDENT permutes bra and ket separately; JOINT applies one
    permutation to both (particle exchange).
    """
    INDEPENDENT = "independent"
    JOINT = "joint"


@dataclass(frozen=True)
class Layout:
    """
    Ordered bra and ket indices of a numeric value.

    Array axes follow bra then ket.
    """
    bra: Tuple[Index, ...] = ()
    ket: Tuple[Index, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "bra", tuple(self.bra))
        object.__setattr__(self, "ket", tuple(self.ket))

    @property
    def indices(self) -> Tuple[Index, ...]:
        return self.bra + self.ket

    @property
    def rank(self) -> int:
        return len(self.bra) + len(self.ket)

    @property
    def signature(self) -> str:
        return space_string(self.bra) + space_string(self.ket)

    def positions(self) -> Dict[Index, int]:
        """Map from index to axis position."""
        return {idx: i for i, idx in enumerate(self.indices)}

    def sorted(self) -> "Layout":
        """Same indices, bra and ket each sorted by label."""
        key = lambda idx: idx.full_label
        return Layout(tuple(sorted(self.bra, key=key)), tuple(sorted(self.ket, key=key)))

    def shape(self, registry: IndexSpaceRegistry) -> Tuple[int, ...]:
        return registry.shape_of(self.indices)

    @staticmethod
    def of(tensor: IndexedTensor) -> "Layout":
        return Layout(tensor.bra, tensor.ket)

    def __repr__(self) -> str:
        bra = ",".join(i.full_label for i in self.bra)
        ket = ",".join(i.full_label for i in self.ket)
        return f"Layout({bra}|{ket})"


@dataclass(frozen=True)
class PlanNode:
    """
    One node of an evaluation plan.

    Attributes:
        handle: Position of this node in the plan arena
        kind: Node kind
        layout: Output layout of the node
        scalar: Prefactor applied by the consumer of this node's value
        fingerprint: Renaming-invariant structural hash
        left: Left child handle (internal nodes)
        right: Right child handle (internal nodes)
        tensor: Wrapped tensor (leaves)
        topology: Positional contraction/permutation record (internal nodes)
    """
    handle: Handle
    kind: NodeKind
    layout: Layout
    scalar: complex
    fingerprint: Fingerprint
    left: Optional[Handle] = None
    right: Optional[Handle] = None
    tensor: Optional[IndexedTensor] = None
    topology: Tuple[int, ...] = ()

    @property
    def is_internal(self) -> bool:
        return self.kind in (NodeKind.PRODUCT, NodeKind.SUM)

    @property
    def children(self) -> Tuple[Handle, ...]:
        if not self.is_internal:
            return ()
        return (self.left, self.right)  # type: ignore[return-value]


@dataclass(frozen=True)
class SymmetrizeRequest:
    """
    Post-processing requested by an antisymmetrizer or symmetrizer operator.

    Attributes:
        kind: ANTISYMMETRIZE or SYMMETRIZE
        layout: Output slots to permute, as given on the operator tensor
        policy: Permutation policy
    """
    kind: PostProcess
    layout: Layout
    policy: PermutationPolicy = PermutationPolicy.INDEPENDENT


@dataclass(frozen=True)
class Plan:
    """
    Binary evaluation plan.

    The plan owns its nodes; internal nodes refer to children by handle.
    Children always have smaller handles than their parents.

    Attributes:
        nodes: Node arena, indexed by handle
        root: Handle of the root node
        postprocess: Optional (anti)symmetrization of the root value
    """
    nodes: Tuple[PlanNode, ...]
    root: Handle
    postprocess: Optional[SymmetrizeRequest] = None

    def __post_init__(self):
        object.__setattr__(self, "nodes", tuple(self.nodes))
        if not 0 <= self.root < len(self.nodes):
            raise ValueError(f"Root handle {self.root} outside plan of {len(self.nodes)} nodes")

    def __getitem__(self, handle: Handle) -> PlanNode:
        return self.nodes[handle]

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def root_node(self) -> PlanNode:
        return self.nodes[self.root]

    @property
    def layout(self) -> Layout:
        """Natural layout of the root value."""
        return self.root_node.layout

    @property
    def output_layout(self) -> Layout:
        """Layout of the evaluated result, after post-processing."""
        if self.postprocess is not None:
            return self.postprocess.layout
        return self.layout

    @property
    def fingerprint(self) -> Fingerprint:
        return self.root_node.fingerprint

    @property
    def scalar(self) -> complex:
        return self.root_node.scalar

    def postorder(self) -> List[Handle]:
        """Handles reachable from the root, children before parents (left first)."""
        order: List[Handle] = []
        stack: List[Tuple[Handle, bool]] = [(self.root, False)]
        while stack:
            h, expanded = stack.pop()
            node = self.nodes[h]
            if expanded or not node.is_internal:
                order.append(h)
                continue
            stack.append((h, True))
            stack.append((node.right, False))
            stack.append((node.left, False))
        return order

    def leaves(self) -> List[PlanNode]:
        """Leaf nodes in evaluation order."""
        return [self.nodes[h] for h in self.postorder() if self.nodes[h].kind == NodeKind.LEAF]

    def iter_nodes(self) -> Iterator[PlanNode]:
        for h in self.postorder():
            yield self.nodes[h]

    def to_dot(self) -> str:
        """Graphviz rendering of the plan tree."""
        lines = ["digraph plan {"]
        for node in self.iter_nodes():
            if node.kind == NodeKind.LEAF:
                text = repr(node.tensor)
            elif node.kind == NodeKind.CONSTANT:
                text = "const"
            else:
                text = "*" if node.kind == NodeKind.PRODUCT else "+"
            if node.scalar != 1:
                text = f"{_fmt_scalar(node.scalar)} {text}"
            lines.append(f'  n{node.handle} [label="{text}\\n{node.fingerprint:016x}"];')
            for c in node.children:
                lines.append(f"  n{node.handle} -> n{c};")
        lines.append("}")
        return "\n".join(lines)


def _fmt_scalar(s: Number) -> str:
    if isinstance(s, complex) and s.imag == 0:
        s = s.real
    return f"{s:g}" if not isinstance(s, complex) else str(s)
