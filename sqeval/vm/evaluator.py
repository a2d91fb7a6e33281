"""
sqeval/vm/evaluator.py

Evaluator for binary evaluation plans.

The walk is post-order with an explicit work stack. Every node first
consults the cache by fingerprint; a hit skips its whole subtree, a miss
computes the node and stores it immediately.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from sqeval.core.config import EvalConfig, resolve_config
from sqeval.core.errors import ComplexNarrowingError, MalformedCombinationError, ShapeMismatchError
from sqeval.expr.tensor import IndexedTensor
from sqeval.ir.schema import Handle, Layout, NodeKind, PermutationPolicy, Plan, PlanNode, PostProcess
from sqeval.vm.align import reannotate
from sqeval.vm.backend import TensorBackend, numpy_backend
from sqeval.vm.kernels import vm_add, vm_contract
from sqeval.vm.memory import CacheManager
from sqeval.vm.symmetrize import antisymmetrize, symmetrize

logger = logging.getLogger(__name__)

LeafYielder = Callable[[IndexedTensor], np.ndarray]


@dataclass
class EvalStats:
    """Counters of work done by an Evaluator."""
    leaf_loads: int = 0
    constants: int = 0
    contractions: int = 0
    sums: int = 0
    hits: int = 0
    misses: int = 0

    @property
    def computed(self) -> int:
        return self.leaf_loads + self.constants + self.contractions + self.sums

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class Evaluator:
    """
    Executes plans against a tensor backend through a cache.

    Attributes:
        backend: Numeric backend
        cache: Fingerprint-keyed cache, shared by every plan evaluated here
        config: Index convention (extents are needed for leaf shape checks)
        stats: Cumulative work counters
    """

    def __init__(
        self,
        backend: Optional[TensorBackend] = None,
        cache: Optional[CacheManager] = None,
        config: Optional[EvalConfig] = None,
    ):
        self.backend = backend if backend is not None else numpy_backend()
        self.cache = cache if cache is not None else CacheManager()
        self.config = resolve_config(config)
        self.stats = EvalStats()

    def evaluate(
        self,
        plan: Plan,
        yielder: LeafYielder,
        target_layout: Optional[Layout] = None,
    ) -> np.ndarray:
        """
        Evaluate a plan.

        Args:
            plan: Plan to evaluate
            yielder: Leaf data provider
            target_layout: Requested index order of the result; must be a
                permutation of plan.output_layout

        Returns:
            Fresh array holding the root value times the root prefactor,
            post-processed and re-annotated as requested

        Raises:
            ShapeMismatchError, MissingLeafError, ComplexNarrowingError,
            MalformedCombinationError, DuplicateStoreError
        """
        values: Dict[Handle, np.ndarray] = {}
        hits = misses = 0
        stack: List[Tuple[Handle, bool]] = [(plan.root, False)]
        while stack:
            h, expanded = stack.pop()
            node = plan[h]
            if not expanded:
                cached = self.cache.access(node.fingerprint)
                if cached is not None:
                    hits += 1
                    values[h] = cached
                    continue
                misses += 1
                if node.is_internal:
                    stack.append((h, True))
                    stack.append((node.right, False))
                    stack.append((node.left, False))
                    continue
            values[h] = self.cache.store(node.fingerprint, self._compute(plan, node, values, yielder))
        self.stats.hits += hits
        self.stats.misses += misses

        result = self._finish(plan, values[plan.root], target_layout)
        logger.info(
            "Evaluated plan %016x (%d nodes): %d cache hits, %d computed",
            plan.fingerprint, len(plan), hits, misses,
        )
        return result

    def _compute(
        self,
        plan: Plan,
        node: PlanNode,
        values: Dict[Handle, np.ndarray],
        yielder: LeafYielder,
    ) -> np.ndarray:
        be = self.backend
        if node.kind == NodeKind.LEAF:
            self.stats.leaf_loads += 1
            logger.debug("Loading leaf %r", node.tensor)
            return self._load_leaf(node, yielder)
        if node.kind == NodeKind.CONSTANT:
            self.stats.constants += 1
            return be.scalar_one()

        l, r = plan[node.left], plan[node.right]
        a, b = values[node.left], values[node.right]
        if node.kind == NodeKind.PRODUCT:
            self.stats.contractions += 1
            factor = self._scalar(l.scalar) * self._scalar(r.scalar)
            logger.debug("Contracting %s * %s -> %s", l.layout, r.layout, node.layout)
            return vm_contract(be, a, l.layout, b, r.layout, node.layout, factor)
        if node.kind == NodeKind.SUM:
            self.stats.sums += 1
            logger.debug("Adding %s + %s", l.layout, r.layout)
            return vm_add(
                be, a, l.layout, self._scalar(l.scalar),
                b, r.layout, self._scalar(r.scalar), node.layout,
            )
        raise TypeError(f"Unknown node kind {node.kind}")

    def _load_leaf(self, node: PlanNode, yielder: LeafYielder) -> np.ndarray:
        arr = np.asarray(yielder(node.tensor))
        expected = node.layout.shape(self.config.registry)
        if tuple(arr.shape) != expected:
            raise ShapeMismatchError(
                f"Leaf {node.tensor!r} has shape {arr.shape}, expected {expected}"
            )
        if np.iscomplexobj(arr) and not self.backend.is_complex:
            if np.any(arr.imag != 0):
                raise ComplexNarrowingError(
                    f"Leaf {node.tensor!r} is complex but backend {self.backend.name} is real"
                )
            arr = arr.real
        return self.backend.asarray(arr)

    def _scalar(self, s) -> complex:
        if self.backend.is_complex:
            return complex(s)
        c = complex(s)
        if c.imag != 0:
            raise ComplexNarrowingError(f"Prefactor {s} has an imaginary part on a real backend")
        return c.real

    def _finish(self, plan: Plan, value: np.ndarray, target_layout: Optional[Layout]) -> np.ndarray:
        be = self.backend
        s = self._scalar(plan.scalar)
        result = np.asarray(be.scale(value, s)) if s != 1 else np.array(value)
        layout = plan.layout

        pp = plan.postprocess
        if pp is not None and pp.kind != PostProcess.NONE:
            result = reannotate(result, layout, pp.layout, be)
            layout = pp.layout
            result = self._symmetrize(result, layout, pp.kind, pp.policy)

        if target_layout is not None and target_layout != layout:
            result = reannotate(result, layout, target_layout, be)
        return np.asarray(result)

    def _symmetrize(
        self,
        arr: np.ndarray,
        layout: Layout,
        kind: PostProcess,
        policy: PermutationPolicy,
    ) -> np.ndarray:
        if len(layout.bra) != len(layout.ket):
            raise MalformedCombinationError(f"Cannot (anti)symmetrize unbalanced layout {layout}")
        rank = len(layout.bra)
        if kind == PostProcess.ANTISYMMETRIZE:
            return antisymmetrize(arr, rank, self.backend, policy)
        return symmetrize(arr, rank, self.backend, policy)

    def evaluate_sorted(self, plan: Plan, yielder: LeafYielder) -> np.ndarray:
        """Evaluate with bra and ket each sorted by index label."""
        return self.evaluate(plan, yielder, plan.output_layout.sorted())

    def evaluate_antisymmetric(
        self,
        plan: Plan,
        yielder: LeafYielder,
        policy: PermutationPolicy = PermutationPolicy.INDEPENDENT,
    ) -> np.ndarray:
        """Sorted result, antisymmetrized over all output slots."""
        layout = plan.output_layout.sorted()
        return self._symmetrize(
            self.evaluate(plan, yielder, layout), layout, PostProcess.ANTISYMMETRIZE, policy
        )

    def evaluate_symmetric(
        self,
        plan: Plan,
        yielder: LeafYielder,
        policy: PermutationPolicy = PermutationPolicy.JOINT,
    ) -> np.ndarray:
        """Sorted result, symmetrized over all output slots."""
        layout = plan.output_layout.sorted()
        return self._symmetrize(
            self.evaluate(plan, yielder, layout), layout, PostProcess.SYMMETRIZE, policy
        )
