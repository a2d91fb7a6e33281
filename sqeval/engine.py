"""
sqeval/engine.py

High-level entry points: binarize, cache and evaluate in one call.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Union

import numpy as np

from sqeval.compiler.binarize import Combinator, binarize, left_fold
from sqeval.core.config import EvalConfig, resolve_config
from sqeval.expr.nodes import Expr
from sqeval.ir.schema import Layout, Plan
from sqeval.runtime.leaves import LeafStore
from sqeval.vm.backend import TensorBackend
from sqeval.vm.evaluator import EvalStats, Evaluator, LeafYielder
from sqeval.vm.memory import CacheManager, make_cache_manager

Leaves = Union[LeafYielder, Mapping]


@dataclass
class EvalResult:
    """
    Result of an evaluation.

    Attributes:
        value: Numeric result
        layout: Index layout of value
        plan: Plan that was evaluated
        stats: Snapshot of the evaluator counters after this evaluation
    """
    value: np.ndarray
    layout: Layout
    plan: Plan
    stats: EvalStats


def _yielder(leaves: Leaves, config: EvalConfig) -> LeafYielder:
    if isinstance(leaves, Mapping):
        return LeafStore.from_mapping(leaves, config)
    if callable(leaves):
        return leaves
    raise TypeError(f"leaves must be a mapping or a callable, got {type(leaves).__name__}")


def evaluate_expr(
    expr: Expr,
    leaves: Leaves,
    *,
    config: Optional[EvalConfig] = None,
    backend: Optional[TensorBackend] = None,
    cache: Optional[CacheManager] = None,
    target_layout: Optional[Layout] = None,
    combinator: Combinator = left_fold,
) -> EvalResult:
    """
    Evaluate one expression.

    Args:
        expr: Expression tree
        leaves: Leaf yielder, or a mapping {(label, spaces): array}
        config: Index convention with extents
        backend: Tensor backend (float64 numpy if None)
        cache: Cache to use (a fresh one if None)
        target_layout: Requested result layout
        combinator: Pairing strategy for the binarizer

    Returns:
        EvalResult

    Example:
        >>> cfg = default_config(nocc=2, nvirt=3)
        >>> g = tensor("g", "i_1 i_2", "a_1 a_2", config=cfg)
        >>> t = tensor("t", "i_1 i_2", "a_1 a_2", config=cfg)
        >>> res = evaluate_expr(Sum((g, t)), {("g", "oovv"): G, ("t", "oovv"): T}, config=cfg)
    """
    cfg = resolve_config(config)
    plan = binarize(expr, cfg, combinator=combinator)
    ev = Evaluator(backend=backend, cache=cache, config=cfg)
    value = ev.evaluate(plan, _yielder(leaves, cfg), target_layout)
    layout = target_layout if target_layout is not None else plan.output_layout
    return EvalResult(value=value, layout=layout, plan=plan, stats=dataclasses.replace(ev.stats))


def evaluate_many(
    exprs: Sequence[Expr],
    leaves: Leaves,
    *,
    config: Optional[EvalConfig] = None,
    backend: Optional[TensorBackend] = None,
    persist_leaves: bool = True,
    combinator: Combinator = left_fold,
) -> List[EvalResult]:
    """
    Evaluate several expressions through one shared cache.

    Identical subexpressions across the expressions are computed once.
    """
    cfg = resolve_config(config)
    plans = [binarize(e, cfg, combinator=combinator) for e in exprs]
    ev = Evaluator(backend=backend, cache=make_cache_manager(plans, persist_leaves), config=cfg)
    yielder = _yielder(leaves, cfg)
    out = []
    for plan in plans:
        value = ev.evaluate(plan, yielder)
        out.append(EvalResult(value, plan.output_layout, plan, dataclasses.replace(ev.stats)))
    return out
