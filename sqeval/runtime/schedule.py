"""
sqeval/runtime/schedule.py

Evaluation scheduling over sets of plans.

iterate() implements the iteration contract of the cache: decaying
entries are reset before every pass, and any failure clears the cache
before it propagates.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from sqeval.ir.schema import Layout, Plan
from sqeval.vm.evaluator import Evaluator, LeafYielder

logger = logging.getLogger(__name__)

UpdateFn = Callable[[int, List[np.ndarray]], bool]


def evaluate_plans(
    plans: Sequence[Plan],
    evaluator: Evaluator,
    yielder: LeafYielder,
    *,
    target_layouts: Optional[Sequence[Optional[Layout]]] = None,
    antisymmetrize: bool = False,
) -> List[np.ndarray]:
    """
    Evaluate plans in order through one evaluator (and so one cache).

    Args:
        plans: Plans to evaluate
        evaluator: Evaluator holding the shared cache
        yielder: Leaf data provider
        target_layouts: Optional per-plan output layouts
        antisymmetrize: Antisymmetrize each sorted result over all output slots

    Returns:
        One array per plan
    """
    if target_layouts is not None and len(target_layouts) != len(plans):
        raise ValueError(f"Got {len(target_layouts)} target layouts for {len(plans)} plans")
    results = []
    for k, plan in enumerate(plans):
        if antisymmetrize:
            results.append(evaluator.evaluate_antisymmetric(plan, yielder))
        else:
            target = target_layouts[k] if target_layouts is not None else None
            results.append(evaluator.evaluate(plan, yielder, target))
    return results


def iterate(
    plans: Sequence[Plan],
    evaluator: Evaluator,
    yielder: LeafYielder,
    update: UpdateFn,
    *,
    max_iter: int = 100,
    antisymmetrize: bool = False,
) -> Tuple[int, List[np.ndarray]]:
    """
    Evaluate plans repeatedly until update() reports convergence.

    Before each pass decaying cache entries are dropped. update(iteration,
    results) is called after each pass, typically to re-register changed
    leaves, and returns True once converged.

    Returns:
        (number of passes run, results of the last pass)

    Raises:
        Whatever evaluation or update raises, after cache.reset_all()
    """
    if max_iter < 1:
        raise ValueError(f"max_iter must be >= 1, got {max_iter}")
    results: List[np.ndarray] = []
    for it in range(1, max_iter + 1):
        evaluator.cache.reset_decaying()
        try:
            results = evaluate_plans(plans, evaluator, yielder, antisymmetrize=antisymmetrize)
            converged = update(it, results)
        except Exception:
            logger.error("Iteration %d failed; clearing cache", it)
            evaluator.cache.reset_all()
            raise
        if converged:
            logger.info("Converged after %d iterations", it)
            return it, results
    logger.warning("No convergence after %d iterations", max_iter)
    return max_iter, results
