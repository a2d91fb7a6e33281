"""
sqeval/vm/align.py

Re-annotation of arrays between layouts.

Alignment is keyed by Index identity (label plus proto-indices), never by
position, and is always a pure axis permutation.
"""

from __future__ import annotations

from collections import Counter
from typing import List, Optional

import numpy as np

from sqeval.core.errors import MalformedCombinationError
from sqeval.ir.schema import Layout
from sqeval.vm.backend import TensorBackend


def permutation_between(from_layout: Layout, to_layout: Layout) -> List[int]:
    """
    Axis order taking an array in from_layout to to_layout.

    Raises:
        MalformedCombinationError: If to_layout is not a permutation of from_layout
    """
    if Counter(from_layout.indices) != Counter(to_layout.indices):
        raise MalformedCombinationError(f"Cannot re-annotate {from_layout} as {to_layout}")
    pos = from_layout.positions()
    return [pos[idx] for idx in to_layout.indices]


def reannotate(
    arr: np.ndarray,
    from_layout: Layout,
    to_layout: Layout,
    backend: Optional[TensorBackend] = None,
) -> np.ndarray:
    """
    Transpose arr from from_layout to to_layout.

    Args:
        arr: Array whose axes follow from_layout
        from_layout: Current layout
        to_layout: Requested layout (same indices, any order and roles)
        backend: Backend providing transpose (numpy if None)

    Returns:
        Array whose axes follow to_layout
    """
    axes = permutation_between(from_layout, to_layout)
    if axes == list(range(len(axes))):
        return arr
    if backend is None:
        return np.transpose(arr, axes=axes)
    return backend.transpose(arr, axes)
