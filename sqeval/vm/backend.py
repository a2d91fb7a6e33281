"""
sqeval/vm/backend.py

Numeric tensor backend interface for the evaluator.

A backend is a frozen bundle of callables, so that alternative array
libraries can be plugged in without subclassing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence, Tuple

import numpy as np


@dataclass(frozen=True)
class TensorBackend:
    """
    Array operations consumed by the evaluator.

    Attributes:
        name: Identifier for the backend
        dtype: Numpy dtype of produced arrays
        is_complex: Whether values may carry an imaginary part
        zeros: Factory for a zero-filled array of a shape
        scalar_one: Factory for the rank-0 multiplicative identity
        einsum: Einstein-summation contraction
        transpose: Axis permutation
        scale: Multiply an array by a scalar
        add: Elementwise addition of equally shaped arrays
        asarray: Convert leaf data to the backend's dtype
    """
    name: str
    dtype: np.dtype
    is_complex: bool
    zeros: Callable[[Tuple[int, ...]], np.ndarray]
    scalar_one: Callable[[], np.ndarray]
    einsum: Callable[..., np.ndarray]
    transpose: Callable[[np.ndarray, Sequence[int]], np.ndarray]
    scale: Callable[[np.ndarray, complex], np.ndarray]
    add: Callable[[np.ndarray, np.ndarray], np.ndarray]
    asarray: Callable[[np.ndarray], np.ndarray]


def numpy_backend(dtype: type = np.float64) -> TensorBackend:
    """Create a numpy backend for the given dtype."""
    dt = np.dtype(dtype)

    def _einsum(subscripts: str, *ops: np.ndarray) -> np.ndarray:
        return np.einsum(subscripts, *ops, optimize=len(ops) > 1)

    def _asarray(x: np.ndarray) -> np.ndarray:
        return np.asarray(x, dtype=dt)

    return TensorBackend(
        name=f"numpy[{dt.name}]",
        dtype=dt,
        is_complex=np.issubdtype(dt, np.complexfloating),
        zeros=lambda shape: np.zeros(shape, dtype=dt),
        scalar_one=lambda: np.ones((), dtype=dt),
        einsum=_einsum,
        transpose=lambda arr, axes: np.transpose(arr, axes=tuple(axes)),
        scale=lambda arr, s: np.multiply(arr, s, dtype=dt),
        add=lambda a, b: np.add(a, b, dtype=dt),
        asarray=_asarray,
    )


def complex_backend() -> TensorBackend:
    """Create a complex128 numpy backend."""
    return numpy_backend(np.complex128)
