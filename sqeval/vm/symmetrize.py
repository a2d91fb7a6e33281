"""
sqeval/vm/symmetrize.py

Permutation-based (anti)symmetrization of evaluated tensors.

A tensor with rank bra slots followed by rank ket slots is projected by
explicit summation over slot permutations. Cost is factorial in rank.
"""

from __future__ import annotations

import itertools
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np

from sqeval.ir.schema import PermutationPolicy
from sqeval.vm.backend import TensorBackend


def permutation_parity(perm: Sequence[int]) -> int:
    """
    Parity of a permutation of 0..n-1: +1 for even, -1 for odd.

    Counted by cycle decomposition.
    """
    perm = list(perm)
    n = len(perm)
    if sorted(perm) != list(range(n)):
        raise ValueError(f"Not a permutation: {perm}")
    seen = [False] * n
    sign = 1
    for start in range(n):
        if seen[start]:
            continue
        length = 0
        k = start
        while not seen[k]:
            seen[k] = True
            k = perm[k]
            length += 1
        if length % 2 == 0:
            sign = -sign
    return sign


def iter_permutations(
    rank: int,
    policy: PermutationPolicy = PermutationPolicy.INDEPENDENT,
) -> Iterator[Tuple[Tuple[int, ...], int]]:
    """
    Yield (axes, sign) over the 2*rank output slots.

    INDEPENDENT: bra and ket permuted separately, (rank!)^2 terms.
    JOINT: one permutation applied to bra and ket, rank! terms.
    """
    if rank < 0:
        raise ValueError(f"rank must be non-negative, got {rank}")
    perms = list(itertools.permutations(range(rank)))
    if policy == PermutationPolicy.JOINT:
        for p in perms:
            yield tuple(p) + tuple(rank + k for k in p), permutation_parity(p)
    elif policy == PermutationPolicy.INDEPENDENT:
        for pb in perms:
            sb = permutation_parity(pb)
            for pk in perms:
                yield tuple(pb) + tuple(rank + k for k in pk), sb * permutation_parity(pk)
    else:
        raise ValueError(f"Unknown permutation policy {policy}")


def _accumulate(
    arr: np.ndarray,
    rank: int,
    backend: TensorBackend,
    policy: PermutationPolicy,
    signed: bool,
) -> np.ndarray:
    if arr.ndim != 2 * rank:
        raise ValueError(f"Array of ndim {arr.ndim} does not have {rank} bra and {rank} ket slots")
    acc: Optional[np.ndarray] = None
    for axes, sign in iter_permutations(rank, policy):
        term = backend.transpose(arr, axes)
        if signed and sign < 0:
            term = backend.scale(term, -1)
        acc = backend.asarray(term) if acc is None else backend.add(acc, term)
    return acc


def antisymmetrize(
    arr: np.ndarray,
    rank: int,
    backend: TensorBackend,
    policy: PermutationPolicy = PermutationPolicy.INDEPENDENT,
) -> np.ndarray:
    """Sum of sign(pi) * arr permuted by pi over all slot permutations."""
    return _accumulate(arr, rank, backend, policy, signed=True)


def symmetrize(
    arr: np.ndarray,
    rank: int,
    backend: TensorBackend,
    policy: PermutationPolicy = PermutationPolicy.JOINT,
) -> np.ndarray:
    """Unsigned sum of arr over all slot permutations."""
    return _accumulate(arr, rank, backend, policy, signed=False)
