"""
sqeval/runtime/leaves.py

Leaf stores: the stock leaf yielder.

Arrays are registered per (label, bra spaces, ket spaces) block, e.g.
("t", "oo", "vv"), or as one full-orbital array sliced per request.
"""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional, Tuple, Union

import numpy as np

from sqeval.core.config import EvalConfig, resolve_config
from sqeval.core.errors import MissingLeafError, ShapeMismatchError
from sqeval.expr.index import IndexSpace, space_string
from sqeval.expr.tensor import BraKetSymmetry, IndexedTensor

logger = logging.getLogger(__name__)

LeafKey = Tuple[str, str, str]

_SPACES = {s.value: s for s in IndexSpace}


def split_spaces(spaces: str) -> Tuple[str, str]:
    """Split a space signature into bra and ket halves, "oovv" -> ("oo", "vv")."""
    if len(spaces) % 2:
        raise ValueError(f"Space signature {spaces!r} has odd length; pass bra and ket separately")
    half = len(spaces) // 2
    return spaces[:half], spaces[half:]


class LeafStore:
    """
    Registry of leaf arrays, callable as a leaf yielder.

    Lookup order for a tensor t with bra spaces B and ket spaces K:
    1. the block registered as (t.label, B, K)
    2. the slice (B, K) of a full array registered with register_blocked
    3. for symmetric or conjugate bra-ket relations, the block (t.label, K, B)
       with bra and ket axes exchanged (and conjugated for CONJUGATE)
    """

    def __init__(self, config: Optional[EvalConfig] = None):
        self.config = resolve_config(config)
        self.blocks: Dict[LeafKey, np.ndarray] = {}
        self.full: Dict[str, np.ndarray] = {}

    def _check_spaces(self, spaces: str) -> None:
        bad = [c for c in spaces if c not in _SPACES]
        if bad:
            raise ValueError(f"Unknown space codes {bad} in {spaces!r}")

    def _shape(self, spaces: str) -> Tuple[int, ...]:
        reg = self.config.registry
        return tuple(reg.extent(_SPACES[c]) for c in spaces)

    def register(
        self,
        label: str,
        spaces: str,
        array: np.ndarray,
        ket: Optional[str] = None,
        *,
        overwrite: bool = False,
    ) -> None:
        """
        Register one block.

        Args:
            label: Tensor label
            spaces: Full signature ("oovv") or, with ket given, the bra spaces
            array: Block data, axes ordered bra then ket
            ket: Ket spaces when spaces holds only the bra
            overwrite: Replace an existing block instead of raising

        Raises:
            ShapeMismatchError: If array does not match the space extents
            ValueError: Duplicate registration without overwrite
        """
        bra, ket = split_spaces(spaces) if ket is None else (spaces, ket)
        self._check_spaces(bra + ket)
        arr = np.asarray(array)
        expected = self._shape(bra + ket)
        if arr.shape != expected:
            raise ShapeMismatchError(
                f"Leaf {label}[{bra}|{ket}] has shape {arr.shape}, expected {expected}"
            )
        key = (label, bra, ket)
        if key in self.blocks and not overwrite:
            raise ValueError(f"Leaf block {key} already registered")
        self.blocks[key] = arr

    def register_blocked(self, label: str, array: np.ndarray, *, overwrite: bool = False) -> None:
        """
        Register an array spanning all orbitals (occupied first) on every axis.

        Blocks are sliced from it on request.
        """
        arr = np.asarray(array)
        norb = self.config.registry.norb
        if any(n != norb for n in arr.shape):
            raise ShapeMismatchError(
                f"Full array for {label} has shape {arr.shape}, expected all axes {norb}"
            )
        if label in self.full and not overwrite:
            raise ValueError(f"Full array for {label} already registered")
        self.full[label] = arr

    @classmethod
    def from_mapping(cls, mapping: Mapping, config: Optional[EvalConfig] = None) -> "LeafStore":
        """
        Build a store from {(label, spaces): array} or {(label, bra, ket): array}.
        """
        store = cls(config)
        for key, arr in mapping.items():
            if len(key) == 2:
                store.register(key[0], key[1], arr)
            elif len(key) == 3:
                store.register(key[0], key[1], arr, ket=key[2])
            else:
                raise ValueError(f"Leaf key must be (label, spaces) or (label, bra, ket), got {key!r}")
        return store

    def _slice(self, full: np.ndarray, spaces: str) -> np.ndarray:
        reg = self.config.registry
        sl = []
        for c in spaces:
            space = _SPACES[c]
            start = reg.offset(space)
            sl.append(slice(start, start + reg.extent(space)))
        return full[tuple(sl)]

    def lookup(self, label: str, bra: str, ket: str) -> Optional[np.ndarray]:
        """Exact or sliced block, None when absent."""
        arr = self.blocks.get((label, bra, ket))
        if arr is not None:
            return arr
        full = self.full.get(label)
        if full is not None and full.ndim == len(bra) + len(ket):
            return self._slice(full, bra + ket)
        return None

    def __call__(self, tensor: IndexedTensor) -> np.ndarray:
        bra, ket = space_string(tensor.bra), space_string(tensor.ket)
        arr = self.lookup(tensor.label, bra, ket)
        if arr is not None:
            return arr

        if tensor.braket in (BraKetSymmetry.SYMMETRIC, BraKetSymmetry.CONJUGATE):
            swapped = self.lookup(tensor.label, ket, bra)
            if swapped is not None:
                nb, nk = len(ket), len(bra)
                axes = list(range(nb, nb + nk)) + list(range(nb))
                arr = np.transpose(swapped, axes)
                if tensor.braket == BraKetSymmetry.CONJUGATE and np.iscomplexobj(arr):
                    arr = np.conj(arr)
                logger.debug("Serving %r from swapped block [%s|%s]", tensor, ket, bra)
                return arr

        raise MissingLeafError(f"No data registered for leaf {tensor!r} [{bra}|{ket}]")

    def __contains__(self, key: Union[LeafKey, str]) -> bool:
        if isinstance(key, str):
            return key in self.full or any(k[0] == key for k in self.blocks)
        return key in self.blocks

    def __len__(self) -> int:
        return len(self.blocks) + len(self.full)
