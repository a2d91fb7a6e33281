"""
sqeval/vm/memory.py

Fingerprint-keyed cache for evaluated plan nodes.

The cache is the only authority on recomputation: callers access before
computing and store straight after. Stored arrays are returned as
read-only views and are shared by every reader.
"""

from __future__ import annotations

import logging
from collections import Counter
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

import numpy as np

from sqeval.core.errors import DuplicateStoreError
from sqeval.ir.schema import Fingerprint, Plan

logger = logging.getLogger(__name__)


class Lifetime(Enum):
    DECAYING = "decaying"      # intermediates, dropped between iterations
    PERSISTENT = "persistent"  # leaves, kept until reset_all


class CacheManager:
    """
    Cache of numeric values keyed by structural fingerprint.

    Args:
        persistent: Keys whose entries survive reset_decaying()
        lives: Optional number of reads after which an entry is released
    """

    def __init__(
        self,
        persistent: Iterable[Fingerprint] = (),
        lives: Optional[Mapping[Fingerprint, int]] = None,
    ):
        self.persistent: Set[Fingerprint] = set(persistent)
        self.lives: Dict[Fingerprint, int] = dict(lives or {})
        self.data: Dict[Fingerprint, np.ndarray] = {}
        self.life: Dict[Fingerprint, Lifetime] = {}
        self.remaining: Dict[Fingerprint, int] = dict(self.lives)

    def access(self, key: Fingerprint) -> Optional[np.ndarray]:
        """
        Get a stored value, or None on a miss.

        A hit on a key with a use count decrements it; the entry is released
        when the count reaches zero.
        """
        value = self.data.get(key)
        if value is None:
            return None
        if key in self.remaining:
            self.remaining[key] -= 1
            if self.remaining[key] <= 0:
                self.release(key)
        return value

    def store(self, key: Fingerprint, value: np.ndarray) -> np.ndarray:
        """
        Insert a value and return the stored read-only view.

        Raises:
            DuplicateStoreError: If the key is already present
        """
        if key in self.data:
            raise DuplicateStoreError(f"Fingerprint {key:016x} stored twice")
        view = np.asarray(value).view()
        view.flags.writeable = False
        self.data[key] = view
        self.life[key] = Lifetime.PERSISTENT if key in self.persistent else Lifetime.DECAYING
        return view

    def release(self, key: Fingerprint) -> None:
        self.data.pop(key, None)
        self.life.pop(key, None)

    def lifetime(self, key: Fingerprint) -> Optional[Lifetime]:
        """Lifetime tag of a stored key, None if absent."""
        return self.life.get(key)

    def reset_decaying(self) -> None:
        """Drop every decaying entry and restore use counts; persistent entries stay."""
        for key in [k for k, t in self.life.items() if t == Lifetime.DECAYING]:
            self.release(key)
        self.remaining = dict(self.lives)
        logger.debug("Cache reset_decaying: %d persistent entries kept", len(self.data))

    def reset_all(self) -> None:
        """Drop everything."""
        self.data.clear()
        self.life.clear()
        self.remaining = dict(self.lives)
        logger.debug("Cache reset_all")

    def keys(self) -> List[Fingerprint]:
        return list(self.data)

    def __contains__(self, key: Fingerprint) -> bool:
        return key in self.data

    def __len__(self) -> int:
        return len(self.data)


def _read_counts(plans: Sequence[Plan]) -> Counter:
    """
    Count reads per fingerprint in evaluation order.

    Mirrors the evaluator: a node whose fingerprint was already produced is
    read from the cache and its subtree is skipped.
    """
    reads: Counter = Counter()
    seen: Set[Fingerprint] = set()
    for plan in plans:
        stack = [plan.root]
        while stack:
            h = stack.pop()
            node = plan[h]
            if node.fingerprint in seen:
                reads[node.fingerprint] += 1
                continue
            seen.add(node.fingerprint)
            if node.is_internal:
                stack.append(node.right)
                stack.append(node.left)
    return reads


def make_cache_manager(
    plans: Sequence[Plan],
    persist_leaves: bool = True,
    volatile_labels: Iterable[str] = (),
) -> CacheManager:
    """
    Build a cache manager for a fixed set of plans.

    Leaf fingerprints become persistent (unless their label is listed in
    volatile_labels, e.g. amplitudes updated every iteration). Shared
    intermediates get a use count so that they are released after their
    last reader.

    Args:
        plans: Plans that will be evaluated, in evaluation order
        persist_leaves: Whether leaf values survive reset_decaying()
        volatile_labels: Leaf labels that must decay anyway

    Returns:
        CacheManager
    """
    volatile = set(volatile_labels)
    persistent: Set[Fingerprint] = set()
    if persist_leaves:
        for plan in plans:
            for leaf in plan.leaves():
                if leaf.tensor.label not in volatile:
                    persistent.add(leaf.fingerprint)

    reads = _read_counts(plans)
    lives = {fp: n for fp, n in reads.items() if fp not in persistent}
    logger.debug(
        "Cache manager for %d plans: %d persistent keys, %d counted keys",
        len(plans), len(persistent), len(lives),
    )
    return CacheManager(persistent=persistent, lives=lives)
