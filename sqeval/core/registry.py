"""
sqeval/core/registry.py

Index-space registry: which label prefixes name which orbital space, and
how many orbitals each space holds.

Replaces any notion of a global index convention; a registry is carried
by EvalConfig and threaded through every entry point.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

from sqeval.expr.index import Index, IndexSpace

_PREFIX_RE = re.compile(r"^([A-Za-z]+)")

DEFAULT_PREFIXES: Dict[str, IndexSpace] = {
    **{p: IndexSpace.OCCUPIED for p in "ijklmn"},
    **{p: IndexSpace.VIRTUAL for p in "abcdef"},
}


@dataclass(frozen=True)
class IndexSpaceRegistry:
    """
    Registry mapping index labels to spaces and spaces to extents.

    Attributes:
        prefix_to_space: Label prefix (letters before "_" or digits) -> space
        extents: Space -> number of orbitals
    """
    prefix_to_space: Dict[str, IndexSpace] = field(
        default_factory=lambda: dict(DEFAULT_PREFIXES)
    )
    extents: Dict[IndexSpace, int] = field(default_factory=dict)

    def __post_init__(self):
        for space, n in self.extents.items():
            if int(n) <= 0:
                raise ValueError(f"Extent of {space.name} must be positive, got {n}")

    @staticmethod
    def build(
        nocc: Optional[int] = None,
        nvirt: Optional[int] = None,
        prefixes: Optional[Dict[str, IndexSpace]] = None,
    ) -> "IndexSpaceRegistry":
        """
        Build a registry with the default occupied/virtual prefixes.

        Args:
            nocc: Number of occupied orbitals (None leaves it unset)
            nvirt: Number of virtual orbitals (None leaves it unset)
            prefixes: Optional replacement prefix table

        Returns:
            IndexSpaceRegistry
        """
        extents: Dict[IndexSpace, int] = {}
        if nocc is not None:
            extents[IndexSpace.OCCUPIED] = int(nocc)
        if nvirt is not None:
            extents[IndexSpace.VIRTUAL] = int(nvirt)
        return IndexSpaceRegistry(
            prefix_to_space=dict(prefixes if prefixes is not None else DEFAULT_PREFIXES),
            extents=extents,
        )

    def space_of(self, label: str) -> IndexSpace:
        """Get the space of an index label, e.g. "i_1" -> OCCUPIED."""
        m = _PREFIX_RE.match(label)
        if m is None or m.group(1) not in self.prefix_to_space:
            raise ValueError(f"Cannot infer index space of label {label!r}")
        return self.prefix_to_space[m.group(1)]

    def index(self, label: str) -> Index:
        """Make an Index from its label."""
        return Index(label, self.space_of(label))

    def extent(self, space: IndexSpace) -> int:
        """Get the number of orbitals in a space."""
        if space not in self.extents:
            raise KeyError(f"No extent registered for space {space.name}")
        return self.extents[space]

    def shape_of(self, indices: Iterable[Index]) -> Tuple[int, ...]:
        """Get the array shape spanned by a sequence of indices."""
        return tuple(self.extent(idx.space) for idx in indices)

    def offset(self, space: IndexSpace) -> int:
        """Offset of a space inside the full orbital range (occupied first)."""
        if space == IndexSpace.OCCUPIED:
            return 0
        return self.extent(IndexSpace.OCCUPIED)

    @property
    def norb(self) -> int:
        """Total number of orbitals."""
        return sum(self.extents.values())
