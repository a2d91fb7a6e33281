"""
sqeval/expr/index.py

Index spaces and indices.

Key types:
- IndexSpace: OCCUPIED or VIRTUAL orbital space
- Index: a labelled index living in one space, optionally carrying
  dependent proto-indices
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Tuple


class IndexSpace(Enum):
    """Orbital space an index runs over."""
    OCCUPIED = "o"
    VIRTUAL = "v"


@dataclass(frozen=True)
class Index:
    """
    A tensor index.

    Two indices are the same index iff label and proto-indices agree; the
    space is carried along so that shapes can be derived from a layout.

    Attributes:
        label: Index name, e.g. "i_1" or "a_3"
        space: Space the index runs over
        proto: Dependent proto-indices (empty for ordinary indices)
    """
    label: str
    space: IndexSpace
    proto: Tuple["Index", ...] = ()

    def __post_init__(self):
        if not self.label:
            raise ValueError("Index label must be non-empty")
        if not isinstance(self.proto, tuple):
            object.__setattr__(self, "proto", tuple(self.proto))

    @property
    def full_label(self) -> str:
        """Label including proto-indices, e.g. "a_1<i_1,i_2>"."""
        if not self.proto:
            return self.label
        return f"{self.label}<{','.join(p.full_label for p in self.proto)}>"

    def __repr__(self) -> str:
        return f"Index({self.full_label}:{self.space.value})"


def space_string(indices: Tuple[Index, ...]) -> str:
    """Compact space signature, e.g. "oovv"."""
    return "".join(idx.space.value for idx in indices)
