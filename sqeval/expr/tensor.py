"""
sqeval/expr/tensor.py

Indexed tensors: the leaves of every expression.

Key types:
- Symmetry: permutational symmetry of the slots inside bra and inside ket
- BraKetSymmetry: relation between the bra and the ket group
- IndexedTensor: immutable labelled tensor with ordered bra/ket indices
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from sqeval.expr.index import Index, space_string


class Symmetry(Enum):
    NONSYMMETRIC = "nonsymmetric"
    SYMMETRIC = "symmetric"
    ANTISYMMETRIC = "antisymmetric"


class BraKetSymmetry(Enum):
    """How a tensor relates to its bra/ket-swapped counterpart."""
    DISTINCT = "distinct"
    SYMMETRIC = "symmetric"
    CONJUGATE = "conjugate"


@dataclass(frozen=True)
class IndexedTensor:
    """
    A labelled tensor with an ordered bra and ordered ket index group.

    Attributes:
        label: Tensor name, e.g. "t" or "g"
        bra: Ordered bra indices
        ket: Ordered ket indices
        symmetry: Slot symmetry within each group
        braket: Relation between bra and ket groups
    """
    label: str
    bra: Tuple[Index, ...]
    ket: Tuple[Index, ...]
    symmetry: Symmetry = Symmetry.NONSYMMETRIC
    braket: BraKetSymmetry = BraKetSymmetry.DISTINCT

    def __post_init__(self):
        if not self.label:
            raise ValueError("Tensor label must be non-empty")
        object.__setattr__(self, "bra", tuple(self.bra))
        object.__setattr__(self, "ket", tuple(self.ket))

    @property
    def indices(self) -> Tuple[Index, ...]:
        return self.bra + self.ket

    @property
    def rank(self) -> int:
        """Number of bra slots (equal to the ket slots for well-formed tensors)."""
        return len(self.bra)

    @property
    def signature(self) -> str:
        """Space signature, e.g. "oovv" for t(i,j | a,b)."""
        return space_string(self.bra) + space_string(self.ket)

    def adjoint(self) -> "IndexedTensor":
        """Same tensor with bra and ket swapped."""
        return IndexedTensor(self.label, self.ket, self.bra, self.symmetry, self.braket)

    def __repr__(self) -> str:
        bra = ",".join(i.full_label for i in self.bra)
        ket = ",".join(i.full_label for i in self.ket)
        return f"{self.label}({bra}|{ket})"
