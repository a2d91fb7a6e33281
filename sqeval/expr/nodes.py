"""
sqeval/expr/nodes.py

Expression tree nodes.

An expression is one of IndexedTensor, Constant, Product or Sum. Consumers
dispatch with isinstance chains ending in TypeError.
"""

from __future__ import annotations

from dataclasses import dataclass
from numbers import Number
from typing import TYPE_CHECKING, Optional, Sequence, Tuple, Union

from sqeval.expr.index import Index
from sqeval.expr.tensor import BraKetSymmetry, IndexedTensor, Symmetry

if TYPE_CHECKING:
    from sqeval.core.config import EvalConfig

Scalar = Union[int, float, complex]


@dataclass(frozen=True)
class Constant:
    """A scalar expression."""
    value: Scalar = 1

    def __post_init__(self):
        if not isinstance(self.value, Number):
            raise TypeError(f"Constant value must be a number, got {type(self.value).__name__}")


@dataclass(frozen=True)
class Product:
    """
    Scalar times an ordered tuple of factors.

    Indices whose label repeats across factors are summed over.
    """
    factors: Tuple["Expr", ...]
    scalar: Scalar = 1

    def __post_init__(self):
        object.__setattr__(self, "factors", tuple(self.factors))
        if not isinstance(self.scalar, Number):
            raise TypeError(f"Product scalar must be a number, got {type(self.scalar).__name__}")


@dataclass(frozen=True)
class Sum:
    """An ordered collection of summands."""
    summands: Tuple["Expr", ...]

    def __post_init__(self):
        object.__setattr__(self, "summands", tuple(self.summands))
        if not self.summands:
            raise ValueError("Sum needs at least one summand")


Expr = Union[IndexedTensor, Constant, Product, Sum]


def _as_indices(labels: Union[str, Sequence[Union[str, Index]]], config: EvalConfig) -> Tuple[Index, ...]:
    if isinstance(labels, str):
        labels = [s for s in labels.replace(",", " ").split() if s]
    out = []
    for item in labels:
        if isinstance(item, Index):
            out.append(item)
        else:
            out.append(config.registry.index(item))
    return tuple(out)


def tensor(
    label: str,
    bra: Union[str, Sequence[Union[str, Index]]],
    ket: Union[str, Sequence[Union[str, Index]]],
    symmetry: Symmetry = Symmetry.NONSYMMETRIC,
    braket: BraKetSymmetry = BraKetSymmetry.DISTINCT,
    config: Optional[EvalConfig] = None,
) -> IndexedTensor:
    """
    Build an IndexedTensor from index labels.

    Labels may be given as a sequence or as one whitespace/comma separated
    string; spaces are inferred from the configuration's registry.

    Example:
        tensor("t", "i_1 i_2", "a_1 a_2")
    """
    from sqeval.core.config import resolve_config

    cfg = resolve_config(config)
    return IndexedTensor(
        label=label,
        bra=_as_indices(bra, cfg),
        ket=_as_indices(ket, cfg),
        symmetry=symmetry,
        braket=braket,
    )
