"""
sqeval/core/config.py

Evaluation configuration.

EvalConfig is the explicit convention value threaded through the
binarizer, hasher, evaluator and factorizer. Two evaluations under
different configurations never share state.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Optional, Tuple

from sqeval.core.registry import IndexSpaceRegistry


@dataclass(frozen=True)
class EvalConfig:
    """
    Convention and numeric settings for one family of evaluations.

    Attributes:
        registry: Index-space registry (label prefixes and extents)
        complex_valued: Whether complex conjugation is semantically tracked;
            decides whether conjugate bra-ket tensors may be swapped
        antisymmetrizer_label: Label of the antisymmetrizer operator tensor
        symmetrizer_label: Label of the symmetrizer operator tensor
    """
    registry: IndexSpaceRegistry = field(default_factory=IndexSpaceRegistry.build)
    complex_valued: bool = False
    antisymmetrizer_label: str = "A"
    symmetrizer_label: str = "S"

    def __post_init__(self):
        if not self.antisymmetrizer_label or not self.symmetrizer_label:
            raise ValueError("Operator labels must be non-empty")
        if self.antisymmetrizer_label == self.symmetrizer_label:
            raise ValueError(
                f"Antisymmetrizer and symmetrizer share label {self.antisymmetrizer_label!r}"
            )

    @property
    def operator_labels(self) -> Tuple[str, str]:
        """Labels of tensors that act as operators rather than data."""
        return (self.antisymmetrizer_label, self.symmetrizer_label)

    def with_sizes(self, nocc: int, nvirt: int) -> "EvalConfig":
        """Return a copy whose registry has the given space extents."""
        registry = IndexSpaceRegistry.build(
            nocc, nvirt, prefixes=self.registry.prefix_to_space
        )
        return dataclasses.replace(self, registry=registry)


def default_config(
    nocc: Optional[int] = None,
    nvirt: Optional[int] = None,
    *,
    complex_valued: bool = False,
) -> EvalConfig:
    """Build a fresh configuration with the default index convention."""
    return EvalConfig(
        registry=IndexSpaceRegistry.build(nocc, nvirt),
        complex_valued=complex_valued,
    )


def resolve_config(config: Optional[EvalConfig]) -> EvalConfig:
    """Return config, or a fresh default one."""
    return config if config is not None else default_config()
