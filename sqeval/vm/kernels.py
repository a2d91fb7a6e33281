"""
sqeval/vm/kernels.py

Kernel operations for the evaluator.

Core operations:
- vm_contract: Einstein contraction of two operands by index identity
- vm_add: Sum of two operands after re-annotation to a common layout
"""

from __future__ import annotations

import string
from typing import Dict

import numpy as np

from sqeval.expr.index import Index
from sqeval.ir.schema import Layout
from sqeval.vm.align import reannotate
from sqeval.vm.backend import TensorBackend

_LETTERS = string.ascii_letters


def einsum_subscripts(a: Layout, b: Layout, out: Layout) -> str:
    """
    Build einsum subscripts such as "ijab,abkl->ijkl" for two layouts.

    Raises:
        ValueError: If more than 52 distinct indices are involved
    """
    letters: Dict[Index, str] = {}
    for idx in a.indices + b.indices + out.indices:
        if idx not in letters:
            if len(letters) == len(_LETTERS):
                raise ValueError("Too many distinct indices for einsum")
            letters[idx] = _LETTERS[len(letters)]

    def word(layout: Layout) -> str:
        return "".join(letters[i] for i in layout.indices)

    return f"{word(a)},{word(b)}->{word(out)}"


def vm_contract(
    backend: TensorBackend,
    a: np.ndarray,
    la: Layout,
    b: np.ndarray,
    lb: Layout,
    out: Layout,
    factor: complex = 1,
) -> np.ndarray:
    """
    Contract a and b over shared indices into layout out, times factor.

    Args:
        backend: Tensor backend
        a, b: Operand arrays
        la, lb: Operand layouts
        out: Output layout (free indices of la and lb)
        factor: Scalar applied to the result

    Returns:
        Contracted array
    """
    res = backend.einsum(einsum_subscripts(la, lb, out), a, b)
    if factor != 1:
        res = backend.scale(res, factor)
    return backend.asarray(res)


def vm_add(
    backend: TensorBackend,
    a: np.ndarray,
    la: Layout,
    fa: complex,
    b: np.ndarray,
    lb: Layout,
    fb: complex,
    out: Layout,
) -> np.ndarray:
    """Compute fa * a + fb * b with both operands re-annotated to out."""
    a_out = reannotate(a, la, out, backend)
    b_out = reannotate(b, lb, out, backend)
    if fa != 1:
        a_out = backend.scale(a_out, fa)
    if fb != 1:
        b_out = backend.scale(b_out, fb)
    return backend.add(a_out, b_out)
