"""
Evaluation runtime: backends, kernels, cache and evaluator.
"""

from sqeval.vm.backend import TensorBackend, complex_backend, numpy_backend
from sqeval.vm.align import permutation_between, reannotate
from sqeval.vm.kernels import einsum_subscripts, vm_add, vm_contract
from sqeval.vm.memory import CacheManager, Lifetime, make_cache_manager
from sqeval.vm.symmetrize import (
    antisymmetrize,
    iter_permutations,
    permutation_parity,
    symmetrize,
)
from sqeval.vm.evaluator import EvalStats, Evaluator, LeafYielder

__all__ = [
    "TensorBackend",
    "complex_backend",
    "numpy_backend",
    "permutation_between",
    "reannotate",
    "einsum_subscripts",
    "vm_add",
    "vm_contract",
    "CacheManager",
    "Lifetime",
    "make_cache_manager",
    "antisymmetrize",
    "iter_permutations",
    "permutation_parity",
    "symmetrize",
    "EvalStats",
    "Evaluator",
    "LeafYielder",
]
