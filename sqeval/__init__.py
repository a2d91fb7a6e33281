"""
sqeval: Evaluation of second-quantized tensor-contraction expressions

Plans, caches and evaluates large sums of tensor products such as
coupled-cluster amplitude equations, and factors out shared work.

Key components:
- core: Configuration, index-space registry, errors and logging
- expr: Indices, indexed tensors and expression trees
- ir: Evaluation-plan schema
- compiler: Binarization and structural fingerprints
- vm: Backends, kernels, cache and evaluator
- topology: Contraction graphs and common-subnetwork factorization
- runtime: Leaf stores and iteration scheduling
"""

__version__ = "0.1.0"

from sqeval.core import (
    ComplexNarrowingError,
    DuplicateStoreError,
    EvalConfig,
    IndexSpaceRegistry,
    MalformedCombinationError,
    MissingLeafError,
    ShapeMismatchError,
    SqevalError,
    default_config,
    enable_console_logging,
)
from sqeval.expr import (
    BraKetSymmetry,
    Constant,
    Index,
    IndexedTensor,
    IndexSpace,
    Product,
    Sum,
    Symmetry,
    tensor,
)
from sqeval.ir import Layout, NodeKind, PermutationPolicy, Plan, PlanNode
from sqeval.compiler import balanced_fold, binarize, fingerprint_tensor, hash_node, left_fold, ops_count
from sqeval.vm import (
    CacheManager,
    EvalStats,
    Evaluator,
    TensorBackend,
    complex_backend,
    make_cache_manager,
    numpy_backend,
)
from sqeval.topology import contraction_graph, factorize_sum, hoist_common, largest_common_subnet
from sqeval.runtime import LeafStore, evaluate_plans, iterate
from sqeval.engine import EvalResult, evaluate_expr, evaluate_many

__all__ = [
    # Errors
    "SqevalError",
    "ComplexNarrowingError",
    "DuplicateStoreError",
    "MalformedCombinationError",
    "MissingLeafError",
    "ShapeMismatchError",
    # Configuration
    "EvalConfig",
    "IndexSpaceRegistry",
    "default_config",
    "enable_console_logging",
    # Expressions
    "BraKetSymmetry",
    "Constant",
    "Index",
    "IndexedTensor",
    "IndexSpace",
    "Product",
    "Sum",
    "Symmetry",
    "tensor",
    # Plans
    "Layout",
    "NodeKind",
    "PermutationPolicy",
    "Plan",
    "PlanNode",
    "balanced_fold",
    "binarize",
    "fingerprint_tensor",
    "hash_node",
    "left_fold",
    "ops_count",
    # Evaluation
    "CacheManager",
    "EvalStats",
    "Evaluator",
    "TensorBackend",
    "complex_backend",
    "make_cache_manager",
    "numpy_backend",
    "LeafStore",
    "evaluate_plans",
    "iterate",
    "EvalResult",
    "evaluate_expr",
    "evaluate_many",
    # Factorization
    "contraction_graph",
    "factorize_sum",
    "hoist_common",
    "largest_common_subnet",
]
