"""
Expression data model: indices, indexed tensors and expression trees.
"""

from sqeval.expr.index import Index, IndexSpace, space_string
from sqeval.expr.tensor import BraKetSymmetry, IndexedTensor, Symmetry
from sqeval.expr.nodes import Constant, Expr, Product, Sum, tensor

__all__ = [
    "Index",
    "IndexSpace",
    "space_string",
    "BraKetSymmetry",
    "IndexedTensor",
    "Symmetry",
    "Constant",
    "Expr",
    "Product",
    "Sum",
    "tensor",
]
