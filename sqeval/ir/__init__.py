"""
Evaluation-plan intermediate representation.
"""

from sqeval.ir.schema import (
    Fingerprint,
    Handle,
    Layout,
    NodeKind,
    PermutationPolicy,
    Plan,
    PlanNode,
    PostProcess,
    SymmetrizeRequest,
)

__all__ = [
    "Fingerprint",
    "Handle",
    "Layout",
    "NodeKind",
    "PermutationPolicy",
    "Plan",
    "PlanNode",
    "PostProcess",
    "SymmetrizeRequest",
]
