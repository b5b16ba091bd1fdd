"""
Core schema definitions for violations, patches, and oracles.
"""

from kubeboot.core.schema.oracle import Oracle
from kubeboot.core.schema.patch_dsl import Patch, PatchOp
from kubeboot.core.schema.violation import Violation, is_blocking

__all__ = [
    "Oracle",
    "Patch",
    "PatchOp",
    "Violation",
    "is_blocking",
]
