"""Patch DSL for field-setting programs.

This module defines the core patch data structures used throughout kubeboot.
A patch is an ordered list of field-setting operations applied to a freshly
generated manifest, replacing the hand edits one would otherwise make after
``kubectl create ... --dry-run=client -o yaml``.

Transport Format
----------------

Patches are serialized to JSON or YAML using a small envelope format:

Example::

    {
      "ops": [
        { "op": "SetResources", "args": { "limits": { "cpu": "100m", "memory": "256Mi" } } },
        { "op": "AddVolume", "args": { "name": "frontend-data", "configMap": { "name": "frontend-data" } } }
      ],
      "meta": { "source": "frontend" }
    }

The envelope contains:

- ops: List of patch operations to apply sequentially
- meta: Optional metadata (source recipe, author, etc.)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class PatchOp:
    """Single atomic patch operation.

    The operations available are defined in ``kubeboot.k8s.patch_dsl``
    (SetReplicas, SetImage, SetResources, AddVolumeMount, ...).

    Attributes:
        op: Operation name (e.g., "SetReplicas")
        args: Operation-specific arguments as a dictionary
    """

    op: str
    args: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"op": self.op, "args": dict(self.args)}


@dataclass
class Patch:
    """Ordered sequence of field-setting operations.

    Attributes:
        ops: List of patch operations to apply sequentially
        meta: Optional metadata dictionary
    """

    ops: List[PatchOp] = field(default_factory=list)
    meta: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert patch to its transport envelope."""
        data: Dict[str, Any] = {"ops": [op.to_dict() for op in self.ops]}
        if self.meta:
            data["meta"] = dict(self.meta)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Patch":
        """Build a patch from its transport envelope.

        Raises:
            ValueError: If the envelope is malformed
        """
        if not isinstance(data, dict) or not isinstance(data.get("ops", []), list):
            raise ValueError("Patch envelope must be a mapping with an 'ops' list")

        ops = []
        for i, raw in enumerate(data.get("ops", [])):
            if not isinstance(raw, dict) or "op" not in raw:
                raise ValueError(f"Patch op #{i} must be a mapping with an 'op' key")
            args = raw.get("args") or {}
            if not isinstance(args, dict):
                raise ValueError(f"Patch op #{i} ({raw['op']}) args must be a mapping")
            ops.append(PatchOp(str(raw["op"]), dict(args)))

        return cls(ops=ops, meta=data.get("meta"))

    def extend(self, other: "Patch") -> "Patch":
        """Return a new patch running this patch's ops followed by other's."""
        return Patch(ops=list(self.ops) + list(other.ops), meta=self.meta)
