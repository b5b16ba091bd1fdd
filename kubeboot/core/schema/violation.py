"""Violation model for representing manifest validation findings."""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

SEVERITIES = ("error", "warning", "info")


@dataclass
class Violation:
    """Represents a problem found in a manifest.

    Violations are returned by oracles during validation and contain
    information about what went wrong and where it occurred.

    Attributes:
        id: Identifier for the violation kind (e.g., "syntax.MISSING_KIND")
        message: Human-readable description of the violation
        path: Location path as list of strings (e.g., ["deploy.yaml", "spec", "replicas"])
        severity: Severity level - "error", "warning", or "info"
        evidence: Optional data supporting the finding
    """

    id: str
    message: str
    path: List[str]
    severity: str = "error"
    evidence: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.severity not in SEVERITIES:
            raise ValueError(f"Invalid severity '{self.severity}', expected one of {SEVERITIES}")

    @property
    def is_blocking(self) -> bool:
        return self.severity == "error"

    def to_dict(self) -> Dict[str, Any]:
        """Convert violation to JSON-serializable dict."""
        result: Dict[str, Any] = {
            "id": self.id,
            "message": self.message,
            "path": list(self.path),
            "severity": self.severity,
        }
        if self.evidence is not None:
            result["evidence"] = dict(self.evidence)
        return result

    def __str__(self) -> str:
        location = "/".join(str(p) for p in self.path)
        return f"[{self.severity}] {self.id} at {location}: {self.message}"


def is_blocking(violations: Iterable[Violation]) -> bool:
    """Return True when any violation has severity "error"."""
    return any(v.is_blocking for v in violations)
