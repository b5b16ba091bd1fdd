"""Exceptions raised while generating, transforming, and validating manifests."""

from typing import Any, List, Optional, Sequence


class KubebootError(Exception):
    """Base class for all kubeboot errors."""


class GeneratorError(KubebootError):
    """Raised when the external generator (kubectl) cannot produce output.

    This covers:
    - kubectl binary not found
    - kubectl timing out
    - kubectl exiting with a non-zero status
    - a generate request that cannot be turned into a command

    Attributes:
        message: Description of the failure
        command: Argument vector that was (or would have been) run
        returncode: Exit status of kubectl, if it ran
        stderr: Captured standard error, if any
    """

    def __init__(
        self,
        message: str,
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.command = list(command) if command is not None else None
        self.returncode = returncode
        self.stderr = stderr


class ManifestError(KubebootError):
    """Raised when input YAML cannot be read as Kubernetes manifests.

    Attributes:
        message: Description of the failure
        source: File name or label of the offending input (optional)
    """

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        super().__init__(message)
        self.source = source


class PatchApplyError(KubebootError):
    """Raised when a field-setting operation cannot be applied.

    Typical causes are an unknown operation name, a missing required
    argument, or a target (such as a named container) that does not exist.

    Attributes:
        message: Description of the failure
        patch_op: The PatchOp that failed (optional)
    """

    def __init__(self, message: str, patch_op: Optional[Any] = None) -> None:
        super().__init__(message)
        self.patch_op = patch_op


class MergeError(KubebootError):
    """Raised when a YAML fragment conflicts with the manifest it is merged into.

    Attributes:
        message: Description of the conflict
        path: Dotted path where the conflict was found
    """

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class ValidationFailed(KubebootError):
    """Raised when a generated manifest has blocking violations.

    Attributes:
        message: Summary of the failure
        violations: The violations reported by the oracles
    """

    def __init__(self, message: str, violations: Optional[List[Any]] = None) -> None:
        super().__init__(message)
        self.violations = list(violations or [])


class RecipeError(KubebootError):
    """Raised when a recipe file is malformed."""

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        super().__init__(message)
        self.source = source
