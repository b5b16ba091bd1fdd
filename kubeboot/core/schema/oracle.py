"""Oracle protocol for validation functions."""

from typing import Any, List, Protocol

from kubeboot.core.schema.violation import Violation


class Oracle(Protocol):
    """Validation function interface.

    An oracle is a callable that checks a set of manifests and returns a list
    of violations. Multiple oracles are combined to check different aspects
    (syntax, structure, API schema).

    Example:
        def replicas_oracle(artifact: ManifestArtifact) -> List[Violation]:
            violations = []
            # ... validation logic ...
            return violations
    """

    def __call__(self, artifact: Any) -> List[Violation]:
        """Check artifact and return violations.

        Args:
            artifact: The manifests to check

        Returns:
            List of violations found. Empty list if the artifact passes.
        """
        ...
