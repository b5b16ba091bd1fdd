"""
kubeboot: bootstrap declarative Kubernetes manifests from imperative commands.

Runs kubectl's generators in dry-run mode, sets fields on the result, merges
hand-authored YAML fragments (volumes, mounts, ...), validates the outcome,
and writes it to files ready for ``kubectl apply``.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
