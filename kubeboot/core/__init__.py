"""
Core components for kubeboot.

This package contains the schemas, errors, configuration, recipe loading and
the bootstrap pipeline that ties the Kubernetes-specific modules together.
"""

__all__ = []
