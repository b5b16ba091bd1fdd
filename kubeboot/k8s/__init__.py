"""Kubernetes (K8s) specifics for kubeboot.

- kubectl / generator: dry-run rendering of base objects
- ManifestArtifact: YAML manifest files
- patch_dsl: field-setting operations
- merge: fragment merging
- oracles: syntax, structure and schema validation
"""
