"""Shared helpers for navigating manifests.

These helpers are used by the patch operations and the oracles to reach
pod specs and containers without repeating the nested lookups.
"""

from typing import Any, Iterator, List, Optional

from kubeboot.k8s.constants import WORKLOAD_KINDS


def get_pod_spec(manifest: dict, create: bool = False) -> Optional[dict]:
    """Return the pod spec of a workload or Pod manifest.

    Args:
        manifest: Kubernetes manifest dict
        create: Create missing intermediate mappings instead of returning None

    Returns:
        The pod spec mapping, or None if the kind has no pod spec
    """
    kind = manifest.get("kind")
    if kind == "Pod":
        if create:
            return manifest.setdefault("spec", {})
        return manifest.get("spec")
    if kind not in WORKLOAD_KINDS:
        return None
    if create:
        return (manifest.setdefault("spec", {})
                .setdefault("template", {})
                .setdefault("spec", {}))
    return manifest.get("spec", {}).get("template", {}).get("spec")


def get_containers(manifest: dict) -> list:
    """Extract containers list from a workload or Pod manifest.

    Args:
        manifest: Kubernetes manifest dict

    Returns:
        List of container dicts, empty list if not found
    """
    pod_spec = get_pod_spec(manifest)
    if not pod_spec:
        return []
    return pod_spec.get("containers", []) or []


def iter_manifests(doc: Any) -> Iterator[dict]:
    """Yield the document itself, or each item when it is a ``kind: List``."""
    if not isinstance(doc, dict):
        return
    if doc.get("kind") == "List":
        for item in doc.get("items", []) or []:
            if isinstance(item, dict):
                yield item
    else:
        yield doc


def select_containers(manifest: dict, name: Optional[str]) -> List[dict]:
    """Return containers matching ``name``, or all containers when name is None."""
    containers = get_containers(manifest)
    if name is None:
        return list(containers)
    return [c for c in containers if c.get("name") == name]


def upsert_named(items: list, item: dict, key: str = "name") -> dict:
    """Replace the entry with the same ``key`` value in ``items``, or append.

    Returns:
        The stored item
    """
    for i, existing in enumerate(items):
        if isinstance(existing, dict) and existing.get(key) == item.get(key):
            items[i] = item
            return item
    items.append(item)
    return item
