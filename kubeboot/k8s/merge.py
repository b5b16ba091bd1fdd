"""Merge hand-authored YAML fragments into generated manifests.

Merge rules:
- mappings merge recursively and fragment scalars override
- ``null`` in a fragment deletes the key
- lists of mappings merge item by item on a merge key (``name`` for
  containers, volumes and env; ``mountPath`` for volumeMounts;
  ``containerPort`` / ``port`` for ports); new items are appended
- any other list is replaced wholesale
- a mapping meeting a non-mapping at the same path is a MergeError
"""

import copy
import logging
from typing import Any, Dict, Iterable, List, Optional

from kubeboot.core.errors import MergeError
from kubeboot.k8s.utils import iter_manifests
from kubeboot.k8s.yamlio import dump_documents, load_documents

logger = logging.getLogger(__name__)

# Field name -> candidate merge keys, first one present on every item wins
MERGE_KEYS: Dict[str, List[str]] = {
    "containers": ["name"],
    "initContainers": ["name"],
    "ephemeralContainers": ["name"],
    "volumes": ["name"],
    "volumeMounts": ["mountPath"],
    "volumeDevices": ["devicePath"],
    "env": ["name"],
    "imagePullSecrets": ["name"],
    "ports": ["containerPort", "port", "name"],
    "hostAliases": ["ip"],
    "tolerations": ["key"],
}


def _merge_key(field: str, base_items: list, fragment_items: list) -> Optional[str]:
    items = list(base_items) + list(fragment_items)
    if not fragment_items or not all(isinstance(item, dict) for item in items):
        return None
    for key in MERGE_KEYS.get(field, ["name"]):
        if all(key in item for item in items):
            return key
    return None


def _join(path: str, key: Any) -> str:
    return f"{path}.{key}" if path else str(key)


def _merge_list(base: list, fragment: list, field: str, path: str) -> list:
    key = _merge_key(field, base, fragment)
    if key is None:
        return copy.deepcopy(fragment)

    for item in fragment:
        match = next((b for b in base if b.get(key) == item.get(key)), None)
        if match is None:
            base.append(copy.deepcopy(item))
        else:
            _merge_mapping(match, item, _join(path, f"[{key}={item.get(key)}]"))
    return base


def _merge_mapping(base: dict, fragment: dict, path: str = "") -> dict:
    for key, value in fragment.items():
        child_path = _join(path, key)

        if value is None:
            if key in base:
                del base[key]
            continue

        if key not in base or base[key] is None:
            base[key] = copy.deepcopy(value)
            continue

        current = base[key]
        if isinstance(current, dict) != isinstance(value, dict):
            raise MergeError(
                f"Cannot merge {type(value).__name__} into {type(current).__name__} at {child_path}",
                path=child_path,
            )

        if isinstance(value, dict):
            _merge_mapping(current, value, child_path)
        elif isinstance(value, list) and isinstance(current, list):
            base[key] = _merge_list(current, value, str(key), child_path)
        else:
            base[key] = copy.deepcopy(value)
    return base


def merge_manifest(base: dict, fragment: dict) -> dict:
    """Merge ``fragment`` into a copy of ``base``.

    Args:
        base: Generated manifest
        fragment: Hand-authored partial manifest

    Returns:
        New merged manifest (inputs unchanged)

    Raises:
        MergeError: If the fragment conflicts with the base structure
    """
    if not isinstance(base, dict) or not isinstance(fragment, dict):
        raise MergeError("Both manifest and fragment must be mappings")
    return _merge_mapping(copy.deepcopy(base), fragment)


def merge_fragments(base: dict, fragments: Iterable[dict]) -> dict:
    """Merge fragments into a copy of ``base`` in order."""
    result = base
    for fragment in fragments:
        result = merge_manifest(result, fragment)
    return result


def _matches(manifest: dict, fragment: dict) -> bool:
    kind = fragment.get("kind")
    name = (fragment.get("metadata") or {}).get("name")
    if kind is not None and manifest.get("kind") != kind:
        return False
    if name is not None and (manifest.get("metadata") or {}).get("name") != name:
        return False
    return True


def merge_into_documents(docs: List[Any], fragment: dict) -> int:
    """Merge a fragment in place into the manifests it targets.

    A fragment naming a ``kind`` and/or ``metadata.name`` is merged into every
    matching manifest. An untargeted fragment is only accepted when there is
    exactly one manifest to merge into.

    Returns:
        Number of manifests merged into

    Raises:
        MergeError: If the fragment matches nothing or is ambiguous
    """
    if not isinstance(fragment, dict):
        raise MergeError("Fragment must be a mapping")

    manifests = [m for doc in docs for m in iter_manifests(doc)]
    targeted = "kind" in fragment or "name" in (fragment.get("metadata") or {})

    if not targeted and len(manifests) != 1:
        raise MergeError(
            f"Fragment has no kind or metadata.name and there are {len(manifests)} manifests to merge into"
        )

    hits = 0
    for manifest in manifests:
        if _matches(manifest, fragment):
            _merge_mapping(manifest, fragment)
            hits += 1

    if hits == 0:
        kind = fragment.get("kind", "*")
        name = (fragment.get("metadata") or {}).get("name", "*")
        raise MergeError(f"Fragment for {kind}/{name} matched no manifest")
    return hits


def merge_into_files(files: Dict[str, str], fragments: Iterable[dict]) -> Dict[str, str]:
    """Merge fragments into a file set, returning new file contents.

    Targeted fragments may match manifests in any file.
    """
    parsed = {path: load_documents(content, path) for path, content in files.items()}
    all_docs = [doc for docs in parsed.values() for doc in docs]

    for i, fragment in enumerate(fragments):
        hits = merge_into_documents(all_docs, fragment)
        logger.debug(f"Merged fragment #{i + 1} into {hits} manifest(s)")

    return {path: dump_documents(docs) for path, docs in parsed.items()}
