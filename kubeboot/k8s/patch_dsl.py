"""K8s Patch DSL operations for modifying YAML manifests.

This module implements the field-setting operations that turn the bare output
of ``kubectl create ... --dry-run=client -o yaml`` into a finished manifest,
using ruamel.yaml for format-preserving transformations.

Every operation is applied to each manifest it can target (``kind: List``
items included). An operation that targets nothing in the whole file set
raises PatchApplyError, so a typo in a container name never goes unnoticed.
"""

import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from kubeboot.core.errors import ManifestError, PatchApplyError
from kubeboot.core.schema.patch_dsl import Patch, PatchOp
from kubeboot.k8s.constants import (
    LAST_APPLIED_ANNOTATION,
    SERVER_METADATA_FIELDS,
    VOLUME_SOURCES,
    WORKLOAD_KINDS,
)
from kubeboot.k8s.utils import get_pod_spec, iter_manifests, select_containers, upsert_named
from kubeboot.k8s.yamlio import dump_documents, load_documents

logger = logging.getLogger(__name__)

PathSegment = Union[str, int, Tuple[str, str]]

_SEGMENT_RE = re.compile(r"([^.\[\]]+)|\[([^\]]*)\]")


def apply_k8s_patch(files: Dict[str, str], patch: Patch) -> Dict[str, str]:
    """Apply patch operations to YAML files.

    Applies all patch operations sequentially to the files, preserving
    YAML formatting and comments.

    Args:
        files: Dict mapping file paths to YAML content strings
        patch: Patch containing field-setting operations

    Returns:
        Dict with patched YAML content

    Example:
        >>> files = {"frontend.deploy.yaml": "..."}
        >>> patch = Patch(ops=[PatchOp("SetReplicas", {"replicas": 2})])
        >>> patched_files = apply_k8s_patch(files, patch)
    """
    parsed = {path: load_documents(content, path) for path, content in files.items()}

    for op in patch.ops:
        hits = 0
        for docs in parsed.values():
            for doc in docs:
                for manifest in iter_manifests(doc):
                    if apply_op_to_manifest(manifest, op):
                        hits += 1
        if hits == 0:
            raise PatchApplyError(f"Operation {op.op} {dict(op.args)} matched no manifest", patch_op=op)
        logger.debug(f"Applied {op.op} to {hits} manifest(s)")

    return {path: dump_documents(docs) for path, docs in parsed.items()}


def apply_k8s_op(files: Dict[str, str], op: PatchOp) -> Dict[str, str]:
    """Apply single patch operation to YAML files.

    Raises:
        PatchApplyError: If operation kind is unknown or matches nothing
    """
    return apply_k8s_patch(files, Patch(ops=[op]))


def apply_ops_to_manifest(manifest: dict, ops: List[PatchOp]) -> dict:
    """Apply operations in place to one parsed manifest.

    Raises:
        PatchApplyError: If an operation does not apply to this manifest
    """
    for op in ops:
        if not apply_op_to_manifest(manifest, op):
            raise PatchApplyError(
                f"Operation {op.op} does not apply to {manifest.get('kind')}/"
                f"{manifest.get('metadata', {}).get('name')}",
                patch_op=op,
            )
    return manifest


def apply_op_to_manifest(manifest: dict, op: PatchOp) -> bool:
    """Apply one operation in place.

    Returns:
        True if the manifest was targeted by the operation, False if skipped

    Raises:
        PatchApplyError: If operation kind is unknown or arguments are invalid
    """
    handler = _OP_HANDLERS.get(op.op)
    if handler is None:
        raise PatchApplyError(
            f"Unknown K8s patch operation: {op.op}. Valid: {OP_NAMES}", patch_op=op
        )

    kind_filter = op.args.get("kind")
    if kind_filter is not None and manifest.get("kind") != kind_filter:
        return False

    try:
        return handler(manifest, op.args)
    except KeyError as e:
        raise PatchApplyError(f"Operation {op.op} is missing required argument {e}", patch_op=op) from e
    except (TypeError, ValueError) as e:
        raise PatchApplyError(f"Operation {op.op} failed: {e}", patch_op=op) from e


def _set_replicas(manifest: dict, args: dict) -> bool:
    """Args: {replicas: int}"""
    if manifest.get("kind") not in WORKLOAD_KINDS - {"Job"}:
        return False
    replicas = int(args["replicas"])
    if replicas < 0:
        raise ValueError(f"replicas must be >= 0, got {replicas}")
    manifest.setdefault("spec", {})["replicas"] = replicas
    return True


def split_image(image: str) -> Tuple[str, Optional[str]]:
    """Split ``repo[:tag]`` into (repo, tag), ignoring registry ports and digests."""
    name = image.split("@", 1)[0]
    slash = name.rfind("/")
    colon = name.rfind(":")
    if colon > slash:
        return name[:colon], name[colon + 1:]
    return name, None


def _set_image(manifest: dict, args: dict) -> bool:
    """Args: {container?: str, image: str} or {container?: str, tag: str}"""
    if "image" not in args and "tag" not in args:
        raise KeyError("image")
    containers = select_containers(manifest, args.get("container"))
    if not containers:
        return False

    for container in containers:
        if "image" in args:
            container["image"] = args["image"]
        else:
            repo, _ = split_image(container.get("image") or container.get("name", ""))
            container["image"] = f"{repo}:{args['tag']}"
    return True


def _set_resources(manifest: dict, args: dict) -> bool:
    """Args: {container?: str, limits?: dict, requests?: dict}"""
    if not args.get("limits") and not args.get("requests"):
        raise ValueError("SetResources needs 'limits' or 'requests'")
    containers = select_containers(manifest, args.get("container"))
    if not containers:
        return False

    for container in containers:
        resources = container.get("resources")
        if not isinstance(resources, dict):
            resources = container["resources"] = {}
        for section in ("limits", "requests"):
            values = args.get(section)
            if not values:
                continue
            target = resources.setdefault(section, {})
            for key, value in values.items():
                target[key] = value
    return True


def _set_label(manifest: dict, args: dict) -> bool:
    """Args: {key: str, value: str, scope: metadata|podTemplate|selector|all}"""
    key = args["key"]
    value = str(args["value"])
    scope = args.get("scope", "metadata")
    if scope not in ("metadata", "podTemplate", "selector", "all"):
        raise ValueError(f"Unknown label scope: {scope}")

    kind = manifest.get("kind")
    applied = False

    if scope in ("metadata", "all"):
        manifest.setdefault("metadata", {}).setdefault("labels", {})[key] = value
        applied = True

    if scope in ("podTemplate", "selector", "all") and kind in WORKLOAD_KINDS:
        template = manifest.setdefault("spec", {}).setdefault("template", {})
        template.setdefault("metadata", {}).setdefault("labels", {})[key] = value
        applied = True

    if scope in ("selector", "all"):
        if kind in WORKLOAD_KINDS:
            selector = manifest.setdefault("spec", {}).setdefault("selector", {})
            selector.setdefault("matchLabels", {})[key] = value
            applied = True
        elif kind == "Service":
            manifest.setdefault("spec", {}).setdefault("selector", {})[key] = value
            applied = True

    return applied


def _set_annotation(manifest: dict, args: dict) -> bool:
    """Args: {key: str, value: str | None} - None removes the annotation"""
    key = args["key"]
    value = args["value"]
    metadata = manifest.setdefault("metadata", {})
    if value is None:
        annotations = metadata.get("annotations") or {}
        annotations.pop(key, None)
        if not annotations:
            metadata.pop("annotations", None)
    else:
        metadata.setdefault("annotations", {})[key] = str(value)
    return True


def _set_env(manifest: dict, args: dict) -> bool:
    """Args: {container?: str, name: str, value: str}"""
    name = args["name"]
    value = args["value"]
    containers = select_containers(manifest, args.get("container"))
    if not containers:
        return False
    for container in containers:
        env = container.get("env")
        if not isinstance(env, list):
            env = container["env"] = []
        upsert_named(env, {"name": name, "value": str(value)})
    return True


def _set_namespace(manifest: dict, args: dict) -> bool:
    """Args: {namespace: str}"""
    manifest.setdefault("metadata", {})["namespace"] = args["namespace"]
    return True


def _set_field(manifest: dict, args: dict) -> bool:
    """Args: {path: str, value: any}"""
    segments = parse_path(args["path"])
    set_path(manifest, segments, args["value"])
    return True


def _remove_field(manifest: dict, args: dict) -> bool:
    """Args: {path: str}"""
    remove_path(manifest, parse_path(args["path"]))
    return True


def _add_volume(manifest: dict, args: dict) -> bool:
    """Args: {name: str, <one of configMap|secret|emptyDir|persistentVolumeClaim|hostPath>: dict}"""
    name = args["name"]
    sources = [s for s in VOLUME_SOURCES if s in args]
    if len(sources) != 1:
        raise ValueError(f"AddVolume needs exactly one source out of {list(VOLUME_SOURCES)}, got {sources}")

    pod_spec = get_pod_spec(manifest, create=True)
    if pod_spec is None:
        return False

    source = sources[0]
    volume = {"name": name, source: args[source] if args[source] is not None else {}}
    volumes = pod_spec.get("volumes")
    if not isinstance(volumes, list):
        volumes = pod_spec["volumes"] = []
    upsert_named(volumes, volume)
    return True


def _add_volume_mount(manifest: dict, args: dict) -> bool:
    """Args: {container?: str, name: str, mountPath: str, readOnly?: bool, subPath?: str}"""
    mount = {"name": args["name"], "mountPath": args["mountPath"]}
    if args.get("readOnly") is not None:
        mount["readOnly"] = bool(args["readOnly"])
    if args.get("subPath"):
        mount["subPath"] = args["subPath"]

    containers = select_containers(manifest, args.get("container"))
    if not containers:
        return False
    for container in containers:
        mounts = container.get("volumeMounts")
        if not isinstance(mounts, list):
            mounts = container["volumeMounts"] = []
        upsert_named(mounts, dict(mount), key="mountPath")
    return True


def _clean(manifest: dict, args: dict) -> bool:
    """Strip fields added by dry-run rendering or by the API server. Args: {}"""
    manifest.pop("status", None)
    _clean_metadata(manifest.get("metadata"))

    spec = manifest.get("spec")
    if isinstance(spec, dict):
        if spec.get("strategy") == {}:
            spec.pop("strategy")
        template = spec.get("template")
        if isinstance(template, dict):
            _clean_metadata(template.get("metadata"))

    pod_spec = get_pod_spec(manifest)
    if isinstance(pod_spec, dict):
        for container in pod_spec.get("containers", []) or []:
            if container.get("resources") == {}:
                container.pop("resources")
    return True


def _clean_metadata(metadata: Any) -> None:
    if not isinstance(metadata, dict):
        return
    for key in SERVER_METADATA_FIELDS:
        metadata.pop(key, None)
    annotations = metadata.get("annotations")
    if isinstance(annotations, dict):
        annotations.pop(LAST_APPLIED_ANNOTATION, None)
    if "annotations" in metadata and not metadata["annotations"]:
        metadata.pop("annotations")


_OP_HANDLERS: Dict[str, Callable[[dict, dict], bool]] = {
    "SetReplicas": _set_replicas,
    "SetImage": _set_image,
    "SetResources": _set_resources,
    "SetLabel": _set_label,
    "SetAnnotation": _set_annotation,
    "SetEnv": _set_env,
    "SetNamespace": _set_namespace,
    "SetField": _set_field,
    "RemoveField": _remove_field,
    "AddVolume": _add_volume,
    "AddVolumeMount": _add_volume_mount,
    "Clean": _clean,
}

OP_NAMES = sorted(_OP_HANDLERS)


def parse_path(path: str) -> List[PathSegment]:
    """Parse a dotted field path.

    Supported segments:
    - ``key`` - mapping key
    - ``[0]`` - list index
    - ``[name=nginx]`` - list item whose ``name`` equals ``nginx``
    - ``["kubectl.kubernetes.io/restartedAt"]`` - quoted key containing dots

    Example:
        >>> parse_path("spec.template.spec.containers[name=nginx].image")
        ['spec', 'template', 'spec', 'containers', ('name', 'nginx'), 'image']
    """
    if not path or not path.strip():
        raise ValueError("Empty field path")

    segments: List[PathSegment] = []
    pos = 0
    while pos < len(path):
        if path[pos] == ".":
            pos += 1
            continue
        match = _SEGMENT_RE.match(path, pos)
        if not match:
            raise ValueError(f"Invalid field path: {path}")
        key, bracket = match.group(1), match.group(2)
        if key is not None:
            segments.append(key)
        else:
            segments.append(_parse_bracket(bracket, path))
        pos = match.end()
    return segments


def _parse_bracket(content: str, path: str) -> PathSegment:
    content = content.strip()
    if len(content) >= 2 and content[0] == content[-1] and content[0] in "\"'":
        return content[1:-1]
    if content.isdigit():
        return int(content)
    if "=" in content:
        field, value = content.split("=", 1)
        return (field.strip(), value.strip())
    raise ValueError(f"Invalid selector [{content}] in path {path}")


def _find_item(items: list, selector: Tuple[str, str]) -> Optional[dict]:
    field, value = selector
    for item in items:
        if isinstance(item, dict) and str(item.get(field)) == value:
            return item
    return None


def set_path(doc: Any, segments: List[PathSegment], value: Any) -> None:
    """Set ``value`` at ``segments``, creating intermediate mappings and selected items."""
    current = doc
    for i, segment in enumerate(segments):
        last = i == len(segments) - 1
        next_segment = None if last else segments[i + 1]

        if isinstance(segment, str):
            if not isinstance(current, dict):
                raise ValueError(f"Cannot set key '{segment}' on a {type(current).__name__}")
            if last:
                current[segment] = value
                return
            if not isinstance(current.get(segment), (dict, list)):
                current[segment] = [] if not isinstance(next_segment, str) else {}
            current = current[segment]

        elif isinstance(segment, int):
            if not isinstance(current, list) or segment >= len(current):
                raise ValueError(f"List index {segment} out of range")
            if last:
                current[segment] = value
                return
            current = current[segment]

        else:
            if not isinstance(current, list):
                raise ValueError(f"Selector [{segment[0]}={segment[1]}] needs a list")
            item = _find_item(current, segment)
            if item is None:
                item = {segment[0]: segment[1]}
                current.append(item)
            if last:
                if not isinstance(value, dict):
                    raise ValueError("Selected list item can only be replaced by a mapping")
                item.clear()
                item[segment[0]] = segment[1]
                item.update(value)
                return
            current = item


def remove_path(doc: Any, segments: List[PathSegment]) -> bool:
    """Remove the field at ``segments``.

    Returns:
        True if something was removed, False if the path did not exist
    """
    current = doc
    for segment in segments[:-1]:
        if isinstance(segment, str):
            if not isinstance(current, dict) or segment not in current:
                return False
            current = current[segment]
        elif isinstance(segment, int):
            if not isinstance(current, list) or segment >= len(current):
                return False
            current = current[segment]
        else:
            if not isinstance(current, list):
                return False
            current = _find_item(current, segment)
            if current is None:
                return False

    last = segments[-1]
    if isinstance(last, str):
        if isinstance(current, dict) and last in current:
            del current[last]
            return True
        return False
    if isinstance(last, int):
        if isinstance(current, list) and last < len(current):
            del current[last]
            return True
        return False
    if isinstance(current, list):
        item = _find_item(current, last)
        if item is not None:
            current.remove(item)
            return True
    return False


def _split_assignment(expr: str) -> Tuple[str, str]:
    depth = 0
    for i, ch in enumerate(expr):
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
        elif ch == "=" and depth == 0:
            return expr[:i].strip(), expr[i + 1:]
    raise PatchApplyError(f"Invalid set expression '{expr}': expected KEY=VALUE")


def _parse_key_values(text: str, expr: str) -> Dict[str, str]:
    result = {}
    for pair in text.split(","):
        if "=" not in pair:
            raise PatchApplyError(f"Invalid set expression '{expr}': expected name=value pairs")
        key, value = pair.split("=", 1)
        result[key.strip()] = value.strip()
    return result


def _parse_scalar(text: str) -> Any:
    if text == "":
        return ""
    try:
        docs = load_documents(text, "<set value>")
    except ManifestError:
        return text
    return docs[0] if docs else ""


def parse_set_expression(expr: str) -> PatchOp:
    """Translate a command-line ``--set`` shorthand into a PatchOp.

    Supported forms::

        replicas=3
        image=nginx:1.25                        (all containers)
        image=nginx=nginx:1.25                  (container "nginx")
        resources.limits=cpu=100m,memory=256Mi
        resources.requests=cpu=50m
        label=app=frontend
        selector=app=frontend
        annotation=team=web
        env=LOG_LEVEL=debug
        namespace=default
        spec.template.spec.containers[name=nginx].imagePullPolicy=IfNotPresent

    Raises:
        PatchApplyError: If the expression cannot be parsed
    """
    key, value = _split_assignment(expr)

    if key == "replicas":
        try:
            return PatchOp("SetReplicas", {"replicas": int(value)})
        except ValueError:
            raise PatchApplyError(f"Invalid set expression '{expr}': replicas must be an integer")
    if key == "image":
        if "=" in value:
            container, image = value.split("=", 1)
            return PatchOp("SetImage", {"container": container, "image": image})
        return PatchOp("SetImage", {"image": value})
    if key in ("resources.limits", "resources.requests"):
        section = key.split(".", 1)[1]
        return PatchOp("SetResources", {section: _parse_key_values(value, expr)})
    if key in ("label", "selector", "annotation", "env"):
        if "=" not in value:
            raise PatchApplyError(f"Invalid set expression '{expr}': expected {key}=NAME=VALUE")
        name, item_value = value.split("=", 1)
        if key == "label":
            return PatchOp("SetLabel", {"key": name, "value": item_value, "scope": "metadata"})
        if key == "selector":
            return PatchOp("SetLabel", {"key": name, "value": item_value, "scope": "selector"})
        if key == "annotation":
            return PatchOp("SetAnnotation", {"key": name, "value": item_value})
        return PatchOp("SetEnv", {"name": name, "value": item_value})
    if key == "namespace":
        return PatchOp("SetNamespace", {"namespace": value})

    try:
        parse_path(key)
    except ValueError as e:
        raise PatchApplyError(f"Invalid set expression '{expr}': {e}")
    return PatchOp("SetField", {"path": key, "value": _parse_scalar(value)})
