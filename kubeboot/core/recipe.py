"""Recipe files: the whole bootstrap workflow written down declaratively.

A recipe lists the resources to generate, the fields to set on each, the
fragments to merge, and where to write the result::

    resources:
      - output: objects/frontend.deploy.yaml
        generate: {kind: deployment, name: frontend, image: nginx, port: 80}
        set:
          - resources.limits=cpu=100m,memory=256Mi
        merge:
          - fragments/frontend-volumes.yaml
      - output: objects/frontend.svc.yaml
        generate: {kind: expose, name: frontend, port: 80}
        exposeFrom: objects/frontend.deploy.yaml

Relative paths resolve against the directory holding the recipe.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from kubeboot.core.config import as_bool
from kubeboot.core.errors import KubebootError, ManifestError, RecipeError
from kubeboot.core.schema.patch_dsl import Patch, PatchOp
from kubeboot.k8s.generator import GENERATED_KINDS, GenerateRequest
from kubeboot.k8s.patch_dsl import parse_set_expression
from kubeboot.k8s.yamlio import load_document, load_fragment, to_plain

logger = logging.getLogger(__name__)

_REQUEST_FIELDS = {
    "kind": "kind",
    "name": "name",
    "image": "image",
    "port": "port",
    "replicas": "replicas",
    "targetPort": "target_port",
    "target_port": "target_port",
    "type": "service_type",
    "namespace": "namespace",
}


@dataclass
class RecipeResource:
    """One resource to generate.

    Attributes:
        output: File the finished manifest is written to
        request: What kubectl should generate
        patch: Field-setting operations (``set`` shorthands then ``ops``)
        fragments: Parsed fragments to merge, in order
        clean: Override for stripping generator noise (None: use config)
        expose_from: Output path of an earlier resource to expose
    """
    output: Path
    request: GenerateRequest
    patch: Patch = field(default_factory=Patch)
    fragments: List[dict] = field(default_factory=list)
    clean: Optional[bool] = None
    expose_from: Optional[Path] = None


@dataclass
class Recipe:
    resources: List[RecipeResource]
    source: Optional[str] = None


def _resolve(base_dir: Path, value: str) -> Path:
    path = Path(value)
    return path if path.is_absolute() else base_dir / path


def _resolve_from_file(base_dir: Path, value: str) -> str:
    # --from-file accepts "key=path"
    if "=" in value:
        key, path = value.split("=", 1)
        return f"{key}={_resolve(base_dir, path)}"
    return str(_resolve(base_dir, value))


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _parse_request(data: Any, base_dir: Path, where: str) -> GenerateRequest:
    if not isinstance(data, dict):
        raise RecipeError(f"{where}: 'generate' must be a mapping")

    kwargs: Dict[str, Any] = {}
    for key, value in data.items():
        if key in _REQUEST_FIELDS:
            kwargs[_REQUEST_FIELDS[key]] = value
        elif key not in ("fromFile", "fromLiteral"):
            raise RecipeError(f"{where}: unknown generate field '{key}'")

    if kwargs.get("kind") not in GENERATED_KINDS:
        raise RecipeError(f"{where}: generate.kind must be one of {sorted(GENERATED_KINDS)}")
    if not kwargs.get("name"):
        raise RecipeError(f"{where}: generate.name is required")

    kwargs["from_files"] = tuple(_resolve_from_file(base_dir, str(v)) for v in _as_list(data.get("fromFile")))
    literals = data.get("fromLiteral")
    if isinstance(literals, dict):
        kwargs["from_literals"] = tuple(f"{k}={v}" for k, v in literals.items())
    else:
        kwargs["from_literals"] = tuple(str(v) for v in _as_list(literals))

    for key in ("port", "replicas", "target_port"):
        if kwargs.get(key) is not None:
            try:
                kwargs[key] = int(kwargs[key])
            except (TypeError, ValueError):
                raise RecipeError(f"{where}: generate.{key} must be an integer")

    return GenerateRequest(**kwargs)


def _parse_patch(entry: dict, where: str) -> Patch:
    ops: List[PatchOp] = []
    try:
        for expr in _as_list(entry.get("set")):
            ops.append(parse_set_expression(str(expr)))
        ops.extend(Patch.from_dict({"ops": _as_list(entry.get("ops"))}).ops)
    except (KubebootError, ValueError) as e:
        raise RecipeError(f"{where}: {e}")
    return Patch(ops=ops)


def _parse_fragments(entry: dict, base_dir: Path, where: str) -> List[dict]:
    fragments = []
    for item in _as_list(entry.get("merge")):
        if isinstance(item, dict):
            fragments.append(item)
            continue
        try:
            docs = load_fragment(_resolve(base_dir, str(item)))
        except ManifestError as e:
            raise RecipeError(f"{where}: {e}")
        for doc in docs:
            if not isinstance(doc, dict):
                raise RecipeError(f"{where}: fragment {item} must contain mappings")
            fragments.append(doc)
    return fragments


def parse_recipe(data: Any, base_dir: Union[str, Path] = ".", source: Optional[str] = None) -> Recipe:
    """Build a Recipe from already-parsed YAML.

    Raises:
        RecipeError: If the recipe is malformed
    """
    base = Path(base_dir)
    label = source or "<recipe>"
    if not isinstance(data, dict) or not isinstance(data.get("resources"), list):
        raise RecipeError(f"{label}: recipe must be a mapping with a 'resources' list", source=source)

    resources = []
    for i, entry in enumerate(data["resources"]):
        where = f"{label}: resources[{i}]"
        if not isinstance(entry, dict):
            raise RecipeError(f"{where} must be a mapping", source=source)
        if "generate" not in entry:
            raise RecipeError(f"{where} is missing 'generate'", source=source)
        if not entry.get("output"):
            raise RecipeError(f"{where} is missing 'output'", source=source)

        request = _parse_request(entry["generate"], base, where)
        expose_from = entry.get("exposeFrom")
        if request.kind == "expose" and not expose_from:
            raise RecipeError(f"{where}: kind expose needs 'exposeFrom'", source=source)

        resources.append(RecipeResource(
            output=_resolve(base, str(entry["output"])),
            request=request,
            patch=_parse_patch(entry, where),
            fragments=_parse_fragments(entry, base, where),
            clean=as_bool(entry["clean"]) if entry.get("clean") is not None else None,
            expose_from=_resolve(base, str(expose_from)) if expose_from else None,
        ))

    logger.debug(f"Loaded recipe {label} with {len(resources)} resource(s)")
    return Recipe(resources=resources, source=source)


def load_recipe(path: Union[str, Path]) -> Recipe:
    """Load a recipe file.

    Raises:
        RecipeError: If the file is missing, not YAML, or malformed
    """
    recipe_path = Path(path)
    if not recipe_path.is_file():
        raise RecipeError(f"Recipe file not found: {recipe_path}", source=str(recipe_path))
    try:
        data = load_document(recipe_path.read_text(encoding="utf-8"), str(recipe_path))
    except ManifestError as e:
        raise RecipeError(str(e), source=str(recipe_path)) from e
    return parse_recipe(to_plain(data), recipe_path.parent, str(recipe_path))
