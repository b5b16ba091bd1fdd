"""Pipeline for bootstrapping declarative manifests from imperative commands.

This module provides the main entry points for kubeboot's workflow:
- bootstrap: generate one object, set fields, merge fragments, validate
- transform: the same minus generation, for manifests already on disk
- build_recipe: run every resource of a recipe file
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from kubeboot.core.config import as_bool, get_config_value
from kubeboot.core.errors import ValidationFailed
from kubeboot.core.recipe import Recipe, RecipeResource
from kubeboot.core.schema.oracle import Oracle
from kubeboot.core.schema.patch_dsl import Patch, PatchOp
from kubeboot.core.schema.violation import Violation, is_blocking
from kubeboot.k8s.artifact import ManifestArtifact
from kubeboot.k8s.generator import GenerateRequest, build_command, generate
from kubeboot.k8s.kubectl import Kubectl
from kubeboot.k8s.merge import merge_into_files
from kubeboot.k8s.oracles import validate_artifact

logger = logging.getLogger(__name__)

FILE_SUFFIXES = {
    "deployment": "deploy",
    "service": "svc",
    "expose": "svc",
    "configmap": "cm",
    "secret": "secret",
}


def default_filename(request: GenerateRequest) -> str:
    """Name files like ``frontend.deploy.yaml``."""
    return f"{request.name}.{FILE_SUFFIXES.get(request.kind, request.kind)}.yaml"


def transform(
    artifact: ManifestArtifact,
    patch: Optional[Patch] = None,
    fragments: Iterable[dict] = (),
    oracles: Optional[List[Oracle]] = None,
    strict: bool = True,
    validate: bool = True,
) -> Tuple[ManifestArtifact, Dict[str, Any]]:
    """Set fields, merge fragments and validate existing manifests.

    Args:
        artifact: Manifests to transform
        patch: Field-setting operations, applied first
        fragments: Hand-authored partial manifests, merged in order
        oracles: Validation oracles (default: default_oracles())
        strict: Raise ValidationFailed on blocking violations
        validate: Skip validation entirely when False

    Returns:
        Tuple of (transformed artifact, metadata dict)

    Raises:
        PatchApplyError, MergeError: If a step cannot be applied
        ValidationFailed: If strict and the result has blocking violations
    """
    fragments = list(fragments)
    ops: List[PatchOp] = list(patch.ops) if patch else []

    if ops:
        artifact = artifact.apply_patch(Patch(ops=ops))
        logger.info(f"Applied {len(ops)} operation(s): {', '.join(op.op for op in ops)}")

    if fragments:
        artifact = ManifestArtifact(files=merge_into_files(artifact.files, fragments))
        logger.info(f"Merged {len(fragments)} fragment(s)")

    violations: List[Violation] = validate_artifact(artifact, oracles) if validate else []
    status = "invalid" if is_blocking(violations) else "success"

    metadata: Dict[str, Any] = {
        "status": status,
        "ops_applied": [op.op for op in ops],
        "fragments_merged": len(fragments),
        "violations": violations,
    }

    for v in violations:
        log = logger.error if v.is_blocking else logger.warning
        log(str(v))

    if strict and status == "invalid":
        blocking = [v for v in violations if v.is_blocking]
        raise ValidationFailed(
            f"Generated manifests have {len(blocking)} blocking violation(s): "
            + "; ".join(v.message for v in blocking),
            violations=violations,
        )

    return artifact, metadata


def bootstrap(
    request: GenerateRequest,
    patch: Optional[Patch] = None,
    fragments: Iterable[dict] = (),
    kubectl: Optional[Kubectl] = None,
    clean: Optional[bool] = None,
    oracles: Optional[List[Oracle]] = None,
    strict: bool = True,
    validate: bool = True,
    filename: Optional[str] = None,
) -> Tuple[ManifestArtifact, Dict[str, Any]]:
    """Generate an object with kubectl and turn it into a finished manifest.

    Steps: generate (dry-run) -> Clean -> patch -> merge -> validate.

    Args:
        request: What kubectl should generate
        patch: Field-setting operations
        fragments: Hand-authored partial manifests
        kubectl: Runner to use (default: configured Kubectl)
        clean: Strip generator noise first (default from config ``generate.clean``)
        oracles: Validation oracles
        strict: Raise ValidationFailed on blocking violations
        validate: Skip validation entirely when False
        filename: File name in the returned artifact (default: NAME.SUFFIX.yaml)

    Returns:
        Tuple of (artifact, metadata). metadata carries ``command``,
        ``ops_applied``, ``fragments_merged``, ``violations`` and ``status``.
    """
    kubectl = kubectl or Kubectl()
    if clean is None:
        clean = as_bool(get_config_value(["generate", "clean"], default=True))

    text = generate(request, kubectl)
    artifact = ManifestArtifact.from_text(text, filename or default_filename(request))

    ops: List[PatchOp] = [PatchOp("Clean", {})] if clean else []
    if patch:
        ops.extend(patch.ops)

    artifact, metadata = transform(
        artifact,
        patch=Patch(ops=ops),
        fragments=fragments,
        oracles=oracles,
        strict=strict,
        validate=validate,
    )
    metadata["command"] = kubectl.command(build_command(request))
    return artifact, metadata


def run_resource(
    resource: RecipeResource,
    kubectl: Optional[Kubectl] = None,
    oracles: Optional[List[Oracle]] = None,
    strict: bool = True,
    produced: Optional[Dict[Path, ManifestArtifact]] = None,
) -> Tuple[ManifestArtifact, Dict[str, Any]]:
    """Run one recipe resource.

    ``produced`` maps outputs of earlier resources to their artifacts so
    that ``exposeFrom`` can refer to a manifest not yet written to disk.
    """
    request = resource.request
    if resource.expose_from is not None:
        source = (produced or {}).get(resource.expose_from)
        if source is not None:
            source_text = source.as_text()
        else:
            source_text = resource.expose_from.read_text(encoding="utf-8")
        request = replace(request, source_manifest=source_text)

    return bootstrap(
        request,
        patch=resource.patch,
        fragments=resource.fragments,
        kubectl=kubectl,
        clean=resource.clean,
        oracles=oracles,
        strict=strict,
        filename=resource.output.name,
    )


def build_recipe(
    recipe: Recipe,
    kubectl: Optional[Kubectl] = None,
    oracles: Optional[List[Oracle]] = None,
    strict: bool = True,
) -> List[Tuple[RecipeResource, ManifestArtifact, Dict[str, Any]]]:
    """Run every resource in a recipe, in order.

    Returns:
        List of (resource, artifact, metadata) per resource
    """
    kubectl = kubectl or Kubectl()
    produced: Dict[Path, ManifestArtifact] = {}
    results = []

    for resource in recipe.resources:
        logger.info(f"Building {resource.output}")
        artifact, metadata = run_resource(resource, kubectl, oracles, strict, produced)
        produced[resource.output] = artifact
        results.append((resource, artifact, metadata))

    return results


def write_outputs(results: List[Tuple[RecipeResource, ManifestArtifact, Dict[str, Any]]]) -> List[Path]:
    """Write each built artifact to its resource's output path."""
    written = []
    for resource, artifact, _ in results:
        written.append(artifact.write_to(str(resource.output)))
        logger.info(f"Wrote {resource.output}")
    return written


def apply_artifacts(
    artifacts: Iterable[ManifestArtifact],
    kubectl: Optional[Kubectl] = None,
    dry_run: Optional[str] = None,
) -> List[str]:
    """Pipe each artifact to ``kubectl apply -f -`` and collect the output."""
    kubectl = kubectl or Kubectl()
    return [kubectl.apply(artifact.as_text(), dry_run=dry_run) for artifact in artifacts]
