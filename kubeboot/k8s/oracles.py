"""K8s oracles for manifest validation.

This module implements the checks run on generated manifests before they
are written or applied:
- SyntaxOracle: YAML parses and each document is a well-formed API object
- StructureOracle: cross-field consistency (selectors, volumes, containers)
- SchemaOracle: OpenAPI schema validation via kubernetes-validate
"""

import logging
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple

import kubernetes_validate
from kubernetes_validate.utils import (
    InvalidSchemaError,
    SchemaNotFoundError,
    ValidationError,
    VersionNotSupportedError,
    all_versions,
    major_minor,
)

from kubeboot.core.config import as_bool, get_config_value
from kubeboot.core.errors import ManifestError
from kubeboot.core.schema.oracle import Oracle
from kubeboot.core.schema.violation import Violation
from kubeboot.k8s.artifact import ManifestArtifact
from kubeboot.k8s.constants import KNOWN_API_VERSIONS, WORKLOAD_KINDS
from kubeboot.k8s.utils import get_containers, get_pod_spec
from kubeboot.k8s.yamlio import load_documents, to_plain

logger = logging.getLogger(__name__)


def _label(manifest: dict) -> str:
    name = (manifest.get("metadata") or {}).get("name", "?")
    return f"{manifest.get('kind', '?')}/{name}"


def _parsed_manifests(artifact: ManifestArtifact) -> List[Tuple[str, int, dict]]:
    """Return (file, doc index, manifest) for every parseable mapping document."""
    result = []
    for filepath in artifact.files:
        try:
            docs = load_documents(artifact.files[filepath], filepath)
        except ManifestError:
            # Reported by SyntaxOracle
            continue
        for index, doc in enumerate(docs):
            if not isinstance(doc, dict):
                continue
            if doc.get("kind") == "List":
                for item in doc.get("items") or []:
                    if isinstance(item, dict):
                        result.append((filepath, index, item))
            else:
                result.append((filepath, index, doc))
    return result


class SyntaxOracle:
    """Checks that every file parses and every document is an API object.

    Each document must be a mapping with ``apiVersion``, ``kind`` and, except
    for ``List``, ``metadata.name``. Known kinds must use their expected
    apiVersion. ``List`` items are checked the same way.
    """

    def __call__(self, artifact: ManifestArtifact) -> List[Violation]:
        violations = []

        for filepath, content in artifact.files.items():
            try:
                docs = load_documents(content, filepath)
            except ManifestError as e:
                violations.append(Violation(
                    id="syntax.INVALID_YAML",
                    message=str(e),
                    path=[filepath],
                    severity="error",
                ))
                continue

            if not docs:
                violations.append(Violation(
                    id="syntax.EMPTY_FILE",
                    message=f"{filepath} contains no manifests",
                    path=[filepath],
                    severity="error",
                ))

            for index, doc in enumerate(docs):
                violations.extend(self._check_object(doc, [filepath, f"#{index}"]))

        return violations

    def _check_object(self, doc: Any, path: List[str]) -> List[Violation]:
        if not isinstance(doc, dict):
            return [Violation(
                id="syntax.NOT_A_MAPPING",
                message=f"Manifest must be a mapping, got {type(doc).__name__}",
                path=path,
                severity="error",
            )]

        violations = []
        api_version = doc.get("apiVersion")
        kind = doc.get("kind")

        if not api_version:
            violations.append(Violation(
                id="syntax.MISSING_API_VERSION",
                message="Manifest is missing apiVersion",
                path=path + ["apiVersion"],
                severity="error",
            ))
        if not kind:
            violations.append(Violation(
                id="syntax.MISSING_KIND",
                message="Manifest is missing kind",
                path=path + ["kind"],
                severity="error",
            ))
            return violations

        expected = KNOWN_API_VERSIONS.get(kind)
        if api_version and expected and api_version != expected:
            violations.append(Violation(
                id="syntax.API_VERSION_MISMATCH",
                message=f"{kind} must use apiVersion {expected}, got {api_version}",
                path=path + ["apiVersion"],
                severity="error",
                evidence={"kind": kind, "expected": expected, "actual": api_version},
            ))

        if kind == "List":
            items = doc.get("items")
            if not isinstance(items, list):
                violations.append(Violation(
                    id="syntax.LIST_WITHOUT_ITEMS",
                    message="List must have an items sequence",
                    path=path + ["items"],
                    severity="error",
                ))
            else:
                for i, item in enumerate(items):
                    violations.extend(self._check_object(item, path + ["items", str(i)]))
            return violations

        metadata = doc.get("metadata")
        if not isinstance(metadata, dict) or not metadata.get("name"):
            violations.append(Violation(
                id="syntax.MISSING_NAME",
                message=f"{kind} is missing metadata.name",
                path=path + ["metadata", "name"],
                severity="error",
            ))

        return violations


class StructureOracle:
    """Cross-field consistency checks.

    - Workloads: selector matches pod template labels, containers present,
      unique and with images, every volumeMount refers to a declared volume
    - Services: ports present, selector present and matching a workload
    - ConfigMaps: data values are strings
    """

    def __call__(self, artifact: ManifestArtifact) -> List[Violation]:
        violations = []
        manifests = _parsed_manifests(artifact)
        configmaps = {(m.get("metadata") or {}).get("name")
                      for _, _, m in manifests if m.get("kind") == "ConfigMap"}
        workloads = [m for _, _, m in manifests if m.get("kind") in WORKLOAD_KINDS]

        for filepath, index, manifest in manifests:
            path = [filepath, f"#{index}", _label(manifest)]
            kind = manifest.get("kind")

            if kind in WORKLOAD_KINDS:
                violations.extend(self._check_selector(manifest, path))
            if kind in WORKLOAD_KINDS or kind == "Pod":
                violations.extend(self._check_pod_spec(manifest, path, configmaps))
            elif kind == "Service":
                violations.extend(self._check_service(manifest, path, workloads))
            elif kind == "ConfigMap":
                violations.extend(self._check_configmap(manifest, path))

        return violations

    def _check_selector(self, manifest: dict, path: List[str]) -> List[Violation]:
        if manifest.get("kind") == "Job":
            return []
        spec = manifest.get("spec") or {}
        match_labels = (spec.get("selector") or {}).get("matchLabels")
        template_labels = ((spec.get("template") or {}).get("metadata") or {}).get("labels") or {}

        if not match_labels:
            return [Violation(
                id="structure.MISSING_SELECTOR",
                message=f"{_label(manifest)} must set spec.selector.matchLabels",
                path=path + ["spec", "selector"],
                severity="error",
            )]

        mismatched = {k: v for k, v in match_labels.items() if template_labels.get(k) != v}
        if mismatched:
            return [Violation(
                id="structure.SELECTOR_MISMATCH",
                message=f"Selector labels {dict(mismatched)} are not on the pod template",
                path=path + ["spec", "selector", "matchLabels"],
                severity="error",
                evidence={"selector": dict(match_labels), "template_labels": dict(template_labels)},
            )]
        return []

    def _check_pod_spec(self, manifest: dict, path: List[str], configmaps: set) -> List[Violation]:
        violations = []
        pod_spec = get_pod_spec(manifest) or {}
        containers = get_containers(manifest)

        if not containers:
            violations.append(Violation(
                id="structure.NO_CONTAINERS",
                message=f"{_label(manifest)} has no containers",
                path=path + ["containers"],
                severity="error",
            ))

        names = Counter(c.get("name") for c in containers if isinstance(c, dict))
        for name, count in names.items():
            if count > 1:
                violations.append(Violation(
                    id="structure.DUPLICATE_CONTAINER",
                    message=f"Container name '{name}' is used {count} times",
                    path=path + ["containers", str(name)],
                    severity="error",
                ))

        volumes = [v for v in pod_spec.get("volumes") or [] if isinstance(v, dict)]
        volume_names = Counter(v.get("name") for v in volumes)
        for name, count in volume_names.items():
            if count > 1:
                violations.append(Violation(
                    id="structure.DUPLICATE_VOLUME",
                    message=f"Volume name '{name}' is declared {count} times",
                    path=path + ["volumes", str(name)],
                    severity="error",
                ))

        for container in containers:
            if not isinstance(container, dict):
                continue
            container_name = container.get("name", "unknown")
            if not container.get("image"):
                violations.append(Violation(
                    id=f"structure.MISSING_IMAGE.{container_name}",
                    message=f"Container {container_name} has no image",
                    path=path + ["containers", container_name, "image"],
                    severity="error",
                ))
            for mount in container.get("volumeMounts") or []:
                if mount.get("name") not in volume_names:
                    violations.append(Violation(
                        id=f"structure.UNDECLARED_VOLUME.{container_name}",
                        message=(f"Container {container_name} mounts '{mount.get('name')}' "
                                 f"at {mount.get('mountPath')} but no such volume is declared"),
                        path=path + ["containers", container_name, "volumeMounts"],
                        severity="error",
                        evidence={"volume": mount.get("name"), "declared": sorted(str(n) for n in volume_names)},
                    ))

        for volume in volumes:
            source = volume.get("configMap")
            if isinstance(source, dict) and source.get("name") not in configmaps:
                violations.append(Violation(
                    id="structure.EXTERNAL_CONFIGMAP",
                    message=f"Volume '{volume.get('name')}' uses ConfigMap '{source.get('name')}' "
                            "which is not part of these manifests",
                    path=path + ["volumes", str(volume.get("name"))],
                    severity="warning",
                ))

        return violations

    def _check_service(self, manifest: dict, path: List[str], workloads: List[dict]) -> List[Violation]:
        violations = []
        spec = manifest.get("spec") or {}
        if spec.get("type") == "ExternalName":
            return violations

        if not spec.get("ports"):
            violations.append(Violation(
                id="structure.SERVICE_NO_PORTS",
                message=f"{_label(manifest)} has no ports",
                path=path + ["spec", "ports"],
                severity="error",
            ))

        selector = spec.get("selector") or {}
        if not selector:
            violations.append(Violation(
                id="structure.SERVICE_NO_SELECTOR",
                message=f"{_label(manifest)} has no selector and will not route to any pod",
                path=path + ["spec", "selector"],
                severity="warning",
            ))
        elif workloads and not any(self._selects(selector, w) for w in workloads):
            violations.append(Violation(
                id="structure.SERVICE_SELECTS_NOTHING",
                message=f"{_label(manifest)} selector {dict(selector)} matches no workload in these manifests",
                path=path + ["spec", "selector"],
                severity="warning",
            ))
        return violations

    @staticmethod
    def _selects(selector: dict, workload: dict) -> bool:
        labels = (((workload.get("spec") or {}).get("template") or {}).get("metadata") or {}).get("labels") or {}
        return all(labels.get(k) == v for k, v in selector.items())

    def _check_configmap(self, manifest: dict, path: List[str]) -> List[Violation]:
        violations = []
        for key, value in (manifest.get("data") or {}).items():
            if not isinstance(value, str):
                violations.append(Violation(
                    id="structure.CONFIGMAP_NON_STRING",
                    message=f"ConfigMap data '{key}' must be a string, got {type(value).__name__}",
                    path=path + ["data", str(key)],
                    severity="error",
                ))
        return violations


class SchemaOracle:
    """K8s schema validation oracle backed by the kubernetes-validate library.

    Kinds without a bundled schema (custom resources) are reported as warnings.
    """

    def __init__(self, kubernetes_version: Optional[str] = None, strict: bool = False):
        """Initialize SchemaOracle.

        Args:
            kubernetes_version: Schema version to validate against
                                (default from config: "1.28")
            strict: Reject fields the schema does not define

        Raises:
            ManifestError: If kubernetes-validate ships no schemas for the version
        """
        self.kubernetes_version = str(
            kubernetes_version or get_config_value(["validate", "kubernetes_version"], default="1.28")
        ).lstrip("v")
        self.strict = strict

        supported = sorted({major_minor(v) for v in all_versions()}, key=lambda v: tuple(map(int, v.split("."))))
        if major_minor(self.kubernetes_version) not in supported:
            raise ManifestError(
                f"Kubernetes version {self.kubernetes_version} is not supported by kubernetes-validate "
                f"(available: {supported[0]} to {supported[-1]})"
            )

    def __call__(self, artifact: ManifestArtifact) -> List[Violation]:
        violations = []

        for filepath, index, manifest in _parsed_manifests(artifact):
            path = [filepath, f"#{index}", _label(manifest)]
            try:
                kubernetes_validate.validate(to_plain(manifest), self.kubernetes_version, strict=self.strict)
            except VersionNotSupportedError as e:
                raise ManifestError(e.message) from e
            except ValidationError as e:
                violations.append(Violation(
                    id="schema.VALIDATION_ERROR",
                    message=f"{_label(manifest)}: {getattr(e, 'message', e)}",
                    path=path,
                    severity="error",
                    evidence={"kubernetes_version": self.kubernetes_version},
                ))
            except (SchemaNotFoundError, InvalidSchemaError) as e:
                logger.debug(f"No schema for {_label(manifest)}: {e}")
                violations.append(Violation(
                    id="schema.NO_SCHEMA",
                    message=f"No schema available for {_label(manifest)} in Kubernetes {self.kubernetes_version}",
                    path=path,
                    severity="warning",
                ))

        return violations


def default_oracles(schema: Optional[bool] = None) -> List[Oracle]:
    """Return the oracles run by default.

    Args:
        schema: Include SchemaOracle (default from config ``validate.schema``)
    """
    oracles: List[Oracle] = [SyntaxOracle(), StructureOracle()]
    if schema is None:
        schema = as_bool(get_config_value(["validate", "schema"], default=False))
    if schema:
        oracles.append(SchemaOracle())
    return oracles


def validate_artifact(artifact: ManifestArtifact, oracles: Optional[List[Oracle]] = None) -> List[Violation]:
    """Run oracles over an artifact and collect every violation."""
    violations: List[Violation] = []
    for oracle in oracles if oracles is not None else default_oracles():
        found = oracle(artifact)
        logger.debug(f"{type(oracle).__name__}: {len(found)} violation(s)")
        violations.extend(found)
    return violations


def summarize(violations: List[Violation]) -> Dict[str, int]:
    """Count violations per severity."""
    counts = Counter(v.severity for v in violations)
    return {severity: counts.get(severity, 0) for severity in ("error", "warning", "info")}
