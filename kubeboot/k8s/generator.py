"""Base resource generation through kubectl's dry-run mode.

Each supported kind maps to an imperative kubectl command that only renders
the object (``--dry-run=client -o yaml``) and never touches the cluster.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from kubeboot.core.errors import GeneratorError, ManifestError
from kubeboot.k8s.constants import SERVICE_TYPES
from kubeboot.k8s.kubectl import Kubectl
from kubeboot.k8s.yamlio import load_documents

logger = logging.getLogger(__name__)

DRY_RUN_ARGS = ["--dry-run=client", "-o", "yaml"]

# Generator kind -> kind of the rendered object
GENERATED_KINDS = {
    "deployment": "Deployment",
    "service": "Service",
    "expose": "Service",
    "configmap": "ConfigMap",
    "secret": "Secret",
}


@dataclass
class GenerateRequest:
    """What to generate.

    Attributes:
        kind: One of deployment, service, expose, configmap, secret
        name: Object name
        image: Container image (deployment)
        port: Container port (deployment) or service port (service, expose)
        replicas: Replica count (deployment)
        target_port: Service target port (service, expose)
        service_type: ClusterIP, NodePort or LoadBalancer (service, expose)
        from_files: --from-file sources (configmap, secret)
        from_literals: KEY=VALUE literals (configmap, secret)
        namespace: Namespace recorded on the object; never created
        source_manifest: Manifest text to expose (expose)
    """
    kind: str
    name: str
    image: Optional[str] = None
    port: Optional[int] = None
    replicas: Optional[int] = None
    target_port: Optional[int] = None
    service_type: str = "ClusterIP"
    from_files: Sequence[str] = field(default_factory=tuple)
    from_literals: Sequence[str] = field(default_factory=tuple)
    namespace: Optional[str] = None
    source_manifest: Optional[str] = None

    @property
    def expected_kind(self) -> str:
        return GENERATED_KINDS[self.kind]


def _service_type_key(service_type: str) -> str:
    key = service_type.lower()
    if key not in SERVICE_TYPES:
        raise GeneratorError(f"Unknown service type: {service_type}. Valid: {sorted(SERVICE_TYPES.values())}")
    return key


def build_command(request: GenerateRequest) -> List[str]:
    """Translate a request into kubectl arguments.

    Raises:
        GeneratorError: If the kind is unknown or required fields are missing
    """
    kind = request.kind
    if kind not in GENERATED_KINDS:
        raise GeneratorError(f"Unknown kind to generate: {kind}. Valid: {sorted(GENERATED_KINDS)}")
    if not request.name:
        raise GeneratorError(f"A name is required to generate a {kind}")

    if kind == "deployment":
        if not request.image:
            raise GeneratorError("Generating a deployment requires an image")
        args = ["create", "deployment", request.name, "--image", request.image]
        if request.port is not None:
            args += ["--port", str(request.port)]
        if request.replicas is not None:
            args += ["--replicas", str(request.replicas)]

    elif kind == "service":
        if request.port is None:
            raise GeneratorError("Generating a service requires a port")
        target = request.target_port if request.target_port is not None else request.port
        args = ["create", "service", _service_type_key(request.service_type), request.name,
                f"--tcp={request.port}:{target}"]

    elif kind == "expose":
        if not request.source_manifest:
            raise GeneratorError("Exposing requires the source manifest to expose")
        if request.port is None:
            raise GeneratorError("Exposing requires a port")
        args = ["expose", "-f", "-", "--name", request.name, "--port", str(request.port)]
        if request.target_port is not None:
            args += ["--target-port", str(request.target_port)]
        args += ["--type", SERVICE_TYPES[_service_type_key(request.service_type)]]

    else:
        if kind == "configmap":
            args = ["create", "configmap", request.name]
        else:
            args = ["create", "secret", "generic", request.name]
        for source in request.from_files:
            args += ["--from-file", source]
        for literal in request.from_literals:
            if "=" not in literal:
                raise GeneratorError(f"Literal must be KEY=VALUE, got '{literal}'")
            args += ["--from-literal", literal]

    if request.namespace:
        args += ["--namespace", request.namespace]
    return args + DRY_RUN_ARGS


def generate(request: GenerateRequest, kubectl: Optional[Kubectl] = None) -> str:
    """Render the requested object with kubectl without persisting it.

    Args:
        request: What to generate
        kubectl: Runner to use (default: configured Kubectl)

    Returns:
        YAML text of the generated object

    Raises:
        GeneratorError: If kubectl fails or returns an unexpected object
    """
    kubectl = kubectl or Kubectl()
    args = build_command(request)
    text = kubectl.run(args, input_text=request.source_manifest if request.kind == "expose" else None)

    try:
        docs = load_documents(text, f"kubectl {request.kind}")
    except ManifestError as e:
        raise GeneratorError(f"kubectl returned invalid YAML: {e}", command=kubectl.command(args)) from e

    if len(docs) != 1 or not isinstance(docs[0], dict):
        raise GeneratorError(f"kubectl returned {len(docs)} documents, expected one object",
                             command=kubectl.command(args))
    kind = docs[0].get("kind")
    if kind != request.expected_kind:
        raise GeneratorError(f"kubectl returned kind {kind}, expected {request.expected_kind}",
                             command=kubectl.command(args))

    logger.info(f"Generated {kind}/{request.name}")
    return text
