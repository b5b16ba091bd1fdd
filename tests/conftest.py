"""Shared fixtures: a kubectl stand-in that answers with canned dry-run output."""

import pytest

from kubeboot.k8s.examples import (
    GENERATED_FRONTEND_CONFIGMAP,
    GENERATED_FRONTEND_DEPLOYMENT,
    GENERATED_FRONTEND_SERVICE,
)
from kubeboot.k8s.kubectl import Kubectl


class FakeKubectl(Kubectl):
    """Kubectl whose ``run`` returns what the real binary prints for the frontend objects."""

    def __init__(self):
        super().__init__(binary="kubectl", timeout=5, context=None)
        self.calls = []

    def run(self, args, input_text=None):
        args = list(args)
        self.calls.append((args, input_text))

        if args[:2] == ["create", "deployment"]:
            name = args[2]
            image = args[args.index("--image") + 1]
            return GENERATED_FRONTEND_DEPLOYMENT.replace("frontend", name).replace("nginx", image)
        if args[:2] == ["create", "configmap"]:
            return GENERATED_FRONTEND_CONFIGMAP.replace("frontend-data", args[2])
        if args[0] == "expose":
            assert input_text, "expose reads the manifest from stdin"
            return GENERATED_FRONTEND_SERVICE
        if args[0] == "apply":
            return input_text
        raise AssertionError(f"unexpected kubectl call: {args}")


@pytest.fixture
def fake_kubectl():
    return FakeKubectl()


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep a developer's kubeboot.json and KUBEBOOT_* variables out of tests."""
    monkeypatch.setenv("KUBEBOOT_CONFIG", str(tmp_path / "no-kubeboot.json"))
    for key in ("KUBEBOOT_KUBECTL_BINARY", "KUBEBOOT_KUBECTL_CONTEXT", "KUBEBOOT_KUBECTL_TIMEOUT_SECONDS",
                "KUBEBOOT_GENERATE_CLEAN", "KUBEBOOT_VALIDATE_SCHEMA", "KUBEBOOT_VALIDATE_KUBERNETES_VERSION"):
        monkeypatch.delenv(key, raising=False)
