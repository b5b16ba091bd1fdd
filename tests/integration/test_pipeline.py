"""End-to-end tests for the bootstrap workflow with a canned kubectl."""

import pytest

from kubeboot.core.errors import ValidationFailed
from kubeboot.core.pipeline import (
    apply_artifacts,
    bootstrap,
    build_recipe,
    default_filename,
    transform,
    write_outputs,
)
from kubeboot.core.recipe import load_recipe
from kubeboot.core.schema.patch_dsl import Patch, PatchOp
from kubeboot.k8s.artifact import ManifestArtifact
from kubeboot.k8s.examples import (
    FRONTEND_RECIPE,
    FRONTEND_VOLUMES_FRAGMENT,
    GENERATED_FRONTEND_DEPLOYMENT,
)
from kubeboot.k8s.generator import GenerateRequest
from kubeboot.k8s.oracles import StructureOracle, SyntaxOracle
from kubeboot.k8s.yamlio import load_document, to_plain


@pytest.fixture
def frontend_request():
    return GenerateRequest(kind="deployment", name="frontend", image="nginx", port=80)


class TestBootstrap:
    """Tests for bootstrap: generate, clean, patch, merge, validate."""

    def test_frontend_deployment(self, fake_kubectl, frontend_request):
        artifact, metadata = bootstrap(
            frontend_request,
            patch=Patch(ops=[PatchOp("SetResources", {"limits": {"cpu": "100m", "memory": "256Mi"}})]),
            fragments=[load_document(FRONTEND_VOLUMES_FRAGMENT)],
            kubectl=fake_kubectl,
        )

        assert list(artifact.files) == ["frontend.deploy.yaml"]
        manifest = to_plain(load_document(artifact.files["frontend.deploy.yaml"]))
        container = manifest["spec"]["template"]["spec"]["containers"][0]
        assert container["resources"] == {"limits": {"cpu": "100m", "memory": "256Mi"}}
        assert container["volumeMounts"] == [{"name": "frontend-data", "mountPath": "/usr/share/nginx/html/"}]
        assert manifest["spec"]["template"]["spec"]["volumes"] == [
            {"name": "frontend-data", "configMap": {"name": "frontend-data"}}
        ]
        assert "status" not in manifest
        assert "creationTimestamp" not in manifest["metadata"]

        assert metadata["status"] == "success"
        assert metadata["ops_applied"] == ["Clean", "SetResources"]
        assert metadata["fragments_merged"] == 1
        assert [v.id for v in metadata["violations"]] == ["structure.EXTERNAL_CONFIGMAP"]
        assert metadata["command"] == [
            "kubectl", "create", "deployment", "frontend", "--image", "nginx", "--port", "80",
            "--dry-run=client", "-o", "yaml",
        ]

    def test_no_clean_keeps_generator_output(self, fake_kubectl, frontend_request):
        artifact, metadata = bootstrap(frontend_request, kubectl=fake_kubectl, clean=False)

        assert artifact.files["frontend.deploy.yaml"] == GENERATED_FRONTEND_DEPLOYMENT
        assert metadata["ops_applied"] == []

    def test_clean_default_from_config(self, fake_kubectl, frontend_request, monkeypatch):
        monkeypatch.setenv("KUBEBOOT_GENERATE_CLEAN", "false")

        _, metadata = bootstrap(frontend_request, kubectl=fake_kubectl)

        assert metadata["ops_applied"] == []

    def test_strict_validation_fails(self, fake_kubectl, frontend_request):
        patch = Patch(ops=[PatchOp("SetField", {"path": "spec.selector.matchLabels.app", "value": "other"})])

        with pytest.raises(ValidationFailed) as exc_info:
            bootstrap(frontend_request, patch=patch, kubectl=fake_kubectl)

        assert "structure.SELECTOR_MISMATCH" in [v.id for v in exc_info.value.violations]

    def test_non_strict_reports_invalid(self, fake_kubectl, frontend_request):
        patch = Patch(ops=[PatchOp("SetField", {"path": "spec.selector.matchLabels.app", "value": "other"})])

        _, metadata = bootstrap(frontend_request, patch=patch, kubectl=fake_kubectl, strict=False)

        assert metadata["status"] == "invalid"

    def test_custom_filename_and_oracles(self, fake_kubectl, frontend_request):
        artifact, metadata = bootstrap(frontend_request, kubectl=fake_kubectl, oracles=[SyntaxOracle()],
                                       filename="web.yaml")

        assert list(artifact.files) == ["web.yaml"]
        assert metadata["violations"] == []


class TestTransform:
    """Tests for transform on manifests already on disk."""

    def test_patch_and_merge(self):
        artifact = ManifestArtifact.from_text(GENERATED_FRONTEND_DEPLOYMENT, "frontend.deploy.yaml")

        result, metadata = transform(
            artifact,
            patch=Patch(ops=[PatchOp("SetReplicas", {"replicas": 2})]),
            fragments=[{"spec": {"revisionHistoryLimit": 3}}],
            oracles=[SyntaxOracle(), StructureOracle()],
        )

        manifest = load_document(result.files["frontend.deploy.yaml"])
        assert manifest["spec"]["replicas"] == 2
        assert manifest["spec"]["revisionHistoryLimit"] == 3
        assert metadata["ops_applied"] == ["SetReplicas"]

    def test_skip_validation(self):
        artifact = ManifestArtifact.from_text("kind: Service\n", "svc.yaml")

        _, metadata = transform(artifact, validate=False)

        assert metadata["violations"] == []
        assert metadata["status"] == "success"


class TestBuildRecipe:
    """Tests for running a whole recipe."""

    def test_frontend_recipe(self, fake_kubectl, tmp_path):
        (tmp_path / "fragments").mkdir()
        (tmp_path / "fragments" / "frontend-volumes.yaml").write_text(FRONTEND_VOLUMES_FRAGMENT)
        (tmp_path / "index.html").write_text("<html></html>\n")
        (tmp_path / "kubeboot.recipe.yaml").write_text(FRONTEND_RECIPE)

        recipe = load_recipe(tmp_path / "kubeboot.recipe.yaml")
        results = build_recipe(recipe, fake_kubectl)

        assert [m["status"] for _, _, m in results] == ["success"] * 3
        # Each resource is validated on its own
        assert [v.id for v in results[1][2]["violations"]] == ["structure.EXTERNAL_CONFIGMAP"]

        expose_args, expose_input = fake_kubectl.calls[2]
        assert expose_args[0] == "expose"
        assert "volumeMounts" in expose_input
        assert "creationTimestamp" not in expose_input

        written = write_outputs(results)

        assert written == [
            tmp_path / "objects" / "frontend.cm.yaml",
            tmp_path / "objects" / "frontend.deploy.yaml",
            tmp_path / "objects" / "frontend.svc.yaml",
        ]
        service = load_document((tmp_path / "objects" / "frontend.svc.yaml").read_text())
        assert service["kind"] == "Service"
        assert "status" not in service

    def test_expose_from_existing_file(self, fake_kubectl, tmp_path):
        (tmp_path / "frontend.deploy.yaml").write_text(GENERATED_FRONTEND_DEPLOYMENT)
        (tmp_path / "recipe.yaml").write_text(
            "resources:\n"
            "  - output: frontend.svc.yaml\n"
            "    generate: {kind: expose, name: frontend, port: 80}\n"
            "    exposeFrom: frontend.deploy.yaml\n"
        )

        build_recipe(load_recipe(tmp_path / "recipe.yaml"), fake_kubectl)

        assert fake_kubectl.calls[0][1] == GENERATED_FRONTEND_DEPLOYMENT


class TestApplyArtifacts:
    def test_pipes_each_artifact(self, fake_kubectl):
        artifact = ManifestArtifact.from_text(GENERATED_FRONTEND_DEPLOYMENT, "frontend.deploy.yaml")

        outputs = apply_artifacts([artifact], fake_kubectl, dry_run="client")

        assert outputs == [GENERATED_FRONTEND_DEPLOYMENT]
        assert fake_kubectl.calls[0][0] == ["apply", "-f", "-", "--dry-run=client", "-o", "yaml"]


def test_default_filename():
    assert default_filename(GenerateRequest(kind="configmap", name="frontend-data")) == "frontend-data.cm.yaml"
    assert default_filename(GenerateRequest(kind="expose", name="frontend")) == "frontend.svc.yaml"
