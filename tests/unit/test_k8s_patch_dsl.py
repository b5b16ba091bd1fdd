"""Tests for K8s Patch DSL operations."""

import pytest

from kubeboot.core.errors import PatchApplyError
from kubeboot.core.schema.patch_dsl import Patch, PatchOp
from kubeboot.k8s.examples import DRY_RUN_LIST, GENERATED_FRONTEND_DEPLOYMENT, GENERATED_FRONTEND_SERVICE
from kubeboot.k8s.patch_dsl import (
    apply_k8s_op,
    apply_k8s_patch,
    apply_ops_to_manifest,
    parse_path,
    parse_set_expression,
    split_image,
)
from kubeboot.k8s.yamlio import load_document, load_documents

FILES = {"frontend.deploy.yaml": GENERATED_FRONTEND_DEPLOYMENT}


def _apply(op: PatchOp, files=None) -> dict:
    result = apply_k8s_op(files or FILES, op)
    return load_document(result["frontend.deploy.yaml"])


def _container(manifest: dict) -> dict:
    return manifest["spec"]["template"]["spec"]["containers"][0]


class TestSetReplicas:
    """Tests for SetReplicas operation."""

    def test_set_replicas(self):
        manifest = _apply(PatchOp("SetReplicas", {"replicas": 3}))

        assert manifest["spec"]["replicas"] == 3

    def test_negative_replicas_rejected(self):
        with pytest.raises(PatchApplyError):
            _apply(PatchOp("SetReplicas", {"replicas": -1}))

    def test_service_not_targeted(self):
        """Test that an op matching no manifest raises."""
        files = {"svc.yaml": GENERATED_FRONTEND_SERVICE}

        with pytest.raises(PatchApplyError, match="matched no manifest"):
            apply_k8s_op(files, PatchOp("SetReplicas", {"replicas": 2}))


class TestSetImage:
    """Tests for SetImage operation."""

    def test_set_full_image(self):
        manifest = _apply(PatchOp("SetImage", {"container": "nginx", "image": "nginx:1.25"}))

        assert _container(manifest)["image"] == "nginx:1.25"

    def test_set_tag(self):
        manifest = _apply(PatchOp("SetImage", {"tag": "1.25-alpine"}))

        assert _container(manifest)["image"] == "nginx:1.25-alpine"

    def test_unknown_container_raises(self):
        with pytest.raises(PatchApplyError):
            _apply(PatchOp("SetImage", {"container": "missing", "image": "nginx:1.25"}))

    def test_missing_image_and_tag_raises(self):
        with pytest.raises(PatchApplyError, match="missing required argument"):
            _apply(PatchOp("SetImage", {"container": "nginx"}))

    def test_split_image_with_registry_port(self):
        assert split_image("registry:5000/web/nginx") == ("registry:5000/web/nginx", None)
        assert split_image("registry:5000/web/nginx:1.2") == ("registry:5000/web/nginx", "1.2")
        assert split_image("nginx@sha256:abc") == ("nginx", None)


class TestSetResources:
    """Tests for SetResources operation."""

    def test_set_limits_replaces_empty_resources(self):
        manifest = _apply(PatchOp("SetResources", {"limits": {"cpu": "100m", "memory": "256Mi"}}))

        assert _container(manifest)["resources"] == {"limits": {"cpu": "100m", "memory": "256Mi"}}

    def test_requests_and_limits_merge(self):
        patch = Patch(ops=[
            PatchOp("SetResources", {"limits": {"cpu": "100m"}}),
            PatchOp("SetResources", {"requests": {"cpu": "50m"}, "limits": {"memory": "256Mi"}}),
        ])
        manifest = load_document(apply_k8s_patch(FILES, patch)["frontend.deploy.yaml"])

        resources = _container(manifest)["resources"]
        assert resources["limits"] == {"cpu": "100m", "memory": "256Mi"}
        assert resources["requests"] == {"cpu": "50m"}

    def test_empty_resources_rejected(self):
        with pytest.raises(PatchApplyError):
            _apply(PatchOp("SetResources", {}))


class TestSetLabel:
    """Tests for SetLabel operation."""

    def test_metadata_scope(self):
        manifest = _apply(PatchOp("SetLabel", {"key": "tier", "value": "web"}))

        assert manifest["metadata"]["labels"]["tier"] == "web"
        assert "tier" not in manifest["spec"]["template"]["metadata"]["labels"]

    def test_selector_scope_keeps_template_consistent(self):
        manifest = _apply(PatchOp("SetLabel", {"key": "tier", "value": "web", "scope": "selector"}))

        assert manifest["spec"]["selector"]["matchLabels"]["tier"] == "web"
        assert manifest["spec"]["template"]["metadata"]["labels"]["tier"] == "web"

    def test_service_selector(self):
        files = {"svc.yaml": GENERATED_FRONTEND_SERVICE}
        op = PatchOp("SetLabel", {"key": "tier", "value": "web", "scope": "selector"})

        manifest = load_document(apply_k8s_op(files, op)["svc.yaml"])

        assert manifest["spec"]["selector"] == {"app": "frontend", "tier": "web"}

    def test_unknown_scope(self):
        with pytest.raises(PatchApplyError):
            _apply(PatchOp("SetLabel", {"key": "a", "value": "b", "scope": "everywhere"}))


class TestAnnotationEnvNamespace:
    """Tests for SetAnnotation, SetEnv and SetNamespace."""

    def test_set_and_remove_annotation(self):
        patch = Patch(ops=[
            PatchOp("SetAnnotation", {"key": "owner", "value": "web-team"}),
            PatchOp("SetAnnotation", {"key": "owner", "value": None}),
        ])
        manifest = load_document(apply_k8s_patch(FILES, patch)["frontend.deploy.yaml"])

        assert "annotations" not in manifest["metadata"]

    def test_env_upsert(self):
        patch = Patch(ops=[
            PatchOp("SetEnv", {"name": "LOG_LEVEL", "value": "info"}),
            PatchOp("SetEnv", {"container": "nginx", "name": "LOG_LEVEL", "value": "debug"}),
            PatchOp("SetEnv", {"name": "WORKERS", "value": 4}),
        ])
        manifest = load_document(apply_k8s_patch(FILES, patch)["frontend.deploy.yaml"])

        assert _container(manifest)["env"] == [
            {"name": "LOG_LEVEL", "value": "debug"},
            {"name": "WORKERS", "value": "4"},
        ]

    def test_set_namespace(self):
        manifest = _apply(PatchOp("SetNamespace", {"namespace": "default"}))

        assert manifest["metadata"]["namespace"] == "default"


class TestFieldPaths:
    """Tests for SetField / RemoveField and path parsing."""

    def test_parse_path(self):
        assert parse_path("spec.template.spec.containers[name=nginx].image") == [
            "spec", "template", "spec", "containers", ("name", "nginx"), "image"
        ]
        assert parse_path('metadata.annotations["example.com/owner"]') == [
            "metadata", "annotations", "example.com/owner"
        ]
        assert parse_path("spec.ports[0].port") == ["spec", "ports", 0, "port"]

    def test_invalid_path(self):
        with pytest.raises(ValueError):
            parse_path("spec.containers[nope]")

    def test_set_field_through_selector(self):
        op = PatchOp("SetField", {
            "path": "spec.template.spec.containers[name=nginx].imagePullPolicy",
            "value": "IfNotPresent",
        })
        manifest = _apply(op)

        assert _container(manifest)["imagePullPolicy"] == "IfNotPresent"

    def test_set_field_creates_intermediate(self):
        manifest = _apply(PatchOp("SetField", {"path": "spec.revisionHistoryLimit", "value": 10}))

        assert manifest["spec"]["revisionHistoryLimit"] == 10

    def test_remove_field_missing_is_noop(self):
        manifest = _apply(PatchOp("RemoveField", {"path": "spec.paused"}))

        assert "paused" not in manifest["spec"]

    def test_remove_field(self):
        manifest = _apply(PatchOp("RemoveField", {"path": "spec.strategy"}))

        assert "strategy" not in manifest["spec"]


class TestVolumes:
    """Tests for AddVolume and AddVolumeMount."""

    def test_add_configmap_volume_and_mount(self):
        patch = Patch(ops=[
            PatchOp("AddVolume", {"name": "frontend-data", "configMap": {"name": "frontend-data"}}),
            PatchOp("AddVolumeMount", {"container": "nginx", "name": "frontend-data",
                                       "mountPath": "/usr/share/nginx/html/"}),
        ])
        manifest = load_document(apply_k8s_patch(FILES, patch)["frontend.deploy.yaml"])

        pod_spec = manifest["spec"]["template"]["spec"]
        assert pod_spec["volumes"] == [{"name": "frontend-data", "configMap": {"name": "frontend-data"}}]
        assert pod_spec["containers"][0]["volumeMounts"] == [
            {"name": "frontend-data", "mountPath": "/usr/share/nginx/html/"}
        ]

    def test_add_volume_twice_upserts(self):
        patch = Patch(ops=[
            PatchOp("AddVolume", {"name": "data", "emptyDir": {}}),
            PatchOp("AddVolume", {"name": "data", "configMap": {"name": "frontend-data"}}),
        ])
        manifest = load_document(apply_k8s_patch(FILES, patch)["frontend.deploy.yaml"])

        volumes = manifest["spec"]["template"]["spec"]["volumes"]
        assert len(volumes) == 1
        assert "configMap" in volumes[0]

    def test_volume_needs_one_source(self):
        with pytest.raises(PatchApplyError):
            _apply(PatchOp("AddVolume", {"name": "data"}))


class TestClean:
    """Tests for Clean operation."""

    def test_clean_generated_deployment(self):
        manifest = _apply(PatchOp("Clean", {}))

        assert "status" not in manifest
        assert "creationTimestamp" not in manifest["metadata"]
        assert "creationTimestamp" not in manifest["spec"]["template"]["metadata"]
        assert "strategy" not in manifest["spec"]
        assert "resources" not in _container(manifest)
        assert manifest["metadata"]["labels"] == {"app": "frontend"}

    def test_clean_dry_run_list(self):
        result = apply_k8s_op({"dry-run.yaml": DRY_RUN_LIST}, PatchOp("Clean", {}))
        doc = load_documents(result["dry-run.yaml"])[0]

        assert doc["kind"] == "List"
        for item in doc["items"]:
            assert "status" not in item
            assert "annotations" not in item["metadata"]
            assert "creationTimestamp" not in item["metadata"]
            assert item["metadata"]["namespace"] == "default"


class TestKindFilterAndDispatch:
    """Tests for kind filtering and unknown operations."""

    def test_kind_filter(self):
        result = apply_k8s_op({"dry-run.yaml": DRY_RUN_LIST},
                              PatchOp("SetLabel", {"kind": "Service", "key": "exposed", "value": "true"}))
        items = load_documents(result["dry-run.yaml"])[0]["items"]

        labelled = [item["kind"] for item in items if "exposed" in item["metadata"].get("labels", {})]
        assert labelled == ["Service"]

    def test_unknown_operation(self):
        with pytest.raises(PatchApplyError, match="Unknown K8s patch operation"):
            _apply(PatchOp("Explode", {}))

    def test_apply_ops_to_manifest_raises_when_not_applicable(self):
        manifest = load_document(GENERATED_FRONTEND_SERVICE)

        with pytest.raises(PatchApplyError):
            apply_ops_to_manifest(manifest, [PatchOp("SetReplicas", {"replicas": 2})])

    def test_original_files_unchanged(self):
        files = dict(FILES)
        apply_k8s_op(files, PatchOp("SetReplicas", {"replicas": 5}))

        assert files == FILES


class TestParseSetExpression:
    """Tests for --set shorthand parsing."""

    def test_replicas(self):
        assert parse_set_expression("replicas=3") == PatchOp("SetReplicas", {"replicas": 3})

    def test_image_forms(self):
        assert parse_set_expression("image=nginx:1.25") == PatchOp("SetImage", {"image": "nginx:1.25"})
        assert parse_set_expression("image=nginx=nginx:1.25") == PatchOp(
            "SetImage", {"container": "nginx", "image": "nginx:1.25"})

    def test_resources(self):
        op = parse_set_expression("resources.limits=cpu=100m,memory=256Mi")

        assert op == PatchOp("SetResources", {"limits": {"cpu": "100m", "memory": "256Mi"}})

    def test_label_selector_annotation_env_namespace(self):
        assert parse_set_expression("label=app=frontend").args["scope"] == "metadata"
        assert parse_set_expression("selector=app=frontend").args["scope"] == "selector"
        assert parse_set_expression("annotation=owner=web").op == "SetAnnotation"
        assert parse_set_expression("env=LOG_LEVEL=debug") == PatchOp(
            "SetEnv", {"name": "LOG_LEVEL", "value": "debug"})
        assert parse_set_expression("namespace=default") == PatchOp("SetNamespace", {"namespace": "default"})

    def test_generic_path_with_selector(self):
        op = parse_set_expression("spec.template.spec.containers[name=nginx].imagePullPolicy=Always")

        assert op.op == "SetField"
        assert op.args == {"path": "spec.template.spec.containers[name=nginx].imagePullPolicy",
                           "value": "Always"}

    def test_generic_value_is_yaml_typed(self):
        assert parse_set_expression("spec.paused=true").args["value"] is True
        assert parse_set_expression("spec.minReadySeconds=5").args["value"] == 5

    def test_invalid_expressions(self):
        for expr in ("replicas", "replicas=many", "label=novalue", "resources.limits=cpu"):
            with pytest.raises(PatchApplyError):
                parse_set_expression(expr)
