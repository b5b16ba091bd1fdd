"""Tests for configuration loading."""

import json

from kubeboot.core.config import as_bool, default_config_path, get_config_value, load_config


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file(self, tmp_path):
        assert load_config(str(tmp_path / "missing.json")) == {}

    def test_valid_file(self, tmp_path):
        path = tmp_path / "kubeboot.json"
        path.write_text(json.dumps({"kubectl": {"binary": "/usr/local/bin/kubectl"}}))

        assert load_config(str(path)) == {"kubectl": {"binary": "/usr/local/bin/kubectl"}}

    def test_invalid_json(self, tmp_path, caplog):
        path = tmp_path / "kubeboot.json"
        path.write_text("{not json")

        assert load_config(str(path)) == {}
        assert "Ignoring unreadable config" in caplog.text

    def test_non_object(self, tmp_path):
        path = tmp_path / "kubeboot.json"
        path.write_text("[1, 2]")

        assert load_config(str(path)) == {}

    def test_env_config_path(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.json"
        path.write_text(json.dumps({"generate": {"clean": False}}))
        monkeypatch.setenv("KUBEBOOT_CONFIG", str(path))

        assert default_config_path() == str(path)
        assert load_config() == {"generate": {"clean": False}}


class TestGetConfigValue:
    """Tests for get_config_value priority."""

    def test_config_wins(self, monkeypatch):
        monkeypatch.setenv("KUBEBOOT_KUBECTL_BINARY", "from-env")
        config = {"kubectl": {"binary": "from-config"}}

        assert get_config_value(["kubectl", "binary"], default="kubectl", config=config) == "from-config"

    def test_env_fallback(self, monkeypatch):
        monkeypatch.setenv("KUBEBOOT_KUBECTL_BINARY", "from-env")

        assert get_config_value(["kubectl", "binary"], default="kubectl", config={}) == "from-env"

    def test_explicit_default(self, monkeypatch):
        monkeypatch.delenv("KUBEBOOT_KUBECTL_TIMEOUT_SECONDS", raising=False)

        assert get_config_value(["kubectl", "timeout_seconds"], default=5.0, config={}) == 5.0

    def test_builtin_default(self, monkeypatch):
        monkeypatch.delenv("KUBEBOOT_VALIDATE_KUBERNETES_VERSION", raising=False)

        assert get_config_value(["validate", "kubernetes_version"], config={}) == "1.28"

    def test_unknown_key(self, monkeypatch):
        monkeypatch.delenv("KUBEBOOT_NOPE", raising=False)

        assert get_config_value(["nope"], config={}) is None

    def test_false_is_a_value(self):
        assert get_config_value(["generate", "clean"], default=True, config={"generate": {"clean": False}}) is False


class TestAsBool:
    def test_strings(self):
        assert as_bool("true")
        assert as_bool(" Yes ")
        assert as_bool("1")
        assert not as_bool("false")
        assert not as_bool("0")

    def test_values(self):
        assert as_bool(True)
        assert not as_bool(None)
