"""Tests for kubeconfig discovery and loading, settings, and precedence rules."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from kubeconnect.config import (
    get_config_dir,
    in_cluster_environment,
    is_running_in_cluster,
    load_global_config,
    load_kubeconfig,
    load_kubeconfig_file,
    locate_kubeconfig,
    resolve_context_name,
    save_global_config,
)
from kubeconnect.exceptions import ConfigError
from kubeconnect.models import GlobalConfig
from conftest import kubeconfig_dict, write_kubeconfig


# ---------------------------------------------------------------------------
# User settings
# ---------------------------------------------------------------------------


class TestGlobalConfig:
    def test_defaults_when_missing(self, isolated_config: Path) -> None:
        config = load_global_config()
        assert config == GlobalConfig()

    def test_save_and_load(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(default_context="prod", exec_timeout=5))
        loaded = load_global_config()
        assert loaded.default_context == "prod"
        assert loaded.exec_timeout == 5

    def test_config_dir_uses_xdg(self, isolated_config: Path) -> None:
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr("kubeconnect.config._is_xdg_platform", lambda: True)
            assert get_config_dir() == isolated_config / "config" / "kubeconnect"

    def test_save_leaves_no_temp_files(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig())
        leftovers = [p.name for p in get_config_dir().iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []

    def test_invalid_json_raises(self, isolated_config: Path) -> None:
        (get_config_dir() / "config.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()

    def test_invalid_values_raise(self, isolated_config: Path) -> None:
        (get_config_dir() / "config.json").write_text(
            json.dumps({"exec_timeout": -1}), encoding="utf-8"
        )
        with pytest.raises(ConfigError):
            load_global_config()


# ---------------------------------------------------------------------------
# Kubeconfig discovery
# ---------------------------------------------------------------------------


class TestLocateKubeconfig:
    def test_explicit_path_wins(self, tmp_path: Path) -> None:
        environ = {"KUBECONFIG": "/somewhere/else"}
        assert locate_kubeconfig(tmp_path / "cfg", environ) == [tmp_path / "cfg"]

    def test_env_list(self, tmp_path: Path) -> None:
        first, second = tmp_path / "a", tmp_path / "b"
        environ = {"KUBECONFIG": os.pathsep.join([str(first), "", str(second)])}
        assert locate_kubeconfig(None, environ) == [first, second]

    def test_default_home_path(self, isolated_config: Path) -> None:
        paths = locate_kubeconfig(None, {})
        assert paths == [isolated_config / "home" / ".kube" / "config"]


# ---------------------------------------------------------------------------
# Kubeconfig loading
# ---------------------------------------------------------------------------


class TestLoadKubeconfig:
    def test_load_single_file(self, tmp_path: Path) -> None:
        path = write_kubeconfig(tmp_path / "config", kubeconfig_dict())
        doc = load_kubeconfig([path])
        assert doc.current_context == "dev"
        assert doc.find_cluster("dev-cluster").cluster.server == "https://10.0.0.1:6443"

    def test_missing_single_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_kubeconfig([tmp_path / "missing"])

    def test_list_skips_missing_files(self, tmp_path: Path) -> None:
        path = write_kubeconfig(tmp_path / "config", kubeconfig_dict())
        doc = load_kubeconfig([tmp_path / "missing", path])
        assert doc.current_context == "dev"

    def test_list_with_no_existing_files(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="None of the kubeconfig files exist"):
            load_kubeconfig([tmp_path / "a", tmp_path / "b"])

    def test_list_merges_first_wins(self, tmp_path: Path) -> None:
        first = write_kubeconfig(tmp_path / "one", kubeconfig_dict(user={"token": "first"}))
        second = write_kubeconfig(
            tmp_path / "two", kubeconfig_dict(user={"token": "second"}, current="other")
        )
        doc = load_kubeconfig([first, second])
        assert doc.current_context == "dev"
        assert doc.find_user("dev-user").user.token == "first"

    def test_empty_file_is_empty_document(self, tmp_path: Path) -> None:
        path = tmp_path / "config"
        path.write_text("", encoding="utf-8")
        doc = load_kubeconfig_file(path)
        assert doc.contexts == []

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config"
        path.write_text("contexts: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid kubeconfig"):
            load_kubeconfig_file(path)

    def test_non_mapping_document(self, tmp_path: Path) -> None:
        path = tmp_path / "config"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="mapping"):
            load_kubeconfig_file(path)

    def test_wrong_field_type(self, tmp_path: Path) -> None:
        path = write_kubeconfig(tmp_path / "config", {"contexts": "not-a-list"})
        with pytest.raises(ConfigError):
            load_kubeconfig_file(path)

    def test_relative_paths_resolved_against_file(self, tmp_path: Path) -> None:
        data = kubeconfig_dict(
            cluster={"server": "https://k", "certificate-authority": "certs/ca.crt"},
            user={
                "client-certificate": "certs/client.crt",
                "client-key": "/abs/client.key",
                "tokenFile": "token",
                "exec": {"command": "./bin/get-token", "apiVersion": "v"},
            },
        )
        path = write_kubeconfig(tmp_path / "kube" / "config", data)
        doc = load_kubeconfig_file(path)
        base = tmp_path / "kube"
        assert doc.find_cluster("dev-cluster").cluster.certificate_authority == str(
            base / "certs" / "ca.crt"
        )
        user = doc.find_user("dev-user").user
        assert user.client_certificate == str(base / "certs" / "client.crt")
        assert user.client_key == "/abs/client.key"
        assert user.token_file == str(base / "token")
        assert user.exec.command == str(base / "bin" / "get-token")

    def test_bare_exec_command_is_not_rebased(self, tmp_path: Path) -> None:
        data = kubeconfig_dict(user={"exec": {"command": "aws", "apiVersion": "v"}})
        path = write_kubeconfig(tmp_path / "config", data)
        assert load_kubeconfig_file(path).find_user("dev-user").user.exec.command == "aws"


# ---------------------------------------------------------------------------
# Precedence helpers
# ---------------------------------------------------------------------------


class TestResolveContextName:
    def test_cli_wins(self) -> None:
        settings = GlobalConfig(default_context="from-settings")
        environ = {"KUBECONNECT_CONTEXT": "from-env"}
        assert resolve_context_name("from-cli", settings, environ) == "from-cli"

    def test_env_beats_settings(self) -> None:
        settings = GlobalConfig(default_context="from-settings")
        environ = {"KUBECONNECT_CONTEXT": "from-env"}
        assert resolve_context_name(None, settings, environ) == "from-env"

    def test_settings_fallback(self) -> None:
        settings = GlobalConfig(default_context="from-settings")
        assert resolve_context_name(None, settings, {}) == "from-settings"

    def test_none_when_unset(self) -> None:
        assert resolve_context_name(None, GlobalConfig(), {}) is None


class TestInClusterEnvironment:
    def test_reads_service_variables(self) -> None:
        environ = {"KUBERNETES_SERVICE_HOST": "10.96.0.1", "KUBERNETES_SERVICE_PORT": "443"}
        env = in_cluster_environment(environ, service_account_path="/tmp/sa")
        assert env.service_host == "10.96.0.1"
        assert env.service_port == "443"
        assert env.service_account_path == "/tmp/sa"
        assert is_running_in_cluster(environ) is True

    def test_missing_variables_are_blank(self) -> None:
        env = in_cluster_environment({})
        assert env.service_host == ""
        assert env.service_account_path == "/var/run/secrets/kubernetes.io/serviceaccount"
        assert is_running_in_cluster({}) is False
