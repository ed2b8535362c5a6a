"""
Unit tests for configuration loader.

Tests multi-layer config merging, environment variable overrides,
caching, derived paths and layered .env loading.
"""

import json
import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from specme.core.config import (
    clear_cache,
    get_project_config_path,
    get_user_config_path,
    load_config,
    load_layered_env,
)
from specme.core.config.loader import apply_env_overrides, deep_merge, load_json_file
from specme.core.config.models import GitConfig, SpecMeConfig

# ==============================================================================
# Helper Functions Tests
# ==============================================================================


class TestDeepMerge:
    """Test the deep_merge helper function."""

    def test_nested_merge(self):
        base = {"a": 1, "b": {"x": 10, "y": 20}}
        override = {"b": {"y": 30, "z": 40}, "c": 3}
        assert deep_merge(base, override) == {"a": 1, "b": {"x": 10, "y": 30, "z": 40}, "c": 3}

    def test_override_replaces_non_dict(self):
        assert deep_merge({"a": [1, 2, 3]}, {"a": [4, 5]}) == {"a": [4, 5]}

    def test_does_not_mutate_base(self):
        base = {"a": {"x": 1}}
        deep_merge(base, {"a": {"y": 2}})
        assert base == {"a": {"x": 1}}


class TestLoadJsonFile:
    def test_missing_file(self, tmp_path):
        assert load_json_file(tmp_path / "nope.json") is None

    def test_invalid_json(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json")
        assert load_json_file(bad) is None

    def test_non_object(self, tmp_path):
        arr = tmp_path / "arr.json"
        arr.write_text("[1, 2]")
        assert load_json_file(arr) is None


class TestEnvOverrides:
    def test_data_dir(self, monkeypatch):
        monkeypatch.setenv("SPECME_DATA_DIR", "/srv/specme")
        assert apply_env_overrides({})["paths"]["data_dir"] == "/srv/specme"

    def test_git_timeout(self, monkeypatch):
        monkeypatch.setenv("SPECME_GIT_TIMEOUT", "30")
        assert apply_env_overrides({})["git"]["timeout_seconds"] == 30

    @pytest.mark.parametrize("value", ["abc", "0", "-5"])
    def test_invalid_timeout_ignored(self, monkeypatch, caplog, value):
        monkeypatch.setenv("SPECME_GIT_TIMEOUT", value)
        result = apply_env_overrides({})
        assert "timeout_seconds" not in result.get("git", {})
        assert "SPECME_GIT_TIMEOUT" in caplog.text

    def test_forge_token_precedence(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "from-github")
        assert apply_env_overrides({})["forge"]["token"] == "from-github"

        monkeypatch.setenv("SPECME_FORGE_TOKEN", "from-specme")
        assert apply_env_overrides({})["forge"]["token"] == "from-specme"

    def test_blank_token_ignored(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "   ")
        assert "forge" not in apply_env_overrides({})


# ==============================================================================
# load_config Tests
# ==============================================================================


class TestLoadConfig:
    def test_defaults_under_data_dir(self, tmp_path):
        config = load_config(use_cache=False)

        data = tmp_path / "data"
        assert config.paths.data_dir == data
        assert config.paths.mirrors_root == data / "external_repos"
        assert config.paths.sessions_root == data / "apply_sessions"
        assert config.paths.state_db_path == data / "state.db"
        assert config.paths.context_path == data / "codebase_context.txt"
        assert config.git.safety_branch_prefix == "specme/"
        assert config.forge.token is None

    def test_precedence_user_project_env(self, tmp_path, monkeypatch):
        user_path = get_user_config_path()
        user_path.parent.mkdir(parents=True)
        user_path.write_text(
            json.dumps({"git": {"timeout_seconds": 10, "remote_name": "upstream"}})
        )
        get_project_config_path().write_text(json.dumps({"git": {"timeout_seconds": 20}}))

        config = load_config(use_cache=False)
        assert config.git.timeout_seconds == 20
        assert config.git.remote_name == "upstream"

        monkeypatch.setenv("SPECME_GIT_TIMEOUT", "40")
        assert load_config(use_cache=False).git.timeout_seconds == 40

    def test_user_config_respects_xdg(self, tmp_path):
        assert get_user_config_path() == tmp_path / "xdg" / "specme" / "config.json"

    def test_cache(self):
        first = load_config()
        assert load_config() is first
        clear_cache()
        assert load_config() is not first

    def test_invalid_value_raises(self):
        get_project_config_path().write_text(json.dumps({"git": {"timeout_seconds": 0}}))
        with pytest.raises(ValidationError):
            load_config(use_cache=False)

    def test_unknown_sections_ignored(self):
        get_project_config_path().write_text(json.dumps({"dashboard": {"port": 1}}))
        assert isinstance(load_config(use_cache=False), SpecMeConfig)


class TestModels:
    def test_paths_expand_user(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        config = SpecMeConfig.model_validate({"paths": {"data_dir": "~/specme-data"}})
        assert config.paths.data_dir == tmp_path / "specme-data"

    def test_forge_host_lowercased(self):
        config = SpecMeConfig.model_validate({"forge": {"host": " GitHub.COM "}})
        assert config.forge.host == "github.com"

    def test_token_not_in_repr(self):
        config = SpecMeConfig.model_validate({"forge": {"token": "s3cret"}})
        assert "s3cret" not in repr(config)

    def test_internal_roots(self, tmp_path):
        config = load_config(use_cache=False)
        roots = config.internal_roots()

        assert tmp_path / "data" in roots
        assert config.paths.mirrors_root in roots
        assert any((root / "core").is_dir() for root in roots)

    def test_git_config_defaults(self):
        git = GitConfig()
        assert git.conventional_branches == ["develop", "dev", "trunk", "release"]
        assert git.clone_depth == 1


# ==============================================================================
# Layered .env Tests
# ==============================================================================


class TestLayeredEnv:
    def test_project_env_overrides_user_env(self, tmp_path, monkeypatch):
        # teardown removes the value the loader sets
        monkeypatch.setenv("SPECME_TEST_VALUE", "unset")
        monkeypatch.delenv("SPECME_TEST_VALUE")
        user_env = tmp_path / "user.env"
        user_env.write_text("SPECME_TEST_VALUE=user\n")
        project_env = tmp_path / "project.env"
        project_env.write_text("SPECME_TEST_VALUE=project\n")

        load_layered_env(user_env_paths=[user_env], project_env_paths=[project_env])

        assert os.environ["SPECME_TEST_VALUE"] == "project"

    def test_exported_variable_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SPECME_TEST_VALUE", "exported")
        project_env = tmp_path / "project.env"
        project_env.write_text("SPECME_TEST_VALUE=project\n")

        load_layered_env(user_env_paths=[], project_env_paths=[project_env])

        assert os.environ["SPECME_TEST_VALUE"] == "exported"

    def test_missing_files_are_fine(self, tmp_path):
        load_layered_env(
            user_env_paths=[tmp_path / "nope.env"],
            project_env_paths=[Path(tmp_path / "also-nope.env")],
        )
