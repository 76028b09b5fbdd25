"""Tests for config loader functionality."""

import os
import pytest
import tempfile
import yaml

from redpen.libs.config_loader import load_configs, load_default_configs, get_config


def _write_temp_yaml(data) -> str:
    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        yaml.dump(data, f)
        return f.name


def test_load_single_config():
    """Test loading a single config file."""
    config_data = {
        "remote": {"max_attempts": 5},
        "storage": {"enabled": True}
    }
    temp_path = _write_temp_yaml(config_data)

    try:
        result = load_configs(temp_path)
        assert result == config_data
    finally:
        os.unlink(temp_path)


def test_merge_configs():
    """Later files override earlier ones key by key."""
    base = {
        "remote": {"max_attempts": 3, "backoff_seconds": 0.35, "timeout_seconds": 22},
        "openai": {"api_key": "", "model": "gpt-4.1-mini"}
    }
    override = {
        "remote": {"max_attempts": 1},
        "openai": {"api_key": "sk-local"},
        "tools": {"max_concurrent": 8}
    }
    base_path = _write_temp_yaml(base)
    override_path = _write_temp_yaml(override)

    try:
        result = load_configs(base_path, override_path)
        assert result["remote"] == {"max_attempts": 1, "backoff_seconds": 0.35, "timeout_seconds": 22}
        assert result["openai"] == {"api_key": "sk-local", "model": "gpt-4.1-mini"}
        assert result["tools"]["max_concurrent"] == 8
    finally:
        os.unlink(base_path)
        os.unlink(override_path)


def test_load_missing_file():
    """Test that missing files are skipped with warning."""
    config_data = {"storage": {"snapshot_dir": "snaps"}}
    temp_path = _write_temp_yaml(config_data)

    try:
        result = load_configs(temp_path, "nonexistent.yaml")
        assert result == config_data
    finally:
        os.unlink(temp_path)


def test_no_configs_loaded():
    """Test that ValueError is raised when no configs are loaded."""
    with pytest.raises(ValueError, match="No configs loaded"):
        load_configs("nonexistent1.yaml", "nonexistent2.yaml")


def test_invalid_yaml_type():
    """Test that TypeError is raised for non-dict YAML."""
    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        f.write("just a string, not a dict")
        temp_path = f.name

    try:
        with pytest.raises(TypeError, match="must be a dict"):
            load_configs(temp_path)
    finally:
        os.unlink(temp_path)


def test_get_config():
    """Test getting config values by dot-separated key."""
    config = {
        "remote": {
            "max_attempts": 3,
            "backoff": {"seconds": 0.35}
        },
        "openai": {"model": "gpt-4.1-mini"}
    }

    assert get_config("remote.max_attempts", config) == 3
    assert get_config("remote.backoff.seconds", config) == 0.35
    assert get_config("openai.model", config) == "gpt-4.1-mini"

    with pytest.raises(KeyError):
        get_config("nonexistent.key", config)

    with pytest.raises(KeyError):
        get_config("remote.backoff.nonexistent", config)

    with pytest.raises(KeyError):
        get_config("remote.max_attempts.deeper", config)


def test_get_config_default():
    """A default is returned instead of raising for absent keys."""
    config = {"remote": {"max_attempts": 3}}

    assert get_config("remote.timeout_seconds", config, default=22) == 22
    assert get_config("storage.enabled", config, default=False) is False
    assert get_config("remote.max_attempts.deeper", config, default=None) is None
    assert get_config("remote.max_attempts", config, default=99) == 3


def test_load_default_configs_integration():
    """The shipped default.yaml carries every key the package reads."""
    project_root = os.path.dirname(os.path.dirname(__file__))
    default_config_path = os.path.join(project_root, "config", "default.yaml")
    if not os.path.exists(default_config_path):
        pytest.skip("config/default.yaml not present")

    config = load_default_configs()
    assert isinstance(config, dict)
    assert "model" in config["openai"]
    assert get_config("remote.max_attempts", config) >= 1
    assert get_config("remote.backoff_seconds", config) > 0
    assert get_config("remote.timeout_seconds", config) > 0
    assert "snapshot_dir" in config["storage"]
    assert get_config("tools.max_concurrent", config) >= 1
