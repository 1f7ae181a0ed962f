import os
import pytest
import yaml
from pathlib import Path
from rifler.config_loader import load_config


@pytest.fixture
def clean_env():
    """Ensure environment is clean before and after tests."""
    vars_to_clear = [
        "RIFLER_CONFIG_FILE",
        "RIFLER_CONFIG_DIR",
        "RIFLER_ENV"
    ]
    old_values = {}
    for v in vars_to_clear:
        old_values[v] = os.environ.get(v)
        if v in os.environ:
            del os.environ[v]

    yield

    # Restore
    for v, val in old_values.items():
        if val is not None:
            os.environ[v] = val
        elif v in os.environ:
            del os.environ[v]


def test_load_config_defaults(clean_env):
    """Repo ships config/general.yaml + config/dev.yaml."""
    config = load_config()
    assert config["status"] == "OK"
    assert config["env"] == "DEV"
    assert config["data"]["search"]["smart_excludes"] is True
    # dev.yaml overrides a single key without dropping the rest of the section
    assert config["data"]["search"]["max_results"] == 2000
    assert config["data"]["search"]["max_concurrency"] == 100


def test_config_file_override(clean_env, tmp_path):
    cfg_file = tmp_path / "custom_config.yaml"
    (tmp_path / "project").mkdir()

    data = {
        "search": {"max_results": 50},
        "workspace": {"roots": ["project"]}  # Relative path
    }
    with open(cfg_file, "w") as f:
        yaml.dump(data, f)

    os.environ["RIFLER_CONFIG_FILE"] = str(cfg_file)

    config = load_config()

    assert config["status"] == "OK"
    assert config["config_path"] == str(cfg_file)
    assert config["data"]["search"]["max_results"] == 50
    # Roots resolve relative to the config dir
    assert config["workspace_roots"] == [str((tmp_path / "project").resolve())]


def test_config_dir_override(clean_env, tmp_path):
    general = tmp_path / "general.yaml"
    prod = tmp_path / "prod.yaml"

    with open(general, "w") as f:
        yaml.dump({"search": {"max_results": 10, "smart_excludes": True}}, f)

    with open(prod, "w") as f:
        yaml.dump({"search": {"max_results": 99}}, f)

    os.environ["RIFLER_CONFIG_DIR"] = str(tmp_path)
    os.environ["RIFLER_ENV"] = "PROD"

    config = load_config()

    assert config["status"] == "OK"
    assert config["env"] == "PROD"
    assert config["data"]["search"] == {"max_results": 99, "smart_excludes": True}
    # config_path points to the env-specific file
    assert config["config_path"] == str(prod)


def test_legacy_smart_excludes_is_mapped(clean_env, tmp_path):
    cfg_file = tmp_path / "legacy.yaml"
    with open(cfg_file, "w") as f:
        yaml.dump({"smart_excludes": False, "search": {}}, f)

    os.environ["RIFLER_CONFIG_FILE"] = str(cfg_file)

    config = load_config()
    assert config["status"] == "OK"
    assert config["data"]["search"]["smart_excludes"] is False
    assert "smart_excludes" not in config["data"]


def test_invalid_config_reports_error(clean_env, tmp_path):
    cfg_file = tmp_path / "bad.yaml"
    with open(cfg_file, "w") as f:
        yaml.dump({"search": {"max_results": "lots"}}, f)

    os.environ["RIFLER_CONFIG_FILE"] = str(cfg_file)

    config = load_config()
    assert config["status"] == "ERROR"
    assert "max_results" in config["error"]
    assert config["data"]["search"]["max_results"] == "lots"


def test_missing_config_dir(clean_env, tmp_path):
    os.environ["RIFLER_CONFIG_DIR"] = str(tmp_path / "nowhere")
    config = load_config()
    assert config["status"] == "ERROR"
    assert "No config files found" in config["error"]
