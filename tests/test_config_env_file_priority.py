import pytest
from rifler.config_loader import load_config


@pytest.fixture(autouse=True)
def no_config_env(monkeypatch):
    for name in ("RIFLER_CONFIG_FILE", "RIFLER_CONFIG_DIR", "RIFLER_ENV"):
        monkeypatch.delenv(name, raising=False)


def test_config_env_priority_source_field(tmp_path, monkeypatch):
    cfg_file = tmp_path / "custom.yaml"
    cfg_file.write_text("search:\n  max_results: 3\n")
    # File override wins over a directory override
    monkeypatch.setenv("RIFLER_CONFIG_DIR", str(tmp_path / "ignored"))
    monkeypatch.setenv("RIFLER_CONFIG_FILE", str(cfg_file))

    config = load_config()
    assert config["status"] == "OK"
    assert config["source"].startswith("ENV_FILE")
    assert config["config_path"] == str(cfg_file)


def test_config_dir_source(tmp_path, monkeypatch):
    (tmp_path / "general.yaml").write_text("search: {}\n")
    monkeypatch.setenv("RIFLER_CONFIG_DIR", str(tmp_path))

    config = load_config()
    assert config["status"] == "OK"
    assert config["source"].startswith("ENV_DIR")
    # No dev.yaml in the directory, general.yaml alone is enough
    assert config["config_path"] == str(tmp_path / "general.yaml")


def test_config_default_source():
    config = load_config()
    assert config["status"] == "OK"
    assert config["source"].startswith("DEFAULT")
