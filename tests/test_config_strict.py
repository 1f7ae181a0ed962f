import pytest
from rifler.core.config_validator import ConfigValidator
from rifler.core.settings import SearchSettings


def test_config_strict_valid():
    config = {
        "search": {
            "max_results": 500,
            "max_concurrency": 16,
            "max_file_size_bytes": 2048,
            "smart_excludes": False,
            "reject_unsafe_regex": True,
            "exclude_dirs": ["node_modules", "target"],
            "binary_extensions": [".png"],
        },
        "workspace": {"roots": ["/srv/project"]},
    }
    errors = ConfigValidator.validate(config)
    assert not errors


def test_config_strict_missing_search_section():
    errors = ConfigValidator.validate({"workspace": {"roots": []}})
    assert any("Missing required section: 'search'" in e for e in errors)


def test_config_strict_bad_types():
    config = {
        "search": {
            "smart_excludes": "yes",  # Str not Bool
            "max_results": 0,
            "max_concurrency": True,
            "exclude_dirs": "node_modules",
        },
        "workspace": {"roots": [1, 2]},
    }
    errors = ConfigValidator.validate(config)
    assert any("must be boolean" in e for e in errors)
    assert any("'max_results' must be positive" in e for e in errors)
    assert any("'max_concurrency' must be an integer" in e for e in errors)
    assert any("'search.exclude_dirs' must be a list of strings" in e for e in errors)
    assert any("'workspace.roots' must be a list of strings" in e for e in errors)


def test_settings_from_config_defaults_and_overrides():
    defaults = SearchSettings.from_config(None)
    assert defaults.max_results == 10000
    assert defaults.max_file_size_bytes == 1024 * 1024
    assert "node_modules" in defaults.exclude_dirs
    assert ".png" in defaults.binary_extensions

    settings = SearchSettings.from_config({
        "search": {"max_results": 5, "smart_excludes": False, "binary_extensions": ["BIN", ".Dat"]}
    })
    assert settings.max_results == 5
    assert settings.smart_excludes is False
    assert settings.binary_extensions == frozenset({".bin", ".dat"})
    # Untouched keys keep defaults
    assert settings.max_concurrency == 100
