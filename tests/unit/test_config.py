import tomllib
from pathlib import Path

import pytest

import jellyfin_manager
from jellyfin_manager.app_shell.config import (
    DEFAULT_RULES_PATH,
    PACKAGE_DIR,
    ConfigurationError,
    RulesBootstrapConfig,
    Settings,
    validate_ops_rules,
)
from jellyfin_manager.rules.loader import load_rules


@pytest.fixture
def rules():
    return load_rules(DEFAULT_RULES_PATH)


def test_creates_data_dir(rules, tmp_path):
    data_dir = tmp_path / "nested" / "data"

    validate_ops_rules(rules, data_dir)

    assert data_dir.is_dir()


def test_missing_required_env(rules, tmp_path, monkeypatch):
    monkeypatch.delenv("JFM_TEST_REQUIRED", raising=False)
    rules.ops.required_env = ["JFM_TEST_REQUIRED"]

    with pytest.raises(ConfigurationError, match="JFM_TEST_REQUIRED"):
        validate_ops_rules(rules, tmp_path)


def test_required_env_present(rules, tmp_path, monkeypatch):
    monkeypatch.setenv("JFM_TEST_REQUIRED", "1")
    rules.ops.required_env = ["JFM_TEST_REQUIRED"]

    validate_ops_rules(rules, tmp_path)


def test_bootstrap_config_view(rules):
    config = RulesBootstrapConfig(rules).get_bootstrap_config()
    assert config.enabled_if_no_users is True


def test_settings_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("JFM_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("JFM_JELLYFIN_URL", "http://jf:8096")
    monkeypatch.setenv("JFM_JELLYFIN_API_KEY", "key")
    monkeypatch.delenv("JFM_RULES_PATH", raising=False)

    settings = Settings()

    assert settings.db_path == str(tmp_path / "jfm.db")
    assert settings.jellyfin_url == "http://jf:8096"
    assert settings.jellyfin_api_key == "key"
    assert settings.rules_path == DEFAULT_RULES_PATH
    assert Path(settings.migrations_dir) == PACKAGE_DIR / "migrations"


def test_blank_env_is_unset(monkeypatch):
    monkeypatch.setenv("JFM_JELLYFIN_URL", "")
    monkeypatch.delenv("JFM_BOOTSTRAP_USERNAME", raising=False)

    settings = Settings()

    assert settings.jellyfin_url is None
    assert settings.bootstrap_username is None


def test_resources_live_inside_the_package():
    package = Path(jellyfin_manager.__file__).resolve().parent

    assert PACKAGE_DIR == package
    assert DEFAULT_RULES_PATH.is_file()
    assert (PACKAGE_DIR / "migrations" / "0001_initial.sql").is_file()


def test_package_data_is_declared():
    with open(PACKAGE_DIR.parent / "pyproject.toml", "rb") as f:
        pyproject = tomllib.load(f)

    package_data = pyproject["tool"]["setuptools"]["package-data"]["jellyfin_manager"]
    assert "rules.yaml" in package_data
    assert "migrations/*.sql" in package_data
