"""
Structure lint tests
Verify that the component skeleton exists and follows conventions.
"""

from pathlib import Path

import yaml

PROJECT_ROOT = Path(__file__).parent.parent
PACKAGE = PROJECT_ROOT / "jellyfin_manager"

COMPONENTS = ["activity", "auth", "bootstrap", "expiry", "invite", "profiles", "roles"]


class TestProjectStructure:
    """Verify project structure follows conventions."""

    def test_layer_directories_exist(self) -> None:
        for layer in ["domain", "ports", "adapters", "components", "api", "app_shell", "rules"]:
            assert (PACKAGE / layer).is_dir(), f"Missing layer {layer}"

    def test_adapter_directories_exist(self) -> None:
        for adapter in ["sqlite", "jellyfin", "auth"]:
            assert (PACKAGE / "adapters" / adapter).is_dir()

    def test_tests_structure_exists(self) -> None:
        """Test directories must follow conventions."""
        assert (PROJECT_ROOT / "tests" / "unit").is_dir()
        assert (PROJECT_ROOT / "tests" / "integration").is_dir()
        assert (PROJECT_ROOT / "tests" / "regression").is_dir()
        assert (PROJECT_ROOT / "tests" / "api").is_dir()

    def test_components_follow_layout(self) -> None:
        """Each component has its entry point, models and ports."""
        for name in COMPONENTS:
            component = PACKAGE / "components" / name
            for filename in ["__init__.py", "component.py", "models.py", "ports.py"]:
                assert (component / filename).is_file(), f"{name} is missing {filename}"

    def test_test_directories_are_not_packages(self) -> None:
        """Tests are collected in importlib mode and must not shadow each other."""
        for init_file in PROJECT_ROOT.glob("tests/**/__init__.py"):
            raise AssertionError(f"Unexpected {init_file}")
        for init_file in PACKAGE.glob("components/*/tests/__init__.py"):
            raise AssertionError(f"Unexpected {init_file}")


class TestArtifactsPresent:
    """Verify the files the service needs at runtime are present."""

    def test_rules_exists_and_parses(self) -> None:
        rules_path = PACKAGE / "rules.yaml"
        assert rules_path.is_file()

        with open(rules_path) as f:
            rules = yaml.safe_load(f)

        assert rules["project"]["slug"] == "jellyfin-user-manager"
        for section in ["auth", "rbac", "accounts", "invites", "redemption", "jellyfin", "ops"]:
            assert section in rules

    def test_initial_migration_exists(self) -> None:
        assert (PACKAGE / "migrations" / "0001_initial.sql").is_file()
