import logging
import os
from pathlib import Path

from jellyfin_manager.rules.models import AdminBootstrapRules, Rules

logger = logging.getLogger(__name__)

# Shipped as package data next to the code
PACKAGE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_RULES_PATH = PACKAGE_DIR / "rules.yaml"
MIGRATIONS_DIR = PACKAGE_DIR / "migrations"


class ConfigurationError(RuntimeError):
    """The process is not configured well enough to start."""


def validate_ops_rules(rules: Rules, data_dir: Path) -> None:
    """
    Validate operational requirements before startup.

    Raises ConfigurationError when the data directory is unusable or a
    required environment variable is missing.
    """
    ops = rules.ops

    if ops.data_dir_required:
        data_dir.mkdir(parents=True, exist_ok=True)
        if not os.access(data_dir, os.W_OK):
            raise ConfigurationError(f"Data directory {data_dir} is not writable")

    missing = [name for name in ops.required_env if not os.environ.get(name)]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    if ops.bootstrap_admin.enabled_if_no_users:
        unset = [n for n in ops.bootstrap_admin.required_env_when_enabled if not os.environ.get(n)]
        if unset:
            logger.info(
                "Admin bootstrap is enabled but %s not set; it will be skipped",
                ", ".join(unset),
            )

    logger.info("Configuration validated")


class RulesBootstrapConfig:
    """Exposes the bootstrap section of the rules to the bootstrap component."""

    def __init__(self, rules: Rules):
        self._rules = rules

    def get_bootstrap_config(self) -> AdminBootstrapRules:
        return self._rules.ops.bootstrap_admin


class Settings:
    """Process settings read from the environment."""

    def __init__(self) -> None:
        self.data_dir = Path(os.environ.get("JFM_DATA_DIR", "./data"))
        self.db_path = str(self.data_dir / "jfm.db")
        self.rules_path = Path(os.environ.get("JFM_RULES_PATH", DEFAULT_RULES_PATH))
        self.migrations_dir = str(MIGRATIONS_DIR)
        self.jellyfin_url = os.environ.get("JFM_JELLYFIN_URL") or None
        self.jellyfin_api_key = os.environ.get("JFM_JELLYFIN_API_KEY") or None
        self.bootstrap_username = os.environ.get("JFM_BOOTSTRAP_USERNAME") or None
        self.bootstrap_password = os.environ.get("JFM_BOOTSTRAP_PASSWORD") or None
