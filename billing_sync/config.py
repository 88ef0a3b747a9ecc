"""Configuration management - loads billing.yaml and environment secrets."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from billing_sync.models import BillingConfig


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


class Config:
    """Application configuration loader and manager.

    Loads billing.yaml and provides validated access to:
    - Checkout, portal and OAuth settings
    - Stripe API settings
    - Secrets from the environment (read on access, so rotated secrets are picked up)
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to billing.yaml. If not provided, uses CONFIG_PATH env var
                        or defaults to ./config/billing.yaml
        """
        self._config_path = self._resolve_config_path(config_path)
        self._settings: Optional[BillingConfig] = None
        self._load_config()

    def _resolve_config_path(self, config_path: Optional[str]) -> Path:
        """Resolve configuration file path from argument, env var, or default."""
        if config_path:
            return Path(config_path)

        env_path = os.getenv("CONFIG_PATH")
        if env_path:
            return Path(env_path)

        return Path("config/billing.yaml")

    def _load_config(self) -> None:
        """Load and validate billing.yaml."""
        if not self._config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self._config_path}\n"
                f"Please create config/billing.yaml or set CONFIG_PATH environment variable"
            )

        try:
            with open(self._config_path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}") from e

        if not raw_config:
            raise ConfigurationError(f"Configuration file is empty: {self._config_path}")

        try:
            self._settings = BillingConfig(**raw_config)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    @property
    def settings(self) -> BillingConfig:
        """Get validated billing configuration."""
        if self._settings is None:
            raise ConfigurationError("Configuration not loaded")
        return self._settings

    @property
    def config_path(self) -> Path:
        """Get path to configuration file."""
        return self._config_path

    @property
    def stripe_secret_key(self) -> Optional[str]:
        """Stripe API secret key (STRIPE_SECRET_KEY)."""
        return os.getenv("STRIPE_SECRET_KEY") or None

    @property
    def stripe_webhook_secret(self) -> Optional[str]:
        """Webhook signing secret (STRIPE_WEBHOOK_SECRET)."""
        return os.getenv("STRIPE_WEBHOOK_SECRET") or None

    @property
    def admin_sync_key(self) -> Optional[str]:
        """Shared key guarding the admin backfill endpoint (ADMIN_SYNC_KEY)."""
        return os.getenv("ADMIN_SYNC_KEY") or None

    @property
    def todoist_client_id(self) -> Optional[str]:
        """Todoist OAuth client ID (TODOIST_CLIENT_ID)."""
        return os.getenv("TODOIST_CLIENT_ID") or None

    def reload(self) -> None:
        """Reload configuration from disk."""
        self._load_config()


# Global configuration instance
_config_instance: Optional[Config] = None


def get_config(config_path: Optional[str] = None) -> Config:
    """Get global configuration instance (singleton).

    Args:
        config_path: Optional path to configuration file (only used on first call)

    Returns:
        Config instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config(config_path)
    return _config_instance


def reload_config() -> None:
    """Reload global configuration from disk."""
    global _config_instance
    if _config_instance:
        _config_instance.reload()
    else:
        _config_instance = Config()
