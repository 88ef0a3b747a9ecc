"""Tests for configuration loading and management."""

import pytest

from billing_sync.config import Config, ConfigurationError

VALID_YAML = """
checkout:
  success_url: "https://app.test/ok?session_id={CHECKOUT_SESSION_ID}"
  cancel_url: "https://app.test/cancel"
  trial_period_days: 14
gateway:
  api_version: "2025-02-24.acacia"
access:
  monthly_price_ids: ["price_1Pabc"]
store:
  backend: memory
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "billing.yaml"
    path.write_text(VALID_YAML)
    return path


@pytest.fixture
def config():
    """Configuration from the repository's config/billing.yaml."""
    return Config("config/billing.yaml")


class TestConfigurationLoading:
    def test_repository_config_loads(self, config):
        assert config.config_path.exists()
        assert config.settings.checkout.trial_period_days == 7
        assert config.settings.gateway.user_metadata_key == "firebaseUid"
        assert config.settings.gateway.lifetime_session_lookup_limit == 5
        assert config.settings.oauth.state_ttl_seconds == 600
        assert config.settings.store.backend == "firestore"

    def test_explicit_path(self, config_file):
        config = Config(str(config_file))

        assert config.settings.checkout.trial_period_days == 14
        assert config.settings.access.monthly_price_ids == ["price_1Pabc"]
        assert config.settings.store.backend == "memory"

    def test_defaults_for_omitted_sections(self, config_file):
        settings = Config(str(config_file)).settings

        assert settings.portal.return_url == "https://pomodorotimer.vip/"
        assert settings.checkout.price_id_prefix == "price_"
        assert settings.gateway.admin_sync_session_limit == 100

    def test_config_path_from_env(self, config_file, monkeypatch):
        monkeypatch.setenv("CONFIG_PATH", str(config_file))

        assert Config().config_path == config_file

    def test_reload(self, config_file):
        config = Config(str(config_file))
        config_file.write_text(VALID_YAML.replace("trial_period_days: 14", "trial_period_days: 0"))

        config.reload()

        assert config.settings.checkout.trial_period_days == 0


class TestConfigurationErrors:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            Config(str(tmp_path / "missing.yaml"))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "billing.yaml"
        path.write_text("")
        with pytest.raises(ConfigurationError):
            Config(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "billing.yaml"
        path.write_text("checkout: [unclosed")
        with pytest.raises(ConfigurationError):
            Config(str(path))

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "billing.yaml"
        path.write_text("store:\n  backend: redis\n")
        with pytest.raises(ConfigurationError):
            Config(str(path))


class TestSecrets:
    def test_secrets_from_environment(self, config, monkeypatch):
        monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_123")
        monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_123")
        monkeypatch.setenv("ADMIN_SYNC_KEY", "admin-key")
        monkeypatch.setenv("TODOIST_CLIENT_ID", "client-abc")

        assert config.stripe_secret_key == "sk_test_123"
        assert config.stripe_webhook_secret == "whsec_123"
        assert config.admin_sync_key == "admin-key"
        assert config.todoist_client_id == "client-abc"

    def test_empty_secret_is_unset(self, config, monkeypatch):
        monkeypatch.setenv("ADMIN_SYNC_KEY", "")
        monkeypatch.delenv("STRIPE_SECRET_KEY", raising=False)

        assert config.admin_sync_key is None
        assert config.stripe_secret_key is None
