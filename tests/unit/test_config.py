import pytest

from bidmonitor.core.config import AppConfig, ConfigError, Environment, load_app_config


def write_config(tmp_path, text):
    path = tmp_path / "app.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadAppConfig:
    """Unit tests for configuration loading"""

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_app_config(tmp_path / "absent.yaml")

        assert config == AppConfig()
        assert config.relay.port == 3000
        assert config.relay.timeout_seconds == 30
        assert config.relay.max_redirects == 5
        assert config.monitor.interval_ms == 300_000
        assert config.monitor.result_cap == 100

    def test_yaml_values(self, tmp_path):
        path = write_config(tmp_path, """
relay:
  port: 8080
monitor:
  interval_ms: 60000
  keywords: [" construction ", "", "roads"]
""")
        config = load_app_config(path)

        assert config.relay.port == 8080
        assert config.monitor.interval_ms == 60000
        assert config.monitor.keywords == ["construction", "roads"]

    def test_env_var_expansion(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_RELAY", "http://relay.internal:3000/fetch")
        path = write_config(tmp_path, """
monitor:
  relay_url: ${TEST_RELAY}
database:
  url: ${TEST_DB_URL:-sqlite://}
""")
        config = load_app_config(path)

        assert config.monitor.relay_url == "http://relay.internal:3000/fetch"
        assert config.database.url == "sqlite://"

    def test_empty_relay_url_means_in_process(self, tmp_path):
        path = write_config(tmp_path, "monitor:\n  relay_url: ${UNSET_RELAY_URL:-}\n")
        assert load_app_config(path).monitor.relay_url is None

    def test_environment_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BIDMONITOR_ENV", "PRODUCTION")
        config = load_app_config(tmp_path / "absent.yaml")

        assert config.environment == Environment.PRODUCTION
        assert config.effective_block_loopback

    def test_loopback_allowed_in_development(self):
        assert not AppConfig().effective_block_loopback

    def test_invalid_yaml(self, tmp_path):
        path = write_config(tmp_path, "relay: [unclosed\n")
        with pytest.raises(ConfigError) as exc_info:
            load_app_config(path)
        assert exc_info.value.path == path

    def test_invalid_values(self, tmp_path):
        path = write_config(tmp_path, "monitor:\n  relay_url: ftp://relay\n")
        with pytest.raises(ConfigError) as exc_info:
            load_app_config(path)
        assert "relay_url" in exc_info.value.details

    def test_unknown_log_level(self, tmp_path):
        path = write_config(tmp_path, "logging:\n  level: LOUD\n")
        with pytest.raises(ConfigError):
            load_app_config(path)

