"""Tests for configuration loading."""

import pytest

from teamsync.config import Config, load_config


@pytest.fixture
def clean_env(monkeypatch):
    """Remove any TEAMSYNC_ variables from the environment."""
    import os

    for key in list(os.environ):
        if key.startswith("TEAMSYNC_"):
            monkeypatch.delenv(key)
    return monkeypatch


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self, clean_env):
        """Test defaults without a config file."""
        config = load_config()

        assert config == Config()
        assert config.api.base_url.startswith("https://")
        assert config.sync.guard_superseded_rollbacks is True

    def test_missing_file_uses_defaults(self, clean_env, tmp_path):
        config = load_config(tmp_path / "missing.yaml")
        assert config.site.id == 0

    def test_yaml_file(self, clean_env, tmp_path):
        """Test values are read from YAML."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "site:\n"
            "  id: 12345\n"
            "  name: example.blog\n"
            "api:\n"
            "  base_url: http://localhost:8080/rest/v1.1\n"
            "  token: abc\n"
            "  timeout_seconds: 5\n"
            "store:\n"
            "  db_path: /tmp/people.db\n"
            "sync:\n"
            "  guard_superseded_rollbacks: false\n"
        )

        config = load_config(path)

        assert config.site.id == 12345
        assert config.site.name == "example.blog"
        assert config.api.base_url == "http://localhost:8080/rest/v1.1"
        assert config.api.token == "abc"
        assert config.api.timeout_seconds == 5.0
        assert config.api.team_size == 100
        assert config.store.db_path == "/tmp/people.db"
        assert config.sync.guard_superseded_rollbacks is False

    def test_empty_yaml_file(self, clean_env, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load_config(path) == Config()

    def test_null_site_fields_keep_defaults(self, clean_env, tmp_path):
        """Test an empty site id or name in YAML falls back to the defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("site:\n  id: null\n  name: null\n")

        config = load_config(path)

        assert config.site.id == 0
        assert config.site.name == ""

    def test_env_overrides(self, clean_env, tmp_path):
        """Test TEAMSYNC_ variables override the file."""
        path = tmp_path / "config.yaml"
        path.write_text("site:\n  id: 1\n")
        clean_env.setenv("TEAMSYNC_SITE_ID", "99")
        clean_env.setenv("TEAMSYNC_API_TOKEN", "from-env")
        clean_env.setenv("TEAMSYNC_API_TIMEOUT", "2.5")
        clean_env.setenv("TEAMSYNC_STORE_DB_PATH", ":memory:")
        clean_env.setenv("TEAMSYNC_GUARD_SUPERSEDED_ROLLBACKS", "no")

        config = load_config(path)

        assert config.site.id == 99
        assert config.api.token == "from-env"
        assert config.api.timeout_seconds == 2.5
        assert config.store.db_path == ":memory:"
        assert config.sync.guard_superseded_rollbacks is False
