# ABOUTME: Unit tests for environment-driven builder configuration
# ABOUTME: Tests defaults, overrides, .env loading and rejection of malformed values

from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

import pytest

from dnd_builder.config import DEFAULT_VAULT_PATH, STORAGE_JSON, STORAGE_MEMORY, BuilderConfig
from dnd_builder.core.errors import InvalidArgumentError


class TestBuilderConfig:
    """Test BuilderConfig.from_env"""

    def test_defaults(self):
        """Test an empty environment gives the defaults"""
        config = BuilderConfig.from_env({}, load_env_file=False)

        assert config.data_path is None
        assert config.vault_path == DEFAULT_VAULT_PATH
        assert config.storage == STORAGE_JSON
        assert config.session_ttl == timedelta(minutes=60)
        assert config.debug is False

    def test_overrides(self, tmp_path):
        """Test every variable is honored"""
        config = BuilderConfig.from_env({
            "DND_BUILDER_DATA_PATH": str(tmp_path / "data"),
            "DND_BUILDER_VAULT_PATH": str(tmp_path / "vault.json"),
            "DND_BUILDER_SESSION_TTL_MINUTES": "15",
            "DND_BUILDER_STORAGE": " Memory ",
            "DEBUG_MODE": "yes",
        }, load_env_file=False)

        assert config.data_path == tmp_path / "data"
        assert config.vault_path == tmp_path / "vault.json"
        assert config.session_ttl == timedelta(minutes=15)
        assert config.storage == STORAGE_MEMORY
        assert config.debug is True

    @pytest.mark.parametrize("value", ["false", "0", "no", ""])
    def test_debug_falsy(self, value):
        """Test values that leave debug off"""
        assert BuilderConfig.from_env({"DEBUG_MODE": value}, load_env_file=False).debug is False

    @pytest.mark.parametrize("env", [
        {"DND_BUILDER_SESSION_TTL_MINUTES": "soon"},
        {"DND_BUILDER_SESSION_TTL_MINUTES": "0"},
        {"DND_BUILDER_STORAGE": "postgres"},
    ])
    def test_invalid_values(self, env):
        """Test malformed values fail loudly"""
        with pytest.raises(InvalidArgumentError):
            BuilderConfig.from_env(env, load_env_file=False)

    def test_env_file_is_loaded(self):
        """Test a .env file is loaded unless disabled"""
        with patch("dnd_builder.config.load_dotenv") as load:
            BuilderConfig.from_env({})
            BuilderConfig.from_env({}, load_env_file=False)

        load.assert_called_once_with()

    def test_home_expansion(self):
        """Test paths starting with ~ are expanded"""
        config = BuilderConfig.from_env({"DND_BUILDER_VAULT_PATH": "~/vault.json"}, load_env_file=False)

        assert config.vault_path == Path.home() / "vault.json"
