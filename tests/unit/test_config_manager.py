"""Unit tests for config_manager module."""

import os

import pytest

from azrestore.config_manager import ConfigManager, RestoreConfig
from azrestore.exceptions import ConfigError


class TestRestoreConfig:
    """Tests for RestoreConfig dataclass."""

    def test_default_values(self):
        """Test default configuration values."""
        config = RestoreConfig()
        assert config.default_subscription is None
        assert config.default_resource_group is None
        assert config.default_region is None
        assert config.disk_suffix == "-restored"
        assert config.command_timeout == 600

    def test_to_dict_excludes_none(self):
        config = RestoreConfig(default_resource_group="my-rg")
        data = config.to_dict()
        assert data == {
            "default_resource_group": "my-rg",
            "disk_suffix": "-restored",
            "command_timeout": 600,
        }

    def test_from_dict(self):
        """Test creation from dictionary."""
        config = RestoreConfig.from_dict(
            {
                "default_subscription": "00000000-1111-2222-3333-444444444444",
                "default_resource_group": "my-rg",
                "default_region": "eastasia",
                "disk_suffix": "-rp",
                "command_timeout": "120",
            }
        )
        assert config.default_region == "eastasia"
        assert config.disk_suffix == "-rp"
        assert config.command_timeout == 120

    def test_from_dict_partial(self):
        config = RestoreConfig.from_dict({"default_resource_group": "my-rg"})
        assert config.default_resource_group == "my-rg"
        assert config.disk_suffix == "-restored"  # Default

    @pytest.mark.parametrize("timeout", ["abc", 0, -5])
    def test_from_dict_invalid_timeout(self, timeout):
        with pytest.raises(ConfigError, match="command_timeout"):
            RestoreConfig.from_dict({"command_timeout": timeout})


class TestConfigManager:
    """Tests for ConfigManager class."""

    def test_get_config_path_default(self, temp_config_dir):
        assert ConfigManager.get_config_path() == temp_config_dir / "config.toml"

    def test_get_config_path_custom_not_exists(self, tmp_path):
        with pytest.raises(ConfigError, match="Config file not found"):
            ConfigManager.get_config_path(str(tmp_path / "missing.toml"))

    def test_get_config_path_outside_allowed_dirs(self, temp_config_dir):
        with pytest.raises(ConfigError, match="outside allowed directories"):
            ConfigManager.get_config_path("/etc/passwd")

    def test_load_config_not_exists(self, temp_config_dir):
        """Missing file yields defaults."""
        config = ConfigManager.load_config()
        assert config == RestoreConfig()

    def test_save_and_load(self, temp_config_dir):
        config = RestoreConfig(default_resource_group="my-rg", default_region="eastasia")

        path = ConfigManager.save_config(config)

        assert path == temp_config_dir / "config.toml"
        assert (path.stat().st_mode & 0o777) == 0o600
        assert ConfigManager.load_config() == config

    def test_save_preserves_comments(self, temp_config_dir):
        temp_config_dir.mkdir(parents=True)
        config_file = temp_config_dir / "config.toml"
        config_file.write_text('# my defaults\ndefault_resource_group = "old-rg"\n')

        ConfigManager.save_config(RestoreConfig(default_resource_group="new-rg"))

        text = config_file.read_text()
        assert "# my defaults" in text
        assert 'default_resource_group = "new-rg"' in text
        assert not (temp_config_dir / "config.tmp").exists()

    def test_load_fixes_insecure_permissions(self, temp_config_dir):
        temp_config_dir.mkdir(parents=True)
        config_file = temp_config_dir / "config.toml"
        config_file.write_text('default_region = "eastasia"\n')
        os.chmod(config_file, 0o644)

        config = ConfigManager.load_config()

        assert config.default_region == "eastasia"
        assert (config_file.stat().st_mode & 0o777) == 0o600

    def test_load_invalid_toml(self, temp_config_dir):
        temp_config_dir.mkdir(parents=True)
        (temp_config_dir / "config.toml").write_text("this is = = not toml")

        with pytest.raises(ConfigError, match="Failed to load config"):
            ConfigManager.load_config()

    def test_custom_path(self, tmp_path):
        custom = tmp_path / "custom.toml"
        custom.write_text('disk_suffix = "-custom"\n')

        assert ConfigManager.load_config(str(custom)).disk_suffix == "-custom"

    def test_update_config(self, temp_config_dir):
        config = ConfigManager.update_config(default_resource_group="rg1", command_timeout="30")

        assert config.command_timeout == 30
        assert ConfigManager.load_config().default_resource_group == "rg1"

    def test_update_unknown_key(self, temp_config_dir):
        with pytest.raises(ConfigError, match="Unknown config key"):
            ConfigManager.update_config(favourite_colour="blue")

    def test_resolve_prefers_cli_value(self, temp_config_dir):
        ConfigManager.update_config(default_region="eastasia")

        assert ConfigManager.resolve("default_region", "westcentralus") == "westcentralus"
        assert ConfigManager.resolve("default_region") == "eastasia"
