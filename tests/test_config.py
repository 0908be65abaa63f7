"""
Tests for settings loading (YAML file, .env file and environment).
"""
from pathlib import Path

import pytest
import yaml

from filter_rwfrom.config import FilterSettings, load_env_vars, load_settings, load_yaml_config
from filter_rwfrom.errors import ConfigError


@pytest.fixture
def settings_file(tmp_path):
    """Return a helper writing a YAML settings file."""
    def _write(data, name='filter.yaml'):
        path = tmp_path / name
        with open(path, 'w') as f:
            yaml.dump(data, f)
        return path
    return _write


class TestLoadYamlConfig:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Settings file not found"):
            load_yaml_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("rules_file: [unclosed\n")
        with pytest.raises(ConfigError, match="YAML parse error"):
            load_yaml_config(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="must contain a mapping"):
            load_yaml_config(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml_config(path) == {}


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_defaults(self):
        settings = load_settings()
        assert settings == FilterSettings()
        assert settings.rules_file == Path("/etc/mail/filter-rwfrom.conf")
        assert settings.max_line_size == 2048
        assert settings.comment_prefix == "#"
        assert settings.logging == {}

    def test_settings_file(self, settings_file, tmp_path):
        path = settings_file({
            'rules_file': str(tmp_path / 'rules.conf'),
            'max_line_size': 512,
            'comment_prefix': ';',
            'logging': {'level': 'DEBUG'},
        })

        settings = load_settings(path)

        assert settings.rules_file == tmp_path / 'rules.conf'
        assert settings.max_line_size == 512
        assert settings.comment_prefix == ';'
        assert settings.logging == {'level': 'DEBUG'}

    def test_environment_overrides_file(self, settings_file, monkeypatch):
        path = settings_file({'rules_file': '/from/file.conf', 'max_line_size': 512})
        monkeypatch.setenv('RWFROM_CONF', '/from/env.conf')
        monkeypatch.setenv('RWFROM_MAX_LINE_SIZE', '1024')

        settings = load_settings(path)

        assert settings.rules_file == Path('/from/env.conf')
        assert settings.max_line_size == 1024

    def test_env_file(self, tmp_path):
        env_path = tmp_path / ".env"
        env_path.write_text("RWFROM_CONF=/from/dotenv.conf\nRWFROM_COMMENT_PREFIX=\n")

        settings = load_settings(env_path=env_path)

        assert settings.rules_file == Path('/from/dotenv.conf')
        assert settings.comment_prefix is None

    def test_env_file_does_not_override_environment(self, tmp_path, monkeypatch):
        env_path = tmp_path / ".env"
        env_path.write_text("RWFROM_CONF=/from/dotenv.conf\n")
        monkeypatch.setenv('RWFROM_CONF', '/from/env.conf')

        settings = load_settings(env_path=env_path)

        assert settings.rules_file == Path('/from/env.conf')

    def test_missing_env_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Env file not found"):
            load_env_vars(tmp_path / ".env")

    @pytest.mark.parametrize("value", ["abc", 1, 0, -5, True, [1]])
    def test_invalid_max_line_size(self, settings_file, value):
        path = settings_file({'max_line_size': value})
        with pytest.raises(ConfigError, match="max_line_size"):
            load_settings(path)

    def test_invalid_logging_section(self, settings_file):
        path = settings_file({'logging': 'DEBUG'})
        with pytest.raises(ConfigError, match="logging"):
            load_settings(path)

    def test_comment_prefix_can_be_disabled(self, settings_file):
        path = settings_file({'comment_prefix': None})
        assert load_settings(path).comment_prefix is None

    def test_settings_are_frozen(self):
        settings = load_settings()
        with pytest.raises(AttributeError):
            settings.max_line_size = 10  # type: ignore[misc]
