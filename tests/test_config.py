"""Tests for config.py settings loading."""

import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from config import (
    DEFAULT_SETTINGS,
    ConfigError,
    Settings,
    discover_etc_path,
    load_settings,
)


class TestSettings:
    """Tests for Settings dataclass."""

    def test_defaults(self):
        settings = Settings()
        assert settings.deploy_plan == 'deploy'
        assert settings.update_plan == 'update'
        assert settings.upgrade_plan == 'upgrade'
        assert settings.cleanup_plan == 'cleanup'
        assert settings.snapshot_annotation == 'kudo.dev/last-applied-instance-state'
        assert settings.package_task_kind == 'KudoOperator'

    def test_from_dict_partial(self):
        settings = Settings.from_dict({'cleanup_plan': 'teardown'})
        assert settings.cleanup_plan == 'teardown'
        assert settings.deploy_plan == 'deploy'

    def test_from_dict_empty(self):
        assert Settings.from_dict(None) == Settings()

    def test_from_dict_unknown_key(self):
        with pytest.raises(ConfigError, match='Unknown settings: bogus'):
            Settings.from_dict({'bogus': 'x'})

    def test_from_dict_empty_value(self):
        with pytest.raises(ConfigError):
            Settings.from_dict({'deploy_plan': ''})

    def test_roundtrip(self):
        settings = Settings(upgrade_plan='migrate')
        assert Settings.from_dict(settings.to_dict()) == settings


class TestLoadSettings:
    """Tests for load_settings() discovery."""

    def test_explicit_path(self, tmp_path):
        path = tmp_path / 'custom.yaml'
        path.write_text('update_plan: reconfigure\n')
        assert load_settings(path).update_plan == 'reconfigure'

    def test_explicit_path_missing(self, tmp_path):
        with pytest.raises(ConfigError, match='not found'):
            load_settings(tmp_path / 'missing.yaml')

    def test_env_config_file(self, tmp_path):
        path = tmp_path / 'env.yaml'
        path.write_text('deploy_plan: install\n')
        with patch.dict(os.environ, {'OPKG_CONFIG': str(path)}):
            assert load_settings().deploy_plan == 'install'

    def test_etc_dir(self, tmp_path):
        (tmp_path / 'settings.yaml').write_text('cleanup_plan: purge\n')
        with patch.dict(os.environ, {'OPKG_ETC': str(tmp_path)}, clear=True):
            assert load_settings().cleanup_plan == 'purge'

    def test_defaults_without_file(self, tmp_path):
        with patch.dict(os.environ, {'OPKG_ETC': str(tmp_path)}, clear=True):
            assert load_settings() == DEFAULT_SETTINGS

    def test_empty_file(self, tmp_path):
        path = tmp_path / 'empty.yaml'
        path.write_text('')
        assert load_settings(path) == DEFAULT_SETTINGS

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / 'bad.yaml'
        path.write_text('deploy_plan: [oops\n')
        with pytest.raises(ConfigError, match='Invalid YAML'):
            load_settings(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / 'list.yaml'
        path.write_text('- deploy\n')
        with pytest.raises(ConfigError, match='must be a YAML object'):
            load_settings(path)


class TestDiscoverEtcPath:
    """Tests for discover_etc_path()."""

    def test_env_var(self, tmp_path):
        with patch.dict(os.environ, {'OPKG_ETC': str(tmp_path)}):
            assert discover_etc_path() == tmp_path

    def test_env_var_not_a_directory(self, tmp_path):
        missing = tmp_path / 'missing'
        with patch.dict(os.environ, {'OPKG_ETC': str(missing)}):
            assert discover_etc_path() != missing
