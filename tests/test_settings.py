"""
Tests for configuration loading
"""
import copy

import yaml

from geserver import settings as settings_module
from geserver.constants import DEFAULT_POLL_INTERVAL_MS, DEFAULT_SETTINGS


class TestEnvironmentOverrides:

    def _settings(self):
        return copy.deepcopy(DEFAULT_SETTINGS)

    def test_game_ids_are_split(self):
        result = settings_module.apply_environment(self._settings(), {'GAME_IDS': ' 123, 456 ,,789'})

        assert result['itch']['title_ids'] == ['123', '456', '789']

    def test_single_game_id_fallback(self):
        result = settings_module.apply_environment(self._settings(), {'GAME_ID': '42'})

        assert result['itch']['title_ids'] == ['42']

    def test_poll_interval_and_defaults(self):
        result = settings_module.apply_environment(self._settings(), {})
        assert result['itch']['poll_interval_ms'] == DEFAULT_POLL_INTERVAL_MS

        result = settings_module.apply_environment(self._settings(), {'POLL_INTERVAL_MS': '5000'})
        assert result['itch']['poll_interval_ms'] == 5000

    def test_invalid_poll_interval_is_ignored(self):
        result = settings_module.apply_environment(self._settings(), {'POLL_INTERVAL_MS': 'soon'})

        assert result['itch']['poll_interval_ms'] == DEFAULT_POLL_INTERVAL_MS

    def test_secrets_and_paths(self):
        result = settings_module.apply_environment(self._settings(), {
            'ITCH_API_KEY': 'k',
            'DISCORD_WEBHOOK_URL': 'https://discord.example/hook',
            'GESERVER_DB': '/tmp/db.json',
        })

        assert result['itch']['api_key'] == 'k'
        assert result['notifications']['discord_webhook'] == 'https://discord.example/hook'
        assert result['storage']['path'] == '/tmp/db.json'

    def test_invalid_port_is_ignored(self):
        result = settings_module.apply_environment(self._settings(), {'PORT': 'http'})

        assert result['server']['port'] == DEFAULT_SETTINGS['server']['port']


class TestLoadSettings:

    def test_missing_file_is_created_with_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv('GAME_IDS', raising=False)
        monkeypatch.delenv('GAME_ID', raising=False)
        config_file = tmp_path / 'config' / 'settings.yaml'

        loaded = settings_module.load_settings(force=True, config_file=str(config_file))

        assert config_file.exists()
        assert loaded['server']['port'] == DEFAULT_SETTINGS['server']['port']

    def test_yaml_values_merge_over_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv('GAME_IDS', raising=False)
        monkeypatch.delenv('GAME_ID', raising=False)
        monkeypatch.delenv('POLL_INTERVAL_MS', raising=False)
        config_file = tmp_path / 'settings.yaml'
        config_file.write_text(yaml.dump({'itch': {'title_ids': [111, 222], 'poll_interval_ms': 1000}}))

        loaded = settings_module.load_settings(force=True, config_file=str(config_file))

        assert loaded['itch']['title_ids'] == ['111', '222']
        assert loaded['itch']['poll_interval_ms'] == 1000
        assert loaded['itch']['request_timeout'] == DEFAULT_SETTINGS['itch']['request_timeout']
        assert loaded['auth'] == DEFAULT_SETTINGS['auth']
