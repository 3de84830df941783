"""Tests for TOML configuration loading and validation."""

import tomllib
from datetime import timedelta
from pathlib import Path

import pytest

from layout_switcher.config_loader import ConfigLoader
from layout_switcher.models import AppConfig
from layout_switcher.models import SourceConfig

FULL_CONFIG = """
[app]
log_level = "debug"
log_file = "~/switcher.log"
state_file = "/tmp/layout-switcher/state.json"
debounce_ms = 250
cooldown_ms = 1000
device_rescan_interval = 5
debug_mode = true

[input]
query_command = ["setxkbmap", "-query"]
command_timeout = 1.5

[[sources]]
id = "us"
name = "English (US)"
command = "setxkbmap"
args = ["us"]
match = "layout:     us"

[[sources]]
id = "de"
command = "setxkbmap"
args = ["de"]
enabled = false
"""

MINIMAL_CONFIG = """
[[sources]]
id = "us"
command = "setxkbmap"
args = ["us"]
"""


def write_config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / 'config.toml'
    path.write_text(text)
    return path


def test_load_full_config(tmp_path):
    config, path = ConfigLoader.load(write_config(tmp_path, FULL_CONFIG))

    assert path == (tmp_path / 'config.toml').resolve()
    assert config.log_level == 'DEBUG'
    assert config.log_file == Path('~/switcher.log').expanduser()
    assert config.state_file == Path('/tmp/layout-switcher/state.json')
    assert config.debounce == timedelta(milliseconds=250)
    assert config.cooldown == timedelta(seconds=1)
    assert config.device_rescan_interval == 5
    assert config.debug_mode is True
    assert config.input.query_command == ['setxkbmap', '-query']
    assert config.input.command_timeout == 1.5

    us = config.get_source('us')
    assert us.name == 'English (US)'
    assert us.argv() == ['setxkbmap', 'us']
    assert us.match == 'layout:     us'
    assert config.get_source('de').enabled is False
    assert config.get_source('de').name == 'de'


def test_defaults(tmp_path):
    config, _ = ConfigLoader.load(write_config(tmp_path, MINIMAL_CONFIG))
    assert config.debounce_ms == 400
    assert config.cooldown_ms == 1500
    assert config.log_level == 'INFO'
    assert config.log_file is None
    assert config.input.query_command is None
    assert config.state_file.name == 'state.json'


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        ConfigLoader.load(tmp_path / 'absent.toml')


def test_default_paths_are_searched(tmp_path, monkeypatch):
    path = write_config(tmp_path, MINIMAL_CONFIG)
    monkeypatch.setattr(ConfigLoader, 'DEFAULT_PATHS', [tmp_path / 'nope.toml', path])
    _config, loaded_from = ConfigLoader.load()
    assert loaded_from == path.resolve()


def test_no_default_config(tmp_path, monkeypatch):
    monkeypatch.setattr(ConfigLoader, 'DEFAULT_PATHS', [tmp_path / 'nope.toml'])
    with pytest.raises(FileNotFoundError, match='Tried'):
        ConfigLoader.load()


def test_invalid_toml(tmp_path):
    with pytest.raises(tomllib.TOMLDecodeError):
        ConfigLoader.load(write_config(tmp_path, '[app\nlog_level = 1'))


def test_sources_are_required(tmp_path):
    with pytest.raises(ValueError, match='sources'):
        ConfigLoader.load(write_config(tmp_path, '[app]\nlog_level = "INFO"\n'))


def test_duplicate_source_ids(tmp_path):
    text = MINIMAL_CONFIG + MINIMAL_CONFIG
    with pytest.raises(ValueError, match='Duplicate source id: us'):
        ConfigLoader.load(write_config(tmp_path, text))


def test_source_without_command(tmp_path):
    with pytest.raises(ValueError, match='source #1'):
        ConfigLoader.load(write_config(tmp_path, '[[sources]]\nid = "us"\n'))


def test_wrong_types(tmp_path):
    with pytest.raises(TypeError):
        ConfigLoader.load(write_config(tmp_path, '[app]\ndebounce_ms = "fast"\n' + MINIMAL_CONFIG))
    with pytest.raises(TypeError):
        ConfigLoader.load(write_config(tmp_path, '[[sources]]\nid = "us"\ncommand = "x"\nargs = "us"\n'))


def test_invalid_log_level(tmp_path):
    with pytest.raises(ValueError, match='log_level'):
        ConfigLoader.load(write_config(tmp_path, '[app]\nlog_level = "LOUD"\n' + MINIMAL_CONFIG))


def test_empty_query_command(tmp_path):
    with pytest.raises(ValueError, match='query_command'):
        ConfigLoader.load(write_config(tmp_path, '[input]\nquery_command = []\n' + MINIMAL_CONFIG))


def test_model_validation():
    with pytest.raises(ValueError):
        AppConfig(sources=[])
    with pytest.raises(ValueError):
        AppConfig(cooldown_ms=-1, sources=[SourceConfig(id='us', command='x')])
    with pytest.raises(ValueError):
        SourceConfig(id='  ', command='x')
