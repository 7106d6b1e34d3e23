from pathlib import Path

import pytest
from pydantic import ValidationError

from wormhole_bridge.core import ConfigurationError, Settings, load_settings
from wormhole_bridge.core.config import executable_name


def test_defaults():
    settings = load_settings()
    assert settings.confirm_delay == 1.0
    assert settings.confirm_token == "y"
    assert settings.downloads_dir == Path.home() / "Downloads"
    assert settings.log_dir is None
    assert settings.show_notifications is True


def test_load_nested_yaml(tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text(
        "wormhole:\n"
        "  wormhole_path: ~/bin/wormhole\n"
        "  confirm_delay: 0.5\n"
        "  show_notifications: false\n"
    )
    settings = load_settings(config)
    assert settings.wormhole_path == Path.home() / "bin" / "wormhole"
    assert settings.confirm_delay == 0.5
    assert settings.show_notifications is False


def test_load_flat_yaml(tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text(f"downloads_dir: {tmp_path}\nport: 9000\n")
    settings = load_settings(config)
    assert settings.downloads_dir == tmp_path
    assert settings.port == 9000


def test_empty_yaml_gives_defaults(tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text("")
    assert load_settings(config).port == 8830


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_settings(tmp_path / "absent.yaml")


def test_invalid_values_are_configuration_errors(tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text("confirm_delay: -1\n")
    with pytest.raises(ConfigurationError):
        load_settings(config)


def test_negative_durations_rejected():
    with pytest.raises(ValidationError):
        Settings(terminate_grace=-0.1)


def test_executable_name_per_platform():
    assert executable_name("win32") == "wormhole.exe"
    assert executable_name("darwin") == "wormhole"
    assert executable_name("linux") == "wormhole"


class TestResolveWormholePath:
    def test_explicit_path_wins(self, tmp_path):
        explicit = tmp_path / "custom-wormhole"
        settings = Settings(wormhole_path=explicit, binaries_dir=tmp_path)
        assert settings.resolve_wormhole_path() == explicit

    def test_bundled_binary(self, tmp_path, monkeypatch):
        bundled = tmp_path / "wormhole.exe"
        bundled.write_text("")
        monkeypatch.setattr("shutil.which", lambda name: "/usr/bin/wormhole")
        settings = Settings(binaries_dir=tmp_path)
        assert settings.resolve_wormhole_path(platform="win32") == bundled

    def test_falls_back_to_path_lookup(self, tmp_path, monkeypatch):
        monkeypatch.setattr("shutil.which", lambda name: "/usr/local/bin/wormhole")
        settings = Settings(binaries_dir=tmp_path / "empty")
        assert settings.resolve_wormhole_path() == Path("/usr/local/bin/wormhole")

    def test_reports_bundled_location_when_nothing_found(self, tmp_path, monkeypatch):
        monkeypatch.setattr("shutil.which", lambda name: None)
        settings = Settings(binaries_dir=tmp_path / "empty")
        assert settings.resolve_wormhole_path(platform="linux") == tmp_path / "empty" / "wormhole"


def test_blank_directories_keep_defaults(tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text("downloads_dir:\nbinaries_dir: ''\nlog_dir: ''\n")
    settings = load_settings(config)
    assert settings.downloads_dir == Path.home() / "Downloads"
    assert settings.binaries_dir == Settings().binaries_dir
    assert settings.log_dir is None
