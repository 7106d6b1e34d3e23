import pytest
from typer.testing import CliRunner

from conftest import CONNECTION_REFUSED, SEND_SUCCESS
from wormhole_bridge.cli import app

runner = CliRunner()


@pytest.fixture
def write_config(tmp_path):
    def _write(wormhole_path):
        downloads = tmp_path / "cli-downloads"
        downloads.mkdir(exist_ok=True)
        config = tmp_path / "config.yaml"
        config.write_text(
            "wormhole:\n"
            f"  wormhole_path: {wormhole_path}\n"
            f"  downloads_dir: {downloads}\n"
            "  confirm_delay: 0.05\n"
            "  show_notifications: false\n"
        )
        return config

    return _write


def test_send_prints_code(make_wormhole, write_config, tmp_path):
    payload = tmp_path / "notes.txt"
    payload.write_text("hi")
    config = write_config(make_wormhole(SEND_SUCCESS))

    result = runner.invoke(app, ["--config", str(config), "send", str(payload)])

    assert result.exit_code == 0, result.output
    assert "Wormhole code is: 3-apple-banana" in result.output
    assert "Transferring... 45%" in result.output
    assert "Files sent successfully! Code: 3-apple-banana" in result.output


def test_send_failure_exits_nonzero(make_wormhole, write_config, tmp_path):
    config = write_config(make_wormhole(CONNECTION_REFUSED))

    result = runner.invoke(app, ["--config", str(config), "send-text", "hello"])

    assert result.exit_code == 1
    assert "Transfer failed: connection refused" in result.output


def test_receive_text_prints_message(make_wormhole, write_config):
    config = write_config(make_wormhole("print('see you at noon', flush=True)\n"))

    result = runner.invoke(app, ["--config", str(config), "receive-text", "5-lunch-time"])

    assert result.exit_code == 0, result.output
    assert "see you at noon" in result.output


def test_missing_executable(write_config, tmp_path):
    config = write_config(tmp_path / "absent" / "wormhole")

    result = runner.invoke(app, ["--config", str(config), "send-text", "hello"])

    assert result.exit_code == 1
    assert "Wormhole binary not found at" in result.output


def test_check(make_wormhole, write_config, tmp_path):
    ok = runner.invoke(app, ["--config", str(write_config(make_wormhole(""))), "check"])
    assert ok.exit_code == 0
    assert "Wormhole available" in ok.output

    missing = runner.invoke(app, ["--config", str(write_config(tmp_path / "absent")), "check"])
    assert missing.exit_code == 1


def test_validate_config(make_wormhole, write_config, tmp_path):
    result = runner.invoke(app, ["--config", str(write_config(make_wormhole(""))), "validate-config"])
    assert result.exit_code == 0
    assert "Configuration is valid" in result.output

    result = runner.invoke(app, ["--config", str(tmp_path / "nope.yaml"), "validate-config"])
    assert result.exit_code == 1
    assert "Config file not found" in result.output
