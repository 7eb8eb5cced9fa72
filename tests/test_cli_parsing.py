"""Tests for CLI parsing helpers and settings."""

from pathlib import Path

import pytest
import typer

from esp_firmware_flasher.config import FlasherSettings
from esp_firmware_flasher.core.parsing import format_size, parse_deployment_address
from esp_firmware_flasher.targets import PartitionTableSize


class TestParseDeploymentAddress:
    """Deployment addresses must be 0x-prefixed hex and never raise."""

    def test_valid(self):
        assert parse_deployment_address("0x1B0000") == 0x1B0000
        assert parse_deployment_address("0X1b0000") == 0x1B0000
        assert parse_deployment_address("0x0") == 0

    def test_invalid_returns_none(self):
        for value in (None, "", "0x", "1B0000", "4096", "0xG", "0x1_000", "0x+10", "0x100000000",
                      " 0x1B0000", "0x1B0000 ", "0x 10"):
            assert parse_deployment_address(value) is None, value


class TestParsePartitionTableSize:
    """Partition table size parsing from the cli module."""

    def get_parse(self):
        from esp_firmware_flasher.cli import parse_partition_table_size
        return parse_partition_table_size

    def test_none_and_empty(self):
        parse = self.get_parse()
        assert parse(None) is None
        assert parse("  ") is None

    def test_sizes(self):
        parse = self.get_parse()
        assert parse("4") == PartitionTableSize.SIZE_4MB
        assert parse("16MB") == PartitionTableSize.SIZE_16MB
        assert parse("2mb") == PartitionTableSize.SIZE_2MB

    def test_invalid_raises_bad_parameter(self):
        parse = self.get_parse()
        with pytest.raises(typer.BadParameter):
            parse("3")
        with pytest.raises(typer.BadParameter):
            parse("big")


def test_format_size():
    assert format_size(4 * 1024 * 1024) == "4MB"
    assert format_size(512 * 1024) == "512KB"
    assert format_size(1000) == "1000B"


class TestFlasherSettings:
    """Environment overrides."""

    def test_defaults(self):
        settings = FlasherSettings.from_env({})
        assert settings.baud == 921600
        assert settings.chip == "auto"

    def test_env_overrides(self, tmp_path):
        settings = FlasherSettings.from_env({
            "ESP_FLASHER_PACKAGE_URL": "https://example.com/packages/",
            "ESP_FLASHER_CACHE_DIR": str(tmp_path),
            "ESP_FLASHER_BAUD": "115200",
            "ESP_FLASHER_CHIP": "esp32",
        })
        assert settings.package_url == "https://example.com/packages"
        assert settings.cache_dir == Path(tmp_path)
        assert settings.baud == 115200
        assert settings.chip == "esp32"

    def test_bad_baud(self):
        with pytest.raises(ValueError):
            FlasherSettings.from_env({"ESP_FLASHER_BAUD": "fast"})


class TestCommands:
    """Commands map workflow outcomes to exit codes."""

    def test_list_targets(self):
        from typer.testing import CliRunner
        from esp_firmware_flasher.cli import app

        result = CliRunner().invoke(app, ["list-targets"])
        assert result.exit_code == 0
        assert "ESP32" in result.output

    def test_deploy_missing_application_exits_1(self, monkeypatch, tmp_path, esp32_device):
        from typer.testing import CliRunner
        from conftest import FakeTransport
        from esp_firmware_flasher import cli

        transport = FakeTransport()
        monkeypatch.setattr(cli, "open_device", lambda port, baud, chip: (transport, esp32_device))
        monkeypatch.setenv("ESP_FLASHER_CACHE_DIR", str(tmp_path / "cache"))

        result = CliRunner().invoke(cli.app, [
            "update", "-p", "COM3", "--no-update",
            "--deploy", str(tmp_path / "missing.bin"), "--address", "0x1B0000",
        ])
        assert result.exit_code == 1
        assert "E9008" in result.output
        assert transport.calls == []

    def test_backup_success_exits_0(self, monkeypatch, tmp_path, esp32_device):
        from typer.testing import CliRunner
        from conftest import FakeTransport
        from esp_firmware_flasher import cli

        transport = FakeTransport()
        monkeypatch.setattr(cli, "open_device", lambda port, baud, chip: (transport, esp32_device))

        result = CliRunner().invoke(cli.app, [
            "backup", "-p", "COM3", "--backup-path", str(tmp_path), "--backup-file", "dump.bin",
        ])
        assert result.exit_code == 0
        assert transport.calls[0][0] == "read_flash"
