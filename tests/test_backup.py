"""Tests for backup path resolution and the backup workflow."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from esp_firmware_flasher.core.actions import backup_flash
from esp_firmware_flasher.core.backup import default_backup_file_name, resolve_backup_path
from esp_firmware_flasher.core.results import ExitCode, WorkflowState

FIXED_NOW = datetime(2024, 5, 17, 23, 30, tzinfo=timezone.utc)


class TestDefaultFileName:
    """Synthesized backup names."""

    def test_name_is_deterministic(self, esp32_device):
        name = default_backup_file_name(esp32_device, FIXED_NOW)
        assert name == "ESP32-D0WD-V3 (revision v3.1)_0x240AC4123456_2024-05-17.bin"
        assert default_backup_file_name(esp32_device, FIXED_NOW) == name

    def test_date_is_utc(self, esp32_device):
        from datetime import timedelta

        # 01:30 on the 18th in UTC+2 is still the 17th in UTC
        local = datetime(2024, 5, 18, 1, 30, tzinfo=timezone(timedelta(hours=2)))
        assert default_backup_file_name(esp32_device, local).endswith("_2024-05-17.bin")


class TestResolveBackupPath:
    """Failure codes and side effects of path resolution."""

    def test_file_name_without_directory_fails(self, esp32_device):
        code, path = resolve_backup_path(esp32_device, None, "dump.bin")
        assert code == ExitCode.E9004
        assert path is None

    def test_missing_directory_is_created(self, esp32_device, tmp_path):
        target = tmp_path / "backups" / "esp32"
        code, path = resolve_backup_path(esp32_device, target, None, FIXED_NOW)
        assert code == ExitCode.OK
        assert target.is_dir()
        assert path == target / default_backup_file_name(esp32_device, FIXED_NOW)

    def test_directory_create_failure(self, esp32_device, tmp_path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_bytes(b"x")
        code, path = resolve_backup_path(esp32_device, blocker, "dump.bin")
        assert code == ExitCode.E9002
        assert path is None

    def test_no_directory_uses_working_directory(self, esp32_device, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        code, path = resolve_backup_path(esp32_device, None, None, FIXED_NOW)
        assert code == ExitCode.OK
        assert path.parent == tmp_path

    def test_existing_file_checked_by_bare_name(self, esp32_device, tmp_path, monkeypatch):
        # The existence check looks at the bare file name in the working
        # directory; only then is the joined path deleted.
        backups = tmp_path / "backups"
        backups.mkdir()
        (backups / "dump.bin").write_bytes(b"old")
        workdir = tmp_path / "work"
        workdir.mkdir()
        monkeypatch.chdir(workdir)

        code, _ = resolve_backup_path(esp32_device, backups, "dump.bin")
        assert code == ExitCode.OK
        assert (backups / "dump.bin").exists()

        (workdir / "dump.bin").write_bytes(b"marker")
        code, path = resolve_backup_path(esp32_device, backups, "dump.bin")
        assert code == ExitCode.OK
        assert not (backups / "dump.bin").exists()
        assert (workdir / "dump.bin").exists()
        assert path == backups / "dump.bin"

    def test_delete_failure(self, esp32_device, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "dump.bin").write_bytes(b"old")

        def refuse(self, missing_ok=False):
            raise PermissionError("locked")

        monkeypatch.setattr(Path, "unlink", refuse)
        code, path = resolve_backup_path(esp32_device, tmp_path, "dump.bin")
        assert code == ExitCode.E9003
        assert path is None


class TestBackupFlash:
    """Backup workflow against a fake transport."""

    def test_existing_directory_and_explicit_name(self, esp32_device, transport, tmp_path, monkeypatch):
        def no_mkdir(self, *args, **kwargs):
            raise AssertionError("directory creation attempted")

        monkeypatch.setattr(Path, "mkdir", no_mkdir)
        result = backup_flash(transport, esp32_device, tmp_path, "dump.bin")

        assert result.ok
        assert result.state == WorkflowState.DONE
        assert transport.calls == [("read_flash", tmp_path / "dump.bin", 4 * 1024 * 1024)]
        assert result.metadata["backup_path"] == str(tmp_path / "dump.bin")

    def test_path_failure_skips_transport(self, esp32_device, transport):
        result = backup_flash(transport, esp32_device, None, "dump.bin")
        assert result.code == ExitCode.E9004
        assert transport.calls == []

    def test_read_failure_is_reported_verbatim(self, esp32_device, tmp_path):
        from conftest import FakeTransport

        transport = FakeTransport(read=ExitCode.E4004)
        result = backup_flash(transport, esp32_device, tmp_path, "dump.bin")
        assert result.code == ExitCode.E4004
        assert result.state == WorkflowState.FAILED
        assert transport.names == ["read_flash"]

    def test_progress_events_emitted(self, esp32_device, transport, tmp_path):
        events = []
        backup_flash(transport, esp32_device, tmp_path, "dump.bin", progress_cb=events.append)
        assert [e.phase.value for e in events] == ["backup", "backup"]
        assert "dump.bin" in events[-1].message
