"""Shared test doubles for the flasher workflows."""

from pathlib import Path

import pytest

from esp_firmware_flasher.core.partitions import PartitionPlan
from esp_firmware_flasher.core.results import ExitCode
from esp_firmware_flasher.device import DeviceInfo
from esp_firmware_flasher.firmware import FirmwarePackage, FirmwarePackageError
from esp_firmware_flasher.targets import (
    BOOTLOADER_ADDRESS,
    CLR_ADDRESS,
    PARTITION_TABLE_ADDRESS,
    PartitionTableSize,
)


class FakeTransport:
    """Records every request and answers with preset outcomes."""

    def __init__(self, read=ExitCode.OK, erase=ExitCode.OK, write=ExitCode.OK):
        self.calls = []
        self._read = read
        self._erase = erase
        self._write = write

    def read_flash(self, path, size):
        self.calls.append(("read_flash", Path(path), size))
        return self._read

    def erase_all(self):
        self.calls.append(("erase_all",))
        return self._erase

    def erase_range(self, address, length):
        self.calls.append(("erase_range", address, length))
        return self._erase

    def write_plan(self, plan: PartitionPlan):
        self.calls.append(("write_plan", plan.to_dict()))
        return self._write

    @property
    def names(self):
        return [call[0] for call in self.calls]


class FakeResolver:
    """Serves a package from a temporary directory, or fails with a code."""

    def __init__(self, package: FirmwarePackage, error: ExitCode = None):
        self.package = package
        self.error = error
        self.resolve_calls = []
        self.locate_calls = []

    async def resolve(self, target, version, preview, partition_table_size, flash_size):
        self.resolve_calls.append((target, version, preview, partition_table_size, flash_size))
        if self.error is not None:
            raise FirmwarePackageError(self.error)
        return self.package

    def locate(self, target, version, preview):
        self.locate_calls.append((target, version, preview))
        if self.error is not None:
            raise FirmwarePackageError(self.error)
        return self.package


@pytest.fixture
def esp32_device():
    return DeviceInfo.create(
        chip_type="ESP32",
        chip_name="ESP32-D0WD-V3 (revision v3.1)",
        flash_size=4 * 1024 * 1024,
        mac_address="24:0a:c4:12:34:56",
        features=["WiFi", "BT", "Dual Core", "240MHz"],
    )


@pytest.fixture
def package(tmp_path):
    location = tmp_path / "package"
    location.mkdir()
    (location / "bootloader.bin").write_bytes(b"\xE9" * 10000)
    (location / "partitions_4mb.bin").write_bytes(b"\xAA\x50" * 100)
    (location / "nanoCLR.bin").write_bytes(b"\xE9" * 5000)
    return FirmwarePackage(
        target="ESP32_WROOM_32",
        version="1.0.0",
        location=location,
        bootloader_path=location / "bootloader.bin",
        partition_table_size=PartitionTableSize.SIZE_4MB,
        partitions={
            BOOTLOADER_ADDRESS: str(location / "bootloader.bin"),
            PARTITION_TABLE_ADDRESS: str(location / "partitions_4mb.bin"),
            CLR_ADDRESS: str(location / "nanoCLR.bin"),
        },
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def resolver(package):
    return FakeResolver(package)
