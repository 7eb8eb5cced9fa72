"""
Target registry and flash layout for ESP32 firmware packages.

Provides a single source of truth for:
- Well-known flash addresses (bootloader, partition table, runtime image)
- Partition table sizes and their deployment partition addresses
- Known firmware targets and the capabilities they assume

Usage:
    from esp_firmware_flasher.targets import (
        list_targets, partition_table_size_for_flash
    )

    size = partition_table_size_for_flash(4 * 1024 * 1024)
    address = size.deployment_address
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


# Chip family every target in this registry is built for
EXPECTED_CHIP_TYPE = "ESP32"

# This is the only official ESP32 target available, so it's used whenever a
# target name isn't specified
DEFAULT_TARGET = "ESP32_WROOM_32"

BOOTLOADER_ADDRESS = 0x1000
PARTITION_TABLE_ADDRESS = 0x8000
CLR_ADDRESS = 0x10000

# SPI flash erase sector size for supported flash chips
ERASE_SECTOR_SIZE = 0x1000

BOOTLOADER_FILE = "bootloader.bin"
CLR_FILE = "nanoCLR.bin"
RUNTIME_FILE_EXTENSION = ".bin"

_MB = 1024 * 1024


class PartitionTableSize(Enum):
    """Partition table layouts shipped in a firmware package (in MB)."""
    SIZE_2MB = 2
    SIZE_4MB = 4
    SIZE_8MB = 8
    SIZE_16MB = 16

    @property
    def file_name(self) -> str:
        """Partition table image name inside the package."""
        return f"partitions_{self.value}mb.bin"

    @property
    def deployment_address(self) -> int:
        """Start of the managed application (deployment) partition."""
        return DEPLOYMENT_ADDRESSES[self]


DEPLOYMENT_ADDRESSES: Dict[PartitionTableSize, int] = {
    PartitionTableSize.SIZE_2MB: 0x110000,
    PartitionTableSize.SIZE_4MB: 0x1B0000,
    PartitionTableSize.SIZE_8MB: 0x1B0000,
    PartitionTableSize.SIZE_16MB: 0x1B0000,
}


# Target name tags that imply device requirements
REVISION_3_TARGET_TAG = "ESP32_WROOM_32_V3"
BLUETOOTH_TARGET_TAG = "BLE"


@dataclass(frozen=True)
class TargetInfo:
    """
    Definition of a firmware target (board/feature combination).

    Requirements are implied by the target name, so custom targets that
    aren't in the registry are checked the same way.
    """
    name: str
    description: str = "Custom target"

    @property
    def min_revision(self) -> int:
        return 3 if REVISION_3_TARGET_TAG in self.name else 0

    @property
    def requires_bluetooth(self) -> bool:
        return BLUETOOTH_TARGET_TAG in self.name


TARGETS: Dict[str, TargetInfo] = {
    "ESP32_WROOM_32": TargetInfo(
        name="ESP32_WROOM_32",
        description="Generic ESP32 module, any silicon revision",
    ),
    "ESP32_WROOM_32_BLE": TargetInfo(
        name="ESP32_WROOM_32_BLE",
        description="Generic ESP32 module with Bluetooth LE support",
    ),
    "ESP32_WROOM_32_V3": TargetInfo(
        name="ESP32_WROOM_32_V3",
        description="ESP32 module with revision 3 silicon",
    ),
    "ESP32_WROOM_32_V3_BLE": TargetInfo(
        name="ESP32_WROOM_32_V3_BLE",
        description="ESP32 revision 3 module with Bluetooth LE support",
    ),
    "ESP32_PSRAM_REV0": TargetInfo(
        name="ESP32_PSRAM_REV0",
        description="ESP32 with PSRAM, revision 0 silicon workarounds",
    ),
    "ESP32_BLE_REV0": TargetInfo(
        name="ESP32_BLE_REV0",
        description="ESP32 revision 0 with Bluetooth LE support",
    ),
}


def list_targets() -> List[str]:
    """Return the sorted names of all known targets."""
    return sorted(TARGETS.keys())


def target_info(name: str) -> TargetInfo:
    """Registry entry for ``name``, or an ad-hoc entry for a custom target."""
    return TARGETS.get(name) or TargetInfo(name=name)


def partition_table_size_for_flash(flash_size: int) -> Optional[PartitionTableSize]:
    """
    Pick the partition table matching a device flash size.

    Returns:
        The matching PartitionTableSize, or None if the flash size has no
        partition table in the package.
    """
    if flash_size <= 0 or flash_size % _MB:
        return None
    try:
        return PartitionTableSize(flash_size // _MB)
    except ValueError:
        return None
