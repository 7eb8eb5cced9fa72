"""Erase range computation for full updates and deploy-only operations."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from esp_firmware_flasher.targets import ERASE_SECTOR_SIZE


@dataclass(frozen=True)
class EraseRange:
    """Flash region to erase; length is a multiple of the erase sector."""
    address: int
    length: int

    @property
    def end(self) -> int:
        """End address (exclusive)."""
        return self.address + self.length

    def __str__(self) -> str:
        return f"0x{self.address:06X}-0x{self.end:06X}"


def round_up_to_sector(length: int, sector_size: int = ERASE_SECTOR_SIZE) -> int:
    """Round ``length`` up to the next multiple of ``sector_size``."""
    return -(-length // sector_size) * sector_size


def compute_erase_range(
    update_fw: bool,
    deployment_address: int,
    bootloader_path: Optional[Union[str, Path]],
) -> Optional[EraseRange]:
    """
    Decide what to erase before writing.

    A full firmware update erases the whole chip (None). A deploy-only
    operation erases from the deployment address a region as long as the
    package bootloader image, rounded up to the erase sector size.

    Raises:
        OSError: If the bootloader image can't be read
    """
    if update_fw:
        return None

    length = Path(bootloader_path).stat().st_size
    return EraseRange(deployment_address, round_up_to_sector(length))
