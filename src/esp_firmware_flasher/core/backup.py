"""
Destination path resolution for flash backups.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple, Union

from esp_firmware_flasher.device import DeviceInfo
from .results import ExitCode

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def default_backup_file_name(device: DeviceInfo, now: Optional[datetime] = None) -> str:
    """Build ``<chip>_0x<mac>_<date>.bin`` using the UTC date."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return f"{device.chip_name}_0x{device.mac_address}_{now:%Y-%m-%d}.bin"


def resolve_backup_path(
    device: DeviceInfo,
    backup_dir: Optional[PathLike] = None,
    file_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[ExitCode, Optional[Path]]:
    """
    Resolve the file a full-flash dump should be written to.

    Args:
        device: Connected device snapshot (used for the default name)
        backup_dir: Directory for the dump; created when missing
        file_name: Explicit file name; requires ``backup_dir``
        now: Clock override for the default name

    Returns:
        Tuple of (ExitCode, path). Path is None unless the code is OK.
    """
    if file_name and not backup_dir:
        return ExitCode.E9004, None

    directory = Path(backup_dir) if backup_dir else Path.cwd()

    if not directory.is_dir():
        try:
            directory.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Created backup directory {directory}")
        except OSError as e:
            logger.error(f"Cannot create backup directory {directory}: {e}")
            return ExitCode.E9002, None

    if not file_name:
        file_name = default_backup_file_name(device, now)

    backup_file = directory / file_name

    # The existence test looks at the bare file name (relative to the working
    # directory) while the delete targets the joined path.
    if Path(file_name).exists():
        try:
            backup_file.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Cannot delete existing backup {backup_file}: {e}")
            return ExitCode.E9003, None

    return ExitCode.OK, backup_file
