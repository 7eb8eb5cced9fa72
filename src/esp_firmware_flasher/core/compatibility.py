"""
Sanity checks of a firmware target against the connected device.

All checks are advisory: they produce warnings and never stop a workflow,
because the pairing of target and device cannot be fully verified offline.
"""

import logging
from typing import List, Optional

from esp_firmware_flasher.device import DeviceInfo
from esp_firmware_flasher.targets import DEFAULT_TARGET, EXPECTED_CHIP_TYPE, target_info
from .messages import WarningCode, WarningItem

logger = logging.getLogger(__name__)


def resolve_target_name(target: Optional[str]) -> str:
    """Return the target name, substituting the default when empty."""
    if not target or not target.strip():
        return DEFAULT_TARGET
    return target.strip()


def check_compatibility(device: DeviceInfo, target: str) -> List[WarningItem]:
    """
    Check a resolved target name against the device descriptor.

    Args:
        device: Connected device snapshot
        target: Resolved (non-empty) target name

    Returns:
        Zero or more WarningItem objects, one per failed check
    """
    warnings: List[WarningItem] = []
    info = target_info(target)

    if device.chip_type != EXPECTED_CHIP_TYPE:
        warnings.append(WarningItem.warn(
            WarningCode.W_DEVICE_UNSUPPORTED,
            "Seems that the connected device is not supported",
            f"Connected chip type is '{device.chip_type}', "
            f"expected '{EXPECTED_CHIP_TYPE}'.",
        ))

    revision = device.revision
    if revision is not None and revision < info.min_revision:
        warnings.append(WarningItem.warn(
            WarningCode.W_REVISION_MISMATCH,
            f"Firmware image is for a revision {info.min_revision} device",
            f"The connected device is {device.chip_name}. "
            f"You should use the '{DEFAULT_TARGET}' target instead.",
        ))

    if info.requires_bluetooth and not device.has_bluetooth:
        warnings.append(WarningItem.warn(
            WarningCode.W_MISSING_CAPABILITY,
            "Firmware image includes Bluetooth but the device lacks support for it",
            f"Device features: {', '.join(sorted(device.features)) or 'none reported'}.",
        ))

    for warning in warnings:
        logger.warning("%s: %s", warning.code.value, warning.title)

    return warnings
