"""
Centralized parsing helpers for addresses and sizes.

Both the CLI and the workflows import these helpers rather than re-implement.
"""

import string
from typing import Optional

from esp_firmware_flasher.targets import PartitionTableSize

_HEX_DIGITS = set(string.hexdigits)


def parse_deployment_address(value: Optional[str]) -> Optional[int]:
    """
    Parse a deployment address given as a ``0x``-prefixed hexadecimal string.

    This is the single source of truth for deployment address parsing.

    Accepts:
        - "0x1B0000" or "0X1b0000"

    Returns:
        Parsed integer address, or None if the value is missing, lacks the
        ``0x`` prefix, carries whitespace or is not valid hexadecimal.
        Never raises.
    """
    if value is None:
        return None

    if len(value) < 3 or value[:2].lower() != "0x":
        return None

    digits = value[2:]
    if not all(c in _HEX_DIGITS for c in digits):
        return None

    address = int(digits, 16)
    # flash addresses are 32-bit
    if address > 0xFFFFFFFF:
        return None
    return address


def parse_partition_table_size(value: Optional[str]) -> Optional[PartitionTableSize]:
    """
    Parse partition table size from a user-friendly string.

    Accepts "2", "4", "8", "16" optionally followed by "mb" (any case).

    Returns:
        Corresponding PartitionTableSize, or None if value is None or empty.

    Raises:
        ValueError: If size is not one of the supported sizes.
    """
    if value is None:
        return None

    value = value.strip().lower()
    if not value:
        return None
    if value.endswith("mb"):
        value = value[:-2]

    try:
        return PartitionTableSize(int(value))
    except ValueError:
        valid = ", ".join(str(s.value) for s in PartitionTableSize)
        raise ValueError(
            f"Invalid partition table size '{value}'. Use one of: {valid}."
        )


def format_size(num_bytes: int) -> str:
    """Format a byte count like esptool does (e.g. "4MB", "512KB")."""
    if num_bytes >= 1024 * 1024 and num_bytes % (1024 * 1024) == 0:
        return f"{num_bytes // (1024 * 1024)}MB"
    if num_bytes >= 1024 and num_bytes % 1024 == 0:
        return f"{num_bytes // 1024}KB"
    return f"{num_bytes}B"
