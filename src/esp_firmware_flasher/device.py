"""
Device descriptor for a connected ESP32-family chip.

The descriptor is an immutable snapshot read once per session (see
``EspToolTransport.read_device_info``); the workflows only read it.
"""

import re
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional

_REVISION_RE = re.compile(r"revision\s+v?(\d+)", re.IGNORECASE)
_CONNECTED_RE = re.compile(r"Connected to (\S+) on ")


@dataclass(frozen=True)
class DeviceInfo:
    """
    Snapshot of the connected device.

    Attributes:
        chip_type: Chip family tag reported by the bootloader (e.g. "ESP32")
        chip_name: Chip name and revision (e.g. "ESP32-D0WD-V3 (revision v3.1)")
        flash_size: Flash size in bytes
        mac_address: MAC address as upper-case hex digits, no separators
        features: Feature tokens (e.g. {"WiFi", "BT", "Dual Core"})
    """
    chip_type: str
    chip_name: str
    flash_size: int
    mac_address: str
    features: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def revision(self) -> Optional[int]:
        """Major silicon revision parsed from the chip name, if present."""
        match = _REVISION_RE.search(self.chip_name)
        return int(match.group(1)) if match else None

    @property
    def has_bluetooth(self) -> bool:
        # esptool v4 reports "BT", newer chips "BT 5 (LE)"
        return any(f.split()[0] in ("BT", "BLE") for f in self.features)

    @classmethod
    def create(
        cls,
        chip_type: str,
        chip_name: str,
        flash_size: int,
        mac_address: str,
        features: Iterable[str] = (),
    ) -> "DeviceInfo":
        """Build a descriptor, normalising the MAC address and feature tokens."""
        return cls(
            chip_type=chip_type.strip(),
            chip_name=chip_name.strip(),
            flash_size=flash_size,
            mac_address=normalize_mac(mac_address),
            features=frozenset(f.strip() for f in features if f.strip()),
        )


def normalize_mac(mac: str) -> str:
    """Strip separators from a MAC address and upper-case it."""
    return re.sub(r"[^0-9A-Fa-f]", "", mac).upper()


def parse_esptool_output(output: str) -> DeviceInfo:
    """
    Build a DeviceInfo from ``esptool flash-id`` output.

    Understands both the esptool v4 ("Chip is ...") and v5 ("Chip type: ...")
    report formats. The chip family comes from the auto-detection line when
    esptool ran with ``--chip auto``, otherwise from the v5 "Connected to ..."
    line, otherwise from the chip name itself.

    Raises:
        ValueError: If chip type or flash size cannot be found
    """
    info = {}
    for line in output.splitlines():
        line = line.strip()
        if line.startswith("Detecting chip type..."):
            info["chip_type"] = line[len("Detecting chip type..."):].strip()
        elif line.startswith("Connected to "):
            match = _CONNECTED_RE.match(line)
            if match:
                info["connected_type"] = match.group(1)
        elif line.startswith("Chip is "):
            info["chip_name"] = line[len("Chip is "):]
        elif line.startswith("Chip type:"):
            info["chip_name"] = line[len("Chip type:"):].strip()
        elif line.startswith("Features:"):
            info["features"] = line[len("Features:"):].strip()
        elif line.startswith("Detected flash size:"):
            info["flash_size"] = line.split(":")[-1].strip()
        elif line.startswith("MAC:"):
            info["mac"] = line[len("MAC:"):].strip()

    # "Detecting chip type... Unsupported detection protocol, switching..." on
    # older chips leaves no family on the detection line
    chip_type = ""
    for candidate in (info.get("chip_type", ""), info.get("connected_type", "")):
        parts = candidate.split()
        if parts and parts[0].upper().startswith("ESP"):
            chip_type = parts[0]
            break
    if not chip_type:
        name_parts = info.get("chip_name", "").split("-")[0].split()
        if name_parts:
            chip_type = name_parts[0]

    if not chip_type or "flash_size" not in info:
        raise ValueError("Could not parse chip type or flash size from esptool output")

    return DeviceInfo.create(
        chip_type=chip_type,
        chip_name=info.get("chip_name", chip_type),
        flash_size=parse_flash_size(info["flash_size"]),
        mac_address=info.get("mac", ""),
        features=info.get("features", "").split(","),
    )


def parse_flash_size(value: str) -> int:
    """
    Parse an esptool style size string.

    Args:
        value: Size string like "4MB", "512KB" or "4096"

    Returns:
        Size in bytes

    Raises:
        ValueError: If format is invalid
    """
    text = value.strip().upper()
    try:
        if text.endswith("MB"):
            return int(text[:-2]) * 1024 * 1024
        if text.endswith("KB"):
            return int(text[:-2]) * 1024
        return int(text)
    except ValueError:
        raise ValueError(
            f"Invalid size '{value}'. Use bytes (4096) or units like '4MB'."
        )
