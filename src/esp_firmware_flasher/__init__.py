"""
ESP32 Firmware Flasher - firmware update, deployment and backup for ESP32 devices

Decides what to erase and write, then drives esptool to do it.
"""

__version__ = "0.1.0"

from esp_firmware_flasher.core import backup_flash, update_firmware, ExitCode, OperationResult
from esp_firmware_flasher.transport import EspToolTransport
from esp_firmware_flasher.firmware import PackageFirmwareResolver

__all__ = [
    "backup_flash",
    "update_firmware",
    "ExitCode",
    "OperationResult",
    "EspToolTransport",
    "PackageFirmwareResolver",
    "__version__",
]
