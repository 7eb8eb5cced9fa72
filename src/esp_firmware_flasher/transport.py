"""
ESP32 Flashing Transport Layer

Wraps esptool so the workflows can request flash operations without knowing
the serial bootloader protocol.

This module provides:
- The FlashTransport interface consumed by the workflows
- EspToolTransport, which runs ``python -m esptool`` per operation
- Device identification (``flash-id``) for the device descriptor
"""

import importlib.util
import logging
import shutil
import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Union

from esp_firmware_flasher.core.partitions import PartitionPlan
from esp_firmware_flasher.core.results import ExitCode
from esp_firmware_flasher.device import DeviceInfo, parse_esptool_output

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Base exception for transport layer errors"""
    pass


class EspToolNotFound(TransportError):
    """esptool is neither importable nor on PATH"""
    pass


class DeviceNotResponding(TransportError):
    """Device did not answer the bootloader sync"""
    pass


class FlashTransport(Protocol):
    """Operations the workflows request from the device."""

    def read_flash(self, path: Union[str, Path], size: int) -> ExitCode:
        ...

    def erase_all(self) -> ExitCode:
        ...

    def erase_range(self, address: int, length: int) -> ExitCode:
        ...

    def write_plan(self, plan: PartitionPlan) -> ExitCode:
        ...


def find_esptool() -> List[str]:
    """
    Locate esptool, preferring the copy installed in this interpreter.

    Raises:
        EspToolNotFound: If esptool isn't available
    """
    if importlib.util.find_spec("esptool") is not None:
        return [sys.executable, "-m", "esptool"]
    for name in ("esptool", "esptool.py"):
        if shutil.which(name):
            return [name]
    raise EspToolNotFound("esptool not found. Install it with: pip install esptool")


class EspToolTransport:
    """
    Flash transport backed by esptool.

    Each operation is one esptool invocation; esptool handles connecting,
    resetting into the bootloader and its own retries.

    Example:
        transport = EspToolTransport(port="/dev/ttyUSB0")
        device = transport.read_device_info()
        transport.erase_all()
        transport.write_plan(plan)
    """

    def __init__(
        self,
        port: str,
        baud: int = 921600,
        chip: str = "auto",
        timeout: float = 300.0,
        esptool_cmd: Optional[Sequence[str]] = None,
    ):
        """
        Initialize transport.

        Args:
            port: Serial port (e.g., "/dev/ttyUSB0", "COM3")
            baud: Baud rate used after the bootloader sync
            chip: esptool chip argument ("auto", "esp32", ...)
            timeout: Per-command timeout in seconds
            esptool_cmd: Command prefix; located with find_esptool() when None
        """
        self.port = port
        self.baud = baud
        self.chip = chip
        self.timeout = timeout
        self._esptool_cmd = list(esptool_cmd) if esptool_cmd else None

    @property
    def esptool_cmd(self) -> List[str]:
        if self._esptool_cmd is None:
            self._esptool_cmd = find_esptool()
        return self._esptool_cmd

    def _build_cmd(self, *args: str, after: str = "hard-reset") -> List[str]:
        return self.esptool_cmd + [
            "--chip", self.chip,
            "--port", self.port,
            "--baud", str(self.baud),
            "--after", after,
            *args,
        ]

    def _run(self, *args: str, after: str = "hard-reset") -> str:
        """
        Run one esptool command and return its combined output.

        Raises:
            DeviceNotResponding: If esptool couldn't connect to the chip
            TransportError: On any other esptool failure
        """
        cmd = self._build_cmd(*args, after=after)
        logger.debug("Running: " + " ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            raise DeviceNotResponding(f"esptool timed out after {self.timeout}s on {self.port}")
        except OSError as e:
            raise TransportError(f"Cannot run esptool: {e}")

        output = (result.stdout or "") + (result.stderr or "")
        if result.returncode != 0:
            if "Failed to connect" in output or "No serial data received" in output:
                raise DeviceNotResponding(f"Device on {self.port} not responding:\n{output.strip()}")
            raise TransportError(f"esptool {args[0]} failed:\n{output.strip()}")
        return output

    def _outcome(self, failure: ExitCode, *args: str) -> ExitCode:
        try:
            self._run(*args)
        except DeviceNotResponding as e:
            logger.error(str(e))
            return ExitCode.E4005
        except TransportError as e:
            logger.error(str(e))
            return failure
        return ExitCode.OK

    def read_device_info(self) -> DeviceInfo:
        """
        Identify the connected chip.

        Raises:
            TransportError: If esptool fails or its output can't be parsed
        """
        output = self._run("flash-id", after="no-reset")
        try:
            return parse_esptool_output(output)
        except ValueError as e:
            raise TransportError(f"{e}:\n{output.strip()}")

    def read_flash(self, path: Union[str, Path], size: int) -> ExitCode:
        """Dump ``size`` bytes of flash starting at 0 into ``path``."""
        return self._outcome(ExitCode.E4004, "read-flash", "0", str(size), str(path))

    def erase_all(self) -> ExitCode:
        return self._outcome(ExitCode.E4002, "erase-flash")

    def erase_range(self, address: int, length: int) -> ExitCode:
        return self._outcome(ExitCode.E4002, "erase-region", f"0x{address:X}", f"0x{length:X}")

    def write_plan(self, plan: PartitionPlan) -> ExitCode:
        """Write every plan entry in one esptool call, lowest address first."""
        args = ["write-flash", "-z"]
        for address, path in plan.sorted_items():
            args.extend([f"0x{address:X}", path])
        return self._outcome(ExitCode.E4003, *args)
