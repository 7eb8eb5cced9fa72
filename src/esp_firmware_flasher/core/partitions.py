"""
Partition plan assembly.

A plan maps flash addresses to the binary files written there. It starts
from the firmware package layout, then a local runtime image may replace the
package one, and finally an application image may take over the whole plan.
"""

import logging
from collections import OrderedDict
from pathlib import Path
from typing import Dict, Iterator, Mapping, Optional, Tuple, Union

from esp_firmware_flasher.targets import CLR_ADDRESS, RUNTIME_FILE_EXTENSION
from .parsing import parse_deployment_address
from .results import ExitCode

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class PartitionPlan:
    """
    Ordered address -> file mapping with override semantics.

    Setting an address that is already present replaces the previous entry,
    so no two entries ever share an address.
    """

    def __init__(self, entries: Optional[Mapping[int, PathLike]] = None):
        self._entries: "OrderedDict[int, str]" = OrderedDict()
        for address, path in (entries or {}).items():
            self.set(address, path)

    def set(self, address: int, path: PathLike) -> None:
        """Insert or replace the entry at ``address``."""
        self._entries.pop(address, None)
        self._entries[address] = str(path)

    def remove(self, address: int) -> None:
        self._entries.pop(address, None)

    def replace_all(self, address: int, path: PathLike) -> None:
        """Drop every entry and keep a single one."""
        self._entries.clear()
        self._entries[address] = str(path)

    def sorted_items(self) -> Iterator[Tuple[int, str]]:
        """Entries in ascending address order."""
        return iter(sorted(self._entries.items()))

    def to_dict(self) -> Dict[int, str]:
        return dict(self._entries)

    def __getitem__(self, address: int) -> str:
        return self._entries[address]

    def __contains__(self, address: object) -> bool:
        return address in self._entries

    def __iter__(self) -> Iterator[int]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __repr__(self) -> str:
        body = ", ".join(f"0x{a:X}: {p!r}" for a, p in self._entries.items())
        return f"PartitionPlan({{{body}}})"


def check_runtime_file(clr_file: PathLike) -> ExitCode:
    """Validate a local runtime image before anything is downloaded."""
    path = Path(clr_file)
    if not path.is_file():
        return ExitCode.E9011
    if path.suffix != RUNTIME_FILE_EXTENSION:
        return ExitCode.E9012
    return ExitCode.OK


def apply_runtime_override(plan: PartitionPlan, clr_file: PathLike) -> ExitCode:
    """
    Replace the runtime image in ``plan`` with a local file.

    Returns:
        E9011 if the file doesn't exist, E9012 if it isn't a .bin file,
        otherwise OK with the plan updated in place.
    """
    code = check_runtime_file(clr_file)
    if not code.is_ok:
        return code

    plan.remove(CLR_ADDRESS)
    plan.set(CLR_ADDRESS, clr_file)
    logger.debug(f"Runtime image at 0x{CLR_ADDRESS:X} overridden with {clr_file}")
    return ExitCode.OK


def place_application(
    plan: PartitionPlan,
    application_path: PathLike,
    update_fw: bool,
    deployment_address: Optional[str] = None,
    package_deployment_address: Optional[int] = None,
) -> Tuple[ExitCode, Optional[int]]:
    """
    Make the application image the only entry of ``plan``.

    Args:
        plan: Plan built so far; replaced in place
        application_path: Application binary to write
        update_fw: Whether a firmware update was requested
        deployment_address: "0x"-prefixed hex address, deploy-only mode
        package_deployment_address: Package deployment partition, update mode

    Returns:
        Tuple of (ExitCode, address the application goes to)
    """
    app_file = Path(application_path)
    if not app_file.is_file():
        return ExitCode.E9008, None

    if update_fw:
        address = package_deployment_address
    else:
        address = parse_deployment_address(deployment_address)

    if address is None:
        return ExitCode.E9009, None

    plan.replace_all(address, app_file.resolve())
    logger.debug(f"Application {app_file} placed at 0x{address:X}")
    return ExitCode.OK, address
