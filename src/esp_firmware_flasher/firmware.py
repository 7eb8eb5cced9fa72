"""
Firmware package resolution.

Downloads a target's firmware package (a zip archive) into a local cache,
extracts it and describes the flash layout it provides.

The package is expected to hold, at its root:
- bootloader.bin
- nanoCLR.bin
- partitions_<N>mb.bin for each supported partition table size
"""

import asyncio
import http.client
import logging
import shutil
import tempfile
import urllib.error
import urllib.request
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

from esp_firmware_flasher.core.partitions import PartitionPlan
from esp_firmware_flasher.core.results import ExitCode
from esp_firmware_flasher.targets import (
    BOOTLOADER_ADDRESS,
    BOOTLOADER_FILE,
    CLR_ADDRESS,
    CLR_FILE,
    PARTITION_TABLE_ADDRESS,
    PartitionTableSize,
    partition_table_size_for_flash,
)

logger = logging.getLogger(__name__)

LATEST_VERSION = "latest"


class FirmwarePackageError(Exception):
    """
    Raised when a firmware package can't be obtained.

    Attributes:
        code: Outcome the workflow reports for this failure
    """
    def __init__(self, code: ExitCode, message: str = ""):
        self.code = code
        super().__init__(message or code.description)


@dataclass
class FirmwarePackage:
    """Extracted firmware package and the flash layout it provides."""
    target: str
    version: str
    location: Path
    bootloader_path: Path
    partition_table_size: Optional[PartitionTableSize] = None
    partitions: Dict[int, str] = field(default_factory=dict)

    @property
    def deployment_address(self) -> Optional[int]:
        if self.partition_table_size is None:
            return None
        return self.partition_table_size.deployment_address

    def plan(self) -> PartitionPlan:
        """Fresh base plan for one workflow invocation."""
        return PartitionPlan(self.partitions)


class FirmwareResolver(Protocol):
    """Source of firmware packages consumed by the update workflow."""

    async def resolve(
        self,
        target: str,
        version: Optional[str],
        preview: bool,
        partition_table_size: Optional[PartitionTableSize],
        flash_size: int,
    ) -> FirmwarePackage:
        ...

    def locate(
        self,
        target: str,
        version: Optional[str],
        preview: bool,
    ) -> FirmwarePackage:
        ...


class PackageFirmwareResolver:
    """
    Resolver downloading ``<base_url>/<target>-<version>.zip`` into a cache.

    Example:
        resolver = PackageFirmwareResolver(settings.package_url, settings.cache_dir)
        package = await resolver.resolve("ESP32_WROOM_32", None, False, None, 4 * 1024 * 1024)
    """

    def __init__(
        self,
        base_url: str,
        cache_dir: Union[str, Path],
        timeout: float = 60.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.cache_dir = Path(cache_dir)
        self.timeout = timeout

    @staticmethod
    def package_name(target: str, preview: bool) -> str:
        return f"{target}-preview" if preview else target

    def package_url(self, target: str, version: Optional[str], preview: bool) -> str:
        name = self.package_name(target, preview)
        return f"{self.base_url}/{name}-{version or LATEST_VERSION}.zip"

    def package_dir(self, target: str, version: Optional[str], preview: bool) -> Path:
        return self.cache_dir / self.package_name(target, preview) / (version or LATEST_VERSION)

    async def resolve(
        self,
        target: str,
        version: Optional[str],
        preview: bool,
        partition_table_size: Optional[PartitionTableSize],
        flash_size: int,
    ) -> FirmwarePackage:
        """
        Download (unless cached) and extract the package for ``target``.

        A pinned version already in the cache is reused; "latest" is always
        downloaded again.

        Raises:
            FirmwarePackageError: E4001 for an unsupported flash size, E9007
                for network, archive or content errors
        """
        table_size = partition_table_size or partition_table_size_for_flash(flash_size)
        if table_size is None:
            raise FirmwarePackageError(
                ExitCode.E4001,
                f"No partition table for a flash size of {flash_size} bytes",
            )

        location = self.package_dir(target, version, preview)
        if version is None or not (location / BOOTLOADER_FILE).is_file():
            url = self.package_url(target, version, preview)
            logger.info(f"Downloading firmware package {url}")
            try:
                await asyncio.to_thread(self._download_and_extract, url, location)
            except OSError as e:
                raise FirmwarePackageError(ExitCode.E9007, f"Cannot prepare cache {location}: {e}")
        else:
            logger.info(f"Using cached firmware package {location}")

        return self._build_package(target, version, location, table_size)

    def locate(
        self,
        target: str,
        version: Optional[str],
        preview: bool,
    ) -> FirmwarePackage:
        """
        Describe a previously downloaded package without touching the network.

        Raises:
            FirmwarePackageError: E9007 if the package isn't in the cache
        """
        location = self.package_dir(target, version, preview)
        bootloader = location / BOOTLOADER_FILE
        if not bootloader.is_file():
            raise FirmwarePackageError(
                ExitCode.E9007,
                f"Firmware package for {target} ({version or LATEST_VERSION}) is not in the cache at {location}. "
                f"Run an update of the same target and version first; deploy-only does not download.",
            )
        return FirmwarePackage(
            target=target,
            version=version or LATEST_VERSION,
            location=location,
            bootloader_path=bootloader,
            partitions={
                BOOTLOADER_ADDRESS: str(bootloader),
                CLR_ADDRESS: str(location / CLR_FILE),
            },
        )

    def _download_and_extract(self, url: str, location: Path) -> None:
        """Blocking download + extraction, run in a worker thread."""
        location.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(dir=location.parent) as tmp:
            archive = Path(tmp) / "package.zip"
            staging = Path(tmp) / "extracted"
            try:
                with urllib.request.urlopen(url, timeout=self.timeout) as response, \
                        open(archive, "wb") as out:
                    shutil.copyfileobj(response, out)
                with zipfile.ZipFile(archive) as zf:
                    zf.extractall(staging)
            except urllib.error.URLError as e:
                raise FirmwarePackageError(ExitCode.E9007, f"Download of {url} failed: {e}")
            except zipfile.BadZipFile as e:
                raise FirmwarePackageError(ExitCode.E9007, f"Package {url} is not a zip archive: {e}")
            except http.client.HTTPException as e:
                raise FirmwarePackageError(ExitCode.E9007, f"Download of {url} was interrupted: {e!r}")
            except ValueError as e:
                raise FirmwarePackageError(ExitCode.E9007, f"Invalid package URL {url}: {e}")
            except OSError as e:
                raise FirmwarePackageError(ExitCode.E9007, f"Cannot store package from {url}: {e}")

            if location.exists():
                shutil.rmtree(location)
            shutil.move(str(staging), str(location))
        logger.debug(f"Package extracted to {location}")

    def _build_package(
        self,
        target: str,
        version: Optional[str],
        location: Path,
        table_size: PartitionTableSize,
    ) -> FirmwarePackage:
        files = {
            BOOTLOADER_ADDRESS: location / BOOTLOADER_FILE,
            PARTITION_TABLE_ADDRESS: location / table_size.file_name,
            CLR_ADDRESS: location / CLR_FILE,
        }
        missing = [p.name for p in files.values() if not p.is_file()]
        if missing:
            raise FirmwarePackageError(
                ExitCode.E9007,
                f"Firmware package {location} is missing: {', '.join(missing)}",
            )

        return FirmwarePackage(
            target=target,
            version=version or LATEST_VERSION,
            location=location,
            bootloader_path=files[BOOTLOADER_ADDRESS],
            partition_table_size=table_size,
            partitions={address: str(path) for address, path in files.items()},
        )
