"""
Runtime settings for the flasher.

Defaults can be overridden with environment variables; CLI options override
both.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_PACKAGE_URL = "https://dl.cloudsmith.io/public/net-nanoframework/nanoframework-images/raw/names"
DEFAULT_CACHE_DIR = Path.home() / ".nanoFramework" / "fw_cache"
DEFAULT_BAUD = 921600
DEFAULT_CHIP = "auto"


def _default_cache_dir() -> Path:
    return DEFAULT_CACHE_DIR


@dataclass
class FlasherSettings:
    """
    Settings shared by the CLI and the adapters.

    Attributes:
        package_url: Base URL firmware packages are downloaded from
        cache_dir: Where packages are downloaded and extracted
        baud: Baud rate for esptool after the bootloader sync
        chip: esptool chip argument
        download_timeout: HTTP timeout in seconds
    """
    package_url: str = DEFAULT_PACKAGE_URL
    cache_dir: Path = field(default_factory=_default_cache_dir)
    baud: int = DEFAULT_BAUD
    chip: str = DEFAULT_CHIP
    download_timeout: float = 60.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "FlasherSettings":
        """
        Build settings from ``ESP_FLASHER_*`` environment variables.

        Raises:
            ValueError: If ESP_FLASHER_BAUD isn't an integer
        """
        env = os.environ if environ is None else environ
        settings = cls()

        if env.get("ESP_FLASHER_PACKAGE_URL"):
            settings.package_url = env["ESP_FLASHER_PACKAGE_URL"].rstrip("/")
        if env.get("ESP_FLASHER_CACHE_DIR"):
            settings.cache_dir = Path(env["ESP_FLASHER_CACHE_DIR"]).expanduser()
        if env.get("ESP_FLASHER_CHIP"):
            settings.chip = env["ESP_FLASHER_CHIP"]
        if env.get("ESP_FLASHER_BAUD"):
            try:
                settings.baud = int(env["ESP_FLASHER_BAUD"])
            except ValueError:
                raise ValueError(
                    f"Invalid ESP_FLASHER_BAUD '{env['ESP_FLASHER_BAUD']}'. Use an integer like 921600."
                )
        return settings
