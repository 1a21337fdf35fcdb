"""Configuration for install locations, update checks and downloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from ccline.schemas import PlatformKey

# Fixed location Claude Code reads the binary from
DEFAULT_INSTALL_DIR = Path.home() / ".claude" / "ccline"

# Bundled payload shipped inside the wheel
DEFAULT_PAYLOAD_DIR = Path(__file__).resolve().parent / "_native"

PACKAGE_NAME = "ccline"
PYPI_JSON_URL = f"https://pypi.org/pypi/{PACKAGE_NAME}/json"

# Timeouts
UPDATE_CHECK_TIMEOUT = 1.5  # seconds, no retries
DOWNLOAD_TIMEOUT = 60.0  # seconds

UPDATE_CHECK_TTL = 24 * 60 * 60  # seconds


@dataclass
class WrapperConfig:
    """Paths and network settings used by the installer and update checker."""

    install_dir: Path = field(default_factory=lambda: DEFAULT_INSTALL_DIR)
    payload_dir: Path = field(default_factory=lambda: DEFAULT_PAYLOAD_DIR)
    record_name: str = "install.json"
    update_state_name: str = "update-check.json"

    update_url: str = PYPI_JSON_URL
    update_timeout: float = UPDATE_CHECK_TIMEOUT
    update_ttl: float = UPDATE_CHECK_TTL
    install_command: str = f"pip install --upgrade {PACKAGE_NAME}"

    download_timeout: float = DOWNLOAD_TIMEOUT

    @property
    def manifest_path(self) -> Path:
        return self.payload_dir / "manifest.json"

    @property
    def record_path(self) -> Path:
        return self.install_dir / self.record_name

    @property
    def update_state_path(self) -> Path:
        return self.install_dir / self.update_state_name

    def binary_path(self, key: PlatformKey) -> Path:
        """Install path of the native binary for ``key``."""
        return self.install_dir / key.binary_name


# Global config instance
_config_instance: WrapperConfig | None = None


def get_config() -> WrapperConfig:
    """Get or create the global config instance.

    Returns:
        WrapperConfig with default paths under the user's home directory
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = WrapperConfig()
    return _config_instance
