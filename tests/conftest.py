"""Pytest configuration and fixtures for ccline tests."""

import json
import sys
from pathlib import Path

import pytest

from ccline.config import WrapperConfig
from ccline.schemas import Arch, Libc, OsFamily, PlatformKey

RELEASE_VERSION = "1.0.8"

# Stand-in for the native binary: answers --help/--version like the real one
FAKE_BINARY = """#!/bin/sh
case "$1" in
  --version)
    echo "ccline {version}"
    exit 0
    ;;
  --help)
    echo "CCometixLine - high-performance Claude Code statusline"
    echo "Usage: ccline [OPTIONS]"
    exit 0
    ;;
  --exit)
    exit "$2"
    ;;
esac
echo "args:$#:$*"
"""

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses a POSIX shell script as the binary")


@pytest.fixture
def linux_x64() -> PlatformKey:
    return PlatformKey(os=OsFamily.LINUX, arch=Arch.X64, libc=Libc.GNU)


@pytest.fixture
def linux_arm64() -> PlatformKey:
    return PlatformKey(os=OsFamily.LINUX, arch=Arch.ARM64, libc=Libc.GNU)


@pytest.fixture
def wrapper_config(tmp_path: Path) -> WrapperConfig:
    """Config with install and payload directories under tmp_path."""
    return WrapperConfig(
        install_dir=tmp_path / "home" / ".claude" / "ccline",
        payload_dir=tmp_path / "payload",
        update_ttl=3600,
    )


def fake_binary_content(version: str = RELEASE_VERSION) -> bytes:
    return FAKE_BINARY.format(version=version).encode("utf-8")


def write_payload(
    config: WrapperConfig,
    version: str = RELEASE_VERSION,
    slugs: tuple[str, ...] = ("linux-x64",),
    content: bytes | None = None,
    sha256: str | None = None,
) -> dict:
    """Write a bundled payload (manifest plus binaries) into config.payload_dir."""
    bin_dir = config.payload_dir / "bin"
    bin_dir.mkdir(parents=True, exist_ok=True)

    artifacts = {}
    for slug in slugs:
        (bin_dir / f"ccline-{slug}").write_bytes(content or fake_binary_content(version))
        artifacts[slug] = {"file": f"bin/ccline-{slug}"}
        if sha256:
            artifacts[slug]["sha256"] = sha256

    manifest = {"version": version, "artifacts": artifacts}
    config.manifest_path.write_text(json.dumps(manifest, indent=2))
    return manifest


@pytest.fixture
def payload(wrapper_config: WrapperConfig) -> dict:
    """Bundled payload with a linux-x64 binary for the current release."""
    return write_payload(wrapper_config)
