"""Resolve the host OS and CPU architecture to a supported PlatformKey."""

from __future__ import annotations

import functools
import logging
import platform

from ccline.errors import UnsupportedPlatformError
from ccline.schemas import Arch, Libc, OsFamily, PlatformKey

logger = logging.getLogger(__name__)

OS_ALIASES = {
    "linux": OsFamily.LINUX,
    "darwin": OsFamily.DARWIN,
    "windows": OsFamily.WINDOWS,
}

ARCH_ALIASES = {
    "x86_64": Arch.X64,
    "amd64": Arch.X64,
    "x64": Arch.X64,
    "aarch64": Arch.ARM64,
    "arm64": Arch.ARM64,
}

SUPPORTED = {
    (OsFamily.LINUX, Arch.X64),
    (OsFamily.LINUX, Arch.ARM64),
    (OsFamily.DARWIN, Arch.X64),
    (OsFamily.DARWIN, Arch.ARM64),
    (OsFamily.WINDOWS, Arch.X64),
}


def _detect_libc() -> str:
    """Return the libc name reported by the interpreter ('' when unknown)."""
    name, _version = platform.libc_ver()
    return name


def resolve(
    system: str | None = None,
    machine: str | None = None,
    libc: str | None = None,
) -> PlatformKey:
    """Map an OS/architecture pair to a PlatformKey.

    Args:
        system: OS name as reported by ``platform.system()`` (defaults to host)
        machine: CPU name as reported by ``platform.machine()`` (defaults to host)
        libc: libc name as reported by ``platform.libc_ver()``; Linux only

    Returns:
        PlatformKey for the combination

    Raises:
        UnsupportedPlatformError: No native build exists for the combination
    """
    system = system if system is not None else platform.system()
    machine = machine if machine is not None else platform.machine()

    os_family = OS_ALIASES.get(system.strip().lower())
    arch = ARCH_ALIASES.get(machine.strip().lower())

    if os_family is None or arch is None or (os_family, arch) not in SUPPORTED:
        raise UnsupportedPlatformError(
            f"Unsupported platform: {system or 'unknown'}/{machine or 'unknown'}. "
            "No prebuilt ccline binary is published for it; build CCometixLine from source."
        )

    libc_kind = None
    if os_family == OsFamily.LINUX:
        if libc is None:
            libc = _detect_libc()
        # glibc is reported explicitly; musl hosts report nothing
        libc_kind = Libc.GNU if libc == "glibc" else Libc.MUSL

    key = PlatformKey(os=os_family, arch=arch, libc=libc_kind)
    logger.debug(f"Resolved platform {system}/{machine} -> {key.slug}")
    return key


@functools.lru_cache(maxsize=1)
def current_platform() -> PlatformKey:
    """Resolve the host platform once per process."""
    return resolve()
