"""Pydantic schemas for platforms, release manifests and install records."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class OsFamily(str, Enum):
    """Operating system families with published binaries."""

    LINUX = "linux"
    DARWIN = "darwin"
    WINDOWS = "windows"


class Arch(str, Enum):
    """CPU architectures with published binaries."""

    X64 = "x64"
    ARM64 = "arm64"


class Libc(str, Enum):
    """C library flavour of a Linux build."""

    GNU = "gnu"
    MUSL = "musl"


# --- Platform ---


class PlatformKey(BaseModel):
    """An (OS, architecture) pair identifying one native build."""

    model_config = ConfigDict(frozen=True)

    os: OsFamily
    arch: Arch
    libc: Libc | None = None

    @property
    def slug(self) -> str:
        """Manifest key, e.g. ``linux-x64`` or ``linux-arm64-musl``."""
        slug = f"{self.os.value}-{self.arch.value}"
        if self.libc == Libc.MUSL:
            slug += "-musl"
        return slug

    @property
    def binary_name(self) -> str:
        return "ccline.exe" if self.os == OsFamily.WINDOWS else "ccline"

    def __str__(self) -> str:
        return self.slug


# --- Release manifest ---


class Artifact(BaseModel):
    """Where to obtain the native binary for one platform."""

    file: str | None = Field(
        default=None,
        description="Path of a bundled binary, relative to the payload directory",
    )
    url: str | None = Field(default=None, description="Download location")
    member: str | None = Field(
        default=None,
        description="Executable name inside a .tar.gz or .zip download",
    )
    sha256: str | None = Field(default=None, pattern=r"^[a-f0-9]{64}$")

    @model_validator(mode="after")
    def _require_source(self) -> Artifact:
        if not self.file and not self.url:
            raise ValueError("artifact needs a bundled file or a download url")
        return self


class ReleaseManifest(BaseModel):
    """Native binaries available for the packaged release, keyed by slug."""

    version: str = Field(..., pattern=r"^\d+(\.\d+)*")
    artifacts: dict[str, Artifact] = Field(default_factory=dict)

    def artifact_for(self, key: PlatformKey) -> Artifact | None:
        """Return the artifact built for ``key``, if any."""
        return self.artifacts.get(key.slug)


# --- Install state ---


class InstalledBinaryRecord(BaseModel):
    """The native binary currently placed at the install path."""

    path: str
    version: str
    platform: PlatformKey
    sha256: str = Field(..., pattern=r"^[a-f0-9]{64}$")
    size_bytes: int = Field(..., ge=0)
    executable: bool = True
    installed_at: float | None = None


class UpdateCheckState(BaseModel):
    """Result of the last remote version query."""

    checked_at: float
    latest_version: str


class UpdateNotice(BaseModel):
    """Advisory shown when a newer release is published."""

    current_version: str
    latest_version: str
    install_command: str

    @property
    def message(self) -> str:
        return (
            f"A new release of ccline is available: {self.current_version} -> "
            f"{self.latest_version}\nTo update, run: {self.install_command}"
        )
