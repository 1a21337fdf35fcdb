"""Locate, fetch and atomically install the native ccline binary."""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import tarfile
import tempfile
import time
import zipfile
import zlib
from pathlib import Path

import httpx
from pydantic import ValidationError

from ccline.config import WrapperConfig, get_config
from ccline.errors import InstallationError
from ccline.manifest import bundled_path, load_manifest, select_artifact
from ccline.schemas import Artifact, InstalledBinaryRecord, PlatformKey, ReleaseManifest

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".ccline-"
TEMP_SUFFIX = ".tmp"

# Temp files older than this belong to a process that died mid-install
STALE_TEMP_AGE = 10 * 60  # seconds

EXECUTABLE_MODE = 0o755
CHUNK_SIZE = 64 * 1024


def _sha256_file(path: Path) -> str:
    """Compute SHA-256 hex digest of a file."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def read_record(config: WrapperConfig | None = None) -> InstalledBinaryRecord | None:
    """Load the install record, returning None unless it describes a usable binary.

    A record is only trusted when the binary it names still exists with the
    recorded size and digest and is executable.
    """
    config = config or get_config()
    record_path = config.record_path

    try:
        raw = record_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning(f"Cannot read install record {record_path}: {e}")
        return None

    try:
        record = InstalledBinaryRecord.model_validate_json(raw)
    except ValidationError:
        logger.info(f"Ignoring malformed install record at {record_path}")
        return None

    binary = Path(record.path)
    try:
        size = binary.stat().st_size
    except OSError:
        logger.debug(f"Recorded binary {binary} is missing")
        return None

    if size != record.size_bytes:
        logger.info(f"Recorded binary {binary} changed size, treating as stale")
        return None

    if os.name != "nt" and not os.access(binary, os.X_OK):
        logger.info(f"Recorded binary {binary} is not executable")
        return None

    try:
        digest = _sha256_file(binary)
    except OSError as e:
        logger.warning(f"Cannot hash {binary}: {e}")
        return None

    if digest != record.sha256:
        logger.info(f"Recorded binary {binary} does not match its digest, treating as stale")
        return None

    return record


def _is_current(
    record: InstalledBinaryRecord,
    key: PlatformKey,
    version: str,
    config: WrapperConfig,
) -> bool:
    """Check whether a valid record matches the wanted release and platform."""
    if record.platform != key:
        logger.info(f"Installed binary is for {record.platform.slug}, host is {key.slug}")
        return False
    if record.version != version:
        logger.info(f"Installed binary is {record.version}, packaged release is {version}")
        return False
    if Path(record.path) != config.binary_path(key):
        return False
    return True


def _remove_stale_temps(install_dir: Path) -> None:
    """Delete staging files left behind by interrupted installs."""
    cutoff = time.time() - STALE_TEMP_AGE
    for leftover in install_dir.glob(f"{TEMP_PREFIX}*{TEMP_SUFFIX}"):
        try:
            if leftover.stat().st_mtime < cutoff:
                leftover.unlink()
                logger.debug(f"Removed stale staging file {leftover}")
        except OSError:
            # Another process may have renamed or removed it already
            continue


def _new_temp(install_dir: Path) -> Path:
    """Create an empty staging file in the install directory."""
    fd, name = tempfile.mkstemp(prefix=TEMP_PREFIX, suffix=TEMP_SUFFIX, dir=install_dir)
    os.close(fd)
    return Path(name)


def _replace_atomic(staged: Path, dest: Path) -> None:
    """Move a fully written staging file over ``dest`` in one rename."""
    os.replace(staged, dest)


def _download(url: str, dest: Path, timeout: float) -> None:
    """Stream ``url`` into ``dest``."""
    logger.info(f"Downloading {url}")
    with httpx.Client(timeout=timeout, follow_redirects=True) as client:
        with client.stream("GET", url) as response:
            response.raise_for_status()
            with open(dest, "wb") as f:
                for chunk in response.iter_bytes(CHUNK_SIZE):
                    f.write(chunk)


def _extract_member(archive: Path, url: str, member: str) -> bytes:
    """Read the executable named ``member`` out of a .tar.gz or .zip archive.

    Raises:
        InstallationError: The archive is truncated, corrupt or lacks ``member``
    """
    lowered = url.lower()

    try:
        if lowered.endswith((".tar.gz", ".tgz")):
            with tarfile.open(archive, "r:gz") as tar:
                for info in tar.getmembers():
                    if info.isfile() and Path(info.name).name == member:
                        extracted = tar.extractfile(info)
                        if extracted is not None:
                            return extracted.read()
        elif lowered.endswith(".zip"):
            with zipfile.ZipFile(archive) as zf:
                for name in zf.namelist():
                    if not name.endswith("/") and Path(name).name == member:
                        return zf.read(name)
        else:
            return archive.read_bytes()
    except (tarfile.TarError, zipfile.BadZipFile, EOFError, zlib.error) as e:
        # gzip reports truncation as EOFError and bad deflate data as zlib.error
        raise InstallationError(f"Downloaded archive {url} is corrupt: {e}") from e

    raise InstallationError(f"Archive {url} does not contain {member}")


def _stage_artifact(
    artifact: Artifact,
    key: PlatformKey,
    staged: Path,
    config: WrapperConfig,
) -> None:
    """Write the binary for ``artifact`` into ``staged``."""
    source = bundled_path(artifact, config)
    if source is not None:
        logger.debug(f"Using bundled binary {source}")
        shutil.copyfile(source, staged)
        return

    if not artifact.url:
        raise InstallationError(
            f"Bundled binary {artifact.file} for {key.slug} is missing from the package"
        )

    archive = _new_temp(staged.parent)
    try:
        _download(artifact.url, archive, config.download_timeout)
        data = _extract_member(archive, artifact.url, artifact.member or key.binary_name)
    finally:
        archive.unlink(missing_ok=True)

    with open(staged, "wb") as f:
        f.write(data)


def _write_record(record: InstalledBinaryRecord, config: WrapperConfig) -> None:
    """Atomically persist the install record."""
    staged = _new_temp(config.install_dir)
    try:
        staged.write_text(record.model_dump_json(indent=2) + "\n", encoding="utf-8")
        _replace_atomic(staged, config.record_path)
    finally:
        staged.unlink(missing_ok=True)


def ensure_installed(
    key: PlatformKey,
    manifest: ReleaseManifest | None = None,
    config: WrapperConfig | None = None,
    force: bool = False,
) -> InstalledBinaryRecord:
    """Make sure the packaged release for ``key`` is installed at the fixed path.

    Repeat calls are no-ops once a valid record for the same release and
    platform exists. Otherwise the binary is staged next to its destination,
    made executable and renamed into place, so no reader ever sees a
    partially written file.

    Args:
        key: Resolved host platform
        manifest: Release manifest (defaults to the bundled one)
        config: Wrapper configuration
        force: Reinstall even if a valid record exists

    Returns:
        InstalledBinaryRecord for the binary now in place

    Raises:
        UnsupportedPlatformError: The manifest has no binary for ``key``
        InstallationError: The binary could not be fetched or written
    """
    config = config or get_config()
    manifest = manifest or load_manifest(config)

    if not force:
        existing = read_record(config)
        if existing is not None and _is_current(existing, key, manifest.version, config):
            logger.debug(f"ccline {existing.version} already installed at {existing.path}")
            return existing

    artifact = select_artifact(manifest, key)
    dest = config.binary_path(key)

    logger.info(f"Installing ccline {manifest.version} ({key.slug}) to {dest}")

    try:
        config.install_dir.mkdir(parents=True, exist_ok=True)
        _remove_stale_temps(config.install_dir)

        staged = _new_temp(config.install_dir)
        try:
            _stage_artifact(artifact, key, staged, config)

            digest = _sha256_file(staged)
            if artifact.sha256 and digest != artifact.sha256:
                raise InstallationError(
                    f"Checksum mismatch for {key.slug}: expected {artifact.sha256}, got {digest}"
                )

            size = staged.stat().st_size
            os.chmod(staged, EXECUTABLE_MODE)
            _replace_atomic(staged, dest)
        finally:
            staged.unlink(missing_ok=True)

        record = InstalledBinaryRecord(
            path=str(dest),
            version=manifest.version,
            platform=key,
            sha256=digest,
            size_bytes=size,
            executable=True,
            installed_at=time.time(),
        )
        _write_record(record, config)

    except InstallationError:
        raise
    except (OSError, httpx.HTTPError) as e:
        raise InstallationError(f"Failed to install ccline to {dest}: {e}") from e

    logger.info(f"Installed ccline {record.version} at {record.path}")
    return record


def uninstall(config: WrapperConfig | None = None) -> bool:
    """Remove the installed binary and its record.

    Returns:
        True if anything was removed
    """
    config = config or get_config()
    removed = False

    targets = [config.record_path]
    record = read_record(config)
    if record is not None:
        targets.insert(0, Path(record.path))
    else:
        targets[:0] = [config.install_dir / "ccline", config.install_dir / "ccline.exe"]

    for target in targets:
        try:
            target.unlink()
            removed = True
            logger.info(f"Removed {target}")
        except FileNotFoundError:
            continue
        except OSError as e:
            raise InstallationError(f"Failed to remove {target}: {e}") from e

    return removed
