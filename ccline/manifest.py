"""Load the release manifest bundled with the package."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from ccline.config import WrapperConfig, get_config
from ccline.errors import InstallationError, UnsupportedPlatformError
from ccline.schemas import Artifact, PlatformKey, ReleaseManifest

logger = logging.getLogger(__name__)


def load_manifest(config: WrapperConfig | None = None) -> ReleaseManifest:
    """Read and validate ``manifest.json`` from the payload directory.

    Raises:
        InstallationError: The manifest is missing or malformed
    """
    config = config or get_config()
    path = config.manifest_path

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise InstallationError(f"Release manifest not readable at {path}: {e}") from e

    try:
        manifest = ReleaseManifest.model_validate_json(raw)
    except ValidationError as e:
        raise InstallationError(f"Release manifest at {path} is invalid: {e}") from e

    logger.debug(f"Loaded manifest {manifest.version} with {len(manifest.artifacts)} artifacts")
    return manifest


def select_artifact(manifest: ReleaseManifest, key: PlatformKey) -> Artifact:
    """Return the artifact for ``key`` or fail as an unsupported platform."""
    artifact = manifest.artifact_for(key)
    if artifact is None:
        available = ", ".join(sorted(manifest.artifacts)) or "none"
        raise UnsupportedPlatformError(
            f"ccline {manifest.version} ships no binary for {key.slug} (available: {available})"
        )
    return artifact


def bundled_path(artifact: Artifact, config: WrapperConfig | None = None) -> Path | None:
    """Path of the bundled binary for ``artifact`` if it was shipped in the wheel."""
    if not artifact.file:
        return None
    config = config or get_config()
    candidate = config.payload_dir / artifact.file
    if candidate.is_file():
        return candidate
    return None
