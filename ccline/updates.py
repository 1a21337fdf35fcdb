"""Advisory check for newer ccline releases on PyPI."""

from __future__ import annotations

import contextlib
import logging
import os
import re
import threading
import time

import httpx
from pydantic import ValidationError

from ccline.config import WrapperConfig, get_config
from ccline.schemas import UpdateCheckState, UpdateNotice

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"^v?(\d+(?:\.\d+)*)([^+]*)(?:\+.*)?$")
_POST_RE = re.compile(r"^[-_.]?(?:post|rev|r)[-_.]?\d*$", re.IGNORECASE)

# Ordering of what follows the release numbers
_PRE_RELEASE, _FINAL, _POST_RELEASE = 0, 1, 2


def parse_version(version: str) -> tuple[tuple[int, ...], int] | None:
    """Parse a version into (release numbers, suffix rank).

    Pre-releases (``rc1``, ``b2``, ``.dev0``) sort below the release and
    post-releases (``.post1``) above it. A ``+local`` label is ignored.
    Returns None for strings without a numeric release.
    """
    match = _VERSION_RE.match(version.strip())
    if not match:
        return None
    release = [int(part) for part in match.group(1).split(".")]
    while len(release) > 1 and release[-1] == 0:
        release.pop()

    suffix = match.group(2).strip()
    if not suffix:
        rank = _FINAL
    elif _POST_RE.match(suffix):
        rank = _POST_RELEASE
    else:
        rank = _PRE_RELEASE
    return tuple(release), rank


def is_newer(latest: str, current: str) -> bool:
    """Return True if ``latest`` is a strictly newer version than ``current``."""
    latest_parsed = parse_version(latest)
    current_parsed = parse_version(current)
    if latest_parsed is None or current_parsed is None:
        return False
    return latest_parsed > current_parsed


def _read_state(config: WrapperConfig) -> UpdateCheckState | None:
    try:
        raw = config.update_state_path.read_text(encoding="utf-8")
        return UpdateCheckState.model_validate_json(raw)
    except (OSError, ValidationError):
        return None


def _write_state(config: WrapperConfig, state: UpdateCheckState) -> None:
    path = config.update_state_path
    staged = path.with_name(f".{path.name}.{os.getpid()}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        staged.write_text(state.model_dump_json() + "\n", encoding="utf-8")
        os.replace(staged, path)
    except OSError as e:
        logger.debug(f"Could not save update check state: {e}")
        with contextlib.suppress(OSError):
            staged.unlink(missing_ok=True)


def fetch_latest_version(config: WrapperConfig | None = None) -> str:
    """Query PyPI for the latest published version.

    Raises:
        httpx.HTTPError: Network failure, timeout or error status
        ValueError: Response did not carry a version
    """
    config = config or get_config()
    with httpx.Client(timeout=config.update_timeout) as client:
        response = client.get(config.update_url, headers={"Accept": "application/json"})
        response.raise_for_status()
        version = response.json().get("info", {}).get("version")

    if not isinstance(version, str) or not version:
        raise ValueError("PyPI response has no info.version")
    return version


def _latest_version(config: WrapperConfig) -> str:
    """Latest version, served from the state file while it is fresh."""
    state = _read_state(config)
    now = time.time()
    if state is not None and 0 <= now - state.checked_at < config.update_ttl:
        logger.debug(f"Using cached latest version {state.latest_version}")
        return state.latest_version

    latest = fetch_latest_version(config)
    _write_state(config, UpdateCheckState(checked_at=now, latest_version=latest))
    return latest


def check_for_update(
    current_version: str,
    config: WrapperConfig | None = None,
) -> UpdateNotice | None:
    """Compare ``current_version`` with the latest published release.

    Never raises: any failure (network, timeout, bad payload) means no notice.

    Args:
        current_version: Version of the installed release
        config: Wrapper configuration

    Returns:
        UpdateNotice if a newer release exists, otherwise None
    """
    config = config or get_config()
    try:
        latest = _latest_version(config)
    except Exception as e:
        logger.debug(f"Update check skipped: {e}")
        return None

    if not is_newer(latest, current_version):
        return None

    return UpdateNotice(
        current_version=current_version,
        latest_version=latest,
        install_command=config.install_command,
    )


class UpdateCheck:
    """Runs check_for_update on a daemon thread so dispatch never waits on it."""

    def __init__(self, current_version: str, config: WrapperConfig | None = None):
        self.current_version = current_version
        self.config = config or get_config()
        self._notice: UpdateNotice | None = None
        self._thread = threading.Thread(
            target=self._run,
            name="ccline-update-check",
            daemon=True,
        )

    def _run(self) -> None:
        self._notice = check_for_update(self.current_version, self.config)

    def start(self) -> UpdateCheck:
        self._thread.start()
        return self

    def result(self, timeout: float | None = None) -> UpdateNotice | None:
        """Wait at most ``timeout`` seconds; an unfinished check is abandoned."""
        if timeout is None:
            timeout = self.config.update_timeout
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.debug("Update check still running, abandoning it")
            return None
        return self._notice
