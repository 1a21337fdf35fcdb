"""Wrapper-level errors and their reserved exit codes."""

from __future__ import annotations

# Reserved range, kept away from the codes the native binary returns itself
EXIT_UNSUPPORTED_PLATFORM = 250
EXIT_INSTALLATION_FAILED = 251
EXIT_DISPATCH_FAILED = 252
EXIT_INTERNAL_ERROR = 253


class WrapperError(Exception):
    """Base class for failures the wrapper reports to the user."""

    exit_code = EXIT_INTERNAL_ERROR


class UnsupportedPlatformError(WrapperError):
    """Raised when no native binary exists for the host OS/architecture."""

    exit_code = EXIT_UNSUPPORTED_PLATFORM


class InstallationError(WrapperError):
    """Raised when the native binary cannot be placed at the install path."""

    exit_code = EXIT_INSTALLATION_FAILED


class DispatchError(WrapperError):
    """Raised when the installed binary cannot be executed."""

    exit_code = EXIT_DISPATCH_FAILED
