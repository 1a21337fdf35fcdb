"""Run the installed native binary with pass-through streams and exit code."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
from typing import Callable, Protocol, Sequence

from ccline.errors import DispatchError
from ccline.schemas import InstalledBinaryRecord

logger = logging.getLogger(__name__)

# Grace period for the child to exit after an interrupt is forwarded
INTERRUPT_GRACE = 5.0  # seconds


class Executable(Protocol):
    """Anything that can run with arguments and report an exit code."""

    def run(self, args: Sequence[str]) -> int: ...


def _exit_code(returncode: int) -> int:
    """Map a Popen return code to a shell-style exit code."""
    if returncode < 0:
        # Killed by signal N
        return 128 + (-returncode)
    return returncode


def _terminal_delivered_interrupt() -> bool:
    """Whether Ctrl+C came from a terminal whose foreground group includes the child.

    The child shares the wrapper's process group, so when that group is in
    the terminal's foreground it has already received the SIGINT.
    """
    try:
        return os.tcgetpgrp(sys.stdin.fileno()) == os.getpgrp()
    except (AttributeError, OSError, ValueError):
        # No stdin, not a terminal, or no job control on this platform
        return False


class NativeExecutable:
    """Spawns a binary on disk, inheriting stdin, stdout and stderr."""

    def __init__(self, path: str | os.PathLike[str]):
        self.path = os.fspath(path)

    def run(self, args: Sequence[str]) -> int:
        command = [self.path, *args]
        logger.debug(f"Executing {command}")

        try:
            process = subprocess.Popen(command)
        except OSError as e:
            raise DispatchError(
                f"Cannot execute {self.path}: {e.strerror or e}. "
                "Run ccline again to reinstall it."
            ) from e

        try:
            return _exit_code(process.wait())
        except KeyboardInterrupt:
            return _exit_code(self._forward_interrupt(process))

    def _forward_interrupt(self, process: subprocess.Popen) -> int:
        """Deliver the interrupt to the child and wait for it to exit."""
        # Windows consoles and a POSIX terminal's Ctrl+C already reach the child
        if os.name != "nt" and not _terminal_delivered_interrupt():
            try:
                process.send_signal(signal.SIGINT)
            except ProcessLookupError:
                pass

        try:
            return process.wait(timeout=INTERRUPT_GRACE)
        except subprocess.TimeoutExpired:
            logger.warning(f"{self.path} ignored the interrupt, killing it")
            process.kill()
            return process.wait()
        except KeyboardInterrupt:
            process.kill()
            return process.wait()


def dispatch(
    record: InstalledBinaryRecord,
    args: Sequence[str],
    executable_factory: Callable[[str], Executable] = NativeExecutable,
) -> int:
    """Run the installed binary with ``args`` unchanged.

    Args:
        record: Install record naming the binary
        args: Arguments forwarded verbatim
        executable_factory: Builds the Executable for ``record.path``

    Returns:
        The binary's exit code

    Raises:
        DispatchError: The binary could not be started
    """
    executable = executable_factory(record.path)
    return executable.run(list(args))
