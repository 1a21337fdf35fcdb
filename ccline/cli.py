"""CLI entry points: the ``ccline`` forwarder and ``ccline-setup`` maintenance commands."""

from __future__ import annotations

import logging
import sys
from typing import Sequence

import click

from ccline import __version__
from ccline.config import WrapperConfig, get_config
from ccline.errors import EXIT_INTERNAL_ERROR, WrapperError

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130


def _configure_logging(verbose: bool = False) -> None:
    # stdout belongs to the native binary; everything we log goes to stderr
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def run(args: Sequence[str], config: WrapperConfig | None = None) -> int:
    """Resolve, install, check for updates and dispatch.

    Args:
        args: Arguments forwarded verbatim to the native binary
        config: Wrapper configuration

    Returns:
        The native binary's exit code, or a reserved wrapper exit code
    """
    from ccline.dispatcher import dispatch
    from ccline.installer import ensure_installed
    from ccline.platforms import current_platform
    from ccline.updates import UpdateCheck

    config = config or get_config()

    try:
        key = current_platform()
        record = ensure_installed(key, config=config)
        update_check = UpdateCheck(record.version, config).start()
        exit_code = dispatch(record, args)
    except WrapperError as e:
        click.echo(f"ccline: {e}", err=True)
        return e.exit_code
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.debug("Unexpected wrapper failure", exc_info=True)
        click.echo(f"ccline: internal error: {e}", err=True)
        return EXIT_INTERNAL_ERROR

    try:
        notice = update_check.result()
    except KeyboardInterrupt:
        # The child already finished; its exit code stands
        notice = None

    if notice is not None:
        click.echo(notice.message, err=True)

    return exit_code


def main() -> None:
    """Entry point for ``ccline``: every argument goes to the native binary."""
    _configure_logging()
    sys.exit(run(sys.argv[1:]))


def _fail(error: WrapperError) -> None:
    click.echo(f"Error: {error}", err=True)
    sys.exit(error.exit_code)


@click.group()
@click.version_option(version=__version__, prog_name="ccline-setup")
@click.option("--verbose", "-v", is_flag=True, help="Log diagnostics to stderr")
def setup(verbose: bool) -> None:
    """Manage the native ccline binary used by Claude Code.

    The binary lives at ~/.claude/ccline/ so Claude Code can run it
    directly. The `ccline` command installs it on first use; these
    commands let you inspect, reinstall or remove it.
    """
    _configure_logging(verbose)


@setup.command()
@click.option(
    "--force", "-f",
    is_flag=True,
    help="Reinstall even if the current release is already installed",
)
def install(force: bool) -> None:
    """Install the native binary for this platform.

    \b
    Example:
        ccline-setup install
        ccline-setup install --force
    """
    from ccline.installer import ensure_installed
    from ccline.platforms import current_platform

    try:
        record = ensure_installed(current_platform(), config=get_config(), force=force)
    except WrapperError as e:
        _fail(e)
        return

    click.echo(f"ccline {record.version} ({record.platform.slug}) installed at {record.path}")


@setup.command()
def status() -> None:
    """Show the platform, packaged release and installed binary."""
    from ccline.installer import read_record
    from ccline.manifest import load_manifest
    from ccline.platforms import current_platform

    config = get_config()

    try:
        key = current_platform()
        manifest = load_manifest(config)
    except WrapperError as e:
        _fail(e)
        return

    click.echo(f"Platform:         {key.slug}")
    click.echo(f"Packaged release: {manifest.version}")
    click.echo(f"Install path:     {config.binary_path(key)}")

    record = read_record(config)
    if record is None:
        click.echo("Installed:        no (run 'ccline-setup install')")
        return

    click.echo(f"Installed:        {record.version} ({record.platform.slug})")
    if record.platform != key or record.version != manifest.version:
        click.echo("                  out of date, will be replaced on next run")


@setup.command("check-update")
@click.option("--refresh", is_flag=True, help="Ignore the cached result and query PyPI now")
def check_update(refresh: bool) -> None:
    """Check PyPI for a newer ccline release."""
    from dataclasses import replace

    from ccline.updates import check_for_update

    config = get_config()
    if refresh:
        config = replace(config, update_ttl=0)

    notice = check_for_update(__version__, config)
    if notice is None:
        click.echo(f"ccline {__version__} is up to date (or PyPI could not be reached)")
    else:
        click.echo(notice.message)


@setup.command()
@click.confirmation_option(prompt="Remove the native ccline binary from ~/.claude/ccline?")
def uninstall() -> None:
    """Remove the installed native binary.

    Claude Code stops rendering the status line until `ccline` runs again.
    """
    from ccline.installer import uninstall as remove_install

    try:
        removed = remove_install(get_config())
    except WrapperError as e:
        _fail(e)
        return

    if removed:
        click.echo("Removed the native ccline binary")
    else:
        click.echo("Nothing to remove")


if __name__ == "__main__":
    main()
