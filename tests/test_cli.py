"""Tests for the CLI module."""

import pytest
from unittest.mock import patch
from click.testing import CliRunner

from ccline import __version__
from ccline.cli import main, run, setup
from ccline.errors import (
    EXIT_DISPATCH_FAILED,
    EXIT_INSTALLATION_FAILED,
    EXIT_INTERNAL_ERROR,
    EXIT_UNSUPPORTED_PLATFORM,
    DispatchError,
    UnsupportedPlatformError,
)
from ccline.installer import ensure_installed, read_record
from ccline.schemas import UpdateNotice

from conftest import posix_only, write_payload


@pytest.fixture
def host(linux_x64):
    """Pretend the host is linux/x64."""
    with patch("ccline.platforms.current_platform", return_value=linux_x64):
        yield linux_x64


@pytest.fixture
def no_update():
    """Update check that finds nothing."""
    with patch("ccline.updates.check_for_update", return_value=None) as mock_check:
        yield mock_check


@posix_only
class TestRun:
    """End-to-end invocation of the forwarder."""

    def test_fresh_install_help(self, wrapper_config, payload, host, no_update, capfd):
        """Fresh install on linux/x64 runs --help and exits 0."""
        assert not (wrapper_config.install_dir / "ccline").exists()

        code = run(["--help"], config=wrapper_config)
        captured = capfd.readouterr()

        assert code == 0
        assert "CCometixLine" in captured.out
        assert (wrapper_config.install_dir / "ccline").exists()
        assert read_record(wrapper_config).platform == host

    def test_version_passthrough(self, wrapper_config, payload, host, no_update, capfd):
        """--version is answered by the binary, not the wrapper."""
        code = run(["--version"], config=wrapper_config)

        assert code == 0
        assert capfd.readouterr().out == "ccline 1.0.8\n"

    def test_exit_code_passthrough(self, wrapper_config, payload, host, no_update):
        """Binary's exit code becomes the wrapper's."""
        assert run(["--exit", "3"], config=wrapper_config) == 3

    def test_arguments_verbatim(self, wrapper_config, payload, host, no_update, capfd):
        """Separator and wrapper-looking flags are forwarded untouched."""
        run(["--", "--verbose"], config=wrapper_config)
        assert capfd.readouterr().out == "args:2:-- --verbose\n"

    def test_foreign_platform_reinstalled(self, wrapper_config, host, linux_arm64, no_update, capfd):
        """Binary left by another platform is replaced before dispatch."""
        write_payload(wrapper_config, slugs=("linux-arm64",), content=b"#!/bin/sh\necho wrong build\n")
        ensure_installed(linux_arm64, config=wrapper_config)
        write_payload(wrapper_config, slugs=("linux-x64", "linux-arm64"))

        code = run(["--version"], config=wrapper_config)

        assert code == 0
        assert capfd.readouterr().out == "ccline 1.0.8\n"
        assert read_record(wrapper_config).platform == host

    def test_update_notice_on_stderr(self, wrapper_config, payload, host, capfd):
        """Available update is reported on stderr, stdout untouched."""
        notice = UpdateNotice(
            current_version="1.0.8",
            latest_version="1.1.0",
            install_command="pip install --upgrade ccline",
        )
        with patch("ccline.updates.check_for_update", return_value=notice):
            code = run(["--version"], config=wrapper_config)
        captured = capfd.readouterr()

        assert code == 0
        assert captured.out == "ccline 1.0.8\n"
        assert "1.1.0" in captured.err
        assert "pip install --upgrade ccline" in captured.err

    def test_failing_update_check_ignored(self, wrapper_config, payload, host, capfd):
        """Update check failures never change the outcome."""
        with patch("ccline.updates.fetch_latest_version", side_effect=OSError("network down")):
            code = run(["--exit", "5"], config=wrapper_config)

        assert code == 5
        assert capfd.readouterr().err == ""

    def test_interrupt_while_waiting_for_update_check(self, wrapper_config, payload, host, no_update, capfd):
        """Ctrl+C after the binary exits keeps its exit code and prints nothing."""
        with patch("ccline.updates.UpdateCheck.result", side_effect=KeyboardInterrupt):
            code = run(["--exit", "4"], config=wrapper_config)

        assert code == 4
        assert capfd.readouterr().err == ""


class TestRunFailures:
    """Wrapper failures map to reserved exit codes."""

    def test_unsupported_platform(self, wrapper_config, capfd):
        """Unsupported host exits with the unsupported-platform code."""
        with patch(
            "ccline.platforms.current_platform",
            side_effect=UnsupportedPlatformError("Unsupported platform: FreeBSD/amd64"),
        ):
            code = run([], config=wrapper_config)

        assert code == EXIT_UNSUPPORTED_PLATFORM
        assert "FreeBSD/amd64" in capfd.readouterr().err

    def test_platform_missing_from_manifest(self, wrapper_config, host, capfd):
        """Manifest without the host's artifact is an unsupported platform."""
        write_payload(wrapper_config, slugs=("darwin-arm64",))

        assert run([], config=wrapper_config) == EXIT_UNSUPPORTED_PLATFORM

    def test_installation_failure(self, wrapper_config, payload, host, capfd):
        """Filesystem failure exits with the installation code."""
        wrapper_config.install_dir.parent.mkdir(parents=True)
        wrapper_config.install_dir.write_text("not a directory")

        code = run([], config=wrapper_config)

        assert code == EXIT_INSTALLATION_FAILED
        assert "ccline:" in capfd.readouterr().err

    def test_dispatch_failure(self, wrapper_config, payload, host, no_update, capfd):
        """Unrunnable binary exits with the dispatch code."""
        with patch("ccline.dispatcher.dispatch", side_effect=DispatchError("Cannot execute ccline")):
            code = run([], config=wrapper_config)

        assert code == EXIT_DISPATCH_FAILED
        assert "Cannot execute" in capfd.readouterr().err

    def test_unexpected_error(self, wrapper_config, payload, host, capfd):
        """Unexpected exceptions are reported, not raised."""
        with patch("ccline.installer.ensure_installed", side_effect=RuntimeError("boom")):
            code = run([], config=wrapper_config)

        assert code == EXIT_INTERNAL_ERROR
        assert "internal error: boom" in capfd.readouterr().err

    def test_interrupt_before_dispatch(self, wrapper_config, payload, host):
        """Ctrl+C during install exits 130."""
        with patch("ccline.installer.ensure_installed", side_effect=KeyboardInterrupt):
            assert run([], config=wrapper_config) == 130

    def test_reserved_codes_distinct(self):
        """Wrapper codes do not overlap each other."""
        codes = {EXIT_UNSUPPORTED_PLATFORM, EXIT_INSTALLATION_FAILED, EXIT_DISPATCH_FAILED, EXIT_INTERNAL_ERROR}
        assert len(codes) == 4
        assert all(code > 128 + 64 for code in codes)


class TestMain:
    """Console script entry point."""

    def test_forwards_argv(self):
        """sys.argv[1:] is passed on and the result becomes the exit status."""
        with patch("ccline.cli.sys.argv", ["ccline", "--help", "-x"]), \
             patch("ccline.cli.run", return_value=17) as mock_run:
            with pytest.raises(SystemExit) as exc_info:
                main()

        mock_run.assert_called_once_with(["--help", "-x"])
        assert exc_info.value.code == 17


class TestSetupCLI:
    """ccline-setup maintenance commands."""

    @pytest.fixture
    def runner(self):
        """Create CLI test runner."""
        return CliRunner()

    @pytest.fixture
    def config(self, wrapper_config):
        with patch("ccline.cli.get_config", return_value=wrapper_config):
            yield wrapper_config

    def test_help(self, runner):
        """Group shows help."""
        result = runner.invoke(setup, ["--help"])
        assert result.exit_code == 0
        assert "Claude Code" in result.output

    def test_version(self, runner):
        """Version flag works."""
        result = runner.invoke(setup, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_install(self, runner, config, payload, host):
        """install places the binary."""
        result = runner.invoke(setup, ["install"])

        assert result.exit_code == 0
        assert "installed at" in result.output
        assert (config.install_dir / "ccline").exists()

    def test_install_force(self, runner, config, payload, host):
        """install --force reinstalls."""
        runner.invoke(setup, ["install"])

        with patch("ccline.installer.ensure_installed", wraps=ensure_installed) as mock_install:
            result = runner.invoke(setup, ["install", "--force"])

        assert result.exit_code == 0
        assert mock_install.call_args[1]["force"] is True

    def test_install_unsupported(self, runner, config):
        """Unsupported platform exits with its reserved code."""
        with patch(
            "ccline.platforms.current_platform",
            side_effect=UnsupportedPlatformError("Unsupported platform: Plan9/mips"),
        ):
            result = runner.invoke(setup, ["install"])

        assert result.exit_code == EXIT_UNSUPPORTED_PLATFORM
        assert "Plan9/mips" in result.output

    def test_status_not_installed(self, runner, config, payload, host):
        """status reports a missing install."""
        result = runner.invoke(setup, ["status"])

        assert result.exit_code == 0
        assert "linux-x64" in result.output
        assert "Installed:        no" in result.output

    def test_status_installed(self, runner, config, payload, host):
        """status reports the installed release."""
        ensure_installed(host, config=config)

        result = runner.invoke(setup, ["status"])

        assert result.exit_code == 0
        assert "Installed:        1.0.8 (linux-x64)" in result.output
        assert "out of date" not in result.output

    def test_status_out_of_date(self, runner, config, host):
        """status flags an install older than the packaged release."""
        write_payload(config, version="1.0.7")
        ensure_installed(host, config=config)
        write_payload(config, version="1.0.8")

        result = runner.invoke(setup, ["status"])

        assert "out of date" in result.output

    def test_check_update_available(self, runner, config):
        """check-update prints the notice."""
        notice = UpdateNotice(
            current_version=__version__,
            latest_version="9.0.0",
            install_command="pip install --upgrade ccline",
        )
        with patch("ccline.updates.check_for_update", return_value=notice):
            result = runner.invoke(setup, ["check-update"])

        assert result.exit_code == 0
        assert "9.0.0" in result.output

    def test_check_update_refresh(self, runner, config):
        """--refresh bypasses the cached result."""
        with patch("ccline.updates.check_for_update", return_value=None) as mock_check:
            result = runner.invoke(setup, ["check-update", "--refresh"])

        assert result.exit_code == 0
        assert "up to date" in result.output
        assert mock_check.call_args[0][1].update_ttl == 0

    def test_uninstall(self, runner, config, payload, host):
        """uninstall --yes removes the binary."""
        ensure_installed(host, config=config)

        result = runner.invoke(setup, ["uninstall", "--yes"])

        assert result.exit_code == 0
        assert "Removed" in result.output
        assert not (config.install_dir / "ccline").exists()

    def test_uninstall_nothing(self, runner, config):
        """uninstall with nothing installed."""
        result = runner.invoke(setup, ["uninstall", "--yes"])

        assert result.exit_code == 0
        assert "Nothing to remove" in result.output
