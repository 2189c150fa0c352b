"""
Tests for the server-only launcher.

The child process is a MagicMock; no node process is started.

Organization
------------
- TestResolveOptions: flag > environment > default
- TestServerOptions: child environment and access URLs
- TestLogSink: logging configured and released
- TestServerLauncher: exit paths
"""

import logging
import signal
import subprocess
from io import StringIO
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from rich.console import Console

from buildforge.core.config.build import ServeConfig
from buildforge.server.launcher import (
    ServerLauncher,
    ServerOptions,
    ShutdownRequested,
    log_sink,
    parse_port,
    resolve_options,
    shutdown_signals,
    version_lines,
)


def _console() -> Console:
    return Console(file=StringIO(), width=100)


def _compiled_server(project_root: Path) -> Path:
    entry = project_root / "dist" / "server" / "server.js"
    entry.parent.mkdir(parents=True, exist_ok=True)
    entry.write_text("module.exports={};\n")
    return entry


def _popen(process: MagicMock) -> MagicMock:
    factory = MagicMock(return_value=process)
    process.pid = 4242
    return factory


class TestParsePort:
    """Tests for parse_port."""

    @pytest.mark.parametrize(
        "value,expected",
        [(None, 4020), ("8080", 8080), (" 9000 ", 9000), ("abc", 4020), ("0", 4020), ("70000", 4020)],
    )
    def test_values(self, value, expected):
        """Test valid ports and fallbacks."""
        assert parse_port(value, 4020) == expected


class TestResolveOptions:
    """Tests for resolve_options precedence."""

    def test_defaults(self):
        """Test built-in defaults with an empty environment."""
        options = resolve_options(env={})

        assert options == ServerOptions(port=4020, host="0.0.0.0", no_auth=False, debug=False)

    def test_environment(self):
        """Test PORT, HOST, NO_AUTH and BUILDFORGE_DEBUG."""
        env = {"PORT": "5000", "HOST": "127.0.0.1", "NO_AUTH": "true", "BUILDFORGE_DEBUG": "1"}

        options = resolve_options(env=env)

        assert options == ServerOptions(port=5000, host="127.0.0.1", no_auth=True, debug=True)

    def test_flags_win(self):
        """Test flags override the environment."""
        env = {"PORT": "5000", "HOST": "127.0.0.1"}

        options = resolve_options(port="6000", host="localhost", env=env)

        assert (options.port, options.host) == (6000, "localhost")

    def test_bad_flag_port_uses_default(self):
        """Test an unparsable flag falls back to the configured default."""
        options = resolve_options(port="http", env={"PORT": "5000"}, defaults=ServeConfig(port=4100))

        assert options.port == 4100

    def test_env_flag_values(self):
        """Test only 1 and true enable NO_AUTH."""
        assert resolve_options(env={"NO_AUTH": "yes"}).no_auth is False
        assert resolve_options(env={"NO_AUTH": "TRUE"}).no_auth is True


class TestServerOptions:
    """Tests for ServerOptions."""

    def test_child_env(self):
        """Test variables handed to the server."""
        assert ServerOptions(4020, "0.0.0.0").child_env() == {"PORT": "4020", "HOST": "0.0.0.0"}
        assert ServerOptions(4020, "::1", no_auth=True).child_env()["NO_AUTH"] == "1"

    def test_access_urls(self):
        """Test local and network URLs for all interfaces."""
        assert ServerOptions(4020, "0.0.0.0").access_urls() == [
            ("Local", "http://localhost:4020"),
            ("Network", "http://your-server-ip:4020"),
        ]
        assert ServerOptions(80, "10.0.0.5").access_urls() == [("Server", "http://10.0.0.5:80")]


class TestLogSink:
    """Tests for log_sink."""

    def test_released_on_error(self, tmp_path: Path):
        """Test the log file is flushed and closed when the block raises."""
        log_file = tmp_path / "logs" / "server.log"

        with pytest.raises(RuntimeError):
            with log_sink(debug=True, log_file=log_file) as log:
                log.info("Server started", port=4020)
                raise RuntimeError("boom")

        assert "Server started | port=4020" in log_file.read_text()
        handlers = logging.getLogger("buildforge.server").handlers
        assert not any(isinstance(h, logging.FileHandler) for h in handlers)


class TestShutdownSignals:
    """Tests for shutdown_signals."""

    def test_handlers_restored(self):
        """Test previous handlers are reinstated."""
        before = signal.getsignal(signal.SIGTERM)

        with shutdown_signals():
            assert signal.getsignal(signal.SIGTERM) is not before

        assert signal.getsignal(signal.SIGTERM) is before

    def test_signal_raises(self):
        """Test a delivered signal becomes ShutdownRequested."""
        with pytest.raises(ShutdownRequested) as exc_info:
            with shutdown_signals((signal.SIGUSR1,)):
                signal.raise_signal(signal.SIGUSR1)

        assert str(exc_info.value) == "SIGUSR1"


class TestServerLauncher:
    """Tests for ServerLauncher.run."""

    def test_command(self, build_config, project_root):
        """Test node runs the compiled entry."""
        launcher = ServerLauncher(build_config, ServerOptions(4020, "0.0.0.0"), console=_console())

        assert launcher.command() == [
            "node",
            str((project_root / "dist/server/server.js").resolve()),
        ]

    def test_child_exit_status(self, build_config, project_root):
        """Test the child's status is returned and env is passed."""
        _compiled_server(project_root)
        process = MagicMock()
        process.wait.return_value = 3
        popen = _popen(process)
        options = ServerOptions(5000, "127.0.0.1", no_auth=True)

        code = ServerLauncher(build_config, options, console=_console(), popen=popen).run()

        assert code == 3
        env = popen.call_args.kwargs["env"]
        assert env["PORT"] == "5000"
        assert env["HOST"] == "127.0.0.1"
        assert env["NO_AUTH"] == "1"
        assert popen.call_args.kwargs["cwd"] == build_config.root

    def test_banner(self, build_config, project_root):
        """Test banner and auth warning."""
        _compiled_server(project_root)
        process = MagicMock()
        process.wait.return_value = 0
        console = _console()

        ServerLauncher(
            build_config, ServerOptions(4020, "0.0.0.0", no_auth=True), console=console, popen=_popen(process)
        ).run()

        output = console.file.getvalue()
        assert "Starting server" in output
        assert "Authentication is disabled" in output
        assert "http://localhost:4020" in output

    def test_graceful_shutdown(self, build_config, project_root, caplog):
        """Test SIGTERM stops the child and exits 0."""
        _compiled_server(project_root)
        process = MagicMock()
        process.wait.side_effect = [ShutdownRequested(signal.SIGTERM), 0]
        process.poll.return_value = None

        with caplog.at_level(logging.INFO):
            code = ServerLauncher(
                build_config, ServerOptions(4020, "0.0.0.0"), console=_console(), popen=_popen(process)
            ).run()

        assert code == 0
        process.terminate.assert_called_once()
        process.kill.assert_not_called()
        assert "SIGTERM received, shutting down gracefully..." in caplog.text

    def test_kill_after_grace_period(self, build_config, project_root):
        """Test a child ignoring terminate is killed."""
        _compiled_server(project_root)
        process = MagicMock()
        process.wait.side_effect = [
            ShutdownRequested(signal.SIGINT),
            subprocess.TimeoutExpired("node", 10),
            0,
        ]
        process.poll.return_value = None

        code = ServerLauncher(
            build_config, ServerOptions(4020, "0.0.0.0"), console=_console(), popen=_popen(process)
        ).run()

        assert code == 0
        process.kill.assert_called_once()

    def test_relative_log_file_under_root(self, build_config, project_root, tmp_path, monkeypatch):
        """Test serve.log_file is resolved against the project root, not the cwd."""
        _compiled_server(project_root)
        elsewhere = tmp_path / "elsewhere"
        elsewhere.mkdir()
        monkeypatch.chdir(elsewhere)
        build_config.serve.log_file = "logs/serve.log"
        process = MagicMock()
        process.wait.return_value = 0

        ServerLauncher(
            build_config, ServerOptions(4020, "0.0.0.0"), console=_console(), popen=_popen(process)
        ).run()

        assert (project_root / "logs" / "serve.log").is_file()
        assert not (elsewhere / "logs").exists()

    def test_missing_server_tree(self, build_config, caplog):
        """Test an unbuilt server is reported and exits 1."""
        popen = MagicMock()

        with caplog.at_level(logging.ERROR):
            code = ServerLauncher(
                build_config, ServerOptions(4020, "0.0.0.0"), console=_console(), popen=popen
            ).run()

        assert code == 1
        popen.assert_not_called()
        assert "Server failed" in caplog.text

    def test_unexpected_error(self, build_config, project_root):
        """Test a failing process factory exits 1."""
        _compiled_server(project_root)
        popen = MagicMock(side_effect=OSError("exec format error"))

        code = ServerLauncher(
            build_config, ServerOptions(4020, "0.0.0.0"), console=_console(), popen=popen
        ).run()

        assert code == 1


def test_version_lines():
    """Test version output."""
    lines = version_lines()

    assert lines[0] == "BuildForge Server v1.0.0"
    assert lines[1].startswith("Python ")
    with patch("buildforge.server.launcher.platform.system", return_value="Linux"):
        assert version_lines()[2].startswith("Platform: linux")
