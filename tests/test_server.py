"""Tests for server.py and async_server.py."""

import os
from unittest.mock import MagicMock, patch

import pytest

from chuk_mcp_gridfloat import async_server, server
from chuk_mcp_gridfloat.constants import DEFAULT_MEMORY_THRESHOLD_BYTES, EnvVar


@pytest.fixture
def mock_server(tmp_path):
    """server module with mcp.run and the manager's data directory stubbed."""
    mock_mcp = MagicMock(name="mcp")
    mock_manager = MagicMock(name="manager")
    mock_manager.data_dir = str(tmp_path / "tiles")

    with patch.object(server, "mcp", mock_mcp), patch.object(server, "manager", mock_manager):
        yield mock_mcp, mock_manager


# =====================================================================
# Environment configuration
# =====================================================================


class TestEnvHelpers:
    @pytest.mark.parametrize("value", ["1", "true", "YES", " on "])
    def test_flag_true(self, value):
        with patch.dict(os.environ, {"X_FLAG": value}):
            assert async_server._env_flag("X_FLAG") is True

    @pytest.mark.parametrize("value", ["", "0", "no", "off"])
    def test_flag_false(self, value):
        with patch.dict(os.environ, {"X_FLAG": value}):
            assert async_server._env_flag("X_FLAG") is False

    def test_int(self):
        with patch.dict(os.environ, {"X_INT": "8"}):
            assert async_server._env_int("X_INT", None) == 8

    def test_int_missing(self):
        with patch.dict(os.environ, {}, clear=True):
            assert async_server._env_int("X_INT", 3) == 3

    def test_int_invalid_falls_back(self):
        with patch.dict(os.environ, {"X_INT": "lots"}):
            assert async_server._env_int("X_INT", 3) == 3


class TestCreateManager:
    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            manager = async_server.create_manager()

        assert manager.data_dir.endswith("chuk-mcp-gridfloat")
        assert manager.advisor.force_small_memory is False
        assert manager.advisor.threshold_bytes == DEFAULT_MEMORY_THRESHOLD_BYTES
        assert manager.max_workers is None

    def test_from_environment(self, tmp_path):
        env = {
            EnvVar.DATA_DIR: str(tmp_path),
            EnvVar.SMALL_MEMORY: "true",
            EnvVar.MEMORY_THRESHOLD: "1000",
            EnvVar.MAX_WORKERS: "3",
        }
        with patch.dict(os.environ, env, clear=True):
            manager = async_server.create_manager()

        assert manager.data_dir == str(tmp_path)
        assert manager.advisor.force_small_memory is True
        assert manager.advisor.threshold_bytes == 1000
        assert manager.max_workers == 3


# =====================================================================
# main()
# =====================================================================


class TestMainStdioMode:
    def test_stdio(self, mock_server):
        mock_mcp, manager = mock_server
        with patch("sys.argv", ["server", "stdio"]):
            server.main()

        mock_mcp.run.assert_called_once_with(stdio=True)
        assert os.path.isdir(manager.data_dir)


class TestMainHttpMode:
    def test_host_and_port(self, mock_server):
        mock_mcp, _ = mock_server
        with patch("sys.argv", ["server", "http", "--host", "0.0.0.0", "--port", "9000"]):
            server.main()

        mock_mcp.run.assert_called_once_with(host="0.0.0.0", port=9000, stdio=False)

    def test_default_host_port(self, mock_server):
        mock_mcp, _ = mock_server
        with patch("sys.argv", ["server", "http"]):
            server.main()

        mock_mcp.run.assert_called_once_with(host="localhost", port=8004, stdio=False)


class TestMainAutoDetect:
    def test_stdio_when_env_set(self, mock_server):
        mock_mcp, _ = mock_server
        with patch.dict(os.environ, {EnvVar.MCP_STDIO: "1"}), patch("sys.argv", ["server"]):
            server.main()

        mock_mcp.run.assert_called_once_with(stdio=True)

    def test_stdio_when_stdin_not_tty(self, mock_server):
        mock_mcp, _ = mock_server
        with (
            patch.dict(os.environ, {}, clear=True),
            patch("sys.argv", ["server"]),
            patch("sys.stdin") as mock_stdin,
        ):
            mock_stdin.isatty.return_value = False
            server.main()

        mock_mcp.run.assert_called_once_with(stdio=True)

    def test_http_when_tty(self, mock_server):
        mock_mcp, _ = mock_server
        with (
            patch.dict(os.environ, {}, clear=True),
            patch("sys.argv", ["server"]),
            patch("sys.stdin") as mock_stdin,
        ):
            mock_stdin.isatty.return_value = True
            server.main()

        mock_mcp.run.assert_called_once_with(host="localhost", port=8004, stdio=False)


# =====================================================================
# Module-level instances
# =====================================================================


class TestAsyncServerInstances:
    def test_mcp_is_chuk_mcp_server_instance(self):
        from chuk_mcp_server import ChukMCPServer

        assert isinstance(async_server.mcp, ChukMCPServer)

    def test_mcp_name(self):
        assert async_server.mcp.server_info.name == "chuk-mcp-gridfloat"

    def test_manager_is_dem_manager_instance(self):
        from chuk_mcp_gridfloat.core.dem_manager import DEMManager

        assert isinstance(async_server.manager, DEMManager)

    def test_server_reexports_async_server_objects(self):
        assert server.mcp is async_server.mcp
        assert server.manager is async_server.manager
