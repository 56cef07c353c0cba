#!/usr/bin/env python3
"""
Tests for server configuration and lifecycle
"""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from sftpd.server import SFTPD_PORT, ServerConfig, ServerManager


class TestServerConfig:
    """Test ServerConfig class"""

    def test_defaults(self, root_dir):
        config = ServerConfig(root_dir=str(root_dir))

        assert config.root_dir == Path(root_dir)
        assert config.max_read_size == 32768
        assert config.port == SFTPD_PORT
        assert config.strict_realpath is False

    def test_validate(self, root_dir):
        ServerConfig(root_dir=root_dir).validate()

    def test_validate_missing_root(self, temp_dir):
        with pytest.raises(ValueError, match="does not exist"):
            ServerConfig(root_dir=Path(temp_dir) / "nope").validate()

    def test_validate_file_root(self, temp_dir, root_dir):
        with pytest.raises(ValueError, match="not a directory"):
            ServerConfig(root_dir=Path(temp_dir) / "secret.txt").validate()

    def test_validate_read_size(self, root_dir):
        with pytest.raises(ValueError, match="max read size"):
            ServerConfig(root_dir=root_dir, max_read_size=0).validate()


class TestServerManager:
    """Test ServerManager start/stop semantics"""

    @staticmethod
    def forever(started):
        async def serve(config):
            started.append(config.port)
            await asyncio.Event().wait()
        return serve

    def test_start(self, config, run):
        started = []
        manager = ServerManager()

        async def scenario():
            task = await manager.start(config, self.forever(started))
            await asyncio.sleep(0)
            assert manager.running
            assert manager.config is config
            await manager.stop()
            return task

        task = run(scenario())
        assert started == [config.port]
        assert task.cancelled()
        assert not manager.running

    def test_start_replaces_previous(self, root_dir, run):
        started = []
        manager = ServerManager()
        first = ServerConfig(root_dir=root_dir, port=2201)
        second = ServerConfig(root_dir=root_dir, port=2202)

        async def scenario():
            old = await manager.start(first, self.forever(started))
            await asyncio.sleep(0)
            new = await manager.start(second, self.forever(started))
            await asyncio.sleep(0)
            assert old.cancelled()
            assert not new.done()
            await manager.stop()

        run(scenario())
        assert started == [2201, 2202]

    def test_stop_without_server(self, run):
        manager = ServerManager()
        run(manager.stop())
        assert not manager.running

    def test_start_rejects_invalid_root(self, temp_dir, run):
        manager = ServerManager()
        serve = AsyncMock()
        with pytest.raises(ValueError):
            run(manager.start(ServerConfig(root_dir=Path(temp_dir) / "nope"), serve))
        serve.assert_not_called()
        assert not manager.running

    def test_failing_server_is_contained(self, config, run):
        """Test that a server error ends the task without propagating"""
        manager = ServerManager()
        serve = AsyncMock(side_effect=OSError("address already in use"))

        async def scenario():
            task = await manager.start(config, serve)
            await asyncio.gather(task)
            assert not manager.running
            await manager.stop()

        run(scenario())
        serve.assert_awaited_once_with(config)
