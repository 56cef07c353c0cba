"""
Server configuration and lifecycle.

The transport (SSH handshake, packet framing) is supplied by the caller as
a coroutine function taking the ServerConfig; ServerManager only decides
which one is running.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional

from .protocol import DEFAULT_MAX_READ_SIZE

logger = logging.getLogger(__name__)

SFTPD_PORT = 2222

ServeFunc = Callable[['ServerConfig'], Awaitable[None]]


@dataclass
class ServerConfig:
    """Settings shared by every session of one server"""
    root_dir: Path
    max_read_size: int = DEFAULT_MAX_READ_SIZE
    port: int = SFTPD_PORT
    strict_realpath: bool = False

    def __post_init__(self):
        self.root_dir = Path(self.root_dir)

    def validate(self):
        """Raise ValueError unless the root is an existing directory"""
        if not self.root_dir.exists():
            raise ValueError(f"Root directory does not exist: {self.root_dir}")
        if not self.root_dir.is_dir():
            raise ValueError(f"Root directory is not a directory: {self.root_dir}")
        if self.max_read_size <= 0:
            raise ValueError(f"Invalid max read size: {self.max_read_size}")


class ServerManager:
    """Keeps at most one server task running; starting a new one replaces it"""

    def __init__(self):
        self._task: Optional[asyncio.Task] = None
        self.config: Optional[ServerConfig] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, config: ServerConfig, serve: ServeFunc) -> asyncio.Task:
        """Stop the current server, if any, then start serve(config)"""
        config.validate()
        await self.stop()

        logger.info(f"Starting server on port {config.port}, root: {config.root_dir}")
        self.config = config
        self._task = asyncio.create_task(self._run(config, serve))
        return self._task

    async def _run(self, config: ServerConfig, serve: ServeFunc):
        try:
            await serve(config)
        except asyncio.CancelledError:
            logger.info(f"Server on port {config.port} cancelled")
            raise
        except Exception as e:
            logger.error(f"Server on port {config.port} failed: {e}")

    async def stop(self):
        """Cancel the running server and wait for it to finish"""
        task, self._task = self._task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        logger.info("Server stopped")
