"""
Per-connection SFTP session.

SftpSession is the interface the dispatch layer talks to: one coroutine per
protocol verb, each returning the reply record for the request id it was
given. Failures are raised as SftpError; the dispatcher answers them with
error.to_status(id).
"""

import logging
from typing import Dict, Optional

from . import handlers
from .paths import PathResolver
from .protocol import (
    Attrs, Data, DuplicateInit, File, FileAttributes, Handle, Name, Status, Version,
)
from .server import ServerConfig
from .state import SessionState

logger = logging.getLogger(__name__)


class SftpSession:
    """SFTP session confined to config.root_dir"""

    def __init__(self, config: ServerConfig):
        self.resolver = PathResolver(config.root_dir)
        self.state = SessionState(root_dir=self.resolver.root_dir,
                                  max_read_size=config.max_read_size)
        self.strict_realpath = config.strict_realpath

    async def init(self, version: int, extensions: Optional[Dict[str, str]] = None) -> Version:
        if self.state.version is not None:
            logger.error("duplicate SSH_FXP_INIT packet")
            raise DuplicateInit("Protocol version already negotiated")

        self.state.version = version
        logger.info(f"version: {version}, extensions: {extensions or {}}")
        return Version()

    async def open(self, id: int, path: str, pflags: int,
                   attrs: Optional[FileAttributes] = None) -> Handle:
        return Handle(id=id, handle=await handlers.handle_open(self, path, pflags, attrs))

    async def close(self, id: int, handle: str) -> Status:
        await handlers.handle_close(self, handle)
        return Status.ok(id)

    async def read(self, id: int, handle: str, offset: int, length: int) -> Data:
        return Data(id=id, data=await handlers.handle_read(self, handle, offset, length))

    async def write(self, id: int, handle: str, offset: int, data: bytes) -> Status:
        await handlers.handle_write(self, handle, offset, data)
        return Status.ok(id)

    async def stat(self, id: int, path: str) -> Attrs:
        return Attrs(id=id, attrs=await handlers.handle_stat(self, path))

    async def lstat(self, id: int, path: str) -> Attrs:
        return Attrs(id=id, attrs=await handlers.handle_lstat(self, path))

    async def fstat(self, id: int, handle: str) -> Attrs:
        return Attrs(id=id, attrs=await handlers.handle_fstat(self, handle))

    async def opendir(self, id: int, path: str) -> Handle:
        return Handle(id=id, handle=await handlers.handle_opendir(self, path))

    async def readdir(self, id: int, handle: str) -> Name:
        return Name(id=id, files=await handlers.handle_readdir(self, handle))

    async def realpath(self, id: int, path: str) -> Name:
        return Name(id=id, files=[File.dummy(await handlers.handle_realpath(self, path))])

    async def remove(self, id: int, path: str) -> Status:
        await handlers.handle_remove(self, path)
        return Status.ok(id)

    async def mkdir(self, id: int, path: str, attrs: Optional[FileAttributes] = None) -> Status:
        await handlers.handle_mkdir(self, path, attrs)
        return Status.ok(id)

    async def rmdir(self, id: int, path: str) -> Status:
        await handlers.handle_rmdir(self, path)
        return Status.ok(id)

    async def rename(self, id: int, old_path: str, new_path: str) -> Status:
        await handlers.handle_rename(self, old_path, new_path)
        return Status.ok(id)

    async def aclose(self):
        """End of session: every handle still open is closed"""
        await self.state.release()
