"""
Per-session registry of open file and directory handles
"""

import logging
import mimetypes
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

from .protocol import DEFAULT_MAX_READ_SIZE, BadHandle

logger = logging.getLogger(__name__)

TEXT_MIME_TYPES = ('application/json', 'application/xml', 'application/javascript')


def looks_like_text(path: Path) -> bool:
    """Guess from the file name whether content is text (diagnostics only)"""
    mime, _ = mimetypes.guess_type(str(path))
    if mime is None:
        return False
    return mime.startswith('text/') or mime in TEXT_MIME_TYPES


@dataclass
class OpenFile:
    """File opened by the peer; file is an aiofiles binary file object"""
    file: Any
    path: Path
    is_text: bool = False

    async def close(self):
        await self.file.close()


@dataclass
class OpenDirectory:
    """Directory listing cursor; each readdir continues where the last stopped"""
    path: Path
    entries: Iterator[os.DirEntry]
    exhausted: bool = False

    def close(self):
        close = getattr(self.entries, 'close', None)
        if close is not None:
            close()


@dataclass
class SessionState:
    """Mutable state of one SFTP session"""
    root_dir: Path
    max_read_size: int = DEFAULT_MAX_READ_SIZE
    version: Optional[int] = None
    handle_counter: int = 0
    open_files: Dict[str, OpenFile] = field(default_factory=dict)
    open_dirs: Dict[str, OpenDirectory] = field(default_factory=dict)

    def allocate_handle(self) -> str:
        """Issue a handle string that was never issued before in this session"""
        self.handle_counter += 1
        return f"handle_{self.handle_counter}"

    def add_file(self, open_file: OpenFile) -> str:
        handle = self.allocate_handle()
        self.open_files[handle] = open_file
        return handle

    def add_dir(self, open_dir: OpenDirectory) -> str:
        handle = self.allocate_handle()
        self.open_dirs[handle] = open_dir
        return handle

    def get_file(self, handle: str) -> OpenFile:
        open_file = self.open_files.get(handle)
        if open_file is None:
            logger.warning(f"Invalid file handle: {handle}")
            raise BadHandle(f"Invalid file handle: {handle}")
        return open_file

    def get_dir(self, handle: str) -> OpenDirectory:
        open_dir = self.open_dirs.get(handle)
        if open_dir is None:
            logger.warning(f"Invalid directory handle: {handle}")
            raise BadHandle(f"Invalid directory handle: {handle}")
        return open_dir

    def discard(self, handle: str) -> Optional[Union[OpenFile, OpenDirectory]]:
        """Forget a handle; unknown handles are ignored"""
        if handle in self.open_files:
            return self.open_files.pop(handle)
        return self.open_dirs.pop(handle, None)

    async def release(self):
        """Close everything still open, at session end"""
        files, dirs = list(self.open_files.items()), list(self.open_dirs.items())
        self.open_files.clear()
        self.open_dirs.clear()

        for handle, open_file in files:
            try:
                await open_file.close()
            except OSError as e:
                logger.error(f"Failed to close {handle} ({open_file.path}): {e}")
        for handle, open_dir in dirs:
            open_dir.close()

        if files or dirs:
            logger.info(f"Released {len(files)} file and {len(dirs)} directory handles")
