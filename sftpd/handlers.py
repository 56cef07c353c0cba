"""
SFTP operation handlers.

One coroutine per protocol verb. Handlers resolve every path through the
session's PathResolver, keep handles in the session state, and translate
every OS error into an SftpError before returning.
"""

import asyncio
import functools
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

import aiofiles
import aiofiles.os

from . import metadata
from .protocol import (
    DEFAULT_DIR_MODE, DEFAULT_FILE_MODE, READDIR_BATCH, WRITE_INTENT,
    EndOfFile, Failure, File, FileAttributes, NoSuchFile, OpenFlags,
    PermissionDenied, SftpError, error_from_os,
)
from .state import OpenDirectory, OpenFile, looks_like_text

if TYPE_CHECKING:
    from .session import SftpSession

logger = logging.getLogger(__name__)

# File open flags (for Windows compatibility)
O_RDONLY = getattr(os, 'O_RDONLY', 0)
O_WRONLY = getattr(os, 'O_WRONLY', 1)
O_RDWR = getattr(os, 'O_RDWR', 2)
O_APPEND = getattr(os, 'O_APPEND', 8)
O_CREAT = getattr(os, 'O_CREAT', 64)
O_TRUNC = getattr(os, 'O_TRUNC', 512)
O_EXCL = getattr(os, 'O_EXCL', 128)
O_BINARY = getattr(os, 'O_BINARY', 0)  # Windows-specific, 0 on other platforms

PREVIEW_CHARS = 50


async def run_blocking(func, *args, **kwargs):
    """Run a blocking filesystem call on the loop's default executor"""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


def open_mode(pflags: OpenFlags):
    """Translate SFTP pflags into (os.open flags, file object mode)"""
    readable = bool(pflags & OpenFlags.READ)
    writable = bool(pflags & (OpenFlags.WRITE | OpenFlags.APPEND))

    if readable and writable:
        flags, mode = O_RDWR, 'r+b'
    elif writable:
        flags, mode = O_WRONLY, 'wb'
    else:
        flags, mode = O_RDONLY, 'rb'

    if pflags & OpenFlags.APPEND:
        flags |= O_APPEND
    if pflags & OpenFlags.CREATE:
        flags |= O_CREAT
    if pflags & OpenFlags.TRUNCATE:
        flags |= O_TRUNC
    if pflags & OpenFlags.EXCLUDE:
        flags |= O_EXCL

    return flags | O_BINARY, mode


async def handle_open(session: 'SftpSession', path: str, pflags: int,
                      attrs: Optional[FileAttributes] = None) -> str:
    pflags = OpenFlags(pflags)
    logger.info(f"open file: {path} with flags: {pflags!r}")

    resolved = session.resolver.resolve(path)

    if pflags & WRITE_INTENT:
        if not await aiofiles.os.path.isdir(resolved.parent):
            logger.warning(f"Parent directory does not exist: {resolved.parent}")
            raise NoSuchFile(f"No such directory: {path}")

        flags, mode = open_mode(pflags)
        permissions = DEFAULT_FILE_MODE
        if attrs is not None and attrs.permissions is not None:
            permissions = attrs.permissions & 0o7777

        def opener(name, _flags):
            return os.open(name, flags, permissions)

        try:
            file = await aiofiles.open(resolved, mode, opener=opener)
        except OSError as e:
            logger.warning(f"Failed to open/create file {resolved}: {e}")
            raise error_from_os(e) from e
        kind = 'write'
    else:
        if not await aiofiles.os.path.exists(resolved):
            logger.warning(f"File does not exist: {resolved}")
            raise NoSuchFile(f"No such file: {path}")
        if not await aiofiles.os.path.isfile(resolved):
            logger.warning(f"Path is not a regular file: {resolved}")
            raise Failure(f"Not a regular file: {path}")

        try:
            file = await aiofiles.open(resolved, 'rb')
        except OSError as e:
            logger.warning(f"Failed to open file {resolved}: {e}")
            raise error_from_os(e) from e
        kind = 'read'

    open_file = OpenFile(file=file, path=resolved, is_text=looks_like_text(resolved))
    handle = session.state.add_file(open_file)
    logger.info(f"Successfully opened file for {kind} with handle: {handle} (text: {open_file.is_text})")
    return handle


async def handle_close(session: 'SftpSession', handle: str):
    logger.info(f"close handle: {handle}")

    record = session.state.discard(handle)
    if isinstance(record, OpenFile):
        try:
            await record.close()
        except OSError as e:
            logger.error(f"Error closing file handle {handle}: {e}")
        logger.info(f"Closed file handle: {handle} (path: {record.path}, text: {record.is_text})")
    elif isinstance(record, OpenDirectory):
        record.close()
        logger.info(f"Closed directory handle: {handle}")


async def handle_read(session: 'SftpSession', handle: str, offset: int, length: int) -> bytes:
    logger.info(f"read handle: {handle}, offset: {offset}, requested len: {length}")

    open_file = session.state.get_file(handle)
    if length <= 0:
        return b''
    actual_len = min(length, session.state.max_read_size)

    try:
        position = await open_file.file.seek(offset)
        if position != offset:
            logger.warning(f"Seek to {offset} resulted in position {position}")
        data = await open_file.file.read(actual_len)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to read from file handle {handle}: {e}")
        raise Failure(str(e)) from e

    if not data:
        logger.info(f"End of file reached for handle: {handle}")
        raise EndOfFile()

    logger.info(f"Successfully read {len(data)} bytes from handle: {handle} (offset: {offset})")
    if open_file.is_text:
        preview = data[:PREVIEW_CHARS * 2].decode('utf-8', errors='replace')[:PREVIEW_CHARS]
        logger.debug(f"Text file preview: {preview}")
    return data


async def handle_write(session: 'SftpSession', handle: str, offset: int, data: bytes):
    logger.info(f"write handle: {handle}, offset: {offset}, data len: {len(data)}")

    open_file = session.state.get_file(handle)

    try:
        position = await open_file.file.seek(offset)
        if position != offset:
            logger.warning(f"Seek to {offset} resulted in position {position}")
        written = await open_file.file.write(data)
        await open_file.file.flush()
    except (OSError, ValueError) as e:
        logger.error(f"Failed to write to file handle {handle}: {e}")
        raise Failure(str(e)) from e

    if written != len(data):
        logger.error(f"Short write on handle {handle}: {written} of {len(data)} bytes")
        raise Failure(f"Short write: {written} of {len(data)} bytes")

    logger.info(f"Successfully wrote {len(data)} bytes to handle: {handle} at offset: {offset}")


async def _stat(resolved: Path, follow_symlinks: bool = True) -> FileAttributes:
    try:
        st = await aiofiles.os.stat(resolved, follow_symlinks=follow_symlinks)
    except OSError as e:
        logger.warning(f"Failed to stat {resolved}: {e}")
        raise error_from_os(e) from e
    return metadata.to_attributes(st)


async def handle_stat(session: 'SftpSession', path: str) -> FileAttributes:
    logger.info(f"stat: {path}")
    resolved = session.resolver.resolve(path)
    attrs = await _stat(resolved)
    logger.info(f"stat result for {resolved}: size={attrs.size}, is_file={attrs.is_regular()}")
    return attrs


async def handle_lstat(session: 'SftpSession', path: str) -> FileAttributes:
    logger.info(f"lstat: {path}")
    resolved = session.resolver.resolve_no_follow(path)
    return await _stat(resolved, follow_symlinks=False)


async def handle_fstat(session: 'SftpSession', handle: str) -> FileAttributes:
    logger.info(f"fstat handle: {handle}")
    open_file = session.state.get_file(handle)
    try:
        st = await aiofiles.os.stat(open_file.file.fileno())
    except (OSError, ValueError) as e:
        logger.error(f"Failed to get metadata for handle {handle}: {e}")
        raise Failure(str(e)) from e
    return metadata.to_attributes(st)


async def handle_opendir(session: 'SftpSession', path: str) -> str:
    logger.info(f"opendir: {path}")
    resolved = session.resolver.resolve(path)

    try:
        entries = await run_blocking(os.scandir, resolved)
    except OSError as e:
        logger.warning(f"Failed to open directory {resolved}: {e}")
        raise error_from_os(e) from e

    return session.state.add_dir(OpenDirectory(path=resolved, entries=entries))


async def _describe(entry: os.DirEntry) -> File:
    name = entry.name
    try:
        st = await run_blocking(entry.stat, follow_symlinks=False)
    except OSError as e:
        logger.warning(f"Failed to get metadata for {name}: {e}")
        return File(filename=name, longname=metadata.default_longname(name),
                    attrs=metadata.default_attributes())
    return File(filename=name, longname=metadata.format_longname(name, st),
                attrs=metadata.to_attributes(st))


async def handle_readdir(session: 'SftpSession', handle: str) -> List[File]:
    logger.info(f"readdir handle: {handle}")
    open_dir = session.state.get_dir(handle)

    files = []
    while len(files) < READDIR_BATCH and not open_dir.exhausted:
        try:
            entry = await run_blocking(next, open_dir.entries, None)
        except OSError as e:
            logger.error(f"Failed to read directory {open_dir.path}: {e}")
            entry = None
        if entry is None:
            open_dir.exhausted = True
            break
        files.append(await _describe(entry))

    if not files:
        raise EndOfFile()
    return files


async def handle_realpath(session: 'SftpSession', path: str) -> str:
    """Canonical protocol path of path.

    Unless the session is strict, anything that cannot be resolved is
    reported as '/' rather than as an error; clients probe realpath('.')
    before doing anything else.
    """
    logger.info(f"realpath: {path}")

    try:
        resolved = session.resolver.resolve(path)
        canonical = await run_blocking(resolved.resolve, strict=True)
        return session.resolver.to_virtual(canonical)
    except SftpError:
        if session.strict_realpath:
            raise
        logger.info(f"realpath: cannot resolve {path}, answering '/'")
    except (OSError, RuntimeError, ValueError) as e:
        if session.strict_realpath:
            raise NoSuchFile(f"No such file: {path}") from e
        logger.info(f"realpath: cannot canonicalize {path} ({e}), answering '/'")
    return '/'


def _refuse_root(session: 'SftpSession', resolved: Path, path: str):
    if resolved == session.resolver.root_dir:
        logger.warning(f"Refusing to modify the root directory: {path}")
        raise PermissionDenied("The root directory cannot be modified")


async def handle_remove(session: 'SftpSession', path: str):
    logger.info(f"remove: {path}")
    resolved = session.resolver.resolve_no_follow(path)
    _refuse_root(session, resolved, path)
    try:
        await aiofiles.os.remove(resolved)
    except OSError as e:
        logger.warning(f"Remove failed for {resolved}: {e}")
        raise error_from_os(e) from e


async def handle_mkdir(session: 'SftpSession', path: str, attrs: Optional[FileAttributes] = None):
    logger.info(f"mkdir: {path}")
    resolved = session.resolver.resolve(path)
    permissions = DEFAULT_DIR_MODE
    if attrs is not None and attrs.permissions is not None:
        permissions = attrs.permissions & 0o7777
    try:
        await aiofiles.os.mkdir(resolved, permissions)
    except OSError as e:
        logger.warning(f"Mkdir failed for {resolved}: {e}")
        raise error_from_os(e) from e


async def handle_rmdir(session: 'SftpSession', path: str):
    logger.info(f"rmdir: {path}")
    resolved = session.resolver.resolve_no_follow(path)
    _refuse_root(session, resolved, path)
    try:
        await aiofiles.os.rmdir(resolved)
    except OSError as e:
        logger.warning(f"Rmdir failed for {resolved}: {e}")
        raise error_from_os(e) from e


async def handle_rename(session: 'SftpSession', old_path: str, new_path: str):
    logger.info(f"rename: {old_path} -> {new_path}")
    source = session.resolver.resolve_no_follow(old_path)
    target = session.resolver.resolve(new_path)
    _refuse_root(session, source, old_path)

    if await run_blocking(os.path.lexists, target):
        logger.warning(f"Rename target already exists: {target}")
        raise Failure(f"Target already exists: {new_path}")
    try:
        await aiofiles.os.rename(source, target)
    except OSError as e:
        logger.warning(f"Rename failed for {source}: {e}")
        raise error_from_os(e) from e
