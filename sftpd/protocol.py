"""
SFTP protocol constants, reply records and the error taxonomy.

Wire encoding is handled by the dispatch layer; everything here is the
already-decoded form of the SFTP v3 messages the session produces.
"""

from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import Dict, List, Optional

SFTP_VERSION = 3
READDIR_BATCH = 10
DEFAULT_MAX_READ_SIZE = 32768
DEFAULT_FILE_MODE = 0o644
DEFAULT_DIR_MODE = 0o755
S_IFREG = 0o100000

# Status codes
class StatusCode(IntEnum):
    OK = 0
    EOF = 1
    NO_SUCH_FILE = 2
    PERMISSION_DENIED = 3
    FAILURE = 4
    BAD_MESSAGE = 5
    NO_CONNECTION = 6
    CONNECTION_LOST = 7
    OP_UNSUPPORTED = 8

# SSH_FXP_OPEN pflags
class OpenFlags(IntFlag):
    READ = 0x01
    WRITE = 0x02
    APPEND = 0x04
    CREATE = 0x08
    TRUNCATE = 0x10
    EXCLUDE = 0x20

WRITE_INTENT = OpenFlags.WRITE | OpenFlags.CREATE | OpenFlags.TRUNCATE | OpenFlags.APPEND


@dataclass
class FileAttributes:
    """Attribute set carried by ATTRS replies and directory entries"""
    size: Optional[int] = None
    uid: Optional[int] = None
    gid: Optional[int] = None
    permissions: Optional[int] = None
    atime: Optional[int] = None
    mtime: Optional[int] = None

    def is_dir(self) -> bool:
        return self.permissions is not None and (self.permissions & 0o170000) == 0o040000

    def is_regular(self) -> bool:
        return self.permissions is not None and (self.permissions & 0o170000) == S_IFREG

    def is_symlink(self) -> bool:
        return self.permissions is not None and (self.permissions & 0o170000) == 0o120000


@dataclass
class File:
    """One entry of a NAME reply"""
    filename: str
    longname: str
    attrs: FileAttributes = field(default_factory=FileAttributes)

    @classmethod
    def dummy(cls, name: str) -> 'File':
        """Entry with no attributes, as used by REALPATH replies"""
        return cls(filename=name, longname=name)


@dataclass
class Version:
    version: int = SFTP_VERSION
    extensions: Dict[str, str] = field(default_factory=dict)


@dataclass
class Handle:
    id: int
    handle: str


@dataclass
class Data:
    id: int
    data: bytes


@dataclass
class Attrs:
    id: int
    attrs: FileAttributes


@dataclass
class Name:
    id: int
    files: List[File]


@dataclass
class Status:
    id: int
    status_code: StatusCode = StatusCode.OK
    error_message: str = "Ok"
    language_tag: str = "en-US"

    @classmethod
    def ok(cls, id: int) -> 'Status':
        return cls(id=id)


class SftpError(Exception):
    """Base class for failures reported to the peer as a STATUS reply"""
    status = StatusCode.FAILURE

    def __init__(self, message: str = ""):
        super().__init__(message or self.status.name.replace('_', ' ').capitalize())
        self.message = str(self.args[0])

    def to_status(self, id: int) -> Status:
        return Status(id=id, status_code=self.status, error_message=self.message)


class EndOfFile(SftpError):
    status = StatusCode.EOF


class NoSuchFile(SftpError):
    status = StatusCode.NO_SUCH_FILE


class PermissionDenied(SftpError):
    status = StatusCode.PERMISSION_DENIED


class Failure(SftpError):
    status = StatusCode.FAILURE


class BadHandle(SftpError):
    status = StatusCode.BAD_MESSAGE


class DuplicateInit(SftpError):
    status = StatusCode.CONNECTION_LOST


def error_from_os(exc: OSError) -> SftpError:
    """Map an OS-level error onto the protocol error taxonomy"""
    if isinstance(exc, FileNotFoundError):
        return NoSuchFile(str(exc))
    if isinstance(exc, PermissionError):
        return PermissionDenied(str(exc))
    return Failure(str(exc))
