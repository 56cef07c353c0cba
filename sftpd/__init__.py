"""
Sandboxed SFTP session backend.

Exposes a directory subtree to a remote SFTP peer; every request path is
confined to the configured root directory.

MIT License
"""

from .paths import PathResolver
from .protocol import (
    BadHandle, DuplicateInit, EndOfFile, Failure, FileAttributes, NoSuchFile,
    OpenFlags, PermissionDenied, SftpError, StatusCode,
)
from .server import ServerConfig, ServerManager
from .session import SftpSession

__version__ = '0.1.0'

__all__ = [
    'BadHandle', 'DuplicateInit', 'EndOfFile', 'Failure', 'FileAttributes',
    'NoSuchFile', 'OpenFlags', 'PathResolver', 'PermissionDenied',
    'ServerConfig', 'ServerManager', 'SftpError', 'SftpSession', 'StatusCode',
]
