"""
Conversion of local file metadata into SFTP attributes and listing lines
"""

import os
import stat

from .protocol import DEFAULT_FILE_MODE, S_IFREG, FileAttributes

DEFAULT_PERMISSIONS = S_IFREG | DEFAULT_FILE_MODE
LONGNAME_DATE = 'Jan  1 00:00'
LONGNAME_OWNER = 'root'
LONGNAME_GROUP = 'root'


def to_attributes(st: os.stat_result) -> FileAttributes:
    """Build an attribute set from a stat result.

    Fields the platform does not report fall back to zero, and the mode
    falls back to a regular rw-r--r-- file.
    """
    mode = getattr(st, 'st_mode', None)
    return FileAttributes(
        size=int(getattr(st, 'st_size', 0)),
        uid=int(getattr(st, 'st_uid', 0)),
        gid=int(getattr(st, 'st_gid', 0)),
        permissions=int(mode) if mode else DEFAULT_PERMISSIONS,
        atime=int(getattr(st, 'st_atime', 0)),
        mtime=int(getattr(st, 'st_mtime', 0)),
    )


def default_attributes() -> FileAttributes:
    """Attributes used for an entry whose metadata could not be read"""
    return FileAttributes(permissions=DEFAULT_PERMISSIONS)


def format_longname(name: str, st: os.stat_result) -> str:
    """ls -l style line: mode, links, owner, group, size, date, name"""
    mode = getattr(st, 'st_mode', None) or DEFAULT_PERMISSIONS
    nlink = getattr(st, 'st_nlink', 1) or 1
    size = getattr(st, 'st_size', 0)
    return (f"{stat.filemode(mode)} {nlink:>3} {LONGNAME_OWNER:<8} {LONGNAME_GROUP:<8} "
            f"{size:>8} {LONGNAME_DATE} {name}")


def default_longname(name: str) -> str:
    return f"{stat.filemode(DEFAULT_PERMISSIONS)} 1 {LONGNAME_OWNER} {LONGNAME_GROUP} 0 {LONGNAME_DATE} {name}"
