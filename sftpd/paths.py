"""
Confinement of protocol paths to the session root directory.

Every path handed to a filesystem call goes through PathResolver first.
"""

import logging
import os
from pathlib import Path, PurePosixPath
from typing import Union

from .protocol import NoSuchFile, PermissionDenied

logger = logging.getLogger(__name__)

LONG_PATH_PREFIX = '\\\\?\\'


class PathResolver:
    """Maps untrusted protocol paths onto local paths under a fixed root"""

    def __init__(self, root_dir: Union[str, Path]):
        self._root_dir = Path(root_dir).resolve()

    @property
    def root_dir(self) -> Path:
        return self._root_dir

    def _join(self, requested: str) -> Path:
        # Protocol paths are rooted at '/'; only one separator is stripped.
        if requested.startswith('/'):
            requested = requested[1:]
        return self._root_dir / requested

    def is_confined(self, path: Path) -> bool:
        """True when path is the root or lies below it"""
        text = str(path)
        if text.startswith(LONG_PATH_PREFIX):
            path = Path(text[len(LONG_PATH_PREFIX):])
        return path == self._root_dir or self._root_dir in path.parents

    def _check(self, path: Path, requested: str) -> Path:
        if not self.is_confined(path):
            logger.warning(f"Attempt to access outside of root: {path} (requested {requested!r}, root {self._root_dir})")
            raise PermissionDenied(f"Access outside of root denied: {requested}")
        return path

    def resolve(self, requested: str) -> Path:
        """Resolve a protocol path to a confined local path.

        Existing targets are canonicalized and must stay inside the root.
        Missing targets (files about to be created) are accepted when their
        parent directory canonicalizes inside the root; in that case the
        joined, non-canonical path is returned.
        """
        joined = self._join(requested)

        try:
            canonical = joined.resolve(strict=True)
        except (OSError, RuntimeError):
            pass
        else:
            return self._check(canonical, requested)

        try:
            parent = joined.parent.resolve(strict=True)
        except (OSError, RuntimeError):
            raise NoSuchFile(f"No such file: {requested}")
        self._check(parent, requested)

        # A dangling symlink would be followed by O_CREAT. realpath() stops at
        # loops instead of raising; the OS then answers ELOOP.
        if joined.is_symlink():
            self._check(Path(os.path.realpath(joined)), requested)
        return joined

    def resolve_no_follow(self, requested: str) -> Path:
        """Like resolve(), but leaves the final component unresolved.

        Intermediate components are canonicalized and confined; the last
        one is appended as-is so that symlink metadata can be read.
        """
        joined = self._join(requested)
        if joined.name in ('', '.', '..') or joined == self._root_dir:
            return self.resolve(requested)

        try:
            parent = joined.parent.resolve(strict=True)
        except (OSError, RuntimeError):
            raise NoSuchFile(f"No such file: {requested}")
        return self._check(parent, requested) / joined.name

    def to_virtual(self, path: Path) -> str:
        """Protocol form of a confined local path, rooted at '/'"""
        text = str(path)
        if text.startswith(LONG_PATH_PREFIX):
            path = Path(text[len(LONG_PATH_PREFIX):])
        relative = path.relative_to(self._root_dir)
        if relative == Path('.'):
            return '/'
        return str(PurePosixPath('/', *relative.parts))
