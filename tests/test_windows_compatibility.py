#!/usr/bin/env python3
"""
Tests for platform compatibility of open flags and paths
"""

import os
from pathlib import Path

import pytest

from sftpd.handlers import open_mode
from sftpd.paths import LONG_PATH_PREFIX, PathResolver
from sftpd.protocol import OpenFlags


@pytest.mark.windows
@pytest.mark.skipif(os.name != 'nt', reason="Windows-specific test")
class TestWindowsCompatibility:
    """Test Windows-specific compatibility features"""

    def test_o_binary_constant_available(self):
        """Test that O_BINARY constant is available on Windows"""
        from sftpd.handlers import O_BINARY
        assert O_BINARY == 0x8000  # Windows O_BINARY value

    def test_open_flags_include_binary(self):
        """Test that every open is binary on Windows"""
        from sftpd.handlers import O_BINARY
        for pflags in (OpenFlags.READ, OpenFlags.WRITE | OpenFlags.CREATE):
            flags, _ = open_mode(pflags)
            assert flags & O_BINARY

    def test_long_path_prefix_is_confined(self, root_dir):
        """Test that the \\\\?\\ form of a path under the root is accepted"""
        resolver = PathResolver(root_dir)
        assert resolver.is_confined(Path(LONG_PATH_PREFIX + str(root_dir / "file.txt")))


@pytest.mark.linux
class TestLinuxCompatibility:
    """Test Linux-specific compatibility features"""

    @pytest.mark.skipif(os.name == 'nt', reason="Linux-specific test")
    def test_o_binary_constant_not_used(self):
        """Test that O_BINARY constant is not used on Linux"""
        from sftpd.handlers import O_BINARY
        assert O_BINARY == 0  # Should be 0 on non-Windows platforms

    @pytest.mark.skipif(os.name == 'nt', reason="Linux-specific test")
    def test_long_path_prefix_is_stripped(self, root_dir):
        """Test that prefixed paths are compared without the prefix"""
        resolver = PathResolver(root_dir)
        prefixed = Path(LONG_PATH_PREFIX + str(root_dir / "file.txt"))
        assert resolver.is_confined(prefixed)
        assert not resolver.is_confined(Path(LONG_PATH_PREFIX + str(root_dir.parent)))


class TestOpenMode:
    """Test translation of SFTP pflags into os.open flags"""

    def test_read_only(self):
        flags, mode = open_mode(OpenFlags.READ)
        assert mode == 'rb'
        assert flags & (os.O_WRONLY | os.O_RDWR) == 0

    def test_write_only(self):
        flags, mode = open_mode(OpenFlags.WRITE)
        assert mode == 'wb'
        assert flags & os.O_WRONLY
        assert not flags & os.O_CREAT
        assert not flags & os.O_TRUNC

    def test_read_write(self):
        flags, mode = open_mode(OpenFlags.READ | OpenFlags.WRITE)
        assert mode == 'r+b'
        assert flags & os.O_RDWR

    def test_create_truncate_exclusive(self):
        flags, _ = open_mode(OpenFlags.WRITE | OpenFlags.CREATE | OpenFlags.TRUNCATE | OpenFlags.EXCLUDE)
        assert flags & os.O_CREAT
        assert flags & os.O_TRUNC
        assert flags & os.O_EXCL

    def test_append_implies_write(self):
        flags, mode = open_mode(OpenFlags.APPEND)
        assert mode == 'wb'
        assert flags & os.O_APPEND
        assert flags & os.O_WRONLY


class TestCrossPlatformCompatibility:
    """Test compatibility across different platforms"""

    def test_platform_detection(self):
        """Test that platform detection works correctly"""
        from sftpd.handlers import O_BINARY

        if os.name == 'nt':
            assert O_BINARY != 0
        else:
            assert O_BINARY == 0

    def test_no_line_ending_translation(self, session, run, root_dir):
        """Test that reads return the exact bytes on disk"""
        mixed_content = b'Line 1\r\nLine 2\nLine 3\r\nLine 4\n'
        (root_dir / "mixed_endings.txt").write_bytes(mixed_content)

        handle = run(session.open(1, "/mixed_endings.txt", OpenFlags.READ)).handle
        assert run(session.read(2, handle, 0, 100)).data == mixed_content

    def test_written_bytes_are_not_translated(self, session, run, root_dir):
        content = b'a\nb\r\nc'
        handle = run(session.open(1, "/written.txt", OpenFlags.WRITE | OpenFlags.CREATE)).handle
        run(session.write(2, handle, 0, content))
        run(session.close(3, handle))
        assert (root_dir / "written.txt").read_bytes() == content
