#!/usr/bin/env python3
"""
Pytest configuration and common fixtures for SFTP session tests
"""

import asyncio
import os
import shutil
import tempfile
from pathlib import Path

import pytest

from sftpd import ServerConfig, SftpSession


@pytest.fixture
def temp_dir():
    """Create a temporary directory for individual tests"""
    temp_dir = tempfile.mkdtemp(prefix="sftpd_temp_")
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def root_dir(temp_dir):
    """Served root, one level below temp_dir so that escapes have somewhere to land"""
    root = Path(temp_dir) / "root"
    root.mkdir()
    (Path(temp_dir) / "secret.txt").write_text("outside the root\n")
    return root.resolve()


@pytest.fixture
def sample_files(root_dir):
    """Create sample files for testing"""
    test_file1 = root_dir / "test1.txt"
    test_file1.write_text("This is test file 1\n" * 100)  # 2000 bytes

    test_file2 = root_dir / "test2.txt"
    test_file2.write_text("This is test file 2\n" * 50)   # 1000 bytes

    subdir = root_dir / "subdir"
    subdir.mkdir()

    test_file3 = subdir / "test3.txt"
    test_file3.write_text("This is test file 3\n" * 25)   # 500 bytes

    binary_file = root_dir / "binary.dat"
    binary_file.write_bytes(b'\x00\x01\x02\x03' * 128)  # 512 bytes

    return {
        'test1.txt': test_file1,
        'test2.txt': test_file2,
        'subdir/test3.txt': test_file3,
        'binary.dat': binary_file,
        'subdir': subdir
    }


@pytest.fixture
def loop():
    """Event loop shared by every call made within one test"""
    loop = asyncio.new_event_loop()
    yield loop
    loop.run_until_complete(loop.shutdown_default_executor())
    loop.close()


@pytest.fixture
def run(loop):
    """Run a coroutine to completion on the test's event loop"""
    return loop.run_until_complete


@pytest.fixture
def config(root_dir):
    return ServerConfig(root_dir=root_dir, max_read_size=512)


@pytest.fixture
def session(config, run):
    """Session over root_dir, released at the end of the test"""
    session = SftpSession(config)
    yield session
    run(session.aclose())


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
    config.addinivalue_line(
        "markers", "windows: mark test as Windows-specific"
    )
    config.addinivalue_line(
        "markers", "linux: mark test as Linux-specific"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on platform"""
    for item in items:
        # Add platform-specific markers
        if os.name == 'nt':
            item.add_marker(pytest.mark.windows)
        else:
            item.add_marker(pytest.mark.linux)

        # Add unit test marker by default if not specified
        if not any(marker.name in ['unit', 'integration'] for marker in item.iter_markers()):
            item.add_marker(pytest.mark.unit)
