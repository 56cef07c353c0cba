#!/usr/bin/env python3
"""
Example usage of the SFTP session backend

This script demonstrates how to:
1. Create a session confined to a directory
2. Upload, list and download files through it
3. See requests that leave the root being refused
"""

import asyncio
import sys
from pathlib import Path

from sftpd import EndOfFile, OpenFlags, PermissionDenied, ServerConfig, SftpSession


def create_test_environment():
    """Create a test directory structure"""
    test_dir = Path("example_root")
    test_dir.mkdir(exist_ok=True)

    (test_dir / "readme.txt").write_text("This is a test SFTP root\nWelcome to the example!")
    (test_dir / "data.txt").write_text("Some sample data\nLine 2\nLine 3")

    subdir = test_dir / "documents"
    subdir.mkdir(exist_ok=True)
    (subdir / "report.txt").write_text("This is a sample report\nWith multiple lines\nOf content")

    print(f"Created test environment in: {test_dir}")
    return test_dir


async def walk(session, path, indent=0):
    """Print a directory tree the way a client would fetch it"""
    handle = (await session.opendir(1, path)).handle
    entries = []
    while True:
        try:
            entries.extend((await session.readdir(2, handle)).files)
        except EndOfFile:
            break
    await session.close(3, handle)

    for entry in sorted(entries, key=lambda e: e.filename):
        print("  " * indent + entry.longname)
        if entry.attrs.is_dir():
            await walk(session, f"{path.rstrip('/')}/{entry.filename}", indent + 1)


async def run_session_example(root):
    print("=== SFTP Session Example ===\n")

    session = SftpSession(ServerConfig(root_dir=root))
    await session.init(3)

    # Upload
    flags = OpenFlags.WRITE | OpenFlags.CREATE | OpenFlags.TRUNCATE
    handle = (await session.open(1, "/documents/uploaded.txt", flags)).handle
    await session.write(2, handle, 0, b"Uploaded through the session\n")
    await session.close(3, handle)

    print("Listing:")
    await walk(session, "/")

    # Download
    handle = (await session.open(4, "/readme.txt", OpenFlags.READ)).handle
    data = (await session.read(5, handle, 0, 1024)).data
    await session.close(6, handle)
    print(f"\n/readme.txt:\n{data.decode()}\n")

    print(f"realpath('/documents/../data.txt') = {(await session.realpath(7, '/documents/../data.txt')).files[0].filename}")

    try:
        await session.stat(8, "/../../etc/passwd")
    except PermissionDenied as e:
        print(f"stat('/../../etc/passwd') refused: {e.status.name}")

    await session.aclose()


def main():
    """Main function"""
    if len(sys.argv) > 1 and sys.argv[1] == '--help':
        print("SFTP Session Example Usage:")
        print("  python3 example_usage.py          # Run the session example")
        print("  python3 example_usage.py --help   # Show this help")
        return

    root = create_test_environment()
    asyncio.run(run_session_example(root))


if __name__ == '__main__':
    main()
