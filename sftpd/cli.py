"""
Command line access to a root directory through an SFTP session.

Runs the same confinement and error mapping a remote peer would get,
against a local directory:

    sftpd ROOT ls /
    sftpd ROOT get /docs/report.txt report.txt
"""

import argparse
import asyncio
import contextlib
import logging
import sys
from pathlib import Path

from .protocol import EndOfFile, OpenFlags, SftpError
from .server import ServerConfig
from .session import SftpSession

# Configure logging
logging.basicConfig(
    level=logging.WARNING,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def list_directory(session: SftpSession, path: str):
    handle = (await session.opendir(1, path)).handle
    try:
        while True:
            try:
                reply = await session.readdir(2, handle)
            except EndOfFile:
                break
            for entry in reply.files:
                print(entry.longname)
    finally:
        await session.close(3, handle)


async def show_stat(session: SftpSession, path: str):
    attrs = (await session.stat(1, path)).attrs
    print(f"size: {attrs.size}")
    print(f"permissions: {attrs.permissions:o}")
    print(f"uid: {attrs.uid} gid: {attrs.gid}")
    print(f"atime: {attrs.atime} mtime: {attrs.mtime}")


async def download(session: SftpSession, path: str, dest: str):
    handle = (await session.open(1, path, OpenFlags.READ)).handle
    offset = 0
    try:
        with (open(dest, 'wb') if dest != '-' else contextlib.nullcontext(sys.stdout.buffer)) as out:
            while True:
                try:
                    chunk = (await session.read(2, handle, offset, session.state.max_read_size)).data
                except EndOfFile:
                    break
                out.write(chunk)
                offset += len(chunk)
    finally:
        await session.close(3, handle)
    logger.info(f"Downloaded {offset} bytes from {path}")


async def upload(session: SftpSession, src: str, path: str):
    data = Path(src).read_bytes()
    flags = OpenFlags.WRITE | OpenFlags.CREATE | OpenFlags.TRUNCATE
    handle = (await session.open(1, path, flags)).handle
    try:
        await session.write(2, handle, 0, data)
    finally:
        await session.close(3, handle)
    logger.info(f"Uploaded {len(data)} bytes to {path}")


async def run_command(config: ServerConfig, args: argparse.Namespace):
    session = SftpSession(config)
    try:
        await session.init(3)
        if args.command == 'ls':
            await list_directory(session, args.path)
        elif args.command == 'stat':
            await show_stat(session, args.path)
        elif args.command == 'realpath':
            print((await session.realpath(1, args.path)).files[0].filename)
        elif args.command == 'get':
            await download(session, args.path, args.dest or Path(args.path).name)
        elif args.command == 'put':
            await upload(session, args.src, args.path)
    finally:
        await session.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Browse a directory through a confined SFTP session')
    parser.add_argument('root_dir', help='Root directory to expose')
    parser.add_argument('--max-read-size', type=int, default=ServerConfig.max_read_size,
                        help=f'Largest chunk returned by one read (default: {ServerConfig.max_read_size})')
    parser.add_argument('--strict-realpath', action='store_true',
                        help='Report unresolvable paths as errors instead of "/"')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    commands = parser.add_subparsers(dest='command', required=True)
    commands.add_parser('ls', help='List a directory').add_argument('path', nargs='?', default='/')
    commands.add_parser('stat', help='Show file attributes').add_argument('path')
    commands.add_parser('realpath', help='Canonicalize a path').add_argument('path', nargs='?', default='.')
    get = commands.add_parser('get', help='Copy a file out of the root ("-" for stdout)')
    get.add_argument('path')
    get.add_argument('dest', nargs='?')
    put = commands.add_parser('put', help='Copy a local file into the root')
    put.add_argument('src')
    put.add_argument('path')
    return parser


def main(argv=None):
    """Main entry point"""
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = ServerConfig(root_dir=args.root_dir, max_read_size=args.max_read_size,
                          strict_realpath=args.strict_realpath)
    try:
        config.validate()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    try:
        asyncio.run(run_command(config, args))
    except SftpError as e:
        logger.error(f"{args.command} failed: {e.status.name}: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
