"""
Command-line front end for the shared gallery.

Usage:
    shared-gallery list
    shared-gallery upload holiday.jpg clip.mp4
    shared-gallery download images/image-1700000000000-holiday.jpg
    shared-gallery download-all ./gallery
    shared-gallery delete images/image-1700000000000-holiday.jpg

The API location comes from --base-url or SHARED_GALLERY_URL.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

import httpx

from .client import GalleryClient, GalleryClientError, PendingUploads
from .core.gallery import MediaItem

DEFAULT_BASE_URL = "http://localhost:8000"


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if value < 1024 or unit == "GiB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def format_listing(items: Sequence[MediaItem]) -> str:
    if not items:
        return "No pictures yet. Upload one to get started."

    lines = []
    for item in items:
        when = item.last_modified.strftime("%Y-%m-%d %H:%M") if item.last_modified else "-"
        lines.append(f"{item.kind.value:<5}  {_format_size(item.size):>10}  {when:<16}  {item.key}")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shared-gallery",
        description="Browse and upload to the shared picture bucket.",
    )
    parser.add_argument(
        "--base-url",
        default=os.environ.get("SHARED_GALLERY_URL", DEFAULT_BASE_URL),
        help="Gallery API location (default: %(default)s)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log requests")

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="List the gallery, newest first")

    upload = commands.add_parser("upload", help="Upload images and videos")
    upload.add_argument("paths", nargs="+", type=Path)

    download = commands.add_parser("download", help="Download one file")
    download.add_argument("key")
    download.add_argument("-o", "--output", type=Path, help="Destination file")

    download_all = commands.add_parser("download-all", help="Download the whole gallery")
    download_all.add_argument("directory", type=Path, nargs="?", default=Path("."))

    delete = commands.add_parser("delete", help="Delete one file")
    delete.add_argument("key")

    return parser


async def run(args: argparse.Namespace, client: GalleryClient) -> int:
    if args.command == "list":
        print(format_listing(await client.list_media()))

    elif args.command == "upload":
        with PendingUploads() as pending:
            rejected = pending.stage(args.paths)
            for path in rejected:
                print(f"Skipped unsupported or unreadable file: {path}", file=sys.stderr)
            if not len(pending):
                print("Nothing to upload.", file=sys.stderr)
                return 1
            for key in await client.upload_pending(pending):
                print(key)

    elif args.command == "download":
        destination = args.output or Path(args.key.rsplit("/", 1)[-1] or "file")
        print(await client.download(args.key, destination))

    elif args.command == "download-all":
        for path in await client.download_all(args.directory):
            print(path)

    elif args.command == "delete":
        await client.delete(args.key)
        print(f"Deleted {args.key}")

    return 0


async def _main(args: argparse.Namespace) -> int:
    async with GalleryClient(base_url=args.base_url) as client:
        return await run(args, client)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO if args.verbose else logging.WARNING,
    )

    try:
        return asyncio.run(_main(args))
    except GalleryClientError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except httpx.HTTPError as e:
        print(f"Error: could not reach {args.base_url}: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
