"""Remove stored photos that no committed verification references."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from geoverify.config import settings
from geoverify.database import create_engine, create_session_factory, dispose_engine
from geoverify.services.verification_store import collect_orphaned_photos
from geoverify.storage.disk import DiskPhotoBackend


async def _sweep(grace_seconds: int) -> list[str]:
    engine = create_engine(settings.database_url)
    try:
        async with create_session_factory(engine)() as db:
            return await collect_orphaned_photos(
                db,
                DiskPhotoBackend(settings.photo_store_path),
                grace_seconds=grace_seconds,
            )
    finally:
        await dispose_engine(engine)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete orphaned photo files from the photo store.")
    parser.add_argument(
        "--grace-seconds",
        type=int,
        default=settings.orphan_grace_seconds,
        help="Only remove files older than this many seconds.",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    removed = asyncio.run(_sweep(args.grace_seconds))
    for name in removed:
        print(f"removed {name}")
    print(f"{len(removed)} orphaned photo(s) removed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
