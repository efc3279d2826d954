"""Drop and recreate the verifications table with optional upload cleanup."""

from __future__ import annotations

import argparse
import asyncio
import os
import shutil
import sys
from pathlib import Path

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from geoverify.config import settings
from geoverify.database import create_engine, dispose_engine, drop_db, init_db


def _purge_uploads() -> None:
    folder = Path(settings.photo_store_path)
    if folder.exists():
        shutil.rmtree(folder, ignore_errors=True)
        print(f"Purged stored photos in {folder}.")
    else:
        print("No stored photos found.")


async def _reset_db() -> None:
    engine = create_engine(settings.database_url)
    try:
        print("Dropping all tables...")
        await drop_db(engine)
        print("Creating all tables...")
        await init_db(engine)
        print("Database reset complete.")
    finally:
        await dispose_engine(engine)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reset the local database and optionally purge stored photos.")
    parser.add_argument(
        "--purge-uploads",
        action="store_true",
        help="Also remove photo files from the photo store directory.",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    if args.purge_uploads:
        _purge_uploads()
    asyncio.run(_reset_db())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
