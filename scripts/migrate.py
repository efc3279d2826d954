"""Apply or inspect schema migrations for the verification store.

Runs Alembic in-process against ``DATABASE_URL`` from the GeoVerify settings
and prepares the local storage layout (SQLite directory, photo directory)
before upgrading.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from alembic import command
from alembic.config import Config

from geoverify.config import settings
from geoverify.database import ensure_database_dir
from geoverify.storage.disk import DiskPhotoBackend


def _alembic_config() -> Config:
    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "alembic"))
    return cfg


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage GeoVerify database migrations.")
    sub = parser.add_subparsers(dest="command")

    upgrade = sub.add_parser("upgrade", help="Upgrade to a revision (default: head).")
    upgrade.add_argument("revision", nargs="?", default="head")

    downgrade = sub.add_parser("downgrade", help="Downgrade to a revision (default: one step back).")
    downgrade.add_argument("revision", nargs="?", default="-1")

    revision = sub.add_parser("revision", help="Autogenerate a new revision from the models.")
    revision.add_argument("message", nargs="?", default="auto migration")

    sub.add_parser("current", help="Show the current revision.")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    cfg = _alembic_config()
    name = args.command or "upgrade"

    if name == "upgrade":
        ensure_database_dir(settings.database_url)
        DiskPhotoBackend(settings.photo_store_path).ensure_root()
        command.upgrade(cfg, getattr(args, "revision", "head"))
        print(f"Database at revision {getattr(args, 'revision', 'head')}; photos in {os.path.abspath(settings.photo_store_path)}.")
    elif name == "downgrade":
        command.downgrade(cfg, args.revision)
    elif name == "revision":
        command.revision(cfg, message=args.message, autogenerate=True)
    elif name == "current":
        command.current(cfg, verbose=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
