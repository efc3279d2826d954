"""Tests for VerificationStore reads/writes and the orphaned photo sweep."""

import asyncio
import os
import time
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from geoverify.core.exceptions import (
    PhotoStorageError,
    StoreUnavailableError,
    VerificationNotFoundError,
)
from geoverify.models.verification import Verification
from geoverify.services.verification_store import VerificationStore, collect_orphaned_photos


async def _count(db) -> int:
    return (await db.execute(select(func.count(Verification.id)))).scalar_one()


# ---------------------------------------------------------------------------
# write / read_one
# ---------------------------------------------------------------------------

class TestWrite:
    async def test_write_persists_row_and_file(self, store, make_draft, disk):
        draft = make_draft(size=512000, amount="250", recipient_name="Ravi")
        record = await store.write(draft)

        assert record.transaction_id == draft.transaction_id
        assert record.photo_size == 512000
        assert record.photo_content_type == "image/jpeg"
        assert record.photo_data is None
        assert record.status == "verified"
        assert record.created_at is not None
        assert disk.exists(record.photo_path)

    async def test_read_one_returns_written_record(self, store, make_draft):
        written = await store.write(make_draft(timestamp="1700000000000", note="groceries"))
        tid = written.transaction_id

        record = await store.read_one(tid)
        assert record.transaction_id == tid
        assert record.timestamp == 1700000000000
        assert record.note == "groceries"
        assert record.latitude == pytest.approx(12.9716)

    async def test_read_one_missing(self, store):
        with pytest.raises(VerificationNotFoundError) as exc:
            await store.read_one("TXN0000000000000NOPE00000")
        assert exc.value.status_code == 404

    async def test_inline_write_keeps_photo_in_row(self, inline_store, make_draft, disk):
        record = await inline_store.write(make_draft(size=1000, status="pending"))

        assert record.photo_path is None
        assert record.photo_data
        assert record.is_inline
        assert record.status == "pending"
        assert disk.photo_files() == []
        assert len(await inline_store.read_photo(record)) == 1000

    async def test_inline_photo_read_through_backend(self, inline_store, make_draft, jpeg):
        record = await inline_store.write(make_draft(size=640))

        with patch.object(inline_store.inline, "load", wraps=inline_store.inline.load) as load:
            assert await inline_store.read_photo(record) == jpeg(640)
        load.assert_awaited_once()

    async def test_corrupt_inline_photo_reads_as_missing(self, store):
        record = Verification(photo_data="not base64!!", photo_size=10, photo_content_type="image/jpeg")
        assert await store.read_photo(record) is None

    async def test_read_photo_from_disk(self, store, make_draft, jpeg):
        record = await store.write(make_draft(size=777))
        assert await store.read_photo(record) == jpeg(777)

    async def test_read_photo_missing_file(self, store, make_draft, disk):
        record = await store.write(make_draft())
        disk.delete(record.photo_path)
        assert await store.read_photo(record) is None

    async def test_photo_failure_leaves_no_row(self, store, make_draft, db):
        with patch.object(store.photos, "persist", AsyncMock(side_effect=OSError("disk full"))):
            with pytest.raises(PhotoStorageError) as exc:
                await store.write(make_draft())

        assert exc.value.status_code == 500
        assert await _count(db) == 0

    async def test_photo_timeout(self, db, disk, make_draft):
        async def _slow(photo):
            await asyncio.sleep(1)

        store = VerificationStore(db, disk, timeout_seconds=0.01)
        with patch.object(disk, "persist", _slow):
            with pytest.raises(PhotoStorageError):
                await store.write(make_draft())
        assert await _count(db) == 0

    async def test_commit_failure_discards_photo(self, store, make_draft, disk, db):
        with patch.object(db, "commit", AsyncMock(side_effect=asyncio.TimeoutError())):
            with pytest.raises(StoreUnavailableError) as exc:
                await store.write(make_draft())

        assert exc.value.detail == "Failed to store verification"
        assert disk.photo_files() == []
        assert await _count(db) == 0


# ---------------------------------------------------------------------------
# read_all
# ---------------------------------------------------------------------------

class TestReadAll:
    async def test_empty(self, store):
        assert await store.read_all() == []

    async def test_newest_first(self, store, make_draft):
        ids = []
        for _ in range(3):
            ids.append((await store.write(make_draft())).transaction_id)

        records = await store.read_all()
        assert [r.transaction_id for r in records] == list(reversed(ids))

    async def test_limit(self, store, make_draft):
        for _ in range(5):
            await store.write(make_draft(size=100))
        assert len(await store.read_all(limit=2)) == 2

    async def test_limit_clamped_to_maximum(self, db, disk, make_draft):
        store = VerificationStore(db, disk, max_list_limit=3)
        for _ in range(5):
            await store.write(make_draft(size=100))
        assert len(await store.read_all(limit=500)) == 3

    async def test_limit_below_one_returns_one(self, store, make_draft):
        for _ in range(2):
            await store.write(make_draft(size=100))
        assert len(await store.read_all(limit=0)) == 1


# ---------------------------------------------------------------------------
# update_status
# ---------------------------------------------------------------------------

class TestUpdateStatus:
    async def test_updates_existing(self, store, make_draft, db):
        tid = (await store.write(make_draft(status="pending"))).transaction_id

        assert await store.update_status(tid, "verified") == 1

        db.expire_all()
        record = await store.read_one(tid)
        assert record.status == "verified"

    async def test_unknown_id_changes_nothing(self, store):
        assert await store.update_status("TXN0000000000000NOPE00000", "verified") == 0

    async def test_is_idempotent(self, store, make_draft):
        tid = (await store.write(make_draft())).transaction_id
        assert await store.update_status(tid, "rejected") == 1
        assert await store.update_status(tid, "rejected") == 1


# ---------------------------------------------------------------------------
# collect_orphaned_photos
# ---------------------------------------------------------------------------

def _age(path, seconds):
    old = time.time() - seconds
    os.utime(path, (old, old))


class TestOrphanSweep:
    async def test_removes_unreferenced_old_files(self, store, make_draft, disk, photo_dir, db):
        kept = (await store.write(make_draft())).photo_path
        orphan = photo_dir / "photo-1700000000000-123.jpg"
        orphan.write_bytes(b"orphan")
        _age(photo_dir / kept, 3600)
        _age(orphan, 3600)

        removed = await collect_orphaned_photos(db, disk, grace_seconds=900)

        assert removed == [orphan.name]
        assert not orphan.exists()
        assert disk.exists(kept)

    async def test_recent_files_are_left_alone(self, disk, photo_dir, db):
        fresh = photo_dir / "photo-1700000000000-456.jpg"
        fresh.write_bytes(b"in flight")

        assert await collect_orphaned_photos(db, disk, grace_seconds=900) == []
        assert fresh.exists()

    async def test_unrelated_files_are_left_alone(self, disk, photo_dir, db):
        other = photo_dir / "README.txt"
        other.write_text("not a photo")
        _age(other, 3600)

        assert await collect_orphaned_photos(db, disk, grace_seconds=0) == []
        assert other.exists()

    async def test_explicit_clock(self, disk, photo_dir, db):
        orphan = photo_dir / "photo-1700000000000-789.png"
        orphan.write_bytes(b"x")
        now = orphan.stat().st_mtime

        assert await collect_orphaned_photos(db, disk, grace_seconds=60, now=now + 30) == []
        assert await collect_orphaned_photos(db, disk, grace_seconds=60, now=now + 61) == [orphan.name]

    async def test_file_vanishing_mid_sweep_is_skipped(self, disk, photo_dir, db):
        vanished = photo_dir / "photo-1700000000000-111.jpg"
        orphan = photo_dir / "photo-1700000000000-222.jpg"
        orphan.write_bytes(b"x")
        _age(orphan, 3600)

        with patch.object(disk, "photo_files", return_value=[vanished, orphan]):
            removed = await collect_orphaned_photos(db, disk, grace_seconds=900)

        assert removed == [orphan.name]

    async def test_missing_photo_dir(self, db, tmp_path):
        from geoverify.storage.disk import DiskPhotoBackend

        assert await collect_orphaned_photos(db, DiskPhotoBackend(str(tmp_path / "absent"))) == []
