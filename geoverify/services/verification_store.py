"""Verification persistence: photo artifact + relational row.

A write persists the photo first and then commits the row. If the row
cannot be committed the artifact is discarded best-effort; anything left
behind is an orphan that ``collect_orphaned_photos`` removes later. Reads
only ever see committed rows, so an orphan can never surface as a record.
"""

import asyncio
import logging
import time

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from geoverify.core.exceptions import (
    DuplicateTransactionIdError,
    PhotoStorageError,
    StoreUnavailableError,
    VerificationNotFoundError,
)
from geoverify.models.verification import Verification
from geoverify.services.record_builder import VerificationDraft
from geoverify.storage.base import PhotoArtifact, PhotoBackend
from geoverify.storage.disk import DiskPhotoBackend
from geoverify.storage.inline import InlinePhotoBackend

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 100
MAX_LIST_LIMIT = 1000


def artifact_for(record: Verification) -> PhotoArtifact:
    return PhotoArtifact(
        size=record.photo_size,
        content_type=record.photo_content_type or "",
        photo_path=record.photo_path,
        photo_data=record.photo_data,
    )


class VerificationStore:
    """Reads and writes verification records for one database session."""

    def __init__(
        self,
        db: AsyncSession,
        photos: PhotoBackend,
        *,
        disk: DiskPhotoBackend | None = None,
        timeout_seconds: float = 10.0,
        max_list_limit: int = MAX_LIST_LIMIT,
    ):
        self.db = db
        self.photos = photos
        self.disk = disk if disk is not None else (photos if isinstance(photos, DiskPhotoBackend) else None)
        self.inline = photos if isinstance(photos, InlinePhotoBackend) else InlinePhotoBackend()
        self.timeout_seconds = timeout_seconds
        self.max_list_limit = max_list_limit

    async def write(self, draft: VerificationDraft) -> Verification:
        try:
            artifact = await asyncio.wait_for(
                self.photos.persist(draft.photo), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error("Timed out storing photo for %s", draft.transaction_id)
            raise PhotoStorageError() from None
        except OSError as exc:
            logger.error("Failed to store photo for %s: %s", draft.transaction_id, exc)
            raise PhotoStorageError() from None

        record = Verification(
            transaction_id=draft.transaction_id,
            latitude=draft.latitude,
            longitude=draft.longitude,
            accuracy=draft.accuracy,
            photo_path=artifact.photo_path,
            photo_data=artifact.photo_data,
            photo_content_type=artifact.content_type or None,
            photo_size=artifact.size,
            timestamp=draft.timestamp,
            amount=draft.amount,
            recipient_name=draft.recipient_name,
            recipient_upi=draft.recipient_upi,
            note=draft.note,
            status=draft.status,
        )

        try:
            self.db.add(record)
            await asyncio.wait_for(self.db.commit(), timeout=self.timeout_seconds)
        except IntegrityError:
            await self._abort(artifact)
            if await self._transaction_id_taken(draft.transaction_id):
                raise DuplicateTransactionIdError(draft.transaction_id) from None
            logger.exception("Integrity error inserting %s", draft.transaction_id)
            raise StoreUnavailableError() from None
        except asyncio.TimeoutError:
            await self._abort(artifact)
            logger.error("Timed out committing %s", draft.transaction_id)
            raise StoreUnavailableError() from None
        except SQLAlchemyError:
            await self._abort(artifact)
            logger.exception("Database error inserting %s", draft.transaction_id)
            raise StoreUnavailableError() from None

        await self.db.refresh(record)
        return record

    async def read_one(self, transaction_id: str) -> Verification:
        result = await self.db.execute(
            select(Verification).where(Verification.transaction_id == transaction_id)
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise VerificationNotFoundError(transaction_id)
        return record

    async def read_all(self, limit: int = DEFAULT_LIST_LIMIT) -> list[Verification]:
        limit = max(1, min(int(limit), self.max_list_limit))
        result = await self.db.execute(
            select(Verification)
            .order_by(Verification.created_at.desc(), Verification.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def update_status(self, transaction_id: str, status: str) -> int:
        """Set ``status`` on a record. Returns the number of rows changed (0 or 1)."""
        try:
            result = await self.db.execute(
                update(Verification)
                .where(Verification.transaction_id == transaction_id)
                .values(status=status)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Database error updating status of %s", transaction_id)
            raise StoreUnavailableError("Failed to update verification") from None
        return result.rowcount or 0

    async def read_photo(self, record: Verification) -> bytes | None:
        artifact = artifact_for(record)
        if artifact.photo_data is not None:
            return await self.inline.load(artifact)
        if self.disk is None:
            return None
        return await self.disk.load(artifact)

    async def _abort(self, artifact: PhotoArtifact) -> None:
        await self.db.rollback()
        try:
            await self.photos.discard(artifact)
        except OSError:
            logger.warning(
                "Could not discard photo %s; leaving it for the orphan sweep",
                artifact.photo_path,
            )

    async def _transaction_id_taken(self, transaction_id: str) -> bool:
        result = await self.db.execute(
            select(Verification.id).where(Verification.transaction_id == transaction_id)
        )
        return result.first() is not None


async def collect_orphaned_photos(
    db: AsyncSession,
    disk: DiskPhotoBackend,
    *,
    grace_seconds: int = 900,
    now: float | None = None,
) -> list[str]:
    """Delete stored photo files that no verification references.

    Only files matching the generated name pattern and older than
    ``grace_seconds`` are considered, so writes still in flight are left alone.
    """
    now = time.time() if now is None else now
    candidates = []
    for path in await asyncio.to_thread(disk.photo_files):
        try:
            mtime = path.stat().st_mtime
        except FileNotFoundError:
            # removed since it was listed
            continue
        if now - mtime >= grace_seconds:
            candidates.append(path)
    if not candidates:
        return []

    names = [path.name for path in candidates]
    result = await db.execute(
        select(Verification.photo_path).where(Verification.photo_path.in_(names))
    )
    referenced = set(result.scalars().all())

    removed = []
    for name in names:
        if name in referenced:
            continue
        if await asyncio.to_thread(disk.delete, name):
            removed.append(name)
    if removed:
        logger.info("Removed %d orphaned photo(s)", len(removed))
    return removed
