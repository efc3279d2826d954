import logging
import mimetypes
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import FileResponse, Response

from geoverify.api.deps import (
    get_background_tasks,
    get_inline_store,
    get_settings,
    get_store,
)
from geoverify.config import Settings
from geoverify.core.async_tasks import BackgroundTasks
from geoverify.core.exceptions import PhotoNotFoundError, VerificationNotFoundError
from geoverify.models.verification import Verification
from geoverify.schemas.verification import (
    LocationData,
    PhotoData,
    StatusUpdateRequest,
    StatusUpdateResponse,
    SubmissionData,
    VerificationDetailResponse,
    VerificationListResponse,
    VerificationRecordResponse,
    VerifyResponse,
)
from geoverify.services import verification_service, webhook_service
from geoverify.services.photo_service import PhotoBackends, get_photo_backends
from geoverify.services.record_builder import (
    STATUS_PENDING,
    STATUS_VERIFIED,
    VerificationMetadata,
)
from geoverify.services.verification_store import VerificationStore
from geoverify.storage.base import PhotoUpload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["verification"])


async def _read_upload(photo: UploadFile | None, max_bytes: int) -> PhotoUpload | None:
    if photo is None:
        return None
    # Read one byte past the limit so oversize uploads are detectable without
    # buffering arbitrarily large bodies
    content = await photo.read(max_bytes + 1)
    return PhotoUpload(
        content=content,
        filename=photo.filename or "",
        content_type=photo.content_type or "",
    )


def _iso_millis(timestamp_ms: int) -> str:
    # split in integers so the millisecond part is exact
    seconds, millis = divmod(timestamp_ms, 1000)
    dt = datetime.fromtimestamp(seconds, tz=timezone.utc) + timedelta(milliseconds=millis)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _to_verify_response(record: Verification) -> VerifyResponse:
    return VerifyResponse(
        transactionId=record.transaction_id,
        data=SubmissionData(
            location=LocationData(
                latitude=record.latitude,
                longitude=record.longitude,
                accuracy=record.accuracy,
            ),
            photo=PhotoData(size=record.photo_size, filename=record.photo_path),
            amount=record.amount,
            timestamp=_iso_millis(record.timestamp),
        ),
    )


def _to_record_response(record: Verification) -> VerificationRecordResponse:
    return VerificationRecordResponse(
        id=record.id,
        transaction_id=record.transaction_id,
        latitude=record.latitude,
        longitude=record.longitude,
        accuracy=record.accuracy,
        photo_path=record.photo_path,
        photo_inline=record.is_inline,
        photo_content_type=record.photo_content_type,
        photo_size=record.photo_size,
        timestamp=record.timestamp,
        amount=record.amount,
        recipient_name=record.recipient_name,
        recipient_upi=record.recipient_upi,
        note=record.note,
        status=record.status,
        created_at=record.created_at,
    )


def _forward(record: Verification, cfg: Settings, tasks: BackgroundTasks) -> None:
    if not cfg.webhook_url:
        return
    tasks.fire_and_forget(
        webhook_service.forward_verification(
            cfg.webhook_url,
            webhook_service.build_webhook_payload(record),
            timeout_seconds=cfg.webhook_timeout_seconds,
            max_retries=cfg.webhook_max_retries,
        ),
        task_name=f"webhook_{record.transaction_id}",
    )


async def _submit(
    store: VerificationStore,
    cfg: Settings,
    tasks: BackgroundTasks,
    *,
    status: str,
    latitude: str | None,
    longitude: str | None,
    accuracy: str | None,
    timestamp: str | None,
    amount: str | None,
    recipient_name: str | None,
    recipient_upi: str | None,
    note: str | None,
    photo: UploadFile | None,
) -> VerifyResponse:
    upload = await _read_upload(photo, cfg.max_photo_bytes)
    record = await verification_service.submit_verification(
        store,
        cfg,
        latitude=latitude,
        longitude=longitude,
        photo=upload,
        accuracy=accuracy,
        timestamp=timestamp,
        metadata=VerificationMetadata(
            amount=amount,
            recipient_name=recipient_name,
            recipient_upi=recipient_upi,
            note=note,
        ),
        status=status,
    )
    _forward(record, cfg, tasks)
    return _to_verify_response(record)


@router.post("/verify", response_model=VerifyResponse)
async def verify(
    latitude: str | None = Form(None),
    longitude: str | None = Form(None),
    accuracy: str | None = Form(None),
    timestamp: str | None = Form(None),
    amount: str | None = Form(None),
    recipient_name: str | None = Form(None, alias="recipientName"),
    recipient_upi: str | None = Form(None, alias="recipientUpi"),
    note: str | None = Form(None),
    photo: UploadFile | None = File(None),
    store: VerificationStore = Depends(get_store),
    cfg: Settings = Depends(get_settings),
    tasks: BackgroundTasks = Depends(get_background_tasks),
):
    """Full verification path: validated, photo in the configured backend."""
    return await _submit(
        store, cfg, tasks,
        status=STATUS_VERIFIED,
        latitude=latitude,
        longitude=longitude,
        accuracy=accuracy,
        timestamp=timestamp,
        amount=amount,
        recipient_name=recipient_name,
        recipient_upi=recipient_upi,
        note=note,
        photo=photo,
    )


@router.post("/verify/inline", response_model=VerifyResponse)
async def verify_inline(
    latitude: str | None = Form(None),
    longitude: str | None = Form(None),
    accuracy: str | None = Form(None),
    timestamp: str | None = Form(None),
    amount: str | None = Form(None),
    recipient_name: str | None = Form(None, alias="recipientName"),
    recipient_upi: str | None = Form(None, alias="recipientUpi"),
    note: str | None = Form(None),
    photo: UploadFile | None = File(None),
    store: VerificationStore = Depends(get_inline_store),
    cfg: Settings = Depends(get_settings),
    tasks: BackgroundTasks = Depends(get_background_tasks),
):
    """Simplified path: photo kept inline with the record, status pending."""
    return await _submit(
        store, cfg, tasks,
        status=STATUS_PENDING,
        latitude=latitude,
        longitude=longitude,
        accuracy=accuracy,
        timestamp=timestamp,
        amount=amount,
        recipient_name=recipient_name,
        recipient_upi=recipient_upi,
        note=note,
        photo=photo,
    )


@router.get("/verify/{transaction_id}", response_model=VerificationDetailResponse)
async def get_verification(
    transaction_id: str,
    store: VerificationStore = Depends(get_store),
):
    record = await store.read_one(transaction_id)
    return VerificationDetailResponse(data=_to_record_response(record))


@router.get("/verify/{transaction_id}/photo")
async def get_verification_photo(
    transaction_id: str,
    store: VerificationStore = Depends(get_store),
):
    record = await store.read_one(transaction_id)
    content = await store.read_photo(record)
    if content is None:
        raise PhotoNotFoundError()
    return Response(
        content=content,
        media_type=record.photo_content_type or "application/octet-stream",
    )


@router.patch("/verify/{transaction_id}/status", response_model=StatusUpdateResponse)
async def update_verification_status(
    transaction_id: str,
    req: StatusUpdateRequest,
    store: VerificationStore = Depends(get_store),
):
    updated = await store.update_status(transaction_id, req.status)
    if not updated:
        raise VerificationNotFoundError(transaction_id)
    logger.info("Verification %s status set to %s", transaction_id, req.status)
    return StatusUpdateResponse(
        transactionId=transaction_id,
        status=req.status,
        updated=updated,
    )


@router.get("/verifications", response_model=VerificationListResponse)
async def list_verifications(
    limit: int | None = Query(None),
    store: VerificationStore = Depends(get_store),
    cfg: Settings = Depends(get_settings),
):
    # Non-positive limits fall back to the default, like an absent one
    effective = limit if limit and limit > 0 else cfg.default_list_limit
    records = await store.read_all(effective)
    return VerificationListResponse(
        count=len(records),
        data=[_to_record_response(r) for r in records],
    )


@router.get("/photo/{filename}")
async def get_photo(
    filename: str,
    backends: PhotoBackends = Depends(get_photo_backends),
):
    path = backends.disk.resolve(filename)
    if path is None or not path.is_file():
        raise PhotoNotFoundError()
    media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return FileResponse(str(path), media_type=media_type)
