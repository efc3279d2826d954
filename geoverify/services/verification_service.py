import logging

from geoverify.config import Settings
from geoverify.models.verification import Verification
from geoverify.services.record_builder import (
    VerificationMetadata,
    build_record,
    create_verification,
)
from geoverify.services.validation_service import validate_submission
from geoverify.services.verification_store import VerificationStore
from geoverify.storage.base import PhotoUpload

logger = logging.getLogger(__name__)


async def submit_verification(
    store: VerificationStore,
    cfg: Settings,
    *,
    latitude,
    longitude,
    photo: PhotoUpload | None,
    accuracy=None,
    timestamp=None,
    metadata: VerificationMetadata | None = None,
    status: str,
) -> Verification:
    """Validate, build and persist one submission.

    Validation errors are raised before the store is touched.
    """
    submission = validate_submission(
        latitude,
        longitude,
        photo,
        accuracy=accuracy,
        timestamp=timestamp,
        max_bytes=cfg.max_photo_bytes,
        enforce_image_types=cfg.enforce_image_types,
        metadata=metadata,
    )
    draft = build_record(
        submission,
        metadata,
        status=status,
        prefix=cfg.transaction_id_prefix,
    )
    record = await create_verification(
        store,
        draft,
        max_attempts=cfg.transaction_id_max_attempts,
        prefix=cfg.transaction_id_prefix,
    )

    accuracy_label = f"±{record.accuracy}m" if record.accuracy is not None else "accuracy unknown"
    logger.info(
        "Verification saved: %s at %s, %s (%s), photo %.2f KB via %s",
        record.transaction_id,
        record.latitude,
        record.longitude,
        accuracy_label,
        record.photo_size / 1024,
        store.photos.name,
    )
    return record
