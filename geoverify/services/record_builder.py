import logging
import secrets
import string
import time
from dataclasses import dataclass, replace

from geoverify.core.exceptions import DuplicateTransactionIdError
from geoverify.services.validation_service import ValidatedSubmission
from geoverify.storage.base import PhotoUpload

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_uppercase
TOKEN_LENGTH = 9

STATUS_PENDING = "pending"
STATUS_VERIFIED = "verified"


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_transaction_id(prefix: str = "TXN", timestamp_ms: int | None = None) -> str:
    """Prefix + epoch millis + 9 random uppercase base-36 characters."""
    if timestamp_ms is None:
        timestamp_ms = now_ms()
    token = "".join(secrets.choice(_BASE36) for _ in range(TOKEN_LENGTH))
    return f"{prefix}{timestamp_ms}{token}"


@dataclass(frozen=True)
class VerificationMetadata:
    amount: str | None = None
    recipient_name: str | None = None
    recipient_upi: str | None = None
    note: str | None = None


@dataclass(frozen=True)
class VerificationDraft:
    """A fully-defaulted record that has not been written yet."""

    transaction_id: str
    latitude: float
    longitude: float
    accuracy: float | None
    timestamp: int
    amount: str
    recipient_name: str
    recipient_upi: str
    note: str
    status: str
    photo: PhotoUpload


def build_record(
    submission: ValidatedSubmission,
    metadata: VerificationMetadata | None = None,
    *,
    status: str = STATUS_VERIFIED,
    prefix: str = "TXN",
) -> VerificationDraft:
    metadata = metadata or VerificationMetadata()
    return VerificationDraft(
        transaction_id=generate_transaction_id(prefix),
        latitude=submission.latitude,
        longitude=submission.longitude,
        accuracy=submission.accuracy,
        timestamp=submission.timestamp if submission.timestamp is not None else now_ms(),
        amount=metadata.amount or "0",
        recipient_name=metadata.recipient_name or "",
        recipient_upi=metadata.recipient_upi or "",
        note=metadata.note or "",
        status=status,
        photo=submission.photo,
    )


async def create_verification(store, draft: VerificationDraft, *, max_attempts: int = 3, prefix: str = "TXN"):
    """Write ``draft``, regenerating its transaction id on collision.

    The store's unique constraint is the authority on uniqueness; after
    ``max_attempts`` collisions the last DuplicateTransactionIdError is raised.
    """
    last_error: DuplicateTransactionIdError | None = None
    for attempt in range(max_attempts):
        if attempt:
            draft = replace(draft, transaction_id=generate_transaction_id(prefix))
        try:
            return await store.write(draft)
        except DuplicateTransactionIdError as exc:
            last_error = exc
            logger.warning(
                "Transaction ID collision on %s (attempt %d/%d)",
                exc.transaction_id, attempt + 1, max_attempts,
            )
    raise last_error
