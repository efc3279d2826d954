"""Submission validation: runs before anything is persisted.

Rules are applied in a fixed order so the first failure reported to the
client is deterministic:

1. required fields present (latitude, longitude, non-empty photo)
2. coordinates parse to finite floats within range; accuracy and timestamp,
   when given, are well formed
3. photo is an allowed image type (extension and MIME type)
4. photo fits within the size limit
5. payment metadata fits the stored column widths

The returned photo carries the bare MIME type (parameters stripped).
"""

import math
from dataclasses import dataclass, replace
from pathlib import Path

from geoverify.core.exceptions import (
    FieldTooLongError,
    InvalidCoordinateError,
    InvalidTimestampError,
    MissingFieldError,
    PayloadTooLargeError,
    UnsupportedMediaTypeError,
)
from geoverify.models.verification import Verification
from geoverify.storage.base import PhotoUpload
from geoverify.storage.disk import ALLOWED_EXTENSIONS

ALLOWED_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png"}
MAX_TIMESTAMP_MS = 253402300799999  # 9999-12-31T23:59:59.999Z

# metadata attribute -> form field name
METADATA_FIELDS = {
    "amount": "amount",
    "recipient_name": "recipientName",
    "recipient_upi": "recipientUpi",
    "note": "note",
}


@dataclass(frozen=True)
class ValidatedSubmission:
    latitude: float
    longitude: float
    accuracy: float | None
    timestamp: int | None
    photo: PhotoUpload


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_float(value) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


def parse_coordinates(latitude, longitude) -> tuple[float, float]:
    lat = _parse_float(latitude)
    lon = _parse_float(longitude)
    if lat is None or lon is None:
        raise InvalidCoordinateError()
    if not -90 <= lat <= 90 or not -180 <= lon <= 180:
        raise InvalidCoordinateError()
    return lat, lon


def parse_accuracy(accuracy) -> float | None:
    if _is_blank(accuracy):
        return None
    value = _parse_float(accuracy)
    if value is None or value < 0:
        raise InvalidCoordinateError("Invalid GPS accuracy")
    return value


def parse_timestamp(timestamp) -> int | None:
    if _is_blank(timestamp):
        return None
    if isinstance(timestamp, bool):
        raise InvalidTimestampError()
    if isinstance(timestamp, int):
        value = timestamp
    else:
        try:
            value = int(str(timestamp).strip())
        except ValueError:
            raise InvalidTimestampError() from None
    if not 0 <= value <= MAX_TIMESTAMP_MS:
        raise InvalidTimestampError()
    return value


def base_content_type(content_type: str | None) -> str:
    """``image/JPEG; name=x.jpg`` -> ``image/jpeg``."""
    return (content_type or "").split(";", 1)[0].strip().lower()


def is_allowed_image(photo: PhotoUpload) -> bool:
    extension = Path(photo.filename or "").suffix.lower()
    return extension in ALLOWED_EXTENSIONS and base_content_type(photo.content_type) in ALLOWED_MIME_TYPES


def _column_length(attr: str) -> int | None:
    return getattr(Verification.__table__.c[attr].type, "length", None)


def check_metadata_lengths(metadata) -> None:
    """Reject metadata values wider than their columns. ``metadata`` may be None."""
    if metadata is None:
        return
    for attr, field in METADATA_FIELDS.items():
        value = getattr(metadata, attr, None)
        max_length = _column_length(attr)
        if value and max_length is not None and len(value) > max_length:
            raise FieldTooLongError(field, max_length)


def validate_submission(
    latitude,
    longitude,
    photo: PhotoUpload | None,
    accuracy=None,
    timestamp=None,
    *,
    max_bytes: int,
    enforce_image_types: bool = True,
    metadata=None,
) -> ValidatedSubmission:
    missing = []
    if _is_blank(latitude):
        missing.append("latitude")
    if _is_blank(longitude):
        missing.append("longitude")
    if photo is None or photo.size == 0:
        missing.append("photo")
    if missing:
        raise MissingFieldError(missing)

    lat, lon = parse_coordinates(latitude, longitude)
    acc = parse_accuracy(accuracy)
    ts = parse_timestamp(timestamp)

    if enforce_image_types and not is_allowed_image(photo):
        raise UnsupportedMediaTypeError()

    if photo.size > max_bytes:
        raise PayloadTooLargeError(max_bytes)

    content_type = base_content_type(photo.content_type)
    if len(content_type) > _column_length("photo_content_type"):
        raise UnsupportedMediaTypeError()

    check_metadata_lengths(metadata)

    return ValidatedSubmission(
        latitude=lat,
        longitude=lon,
        accuracy=acc,
        timestamp=ts,
        photo=replace(photo, content_type=content_type),
    )
