from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator


class LocationData(BaseModel):
    latitude: float
    longitude: float
    accuracy: float | None = None


class PhotoData(BaseModel):
    size: int
    filename: str | None = None


class SubmissionData(BaseModel):
    location: LocationData
    photo: PhotoData
    amount: str
    timestamp: str  # ISO-8601


class VerifyResponse(BaseModel):
    success: bool = True
    transactionId: str
    message: str = "Verification successful"
    data: SubmissionData


class VerificationRecordResponse(BaseModel):
    id: int
    transaction_id: str
    latitude: float
    longitude: float
    accuracy: float | None = None
    photo_path: str | None = None
    photo_inline: bool = False
    photo_content_type: str | None = None
    photo_size: int
    timestamp: int
    amount: str
    recipient_name: str
    recipient_upi: str
    note: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive datetimes; everything is stored in UTC
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class VerificationDetailResponse(BaseModel):
    success: bool = True
    data: VerificationRecordResponse


class VerificationListResponse(BaseModel):
    success: bool = True
    count: int
    data: list[VerificationRecordResponse]


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., min_length=1, max_length=20)


class StatusUpdateResponse(BaseModel):
    success: bool = True
    transactionId: str
    status: str
    updated: int
