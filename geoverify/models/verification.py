from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
)

from geoverify.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class Verification(Base):
    __tablename__ = "verifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(String(40), unique=True, nullable=False)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    accuracy = Column(Float, nullable=True)  # metres, as reported by the device

    # Exactly one photo representation is populated, depending on the backend:
    # disk -> photo_path holds the stored filename, inline -> photo_data holds base64
    photo_path = Column(String(255), nullable=True)
    photo_data = Column(Text, nullable=True)
    photo_content_type = Column(String(50), nullable=True)
    photo_size = Column(Integer, nullable=False)

    timestamp = Column(BigInteger, nullable=False)  # epoch millis from the client

    # Opaque payment metadata, passed through untouched
    amount = Column(String(32), nullable=False, default="0")
    recipient_name = Column(String(255), nullable=False, default="")
    recipient_upi = Column(String(255), nullable=False, default="")
    note = Column(Text, nullable=False, default="")

    # pending | verified (other values may be set through status updates)
    status = Column(String(20), nullable=False, default="pending", server_default="pending")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("photo_size > 0", name="ck_verifications_photo_size"),
        CheckConstraint(
            "photo_path IS NOT NULL OR photo_data IS NOT NULL",
            name="ck_verifications_photo_ref",
        ),
        Index("idx_verifications_created_at", "created_at"),
        Index("idx_verifications_status", "status"),
    )

    @property
    def is_inline(self) -> bool:
        return self.photo_data is not None
