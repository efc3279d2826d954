"""Webhook fan-out: forward committed verifications to an external URL.

Delivery happens after the response has been decided; failures are logged
and never reach the client.
"""

import asyncio
import logging
from datetime import datetime, timezone

import httpx

from geoverify.models.verification import Verification

logger = logging.getLogger(__name__)


def _iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def build_webhook_payload(record: Verification) -> dict:
    return {
        "transactionId": record.transaction_id,
        "latitude": record.latitude,
        "longitude": record.longitude,
        "accuracy": record.accuracy,
        "amount": record.amount,
        "recipientName": record.recipient_name,
        "recipientUpi": record.recipient_upi,
        "note": record.note,
        "photoSize": record.photo_size,
        "timestamp": record.timestamp,
        "status": record.status,
        "createdAt": _iso(record.created_at),
    }


async def deliver(url: str, payload: dict, *, timeout_seconds: float = 10.0) -> bool:
    """POST ``payload`` once. Returns True on a 2xx response."""
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(url, json=payload, timeout=timeout_seconds)
        if resp.is_success:
            return True
        logger.warning("Webhook returned %s for %s", resp.status_code, payload.get("transactionId"))
        return False
    except httpx.HTTPError as exc:
        logger.warning("Webhook delivery failed for %s: %s", payload.get("transactionId"), exc)
        return False


async def forward_verification(
    url: str,
    payload: dict,
    *,
    timeout_seconds: float = 10.0,
    max_retries: int = 3,
    backoff_base: float = 1.0,
) -> bool:
    """Deliver with retry and exponential backoff. Never raises on HTTP failure."""
    attempts = max(1, max_retries)
    for attempt in range(attempts):
        if await deliver(url, payload, timeout_seconds=timeout_seconds):
            return True
        if attempt < attempts - 1:
            await asyncio.sleep(backoff_base * 2 ** attempt)
    logger.error(
        "Giving up on webhook for %s after %d attempt(s)",
        payload.get("transactionId"), attempts,
    )
    return False
