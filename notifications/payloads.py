"""
Typed notification payloads.

Every notification carries a ``kind`` tag and a payload whose shape is fixed by
that tag. Consumers (renderers, the feed serializer, the client store) match on
the kind instead of probing an open dictionary for optional keys.
"""
from dataclasses import MISSING, asdict, dataclass, fields
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Union

from django.utils.dateparse import parse_datetime


class NotificationKind(Enum):
    GENERAL = 'general'
    BOOKING = 'booking'
    VERIFICATION_CALL = 'verification_call'
    DOCUMENT_REJECTED = 'document_rejected'
    PAYMENT = 'payment'


class PayloadError(ValueError):
    """Raised when a payload does not match the shape its kind requires."""


@dataclass(frozen=True)
class GeneralPayload:
    pass


@dataclass(frozen=True)
class BookingPayload:
    booking_id: str
    session_at: datetime
    meeting_url: Optional[str] = None


@dataclass(frozen=True)
class VerificationCallPayload:
    scheduled_at: datetime
    meeting_url: Optional[str] = None
    platform: Optional[str] = None


@dataclass(frozen=True)
class DocumentRejectedPayload:
    document_type: str
    reason: str


@dataclass(frozen=True)
class PaymentPayload:
    amount: Decimal
    currency: str
    reference: Optional[str] = None


Payload = Union[GeneralPayload, BookingPayload, VerificationCallPayload,
                DocumentRejectedPayload, PaymentPayload]

PAYLOAD_TYPES = {
    NotificationKind.GENERAL: GeneralPayload,
    NotificationKind.BOOKING: BookingPayload,
    NotificationKind.VERIFICATION_CALL: VerificationCallPayload,
    NotificationKind.DOCUMENT_REJECTED: DocumentRejectedPayload,
    NotificationKind.PAYMENT: PaymentPayload,
}


def _to_datetime(name: str, value: Any) -> datetime:
    parsed = value if isinstance(value, datetime) else None
    if isinstance(value, str):
        parsed = parse_datetime(value)
    if parsed is None:
        raise PayloadError(f"'{name}' must be an ISO-8601 datetime")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _to_decimal(name: str, value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError):
        raise PayloadError(f"'{name}' must be a number")


def parse_payload(kind, data: Optional[Dict[str, Any]]) -> Payload:
    """
    Build the payload dataclass for ``kind`` from a JSON-like mapping.

    Unknown keys are ignored; missing required keys raise PayloadError.
    """
    kind = NotificationKind(kind)
    payload_type = PAYLOAD_TYPES[kind]
    data = data or {}

    values = {}
    for field in fields(payload_type):
        if field.name not in data or data[field.name] in (None, ''):
            if field.default is not MISSING:
                continue
            raise PayloadError(f"'{field.name}' is required for {kind.value} notifications")
        values[field.name] = data[field.name]

    for name in ('session_at', 'scheduled_at'):
        if name in values:
            values[name] = _to_datetime(name, values[name])
    if 'amount' in values:
        values['amount'] = _to_decimal('amount', values['amount'])
    for name in ('booking_id', 'document_type', 'reason', 'currency', 'reference'):
        if name in values:
            values[name] = str(values[name])

    return payload_type(**values)


def payload_to_dict(payload: Payload) -> Dict[str, Any]:
    data = {}
    for key, value in asdict(payload).items():
        if value is None:
            continue
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            value = str(value)
        data[key] = value
    return data


def scheduled_event_at(payload: Payload) -> Optional[datetime]:
    """Timestamp of the external event a payload points at, if its kind has one."""
    if isinstance(payload, VerificationCallPayload):
        return payload.scheduled_at
    if isinstance(payload, BookingPayload):
        return payload.session_at
    return None


def describe(payload: Payload) -> str:
    """Short human summary used in email metadata and toasts."""
    if isinstance(payload, VerificationCallPayload):
        return f"Verification call at {payload.scheduled_at:%b %d, %Y %H:%M}"
    if isinstance(payload, BookingPayload):
        return f"Session at {payload.session_at:%b %d, %Y %H:%M}"
    if isinstance(payload, DocumentRejectedPayload):
        return f"{payload.document_type} rejected: {payload.reason}"
    if isinstance(payload, PaymentPayload):
        return f"{payload.amount} {payload.currency}"
    if isinstance(payload, GeneralPayload):
        return ''
    raise TypeError(f"Unsupported payload type: {type(payload).__name__}")
