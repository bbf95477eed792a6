from __future__ import annotations
from datetime import datetime, timezone
from typing import Iterable
from .log import log_warning
from .models import AppointmentPatient, NormalizedAppointment, RawAppointment


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 dateTime; offset-less values are taken as UTC."""
    if not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_appointment(raw: RawAppointment) -> NormalizedAppointment:
    first = raw.appointment_patients[0] if raw.appointment_patients else None
    if first is None:
        first = AppointmentPatient()
    return NormalizedAppointment(
        id=raw.id,
        start=raw.start,
        end=raw.end,
        is_unavailable_block=bool(raw.is_unavailable_block),
        pricing=raw.pricing,
        total=raw.total,
        status=first.status,
        cancellation_reason=first.cancellation_reason,
        cancellation_rate=first.cancellation_rate,
        note=raw.note or "",
        location=raw.location,
        practitioner=raw.practitioner,
    )


def normalize_appointments(raw_appointments: Iterable[RawAppointment]) -> list[NormalizedAppointment]:
    """Reshape and order by start, earliest first.

    Records whose start cannot be parsed are kept and placed after the
    dated ones, in their original order.
    """
    keyed = []
    for raw in raw_appointments:
        appointment = normalize_appointment(raw)
        start = parse_timestamp(appointment.start)
        if start is None:
            log_warning("normalize_bad_timestamp", appointment_id=appointment.id)
        keyed.append((start, appointment))

    # sorted() is stable, so equal starts keep input order
    keyed = sorted(keyed, key=lambda pair: (pair[0] is None, pair[0] or datetime.min.replace(tzinfo=timezone.utc)))
    return [appointment for _, appointment in keyed]
