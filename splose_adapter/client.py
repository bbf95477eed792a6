"""Async Splose API client for a patient's upcoming appointments.
Authenticates with a static bearer API key.
"""
from __future__ import annotations
from datetime import datetime, timezone
import httpx
from pydantic import ValidationError
from .errors import Internal, NO_API_KEY, SPLOSE_ERROR, UNEXPECTED
from .log import log_error, log_info, Timer
from .models import RawAppointment, RawAppointmentList

_ERROR_BODY_LIMIT = 500

def iso_utc(moment: datetime) -> str:
    """Format like JavaScript's toISOString(): millisecond precision, Z suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

class SploseClient:
    def __init__(self, base_url: str, api_key: str | None, timeout: float = 15):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def fetch_upcoming_appointments(self, patient_id: str, now: datetime) -> list[RawAppointment]:
        """Return non-archived appointments for patient_id starting after now."""
        if not self._api_key:
            log_error("splose_not_configured", error_code="CONFIG_ERROR")
            raise Internal(NO_API_KEY)

        params = {
            "patientId": str(patient_id),
            "start_gt": iso_utc(now),
            "include_archived": "false",
        }
        with Timer() as t:
            try:
                async with httpx.AsyncClient(http2=True, timeout=self._timeout) as client:
                    resp = await client.get(f"{self._base_url}/appointments", headers=self._headers(), params=params)
                    if resp.is_success:
                        payload = resp.json()
            except (httpx.HTTPError, ValueError) as exc:
                log_error("splose_request_failed", error_code="TRANSPORT_ERROR", reason=repr(exc))
                raise Internal(UNEXPECTED) from exc

        if not resp.is_success:
            log_error(
                "splose_request_failed",
                error_code="UPSTREAM_ERROR",
                status_code=resp.status_code,
                body=resp.text[:_ERROR_BODY_LIMIT],
                execution_time_ms=t.duration_ms,
            )
            raise Internal(SPLOSE_ERROR)

        # a missing or non-list "data" means no appointments
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
            payload = {"data": []}
        try:
            appointments = RawAppointmentList.model_validate(payload).data
        except ValidationError as exc:
            log_error("splose_payload_invalid", error_code="SCHEMA_ERROR", errors=exc.error_count())
            raise Internal(UNEXPECTED) from exc

        log_info(
            "splose_appointments_fetched",
            count=len(appointments),
            status_code=resp.status_code,
            execution_time_ms=t.duration_ms,
        )
        return appointments
