"""getClientAppointments: upcoming Splose appointments for the logged-in client.

The pipeline is linear: resolve identity, resolve the Splose patient id,
fetch future appointments, normalize. Any step may fail with a
HandlerError, which reaches the caller unchanged.
"""
from __future__ import annotations
from enum import Enum
from pydantic import ValidationError
from .config import AppContext
from .errors import HandlerError, Internal, UNEXPECTED
from .identity import IdentityResolver
from .log import log_error, log_info, log_warning, Timer
from .lookup import PatientIdLookup
from .models import AppointmentsRequest, AppointmentsResponse, CallableRequest
from .normalize import normalize_appointments


class HandlerState(str, Enum):
    RESOLVING_IDENTITY = "resolving_identity"
    RESOLVING_PATIENT_ID = "resolving_patient_id"
    FETCHING_APPOINTMENTS = "fetching_appointments"
    NORMALIZING = "normalizing"
    RESPONDING = "responding"
    FAILED = "failed"


def read_payload(data, uid: str) -> AppointmentsRequest:
    """Parse the callable payload; an unreadable one is treated as empty."""
    if data is None:
        return AppointmentsRequest()
    try:
        return AppointmentsRequest.model_validate(data)
    except ValidationError as exc:
        log_warning("payload_ignored", uid=uid, errors=exc.error_count())
        return AppointmentsRequest()


class AppointmentsHandler:
    def __init__(self, context: AppContext):
        settings = context.settings
        self._context = context
        self._identity = IdentityResolver.default(context.verifier)
        self._lookup = PatientIdLookup.default(
            context.store,
            allow_override=settings.allow_patient_id_override,
            override_claim=settings.patient_override_claim,
        )

    async def __call__(self, request: CallableRequest) -> AppointmentsResponse:
        state = HandlerState.RESOLVING_IDENTITY
        uid = None
        try:
            with Timer() as t:
                identity = await self._identity.resolve(request)
                uid = identity.uid

                state = HandlerState.RESOLVING_PATIENT_ID
                patient_id = await self._lookup.resolve(identity, read_payload(request.data, uid))

                state = HandlerState.FETCHING_APPOINTMENTS
                raw = await self._context.splose.fetch_upcoming_appointments(patient_id, now=self._context.now())

                state = HandlerState.NORMALIZING
                appointments = normalize_appointments(raw)

                state = HandlerState.RESPONDING
        except HandlerError as exc:
            log_error("get_client_appointments_failed", error_code=exc.code, state=HandlerState.FAILED.value, failed_at=state.value, uid=uid)
            raise
        except Exception as exc:
            log_error(
                "get_client_appointments_failed",
                error_code="UNEXPECTED",
                state=HandlerState.FAILED.value,
                failed_at=state.value,
                uid=uid,
                reason=repr(exc),
            )
            raise Internal(UNEXPECTED) from exc

        log_info(
            "get_client_appointments",
            uid=uid,
            count=len(appointments),
            execution_time_ms=t.duration_ms,
        )
        return AppointmentsResponse(appointments=appointments)
