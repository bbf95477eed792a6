from typing import Any
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel
from .log import log_warning

class CallerIdentity(BaseModel):
    """Verified caller. Built once per request, never persisted."""
    model_config = ConfigDict(frozen=True)

    uid: str
    email: str | None = None
    claims: dict[str, Any] = Field(default_factory=dict)

class LookupRecord(BaseModel):
    """A clients/{uid} document as far as this service reads it."""
    model_config = ConfigDict(frozen=True)

    key: str
    email: str | None = None
    external_patient_id: str | None = None

class AppointmentPatient(BaseModel):
    """One entry of a Splose appointment's appointmentPatients list.

    Values of the wrong type become None rather than failing the batch.
    """
    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)

    status: str | None = None
    cancellation_reason: str | None = None
    cancellation_rate: int | float | None = None

    @field_validator("status", "cancellation_reason", mode="before")
    @classmethod
    def _text_or_none(cls, v, info: ValidationInfo):
        if v is None or isinstance(v, str):
            return v
        log_warning("appointment_patient_field_dropped", field=info.field_name, type=type(v).__name__)
        return None

    @field_validator("cancellation_rate", mode="before")
    @classmethod
    def _number_or_none(cls, v, info: ValidationInfo):
        if v is None or (isinstance(v, (int, float)) and not isinstance(v, bool)):
            return v
        if isinstance(v, str):
            try:
                return int(v)
            except ValueError:
                try:
                    return float(v)
                except ValueError:
                    pass
        log_warning("appointment_patient_field_dropped", field=info.field_name, type=type(v).__name__)
        return None

class RawAppointment(BaseModel):
    """Splose appointment payload. Unknown fields are ignored."""
    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)

    id: str | int | None = None
    start: str | None = None  # ISO-8601 dateTime
    end: str | None = None
    is_unavailable_block: bool | None = None
    pricing: Any = None
    total: Any = None
    note: str | None = None
    location: Any = None
    practitioner: Any = None
    appointment_patients: list[AppointmentPatient | None] | None = None

    @field_validator("appointment_patients", mode="before")
    @classmethod
    def _patients(cls, v):
        if not isinstance(v, list):
            return None
        return [p if isinstance(p, (dict, AppointmentPatient)) else None for p in v]

class RawAppointmentList(BaseModel):
    """Body of GET /appointments."""
    model_config = ConfigDict(extra="ignore")

    data: list[RawAppointment] = Field(default_factory=list)

class NormalizedAppointment(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str | int | None
    start: str | None
    end: str | None
    is_unavailable_block: bool = False
    pricing: Any = None
    total: Any = None
    status: str | None = None
    cancellation_reason: str | None = None
    cancellation_rate: int | float | None = None
    note: str = ""
    location: Any = None
    practitioner: Any = None

class AppointmentsRequest(BaseModel):
    """Payload of getClientAppointments. Any client-sent uid is ignored."""
    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)

    patient_id: str | int | None = None

class AppointmentsResponse(BaseModel):
    appointments: list[NormalizedAppointment]

class CallableRequest(BaseModel):
    """Everything the handler sees of one invocation."""
    model_config = ConfigDict(frozen=True)

    data: Any = None  # raw payload, checked only after identity is resolved
    auth: CallerIdentity | None = None  # pre-verified by the platform
    headers: dict[str, str] = Field(default_factory=dict)
