"""Map a verified caller to a Splose patient id.

Resolution order: explicit override in the payload (if allowed), the
clients/{uid} document, then the first client document with a matching
email. Read-only; at most two store reads per call.
"""
from __future__ import annotations
from typing import Protocol, Sequence
from firebase_admin import firestore_async
from google.api_core.exceptions import GoogleAPIError
from google.cloud.firestore_v1.base_query import FieldFilter
from .errors import Internal, PreconditionFailed, NO_PATIENT_ID, STORE_ERROR
from .log import log_error, log_info, log_warning
from .models import AppointmentsRequest, CallerIdentity, LookupRecord


class LookupStore(Protocol):
    async def get_by_key(self, key: str) -> LookupRecord | None: ...

    async def find_by_email(self, email: str) -> LookupRecord | None: ...


def _as_patient_id(value) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


class FirestoreLookupStore:
    """Reads the clients collection with the async Firestore client."""

    def __init__(self, app=None, collection: str = "clients", patient_id_field: str = "splosePatientId", db=None):
        self._db = db if db is not None else firestore_async.client(app)
        self._collection = collection
        self._field = patient_id_field

    def _to_record(self, snapshot) -> LookupRecord:
        doc = snapshot.to_dict() or {}
        return LookupRecord(
            key=snapshot.id,
            email=doc.get("email"),
            external_patient_id=_as_patient_id(doc.get(self._field)),
        )

    async def get_by_key(self, key: str) -> LookupRecord | None:
        try:
            snapshot = await self._db.collection(self._collection).document(key).get()
        except GoogleAPIError as exc:
            log_error("client_lookup_failed", error_code="STORE_ERROR", by="uid", reason=str(exc))
            raise Internal(STORE_ERROR) from exc
        if not snapshot.exists:
            return None
        return self._to_record(snapshot)

    async def find_by_email(self, email: str) -> LookupRecord | None:
        query = (
            self._db.collection(self._collection)
            .where(filter=FieldFilter("email", "==", email))
            .limit(1)
        )
        try:
            snapshots = await query.get()
        except GoogleAPIError as exc:
            log_error("client_lookup_failed", error_code="STORE_ERROR", by="email", reason=str(exc))
            raise Internal(STORE_ERROR) from exc
        if not snapshots:
            return None
        return self._to_record(snapshots[0])


class OverrideStrategy:
    """patientId sent by the caller.

    Any verified caller may name any patient unless a claim is required,
    so deployments that expose this to end users should set required_claim.
    """
    name = "override"

    def __init__(self, enabled: bool = True, required_claim: str | None = None):
        self._enabled = enabled
        self._required_claim = required_claim

    async def resolve(self, identity: CallerIdentity, data: AppointmentsRequest) -> str | None:
        requested = _as_patient_id(data.patient_id)
        if requested is None:
            return None
        if not self._enabled:
            log_warning("patient_override_ignored", uid=identity.uid, reason="disabled")
            return None
        if self._required_claim and not identity.claims.get(self._required_claim):
            log_warning("patient_override_ignored", uid=identity.uid, reason="missing_claim", claim=self._required_claim)
            return None
        log_info("patient_override_used", uid=identity.uid, patient_id=requested)
        return requested


class UidRecordStrategy:
    name = "uid"

    def __init__(self, store: LookupStore):
        self._store = store

    async def resolve(self, identity: CallerIdentity, data: AppointmentsRequest) -> str | None:
        record = await self._store.get_by_key(identity.uid)
        log_info("client_lookup", by="uid", uid=identity.uid, found=record is not None)
        return record.external_patient_id if record else None


class EmailRecordStrategy:
    name = "email"

    def __init__(self, store: LookupStore):
        self._store = store

    async def resolve(self, identity: CallerIdentity, data: AppointmentsRequest) -> str | None:
        if not identity.email:
            return None
        record = await self._store.find_by_email(identity.email)
        log_info("client_lookup", by="email", uid=identity.uid, found=record is not None)
        return record.external_patient_id if record else None


class PatientIdLookup:
    def __init__(self, strategies: Sequence):
        self._strategies = list(strategies)

    @classmethod
    def default(cls, store: LookupStore, allow_override: bool = True, override_claim: str | None = None) -> PatientIdLookup:
        return cls([
            OverrideStrategy(enabled=allow_override, required_claim=override_claim),
            UidRecordStrategy(store),
            EmailRecordStrategy(store),
        ])

    async def resolve(self, identity: CallerIdentity, data: AppointmentsRequest) -> str:
        for strategy in self._strategies:
            patient_id = await strategy.resolve(identity, data)
            if patient_id:
                log_info("patient_id_resolved", via=strategy.name, uid=identity.uid)
                return patient_id
        log_warning("patient_id_unresolved", uid=identity.uid)
        raise PreconditionFailed(NO_PATIENT_ID)
