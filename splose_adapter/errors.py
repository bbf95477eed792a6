"""Caller-visible error classifications.

Handlers raise one of these; the API layer turns them into callable-protocol
error bodies. Messages are fixed strings and never carry diagnostic detail.
"""

class HandlerError(Exception):
    code = "internal"
    status = "INTERNAL"
    http_status = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_body(self) -> dict:
        return {"error": {"status": self.status, "message": self.message}}

class Unauthenticated(HandlerError):
    code = "unauthenticated"
    status = "UNAUTHENTICATED"
    http_status = 401

class PreconditionFailed(HandlerError):
    """Caller is verified but has no linked Splose patient."""
    code = "failed-precondition"
    status = "FAILED_PRECONDITION"
    http_status = 400

class Internal(HandlerError):
    code = "internal"
    status = "INTERNAL"
    http_status = 500

NOT_LOGGED_IN = "You must be logged in to view appointments."
NO_PATIENT_ID = "No Splose patientId is configured for this user."
NO_API_KEY = "Splose API key is not configured."
SPLOSE_ERROR = "Error fetching appointments from Splose."
UNEXPECTED = "Unexpected error fetching appointments."
STORE_ERROR = "Unable to read client records."
