"""Process configuration and the immutable per-process context.

Settings are read once from the environment (and a local .env file), then
handed to the handler inside an AppContext. Nothing here is mutated after
startup.
"""
from __future__ import annotations
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, SecretStr

if TYPE_CHECKING:
    from .client import SploseClient
    from .identity import TokenVerifier
    from .lookup import LookupStore

DEFAULT_BASE_URL = "https://api.splose.com/v1"


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    splose_base_url: str = DEFAULT_BASE_URL
    splose_api_key: SecretStr | None = None
    http_timeout: float = 15.0
    firebase_project_id: str | None = None
    clients_collection: str = "clients"
    patient_id_field: str = "splosePatientId"
    allow_patient_id_override: bool = True
    patient_override_claim: str | None = None
    trust_gateway_userinfo: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        load_dotenv()
        api_key = os.getenv("SPLOSE_API_KEY", "").strip()
        return cls(
            splose_base_url=os.getenv("SPLOSE_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            splose_api_key=SecretStr(api_key) if api_key else None,
            http_timeout=float(os.getenv("SPLOSE_TIMEOUT_SECONDS", "15")),
            firebase_project_id=os.getenv("FIREBASE_PROJECT_ID") or None,
            clients_collection=os.getenv("CLIENTS_COLLECTION", "clients"),
            patient_id_field=os.getenv("PATIENT_ID_FIELD", "splosePatientId"),
            allow_patient_id_override=_flag("ALLOW_PATIENT_ID_OVERRIDE", True),
            patient_override_claim=os.getenv("PATIENT_OVERRIDE_CLAIM") or None,
            trust_gateway_userinfo=_flag("TRUST_GATEWAY_USERINFO", False),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    @property
    def api_key(self) -> str | None:
        return self.splose_api_key.get_secret_value() if self.splose_api_key else None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AppContext:
    settings: Settings
    verifier: TokenVerifier
    store: LookupStore
    splose: SploseClient
    now: Callable[[], datetime] = field(default=utc_now)


def build_context(settings: Settings) -> AppContext:
    """Initialise Firebase and wire the production collaborators."""
    import firebase_admin
    from .identity import FirebaseTokenVerifier
    from .lookup import FirestoreLookupStore
    from .client import SploseClient

    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
    try:
        app = firebase_admin.get_app()
    except ValueError:
        app = firebase_admin.initialize_app(options=options)

    return AppContext(
        settings=settings,
        verifier=FirebaseTokenVerifier(app),
        store=FirestoreLookupStore(
            app,
            collection=settings.clients_collection,
            patient_id_field=settings.patient_id_field,
        ),
        splose=SploseClient(
            base_url=settings.splose_base_url,
            api_key=settings.api_key,
            timeout=settings.http_timeout,
        ),
    )
