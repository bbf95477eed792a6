import json
import pathlib
from datetime import datetime, timezone
import pytest
from splose_adapter.client import SploseClient
from splose_adapter.config import AppContext, Settings
from splose_adapter.identity import TokenVerificationError
from splose_adapter.models import LookupRecord

FIX = pathlib.Path(__file__).parent / "fixtures"
HOST = "https://api.splose.com"
BASE = f"{HOST}/v1"
NOW = datetime(2024, 2, 28, 12, 0, tzinfo=timezone.utc)


class FakeVerifier:
    """Maps known tokens to claims; anything else fails verification."""

    def __init__(self, tokens=None):
        self.tokens = tokens or {}
        self.calls = []

    async def verify(self, token):
        self.calls.append(token)
        if token not in self.tokens:
            raise TokenVerificationError("Decoding Firebase ID token failed.")
        return self.tokens[token]


class FakeStore:
    def __init__(self, records=()):
        self.records = list(records)
        self.reads = []

    async def get_by_key(self, key):
        self.reads.append(("key", key))
        return next((r for r in self.records if r.key == key), None)

    async def find_by_email(self, email):
        self.reads.append(("email", email))
        return next((r for r in self.records if r.email == email), None)


@pytest.fixture
def appointments_payload():
    return json.loads((FIX / "appointments_list.json").read_text())


@pytest.fixture
def store():
    return FakeStore([LookupRecord(key="u1", email="u1@example.com", external_patient_id="p42")])


@pytest.fixture
def verifier():
    return FakeVerifier({"good-token": {"uid": "u1", "email": "u1@example.com"}})


@pytest.fixture
def make_context(store, verifier):
    def _make(api_key="sk_test", **overrides):
        settings = Settings(splose_base_url=BASE, splose_api_key=api_key, **overrides)
        return AppContext(
            settings=settings,
            verifier=verifier,
            store=store,
            splose=SploseClient(BASE, settings.api_key, timeout=5),
            now=lambda: NOW,
        )
    return _make
