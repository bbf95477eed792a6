"""Caller identity resolution.

Strategies are tried in order; the first one that yields a verified
identity wins. Nothing the client puts in the request body is ever used
as identity.
"""
from __future__ import annotations
import asyncio
from typing import Protocol, Sequence
from firebase_admin import auth as firebase_auth
from firebase_admin.exceptions import FirebaseError
from .errors import Unauthenticated, NOT_LOGGED_IN
from .log import log_info, log_warning
from .models import CallableRequest, CallerIdentity

BEARER_PREFIX = "Bearer "


class TokenVerificationError(Exception):
    pass


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> dict: ...


class FirebaseTokenVerifier:
    """Checks Firebase ID tokens with the Admin SDK."""

    def __init__(self, app=None, check_revoked: bool = False):
        self._app = app
        self._check_revoked = check_revoked

    async def verify(self, token: str) -> dict:
        try:
            # verify_id_token is blocking (it may fetch signing certs)
            return await asyncio.to_thread(
                firebase_auth.verify_id_token, token, app=self._app, check_revoked=self._check_revoked
            )
        except (ValueError, FirebaseError) as exc:
            raise TokenVerificationError(str(exc)) from exc


def get_header(headers: dict[str, str], name: str) -> str | None:
    """Case-insensitive header lookup."""
    if name in headers:
        return headers[name]
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def extract_bearer_token(headers: dict[str, str]) -> str | None:
    value = get_header(headers, "Authorization")
    if not isinstance(value, str) or not value.startswith(BEARER_PREFIX):
        return None
    token = value[len(BEARER_PREFIX):].strip()
    return token or None


class SessionContextStrategy:
    """Identity the platform already verified before invoking us."""
    name = "session"

    async def resolve(self, request: CallableRequest) -> CallerIdentity | None:
        if request.auth is not None and request.auth.uid:
            return request.auth
        return None


class BearerTokenStrategy:
    """Authorization: Bearer <id token>, verified server-side."""
    name = "bearer"

    def __init__(self, verifier: TokenVerifier):
        self._verifier = verifier

    async def resolve(self, request: CallableRequest) -> CallerIdentity | None:
        token = extract_bearer_token(request.headers)
        if token is None:
            return None
        try:
            claims = await self._verifier.verify(token)
        except TokenVerificationError as exc:
            log_warning("id_token_verification_failed", reason=str(exc))
            return None

        uid = claims.get("uid") or claims.get("sub")
        if not uid:
            log_warning("id_token_without_uid")
            return None
        return CallerIdentity(uid=uid, email=claims.get("email"), claims=claims)


class IdentityResolver:
    def __init__(self, strategies: Sequence):
        self._strategies = list(strategies)

    @classmethod
    def default(cls, verifier: TokenVerifier) -> IdentityResolver:
        return cls([SessionContextStrategy(), BearerTokenStrategy(verifier)])

    async def resolve(self, request: CallableRequest) -> CallerIdentity:
        for strategy in self._strategies:
            identity = await strategy.resolve(request)
            if identity is not None:
                log_info("identity_resolved", via=strategy.name, uid=identity.uid)
                return identity
        log_warning("identity_unresolved", tried=[s.name for s in self._strategies])
        raise Unauthenticated(NOT_LOGGED_IN)
