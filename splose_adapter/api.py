import base64
import binascii
import json
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from .config import AppContext, Settings, build_context
from .errors import HandlerError
from .handler import AppointmentsHandler
from .log import configure_logging, log_warning
from .models import CallableRequest, CallerIdentity

USERINFO_HEADER = "x-apigateway-api-userinfo"

async def callable_data(request: Request):
    """The "data" member of a callable-protocol body, unvalidated.

    Validation waits until the caller is identified, so an anonymous caller
    with a bad body still gets UNAUTHENTICATED.
    """
    raw = await request.body()
    if not raw:
        return None
    try:
        body = json.loads(raw)
    except ValueError:
        log_warning("callable_body_unreadable")
        return None
    return body.get("data") if isinstance(body, dict) else None

def gateway_identity(request: Request) -> Optional[CallerIdentity]:
    """Claims forwarded by a gateway that already verified the caller's JWT."""
    raw = request.headers.get(USERINFO_HEADER)
    if not raw:
        return None
    try:
        padded = raw + "=" * (-len(raw) % 4)
        claims = json.loads(base64.urlsafe_b64decode(padded))
    except (binascii.Error, ValueError):
        log_warning("gateway_userinfo_unreadable")
        return None
    if not isinstance(claims, dict):
        return None
    uid = claims.get("user_id") or claims.get("sub")
    if not uid:
        return None
    return CallerIdentity(uid=uid, email=claims.get("email"), claims=claims)

def _install(app: FastAPI, context: AppContext):
    app.state.context = context
    app.state.handler = AppointmentsHandler(context)

def create_app(context: Optional[AppContext] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not hasattr(app.state, "handler"):
            settings = Settings.from_env()
            configure_logging(settings.log_level)
            _install(app, build_context(settings))
        yield

    app = FastAPI(title="Splose Appointments Service", lifespan=lifespan)
    if context is not None:
        _install(app, context)

    @app.exception_handler(HandlerError)
    async def handler_error(request: Request, exc: HandlerError):
        return JSONResponse(exc.to_body(), status_code=exc.http_status)

    @app.post("/getClientAppointments")
    async def get_client_appointments(request: Request):
        """Upcoming appointments for the logged-in client."""
        ctx: AppContext = request.app.state.context
        auth = gateway_identity(request) if ctx.settings.trust_gateway_userinfo else None
        call = CallableRequest(
            data=await callable_data(request),
            auth=auth,
            headers=dict(request.headers),
        )
        result = await request.app.state.handler(call)
        return {"result": result.model_dump(mode="json", by_alias=True)}

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    return app

app = create_app()
