"""Endpoints for login, session status and the schedule relay."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from src.jcc_mashup.api.schemas import LoginRequest, LoginResponse, SessionStatus
from src.jcc_mashup.auth import AuthFlow
from src.jcc_mashup.errors import InvalidRequestError, MissingCredentialsError
from src.jcc_mashup.logging import get_logger
from src.jcc_mashup.schedule import ScheduleProxy
from src.jcc_mashup.session import SessionStore

router = APIRouter(prefix="/api", tags=["Proxy"])
logger = get_logger(__name__)

TOKEN_HEADER = "X-Session-Token"
TOKEN_COOKIE = "jcc_session"


def _store(request: Request) -> SessionStore:
    return request.app.state.store


def session_token(request: Request) -> str | None:
    """Session token from the X-Session-Token header, else the jcc_session cookie."""
    return request.headers.get(TOKEN_HEADER) or request.cookies.get(TOKEN_COOKIE)


async def _read_credentials(request: Request) -> LoginRequest:
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith(
            ("application/x-www-form-urlencoded", "multipart/form-data")
        ):
            form = await request.form()
            raw = {key: form.get(key) for key in ("username", "password")}
        else:
            body = await request.body()
            if not body:
                raise MissingCredentialsError()
            return LoginRequest.model_validate_json(body)
        return LoginRequest.model_validate({k: v for k, v in raw.items() if v is not None})
    except ValidationError as e:
        raise InvalidRequestError("Invalid login request", details=str(e)) from e


@router.get("/session")
def get_session(request: Request) -> JSONResponse:
    """Report whether the caller holds a live portal session."""
    record = _store(request).get(session_token(request))
    if record is None:
        return JSONResponse({"authenticated": False}, status_code=401)

    status = SessionStatus(session_age=record.age_ms(), timestamp=record.timestamp)
    return JSONResponse(status.model_dump(by_alias=True))


@router.post("/login")
async def login(request: Request) -> JSONResponse:
    """Log in to the portal and cache the resulting cookies under a new token."""
    credentials = await _read_credentials(request)
    if not credentials.username or not credentials.password:
        raise MissingCredentialsError()

    auth_flow: AuthFlow = request.app.state.auth_flow
    cookies = await run_in_threadpool(
        auth_flow.login, credentials.username, credentials.password
    )
    token = _store(request).put(cookies)

    body = LoginResponse(session_token=token)
    response = JSONResponse(body.model_dump(by_alias=True))
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=request.app.state.config.session_max_age_days * 24 * 60 * 60,
        httponly=True,
        samesite="lax",
    )
    return response


@router.get("/schedule")
def get_schedule(request: Request, date: str | None = None) -> Response:
    """Relay the portal's class list for ?date=YYYY-MM-DD (default today)."""
    proxy: ScheduleProxy = request.app.state.schedule_proxy
    upstream = proxy.fetch(session_token(request), date)
    media_type = upstream.content_type or "application/json"
    return Response(content=upstream.text, media_type=media_type)
