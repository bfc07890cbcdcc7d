from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from intern_portal import __version__
from intern_portal.auth import GatedRoute, GateRejected, RequestGate
from intern_portal.auth.crud import (
    create_intern,
    get_intern_by_id,
    list_interns,
    public_intern,
    touch_last_login,
    verify_intern_credentials,
)
from intern_portal.auth.deps import gate_rejected_handler
from intern_portal.auth.security import create_access_token
from intern_portal.bookings.crud import create_booking, delete_booking, get_booking, list_bookings, update_booking
from intern_portal.config import Config, load_config
from intern_portal.db import connect, init_db
from intern_portal.holidays.crud import list_holidays


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


# ValueError codes raised by the CRUD layer -> (status, human readable message)
_VALUE_ERRORS: Dict[str, tuple[int, str]] = {
    "name_blank": (400, "Name is required"),
    "email_invalid": (400, "A valid email is required"),
    "email_exists": (409, "Email already registered"),
    "password_blank": (400, "Password is required"),
    "resource_blank": (400, "Resource is required"),
    "invalid_date": (400, "Date must be formatted YYYY-MM-DD"),
    "intern_not_found": (404, "Intern not found"),
}


def _http_error(e: ValueError) -> HTTPException:
    status, message = _VALUE_ERRORS.get(str(e), (400, str(e)))
    return HTTPException(status_code=status, detail=message)


def _cfg(request: Request) -> Config:
    return request.app.state.cfg


# -----------------------------
# Health
# -----------------------------

health_router = APIRouter()


@health_router.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


# -----------------------------
# Auth (token issuance; public)
# -----------------------------

auth_router = APIRouter(prefix="/api/auth")


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


@auth_router.post("/register", status_code=201)
def auth_register(payload: RegisterRequest, request: Request) -> Dict[str, Any]:
    cfg = _cfg(request)
    if len(payload.password or "") < cfg.AUTH_MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {cfg.AUTH_MIN_PASSWORD_LENGTH} characters",
        )

    with connect(cfg.DB_DSN) as conn:
        try:
            intern = create_intern(conn, name=payload.name, email=payload.email, password=payload.password)
        except ValueError as e:
            raise _http_error(e)

    token = create_access_token(
        secret=cfg.JWT_SECRET,
        intern_id=intern["intern_id"],
        expires_minutes=cfg.AUTH_TOKEN_EXPIRE_MINUTES,
    )
    _debug(f"Registered intern id={intern['intern_id']}")
    return {"message": "Intern registered", "intern": intern, "token": token}


@auth_router.post("/login")
def auth_login(payload: LoginRequest, request: Request) -> Dict[str, Any]:
    cfg = _cfg(request)
    with connect(cfg.DB_DSN) as conn:
        row = verify_intern_credentials(conn, payload.email, payload.password)
        if row is None:
            raise HTTPException(status_code=401, detail="Invalid credentials")
        touch_last_login(conn, str(row["intern_id"]))
        intern = public_intern(row)

    token = create_access_token(
        secret=cfg.JWT_SECRET,
        intern_id=intern["intern_id"],
        expires_minutes=cfg.AUTH_TOKEN_EXPIRE_MINUTES,
    )
    return {"token": token, "intern": intern}


# -----------------------------
# Interns (public listing)
# -----------------------------

interns_router = APIRouter(prefix="/api/interns")


@interns_router.get("")
def interns_list(request: Request) -> List[Dict[str, Any]]:
    with connect(_cfg(request).DB_DSN) as conn:
        return list_interns(conn)


@interns_router.get("/{intern_id}")
def interns_get(intern_id: str, request: Request) -> Dict[str, Any]:
    with connect(_cfg(request).DB_DSN) as conn:
        row = get_intern_by_id(conn, intern_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Intern not found")
    return public_intern(row)


# -----------------------------
# Bookings (protected)
# -----------------------------

# Every route on this router passes the gate before anything else runs.
bookings_router = APIRouter(prefix="/api/bookings", route_class=GatedRoute)


class BookingCreate(BaseModel):
    resource: str
    date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    notes: Optional[str] = None


class BookingUpdate(BaseModel):
    resource: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    notes: Optional[str] = None


def _intern_id(request: Request) -> str:
    # Set by require_intern before any bookings handler runs.
    return request.state.intern_id


@bookings_router.get("")
def bookings_list(request: Request) -> List[Dict[str, Any]]:
    with connect(_cfg(request).DB_DSN) as conn:
        return list_bookings(conn, intern_id=_intern_id(request))


@bookings_router.post("", status_code=201)
def bookings_create(payload: BookingCreate, request: Request) -> Dict[str, Any]:
    with connect(_cfg(request).DB_DSN) as conn:
        try:
            return create_booking(
                conn,
                intern_id=_intern_id(request),
                resource=payload.resource,
                booking_date=payload.date,
                start_time=payload.start_time,
                end_time=payload.end_time,
                notes=payload.notes,
            )
        except ValueError as e:
            raise _http_error(e)


@bookings_router.get("/{booking_id}")
def bookings_get(booking_id: str, request: Request) -> Dict[str, Any]:
    with connect(_cfg(request).DB_DSN) as conn:
        booking = get_booking(conn, booking_id=booking_id, intern_id=_intern_id(request))
    if booking is None:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


@bookings_router.put("/{booking_id}")
def bookings_update(booking_id: str, payload: BookingUpdate, request: Request) -> Dict[str, Any]:
    changes = payload.model_dump(exclude_unset=True)
    if "date" in changes:
        changes["booking_date"] = changes.pop("date")

    with connect(_cfg(request).DB_DSN) as conn:
        try:
            booking = update_booking(conn, booking_id=booking_id, intern_id=_intern_id(request), changes=changes)
        except ValueError as e:
            raise _http_error(e)
    if booking is None:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


@bookings_router.delete("/{booking_id}")
def bookings_delete(booking_id: str, request: Request) -> Dict[str, Any]:
    with connect(_cfg(request).DB_DSN) as conn:
        deleted = delete_booking(conn, booking_id=booking_id, intern_id=_intern_id(request))
    if not deleted:
        raise HTTPException(status_code=404, detail="Booking not found")
    return {"message": "Booking deleted"}


# -----------------------------
# Holidays (public)
# -----------------------------

holidays_router = APIRouter(prefix="/api")


@holidays_router.get("/holidays")
def holidays_list(request: Request, year: Optional[int] = Query(default=None, ge=1, le=9998)) -> List[Dict[str, Any]]:
    with connect(_cfg(request).DB_DSN) as conn:
        return list_holidays(conn, year=year)


# -----------------------------
# App factory
# -----------------------------


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Name the offending fields only; pydantic error internals stay server-side.
    # JSON decode errors carry a character offset as their last loc entry, not a field.
    fields = sorted(
        {
            err["loc"][-1]
            for err in exc.errors()
            if len(err.get("loc") or ()) > 1 and isinstance(err["loc"][-1], str)
        }
    )
    message = "Invalid request" + (f": {', '.join(fields)}" if fields else "")
    return JSONResponse(status_code=422, content={"message": message})


def create_app(cfg: Config | None = None) -> FastAPI:
    """Build the API for one worker process.

    The config (and the gate built from its secret) is fixed for the app's lifetime.
    """
    cfg = cfg or load_config()

    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Each worker owns its connections; make sure the schema exists first.
        init_db(cfg.DB_DSN)
        yield

    app = FastAPI(title="Intern Portal API", version=__version__, lifespan=_lifespan)
    app.state.cfg = cfg
    app.state.gate = RequestGate(cfg.JWT_SECRET)

    app.add_exception_handler(GateRejected, gate_rejected_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)

    if cfg.LOG_REQUESTS:

        @app.middleware("http")
        async def _log_request(request: Request, call_next: Any) -> Any:
            url = request.url.path + (f"?{request.url.query}" if request.url.query else "")
            _debug(f"Request URL: {url}")
            return await call_next(request)

    # Route protection is fixed per router (bookings_router uses GatedRoute).
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(bookings_router)
    app.include_router(interns_router)
    app.include_router(holidays_router)
    return app


app = create_app()
