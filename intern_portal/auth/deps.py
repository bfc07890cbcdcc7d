from __future__ import annotations

from typing import Any, Callable, Coroutine

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute

from .gate import Allow, RequestGate, Reject


class GateRejected(Exception):
    """Raised by `require_intern` to short-circuit a protected request."""

    def __init__(self, reject: Reject):
        super().__init__(reject.message)
        self.reject = reject


def get_gate(request: Request) -> RequestGate:
    gate = getattr(request.app.state, "gate", None)
    if gate is None:
        # Misconfigured app; fail closed.
        raise GateRejected(Reject(status=500, message="Server configuration missing"))
    return gate


def require_intern(request: Request) -> str:
    """Authenticate a protected request and return the verified intern id.

    On success the id is also stored on `request.state.intern_id`; handlers read it
    from there, never from the token.
    """

    result = get_gate(request).authorize(request.headers.get("authorization"))
    if isinstance(result, Allow):
        request.state.intern_id = result.identity.intern_id
        return result.identity.intern_id
    raise GateRejected(result)


class GatedRoute(APIRoute):
    """Route class for protected routers.

    The gate runs before FastAPI reads the body or validates parameters, so an
    unauthenticated request is rejected with 401 whatever else is wrong with it.
    """

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        handler = super().get_route_handler()

        async def gated_handler(request: Request) -> Response:
            require_intern(request)
            return await handler(request)

        return gated_handler


def gate_rejected_handler(request: Request, exc: GateRejected) -> JSONResponse:
    return JSONResponse(status_code=exc.reject.status, content={"message": exc.reject.message})
