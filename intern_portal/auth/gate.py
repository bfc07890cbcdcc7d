"""Request gate for protected routes.

`RequestGate.authorize` is a pure decision: given the raw Authorization header it
returns either `Allow` (carrying the verified identity) or `Reject` (carrying the
HTTP status and message to send). It never touches the network or the database,
so a single gate instance is shared by every request in a worker.

Missing and malformed headers (no second whitespace-separated token) both map to
"No token provided". Every verification failure (bad signature, expired, garbage,
payload whose `id` claim is missing or not a string/integer) maps to
"Invalid token".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

import jwt

from .security import decode_access_token


NO_TOKEN_MESSAGE = "No token provided"
INVALID_TOKEN_MESSAGE = "Invalid token"


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


@dataclass(frozen=True)
class VerifiedIdentity:
    intern_id: str


@dataclass(frozen=True)
class Allow:
    identity: VerifiedIdentity


@dataclass(frozen=True)
class Reject:
    status: int
    message: str


GateResult = Union[Allow, Reject]


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Second whitespace-separated token of the header, or None.

    The scheme word itself is not checked.
    """
    parts = (authorization or "").split()
    if len(parts) < 2:
        return None
    return parts[1]


class RequestGate:
    def __init__(self, secret: str):
        if not secret:
            raise ValueError("jwt_secret_blank")
        self._secret = secret

    def authorize(self, authorization: Optional[str]) -> GateResult:
        token = extract_bearer_token(authorization)
        if token is None:
            _debug("Rejected request: no bearer token")
            return Reject(status=401, message=NO_TOKEN_MESSAGE)

        try:
            payload = decode_access_token(token=token, secret=self._secret)
        except jwt.InvalidTokenError:
            return Reject(status=401, message=INVALID_TOKEN_MESSAGE)

        intern_id = payload.get("id")
        # Only scalar ids identify an intern; bool is an int subclass, so exclude it.
        if isinstance(intern_id, bool) or not isinstance(intern_id, (str, int)) or str(intern_id) == "":
            return Reject(status=401, message=INVALID_TOKEN_MESSAGE)

        return Allow(identity=VerifiedIdentity(intern_id=str(intern_id)))
