"""Authentication / authorization.

Auth is deliberately stateless:

- Interns table (email/password hash)
- HS256 JWT access tokens carrying the intern id in an `id` claim

Tokens are read from the Authorization header only: the second
whitespace-separated word is the token, the scheme word (normally `Bearer`)
is not checked. Which routes are protected is decided when routers are built
(`GatedRoute`, see `intern_portal.api.server`).
"""

from .deps import GatedRoute, GateRejected, require_intern
from .gate import Allow, Reject, RequestGate, VerifiedIdentity

__all__ = [
    "Allow",
    "GatedRoute",
    "GateRejected",
    "Reject",
    "RequestGate",
    "VerifiedIdentity",
    "require_intern",
]
