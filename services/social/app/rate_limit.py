"""
Global slowapi rate limiter.

Imported by social_graph/router.py for the per-user follow limit.  Mounted
onto app.state in main.py so slowapi middleware can find it.

Limits are keyed by the bearer token's subject, falling back to the client
address for anonymous calls.  Storage: Redis when RATE_LIMIT_STORAGE_URI is
set, otherwise in-process memory (local dev and tests).
"""
import os

from fastapi import Request
from jose import JWTError, jwt
from slowapi import Limiter
from slowapi.util import get_remote_address


def caller_key(request: Request) -> str:
    auth = request.headers.get("Authorization", "")
    scheme, _, token = auth.partition(" ")
    if scheme.lower() == "bearer" and token:
        try:
            # Signature is verified by the auth dependency; this only buckets calls.
            sub = jwt.get_unverified_claims(token).get("sub")
        except JWTError:
            sub = None
        if sub:
            return f"user:{sub}"
    return get_remote_address(request)


limiter = Limiter(
    key_func=caller_key,
    storage_uri=os.getenv("RATE_LIMIT_STORAGE_URI", "memory://"),
)
