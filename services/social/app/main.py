import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_settings
from app.database import init_db
from app.notifications.internal_router import router as notifications_internal_router
from app.notifications.router import router as notifications_router
from app.profile.router import router as profile_router
from app.rate_limit import limiter
from app.redis_client import close_redis_client
from app.social_graph.admin_router import router as social_admin_router
from app.social_graph.router import requests_router as follow_requests_router
from app.social_graph.router import router as social_router
from shared.middleware.error_handler import error_envelope_middleware, http_exception_handler
from shared.middleware.request_id import RequestIdLogFilter, request_id_middleware


# ── OpenAPI metadata ──────────────────────────────────────────────────────────

_DESCRIPTION = """
## Jorvea Social Service

Owns the follow graph and the notifications it produces:

* **Profiles** — username, display name, privacy flag and the denormalized
  follower / following counters.
* **Follows** — public accounts are followed immediately; private accounts
  receive a follow request that the owner accepts or rejects. Follow counts
  and pending requests can be streamed over Server-Sent Events.
* **Notifications** — one notification per graph or content event, with an
  unread count that can be streamed over Server-Sent Events.

### Authentication
All user endpoints require:
```
Authorization: Bearer <access_token>
```
Admin endpoints additionally require the `admin` or `super_admin` role in the token.

### Error shape
All errors return a consistent JSON envelope:
```json
{ "error": { "code": "already_following", "message": "..." }, "request_id": "..." }
```

### Rate limits
`429 Too Many Requests` is returned when a rate limit is exceeded.
"""

_TAGS_METADATA = [
    {
        "name": "profile",
        "description": (
            "View and update profiles. `GET /users/me` creates the caller's profile on "
            "first access. Counters are maintained by the follow graph only."
        ),
    },
    {
        "name": "social-graph",
        "description": (
            "Follows, follow requests for private accounts, follower / following lists, "
            "relationship state and story visibility."
        ),
    },
    {
        "name": "admin-social-graph",
        "description": "**Admin only.** Counter repair and follow request retention.",
    },
    {
        "name": "Notifications",
        "description": "The caller's notifications and unread count.",
    },
]


# ── Health schema ─────────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    service: str


# ── Logging ───────────────────────────────────────────────────────────────────

def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(levelname)s:%(name)s: [%(request_id)s] %(message)s",
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(RequestIdLogFilter())


# ── App factory ───────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    init_db(settings.social_database_url)
    yield
    await close_redis_client()


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(
        title="Jorvea Social Service",
        version="1.0.0",
        description=_DESCRIPTION,
        openapi_tags=_TAGS_METADATA,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Attach rate limiter state before middleware
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    # Middleware is applied in reverse-registration order (last added = outermost).
    # CORS must be outermost so ALL responses (including 429s) carry CORS headers.
    app.add_middleware(SlowAPIMiddleware)
    app.middleware("http")(error_envelope_middleware)
    app.middleware("http")(request_id_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )

    app.include_router(profile_router, prefix="/api/v1")
    app.include_router(social_router, prefix="/api/v1")
    app.include_router(follow_requests_router, prefix="/api/v1")
    app.include_router(social_admin_router, prefix="/api/v1")
    app.include_router(notifications_internal_router, prefix="/api/v1")
    app.include_router(notifications_router, prefix="/api/v1")

    @app.get("/health", response_model=HealthResponse, tags=["health"], include_in_schema=True)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", service="social")

    return app


app = create_app()
