import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi

from accounts.shared.config import settings
from accounts.shared.db import SessionLocal, init_store

# Routers Import
from accounts.auth.api import router as auth_router
from accounts.billing.api import router as subscription_router
from accounts.shared.me_api import router as me_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

TAGS_METADATA = [
    {"name": "Auth", "description": "Credentials and provider sign-in, registration, password reset"},
    {"name": "Me", "description": "Session claims recomputed per request"},
    {"name": "Subscription", "description": "Entitlement lookups for the billing collaborator"},
    {"name": "Health", "description": "Service health"},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_store(SessionLocal)
    logger.info("account store ready (%s)", settings.ENV)
    yield


app = FastAPI(
    title="Router Accounts",
    version="0.1.0",
    description="Identity resolution, credential verification and subscription entitlement.",
    openapi_tags=TAGS_METADATA,
    lifespan=lifespan,
)

@app.get("/healthz", tags=["Health"])
def healthz():
    return {"ok": True}

# Mount feature routers
app.include_router(auth_router)
app.include_router(me_router)
app.include_router(subscription_router)

# --- Custom OpenAPI: bearerAuth on the session-protected routes ---
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    schema.setdefault("components", {}).setdefault("securitySchemes", {})
    schema["components"]["securitySchemes"]["bearerAuth"] = {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
    }
    for path, ops in schema.get("paths", {}).items():
        if not path.startswith("/me"):
            continue
        for op in ops.values():
            op.setdefault("security", [{"bearerAuth": []}])
    app.openapi_schema = schema
    return app.openapi_schema

app.openapi = custom_openapi
