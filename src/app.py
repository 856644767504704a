"""Marketplace FastAPI application.

Processes commands synchronously via HTTP. Every request runs inside the
marketplace domain context with a request id bound into the log context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace.domain import marketplace
from marketplace.utils.logging import bind_request_context, configure_logging

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# Initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay in domain.toml ("test", "production").
configure_logging()
marketplace.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Marketplace API",
    description="Orders, M-Pesa payments and flash sales for a multi-vendor shop",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the marketplace domain context and a request id for each request."""
    request_id = request.headers.get("X-Request-ID") or uuid4().hex
    bind_request_context(request_id, request.url.path, user_id=request.headers.get("X-User-Id"))
    with marketplace.domain_context():
        response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from marketplace.api import cart_router, flash_sale_router, mpesa_router, order_router  # noqa: E402
from marketplace.api.errors import register_exception_handlers  # noqa: E402

app.include_router(order_router)
app.include_router(mpesa_router)
app.include_router(flash_sale_router)
app.include_router(cart_router)
register_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": marketplace.name})
