import argparse
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from sgcheckout.config import get_settings
from sgcheckout.database import init_db
from sgcheckout.rate_limit import limiter
from sgcheckout.routers import auth, pages, payments, tickets, webhooks

logger = logging.getLogger(__name__)

app = FastAPI(
    title="SG Checkout",
    description="Checkout, payment intent and free ticket API for SG Events",
    version="1.0.0",
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ============== Global Error Handlers ==============

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return a consistent JSON format for validation errors."""
    errors = []
    for err in exc.errors():
        field = " -> ".join(str(loc) for loc in err["loc"] if loc != "body")
        errors.append(f"{field}: {err['msg']}" if field else err["msg"])
    return JSONResponse(
        status_code=422,
        content={"error": "Validation error", "detail": "; ".join(errors)},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all for unhandled exceptions. Logs the traceback, returns a safe message."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": "An unexpected error occurred."},
    )


# JSON routers are served both under the API prefix and bare, so a client
# whose proxy strips the prefix still reaches them.
settings = get_settings()
for api_router in (auth.router, payments.router, tickets.router):
    app.include_router(api_router, prefix=settings.api_prefix)
    app.include_router(api_router)

app.include_router(webhooks.router)   # /webhooks/stripe
app.include_router(pages.router)      # /checkout, /payment-success


# ============== CORS Middleware ==============
_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] if settings.cors_origins else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup():
    init_db()


@app.get("/")
def root():
    return RedirectResponse(url="/checkout")


@app.get("/health")
def health_check():
    """Health check endpoint. Verifies DB connectivity."""
    from sqlalchemy import text
    from sgcheckout.database import SessionLocal

    checks = {"db": "ok"}
    status = "healthy"

    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
    except Exception as e:
        checks["db"] = str(e)
        status = "unhealthy"

    code = 200 if status == "healthy" else 503
    return JSONResponse(status_code=code, content={"status": status, "checks": checks})


# ============== Main ==============

def main():
    import uvicorn

    parser = argparse.ArgumentParser(description="SG Checkout server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    logger.info("Serving checkout on http://%s:%s (docs at /docs)", args.host, args.port)

    uvicorn.run(
        "sgcheckout.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
