import logging
import uuid
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from config import ALLOWED_ORIGINS, DOMAIN, RATE_LIMIT_ENABLED
from core.errors import InternalError, NameServiceError, ValidationFailed
from core.security import ADMIN_PREFIX, operator_identity
from db.connection import close_db, init_db
from routers import admin, nip05, public

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)

app = FastAPI(title="Nostr Name Registry")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'self'; style-src 'self' 'unsafe-inline'; img-src 'self' data:; frame-ancestors 'none';"

        return response


class OperatorGateMiddleware(BaseHTTPMiddleware):
    """Refuse anything under the operator prefix that the access proxy did not vouch for."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith(ADMIN_PREFIX) and request.method != "OPTIONS":
            try:
                operator_identity(request)
            except NameServiceError as e:
                return JSONResponse(status_code=e.status_code, content=e.to_dict())
        return await call_next(request)


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


app.add_middleware(OperatorGateMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIDMiddleware)


@app.exception_handler(NameServiceError)
async def name_service_error_handler(request: Request, exc: NameServiceError):
    if exc.status_code >= 500:
        logger.error(f"[{getattr(request.state, 'request_id', '-')}] {exc.kind.value}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0]
    source, *path = first["loc"] or ("body",)
    field = ".".join(str(part) for part in path)
    message = f"{field}: {first['msg']}" if field else first["msg"]
    error = ValidationFailed(message, code="body" if source == "body" else "params")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, "request_id", "-")
    logger.exception(f"[{request_id}] Unhandled error on {request.method} {request.url.path}")
    error = InternalError("Internal server error")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.on_event("startup")
async def startup() -> None:
    await init_db()


@app.on_event("shutdown")
async def shutdown() -> None:
    await close_db()


app.include_router(public.router)
app.include_router(nip05.router)
app.include_router(admin.router)


if __name__ == "__main__":
    import uvicorn

    logger.info("Starting name registry server...")
    logger.info(f"Domain: {DOMAIN}")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info",
    )

    logger.info("Server stopped gracefully")
