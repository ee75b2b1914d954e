import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
from starlette.responses import Response

from .config import settings
from .models import ErrorResponse
from .routers.health import router as health_router
from .routers.insights import router as insights_router
from .routers.parse import router as parse_router
from .routers.reports import router as reports_router
from .services.store import PersistenceError, ReportStore


class PHIScrubbedLoggingMiddleware:
    def __init__(self, app: FastAPI) -> None:
        self.app = app
        logging.basicConfig(level=settings.log_level, format="%(message)s")
        self.logger = logging.getLogger("labsight.backend")

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        method = scope.get("method")
        path = scope.get("path")
        start = time.perf_counter()
        status_code_holder = {"status": None}
        request_id_holder = {"rid": None}

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                status_code_holder["status"] = message.get("status", 0)
                headers = message.get("headers") or []
                for k, v in headers:
                    if k.decode().lower() == "x-request-id":
                        request_id_holder["rid"] = v.decode()
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration_ms = int((time.perf_counter() - start) * 1000)
            if not request_id_holder["rid"]:
                for k, v in scope.get("headers", []):
                    if k.decode().lower() == "x-request-id":
                        request_id_holder["rid"] = v.decode()
            # No headers, bodies, files or user ids: reports carry PHI
            self.logger.info(
                {
                    "event": "http_request",
                    "method": method,
                    "path": path,
                    "status": status_code_holder["status"],
                    "duration_ms": duration_ms,
                    "request_id": request_id_holder["rid"],
                }
            )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Permissions-Policy", "interest-cohort=()")
        return response


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a request ID to each response and propagate incoming X-Request-ID.

    - If the client supplies X-Request-ID, echo it back.
    - Otherwise, generate a UUID4 and set X-Request-ID.
    The ID is included in logs by PHIScrubbedLoggingMiddleware.
    """

    async def dispatch(self, request, call_next):
        incoming = request.headers.get("x-request-id")
        rid = incoming or uuid.uuid4().hex
        response = await call_next(request)
        response.headers.setdefault("X-Request-ID", rid)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    app.state.store.close()


async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    logging.getLogger("labsight.backend").error({"event": "persistence_error", "path": request.url.path})
    body = ErrorResponse(error="Report storage unavailable", details=str(exc))
    return JSONResponse(status_code=503, content=body.model_dump())


def create_app(store: ReportStore | None = None) -> FastAPI:
    app = FastAPI(title="LabSight API", version=settings.app_version, lifespan=lifespan)
    app.state.store = store or ReportStore()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        max_age=600,
    )

    # Request ID before logging so logs can capture the ID
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(PHIScrubbedLoggingMiddleware)

    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_hosts())
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_exception_handler(PersistenceError, persistence_error_handler)

    app.include_router(health_router, prefix="/api/v1")
    app.include_router(parse_router, prefix="/api/v1")
    app.include_router(reports_router, prefix="/api/v1")
    app.include_router(insights_router, prefix="/api/v1")

    @app.get("/", include_in_schema=False)
    async def root(_: Request) -> Response:
        return Response(status_code=204)

    return app


app = create_app()
