import uuid
import time
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from assessments.core.config import settings
from assessments.core.errors import AssessmentError
from assessments.routers import health, interview, sessions
from assessments.services.generation import get_gateway
from assessments.services.sessions import SessionRegistry

def create_app() -> FastAPI:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.registry.shutdown()

    app = FastAPI(title="Assessments API", version="1.0.0", lifespan=lifespan)

    logger = logging.getLogger("assessments")

    logging.getLogger("httpx").setLevel(logging.WARNING)

    allow_origins = [o.strip() for o in str(settings.cors_allow_origins or "").split(",") if o.strip()]
    if "*" in allow_origins:
        raise RuntimeError("CORS_ALLOW_ORIGINS must not include '*' when allow_credentials=true")

    is_prod = (settings.app_env or "").strip().lower() in {"prod", "production"}

    def _parse_csv(value: str) -> list[str]:
        return [x.strip() for x in str(value or "").split(",") if x.strip()]

    allow_methods_raw = str(settings.cors_allow_methods or "*").strip()
    allow_headers_raw = str(settings.cors_allow_headers or "*").strip()
    if is_prod:
        if allow_methods_raw == "*":
            allow_methods = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
        else:
            allow_methods = _parse_csv(allow_methods_raw)

        if allow_headers_raw == "*":
            allow_headers = ["authorization", "content-type", "x-request-id"]
        else:
            allow_headers = _parse_csv(allow_headers_raw)
    else:
        allow_methods = ["*"] if allow_methods_raw == "*" else _parse_csv(allow_methods_raw)
        allow_headers = ["*"] if allow_headers_raw == "*" else _parse_csv(allow_headers_raw)

    app.state.gateway = get_gateway()
    app.state.registry = SessionRegistry(app.state.gateway)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        t0 = time.perf_counter()
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = rid
        status_code: int | None = None
        try:
            response = await call_next(request)
            status_code = int(getattr(response, "status_code", 0) or 0)
        except Exception:
            status_code = 500
            raise
        finally:
            dur_ms = int((time.perf_counter() - t0) * 1000)
            path = getattr(getattr(request, "url", None), "path", "")
            if not (path.startswith("/health") or path == "/healthz"):
                logger.info(
                    json.dumps(
                        {
                            "ts": datetime.now(timezone.utc).isoformat(),
                            "rid": rid,
                            "user_id": getattr(getattr(request, "state", None), "user_id", None),
                            "method": request.method,
                            "path": path,
                            "status": status_code,
                            "duration_ms": dur_ms,
                        },
                        ensure_ascii=False,
                    )
                )
        response.headers["X-Request-ID"] = rid

        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        if is_prod:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response

    def _request_id(request: Request) -> str | None:
        rid = getattr(getattr(request, "state", None), "request_id", None)
        rid = str(rid or "").strip()
        return rid or None

    def _error(request: Request, status_code: int, error_code: str, error_message: str, headers=None) -> JSONResponse:
        payload = {
            "ok": False,
            "error_code": error_code,
            "error_message": error_message,
            "request_id": _request_id(request),
        }
        return JSONResponse(status_code=int(status_code), content=payload, headers=headers)

    @app.exception_handler(AssessmentError)
    async def assessment_exception_handler(request: Request, exc: AssessmentError):
        if int(exc.status_code) >= 500:
            logger.warning("%s: %s", exc.error_code, exc.message, extra={"rid": _request_id(request)})
        return _error(request, exc.status_code, exc.error_code, exc.message)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        if isinstance(detail, dict):
            error_code = str(detail.get("error_code") or "http_error")
            error_message = str(detail.get("error_message") or detail.get("detail") or "request failed")
        else:
            error_code = (
                "forbidden"
                if int(exc.status_code) == 403
                else "unauthorized"
                if int(exc.status_code) == 401
                else "bad_request"
                if int(exc.status_code) == 400
                else "http_error"
            )
            error_message = str(detail or "request failed")
        return _error(request, exc.status_code, error_code, error_message, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = ".".join(str(x) for x in (first.get("loc") or ())) or "body"
        return _error(request, 422, "validation_error", f"{loc}: {first.get('msg') or 'invalid request'}")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        rid = _request_id(request)
        logger.exception("unhandled exception", extra={"rid": rid})
        return _error(request, 500, "internal_error", "internal server error")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=allow_methods,
        allow_headers=allow_headers,
    )

    app.include_router(health.router)
    app.include_router(sessions.router)
    app.include_router(interview.router)

    return app

app = create_app()
