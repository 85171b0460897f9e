from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from .db.mongo.client import close_client
from .db.mongo.errors import (
    StoreConflict,
    StoreError,
    StoreNotFound,
    StoreUnavailable,
    StoreValidation,
)
from .db.mongo.indexes import ensure_indexes
from .envelope import error_response
from .errors import AppError, ValidationFailed
from .middleware.access_log import AccessLogMiddleware
from .middleware.auth import AuthMiddleware
from .middleware.cors import build_allowed_origins
from .middleware.request_context import RequestContextMiddleware
from .observability.logging import configure_logging, get_logger
from .routers.admin_ops import emails_router, inventory_router, meetings_router
from .routers.borrowers import router as borrowers_router
from .routers.categories import router as categories_router
from .routers.courses import router as courses_router
from .routers.feedback import router as feedback_router
from .routers.gallery import router as gallery_router
from .routers.health import router as health_router
from .routers.offerings import detox_router, recipes_router, services_router, workshops_router
from .routers.products import router as products_router
from .routers.toy_dashboard import router as toy_dashboard_router
from .routers.toys import router as toys_router
from .routers.webinars import router as webinars_router
from .schemas.common import error_list
from .settings import settings

API_ROUTERS = (
    (products_router, "/api/products"),
    (categories_router, "/api/categories"),
    (courses_router, "/api/courses"),
    (webinars_router, "/api/webinars"),
    (feedback_router, "/api/feedback"),
    (gallery_router, "/api/gallery"),
    (services_router, "/api/services"),
    (recipes_router, "/api/recipes"),
    (workshops_router, "/api/workshops"),
    (detox_router, "/api/detox-plans"),
    (inventory_router, "/api/inventory"),
    (meetings_router, "/api/meetings"),
    (emails_router, "/api/emails"),
    (toys_router, "/api/toys"),
    (borrowers_router, "/api/borrowers"),
    (toy_dashboard_router, "/api/toy-dashboard"),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    log = get_logger("startup")
    try:
        ensure_indexes()
    except StoreError as e:
        # The API still serves; writes fall back to the application pre-checks.
        log.error("indexes_not_ensured", error=e.message, operation=e.operation)
    yield
    close_client()


def create_app() -> FastAPI:
    # Logging must be configured before the app starts handling requests.
    configure_logging(
        level=settings.log_level,
        environment=settings.normalized_environment,
        pretty=settings.is_development,
    )
    log = get_logger("startup")

    app = FastAPI(
        title="Therapy Clinic Backend",
        version="1.0.0",
        default_response_class=ORJSONResponse,
        redirect_slashes=False,
        lifespan=lifespan,
    )

    allowed_origins = build_allowed_origins(
        frontend_base_url=settings.frontend_base_url,
        frontend_urls=settings.frontend_urls,
    )

    log.info("app_starting", settings=settings.to_log_safe_dict())

    # Middlewares (order matters; last added is outermost)
    # Auth runs inside CORS so auth failures still get CORS headers.
    app.add_middleware(AuthMiddleware)
    app.add_middleware(AccessLogMiddleware, exclude_paths={"/"})
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Request-Id"],
        expose_headers=["X-Request-Id"],
        max_age=3000,
    )
    # Outermost: request context (request-id) wraps everything.
    app.add_middleware(RequestContextMiddleware)

    # Error handlers
    app.add_exception_handler(AppError, _app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StoreError, _store_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_exception_handler)

    app.include_router(health_router)
    for router, prefix in API_ROUTERS:
        app.include_router(router, prefix=prefix)

    return app


# (status, public message); None keeps the store's own message.
_STORE_STATUS: tuple[tuple[type[StoreError], int, str | None], ...] = (
    (StoreConflict, 400, "Duplicate field value entered"),
    (StoreValidation, 400, None),
    (StoreNotFound, 404, None),
    (StoreUnavailable, 503, "Service Unavailable"),
)


def _app_error_handler(request: Request, exc: AppError) -> Response:
    status_code = int(exc.status_code)
    if status_code >= 500:
        get_logger("app_error").error(
            "upstream_failure",
            status_code=status_code,
            error=exc.message,
            service=getattr(exc, "service", None),
        )
    return error_response(
        request=request,
        status_code=status_code,
        error=exc.message,
        errors=exc.errors if isinstance(exc, ValidationFailed) else None,
        data=exc.data,
    )


def _store_error_handler(request: Request, exc: StoreError) -> Response:
    status_code, error = 500, None
    for error_cls, mapped_status, message in _STORE_STATUS:
        if isinstance(exc, error_cls):
            status_code, error = mapped_status, message or exc.message
            break

    # Index names and server messages stay in the log.
    get_logger("store").warning(
        "store_error",
        status_code=status_code,
        operation=exc.operation,
        collection=exc.collection,
        code=exc.code,
        error=exc.message,
    )
    return error_response(request=request, status_code=status_code, error=error)


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    status_code = int(exc.status_code or 500)
    error = exc.detail.strip() if isinstance(exc.detail, str) and exc.detail.strip() else None
    if status_code == 404 and error in (None, "Not Found"):
        error = f"Route {request.url.path} not found"
    return error_response(request=request, status_code=status_code, error=error)


def _validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    errors = error_list(exc.errors())
    return error_response(
        request=request,
        status_code=400,
        error=errors[0]["message"] if errors else "Validation failed",
        errors=errors,
    )


def _unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    # Runs outside the request middleware, so the log context is already cleared.
    user = getattr(request.state, "user", None)
    get_logger("unhandled").exception(
        "unhandled_exception",
        request_id=getattr(request.state, "request_id", None),
        method=request.method,
        path=request.url.path,
        user_id=getattr(user, "sub", None),
    )
    return error_response(request=request, status_code=500, error=str(exc) or None)


app = create_app()
