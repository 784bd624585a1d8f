import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.auth.router import router as auth_router
from app.api.v1.classes.classes_router import router as classes_router
from app.api.v1.dashboard.router import router as dashboard_router
from app.api.v1.fee_groups.router import router as fee_groups_router
from app.api.v1.fee_master.router import router as fee_master_router
from app.api.v1.fee_transactions.router import router as fee_transactions_router
from app.api.v1.fee_types.router import router as fee_types_router
from app.api.v1.fees.router import router as fees_router
from app.api.v1.sections.sections_router import router as sections_router
from app.api.v1.sessions.router import router as sessions_router
from app.api.v1.students.router import router as students_router
from app.api.v1.users.router import router as users_router
from app.core.config import settings
from app.core.exceptions import ServiceError
from app.core.logging_config import configure_logging

logger = logging.getLogger(__name__)


def _error_body(message: str, errors=None) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


def _validation_errors(exc: RequestValidationError) -> dict:
    """field -> [messages]; body/query prefixes are dropped from the field path."""
    errors = {}
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "form")]
        field = ".".join(loc) or "request"
        errors.setdefault(field, []).append(err.get("msg", "Invalid value"))
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if isinstance(exc.detail, dict):
            body = _error_body(exc.detail.get("message", ""), exc.detail.get("errors"))
        else:
            body = _error_body(str(exc.detail))
        return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_body("Validation failed", _validation_errors(exc)),
        )

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.errors))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(f"Internal server error: {exc}"),
        )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="School ERP Backend")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    # Routers
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(sessions_router)
    app.include_router(classes_router)
    app.include_router(sections_router)
    app.include_router(students_router)
    app.include_router(fee_groups_router)
    app.include_router(fee_types_router)
    app.include_router(fee_master_router)
    app.include_router(fees_router)
    app.include_router(fee_transactions_router)
    app.include_router(dashboard_router)

    return app


app = create_app()
