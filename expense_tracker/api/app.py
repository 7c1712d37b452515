"""FastAPI application bootstrap."""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from expense_tracker import __version__
from expense_tracker.api.routers import export, health, otp, statements, transactions
from expense_tracker.config import get_settings
from expense_tracker.export import ExportError
from expense_tracker.ledger import MalformedTransactionError, ValidationError
from expense_tracker.services.mail import MailDeliveryError
from expense_tracker.services.otp import EmailNotAllowed, OtpError
from expense_tracker.services.storage import StorageError


logger = structlog.get_logger(__name__)

INVALID_OTP_MESSAGE = "Invalid or expired OTP"


def _failure(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, **extra},
    )


def install_exception_handlers(app: FastAPI) -> None:
    """Map component exceptions to HTTP responses."""

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": [str(part) for part in error["loc"]], "msg": error["msg"]}
            for error in exc.errors()
        ]
        return _failure(status.HTTP_400_BAD_REQUEST, "Invalid request body", errors=errors)

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError):
        return _failure(status.HTTP_400_BAD_REQUEST, str(exc), errors=exc.to_dicts())

    @app.exception_handler(OtpError)
    async def otp_handler(request: Request, exc: OtpError):
        # One message for every reason, so callers learn nothing about pending codes
        return _failure(status.HTTP_400_BAD_REQUEST, INVALID_OTP_MESSAGE)

    @app.exception_handler(EmailNotAllowed)
    async def email_not_allowed_handler(request: Request, exc: EmailNotAllowed):
        return _failure(status.HTTP_403_FORBIDDEN, "Email is not allowed")

    @app.exception_handler(MailDeliveryError)
    async def mail_handler(request: Request, exc: MailDeliveryError):
        return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to send OTP")

    @app.exception_handler(StorageError)
    async def storage_handler(request: Request, exc: StorageError):
        logger.error("storage_error", path=request.url.path, error=str(exc))
        return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    @app.exception_handler(MalformedTransactionError)
    async def malformed_handler(request: Request, exc: MalformedTransactionError):
        logger.error("malformed_transactions", path=request.url.path, problems=exc.problems)
        return _failure(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            str(exc),
            positions=[position for position, _ in exc.problems],
        )

    @app.exception_handler(ExportError)
    async def export_handler(request: Request, exc: ExportError):
        return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))


def create_app() -> FastAPI:
    app = FastAPI(title="Expense Tracker API", version=__version__)

    settings = get_settings().app
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(otp.router)
    app.include_router(transactions.router)
    app.include_router(statements.router)
    app.include_router(export.router)

    return app
