# app/core/exception_handlers.py

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.core.exceptions import (
    DuplicateSkuError,
    LedgerError,
    NotFoundError,
    PartialApplicationError,
    ValidationError,
)

logger = logging.getLogger("app")


def setup_exception_handlers(app: FastAPI):

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": exc.message},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": exc.message},
        )

    @app.exception_handler(DuplicateSkuError)
    async def duplicate_sku_handler(request: Request, exc: DuplicateSkuError):
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": exc.message},
        )

    # Never a silent toast: the balance is suspect until reconciled
    @app.exception_handler(PartialApplicationError)
    async def partial_application_handler(request: Request, exc: PartialApplicationError):
        logger.critical(
            f"{request.method} {request.url.path} left item {exc.item_id} "
            f"partially applied: {exc.message}"
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": exc.message,
                "item_id": exc.item_id,
                "requires_attention": True,
            },
        )

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": exc.message},
        )
