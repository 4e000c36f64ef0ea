from __future__ import annotations

from dataclasses import dataclass

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from momentracker.domain.errors import ProviderError, ProviderRateLimitedError, StorageError


@dataclass(slots=True)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: dict | None = None


def raise_api_error(
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict | None = None,
) -> None:
    raise ApiError(status_code=status_code, code=code, message=message, details=details)


def install_api_error_handlers(application: FastAPI) -> None:
    @application.exception_handler(ApiError)
    async def _handle_api_error(_, exc: ApiError) -> JSONResponse:  # type: ignore[override]
        return _error_response(
            status_code=exc.status_code,
            code=exc.code,
            message=exc.message,
            details=exc.details,
        )

    @application.exception_handler(StorageError)
    async def _handle_storage_error(_, exc: StorageError) -> JSONResponse:  # type: ignore[override]
        return _error_response(status_code=503, code=exc.code, message="data store is unavailable")

    @application.exception_handler(ProviderError)
    async def _handle_provider_error(_, exc: ProviderError) -> JSONResponse:  # type: ignore[override]
        if isinstance(exc, ProviderRateLimitedError):
            return _error_response(status_code=429, code=exc.code, message="upstream provider rate limited")
        return _error_response(status_code=502, code=exc.code, message="upstream provider is unavailable")


def _error_response(
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict | None = None,
) -> JSONResponse:
    error_payload: dict = {
        "code": code,
        "message": message,
    }
    if details is not None:
        error_payload["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error_payload})
