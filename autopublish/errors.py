from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


class AutoPublishNotConfiguredError(ApiError):
    def __init__(self) -> None:
        super().__init__(
            status_code=500,
            code="AUTO_PUBLISH_NOT_CONFIGURED",
            message="Auto-publish service not configured.",
        )


class UnauthorizedError(ApiError):
    def __init__(self, message: str = "Unauthorized.") -> None:
        super().__init__(status_code=401, code="UNAUTHORIZED", message=message)


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    extra: dict[str, Any] | None = None,
) -> JSONResponse:
    payload: dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
            "request_id": get_request_id(request),
        }
    }
    if extra:
        payload.update(extra)
    return JSONResponse(status_code=status_code, content=payload)
