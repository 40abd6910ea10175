from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from lprewards.runtime import errors as rerr

# RewardsError code -> HTTP status
_STATUS_BY_CODE: Dict[str, int] = {
    rerr.UNAUTHORIZED: 403,
    rerr.NOT_WHITELISTED: 404,
    rerr.ALREADY_WHITELISTED: 409,
    rerr.INSUFFICIENT_BALANCE: 409,
    rerr.TEMPORAL_VIOLATION: 400,
    rerr.INVALID_CONFIG: 400,
    rerr.ARITHMETIC_ERROR: 400,
    rerr.INVARIANT_VIOLATION: 500,
    rerr.TRANSFER_FAILED: 502,
}


@dataclass
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def not_found(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(404, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    @staticmethod
    def from_rewards_error(e: rerr.RewardsError) -> "ApiError":
        return ApiError(_STATUS_BY_CODE.get(e.code, 400), e.code, e.reason, dict(e.details or {}))


def _error_response(e: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=e.status_code,
        content={"ok": False, "error": {"code": e.code, "message": e.message, "details": e.details}},
    )


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return _error_response(exc)


async def rewards_error_handler(request: Request, exc: rerr.RewardsError) -> JSONResponse:
    return _error_response(ApiError.from_rewards_error(exc))
