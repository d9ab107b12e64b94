"""
Error responses

One JSON shape for every ServiceError: {"detail": ..., "type": code}.
"""
from starlette.responses import JSONResponse

from tenantgate.core.exceptions import ServiceError


def error_response(exc: ServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": exc.code},
        headers=exc.headers or None,
    )
