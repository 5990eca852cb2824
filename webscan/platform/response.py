from typing import Any, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from webscan.platform.utils.clock import now_ms


def api_response(
    *,
    data: Optional[Any] = None,
    error: Optional[str] = None,
    status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    """
    Single source of truth for ALL API responses.

    Successful responses carry ``{"status": "success", "data": ...}``; anything
    with a status code >= 400 carries ``{"status": "failed", "error": ...}``.
    Both include a ``timestamp`` in epoch milliseconds.
    """
    if status_code < 400:
        content = {
            "status": "success",
            "data": jsonable_encoder(data) if data is not None else {},
        }
    else:
        content = {
            "status": "failed",
            "error": error or "Unknown error",
        }
    content["timestamp"] = now_ms()

    return JSONResponse(status_code=status_code, content=content)
