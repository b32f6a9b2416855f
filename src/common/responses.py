# src/common/responses.py
"""Response envelopes shared by every router."""

import json
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_success_envelope(request: Request, status_code: int, data: Any) -> dict:
    return {
        "status_code": status_code,
        "timestamp": _now(),
        "path": request.url.path,
        "method": request.method,
        "data": data,
    }


def build_error_envelope(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    details: Optional[Any] = None,
) -> dict:
    body = {
        "status_code": status_code,
        "timestamp": _now(),
        "path": request.url.path,
        "method": request.method,
        "error": error,
        "message": message,
    }
    if details is not None:
        body["details"] = details
    return body


class EnvelopeRoute(APIRoute):
    """
    Wraps JSON route results in the success envelope.

    Non-JSON responses (PDF downloads) are returned untouched.
    """

    def get_route_handler(self) -> Callable:
        original_route_handler = super().get_route_handler()

        async def envelope_route_handler(request: Request) -> Response:
            response = await original_route_handler(request)
            if response.media_type != "application/json":
                return response

            data = json.loads(response.body) if response.body else None
            return JSONResponse(
                status_code=response.status_code,
                content=build_success_envelope(request, response.status_code, data),
                background=response.background,
            )

        return envelope_route_handler
