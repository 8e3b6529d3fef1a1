"""
Success envelope: {"success": true, "data": ..., "message"?: str}.

Error envelopes are produced by the exception handlers in floor_api.core.errors.
"""

from typing import Any

from fastapi.encoders import jsonable_encoder


def ok(data: Any = None, message: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True, "data": jsonable_encoder(data)}
    if message:
        body["message"] = message
    return body
