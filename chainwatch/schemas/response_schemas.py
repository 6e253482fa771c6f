from __future__ import annotations

from datetime import datetime, timezone
import uuid
from typing import Any

from pydantic import BaseModel

API_VERSION = "1.0.0"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [to_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    return value


def response_envelope(success: bool, data: Any = None, error: dict | None = None, request_id: str | None = None) -> dict:
    return {
        "success": success,
        "data": to_jsonable(data),
        "error": error,
        "request_id": request_id or f"req_{uuid.uuid4().hex[:12]}",
        "timestamp": utc_now_iso(),
        "version": API_VERSION,
    }


def error_payload(code: str, message: str, details: dict | None = None) -> dict:
    return {"code": code, "message": message, "details": details or {}}
