from __future__ import annotations

import time
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.middleware.base import BaseHTTPMiddleware

from chainwatch.core.logger import get_logger
from chainwatch.schemas.response_schemas import error_payload, response_envelope

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request.state.request_id = f"req_{uuid.uuid4().hex[:12]}"
        start = time.time()
        logger.info(
            "http.request.start",
            request_id=request.state.request_id,
            method=request.method,
            path=request.url.path,
        )
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "http.request.error",
                request_id=request.state.request_id,
                method=request.method,
                path=request.url.path,
            )
            raise
        duration = time.time() - start
        response.headers["X-Request-Id"] = request.state.request_id
        response.headers["X-Process-Time"] = f"{duration:.4f}"
        logger.info(
            "http.request.end",
            request_id=request.state.request_id,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )
        return response


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    logger.warning("http.request.integrity_error", request_id=request_id, path=request.url.path, error=str(exc.orig))
    return JSONResponse(
        status_code=422,
        content=response_envelope(
            False,
            error=error_payload("CONSTRAINT_VIOLATION", "Record violates a database constraint", {"reason": str(exc.orig)}),
            request_id=request_id,
        ),
    )


def register_middleware(app: FastAPI) -> None:
    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
