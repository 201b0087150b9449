from __future__ import annotations

import logging
import time
import uuid
from typing import Callable

import uvicorn
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse

from api.routes import router
from coach.config import get_settings
from coach.db import create_schema
from coach.errors import InvalidTransition, NotFoundError
from coach.logging_config import setup_logging

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level, service="api")
    if settings.is_dev:
        create_schema()

    app = FastAPI(title="Adaptive Coach Scheduler API", version="1.0.0")
    app.include_router(router)

    @app.exception_handler(NotFoundError)
    async def not_found(_request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(InvalidTransition)
    async def invalid_transition(_request: Request, exc: InvalidTransition) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})

    @app.middleware("http")
    async def request_logging(request: Request, call_next: Callable) -> Response:
        request_id = (request.headers.get(REQUEST_ID_HEADER) or "").strip() or uuid.uuid4().hex
        started = time.perf_counter()
        fields = {"ctx_request_id": request_id, "ctx_method": request.method, "ctx_path": request.url.path}
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("http_request_error", extra={**fields, "ctx_status_code": 500})
            raise
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "http_request",
            extra={
                **fields,
                "ctx_status_code": response.status_code,
                "ctx_duration_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )
        return response

    return app


def main() -> None:
    settings = get_settings()
    uvicorn.run(create_app(), host=settings.api_host, port=settings.api_port, log_level="warning")


if __name__ == "__main__":
    main()
