#!/usr/bin/env python3
"""
Main entrypoint for the ETLab Attendance Projection service.

Settings come from the environment or a .env file (see backend/core/config.py):
 - PORT: port to listen on (defaults to 8080)
 - DEFAULT_TARGET: target percentage used when a request omits one
 - ALLOWED_ORIGINS: CORS origins, JSON list (defaults to ["*"])

Examples:
    export PORT=9000
    uv run main.py
"""
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from backend.api.api import invalid_request_handler, router
from backend.core import settings
from backend.engine.stream import app_logger, new_request_id, request_logging_context


def create_app() -> FastAPI:
    app = FastAPI(
        title="ETLab Attendance Tracker",
        description="Fetch ETLab attendance and project classes needed or bunkable",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def attach_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or new_request_id()
        async with request_logging_context(request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    app.add_exception_handler(RequestValidationError, invalid_request_handler)
    app.include_router(router, prefix="/api")
    return app


app = create_app()


if __name__ == "__main__":
    app_logger.info(f"Server is running on port {settings.PORT}")
    uvicorn.run("main:app", host="0.0.0.0", port=settings.PORT, reload=settings.DEBUG)
