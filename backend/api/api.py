import asyncio
import contextvars
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from backend.core import settings
from backend.engine.attendance import UnreachableTargetError
from backend.engine.fetch import (
    fetch_student_attendance,
    AuthenticationError,
    AttendanceScrapingError,
)
from backend.engine.report import (
    EmptyDatasetError,
    MalformedRecordError,
    build_report,
    parse_target,
)
from backend.engine.stream import app_logger

SCRAPE_FAILED_MESSAGE = (
    "An error occurred. It could be due to incorrect credentials "
    "or a change in the website's structure."
)
NO_DATA_MESSAGE = "Could not parse any attendance data."

router = APIRouter()

# One portal session per request, at most MAX_CONCURRENT_SCRAPES at a time.
# Keyed by event loop; a semaphore binds to the loop it first waits on.
_scrape_slots: Dict[asyncio.AbstractEventLoop, asyncio.Semaphore] = {}


def scrape_slots() -> asyncio.Semaphore:
    loop = asyncio.get_running_loop()
    if loop not in _scrape_slots:
        _scrape_slots.clear()
        _scrape_slots[loop] = asyncio.Semaphore(settings.MAX_CONCURRENT_SCRAPES)
    return _scrape_slots[loop]


class AttendanceRequest(BaseModel):
    """Request model for attendance projection."""

    username: Optional[str] = Field(None, description="ETLab username")
    password: Optional[str] = Field(None, description="ETLab password")
    target: Optional[Any] = Field(
        None, description="Target attendance percentage, defaults to 75"
    )

    @field_validator("username", "password", mode="before")
    @classmethod
    def numbers_as_text(cls, value: Any) -> Any:
        # Numeric roll numbers are sent as JSON numbers by some clients
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(content={"error": message}, status_code=status_code)


async def invalid_request_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    error_types = [error.get("type") for error in exc.errors()]
    app_logger.warning(f"Rejected request body: {error_types}")
    return error_response("Invalid request body", status.HTTP_400_BAD_REQUEST)


async def _scrape(username: str, password: str) -> Dict[str, Dict[str, int]]:
    loop = asyncio.get_running_loop()
    # Copy the context so worker thread logs keep the request id
    context = contextvars.copy_context()

    async with scrape_slots():
        return await loop.run_in_executor(
            None, context.run, fetch_student_attendance, username, password
        )


@router.get("/healthcheck")
async def healthcheck() -> Dict[str, str]:
    return {"message": "Service is healthy", "status": "ok"}


@router.post("/attendance")
async def get_attendance(request: Optional[AttendanceRequest] = None) -> Any:
    if request is None or not request.username or not request.password:
        return error_response("Missing username or password", status.HTTP_400_BAD_REQUEST)

    target = parse_target(request.target)
    app_logger.info(f"Attendance requested with target {target}%")

    try:
        raw_attendance = await _scrape(request.username, request.password)
        report = build_report(raw_attendance, target)

    except (AuthenticationError, AttendanceScrapingError) as error:
        app_logger.error(f"An error occurred: {error}")
        return error_response(SCRAPE_FAILED_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR)

    except EmptyDatasetError as error:
        app_logger.warning(f"Scrape returned nothing: {error}")
        return error_response(NO_DATA_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR)

    except MalformedRecordError as error:
        app_logger.error(f"Malformed attendance data: {error}")
        return error_response(NO_DATA_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR)

    except UnreachableTargetError as error:
        app_logger.warning(f"Rejected target: {error}")
        return error_response(str(error), status.HTTP_400_BAD_REQUEST)

    app_logger.info(f"Returning projections for {len(report.results)} subjects")
    return report.to_dict()
