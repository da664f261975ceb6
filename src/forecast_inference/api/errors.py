"""RFC 9457 problem detail errors."""

import structlog
from fastapi import Request, status
from fastapi.responses import JSONResponse

from forecast_inference.api.schemas import ProblemDetail

logger = structlog.get_logger()

PROBLEM_MEDIA_TYPE = "application/problem+json"


class ProblemError(Exception):
    """Error rendered as a problem detail response."""

    def __init__(self, status: int, title: str, detail: str) -> None:
        super().__init__(detail)
        self.status = status
        self.title = title
        self.detail = detail


def _problem_response(request: Request, status_code: int, title: str, detail: str) -> JSONResponse:
    problem = ProblemDetail(
        title=title,
        status=status_code,
        detail=detail,
        instance=request.url.path,
    )
    return JSONResponse(
        status_code=status_code,
        content=problem.model_dump(),
        media_type=PROBLEM_MEDIA_TYPE,
    )


async def problem_error_handler(request: Request, exc: ProblemError) -> JSONResponse:
    """Render a ProblemError with the request path as its instance."""
    return _problem_response(request, exc.status, exc.title, exc.detail)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render any other failure as a generic 500 problem detail."""
    logger.exception("Unhandled error", path=request.url.path, exc_info=exc)
    return _problem_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "internal server error",
        "an unexpected error occurred while handling the request",
    )
