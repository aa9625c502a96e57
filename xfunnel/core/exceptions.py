"""HTTP-facing application errors.

Raised from the service and API layers; FastAPI renders them as
``{"detail": ...}`` with the matching status code.
"""

from fastapi import HTTPException, status


class AppError(HTTPException):
    """Base class for errors that map directly onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str = "Internal error"):
        super().__init__(status_code=self.status_code, detail=detail)


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class DataLoadError(AppError):
    """The response_analysis query failed; nothing was aggregated."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, what: str):
        self.what = what
        super().__init__(detail=f"Failed to load {what}")
