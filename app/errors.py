from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


class AlreadyClockedIn(ApiError):
    def __init__(self, message: str = "An open time entry already exists. Clock out first."):
        super().__init__(status_code=409, code="ALREADY_CLOCKED_IN", message=message)


class NoOpenSession(ApiError):
    def __init__(self, message: str = "No active time entry found."):
        super().__init__(status_code=409, code="NO_OPEN_SESSION", message=message)


class InvalidTransition(ApiError):
    def __init__(self, message: str = "Only completed time entries can be reviewed."):
        super().__init__(status_code=409, code="INVALID_TRANSITION", message=message)


class InvalidWorkLog(ApiError):
    def __init__(self, message: str):
        super().__init__(status_code=422, code="INVALID_WORK_LOG", message=message)


class InvalidLeaveRequest(ApiError):
    def __init__(self, message: str):
        super().__init__(status_code=422, code="INVALID_LEAVE_REQUEST", message=message)


class LeaveOverlap(ApiError):
    def __init__(self, message: str = "Leave request overlaps an approved leave."):
        super().__init__(status_code=409, code="LEAVE_OVERLAP", message=message)


class NotFound(ApiError):
    def __init__(self, message: str = "Resource not found."):
        super().__init__(status_code=404, code="NOT_FOUND", message=message)


class Forbidden(ApiError):
    def __init__(self, message: str = "Insufficient permissions."):
        super().__init__(status_code=403, code="FORBIDDEN", message=message)


class StorageError(Exception):
    """Raised by repositories when the database call itself failed.

    Reads may be retried by the caller; writes must re-check state first.
    """


class OpenSessionConflict(StorageError):
    """The open-session unique index rejected a second in_progress row."""


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(request: Request, *, status_code: int, code: str, message: str) -> JSONResponse:
    payload = {
        "error": {
            "code": code,
            "message": message,
            "request_id": get_request_id(request),
        }
    }
    return JSONResponse(status_code=status_code, content=payload)
