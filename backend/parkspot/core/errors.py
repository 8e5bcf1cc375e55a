"""
Reservation error kinds.

Each kind is an HTTPException so services can raise them directly, the same
way the rest of the API surfaces failures, while callers that use the core
without HTTP can still catch them by type.

    NotFoundError       404  location or spot does not exist
    ConflictError       409  spot was taken by someone else at commit time
    ForbiddenError      403  cancel attempted by a non-owner
    TransientError      503  storage unreachable, safe to retry with backoff
    IndeterminateError  504  mutation timed out, re-read before retrying
"""

from fastapi import HTTPException, status


class ReservationError(HTTPException):
    kind: str = "error"
    status_code_for_kind: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    # Whether the client must re-read spot state before acting again
    refresh: bool = False

    def __init__(self, detail: str, headers: dict[str, str] | None = None):
        super().__init__(status_code=self.status_code_for_kind, detail=detail, headers=headers)


class NotFoundError(ReservationError):
    kind = "not_found"
    status_code_for_kind = status.HTTP_404_NOT_FOUND


class ConflictError(ReservationError):
    kind = "conflict"
    refresh = True
    status_code_for_kind = status.HTTP_409_CONFLICT


class ForbiddenError(ReservationError):
    kind = "forbidden"
    refresh = True
    status_code_for_kind = status.HTTP_403_FORBIDDEN


class TransientError(ReservationError):
    kind = "transient"
    status_code_for_kind = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, detail: str, retry_after: int = 1):
        super().__init__(detail, headers={"Retry-After": str(retry_after)})


class IndeterminateError(ReservationError):
    kind = "indeterminate"
    refresh = True
    status_code_for_kind = status.HTTP_504_GATEWAY_TIMEOUT
