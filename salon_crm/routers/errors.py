from __future__ import annotations

from fastapi import HTTPException, status

from salon_crm.services.errors import (
    DataAccessFailure,
    DispatchError,
    NotFound,
    TokenAlreadyUsed,
    TokenExpired,
    Unauthorized,
    ValidationFailure,
)

_STATUS_BY_ERROR: tuple[tuple[type[DispatchError], int], ...] = (
    (Unauthorized, status.HTTP_401_UNAUTHORIZED),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (ValidationFailure, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (DataAccessFailure, status.HTTP_503_SERVICE_UNAVAILABLE),
    (TokenExpired, status.HTTP_410_GONE),
    (TokenAlreadyUsed, status.HTTP_409_CONFLICT),
)


def to_http_exception(exc: DispatchError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error")
