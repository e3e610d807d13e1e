"""Error taxonomy shared by the store services.

Every error is an ``HTTPException`` so it can be raised from service functions
and rendered unchanged at the API boundary, while the web pages catch
``StoreError`` and show ``detail`` to the user.
"""

from typing import Optional

from fastapi import HTTPException, status


class StoreError(HTTPException):
    """Base class for expected, user-facing failures."""

    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "error"
    default_detail: str = "Request failed"

    def __init__(
        self, detail: Optional[str] = None, headers: Optional[dict[str, str]] = None
    ):
        super().__init__(
            status_code=self.http_status,
            detail=detail or self.default_detail,
            headers=headers,
        )


class NotFoundError(StoreError):
    http_status = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_detail = "Not found"


class UnauthorizedError(StoreError):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    default_detail = "Could not validate credentials"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(StoreError):
    http_status = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_detail = "You do not have permission to perform this action"


class ConflictError(StoreError):
    http_status = status.HTTP_409_CONFLICT
    code = "conflict"
    default_detail = "Conflicts with existing data"


class InvalidInputError(StoreError):
    http_status = status.HTTP_400_BAD_REQUEST
    code = "invalid_input"
    default_detail = "Invalid input"


class InsufficientStockError(StoreError):
    http_status = status.HTTP_400_BAD_REQUEST
    code = "insufficient_stock"
    default_detail = "Not enough stock"


class InternalPersistenceError(StoreError):
    """Store-level failure. Raise with ``from exc`` so the cause is kept for logs."""

    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"
    default_detail = "The operation could not be completed"
