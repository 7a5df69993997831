# catalog/core/errors.py
"""
Error taxonomy for catalog mutations.

Every error is an ``HTTPException`` so services can raise it directly and
FastAPI renders it with the matching status code.
"""
from contextlib import contextmanager
from typing import Any

from fastapi import HTTPException, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session


class CatalogError(HTTPException):
    """Base class for all catalog failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Catalog operation failed"

    def __init__(self, detail: Any = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail if detail is not None else self.default_detail,
        )


class ValidationError(CatalogError):
    """
    Malformed or missing input.

    ``field_errors`` maps a form field name to its messages, the same
    shape the admin forms already render.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input"

    def __init__(
        self,
        message: str | None = None,
        field_errors: dict[str, list[str]] | None = None,
    ):
        self.field_errors = field_errors or {}
        if self.field_errors:
            detail: Any = {"field_errors": self.field_errors}
        else:
            detail = message or self.default_detail
        super().__init__(detail)

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        field_errors: dict[str, list[str]] = {}
        for err in exc.errors():
            loc = ".".join(str(part) for part in err["loc"]) or "__root__"
            field_errors.setdefault(loc, []).append(err["msg"])
        return cls(field_errors=field_errors)


class AuthenticationError(CatalogError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Authentication required"


class AuthorizationError(CatalogError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Permission denied"


class NotFoundError(CatalogError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class ConflictError(CatalogError):
    # The admin forms treat a slug collision like any other field error.
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Slug is already in use"


class StoreFailure(CatalogError):
    """
    Upload/insert/delete failure from the asset store or the database.

    The underlying store message is kept verbatim in ``detail``.
    """

    def __init__(self, message: str, caller_correctable: bool = True):
        self.caller_correctable = caller_correctable
        self.status_code = (
            status.HTTP_400_BAD_REQUEST
            if caller_correctable
            else status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        super().__init__(message)


@contextmanager
def store_errors(session: Session, action: str, caller_correctable: bool = True):
    """
    Turn database errors raised inside the block into StoreFailure.

    The session is rolled back so later compensation steps can still use it.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        session.rollback()
        raise StoreFailure(
            f"{action} failed: {exc}",
            caller_correctable=caller_correctable,
        ) from exc
