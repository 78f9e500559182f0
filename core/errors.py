"""
core/errors.py -- Error taxonomy shared by the stores, the auth flows and the API.

Stores and flows raise these; api/main.py registers one exception handler
that turns any AppError into the standard error envelope. Route handlers
therefore never build 4xx/5xx responses by hand for these cases.

  ValidationError     400  malformed input, illegal status transition
  Conflict            400  duplicate unique key (email)
  InvalidCredentials  401  login failure, deliberately generic
  Unauthorized        401  missing / invalid / expired session
  Forbidden           403  role not allowed to mutate
  NotFound            404  absent OR owned by another organization
  DependencyFailure   503  durable store unreachable

NotFound is used for cross-tenant ids on purpose: a separate "forbidden"
answer would confirm that the id exists in some other organization.

Layer rule: core/ is the kernel. No imports from api/, auth/, or tenant/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger("secaudit.store")


class AppError(Exception):
    """Base class for errors that cross the API boundary with a known status."""

    status_code: int = 500
    default_code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, *, code: str | None = None, detail=None) -> None:
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.detail = detail
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_code = "validation_error"
    default_message = "Request validation failed."


class Conflict(AppError):
    status_code = 400
    default_code = "email_taken"
    default_message = "An account with that email already exists."


class InvalidCredentials(AppError):
    status_code = 401
    default_code = "invalid_credentials"
    default_message = "Invalid email or password."


class Unauthorized(AppError):
    status_code = 401
    default_code = "unauthorized"
    default_message = "Unauthorized"


class Forbidden(AppError):
    status_code = 403
    default_code = "forbidden"
    default_message = "Your role does not allow this action."


class NotFound(AppError):
    status_code = 404
    default_code = "not_found"
    default_message = "Not found."

    @classmethod
    def entity(cls, entity: str) -> "NotFound":
        """NotFound for a named entity, e.g. NotFound.entity("asset") -> asset_not_found."""
        label = entity.replace("_", " ")
        return cls(f"{label[:1].upper()}{label[1:]} not found.", code=f"{entity}_not_found")


class DependencyFailure(AppError):
    status_code = 503
    default_code = "dependency_failure"
    default_message = "A backing service is unavailable. Try again later."


@contextmanager
def translate_store_errors(operation: str, entity: str, organization_id: str | None = None) -> Iterator[None]:
    """Map SQLAlchemy failures inside the block to DependencyFailure.

    IntegrityError passes through unchanged -- it is a data condition the
    caller turns into Conflict (or a skip), not an outage. Everything else
    from SQLAlchemy means the store could not answer, and is logged with
    enough context to find the failing request without leaking it to the client.
    """
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        logger.error(
            "store failure op=%s entity=%s org=%s error=%s",
            operation,
            entity,
            organization_id or "-",
            exc.__class__.__name__,
        )
        raise DependencyFailure() from exc
