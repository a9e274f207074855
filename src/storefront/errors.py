"""Business error taxonomy.

Every business failure is a Protean ``ValidationError`` (so it carries the
usual ``messages`` dict) tagged with an ``ErrorKind``. The HTTP layer renders
the kind; anything that is not a ``StorefrontError`` is an INTERNAL failure.
"""

from enum import Enum

from protean.exceptions import ObjectNotFoundError, ValidationError


class ErrorKind(Enum):
    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    EMPTY_CART = "EMPTY_CART"
    PRICE_CHANGED = "PRICE_CHANGED"
    STOCK_UNAVAILABLE = "STOCK_UNAVAILABLE"
    STATE_TRANSITION_INVALID = "STATE_TRANSITION_INVALID"
    INSUFFICIENT_POINTS = "INSUFFICIENT_POINTS"
    INTERNAL = "INTERNAL"


class StorefrontError(ValidationError):
    kind = ErrorKind.VALIDATION


class ConflictError(StorefrontError):
    kind = ErrorKind.CONFLICT


class NotFoundError(StorefrontError):
    kind = ErrorKind.NOT_FOUND


class ForbiddenError(StorefrontError):
    kind = ErrorKind.FORBIDDEN


class EmptyCartError(StorefrontError):
    """Checkout was attempted against a cart with no lines."""

    kind = ErrorKind.EMPTY_CART


class PriceChangedError(ConflictError):
    """The authoritative quote differs from the total the customer was shown."""

    kind = ErrorKind.PRICE_CHANGED


class StockUnavailableError(StorefrontError):
    kind = ErrorKind.STOCK_UNAVAILABLE


class InvalidTransitionError(StorefrontError):
    kind = ErrorKind.STATE_TRANSITION_INVALID


class InsufficientPointsError(StorefrontError):
    kind = ErrorKind.INSUFFICIENT_POINTS


def error_kind(exc: Exception) -> ErrorKind:
    """Classify any exception; unknown failures are INTERNAL."""
    if isinstance(exc, StorefrontError):
        return exc.kind
    if isinstance(exc, ObjectNotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(exc, ValidationError):
        return ErrorKind.VALIDATION
    return ErrorKind.INTERNAL
