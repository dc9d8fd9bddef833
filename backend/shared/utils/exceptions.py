"""
Centralized HTTP exceptions for consistent error handling.

Every exception carries a machine-readable ``code`` and logs itself on
construction. Services raise these directly; the application exception
handler renders them as ``{"detail": ..., "code": ..., **extra}``.

Usage:
    from shared.utils.exceptions import NotFoundError, InsufficientStockError

    raise NotFoundError("Flavor", flavor_id)
    raise InsufficientStockError(flavor_id=7, size="large", requested=2, remaining=1)
"""

from typing import Any

from fastapi import HTTPException, status

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    code: str = "error"

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        extra: dict[str, Any] | None = None,
        **log_context: Any,
    ):
        # Payload fields returned to the client next to detail/code
        self.extra = extra or {}

        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, code=self.code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)

    def to_payload(self) -> dict[str, Any]:
        """Response body for this error."""
        return {"detail": self.detail, "code": self.code, **self.extra}


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Product", 123)
        raise NotFoundError("Order")
    """

    code = "not_found"

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} {entity_id} not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


class CartNotFoundError(NotFoundError):
    """Cart token does not match any cart."""

    def __init__(self, **log_context: Any):
        super().__init__("Cart", **log_context)


class OrderNotFoundError(NotFoundError):
    """Order not found (or tracking code and email do not match)."""

    def __init__(self, order_ref: int | str | None = None, **log_context: Any):
        super().__init__("Order", order_ref, **log_context)


# =============================================================================
# 403 Forbidden Errors
# =============================================================================


class ForbiddenError(AppException):
    """Authorization error (403)."""

    code = "forbidden"

    def __init__(self, action: str | None = None, **log_context: Any):
        if action:
            detail = f"Not authorized to {action}"
        else:
            detail = "Access denied"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            action=action,
            **log_context,
        )


class PhoneNotVerifiedError(ForbiddenError):
    """Checkout requires a recently verified phone number."""

    code = "phone_not_verified"

    def __init__(self, **log_context: Any):
        super().__init__("check out before verifying the phone number", **log_context)


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class InvalidInputError(AppException):
    """
    Malformed or semantically invalid request (400). No side effects.

    Usage:
        raise InvalidInputError("Cart is empty")
        raise InvalidInputError("Unknown size", field="size", value="xl")
    """

    code = "invalid_input"

    def __init__(self, detail: str, extra: dict[str, Any] | None = None, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            extra=extra,
            **log_context,
        )


class InvalidQuantityError(InvalidInputError):
    """Quantity must be a positive integer."""

    code = "invalid_quantity"

    def __init__(self, quantity: int, **log_context: Any):
        super().__init__(
            f"Quantity must be positive, got {quantity}",
            quantity=quantity,
            **log_context,
        )


class InvalidCompositionError(InvalidInputError):
    """Flavor selections of a cart item do not match the product."""

    code = "invalid_composition"

    def __init__(
        self,
        product_id: int,
        reason: str,
        required: int | None = None,
        selected: int | None = None,
        **log_context: Any,
    ):
        extra = {"product_id": product_id}
        if required is not None:
            extra["required"] = required
            extra["selected"] = selected
        super().__init__(
            f"Invalid flavor composition for product {product_id}: {reason}",
            extra=extra,
            product_id=product_id,
            **log_context,
        )


class InvalidStateError(InvalidInputError):
    """Entity is in an invalid state for the operation."""

    code = "invalid_state"

    def __init__(self, entity: str, current_state: str, expected_states: list[str] | None = None, **log_context: Any):
        if expected_states:
            states_str = ", ".join(expected_states)
            detail = f"{entity} is '{current_state}', expected one of: {states_str}"
        else:
            detail = f"{entity} cannot be '{current_state}' for this operation"

        super().__init__(
            detail,
            extra={"current_state": current_state},
            entity=entity,
            current_state=current_state,
            **log_context,
        )


class InvalidTransitionError(InvalidInputError):
    """Invalid status transition."""

    code = "invalid_transition"

    def __init__(self, entity: str, from_status: str, to_status: str, **log_context: Any):
        detail = f"Invalid transition from '{from_status}' to '{to_status}' for {entity}"
        super().__init__(
            detail,
            extra={"from_status": from_status, "to_status": to_status},
            entity=entity,
            **log_context,
        )


class PromoCodeError(InvalidInputError):
    """Promo code cannot be applied."""

    code = "invalid_promo_code"

    def __init__(self, promo_code: str, reason: str, **log_context: Any):
        super().__init__(reason, extra={"promo_code": promo_code}, promo_code=promo_code, **log_context)


# =============================================================================
# 409 Conflict Errors
# =============================================================================


class ConflictError(AppException):
    """
    Resource conflict error (409).

    Usage:
        raise ConflictError("Promo code usage limit reached")
    """

    code = "conflict"

    def __init__(self, detail: str, extra: dict[str, Any] | None = None, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            extra=extra,
            **log_context,
        )


class InsufficientStockError(ConflictError):
    """Requested quantity exceeds the stock counter of a flavor size."""

    code = "insufficient_stock"

    def __init__(self, flavor_id: int, size: str, requested: int, remaining: int, **log_context: Any):
        self.flavor_id = flavor_id
        self.size = size
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Insufficient stock for flavor {flavor_id} ({size}): requested {requested}, remaining {remaining}",
            extra={
                "flavor_id": flavor_id,
                "size": size,
                "requested": requested,
                "remaining": remaining,
            },
            flavor_id=flavor_id,
            size=size,
            **log_context,
        )


class TransactionConflictError(ConflictError):
    """A concurrent writer changed a row this transaction depended on."""

    code = "transaction_conflict"

    def __init__(self, resource: str, **log_context: Any):
        super().__init__(
            f"Concurrent update on {resource}, please retry",
            extra={"resource": resource},
            resource=resource,
            **log_context,
        )


# =============================================================================
# 500 Internal Server Errors
# =============================================================================


class InternalError(AppException):
    """Internal server error (500)."""

    code = "internal_error"

    def __init__(self, detail: str = "Internal server error", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            **log_context,
        )


class DatabaseError(InternalError):
    """Database operation failed."""

    code = "database_error"

    def __init__(self, operation: str, **log_context: Any):
        detail = f"Database error during {operation}. Please try again."
        super().__init__(detail, operation=operation, **log_context)


class DependencyFailureError(AppException):
    """External gateway (payment, SMS) failed or is unreachable (502 or 503)."""

    code = "dependency_failure"

    def __init__(
        self,
        service: str,
        is_unavailable: bool = False,
        retry_after: int | None = None,
        **log_context: Any,
    ):
        if is_unavailable:
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            detail = f"{service} service temporarily unavailable"
        else:
            status_code = status.HTTP_502_BAD_GATEWAY
            detail = f"Error communicating with {service}"

        headers = None
        if retry_after:
            headers = {"Retry-After": str(retry_after)}

        super().__init__(
            status_code=status_code,
            detail=detail,
            log_level="error",
            headers=headers,
            extra={"service": service},
            service=service,
            **log_context,
        )
