# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the dance school platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Every exception carries a stable machine-readable ``code`` so clients
can branch on the kind of failure without parsing messages.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException using the class status code."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code or "VALIDATION_ERROR", details=details)


class NotFoundException(DomainException):
    """
    Raised when a requested resource is not found.

    Also used when the resource exists but belongs to another tenant, so the
    two cases cannot be told apart by the caller.
    """

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code or "NOT_FOUND", details=details)


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code or "CONFLICT", details=details)


class UnauthorizedException(DomainException):
    """Raised when user is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message, code="UNAUTHORIZED")

    def to_http_exception(self) -> HTTPException:
        exc = super().to_http_exception()
        exc.headers = {"WWW-Authenticate": "Bearer"}
        return exc


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "You do not have access to this resource") -> None:
        super().__init__(message, code="FORBIDDEN")


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def to_http_exception(self) -> HTTPException:
        # Internal details stay in the logs.
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": "An error occurred processing your request",
                "code": "INTERNAL",
                "details": {},
            },
        )


class ServiceTimeoutException(DomainException):
    """Raised when the database or a payment provider does not answer in time."""

    status_code = status.HTTP_504_GATEWAY_TIMEOUT

    def __init__(self, dependency: str, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"Timed out waiting for {dependency}",
            code="TIMEOUT",
            details={"dependency": dependency},
        )


# Specific business exceptions


class NoValidPassException(ValidationException):
    """Raised when the chosen subscription cannot pay for a booking."""

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message or "No valid pass or clips remaining",
            code="NO_VALID_PASS",
            details=details,
        )


class InsufficientCreditException(ValidationException):
    """Raised when a clip-based subscription has no credits left to consume."""

    def __init__(self, subscription_id: str):
        super().__init__(
            "Subscription has no remaining credits",
            code="INSUFFICIENT_CREDIT",
            details={"subscription_id": subscription_id},
        )


class ClassFullException(ConflictException):
    """Raised when a class instance has no remaining capacity."""

    def __init__(self, class_instance_id: str):
        super().__init__(
            "This class is full",
            code="CLASS_FULL",
            details={"class_instance_id": class_instance_id},
        )


class ClassCancelledException(ConflictException):
    """Raised when booking a class instance that has been cancelled."""

    def __init__(self, class_instance_id: str):
        super().__init__(
            "This class has been cancelled",
            code="CLASS_CANCELLED",
            details={"class_instance_id": class_instance_id},
        )


class AlreadyBookedException(ConflictException):
    """Raised when the user already holds a confirmed booking for the instance."""

    def __init__(self, class_instance_id: str):
        super().__init__(
            "You have already booked this class",
            code="ALREADY_BOOKED",
            details={"class_instance_id": class_instance_id},
        )


class DuplicatePaymentException(ConflictException):
    """Raised when a payment reference already produced a subscription."""

    def __init__(self, external_payment_reference: str, subscription_id: Optional[str] = None):
        details: Dict[str, Any] = {"external_payment_reference": external_payment_reference}
        if subscription_id:
            details["subscription_id"] = subscription_id
        super().__init__(
            "A subscription already exists for this payment",
            code="DUPLICATE",
            details=details,
        )


class PassInUseException(ConflictException):
    """Raised when deleting a pass that active subscriptions still reference."""

    def __init__(self, pass_id: str, active_subscriptions: int):
        super().__init__(
            "Cannot delete pass with active subscriptions",
            code="PASS_IN_USE",
            details={"pass_id": pass_id, "active_subscriptions": active_subscriptions},
        )


class PaymentProviderException(DomainException):
    """Raised when a payment provider rejects a request."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, provider: str, message: str):
        super().__init__(message, code="PAYMENT_PROVIDER_ERROR", details={"provider": provider})


class RetryablePaymentError(DomainException):
    """Webhook processing failed transiently; the provider should redeliver."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, reference: Optional[str], message: str = "Temporary failure, retry later"):
        super().__init__(message, code="RETRYABLE", details={"reference": reference})


class FatalPaymentError(DomainException):
    """Webhook payload can never be processed; redelivery will not help."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, reference: Optional[str], message: str):
        super().__init__(message, code="FATAL", details={"reference": reference})


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


def is_db_timeout(exc: BaseException) -> bool:
    """
    Check if an exception indicates a database timeout.

    Covers Postgres statement_timeout cancellations, connect timeouts and
    pool checkout timeouts.
    """
    error_str = str(exc).lower()
    return (
        "statement timeout" in error_str
        or "canceling statement" in error_str
        or "queuepool" in error_str
        or ("timeout" in error_str and ("connection" in error_str or "pool" in error_str))
        or "timed out" in error_str
    )
