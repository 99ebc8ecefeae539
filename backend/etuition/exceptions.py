"""
eTuition Backend - Custom Exception Hierarchy
=============================================

What:  Application-specific exceptions for each error category the API exposes.
How:   Each exception carries a user-facing message and an optional context
       dict. Global exception handlers (registered in main.py) map them to
       HTTP status codes and a consistent JSON body.
Who:   Raised by auth dependencies, services and the payment gateway; caught by
       the global handlers. Route handlers never try/except.

Exception Hierarchy:
    ETuitionError (base)
    ├── AuthenticationError      → 401 Unauthorized (missing/invalid/expired token)
    ├── AuthorizationError       → 403 Forbidden (wrong role or not the owner)
    ├── ValidationError          → 400 Bad Request (business-rule input error)
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict (duplicate registration, already paid)
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── PaymentProviderError     → 502 Bad Gateway (Stripe call failed)
    └── CircuitBreakerOpenError  → 503 Service Unavailable (provider circuit open)
"""

from typing import Any, Dict, Optional


class ETuitionError(Exception):
    """
    Base exception for all eTuition application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only for 4xx errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class AuthenticationError(ETuitionError):
    """
    Raised when a protected route is called without a usable bearer token.

    When:    No Authorization header, no token after the scheme, bad signature,
             expired token, or a payload that does not carry a known role.
    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Unauthorized access",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AuthorizationError(ETuitionError):
    """
    Raised when an authenticated caller may not perform the operation.

    When:    The token role does not match the route's role gate, or the token
             email does not own the requested resource (self-only check).
    HTTP:    403 Forbidden
    """

    def __init__(
        self,
        message: str = "Forbidden",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ValidationError(ETuitionError):
    """
    Raised when client input fails a business rule.

    Schema-level problems (wrong types, missing fields) are rejected earlier by
    FastAPI with 422; this covers rules the schema cannot express, such as an
    admin setting a tuition status outside the allowed set.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(ETuitionError):
    """
    Raised when a requested resource does not exist.

    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(ETuitionError):
    """
    Raised when a write would duplicate or contradict existing state.

    When:    Registering an email that already exists; starting checkout for an
             application that is already Approved.
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PaymentProviderError(ETuitionError):
    """
    Raised when Stripe rejects a call or stays unreachable after retries.

    HTTP:    502 Bad Gateway
    """

    def __init__(
        self,
        message: str = "The payment provider could not process the request",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CircuitBreakerOpenError(ETuitionError):
    """
    Raised when the payment provider circuit breaker is OPEN.

    CLOSED (normal) → failures increment counter
    → threshold reached → OPEN (reject calls for recovery_time seconds)
    → timeout elapsed → HALF-OPEN (allow one test call)
    → success → CLOSED; failure → OPEN again
    HTTP:    503 Service Unavailable
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Payment service is temporarily unavailable due to repeated failures. "
            f"Please retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class RateLimitExceededError(ETuitionError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    HTTP:    429 Too Many Requests
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
