"""Exception hierarchy for PIM operations.

Every error raised by this package derives from :class:`PimError`, which
carries a machine-readable error code, a human-readable message and a
structured context mapping. The ``transient`` flag marks errors the request
layer is allowed to retry.

Example:
    >>> from azpim.domain.exceptions import NoRolesSpecifiedError
    >>> raise NoRolesSpecifiedError()
    NoRolesSpecifiedError: no roles specified
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from azpim.domain.roles import RoleAssignment

__all__ = [
    "ActivationTimeoutError",
    "BatchOperationError",
    "NoRolesSpecifiedError",
    "NotFoundError",
    "ParseError",
    "PimError",
    "RateLimitedError",
    "RequestFailedError",
    "RetriesExhaustedError",
    "ScopeError",
    "TokenError",
    "TransientRequestError",
    "ValidationError",
]


class PimError(Exception):
    """Base class for all PIM errors.

    Attributes:
        error_code: Machine-readable error code.
        message: Human-readable error description.
        context: Structured debugging information (scope, operation, ids).
        transient: Whether the request layer may retry the failed attempt.
    """

    error_code: str = "PIM_ERROR"
    transient: bool = False

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """String representation including context for logging."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ScopeError(PimError):
    """Raised when a scope string is malformed.

    Example:
        >>> raise ScopeError("subscriptions/abc")
        ScopeError: scope must start with a / (value=subscriptions/abc)
    """

    error_code: str = "LEADING_SLASH"

    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__("scope must start with a /", {"value": value})


class ValidationError(PimError):
    """Raised when caller input fails validation.

    Never retried. Use for zero durations, missing principal ids and
    similar synchronous input problems.
    """

    error_code: str = "VALIDATION_ERROR"

    def __init__(self, reason: str, **context: Any) -> None:
        self.reason = reason
        super().__init__(reason, context)


class NoRolesSpecifiedError(ValidationError):
    """Raised when a set operation receives an empty assignment set."""

    error_code: str = "NO_ROLES_SPECIFIED"

    def __init__(self) -> None:
        super().__init__("no roles specified")


class NotFoundError(PimError):
    """Raised when a role or scope lookup does not match anything.

    Attributes:
        resource_type: Kind of the missing thing (e.g. "role").
        resource_id: The identifier that was looked up.
    """

    error_code: str = "RESOURCE_NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: str, **extra_context: Any) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        context = {"resource_type": resource_type, "resource_id": resource_id, **extra_context}
        super().__init__(f"{resource_type} not found: {resource_id}", context)


class TokenError(PimError):
    """Raised when a bearer token cannot be obtained or read."""

    error_code: str = "TOKEN_ERROR"


class TransientRequestError(PimError):
    """Raised for a request attempt that may succeed if retried.

    Covers transport failures and server-side errors.
    """

    error_code: str = "TRANSIENT_REQUEST_ERROR"
    transient: bool = True


class RateLimitedError(TransientRequestError):
    """Raised when the provider answers 429 Too Many Requests."""

    error_code: str = "RATE_LIMITED"


class RequestFailedError(PimError):
    """Raised when the provider rejects a request.

    Attributes:
        status_code: HTTP status returned by the provider.
        body: Decoded JSON body, kept for diagnostics.
    """

    error_code: str = "REQUEST_FAILED"

    def __init__(self, status_code: int, body: Any, **context: Any) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"request failed: status:{status_code} body:{body}", context)


class RetriesExhaustedError(PimError):
    """Raised when every allowed attempt ended in a transient failure."""

    error_code: str = "RETRIES_EXHAUSTED"

    def __init__(self, attempts: int, **context: Any) -> None:
        self.attempts = attempts
        super().__init__(f"exhausted retries after {attempts} attempts", context)


class ParseError(PimError):
    """Raised when a provider response does not have the expected shape.

    Attributes:
        raw: The offending value, kept for diagnostics.
    """

    error_code: str = "PARSE_ERROR"

    def __init__(self, reason: str, raw: Any) -> None:
        self.raw = raw
        super().__init__(f"{reason}: {raw!r}")


def _describe(assignments: Iterable[RoleAssignment]) -> str:
    return "\n".join(f"* {entry.role}@{entry.scope}" for entry in sorted(assignments))


class BatchOperationError(PimError):
    """Raised when one or more items of a set operation failed.

    Siblings of a failed item are not aborted; this error is raised only
    after every item finished.

    Attributes:
        action: The attempted action (e.g. "activate").
        failures: Mapping of each failed assignment to its error.
    """

    error_code: str = "BATCH_OPERATION_FAILED"

    def __init__(self, action: str, failures: dict[RoleAssignment, Exception]) -> None:
        self.action = action
        self.failures = failures
        super().__init__(f"unable to {action} roles:\n{_describe(failures)}")


class ActivationTimeoutError(PimError):
    """Raised when activated roles did not show up as active in time.

    The activation requests were accepted; the provider had not reflected
    them by the deadline.

    Attributes:
        pending: Assignments still not active.
        timeout: The deadline that elapsed, in seconds.
    """

    error_code: str = "ACTIVATION_TIMEOUT"

    def __init__(self, pending: Iterable[RoleAssignment], timeout: float) -> None:
        self.pending = frozenset(pending)
        self.timeout = timeout
        super().__init__(f"timed out waiting for role activation:\n{_describe(self.pending)}")
