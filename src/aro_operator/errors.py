"""Error taxonomy for cluster reconciliation.

Every error raised by the operator core derives from ClusterOperatorError.
Errors carry structured attributes so callers can decide retry policy
without parsing messages:

- SpecValidationError / InvalidEnumValueError: local, never sent to Azure
- AlreadyExistsError: existence guard hit or remote 409 Conflict
- NotFoundError: read/delete against a missing identity
- ImmutableFieldChangedError: update attempted on a force-replace field
- RemoteOperationFailedError: terminal failure reported while polling
- OperationTimeoutError / OperationCanceledError: polling interrupted
- TransientAPIError: network or 5xx-class, safe to retry from Submitting
- RemoteAPIError: any other synchronous rejection by the remote API
- StaleDeleteError: resource still present after a successful delete

SECURITY: Messages never include secret values. Secret-bearing fields are
pydantic SecretStr instances and render masked.
"""

from __future__ import annotations


class ClusterOperatorError(Exception):
    """Base class for all cluster operator errors."""

    pass


class SpecValidationError(ClusterOperatorError, ValueError):
    """Raised when a field fails codec or schema rules.

    Subclasses ValueError so it can be raised from pydantic validators.
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")


class InvalidEnumValueError(SpecValidationError):
    """Raised when an enum field does not match any allowed value."""

    def __init__(self, field: str, value: object, allowed: list[str]) -> None:
        self.value = value
        self.allowed = allowed
        super().__init__(field, f"expected one of {allowed}, got {value!r}")


class MalformedIdentityError(ClusterOperatorError, ValueError):
    """Raised when a resource identifier lacks a required segment."""

    def __init__(self, resource_id: str, missing: str) -> None:
        self.resource_id = resource_id
        self.missing = missing
        super().__init__(f"Resource ID {resource_id!r} has no {missing!r} segment")


class AlreadyExistsError(ClusterOperatorError):
    """Raised when a create would collide with an existing cluster.

    The existing resource is never adopted silently; import it instead.
    """

    def __init__(self, resource_id: str) -> None:
        self.resource_id = resource_id
        super().__init__(
            f"A resource with the ID {resource_id!r} already exists - "
            "to be managed it needs to be imported"
        )


class NotFoundError(ClusterOperatorError):
    """Raised when the remote API reports the cluster does not exist."""

    def __init__(self, resource_id: str) -> None:
        self.resource_id = resource_id
        super().__init__(f"Cluster {resource_id!r} was not found")


class ImmutableFieldChangedError(ClusterOperatorError):
    """Raised when an update would change a force-replace field.

    The caller must destroy and recreate the cluster.
    """

    def __init__(self, resource_id: str, fields: list[str]) -> None:
        self.resource_id = resource_id
        self.fields = fields
        super().__init__(
            f"Cluster {resource_id!r} cannot be updated in place, "
            f"force-replace fields changed: {', '.join(fields)}"
        )


class RemoteAPIError(ClusterOperatorError):
    """Raised when the remote API synchronously rejects a call."""

    def __init__(self, operation: str, resource_id: str, reason: str, status_code: int | None) -> None:
        self.operation = operation
        self.resource_id = resource_id
        self.reason = reason
        self.status_code = status_code
        super().__init__(
            f"{operation} of cluster {resource_id!r} rejected (status {status_code}): {reason}"
        )


class TransientAPIError(RemoteAPIError):
    """Raised for network and 5xx-class failures.

    Safe to retry the whole operation from Submitting.
    """

    pass


class RemoteOperationFailedError(ClusterOperatorError):
    """Raised when a long-running operation reaches a terminal failure."""

    def __init__(self, operation: str, resource_id: str, reason: str) -> None:
        self.operation = operation
        self.resource_id = resource_id
        self.reason = reason
        super().__init__(f"{operation} of cluster {resource_id!r} failed: {reason}")


class OperationTimeoutError(ClusterOperatorError, TimeoutError):
    """Raised when polling exceeds the caller-supplied deadline.

    The remote operation keeps running; it can be re-polled later.
    """

    def __init__(self, operation: str, resource_id: str, timeout_seconds: float) -> None:
        self.operation = operation
        self.resource_id = resource_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Timed out after {timeout_seconds:.0f}s waiting for {operation} "
            f"of cluster {resource_id!r}"
        )


class OperationCanceledError(ClusterOperatorError):
    """Raised when polling is stopped by an explicit cancel signal."""

    def __init__(self, operation: str, resource_id: str) -> None:
        self.operation = operation
        self.resource_id = resource_id
        super().__init__(f"Polling for {operation} of cluster {resource_id!r} was canceled")


class StaleDeleteError(ClusterOperatorError):
    """Raised when a read after a successful delete still finds the cluster."""

    def __init__(self, resource_id: str) -> None:
        self.resource_id = resource_id
        super().__init__(
            f"Delete of cluster {resource_id!r} reported success but the cluster still exists"
        )
