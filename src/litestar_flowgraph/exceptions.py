"""Exception hierarchy for litestar-flowgraph."""

from __future__ import annotations

__all__ = (
    "ConnectorError",
    "FlowGraphError",
    "InvalidWorkflowCodeError",
    "StoreUnavailableError",
    "TTableNotFoundError",
    "WorkflowDefinitionNotFoundError",
    "WorkflowValidationError",
)


class FlowGraphError(Exception):
    """Base exception for all litestar-flowgraph errors.

    All exceptions raised by litestar-flowgraph inherit from this class so callers
    can catch every engine error with a single except clause.
    """


class WorkflowDefinitionNotFoundError(FlowGraphError):
    """Raised when no workflow graph is stored under the requested code.

    A step cannot be navigated without its definition, so callers should treat
    this as fatal for the current step.

    Attributes:
        flows_code: The canonical code that was looked up.
    """

    def __init__(self, flows_code: str) -> None:
        """Initialize the exception with the missing code.

        Args:
            flows_code: The canonical code that was looked up.
        """
        self.flows_code = flows_code
        super().__init__(f"Workflow configuration '{flows_code}' not found")


class TTableNotFoundError(FlowGraphError):
    """Raised when an application has no working record yet.

    Attributes:
        app_id: The application identifier that was looked up.
    """

    def __init__(self, app_id: str) -> None:
        """Initialize the exception with the missing application id.

        Args:
            app_id: The application identifier that was looked up.
        """
        self.app_id = app_id
        super().__init__(f"TTable for application '{app_id}' not found")


class WorkflowValidationError(FlowGraphError):
    """Raised when a workflow graph document is structurally invalid.

    Attributes:
        errors: List of validation error messages.
    """

    def __init__(self, errors: list[str]) -> None:
        """Initialize the exception with validation errors.

        Args:
            errors: List of validation error messages.
        """
        self.errors = errors
        super().__init__(f"Workflow validation failed: {'; '.join(errors)}")


class InvalidWorkflowCodeError(FlowGraphError, ValueError):
    """Raised when a workflow code or id cannot be parsed as a number.

    Attributes:
        value: The offending code or id.
    """

    def __init__(self, value: object) -> None:
        """Initialize the exception with the offending value.

        Args:
            value: The offending code or id.
        """
        self.value = value
        super().__init__(f"Invalid workflow id '{value}': expected 'W<number>' or a number")


class StoreUnavailableError(FlowGraphError):
    """Raised (or returned inside a failed result) when a store operation fails.

    Wraps the driver level exception so callers can tell "no data" apart from
    "the store could not be reached".

    Attributes:
        operation: Name of the operation that failed.
        cause: The underlying exception.
    """

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        """Initialize the exception with the failing operation.

        Args:
            operation: Name of the operation that failed.
            cause: The underlying exception, if any.
        """
        self.operation = operation
        self.cause = cause
        msg = f"Store operation '{operation}' failed"
        if cause:
            msg += f": {cause}"
        super().__init__(msg)


class ConnectorError(FlowGraphError):
    """Raised when an external process connector call fails.

    Attributes:
        connector: Name of the connector that was called.
        status_code: HTTP status code, when a response was received.
    """

    def __init__(self, connector: str, reason: str, status_code: int | None = None) -> None:
        """Initialize the exception with connector details.

        Args:
            connector: Name of the connector that was called.
            reason: Human readable failure reason.
            status_code: HTTP status code, when a response was received.
        """
        self.connector = connector
        self.status_code = status_code
        msg = f"Connector '{connector}' failed"
        if status_code is not None:
            msg += f" with status {status_code}"
        super().__init__(f"{msg}: {reason}")
