"""Domain exceptions for the flow engine.

Defines exceptions for configuration, storage, graph definition and
model resolution failures. They are independent of any store client;
callers map them to their own error surface using error_code and details.
"""

from typing import Any


class StateFlowException(Exception):
    """Base exception for all flow engine errors.

    All custom exceptions should inherit from this class to allow
    consistent error handling and logging.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. field, ref_id).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationException(StateFlowException):
    """Raised when required settings are missing or invalid (fatal at startup)."""

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        """Initialize with message and the names of missing settings.

        Args:
            message: Description of the configuration problem.
            missing: Setting names that were empty or absent.
        """
        details = {"missing": missing} if missing else {}
        if missing:
            message = f"{message}: {', '.join(missing)}"
        super().__init__(message, "CONFIGURATION_ERROR", details)


class StoreException(StateFlowException):
    """Raised when the document store rejects a request or cannot be reached."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        status_code: int | None = None,
    ) -> None:
        """Initialize with message, the store operation and optional HTTP status.

        Args:
            message: Description of the store failure.
            operation: Store operation that failed (e.g. 'set', 'runQuery').
            status_code: HTTP status returned by the store, when known.
        """
        details: dict[str, Any] = {}
        if operation:
            details["operation"] = operation
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, "STORE_ERROR", details)


class DocumentExistsException(StoreException):
    """Raised when a create-only write targets an existing document or resource."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Document already exists: {path}", "create", 409)
        self.error_code = "DOCUMENT_EXISTS"
        self.details["path"] = path


class GraphDefinitionException(StateFlowException):
    """Raised when a state graph is declared out of order or incompletely."""

    def __init__(self, message: str, state: str | None = None) -> None:
        """Initialize with message and the offending state, if any.

        Args:
            message: Description of the declaration error.
            state: State involved in the error.
        """
        details = {"state": state} if state is not None else {}
        super().__init__(message, "GRAPH_DEFINITION_ERROR", details)


class FieldResolutionException(StateFlowException):
    """Raised when a filter or sort names a field the target schema does not declare."""

    def __init__(self, field: str, schema: str) -> None:
        """Initialize with the unresolved field and the schema it was resolved against.

        Args:
            field: Field name from the filter/sort spec.
            schema: Name of the schema (model type or envelope).
        """
        super().__init__(
            f"Unknown field '{field}' for schema {schema}",
            "FIELD_RESOLUTION_ERROR",
            {"field": field, "schema": schema},
        )


class ModelTypeRegistrationException(StateFlowException):
    """Raised on conflicting registrations or registration after the registry is frozen."""

    def __init__(self, message: str, type_name: str) -> None:
        super().__init__(
            message, "MODEL_TYPE_REGISTRATION_ERROR", {"type_name": type_name}
        )


class UnknownModelTypeException(StateFlowException):
    """Raised when a stored model tag has no registered type and a typed model is required."""

    def __init__(self, type_name: str | None, ref_id: str | None = None) -> None:
        details: dict[str, Any] = {"type_name": type_name}
        if ref_id is not None:
            details["ref_id"] = ref_id
        super().__init__(
            f"Model type not registered: {type_name!r}", "UNKNOWN_MODEL_TYPE", details
        )


class ModelDecodeException(StateFlowException):
    """Failure to turn one stored model payload into the requested model type."""

    def __init__(
        self, message: str, ref_id: str | None, model_type: str | None
    ) -> None:
        super().__init__(
            message,
            "MODEL_DECODE_ERROR",
            {"ref_id": ref_id, "model_type": model_type},
        )


class FlowNotFoundException(StateFlowException):
    """Raised when a flow with the given correlation id does not exist."""

    def __init__(self, ref_id: str, tenant_id: str | None = None) -> None:
        details: dict[str, Any] = {"ref_id": ref_id}
        if tenant_id:
            details["tenant_id"] = tenant_id
        super().__init__(f"Flow not found: {ref_id}", "FLOW_NOT_FOUND", details)
