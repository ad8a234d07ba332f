"""Custom exceptions for the allocation engine."""


class AllocationEngineError(Exception):
    """Base exception for all allocation engine errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(AllocationEngineError):
    """Raised when caller input is malformed or empty."""

    def __init__(self, field: str, value: str, reason: str):
        message = f"Validation failed for {field}={value}: {reason}"
        super().__init__(message, {"field": field, "value": value, "reason": reason})
        self.field = field
        self.value = value
        self.reason = reason


class ConflictError(AllocationEngineError):
    """Raised when an expense already has an active correlation."""

    def __init__(self, expense_id: str, existing_line_item_id: str | None = None):
        message = f"Expense {expense_id} is already allocated"
        if existing_line_item_id:
            message += f" (line item {existing_line_item_id})"
        super().__init__(
            message,
            {"expense_id": expense_id, "existing_line_item_id": existing_line_item_id},
        )
        self.expense_id = expense_id
        self.existing_line_item_id = existing_line_item_id


class RepositoryError(AllocationEngineError):
    """Raised when a repository call fails (network, storage)."""

    def __init__(
        self,
        source: str,
        message: str,
        status_code: int | None = None,
    ):
        full_message = f"[{source}] {message}"
        super().__init__(full_message, {"source": source, "status_code": status_code})
        self.source = source
        self.status_code = status_code


class ConfigurationError(AllocationEngineError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, config_key: str, message: str):
        full_message = f"Configuration error [{config_key}]: {message}"
        super().__init__(full_message, {"config_key": config_key})
        self.config_key = config_key


class IllegalTransitionError(AllocationEngineError):
    """Raised when a workflow is asked to move to a state it cannot reach."""

    def __init__(self, current: str, target: str):
        message = f"Illegal workflow transition: {current} -> {target}"
        super().__init__(message, {"current": current, "target": target})
        self.current = current
        self.target = target
