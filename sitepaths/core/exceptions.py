"""Custom exceptions for the path index."""

from typing import Optional


class SitePathsError(Exception):
    """Base class for exceptions raised by sitepaths."""

    pass


class StoreUnavailableError(SitePathsError):
    """Raised when the path store keeps failing after a schema self-heal."""

    def __init__(self, message: str, original_exception: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.original_exception = original_exception

    def __str__(self) -> str:
        base_str = super().__str__()
        if self.original_exception:
            return f"{base_str} (Original Error: {type(self.original_exception).__name__}: {self.original_exception})"
        return base_str


class QueryUsageError(SitePathsError):
    """Raised when a path condition asks for something the operator cannot express."""

    pass


class EventHandlingError(SitePathsError):
    """Raised when a lifecycle event handler fails."""

    def __init__(
        self,
        message: str,
        event_type: str,
        handler_name: Optional[str] = None,
        original_exception: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.event_type = event_type
        self.handler_name = handler_name
        self.original_exception = original_exception

    def __str__(self) -> str:
        base_str = super().__str__()
        details = f"Event Type: {self.event_type}"
        if self.handler_name:
            details += f", Failing Handler: {self.handler_name}"
        if self.original_exception:
            details += f", Original Error: {type(self.original_exception).__name__}: {self.original_exception}"
        return f"{base_str} ({details})"
