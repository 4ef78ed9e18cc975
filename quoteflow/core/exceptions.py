"""Custom exceptions for the QuoteFlow negotiation engine."""


class QuoteFlowError(Exception):
    """Base exception for QuoteFlow application."""

    error_code = "quoteflow_error"


class ValidationError(QuoteFlowError):
    """Raised when a request is rejected before any write."""

    error_code = "validation_error"


class NotFoundError(QuoteFlowError):
    """Raised when a resource is not found."""

    error_code = "not_found"


class ConflictError(QuoteFlowError):
    """Raised when someone else already acted on the target resource."""

    error_code = "conflict"

    def __init__(self, message: str, existing_session_id: str | None = None) -> None:
        super().__init__(message)
        self.existing_session_id = existing_session_id


class ActiveNegotiationExistsError(ConflictError):
    """Raised when a proposal already has a non-terminal negotiation session."""

    error_code = "ACTIVE_NEGOTIATION_EXISTS"


class StaleVersionError(ConflictError):
    """Raised when the proposal moved past the version being negotiated."""

    error_code = "stale_version"


class DatabaseError(QuoteFlowError):
    """Raised when a database operation fails."""

    error_code = "database_error"


class ConfigurationError(QuoteFlowError):
    """Raised when configuration is invalid."""

    error_code = "configuration_error"


class AuthenticationError(QuoteFlowError):
    """Raised when authentication fails."""

    error_code = "authentication_error"


class AuthorizationError(QuoteFlowError):
    """Raised when the caller may not act on the resource."""

    error_code = "authorization_error"
