"""
Custom exception hierarchy for the persona scoring service.

All application exceptions inherit from PersonaEngineError.
"""


class PersonaEngineError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(PersonaEngineError):
    """Invalid or missing configuration."""

    pass


class ValidationError(PersonaEngineError):
    """Input validation failed."""

    pass


# =============================================================================
# Visitor Errors
# =============================================================================


class VisitorError(PersonaEngineError):
    """Visitor-related error."""

    pass


class VisitorNotFoundError(VisitorError):
    """No stored record for the anonymous ID."""

    pass


# =============================================================================
# Store Errors
# =============================================================================


class StoreError(PersonaEngineError):
    """Visitor store operation failed."""

    pass


class StoreUnavailableError(StoreError):
    """Visitor record could not be written.

    Raised on write failures only: a lost write would silently drop the
    recomputed persona/stage state, so it is surfaced to the caller. Read
    failures degrade to "visitor not found" instead.
    """

    pass


# =============================================================================
# Forwarding Errors
# =============================================================================


class ForwardError(PersonaEngineError):
    """Analytics sink rejected or did not answer the forward call.

    Never escapes the forwarder; enriched events are best-effort.
    """

    pass
