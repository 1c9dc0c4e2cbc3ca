"""Error types shared across the TUI."""


class GhTuiError(Exception):
    """Base class for ghtui errors."""


class ProviderError(GhTuiError):
    """A remote fetch or mutation failed.

    Recoverable: the controller turns it into a notification and the user
    may retry the action.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InputValidationError(GhTuiError):
    """Submitted input was rejected; the input mode stays active."""


class FatalInitError(GhTuiError):
    """Startup configuration could not be resolved (no credential, no repository)."""
