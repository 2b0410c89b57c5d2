"""Error taxonomy shared by the gateway and the managers."""

import builtins


class HichersError(Exception):
    """Base class for every error raised by this package."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class AuthRequiredError(HichersError):
    """No auth token is present for an endpoint that needs one."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class RemoteApiError(HichersError):
    """The remote API answered with an error (or an unusable body)."""

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status

    def __str__(self) -> str:
        return f"{self.message} (status {self.status})"


class DuplicateSchemeError(RemoteApiError):
    """Scheme name is still reported as a duplicate after the rename retry."""


class NetworkError(HichersError):
    """Connection-level failure (DNS, refused connection, reset)."""


class TimeoutError(HichersError, builtins.TimeoutError):
    """The per-call deadline expired before the remote API answered."""


class ValidationError(HichersError):
    """A client-side rule was violated before any network call was made."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field
