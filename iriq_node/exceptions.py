"""
Error taxonomy for the sync and actuation engine.

None of these are fatal to the process: the control loop logs them and
tries again on the next scheduled cycle.
"""

from typing import Optional


class DeviceError(Exception):
    """Base class for recoverable device errors."""


class ConnectivityError(DeviceError):
    """No network path to the backend (connect failure or timeout)."""


class AuthError(DeviceError):
    """Credential rejected or authentication failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BackendError(DeviceError):
    """Backend answered with a non-auth, non-2xx response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(DeviceError):
    """Backend payload could not be parsed."""


class ActuationMismatchError(DeviceError):
    """Relay read-back still disagrees with intent after bounded retries."""

    def __init__(self, desired: bool, observed: bool, attempts: int):
        super().__init__(
            f"Relay wanted {'ON' if desired else 'OFF'} but reads "
            f"{'ON' if observed else 'OFF'} after {attempts} attempts"
        )
        self.desired = desired
        self.observed = observed
        self.attempts = attempts
