"""Status definitions and exceptions for PocketLedger.

This module provides:
    - Status: enumeration of possible application states
    - STATUS_MESSAGE: user-facing messages for each status
    - get_message: retrieve the message for a status
    - quiet: silence exception logging and signalling on the current thread
    - BaseStatusException: base exception carrying a Status
    - Specific exceptions (e.g., ValidationError) raised by the store and the sync engine
"""
import contextlib
import enum
import logging
import threading
from typing import Dict, Iterator


class Status(enum.StrEnum):
    """Enumeration of application status codes."""
    UnknownStatus = enum.auto()
    Okay = enum.auto()

    # Local records
    ValidationFailed = enum.auto()
    PersistenceFailed = enum.auto()

    # Authentication status
    ClientSecretNotFound = enum.auto()
    CredsInvalid = enum.auto()
    NotAuthenticated = enum.auto()

    # Remote file status
    RemoteFileNotFound = enum.auto()
    ServiceUnavailable = enum.auto()


STATUS_MESSAGE: Dict[Status, str] = {
    Status.UnknownStatus: 'Unknown status. Please check the settings.',
    Status.Okay: 'Everything is okay.',

    Status.ValidationFailed: 'The entry is incomplete, or contains invalid values.',
    Status.PersistenceFailed: 'Could not save your data on this device. Nothing was changed.',

    Status.ClientSecretNotFound: 'Could not find the google client secret. Have you set up a valid Google client secret?',
    Status.CredsInvalid: 'Could not verify the credentials. Please sign in again to your Google account.',
    Status.NotAuthenticated: 'Authentication error. Try signing in again to your Google account.',

    Status.RemoteFileNotFound: 'No backup file was found in Google Drive yet.',
    Status.ServiceUnavailable: 'Google Drive is unavailable. Please check your connection.',
}


def get_message(status: Status) -> str:
    """
    Get the message for a given status.

    Args:
        status (Status): The status enum.

    Returns:
        str: The message associated with the status.
    """
    return STATUS_MESSAGE.get(status, 'Unknown status')


_local = threading.local()


@contextlib.contextmanager
def quiet() -> Iterator[None]:
    """Raise status exceptions on the current thread without logging or signalling them.

    Used by background work whose failures the caller reports itself.
    """
    previous = getattr(_local, 'quiet', False)
    _local.quiet = True
    try:
        yield
    finally:
        _local.quiet = previous


class BaseStatusException(Exception):
    """Base exception for status-based errors in PocketLedger.

    Each instance logs itself and, if ``notify`` is set, emits ``signals.error``.
    Neither happens inside a :func:`quiet` block.

    Attributes:
        status (Status): Status code associated with this error.
        status_message (str): User-facing message for the status.
        log_level (int): Level the error is logged at when raised.
        notify (bool): Whether to emit the error signal for the presentation layer.

    Args:
        message (str): Optional additional context for the error.
    """
    status = Status.UnknownStatus
    log_level = logging.ERROR
    notify = True

    def __init__(self, message: str = None):
        self.status_message = get_message(self.status)
        self.detail = message or ''
        exception_message = f'{self.status_message} {message}' if message else self.status_message
        super().__init__(exception_message)

        if getattr(_local, 'quiet', False):
            return

        logging.log(self.log_level, exception_message)

        if not self.notify:
            return
        from ..core.signals import signals
        signals.error.emit(message or self.status_message)


class ValidationError(BaseStatusException):
    """Raised when a mutation receives malformed input, before anything is persisted."""
    status = Status.ValidationFailed


class PersistenceError(BaseStatusException):
    """Raised when a local durable write fails. The affected entity is left unchanged."""
    status = Status.PersistenceFailed


class ClientSecretNotFoundError(BaseStatusException):
    """Raised when the Google OAuth client secret file cannot be found."""
    status = Status.ClientSecretNotFound


class AuthError(BaseStatusException):
    """Raised when the remote credential is missing, invalid or expired."""
    status = Status.NotAuthenticated


class CredsInvalidError(AuthError):
    """Raised when stored Google credentials are corrupt."""
    status = Status.CredsInvalid


class NotFoundError(BaseStatusException):
    """Raised when no remote file matches the configured name.

    Callers treat this as "nothing to pull yet", so it is only logged at info level.
    """
    status = Status.RemoteFileNotFound
    log_level = logging.INFO
    notify = False


class NetworkError(BaseStatusException):
    """Raised when the remote storage cannot be reached or answers with an error."""
    status = Status.ServiceUnavailable
