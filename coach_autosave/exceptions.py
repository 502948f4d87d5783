# exceptions.py
# Description: Error taxonomy for the auto-save engine
#
"""
Auto-Save Errors
----------------

Three kinds of failure reach the auto-save engine:

* transient save failures raised by a persistence adapter (retried with backoff),
* exhausted retries (sticky, needs a manual retry),
* configuration errors (raised when a controller is constructed).
"""

from typing import Any, Dict, Optional


class AutoSaveError(Exception):
    """Base class for all auto-save errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None,
                 suggestion: Optional[str] = None, is_retryable: bool = False):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.suggestion = suggestion
        self.is_retryable = is_retryable

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/storage."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'details': self.details,
            'suggestion': self.suggestion,
            'is_retryable': self.is_retryable
        }


class AutoSaveConfigError(AutoSaveError, ValueError):
    """Invalid auto-save options. Raised at construction, never at save time."""

    def __init__(self, message: str, option: Optional[str] = None, value: Any = None):
        details = {}
        if option is not None:
            details = {'option': option, 'value': value}
        super().__init__(
            message,
            details=details,
            suggestion="Check the [AutoSave] section of your config file",
            is_retryable=False
        )
        self.option = option


class DraftSaveError(AutoSaveError):
    """A single draft save attempt failed. Persistence adapters may raise this directly."""

    def __init__(self, message: str = "Auto-save failed. Please check your connection.",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            details=details,
            suggestion="The draft will be retried automatically",
            is_retryable=True
        )


class RetriesExhaustedError(AutoSaveError):
    """Automatic retries gave up; the draft needs a manual save or retry."""

    def __init__(self, context: str, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(
            f"Auto-save for '{context}' failed after {attempts} attempts",
            details={
                'context': context,
                'attempts': attempts,
                'last_error': str(last_error) if last_error is not None else None
            },
            suggestion="Save manually or check your connection",
            is_retryable=False
        )
        self.attempts = attempts
        self.last_error = last_error


class DraftStoreError(AutoSaveError):
    """The durable draft store could not be read or written."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(
            message,
            details={'path': path} if path else None,
            suggestion="Check that the drafts file is writable",
            is_retryable=True
        )


def describe_exception(error: BaseException) -> str:
    """Human readable message for an adapter failure."""
    if isinstance(error, AutoSaveError):
        return error.message
    text = str(error).strip()
    return text or 'Auto-save failed. Please check your connection.'

#
# End of exceptions.py
