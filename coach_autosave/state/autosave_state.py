"""
Auto-save state management.

One ``ContextState`` record per editing surface. Records are immutable; every
transition swaps in a new record and notifies subscribers, so UI observers can
keep the snapshot they were handed.
"""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from loguru import logger

from ..exceptions import AutoSaveConfigError, describe_exception


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AutoSaveContext(str, Enum):
    """Editing surfaces with their own auto-save state."""

    SESSION_NOTES = "sessionNotes"
    MESSAGES = "messages"
    SLEEP_DIARY = "sleepDiary"

    @classmethod
    def parse(cls, value: Union[str, "AutoSaveContext"]) -> "AutoSaveContext":
        """Resolve a context from its id, e.g. ``"sessionNotes"``."""
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value == value or member.name.lower() == str(value).lower():
                return member
        raise AutoSaveConfigError(f"Unknown auto-save context: {value!r}", option="context_id", value=value)

    @property
    def saved_message(self) -> str:
        """Notification shown after a successful auto-save."""
        return _SAVED_MESSAGES[self]


_SAVED_MESSAGES = {
    AutoSaveContext.SESSION_NOTES: "Session note auto-saved",
    AutoSaveContext.MESSAGES: "Message draft saved",
    AutoSaveContext.SLEEP_DIARY: "Sleep diary entry auto-saved",
}


@dataclass(frozen=True)
class ErrorInfo:
    """A failed save attempt as shown to the user."""

    message: str
    error_type: str = "Exception"
    attempt: int = 0
    exhausted: bool = False
    occurred_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_exception(cls, error: BaseException, attempt: int, exhausted: bool = False) -> "ErrorInfo":
        return cls(
            message=describe_exception(error),
            error_type=type(error).__name__,
            attempt=attempt,
            exhausted=exhausted,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'message': self.message,
            'error_type': self.error_type,
            'attempt': self.attempt,
            'exhausted': self.exhausted,
            'occurred_at': self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class ContextState:
    """Auto-save status of a single context."""

    is_auto_saving: bool = False
    last_saved: Optional[datetime] = None
    # Content as of the last successful save
    draft_content: Optional[str] = None
    error: Optional[ErrorInfo] = None
    has_unsaved_changes: bool = False


StateListener = Callable[[AutoSaveContext, ContextState], None]


class ContextStateStore:
    """Holds the ``ContextState`` of every context and applies transitions.

    Transitions are synchronous. ``begin_save`` hands out a token per attempt;
    completions carrying a token older than the newest attempt are dropped so a
    slow, older save can never overwrite what a newer one wrote.
    """

    def __init__(self) -> None:
        self._states: Dict[AutoSaveContext, ContextState] = {}
        self._issued: Dict[AutoSaveContext, int] = {}
        self._in_flight: Dict[AutoSaveContext, int] = {}
        self._locks: Dict[AutoSaveContext, asyncio.Lock] = {}
        self._listeners: List[StateListener] = []

    # ---- Queries ----

    def get(self, context: Union[str, AutoSaveContext]) -> ContextState:
        """Current snapshot for ``context``, created on first use."""
        context = AutoSaveContext.parse(context)
        state = self._states.get(context)
        if state is None:
            state = ContextState()
            self._states[context] = state
        return state

    def is_in_flight(self, context: Union[str, AutoSaveContext]) -> bool:
        return AutoSaveContext.parse(context) in self._in_flight

    def save_lock(self, context: Union[str, AutoSaveContext]) -> asyncio.Lock:
        """Lock serialising persistence calls for one context."""
        context = AutoSaveContext.parse(context)
        lock = self._locks.get(context)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[context] = lock
        return lock

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Plain-dict view of every known context, for debugging and status panels."""
        result = {}
        for context, state in self._states.items():
            result[context.value] = {
                'is_auto_saving': state.is_auto_saving,
                'last_saved': state.last_saved.isoformat() if state.last_saved else None,
                'has_unsaved_changes': state.has_unsaved_changes,
                'error': state.error.to_dict() if state.error else None,
            }
        return result

    # ---- Transitions ----

    def begin_save(self, context: Union[str, AutoSaveContext]) -> int:
        """Mark a save attempt as started. Returns the attempt token."""
        context = AutoSaveContext.parse(context)
        token = self._issued.get(context, 0) + 1
        self._issued[context] = token
        self._in_flight[context] = token
        self._apply(context, is_auto_saving=True, error=None)
        return token

    def complete_save(self, context: Union[str, AutoSaveContext], timestamp: datetime,
                      content: str, token: Optional[int] = None) -> bool:
        """Record a successful save. Returns False when the completion is stale."""
        context = AutoSaveContext.parse(context)
        if self._is_stale(context, token):
            logger.debug(f"Dropping stale save completion for '{context.value}' (token {token})")
            return False
        self._in_flight.pop(context, None)
        self._apply(
            context,
            is_auto_saving=False,
            last_saved=timestamp,
            draft_content=content,
            has_unsaved_changes=False,
        )
        return True

    def fail_save(self, context: Union[str, AutoSaveContext], error: ErrorInfo,
                  token: Optional[int] = None) -> bool:
        """Record a failed save. Returns False when the failure is stale."""
        context = AutoSaveContext.parse(context)
        if self._is_stale(context, token):
            logger.debug(f"Dropping stale save failure for '{context.value}' (token {token})")
            return False
        self._in_flight.pop(context, None)
        self._apply(context, is_auto_saving=False, error=error)
        return True

    def mark_dirty(self, context: Union[str, AutoSaveContext], content: str) -> None:
        """Flag unsaved changes when ``content`` differs from the last saved draft."""
        context = AutoSaveContext.parse(context)
        dirty = content != self.get(context).draft_content
        if dirty != self.get(context).has_unsaved_changes:
            self._apply(context, has_unsaved_changes=dirty)

    def reset(self, context: Union[str, AutoSaveContext]) -> None:
        """Discard the draft state of ``context``."""
        context = AutoSaveContext.parse(context)
        self._in_flight.pop(context, None)
        # Outstanding completions become stale
        self._issued[context] = self._issued.get(context, 0) + 1
        self._states[context] = ContextState()
        self._notify(context, self._states[context])

    # ---- Observers ----

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ---- Internals ----

    def _is_stale(self, context: AutoSaveContext, token: Optional[int]) -> bool:
        if token is None:
            return False
        return token != self._issued.get(context, 0)

    def _apply(self, context: AutoSaveContext, **changes: Any) -> None:
        state = replace(self.get(context), **changes)
        self._states[context] = state
        self._notify(context, state)

    def _notify(self, context: AutoSaveContext, state: ContextState) -> None:
        for listener in list(self._listeners):
            try:
                listener(context, state)
            except Exception as e:
                logger.error(f"Auto-save state listener failed for '{context.value}': {e}")
