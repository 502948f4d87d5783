# controller.py
# Description: Auto-save controller - one per editing surface
#
# Imports
import asyncio
import inspect
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Union
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from .retry_policy import RetryPolicy, RetryState
from .scheduler import SaveScheduler
from ..exceptions import AutoSaveConfigError, RetriesExhaustedError
from ..logging_config import truncate_content
from ..state.autosave_state import AutoSaveContext, ContextState, ContextStateStore, ErrorInfo
from ..state.settings_state import SettingsChannel
from ..Utils.status_text import format_last_saved
#
########################################################################################################################
#
# Classes:

EXHAUSTED_MESSAGE = "Auto-save failed. Please save manually or check your connection."

_MIN_LENGTH_KEYS = {
    AutoSaveContext.SESSION_NOTES: 'min_length_session_notes',
    AutoSaveContext.MESSAGES: 'min_length_messages',
    AutoSaveContext.SLEEP_DIARY: 'min_length_sleep_diary',
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ContextConfig:
    """Per-surface options, fixed for the lifetime of a controller."""
    context_id: AutoSaveContext
    min_length: int = 5
    enabled: bool = True

    def __post_init__(self):
        object.__setattr__(self, 'context_id', AutoSaveContext.parse(self.context_id))
        if isinstance(self.min_length, bool) or not isinstance(self.min_length, int) or self.min_length < 0:
            raise AutoSaveConfigError("'min_length' must be a non-negative integer", option="min_length", value=self.min_length)
        if not isinstance(self.enabled, bool):
            raise AutoSaveConfigError("'enabled' must be a boolean", option="enabled", value=self.enabled)

    @classmethod
    def from_config(cls, context_id: Union[str, AutoSaveContext]) -> "ContextConfig":
        """Options for ``context_id`` from the ``[AutoSave]`` config section."""
        from ..config import get_autosave_config

        context = AutoSaveContext.parse(context_id)
        values = get_autosave_config()
        return cls(context_id=context, min_length=values[_MIN_LENGTH_KEYS[context]])


@dataclass(frozen=True)
class DraftPayload:
    """What the persistence adapter receives for every save."""
    content: str
    timestamp: str
    is_draft: bool = True

    @classmethod
    def create(cls, content: str, now: Optional[datetime] = None) -> "DraftPayload":
        now = now or _utcnow()
        return cls(content=content, timestamp=now.isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {'content': self.content, 'timestamp': self.timestamp, 'is_draft': self.is_draft}


PersistenceAdapter = Callable[[DraftPayload], Union[Awaitable[Any], Any]]
Notifier = Callable[..., Any]


class AutoSaveController:
    """
    Watches the content of one editing surface and persists drafts in the background.

    The host UI feeds every edit to ``update_content``; the controller decides
    when to call ``on_save`` and records the outcome in the shared
    ``ContextStateStore``. At most one ``on_save`` call runs at a time: requests
    that arrive meanwhile collapse into a single pending slot that is drained,
    with the latest content, as soon as the running call settles.

    Lifecycle hooks (``on_suspend``, ``on_resume``, ``on_unload``,
    ``on_dispose``) must be called by the host when the surface is hidden,
    shown again, navigated away from or torn down.
    """

    def __init__(
        self,
        content: Optional[str],
        on_save: PersistenceAdapter,
        context_id: Union[str, AutoSaveContext],
        config: Optional[ContextConfig] = None,
        *,
        settings: Optional[SettingsChannel] = None,
        store: Optional[ContextStateStore] = None,
        retry_policy: Optional[RetryPolicy] = None,
        notify: Optional[Notifier] = None,
        on_error: Optional[Callable[[BaseException], Any]] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if not callable(on_save):
            raise AutoSaveConfigError("'on_save' must be callable", option="on_save", value=on_save)

        context = AutoSaveContext.parse(context_id)
        if config is None:
            config = ContextConfig(context_id=context)
        elif config.context_id is not context:
            raise AutoSaveConfigError(
                f"Config is for '{config.context_id.value}' but controller was created for '{context.value}'",
                option="context_id", value=context.value
            )

        self.config = config
        self.context = context
        self._on_save = on_save
        self._settings = settings or SettingsChannel()
        self._store = store or ContextStateStore()
        self._retry_policy = retry_policy or RetryPolicy()
        self._retry = self._retry_policy.new_state()
        self._notify_callback = notify
        self._on_error = on_error
        self._clock = clock

        self._content = content or ""
        self._scheduler = SaveScheduler(
            trigger=self._on_timer,
            settings=lambda: self._settings.current,
            gate=self._can_schedule,
            initial_content=self._content,
            name=context.value,
        )

        self._in_flight: Optional[asyncio.Task] = None
        self._pending: Optional[str] = None
        self._retry_handle: Optional[asyncio.TimerHandle] = None
        self._last_failed_content: Optional[str] = None
        self._retry_content: Optional[str] = None
        self._disposed = False

        # Make the context visible to observers right away
        self._store.get(context)
        logger.debug(f"AutoSaveController created for '{context.value}' (min_length={config.min_length})")

    # ---- Read-only state ----

    @property
    def state(self) -> ContextState:
        return self._store.get(self.context)

    @property
    def is_auto_saving(self) -> bool:
        return self.state.is_auto_saving

    @property
    def last_saved(self) -> Optional[datetime]:
        return self.state.last_saved

    @property
    def has_unsaved_changes(self) -> bool:
        return self.state.has_unsaved_changes

    @property
    def error(self) -> Optional[ErrorInfo]:
        return self.state.error

    @property
    def is_enabled(self) -> bool:
        return self.config.enabled and self._settings.current.enabled

    @property
    def content(self) -> str:
        return self._content

    @property
    def retry_attempt(self) -> int:
        return self._retry.attempt

    @property
    def retry_state(self) -> RetryState:
        return RetryState(attempt=self._retry.attempt, max_attempts=self._retry.max_attempts)

    @property
    def store(self) -> ContextStateStore:
        return self._store

    @property
    def scheduler(self) -> SaveScheduler:
        return self._scheduler

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def current_save(self) -> Optional[asyncio.Task]:
        """The running save task, if any."""
        return self._in_flight if self._is_saving() else None

    # ---- Public operations ----

    def update_content(self, content: Optional[str]) -> None:
        """Feed the latest editor content."""
        if self._disposed:
            logger.debug(f"Ignoring content change for disposed '{self.context.value}' controller")
            return
        content = content or ""
        if content == self._content:
            return
        self._content = content
        # A newer edit supersedes content queued for the backoff retry
        self._retry_content = None
        self._scheduler.on_content_changed(content)
        # Dirty tracking runs whether or not auto-save is switched on
        if self._can_save(content):
            self._store.mark_dirty(self.context, content)

    async def manual_save(self, content: Optional[str] = None) -> bool:
        """
        Save right away, bypassing the timers.

        Returns True when the save (or the one already running) succeeded. A no-op
        returning False when there is nothing new to save.
        """
        target = self._content if content is None else content

        if self._is_saving():
            self._pending = target
            return await asyncio.shield(self._in_flight)

        if not self._can_save(target):
            return False

        state = self.state
        if state.error is None and target == state.draft_content:
            return False

        self._scheduler.cancel()
        self._cancel_retry()
        self._retry.reset()
        return await asyncio.shield(self._request_save(target, "manual"))

    async def retry(self) -> bool:
        """Retry after a failure. Only valid while an error is shown."""
        if self.state.error is None:
            return False

        content = self._retry_target()
        if not content:
            return False

        logger.info(f"Manual retry of auto-save for '{self.context.value}'")
        self._cancel_retry()
        self._retry.reset()
        return await asyncio.shield(self._request_save(content, "retry"))

    def discard_draft(self) -> None:
        """Drop any scheduled work and reset the context's auto-save state."""
        self._scheduler.cancel()
        self._cancel_retry()
        self._retry.reset()
        self._pending = None
        self._last_failed_content = None
        self._retry_content = None
        self._store.reset(self.context)
        logger.info(f"Draft discarded for '{self.context.value}'")

    def get_status_text(self, now: Optional[datetime] = None) -> Optional[str]:
        """'Saved just now', 'Saved 5 minutes ago' or 'Saved at 14:05'."""
        return format_last_saved(self.state.last_saved, now=now)

    async def wait_idle(self) -> None:
        """Wait until no save is running for this controller."""
        while self._is_saving():
            await asyncio.shield(self._in_flight)

    # ---- Lifecycle hooks ----

    def on_suspend(self) -> Optional[asyncio.Task]:
        """Surface hidden: flush now, keep the periodic timer."""
        if self._disposed or not self._should_flush():
            return None
        if self._retry.exhausted:
            logger.debug(f"Not flushing '{self.context.value}' on suspend: retries exhausted")
            return None
        self._scheduler.cancel_pause()
        logger.debug(f"Flushing '{self.context.value}' draft on suspend")
        return self._request_save(self._content, "suspend")

    def on_resume(self) -> None:
        """Surface visible again: re-arm timers if there is still unsaved work."""
        if self._disposed or not self.has_unsaved_changes:
            return
        if not self._scheduler.armed and not self._retry.exhausted:
            self._scheduler.reschedule()

    def on_unload(self) -> bool:
        """Navigation away: cancel timers and flush. Returns True if there were unsaved changes."""
        if self._disposed:
            return False
        unsaved = self.has_unsaved_changes
        self._scheduler.cancel()
        self._cancel_retry()
        if self._should_flush():
            logger.debug(f"Flushing '{self.context.value}' draft on unload")
            self._request_save(self._content, "unload")
        return unsaved

    def on_dispose(self) -> Optional[asyncio.Task]:
        """Surface torn down: cancel everything and make one final save if needed."""
        if self._disposed:
            return self._in_flight if self._is_saving() else None

        self._scheduler.cancel()
        self._cancel_retry()
        task = None
        if self._should_flush():
            logger.debug(f"Flushing '{self.context.value}' draft on dispose")
            task = self._request_save(self._content, "dispose")
        self._disposed = True
        return task

    # ---- Scheduling internals ----

    def _can_save(self, content: Optional[str]) -> bool:
        return bool(content) and len(content) >= self.config.min_length

    def _can_schedule(self, content: str) -> bool:
        return self.is_enabled and self._can_save(content)

    def _needs_save(self, content: str) -> bool:
        state = self.state
        return content != state.draft_content or state.error is not None

    def _should_flush(self) -> bool:
        return self.has_unsaved_changes and self._can_schedule(self._content) and self._needs_save(self._content)

    def _is_saving(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    def _on_timer(self, content: str, reason: str) -> bool:
        if self._disposed or not self._can_schedule(content):
            return False
        if self._retry.exhausted:
            logger.debug(f"Auto-save for '{self.context.value}' suppressed: waiting for manual retry")
            return False
        if self._retry_handle is not None:
            # A backoff retry is pending and will pick up the latest content
            return False
        if not self._needs_save(content):
            return False
        self._request_save(content, reason)
        return True

    def _request_save(self, content: str, reason: str) -> asyncio.Task:
        """Start a save, or fold the request into the one already running."""
        if self._is_saving():
            self._pending = content
            logger.debug(f"Coalesced '{reason}' save request for '{self.context.value}' into running save")
            return self._in_flight
        self._in_flight = asyncio.get_running_loop().create_task(self._run(content, reason))
        return self._in_flight

    async def _run(self, content: str, reason: str) -> bool:
        result = await self._attempt(content, reason)
        while self._pending is not None:
            next_content, self._pending = self._pending, None
            if not self._can_save(next_content) or not self._needs_save(next_content):
                continue
            result = await self._attempt(next_content, "queued")
        return result

    async def _attempt(self, content: str, reason: str) -> bool:
        async with self._store.save_lock(self.context):
            token = self._store.begin_save(self.context)
            payload = DraftPayload.create(content, now=self._clock())
            logger.debug(f"Auto-saving '{self.context.value}' ({reason}, {len(content)} chars): "
                         f"{truncate_content(content)}")
            try:
                result = self._on_save(payload)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                self._store.fail_save(
                    self.context,
                    ErrorInfo(message="Auto-save was cancelled", error_type="CancelledError",
                              attempt=self._retry.attempt),
                    token,
                )
                raise
            except Exception as e:
                self._handle_failure(e, content, token)
                return False

            return self._handle_success(content, token)

    def _handle_success(self, content: str, token: int) -> bool:
        if not self._store.complete_save(self.context, self._clock(), content, token):
            # Draft was discarded while this save was running
            return False
        if self._retry.attempt:
            logger.info(f"Auto-save for '{self.context.value}' succeeded after {self._retry.attempt} retries")
        self._retry.reset()
        self._cancel_retry()
        self._last_failed_content = None
        self._retry_content = None
        logger.debug(f"Auto-saved '{self.context.value}' ({len(content)} chars)")

        # Newer edits arrived while this save was running
        if self._content != content and self._can_save(self._content):
            self._store.mark_dirty(self.context, self._content)

        self._notify(self.context.saved_message, "information")
        return True

    def _handle_failure(self, error: Exception, content: str, token: int) -> None:
        decision = self._retry_policy.on_save_failed(self._retry.attempt)
        info = ErrorInfo.from_exception(error, attempt=decision.attempt, exhausted=not decision.retry)
        if not self._store.fail_save(self.context, info, token):
            logger.debug(f"Ignoring failure of discarded '{self.context.value}' save: {error}")
            return

        self._retry.attempt = decision.attempt
        self._last_failed_content = content
        # Content requested explicitly during the failed save is what the retry writes
        queued, self._pending = self._pending, None
        if queued is not None and self._can_save(queued):
            self._retry_content = queued

        if decision.retry and not self._disposed:
            logger.warning(f"Auto-save for '{self.context.value}' failed "
                           f"(attempt {decision.attempt}/{self._retry.max_attempts}), "
                           f"retrying in {decision.delay_ms}ms: {error}")
            self._schedule_retry(decision.delay_seconds)
            self._notify(f"Auto-save failed. Retrying... ({decision.attempt}/{self._retry.max_attempts})", "warning")
        else:
            exhausted = RetriesExhaustedError(self.context.value, decision.attempt, error)
            logger.error(f"{exhausted.message}: {error}")
            self._notify(EXHAUSTED_MESSAGE, "error")

        if self._on_error is not None:
            try:
                self._on_error(error)
            except Exception as callback_error:
                logger.error(f"Auto-save on_error callback failed: {callback_error}")

    def _schedule_retry(self, delay_seconds: float) -> None:
        self._cancel_retry()
        loop = asyncio.get_running_loop()
        self._retry_handle = loop.call_later(delay_seconds, self._on_retry_fired)

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

    def _on_retry_fired(self) -> None:
        self._retry_handle = None
        if self._disposed or not self.is_enabled:
            return
        content = self._retry_target()
        if content:
            self._request_save(content, "retry")

    def _retry_target(self) -> Optional[str]:
        if self._retry_content is not None:
            return self._retry_content
        return self._content if self._can_save(self._content) else self._last_failed_content

    def _notify(self, message: str, severity: str) -> None:
        if self._notify_callback is None:
            return
        try:
            self._notify_callback(message, severity=severity)
        except Exception as e:
            logger.error(f"Auto-save notification failed: {e}")

#
# End of controller.py
########################################################################################################################
