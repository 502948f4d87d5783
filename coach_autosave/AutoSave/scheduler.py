# scheduler.py
# Description: Pause/periodic timer pair deciding when a draft save is attempted
#
# Imports
import asyncio
from typing import Callable, Optional
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from ..state.settings_state import GlobalSettings
#
########################################################################################################################
#
# Classes:

# trigger(content, reason) -> True when a save was actually issued or queued
SaveTrigger = Callable[[str, str], bool]


class SaveScheduler:
    """
    Turns a stream of content changes into save attempts.

    Two timers per controller:

    * the pause timer fires ``pause_delay_ms`` after the last change,
    * the periodic timer fires every ``interval_ms`` while the user keeps typing.

    A change re-arms the pause timer from scratch but keeps the periodic timer's
    deadline, so continuous typing still produces one save per interval. Each
    timer carries the content captured when it was armed.
    """

    def __init__(
        self,
        trigger: SaveTrigger,
        settings: Callable[[], GlobalSettings],
        gate: Optional[Callable[[str], bool]] = None,
        initial_content: Optional[str] = None,
        name: str = "autosave",
    ):
        self._trigger = trigger
        self._settings = settings
        self._gate = gate or (lambda content: bool(content))
        self._name = name

        self._last_seen: Optional[str] = initial_content
        self._pause_handle: Optional[asyncio.TimerHandle] = None
        self._periodic_handle: Optional[asyncio.TimerHandle] = None
        self._periodic_deadline: Optional[float] = None

    @property
    def last_seen(self) -> Optional[str]:
        return self._last_seen

    @property
    def pause_armed(self) -> bool:
        return self._pause_handle is not None

    @property
    def periodic_armed(self) -> bool:
        return self._periodic_handle is not None

    @property
    def armed(self) -> bool:
        return self.pause_armed or self.periodic_armed

    def on_content_changed(self, content: str) -> bool:
        """Observe new content. Returns True when timers were armed for it."""
        if content == self._last_seen:
            return False
        self._last_seen = content

        if not self._gate(content):
            self.cancel()
            return False

        self._arm(content)
        return True

    def reschedule(self) -> bool:
        """Arm timers for the last seen content again, e.g. when a surface becomes visible."""
        content = self._last_seen
        if content is None or not self._gate(content):
            return False
        self._arm(content)
        return True

    def cancel(self) -> None:
        """Cancel both timers."""
        self.cancel_pause()
        self.cancel_periodic()

    def cancel_pause(self) -> None:
        if self._pause_handle is not None:
            self._pause_handle.cancel()
            self._pause_handle = None

    def cancel_periodic(self) -> None:
        if self._periodic_handle is not None:
            self._periodic_handle.cancel()
            self._periodic_handle = None
        self._periodic_deadline = None

    # ---- Internals ----

    def _arm(self, content: str) -> None:
        loop = asyncio.get_running_loop()
        settings = self._settings()

        self.cancel_pause()
        self._pause_handle = loop.call_later(settings.pause_delay_seconds, self._on_pause_fired, content)

        now = loop.time()
        deadline = self._periodic_deadline
        if self._periodic_handle is None or deadline is None or deadline <= now:
            deadline = now + settings.interval_seconds
        self._arm_periodic_at(loop, deadline, content)

        logger.debug(f"[{self._name}] Auto-save scheduled (pause {settings.pause_delay_ms}ms, "
                     f"periodic in {deadline - now:.2f}s)")

    def _arm_periodic_at(self, loop: asyncio.AbstractEventLoop, deadline: float, content: str) -> None:
        if self._periodic_handle is not None:
            self._periodic_handle.cancel()
        self._periodic_handle = loop.call_at(deadline, self._on_periodic_fired, content)
        self._periodic_deadline = deadline

    def _on_pause_fired(self, content: str) -> None:
        self._pause_handle = None
        logger.debug(f"[{self._name}] Pause timer fired")
        self._fire(content, "pause")

    def _on_periodic_fired(self, content: str) -> None:
        self._periodic_handle = None
        self._periodic_deadline = None
        logger.debug(f"[{self._name}] Periodic timer fired")
        issued = self._fire(content, "periodic")

        # Keep the cadence going while this content is still current
        if issued and self._last_seen == content and self._gate(content):
            loop = asyncio.get_running_loop()
            self._arm_periodic_at(loop, loop.time() + self._settings().interval_seconds, content)

    def _fire(self, content: str, reason: str) -> bool:
        try:
            return bool(self._trigger(content, reason))
        except Exception as e:
            # Never raise into the event loop
            logger.error(f"[{self._name}] Auto-save trigger failed on {reason} timer: {e}")
            return False

#
# End of scheduler.py
########################################################################################################################
