# coach_autosave/Widgets/autosave_editor.py
#
# Imports
from typing import Callable, Optional
#
# 3rd-party Libraries
from loguru import logger
from rich.text import Text
from textual import events, on
from textual.widgets import Static, TextArea
#
# Local Imports
from ..AutoSave.controller import AutoSaveController
from ..AutoSave.lifecycle import LifecycleIntegrator
from ..state.autosave_state import AutoSaveContext, ContextState
#
########################################################################################################################
#
# Widgets:

def _lifecycle_of(app) -> Optional[LifecycleIntegrator]:
    return getattr(app, "autosave_lifecycle", None)


class AutoSaveTextArea(TextArea):
    """TextArea that feeds every edit to an ``AutoSaveController``.

    The controller is registered with the app's lifecycle integrator (if the app
    uses ``AutoSaveAppMixin``) and disposed, with a final flush, on unmount.
    """

    def __init__(self, controller: AutoSaveController, text: Optional[str] = None, **kwargs) -> None:
        super().__init__(controller.content if text is None else text, **kwargs)
        self.controller = controller

    def on_mount(self) -> None:
        lifecycle = _lifecycle_of(self.app)
        if lifecycle is not None:
            lifecycle.register(self.controller)

    @on(TextArea.Changed)
    def _feed_controller(self, event: TextArea.Changed) -> None:
        if event.text_area is self:
            self.controller.update_content(self.text)

    def on_unmount(self) -> None:
        lifecycle = _lifecycle_of(self.app)
        if lifecycle is not None:
            lifecycle.on_teardown(self.controller)
        else:
            self.controller.on_dispose()


class AutoSaveStatus(Static):
    """One-line auto-save indicator for an editor."""

    DEFAULT_CSS = """
    AutoSaveStatus {
        height: 1;
        width: auto;
        color: $text-muted;
    }
    """

    def __init__(self, controller: AutoSaveController, refresh_seconds: float = 30.0, **kwargs) -> None:
        super().__init__("", **kwargs)
        self.controller = controller
        self._refresh_seconds = refresh_seconds
        self._unsubscribe: Optional[Callable[[], None]] = None

    def on_mount(self) -> None:
        self._unsubscribe = self.controller.store.subscribe(self._on_state_changed)
        # "Saved N minutes ago" goes stale on its own
        self.set_interval(self._refresh_seconds, self.refresh_status)
        self.refresh_status()

    def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_state_changed(self, context: AutoSaveContext, state: ContextState) -> None:
        if context is self.controller.context:
            self.refresh_status()

    def refresh_status(self) -> None:
        self.update(self.render_status())

    def render_status(self) -> Text:
        controller = self.controller
        if not controller.is_enabled:
            return Text("Auto-save off", style="dim")
        if controller.is_auto_saving:
            return Text("Saving...", style="italic")

        error = controller.error
        if error is not None:
            if error.exhausted:
                return Text(f"{error.message} - retry needed", style="bold red")
            return Text(f"Retrying ({error.attempt}/{controller.retry_state.max_attempts})...", style="yellow")

        if controller.has_unsaved_changes:
            return Text("Unsaved changes", style="yellow")
        return Text(controller.get_status_text() or "", style="green")


class AutoSaveAppMixin:
    """Mix into a Textual ``App`` (before ``App`` in the bases).

    Terminal focus loss flushes drafts, focus return re-arms timers, and quitting
    flushes everything and waits up to ``AUTOSAVE_DRAIN_TIMEOUT`` seconds.
    """

    AUTOSAVE_DRAIN_TIMEOUT: float = 5.0
    _autosave_lifecycle: Optional[LifecycleIntegrator] = None

    @property
    def autosave_lifecycle(self) -> LifecycleIntegrator:
        if self._autosave_lifecycle is None:
            self._autosave_lifecycle = LifecycleIntegrator()
        return self._autosave_lifecycle

    def on_app_blur(self, event: events.AppBlur) -> None:
        self.autosave_lifecycle.on_page_hidden()

    def on_app_focus(self, event: events.AppFocus) -> None:
        self.autosave_lifecycle.on_page_visible()

    async def action_quit(self) -> None:
        logger.info("Application quit initiated")
        if self.autosave_lifecycle.on_unload():
            logger.info("Waiting for unsaved drafts to flush before exit")
        await self.autosave_lifecycle.drain(timeout=self.AUTOSAVE_DRAIN_TIMEOUT)
        self.exit()

#
# End of autosave_editor.py
########################################################################################################################
