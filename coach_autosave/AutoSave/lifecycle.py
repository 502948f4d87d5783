# lifecycle.py
# Description: Routes page/app lifecycle signals to auto-save controllers
#
# Imports
import asyncio
from typing import List, Optional, Set
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from .controller import AutoSaveController
#
########################################################################################################################
#
# Classes:

class LifecycleIntegrator:
    """
    Fans lifecycle signals out to every registered controller.

    * ``on_page_hidden``  - flush unsaved drafts, keep periodic timers
    * ``on_page_visible`` - re-arm timers for surfaces that still have unsaved work
    * ``on_unload``       - cancel timers and flush everything (navigation away, quit)
    * ``on_teardown``     - dispose one controller (editor closed) or all of them

    Flushes are tracked so ``drain()`` can wait for them before the host exits.
    """

    def __init__(self):
        self._controllers: List[AutoSaveController] = []
        self._flushes: Set[asyncio.Task] = set()

    @property
    def controllers(self) -> List[AutoSaveController]:
        return list(self._controllers)

    @property
    def has_unsaved_changes(self) -> bool:
        return any(c.has_unsaved_changes for c in self._controllers)

    def register(self, controller: AutoSaveController) -> AutoSaveController:
        if controller not in self._controllers:
            self._controllers.append(controller)
        return controller

    def unregister(self, controller: AutoSaveController) -> None:
        if controller in self._controllers:
            self._controllers.remove(controller)

    def on_page_hidden(self) -> int:
        """Returns the number of flushes issued."""
        issued = 0
        for controller in list(self._controllers):
            if self._track(controller.on_suspend()):
                issued += 1
        if issued:
            logger.info(f"Flushed {issued} draft(s) on page hidden")
        return issued

    def on_page_visible(self) -> None:
        for controller in list(self._controllers):
            controller.on_resume()

    def on_unload(self) -> bool:
        """Returns True if any surface had unsaved changes."""
        unsaved = False
        for controller in list(self._controllers):
            unsaved = controller.on_unload() or unsaved
            self._track(controller.current_save)
        if unsaved:
            logger.info("Unsaved drafts flushed on unload")
        return unsaved

    def on_teardown(self, controller: Optional[AutoSaveController] = None) -> None:
        targets = [controller] if controller is not None else list(self._controllers)
        for target in targets:
            self._track(target.on_dispose())
            self.unregister(target)

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for outstanding flushes. Returns False if ``timeout`` expired first."""
        pending = {task for task in self._flushes if not task.done()}
        if not pending:
            return True
        done, not_done = await asyncio.wait(pending, timeout=timeout)
        if not_done:
            logger.warning(f"{len(not_done)} draft flush(es) still running after {timeout}s")
            return False
        return True

    def _track(self, task: Optional[asyncio.Task]) -> bool:
        if task is None:
            return False
        self._flushes.add(task)
        task.add_done_callback(self._flushes.discard)
        return True

#
# End of lifecycle.py
########################################################################################################################
