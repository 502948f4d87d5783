"""
Global auto-save settings.

Settings are owned by the application and injected into every controller
through a ``SettingsChannel``. Controllers read ``channel.current`` whenever they
make a scheduling decision, so an update applies to the next decision and never
to a save that is already running.
"""

from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from ..exceptions import AutoSaveConfigError


@dataclass(frozen=True)
class GlobalSettings:
    """Process-wide auto-save preferences."""

    enabled: bool = True
    interval_ms: int = 15000
    pause_delay_ms: int = 3000

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if not isinstance(self.enabled, bool):
            raise AutoSaveConfigError("'enabled' must be a boolean", option="enabled", value=self.enabled)
        for option in ("interval_ms", "pause_delay_ms"):
            value = getattr(self, option)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise AutoSaveConfigError(f"'{option}' must be a positive integer", option=option, value=value)

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000.0

    @property
    def pause_delay_seconds(self) -> float:
        return self.pause_delay_ms / 1000.0

    def to_dict(self) -> Dict[str, Any]:
        return {'enabled': self.enabled, 'interval_ms': self.interval_ms, 'pause_delay_ms': self.pause_delay_ms}


SettingsListener = Callable[[GlobalSettings, GlobalSettings], None]


class SettingsChannel:
    """Read-mostly holder for ``GlobalSettings`` with an explicit update path."""

    def __init__(self, settings: Optional[GlobalSettings] = None):
        self._settings = settings or GlobalSettings()
        self._listeners: List[SettingsListener] = []

    @classmethod
    def from_config(cls) -> "SettingsChannel":
        """Build the channel from the ``[AutoSave]`` config section."""
        from ..config import get_autosave_config

        values = get_autosave_config()
        return cls(GlobalSettings(
            enabled=values['enabled'],
            interval_ms=values['interval_ms'],
            pause_delay_ms=values['pause_delay_ms'],
        ))

    @property
    def current(self) -> GlobalSettings:
        return self._settings

    def update(self, **changes: Any) -> GlobalSettings:
        """Apply ``changes`` (any of enabled, interval_ms, pause_delay_ms)."""
        unknown = set(changes) - {'enabled', 'interval_ms', 'pause_delay_ms'}
        if unknown:
            raise AutoSaveConfigError(f"Unknown auto-save setting(s): {', '.join(sorted(unknown))}")

        old = self._settings
        new = replace(old, **changes)
        if new == old:
            return old
        self._settings = new
        logger.info(f"Auto-save settings updated: {new.to_dict()}")

        for listener in list(self._listeners):
            try:
                listener(old, new)
            except Exception as e:
                logger.error(f"Auto-save settings listener failed: {e}")
        return new

    def set_enabled(self, enabled: bool) -> GlobalSettings:
        return self.update(enabled=enabled)

    def set_interval(self, interval_ms: int) -> GlobalSettings:
        return self.update(interval_ms=interval_ms)

    def set_pause_delay(self, pause_delay_ms: int) -> GlobalSettings:
        return self.update(pause_delay_ms=pause_delay_ms)

    def subscribe(self, listener: SettingsListener) -> Callable[[], None]:
        """Register ``listener(old, new)``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def persist(self) -> bool:
        """Write the current settings back to the user's config file."""
        from ..config import save_setting_to_config

        ok = True
        for key, value in self._settings.to_dict().items():
            ok = save_setting_to_config("AutoSave", key, value) and ok
        return ok
