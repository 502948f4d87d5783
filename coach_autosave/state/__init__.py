"""
State management for the auto-save engine.
Provides the per-context state store and the injected global settings.
"""

from .autosave_state import AutoSaveContext, ContextState, ContextStateStore, ErrorInfo
from .settings_state import GlobalSettings, SettingsChannel

__all__ = [
    'AutoSaveContext',
    'ContextState',
    'ContextStateStore',
    'ErrorInfo',
    'GlobalSettings',
    'SettingsChannel',
]
