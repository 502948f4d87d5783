"""
Root conftest.py for shared test fixtures and configuration.
This file provides common fixtures used across the test suite.
"""

import asyncio
import contextlib
import shutil
import sys
import tempfile
from pathlib import Path

import pytest
import pytest_asyncio
from loguru import logger

# Add project root to Python path for consistent imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from coach_autosave import config as autosave_config
from coach_autosave.AutoSave.controller import AutoSaveController, ContextConfig
from coach_autosave.AutoSave.retry_policy import RetryPolicy
from coach_autosave.state.autosave_state import ContextStateStore
from coach_autosave.state.settings_state import GlobalSettings, SettingsChannel
from Tests.autosave_test_utils import FakeAdapter

# Fast timings: pause 30ms, periodic 200ms, retries 20ms/40ms
FAST_PAUSE_MS = 30
FAST_INTERVAL_MS = 200
FAST_BASE_DELAY_MS = 20


# ========== Path and File System Fixtures ==========

@pytest.fixture
def isolated_temp_dir():
    """Create an isolated temporary directory that's always cleaned up."""
    temp_dir = tempfile.mkdtemp(prefix="coach_autosave_test_")
    temp_path = Path(temp_dir)
    yield temp_path
    if temp_path.exists():
        shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def config_path(isolated_temp_dir, monkeypatch):
    """Point the config loader at a private config file."""
    path = isolated_temp_dir / "config" / "config.toml"
    monkeypatch.setenv(autosave_config.CONFIG_PATH_ENV_VAR, str(path))
    autosave_config.clear_config_cache()
    yield path
    autosave_config.clear_config_cache()


# ========== Logging Fixtures ==========

@pytest.fixture
def log_messages():
    """Capture loguru output as a list of formatted lines."""
    messages = []
    handler_id = logger.add(lambda message: messages.append(str(message)), level="DEBUG", format="{level} {message}")
    yield messages
    logger.remove(handler_id)


# ========== Auto-save Fixtures ==========

@pytest.fixture
def store():
    return ContextStateStore()


@pytest.fixture
def settings_channel():
    return SettingsChannel(GlobalSettings(
        enabled=True,
        interval_ms=FAST_INTERVAL_MS,
        pause_delay_ms=FAST_PAUSE_MS,
    ))


@pytest.fixture
def adapter():
    return FakeAdapter()


@pytest.fixture
def notifications():
    """Notifier recording (message, severity) pairs, same signature as App.notify."""
    received = []

    def _notify(message, severity="information", **kwargs):
        received.append((message, severity))

    _notify.received = received
    return _notify


@pytest_asyncio.fixture
async def make_controller(adapter, store, settings_channel):
    """Factory for controllers wired to the shared store, fast settings and FakeAdapter."""
    created = []

    def _make(content="", context="sessionNotes", min_length=5, max_attempts=3,
              base_delay_ms=FAST_BASE_DELAY_MS, on_save=None, **kwargs):
        controller = AutoSaveController(
            content,
            on_save or adapter,
            context,
            ContextConfig(context_id=context, min_length=min_length),
            settings=kwargs.pop('settings', settings_channel),
            store=kwargs.pop('store', store),
            retry_policy=RetryPolicy(max_attempts=max_attempts, base_delay_ms=base_delay_ms),
            **kwargs
        )
        created.append(controller)
        return controller

    yield _make

    for controller in created:
        controller.scheduler.cancel()
        task = controller.current_save
        controller.discard_draft()
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task
