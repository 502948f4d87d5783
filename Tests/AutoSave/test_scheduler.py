"""
test_scheduler.py
Tests for the pause/periodic save scheduler
"""
import asyncio

import pytest

from coach_autosave.AutoSave.scheduler import SaveScheduler
from coach_autosave.state.settings_state import GlobalSettings


class RecordingTrigger:
    def __init__(self, result=True):
        self.result = result
        self.calls = []

    def __call__(self, content, reason):
        self.calls.append((content, reason))
        return self.result

    @property
    def reasons(self):
        return [reason for _, reason in self.calls]


def make_scheduler(trigger, pause_ms=30, interval_ms=200, min_length=5, initial_content=""):
    settings = GlobalSettings(enabled=True, interval_ms=interval_ms, pause_delay_ms=pause_ms)
    return SaveScheduler(
        trigger=trigger,
        settings=lambda: settings,
        gate=lambda content: len(content) >= min_length,
        initial_content=initial_content,
        name="test",
    )


@pytest.mark.asyncio
class TestPauseTimer:

    async def test_fires_once_after_inactivity_with_latest_content(self):
        trigger = RecordingTrigger()
        scheduler = make_scheduler(trigger, pause_ms=40, interval_ms=5000)

        for text in ["Hello", "Hello t", "Hello th", "Hello there"]:
            assert scheduler.on_content_changed(text) is True
            await asyncio.sleep(0.005)

        await asyncio.sleep(0.15)
        assert trigger.calls == [("Hello there", "pause")]
        assert not scheduler.pause_armed
        scheduler.cancel()

    async def test_each_change_restarts_the_pause(self):
        trigger = RecordingTrigger()
        scheduler = make_scheduler(trigger, pause_ms=80, interval_ms=5000)

        scheduler.on_content_changed("First draft")
        await asyncio.sleep(0.05)
        scheduler.on_content_changed("First draft, longer")
        await asyncio.sleep(0.05)

        # 100ms since the first change but only 50ms since the last one
        assert trigger.calls == []
        await asyncio.sleep(0.1)
        assert trigger.calls == [("First draft, longer", "pause")]
        scheduler.cancel()

    async def test_unchanged_content_does_not_rearm(self):
        trigger = RecordingTrigger()
        scheduler = make_scheduler(trigger, initial_content="Same text")

        assert scheduler.on_content_changed("Same text") is False
        assert not scheduler.armed

    async def test_content_below_gate_cancels_timers(self):
        trigger = RecordingTrigger()
        scheduler = make_scheduler(trigger, pause_ms=30)

        scheduler.on_content_changed("Long enough")
        assert scheduler.armed
        assert scheduler.on_content_changed("ab") is False
        assert not scheduler.armed

        await asyncio.sleep(0.08)
        assert trigger.calls == []

    async def test_cancel_prevents_fire(self):
        trigger = RecordingTrigger()
        scheduler = make_scheduler(trigger, pause_ms=20, interval_ms=40)

        scheduler.on_content_changed("Some notes")
        scheduler.cancel()
        await asyncio.sleep(0.1)

        assert trigger.calls == []
        assert not scheduler.armed


@pytest.mark.asyncio
class TestPeriodicTimer:

    async def test_continuous_typing_still_saves_every_interval(self):
        trigger = RecordingTrigger()
        # The pause timer never gets a chance while typing continues
        scheduler = make_scheduler(trigger, pause_ms=1000, interval_ms=100)

        for i in range(18):
            scheduler.on_content_changed(f"Typing steadily {i}")
            await asyncio.sleep(0.02)
        scheduler.cancel()

        periodic = [call for call in trigger.calls if call[1] == "periodic"]
        assert 2 <= len(periodic) <= 4
        assert "pause" not in trigger.reasons

    async def test_periodic_fire_carries_captured_content(self):
        trigger = RecordingTrigger()
        scheduler = make_scheduler(trigger, pause_ms=1000, interval_ms=60)

        scheduler.on_content_changed("Version one")
        await asyncio.sleep(0.03)
        scheduler.on_content_changed("Version two")
        await asyncio.sleep(0.05)
        scheduler.cancel()

        assert trigger.calls[0] == ("Version two", "periodic")

    async def test_rearms_while_content_unchanged_and_save_issued(self):
        trigger = RecordingTrigger(result=True)
        scheduler = make_scheduler(trigger, pause_ms=1000, interval_ms=40)

        scheduler.on_content_changed("Stable text")
        await asyncio.sleep(0.06)
        assert trigger.reasons == ["periodic"]
        assert scheduler.periodic_armed
        scheduler.cancel()

    async def test_does_not_rearm_when_nothing_was_saved(self):
        trigger = RecordingTrigger(result=False)
        scheduler = make_scheduler(trigger, pause_ms=1000, interval_ms=40)

        scheduler.on_content_changed("Stable text")
        await asyncio.sleep(0.06)
        assert trigger.reasons == ["periodic"]
        assert not scheduler.periodic_armed
        scheduler.cancel()


@pytest.mark.asyncio
class TestSchedulerRobustness:

    async def test_trigger_errors_are_logged_not_raised(self, log_messages):
        def exploding_trigger(content, reason):
            raise RuntimeError("kaboom")

        scheduler = make_scheduler(exploding_trigger, pause_ms=10, interval_ms=5000)
        scheduler.on_content_changed("Some notes")
        await asyncio.sleep(0.05)
        scheduler.cancel()

        assert any("trigger failed on pause timer" in line for line in log_messages)

    async def test_reschedule_uses_last_seen_content(self):
        trigger = RecordingTrigger()
        scheduler = make_scheduler(trigger, pause_ms=20, interval_ms=5000)

        scheduler.on_content_changed("Remember me")
        scheduler.cancel()
        assert scheduler.reschedule() is True
        await asyncio.sleep(0.06)
        scheduler.cancel()

        assert trigger.calls == [("Remember me", "pause")]

    async def test_reschedule_refuses_content_below_gate(self):
        trigger = RecordingTrigger()
        scheduler = make_scheduler(trigger, initial_content="abc")

        assert scheduler.reschedule() is False
        assert not scheduler.armed

    async def test_settings_are_read_when_arming(self):
        trigger = RecordingTrigger()
        current = {'settings': GlobalSettings(interval_ms=5000, pause_delay_ms=5000)}
        scheduler = SaveScheduler(trigger=trigger, settings=lambda: current['settings'])

        scheduler.on_content_changed("First")
        current['settings'] = GlobalSettings(interval_ms=5000, pause_delay_ms=10)
        scheduler.on_content_changed("Second")
        await asyncio.sleep(0.05)
        scheduler.cancel()

        assert trigger.calls == [("Second", "pause")]
