"""
test_autosave_utils.py
Tests for status text, atomic writes, log helpers and the error taxonomy
"""
import json
import sys
from datetime import datetime, timedelta, timezone

import pytest
from loguru import logger

from coach_autosave.exceptions import (
    AutoSaveConfigError,
    AutoSaveError,
    DraftSaveError,
    RetriesExhaustedError,
    describe_exception,
)
from coach_autosave.logging_config import CONTENT_TRUNCATE_LENGTH, configure_logging, truncate_content
from coach_autosave.Utils.atomic_file_ops import atomic_write_json, atomic_write_text, read_json_file
from coach_autosave.Utils.status_text import format_last_saved

NOW = datetime(2024, 6, 1, 15, 30, tzinfo=timezone.utc)


class TestStatusText:

    def test_never_saved(self):
        assert format_last_saved(None, now=NOW) is None

    @pytest.mark.parametrize("delta,expected", [
        (timedelta(seconds=10), "Saved just now"),
        (timedelta(minutes=1), "Saved 1 minute ago"),
        (timedelta(minutes=5, seconds=30), "Saved 5 minutes ago"),
        (timedelta(minutes=59), "Saved 59 minutes ago"),
    ])
    def test_relative_times(self, delta, expected):
        assert format_last_saved(NOW - delta, now=NOW) == expected

    def test_older_saves_show_local_clock_time(self):
        saved = NOW - timedelta(hours=2)
        assert format_last_saved(saved, now=NOW) == f"Saved at {saved.astimezone().strftime('%H:%M')}"

    def test_naive_datetimes_are_utc(self):
        naive_saved = (NOW - timedelta(minutes=3)).replace(tzinfo=None)
        assert format_last_saved(naive_saved, now=NOW) == "Saved 3 minutes ago"


class TestAtomicFileOps:

    def test_write_text_creates_parents(self, isolated_temp_dir):
        target = isolated_temp_dir / "a" / "b" / "draft.txt"
        atomic_write_text(target, "hello")
        assert target.read_text(encoding="utf-8") == "hello"

    def test_no_temp_files_left_behind(self, isolated_temp_dir):
        target = isolated_temp_dir / "draft.json"
        atomic_write_json(target, {"b": 1, "a": 2})
        atomic_write_json(target, {"c": 3})

        assert [p.name for p in isolated_temp_dir.iterdir()] == ["draft.json"]
        assert json.loads(target.read_text(encoding="utf-8")) == {"c": 3}

    def test_read_missing_file(self, isolated_temp_dir):
        assert read_json_file(isolated_temp_dir / "missing.json") == {}

    def test_read_non_object(self, isolated_temp_dir):
        target = isolated_temp_dir / "list.json"
        target.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ValueError):
            read_json_file(target)

    def test_failed_write_raises_os_error(self, isolated_temp_dir):
        blocker = isolated_temp_dir / "file"
        blocker.write_text("x")
        with pytest.raises(OSError):
            atomic_write_text(blocker / "child.txt", "cannot exist")


class TestLoggingHelpers:

    def test_truncate_short_content(self):
        assert truncate_content("Short note") == "Short note"
        assert truncate_content(None) == ""

    def test_truncate_long_content(self):
        long_note = "word " * 40
        truncated = truncate_content(long_note)
        assert truncated.endswith("...")
        assert len(truncated) == CONTENT_TRUNCATE_LENGTH + 3

    def test_truncate_collapses_whitespace(self):
        assert truncate_content("line one\n\nline   two", 50) == "line one line two"

    def test_configure_logging_writes_file(self, isolated_temp_dir, config_path):
        log_file = isolated_temp_dir / "logs" / "autosave.log"
        try:
            configure_logging(level="debug", log_file=log_file, console=False)
            logger.debug("draft flushed")
            logger.complete()
        finally:
            logger.remove()
            logger.add(sys.stderr)

        assert "draft flushed" in log_file.read_text(encoding="utf-8")


class TestExceptions:

    def test_to_dict(self):
        error = DraftSaveError(details={'record_id': 3})
        assert error.to_dict() == {
            'error_type': 'DraftSaveError',
            'message': "Auto-save failed. Please check your connection.",
            'details': {'record_id': 3},
            'suggestion': "The draft will be retried automatically",
            'is_retryable': True,
        }

    def test_config_error_is_value_error(self):
        error = AutoSaveConfigError("bad", option="interval_ms", value=-1)
        assert isinstance(error, ValueError)
        assert isinstance(error, AutoSaveError)
        assert error.details == {'option': 'interval_ms', 'value': -1}

    def test_retries_exhausted(self):
        error = RetriesExhaustedError("messages", 3, DraftSaveError("offline"))
        assert error.message == "Auto-save for 'messages' failed after 3 attempts"
        assert error.details['last_error'] == "offline"
        assert not error.is_retryable

    @pytest.mark.parametrize("error,expected", [
        (DraftSaveError("Server said no"), "Server said no"),
        (TimeoutError("timed out"), "timed out"),
        (RuntimeError(""), "Auto-save failed. Please check your connection."),
    ])
    def test_describe_exception(self, error, expected):
        assert describe_exception(error) == expected
