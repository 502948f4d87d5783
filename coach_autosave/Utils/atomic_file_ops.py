"""
Atomic file helpers for the draft store.

Drafts are written to a temporary sibling of the target and renamed over it,
so a crash mid-write leaves either the old drafts file or the new one, never a
truncated mix. Draft files hold client notes and are created owner-readable only.
"""

import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, IO, Iterator, Union

from loguru import logger

PRIVATE_FILE_MODE = 0o600


@contextmanager
def _replacing(target: Path, mode: int, encoding: str) -> Iterator[IO[str]]:
    """Yield a temp file next to ``target``; it replaces ``target`` if the block succeeds."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding=encoding) as handle:
            yield handle
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, target)
    except BaseException:
        if os.path.exists(tmp_name):
            try:
                os.unlink(tmp_name)
            except OSError as cleanup_error:
                logger.warning(f"Could not remove temp file {tmp_name}: {cleanup_error}")
        raise


def atomic_write_text(file_path: Union[str, Path], content: str,
                      encoding: str = "utf-8", mode: int = PRIVATE_FILE_MODE) -> None:
    """Replace ``file_path`` with ``content`` in one step. Raises ``OSError`` on failure."""
    target = Path(file_path)
    try:
        with _replacing(target, mode, encoding) as handle:
            handle.write(content)
    except OSError as e:
        logger.error(f"Atomic write to {target} failed: {e}")
        raise
    logger.debug(f"Wrote {len(content)} chars to {target}")


def atomic_write_json(file_path: Union[str, Path], data: Dict[str, Any]) -> None:
    """Serialize ``data`` (sorted keys, 2-space indent) and write it atomically."""
    atomic_write_text(file_path, json.dumps(data, indent=2, ensure_ascii=False, sort_keys=True))


def read_json_file(file_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a JSON object from ``file_path``.

    A missing file reads as an empty dict. A file that does not hold a JSON
    object raises ``ValueError``.
    """
    path = Path(file_path)
    if not path.exists():
        return {}
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {path}, found {type(data).__name__}")
    return data
