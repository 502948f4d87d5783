# draft_store.py
# Description: Durable key-value draft storage (message threads, diary entries)
#
# Imports
import asyncio
import threading
from pathlib import Path
from typing import Any, Callable, Coroutine, Dict, Optional, Union
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from ..AutoSave.controller import DraftPayload
from ..exceptions import DraftStoreError
from ..state.autosave_state import AutoSaveContext
from ..Utils.atomic_file_ops import atomic_write_json, read_json_file
#
########################################################################################################################
#
# Classes:

STORE_FORMAT_VERSION = 1


class DraftStore:
    """
    Keeps the latest draft per key in a single JSON file.

    Keys are usually built with ``key_for(context, entity_id)``, e.g.
    ``"messages:42"`` for the draft of message thread 42. Every write replaces
    the file atomically.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls) -> "DraftStore":
        from ..config import get_drafts_store_path
        return cls(get_drafts_store_path())

    @staticmethod
    def key_for(context: Union[str, AutoSaveContext], entity_id: Any) -> str:
        return f"{AutoSaveContext.parse(context).value}:{entity_id}"

    # ---- Synchronous API ----

    def save_draft(self, key: str, payload: DraftPayload) -> None:
        """Store ``payload`` as the current draft for ``key``."""
        with self._lock:
            data = self._read()
            data.setdefault("drafts", {})[key] = payload.to_dict()
            self._write(data)
        logger.debug(f"Draft stored for '{key}' ({len(payload.content)} chars)")

    def load_draft(self, key: str) -> Optional[DraftPayload]:
        """The stored draft for ``key``, for "restore your draft" prompts."""
        with self._lock:
            entry = self._read().get("drafts", {}).get(key)
        if entry is None:
            return None
        return self._to_payload(key, entry)

    def remove(self, key: str) -> bool:
        """Forget the draft for ``key`` (sent message, discarded draft)."""
        with self._lock:
            data = self._read()
            drafts = data.get("drafts", {})
            if key not in drafts:
                return False
            del drafts[key]
            self._write(data)
        logger.debug(f"Draft removed for '{key}'")
        return True

    def list_drafts(self, context: Optional[Union[str, AutoSaveContext]] = None) -> Dict[str, DraftPayload]:
        """All stored drafts, optionally only those of one context."""
        prefix = f"{AutoSaveContext.parse(context).value}:" if context is not None else ""
        with self._lock:
            drafts = self._read().get("drafts", {})
        return {
            key: self._to_payload(key, entry)
            for key, entry in drafts.items()
            if key.startswith(prefix)
        }

    # ---- Async adapter ----

    async def asave(self, key: str, payload: DraftPayload) -> None:
        await asyncio.to_thread(self.save_draft, key, payload)

    def saver_for(self, key: str) -> Callable[[DraftPayload], Coroutine[Any, Any, None]]:
        """Persistence adapter writing drafts for ``key``; pass it as ``on_save``."""
        async def _save(payload: DraftPayload) -> None:
            await self.asave(key, payload)
        return _save

    # ---- Internals ----

    def _read(self) -> Dict[str, Any]:
        try:
            data = read_json_file(self.path)
        except (OSError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            raise DraftStoreError(f"Could not read drafts from {self.path}: {e}", path=str(self.path)) from e
        if data and data.get("version") != STORE_FORMAT_VERSION:
            raise DraftStoreError(f"Unsupported drafts file version: {data.get('version')!r}", path=str(self.path))
        return data or {"version": STORE_FORMAT_VERSION, "drafts": {}}

    def _write(self, data: Dict[str, Any]) -> None:
        data["version"] = STORE_FORMAT_VERSION
        try:
            atomic_write_json(self.path, data)
        except (OSError, TypeError) as e:
            raise DraftStoreError(f"Could not write drafts to {self.path}: {e}", path=str(self.path)) from e

    @staticmethod
    def _to_payload(key: str, entry: Dict[str, Any]) -> DraftPayload:
        try:
            return DraftPayload(
                content=entry["content"],
                timestamp=entry["timestamp"],
                is_draft=bool(entry.get("is_draft", True)),
            )
        except (KeyError, TypeError) as e:
            raise DraftStoreError(f"Malformed draft entry for '{key}': {e}") from e

#
# End of draft_store.py
########################################################################################################################
