# record_adapter.py
# Description: Persistence adapter writing drafts into records of a CRUD backend
#
# Imports
import inspect
from typing import Any, Callable, Dict, Optional, Protocol
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from ..AutoSave.controller import DraftPayload
from ..exceptions import DraftSaveError
#
########################################################################################################################
#
# Classes:

class RecordClient(Protocol):
    """Create/update access to records keyed by numeric ids (sync or async)."""

    def create(self, data: Dict[str, Any]) -> Any:
        ...

    def update(self, record_id: int, data: Dict[str, Any]) -> Any:
        ...


FieldBuilder = Callable[[DraftPayload], Dict[str, Any]]


async def _resolve(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class RecordDraftAdapter:
    """
    Saves drafts into a backend record.

    The first save creates the record and remembers its id; later saves update
    that record. Record clients that signal failure by returning ``None``
    instead of raising are turned into ``DraftSaveError`` so the auto-save
    engine sees the failure and retries.
    """

    def __init__(
        self,
        client: RecordClient,
        build_fields: FieldBuilder,
        record_id: Optional[int] = None,
        id_field: str = "Id",
        on_record_created: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ):
        self._client = client
        self._build_fields = build_fields
        self._record_id = record_id
        self._id_field = id_field
        self._on_record_created = on_record_created

    @property
    def record_id(self) -> Optional[int]:
        return self._record_id

    async def __call__(self, payload: DraftPayload) -> None:
        if not payload.content.strip():
            logger.debug("Skipping record draft save for blank content")
            return

        fields = dict(self._build_fields(payload))
        fields.update({
            'draft_content': payload.content,
            'draft_timestamp': payload.timestamp,
            'is_draft': payload.is_draft,
        })

        if self._record_id is not None:
            result = await _resolve(self._client.update(self._record_id, fields))
            if result is None:
                raise DraftSaveError(f"Backend rejected draft update for record {self._record_id}",
                                     details={'record_id': self._record_id})
            logger.debug(f"Draft saved to record {self._record_id}")
            return

        record = await _resolve(self._client.create(fields))
        if not record or record.get(self._id_field) is None:
            raise DraftSaveError("Backend did not create a draft record")
        self._record_id = int(record[self._id_field])
        logger.info(f"Created draft record {self._record_id}")
        if self._on_record_created is not None:
            self._on_record_created(record)


def session_note_fields(client_id: int, coach_id: Optional[int] = None,
                        title: Optional[Callable[[], str]] = None,
                        is_shared: Optional[Callable[[], bool]] = None) -> FieldBuilder:
    """Field builder for session note records.

    ``title`` and ``is_shared`` are read at save time so the draft picks up the
    editor's current values.
    """
    def _build(payload: DraftPayload) -> Dict[str, Any]:
        return {
            'Name': (title() if title else "") or "Session Note",
            'content': payload.content,
            'client_id': client_id,
            'coach_id': coach_id,
            'is_shared': bool(is_shared()) if is_shared else False,
        }
    return _build

#
# End of record_adapter.py
########################################################################################################################
