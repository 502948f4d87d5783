from .draft_store import DraftStore
from .record_adapter import RecordClient, RecordDraftAdapter, session_note_fields

__all__ = ['DraftStore', 'RecordClient', 'RecordDraftAdapter', 'session_note_fields']
