"""
coach_autosave - background draft saving for a coaching practice client

Watches free-text editing surfaces (session notes, message drafts, sleep diary
entries) and persists in-progress work without explicit user action: debounced
and periodic saves, bounded exponential-backoff retries, at most one save in
flight per surface, and a final flush when a surface is hidden or closed.
"""

__version__ = "0.1.0"
