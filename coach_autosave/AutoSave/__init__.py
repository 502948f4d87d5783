"""
Auto-save engine: decides when in-progress drafts are persisted and how
failures are retried.
"""

from .retry_policy import RetryPolicy, RetryDecision, RetryState
from .scheduler import SaveScheduler
from .controller import AutoSaveController, ContextConfig, DraftPayload
from .lifecycle import LifecycleIntegrator

__all__ = [
    'AutoSaveController',
    'ContextConfig',
    'DraftPayload',
    'LifecycleIntegrator',
    'RetryDecision',
    'RetryPolicy',
    'RetryState',
    'SaveScheduler',
]
