"""
ledgerkit.utils
---------------

Engine-level helpers: cancellation scopes, tasks, deferred pipelines,
sequence helpers and async retry.
"""

from __future__ import annotations

from .common import chunk, zip_map
from .disposable import AbortController, AbortSignal, CancellationScope, Disposable
from .lazy import LazyPipe
from .retry import RetryError, aretry_call, backoff_delay
from .task import Task, TaskStatus

__all__ = [
    "chunk",
    "zip_map",
    "AbortController",
    "AbortSignal",
    "CancellationScope",
    "Disposable",
    "LazyPipe",
    "RetryError",
    "aretry_call",
    "backoff_delay",
    "Task",
    "TaskStatus",
]
