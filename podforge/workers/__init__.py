"""Fan-out asset workers and their dispatchers."""

from .audio import AudioWorker
from .cover import CoverWorker
from .embedding import EmbeddingWorker
from .dispatch import (
    ALL_WORKERS,
    Dispatcher,
    HttpDispatcher,
    InlineDispatcher,
    WorkerName,
    WorkerOutcome,
    settle_all,
)

__all__ = [
    "ALL_WORKERS",
    "AudioWorker",
    "CoverWorker",
    "Dispatcher",
    "EmbeddingWorker",
    "HttpDispatcher",
    "InlineDispatcher",
    "WorkerName",
    "WorkerOutcome",
    "settle_all",
]
