"""
Realtime sync client for a single pod.

Keeps a local copy of the pod row up to date from change notifications:

- nothing is opened for a pod that is already `completed`
- subscribing waits a short settling delay, and only one subscribe can be
  in flight at a time
- each event is merged into the local row; audio and image readiness are
  tracked independently
- the first `completed` event triggers one full refetch, because some
  fields are only computed on read
- right after subscribing the row is refetched once, so a pod that
  finished during the settling delay is still seen as completed
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

from ..models import ContentRecord, ProcessingStatus
from ..utils.logger import get_logger

logger = get_logger(__name__)

Refetch = Callable[[int], Union[dict, Awaitable[dict]]]


class PodcastSyncClient:
    def __init__(
        self,
        feed,
        initial: Union[dict, ContentRecord],
        refetch: Optional[Refetch] = None,
        settle_seconds: float = 0.5,
        on_change: Optional[Callable[["PodcastSyncClient"], Any]] = None,
    ):
        if isinstance(initial, ContentRecord):
            initial = initial.model_dump(mode="json")

        self.feed = feed
        self.podcast: dict = dict(initial)
        self.pod_id: int = self.podcast["id"]
        self.settle_seconds = settle_seconds
        self._refetch = refetch
        self._on_change = on_change

        self.audio_ready = bool(self.podcast.get("audio_ready"))
        self.image_ready = bool(self.podcast.get("image_ready"))
        self.processing_status = self.podcast.get("processing_status", ProcessingStatus.PENDING.value)

        self.refetch_count = 0
        self._subscription = None
        self._subscribing = False
        self._mounted = False
        self._refetch_scheduled = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending: set = set()

    @classmethod
    def for_store(cls, store, pod_id: int, **kwargs) -> "PodcastSyncClient":
        """Client whose initial row and refetch both read from the store."""
        def refetch(pid: int) -> dict:
            return store.get_pod(pid).model_dump(mode="json")

        return cls(store.feed, refetch(pod_id), refetch=refetch, **kwargs)

    # ============== State ==============

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None

    @property
    def is_failed(self) -> bool:
        return self.processing_status == ProcessingStatus.FAILED.value

    @property
    def is_completed(self) -> bool:
        return self.processing_status == ProcessingStatus.COMPLETED.value

    @property
    def is_constructing(self) -> bool:
        return self.processing_status in (ProcessingStatus.PENDING.value, ProcessingStatus.PROCESSING.value)

    def apply(self, row: dict):
        """Merge changed fields into the local row."""
        if "audio_ready" in row and row["audio_ready"] is not None:
            self.audio_ready = bool(row["audio_ready"])
        if "image_ready" in row and row["image_ready"] is not None:
            self.image_ready = bool(row["image_ready"])
        if row.get("processing_status") is not None:
            self.processing_status = row["processing_status"]

        self.podcast = {**self.podcast, **row}

        if self._on_change is not None:
            self._on_change(self)

    # ============== Lifecycle ==============

    async def mount(self) -> bool:
        """Open the subscription. Returns True if one is open afterwards."""
        self._mounted = True
        self._loop = asyncio.get_running_loop()

        if self.is_completed:
            logger.debug(f"Pod {self.pod_id} already completed, not subscribing")
            return False

        if self._subscribing or self._subscription is not None:
            return self._subscription is not None

        self._subscribing = True
        try:
            # Give the transport time to authenticate before subscribing
            await asyncio.sleep(self.settle_seconds)
            if not self._mounted:
                return False
            self._subscription = self.feed.subscribe(self.pod_id, self._handle_change)
            logger.info(f"Sync active for pod {self.pod_id}")
        finally:
            self._subscribing = False

        # Updates made during the settling delay never reach the feed
        if self._refetch is not None and not self._refetch_scheduled:
            await self.refetch()
            if self.is_completed:
                self._refetch_scheduled = True
                self._close_subscription()
                return False

        return True

    def unmount(self):
        self._mounted = False
        self._close_subscription()

    def _close_subscription(self):
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
            logger.info(f"Sync closed for pod {self.pod_id}")

    def _handle_change(self, row: dict):
        self.apply(row)

        if self.is_completed and not self._refetch_scheduled and self._refetch is not None:
            self._refetch_scheduled = True
            self._schedule(self.refetch())

    def _schedule(self, coro):
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is not None and running is self._loop:
            task = running.create_task(coro)
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        elif self._loop is not None:
            asyncio.run_coroutine_threadsafe(coro, self._loop)
        else:
            coro.close()
            logger.warning(f"No event loop to refetch pod {self.pod_id}")

    async def refetch(self) -> dict:
        """Replace local state with the authoritative row."""
        result = self._refetch(self.pod_id)
        if inspect.isawaitable(result):
            result = await result
        self.refetch_count += 1
        self.apply(result)
        logger.info(f"Refetched pod {self.pod_id} ({self.processing_status})")
        return result

    async def flush(self):
        """Wait for scheduled refetches to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
