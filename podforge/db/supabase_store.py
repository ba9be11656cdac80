"""
Supabase-backed store.

Same interface as PodcastStore, against the PostgREST tables of the
hosted deployment. Change notifications come from Supabase Realtime
`postgres_changes` on micro_pods.
"""

import asyncio
import json
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from supabase import Client, acreate_client, create_client

from ..errors import InvalidTransitionError, RecordNotFoundError
from ..models import (
    ContentRecord,
    CreationJob,
    DraftStatus,
    GeoDraft,
    JobPayload,
    JobStatus,
    ProcessingStatus,
    ScriptDraft,
    Writer,
    check_job_transition,
)
from ..utils.logger import get_logger
from .store import (
    ChangeCallback,
    ChangeFeed,
    Subscription,
    _column_value,
    check_column_ownership,
    draft_from_record,
    job_from_record,
    pod_from_record,
)

logger = get_logger(__name__)


def create_supabase_client(url: str, service_key: str) -> Client:
    """Create a Supabase client. Constructed once per process by the caller."""
    if not url or not service_key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
    client = create_client(url, service_key)
    logger.info(f"Connected to Supabase: {url}")
    return client


def realtime_connector(url: str, service_key: str) -> Callable[[], Awaitable[Any]]:
    """Async factory for the client SupabaseChangeFeed listens on."""
    async def connect():
        client = await acreate_client(url, service_key)
        logger.info(f"Connected to Supabase Realtime: {url}")
        return client

    return connect


def _extract_record(payload: Any) -> Optional[dict]:
    """Pull the updated row out of a realtime postgres_changes payload."""
    if not isinstance(payload, dict):
        return None
    data = payload.get("data", payload)
    return data.get("record") or data.get("new")


class SupabaseChangeFeed(ChangeFeed):
    """
    Change feed over Supabase Realtime.

    One channel is opened per subscription, filtered to a single pod id.
    Local publishes are ignored; every committed update, including those
    made by this process, arrives through the channel.

    `connect` is an async callable returning a supabase-py AsyncClient (or
    anything with `channel()` and `remove_channel()`). It is awaited once,
    on the event loop that first subscribes, and every channel lives on
    that loop.
    """

    def __init__(self, connect: Callable[[], Awaitable[Any]]):
        super().__init__()
        self._connect = connect
        self._client = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._channels: dict[int, Any] = {}
        self._opening: dict[int, asyncio.Task] = {}
        self._tasks: set[asyncio.Task] = set()

    async def _realtime(self):
        if self._client is None:
            self._client = await self._connect()
        return self._client

    def subscribe(self, pod_id: int, callback: ChangeCallback) -> Subscription:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            raise RuntimeError("Supabase realtime subscriptions need a running event loop") from None
        if self._loop is None:
            self._loop = loop

        subscription = super().subscribe(pod_id, callback)
        key = id(subscription)
        task = self._loop.create_task(self._open(pod_id, key, callback))
        self._opening[key] = task
        self._track(task)
        return subscription

    async def _open(self, pod_id: int, key: int, callback: ChangeCallback):
        def on_change(payload):
            record = _extract_record(payload)
            if record is not None:
                callback(record)

        client = await self._realtime()
        channel = client.channel(f"pod-{pod_id}-{key}")
        channel.on_postgres_changes(
            "UPDATE",
            schema="public",
            table="micro_pods",
            filter=f"id=eq.{pod_id}",
            callback=on_change,
        )
        self._channels[key] = channel
        await channel.subscribe()
        logger.debug(f"Opened realtime channel for pod {pod_id}")

    def publish(self, row: dict):
        pass

    def _remove(self, subscription: Subscription):
        super()._remove(subscription)
        if self._loop is None or self._loop.is_closed():
            logger.warning(f"Realtime loop is gone, channel for pod {subscription.pod_id} not removed")
            return

        coro = self._close(id(subscription))
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._track(self._loop.create_task(coro))
        else:
            asyncio.run_coroutine_threadsafe(coro, self._loop)

    async def _close(self, key: int):
        opening = self._opening.pop(key, None)
        if opening is not None:
            # The channel may still be joining
            await asyncio.gather(opening, return_exceptions=True)
        channel = self._channels.pop(key, None)
        if channel is not None:
            await self._client.remove_channel(channel)

    def _track(self, task: asyncio.Task):
        self._tasks.add(task)
        task.add_done_callback(self._done)

    def _done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Realtime channel operation failed: {task.exception()}")

    async def flush(self):
        """Wait for pending channel joins and removals."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class SupabaseStore:
    """PostgREST implementation of the pipeline store."""

    def __init__(self, client: Client, feed: Optional[ChangeFeed] = None):
        self.client = client
        self.feed = feed or ChangeFeed()

    def _single(self, table: str, record_id: int) -> dict:
        result = self.client.table(table).select("*").eq("id", record_id).limit(1).execute()
        if not result.data:
            raise RecordNotFoundError(f"{table} row {record_id} not found")
        return result.data[0]

    # ============== Jobs ==============

    def create_job(self, user_id: str, payload: JobPayload) -> CreationJob:
        result = self.client.table("podcast_creation_jobs").insert({
            "user_id": user_id,
            "payload": payload.model_dump(mode="json"),
            "status": JobStatus.PENDING.value,
        }).execute()
        job = job_from_record(result.data[0])
        logger.info(f"Created job {job.id} for user {user_id}")
        return job

    def get_job(self, job_id: int) -> CreationJob:
        return job_from_record(self._single("podcast_creation_jobs", job_id))

    def transition_job(
        self,
        job_id: int,
        target: JobStatus,
        error_message: Optional[str] = None,
    ) -> CreationJob:
        current = self.get_job(job_id)
        check_job_transition(current.status, JobStatus(target))

        updates = {"status": JobStatus(target).value, "updated_at": datetime.utcnow().isoformat()}
        if error_message is not None:
            updates["error_message"] = error_message

        # Guard on the status we validated against so a concurrent
        # transition cannot be overwritten.
        result = (
            self.client.table("podcast_creation_jobs")
            .update(updates)
            .eq("id", job_id)
            .eq("status", current.status.value)
            .execute()
        )
        if not result.data:
            raise InvalidTransitionError(f"Job {job_id} changed status concurrently")
        logger.info(f"Job {job_id} -> {updates['status']}")
        return job_from_record(result.data[0])

    def attach_pod_to_job(self, job_id: int, pod_id: int) -> CreationJob:
        current = self.get_job(job_id)
        if current.micro_pod_id is not None and current.micro_pod_id != pod_id:
            raise InvalidTransitionError(f"Job {job_id} already produced pod {current.micro_pod_id}")
        result = (
            self.client.table("podcast_creation_jobs")
            .update({"micro_pod_id": pod_id})
            .eq("id", job_id)
            .execute()
        )
        return job_from_record(result.data[0])

    # ============== Pods ==============

    def create_pod(
        self,
        user_id: str,
        draft: ScriptDraft,
        parent_id: Optional[int] = None,
        creation_data: Optional[dict] = None,
    ) -> ContentRecord:
        result = self.client.table("micro_pods").insert({
            "user_id": user_id,
            "title": draft.title,
            "script_text": json.dumps(
                {"script_body": draft.script_body, "script_plain": draft.script_plain},
                ensure_ascii=False,
            ),
            "status": "pending_approval",
            "processing_status": ProcessingStatus.PROCESSING.value,
            "audio_ready": False,
            "image_ready": False,
            "sources": [s.model_dump() for s in draft.sources],
            "parent_id": parent_id,
            "creation_data": creation_data or {},
            "redispatch_count": 0,
        }).execute()
        pod = pod_from_record(result.data[0])
        logger.info(f"Created pod {pod.id}: {pod.title}")
        return pod

    def get_pod(self, pod_id: int) -> ContentRecord:
        return pod_from_record(self._single("micro_pods", pod_id))

    def update_pod_fields(self, pod_id: int, fields: dict, owner: Writer) -> ContentRecord:
        check_column_ownership(fields, owner)
        updates = {key: _column_value(key, value) for key, value in fields.items()}
        updates["updated_at"] = datetime.utcnow().isoformat()

        result = self.client.table("micro_pods").update(updates).eq("id", pod_id).execute()
        if not result.data:
            raise RecordNotFoundError(f"Pod {pod_id} not found")
        pod = pod_from_record(result.data[0])
        self.feed.publish(pod.model_dump(mode="json"))
        return pod

    def try_complete_pod(self, pod_id: int) -> bool:
        result = (
            self.client.table("micro_pods")
            .update({
                "processing_status": ProcessingStatus.COMPLETED.value,
                "updated_at": datetime.utcnow().isoformat(),
            })
            .eq("id", pod_id)
            .eq("audio_ready", True)
            .eq("image_ready", True)
            .neq("processing_status", ProcessingStatus.COMPLETED.value)
            .execute()
        )
        if result.data:
            pod = pod_from_record(result.data[0])
            logger.info(f"Pod {pod_id} completed")
            self.feed.publish(pod.model_dump(mode="json"))
            return True
        return self.get_pod(pod_id).processing_status == ProcessingStatus.COMPLETED

    def mark_pod_failed(self, pod_id: int, owner: Writer = Writer.SWEEPER) -> ContentRecord:
        return self.update_pod_fields(
            pod_id, {"processing_status": ProcessingStatus.FAILED}, owner=owner
        )

    def list_stalled_pods(self, updated_before: datetime) -> list[ContentRecord]:
        result = (
            self.client.table("micro_pods")
            .select("*")
            .eq("processing_status", ProcessingStatus.PROCESSING.value)
            .lt("updated_at", updated_before.isoformat())
            .order("updated_at")
            .execute()
        )
        return [pod_from_record(r) for r in result.data or []]

    # ============== Embeddings ==============

    def replace_embedding(self, pod_id: int, vector: list[float]):
        self.client.table("podcast_embeddings").delete().eq("podcast_id", pod_id).execute()
        self.client.table("podcast_embeddings").insert({
            "podcast_id": pod_id,
            "embedding": list(vector),
        }).execute()
        logger.info(f"Stored {len(vector)}-dim embedding for pod {pod_id}")

    def get_embedding(self, pod_id: int) -> Optional[list[float]]:
        result = (
            self.client.table("podcast_embeddings")
            .select("embedding")
            .eq("podcast_id", pod_id)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        embedding = result.data[0]["embedding"]
        # pgvector columns come back as their text form
        if isinstance(embedding, str):
            embedding = json.loads(embedding)
        return list(embedding)

    # ============== Geo staging ==============

    def create_draft(self, user_id: str, place_id: str, weather_snapshot: dict) -> GeoDraft:
        result = self.client.table("geo_drafts_staging").insert({
            "user_id": user_id,
            "detected_place_id": place_id,
            "weather_snapshot": weather_snapshot or {},
            "status": DraftStatus.SCANNING.value,
        }).execute()
        return draft_from_record(result.data[0])

    def get_draft(self, draft_id: int) -> GeoDraft:
        return draft_from_record(self._single("geo_drafts_staging", draft_id))

    def update_draft(self, draft_id: int, **fields) -> GeoDraft:
        updates = {key: _column_value(key, value) for key, value in fields.items()}
        result = self.client.table("geo_drafts_staging").update(updates).eq("id", draft_id).execute()
        if not result.data:
            raise RecordNotFoundError(f"Draft {draft_id} not found")
        return draft_from_record(result.data[0])
