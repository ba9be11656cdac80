"""
Repository for jobs, pods, embeddings and geo staging records.

Every component receives a store instance through its constructor. The
store enforces the two write-side rules of the pipeline:

- job status changes go through the job state machine
- pod columns are written only by the actor that owns them
"""

import json
import threading
from datetime import datetime
from typing import Any, Callable, Optional

from ..errors import ColumnOwnershipError, InvalidTransitionError, RecordNotFoundError
from ..models import (
    COLUMN_OWNERS,
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
from .tables import CreationJobRow, GeoDraftRow, MicroPodRow, PodEmbeddingRow, get_session_factory, init_db

logger = get_logger(__name__)

ChangeCallback = Callable[[dict], Any]


class Subscription:
    """Handle returned by ChangeFeed.subscribe."""

    def __init__(self, feed: "ChangeFeed", pod_id: int, callback: ChangeCallback):
        self.feed = feed
        self.pod_id = pod_id
        self.callback = callback
        self.active = True

    def unsubscribe(self):
        if self.active:
            self.feed._remove(self)
            self.active = False


class ChangeFeed:
    """
    In-process change notifications for pod rows.

    Subscribers register for a single pod id and receive the full updated
    row (as a JSON-compatible dict) after every committed update.
    """

    def __init__(self):
        self._subscribers: dict[int, list[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, pod_id: int, callback: ChangeCallback) -> Subscription:
        subscription = Subscription(self, pod_id, callback)
        with self._lock:
            self._subscribers.setdefault(pod_id, []).append(subscription)
        return subscription

    def _remove(self, subscription: Subscription):
        with self._lock:
            subs = self._subscribers.get(subscription.pod_id, [])
            if subscription in subs:
                subs.remove(subscription)
            if not subs:
                self._subscribers.pop(subscription.pod_id, None)

    def subscriber_count(self, pod_id: int) -> int:
        with self._lock:
            return len(self._subscribers.get(pod_id, []))

    def publish(self, row: dict):
        with self._lock:
            subs = list(self._subscribers.get(row["id"], []))
        for sub in subs:
            try:
                sub.callback(row)
            except Exception as e:
                logger.error(f"Change subscriber for pod {row['id']} failed: {e}")


def row_to_dict(row) -> dict:
    return {c.name: getattr(row, c.name) for c in row.__table__.columns}


def job_from_record(record: dict) -> CreationJob:
    return CreationJob(
        id=record["id"],
        user_id=record["user_id"],
        payload=JobPayload.model_validate(record.get("payload") or {}),
        status=JobStatus(record["status"]),
        micro_pod_id=record.get("micro_pod_id"),
        error_message=record.get("error_message"),
        created_at=record.get("created_at"),
        updated_at=record.get("updated_at"),
    )


def pod_from_record(record: dict) -> ContentRecord:
    """Build a ContentRecord from a micro_pods row (SQLAlchemy or PostgREST)."""
    script_text = record.get("script_text") or {"script_body": "", "script_plain": ""}
    if isinstance(script_text, str):
        script_text = json.loads(script_text)
    return ContentRecord.model_validate({
        **record,
        "script_text": script_text,
        "audio_ready": bool(record.get("audio_ready")),
        "image_ready": bool(record.get("image_ready")),
        "duration_seconds": record.get("duration_seconds") or 0,
        "sources": record.get("sources") or [],
        "creation_data": record.get("creation_data") or {},
        "redispatch_count": record.get("redispatch_count") or 0,
    })


def draft_from_record(record: dict) -> GeoDraft:
    return GeoDraft.model_validate({
        **record,
        "weather_snapshot": record.get("weather_snapshot") or {},
    })


def _column_value(key: str, value: Any) -> Any:
    """Convert model values to what the table column stores."""
    if key == "script_text":
        if hasattr(value, "model_dump"):
            value = value.model_dump()
        return json.dumps(value, ensure_ascii=False)
    if key == "sources":
        return [s.model_dump() if hasattr(s, "model_dump") else s for s in value]
    if hasattr(value, "value"):
        return value.value
    return value


def check_column_ownership(fields: dict, owner: Writer):
    """Raise ColumnOwnershipError if owner writes a column it does not own."""
    owned = COLUMN_OWNERS[Writer(owner)]
    foreign = set(fields) - owned
    if foreign:
        raise ColumnOwnershipError(
            f"{Writer(owner).value} may not write {', '.join(sorted(foreign))}"
        )


class PodcastStore:
    """SQLAlchemy-backed store (SQLite locally)."""

    def __init__(self, session_factory, feed: Optional[ChangeFeed] = None):
        self._session_factory = session_factory
        self.feed = feed or ChangeFeed()

    @classmethod
    def from_url(cls, database_url: str, feed: Optional[ChangeFeed] = None) -> "PodcastStore":
        engine = init_db(database_url)
        return cls(get_session_factory(engine), feed=feed)

    # ============== Jobs ==============

    def create_job(self, user_id: str, payload: JobPayload) -> CreationJob:
        with self._session_factory() as db:
            row = CreationJobRow(
                user_id=user_id,
                payload=payload.model_dump(mode="json"),
                status=JobStatus.PENDING.value,
            )
            db.add(row)
            db.commit()
            logger.info(f"Created job {row.id} for user {user_id}")
            return job_from_record(row_to_dict(row))

    def get_job(self, job_id: int) -> CreationJob:
        with self._session_factory() as db:
            row = db.query(CreationJobRow).filter_by(id=job_id).first()
            if row is None:
                raise RecordNotFoundError(f"Job {job_id} not found")
            return job_from_record(row_to_dict(row))

    def transition_job(
        self,
        job_id: int,
        target: JobStatus,
        error_message: Optional[str] = None,
    ) -> CreationJob:
        with self._session_factory() as db:
            row = db.query(CreationJobRow).filter_by(id=job_id).with_for_update().first()
            if row is None:
                raise RecordNotFoundError(f"Job {job_id} not found")

            check_job_transition(JobStatus(row.status), JobStatus(target))

            row.status = JobStatus(target).value
            if error_message is not None:
                row.error_message = error_message
            db.commit()
            logger.info(f"Job {job_id} -> {row.status}")
            return job_from_record(row_to_dict(row))

    def attach_pod_to_job(self, job_id: int, pod_id: int) -> CreationJob:
        with self._session_factory() as db:
            row = db.query(CreationJobRow).filter_by(id=job_id).first()
            if row is None:
                raise RecordNotFoundError(f"Job {job_id} not found")
            if row.micro_pod_id is not None and row.micro_pod_id != pod_id:
                raise InvalidTransitionError(
                    f"Job {job_id} already produced pod {row.micro_pod_id}"
                )
            row.micro_pod_id = pod_id
            db.commit()
            return job_from_record(row_to_dict(row))

    # ============== Pods ==============

    def create_pod(
        self,
        user_id: str,
        draft: ScriptDraft,
        parent_id: Optional[int] = None,
        creation_data: Optional[dict] = None,
    ) -> ContentRecord:
        with self._session_factory() as db:
            row = MicroPodRow(
                user_id=user_id,
                title=draft.title,
                script_text=json.dumps(
                    {"script_body": draft.script_body, "script_plain": draft.script_plain},
                    ensure_ascii=False,
                ),
                status="pending_approval",
                processing_status=ProcessingStatus.PROCESSING.value,
                audio_ready=False,
                image_ready=False,
                sources=[s.model_dump() for s in draft.sources],
                parent_id=parent_id,
                creation_data=creation_data or {},
                redispatch_count=0,
            )
            db.add(row)
            db.commit()
            pod = pod_from_record(row_to_dict(row))

        logger.info(f"Created pod {pod.id}: {pod.title}")
        return pod

    def get_pod(self, pod_id: int) -> ContentRecord:
        with self._session_factory() as db:
            row = db.query(MicroPodRow).filter_by(id=pod_id).first()
            if row is None:
                raise RecordNotFoundError(f"Pod {pod_id} not found")
            return pod_from_record(row_to_dict(row))

    def update_pod_fields(self, pod_id: int, fields: dict, owner: Writer) -> ContentRecord:
        """Write a subset of columns owned by `owner` and publish the new row."""
        check_column_ownership(fields, owner)

        with self._session_factory() as db:
            row = db.query(MicroPodRow).filter_by(id=pod_id).first()
            if row is None:
                raise RecordNotFoundError(f"Pod {pod_id} not found")
            for key, value in fields.items():
                setattr(row, key, _column_value(key, value))
            row.updated_at = datetime.utcnow()
            db.commit()
            pod = pod_from_record(row_to_dict(row))

        self.feed.publish(pod.model_dump(mode="json"))
        return pod

    def try_complete_pod(self, pod_id: int) -> bool:
        """
        Set processing_status to completed if both readiness flags are true.

        Conditional on the flags in the same UPDATE, so two workers racing
        here both write the same value. Returns True if the pod is completed.
        """
        with self._session_factory() as db:
            updated = (
                db.query(MicroPodRow)
                .filter(
                    MicroPodRow.id == pod_id,
                    MicroPodRow.audio_ready.is_(True),
                    MicroPodRow.image_ready.is_(True),
                    MicroPodRow.processing_status != ProcessingStatus.COMPLETED.value,
                )
                .update(
                    {
                        "processing_status": ProcessingStatus.COMPLETED.value,
                        "updated_at": datetime.utcnow(),
                    },
                    synchronize_session=False,
                )
            )
            db.commit()

            row = db.query(MicroPodRow).filter_by(id=pod_id).first()
            if row is None:
                raise RecordNotFoundError(f"Pod {pod_id} not found")
            pod = pod_from_record(row_to_dict(row))

        if updated:
            logger.info(f"Pod {pod_id} completed")
            self.feed.publish(pod.model_dump(mode="json"))
        return pod.processing_status == ProcessingStatus.COMPLETED

    def mark_pod_failed(self, pod_id: int, owner: Writer = Writer.SWEEPER) -> ContentRecord:
        return self.update_pod_fields(
            pod_id, {"processing_status": ProcessingStatus.FAILED}, owner=owner
        )

    def list_stalled_pods(self, updated_before: datetime) -> list[ContentRecord]:
        with self._session_factory() as db:
            rows = (
                db.query(MicroPodRow)
                .filter(
                    MicroPodRow.processing_status == ProcessingStatus.PROCESSING.value,
                    MicroPodRow.updated_at < updated_before,
                )
                .order_by(MicroPodRow.updated_at)
                .all()
            )
            return [pod_from_record(row_to_dict(r)) for r in rows]

    # ============== Embeddings ==============

    def replace_embedding(self, pod_id: int, vector: list[float]):
        with self._session_factory() as db:
            db.query(PodEmbeddingRow).filter_by(podcast_id=pod_id).delete()
            db.add(PodEmbeddingRow(podcast_id=pod_id, embedding=list(vector)))
            db.commit()
        logger.info(f"Stored {len(vector)}-dim embedding for pod {pod_id}")

    def get_embedding(self, pod_id: int) -> Optional[list[float]]:
        with self._session_factory() as db:
            row = db.query(PodEmbeddingRow).filter_by(podcast_id=pod_id).first()
            return list(row.embedding) if row else None

    # ============== Geo staging ==============

    def create_draft(self, user_id: str, place_id: str, weather_snapshot: dict) -> GeoDraft:
        with self._session_factory() as db:
            row = GeoDraftRow(
                user_id=user_id,
                detected_place_id=place_id,
                weather_snapshot=weather_snapshot or {},
                status=DraftStatus.SCANNING.value,
            )
            db.add(row)
            db.commit()
            return draft_from_record(row_to_dict(row))

    def get_draft(self, draft_id: int) -> GeoDraft:
        with self._session_factory() as db:
            row = db.query(GeoDraftRow).filter_by(id=draft_id).first()
            if row is None:
                raise RecordNotFoundError(f"Draft {draft_id} not found")
            return draft_from_record(row_to_dict(row))

    def update_draft(self, draft_id: int, **fields) -> GeoDraft:
        with self._session_factory() as db:
            row = db.query(GeoDraftRow).filter_by(id=draft_id).first()
            if row is None:
                raise RecordNotFoundError(f"Draft {draft_id} not found")
            for key, value in fields.items():
                if not hasattr(row, key):
                    raise AttributeError(f"geo_drafts_staging has no column {key}")
                setattr(row, key, _column_value(key, value))
            db.commit()
            return draft_from_record(row_to_dict(row))
