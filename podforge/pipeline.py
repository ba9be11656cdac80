"""
Composition root.

Builds every pipeline component once per process from Settings and hands
the shared clients to each constructor. Any component can be replaced by
passing it in, which is how tests swap in fakes.
"""

from dataclasses import dataclass
from typing import Optional

from .config.settings import Settings
from .db.store import ChangeFeed, PodcastStore
from .db.supabase_store import SupabaseChangeFeed, SupabaseStore, create_supabase_client, realtime_connector
from .gateway.gemini import AIGateway
from .gateway.google_tts import CloudTTSClient
from .generators.writer import Writer
from .realtime.sync_client import PodcastSyncClient
from .research.curator import Curator
from .services.context_gate import ContextGate
from .services.job_queue import JobSubmitter
from .services.orchestrator import JobOrchestrator
from .services.sweeper import StalledPodSweeper
from .storage.assets import AssetStorage, LocalAssetStorage, SupabaseAssetStorage
from .tts.chunked_synthesizer import ChunkedSynthesizer
from .utils.logger import get_logger
from .workers.audio import AudioWorker
from .workers.cover import CoverWorker
from .workers.dispatch import Dispatcher, HttpDispatcher, InlineDispatcher, WorkerName
from .workers.embedding import EmbeddingWorker

logger = get_logger(__name__)


@dataclass
class Pipeline:
    settings: Settings
    store: object
    storage: AssetStorage
    gateway: object
    tts_client: object
    synthesizer: ChunkedSynthesizer
    curator: Curator
    writer: Writer
    audio_worker: AudioWorker
    cover_worker: CoverWorker
    embedding_worker: EmbeddingWorker
    dispatcher: Dispatcher
    orchestrator: JobOrchestrator
    submitter: JobSubmitter
    gate: ContextGate
    sweeper: StalledPodSweeper

    def worker(self, name: WorkerName):
        return {
            WorkerName.AUDIO: self.audio_worker,
            WorkerName.COVER: self.cover_worker,
            WorkerName.EMBEDDING: self.embedding_worker,
        }[WorkerName(name)]

    def sync_client(self, pod_id: int, **kwargs) -> PodcastSyncClient:
        """Realtime client for one pod, reading its rows from the store."""
        kwargs.setdefault("settle_seconds", self.settings.realtime_settle_seconds)
        return PodcastSyncClient.for_store(self.store, pod_id, **kwargs)


def build_pipeline(
    settings: Settings,
    store=None,
    storage: Optional[AssetStorage] = None,
    gateway=None,
    tts_client=None,
    dispatcher: Optional[Dispatcher] = None,
    inline_wait: bool = False,
) -> Pipeline:
    supabase_client = None
    if settings.use_supabase and (store is None or storage is None):
        supabase_client = create_supabase_client(settings.supabase_url, settings.supabase_service_key)

    if store is None:
        if supabase_client is not None:
            feed = SupabaseChangeFeed(realtime_connector(settings.supabase_url, settings.supabase_service_key))
            store = SupabaseStore(supabase_client, feed=feed)
        else:
            store = PodcastStore.from_url(settings.database_url, feed=ChangeFeed())
        logger.info(f"Using {type(store).__name__}")

    if storage is None:
        if supabase_client is not None:
            storage = SupabaseAssetStorage(supabase_client, bucket=settings.storage_bucket)
        else:
            storage = LocalAssetStorage(settings.asset_dir, base_url=settings.asset_base_url)

    gateway = gateway or AIGateway.from_settings(settings)
    tts_client = tts_client or CloudTTSClient.from_settings(settings)

    synthesizer = ChunkedSynthesizer(
        tts_client,
        storage,
        chunk_size=settings.speech_chunk_size,
        bytes_per_second=settings.speech_bytes_per_second,
    )

    audio_worker = AudioWorker(store, synthesizer)
    cover_worker = CoverWorker(store, gateway, storage)
    embedding_worker = EmbeddingWorker(store, gateway)

    if dispatcher is None:
        if settings.dispatch_mode == "http":
            dispatcher = HttpDispatcher(
                settings.worker_base_url,
                auth_token=settings.worker_auth_token,
                timeout=settings.worker_timeout_seconds,
            )
        else:
            dispatcher = InlineDispatcher({
                WorkerName.AUDIO: audio_worker.run,
                WorkerName.COVER: cover_worker.run,
                WorkerName.EMBEDDING: embedding_worker.run,
            }, wait=inline_wait)

    curator = Curator(gateway)
    writer = Writer(gateway, model=settings.writer_model)

    return Pipeline(
        settings=settings,
        store=store,
        storage=storage,
        gateway=gateway,
        tts_client=tts_client,
        synthesizer=synthesizer,
        curator=curator,
        writer=writer,
        audio_worker=audio_worker,
        cover_worker=cover_worker,
        embedding_worker=embedding_worker,
        dispatcher=dispatcher,
        orchestrator=JobOrchestrator(store, curator, writer, dispatcher),
        submitter=JobSubmitter(store),
        gate=ContextGate(store, gateway),
        sweeper=StalledPodSweeper(
            store,
            dispatcher,
            stale_after_seconds=settings.stale_after_seconds,
            max_redispatch_attempts=settings.max_redispatch_attempts,
        ),
    )
