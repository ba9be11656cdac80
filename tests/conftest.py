"""
Pytest configuration and fixtures for PodForge tests.
"""

import json
import os

import pytest

# Set test environment
os.environ['TESTING'] = '1'
os.environ.setdefault('GEMINI_API_KEY', 'test-api-key-' + 'x' * 30)


# ============================================================
# Fakes for external services
# ============================================================

SCRIPT_PLAIN = (
    "Bajo la ciudad corre otra ciudad. El primer tren del metro salió una mañana "
    "de septiembre y cambió para siempre la forma de moverse de millones de personas."
)

DEFAULT_DOSSIER = {
    "main_thesis": "The metro reshaped how the city grew",
    "key_facts": [
        "The first line opened in 1969",
        "Stations were decorated with archaeological finds",
    ],
    "sources": [
        {"title": "Metro history", "url": "https://example.org/metro", "snippet": "Opened in 1969"},
        {"title": "Urban archive", "url": "https://example.org/archive"},
        {"title": "City atlas", "url": "https://example.org/atlas"},
    ],
}

DEFAULT_SCRIPT = {
    "title": "La ciudad bajo la ciudad",
    "script_body": f"<p>{SCRIPT_PLAIN}</p>",
    "script_plain": SCRIPT_PLAIN,
    "sources": [],
}


class FakeGateway:
    """
    Stands in for AIGateway.

    Curator and writer prompts are told apart by their first line; each
    response can be replaced per test, and setting an Exception makes
    that call raise it.
    """

    def __init__(self, dossier=None, script=None, classification=None, embedding=None):
        self.dossier = DEFAULT_DOSSIER if dossier is None else dossier
        self.fallback_dossier = None
        self.script = DEFAULT_SCRIPT if script is None else script
        self.classification = classification or {
            "verdict": "APPROVED",
            "classification": "history",
            "reason": "The place has a rich story",
        }
        self.embedding = embedding or [0.1, 0.2, 0.3]
        self.search_error = None
        self.json_error = None
        self.image_error = None
        self.image_bytes = b"\x89PNG fake cover"
        self.calls = []

    @staticmethod
    def _respond(value):
        if isinstance(value, Exception):
            raise value
        if isinstance(value, str):
            return value
        return json.dumps(value, ensure_ascii=False)

    async def generate_text(self, prompt, use_search=False, force_json=False, temperature=0.7, model=None):
        from podforge.errors import GatewayModeError

        self.calls.append({
            "kind": "text",
            "prompt": prompt,
            "use_search": use_search,
            "force_json": force_json,
            "model": model,
        })
        if use_search and force_json:
            raise GatewayModeError("Search grounding cannot be combined with forced JSON output")

        if "research curator" in prompt:
            if use_search:
                if self.search_error is not None:
                    raise self.search_error
                return "Here is what I found:\n```json\n" + self._respond(self.dossier) + "\n```"
            if self.json_error is not None:
                raise self.json_error
            return self._respond(self.fallback_dossier or self.dossier)

        return self._respond(self.script)

    async def generate_multimodal(self, prompt, image_base64=None, force_json=True, temperature=0.4):
        self.calls.append({"kind": "multimodal", "prompt": prompt, "force_json": force_json})
        return self._respond(self.classification)

    async def embed_text(self, text):
        self.calls.append({"kind": "embed", "text": text})
        return list(self.embedding)

    async def generate_image(self, prompt, aspect_ratio="1:1"):
        self.calls.append({"kind": "image", "prompt": prompt})
        if self.image_error is not None:
            raise self.image_error
        return self.image_bytes


class FakeTTS:
    """Returns 40 bytes of audio per input character."""

    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    async def synthesize(self, text_chunk, voice_id="es-US-Neural2-B", speaking_rate=1.0):
        from podforge.errors import GatewayError

        self.calls.append((text_chunk, voice_id, speaking_rate))
        if self.fail:
            raise GatewayError("TTS request failed: 503 - unavailable")
        return b"\xff" * (len(text_chunk) * 40)


class RecordingDispatcher:
    """Records fan-out requests without running any worker."""

    def __init__(self):
        self.calls = []

    async def dispatch_all(self, trigger, workers=None):
        from podforge.workers.dispatch import ALL_WORKERS, WorkerOutcome

        workers = tuple(workers or ALL_WORKERS)
        self.calls.append((trigger, workers))
        return [WorkerOutcome(worker=w, status="dispatched") for w in workers]


# ============================================================
# Configuration and persistence fixtures
# ============================================================

@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway SQLite file and asset directory."""
    from podforge.config.settings import Settings

    return Settings(
        _env_file=None,
        gemini_api_key="test-api-key-" + "x" * 30,
        google_tts_api_key="test-tts-key",
        supabase_url=None,
        supabase_service_key=None,
        database_url=f"sqlite:///{tmp_path / 'podforge.sqlite'}",
        asset_dir=str(tmp_path / "assets"),
        dispatch_mode="inline",
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture
def store(settings):
    """A fresh SQLite-backed store for each test."""
    from podforge.db.store import ChangeFeed, PodcastStore

    return PodcastStore.from_url(settings.database_url, feed=ChangeFeed())


@pytest.fixture
def storage(settings):
    from podforge.storage.assets import LocalAssetStorage

    return LocalAssetStorage(settings.asset_dir)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def tts():
    return FakeTTS()


@pytest.fixture
def pipeline(settings, store, storage, gateway, tts):
    """Fully wired pipeline over fakes; workers run before dispatch returns."""
    from podforge.pipeline import build_pipeline

    return build_pipeline(
        settings,
        store=store,
        storage=storage,
        gateway=gateway,
        tts_client=tts,
        inline_wait=True,
    )


# ============================================================
# Sample data fixtures
# ============================================================

@pytest.fixture
def metro_payload():
    """Payload for a 'history of the metro' learn job."""
    from podforge.models import JobPayload

    return JobPayload(
        purpose="learn",
        style="solo",
        inputs={"topic": "history of the metro"},
        duration="3-5 min",
        depth="standard",
    )


@pytest.fixture
def sample_job(store, metro_payload):
    return store.create_job("user-1", metro_payload)


@pytest.fixture
def sample_pod(store, sample_job):
    """A pod in `processing` linked to sample_job, with no assets yet."""
    from podforge.models import ScriptDraft

    draft = ScriptDraft.from_model_output(DEFAULT_SCRIPT)
    pod = store.create_pod(
        "user-1",
        draft,
        creation_data={"job_id": sample_job.id, "trace_id": "trace-sample"},
    )
    store.attach_pod_to_job(sample_job.id, pod.id)
    return pod
