"""
Unit tests for the Supabase store against a recording PostgREST fake.
"""

from unittest.mock import MagicMock

import pytest


class FakeQuery:
    """Records the builder chain and returns canned rows on execute()."""

    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.ops = []

    def __getattr__(self, name):
        def op(*args, **kwargs):
            self.ops.append((name, args, kwargs))
            return self
        return op

    def execute(self):
        self.client.executed.append((self.table, self.ops))
        return MagicMock(data=self.client.responses.pop(0) if self.client.responses else [])


class FakeSupabase:
    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.executed = []

    def table(self, name):
        return FakeQuery(self, name)


def pod_row(**overrides):
    row = {
        "id": 5,
        "user_id": "user-1",
        "title": "Metro",
        "script_text": '{"script_body": "<p>Hola</p>", "script_plain": "Hola"}',
        "status": "pending_approval",
        "processing_status": "processing",
        "audio_ready": True,
        "image_ready": True,
        "sources": None,
        "creation_data": None,
    }
    row.update(overrides)
    return row


@pytest.mark.unit
class TestSupabaseStore:
    """Tests for SupabaseStore query construction."""

    def test_update_checks_ownership_before_any_request(self):
        from podforge.db.supabase_store import SupabaseStore
        from podforge.errors import ColumnOwnershipError
        from podforge.models import Writer

        client = FakeSupabase()
        with pytest.raises(ColumnOwnershipError):
            SupabaseStore(client).update_pod_fields(5, {"title": "x"}, owner=Writer.AUDIO)
        assert client.executed == []

    def test_try_complete_is_a_guarded_update(self):
        from podforge.db.supabase_store import SupabaseStore

        client = FakeSupabase(responses=[[pod_row(processing_status="completed")]])
        store = SupabaseStore(client)
        events = []
        store.feed.subscribe(5, events.append)

        assert store.try_complete_pod(5) is True

        table, ops = client.executed[0]
        assert table == "micro_pods"
        assert ops[0][0] == "update"
        assert ops[0][1][0]["processing_status"] == "completed"
        filters = [(name, args) for name, args, _ in ops[1:]]
        assert ("eq", ("id", 5)) in filters
        assert ("eq", ("audio_ready", True)) in filters
        assert ("eq", ("image_ready", True)) in filters
        assert ("neq", ("processing_status", "completed")) in filters
        assert len(events) == 1

    def test_try_complete_when_flags_missing(self):
        from podforge.db.supabase_store import SupabaseStore

        client = FakeSupabase(responses=[[], [pod_row(image_ready=False)]])
        assert SupabaseStore(client).try_complete_pod(5) is False

    def test_transition_guards_on_current_status(self):
        from podforge.db.supabase_store import SupabaseStore
        from podforge.errors import InvalidTransitionError
        from podforge.models import JobStatus

        job_row = {"id": 1, "user_id": "user-1", "payload": {}, "status": "pending"}
        client = FakeSupabase(responses=[[job_row], []])

        with pytest.raises(InvalidTransitionError, match="concurrently"):
            SupabaseStore(client).transition_job(1, JobStatus.PROCESSING)

        _, ops = client.executed[1]
        assert ("eq", ("status", "pending"), {}) in ops

    def test_terminal_job_rejected_without_update(self):
        from podforge.db.supabase_store import SupabaseStore
        from podforge.errors import InvalidTransitionError
        from podforge.models import JobStatus

        job_row = {"id": 1, "user_id": "user-1", "payload": {}, "status": "completed"}
        client = FakeSupabase(responses=[[job_row]])

        with pytest.raises(InvalidTransitionError):
            SupabaseStore(client).transition_job(1, JobStatus.FAILED)
        assert len(client.executed) == 1

    def test_get_pod_parses_script_text(self):
        from podforge.db.supabase_store import SupabaseStore

        pod = SupabaseStore(FakeSupabase(responses=[[pod_row()]])).get_pod(5)
        assert pod.script_text.script_plain == "Hola"
        assert pod.sources == []
        assert pod.creation_data == {}

    def test_get_embedding_parses_text_vector(self):
        from podforge.db.supabase_store import SupabaseStore

        store = SupabaseStore(FakeSupabase(responses=[[{"embedding": "[0.5, 0.25]"}]]))
        assert store.get_embedding(5) == [0.5, 0.25]


@pytest.mark.unit
class TestRealtimePayload:

    @pytest.mark.parametrize("payload", [
        {"data": {"record": {"id": 5}}},
        {"new": {"id": 5}},
        {"data": {"new": {"id": 5}}},
    ])
    def test_extract_record(self, payload):
        from podforge.db.supabase_store import _extract_record

        assert _extract_record(payload) == {"id": 5}

    def test_extract_record_ignores_other_payloads(self):
        from podforge.db.supabase_store import _extract_record

        assert _extract_record("heartbeat") is None


class FakeChannel:
    def __init__(self, name):
        self.name = name
        self.handlers = []
        self.subscribed = False

    def on_postgres_changes(self, event, **kwargs):
        self.handlers.append((event, kwargs))
        return self

    async def subscribe(self):
        self.subscribed = True
        return self

    def deliver(self, payload):
        for _, kwargs in self.handlers:
            kwargs["callback"](payload)


class FakeRealtime:
    """Records channels opened and removed, like supabase-py's AsyncClient."""

    def __init__(self):
        self.channels = []
        self.removed = []

    def channel(self, name):
        channel = FakeChannel(name)
        self.channels.append(channel)
        return channel

    async def remove_channel(self, channel):
        self.removed.append(channel)


@pytest.mark.unit
class TestSupabaseChangeFeed:
    """Tests for SupabaseChangeFeed against a recording realtime client."""

    @pytest.mark.asyncio
    async def test_subscription_opens_filtered_channel(self):
        from unittest.mock import AsyncMock

        from podforge.db.supabase_store import SupabaseChangeFeed

        realtime = FakeRealtime()
        connect = AsyncMock(return_value=realtime)
        feed = SupabaseChangeFeed(connect)
        events = []

        subscription = feed.subscribe(5, events.append)
        await feed.flush()

        assert len(realtime.channels) == 1
        channel = realtime.channels[0]
        assert channel.name.startswith("pod-5-")
        assert channel.subscribed is True
        event, kwargs = channel.handlers[0]
        assert event == "UPDATE"
        assert kwargs["filter"] == "id=eq.5"
        assert kwargs["table"] == "micro_pods"
        assert kwargs["schema"] == "public"

        channel.deliver({"data": {"record": {"id": 5, "audio_ready": True}}})
        channel.deliver("heartbeat")
        assert events == [{"id": 5, "audio_ready": True}]

        subscription.unsubscribe()
        await feed.flush()
        assert realtime.removed == [channel]
        assert feed.subscriber_count(5) == 0

    @pytest.mark.asyncio
    async def test_connects_once_for_many_subscriptions(self):
        from unittest.mock import AsyncMock

        from podforge.db.supabase_store import SupabaseChangeFeed

        realtime = FakeRealtime()
        connect = AsyncMock(return_value=realtime)
        feed = SupabaseChangeFeed(connect)

        feed.subscribe(5, lambda row: None)
        await feed.flush()
        feed.subscribe(6, lambda row: None)
        await feed.flush()

        connect.assert_awaited_once()
        assert [c.handlers[0][1]["filter"] for c in realtime.channels] == ["id=eq.5", "id=eq.6"]

    @pytest.mark.asyncio
    async def test_unsubscribe_before_join_still_removes_channel(self):
        from unittest.mock import AsyncMock

        from podforge.db.supabase_store import SupabaseChangeFeed

        realtime = FakeRealtime()
        feed = SupabaseChangeFeed(AsyncMock(return_value=realtime))

        feed.subscribe(5, lambda row: None).unsubscribe()
        await feed.flush()

        assert len(realtime.channels) == 1
        assert realtime.removed == realtime.channels

    @pytest.mark.asyncio
    async def test_local_publish_is_ignored(self):
        from unittest.mock import AsyncMock

        from podforge.db.supabase_store import SupabaseChangeFeed

        feed = SupabaseChangeFeed(AsyncMock(return_value=FakeRealtime()))
        events = []
        feed.subscribe(5, events.append)
        await feed.flush()

        feed.publish({"id": 5})
        assert events == []

    def test_subscribe_needs_running_loop(self):
        from unittest.mock import AsyncMock

        from podforge.db.supabase_store import SupabaseChangeFeed

        feed = SupabaseChangeFeed(AsyncMock())
        with pytest.raises(RuntimeError, match="running event loop"):
            feed.subscribe(5, lambda row: None)
        assert feed.subscriber_count(5) == 0
