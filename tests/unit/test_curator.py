"""
Unit tests for the curator stage.
"""

import pytest

from conftest import FakeGateway


@pytest.mark.unit
class TestSourceCounts:
    """Tests for duration/depth buckets."""

    @pytest.mark.parametrize("duration,depth,expected", [
        ("3-5 min", "standard", (2, 4)),
        ("1-3 min", "deep", (4, 6)),
        ("5+ min", "deep", (10, 15)),
        ("larga", "standard", (6, 10)),
        (None, None, (2, 4)),
    ])
    def test_source_count_range(self, duration, depth, expected):
        from podforge.research.curator import source_count_range

        assert source_count_range(duration, depth) == expected

    def test_raw_context_by_purpose(self):
        from podforge.research.curator import build_raw_context

        assert build_raw_context("learn", {"topic": "history of the metro"}) == "history of the metro"
        assert "Connect 'jazz' with 'math'" in build_raw_context("explore", {"topicA": "jazz", "topicB": "math"})
        assert build_raw_context("answer", {"question": "Why?"}) == "Question to answer: Why?"


@pytest.mark.unit
class TestCurator:
    """Tests for Curator.curate."""

    @pytest.mark.asyncio
    async def test_grounded_research(self, metro_payload):
        from podforge.research.curator import Curator

        gateway = FakeGateway()
        dossier = await Curator(gateway).curate(metro_payload)

        assert dossier.degraded is False
        assert dossier.main_thesis == "The metro reshaped how the city grew"
        assert 2 <= len(dossier.sources) <= 4
        assert len(gateway.calls) == 1
        assert gateway.calls[0]["use_search"] is True
        assert gateway.calls[0]["force_json"] is False
        assert "history of the metro" in gateway.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_sources_are_capped(self, metro_payload):
        from podforge.research.curator import Curator

        dossier_data = {
            "main_thesis": "x",
            "key_facts": ["y"],
            "sources": [{"title": f"Source {i}"} for i in range(9)],
        }
        dossier = await Curator(FakeGateway(dossier=dossier_data)).curate(metro_payload)
        assert [s.title for s in dossier.sources] == ["Source 0", "Source 1", "Source 2", "Source 3"]

    @pytest.mark.asyncio
    async def test_search_failure_uses_json_fallback(self, metro_payload):
        """Test the retry runs without tools and with the no-web note."""
        from podforge.errors import GatewayError
        from podforge.research.curator import Curator

        gateway = FakeGateway()
        gateway.search_error = GatewayError("search quota exceeded")

        dossier = await Curator(gateway).curate(metro_payload)

        assert dossier.degraded is False
        assert len(gateway.calls) == 2
        retry = gateway.calls[1]
        assert retry["use_search"] is False
        assert retry["force_json"] is True
        assert "no web access" in retry["prompt"]

    @pytest.mark.asyncio
    async def test_undecodable_search_answer_uses_fallback(self, metro_payload):
        from podforge.research.curator import Curator

        gateway = FakeGateway(dossier="I could not research that, sorry.")
        gateway.fallback_dossier = {"main_thesis": "Fallback thesis", "key_facts": []}

        dossier = await Curator(gateway).curate(metro_payload)
        assert dossier.main_thesis == "Fallback thesis"

    @pytest.mark.asyncio
    async def test_never_raises(self, metro_payload):
        """Test a degenerate dossier is built when both attempts fail."""
        from podforge.errors import GatewayError
        from podforge.research.curator import Curator

        gateway = FakeGateway()
        gateway.search_error = GatewayError("search down")
        gateway.json_error = GatewayError("model down")

        dossier = await Curator(gateway).curate(metro_payload)

        assert dossier.degraded is True
        assert dossier.main_thesis == "history of the metro"
        assert dossier.key_facts == []
        assert dossier.sources == []
