"""
End-to-end tests of the AssistantCore facade built from configuration.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from assist_core.agents.builtin_tools import PriceLookupTool
from assist_core.agents.tools import ToolContext
from assist_core.core import config
from assist_core.core.dao import KnowledgeRepository, OutcomeRepository
from assist_core.core.errors import ConfigurationError
from assist_core.core.heartbeat import HeartbeatScheduler
from assist_core.core.schema import KnowledgeItem
from assist_core.service import PATTERN_TASK_NAME, build_assistant_core
from assist_core.vector.strategy import RetrievalStrategy


@pytest.fixture
def core(tmp_path):
    db_path = str(tmp_path / "core.db")
    with patch.multiple(config, EMBED_PROVIDER="hash", EMBED_DIM=16, SHIPPING_PROVIDER="table"):
        core = build_assistant_core(db_path=db_path, strategy=RetrievalStrategy.BRUTE_FORCE)

    repository = KnowledgeRepository(db_path)
    repository.upsert_item(KnowledgeItem(id="1", tenant_id="T", name="Red Shirt", price=200, sale_price=150))
    repository.upsert_item(KnowledgeItem(id="2", tenant_id="T", name="Blue Shirt", price=180))
    core.db_path = db_path
    return core


def test_tool_definitions(core):
    assert {d["name"] for d in core.list_tool_definitions()} == {
        "get_product_price", "get_shipping_info", "search_knowledge"
    }


def test_duplicate_extra_tool_aborts_startup(tmp_path):
    with patch.multiple(config, EMBED_PROVIDER="hash"):
        with pytest.raises(ConfigurationError, match="already registered"):
            build_assistant_core(
                db_path=str(tmp_path / "dup.db"),
                strategy=RetrievalStrategy.KEYWORD_ONLY,
                extra_tools=[PriceLookupTool(MagicMock())]
            )


def test_invalid_config_aborts_startup(tmp_path):
    with patch("assist_core.service.config.validate_config", return_value=["Invalid VECTOR_BACKEND: x"]):
        with pytest.raises(ConfigurationError, match="VECTOR_BACKEND"):
            build_assistant_core(db_path=str(tmp_path / "bad.db"))


@pytest.mark.asyncio
async def test_invoke_tools(core):
    context = ToolContext(tenant_id="T")

    single = await core.invoke_tool("get_product_price", {"product_id": "1"}, context)
    many = await core.invoke_tools([
        {"name": "get_product_price", "args": {"product_name": "blue shirt"}},
        {"name": "search_knowledge", "args": {"query": "red shirt"}},
    ], context)

    assert single["data"]["matches"][0]["price"] == 150
    assert many[0]["data"]["matches"][0]["product_id"] == "2"
    assert many[1]["data"][0]["item_id"] == "1"


def test_search_knowledge_keyword_fallback(core):
    """Unembedded catalog: only the matching item, at the keyword score."""
    results = core.search_knowledge("red shirt", "T", 5)

    assert [r.item_id for r in results] == ["1"]
    assert results[0].score == 0.5
    assert results[0].provenance == "keyword"


def test_backfill_enables_vector_search(core):
    report = core.backfill_embeddings("T")

    results = core.search_knowledge("red shirt", "T", 1)

    assert report.embedded == 2
    assert report.degraded == 2
    assert results[0].item_id == "1"
    assert results[0].provenance == "brute-force"
    assert results[0].degraded


def test_tone_round_trip(core):
    analysis = core.analyze_tone(["Dear sir, kindly advise"])

    assert analysis.dominant_tone == "formal"
    assert core.adapt_reply("hey, ok", analysis) == "hello, certainly"
    assert core.style_directive(analysis) == core.style_directive("formal")
    assert core.style_directive(analysis) in core.inject_style("System prompt", analysis)


def test_pattern_analysis(core):
    outcomes = OutcomeRepository(core.db_path)
    now = datetime.now(timezone.utc)
    for outcome in ("unsatisfied", "unsatisfied", "satisfied"):
        outcomes.record_outcome("T", "refund", outcome, created_at=now - timedelta(hours=1))

    findings = core.run_daily_pattern_analysis("T")
    report = core.run_pattern_batch()

    assert [f.intent for f in findings] == ["refund"]
    assert report.ok == ["T"]
    assert report.alerts == {"T": 1}


def test_schedule_pattern_analysis(core):
    scheduler = HeartbeatScheduler()

    core.schedule_pattern_analysis(scheduler, interval_sec=3600)

    assert scheduler.list_tasks() == [PATTERN_TASK_NAME]
    assert scheduler.get_status()["tasks"][PATTERN_TASK_NAME]["interval_sec"] == 3600
    assert not scheduler.should_run_task(PATTERN_TASK_NAME)


def test_schedule_skipped_when_disabled(core):
    scheduler = HeartbeatScheduler()

    with patch.object(config, "PATTERN_ENABLED", False):
        core.schedule_pattern_analysis(scheduler)

    assert scheduler.list_tasks() == []
