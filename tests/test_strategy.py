from __future__ import annotations

import pytest

from conftest import make_document
from research_assistant.models.research import Strategy
from research_assistant.services import strategy


@pytest.mark.parametrize(
    "query, expected",
    [
        ("", Strategy.QUICK),
        ("AI", Strategy.QUICK),
        ("react hooks tutorial", Strategy.QUICK),
        ("how do transformers handle long context windows", Strategy.STANDARD),
        (" ".join(["word"] * 16), Strategy.COMPREHENSIVE),
        ("a" * 101, Strategy.COMPREHENSIVE),
    ],
)
def test_classify_by_length_and_word_count(query, expected):
    assert strategy.classify(query) is expected


def test_classify_long_query_with_many_words_is_comprehensive():
    query = "compare the energy efficiency of transformer inference across modern accelerator hardware including gpus tpus and custom asics today"
    assert len(query) > 100
    assert strategy.classify(query) is Strategy.COMPREHENSIVE


def test_classify_boundary_thirty_chars_is_standard():
    query = "x" * 30
    assert strategy.classify(query) is Strategy.STANDARD


def test_budgets_default_tables():
    quick = strategy.budgets_for("quick")
    assert quick.search_timeout_ms == 3000
    assert quick.processing_timeout_ms == 5000
    assert quick.max_documents == 6
    assert quick.chunk_size == 600

    comprehensive = strategy.budgets_for(Strategy.COMPREHENSIVE)
    assert comprehensive.search_timeout_ms == 8000
    assert comprehensive.processing_timeout_ms == 15000
    assert comprehensive.max_documents == 18


def test_budgets_honor_configured_timeouts():
    budgets = strategy.budgets_for(
        Strategy.STANDARD,
        search_timeouts_ms={"standard": 1234},
        processing_timeouts_ms={"standard": 4321},
    )
    assert budgets.search_timeout_ms == 1234
    assert budgets.processing_timeout_ms == 4321
    assert budgets.max_documents == 12


def test_optimal_chunk_size():
    assert strategy.optimal_chunk_size(50, Strategy.QUICK) == 600
    assert strategy.optimal_chunk_size(21, Strategy.STANDARD) == 800
    assert strategy.optimal_chunk_size(5, Strategy.COMPREHENSIVE) == 1200


def test_filter_for_speed_drops_short_and_long_bodies():
    docs = [
        make_document("https://a.com", "x" * 50),
        make_document("https://b.com", "y" * 500),
        make_document("https://c.com", "z" * 6000),
    ]
    kept = strategy.filter_for_speed(docs)
    assert [doc.source_url for doc in kept] == ["https://b.com"]


def test_prioritize_documents_prefers_mid_length_authoritative():
    docs = [
        make_document("https://blog.example.com/post", "x" * 150),
        make_document("https://docs.python.org/3/library", "y" * 800, title="Library"),
    ]
    ranked = strategy.prioritize_documents(docs)
    assert ranked[0].domain == "docs.python.org"


def test_classify_reference_lengths():
    standard = " ".join(["alpha", "bravo", "charlie", "delta", "echo", "foxtrot", "golf", "hotels"])
    comprehensive = " ".join(["abcdef"] * 19 + ["a" * 17])

    assert (len(standard), len(standard.split())) == (50, 8)
    assert (len(comprehensive), len(comprehensive.split())) == (150, 20)
    assert strategy.classify(standard) is Strategy.STANDARD
    assert strategy.classify(comprehensive) is Strategy.COMPREHENSIVE
