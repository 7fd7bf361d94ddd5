from __future__ import annotations

import pytest

from conftest import make_document
from research_assistant.tools import search_utils, web_utils


@pytest.mark.parametrize(
    "query",
    [
        "React hooks tutorial",
        "quicksort in python",
        "deploying django with docker",
        "how to write a unit test",
    ],
)
def test_programming_queries_are_detected(query):
    assert search_utils.is_programming_query(query) is True
    assert search_utils.is_programming_query(query) is True


@pytest.mark.parametrize("query", ["history of the roman empire", "happy birthday songs", "best hiking trails"])
def test_non_programming_queries(query):
    assert search_utils.is_programming_query(query) is False


def test_detect_domain():
    assert search_utils.detect_domain("rust borrow checker") == "programming"
    assert search_utils.detect_domain("quantum entanglement experiment") == "academic"
    assert search_utils.detect_domain("best hiking trails") == "general"


def test_normalize_url_folds_scheme_www_and_trailing_slash():
    assert web_utils.normalize_url("https://Example.com/a/") == web_utils.normalize_url("http://www.example.com/a")
    assert web_utils.normalize_url("https://example.com/a#section") == "https://example.com/a"
    assert web_utils.normalize_url("https://example.com/a?page=2") != web_utils.normalize_url("https://example.com/a")


def test_deduplicate_keeps_first_occurrence():
    docs = [
        make_document("https://Example.com/a/", "first body", title="first"),
        make_document("http://www.example.com/a", "second body", title="second"),
        make_document("https://example.com/b", "third body", title="third"),
    ]
    unique = search_utils.deduplicate(docs)
    assert [doc.title for doc in unique] == ["first", "third"]


def test_generate_search_queries_for_programming_query():
    queries = search_utils.generate_search_queries("React hooks tutorial")
    assert queries[0] == "React hooks tutorial"
    assert "React hooks tutorial tutorial examples" in queries
    assert len(queries) == 3


def test_generate_search_queries_inserts_keyword_variant_for_long_query():
    queries = search_utils.generate_search_queries("impact of climate change on coral reefs", max_queries=4)
    assert queries[0] == "impact of climate change on coral reefs"
    assert queries[1] == "impact climate change"
    assert len(queries) == 4
    assert len({q.lower() for q in queries}) == len(queries)


def test_generate_search_queries_empty_query():
    assert search_utils.generate_search_queries("   ") == []


def test_relevant_domains():
    assert "stackoverflow.com" in search_utils.relevant_domains("python decorators")
    assert "arxiv.org" in search_utils.relevant_domains("a study of sleep")
    assert "reuters.com" in search_utils.relevant_domains("election news")
    assert search_utils.relevant_domains("best hiking trails") == []


def test_merge_and_rank_prefers_title_matches_and_authority():
    docs = [
        make_document("https://random.blog/post", "some text about gardening", title="Gardening"),
        make_document("https://docs.python.org/3/", "python decorators explained", title="Python decorators"),
    ]
    ranked = search_utils.merge_and_rank(docs, "python decorators", limit=1)
    assert len(ranked) == 1
    assert ranked[0].domain == "docs.python.org"
    assert ranked[0].relevance_score > 0


def test_clean_content_truncates_and_strips_symbols():
    cleaned = web_utils.clean_content("hello   world ©™ " + "a" * 50, max_length=20)
    assert cleaned.startswith("hello world")
    assert cleaned.endswith("...")
    assert len(cleaned) == 23
