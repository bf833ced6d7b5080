"""Tests for the two-pass curation."""

import json
import logging

import pytest

from conftest import FakeOracle, default_handler, make_article, payload_of
from daily_ai_podcast.curator import (
    build_bullet_html_from_selected,
    deduplicate_articles,
    filter_ai_articles,
    keyword_filter,
    prepare_articles_for_ai,
    resolve_selected,
    select_articles_with_ai,
    select_top_articles,
)
from daily_ai_podcast.errors import ConfigurationError, CurationError, OracleError, OracleResponseError
from daily_ai_podcast.models import Article, SelectionResult


class TestRelevancePass:
    def test_batches_are_sequential_and_sized(self):
        articles = [make_article(i) for i in range(120)]
        oracle = FakeOracle(default_handler())
        kept = filter_ai_articles(articles, oracle, batch_size=100)
        assert len(oracle.calls) == 2
        assert [len(payload_of(c["user"])) for c in oracle.calls] == [100, 20]
        assert all(c["json_mode"] and c["temperature"] == 0.1 for c in oracle.calls)
        assert kept == articles

    def test_compact_payload(self):
        art = make_article(1, title="Line one\nline two")
        oracle = FakeOracle(default_handler())
        filter_ai_articles([art], oracle)
        sent = payload_of(oracle.calls[0]["user"])[0]
        assert set(sent) == {"id", "title", "summary"}
        assert sent["title"] == "Line one line two"

    def test_failed_batch_is_skipped(self):
        articles = [make_article(i) for i in range(150)]
        first_batch_ids = {a.id for a in articles[:100]}

        def handler(system, user):
            ids = [a["id"] for a in payload_of(user)]
            if set(ids) == first_batch_ids:
                return OracleError("rate limited")
            return json.dumps({"aiRelatedIds": ids})

        kept = filter_ai_articles(articles, FakeOracle(handler), batch_size=100)
        assert kept == articles[100:]

    def test_non_positive_batch_size_rejected(self):
        oracle = FakeOracle(default_handler())
        with pytest.raises(ValueError):
            filter_ai_articles([make_article(1)], oracle, batch_size=0)
        assert oracle.calls == []

    def test_malformed_batch_is_skipped(self):
        articles = [make_article(i) for i in range(3)]
        kept = filter_ai_articles(articles, FakeOracle(lambda s, u: "not json"))
        assert kept == []

    def test_preserves_input_order(self):
        articles = [make_article(i) for i in range(5)]
        reversed_ids = [a.id for a in reversed(articles)]
        oracle = FakeOracle(lambda s, u: json.dumps({"aiRelatedIds": reversed_ids[:3]}))
        assert filter_ai_articles(articles, oracle) == articles[2:]

    def test_empty_input_makes_no_call(self):
        oracle = FakeOracle(default_handler())
        assert filter_ai_articles([], oracle) == []
        assert oracle.calls == []

    def test_keyword_fallback_without_oracle(self):
        ai = Article.create("s", "OpenAI ships a new GPT", "https://x.com/1", "")
        other = Article.create("s", "Local bakery opens downtown", "https://x.com/2", "Fresh bread every morning.")
        assert filter_ai_articles([ai, other], None) == [ai]
        assert keyword_filter([other]) == []


class TestDeduplicate:
    def test_same_link(self):
        a = Article.create("s", "First", "https://x.com/1", "")
        b = Article.create("t", "Second", "https://x.com/1", "")
        assert deduplicate_articles([a, b]) == [a]

    def test_normalized_title(self):
        a = Article.create("s", "GPT-5 Launches!", "https://x.com/1", "")
        b = Article.create("t", "gpt 5 launches", "https://y.com/2", "")
        assert deduplicate_articles([a, b]) == [a]

    def test_linkless_articles_are_not_merged(self):
        a = Article.create("s", "One", "", "")
        b = Article.create("s", "Two", "", "")
        assert deduplicate_articles([a, b]) == [a, b]

    def test_idempotent(self):
        arts = [
            Article.create("s", "GPT-5 Launches!", "https://x.com/1", ""),
            Article.create("s", "gpt 5 launches", "https://x.com/2", ""),
            Article.create("s", "Other", "https://x.com/1", ""),
            Article.create("s", "Third", "https://x.com/3", ""),
        ]
        once = deduplicate_articles(arts)
        assert deduplicate_articles(once) == once
        assert [a.title for a in once] == ["GPT-5 Launches!", "Third"]


class TestRankingPass:
    def test_ids_are_subset_and_truncated(self):
        cands = [make_article(i) for i in range(6)]
        ids = [c.id for c in cands]
        answer = {"selectedIds": [ids[3], "made-up", ids[3], ids[0], ids[1], ids[2]]}
        oracle = FakeOracle(lambda s, u: json.dumps(answer))
        assert select_articles_with_ai(cands, oracle, max_count=2) == [ids[3], ids[0]]
        assert "Target 2 articles" in oracle.calls[0]["system"]

    def test_malformed_answer_raises(self):
        cands = [make_article(1)]
        with pytest.raises(OracleResponseError):
            select_articles_with_ai(cands, FakeOracle(lambda s, u: '{"picked": []}'), 10)

    def test_non_string_ids_rejected(self):
        cands = [make_article(1)]
        with pytest.raises(OracleResponseError):
            select_articles_with_ai(cands, FakeOracle(lambda s, u: '{"selectedIds": [1, 2]}'), 10)

    def test_short_selection_warns_but_is_kept(self, caplog):
        cands = [make_article(i) for i in range(6)]
        oracle = FakeOracle(lambda s, u: json.dumps({"selectedIds": [cands[4].id, cands[1].id]}))
        with caplog.at_level(logging.WARNING, logger="daily_ai_podcast.curator"):
            ids = select_articles_with_ai(cands, oracle, max_count=10)
        assert ids == [cands[4].id, cands[1].id]
        assert any("fewer articles than recommended" in r.getMessage() for r in caplog.records)

    def test_ranking_failure_propagates_without_fallback(self):
        articles = [make_article(i) for i in range(5)]
        relevance = default_handler()

        def handler(system, user):
            if "selectedIds" in system:
                return OracleError("service unavailable")
            return relevance(system, user)

        oracle = FakeOracle(handler)
        with pytest.raises(OracleError):
            select_top_articles(articles, oracle, oracle, max_count=3)
        assert len(oracle.calls) == 2

    def test_prepared_payload_shape(self):
        art = make_article(1, pub_date="Fri, 17 Oct 2025 06:00:00 GMT")
        data = json.loads(prepare_articles_for_ai([art, make_article(2)]))
        assert data[0]["pubDate"] == "Oct 17"
        assert data[1]["pubDate"] == "Unknown date"
        assert set(data[0]) == {"id", "source", "title", "pubDate", "summary"}


class TestSelectTop:
    def test_full_flow(self):
        articles = [make_article(i) for i in range(120)]
        oracle = FakeOracle(default_handler(ranked=4))
        result = select_top_articles(articles, oracle, oracle, max_count=10, batch_size=100)
        assert len(oracle.calls) == 3
        assert result.selected_ids == tuple(a.id for a in articles[:4])

    def test_no_ranking_oracle(self):
        with pytest.raises(ConfigurationError):
            select_top_articles([make_article(1)], None, None)

    def test_nothing_relevant(self):
        oracle = FakeOracle(lambda s, u: json.dumps({"aiRelatedIds": []}))
        with pytest.raises(CurationError):
            select_top_articles([make_article(1)], oracle, oracle)
        assert len(oracle.calls) == 1


class TestResolveSelected:
    def test_ranking_order(self):
        arts = [make_article(i) for i in range(3)]
        sel = SelectionResult((arts[2].id, arts[0].id))
        assert resolve_selected(arts, sel) == [arts[2], arts[0]]

    def test_stale_id(self):
        with pytest.raises(CurationError):
            resolve_selected([make_article(1)], SelectionResult(("deadbeefdeadbeef",)))


def test_bullet_html_escapes_and_limits():
    arts = [Article.create("src", f"<b>Story {i}</b> & more", f"https://x.com/{i}", "") for i in range(12)]
    out = build_bullet_html_from_selected(arts, limit=10)
    assert out.count("<li>") == 10
    assert "&lt;b&gt;Story 0&lt;/b&gt; &amp; more" in out
