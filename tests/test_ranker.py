import math

import pytest

from petersearch.documents import Doc
from petersearch.postings import InvertedList, Posting, PostingType
from petersearch.ranker import (
    DocStats,
    RankAlgo,
    Ranker,
    Score,
    collect_doc_stats,
    merge_doc_stats,
    top_k,
)
from petersearch.stats import IndexStats

_TAGS = ["title", "h1", "h2", "h3", "b", "i", ""]


def _posting_lists(term_count=40, docs=15):
    lists = []
    for t in range(term_count):
        term = f"t{t}" if t % 3 else f"t{t}+u{t}"
        postings = []
        for d in range(docs):
            if (t * 7 + d) % 4 == 0:
                continue
            tag = _TAGS[(t + d) % len(_TAGS)]
            ptype = PostingType.TAG if tag else PostingType.TEXT
            postings.append(Posting(ptype, d, tag, (t + d) % 5))
        lists.append(InvertedList(term, postings))
    return lists


def test_doc_stats_merge_matches_total():
    lists = _posting_lists()
    total = DocStats()
    for inverted in lists:
        for posting in inverted.postings:
            total.add_posting(inverted.term, posting)

    batch = 10
    parts = []
    for start in range(0, len(lists), batch):
        stats = DocStats()
        for inverted in lists[start : start + batch]:
            for posting in inverted.postings:
                stats.add_posting(inverted.term, posting)
        parts.append(stats)
    merged = merge_doc_stats(*parts)

    assert len(total.term_freqs) == len(merged.term_freqs)
    assert len(total.doc_freqs) == len(merged.doc_freqs)
    for doc_id, expected in total.term_freqs.items():
        assert doc_id in merged.term_freqs
        assert merged.term_freqs[doc_id] == expected
    for term, expected in total.doc_freqs.items():
        assert merged.doc_freqs[term] == expected


def test_tag_weights():
    stats = DocStats()
    stats.add_posting("a", Posting(PostingType.TAG, 1, "title", 0))
    stats.add_posting("a", Posting(PostingType.TAG, 1, "h1", 0))
    stats.add_posting("b", Posting(PostingType.TAG, 1, "h3", 0))
    stats.add_posting("c", Posting(PostingType.TAG, 1, "b", 0))
    stats.add_posting("c", Posting(PostingType.TAG, 1, "i", 0))
    stats.add_posting("d", Posting(PostingType.TEXT, 1, "", 0))
    assert stats.term_weighted_count(1, "a") == 8.0
    assert stats.term_weighted_count(1, "b") == 1.0
    assert stats.term_weighted_count(1, "c") == 1.0
    assert stats.term_weighted_count(1, "d") == 0.0
    assert stats.doc_count("d") == 1


def test_ngram_weight_doubles_per_plus():
    stats = DocStats()
    stats.add_posting("x", Posting(PostingType.TAG, 2, "title", 0))
    stats.add_posting("x+y", Posting(PostingType.TAG, 2, "title", 0))
    stats.add_posting("x+y+z", Posting(PostingType.TAG, 2, "title", 0))
    assert stats.term_weighted_count(2, "x") == 5.0
    assert stats.term_weighted_count(2, "x+y") == 10.0
    assert stats.term_weighted_count(2, "x+y+z") == 20.0


def test_unknown_doc_and_term_counts_are_zero():
    stats = DocStats()
    assert stats.term_weighted_count(9, "missing") == 0.0
    assert stats.doc_count("missing") == 0
    assert stats.term_freqs == {}


def test_collect_doc_stats_equals_adding_postings():
    inverted = _posting_lists(term_count=1)[0]
    expected = DocStats()
    for posting in inverted.postings:
        expected.add_posting(inverted.term, posting)
    assert collect_doc_stats(inverted) == expected


def test_merge_overlapping_stats_sums_counts():
    first = DocStats()
    second = DocStats()
    first.add_posting("a", Posting(PostingType.TAG, 1, "title", 0))
    second.add_posting("a", Posting(PostingType.TAG, 1, "h1", 0))
    second.add_posting("a", Posting(PostingType.TAG, 2, "h1", 0))
    merged = merge_doc_stats(first, second)
    assert merged.term_weighted_count(1, "a") == 8.0
    assert merged.doc_count("a") == 2


def _index_stats(doc_lengths):
    stats = IndexStats()
    for doc_id, length in doc_lengths.items():
        stats.add_doc(Doc(url=f"https://example.com/{doc_id}", id=doc_id))
        for _ in range(length):
            stats.add_term(doc_id, "w")
    return stats


def test_tfidf_single_document():
    ranker = Ranker(_index_stats({1: 10}))
    stats = DocStats()
    stats.add_posting("a", Posting(PostingType.TAG, 1, "title", 0))
    assert ranker.tfidf(["a"], stats) == [Score(1, 0.5)]


@pytest.mark.parametrize("algo", [RankAlgo.TFIDF, RankAlgo.BM25])
def test_more_emphasis_scores_higher(algo):
    ranker = Ranker(_index_stats({1: 10, 2: 10, 3: 10}))
    stats = DocStats()
    stats.add_posting("a", Posting(PostingType.TAG, 1, "title", 0))
    stats.add_posting("a", Posting(PostingType.TAG, 2, "b", 0))
    score = ranker.tfidf if algo == RankAlgo.TFIDF else ranker.bm25
    by_doc = {s.doc_id: s.value for s in score(["a"], stats)}
    assert set(by_doc) == {1, 2}
    assert by_doc[1] > by_doc[2] > 0


def test_bm25_rarer_term_scores_higher():
    ranker = Ranker(_index_stats({1: 10, 2: 10, 3: 10, 4: 10}))
    stats = DocStats()
    stats.add_posting("rare", Posting(PostingType.TAG, 1, "h1", 0))
    for doc_id in (2, 3, 4):
        stats.add_posting("common", Posting(PostingType.TAG, doc_id, "h1", 0))
    by_doc = {s.doc_id: s.value for s in ranker.bm25(["rare", "common"], stats)}
    assert by_doc[1] > by_doc[2]
    assert math.isclose(by_doc[2], by_doc[3])


def test_top_k_orders_and_truncates():
    scores = [Score(1, 0.2), Score(2, 0.9), Score(3, 0.5)]
    assert [s.doc_id for s in top_k(scores, 2)] == [2, 3]
    assert [s.doc_id for s in top_k(scores, 0)] == [2, 3, 1]
    assert [s.doc_id for s in top_k(scores, 10)] == [2, 3, 1]
    assert top_k([], 3) == []


def test_rank_algo_values():
    assert RankAlgo(0) is RankAlgo.TFIDF
    assert RankAlgo(1) is RankAlgo.BM25