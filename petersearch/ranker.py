"""Weighted term statistics and TF-IDF / BM25 scoring of documents."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import Iterable

from petersearch.postings import InvertedList, Posting, PostingType
from petersearch.stats import IndexStats

_TAG_WEIGHTS = {
    "title": 5.0,
    "h1": 3.0,
    "h2": 2.0,
    "h3": 1.0,
    "b": 0.5,
    "i": 0.5,
}


class RankAlgo(enum.IntEnum):
    TFIDF = 0
    BM25 = 1


def _fdiv(a: float, b: float) -> float:
    """Float division that yields inf or NaN instead of raising on zero."""
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a)
    return a / b


@dataclass
class DocStats:
    """Weighted term counts per document and the documents each term occurs in."""

    term_freqs: dict[int, dict[str, float]] = field(default_factory=dict)
    doc_freqs: dict[str, set[int]] = field(default_factory=dict)

    def add_posting(self, term: str, posting: Posting) -> None:
        """Count a posting, weighting emphasised text and longer n-grams higher."""
        weight = 0.0
        if posting.type == PostingType.TAG:
            weight = _TAG_WEIGHTS.get(posting.tag, 0.0)
        plus_count = term.count("+")
        if plus_count:
            weight *= 2.0**plus_count
        self.add_term_weighted_count(posting.doc_id, term, weight)
        self.add_doc_freq(posting.doc_id, term)

    def add_term_weighted_count(self, doc_id: int, term: str, count: float) -> None:
        freqs = self.term_freqs.setdefault(doc_id, {})
        freqs[term] = freqs.get(term, 0.0) + count

    def add_doc_freq(self, doc_id: int, term: str) -> None:
        self.doc_freqs.setdefault(term, set()).add(doc_id)

    def term_weighted_count(self, doc_id: int, term: str) -> float:
        return self.term_freqs.get(doc_id, {}).get(term, 0.0)

    def doc_count(self, term: str) -> int:
        """Number of documents ``term`` occurs in."""
        return len(self.doc_freqs.get(term, ()))


@dataclass(frozen=True)
class Score:
    doc_id: int
    value: float


def collect_doc_stats(inverted_list: InvertedList) -> DocStats:
    """Statistics of a single inverted list."""
    stats = DocStats()
    for posting in inverted_list.postings:
        stats.add_posting(inverted_list.term, posting)
    return stats


def merge_doc_stats(*args: DocStats) -> DocStats:
    """Sum the weighted counts and unite the document sets of several stats."""
    merged = DocStats()
    for stats in args:
        for doc_id, freqs in stats.term_freqs.items():
            for term, count in freqs.items():
                merged.add_term_weighted_count(doc_id, term, count)
        for term, doc_ids in stats.doc_freqs.items():
            for doc_id in doc_ids:
                merged.add_doc_freq(doc_id, term)
    return merged


class Ranker:
    """Scores documents against query terms using collection statistics."""

    def __init__(self, index_stats: IndexStats) -> None:
        self.index_stats = index_stats

    def tfidf(self, terms: Iterable[str], doc_stats: DocStats) -> list[Score]:
        terms = list(terms)
        total_docs = float(self.index_stats.doc_count)
        scores = []
        for doc_id in doc_stats.term_freqs:
            doc_len = float(self.index_stats.doc_len(doc_id))
            value = 0.0
            for term in terms:
                tf = _fdiv(doc_stats.term_weighted_count(doc_id, term), doc_len)
                term_docs = float(doc_stats.doc_count(term))
                idf = 1 + math.log((total_docs + 1) / (term_docs + 1))
                value += tf * idf
            scores.append(Score(doc_id, value))
        return scores

    def bm25(self, terms: Iterable[str], doc_stats: DocStats) -> list[Score]:
        terms = list(terms)
        k, b = 1.5, 0.75
        avg = self.index_stats.avg_term_per_doc()
        n = float(self.index_stats.doc_count)
        scores = []
        for doc_id in doc_stats.term_freqs:
            d = float(self.index_stats.doc_len(doc_id))
            value = 0.0
            for term in terms:
                tf = doc_stats.term_weighted_count(doc_id, term)
                nt = float(doc_stats.doc_count(term))
                ratio = (n - nt + 0.5) / (nt + 0.5) + 1
                idf = math.log(ratio) if ratio > 0 else math.nan
                value += _fdiv(idf * tf, tf + k * (1 - b + b * _fdiv(d, avg)))
            scores.append(Score(doc_id, value))
        return scores


def top_k(scores: Iterable[Score], k: int) -> list[Score]:
    """Scores in descending order, cut to the first ``k`` when ``k`` is positive."""
    ordered = sorted(scores, key=lambda score: score.value, reverse=True)
    if k <= 0 or len(ordered) < k:
        return ordered
    return ordered[:k]