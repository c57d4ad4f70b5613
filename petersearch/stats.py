"""Per-index document statistics and term offsets into the inverted-list file."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import IO, TYPE_CHECKING

if TYPE_CHECKING:
    from petersearch.documents import Doc


@dataclass
class IndexStats:
    """Document count, URL mapping and term count of every indexed document."""

    doc_count: int = 0
    doc_id_to_url: dict[int, str] = field(default_factory=dict)
    url_to_doc_id: dict[str, int] = field(default_factory=dict)
    doc_term_count: dict[int, int] = field(default_factory=dict)

    def add_doc(self, doc: "Doc") -> None:
        """Count a document and record its URL under its id."""
        self.doc_count += 1
        self.doc_id_to_url[doc.id] = doc.url
        self.url_to_doc_id[doc.url] = doc.id

    def add_term(self, doc_id: int, term: str) -> None:
        """Count one more term occurrence in document ``doc_id``."""
        self.doc_term_count[doc_id] = self.doc_term_count.get(doc_id, 0) + 1

    def doc_len(self, doc_id: int) -> int:
        """Number of terms counted for ``doc_id``; 0 for an unknown document."""
        return self.doc_term_count.get(doc_id, 0)

    def avg_term_per_doc(self) -> float:
        """Mean number of terms per document.

        With no documents the result is NaN when no terms were counted
        either, and infinity otherwise.
        """
        total = sum(self.doc_term_count.values())
        if self.doc_count == 0:
            return math.nan if total == 0 else math.inf
        return total / self.doc_count


@dataclass
class PosStats:
    """Start and end byte offset of each term's list in the index file."""

    term_start: dict[str, int] = field(default_factory=dict)
    term_end: dict[str, int] = field(default_factory=dict)


def dump_index_stats(stats: IndexStats, stream: IO[bytes]) -> None:
    """Serialise ``stats`` to a binary stream."""
    payload = {
        "doc_count": stats.doc_count,
        "doc_id_to_url": [[doc_id, url] for doc_id, url in stats.doc_id_to_url.items()],
        "url_to_doc_id": [[url, doc_id] for url, doc_id in stats.url_to_doc_id.items()],
        "doc_term_count": [
            [doc_id, count] for doc_id, count in stats.doc_term_count.items()
        ],
    }
    stream.write(json.dumps(payload, separators=(",", ":")).encode("utf-8"))


def load_index_stats(stream: IO[bytes]) -> IndexStats:
    """Read statistics written by :func:`dump_index_stats`."""
    payload = json.loads(stream.read().decode("utf-8"))
    return IndexStats(
        doc_count=int(payload["doc_count"]),
        doc_id_to_url={int(doc_id): str(url) for doc_id, url in payload["doc_id_to_url"]},
        url_to_doc_id={str(url): int(doc_id) for url, doc_id in payload["url_to_doc_id"]},
        doc_term_count={
            int(doc_id): int(count) for doc_id, count in payload["doc_term_count"]
        },
    )