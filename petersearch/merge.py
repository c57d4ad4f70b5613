"""K-way merging of sorted partial indexes and of their posting lists."""

from __future__ import annotations

import heapq
import logging
import os
import tempfile
from typing import Any, Generator, Iterable, Iterator, Mapping, Protocol, Sequence

from petersearch.binary import ByteWriter
from petersearch.postings import (
    InvertedList,
    Posting,
    PostingStream,
    PostingType,
    collect_postings,
    iter_file_inverted_lists,
    posting_sort_key,
    write_posting,
    write_posting_header,
)

logger = logging.getLogger(__name__)


class Consumer(Protocol):
    def consume(self, value: Any) -> None: ...


def merge_partial_indexes_in_memory(
    *args: Mapping[str, Sequence[Posting]],
) -> dict[str, list[Posting]]:
    """Combine several partial indexes into one with every list sorted."""
    merged: dict[str, list[Posting]] = {}
    for index in args:
        for term, postings in index.items():
            merged.setdefault(term, []).extend(postings)
    for postings in merged.values():
        postings.sort(key=posting_sort_key)
    return merged


def _merged_postings(streams: list[PostingStream]) -> Iterator[Posting]:
    try:
        yield from heapq.merge(*streams, key=posting_sort_key)
    finally:
        for stream in streams:
            stream.close()


def kway_merge_writer(streams: Iterable[PostingStream]) -> PostingStream:
    """Merge sorted posting streams of one term into a single sorted stream.

    The result carries the first stream's term, or the empty string when
    there are no streams.
    """
    streams = list(streams)
    term = streams[0].term if streams else ""
    return PostingStream(term, _merged_postings(streams))


def kway_merge_collect(streams: Iterable[PostingStream]) -> InvertedList:
    """Drain posting streams of one term into a single sorted inverted list."""
    streams = list(streams)
    if not streams:
        raise ValueError("no posting streams to merge")
    postings = [posting for stream in streams for posting in collect_postings(stream)]
    postings.sort(key=posting_sort_key)
    return InvertedList(streams[0].term, postings)


def kway_merge_reader(
    index_iters: Iterable[Iterator[PostingStream]],
) -> Generator[PostingStream, None, None]:
    """Merge partial indexes whose lists come in term order.

    Yields one merged stream per distinct term, in term order. A yielded
    stream must be read before the next one is requested; whatever is left
    unread is discarded then.
    """
    sources = list(index_iters)
    heap: list[str] = []
    pending: dict[str, list[tuple[int, PostingStream]]] = {}

    def advance(source: int) -> None:
        stream = next(sources[source], None)
        if stream is None:
            return
        if not pending.get(stream.term):
            heapq.heappush(heap, stream.term)
        pending.setdefault(stream.term, []).append((source, stream))

    try:
        for source in range(len(sources)):
            advance(source)
        while heap:
            term = heapq.heappop(heap)
            items = pending.pop(term)
            merged = kway_merge_writer(stream for _, stream in items)
            yield merged
            merged.close()
            for source, _ in items:
                advance(source)
    finally:
        for source_iter in sources:
            close = getattr(source_iter, "close", None)
            if close is not None:
                close()


def merge_partial_index_files(
    directory: str | os.PathLike[str],
    producer: Iterable[Sequence[str]],
    consumer: Consumer,
) -> None:
    """Merge each group of partial index files into a new file in ``directory``.

    The name of every merged file is handed to ``consumer``.
    """
    for files in producer:
        fd, name = tempfile.mkstemp(prefix="merge-index", dir=directory)
        with open(fd, "wb") as out:
            writer = ByteWriter(out)
            lists = kway_merge_reader(iter_file_inverted_lists(f) for f in files)
            try:
                for stream in lists:
                    with stream:
                        writer.write_string(stream.term)
                        for posting in stream:
                            write_posting(writer, posting)
                    write_posting_header(writer, PostingType.END, 0)
            finally:
                lists.close()
        logger.debug("merged %d partial indexes into %s", len(files), name)
        consumer.consume(name)