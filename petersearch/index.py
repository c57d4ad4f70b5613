"""Building partial indexes and the final on-disk inverted index."""

from __future__ import annotations

import io
import logging
import os
import queue
import tempfile
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import IO, Any, Iterable, Iterator, Mapping, Protocol

from petersearch.binary import ByteReader, ByteWriter, CountingWriter, TruncatedDataError
from petersearch.documents import Doc, parse_dir_docs, read_files
from petersearch.merge import kway_merge_reader
from petersearch.postings import (
    InvertedList,
    Posting,
    PostingStream,
    PostingType,
    iter_file_inverted_lists,
    iter_postings,
    parse_postings,
    posting_sort_key,
    write_posting,
    write_posting_header,
)
from petersearch.stats import IndexStats, PosStats, dump_index_stats
from petersearch.stream import ListConsumer, QueueConsumer, QueueProducer
from petersearch.sysutil import create_dir, create_file, format_megabytes

logger = logging.getLogger(__name__)

INDEX_FILE = "term_list"
STATS_FILE = "term_stats"
POS_FILE = "term_pos"

_MAX_TERM_BYTES = 65535


class Consumer(Protocol):
    def consume(self, value: Any) -> None: ...


def _format_postings(postings: Iterable[Posting]) -> str:
    return "[" + " ".join(
        f"{{{int(p.type)} {p.doc_id} {p.tag} {p.pos}}}" for p in postings
    ) + "]"


class PartialIndex(dict[str, list[Posting]]):
    """Postings of a batch of documents, keyed by term."""

    def print(self, prefix: str) -> None:
        """Write every term and its postings to standard output, in term order."""
        for term in sorted(self):
            print(prefix, term, _format_postings(self[term]))

    def sorted_lists(self) -> list[InvertedList]:
        """The inverted lists in term order, each sorted in place."""
        lists = []
        for term in sorted(self):
            self[term].sort(key=posting_sort_key)
            lists.append(InvertedList(term, self[term]))
        return lists

    def sorted_streams(self) -> Iterator[PostingStream]:
        """Yield a stream over each sorted inverted list, in term order."""
        for term in sorted(self):
            self[term].sort(key=posting_sort_key)
            yield PostingStream(term, self[term])


@dataclass(frozen=True)
class BuildSummary:
    """Counts gathered while building an index."""

    partial_indexes: int
    unigrams: int
    two_grams: int
    three_grams: int
    postings: int


def iter_file_partial_index(path: str) -> Iterator[PostingStream]:
    """Yield the inverted lists stored in a partial index file."""
    return iter_file_inverted_lists(path)


def read_partial_index(reader: ByteReader) -> PartialIndex:
    """Read every inverted list from ``reader``; empty lists are left out."""
    index = PartialIndex()
    while True:
        try:
            term = reader.read_string()
        except EOFError:
            return index
        postings = list(iter_postings(reader))
        if postings:
            index.setdefault(term, []).extend(postings)


def read_file_partial_index(path: str | os.PathLike[str]) -> PartialIndex:
    """Load a whole partial index file into memory."""
    with open(path, "rb") as f:
        return read_partial_index(ByteReader(f))


def write_partial_index(writer: ByteWriter, index: Mapping[str, list[Posting]]) -> None:
    """Write every list of ``index`` in term order, each sorted and end-marked."""
    for inverted in PartialIndex(index).sorted_lists():
        writer.write_string(inverted.term)
        for posting in inverted.postings:
            write_posting(writer, posting)
        write_posting_header(writer, PostingType.END, 0)


def build_partial_index(
    batch_size: int,
    batch_count: int,
    producer: Iterable[Doc],
    index_consumer: Consumer,
    stats_consumer: Consumer,
) -> None:
    """Index documents in batches, handing each partial index on when full.

    A batch ends once its raw size reaches ``batch_size`` or it holds
    ``batch_count`` documents. The statistics of all documents are handed
    to ``stats_consumer`` at the end.
    """
    stats = IndexStats()
    try:
        index = PartialIndex()
        count = 0
        size = 0
        for doc in producer:
            stats.add_doc(doc)
            parse_postings(doc, index, stats)
            count += 1
            size += doc.raw_size
            if size < batch_size and count < batch_count:
                continue
            index_consumer.consume(index)
            index = PartialIndex()
            count = 0
            size = 0
        if count:
            index_consumer.consume(index)
    finally:
        stats_consumer.consume(stats)


def save_partial_index(
    directory: str | os.PathLike[str],
    producer: Iterable[Mapping[str, list[Posting]]],
    consumer: Consumer,
) -> None:
    """Write each produced partial index to a new file and pass on its name."""
    for index in producer:
        fd, name = tempfile.mkstemp(prefix="partial.index", dir=directory)
        with open(fd, "wb") as f:
            write_partial_index(ByteWriter(f), index)
        consumer.consume(name)


def _write_partial_files(
    temp_dir: str,
    batch_size: int,
    batch_count: int,
    workers: int,
    raw_files: list[str],
    stats_consumer: ListConsumer[IndexStats],
) -> list[str]:
    doc_queue: "queue.Queue[Any]" = queue.Queue()
    index_queue: "queue.Queue[Any]" = queue.Queue()

    def parse() -> None:
        doc_consumer: QueueConsumer[Doc] = QueueConsumer(doc_queue)
        try:
            parse_dir_docs(raw_files, workers, batch_size, batch_count, doc_consumer)
        finally:
            doc_consumer.close()

    def build() -> None:
        index_consumer: QueueConsumer[PartialIndex] = QueueConsumer(index_queue)
        try:
            build_partial_index(
                batch_size,
                batch_count,
                QueueProducer(doc_queue),
                index_consumer,
                stats_consumer,
            )
        finally:
            index_consumer.close()

    files = []
    with ThreadPoolExecutor(max_workers=2) as pool:
        futures = [pool.submit(parse), pool.submit(build)]
        for index in QueueProducer(index_queue):
            fd, name = tempfile.mkstemp(prefix="index", dir=temp_dir)
            with open(fd, "wb") as f:
                write_partial_index(ByteWriter(f), index)
            files.append(name)
        for future in futures:
            future.result()
    return files


def build_index(
    batch_size: int,
    batch_count: int,
    tasks: int,
    workers: int,
    src_dir: str | os.PathLike[str],
    dst_dir: str | os.PathLike[str],
    compress: bool,
) -> BuildSummary:
    """Parse the crawled pages under ``src_dir`` and write the index to ``dst_dir``.

    ``dst_dir`` is recreated and receives the inverted lists, the term
    offsets and the document statistics. When ``tasks`` is not negative only
    the first ``batch_count * tasks`` files are read. Terms of 65535 bytes or
    more and terms with a single posting are left out.
    """
    if compress:
        raise ValueError("unsupported option: compress")

    create_dir(dst_dir)
    raw_files = sorted(read_files(src_dir))
    total = batch_count * tasks
    if total >= 0:
        raw_files = raw_files[:total]

    unigrams = two_grams = three_grams = posting_count = 0
    with tempfile.TemporaryDirectory(prefix="temp.index", dir=dst_dir) as temp_dir:
        start = time.monotonic()
        stats_consumer: ListConsumer[IndexStats] = ListConsumer()
        partial_files = _write_partial_files(
            temp_dir, batch_size, batch_count, workers, raw_files, stats_consumer
        )
        logger.info(
            "All Iters Saved: %d. Time: %.3fs.",
            len(partial_files),
            time.monotonic() - start,
        )
        index_stats = stats_consumer.collect()[0]

        start = time.monotonic()
        list_path = os.path.join(temp_dir, INDEX_FILE)
        pos_path = os.path.join(temp_dir, POS_FILE)
        with open(list_path, "wb") as list_file, open(pos_path, "wb") as pos_file:
            counter = CountingWriter(list_file)
            list_writer = ByteWriter(counter)
            pos_writer = ByteWriter(pos_file)
            prev_term = ""
            merged_lists = kway_merge_reader(
                iter_file_partial_index(path) for path in partial_files
            )
            try:
                for stream in merged_lists:
                    buf = io.BytesIO()
                    buf_writer = ByteWriter(buf)
                    buf_writer.write_string(stream.term)
                    count = 0
                    for posting in stream:
                        write_posting(buf_writer, posting)
                        count += 1
                    write_posting_header(buf_writer, PostingType.END, 0)

                    term = stream.term
                    if len(term.encode("utf-8")) >= _MAX_TERM_BYTES or count <= 1:
                        continue
                    if term <= prev_term:
                        raise ValueError(f"entry already existed or out of order: {term}")
                    prev_term = term

                    plus_count = term.count("+")
                    if plus_count == 1:
                        two_grams += 1
                    elif plus_count == 2:
                        three_grams += 1
                    else:
                        unigrams += 1
                    posting_count += count

                    pos_writer.write_compact_string(term)
                    list_writer.write(buf.getvalue())
                    pos_writer.write_uint64(counter.total)
            finally:
                merged_lists.close()

        stats_path = os.path.join(dst_dir, STATS_FILE)
        with create_file(stats_path) as stats_file:
            dump_index_stats(index_stats, stats_file)

        logger.info(
            "BatchSize: %d MB. BatchCount: %d. Tasks: %d. Unigram: %d. Twogram: %d. "
            "Threegram: %d. Postings: %d. Index Size: %s MB. Term Stats Size: %s MB. "
            "Pos Stats Size: %s MB. Time: %.3fs",
            batch_size // 1_000_000,
            batch_count,
            tasks,
            unigrams,
            two_grams,
            three_grams,
            posting_count,
            format_megabytes(os.path.getsize(list_path)),
            format_megabytes(os.path.getsize(stats_path)),
            format_megabytes(os.path.getsize(pos_path)),
            time.monotonic() - start,
        )
        os.replace(pos_path, os.path.join(dst_dir, POS_FILE))
        os.replace(list_path, os.path.join(dst_dir, INDEX_FILE))

    return BuildSummary(
        partial_indexes=len(partial_files),
        unigrams=unigrams,
        two_grams=two_grams,
        three_grams=three_grams,
        postings=posting_count,
    )


def read_pos_file(stream: IO[bytes]) -> PosStats:
    """Read the byte range of each term's list from a term offsets stream.

    The stream is left open.
    """
    stats = PosStats()
    reader = ByteReader(stream)
    start = 0
    while True:
        try:
            term = reader.read_compact_string()
        except EOFError:
            return stats
        try:
            end = reader.read_uint64()
        except EOFError as exc:
            raise TruncatedDataError(f"missing end offset for term {term!r}") from exc
        stats.term_start[term] = start
        stats.term_end[term] = end
        start = end