"""Reading crawled pages from disk and turning them into tokenized documents."""

from __future__ import annotations

import json
import logging
import os
import queue
import re
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Collection, Iterable, Protocol
from urllib.parse import urlsplit

from petersearch.tokens import (
    extract_tag_map,
    parse_tag_map,
    parse_tokens,
    sanitize,
    stem_tokens,
    three_grams,
    two_grams,
)

logger = logging.getLogger(__name__)

MIN_FILE_SIZE = 100
MIN_DOC_TOKENS = 100
MAX_DOC_TOKENS = 65535

_FNV64_OFFSET = 14695981039346656037
_FNV64_PRIME = 1099511628211
_MASK64 = (1 << 64) - 1
_WORD_BOUNDARIES = re.compile(r"[\w']+(?:://[\w./]+)?")

_WORKER_DONE = object()


class Consumer(Protocol):
    def consume(self, value: Any) -> None: ...


@dataclass
class RawDoc:
    """A crawled page as stored on disk."""

    url: str = ""
    content: str = ""
    encoding: str = ""
    size: int = 0


@dataclass
class Doc:
    """A parsed page: its tokens, stems, n-grams and emphasised text."""

    url: str
    tokens: list[str] = field(default_factory=list)
    two_grams: list[str] = field(default_factory=list)
    three_grams: list[str] = field(default_factory=list)
    original_tokens: list[str] = field(default_factory=list)
    tag_map: dict[str, list[str]] = field(default_factory=dict)
    raw_size: int = 0
    id: int = 0

    def print(self) -> None:
        """Write the tokens and each tag's tokens to standard output."""
        print(_format_list(self.tokens))
        for tag, tokens in self.tag_map.items():
            print(f"{tag}: {_format_list(tokens)}")


@dataclass(frozen=True)
class ParseSummary:
    """Counts gathered while parsing a set of raw files."""

    documents: int
    large: int
    small: int
    duplicates: int


def _format_list(items: Iterable[str]) -> str:
    return "[" + " ".join(items) + "]"


def load_stopwords(path: str | os.PathLike[str]) -> frozenset[str]:
    """Read whitespace-separated stop words from a text file."""
    with open(path, encoding="utf-8") as f:
        return frozenset(f.read().split())


def _fnv1_64(data: bytes) -> int:
    h = _FNV64_OFFSET
    for byte in data:
        h = (h * _FNV64_PRIME) & _MASK64
        h ^= byte
    return h


def simhash(text: str) -> int:
    """Return the 64-bit simhash of the lower-cased words of ``text``."""
    vector = [0] * 64
    for word in _WORD_BOUNDARIES.findall(text.lower()):
        h = _fnv1_64(word.encode("utf-8"))
        for bit in range(64):
            vector[bit] += 1 if (h >> bit) & 1 else -1
    fingerprint = 0
    for bit, weight in enumerate(vector):
        if weight >= 0:
            fingerprint |= 1 << bit
    return fingerprint


def read_files(src_dir: str | os.PathLike[str]) -> list[str]:
    """List every file one directory below ``src_dir``, sorted by name."""
    found = [
        os.path.join(src_dir, dirname, filename)
        for dirname in sorted(os.listdir(src_dir))
        for filename in sorted(os.listdir(os.path.join(src_dir, dirname)))
    ]
    logger.info("Raw files count: %d", len(found))
    return found


def read_raw_doc(path: str | os.PathLike[str]) -> RawDoc:
    """Load one crawled page stored as a JSON object."""
    with open(path, "rb") as f:
        data = f.read()
    try:
        obj = json.loads(data)
    except ValueError:
        logger.error("failed to unmarshal file %s", path)
        raise
    if not isinstance(obj, dict):
        raise ValueError(f"{path}: expected a JSON object")
    return RawDoc(
        url=str(obj.get("url") or ""),
        content=str(obj.get("content") or ""),
        encoding=str(obj.get("encoding") or ""),
        size=len(data),
    )


def read_raw_docs(paths: Iterable[str | os.PathLike[str]]) -> list[RawDoc]:
    """Load every page in ``paths``, in order."""
    return [read_raw_doc(path) for path in paths]


def _url_key(url: str) -> str:
    parts = urlsplit(url)
    host = parts.netloc.rpartition("@")[2]
    return host + parts.path


class _DedupState:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._urls: set[str] = set()
        self._hashes: set[int] = set()
        self.large = 0
        self.small = 0
        self.duplicates = 0

    def claim_url(self, key: str) -> bool:
        with self._lock:
            if key in self._urls:
                self.duplicates += 1
                return False
            self._urls.add(key)
            return True

    def claim_hash(self, value: int) -> bool:
        with self._lock:
            if value in self._hashes:
                self.duplicates += 1
                return False
            self._hashes.add(value)
            return True

    def add_small(self) -> None:
        with self._lock:
            self.small += 1

    def add_large(self) -> None:
        with self._lock:
            self.large += 1


def _process_batch(paths: list[str], state: _DedupState) -> list[Doc]:
    raw_docs = [
        raw for raw in read_raw_docs(paths) if state.claim_url(_url_key(raw.url))
    ]
    kept = []
    for doc in parse_docs(raw_docs):
        if len(doc.tokens) < MIN_DOC_TOKENS:
            state.add_small()
            continue
        if len(doc.tokens) > MAX_DOC_TOKENS:
            state.add_large()
            continue
        if state.claim_hash(simhash(" ".join(doc.tokens))):
            kept.append(doc)
    return kept


def _read_worker(
    files: "queue.Queue[str | None]",
    out: "queue.Queue[Any]",
    state: _DedupState,
    batch_size: int,
    batch_count: int,
) -> None:
    try:
        batch: list[str] = []
        current_size = 0
        while (path := files.get()) is not None:
            file_size = os.stat(path).st_size
            if file_size <= MIN_FILE_SIZE:
                state.add_small()
                continue
            if file_size >= batch_size * 2:
                state.add_large()
                continue
            current_size += file_size
            batch.append(path)
            if current_size < batch_size and len(batch) < batch_count:
                continue
            logger.info(
                "Processing Batch: (Size: %d MB, Count: %d)",
                current_size // 1_000_000,
                len(batch),
            )
            out.put(_process_batch(batch, state))
            batch = []
            current_size = 0
        if batch:
            out.put(_process_batch(batch, state))
    finally:
        out.put(_WORKER_DONE)


def parse_dir_docs(
    raw_files: Iterable[str],
    workers: int,
    batch_size: int,
    batch_count: int,
    consumer: Consumer,
) -> ParseSummary:
    """Parse raw files on worker threads and hand each kept document to ``consumer``.

    Files of at most 100 bytes or of at least twice ``batch_size`` are
    skipped, as are pages seen before under the same host and path, pages
    with fewer than 100 or more than 65535 tokens, and pages whose simhash
    was seen before. Documents get ids from 0 in the order they are consumed.
    """
    if workers <= 0:
        workers = (os.cpu_count() or 1) * 2
    logger.info("Batch Size: %d MB, Batch Count: %d", batch_size // 1_000_000, batch_count)

    files: "queue.Queue[str | None]" = queue.Queue()
    for path in raw_files:
        files.put(path)
    for _ in range(workers):
        files.put(None)

    out: "queue.Queue[Any]" = queue.Queue()
    state = _DedupState()
    start = time.monotonic()
    doc_id = 0
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [
            pool.submit(_read_worker, files, out, state, batch_size, batch_count)
            for _ in range(workers)
        ]
        running = workers
        while running:
            item = out.get()
            if item is _WORKER_DONE:
                running -= 1
                continue
            for doc in item:
                doc.id = doc_id
                doc_id += 1
                consumer.consume(doc)
        for future in futures:
            future.result()
    logger.info("Parse phase completed.")
    logger.info(
        "Parse thread count: %d. Processed Raw Docs: %d. Large Files: %d. "
        "Small Files: %d. Duplicate Files: %d. Using %.3fs",
        workers,
        doc_id,
        state.large,
        state.small,
        state.duplicates,
        time.monotonic() - start,
    )
    return ParseSummary(
        documents=doc_id,
        large=state.large,
        small=state.small,
        duplicates=state.duplicates,
    )


def parse_docs(raw_docs: Iterable[RawDoc]) -> list[Doc]:
    """Parse every raw page, in order."""
    return [parse_doc(raw) for raw in raw_docs]


def parse_doc(raw_doc: RawDoc) -> Doc:
    """Tokenize, stem and n-gram a raw page and collect its emphasised text."""
    tokens = parse_tokens(sanitize(raw_doc.content))
    stemmed = stem_tokens(tokens)
    return Doc(
        url=raw_doc.url,
        tokens=stemmed,
        two_grams=two_grams(stemmed),
        three_grams=three_grams(stemmed),
        original_tokens=tokens,
        tag_map=parse_tag_map(extract_tag_map(raw_doc.content)),
        raw_size=raw_doc.size,
    )


def parse_query(query: str, stopwords: Collection[str] = frozenset()) -> list[str]:
    """Expand a query into its words, stems, two-grams and three-grams.

    Terms that are themselves stop words are dropped.
    """
    tokens = parse_tokens(sanitize(query))
    stemmed = stem_tokens(tokens)
    terms = [*tokens, *stemmed, *two_grams(stemmed), *three_grams(stemmed)]
    return [term for term in terms if term not in stopwords]