"""Postings, their compact binary encoding and streams of inverted lists."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Iterator, MutableMapping

from petersearch.binary import ByteReader, ByteWriter

if TYPE_CHECKING:
    from petersearch.documents import Doc
    from petersearch.stats import IndexStats

UNUSED_POSITION = 65535
_POS_MASK = 0xFFFF


class PostingType(enum.IntEnum):
    TEXT = 0
    TAG = 1
    END = 2


class PostingTag(enum.IntEnum):
    EMPTY = 0
    TITLE = 1
    H1 = 2
    H2 = 3
    H3 = 4
    B = 5
    I = 6  # noqa: E741


class EndOfPostings(Exception):
    """Raised when the end marker of a posting list is read."""


_TAG_NAMES = {
    PostingTag.TITLE: "title",
    PostingTag.H1: "h1",
    PostingTag.H2: "h2",
    PostingTag.H3: "h3",
    PostingTag.B: "b",
    PostingTag.I: "i",
}
_TAGS_BY_NAME = {name: tag for tag, name in _TAG_NAMES.items()}


@dataclass(frozen=True)
class Posting:
    """One occurrence of a term in a document."""

    type: PostingType
    doc_id: int
    tag: str = ""
    pos: int = 0

    def id(self) -> str:
        """A string that identifies the posting."""
        return f"{int(self.type)}-{self.doc_id}-{self.tag}-{self.pos}"

    def size(self) -> int:
        """Approximate in-memory size in bytes."""
        return 8 * 4 + len(self.tag)


@dataclass
class InvertedList:
    """A term and all of its postings."""

    term: str
    postings: list[Posting] = field(default_factory=list)


class PostingStream:
    """A term together with a lazily produced sequence of its postings."""

    def __init__(self, term: str, postings: Iterable[Posting]) -> None:
        self.term = term
        self._it = iter(postings)
        self.done = False

    def __iter__(self) -> Iterator[Posting]:
        return self

    def __next__(self) -> Posting:
        if self.done:
            raise StopIteration
        try:
            return next(self._it)
        except StopIteration:
            self.done = True
            raise

    def close(self) -> None:
        """Stop the stream; no more postings are produced."""
        close = getattr(self._it, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "PostingStream":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def tag_from_string(s: str) -> PostingTag:
    """Map a tag name to its code; unknown names map to ``EMPTY``."""
    return _TAGS_BY_NAME.get(s, PostingTag.EMPTY)


def tag_to_string(tag: int) -> str:
    """Map a tag code to its name; unknown codes map to the empty string."""
    return _TAG_NAMES.get(tag, "")


def parse_postings(
    doc: "Doc",
    index: MutableMapping[str, list[Posting]],
    stats: "IndexStats",
) -> None:
    """Add a posting to ``index`` for every term of ``doc`` and count it in ``stats``."""

    def add(token: str, posting: Posting) -> None:
        index.setdefault(token, []).append(posting)
        stats.add_term(doc.id, token)

    for pos, token in enumerate(doc.tokens):
        add(token, Posting(PostingType.TEXT, doc.id, "", pos & _POS_MASK))
    for token in doc.original_tokens:
        add(token, Posting(PostingType.TEXT, doc.id, "", UNUSED_POSITION))
    for pos, token in enumerate(doc.two_grams):
        add(token, Posting(PostingType.TEXT, doc.id, "", pos & _POS_MASK))
    for pos, token in enumerate(doc.three_grams):
        add(token, Posting(PostingType.TEXT, doc.id, "", pos & _POS_MASK))
    for tag, tokens in doc.tag_map.items():
        for pos, token in enumerate(tokens):
            add(token, Posting(PostingType.TAG, doc.id, tag, pos & _POS_MASK))


def encode_header(posting_type: int, doc_id_len: int) -> int:
    """Pack a posting type (high nibble) and doc id width code (low nibble)."""
    return ((int(posting_type) << 4) + doc_id_len) & 0xFF


def decode_header(header: int) -> tuple[PostingType, int]:
    """Split a header byte into posting type and doc id width code."""
    return PostingType((header >> 4) & 15), header & 15


def read_posting_header(reader: ByteReader) -> tuple[PostingType, int]:
    """Read a header byte and return (posting type, doc id width code)."""
    return decode_header(reader.read_uint8())


def write_posting_header(writer: ByteWriter, posting_type: int, doc_id: int) -> int:
    """Write the header for a posting and return the doc id width code used."""
    if doc_id <= 0xFF:
        doc_id_len = 0
    elif doc_id <= 0xFFFF:
        doc_id_len = 1
    elif doc_id <= 0xFFFF_FFFF:
        doc_id_len = 2
    else:
        doc_id_len = 3
    writer.write_uint8(encode_header(posting_type, doc_id_len))
    return doc_id_len


def _read_doc_id(reader: ByteReader, doc_id_len: int) -> int:
    if doc_id_len == 0:
        return reader.read_uint8()
    if doc_id_len == 1:
        return reader.read_uint16()
    if doc_id_len == 2:
        return reader.read_uint32()
    return reader.read_uint64()


def _write_doc_id(writer: ByteWriter, doc_id_len: int, doc_id: int) -> None:
    if doc_id_len == 0:
        writer.write_uint8(doc_id)
    elif doc_id_len == 1:
        writer.write_uint16(doc_id)
    elif doc_id_len == 2:
        writer.write_uint32(doc_id)
    else:
        writer.write_uint64(doc_id)


def read_posting(reader: ByteReader) -> Posting:
    """Read one posting; raise :class:`EndOfPostings` at the list's end marker."""
    posting_type, doc_id_len = read_posting_header(reader)
    if posting_type == PostingType.END:
        raise EndOfPostings("posting list ends")
    doc_id = _read_doc_id(reader, doc_id_len)
    tag = ""
    if posting_type == PostingType.TAG:
        tag = tag_to_string(reader.read_uint8())
    pos = reader.read_uint16()
    return Posting(posting_type, doc_id, tag, pos)


def write_posting(writer: ByteWriter, posting: Posting) -> None:
    """Write one posting in its compact form."""
    doc_id_len = write_posting_header(writer, posting.type, posting.doc_id)
    _write_doc_id(writer, doc_id_len, posting.doc_id)
    if posting.type == PostingType.TAG:
        tag = tag_from_string(posting.tag)
        if tag != PostingTag.EMPTY:
            writer.write_uint8(int(tag))
    writer.write_uint16(posting.pos)


def iter_postings(reader: ByteReader) -> Iterator[Posting]:
    """Yield postings from ``reader`` up to the end marker."""
    while True:
        try:
            posting = read_posting(reader)
        except EndOfPostings:
            return
        yield posting


def posting_sort_key(posting: Posting) -> tuple[int, int, str, int]:
    """Order postings by type, doc id, tag and position."""
    return (int(posting.type), posting.doc_id, posting.tag, posting.pos)


def collect_postings(stream: PostingStream) -> list[Posting]:
    """Drain a posting stream into a list and close it."""
    with stream:
        return list(stream)


def read_inverted_list(reader: ByteReader) -> PostingStream:
    """Read a term and return a stream over the postings that follow it.

    Raises :class:`EOFError` if the reader holds no further list.
    """
    term = reader.read_string()
    return PostingStream(term, iter_postings(reader))


def iter_file_inverted_lists(filename: str) -> Iterator[PostingStream]:
    """Yield each inverted list stored in ``filename`` in turn.

    Postings a caller leaves unread are skipped before the next list is read.
    """
    with open(filename, "rb") as f:
        reader = ByteReader(f)
        while True:
            try:
                stream = read_inverted_list(reader)
            except EOFError:
                return
            yield stream
            if not stream.done:
                stream.close()
                for _ in iter_postings(reader):
                    pass