"""Turning HTML and query text into cleaned tokens, stems and n-grams."""

from __future__ import annotations

import re
import unicodedata
from html.parser import HTMLParser
from typing import Iterable, Mapping, Sequence

from petersearch.stemmer import stem

_TOKEN_RE = re.compile(r"[a-z0-9]+")

# Elements whose text content is dropped when tags are stripped.
_SKIP_CONTENT = frozenset(
    {
        "frameset",
        "iframe",
        "noembed",
        "noframes",
        "noscript",
        "nostyle",
        "object",
        "script",
        "style",
        "title",
    }
)

_VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)

# Element name -> key it is recorded under in a tag map.
_TAG_KEYS = {
    "title": "title",
    "h1": "h1",
    "h2": "h2",
    "h3": "h3",
    "b": "b",
    "strong": "b",
    "i": "i",
    "em": "i",
}


class _TextExtractor(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._skip_depth = 0
        self._parts: list[str] = []

    def handle_starttag(self, tag: str, attrs: list) -> None:
        if tag in _SKIP_CONTENT:
            self._skip_depth += 1

    def handle_endtag(self, tag: str) -> None:
        if tag in _SKIP_CONTENT and self._skip_depth:
            self._skip_depth -= 1

    def handle_data(self, data: str) -> None:
        if not self._skip_depth:
            self._parts.append(data)

    @property
    def text(self) -> str:
        return "".join(self._parts)


class _TagCollector(HTMLParser):
    """Records the first text child of title, heading and emphasis elements."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.tags: dict[str, list[str]] = {}
        self._pending: str | None = None

    def handle_starttag(self, tag: str, attrs: list) -> None:
        self._pending = _TAG_KEYS.get(tag)

    def handle_startendtag(self, tag: str, attrs: list) -> None:
        self._pending = None if tag in _VOID_ELEMENTS else _TAG_KEYS.get(tag)

    def handle_endtag(self, tag: str) -> None:
        self._pending = None

    def handle_comment(self, data: str) -> None:
        self._pending = None

    def handle_data(self, data: str) -> None:
        if self._pending is not None:
            self.tags.setdefault(self._pending, []).append(" ".join(data.split()))
            self._pending = None


def _strip_tags(s: str) -> str:
    extractor = _TextExtractor()
    extractor.feed(s)
    extractor.close()
    return extractor.text


def extract_tag_map(s: str) -> dict[str, list[str]]:
    """Map title, h1-h3, bold and italic tags to their whitespace-collapsed text.

    ``strong`` is recorded as ``b`` and ``em`` as ``i``. Only an element whose
    first child is text contributes.
    """
    collector = _TagCollector()
    collector.feed(s)
    collector.close()
    return collector.tags


def sanitize(s: str) -> str:
    """Strip markup, decode entities, blank out punctuation and lower-case."""
    text = _strip_tags(s)
    return "".join(
        " " if unicodedata.category(c).startswith("P") else c for c in text
    ).lower()


def parse_tokens(s: str) -> list[str]:
    """Return the runs of lower-case ASCII letters and digits in ``s``."""
    return _TOKEN_RE.findall(s)


def parse_tag_map(tag_map: Mapping[str, Iterable[str]]) -> dict[str, list[str]]:
    """Tokenize every text recorded under each tag."""
    return {
        tag: [token for text in texts for token in parse_tokens(sanitize(text))]
        for tag, texts in tag_map.items()
    }


def stem_tokens(tokens: Iterable[str]) -> list[str]:
    """Stem each token."""
    return [stem(token) for token in tokens]


def _ngrams(tokens: Sequence[str], n: int) -> list[str]:
    tokens = list(tokens)
    return ["+".join(window) for window in zip(*(tokens[i:] for i in range(n)))]


def two_grams(tokens: Sequence[str]) -> list[str]:
    """Join each pair of adjacent tokens with ``+``."""
    return _ngrams(tokens, 2)


def three_grams(tokens: Sequence[str]) -> list[str]:
    """Join each run of three adjacent tokens with ``+``."""
    return _ngrams(tokens, 3)


def four_grams(tokens: Sequence[str]) -> list[str]:
    """Join each run of four adjacent tokens with ``+``."""
    return _ngrams(tokens, 4)