"""Tokenising crawled HTML pages, building an on-disk inverted index and TF-IDF/BM25 scoring."""

__version__ = "0.1.0"