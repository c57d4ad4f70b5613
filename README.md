# petersearch

A library for indexing a corpus of crawled web pages. It parses HTML
pages stored as JSON, builds an on-disk inverted index of stemmed words,
two-grams and three-grams, and scores documents against query terms with
TF-IDF or BM25. It has no third-party dependencies.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Corpus layout

The corpus directory holds one sub-directory per site, and each
sub-directory holds JSON files like this:

```json
{"url": "https://www.example.com/page", "content": "<html>...</html>", "encoding": "utf-8"}
```

`petersearch.documents.parse_dir_docs` skips files of at most 100 bytes or
of at least twice the batch size, pages whose host and path were seen
before, pages with fewer than 100 or more than 65535 tokens, and pages
whose simhash fingerprint was seen before. Kept documents get ids from 0.

## Building an index

```python
from petersearch.index import build_index

summary = build_index(
    batch_size=100_000_000,  # bytes of raw pages per partial index
    batch_count=1000,        # pages per partial index
    tasks=-1,                # negative: read every file
    workers=4,               # parsing threads
    src_dir="DEV",
    dst_dir=".index",
    compress=False,          # True raises ValueError
)
print(summary.unigrams, summary.two_grams, summary.three_grams, summary.postings)
```

When `tasks` is not negative only the first `batch_count * tasks` files
(in sorted order) are read. `dst_dir` is recreated and receives three files:

- `term_list`: the posting lists, sorted by term
- `term_pos`: each term with the end offset of its list in `term_list`
- `term_stats`: document count, URLs and per-document term counts

Terms with a single posting and terms of 65535 bytes or more are left out.

## Reading an index and scoring

```python
from petersearch.binary import ByteReader
from petersearch.documents import parse_query
from petersearch.index import read_pos_file
from petersearch.postings import InvertedList, collect_postings, read_inverted_list
from petersearch.ranker import DocStats, Ranker, collect_doc_stats, merge_doc_stats, top_k
from petersearch.stats import load_index_stats

with open(".index/term_stats", "rb") as f:
    index_stats = load_index_stats(f)
with open(".index/term_pos", "rb") as f:
    pos = read_pos_file(f)

terms = parse_query("machine learning")
stats = []
with open(".index/term_list", "rb") as f:
    for term in terms:
        if term not in pos.term_start:
            continue
        f.seek(pos.term_start[term])
        stream = read_inverted_list(ByteReader(f))
        stats.append(collect_doc_stats(InvertedList(stream.term, collect_postings(stream))))

ranker = Ranker(index_stats)
for score in top_k(ranker.bm25(terms, merge_doc_stats(*stats)), 20):
    print(score.doc_id, index_stats.doc_id_to_url.get(score.doc_id, ""), score.value)
```

`parse_query` expands a query into its words, their stems, two-grams and
three-grams; pass a set of stop words (for example from
`documents.load_stopwords(path)`) to drop those terms. No stop-word list is
bundled.

## Modules

- `petersearch.tokens`: stripping HTML, decoding entities, blanking
  punctuation, tokenising, n-grams and collecting the text of `title`,
  `h1`–`h3`, `b`/`strong` and `i`/`em` elements
- `petersearch.stemmer`: English (Porter2) stemming
- `petersearch.documents`: reading raw pages, parsing them into `Doc`
  records and the threaded, deduplicating `parse_dir_docs`
- `petersearch.postings`: the `Posting` record, its compact binary
  encoding and `PostingStream`s over inverted lists
- `petersearch.index`: `PartialIndex`, partial index files and `build_index`
- `petersearch.merge`: k-way merging of sorted partial indexes and lists
- `petersearch.stats`: `IndexStats`, `PosStats` and their storage
- `petersearch.ranker`: `DocStats`, `Ranker.tfidf`, `Ranker.bm25`, `top_k`
- `petersearch.binary`, `petersearch.stream`, `petersearch.sysutil`:
  binary reading and writing, producer/consumer helpers, file and memory
  helpers

## Ranking

Only postings found inside `title` (5), `h1` (3), `h2` (2), `h3` (1) and
`b`/`i` (0.5) elements add weight to a term in a document; two-grams weigh
double and three-grams quadruple. TF-IDF divides by document length and
BM25 (k = 1.5, b = 0.75) normalises by average document length.

## What this package does not do

It offers no query engine object, no caching of inverted lists, no
interactive prompt and no command-line programs. Querying an index means
combining the functions above as in the example.