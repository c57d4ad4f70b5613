import json
import os

import pytest

from petersearch.documents import (
    Doc,
    RawDoc,
    load_stopwords,
    parse_dir_docs,
    parse_doc,
    parse_docs,
    parse_query,
    read_files,
    read_raw_doc,
    read_raw_docs,
    simhash,
)
from petersearch.stream import ListConsumer
from petersearch.tokens import stem, stem_tokens, three_grams, two_grams


def _write_json(path, url, content):
    data = json.dumps({"url": url, "content": content, "encoding": "utf-8"})
    path.write_text(data, encoding="utf-8")
    return str(path)


def _long_content(prefix, count=120):
    words = " ".join(f"{prefix}{n}" for n in range(count))
    return f"<html><body><p>{words}</p></body></html>"


def test_load_stopwords(tmp_path):
    path = tmp_path / "stopwords.txt"
    path.write_text("a the\nand\n  of\n", encoding="utf-8")
    assert load_stopwords(path) == {"a", "the", "and", "of"}


def test_simhash_is_deterministic_and_case_insensitive():
    assert simhash("Hello World") == simhash("hello world")
    assert simhash("alpha beta gamma") == simhash("alpha beta gamma")


def test_simhash_of_empty_text_sets_every_bit():
    assert simhash("") == (1 << 64) - 1


def test_simhash_fits_in_64_bits():
    value = simhash("some words of text here")
    assert 0 <= value < (1 << 64)


def test_read_files_lists_sorted_subdirectory_files(tmp_path):
    (tmp_path / "b").mkdir()
    (tmp_path / "a").mkdir()
    (tmp_path / "b" / "2.json").write_text("{}")
    (tmp_path / "b" / "1.json").write_text("{}")
    (tmp_path / "a" / "z.json").write_text("{}")
    assert read_files(tmp_path) == [
        os.path.join(tmp_path, "a", "z.json"),
        os.path.join(tmp_path, "b", "1.json"),
        os.path.join(tmp_path, "b", "2.json"),
    ]


def test_read_files_rejects_top_level_file(tmp_path):
    (tmp_path / "stray.json").write_text("{}")
    with pytest.raises(NotADirectoryError):
        read_files(tmp_path)


def test_read_raw_doc_fields_and_size(tmp_path):
    path = _write_json(tmp_path / "page.json", "http://example.com/x", "<p>hi</p>")
    raw = read_raw_doc(path)
    assert raw.url == "http://example.com/x"
    assert raw.content == "<p>hi</p>"
    assert raw.encoding == "utf-8"
    assert raw.size == os.path.getsize(path)


def test_read_raw_doc_invalid_json(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("not json at all", encoding="utf-8")
    with pytest.raises(ValueError):
        read_raw_doc(path)


def test_read_raw_docs_keeps_order(tmp_path):
    first = _write_json(tmp_path / "1.json", "http://example.com/1", "one")
    second = _write_json(tmp_path / "2.json", "http://example.com/2", "two")
    assert [raw.url for raw in read_raw_docs([second, first])] == [
        "http://example.com/2",
        "http://example.com/1",
    ]


def test_parse_doc_tokens_grams_and_tags():
    content = (
        "<html><head><title>Running Dogs</title></head>"
        "<body><h1>Fast cats</h1><p>running dogs</p></body></html>"
    )
    doc = parse_doc(RawDoc(url="http://example.com/", content=content, size=42))
    assert doc.url == "http://example.com/"
    assert doc.raw_size == 42
    assert doc.original_tokens == ["fast", "cats", "running", "dogs"]
    assert doc.tokens == stem_tokens(doc.original_tokens)
    assert doc.two_grams == two_grams(doc.tokens)
    assert doc.three_grams == three_grams(doc.tokens)
    assert doc.tag_map["title"] == ["running", "dogs"]
    assert doc.tag_map["h1"] == ["fast", "cats"]


def test_parse_docs_parses_each():
    raws = [RawDoc(url="u1", content="alpha"), RawDoc(url="u2", content="beta")]
    docs = parse_docs(raws)
    assert [d.url for d in docs] == ["u1", "u2"]
    assert [d.original_tokens for d in docs] == [["alpha"], ["beta"]]


def test_parse_query_filters_stopwords_but_keeps_grams():
    terms = parse_query("the running dogs", {"the"})
    assert "the" not in terms
    assert terms[:2] == ["running", "dogs"]
    assert "the+" + stem("running") in terms
    assert stem("running") + "+" + stem("dogs") in terms


def test_parse_query_without_stopwords_counts():
    terms = parse_query("running dogs")
    # two words, two stems, one two-gram, no three-gram
    assert len(terms) == 5
    assert terms[-1] == stem("running") + "+" + stem("dogs")


def test_doc_print(capsys):
    doc = Doc(url="u", tokens=["a", "b"], tag_map={"h1": ["c"]})
    doc.print()
    out = capsys.readouterr().out.splitlines()
    assert out == ["[a b]", "h1: [c]"]


@pytest.fixture
def corpus(tmp_path):
    site = tmp_path / "site"
    site.mkdir()
    _write_json(site / "01.json", "http://example.com/one?x=1", _long_content("apple"))
    _write_json(site / "02.json", "http://example.com/two", _long_content("banana"))
    # same host and path as the first page
    _write_json(site / "03.json", "http://example.com/one?x=2", _long_content("cherry"))
    # same content as the second page under another URL
    _write_json(site / "04.json", "http://example.com/three", _long_content("banana"))
    # too few tokens
    _write_json(
        site / "05.json",
        "http://example.com/short-page-with-a-rather-long-address",
        "<p>only a handful of words here in this page</p>",
    )
    # file too small
    (site / "06.json").write_text('{"url":"http://example.com/s"}', encoding="utf-8")
    return tmp_path


@pytest.mark.parametrize("batch_count", [1, 100])
def test_parse_dir_docs_dedups_and_filters(corpus, batch_count):
    consumer = ListConsumer()
    summary = parse_dir_docs(read_files(corpus), 1, 100_000_000, batch_count, consumer)
    docs = consumer.collect()
    assert [d.url for d in docs] == ["http://example.com/one?x=1", "http://example.com/two"]
    assert [d.id for d in docs] == [0, 1]
    assert summary.documents == 2
    assert summary.duplicates == 2
    assert summary.small == 2
    assert summary.large == 0


def test_parse_dir_docs_skips_large_files(corpus):
    consumer = ListConsumer()
    summary = parse_dir_docs(read_files(corpus), 1, 200, 10, consumer)
    assert consumer.collect() == []
    assert summary.large == 5
    assert summary.small == 1


def test_parse_dir_docs_many_workers_assigns_sequential_ids(corpus):
    consumer = ListConsumer()
    summary = parse_dir_docs(read_files(corpus), 0, 100_000_000, 1, consumer)
    docs = consumer.collect()
    assert sorted(d.id for d in docs) == list(range(summary.documents))
    assert len({simhash(" ".join(d.tokens)) for d in docs}) == len(docs)


def test_parse_dir_docs_propagates_bad_json(tmp_path):
    site = tmp_path / "site"
    site.mkdir()
    (site / "bad.json").write_text("x" * 200, encoding="utf-8")
    with pytest.raises(ValueError):
        parse_dir_docs(read_files(tmp_path), 1, 100_000_000, 10, ListConsumer())