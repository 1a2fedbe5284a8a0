import pytest

from shardstore.errors import ShardStoreError
from shardstore.indexing.pipeline import collect_file_texts, embed_in_batches, process_text, read_lines
from shardstore.vector_store import Database


def upper(text, path, line):
    return text.upper()


def lower(text, path, line):
    return text.lower()


def test_preprocessor_changes_only_the_embedded_text(recording_embedder, database_root):
    db = Database(recording_embedder, path=database_root)
    assert db.index_document("Mixed Case", preprocessor=upper) is True

    assert recording_embedder.seen == ["MIXED CASE"]
    assert db.indexes["TestDatabase"].documents[0].text == "Mixed Case"


def test_postprocessor_changes_only_the_stored_text(recording_embedder, database_root):
    db = Database(recording_embedder, path=database_root)
    assert db.index_document("Mixed Case", postprocessor=lower) is True

    assert recording_embedder.seen == ["Mixed Case"]
    assert db.indexes["TestDatabase"].documents[0].text == "mixed case"


def test_processors_both_see_the_original_text():
    processed = process_text("Original", preprocessor=upper, postprocessor=lambda text, path, line: text + "!")
    assert processed.embed_text == "ORIGINAL"
    assert processed.stored_text == "Original!"
    assert processed.accepted


def test_preprocessor_veto_skips_postprocessor():
    calls = []
    processed = process_text(
        "text",
        preprocessor=lambda text, path, line: None,
        postprocessor=lambda text, path, line: calls.append(text) or text,
    )
    assert processed.vetoed_by_preprocessor
    assert not processed.accepted
    assert calls == []


@pytest.mark.parametrize("which", ["preprocessor", "postprocessor"])
def test_veto_rejects_single_document(recording_embedder, database_root, which):
    db = Database(recording_embedder, path=database_root)
    assert db.index_document("vetoed", **{which: lambda text, path, line: None}) is False
    assert db.count == 0


@pytest.fixture
def corpus(tmp_path):
    path = tmp_path / "corpus.txt"
    path.write_text(
        "alpha line\n"
        "\n"
        "skip this line\n"
        "gamma line\n"
        "stop here\n"
        "epsilon line\n",
        encoding="utf-8",
    )
    return path


def test_read_lines_numbers_from_one_and_skips_blanks(corpus):
    assert list(read_lines(corpus)) == [
        (1, "alpha line"),
        (3, "skip this line"),
        (4, "gamma line"),
        (5, "stop here"),
        (6, "epsilon line"),
    ]


def test_file_preprocessor_veto_skips_line(recording_embedder, database_root, corpus):
    db = Database(recording_embedder, path=database_root)
    stored = db.index_document_file(
        corpus, preprocessor=lambda text, path, line: None if text.startswith("skip") else text
    )
    assert stored == 4
    texts = [doc.text for doc in db.indexes["TestDatabase"].documents]
    assert texts == ["alpha line", "gamma line", "stop here", "epsilon line"]


def test_file_postprocessor_veto_stops_the_file(recording_embedder, database_root, corpus):
    db = Database(recording_embedder, path=database_root)
    stored = db.index_document_file(
        corpus, postprocessor=lambda text, path, line: None if text.startswith("stop") else text
    )
    assert stored == 3
    texts = [doc.text for doc in db.indexes["TestDatabase"].documents]
    assert texts == ["alpha line", "skip this line", "gamma line"]


def test_file_processors_receive_path_and_line_number(recording_embedder, database_root, corpus):
    seen = []

    def record(text, path, line):
        seen.append((path, line))
        return text

    db = Database(recording_embedder, path=database_root)
    db.index_document_file(corpus, preprocessor=record)

    assert seen == [(str(corpus), n) for n in (1, 3, 4, 5, 6)]


def test_file_into_missing_index(recording_embedder, database_root, corpus):
    db = Database(recording_embedder, path=database_root)
    assert db.index_document_file(corpus, index_name="missing") == 0
    assert recording_embedder.seen == []


def test_missing_file_raises(recording_embedder, database_root, tmp_path):
    db = Database(recording_embedder, path=database_root)
    with pytest.raises(FileNotFoundError):
        db.index_document_file(tmp_path / "absent.txt")


def test_collect_file_texts_keeps_provenance(corpus):
    accepted = collect_file_texts(corpus)
    assert [(item.line_number, item.source_text) for item in accepted][:2] == [
        (1, "alpha line"),
        (3, "skip this line"),
    ]
    assert all(item.source_path == str(corpus) for item in accepted)


def test_embed_in_batches_preserves_order(recording_embedder):
    texts = [f"text {i}" for i in range(7)]
    vectors = embed_in_batches(texts, recording_embedder, batch_size=3)
    assert len(vectors) == 7
    assert recording_embedder.batch_calls == 3
    assert vectors[4] == recording_embedder.inner.get_vector("text 4")


def test_embed_in_batches_detects_short_responses():
    class ShortEmbedder:
        def get_vector(self, text):
            return [1.0]

        def get_vectors(self, texts):
            return [[1.0]]

    with pytest.raises(ShardStoreError):
        embed_in_batches(["a", "b"], ShortEmbedder(), batch_size=2)
