from pathlib import Path

import pytest

from kb_embedder.indexing.change_detector import file_md5
from kb_embedder.indexing.history import HistoryError
from kb_embedder.indexing.indexer import CodebaseIndexer
from kb_embedder.indexing.parsers import build_registry

MODULE = (
    "class Foo:\n"
    "    def bar(self):\n"
    "        return 1\n"
    "\n"
    "\n"
    "def baz():\n"
    "    return 2\n"
)


class FakeHistory:
    def __init__(self, messages=None, error=False):
        self.messages = messages or []
        self.error = error
        self.calls = []

    def last_commit_messages(self, file_path, n):
        self.calls.append((file_path, n))
        if self.error:
            raise HistoryError("no git")
        return list(self.messages)


@pytest.fixture
def project(make_tree):
    return make_tree({"pkg/mod.py": MODULE, "README.md": "# Hi\n"})


def make_indexer(root, store, embedder=None, **kwargs):
    registry = build_registry([".py", ".md"], 1600)
    return CodebaseIndexer(str(root), store, registry, embedder=embedder, **kwargs)


def row_snapshot(record):
    block = record.block
    return (record.id, block.identity, block.relative_path, block.raw_text,
            block.commit_messages, record.embedding_text)


def test_full_run_stores_unique_blocks(project, store, fake_embedder):
    stats = make_indexer(project, store, fake_embedder).index_project()

    records = list(store.iter_records())
    assert stats.files_scanned == 2
    assert stats.files_to_process == 2
    assert stats.blocks_saved == 3
    assert stats.embeddings_generated == 3
    assert len(records) == 3
    assert len({r.block.identity for r in records}) == 3
    assert all(r.has_embedding for r in records)
    assert [r.block.relative_path for r in records] == ["README.md", "pkg/mod.py", "pkg/mod.py"]
    assert fake_embedder.calls == [r.embedding_text for r in records]


def test_second_run_does_nothing(project, store, fake_embedder):
    indexer = make_indexer(project, store, fake_embedder)
    indexer.index_project()
    fake_embedder.calls.clear()

    stats = indexer.index_project()

    assert stats.files_to_process == 0
    assert fake_embedder.calls == []
    assert len(list(store.iter_records())) == 3


def test_changed_file_replaces_its_blocks(project, store, fake_embedder):
    indexer = make_indexer(project, store, fake_embedder)
    indexer.index_project()

    (project / "pkg" / "mod.py").write_text("def qux():\n    return 3\n", encoding="utf-8")
    stats = indexer.index_project()

    assert stats.files_to_process == 1
    names = sorted(r.block.method_name or "" for r in store.iter_records())
    assert names == ["", "qux"]


def test_deleted_file_is_pruned(project, store, fake_embedder):
    indexer = make_indexer(project, store, fake_embedder)
    indexer.index_project()

    (project / "README.md").unlink()
    indexer.index_project()

    assert {r.block.relative_path for r in store.iter_records()} == {"pkg/mod.py"}
    assert store.get_file_hash("README.md") is None


def test_existing_and_repeated_blocks_are_embedded_once(project, store, fake_embedder):
    indexer = make_indexer(project, store, fake_embedder)
    blocks = indexer.extract_blocks(["pkg/mod.py"])

    stats = indexer.store_blocks(blocks + blocks)
    assert stats.blocks_saved == 2
    assert stats.blocks_existing == 2
    assert len(fake_embedder.calls) == 2

    again = indexer.store_blocks(indexer.extract_blocks(["pkg/mod.py"]))
    assert again.blocks_saved == 0
    assert again.blocks_existing == 2
    assert len(fake_embedder.calls) == 2


def test_two_phase_fills_only_vectors(project, store, fake_embedder):
    indexer = make_indexer(project, store, fake_embedder)

    stats = indexer.index_project(defer_embeddings=True)
    assert stats.blocks_saved == 3
    assert fake_embedder.calls == []
    before = [row_snapshot(r) for r in store.iter_records()]
    assert len(store.get_blocks_without_embeddings()) == 3

    backfill = indexer.backfill_embeddings()

    assert backfill.embeddings_generated == 3
    assert store.get_blocks_without_embeddings() == []
    records = list(store.iter_records())
    assert [row_snapshot(r) for r in records] == before
    assert all(r.has_embedding for r in records)
    assert fake_embedder.calls == [snapshot[-1] for snapshot in before]


def test_preprocess_without_embedder(project, store):
    stats = make_indexer(project, store).index_project(defer_embeddings=True)
    assert stats.blocks_saved == 3

    with pytest.raises(ValueError):
        make_indexer(project, store).backfill_embeddings()


def test_combined_mode_requires_embedder(project, store):
    indexer = make_indexer(project, store)
    with pytest.raises(ValueError):
        indexer.store_blocks(indexer.extract_blocks(["pkg/mod.py"]))


def test_backfill_with_nothing_pending(store, fake_embedder, make_tree):
    root = make_tree({})
    stats = make_indexer(root, store, fake_embedder).backfill_embeddings()
    assert stats.embeddings_generated == 0
    assert fake_embedder.calls == []


def test_embedding_failure_skips_block(project, store, embedder_factory):
    embedder = embedder_factory(fail_on=lambda text: "baz" in text)

    stats = make_indexer(project, store, embedder).index_project()

    assert stats.errors == 1
    assert stats.blocks_saved == 2
    assert "baz" not in [r.block.method_name for r in store.iter_records()]
    assert store.get_file_hash("pkg/mod.py") == "retry:" + file_md5(project / "pkg" / "mod.py")
    assert store.get_file_hash("README.md") == file_md5(project / "README.md")


def test_failed_block_is_retried_on_next_run(project, store, embedder_factory):
    make_indexer(project, store, embedder_factory(fail_on=lambda text: "baz" in text)).index_project()
    healthy = embedder_factory()

    stats = make_indexer(project, store, healthy).index_project()

    assert stats.files_to_process == 1
    assert stats.blocks_existing == 1
    assert stats.blocks_saved == 1
    assert len(healthy.calls) == 1
    assert "baz" in healthy.calls[0]
    assert sorted(r.block.method_name or "" for r in store.iter_records()) == ["", "bar", "baz"]


def test_file_edited_after_failure_keeps_only_current_spans(project, store, embedder_factory):
    make_indexer(project, store, embedder_factory(fail_on=lambda text: "baz" in text)).index_project()
    module = project / "pkg" / "mod.py"
    module.write_text("# header\n" + MODULE, encoding="utf-8")

    stats = make_indexer(project, store, embedder_factory()).index_project()

    spans = sorted(
        (r.block.method_name, r.block.start_line, r.block.end_line)
        for r in store.iter_records() if r.block.relative_path == "pkg/mod.py"
    )
    assert stats.files_to_process == 1
    assert spans == [("bar", 3, 4), ("baz", 7, 8)]
    assert store.get_file_hash("pkg/mod.py") == file_md5(module)


def test_abandoned_run_marks_only_files_with_missing_blocks(project, store, fake_embedder):
    make_indexer(project, store, fake_embedder).index_project()
    (project / "extra.py").write_text("def extra():\n    return 0\n", encoding="utf-8")
    indexer = make_indexer(project, store, fake_embedder, batch_timeout=0)
    indexer.detector.detect(["extra.py"])

    stats = indexer.store_blocks(indexer.extract_blocks(["extra.py", "pkg/mod.py"]))

    assert stats.timed_out
    assert store.get_file_hash("extra.py") == "retry:" + file_md5(project / "extra.py")
    assert store.get_file_hash("pkg/mod.py") == file_md5(project / "pkg" / "mod.py")


def test_relative_root_stores_absolute_paths(project, store, fake_embedder, monkeypatch):
    monkeypatch.chdir(project)
    make_indexer(".", store, fake_embedder).index_project()

    paths = {r.block.file_path for r in store.iter_records()}
    assert paths == {str(project.resolve() / "README.md"), str(project.resolve() / "pkg" / "mod.py")}
    assert all(Path(p).is_absolute() for p in paths)

    absolute = make_indexer(project, store, fake_embedder)
    stats = absolute.store_blocks(absolute.extract_blocks(["pkg/mod.py"]))
    assert stats.blocks_saved == 0
    assert stats.blocks_existing == 2


def test_zero_deadline_abandons_embedding(project, store, fake_embedder):
    stats = make_indexer(project, store, fake_embedder, batch_timeout=0).index_project()

    assert stats.timed_out
    assert stats.blocks_saved == 0
    assert fake_embedder.calls == []
    assert store.get_tracked_files() == ["README.md", "pkg/mod.py"]
    assert all(store.get_file_hash(rel).startswith("retry:") for rel in store.get_tracked_files())


def test_batch_path_groups_blocks(project, store, fake_embedder):
    stats = make_indexer(project, store, fake_embedder, batch_size=2).index_project()

    assert stats.blocks_saved == 3
    assert [len(batch) for batch in fake_embedder.batch_calls] == [2]
    assert len(fake_embedder.calls) == 1


def test_failed_batch_skips_its_blocks(project, store, embedder_factory):
    embedder = embedder_factory(fail_on=lambda text: "baz" in text)

    stats = make_indexer(project, store, embedder, batch_size=2).index_project()

    # README + bar go in the first batch, baz alone in the second
    assert stats.blocks_saved == 2
    assert stats.errors == 1


def test_commit_messages_are_attached(project, store, fake_embedder):
    history = FakeHistory(["fix bug", "init"])
    indexer = make_indexer(project, store, fake_embedder, history=history, n_commits=2)

    blocks = indexer.extract_blocks(["pkg/mod.py"])

    assert history.calls == [("pkg/mod.py", 2)]
    assert all(b.commit_messages == ["fix bug", "init"] for b in blocks)
    assert "Recent commits: fix bug; init" in blocks[0].embedding_text()


def test_history_failure_leaves_messages_empty(project, store):
    indexer = make_indexer(project, store, history=FakeHistory(error=True))
    blocks = indexer.extract_blocks(["pkg/mod.py"])
    assert [b.commit_messages for b in blocks] == [[], []]


def test_unknown_and_unreadable_files_are_skipped(project, store, caplog):
    indexer = make_indexer(project, store)

    with caplog.at_level("WARNING"):
        blocks = indexer.extract_blocks(["notes.rst", "missing.py", "pkg/mod.py"])

    assert [b.method_name for b in blocks] == ["bar", "baz"]
    assert "No extractor for notes.rst" in caplog.text
    assert "missing.py" in caplog.text
