import logging

import pytest

from kb_embedder.indexing.embeddings import EmbeddingError
from kb_embedder.indexing.storage import BlockStore


class FakeEmbedder:
    """Deterministic stand-in for EmbeddingService that records its inputs."""

    def __init__(self, fail_on=None, dimensions=3):
        self.calls = []
        self.batch_calls = []
        self.fail_on = fail_on or (lambda text: False)
        self.dimensions = dimensions

    def _vector(self, text):
        return [float(len(text) % 7 + i) for i in range(self.dimensions)]

    def embed(self, text, timeout=None):
        self.calls.append(text)
        if self.fail_on(text):
            raise EmbeddingError("boom")
        return self._vector(text)

    def embed_batch(self, texts, timeout=None):
        self.batch_calls.append(list(texts))
        if any(self.fail_on(t) for t in texts):
            raise EmbeddingError("boom")
        return [self._vector(t) for t in texts]


@pytest.fixture
def logger():
    return logging.getLogger("kb_embedder.tests")


@pytest.fixture
def store(tmp_path, logger):
    block_store = BlockStore(str(tmp_path / "db" / "embeddings.sqlite3"), logger)
    try:
        yield block_store
    finally:
        block_store.close()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def make_tree(tmp_path):
    """Write a dict of relative path -> content under tmp_path/project."""
    root = tmp_path / "project"
    root.mkdir()

    def _make(files):
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root

    return _make


@pytest.fixture
def embedder_factory():
    return FakeEmbedder


CONFIG_VARS = [
    "OPENAI_API_KEY", "ROOT_DIR", "FILE_EXTENSIONS", "DB_PATH", "N_COMMITS",
    "TOKEN_LIMIT", "LOG_LEVEL", "EMBEDDING_MODEL", "EMBED_TIMEOUT_MINUTES",
    "EMBED_BATCH_SIZE",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Unset configuration variables; anything set during the test is removed afterwards."""
    for name in CONFIG_VARS:
        # setenv first so teardown deletes values a loaded .env file adds
        monkeypatch.setenv(name, "unset")
        monkeypatch.delenv(name)
    return monkeypatch
