"""
Round trips through the secondary writers, plus a cross-check against gensim's reader.
"""

import numpy as np
import pytest

from utils import (
    MalformedArchive,
    VectorStore,
    VectorsFileNotFound,
    load_bin_vec,
    load_npz,
    load_vectors,
    save_bin_vec,
    save_npz,
)


@pytest.fixture
def mixed(write_bin):
    path = write_bin([
        ("the", (0.3, -1.2, 4.0)),
        ("über", (1.0, 1.0, 1.0)),
        ("the", (-7.0, 0.01, 2.5)),
        ("</s>", (0.0, 0.0, 2.0)),
    ])
    return load_bin_vec(path, verbose=False)


class TestRoundTrip:
    """Load -> write -> reload keeps terms and vectors."""

    def test_binary(self, mixed, tmp_path):
        out = str(tmp_path / "again.bin")
        save_bin_vec(mixed, out)
        again = load_bin_vec(out, verbose=False)
        assert again.terms == mixed.terms
        np.testing.assert_allclose(again.vectors, mixed.vectors, atol=1e-6)

    def test_npz(self, mixed, tmp_path):
        out = str(tmp_path / "again.npz")
        save_npz(mixed, out)
        again = load_npz(out, verbose=False)
        assert again.terms == mixed.terms
        np.testing.assert_array_equal(again.vectors, mixed.vectors)
        assert again.index_of("the") == 2

    def test_dispatch_on_suffix(self, mixed, tmp_path):
        save_npz(mixed, str(tmp_path / "m.npz"))
        save_bin_vec(mixed, str(tmp_path / "m.bin"))
        a = load_vectors(str(tmp_path / "m.npz"), verbose=False)
        b = load_vectors(str(tmp_path / "m.bin"), verbose=False)
        assert a.terms == b.terms

    def test_missing_npz(self, tmp_path):
        with pytest.raises(VectorsFileNotFound):
            load_npz(str(tmp_path / "none.npz"))

    def test_npz_keeps_trailing_nul(self, tmp_path):
        store = VectorStore(["a\x00", "b", ""], np.eye(3, dtype=np.float32))
        save_npz(store, str(tmp_path / "nul.npz"))
        assert load_npz(str(tmp_path / "nul.npz"), verbose=False).terms == ["a\x00", "b", ""]

    def test_npz_empty_store(self, tmp_path):
        save_npz(VectorStore([], np.zeros((0, 4), dtype=np.float32)), str(tmp_path / "e.npz"))
        again = load_npz(str(tmp_path / "e.npz"), verbose=False)
        assert len(again) == 0
        assert again.dim == 4


class TestBrokenArchive:
    """Corrupt .npz files fail with MalformedArchive."""

    def test_not_an_archive(self, tmp_path):
        path = tmp_path / "bad.npz"
        path.write_bytes(b"not an archive")
        with pytest.raises(MalformedArchive):
            load_npz(str(path))

    def test_single_array(self, tmp_path):
        path = tmp_path / "plain.npz"
        with open(path, "wb") as f:
            np.save(f, np.ones((2, 2), dtype=np.float32))
        with pytest.raises(MalformedArchive):
            load_npz(str(path))

    def test_missing_key(self, tmp_path):
        path = str(tmp_path / "nokeys.npz")
        np.savez(path, vectors=np.ones((2, 2), dtype=np.float32))
        with pytest.raises(MalformedArchive):
            load_npz(path)

    def test_wrong_shape(self, tmp_path):
        path = str(tmp_path / "flat.npz")
        np.savez(path, terms_utf8=np.frombuffer(b"ab", dtype=np.uint8),
                 term_offsets=np.array([0, 1, 2]), vectors=np.ones(4, dtype=np.float32))
        with pytest.raises(MalformedArchive):
            load_npz(path)



class TestGensimAgreement:
    """The loader reads what gensim reads from the same file."""

    def test_same_vocab_and_directions(self, tmp_path):
        KeyedVectors = pytest.importorskip("gensim.models").KeyedVectors
        rng = np.random.RandomState(301)
        terms = [f"tok{i}" for i in range(25)]
        save_bin_vec(VectorStore(terms, rng.uniform(-0.25, 0.25, (25, 6))), str(tmp_path / "g.bin"))

        store = load_bin_vec(str(tmp_path / "g.bin"), verbose=False)
        kv = KeyedVectors.load_word2vec_format(str(tmp_path / "g.bin"), binary=True)
        assert list(kv.index_to_key) == store.terms
        M = kv.vectors / np.linalg.norm(kv.vectors, axis=1, keepdims=True)
        np.testing.assert_allclose(store.vectors, M, atol=1e-6)
