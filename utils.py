import os
import math
import zipfile
import numpy as np
from tqdm import tqdm

MAX_WORD_BYTES = 500  # word2vec.c itself caps words at 50
DEFAULT_ENCODING = "utf-8"
WHITESPACE = frozenset(b" \t\n\r\v\f")
FLOAT_DTYPE = np.dtype("<f4")


class VectorsError(Exception):
    pass


class VectorsFileNotFound(VectorsError, FileNotFoundError):
    pass


class MalformedHeader(VectorsError, ValueError):
    pass


class TruncatedRecord(VectorsError, EOFError):
    pass


class EncodingError(VectorsError, ValueError):
    pass


class MalformedArchive(VectorsError, ValueError):
    pass


class OutOfDictionary(VectorsError, LookupError):
    pass


class VectorStore:
    """
    * terms[i] <-> vectors[i], indices follow file order
    * rows are unit vectors; the matrix is read-only after construction
    * a repeated term resolves to its last row, earlier rows stay reachable by index
    """
    def __init__(self, terms, vectors):
        self.terms = list(terms)
        self.vectors = np.asarray(vectors, dtype=np.float32)
        if self.vectors.ndim != 2 or self.vectors.shape[0] != len(self.terms):
            raise ValueError(
                f"[VectorStore] {len(self.terms)} terms but vectors of shape {self.vectors.shape}")
        self.vectors.flags.writeable = False
        self.word2idx = {w: i for i, w in enumerate(self.terms)}

    def __len__(self):
        return len(self.terms)

    @property
    def dim(self):
        return self.vectors.shape[1]

    def _check(self, index):
        if not 0 <= index < len(self.terms):
            raise IndexError(f"index {index} out of range for {len(self.terms)} words")

    def index_of(self, term):
        return self.word2idx.get(term)

    def vector_at(self, index):
        self._check(index)
        return self.vectors[index]

    def term_at(self, index):
        self._check(index)
        return self.terms[index]

    def items(self):
        return zip(self.terms, self.vectors)


def parse_header(line):
    """
    "<word_count> <dimension>\\n" -> (word_count, dimension)
    """
    if not line.endswith(b"\n"):
        raise TruncatedRecord("unexpected end of file inside the header line")
    parts = line.split()
    if len(parts) != 2:
        raise MalformedHeader(f"expected '<word_count> <dimension>', got {line!r}")
    for tok in parts:
        if not tok.isdigit():
            raise MalformedHeader(f"not a non-negative integer in header: {tok!r}")
    return int(parts[0]), int(parts[1])


def read_word(f, encoding=DEFAULT_ENCODING, errors="strict"):
    ch = f.read(1)
    # files written by the later word2vec.c drop the '\n' after each vector,
    # so leading whitespace is optional
    while ch and ch[0] in WHITESPACE:
        ch = f.read(1)
    if not ch:
        raise TruncatedRecord("unexpected end of file before a vocabulary word")

    word_bytes = bytearray()
    while ch and ch[0] not in WHITESPACE:
        if len(word_bytes) == MAX_WORD_BYTES:
            raise EncodingError(
                f"word exceeds {MAX_WORD_BYTES} bytes at offset {f.tell()}: {bytes(word_bytes[:40])!r}...")
        word_bytes += ch
        ch = f.read(1)

    try:
        return word_bytes.decode(encoding, errors=errors)
    except UnicodeDecodeError as e:
        raise EncodingError(f"cannot decode word {bytes(word_bytes)!r} as {encoding}: {e.reason}") from e


def normalize_rows(W):
    norms = np.sqrt((W.astype(np.float64) ** 2).sum(axis=1, keepdims=True))
    # zero rows become NaN and stay that way
    with np.errstate(divide="ignore", invalid="ignore"):
        W /= norms.astype(W.dtype)
    return int((norms == 0).sum())


def load_bin_vec(bin_name, encoding=DEFAULT_ENCODING, errors="strict", verbose=True):
    if not os.path.isfile(bin_name):
        raise VectorsFileNotFound(f"vectors file not found: {bin_name}")

    with open(bin_name, "rb") as f:
        vocab_size, layer_size = parse_header(f.readline())
        if verbose:
            print(f"[load] {vocab_size} words with size {layer_size} per vector")

        vector_bytes = layer_size * FLOAT_DTYPE.itemsize
        # every record holds at least one word byte plus its vector
        remaining = os.path.getsize(bin_name) - f.tell()
        if vocab_size * (vector_bytes + 1) > remaining:
            raise TruncatedRecord(
                f"header promises {vocab_size} records of {layer_size} floats but only {remaining} bytes follow")
        buffer = bytearray(vector_bytes)
        words = []
        W = np.empty((vocab_size, layer_size), dtype=np.float32)

        step = max(1, math.ceil(vocab_size / 10))
        with tqdm(total=vocab_size, desc="[load]", unit="word", disable=not verbose) as bar:
            for i in range(vocab_size):
                words.append(read_word(f, encoding, errors))

                n = f.readinto(buffer)
                if n != vector_bytes:
                    raise TruncatedRecord(
                        f"record {i} ({words[-1]!r}): expected {vector_bytes} vector bytes, got {n}")
                W[i] = np.frombuffer(buffer, dtype=FLOAT_DTYPE)

                if (i + 1) % step == 0 or i + 1 == vocab_size:
                    bar.update(i + 1 - bar.n)

    n_zero = normalize_rows(W)
    if verbose and n_zero:
        print(f"[load] {n_zero} zero vector(s) could not be normalized (NaN)")
    return VectorStore(words, W)


def save_bin_vec(store, out_name, encoding=DEFAULT_ENCODING):
    with open(out_name, "wb") as f:
        f.write(f"{len(store)} {store.dim}\n".encode("ascii"))
        for word, vec in store.items():
            f.write(word.encode(encoding))
            f.write(b" ")
            f.write(np.asarray(vec, dtype=FLOAT_DTYPE).tobytes())
            f.write(b"\n")


def save_npz(store, out_name):
    # words as one utf-8 blob plus offsets, fixed-width unicode arrays drop trailing NULs
    encoded = [w.encode("utf-8") for w in store.terms]
    offsets = np.cumsum([0] + [len(b) for b in encoded], dtype=np.int64)
    blob = np.frombuffer(b"".join(encoded), dtype=np.uint8)
    np.savez(out_name, terms_utf8=blob, term_offsets=offsets, vectors=store.vectors)


def load_npz(npz_name, verbose=True):
    if not os.path.isfile(npz_name):
        raise VectorsFileNotFound(f"vectors file not found: {npz_name}")
    try:
        data = np.load(npz_name, allow_pickle=False)
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        raise MalformedArchive(f"not a vectors archive: {npz_name} ({e})") from e
    if not isinstance(data, np.lib.npyio.NpzFile):
        raise MalformedArchive(f"not a vectors archive: {npz_name} (a single array)")

    try:
        with data:
            blob = data["terms_utf8"].tobytes()
            offsets = data["term_offsets"].tolist()
            W = data["vectors"].astype(np.float32)
        terms = [blob[a:b].decode("utf-8") for a, b in zip(offsets, offsets[1:])]
        store = VectorStore(terms, W)
    except (OSError, ValueError, KeyError, zipfile.BadZipFile) as e:
        raise MalformedArchive(f"broken vectors archive: {npz_name} ({e})") from e

    if verbose:
        print(f"[load] {len(store)} words with size {store.dim} per vector")
    return store


def load_vectors(path, encoding=DEFAULT_ENCODING, verbose=True):
    if path.endswith(".npz"):
        return load_npz(path, verbose=verbose)
    return load_bin_vec(path, encoding=encoding, verbose=verbose)
