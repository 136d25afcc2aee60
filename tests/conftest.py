"""
Shared fixtures: small word2vec binary files written into tmp_path.
"""

import struct
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))


def encode_records(records, sep=b"\n", word_sep=b" "):
    out = bytearray()
    for word, vec in records:
        out += word.encode("utf-8") if isinstance(word, str) else word
        out += word_sep
        out += struct.pack(f"<{len(vec)}f", *vec)
        out += sep
    return bytes(out)


@pytest.fixture
def write_bin(tmp_path):
    """Factory: write_bin(records, name=..., sep=..., header=...) -> path str."""
    def _write(records, name="vectors.bin", sep=b"\n", header=None, tail=b""):
        dim = len(records[0][1]) if records else 0
        if header is None:
            header = f"{len(records)} {dim}\n".encode("ascii")
        path = tmp_path / name
        path.write_bytes(header + encode_records(records, sep=sep) + tail)
        return str(path)
    return _write


@pytest.fixture
def pets_path(write_bin):
    return write_bin([
        ("cat", (1.0, 0.0)),
        ("dog", (0.0, 1.0)),
        ("kitten", (0.999, 0.02)),
    ])


@pytest.fixture
def pets(pets_path):
    from utils import load_bin_vec
    return load_bin_vec(pets_path, verbose=False)
