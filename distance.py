#!/usr/bin/env python3
import argparse
import io
import sys

from utils import DEFAULT_ENCODING, VectorsError, OutOfDictionary, load_vectors
from model import DEFAULT_NEIGHBORHOOD, resolve_query, nearest_for_query

EXIT_COMMAND = "EXIT"
PROMPT = "\nEnter a word or short phrase (EXIT to break): "


class UsageParser(argparse.ArgumentParser):
    # bad arguments exit with status 1
    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def positive_int(text):
    try:
        n = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid neighbor count: {text!r}")
    if n < 1:
        raise argparse.ArgumentTypeError(f"neighbor count must be positive: {n}")
    return n


def build_parser():
    ap = UsageParser(description="Nearest neighbors by cosine similarity over word2vec vectors")
    ap.add_argument("model", help="path/to/binary_word2vec_model (or a converted .npz)")
    ap.add_argument("neighbors", nargs="?", type=positive_int, default=DEFAULT_NEIGHBORHOOD,
                    help=f"N-neighbors (default {DEFAULT_NEIGHBORHOOD})")
    ap.add_argument("--encoding", default=DEFAULT_ENCODING, help="encoding of vocabulary words")
    ap.add_argument("--quiet", action="store_true", help="no load progress output")
    return ap


def print_result(store, ids, results):
    for i in ids:
        print(f"\nWord: {store.term_at(i)}  Position in vocabulary: {i}")

    print(f"\n{'Related Term':>50}{'Cosine Score':>22}")
    print("-" * 76)
    for r in results:
        print(f"{r.term:>50}{r.score:22.6f}")


def query_loop(store, k, stream):
    print(PROMPT, end="", flush=True)
    for line in stream:
        line = line.rstrip("\r\n")
        if line == EXIT_COMMAND:
            break

        try:
            ids = resolve_query(store, line)
        except OutOfDictionary:
            print("\nOut of dictionary word!")
            print(PROMPT, end="", flush=True)
            continue

        print_result(store, ids, nearest_for_query(store, ids, k=k))
        print(PROMPT, end="", flush=True)


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        store = load_vectors(args.model, encoding=args.encoding, verbose=not args.quiet)
    except VectorsError as e:
        print(f"[error] {e}", file=sys.stderr)
        return 1

    # queries are matched against words decoded with the same encoding
    stdin = io.TextIOWrapper(sys.stdin.buffer, encoding=args.encoding, errors="replace")
    query_loop(store, args.neighbors, stdin)
    return 0


if __name__ == "__main__":
    sys.exit(main())
