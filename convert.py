#!/usr/bin/env python3
import argparse
import sys

from utils import DEFAULT_ENCODING, VectorsError, load_bin_vec, save_bin_vec, save_npz
from distance import UsageParser


def main(argv=None):
    ap = UsageParser(description="Convert word2vec binary vectors (normalized) to .npz or binary")
    ap.add_argument("input", help="word2vec binary file")
    ap.add_argument("output", help="output path; '.npz' writes a numpy archive, anything else word2vec binary")
    ap.add_argument("--encoding", default=DEFAULT_ENCODING)
    ap.add_argument("--quiet", action="store_true")
    args = ap.parse_args(argv)

    try:
        store = load_bin_vec(args.input, encoding=args.encoding, verbose=not args.quiet)
    except VectorsError as e:
        print(f"[error] {e}", file=sys.stderr)
        return 1

    if args.output.endswith(".npz"):
        save_npz(store, args.output)
    else:
        save_bin_vec(store, args.output, encoding=args.encoding)

    if not args.quiet:
        print(f"[convert] saved {len(store)} vectors to \"{args.output}\"")
    return 0


if __name__ == "__main__":
    sys.exit(main())
