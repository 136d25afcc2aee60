import heapq
from collections import namedtuple

import numpy as np
from utils import OutOfDictionary

DEFAULT_NEIGHBORHOOD = 40

ScoredTerm = namedtuple("ScoredTerm", ["term", "score"])


def ranking_key(result):
    # descending score, then ascending term
    return (-result.score, result.term)


class TopK:
    """
    Keeps the k best (score, index) pairs offered so far.
    A new pair only replaces the current worst if its score is strictly greater,
    so among equal scores the one offered first stays.
    """
    def __init__(self, k):
        if k < 1:
            raise ValueError(f"[TopK] k must be >= 1, got {k}")
        self.k = k
        self._heap = []  # (score, -index): the root is the worst, latest-offered on ties
        self._seen = set()

    def __len__(self):
        return len(self._heap)

    @property
    def worst(self):
        if len(self._heap) < self.k:
            return -float("inf")
        return self._heap[0][0]

    def offer(self, score, index):
        if index in self._seen or not score > self.worst:
            return False
        if len(self._heap) < self.k:
            heapq.heappush(self._heap, (score, -index))
        else:
            _, evicted = heapq.heapreplace(self._heap, (score, -index))
            self._seen.discard(-evicted)
        self._seen.add(index)
        return True

    def items(self):
        """(score, index) pairs, best first, earlier index first on ties."""
        return sorted(((s, -neg) for s, neg in self._heap), key=lambda p: (-p[0], p[1]))


def compose_unit_vector(store, ids):
    if not ids:
        raise ValueError("[compose] at least one vocabulary index is required")

    total = np.array(store.vector_at(ids[0]), dtype=np.float32, copy=True)
    for i in ids[1:]:
        total += store.vector_at(i)
        # renormalize after every addition, not once at the end
        norm = np.sqrt(np.dot(total.astype(np.float64), total))
        with np.errstate(divide="ignore", invalid="ignore"):
            total /= np.float32(norm)
    return total


def find_nearest_neighbors(store, target, exclude=(), k=DEFAULT_NEIGHBORHOOD):
    top = TopK(k)
    if len(store) == 0:
        return []

    sims = store.vectors @ np.asarray(target, dtype=np.float32)  # (V,)
    eligible = ~np.isnan(sims)
    excluded = [i for i in set(exclude) if 0 <= i < len(store)]
    eligible[excluded] = False

    cand = np.flatnonzero(eligible)
    if cand.size > k:
        # anything under the k-th best score can never be kept
        kth = np.partition(sims[cand], cand.size - k)[cand.size - k]
        cand = cand[sims[cand] >= kth]

    for i in cand:  # ascending index = scan order
        top.offer(float(sims[i]), int(i))

    results = [ScoredTerm(store.term_at(i), s) for s, i in top.items()]
    return sorted(results, key=ranking_key)


def resolve_query(store, line):
    """
    The whole line if it is a known term, else every known whitespace-separated token in order.
    """
    index = store.index_of(line)
    if index is not None:
        return [index]

    ids = []
    for tok in line.split():
        index = store.index_of(tok)
        if index is not None:
            ids.append(index)
    if not ids:
        raise OutOfDictionary(f"out of dictionary: {line!r}")
    return ids


def nearest_for_query(store, ids, k=DEFAULT_NEIGHBORHOOD):
    target = compose_unit_vector(store, ids)
    return find_nearest_neighbors(store, target, exclude=ids, k=k)
