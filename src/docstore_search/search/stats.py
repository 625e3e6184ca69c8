"""Statistical helpers for BM25 scoring.

The functions here stay independent of the index so they can be unit
tested in isolation and reused by the query engine. Term frequencies are
raw occurrence counts, never length-normalised fractions: BM25 performs its
own length normalisation through ``b``.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Literal


IdfMode = Literal["classic", "lucene"]


@dataclass(frozen=True)
class BM25Parameters:
    """Tunable BM25 constants."""

    k1: float = 1.2
    b: float = 0.75
    idf_mode: IdfMode = "classic"
    idf_floor: float = 1e-6

    def __post_init__(self) -> None:
        if self.k1 < 0:
            raise ValueError(f"k1 must be non-negative, got {self.k1}")
        if not 0.0 <= self.b <= 1.0:
            raise ValueError(f"b must be within [0, 1], got {self.b}")
        if self.idf_floor < 0:
            raise ValueError(f"idf_floor must be non-negative, got {self.idf_floor}")


def calculate_idf(doc_freq: int, total_docs: int, *, mode: IdfMode = "classic", floor: float = 1e-6) -> float:
    """Return the inverse document frequency of a term.

    ``classic`` is ``ln((N - df + 0.5) / (df + 0.5))``. It turns negative once
    a term appears in more than half of the corpus, so the result is clamped
    to ``floor`` which keeps every score non-negative and monotonic in tf.
    ``lucene`` is ``ln(1 + (N - df + 0.5) / (df + 0.5))`` and is always positive.
    """

    if total_docs <= 0:
        return 0.0
    df = max(0, min(doc_freq, total_docs))
    ratio = (total_docs - df + 0.5) / (df + 0.5)
    if mode == "lucene":
        return math.log1p(ratio)
    return max(math.log(ratio), floor)


def bm25(tf: int, doc_length: int, avg_doc_length: float, *, k1: float = 1.2, b: float = 0.75) -> float:
    """Compute the BM25 term weight without IDF."""

    if tf <= 0:
        return 0.0
    length_ratio = doc_length / avg_doc_length if avg_doc_length > 0 else 1.0
    denominator = tf + k1 * (1 - b + b * length_ratio)
    return (tf * (k1 + 1)) / denominator
