"""
Top-K selection over scored candidates.

Responsibilities:
- Score the merged candidate set and keep the best ``k``.

Non-Responsibilities:
- No store access or deduplication.
- No scoring rules (see ``jobrecs.scoring``).

Invariant:
Only candidates scoring above zero are returned. Equal scores keep the
order in which the candidates were first found.
"""

from datetime import datetime, timezone
from typing import List, Mapping, Optional

from .scoring import score
from .seed import Candidate, ScoredCandidate, Seed

DEFAULT_TOP_K = 6


def score_all(
    candidates: Mapping[str, Candidate],
    seed: Seed,
    now: Optional[datetime] = None,
) -> List[ScoredCandidate]:
    """Score every candidate, keeping candidate set order."""
    now = now or datetime.now(timezone.utc)
    return [ScoredCandidate(c, score(seed, c, now)) for c in candidates.values()]


def rank(
    candidates: Mapping[str, Candidate],
    seed: Seed,
    k: int = DEFAULT_TOP_K,
    now: Optional[datetime] = None,
) -> List[Candidate]:
    """
    Return the top ``k`` related candidates.

    Candidates scoring zero or less are unrelated and dropped. Ties keep
    the order in which the candidates were first found.

    Raises:
        ValueError: If k is negative
    """
    if k < 0:
        raise ValueError(f"k must be >= 0, got {k}")
    if k == 0:
        return []

    scored = [sc for sc in score_all(candidates, seed, now) if sc.score > 0]
    # sorted() is stable: equal scores stay in insertion order
    scored = sorted(scored, key=lambda sc: sc.score, reverse=True)
    return [sc.candidate for sc in scored[:k]]
