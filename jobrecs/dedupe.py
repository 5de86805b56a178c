"""Merge query result groups into one candidate set, first query wins."""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from .logger import get_logger
from .seed import Candidate

CandidateSet = Dict[str, Candidate]

logger = get_logger()


def merge_candidates(
    groups: Iterable[Tuple[Any, List[Dict[str, Any]]]],
    exclude_id: Optional[str] = None,
) -> CandidateSet:
    """
    Build the candidate set from result groups given in query order.

    A record whose id is already present keeps the earlier representation.
    The seed's own id and records without an id are dropped.

    Args:
        groups: (query, records) pairs in declaration order
        exclude_id: Id of the seed listing

    Returns:
        Insertion-ordered mapping of id to Candidate
    """
    bag: CandidateSet = {}
    for _, records in groups:
        for record in records:
            doc_id = record.get("id")
            if doc_id is None or doc_id == "":
                logger.debug("Skipping record without id")
                continue
            doc_id = str(doc_id)
            if doc_id == exclude_id or doc_id in bag:
                continue
            bag[doc_id] = Candidate.from_record(record)
    return bag
