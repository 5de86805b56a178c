"""Plain-text rendering of recommended listings for the CLI."""

from typing import Any, List, Optional

from .seed import Candidate

SNIPPET_LENGTH = 140


def text_snippet(text: Optional[str], n: int = SNIPPET_LENGTH) -> str:
    """Collapse whitespace and cut to ``n`` characters, marking truncation with an ellipsis."""
    collapsed = " ".join((text or "").split())
    if len(collapsed) > n:
        return collapsed[:n] + "…"
    return collapsed


# Stored rates are in man-yen (10,000 JPY); rendered in thousands of yen.
MAN_YEN_IN_THOUSANDS = 10


def _thousands(value: Any) -> str:
    if value is None:
        return "?"
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return f"{value * MAN_YEN_IN_THOUSANDS:g}k"
    return str(value)


def price_label(unit_min: Any, unit_max: Any) -> Optional[str]:
    """Monthly rate range in yen, e.g. ``600k-800k JPY``; None when both ends are unknown."""
    if unit_min is None and unit_max is None:
        return None
    return f"{_thousands(unit_min)}-{_thousands(unit_max)} JPY"


def badges(candidate: Candidate) -> List[str]:
    return [b for b in (candidate.industry, candidate.job_type, candidate.work_style) if b]


def format_candidate(candidate: Candidate, rank: Optional[int] = None) -> str:
    """Render one listing as an indented text block."""
    header = f"{rank}. {candidate.title}" if rank is not None else candidate.title
    lines = [header, f"   ID: {candidate.id}"]

    tags = badges(candidate)
    if tags:
        lines.append("   " + " ".join(f"[{t}]" for t in tags))

    facts = []
    if candidate.area_state:
        facts.append(f"Area: {candidate.area_state}")
    time_range = candidate.display.get("time_range")
    if time_range:
        facts.append(f"Hours: {time_range}")
    price = price_label(candidate.display.get("unit_min"), candidate.display.get("unit_max"))
    if price:
        facts.append(f"Rate: {price}")
    if facts:
        lines.append("   " + " | ".join(facts))

    detail = candidate.display.get("project_detail")
    if detail:
        lines.append("   " + text_snippet(detail))
    return "\n".join(lines)
