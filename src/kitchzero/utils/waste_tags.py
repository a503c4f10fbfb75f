"""
Rule-based waste categorization.

Maps the free-text reason of a waste log to a small vocabulary of tags
("avoidable", "storage issue", ...) and summarizes tagged logs into a
sustainability score.
"""

from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

AVOIDABLE = "avoidable"
UNAVOIDABLE = "unavoidable"

# (keywords, tags) checked in order; every matching rule contributes its tags
_TAG_RULES: List[Tuple[Tuple[str, ...], Tuple[str, ...]]] = [
    (("expired", "spoiled", "rotten"), (AVOIDABLE, "storage issue")),
    (("overcooked", "burnt", "ruined"), (AVOIDABLE, "preparation error")),
    (("dropped", "spilled", "accident"), (AVOIDABLE, "handling error")),
    (("leftover", "customer", "returned"), (UNAVOIDABLE, "customer related")),
    (("trim", "peel", "bone"), (UNAVOIDABLE, "preparation waste")),
    (("overorder", "excess", "surplus"), (AVOIDABLE, "planning issue")),
    (("contaminated", "cross-contamination"), (AVOIDABLE, "food safety")),
]

_TAG_SCORES = {
    AVOIDABLE: 10,
    UNAVOIDABLE: 2,
    "storage issue": 8,
    "preparation error": 6,
    "planning issue": 9,
    "food safety": 10,
}


def generate_waste_tags(reason: str, waste_type: str) -> List[str]:
    """
    Derive tags from a waste reason.

    Args:
        reason: Free-text reason entered with the waste log
        waste_type: "RAW" or "PRODUCT"; decides the fallback tag

    Returns:
        De-duplicated tags in first-seen order
    """
    lower_reason = (reason or "").lower()
    tags: List[str] = []

    for keywords, rule_tags in _TAG_RULES:
        if any(keyword in lower_reason for keyword in keywords):
            tags.extend(rule_tags)

    if not tags:
        tags.append("raw waste" if str(waste_type).upper() == "RAW" else "product waste")

    return list(dict.fromkeys(tags))


def calculate_waste_score(tags: Iterable[str]) -> int:
    """Severity score for a set of tags, capped at 10."""
    tag_set = set(tags)
    score = sum(points for tag, points in _TAG_SCORES.items() if tag in tag_set)
    return min(score, 10)


def get_sustainability_insights(waste_logs: Iterable[Dict]) -> Dict:
    """
    Summarize tagged waste logs.

    Args:
        waste_logs: Iterable of dicts with "tags" (list) and "cost" (number)

    Returns:
        Dict with keys:
            - "avoidable_waste" (Decimal): cost of logs tagged avoidable
            - "top_issues" (List[Dict]): five costliest tags with cost and count
            - "sustainability_score" (int): 0-100, 100 when nothing was wasted
    """
    avoidable_waste = Decimal("0")
    total_waste = Decimal("0")
    issues: Dict[str, Dict] = {}

    for log in waste_logs:
        cost = Decimal(str(log.get("cost") or 0))
        tags = log.get("tags") or []
        total_waste += cost
        if AVOIDABLE in tags:
            avoidable_waste += cost
        for tag in tags:
            issue = issues.setdefault(tag, {"issue": tag, "cost": Decimal("0"), "count": 0})
            issue["cost"] += cost
            issue["count"] += 1

    top_issues = sorted(issues.values(), key=lambda issue: issue["cost"], reverse=True)[:5]

    if total_waste > 0:
        sustainability_score = max(0, 100 - int(round(avoidable_waste / total_waste * 100)))
    else:
        sustainability_score = 100

    return {
        "avoidable_waste": avoidable_waste,
        "top_issues": top_issues,
        "sustainability_score": sustainability_score,
    }
