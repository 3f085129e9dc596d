"""
Normalization of pitch-deck analysis webhook payloads.

The workflow service that scores decks returns loosely-typed JSON: container
keys arrive as ``scores`` or ``Scores``, numbers arrive as numbers, numeric
strings, or strings carrying a stray leading ``=`` from the workflow tool's
expression syntax. Everything here turns that into the canonical model the
rest of the app persists and renders:

*   ``ScoreSet``   – {Team, Market, Product, Traction, Moat} -> 0..100
*   ``Reasoning``  – same keys -> free text
*   aggregate score (0..100 int) and trust signal (strong/moderate/weak)
*   a list of ``Anomaly`` records

None of these functions raise. Missing or malformed data degrades to zero
scores, empty reasoning and no anomalies so a dashboard can always render.
"""

from __future__ import annotations

import math
import re
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

# --------------------------------------------------------------------------- #
# Constants
# --------------------------------------------------------------------------- #
CATEGORIES: Tuple[str, ...] = ("Team", "Market", "Product", "Traction", "Moat")

# canonical category -> (raw score key, raw reasoning key)
RAW_KEYS: Dict[str, Tuple[str, str]] = {
    "Team": ("team_score", "team"),
    "Market": ("market_score", "market"),
    "Product": ("product_score", "product"),
    "Traction": ("traction_score", "traction"),
    "Moat": ("moat_score", "moat"),
}
OVERALL_KEY = "overall_score"

# upstream scores are 0..10
SCALE_FACTOR = 10
SCORE_MIN = 0
SCORE_MAX = 100

STRONG_THRESHOLD = 80
MODERATE_THRESHOLD = 60

TRUST_STRONG = "strong"
TRUST_MODERATE = "moderate"
TRUST_WEAK = "weak"

PRIORITY_HIGH = "high"
PRIORITY_MEDIUM = "medium"
PRIORITY_LOW = "low"

ANOMALY_TITLES: Dict[str, str] = {
    "market": "Market Claim Discrepancy",
    "team": "Team Information Issue",
    "product": "Product Claim Mismatch",
    "traction": "Traction Data Inconsistency",
    "moat": "Competitive Advantage Concern",
    "financial": "Financial Discrepancy",
    "legal": "Legal/Compliance Flag",
}

# decimal or exponent notation only; no underscores, inf or nan
_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")

ScoreSet = Dict[str, float]
Reasoning = Dict[str, str]


@dataclass
class AnomalyClaims:
    deck: Optional[str] = None
    website: Optional[str] = None


@dataclass
class Anomaly:
    """One flagged discrepancy between deck claims and external sources."""

    id: str
    category: str
    severity: str
    priority: str
    title: str
    description: str
    claims: AnomalyClaims = field(default_factory=AnomalyClaims)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AnalysisResult:
    scores: ScoreSet
    reasoning: Reasoning
    aggregate_score: int
    trust_signal: str
    anomalies: List[Anomaly] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scores": dict(self.scores),
            "reasoning": dict(self.reasoning),
            "aggregate_score": self.aggregate_score,
            "trust_signal": self.trust_signal,
            "anomalies": [a.to_dict() for a in self.anomalies],
        }


# --------------------------------------------------------------------------- #
# Value cleaning
# --------------------------------------------------------------------------- #
def _strip_marker(text: str) -> str:
    return text[1:] if text.startswith("=") else text


def clean_numeric(value: Any) -> float:
    """
    Coerce a raw leaf to a number.

    Numbers pass through unchanged. Strings lose one leading ``=`` and are
    parsed as plain decimal or exponent notation. Anything else, or anything
    that fails to parse to a finite value, is 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    if not isinstance(value, str):
        return 0
    text = _strip_marker(value).strip()
    if not _NUMBER_RE.fullmatch(text):
        return 0
    parsed = float(text)
    if not math.isfinite(parsed):
        return 0
    return parsed


def clean_text(value: Any) -> str:
    """Strip one leading ``=`` from a string; non-strings become ``""``."""
    if not isinstance(value, str):
        return ""
    return _strip_marker(value)


def lookup_key(raw: Any, key: str, default: Any = None) -> Any:
    """
    Fetch ``key`` from a mapping, tolerating casing differences.

    An exact match wins; otherwise the first key that matches
    case-insensitively is used.
    """
    if not isinstance(raw, Mapping):
        return default
    if key in raw:
        return raw[key]
    wanted = key.lower()
    for candidate, value in raw.items():
        if isinstance(candidate, str) and candidate.lower() == wanted:
            return value
    return default


def _container(raw: Any, key: str) -> Mapping:
    value = lookup_key(raw, key)
    return value if isinstance(value, Mapping) else {}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _rescale(value: Any) -> float:
    number = clean_numeric(value)
    try:
        scaled = float(number) * SCALE_FACTOR
    except OverflowError:
        # ints beyond float range
        return SCORE_MAX if number > 0 else SCORE_MIN
    if math.isnan(scaled):
        return SCORE_MIN
    return max(SCORE_MIN, min(SCORE_MAX, scaled))


# --------------------------------------------------------------------------- #
# Scores & reasoning
# --------------------------------------------------------------------------- #
def map_scores(raw: Any) -> Tuple[ScoreSet, Reasoning]:
    """Build the canonical ``(ScoreSet, Reasoning)`` pair from a raw payload."""
    raw_scores = _container(raw, "scores")
    raw_reasoning = _container(raw, "reasoning")

    scores: ScoreSet = {}
    reasoning: Reasoning = {}
    for category, (score_key, reasoning_key) in RAW_KEYS.items():
        scores[category] = _rescale(raw_scores.get(score_key))
        reasoning[category] = clean_text(raw_reasoning.get(reasoning_key))
    return scores, reasoning


def _overall_score(raw: Any) -> Optional[float]:
    candidate = _container(raw, "scores").get(OVERALL_KEY)
    if candidate is None:
        candidate = lookup_key(raw, OVERALL_KEY)
    overall = _rescale(candidate)
    return overall if overall > 0 else None


def compute_aggregate(scores: Mapping[str, float], raw: Any = None) -> int:
    """
    Single 0..100 summary of a ScoreSet.

    A usable upstream ``overall_score`` wins. Otherwise the mean of the
    non-zero category scores is used; a zero is read as "nothing extracted"
    and left out of the average.
    """
    overall = _overall_score(raw)
    if overall is not None:
        return round_half_up(overall)

    present = [v for v in scores.values() if v > 0]
    if not present:
        return 0
    return round_half_up(sum(present) / len(present))


def trust_signal_for(aggregate: float) -> str:
    if aggregate >= STRONG_THRESHOLD:
        return TRUST_STRONG
    if aggregate >= MODERATE_THRESHOLD:
        return TRUST_MODERATE
    return TRUST_WEAK


# --------------------------------------------------------------------------- #
# Anomalies
# --------------------------------------------------------------------------- #
def priority_for(severity: str) -> str:
    level = severity.strip().lower()
    if level in ("high", "critical"):
        return PRIORITY_HIGH
    if level == "medium":
        return PRIORITY_MEDIUM
    return PRIORITY_LOW


def title_for(category: str, priority: str) -> str:
    title = ANOMALY_TITLES.get(category.strip().lower())
    if title:
        return title
    return f"{priority.capitalize()} Priority Issue"


def _optional_text(value: Any) -> Optional[str]:
    return clean_text(value) if isinstance(value, str) else None


def _map_anomaly(raw: Mapping) -> Anomaly:
    category = clean_text(raw.get("category"))
    severity = clean_text(raw.get("severity"))
    priority = priority_for(severity)

    raw_claims = raw.get("claims")
    if not isinstance(raw_claims, Mapping):
        raw_claims = {}

    return Anomaly(
        id=clean_text(raw.get("id")) or uuid.uuid4().hex,
        category=category,
        severity=severity,
        priority=priority,
        title=title_for(category, priority),
        description=clean_text(raw.get("description")),
        claims=AnomalyClaims(
            deck=_optional_text(raw_claims.get("deck")),
            website=_optional_text(raw_claims.get("website")),
        ),
    )


def _is_success(value: Any) -> bool:
    if isinstance(value, str):
        return clean_text(value).strip().lower() == "true"
    return value is True


def map_anomalies(raw: Any) -> List[Anomaly]:
    """
    Map an anomaly-detection payload ``{success, anomaly}`` to a list.

    Today the upstream returns one anomaly object; a list of them is
    accepted as well.
    """
    if not isinstance(raw, Mapping) or not _is_success(raw.get("success")):
        return []

    payload = raw.get("anomaly")
    if isinstance(payload, Mapping):
        items = [payload]
    elif isinstance(payload, list):
        items = [item for item in payload if isinstance(item, Mapping)]
    else:
        return []
    return [_map_anomaly(item) for item in items]


def normalize_analysis(scoring_raw: Any, anomaly_raw: Any = None) -> AnalysisResult:
    """Run the whole normalization pipeline over one submission's payloads."""
    scores, reasoning = map_scores(scoring_raw)
    aggregate = compute_aggregate(scores, scoring_raw)
    return AnalysisResult(
        scores=scores,
        reasoning=reasoning,
        aggregate_score=aggregate,
        trust_signal=trust_signal_for(aggregate),
        anomalies=map_anomalies(anomaly_raw),
    )
