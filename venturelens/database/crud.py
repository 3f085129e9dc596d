import re
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from venturelens.analysis.normalizer import (
    PRIORITY_HIGH,
    AnalysisResult,
    Anomaly,
    round_half_up,
)
from venturelens.database.models import Startup, StartupAnomaly

HIGH_RISK_THRESHOLD = 40
PORTFOLIO_THRESHOLD = 60
RECENT_ALERTS_LIMIT = 20

ALERT_CRITICAL = "critical"
ALERT_WARNING = "warning"
ALERT_VERIFIED = "verified"

_NON_NUMERIC_RE = re.compile(r"[^0-9.]")


def alert_type_for(priority: str) -> str:
    """Collapse an anomaly priority into the investor alert bucket."""
    return ALERT_CRITICAL if priority == PRIORITY_HIGH else ALERT_WARNING


# CREATE
def create_startup(
    db: Session,
    details: Dict[str, Any],
    analysis: AnalysisResult,
    deck_url: Optional[str] = None,
    deck_storage_path: Optional[str] = None,
) -> Startup:
    """
    Insert a startup row plus one `startup_anomalies` row per anomaly.
    Always a new row; earlier submissions are left untouched.
    """
    startup = Startup(
        name=details["name"],
        description=details.get("description") or None,
        industry=details.get("industry"),
        stage=details.get("stage"),
        website_url=details.get("website_url") or None,
        linkedin_url=details.get("linkedin_url") or None,
        funding_raised=details.get("funding_raised") or None,
        founder_id=str(details["founder_id"]),
        deck_url=deck_url,
        deck_storage_path=deck_storage_path,
        ai_score=analysis.aggregate_score,
        trust_signal=analysis.trust_signal,
        scores=dict(analysis.scores),
        reasoning=dict(analysis.reasoning),
    )
    startup.anomalies = [_anomaly_row(a) for a in analysis.anomalies]
    db.add(startup)
    db.commit()
    db.refresh(startup)
    return startup


def _anomaly_row(anomaly: Anomaly) -> StartupAnomaly:
    return StartupAnomaly(
        external_id=anomaly.id,
        type=alert_type_for(anomaly.priority),
        message=anomaly.description or anomaly.title,
        category=anomaly.category,
        priority=anomaly.priority,
        title=anomaly.title,
        description=anomaly.description,
        deck_claim=anomaly.claims.deck,
        website_claim=anomaly.claims.website,
    )


# READ
def get_startup_by_id(db: Session, startup_id: Union[str, Any]) -> Optional[Startup]:
    """Return the startup (anomalies eager-loaded) or None."""
    stmt = (
        select(Startup)
        .options(selectinload(Startup.anomalies))
        .where(Startup.id == startup_id)
    )
    return db.execute(stmt).scalars().first()


def list_startups(db: Session, min_score: Optional[int] = None) -> List[Startup]:
    """
    Deal flow, newest first. With `min_score` the list is the portfolio view
    instead: only startups at or above the score, best first.
    """
    stmt = select(Startup)
    if min_score is not None:
        stmt = stmt.where(Startup.ai_score >= min_score).order_by(
            Startup.ai_score.desc(), Startup.created_at.desc()
        )
    else:
        stmt = stmt.order_by(Startup.created_at.desc())
    return list(db.execute(stmt).scalars().all())


def get_latest_startup_for_founder(db: Session, founder_id: str) -> Optional[Startup]:
    stmt = (
        select(Startup)
        .options(selectinload(Startup.anomalies))
        .where(Startup.founder_id == founder_id)
        .order_by(Startup.created_at.desc())
        .limit(1)
    )
    return db.execute(stmt).scalars().first()


def list_recent_anomalies(db: Session, limit: int = RECENT_ALERTS_LIMIT) -> List[StartupAnomaly]:
    """Newest anomalies across every startup, with the parent row loaded."""
    stmt = (
        select(StartupAnomaly)
        .options(selectinload(StartupAnomaly.startup))
        .order_by(StartupAnomaly.created_at.desc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


def count_anomalies_by_type(db: Session) -> Dict[str, int]:
    stmt = select(StartupAnomaly.type, func.count()).group_by(StartupAnomaly.type)
    counts = {ALERT_CRITICAL: 0, ALERT_WARNING: 0, ALERT_VERIFIED: 0}
    for alert_type, count in db.execute(stmt).all():
        counts[alert_type] = count
    return counts


# STATS
def average_score(startups: Iterable[Startup]) -> int:
    scores = [s.ai_score or 0 for s in startups]
    if not scores:
        return 0
    return round_half_up(sum(scores) / len(scores))


def high_risk_count(startups: Iterable[Startup]) -> int:
    return sum(1 for s in startups if (s.ai_score or 0) < HIGH_RISK_THRESHOLD)


def parse_funding(value: Optional[str]) -> float:
    """'$2.5M raised' -> 2.5; anything unparseable -> 0."""
    digits = _NON_NUMERIC_RE.sub("", value or "")
    try:
        return float(digits)
    except ValueError:
        return 0.0


def total_funding(startups: Iterable[Startup]) -> float:
    return sum(parse_funding(s.funding_raised) for s in startups)
