from __future__ import annotations

import logging
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Path, UploadFile, status
from pydantic import UUID4
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

# ─────────── app imports ──────────────────────────────────────────────────────
from venturelens.analysis.normalizer import CATEGORIES, AnalysisResult
from venturelens.api.ai.orchestrator import run_deck_analysis
from venturelens.api.ai.sanitize_html import cleanse_json
from venturelens.api.ai.webhooks import (
    SCORING_WEBHOOK_ENV,
    WebhookError,
    WebhookNotConfiguredError,
    WebhookPayloadError,
    send_chat_message,
    webhook_url,
)
from venturelens.api.schemas import (
    AlertOut,
    AlertsResponse,
    AnalysisResultOut,
    AnalyzeDeckResponse,
    ChatRequest,
    ChatResponse,
    DealFlowResponse,
    FeedbackItem,
    FounderDashboardResponse,
    PortfolioResponse,
    RadarPoint,
    StartupDetailOut,
    StartupOut,
    StartupSubmission,
    SubmissionResponse,
)
from venturelens.database import crud
from venturelens.database.database import db_session
from venturelens.database.models import Startup
from venturelens.handoff import handoff
from venturelens.storage.deck_uploader import (
    DeckValidationError,
    delete_pitch_deck,
    max_upload_bytes,
    upload_pitch_deck,
    validate_pitch_deck,
)

logger = logging.getLogger(__name__)
router = APIRouter()

ANALYSIS_FAILED_DETAIL = "AI Analysis failed. Please try again."
CHAT_ERROR_REPLY = "Sorry, something went wrong. Please try again."


# Dependency – yields a SQLAlchemy Session
def get_db():
    with db_session() as db:
        yield db


def _read_deck(file: UploadFile) -> tuple[bytes, int]:
    """Read and validate an uploaded deck; returns (bytes, page_count)."""
    pdf_data = file.file.read()
    if len(pdf_data) > max_upload_bytes():
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Pitch deck exceeds the maximum upload size",
        )
    try:
        page_count = validate_pitch_deck(pdf_data, file.content_type)
    except DeckValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return pdf_data, page_count


def _require_scoring_webhook() -> None:
    if not webhook_url(SCORING_WEBHOOK_ENV):
        logger.error("%s is not set; refusing deck analysis.", SCORING_WEBHOOK_ENV)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook URL is not configured",
        )


def _analysis_http_error(exc: WebhookError) -> HTTPException:
    if isinstance(exc, WebhookNotConfiguredError):
        return HTTPException(status_code=503, detail="Webhook URL is not configured")
    if isinstance(exc, WebhookPayloadError):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=502, detail=ANALYSIS_FAILED_DETAIL)


# ──────────────────────────────────────────────────────────────────────────────
#  1)  FOUNDER SUBMISSION  (upload -> analyze -> normalize -> persist)
# ──────────────────────────────────────────────────────────────────────────────
@router.post(
    "/startups",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a startup and its pitch deck for AI analysis",
)
def submit_startup(
    submission: Annotated[StartupSubmission, Form()],
    file: UploadFile = File(..., description="Pitch deck (PDF)"),
    db: Session = Depends(get_db),
) -> SubmissionResponse:
    pdf_data, page_count = _read_deck(file)
    _require_scoring_webhook()

    # 1. Upload to Supabase Storage
    try:
        stored = upload_pitch_deck(submission.founder_id, pdf_data)
    except RuntimeError as e:
        logger.error("Pitch deck upload failed: %s", e)
        raise HTTPException(status_code=502, detail=f"Upload failed: {e}")

    # 2. Analyze with the workflow webhooks (scoring + optional extras)
    metadata: Dict[str, Any] = {
        **submission.model_dump(),
        "deck_url": stored["public_url"],
    }
    try:
        outcome = run_deck_analysis(pdf_data, file.filename or "pitch_deck.pdf", metadata)
    except WebhookError as e:
        delete_pitch_deck(stored["storage_path"])
        raise _analysis_http_error(e)
    except Exception:
        logger.error("Deck analysis for %r crashed", submission.name, exc_info=True)
        delete_pitch_deck(stored["storage_path"])
        raise HTTPException(status_code=502, detail=ANALYSIS_FAILED_DETAIL)

    # 3. Save startup + anomalies
    try:
        startup = crud.create_startup(
            db,
            submission.model_dump(),
            outcome.result,
            deck_url=stored["public_url"],
            deck_storage_path=stored["storage_path"],
        )
    except SQLAlchemyError as e:
        logger.error("Saving startup %r failed: %s", submission.name, e, exc_info=True)
        db.rollback()
        delete_pitch_deck(stored["storage_path"])
        raise HTTPException(status_code=500, detail="Failed to save startup details")
    except Exception:
        db.rollback()
        delete_pitch_deck(stored["storage_path"])
        raise

    # 4. Hand the fresh result to the founder's next dashboard load
    handoff.publish(submission.founder_id, outcome.result)
    logger.info(
        "Startup %s saved for founder %s (ai_score=%s)",
        startup.id, submission.founder_id, startup.ai_score,
    )

    return SubmissionResponse(
        startup=StartupOut.model_validate(startup),
        analysis=AnalysisResultOut.from_result(outcome.result),
        page_count=page_count,
        ingested=outcome.ingested,
    )


# ──────────────────────────────────────────────────────────────────────────────
#  2)  ANALYZE ONLY  (nothing stored)
# ──────────────────────────────────────────────────────────────────────────────
@router.post("/analyze-deck", response_model=AnalyzeDeckResponse)
def analyze_deck(file: UploadFile = File(...)) -> AnalyzeDeckResponse:
    pdf_data, _ = _read_deck(file)
    try:
        outcome = run_deck_analysis(
            pdf_data,
            file.filename or "pitch_deck.pdf",
            {},
            include_ingestion=False,
        )
    except WebhookError as e:
        raise _analysis_http_error(e)

    return AnalyzeDeckResponse(
        analysis=AnalysisResultOut.from_result(outcome.result),
        raw=cleanse_json(outcome.scoring_raw),
    )


# ──────────────────────────────────────────────────────────────────────────────
#  3)  INVESTOR VIEWS
# ──────────────────────────────────────────────────────────────────────────────
@router.get("/startups", response_model=DealFlowResponse)
def deal_flow(db: Session = Depends(get_db)) -> DealFlowResponse:
    startups = crud.list_startups(db)
    return DealFlowResponse(
        total_startups=len(startups),
        average_score=crud.average_score(startups),
        high_risk_count=crud.high_risk_count(startups),
        startups=[StartupOut.model_validate(s) for s in startups],
    )


@router.get("/startups/{startup_id}", response_model=StartupDetailOut)
def get_startup(
    startup_id: UUID4 = Path(..., description="UUID of the startup"),
    db: Session = Depends(get_db),
) -> StartupDetailOut:
    startup = crud.get_startup_by_id(db, startup_id)
    if not startup:
        raise HTTPException(404, "Startup not found")
    return StartupDetailOut.model_validate(startup)


@router.get("/portfolio", response_model=PortfolioResponse)
def portfolio(db: Session = Depends(get_db)) -> PortfolioResponse:
    startups = crud.list_startups(db, min_score=crud.PORTFOLIO_THRESHOLD)
    return PortfolioResponse(
        top_startups=len(startups),
        average_score=crud.average_score(startups),
        total_funding=crud.total_funding(startups),
        startups=[StartupOut.model_validate(s) for s in startups],
    )


@router.get("/alerts", response_model=AlertsResponse)
def alerts(db: Session = Depends(get_db)) -> AlertsResponse:
    counts = crud.count_anomalies_by_type(db)
    rows = crud.list_recent_anomalies(db)
    return AlertsResponse(
        critical_count=counts[crud.ALERT_CRITICAL],
        warning_count=counts[crud.ALERT_WARNING],
        verified_count=counts[crud.ALERT_VERIFIED],
        alerts=[
            AlertOut(
                id=a.id,
                startup_id=a.startup_id,
                startup_name=a.startup.name if a.startup else "Unknown",
                type=a.type,
                message=a.message,
                title=a.title,
                priority=a.priority,
                created_at=a.created_at,
            )
            for a in rows
        ],
    )


# ──────────────────────────────────────────────────────────────────────────────
#  4)  FOUNDER VIEWS
# ──────────────────────────────────────────────────────────────────────────────
def _radar(scores: Optional[Dict[str, float]]) -> List[RadarPoint]:
    scores = scores or {}
    return [RadarPoint(axis=c, value=scores.get(c, 0) or 0) for c in CATEGORIES]


def _feedback_from_result(result: AnalysisResult) -> List[FeedbackItem]:
    return [
        FeedbackItem(
            title=a.title,
            description=a.description,
            priority=a.priority,
            category=a.category.title() or "General",
        )
        for a in result.anomalies
    ]


def _feedback_from_row(startup: Startup) -> List[FeedbackItem]:
    return [
        FeedbackItem(
            title=a.title or "Flagged Issue",
            description=a.description or a.message,
            priority=a.priority or "low",
            category=(a.category or "").title() or "General",
        )
        for a in startup.anomalies
    ]


@router.get("/founders/{founder_id}/dashboard", response_model=FounderDashboardResponse)
def founder_dashboard(founder_id: str, db: Session = Depends(get_db)) -> FounderDashboardResponse:
    """
    Latest submission for a founder. A result handed off by a just-finished
    submission takes precedence once; later loads read the stored row.
    """
    fresh = handoff.consume(founder_id)
    startup = crud.get_latest_startup_for_founder(db, founder_id)
    startup_out = StartupOut.model_validate(startup) if startup else None

    if fresh is not None:
        return FounderDashboardResponse(
            startup=startup_out,
            has_analysis=True,
            fresh_analysis=True,
            readiness_score=fresh.aggregate_score,
            trust_signal=fresh.trust_signal,
            radar=_radar(fresh.scores),
            reasoning=fresh.reasoning,
            feedback=_feedback_from_result(fresh),
        )

    if startup is not None and startup.ai_score:
        return FounderDashboardResponse(
            startup=startup_out,
            has_analysis=True,
            readiness_score=startup.ai_score,
            trust_signal=startup.trust_signal,
            radar=_radar(startup.scores),
            reasoning=startup.reasoning or {},
            feedback=_feedback_from_row(startup),
        )

    return FounderDashboardResponse(startup=startup_out, radar=_radar(None))


@router.post("/chat", response_model=ChatResponse)
def chat(request: ChatRequest) -> ChatResponse:
    """Relay a founder's question to the insight chat webhook."""
    try:
        reply = send_chat_message(request.message)
    except WebhookError as e:
        logger.warning("Chat webhook failed: %s", e)
        reply = CHAT_ERROR_REPLY
    return ChatResponse(message=reply)
