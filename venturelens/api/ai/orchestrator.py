# venturelens/api/ai/orchestrator.py

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Optional

from venturelens.analysis.normalizer import AnalysisResult, normalize_analysis
from venturelens.api.ai.sanitize_html import sanitize_analysis
from venturelens.api.ai.webhooks import (
    ANOMALY_WEBHOOK_ENV,
    INGESTION_WEBHOOK_ENV,
    SCORING_WEBHOOK_ENV,
    WebhookError,
    WebhookNotConfiguredError,
    call_deck_webhook,
    webhook_url,
)

logger = logging.getLogger(__name__)


@dataclass
class DeckAnalysisOutcome:
    result: AnalysisResult
    scoring_raw: Any
    anomaly_raw: Any = None
    ingested: bool = False


def _settle_optional(name: str, future: Optional[Future]) -> Any:
    """Result of a non-critical hook, or None if it was skipped or failed."""
    if future is None:
        return None
    try:
        return future.result()
    except WebhookError as e:
        logger.warning("'%s' webhook failed; continuing without it: %s", name, e)
    except Exception as e:
        logger.error("'%s' webhook raised unexpectedly: %s", name, e, exc_info=True)
    return None


def run_deck_analysis(
    pdf_data: bytes,
    filename: str,
    metadata: Dict[str, Any],
    include_ingestion: bool = True,
) -> DeckAnalysisOutcome:
    """
    Sends one deck to the analysis webhooks and normalizes what comes back:

    1) Scoring (required), anomaly detection and vector-store ingestion
       (each only when configured) are posted concurrently.
    2) All requests are allowed to settle; nothing is cancelled or retried.
    3) A scoring failure is raised to the caller. Anomaly / ingestion
       failures are logged and read as "no data".
    """
    if not webhook_url(SCORING_WEBHOOK_ENV):
        raise WebhookNotConfiguredError("Webhook URL is not configured")

    hooks = {"scoring": SCORING_WEBHOOK_ENV, "anomaly": ANOMALY_WEBHOOK_ENV}
    if include_ingestion:
        hooks["ingestion"] = INGESTION_WEBHOOK_ENV

    t0 = time.time()
    futures: Dict[str, Optional[Future]] = {}
    with ThreadPoolExecutor(max_workers=len(hooks), thread_name_prefix="deck-webhook") as pool:
        for name, env_var in hooks.items():
            if name != "scoring" and not webhook_url(env_var):
                logger.info("%s is not set. Skipping '%s' webhook.", env_var, name)
                futures[name] = None
                continue
            futures[name] = pool.submit(call_deck_webhook, env_var, pdf_data, filename, metadata)
    logger.info("Deck webhooks settled in %.2fs for %s", time.time() - t0, filename)

    anomaly_raw = _settle_optional("anomaly", futures.get("anomaly"))
    ingestion_raw = _settle_optional("ingestion", futures.get("ingestion"))

    try:
        scoring_raw = futures["scoring"].result()
    except WebhookError as e:
        logger.error("Scoring webhook failed for %s: %s", filename, e)
        raise

    result = sanitize_analysis(normalize_analysis(scoring_raw, anomaly_raw))
    logger.info(
        "Deck %s normalized: aggregate=%s trust_signal=%s anomalies=%d",
        filename, result.aggregate_score, result.trust_signal, len(result.anomalies),
    )
    return DeckAnalysisOutcome(
        result=result,
        scoring_raw=scoring_raw,
        anomaly_raw=anomaly_raw,
        ingested=ingestion_raw is not None,
    )
