"""
Scrubbing of AI-written text.

Category reasoning, anomaly fields and quoted claims come straight out of an
LLM workflow. They are plain text: the dashboards render them as text nodes,
so any markup the model emits is stripped with bleach and entities are
decoded back, leaving ordinary characters such as ``&`` or ``<`` exactly as
written.
"""

from __future__ import annotations

import html
import logging
import uuid
from typing import Any, Optional

import bleach

from venturelens.analysis.normalizer import AnalysisResult

logger = logging.getLogger(__name__)


def sanitize_text(text: Optional[str]) -> str:
    """
    Return `text` with every HTML tag removed.

    Inner text of removed tags is kept. Text without markup comes back
    unchanged.
    """
    if not text:
        return ""
    cleaned = html.unescape(bleach.clean(text, tags=set(), attributes={}, strip=True))
    if cleaned != text:
        logger.debug("Stripped markup from AI text (%d -> %d chars)", len(text), len(cleaned))
    return cleaned


def _sanitize_claim(text: Optional[str]) -> Optional[str]:
    return None if text is None else sanitize_text(text)


def sanitize_analysis(result: AnalysisResult) -> AnalysisResult:
    """Scrub every free-text field of a normalized result, in place."""
    result.reasoning = {category: sanitize_text(text) for category, text in result.reasoning.items()}
    for anomaly in result.anomalies:
        anomaly.id = sanitize_text(anomaly.id) or uuid.uuid4().hex
        anomaly.category = sanitize_text(anomaly.category)
        anomaly.severity = sanitize_text(anomaly.severity)
        anomaly.description = sanitize_text(anomaly.description)
        anomaly.claims.deck = _sanitize_claim(anomaly.claims.deck)
        anomaly.claims.website = _sanitize_claim(anomaly.claims.website)
    return result


def cleanse_json(value: Any) -> Any:
    """Sanitise every string leaf of a decoded JSON payload."""
    if isinstance(value, str):
        return sanitize_text(value)
    if isinstance(value, list):
        return [cleanse_json(v) for v in value]
    if isinstance(value, dict):
        return {k: cleanse_json(v) for k, v in value.items()}
    return value
