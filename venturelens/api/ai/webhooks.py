"""
HTTP calls to the workflow-automation webhooks that do the AI work.

Deck hooks (scoring, anomaly detection, vector-store ingestion) all take the
same multipart body: the PDF as ``file`` and the submission metadata as a
JSON string under ``data``. The chat hook takes ``{"message": ...}``.

Transport and parse problems raise; interpreting the JSON is left to
``venturelens.analysis.normalizer``.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

SCORING_WEBHOOK_ENV = "SCORING_WEBHOOK_URL"
ANOMALY_WEBHOOK_ENV = "ANOMALY_WEBHOOK_URL"
INGESTION_WEBHOOK_ENV = "INGESTION_WEBHOOK_URL"
CHAT_WEBHOOK_ENV = "CHAT_WEBHOOK_URL"

EXCERPT_LENGTH = 100
CHAT_FALLBACK_REPLY = "No response from AI"


class WebhookError(Exception):
    """Base class for webhook failures."""


class WebhookNotConfiguredError(WebhookError):
    pass


class WebhookTransportError(WebhookError):
    """Network failure or non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class WebhookPayloadError(WebhookError):
    """The webhook answered, but not with JSON."""

    def __init__(self, body: str):
        super().__init__(f"Invalid response from AI: {body[:EXCERPT_LENGTH]}...")
        self.body = body


def webhook_url(env_var: str) -> Optional[str]:
    return (os.getenv(env_var) or "").strip() or None


def webhook_timeout() -> float:
    return float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "120"))


def _parse_json(response: requests.Response) -> Any:
    body = response.text
    try:
        result = json.loads(body)
    except ValueError as e:
        logger.error("Webhook returned non-JSON body: %s", body[:EXCERPT_LENGTH])
        raise WebhookPayloadError(body) from e
    # Workflow tools answer with every output item; one item is the usual case.
    if isinstance(result, list) and len(result) == 1 and isinstance(result[0], dict):
        return result[0]
    return result


def _post(url: str, **kwargs) -> requests.Response:
    try:
        response = requests.post(url, timeout=webhook_timeout(), **kwargs)
    except requests.RequestException as e:
        raise WebhookTransportError(f"Webhook request failed: {e}") from e

    if not response.ok:
        logger.error("Webhook error: %s %s", response.status_code, response.text[:500])
        raise WebhookTransportError(
            f"Webhook responded with HTTP {response.status_code}",
            status_code=response.status_code,
            body=response.text,
        )
    return response


def call_deck_webhook(
    env_var: str,
    pdf_data: bytes,
    filename: str,
    metadata: Dict[str, Any],
) -> Any:
    """
    POST a deck plus its metadata to the hook named by ``env_var`` and
    return the decoded JSON.
    """
    url = webhook_url(env_var)
    if not url:
        raise WebhookNotConfiguredError(f"{env_var} is not configured")

    logger.info("Posting %s (%d bytes) to %s", filename, len(pdf_data), env_var)
    response = _post(
        url,
        files={"file": (filename, pdf_data, "application/pdf")},
        data={"data": json.dumps(metadata, default=str)},
    )
    result = _parse_json(response)
    logger.info("%s responded with %s", env_var, type(result).__name__)
    return result


def send_chat_message(message: str) -> str:
    """Relay one founder chat message and return the assistant's reply text."""
    url = webhook_url(CHAT_WEBHOOK_ENV)
    if not url:
        raise WebhookNotConfiguredError(f"{CHAT_WEBHOOK_ENV} is not configured")

    response = _post(url, json={"message": message})
    data = _parse_json(response)
    reply = data.get("message") if isinstance(data, dict) else None
    if not isinstance(reply, str):
        return CHAT_FALLBACK_REPLY
    return reply
