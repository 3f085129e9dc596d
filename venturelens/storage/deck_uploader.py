import os
import logging
import time
from typing import Dict, Optional

import pymupdf

from venturelens.storage import client as storage_client

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
DEFAULT_BUCKET = "pitch_decks"
UPLOAD_MAX_RETRIES = 3
UPLOAD_RETRY_DELAY = 2.0


class DeckValidationError(ValueError):
    """The uploaded file is not an acceptable pitch deck."""


class DeckUploadError(RuntimeError):
    """Storage rejected the deck after all retries."""


def deck_bucket() -> str:
    return os.getenv("PITCH_DECK_BUCKET", DEFAULT_BUCKET)


def max_upload_bytes() -> int:
    return int(os.getenv("MAX_UPLOAD_SIZE_MB", "25")) * 1024 * 1024


def validate_pitch_deck(pdf_data: bytes, content_type: Optional[str]) -> int:
    """
    Check the upload is a readable PDF and return its page count.

    Raises DeckValidationError for a wrong content type, an empty or
    corrupt file, a password-protected file, or a file with no pages.
    """
    if (content_type or "").split(";")[0].strip().lower() != PDF_CONTENT_TYPE:
        raise DeckValidationError("Please upload a PDF file")
    if not pdf_data:
        raise DeckValidationError("Please upload a PDF file")

    try:
        with pymupdf.open(stream=pdf_data, filetype="pdf") as doc:
            needs_pass = doc.needs_pass
            page_count = doc.page_count
    except (RuntimeError, ValueError) as e:
        logger.warning("Rejected unreadable PDF upload: %s", e)
        raise DeckValidationError("Please upload a PDF file") from e

    if needs_pass:
        raise DeckValidationError("Password-protected PDFs cannot be analyzed")
    if page_count < 1:
        raise DeckValidationError("The PDF has no pages")
    return page_count


def public_url_for(storage_path: str, bucket_name: Optional[str] = None) -> str:
    base_supabase_url = (os.getenv("SUPABASE_URL") or "").rstrip("/")
    bucket_name = bucket_name or deck_bucket()
    return f"{base_supabase_url}/storage/v1/object/public/{bucket_name}/{storage_path}"


def upload_pitch_deck(
    founder_id: str,
    pdf_data: bytes,
    bucket_name: Optional[str] = None,
) -> Dict[str, str]:
    """
    1) Uploads the deck to Supabase Storage under '{founder_id}/{epoch_ms}.pdf'.
    2) Returns the storage path and the public URL built from it.

    Upload failures are retried; the last failure is raised as DeckUploadError.
    """
    supabase = storage_client.get_supabase()
    bucket_name = bucket_name or deck_bucket()
    storage_path = f"{founder_id}/{int(time.time() * 1000)}.pdf"

    attempt = 0
    while True:
        try:
            supabase.storage.from_(bucket_name).upload(
                path=storage_path,
                file=pdf_data,
                file_options={"content-type": PDF_CONTENT_TYPE, "upsert": "false"},
            )
            break
        except Exception as e:
            attempt += 1
            logger.error(
                "Attempt %s: Failed to upload pitch deck to Supabase (path=%s): %s",
                attempt, storage_path, str(e),
                exc_info=True
            )
            if attempt >= UPLOAD_MAX_RETRIES:
                raise DeckUploadError(str(e)) from e
            time.sleep(UPLOAD_RETRY_DELAY)

    public_url = public_url_for(storage_path, bucket_name)
    logger.info("Uploaded pitch deck to %s/%s", bucket_name, storage_path)
    return {
        "storage_path": storage_path,
        "public_url": public_url,
    }


def delete_pitch_deck(storage_path: str, bucket_name: Optional[str] = None) -> bool:
    """
    Remove an uploaded deck. Used to clean up after a submission fails
    part-way; returns False instead of raising so the caller's original
    error is what surfaces.
    """
    bucket_name = bucket_name or deck_bucket()
    try:
        storage_client.get_supabase().storage.from_(bucket_name).remove([storage_path])
    except Exception as e:
        logger.error(
            "Failed to remove orphaned pitch deck %s/%s: %s",
            bucket_name, storage_path, str(e),
            exc_info=True
        )
        return False
    logger.info("Removed orphaned pitch deck %s/%s", bucket_name, storage_path)
    return True
