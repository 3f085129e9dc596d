"""
Supabase integration package for pitch-deck storage.
"""

from .client import supabase, initialize_supabase, get_supabase
from .deck_uploader import (
    DeckUploadError,
    DeckValidationError,
    delete_pitch_deck,
    upload_pitch_deck,
    validate_pitch_deck,
)

__all__ = [
    'supabase',
    'initialize_supabase',
    'get_supabase',
    'DeckUploadError',
    'DeckValidationError',
    'delete_pitch_deck',
    'upload_pitch_deck',
    'validate_pitch_deck',
]
