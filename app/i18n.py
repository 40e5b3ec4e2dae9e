"""Minimal internationalisation helpers used across the project."""

from __future__ import annotations

from typing import Dict, Optional

from fastapi import Request

from app.core.config import settings

ALL_LANGUAGES: Dict[str, str] = {
    "en": "English",
    "sq": "Shqip",
}


def default_language() -> str:
    configured = (settings.default_language or "en").lower()
    return configured if configured in ALL_LANGUAGES else "en"


def normalize_locale(value: Optional[str]) -> str:
    """Map a stored preference or header tag (``sq-AL``, ``EN_us``) to a supported language."""
    if not value:
        return default_language()
    primary = value.strip().replace("_", "-").split("-")[0].lower()
    if primary in ALL_LANGUAGES:
        return primary
    return default_language()


def get_locale(request: Request) -> str:
    lang_header = request.headers.get("Accept-Language", "").split(",")[0].strip()
    if lang_header:
        return normalize_locale(lang_header.split(";")[0])
    return getattr(request.app.state, "default_language", default_language())


__all__ = ["ALL_LANGUAGES", "default_language", "get_locale", "normalize_locale"]
