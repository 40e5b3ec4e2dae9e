"""Test module for notification translation and locale fallback."""
import pytest
from fastapi import FastAPI, Request

from app.core.config import settings
from app.i18n import get_locale, normalize_locale
from app.modules.notifications import translation
from app.modules.notifications.models import NotificationType
from app.modules.notifications.translation import (
    GENERAL_TITLE,
    TEMPLATES,
    interpolate,
    render,
)


def test_every_type_has_default_locale_entry():
    """Test case for every type being renderable in the default language."""
    assert set(TEMPLATES["en"]) == set(NotificationType)


def test_render_reminder_in_english():
    """Test case for a fully populated reminder."""
    rendered = render(
        NotificationType.REMINDER,
        {"class_name": "Mat Pilates", "instructor_name": "Elira", "minutes": 30},
        "en",
    )
    assert rendered.title == "Class Reminder: Mat Pilates"
    assert rendered.body == "Your Mat Pilates class with Elira starts in 30 minutes!"


def test_render_reminder_in_albanian():
    """Test case for the sq template table."""
    rendered = render(
        NotificationType.REMINDER,
        {"class_name": "Mat", "instructor_name": "Elira", "minutes": 10},
        "sq",
    )
    assert rendered.title == "Kujtues për orën: Mat"
    assert "pas 10 minutash" in rendered.body


def test_missing_placeholders_use_locale_fallbacks(monkeypatch):
    """Test case for fallback values of instructor, class and minutes."""
    monkeypatch.setattr(settings, "default_reminder_minutes", 15)
    rendered = render(NotificationType.REMINDER, {}, "en")
    assert rendered.body == "Your your class class with your instructor starts in 15 minutes!"

    rendered_sq = render(NotificationType.REMINDER, {}, "sq")
    assert "instruktorin tuaj" in rendered_sq.body


def test_minutes_fallback_follows_configured_lead(monkeypatch):
    """Test case for the reminder lead time fallback."""
    monkeypatch.setattr(settings, "default_reminder_minutes", 45)
    assert render(NotificationType.REMINDER, {}, "en").body.endswith("starts in 45 minutes!")
    assert "pas 45 minutash" in render(NotificationType.REMINDER, {}, "sq").body


def test_unknown_placeholder_is_kept_verbatim():
    """Test case for placeholders with neither value nor fallback."""
    assert interpolate("Hello {{nickname}}", {}, "en") == "Hello {{nickname}}"
    assert interpolate("Hello {{nickname}}", {"nickname": "Ana"}, "en") == "Hello Ana"


@pytest.mark.parametrize("locale", ["de", None, "", "xx-YY"])
def test_unknown_locale_uses_default_language(locale):
    """Test case for unsupported locales."""
    assert render(NotificationType.CLASS_FULL, {"class_name": "Barre"}, locale) == render(
        NotificationType.CLASS_FULL, {"class_name": "Barre"}, "en"
    )


def test_region_tags_are_normalised():
    """Test case for header-style locale tags."""
    assert normalize_locale("sq-AL") == "sq"
    assert normalize_locale("EN_us") == "en"
    assert normalize_locale("fr") == "en"


def test_type_missing_in_locale_uses_default_locale_entry(monkeypatch):
    """Test case for a locale table that lacks one type."""
    reduced = dict(TEMPLATES["sq"])
    reduced.pop(NotificationType.CLASS_FULL)
    monkeypatch.setitem(translation.TEMPLATES, "sq", reduced)

    rendered = render(NotificationType.CLASS_FULL, {"class_name": "Barre"}, "sq")
    assert rendered.title == "Class is full"


def test_type_missing_everywhere_degrades_to_general(monkeypatch):
    """Test case for the last-resort generic message."""
    for locale in ("en", "sq"):
        reduced = dict(TEMPLATES[locale])
        reduced.pop(NotificationType.WELCOME)
        monkeypatch.setitem(translation.TEMPLATES, locale, reduced)

    rendered = render(NotificationType.WELCOME, {"user_name": "Ana"}, "sq")
    assert rendered.title == GENERAL_TITLE
    assert rendered.body == "New notification from Animo Pilates"


def test_general_uses_payload_title_and_message():
    """Test case for free-form announcements."""
    rendered = render(
        NotificationType.GENERAL, {"title": "Studio closed", "message": "See you Monday"}, "sq"
    )
    assert rendered == ("Studio closed", "See you Monday")
    assert render(NotificationType.GENERAL, {}, "en").title == GENERAL_TITLE


def test_render_is_deterministic():
    """Test case for purity of rendering."""
    context = {"class_name": "Tower", "date": "01/02/2025", "time": "09:00"}
    assert render(NotificationType.CANCELLATION, context, "en") == render(
        NotificationType.CANCELLATION, context, "en"
    )


def test_request_locale_from_accept_language():
    """Test case for picking the language of an API caller."""
    app = FastAPI()
    app.state.default_language = "en"

    def request_with(headers):
        scope = {
            "type": "http",
            "app": app,
            "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        }
        return Request(scope)

    assert get_locale(request_with({"Accept-Language": "sq-AL,sq;q=0.9,en;q=0.8"})) == "sq"
    assert get_locale(request_with({"Accept-Language": "fr-FR"})) == "en"
    assert get_locale(request_with({})) == "en"
