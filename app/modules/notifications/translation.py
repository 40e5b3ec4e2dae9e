"""Localized titles and bodies for notification types.

``render`` is a pure function of (type, context, locale). Unknown locales use the default
language, a type missing from a locale uses the default language's entry, and a type
missing everywhere degrades to the generic studio title and body.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, NamedTuple, Optional, Tuple

from app.core.config import settings
from app.i18n import default_language, normalize_locale

from .models import NotificationType

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")

GENERAL_TITLE = "🧘‍♀️ Animo Pilates"


class RenderedNotification(NamedTuple):
    title: str
    body: str


Template = Tuple[str, str]

TEMPLATES: Dict[str, Dict[NotificationType, Template]] = {
    "en": {
        NotificationType.REMINDER: (
            "Class Reminder: {{class_name}}",
            "Your {{class_name}} class with {{instructor_name}} starts in {{minutes}} minutes!",
        ),
        NotificationType.CANCELLATION: (
            "Class cancelled by studio",
            "Sorry, {{class_name}} on {{date}} at {{time}} has been cancelled. "
            "You'll be notified about replacement classes.",
        ),
        NotificationType.UPDATE: (
            "Class updated",
            "{{class_name}} on {{date}} at {{time}} has been updated. {{details}}",
        ),
        NotificationType.INSTRUCTOR_CHANGE: (
            "Instructor change",
            "The instructor for {{class_name}} on {{date}} has changed from "
            "{{old_instructor}} to {{new_instructor}}.",
        ),
        NotificationType.CLASS_TIME_CHANGE: (
            "Class time change",
            "{{class_name}} on {{date}} has been moved from {{old_time}} to {{new_time}}.",
        ),
        NotificationType.WAITLIST_JOINED: (
            "Added to waitlist!",
            "You've been added to the waitlist for {{class_name}} on {{date}} at {{time}}. "
            "Your position: #{{position}}",
        ),
        NotificationType.WAITLIST_PROMOTION: (
            "You're off the waitlist!",
            "A spot opened up in {{class_name}} on {{date}} at {{time}}. "
            "You have been automatically booked!",
        ),
        NotificationType.WAITLIST_MOVED_UP: (
            "You moved up on the waitlist",
            "You are now #{{new_position}} on the waitlist for {{class_name}}.",
        ),
        NotificationType.CLASS_BOOKED: (
            "Class booked!",
            "Your booking for {{class_name}} with {{instructor_name}} is confirmed "
            "for {{date}} at {{time}}.",
        ),
        NotificationType.CLASS_ASSIGNMENT: (
            "New class assignment!",
            "You've been assigned to {{class_name}} on {{date}} at {{time}}.",
        ),
        NotificationType.STUDENT_JOINED_CLASS: (
            "New student enrolled",
            "{{student_name}} joined {{class_name}} on {{date}} at {{time}}.",
        ),
        NotificationType.STUDENT_CANCELLED_BOOKING: (
            "Booking cancelled",
            "{{student_name}} cancelled their booking for {{class_name}} on {{date}} at {{time}}.",
        ),
        NotificationType.CLASS_FULL: (
            "Class is full",
            "{{class_name}} on {{date}} at {{time}} is now fully booked.",
        ),
        NotificationType.SUBSCRIPTION_EXPIRING: (
            "Subscription expiring",
            "Your {{plan_name}} subscription will expire on {{expiry_date}}. "
            "Renew to continue booking classes.",
        ),
        NotificationType.SUBSCRIPTION_EXPIRED: (
            "Subscription expired",
            "Your {{plan_name}} subscription has expired. Visit reception to renew.",
        ),
        NotificationType.SUBSCRIPTION_CHANGED: (
            "Subscription updated",
            "Your subscription is now {{plan_name}}.",
        ),
        NotificationType.WELCOME: (
            "Welcome to Animo Pilates!",
            "Hi {{user_name}}, your account is ready. Book your first class today!",
        ),
        NotificationType.GENERAL: ("{{title}}", "{{message}}"),
    },
    "sq": {
        NotificationType.REMINDER: (
            "Kujtues për orën: {{class_name}}",
            "Ora juaj {{class_name}} me {{instructor_name}} fillon pas {{minutes}} minutash!",
        ),
        NotificationType.CANCELLATION: (
            "Ora u anulua nga studio",
            "Na vjen keq, ora {{class_name}} më {{date}} në {{time}} u anulua. "
            "Do të njoftoheni për orë zëvendësuese.",
        ),
        NotificationType.UPDATE: (
            "Ora u përditësua",
            "Ora {{class_name}} më {{date}} në {{time}} u përditësua. {{details}}",
        ),
        NotificationType.INSTRUCTOR_CHANGE: (
            "Ndryshim instruktori",
            "Instruktori për orën {{class_name}} më {{date}} u ndryshua nga "
            "{{old_instructor}} në {{new_instructor}}.",
        ),
        NotificationType.CLASS_TIME_CHANGE: (
            "Ndryshim kohe ore",
            "Ora {{class_name}} më {{date}} u zhvendos nga {{old_time}} në {{new_time}}.",
        ),
        NotificationType.WAITLIST_JOINED: (
            "U shtuat në listën e pritjes!",
            "U shtuat në listën e pritjes për {{class_name}} më {{date}} në {{time}}. "
            "Pozicioni juaj: #{{position}}",
        ),
        NotificationType.WAITLIST_PROMOTION: (
            "Nuk jeni më në listën e pritjes!",
            "U lirua një vend në {{class_name}} më {{date}} në {{time}}. "
            "Jeni rezervuar automatikisht!",
        ),
        NotificationType.WAITLIST_MOVED_UP: (
            "U ngjitët në listën e pritjes",
            "Tani jeni #{{new_position}} në listën e pritjes për {{class_name}}.",
        ),
        NotificationType.CLASS_BOOKED: (
            "Ora u rezervua!",
            "Rezervimi juaj për {{class_name}} me {{instructor_name}} u konfirmua "
            "për {{date}} në {{time}}.",
        ),
        NotificationType.CLASS_ASSIGNMENT: (
            "Caktim i ri ore!",
            "Jeni caktuar në orën {{class_name}} më {{date}} në {{time}}.",
        ),
        NotificationType.STUDENT_JOINED_CLASS: (
            "Student i ri i regjistruar",
            "{{student_name}} u bashkua në {{class_name}} më {{date}} në {{time}}.",
        ),
        NotificationType.STUDENT_CANCELLED_BOOKING: (
            "Rezervim i anuluar",
            "{{student_name}} anuloi rezervimin për {{class_name}} më {{date}} në {{time}}.",
        ),
        NotificationType.CLASS_FULL: (
            "Ora është plot",
            "{{class_name}} më {{date}} në {{time}} është rezervuar plotësisht.",
        ),
        NotificationType.SUBSCRIPTION_EXPIRING: (
            "Abonimi po skadon",
            "Abonimi juaj {{plan_name}} do të skadojë më {{expiry_date}}. "
            "Rinovoni për të vazhduar rezervimin e orëve.",
        ),
        NotificationType.SUBSCRIPTION_EXPIRED: (
            "Abonimi ka skaduar",
            "Abonimi juaj {{plan_name}} ka skaduar. Vizitoni recepsionin për të rinovuar.",
        ),
        NotificationType.SUBSCRIPTION_CHANGED: (
            "Abonimi u përditësua",
            "Abonimi juaj tani është {{plan_name}}.",
        ),
        NotificationType.WELCOME: (
            "Mirë se vini në Animo Pilates!",
            "Përshëndetje {{user_name}}, llogaria juaj është gati. "
            "Rezervoni orën tuaj të parë sot!",
        ),
        NotificationType.GENERAL: ("{{title}}", "{{message}}"),
    },
}

# Substituted when a placeholder has no value in the context. ``minutes`` falls back to
# the configured default reminder lead time.
PLACEHOLDER_FALLBACKS: Dict[str, Dict[str, str]] = {
    "en": {
        "instructor_name": "your instructor",
        "class_name": "your class",
        "student_name": "A student",
        "plan_name": "current",
        "user_name": "there",
        "details": "Check the schedule for the latest details.",
        "title": GENERAL_TITLE,
        "message": "New notification from Animo Pilates",
    },
    "sq": {
        "instructor_name": "instruktorin tuaj",
        "class_name": "ora juaj",
        "student_name": "Një student",
        "plan_name": "aktual",
        "user_name": "mik",
        "details": "Kontrolloni orarin për detajet e fundit.",
        "title": GENERAL_TITLE,
        "message": "Njoftim i ri nga Animo Pilates",
    },
}


def interpolate(template: str, context: Mapping[str, Any], locale: str) -> str:
    """Replace ``{{key}}`` placeholders; unknown keys without a fallback stay verbatim."""
    fallbacks = PLACEHOLDER_FALLBACKS.get(locale) or PLACEHOLDER_FALLBACKS[default_language()]

    def _substitute(match: "re.Match[str]") -> str:
        key = match.group(1)
        value = context.get(key)
        if value is not None and value != "":
            return str(value)
        if key in fallbacks:
            return fallbacks[key]
        if key == "minutes":
            return str(settings.default_reminder_minutes)
        return match.group(0)

    return _PLACEHOLDER.sub(_substitute, template)


def _lookup(notification_type: NotificationType, locale: str) -> Tuple[Optional[Template], str]:
    table = TEMPLATES.get(locale)
    if table and notification_type in table:
        return table[notification_type], locale
    fallback_locale = default_language()
    fallback_table = TEMPLATES.get(fallback_locale, {})
    if notification_type in fallback_table:
        return fallback_table[notification_type], fallback_locale
    return None, fallback_locale


def render(
    notification_type: NotificationType,
    context: Optional[Mapping[str, Any]] = None,
    locale: Optional[str] = None,
) -> RenderedNotification:
    """Return the localized title and body for a notification type."""
    context = context or {}
    resolved_locale = normalize_locale(locale)
    template, template_locale = _lookup(NotificationType(notification_type), resolved_locale)
    if template is None:
        fallbacks = PLACEHOLDER_FALLBACKS[template_locale]
        return RenderedNotification(fallbacks["title"], fallbacks["message"])
    title_template, body_template = template
    return RenderedNotification(
        interpolate(title_template, context, template_locale),
        interpolate(body_template, context, template_locale),
    )


__all__ = [
    "GENERAL_TITLE",
    "PLACEHOLDER_FALLBACKS",
    "RenderedNotification",
    "TEMPLATES",
    "interpolate",
    "render",
]
