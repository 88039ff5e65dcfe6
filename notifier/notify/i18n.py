"""Message catalogs for notification and newsletter texts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from notifier.shared.constants import DEFAULT_LOCALE

CATALOGS: dict[str, dict[str, str]] = {
    "en": {
        "interpretation_insert": "created an interpretation",
        "interpretation_update": "edited an interpretation",
        "comment_insert": "commented an interpretation",
        "comment_update": "edited a comment",
        "object_subscribed": "in a favorite you are subscribed to",
        "unsubscribe": "Manage your notification settings",
        "newsletter_title": "Interpretations digest",
        "1_like": "1 like",
        "n_likes": "{n} likes",
        "n_interpretations_and_comments_on_m_favorites": (
            "{n} interpretations and comments on {m} favorites"
        ),
        "new_interpretations": "New interpretations",
        "new_comments": "New comments on an interpretation",
        "open_favorite": "Open favorite",
        "privacy_policy": "Privacy policy",
        "date_format": "%m/%d/%Y",
    },
    "es": {
        "interpretation_insert": "ha creado una interpretación",
        "interpretation_update": "ha editado una interpretación",
        "comment_insert": "ha comentado una interpretación",
        "comment_update": "ha editado un comentario",
        "object_subscribed": "en un favorito al que estás suscrito",
        "unsubscribe": "Gestiona tus preferencias de notificación",
        "newsletter_title": "Resumen de interpretaciones",
        "1_like": "1 me gusta",
        "n_likes": "{n} me gusta",
        "n_interpretations_and_comments_on_m_favorites": (
            "{n} interpretaciones y comentarios en {m} favoritos"
        ),
        "new_interpretations": "Nuevas interpretaciones",
        "new_comments": "Nuevos comentarios en una interpretación",
        "open_favorite": "Abrir favorito",
        "privacy_policy": "Política de privacidad",
        "date_format": "%d/%m/%Y",
    },
    "fr": {
        "interpretation_insert": "a créé une interprétation",
        "interpretation_update": "a modifié une interprétation",
        "comment_insert": "a commenté une interprétation",
        "comment_update": "a modifié un commentaire",
        "object_subscribed": "dans un favori auquel vous êtes abonné",
        "unsubscribe": "Gérer vos préférences de notification",
        "newsletter_title": "Résumé des interprétations",
        "1_like": "1 j'aime",
        "n_likes": "{n} j'aime",
        "n_interpretations_and_comments_on_m_favorites": (
            "{n} interprétations et commentaires sur {m} favoris"
        ),
        "new_interpretations": "Nouvelles interprétations",
        "new_comments": "Nouveaux commentaires sur une interprétation",
        "open_favorite": "Ouvrir le favori",
        "privacy_policy": "Politique de confidentialité",
        "date_format": "%d/%m/%Y",
    },
}


@dataclass(frozen=True)
class Translator:
    """
    Lookup of localized texts for one locale.

    Args:
        locale: Catalog locale.
        messages: Catalog entries.
    """

    locale: str
    messages: dict[str, str]

    def t(self, key: str, **values: object) -> str:
        """
        Translate a key, interpolating ``{name}`` placeholders.

        Args:
            key: Catalog key.
            **values: Placeholder values.

        Returns:
            Localized text, or ``**key**`` when the key is missing.
        """
        template = self.messages.get(key)
        if template is None:
            return f"**{key}**"
        return template.format(**values) if values else template

    def format_date(self, value: datetime) -> str:
        return value.strftime(self.messages.get("date_format", "%Y-%m-%d"))


def get_translator(
    locale: str | None, default_locale: str = DEFAULT_LOCALE
) -> Translator:
    """
    Pick the catalog for a locale.

    ``es_ES`` style locales fall back to their language, then to the
    default locale, then to English.

    Args:
        locale: Requested locale.
        default_locale: Configured fallback locale.

    Returns:
        Translator.
    """
    candidates = []
    if locale:
        candidates.extend([locale, locale.split("_")[0].split("-")[0]])
    candidates.extend([default_locale, DEFAULT_LOCALE])
    for candidate in candidates:
        messages = CATALOGS.get(candidate)
        if messages is not None:
            return Translator(locale=candidate, messages=messages)
    return Translator(locale=DEFAULT_LOCALE, messages=CATALOGS[DEFAULT_LOCALE])
