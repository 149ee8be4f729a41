"""Heuristic topic tagging for chat messages.

Three pattern families are scanned independently, in order:

1. general concepts   — "concept de X", "chapitre X", "topic of X"
2. quantitative terms — "théorème de X", "equation of X"
3. humanities terms   — "figure de style X", "author of X"

Each match captures the letters/whitespace that follow the indicator, up to
the next period, comma, double whitespace or end of text.  The scan is
deliberately permissive: look-alike phrasing may produce extra tags.
"""

from __future__ import annotations

import re

_CONNECTOR = r"(?:de\s+|d'|of\s+)?"
_PHRASE = r"([A-Za-zÀ-ÿ\s]+?)(?=\.|,|\s{2}|\Z)"


def _family(*indicators: str) -> re.Pattern[str]:
    alternatives = "|".join(indicators)
    return re.compile(rf"(?:{alternatives})\s+{_CONNECTOR}{_PHRASE}", re.IGNORECASE)


TOPIC_PATTERNS: tuple[re.Pattern[str], ...] = (
    _family("concept", "notion", "thème", "chapitre", "chapter", "topic"),
    _family(
        "théorème", "équation", "fonction", "propriété",
        "theorem", "equation", "function", "property",
    ),
    _family(
        "figure de style", "personnage", "auteur", "période",
        "literary device", "character", "author", "period",
    ),
)


def extract_topics(content: str) -> list[str]:
    """Return the topic phrases found in *content*.

    Order follows pattern family, then match position; duplicates keep
    their first occurrence.  Returns an empty list when nothing matches.
    """
    topics: dict[str, None] = {}
    for pattern in TOPIC_PATTERNS:
        for match in pattern.finditer(content):
            phrase = match.group(1).strip()
            if phrase:
                topics.setdefault(phrase, None)
    return list(topics)
