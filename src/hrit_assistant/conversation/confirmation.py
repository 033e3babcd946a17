"""Yes/no classification of short replies to a pending confirmation."""

from __future__ import annotations

import re

from hrit_assistant.types import ConfirmationResult

_POSITIVE_PATTERNS = (
    re.compile(
        r"^(oui|yes|yeah|yep|ok|okay|d'accord|sure|bien sûr|absolument|certainement"
        r"|confirm|confirmed|go ahead|please do)$"
    ),
    re.compile(r"^(y|o)$"),
    re.compile(r"\bcreate\s*(the\s*|a\s*)?ticket"),
    re.compile(r"créer?\s*(le\s*)?ticket"),
    re.compile(r"faire\s*(le\s*)?ticket"),
)

_NEGATIVE_PATTERNS = (
    re.compile(r"^(non|no|nope|nah|pas|ne.*pas|annule|annuler|cancel|stop)$"),
    re.compile(r"^(n)$"),
    re.compile(r"\bno\s+ticket"),
    re.compile(r"\b(don't|do not)\s+(create|open|want)"),
    re.compile(r"pas\s*(de\s*)?ticket"),
    re.compile(r"ne\s*veux\s*pas"),
)

_TRAILING_PUNCTUATION = re.compile(r"[\s.!?]+$")


def detect_confirmation(text: str) -> ConfirmationResult:
    """Classify `text` as an affirmative or negative reply, or neither.

    When both families match ("don't create the ticket"), the reply counts
    as negative.
    """

    normalized = _TRAILING_PUNCTUATION.sub("", text.lower().strip())
    is_positive = any(pattern.search(normalized) for pattern in _POSITIVE_PATTERNS)
    is_negative = any(pattern.search(normalized) for pattern in _NEGATIVE_PATTERNS)
    is_confirmation = is_positive or is_negative
    return ConfirmationResult(
        is_confirmation=is_confirmation,
        is_positive=is_positive and not is_negative,
        confidence=0.9 if is_confirmation else 0.0,
    )
