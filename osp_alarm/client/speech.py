# osp_alarm/client/speech.py
"""
Voice command matching for the alarm prompt.
Phrases are lower-cased, accent-stripped and reduced to a-z and spaces,
then searched for a yes keyword first and a no keyword second.
"""

import re
import unicodedata
from typing import Iterable, Optional
from osp_alarm.config import settings
from osp_alarm.enums import ResponseType

_NON_LETTERS = re.compile(r"[^a-z\s]")


def normalize_command(phrase: Optional[str]) -> str:
    decomposed = unicodedata.normalize("NFD", (phrase or "").lower())
    return _NON_LETTERS.sub("", decomposed).strip()


def detect_response(phrase: Optional[str], yes_keywords: Iterable[str] = None,
                    no_keywords: Iterable[str] = None) -> Optional[ResponseType]:
    normalized = normalize_command(phrase)
    if not normalized:
        return None
    yes_keywords = settings.VOICE_YES_KEYWORDS if yes_keywords is None else yes_keywords
    no_keywords = settings.VOICE_NO_KEYWORDS if no_keywords is None else no_keywords
    if any(word in normalized for word in yes_keywords):
        return ResponseType.TAK
    if any(word in normalized for word in no_keywords):
        return ResponseType.NIE
    return None


def detect_response_from_results(phrases: Iterable[str]) -> Optional[ResponseType]:
    """First recognised phrase that matches a keyword class wins."""
    for phrase in phrases or []:
        response = detect_response(phrase)
        if response:
            return response
    return None
