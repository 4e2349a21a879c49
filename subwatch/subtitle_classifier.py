"""Subtitle-likelihood classification of OCR'd text.

Classification is a pure function of the text. An ordered table of pattern
rules is evaluated category by category and the first match wins; when no rule
matches, a length/punctuation heuristic decides whether the text still looks
like a subtitle line.
"""

import re
from typing import List, Tuple, Pattern

from .models import SubtitleCategory, SubtitleClassification

RULE_CONFIDENCE = 0.9
HEURISTIC_CONFIDENCE = 0.6
REJECT_CONFIDENCE = 0.1

MIN_LENGTH = 6
MAX_LENGTH = 199

# Evaluation order is part of the contract: dialogue, narrator, action, song
SUBTITLE_RULES: List[Tuple[SubtitleCategory, Pattern]] = [
    (SubtitleCategory.DIALOGUE, re.compile(r'^["\'].*["\']$')),          # "Quoted line"
    (SubtitleCategory.DIALOGUE, re.compile(r'^-\s*[A-Z].*$')),            # - Dash dialogue
    (SubtitleCategory.DIALOGUE, re.compile(r'^[A-Z\s]+:\s*\S.*$')),       # NAME: line
    (SubtitleCategory.NARRATOR, re.compile(r'^\([^)]+\)$')),              # (Narrator text)
    (SubtitleCategory.NARRATOR, re.compile(r'^\[[^\]]+\]$')),             # [Description]
    (SubtitleCategory.NARRATOR, re.compile(r'^[A-Z\s]+:$')),              # SCENE:
    (SubtitleCategory.ACTION, re.compile(r'^\*[^*]+\*$')),                # *Action*
    (SubtitleCategory.ACTION, re.compile(r'^<[^>]+>$')),                  # <Sound effect>
    (SubtitleCategory.ACTION, re.compile(r'^\([^)]*sounds?[^)]*\)$', re.IGNORECASE)),
    (SubtitleCategory.SONG, re.compile(r'^♪.*♪$')),
    (SubtitleCategory.SONG, re.compile(r'^♫.*♫$')),
    (SubtitleCategory.SONG, re.compile(r'^~.*~$')),
]

_TERMINAL_PUNCTUATION = re.compile(r'[.!?]$')
_URL = re.compile(r'^https?://', re.IGNORECASE)
_NUMERIC_OR_TIME = re.compile(r'^\d+[\d\s:,.-]*$')

def looks_like_subtitle(text: str, min_len: int = MIN_LENGTH, max_len: int = MAX_LENGTH) -> bool:
    """Heuristic used when no explicit rule matches"""
    return (
        min_len <= len(text) <= max_len
        and bool(_TERMINAL_PUNCTUATION.search(text))
        and not _URL.match(text)
        and not _NUMERIC_OR_TIME.match(text)
    )

def classify(text: str) -> SubtitleClassification:
    for category, pattern in SUBTITLE_RULES:
        if pattern.match(text):
            return SubtitleClassification(True, category, RULE_CONFIDENCE)

    if looks_like_subtitle(text):
        return SubtitleClassification(True, SubtitleCategory.UNKNOWN, HEURISTIC_CONFIDENCE)
    return SubtitleClassification(False, SubtitleCategory.UNKNOWN, REJECT_CONFIDENCE)
