# processing/event_checks.py
"""Deterministic, LLM-free checks applied to every candidate clue."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from config import settings

from models.event_models import CandidateEvent, EraBucket
from utils.text_processing import count_words

ALLOWED_CATEGORIES = (
    "war",
    "politics",
    "science",
    "culture",
    "technology",
    "religion",
    "economy",
    "sports",
    "exploration",
    "arts",
)

_NUMBER_RE = re.compile(r"\b([1-9]\d+)\b")
_CENTURY_TERMS_RE = re.compile(
    r"\b(century|centuries|decade|decades|millennium|millennia)\b", re.IGNORECASE
)
_ERA_MARKERS_RE = re.compile(
    r"(?<![\w.])(BCE|CE|AD|BC|B\.C\.|A\.D\.)(?!\w)", re.IGNORECASE
)


@dataclass
class CheckOutcome:
    issues: list[str] = field(default_factory=list)
    rewrite_hints: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return bool(self.issues)

    def add(self, issue: str, hint: str) -> None:
        self.issues.append(issue)
        self.rewrite_hints.append(hint)


def find_leakage(text: str) -> list[str]:
    """Return the leakage categories found in ``text``.

    Small numerals (1-9) are allowed so names like "Ramesses II" or
    "Henry V" stay usable.
    """
    reasons: list[str] = []
    if _NUMBER_RE.search(text):
        reasons.append("large_numbers")
    if _CENTURY_TERMS_RE.search(text):
        reasons.append("century_terms")
    if _ERA_MARKERS_RE.search(text):
        reasons.append("era_markers")
    return reasons


def has_leakage(text: str) -> bool:
    return bool(find_leakage(text))


def has_proper_noun(text: str) -> bool:
    """Best-effort: any capitalized word after the first one."""
    words = text.split()
    for word in words[1:]:
        letters = re.sub(r"[^A-Za-z]", "", word)
        if letters and letters[0].isupper():
            return True
    return False


def is_valid_word_count(text: str, limit: int = settings.MAX_EVENT_WORDS) -> bool:
    return count_words(text) <= limit


def categorize_era(year: int) -> EraBucket:
    if year < 500:
        return "ancient"
    if year < 1500:
        return "medieval"
    return "modern"


def validate_metadata(candidate: CandidateEvent, year: int) -> CheckOutcome:
    outcome = CheckOutcome()
    metadata = candidate.metadata
    if metadata is None:
        outcome.add(
            "Missing metadata", "Add difficulty, category, era, fame_level, tags"
        )
        return outcome

    if metadata.difficulty is not None and not 1 <= metadata.difficulty <= 5:
        outcome.add("Metadata difficulty out of range", "Set difficulty between 1 and 5")
    if metadata.fame_level is not None and not 1 <= metadata.fame_level <= 5:
        outcome.add("Metadata fame_level out of range", "Set fame_level between 1 and 5")
    if metadata.category and any(
        category not in ALLOWED_CATEGORIES for category in metadata.category
    ):
        outcome.add("Metadata category not in allowed list", "Use allowed categories only")

    expected_era = categorize_era(year)
    if metadata.era and metadata.era != expected_era:
        outcome.add("Metadata era does not match year", f"Set era to {expected_era}")
    return outcome


def run_deterministic_checks(candidate: CandidateEvent, year: int) -> CheckOutcome:
    """All rule-based checks for one candidate, in a stable order."""
    outcome = CheckOutcome()
    if candidate.leak_flags.any() or has_leakage(candidate.event_text):
        outcome.add(
            "Contains year leakage (numbers, century terms, or BCE/CE references)",
            "Remove numbers ≥10, century references, and BCE/CE terms",
        )
    if not is_valid_word_count(candidate.event_text):
        outcome.add(
            f"Exceeds {settings.MAX_EVENT_WORDS}-word limit",
            f"Condense clue to {settings.MAX_EVENT_WORDS} words or fewer",
        )
    if not has_proper_noun(candidate.event_text):
        outcome.add(
            "Missing proper noun to anchor the clue",
            "Add a specific person, place, or institution",
        )

    metadata_outcome = validate_metadata(candidate, year)
    outcome.issues.extend(metadata_outcome.issues)
    outcome.rewrite_hints.extend(metadata_outcome.rewrite_hints)
    return outcome
