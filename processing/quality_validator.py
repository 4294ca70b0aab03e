# processing/quality_validator.py
"""Independent quality signals for candidate clues.

The semantic leakage detector compares clue text against a knowledge base of
phrases that previously gave away their year. Embeddings are hashed bags of
tokens, so scores are deterministic and need no external service.
"""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Mapping
from typing import Any

import numpy as np
import structlog
from config import settings

from models.event_models import (
    EventMetadata,
    LeakyPhrase,
    ValidationResult,
    ValidatorScores,
)
from processing.phrase_store import JsonFilePhraseStore, PhraseStore
from utils.similarity import max_cosine_similarity
from utils.text_processing import tokenize_lower, truncate_for_log

logger = structlog.get_logger(__name__)

METADATA_FIELDS = ("difficulty", "category", "era", "fame_level", "tags")


def _bucket(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") % dim


class SemanticLeakageDetector:
    """Scores text by its closest match in the leaky-phrase knowledge base."""

    def __init__(
        self,
        phrases: list[LeakyPhrase] | None = None,
        dim: int = settings.LEAKAGE_EMBEDDING_DIM,
    ) -> None:
        self.dim = dim
        self._phrases: list[LeakyPhrase] = []
        self._matrix = np.zeros((0, dim), dtype=np.float64)
        for phrase in phrases or []:
            self.add_phrase(phrase)

    @property
    def phrases(self) -> list[LeakyPhrase]:
        return list(self._phrases)

    def embed(self, text: str) -> list[float]:
        tokens = tokenize_lower(text)
        vector = [0.0] * self.dim
        for token in tokens:
            vector[_bucket(token, self.dim)] += 1.0
        count = max(1, len(tokens))
        return [value / count for value in vector]

    def add_phrase(self, phrase: LeakyPhrase) -> LeakyPhrase:
        """Add a phrase, re-embedding it when its stored vector does not fit."""
        if len(phrase.embedding) != self.dim:
            phrase = phrase.model_copy(update={"embedding": self.embed(phrase.phrase)})
        self._phrases.append(phrase)
        row = np.asarray(phrase.embedding, dtype=np.float64).reshape(1, self.dim)
        self._matrix = np.vstack([self._matrix, row])
        return phrase

    def score(self, text: str) -> tuple[float, LeakyPhrase | None]:
        if not self._phrases:
            return 0.0, None
        query = np.asarray(self.embed(text), dtype=np.float64)
        best, index = max_cosine_similarity(query, self._matrix)
        if index is None:
            return 0.0, None
        return min(1.0, max(0.0, best)), self._phrases[index]


def score_metadata(metadata: EventMetadata | Mapping[str, Any] | None) -> float:
    """Fraction of the expected metadata fields that are present."""
    if metadata is None:
        return 0.0
    if isinstance(metadata, EventMetadata):
        present = metadata.present_fields()
    elif isinstance(metadata, Mapping):
        present = {key for key in metadata if metadata[key] is not None}
    else:
        return 0.0
    return sum(1 for field in METADATA_FIELDS if field in present) / len(METADATA_FIELDS)


class QualityValidator:
    """Validates clue text and learns new leaky phrases from rejections."""

    def __init__(
        self,
        store: PhraseStore | None = None,
        detector: SemanticLeakageDetector | None = None,
    ) -> None:
        self.store = store or JsonFilePhraseStore(settings.LEAKY_PHRASES_FILE)
        self.detector = detector or SemanticLeakageDetector(self.store.load())
        self._write_lock = asyncio.Lock()
        logger.info(
            "QualityValidator initialized.", phrase_count=len(self.detector.phrases)
        )

    def validate_event(
        self,
        event_text: str,
        year: int,
        metadata: EventMetadata | Mapping[str, Any] | None = None,
    ) -> ValidationResult:
        leakage, closest = self.detector.score(event_text)
        scores = ValidatorScores(
            semantic_leakage=leakage,
            metadata_quality=score_metadata(metadata),
        )

        suggestions: list[str] = []
        if leakage >= settings.LEAKAGE_FAIL_THRESHOLD:
            suggestions.append("Remove phrases that reveal the year")
        if scores.metadata_quality < settings.METADATA_QUALITY_MIN:
            suggestions.append("Add/normalize metadata fields")

        if closest is not None:
            reasoning = f'Closest leak phrase: "{closest.phrase}" (score {leakage:.2f})'
        else:
            reasoning = "No strong leakage detected"

        passed = (
            leakage < settings.LEAKAGE_FAIL_THRESHOLD
            and scores.metadata_quality >= settings.METADATA_QUALITY_MIN
        )
        if not passed:
            logger.debug(
                f"Validator rejected clue for {year}: {truncate_for_log(event_text)}",
                semantic_leakage=round(leakage, 4),
                metadata_quality=scores.metadata_quality,
            )
        return ValidationResult(
            passed=passed,
            scores=scores,
            reasoning=reasoning,
            suggestions=suggestions,
        )

    async def learn_from_rejected(
        self, event_text: str, year_range: tuple[int, int]
    ) -> LeakyPhrase | None:
        """Append a rejected clue to the knowledge base and persist the whole list."""
        if not event_text or not event_text.strip():
            return None
        async with self._write_lock:
            entry = self.detector.add_phrase(
                LeakyPhrase(
                    phrase=event_text.lower()[: settings.LEARNED_PHRASE_MAX_CHARS],
                    year_range=year_range,
                    embedding=self.detector.embed(event_text),
                )
            )
            snapshot = self.detector.phrases
            try:
                await asyncio.to_thread(self.store.replace_all, snapshot)
            except Exception as exc:
                logger.error(
                    "Failed persisting learned leaky phrase",
                    phrase=truncate_for_log(entry.phrase),
                    exc_info=exc,
                )
            else:
                logger.info(
                    "Learned leaky phrase from rejected clue.",
                    phrase=truncate_for_log(entry.phrase),
                    year_range=list(year_range),
                    phrase_count=len(snapshot),
                )
        return entry
