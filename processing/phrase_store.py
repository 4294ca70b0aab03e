# processing/phrase_store.py
"""Persistence for the leaky-phrase knowledge base."""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import structlog
from pydantic import ValidationError

from models.event_models import LeakyPhrase

logger = structlog.get_logger(__name__)


@runtime_checkable
class PhraseStore(Protocol):
    """Backing store for learned leaky phrases."""

    def load(self) -> list[LeakyPhrase]: ...

    def replace_all(self, phrases: Sequence[LeakyPhrase]) -> None: ...


class InMemoryPhraseStore:
    """Phrase store that keeps everything in process memory."""

    def __init__(self, phrases: Sequence[LeakyPhrase] | None = None) -> None:
        self._phrases: list[LeakyPhrase] = list(phrases or [])
        self.write_count = 0

    def load(self) -> list[LeakyPhrase]:
        return list(self._phrases)

    def replace_all(self, phrases: Sequence[LeakyPhrase]) -> None:
        self._phrases = list(phrases)
        self.write_count += 1


class JsonFilePhraseStore:
    """JSON array on disk, rewritten atomically on every update.

    Writers within one process are serialized by the validator. Concurrent
    writers in separate processes can still lose each other's updates.
    """

    def __init__(self, file_path: str) -> None:
        self.file_path = file_path

    def load(self) -> list[LeakyPhrase]:
        if not os.path.exists(self.file_path):
            logger.info("Leaky phrase file not found; starting empty.", path=self.file_path)
            return []
        try:
            with open(self.file_path, encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.error(
                "Failed loading leaky phrases; starting empty.",
                path=self.file_path,
                exc_info=exc,
            )
            return []
        if not isinstance(raw, list):
            logger.error(
                "Leaky phrase file is not a JSON array; starting empty.",
                path=self.file_path,
            )
            return []

        phrases: list[LeakyPhrase] = []
        for entry in raw:
            try:
                phrases.append(LeakyPhrase.model_validate(entry))
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed leaky phrase entry.",
                    entry=str(entry)[:120],
                    error=str(exc).splitlines()[0],
                )
        return phrases

    def replace_all(self, phrases: Sequence[LeakyPhrase]) -> None:
        directory = os.path.dirname(os.path.abspath(self.file_path))
        os.makedirs(directory, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            prefix=".leaky_phrases.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump([phrase.to_json() for phrase in phrases], f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.file_path)
        except BaseException:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise
