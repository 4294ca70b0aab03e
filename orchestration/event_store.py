# orchestration/event_store.py
"""Boundary to the durable event/puzzle store."""

from __future__ import annotations

import uuid
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import structlog

from models import CandidateEvent, YearStats

logger = structlog.get_logger(__name__)


@runtime_checkable
class EventStore(Protocol):
    async def insert_events(
        self, year: int, events: Sequence[CandidateEvent]
    ) -> list[str]: ...

    async def mark_events_used(
        self, event_ids: Sequence[str], puzzle_id: str, mode: str
    ) -> None: ...

    async def get_year_stats(self) -> list[YearStats]: ...

    async def get_puzzle_years(self) -> list[int]: ...


@dataclass
class StoredEvent:
    event_id: str
    year: int
    event: CandidateEvent
    used_by: dict[str, str] = field(default_factory=dict)
    flagged: bool = False


class InMemoryEventStore:
    """Process-local event store for local runs and tests."""

    def __init__(self, puzzle_years: Sequence[int] | None = None) -> None:
        self._events: dict[str, StoredEvent] = {}
        self._by_year: dict[int, list[str]] = defaultdict(list)
        self._puzzle_years: list[int] = list(puzzle_years or [])

    async def insert_events(
        self, year: int, events: Sequence[CandidateEvent]
    ) -> list[str]:
        ids: list[str] = []
        for event in events:
            event_id = uuid.uuid4().hex
            self._events[event_id] = StoredEvent(event_id=event_id, year=year, event=event)
            self._by_year[year].append(event_id)
            ids.append(event_id)
        logger.info(f"Stored {len(ids)} events for year {year}.")
        return ids

    async def mark_events_used(
        self, event_ids: Sequence[str], puzzle_id: str, mode: str
    ) -> None:
        puzzle_years: set[int] = set()
        for event_id in event_ids:
            stored = self._events.get(event_id)
            if stored is None:
                logger.warning("Unknown event id; skipping.", event_id=event_id)
                continue
            stored.used_by[mode] = puzzle_id
            puzzle_years.add(stored.year)
        self._puzzle_years.extend(sorted(puzzle_years))

    def flag_event(self, event_id: str) -> None:
        self._events[event_id].flagged = True

    def events_for_year(self, year: int) -> list[CandidateEvent]:
        return [self._events[event_id].event for event_id in self._by_year.get(year, [])]

    async def get_year_stats(self) -> list[YearStats]:
        stats: list[YearStats] = []
        for year, event_ids in sorted(self._by_year.items()):
            stored = [self._events[event_id] for event_id in event_ids]
            used = sum(1 for item in stored if item.used_by)
            stats.append(
                YearStats(
                    year=year,
                    total=len(stored),
                    used=used,
                    available=len(stored) - used,
                    flagged=sum(1 for item in stored if item.flagged),
                )
            )
        return stats

    async def get_puzzle_years(self) -> list[int]:
        return list(self._puzzle_years)
