"""Today's food log, persisted per calendar day."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime

from pydantic import TypeAdapter, ValidationError

from calorie_tracker.domain.log import (
    ZERO_TOTALS,
    LogEntry,
    LogEntryDraft,
    MacroTotals,
    MealType,
)
from calorie_tracker.services.storage import KeyValueStore

LOG_KEY_PREFIX = "calorie-counter-log-"

_ENTRIES = TypeAdapter(list[LogEntry])

_logger = logging.getLogger(__name__)


def _local_now() -> datetime:
    return datetime.now().astimezone()


def log_key(day: str) -> str:
    """Return the storage key for a day's log."""
    return f"{LOG_KEY_PREFIX}{day}"


@dataclass
class DailyLogStore:
    """Append-only list of entries for the current day."""

    storage: KeyValueStore
    clock: Callable[[], datetime] = field(default=_local_now)
    _current_day: str = field(init=False)
    _entries: list[LogEntry] = field(init=False)

    def __post_init__(self) -> None:
        self._current_day = self.clock().date().isoformat()
        self._entries = self._load(self._current_day)

    @property
    def current_day(self) -> str:
        """Return the ISO day the active log belongs to."""
        return self._current_day

    def add(self, draft: LogEntryDraft) -> LogEntry:
        """Stamp the current day on a draft and append it."""
        self._sync_day()
        entry = draft.on_day(self._current_day)
        self._entries = [*self._entries, entry]
        self._persist()
        return entry

    def remove(self, log_id: int) -> bool:
        """Remove an entry by log id; absent ids are ignored."""
        self._sync_day()
        remaining = [entry for entry in self._entries if entry.log_id != log_id]
        if len(remaining) == len(self._entries):
            return False
        self._entries = remaining
        self._persist()
        return True

    def entries(self) -> list[LogEntry]:
        """Return today's entries in insertion order."""
        self._sync_day()
        return list(self._entries)

    def totals(self) -> MacroTotals:
        """Sum today's already-scaled entries."""
        return sum_totals(self.entries())

    def entries_by_meal(self) -> dict[MealType, list[LogEntry]]:
        """Group today's entries under every meal, including empty ones."""
        grouped: dict[MealType, list[LogEntry]] = {meal: [] for meal in MealType}
        for entry in self.entries():
            grouped[entry.meal].append(entry)
        return grouped

    def rollover_if_new_day(self, today: date | str) -> bool:
        """Clear the log when the calendar day has changed."""
        day = today.isoformat() if isinstance(today, date) else today
        if day == self._current_day:
            return False
        _logger.info(
            "Day changed from %s to %s; starting a new log", self._current_day, day
        )
        self._current_day = day
        self._entries = []
        self._persist()
        return True

    def _sync_day(self) -> None:
        self.rollover_if_new_day(self.clock().date())

    def _load(self, day: str) -> list[LogEntry]:
        raw = self.storage.get(log_key(day))
        if raw is None:
            return []
        try:
            return _ENTRIES.validate_python(raw)
        except ValidationError:
            _logger.warning("Discarding unreadable log for %s", day)
            return []

    def _persist(self) -> None:
        payload = _ENTRIES.dump_python(self._entries, mode="json")
        self.storage.set(log_key(self._current_day), payload)


def sum_totals(entries: list[LogEntry]) -> MacroTotals:
    """Fold entries into calorie and macro sums."""
    total = ZERO_TOTALS
    for entry in entries:
        total = MacroTotals(
            calories=total.calories + entry.calories,
            protein=total.protein + entry.protein,
            carbs=total.carbs + entry.carbs,
            fat=total.fat + entry.fat,
        )
    return total
