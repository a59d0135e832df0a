"""Daily goals service."""

import logging
import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass

from calorie_tracker.domain.errors import InvalidGoals
from calorie_tracker.domain.log import DEFAULT_GOALS, Goals
from calorie_tracker.services.storage import KeyValueStore

GOALS_KEY = "calorie-counter-goals"
GOAL_FIELDS = ("calories", "protein", "carbs", "fat")

_logger = logging.getLogger(__name__)


@dataclass
class GoalsManager:
    """Service for the single persisted goals record."""

    storage: KeyValueStore

    def current(self) -> Goals:
        """Return saved goals, or the defaults before the first save."""
        return self._load() or DEFAULT_GOALS

    def is_configured(self) -> bool:
        """Return True once goals have been saved."""
        return self._load() is not None

    def save(self, raw: Goals | Mapping[str, object]) -> Goals:
        """Validate and overwrite the stored goals."""
        goals = parse_goals(asdict(raw) if isinstance(raw, Goals) else raw)
        self.storage.set(GOALS_KEY, asdict(goals))
        return goals

    def _load(self) -> Goals | None:
        raw = self.storage.get(GOALS_KEY)
        if raw is None:
            return None
        if not isinstance(raw, Mapping):
            _logger.warning("Discarding unreadable goals record")
            return None
        try:
            return parse_goals(raw)
        except InvalidGoals:
            _logger.warning("Discarding invalid goals record")
            return None


def parse_goals(raw: Mapping[str, object]) -> Goals:
    """Coerce form input into goals with four positive finite numbers."""
    values: dict[str, float] = {}
    for name in GOAL_FIELDS:
        if name not in raw or raw[name] is None or isinstance(raw[name], bool):
            raise InvalidGoals(f"Missing goal: {name}")
        try:
            value = float(raw[name])  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise InvalidGoals(f"Goal {name} is not a number") from exc
        if not math.isfinite(value):
            raise InvalidGoals(f"Goal {name} must be finite")
        if value <= 0:
            raise InvalidGoals(f"Goal {name} must be positive")
        values[name] = value
    return Goals(**values)
