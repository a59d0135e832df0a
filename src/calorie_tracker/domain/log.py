"""Domain models for the daily food log."""

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import StrEnum

from calorie_tracker.domain.foods import Food

BREAKFAST_UNTIL_HOUR = 11
LUNCH_UNTIL_HOUR = 16
DINNER_UNTIL_HOUR = 20


class MealType(StrEnum):
    """Meals a log entry can be filed under."""

    BREAKFAST = "Breakfast"
    LUNCH = "Lunch"
    DINNER = "Dinner"
    SNACKS = "Snacks"


def default_meal_for(moment: datetime) -> MealType:
    """Pick the meal that fits the wall-clock hour."""
    if moment.hour < BREAKFAST_UNTIL_HOUR:
        return MealType.BREAKFAST
    if moment.hour < LUNCH_UNTIL_HOUR:
        return MealType.LUNCH
    if moment.hour < DINNER_UNTIL_HOUR:
        return MealType.DINNER
    return MealType.SNACKS


@dataclass(frozen=True)
class LogEntryDraft:
    """A confirmed food, scaled by quantity, not yet stamped with a day."""

    id: str
    name: str
    calories: float
    protein: float
    carbs: float
    fat: float
    serving_size: float
    serving_unit: str
    log_id: int
    meal: MealType
    quantity: float

    @classmethod
    def from_food(
        cls, food: Food, *, log_id: int, meal: MealType, quantity: float
    ) -> "LogEntryDraft":
        """Scale per-serving nutrition by quantity."""
        return cls(
            id=food.id,
            name=food.name,
            calories=food.calories * quantity,
            protein=food.protein * quantity,
            carbs=food.carbs * quantity,
            fat=food.fat * quantity,
            serving_size=food.serving_size,
            serving_unit=food.serving_unit,
            log_id=log_id,
            meal=meal,
            quantity=quantity,
        )

    def on_day(self, day: str) -> "LogEntry":
        """Attach the calendar day the entry belongs to."""
        return LogEntry(**asdict(self), date=day)


@dataclass(frozen=True)
class LogEntry(LogEntryDraft):
    """A log entry attached to an ISO calendar day."""

    date: str


@dataclass(frozen=True)
class MacroTotals:
    """Summed calories and macros."""

    calories: float
    protein: float
    carbs: float
    fat: float


@dataclass(frozen=True)
class Goals:
    """Daily calorie and macro targets."""

    calories: float
    protein: float
    carbs: float
    fat: float


DEFAULT_GOALS = Goals(calories=2000, protein=120, carbs=200, fat=65)
ZERO_TOTALS = MacroTotals(calories=0.0, protein=0.0, carbs=0.0, fat=0.0)
