"""Dashboard summary of today's log against goals."""

from dataclasses import dataclass

from calorie_tracker.domain.log import Goals, LogEntry, MacroTotals, MealType
from calorie_tracker.services.daily_log import DailyLogStore, sum_totals
from calorie_tracker.services.goals import GoalsManager


@dataclass(frozen=True)
class MacroProgress:
    """Progress of one macro toward its goal."""

    current: float
    goal: float
    percentage: float


@dataclass(frozen=True)
class MealSection:
    """Entries filed under one meal."""

    meal: MealType
    entries: list[LogEntry]
    calories: float


@dataclass(frozen=True)
class DailySummary:
    """Everything the dashboard renders for today."""

    day: str
    goals: Goals
    totals: MacroTotals
    remaining_calories: float
    calorie_percentage: float
    protein: MacroProgress
    carbs: MacroProgress
    fat: MacroProgress
    meals: list[MealSection]


@dataclass
class DashboardService:
    """Service that combines the daily log with goals."""

    daily_log: DailyLogStore
    goals_manager: GoalsManager

    def summary(self) -> DailySummary:
        """Return today's totals, goal progress and meal sections."""
        goals = self.goals_manager.current()
        grouped = self.daily_log.entries_by_meal()
        totals = sum_totals([entry for meal in MealType for entry in grouped[meal]])
        return DailySummary(
            day=self.daily_log.current_day,
            goals=goals,
            totals=totals,
            remaining_calories=goals.calories - totals.calories,
            calorie_percentage=_percentage(totals.calories, goals.calories),
            protein=_progress(totals.protein, goals.protein),
            carbs=_progress(totals.carbs, goals.carbs),
            fat=_progress(totals.fat, goals.fat),
            meals=[
                MealSection(
                    meal=meal,
                    entries=grouped[meal],
                    calories=sum(entry.calories for entry in grouped[meal]),
                )
                for meal in MealType
            ],
        )


def _percentage(current: float, goal: float) -> float:
    return current / goal * 100 if goal > 0 else 0.0


def _progress(current: float, goal: float) -> MacroProgress:
    return MacroProgress(
        current=current, goal=goal, percentage=_percentage(current, goal)
    )
