"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

from calorie_tracker.adapters.browser_dictation import BrowserDictationSession
from calorie_tracker.adapters.json_file_storage import JsonFileStorage
from calorie_tracker.adapters.openai_estimator_client import OpenAIEstimatorClient
from calorie_tracker.config import Settings, parse_timezone
from calorie_tracker.services.acquisition import EntryAcquisitionController
from calorie_tracker.services.catalog import FoodCatalog
from calorie_tracker.services.daily_log import DailyLogStore
from calorie_tracker.services.dashboard import DashboardService
from calorie_tracker.services.estimator import NutritionEstimator
from calorie_tracker.services.goals import GoalsManager


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    estimator: NutritionEstimator
    catalog: FoodCatalog
    dictation: BrowserDictationSession
    acquisition: EntryAcquisitionController
    daily_log: DailyLogStore
    goals_manager: GoalsManager
    dashboard_service: DashboardService
    close_resources: Callable[[], Awaitable[None]]


def build_clock(settings: Settings) -> Callable[[], datetime]:
    """Return a wall-clock function in the configured timezone."""
    tz = parse_timezone(settings.timezone)

    def now() -> datetime:
        if tz is None:
            return datetime.now().astimezone()
        return datetime.now(tz=tz)

    return now


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    clock = build_clock(resolved_settings)
    storage = JsonFileStorage.create(resolved_settings.data_dir)
    openai_client = OpenAIEstimatorClient.create(
        resolved_settings.openai_api_key,
        timeout_seconds=resolved_settings.openai_timeout_seconds,
    )
    estimator = NutritionEstimator(
        client=openai_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
        debug=resolved_settings.debug,
    )
    catalog = FoodCatalog(
        estimator=estimator,
        barcode_latency_seconds=resolved_settings.barcode_latency_seconds,
        clock=clock,
    )
    dictation = BrowserDictationSession(enabled=resolved_settings.dictation_enabled)
    acquisition = EntryAcquisitionController(
        estimator=estimator,
        catalog=catalog,
        dictation=dictation,
        scan_delay_seconds=resolved_settings.scan_delay_seconds,
        clock=clock,
    )
    daily_log = DailyLogStore(storage=storage, clock=clock)
    goals_manager = GoalsManager(storage)
    dashboard_service = DashboardService(
        daily_log=daily_log, goals_manager=goals_manager
    )

    async def close_resources() -> None:
        await openai_client.close()

    return AppContainer(
        settings=resolved_settings,
        estimator=estimator,
        catalog=catalog,
        dictation=dictation,
        acquisition=acquisition,
        daily_log=daily_log,
        goals_manager=goals_manager,
        dashboard_service=dashboard_service,
        close_resources=close_resources,
    )
