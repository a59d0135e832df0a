"""Shared test fixtures."""

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest

from calorie_tracker.adapters.browser_dictation import BrowserDictationSession
from calorie_tracker.config import Settings
from calorie_tracker.containers import AppContainer
from calorie_tracker.services.acquisition import EntryAcquisitionController
from calorie_tracker.services.catalog import FoodCatalog
from calorie_tracker.services.daily_log import DailyLogStore
from calorie_tracker.services.dashboard import DashboardService
from calorie_tracker.services.dictation import DictationListener, DictationSession
from calorie_tracker.services.estimator import EstimatorClient, NutritionEstimator
from calorie_tracker.services.goals import GoalsManager
from calorie_tracker.services.storage import KeyValueStore

CHICKEN_BREAST = {
    "name": "Chicken Breast",
    "calories": 165,
    "protein": 31,
    "carbs": 0,
    "fat": 3.6,
    "servingSize": 100,
    "servingUnit": "g",
    "quantity": 1,
}

PIZZA_SLICES = {
    "name": "Pizza Slice",
    "calories": 285,
    "protein": 12,
    "carbs": 36,
    "fat": 10,
    "servingSize": 107,
    "servingUnit": "slice",
    "quantity": 2,
}


@dataclass
class FixedClock:
    """Clock returning a settable instant."""

    now: datetime = field(
        default_factory=lambda: datetime(2026, 10, 19, 12, 30, tzinfo=UTC)
    )

    def __call__(self) -> datetime:
        return self.now


@dataclass
class FakeEstimatorClient(EstimatorClient):
    """Fake estimator client returning a fixed payload."""

    payload: object = field(default_factory=lambda: {"items": [CHICKEN_BREAST]})
    error: Exception | None = None
    calls: list[dict[str, object]] = field(default_factory=list)

    async def estimate(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        prompt: str,
        schema: dict[str, object],
        image_data_url: str | None = None,
    ) -> object:
        self.calls.append({"prompt": prompt, "image_data_url": image_data_url})
        if self.error is not None:
            raise self.error
        return self.payload


@dataclass
class InMemoryStorage(KeyValueStore):
    """In-memory key-value store that round-trips values through JSON."""

    values: dict[str, object] = field(default_factory=dict)

    def get(self, key: str) -> object | None:
        return self.values.get(key)

    def set(self, key: str, value: object) -> None:
        self.values[key] = json.loads(json.dumps(value))


@dataclass
class FakeDictationSession(DictationSession):
    """Fake recognizer that records calls and keeps the last listener."""

    available: bool = True
    listener: DictationListener | None = None
    last_listener: DictationListener | None = None
    started: int = 0
    stopped: int = 0

    def is_available(self) -> bool:
        return self.available

    def start(self, listener: DictationListener) -> None:
        self.started += 1
        self.listener = listener
        self.last_listener = listener
        listener.on_start()

    def stop(self) -> None:
        self.stopped += 1
        listener = self.listener
        self.listener = None
        if listener is not None:
            listener.on_end()


def build_estimator(client: EstimatorClient | None = None) -> NutritionEstimator:
    return NutritionEstimator(
        client=client or FakeEstimatorClient(),
        model="gpt-5.2",
        reasoning_effort="low",
        store=False,
    )


def build_controller(
    client: EstimatorClient | None = None,
    dictation: DictationSession | None = None,
    clock: FixedClock | None = None,
) -> EntryAcquisitionController:
    resolved_clock = clock or FixedClock()
    estimator = build_estimator(client)
    catalog = FoodCatalog(
        estimator=estimator, barcode_latency_seconds=0, clock=resolved_clock
    )
    return EntryAcquisitionController(
        estimator=estimator,
        catalog=catalog,
        dictation=dictation or FakeDictationSession(),
        scan_delay_seconds=0,
        clock=resolved_clock,
    )


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(openai_api_key="openai-key", data_dir=str(tmp_path / "data"))


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def estimator_client() -> FakeEstimatorClient:
    return FakeEstimatorClient()


@pytest.fixture
def container(
    settings: Settings,
    clock: FixedClock,
    storage: InMemoryStorage,
    estimator_client: FakeEstimatorClient,
) -> AppContainer:
    estimator = build_estimator(estimator_client)
    catalog = FoodCatalog(estimator=estimator, barcode_latency_seconds=0, clock=clock)
    dictation = BrowserDictationSession(enabled=True)
    acquisition = EntryAcquisitionController(
        estimator=estimator,
        catalog=catalog,
        dictation=dictation,
        scan_delay_seconds=0,
        clock=clock,
    )
    daily_log = DailyLogStore(storage=storage, clock=clock)
    goals_manager = GoalsManager(storage)

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        estimator=estimator,
        catalog=catalog,
        dictation=dictation,
        acquisition=acquisition,
        daily_log=daily_log,
        goals_manager=goals_manager,
        dashboard_service=DashboardService(
            daily_log=daily_log, goals_manager=goals_manager
        ),
        close_resources=close_resources,
    )
