"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from calorie_tracker.adapters.browser_dictation import NoActiveDictation
from calorie_tracker.api.schemas import (
    GoalsRequest,
    ModeRequest,
    PhotoRequest,
    ScanRequest,
    SearchRequest,
    SelectionUpdate,
    SelectRequest,
    VoiceErrorRequest,
    VoiceResultRequest,
)
from calorie_tracker.app_logging import configure_logging
from calorie_tracker.containers import AppContainer
from calorie_tracker.domain.acquisition import (
    Error,
    FoodSelected,
    Idle,
    Loading,
    ResultReady,
)
from calorie_tracker.domain.errors import InvalidGoals, InvalidTransition
from calorie_tracker.domain.foods import EstimatorCandidate, Food
from calorie_tracker.services.acquisition import EntryAcquisitionController

_STATUS_NAMES = {
    Idle: "idle",
    Loading: "loading",
    ResultReady: "result_ready",
    Error: "error",
    FoodSelected: "food_selected",
}


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(debug=container.settings.debug)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(InvalidTransition)
    async def invalid_transition(
        request: Request, exc: InvalidTransition
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)}
        )

    @app.exception_handler(InvalidGoals)
    async def invalid_goals(request: Request, exc: InvalidGoals) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": str(exc)},
        )

    @app.exception_handler(NoActiveDictation)
    async def no_active_dictation(
        request: Request, exc: NoActiveDictation
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)}
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/log")
    async def get_log(request: Request) -> dict[str, object]:
        """Return today's dashboard summary."""
        state_container: AppContainer = request.app.state.container
        return asdict(state_container.dashboard_service.summary())

    @app.delete("/log/{log_id}")
    async def remove_log_entry(log_id: int, request: Request) -> dict[str, object]:
        """Remove an entry from today's log."""
        state_container: AppContainer = request.app.state.container
        return {"removed": state_container.daily_log.remove(log_id)}

    @app.get("/goals")
    async def get_goals(request: Request) -> dict[str, object]:
        """Return the current goals."""
        state_container: AppContainer = request.app.state.container
        return _serialize_goals(state_container)

    @app.put("/goals")
    async def save_goals(body: GoalsRequest, request: Request) -> dict[str, object]:
        """Validate and save goals."""
        state_container: AppContainer = request.app.state.container
        state_container.goals_manager.save(body.model_dump())
        return _serialize_goals(state_container)

    @app.get("/acquisition")
    async def get_acquisition(request: Request) -> dict[str, object]:
        """Return the acquisition view state."""
        return _serialize_acquisition(_controller(request))

    @app.post("/acquisition/open")
    async def open_acquisition(request: Request) -> dict[str, object]:
        """Open a fresh acquisition view."""
        controller = _controller(request)
        controller.open()
        return _serialize_acquisition(controller)

    @app.post("/acquisition/mode")
    async def set_mode(body: ModeRequest, request: Request) -> dict[str, object]:
        """Switch acquisition mode."""
        controller = _controller(request)
        controller.set_mode(body.mode)
        return _serialize_acquisition(controller)

    @app.post("/acquisition/search")
    async def search(body: SearchRequest, request: Request) -> dict[str, object]:
        """Search foods for the current search box text."""
        controller = _controller(request)
        await controller.search(body.text)
        return _serialize_acquisition(controller)

    @app.post("/acquisition/scan")
    async def scan(body: ScanRequest, request: Request) -> dict[str, object]:
        """Run a simulated barcode scan."""
        controller = _controller(request)
        await controller.scan(body.code)
        return _serialize_acquisition(controller)

    @app.post("/acquisition/voice/start")
    async def start_voice(request: Request) -> dict[str, object]:
        """Start listening for one utterance."""
        controller = _controller(request)
        controller.start_listening()
        return _serialize_acquisition(controller)

    @app.post("/acquisition/voice/stop")
    async def stop_voice(request: Request) -> dict[str, object]:
        """Stop listening."""
        controller = _controller(request)
        controller.stop_listening()
        return _serialize_acquisition(controller)

    @app.post("/acquisition/voice/result")
    async def voice_result(
        body: VoiceResultRequest, request: Request
    ) -> dict[str, object]:
        """Deliver the final transcript recognized by the client."""
        state_container: AppContainer = request.app.state.container
        try:
            await state_container.dictation.deliver_result(body.transcript)
        except (NoActiveDictation, InvalidTransition):
            raise
        except Exception as exc:
            logger.exception("Voice estimation failed")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=_format_error(
                    state_container, exc, "Failed to process voice input."
                ),
            ) from exc
        return _serialize_acquisition(state_container.acquisition)

    @app.post("/acquisition/voice/error")
    async def voice_error(
        body: VoiceErrorRequest, request: Request
    ) -> dict[str, object]:
        """Deliver a recognizer error reported by the client."""
        state_container: AppContainer = request.app.state.container
        state_container.dictation.deliver_error(body.reason)
        return _serialize_acquisition(state_container.acquisition)

    @app.post("/acquisition/photo")
    async def upload_photo(body: PhotoRequest, request: Request) -> dict[str, object]:
        """Estimate foods in an uploaded photo."""
        state_container: AppContainer = request.app.state.container
        try:
            await state_container.acquisition.upload_photo(body.data_url)
        except InvalidTransition:
            raise
        except Exception as exc:
            logger.exception("Photo estimation failed")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=_format_error(state_container, exc, "Failed to process image."),
            ) from exc
        return _serialize_acquisition(state_container.acquisition)

    @app.post("/acquisition/select")
    async def select(body: SelectRequest, request: Request) -> dict[str, object]:
        """Pick a displayed candidate."""
        controller = _controller(request)
        try:
            controller.select(body.index)
        except IndexError as exc:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
            ) from exc
        return _serialize_acquisition(controller)

    @app.patch("/acquisition/selection")
    async def update_selection(
        body: SelectionUpdate, request: Request
    ) -> dict[str, object]:
        """Adjust quantity and meal of the selected food."""
        controller = _controller(request)
        if not isinstance(controller.state, FoodSelected):
            raise InvalidTransition("update selection", controller.state)
        if "quantity" in body.model_fields_set:
            controller.set_quantity(body.quantity)
        if body.meal is not None:
            controller.set_meal(body.meal)
        return _serialize_acquisition(controller)

    @app.post("/acquisition/confirm")
    async def confirm(request: Request) -> dict[str, object]:
        """Add the selected food to today's log."""
        state_container: AppContainer = request.app.state.container
        draft = state_container.acquisition.confirm()
        entry = state_container.daily_log.add(draft)
        return {
            "entry": asdict(entry),
            "acquisition": _serialize_acquisition(state_container.acquisition),
        }

    @app.post("/acquisition/cancel")
    async def cancel(request: Request) -> dict[str, object]:
        """Abandon the current selection or request."""
        controller = _controller(request)
        controller.cancel()
        return _serialize_acquisition(controller)

    return app


def _controller(request: Request) -> EntryAcquisitionController:
    state_container: AppContainer = request.app.state.container
    return state_container.acquisition


def _format_error(state_container: AppContainer, exc: Exception, fallback: str) -> str:
    """Return a user-facing error message with local debug info."""
    if state_container.settings.environment == "local":
        detail = f"{type(exc).__name__}: {exc}".strip()
        if detail:
            return f"{fallback} (debug: {detail})"
    return fallback


def _serialize_goals(state_container: AppContainer) -> dict[str, object]:
    goals = state_container.goals_manager.current()
    return {
        "goals": asdict(goals),
        "configured": state_container.goals_manager.is_configured(),
    }


def _serialize_acquisition(controller: EntryAcquisitionController) -> dict[str, object]:
    """Describe the acquisition view for the client."""
    state = controller.state
    payload: dict[str, object] = {
        "mode": controller.mode.value,
        "status": _STATUS_NAMES[type(state)],
        "search_text": controller.search_text,
        "transcript": controller.transcript,
        "image_preview": controller.image_preview,
        "listening": controller.listening,
        "default_meal": controller.default_meal.value,
        "candidates": [],
        "error": None,
        "selection": None,
    }
    if isinstance(state, ResultReady):
        payload["candidates"] = [
            _serialize_candidate(candidate) for candidate in state.candidates
        ]
    elif isinstance(state, Error):
        payload["error"] = {"kind": state.kind.value, "message": state.message}
    elif isinstance(state, FoodSelected):
        payload["selection"] = {
            "food": asdict(state.food),
            "quantity": state.quantity,
            "meal": state.meal.value,
            "calories": state.food.calories * state.quantity,
            "protein": state.food.protein * state.quantity,
            "carbs": state.food.carbs * state.quantity,
            "fat": state.food.fat * state.quantity,
        }
    return payload


def _serialize_candidate(candidate: Food | EstimatorCandidate) -> dict[str, object]:
    if isinstance(candidate, Food):
        return {**asdict(candidate), "quantity": 1.0}
    return candidate.model_dump(mode="json")
