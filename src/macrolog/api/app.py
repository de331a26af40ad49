"""FastAPI application factory."""

import base64
import binascii
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from macrolog.api.auth import get_device_id, require_api_token
from macrolog.api.schemas import (
    AnalyzeMealRequest,
    ApiKeyRequest,
    AppleHealthRequest,
    DailyGoalsRequest,
    SaveMealRequest,
)
from macrolog.app_logging import configure_logging
from macrolog.containers import AppContainer
from macrolog.domain.settings import Achievement, UserSettings
from macrolog.services.dates import today_key
from macrolog.services.meals import MealSaveResult
from macrolog.services.stats import DaySummary
from macrolog.services.user_settings import InvalidGoalsError
from macrolog.services.vision import (
    InvalidApiKeyError,
    RateLimitedError,
    VisionAnalysisError,
    VisionUnavailableError,
)

_VISION_ERROR_STATUS: dict[type[VisionAnalysisError], int] = {
    InvalidApiKeyError: status.HTTP_401_UNAUTHORIZED,
    RateLimitedError: status.HTTP_429_TOO_MANY_REQUESTS,
    VisionUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container
    router = APIRouter(dependencies=[Depends(require_api_token)])

    @app.exception_handler(VisionAnalysisError)
    async def vision_error_handler(
        request: Request, exc: VisionAnalysisError
    ) -> JSONResponse:
        state_container: AppContainer = request.app.state.container
        logger.warning("Meal analysis failed", extra={"error": type(exc).__name__})
        return JSONResponse(
            status_code=_VISION_ERROR_STATUS.get(
                type(exc), status.HTTP_502_BAD_GATEWAY
            ),
            content={"detail": _format_vision_error(state_container, exc)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @router.post("/meals/analyze")
    async def analyze_meal(
        body: AnalyzeMealRequest,
        request: Request,
        device_id: str = Depends(get_device_id),
    ) -> dict[str, object]:
        """Estimate food items for a meal photo."""
        state_container: AppContainer = request.app.state.container
        image_bytes = _decode_image(body.image_base64)
        settings = state_container.user_settings_service.get_settings(device_id)
        items = await state_container.vision_service.analyze(
            image_bytes, settings.daily_goals, api_key=settings.openai_api_key
        )
        return {"items": [item.model_dump(mode="json") for item in items]}

    @router.post("/meals", status_code=status.HTTP_201_CREATED)
    async def save_meal(
        body: SaveMealRequest,
        request: Request,
        device_id: str = Depends(get_device_id),
    ) -> dict[str, object]:
        """Save confirmed items and return streak and achievement updates."""
        state_container: AppContainer = request.app.state.container
        result = await state_container.meal_log_service.save_meal(
            device_id, body.items
        )
        return _serialize_save_result(result)

    @router.get("/meals")
    async def list_meals(
        request: Request, device_id: str = Depends(get_device_id)
    ) -> dict[str, object]:
        """Return all meals, newest first."""
        state_container: AppContainer = request.app.state.container
        meals = state_container.meal_log_service.list_meals(device_id)
        return {"meals": [meal.model_dump(mode="json") for meal in meals]}

    @router.delete("/meals/{meal_id}")
    async def delete_meal(
        meal_id: UUID, request: Request, device_id: str = Depends(get_device_id)
    ) -> dict[str, str]:
        """Delete a meal."""
        state_container: AppContainer = request.app.state.container
        if not state_container.meal_log_service.delete_meal(device_id, meal_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return {"status": "deleted"}

    @router.get("/progress/day")
    async def progress_day(
        request: Request,
        day: date | None = None,
        device_id: str = Depends(get_device_id),
    ) -> dict[str, object]:
        """Return totals and goal state for one day, today by default."""
        state_container: AppContainer = request.app.state.container
        summary = state_container.stats_service.get_day(
            device_id, day or date.fromisoformat(today_key())
        )
        return _serialize_day(summary, include_meals=True)

    @router.get("/progress/week")
    async def progress_week(
        request: Request, device_id: str = Depends(get_device_id)
    ) -> dict[str, object]:
        """Return the last seven days, oldest first."""
        state_container: AppContainer = request.app.state.container
        days = state_container.stats_service.get_week(device_id)
        return {"days": [_serialize_day(day, include_meals=False) for day in days]}

    @router.get("/streak")
    async def streak(
        request: Request, device_id: str = Depends(get_device_id)
    ) -> dict[str, object]:
        """Return the live streak and the best streak so far."""
        state_container: AppContainer = request.app.state.container
        return asdict(state_container.stats_service.get_streak(device_id))

    @router.get("/achievements")
    async def achievements(
        request: Request, device_id: str = Depends(get_device_id)
    ) -> dict[str, object]:
        """Return the achievement catalog with unlock state."""
        state_container: AppContainer = request.app.state.container
        settings = state_container.user_settings_service.get_settings(device_id)
        return {
            "achievements": [
                _serialize_achievement(item) for item in settings.achievements
            ]
        }

    @router.get("/settings")
    async def get_settings(
        request: Request, device_id: str = Depends(get_device_id)
    ) -> dict[str, object]:
        """Return device settings without the stored API key."""
        state_container: AppContainer = request.app.state.container
        settings = state_container.user_settings_service.get_settings(device_id)
        return _serialize_settings(settings)

    @router.put("/settings/goals")
    async def update_goals(
        body: DailyGoalsRequest,
        request: Request,
        device_id: str = Depends(get_device_id),
    ) -> dict[str, object]:
        """Update daily goals."""
        state_container: AppContainer = request.app.state.container
        try:
            goals = state_container.user_settings_service.update_daily_goals(
                device_id,
                calories=body.calories,
                protein=body.protein,
                carbs=body.carbs,
                fat=body.fat,
            )
        except InvalidGoalsError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
            ) from exc
        return {"daily_goals": goals.model_dump()}

    @router.put("/settings/api-key")
    async def update_api_key(
        body: ApiKeyRequest,
        request: Request,
        device_id: str = Depends(get_device_id),
    ) -> dict[str, object]:
        """Store or clear the device's OpenAI API key."""
        state_container: AppContainer = request.app.state.container
        api_key = (body.api_key or "").strip() or None
        if (
            api_key
            and body.validate_key
            and not await state_container.vision_service.validate_api_key(api_key)
        ):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=InvalidApiKeyError.user_message,
            )
        state_container.user_settings_service.update_api_key(device_id, api_key)
        return {"has_api_key": api_key is not None}

    @router.put("/settings/apple-health")
    async def update_apple_health(
        body: AppleHealthRequest,
        request: Request,
        device_id: str = Depends(get_device_id),
    ) -> dict[str, object]:
        """Enable or disable Apple Health sync."""
        state_container: AppContainer = request.app.state.container
        settings_service = state_container.user_settings_service
        if not body.enabled:
            settings_service.disable_apple_health(device_id)
        else:
            if not state_container.health_service.is_available():
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Apple Health is not available on this device.",
                )
            granted = await state_container.health_service.request_permissions()
            if not settings_service.enable_apple_health(device_id, granted):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Apple Health permissions are required to sync nutrition.",
                )
        settings = settings_service.get_settings(device_id)
        return {"apple_health": settings.apple_health.model_dump(mode="json")}

    @router.delete("/data")
    async def reset_data(
        request: Request, device_id: str = Depends(get_device_id)
    ) -> dict[str, str]:
        """Delete all meals and settings for the device."""
        state_container: AppContainer = request.app.state.container
        state_container.meal_log_service.reset(device_id)
        logger.info("Device data reset", extra={"device_id": device_id})
        return {"status": "reset"}

    app.include_router(router)
    return app


def _decode_image(image_base64: str) -> bytes:
    """Decode a base64 photo, accepting an optional data URL prefix."""
    _, _, encoded = image_base64.rpartition(",")
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Image must be base64 encoded.",
        ) from exc


def _format_vision_error(
    state_container: AppContainer, exc: VisionAnalysisError
) -> str:
    """Return a user-facing analysis error with local debug info."""
    if state_container.settings.environment == "local":
        detail = f"{type(exc).__name__}: {exc}".strip()
        if detail:
            return f"{exc.user_message} (debug: {detail})"
    return exc.user_message


def _serialize_save_result(result: MealSaveResult) -> dict[str, object]:
    return {
        "meal": result.meal.model_dump(mode="json"),
        "streak": result.streak.model_dump(),
        "newly_unlocked": [
            _serialize_achievement(item) for item in result.newly_unlocked
        ],
        "celebration": _serialize_achievement(result.celebration)
        if result.celebration
        else None,
    }


def _serialize_day(summary: DaySummary, include_meals: bool) -> dict[str, object]:
    payload: dict[str, object] = {
        "day": summary.day.isoformat(),
        "totals": asdict(summary.totals),
        "goal_met": summary.goal_met,
        "health_rating": summary.health_rating,
    }
    if include_meals:
        payload["meals"] = [meal.model_dump(mode="json") for meal in summary.meals]
    return payload


def _serialize_achievement(achievement: Achievement) -> dict[str, object]:
    return achievement.model_dump(mode="json")


def _serialize_settings(settings: UserSettings) -> dict[str, object]:
    payload = settings.model_dump(mode="json", exclude={"openai_api_key"})
    payload["has_api_key"] = settings.openai_api_key is not None
    return payload
