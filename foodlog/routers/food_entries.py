"""
Food entry endpoints — called by the mobile client with the X-User-ID header.

  POST   /food-entries                   create + predict
  POST   /food-entries/{entry_id}/confirm review + confirm
  DELETE /dish-events/{dish_event_id}    soft delete
  GET    /food-history                   confirmed, active dish events
  GET    /triggers                       trigger catalog with display text
"""

from __future__ import annotations

import logging
from typing import Optional

from cachetools import TTLCache
from fastapi import APIRouter, Depends, Header, Query, Request, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from foodlog.config import settings
from foodlog.database import get_db
from foodlog.schemas.food_entry import (
    ConfirmFoodEntryRequest,
    ConfirmFoodEntryResponse,
    CreateFoodEntryRequest,
    CreateFoodEntryResponse,
    FoodHistoryResponse,
    TriggerOut,
)
from foodlog.services.dish_resolution import DishResolutionService
from foodlog.services.extraction import ExtractionOrchestrator
from foodlog.services.food_entry_repo import FoodEntryRepository
from foodlog.services.food_entry_service import FoodEntryService
from foodlog.services.identity import HeaderIdentityProvider
from foodlog.services.oracles import (
    ExtractionOracle,
    TriggerOracle,
    default_extraction_oracle,
    default_trigger_oracle,
)
from foodlog.services.trigger_catalog import TriggerCatalog
from foodlog.services.trigger_prediction import TriggerOrchestrator
from foodlog.utils.trigger_data import get_trigger_display_text

logger = logging.getLogger(__name__)

router = APIRouter(tags=["food-entries"])


# ── Dependencies ─────────────────────────────────────────────────────────────


def get_identity(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-ID"),
) -> HeaderIdentityProvider:
    """Identity comes from the gateway-set header; validated lazily by the service."""
    return HeaderIdentityProvider(x_user_id)


def get_trigger_catalog(request: Request) -> TriggerCatalog:
    """The catalog loaded during application startup."""
    return request.app.state.trigger_catalog


def get_extraction_oracle(request: Request) -> ExtractionOracle:
    oracle = getattr(request.app.state, "extraction_oracle", None)
    return oracle or default_extraction_oracle()


def get_trigger_oracle(request: Request) -> TriggerOracle:
    oracle = getattr(request.app.state, "trigger_oracle", None)
    return oracle or default_trigger_oracle()


def get_trigger_cache(request: Request) -> TTLCache:
    """Prediction cache shared across requests for the life of the app."""
    cache = getattr(request.app.state, "trigger_cache", None)
    if cache is None:
        cache = TTLCache(maxsize=2_000, ttl=settings.trigger_cache_ttl_seconds)
        request.app.state.trigger_cache = cache
    return cache


def get_food_entry_service(
    db: AsyncSession = Depends(get_db),
    identity: HeaderIdentityProvider = Depends(get_identity),
    catalog: TriggerCatalog = Depends(get_trigger_catalog),
    extraction_oracle: ExtractionOracle = Depends(get_extraction_oracle),
    trigger_oracle: TriggerOracle = Depends(get_trigger_oracle),
    trigger_cache: TTLCache = Depends(get_trigger_cache),
) -> FoodEntryService:
    repo = FoodEntryRepository(db)
    dish_resolution = DishResolutionService(repo, catalog)
    return FoodEntryService(
        repo=repo,
        identity=identity,
        catalog=catalog,
        extraction=ExtractionOrchestrator(extraction_oracle),
        triggers=TriggerOrchestrator(trigger_oracle, dish_resolution, cache=trigger_cache),
        dish_resolution=dish_resolution,
    )


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.post(
    "/food-entries",
    response_model=CreateFoodEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_food_entry(
    body: CreateFoodEntryRequest,
    service: FoodEntryService = Depends(get_food_entry_service),
) -> CreateFoodEntryResponse:
    """
    Store the raw text, extract dishes and predict triggers.
    Oracle failures never fail this call; store failures do.
    """
    return await service.create_food_entry(body)


@router.post("/food-entries/{entry_id}/confirm", response_model=ConfirmFoodEntryResponse)
async def confirm_food_entry(
    entry_id: str,
    body: ConfirmFoodEntryRequest,
    service: FoodEntryService = Depends(get_food_entry_service),
) -> ConfirmFoodEntryResponse:
    """Apply the user's reviewed names and triggers; finalise the whole entry."""
    return await service.confirm_food_entry(entry_id, body)


@router.delete("/dish-events/{dish_event_id}")
async def delete_dish_event(
    dish_event_id: str,
    service: FoodEntryService = Depends(get_food_entry_service),
) -> Response:
    """Soft-delete one dish event."""
    await service.delete_dish_event(dish_event_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/food-history", response_model=FoodHistoryResponse)
async def food_history(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    service: FoodEntryService = Depends(get_food_entry_service),
) -> FoodHistoryResponse:
    """Confirmed, non-deleted dish events, most recently eaten first."""
    return await service.list_food_history(limit=limit, offset=offset)


@router.get("/triggers", response_model=list[TriggerOut])
async def list_triggers(
    catalog: TriggerCatalog = Depends(get_trigger_catalog),
) -> list[TriggerOut]:
    """The closed trigger vocabulary with the ids to send back on confirm."""
    return [
        TriggerOut(
            trigger_id=t.id,
            trigger_name=t.trigger_name,
            display_text=get_trigger_display_text(t.trigger_name),
        )
        for t in catalog.records()
    ]
