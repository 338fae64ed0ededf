"""Pydantic schemas for the food-entry create / confirm endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class ExtractedDish(BaseModel):
    """One dish as returned by the extraction oracle."""

    dish_fragment_text: str = Field(..., min_length=1)
    dish_name_suggestion: str = Field(..., min_length=1)


class TriggerRef(BaseModel):
    """A trigger attached to a dish event in an API response."""

    trigger_id: str
    trigger_name: str


class CreateFoodEntryRequest(BaseModel):
    """Body for POST /food-entries."""

    raw_entry_text: str = Field(..., min_length=1)


class PredictedDishOut(BaseModel):
    dish_event_id: str
    dish_id: str
    dish_name: str
    predicted_triggers: list[TriggerRef] = Field(default_factory=list)


class CreateFoodEntryResponse(BaseModel):
    entry_id: str
    dishes: list[PredictedDishOut]


class ConfirmedDish(BaseModel):
    """The user's reviewed version of one dish event."""

    dish_event_id: str
    dish_id: str
    final_dish_name: str = Field(..., min_length=1)
    trigger_ids: list[str] = Field(default_factory=list)


class ConfirmFoodEntryRequest(BaseModel):
    """
    Body for POST /food-entries/{entry_id}/confirm.
    occurred_at (ms) rewrites when every dish of the entry was eaten.
    """

    confirmed_dishes: list[ConfirmedDish] = Field(default_factory=list)
    occurred_at: Optional[int] = Field(default=None, ge=0)


class ConfirmedDishOut(BaseModel):
    dish_event_id: str
    dish_id: str
    dish_name: str
    triggers: list[TriggerRef] = Field(default_factory=list)


class ConfirmFoodEntryResponse(BaseModel):
    entry_id: str
    dishes: list[ConfirmedDishOut]


class TriggerOut(BaseModel):
    """Catalog entry for GET /triggers."""

    trigger_id: str
    trigger_name: str
    display_text: str


class HistoryTrigger(TriggerRef):
    display_text: str


class HistoryItem(BaseModel):
    dish_event_id: str
    dish_id: str
    dish_name: str
    entry_id: str
    occurred_at: int
    triggers: list[HistoryTrigger] = Field(default_factory=list)


class FoodHistoryResponse(BaseModel):
    """Paginated confirmed food history for GET /food-history."""

    items: list[HistoryItem]
    limit: int
    offset: int
