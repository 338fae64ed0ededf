"""
Pydantic records returned by FoodEntryRepository.

Rows come back from text() queries as mappings and are validated into these
models, so SQLite's 0/1 booleans and Postgres booleans look the same upstream.
Timestamps are milliseconds since epoch.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class _Record(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)


class RawEntryRecord(_Record):
    id: str
    user_id: str
    raw_entry_text: str
    created_at: int


class PredictedDishRecord(_Record):
    id: str
    raw_entry_id: str
    dish_fragment_text: str
    dish_name_suggestion: str
    model_version: str
    prompt_version: str
    created_at: int


class DishRecord(_Record):
    id: str
    user_id: str
    dish_name: str
    normalized_dish_name: str
    dish_embedding_id: Optional[str] = None
    created_at: int


class DishEventRecord(_Record):
    id: str
    user_id: str
    dish_id: str
    predicted_dish_id: Optional[str]
    raw_entry_id: str
    confirmed_by_user: bool = False
    deleted_at: Optional[int] = None
    occurred_at: int
    created_at: int


class TriggerRecord(_Record):
    id: str
    trigger_name: str
    created_at: int


class PredictedDishTriggerRecord(_Record):
    id: str
    dish_id: str
    dish_event_id: str
    trigger_id: str
    model_version: str
    prompt_version: str
    created_at: int


class DishTriggerRecord(_Record):
    id: str
    dish_id: str
    dish_event_id: str
    trigger_id: str
    created_at: int


class HistoryRow(_Record):
    """One confirmed, active dish event joined with its dish name."""

    dish_event_id: str
    dish_id: str
    dish_name: str
    raw_entry_id: str
    occurred_at: int
    created_at: int
