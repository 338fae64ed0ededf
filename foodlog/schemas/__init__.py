"""Pydantic schemas package."""

from foodlog.schemas.food_entry import (
    ConfirmedDish,
    ConfirmedDishOut,
    ConfirmFoodEntryRequest,
    ConfirmFoodEntryResponse,
    CreateFoodEntryRequest,
    CreateFoodEntryResponse,
    ExtractedDish,
    FoodHistoryResponse,
    HistoryItem,
    HistoryTrigger,
    PredictedDishOut,
    TriggerOut,
    TriggerRef,
)
from foodlog.schemas.records import (
    DishEventRecord,
    DishRecord,
    DishTriggerRecord,
    HistoryRow,
    PredictedDishRecord,
    PredictedDishTriggerRecord,
    RawEntryRecord,
    TriggerRecord,
)

__all__ = [
    "ConfirmedDish", "ConfirmedDishOut", "ConfirmFoodEntryRequest",
    "ConfirmFoodEntryResponse", "CreateFoodEntryRequest", "CreateFoodEntryResponse",
    "ExtractedDish", "FoodHistoryResponse", "HistoryItem", "HistoryTrigger",
    "PredictedDishOut", "TriggerOut", "TriggerRef",
    "DishEventRecord", "DishRecord", "DishTriggerRecord", "HistoryRow",
    "PredictedDishRecord", "PredictedDishTriggerRecord", "RawEntryRecord",
    "TriggerRecord",
]
