"""SQLAlchemy ORM models package."""

from foodlog.database import Base
from foodlog.models.entry import RawEntry, PredictedDish
from foodlog.models.dish import Dish, DishEvent
from foodlog.models.trigger import Trigger, PredictedDishTrigger, DishTrigger

__all__ = [
    "Base", "RawEntry", "PredictedDish", "Dish", "DishEvent",
    "Trigger", "PredictedDishTrigger", "DishTrigger",
]
