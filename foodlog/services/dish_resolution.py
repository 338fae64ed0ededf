"""
Dish resolution — find-or-create a user's canonical Dish and look up the
triggers the user last confirmed for it.
"""

from __future__ import annotations

import logging

from foodlog.exceptions import Conflict, PersistenceFailure
from foodlog.schemas.records import DishRecord, TriggerRecord
from foodlog.services.food_entry_repo import FoodEntryRepository
from foodlog.services.normalizer import normalize_dish_name
from foodlog.services.trigger_catalog import TriggerCatalog

logger = logging.getLogger(__name__)


class DishResolutionService:
    def __init__(self, repo: FoodEntryRepository, catalog: TriggerCatalog) -> None:
        self.repo = repo
        self.catalog = catalog

    async def find_or_create_dish(self, user_id: str, dish_name_suggestion: str) -> DishRecord:
        """
        Return the user's dish whose normalized name matches, creating it if absent.

        A new dish keeps the suggestion's original casing as dish_name. If a
        concurrent request inserts the same normalized name first, the unique
        constraint rejects our insert and the lookup is retried once.
        """
        normalized = normalize_dish_name(dish_name_suggestion)

        existing = await self.repo.find_dish_by_normalized_name(user_id, normalized)
        if existing is not None:
            return existing

        try:
            dish = await self.repo.create_dish(user_id, dish_name_suggestion, normalized)
        except Conflict:
            logger.info(
                "Dish '%s' was created concurrently for user %s, re-reading.",
                normalized,
                user_id,
            )
            existing = await self.repo.find_dish_by_normalized_name(user_id, normalized)
            if existing is None:
                raise PersistenceFailure(
                    f'Dish "{normalized}" conflicted on insert but could not be read back'
                )
            return existing

        logger.debug("Created dish %s (%s) for user %s", dish.id, normalized, user_id)
        return dish

    async def get_most_recent_dish_triggers(self, dish_id: str) -> list[TriggerRecord]:
        """
        Triggers of the newest confirmed event of this dish that has any.

        Confirmed events with zero confirmed triggers are skipped, so "never
        confirmed" and "confirmed as trigger-free" both return [].
        """
        events = await self.repo.list_confirmed_dish_events_for_dish(dish_id)
        if not events:
            return []

        rows = await self.repo.list_confirmed_triggers([e.id for e in events])
        trigger_ids_by_event: dict[str, list[str]] = {}
        for row in rows:
            trigger_ids_by_event.setdefault(row.dish_event_id, []).append(row.trigger_id)

        for event in events:
            trigger_ids = trigger_ids_by_event.get(event.id)
            if not trigger_ids:
                continue
            triggers: list[TriggerRecord] = []
            for trigger_id in dict.fromkeys(trigger_ids):
                trigger = self.catalog.by_id(trigger_id)
                if trigger is None:
                    logger.warning("Confirmed trigger %s is not in the catalog.", trigger_id)
                    continue
                triggers.append(trigger)
            return triggers

        return []

    async def is_new_dish(self, dish_id: str) -> bool:
        """A dish is new to its user until some confirmed event carries triggers."""
        return not await self.get_most_recent_dish_triggers(dish_id)
