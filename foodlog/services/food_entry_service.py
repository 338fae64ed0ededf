"""
Food entry service — the two-phase create / confirm pipeline.

create_food_entry
  raw entry → extraction → per dish: predicted dish, find-or-create dish,
  "is new" check, dish event → per event: triggers (predicted or inherited)
  → predicted_dish_triggers rows → response in extraction order.

confirm_food_entry
  per confirmed dish: event lookup, dish lookup, ownership check, optional
  rename (conflict-checked, global to the dish), confirmed trigger replace
  → every active event of the entry marked confirmed → response.

Neither phase is atomic. Store failures abort the call with earlier writes
left committed; oracle failures never abort (see the orchestrators).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from foodlog.exceptions import Conflict, Forbidden, NotFound
from foodlog.schemas.food_entry import (
    ConfirmedDishOut,
    ConfirmFoodEntryRequest,
    ConfirmFoodEntryResponse,
    CreateFoodEntryRequest,
    CreateFoodEntryResponse,
    FoodHistoryResponse,
    HistoryItem,
    HistoryTrigger,
    PredictedDishOut,
    TriggerRef,
)
from foodlog.schemas.records import DishEventRecord, DishTriggerRecord
from foodlog.services.dish_resolution import DishResolutionService
from foodlog.services.extraction import ExtractionOrchestrator
from foodlog.services.food_entry_repo import FoodEntryRepository
from foodlog.services.identity import IdentityProvider
from foodlog.services.normalizer import normalize_dish_name
from foodlog.services.trigger_catalog import TriggerCatalog
from foodlog.services.trigger_prediction import TriggerOrchestrator
from foodlog.utils.clock import now_ms
from foodlog.utils.trigger_data import get_trigger_display_text

logger = logging.getLogger(__name__)

UNKNOWN_DISH_NAME = "Unknown"
UNKNOWN_TRIGGER_NAME = "unknown"


@dataclass
class _PendingEvent:
    event: DishEventRecord
    dish_name: str
    fragment_text: str
    is_new_dish: bool


class FoodEntryService:
    def __init__(
        self,
        repo: FoodEntryRepository,
        identity: IdentityProvider,
        catalog: TriggerCatalog,
        extraction: ExtractionOrchestrator,
        triggers: TriggerOrchestrator,
        dish_resolution: Optional[DishResolutionService] = None,
    ) -> None:
        self.repo = repo
        self.identity = identity
        self.catalog = catalog
        self.extraction = extraction
        self.triggers = triggers
        self.dish_resolution = dish_resolution or triggers.dish_resolution

    # ── Phase 1: create ──────────────────────────────────────────────────────

    async def create_food_entry(self, request: CreateFoodEntryRequest) -> CreateFoodEntryResponse:
        user_id = await self.identity.get_authenticated_user_id()
        raw_text = request.raw_entry_text

        raw_entry = await self.repo.create_raw_entry(user_id, raw_text)

        extraction = await self.extraction.extract_dishes(raw_text)

        pending: list[_PendingEvent] = []
        for extracted in extraction.dishes:
            predicted_dish = await self.repo.create_predicted_dish(
                raw_entry_id=raw_entry.id,
                dish_fragment_text=extracted.dish_fragment_text,
                dish_name_suggestion=extracted.dish_name_suggestion,
                model_version=self.extraction.model_version,
                prompt_version=self.extraction.prompt_version,
            )
            dish = await self.dish_resolution.find_or_create_dish(
                user_id, extracted.dish_name_suggestion
            )
            is_new = await self.dish_resolution.is_new_dish(dish.id)
            event = await self.repo.create_dish_event(
                user_id=user_id,
                dish_id=dish.id,
                predicted_dish_id=predicted_dish.id,
                raw_entry_id=raw_entry.id,
            )
            pending.append(
                _PendingEvent(
                    event=event,
                    dish_name=dish.dish_name,
                    fragment_text=extracted.dish_fragment_text,
                    is_new_dish=is_new,
                )
            )

        dishes: list[PredictedDishOut] = []
        for item in pending:
            prediction = await self.triggers.triggers_for(
                is_new_dish=item.is_new_dish,
                dish_id=item.event.dish_id,
                dish_name=item.dish_name,
                fragment_text=item.fragment_text,
            )
            resolved = self.catalog.resolve_names(prediction.names)
            for trigger in resolved:
                await self.repo.create_predicted_dish_trigger(
                    dish_id=item.event.dish_id,
                    dish_event_id=item.event.id,
                    trigger_id=trigger.id,
                    model_version=self.triggers.model_version,
                    prompt_version=self.triggers.prompt_version,
                )
            dishes.append(
                PredictedDishOut(
                    dish_event_id=item.event.id,
                    dish_id=item.event.dish_id,
                    dish_name=item.dish_name,
                    predicted_triggers=[
                        TriggerRef(trigger_id=t.id, trigger_name=t.trigger_name)
                        for t in resolved
                    ],
                )
            )

        logger.info(
            "Created food entry %s with %d dish event(s)%s.",
            raw_entry.id,
            len(dishes),
            " (extraction degraded)" if extraction.degraded else "",
        )
        return CreateFoodEntryResponse(entry_id=raw_entry.id, dishes=dishes)

    # ── Phase 2: confirm ─────────────────────────────────────────────────────

    async def confirm_food_entry(
        self, raw_entry_id: str, request: ConfirmFoodEntryRequest
    ) -> ConfirmFoodEntryResponse:
        user_id = await self.identity.get_authenticated_user_id()

        for confirmed in request.confirmed_dishes:
            events = await self.repo.list_dish_events_for_entry(raw_entry_id, user_id=user_id)
            dish_event = next((e for e in events if e.id == confirmed.dish_event_id), None)
            if dish_event is None:
                raise NotFound(f"Dish event not found: {confirmed.dish_event_id}")

            dish = await self.repo.get_dish(confirmed.dish_id)
            if dish is None:
                raise NotFound(f"Dish not found: {confirmed.dish_id}")

            if dish.user_id != dish_event.user_id:
                raise Forbidden("Dish does not belong to the user")

            normalized = normalize_dish_name(confirmed.final_dish_name)
            if (
                dish.dish_name != confirmed.final_dish_name
                or dish.normalized_dish_name != normalized
            ):
                clash = await self.repo.find_dish_by_normalized_name(dish_event.user_id, normalized)
                if clash is not None and clash.id != dish.id:
                    raise Conflict(
                        "Cannot update dish name: a dish with normalized name "
                        f'"{normalized}" already exists'
                    )
                # Renames the dish for every past and future event that references it
                await self.repo.update_dish_name(dish.id, confirmed.final_dish_name, normalized)
                logger.info("Renamed dish %s to '%s'.", dish.id, confirmed.final_dish_name)

            trigger_ids = list(dict.fromkeys(confirmed.trigger_ids))
            for trigger_id in trigger_ids:
                if self.catalog.by_id(trigger_id) is None:
                    raise NotFound(f"Trigger not found: {trigger_id}")
            await self.repo.replace_dish_triggers(dish_event.id, dish_event.dish_id, trigger_ids)

        events = await self.repo.list_dish_events_for_entry(raw_entry_id, user_id=user_id)
        event_ids = [e.id for e in events]
        # Confirmation finalises the whole entry, including dishes left out of the payload
        await self.repo.mark_dish_events_confirmed(event_ids)
        if request.occurred_at is not None:
            await self.repo.set_dish_events_occurred_at(event_ids, request.occurred_at)

        confirmed_rows = await self.repo.list_confirmed_triggers(event_ids)
        names_by_event = {c.dish_event_id: c.final_dish_name for c in request.confirmed_dishes}

        dishes = [
            ConfirmedDishOut(
                dish_event_id=event.id,
                dish_id=event.dish_id,
                dish_name=names_by_event.get(event.id, UNKNOWN_DISH_NAME),
                triggers=self._trigger_refs(event.id, confirmed_rows),
            )
            for event in events
        ]
        logger.info("Confirmed food entry %s (%d dish event(s)).", raw_entry_id, len(dishes))
        return ConfirmFoodEntryResponse(entry_id=raw_entry_id, dishes=dishes)

    # ── Soft delete / history ────────────────────────────────────────────────

    async def delete_dish_event(self, dish_event_id: str) -> None:
        """Soft delete. Dish and trigger rows stay in place for audit."""
        user_id = await self.identity.get_authenticated_user_id()
        event = await self.repo.get_dish_event(dish_event_id)
        if event is None or event.user_id != user_id:
            raise NotFound(f"Dish event not found: {dish_event_id}")
        await self.repo.soft_delete_dish_event(dish_event_id, now_ms())
        logger.info("Soft-deleted dish event %s.", dish_event_id)

    async def list_food_history(self, limit: int = 50, offset: int = 0) -> FoodHistoryResponse:
        user_id = await self.identity.get_authenticated_user_id()
        rows = await self.repo.list_confirmed_history(user_id, limit=limit, offset=offset)
        confirmed_rows = await self.repo.list_confirmed_triggers([r.dish_event_id for r in rows])

        items = [
            HistoryItem(
                dish_event_id=row.dish_event_id,
                dish_id=row.dish_id,
                dish_name=row.dish_name,
                entry_id=row.raw_entry_id,
                occurred_at=row.occurred_at,
                triggers=[
                    HistoryTrigger(
                        trigger_id=ref.trigger_id,
                        trigger_name=ref.trigger_name,
                        display_text=get_trigger_display_text(ref.trigger_name),
                    )
                    for ref in self._trigger_refs(row.dish_event_id, confirmed_rows)
                ],
            )
            for row in rows
        ]
        return FoodHistoryResponse(items=items, limit=limit, offset=offset)

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _trigger_refs(
        self, dish_event_id: str, rows: list[DishTriggerRecord]
    ) -> list[TriggerRef]:
        refs: list[TriggerRef] = []
        for row in rows:
            if row.dish_event_id != dish_event_id:
                continue
            trigger = self.catalog.by_id(row.trigger_id)
            refs.append(
                TriggerRef(
                    trigger_id=row.trigger_id,
                    trigger_name=trigger.trigger_name if trigger else UNKNOWN_TRIGGER_NAME,
                )
            )
        return refs
