"""
FoodEntryRepository — thin CRUD adapter over the seven food-entry tables.

Every write commits immediately: the pipeline is deliberately not wrapped in
one transaction, so a failure part-way through leaves earlier rows committed.
The one multi-statement write, replacing an event's confirmed triggers, is a
single commit so the set is never observed half-replaced.

Any SQLAlchemy error is rolled back and re-raised as PersistenceFailure.
A unique-constraint violation on dish creation is re-raised as Conflict so the
caller can retry its lookup.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Result
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from foodlog.exceptions import Conflict, PersistenceFailure
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
from foodlog.utils.clock import now_ms

logger = logging.getLogger(__name__)

_DISH_EVENT_COLUMNS = """
    id, user_id, dish_id, predicted_dish_id, raw_entry_id,
    confirmed_by_user, deleted_at, occurred_at, created_at
"""


def _new_id() -> str:
    return str(uuid.uuid4())


class FoodEntryRepository:
    """Async data access for raw entries, dishes, dish events and triggers."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ── Plumbing ─────────────────────────────────────────────────────────────

    async def _run(
        self,
        operation: str,
        statement: Any,
        params: Optional[dict[str, Any]] = None,
        *,
        commit: bool = False,
    ) -> Result:
        try:
            result = await self.db.execute(statement, params or {})
            if commit:
                await self.db.commit()
            return result
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Store call '%s' failed: %s", operation, exc)
            raise PersistenceFailure(f"Failed to {operation}: {exc}") from exc

    async def _insert(self, operation: str, sql: str, row: dict[str, Any]) -> None:
        await self._run(operation, text(sql), row, commit=True)

    # ── Raw entries / predicted dishes ───────────────────────────────────────

    async def create_raw_entry(self, user_id: str, raw_entry_text: str) -> RawEntryRecord:
        row = {
            "id": _new_id(),
            "user_id": user_id,
            "raw_entry_text": raw_entry_text,
            "created_at": now_ms(),
        }
        await self._insert(
            "create raw entry",
            """
            INSERT INTO raw_entry (id, user_id, raw_entry_text, created_at)
            VALUES (:id, :user_id, :raw_entry_text, :created_at)
            """,
            row,
        )
        return RawEntryRecord.model_validate(row)

    async def create_predicted_dish(
        self,
        raw_entry_id: str,
        dish_fragment_text: str,
        dish_name_suggestion: str,
        model_version: str,
        prompt_version: str,
    ) -> PredictedDishRecord:
        row = {
            "id": _new_id(),
            "raw_entry_id": raw_entry_id,
            "dish_fragment_text": dish_fragment_text,
            "dish_name_suggestion": dish_name_suggestion,
            "model_version": model_version,
            "prompt_version": prompt_version,
            "created_at": now_ms(),
        }
        await self._insert(
            "create predicted dish",
            """
            INSERT INTO predicted_dish
                (id, raw_entry_id, dish_fragment_text, dish_name_suggestion,
                 model_version, prompt_version, created_at)
            VALUES
                (:id, :raw_entry_id, :dish_fragment_text, :dish_name_suggestion,
                 :model_version, :prompt_version, :created_at)
            """,
            row,
        )
        return PredictedDishRecord.model_validate(row)

    # ── Dishes ───────────────────────────────────────────────────────────────

    async def find_dish_by_normalized_name(
        self, user_id: str, normalized_dish_name: str
    ) -> Optional[DishRecord]:
        result = await self._run(
            "find dish",
            text("""
                SELECT id, user_id, dish_name, normalized_dish_name,
                       dish_embedding_id, created_at
                FROM dish
                WHERE user_id = :user_id AND normalized_dish_name = :normalized
            """),
            {"user_id": user_id, "normalized": normalized_dish_name},
        )
        row = result.mappings().first()
        return DishRecord.model_validate(dict(row)) if row else None

    async def get_dish(self, dish_id: str) -> Optional[DishRecord]:
        result = await self._run(
            "get dish",
            text("""
                SELECT id, user_id, dish_name, normalized_dish_name,
                       dish_embedding_id, created_at
                FROM dish WHERE id = :id
            """),
            {"id": dish_id},
        )
        row = result.mappings().first()
        return DishRecord.model_validate(dict(row)) if row else None

    async def create_dish(
        self, user_id: str, dish_name: str, normalized_dish_name: str
    ) -> DishRecord:
        """Insert a dish. Raises Conflict if (user_id, normalized name) already exists."""
        row = {
            "id": _new_id(),
            "user_id": user_id,
            "dish_name": dish_name,
            "normalized_dish_name": normalized_dish_name,
            "dish_embedding_id": None,
            "created_at": now_ms(),
        }
        try:
            await self.db.execute(
                text("""
                    INSERT INTO dish
                        (id, user_id, dish_name, normalized_dish_name,
                         dish_embedding_id, created_at)
                    VALUES
                        (:id, :user_id, :dish_name, :normalized_dish_name,
                         :dish_embedding_id, :created_at)
                """),
                row,
            )
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise Conflict(
                f'A dish with normalized name "{normalized_dish_name}" already exists'
            ) from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Store call 'create dish' failed: %s", exc)
            raise PersistenceFailure(f"Failed to create dish: {exc}") from exc
        return DishRecord.model_validate(row)

    async def update_dish_name(
        self, dish_id: str, dish_name: str, normalized_dish_name: str
    ) -> None:
        """Rename a dish. Raises Conflict if another dish of the user holds the normalized name."""
        try:
            await self.db.execute(
                text("""
                    UPDATE dish
                    SET dish_name = :dish_name,
                        normalized_dish_name = :normalized
                    WHERE id = :id
                """),
                {"id": dish_id, "dish_name": dish_name, "normalized": normalized_dish_name},
            )
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise Conflict(
                "Cannot update dish name: a dish with normalized name "
                f'"{normalized_dish_name}" already exists'
            ) from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Store call 'update dish' failed: %s", exc)
            raise PersistenceFailure(f"Failed to update dish: {exc}") from exc

    # ── Dish events ──────────────────────────────────────────────────────────

    async def create_dish_event(
        self,
        user_id: str,
        dish_id: str,
        predicted_dish_id: Optional[str],
        raw_entry_id: str,
    ) -> DishEventRecord:
        created_at = now_ms()
        row = {
            "id": _new_id(),
            "user_id": user_id,
            "dish_id": dish_id,
            "predicted_dish_id": predicted_dish_id,
            "raw_entry_id": raw_entry_id,
            "confirmed_by_user": False,
            "deleted_at": None,
            "occurred_at": created_at,
            "created_at": created_at,
        }
        await self._insert(
            "create dish event",
            """
            INSERT INTO dish_events
                (id, user_id, dish_id, predicted_dish_id, raw_entry_id,
                 confirmed_by_user, deleted_at, occurred_at, created_at)
            VALUES
                (:id, :user_id, :dish_id, :predicted_dish_id, :raw_entry_id,
                 :confirmed_by_user, :deleted_at, :occurred_at, :created_at)
            """,
            row,
        )
        return DishEventRecord.model_validate(row)

    async def get_dish_event(self, dish_event_id: str) -> Optional[DishEventRecord]:
        """Fetch one event by id, deleted or not."""
        result = await self._run(
            "get dish event",
            text(f"SELECT {_DISH_EVENT_COLUMNS} FROM dish_events WHERE id = :id"),
            {"id": dish_event_id},
        )
        row = result.mappings().first()
        return DishEventRecord.model_validate(dict(row)) if row else None

    async def list_dish_events_for_entry(
        self, raw_entry_id: str, user_id: Optional[str] = None
    ) -> list[DishEventRecord]:
        """Active (not soft-deleted) events of a raw entry, in creation order."""
        sql = f"""
            SELECT {_DISH_EVENT_COLUMNS}
            FROM dish_events
            WHERE raw_entry_id = :raw_entry_id
              AND deleted_at IS NULL
        """
        params: dict[str, Any] = {"raw_entry_id": raw_entry_id}
        if user_id is not None:
            sql += " AND user_id = :user_id"
            params["user_id"] = user_id
        sql += " ORDER BY created_at ASC"

        result = await self._run("list dish events", text(sql), params)
        return [DishEventRecord.model_validate(dict(r)) for r in result.mappings().all()]

    async def list_confirmed_dish_events_for_dish(self, dish_id: str) -> list[DishEventRecord]:
        """Confirmed events of a dish, newest first."""
        result = await self._run(
            "list confirmed dish events",
            text(f"""
                SELECT {_DISH_EVENT_COLUMNS}
                FROM dish_events
                WHERE dish_id = :dish_id AND confirmed_by_user = :confirmed
                ORDER BY created_at DESC
            """),
            {"dish_id": dish_id, "confirmed": True},
        )
        return [DishEventRecord.model_validate(dict(r)) for r in result.mappings().all()]

    async def mark_dish_events_confirmed(self, dish_event_ids: list[str]) -> None:
        if not dish_event_ids:
            return
        await self._run(
            "confirm dish events",
            text("""
                UPDATE dish_events SET confirmed_by_user = :confirmed
                WHERE id IN :ids
            """).bindparams(bindparam("ids", expanding=True)),
            {"confirmed": True, "ids": dish_event_ids},
            commit=True,
        )

    async def set_dish_events_occurred_at(self, dish_event_ids: list[str], occurred_at: int) -> None:
        if not dish_event_ids:
            return
        await self._run(
            "set dish event occurred_at",
            text("""
                UPDATE dish_events SET occurred_at = :occurred_at
                WHERE id IN :ids
            """).bindparams(bindparam("ids", expanding=True)),
            {"occurred_at": occurred_at, "ids": dish_event_ids},
            commit=True,
        )

    async def soft_delete_dish_event(self, dish_event_id: str, deleted_at: int) -> None:
        """Set deleted_at once; an already-deleted event keeps its first timestamp."""
        await self._run(
            "delete dish event",
            text("""
                UPDATE dish_events SET deleted_at = :deleted_at
                WHERE id = :id AND deleted_at IS NULL
            """),
            {"id": dish_event_id, "deleted_at": deleted_at},
            commit=True,
        )

    # ── Triggers ─────────────────────────────────────────────────────────────

    async def list_triggers(self) -> list[TriggerRecord]:
        result = await self._run(
            "list triggers",
            text("SELECT id, trigger_name, created_at FROM triggers ORDER BY trigger_name"),
        )
        return [TriggerRecord.model_validate(dict(r)) for r in result.mappings().all()]

    async def get_triggers_by_names(self, trigger_names: list[str]) -> list[TriggerRecord]:
        if not trigger_names:
            return []
        result = await self._run(
            "get triggers by name",
            text("""
                SELECT id, trigger_name, created_at FROM triggers
                WHERE trigger_name IN :names
            """).bindparams(bindparam("names", expanding=True)),
            {"names": list(trigger_names)},
        )
        return [TriggerRecord.model_validate(dict(r)) for r in result.mappings().all()]

    async def insert_triggers(self, trigger_names: list[str]) -> None:
        if not trigger_names:
            return
        rows = [
            {"id": _new_id(), "trigger_name": name, "created_at": now_ms()}
            for name in trigger_names
        ]
        await self._run(
            "insert triggers",
            text("""
                INSERT INTO triggers (id, trigger_name, created_at)
                VALUES (:id, :trigger_name, :created_at)
            """),
            rows,
            commit=True,
        )

    async def create_predicted_dish_trigger(
        self,
        dish_id: str,
        dish_event_id: str,
        trigger_id: str,
        model_version: str,
        prompt_version: str,
    ) -> PredictedDishTriggerRecord:
        row = {
            "id": _new_id(),
            "dish_id": dish_id,
            "dish_event_id": dish_event_id,
            "trigger_id": trigger_id,
            "model_version": model_version,
            "prompt_version": prompt_version,
            "created_at": now_ms(),
        }
        await self._insert(
            "create predicted dish trigger",
            """
            INSERT INTO predicted_dish_triggers
                (id, dish_id, dish_event_id, trigger_id,
                 model_version, prompt_version, created_at)
            VALUES
                (:id, :dish_id, :dish_event_id, :trigger_id,
                 :model_version, :prompt_version, :created_at)
            """,
            row,
        )
        return PredictedDishTriggerRecord.model_validate(row)

    async def list_predicted_triggers(
        self, dish_event_ids: list[str]
    ) -> list[PredictedDishTriggerRecord]:
        if not dish_event_ids:
            return []
        result = await self._run(
            "list predicted triggers",
            text("""
                SELECT id, dish_id, dish_event_id, trigger_id,
                       model_version, prompt_version, created_at
                FROM predicted_dish_triggers
                WHERE dish_event_id IN :ids
                ORDER BY created_at ASC
            """).bindparams(bindparam("ids", expanding=True)),
            {"ids": dish_event_ids},
        )
        return [
            PredictedDishTriggerRecord.model_validate(dict(r))
            for r in result.mappings().all()
        ]

    async def replace_dish_triggers(
        self, dish_event_id: str, dish_id: str, trigger_ids: list[str]
    ) -> None:
        """Delete every confirmed trigger of the event, then insert trigger_ids, in one commit."""
        try:
            await self.db.execute(
                text("DELETE FROM dish_triggers WHERE dish_event_id = :dish_event_id"),
                {"dish_event_id": dish_event_id},
            )
            if trigger_ids:
                await self.db.execute(
                    text("""
                        INSERT INTO dish_triggers
                            (id, dish_id, dish_event_id, trigger_id, created_at)
                        VALUES
                            (:id, :dish_id, :dish_event_id, :trigger_id, :created_at)
                    """),
                    [
                        {
                            "id": _new_id(),
                            "dish_id": dish_id,
                            "dish_event_id": dish_event_id,
                            "trigger_id": trigger_id,
                            "created_at": now_ms(),
                        }
                        for trigger_id in trigger_ids
                    ],
                )
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Store call 'replace dish triggers' failed: %s", exc)
            raise PersistenceFailure(f"Failed to replace dish triggers: {exc}") from exc

    async def list_confirmed_triggers(self, dish_event_ids: list[str]) -> list[DishTriggerRecord]:
        if not dish_event_ids:
            return []
        result = await self._run(
            "list confirmed triggers",
            text("""
                SELECT id, dish_id, dish_event_id, trigger_id, created_at
                FROM dish_triggers
                WHERE dish_event_id IN :ids
                ORDER BY created_at ASC
            """).bindparams(bindparam("ids", expanding=True)),
            {"ids": dish_event_ids},
        )
        return [DishTriggerRecord.model_validate(dict(r)) for r in result.mappings().all()]

    # ── History ──────────────────────────────────────────────────────────────

    async def list_confirmed_history(
        self, user_id: str, limit: int, offset: int
    ) -> list[HistoryRow]:
        """A user's confirmed, non-deleted dish events, most recently eaten first."""
        result = await self._run(
            "list food history",
            text("""
                SELECT de.id AS dish_event_id, de.dish_id, d.dish_name,
                       de.raw_entry_id, de.occurred_at, de.created_at
                FROM dish_events de
                JOIN dish d ON d.id = de.dish_id
                WHERE de.user_id = :user_id
                  AND de.confirmed_by_user = :confirmed
                  AND de.deleted_at IS NULL
                ORDER BY de.occurred_at DESC, de.created_at DESC
                LIMIT :limit OFFSET :offset
            """),
            {"user_id": user_id, "confirmed": True, "limit": limit, "offset": offset},
        )
        return [HistoryRow.model_validate(dict(r)) for r in result.mappings().all()]
