"""
TriggerCatalog — in-memory snapshot of the triggers table.

Loaded once at startup (after seeding any vocabulary names missing from the
table) and shared by every request. Trigger names are never scattered as
string literals: lookups go through this catalog.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from foodlog.schemas.records import TriggerRecord
from foodlog.services.food_entry_repo import FoodEntryRepository
from foodlog.utils.trigger_data import VALID_TRIGGER_NAMES, is_valid_trigger_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TriggerCatalog:
    """Immutable name/id index over the trigger rows."""

    _by_name: dict[str, TriggerRecord] = field(default_factory=dict)
    _by_id: dict[str, TriggerRecord] = field(default_factory=dict)

    @classmethod
    def from_records(cls, records: Iterable[TriggerRecord]) -> "TriggerCatalog":
        by_name: dict[str, TriggerRecord] = {}
        by_id: dict[str, TriggerRecord] = {}
        for record in records:
            if not is_valid_trigger_name(record.trigger_name):
                logger.warning(
                    "Ignoring trigger row outside the vocabulary: %s", record.trigger_name
                )
                continue
            by_name[record.trigger_name] = record
            by_id[record.id] = record
        return cls(by_name, by_id)

    def by_name(self, trigger_name: str) -> Optional[TriggerRecord]:
        return self._by_name.get(trigger_name)

    def by_id(self, trigger_id: str) -> Optional[TriggerRecord]:
        return self._by_id.get(trigger_id)

    def resolve_names(self, trigger_names: Iterable[str]) -> list[TriggerRecord]:
        """Map names to rows in input order; unknown names and repeats are dropped."""
        resolved: list[TriggerRecord] = []
        seen: set[str] = set()
        for name in trigger_names:
            record = self._by_name.get(name)
            if record is None or record.id in seen:
                continue
            seen.add(record.id)
            resolved.append(record)
        return resolved

    def names(self) -> list[str]:
        return sorted(self._by_name)

    def records(self) -> list[TriggerRecord]:
        return [self._by_name[name] for name in self.names()]

    def __len__(self) -> int:
        return len(self._by_name)


async def load_trigger_catalog(repo: FoodEntryRepository) -> TriggerCatalog:
    """Build a catalog from the rows currently in the triggers table."""
    return TriggerCatalog.from_records(await repo.list_triggers())


async def seed_trigger_catalog(repo: FoodEntryRepository) -> TriggerCatalog:
    """
    Insert any VALID_TRIGGER_NAMES missing from the triggers table, then load
    the catalog. Idempotent: existing rows keep their ids.
    """
    existing = {t.trigger_name for t in await repo.list_triggers()}
    missing = [name for name in VALID_TRIGGER_NAMES if name not in existing]
    if missing:
        await repo.insert_triggers(missing)
        logger.info("Seeded %d trigger(s): %s", len(missing), ", ".join(missing))
    catalog = await load_trigger_catalog(repo)
    logger.info("Trigger catalog loaded with %d trigger(s).", len(catalog))
    return catalog
