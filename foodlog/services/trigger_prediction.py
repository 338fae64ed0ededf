"""
Trigger orchestrator — decides the predicted triggers for one dish event.

New dish   → ask the trigger oracle, keep only names in the vocabulary.
Known dish → copy the dish's most recent confirmed triggers; the oracle is
             not called, so history the user already vetted wins.

Oracle failures (raised error, timeout, non-object payload, non-string
element) degrade to an empty prediction, which the user can always correct.
Successful predictions are memoised per (prompt version, dish, fragment).
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from cachetools import TTLCache

from foodlog.config import settings
from foodlog.exceptions import UpstreamDegraded
from foodlog.services.dish_resolution import DishResolutionService
from foodlog.services.oracles import TriggerOracle
from foodlog.utils.trigger_data import is_valid_trigger_name

logger = logging.getLogger(__name__)


@dataclass
class TriggerPrediction:
    """Trigger names for one dish, plus why they are empty if the oracle failed."""

    names: list[str] = field(default_factory=list)
    degraded: bool = False
    reason: Optional[str] = None
    from_history: bool = False


def parse_trigger_payload(payload: Any) -> tuple[list[str], list[str]]:
    """
    Validate {"triggers": [str, ...]}.

    Returns (valid, dropped): names outside the vocabulary are dropped, not
    errors. Raises UpstreamDegraded on a structural problem or any non-string
    element.
    """
    if not isinstance(payload, dict):
        raise UpstreamDegraded("Trigger response is not a JSON object")
    triggers = payload.get("triggers")
    if not isinstance(triggers, list):
        raise UpstreamDegraded('Trigger response missing "triggers" array')
    if any(not isinstance(t, str) for t in triggers):
        raise UpstreamDegraded("Trigger response contains non-string trigger")

    valid: list[str] = []
    dropped: list[str] = []
    for name in triggers:
        if is_valid_trigger_name(name):
            if name not in valid:
                valid.append(name)
        else:
            dropped.append(name)
    return valid, dropped


def _cache_key(prompt_version: str, dish_name: str, fragment_text: str) -> str:
    raw = "\x1f".join((prompt_version, dish_name, fragment_text))
    return hashlib.sha256(raw.encode()).hexdigest()[:16]


class TriggerOrchestrator:
    def __init__(
        self,
        oracle: TriggerOracle,
        dish_resolution: DishResolutionService,
        timeout_seconds: Optional[float] = None,
        cache: Optional[TTLCache] = None,
    ) -> None:
        self.oracle = oracle
        self.dish_resolution = dish_resolution
        self.timeout_seconds = timeout_seconds or settings.oracle_timeout_seconds
        self._cache: TTLCache = (
            cache
            if cache is not None
            else TTLCache(maxsize=2_000, ttl=settings.trigger_cache_ttl_seconds)
        )

    @property
    def model_version(self) -> str:
        return self.oracle.model_version

    @property
    def prompt_version(self) -> str:
        return self.oracle.prompt_version

    async def predict_triggers(self, dish_name: str, fragment_text: str) -> TriggerPrediction:
        """Ask the oracle. Never raises; returns an empty degraded prediction on failure."""
        key = _cache_key(self.prompt_version, dish_name, fragment_text)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Trigger cache HIT (key=%s)", key)
            return TriggerPrediction(names=list(cached))

        try:
            payload = await asyncio.wait_for(
                self.oracle.predict_triggers(dish_name, fragment_text),
                timeout=self.timeout_seconds,
            )
            valid, dropped = parse_trigger_payload(payload)
        except asyncio.TimeoutError:
            return self._degraded(dish_name, f"oracle timed out after {self.timeout_seconds}s")
        except Exception as exc:
            return self._degraded(dish_name, str(exc) or type(exc).__name__)

        if dropped:
            logger.warning(
                "Filtered out %d trigger name(s) outside the vocabulary: %s",
                len(dropped),
                dropped,
            )
        self._cache[key] = tuple(valid)
        return TriggerPrediction(names=valid)

    async def triggers_for(
        self,
        is_new_dish: bool,
        dish_id: str,
        dish_name: str,
        fragment_text: str,
    ) -> TriggerPrediction:
        """Predict for a new dish; inherit the last confirmed set for a known one."""
        if is_new_dish:
            return await self.predict_triggers(dish_name, fragment_text)

        history = await self.dish_resolution.get_most_recent_dish_triggers(dish_id)
        return TriggerPrediction(
            names=[t.trigger_name for t in history],
            from_history=True,
        )

    @staticmethod
    def _degraded(dish_name: str, reason: str) -> TriggerPrediction:
        logger.warning(
            "Trigger prediction degraded for dish '%s' (%s), predicting no triggers.",
            dish_name,
            reason,
        )
        return TriggerPrediction(degraded=True, reason=reason)
