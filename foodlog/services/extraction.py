"""
Extraction orchestrator — turns raw meal text into candidate dishes.

The extraction oracle is untrusted. Any failure (raised error, timeout,
malformed payload) degrades to a single dish equal to the raw text, so a
submission is never lost because the oracle misbehaved. The degraded branch
is explicit on the result and logged.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import ValidationError

from foodlog.config import settings
from foodlog.exceptions import UpstreamDegraded
from foodlog.schemas.food_entry import ExtractedDish
from foodlog.services.oracles import ExtractionOracle

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Extracted dishes, plus why the fallback was used if it was."""

    dishes: list[ExtractedDish] = field(default_factory=list)
    degraded: bool = False
    reason: Optional[str] = None


def parse_extraction_payload(payload: Any) -> list[ExtractedDish]:
    """
    Validate {"dishes": [{dish_fragment_text, dish_name_suggestion}, ...]}.
    Raises UpstreamDegraded on any structural violation.
    """
    if not isinstance(payload, dict):
        raise UpstreamDegraded("Extraction response is not a JSON object")
    dishes = payload.get("dishes")
    if not isinstance(dishes, list):
        raise UpstreamDegraded('Extraction response missing "dishes" array')
    if not dishes:
        raise UpstreamDegraded("Extraction response has no dishes")

    parsed: list[ExtractedDish] = []
    for item in dishes:
        if not isinstance(item, dict):
            raise UpstreamDegraded("Extraction response dish is not an object")
        try:
            parsed.append(ExtractedDish.model_validate(item))
        except ValidationError as exc:
            raise UpstreamDegraded(
                f"Extraction response dish missing required fields: {exc.error_count()} error(s)"
            ) from exc
    return parsed


class ExtractionOrchestrator:
    def __init__(self, oracle: ExtractionOracle, timeout_seconds: Optional[float] = None) -> None:
        self.oracle = oracle
        self.timeout_seconds = timeout_seconds or settings.oracle_timeout_seconds

    @property
    def model_version(self) -> str:
        return self.oracle.model_version

    @property
    def prompt_version(self) -> str:
        return self.oracle.prompt_version

    async def extract_dishes(self, raw_entry_text: str) -> ExtractionResult:
        """Never raises. Falls back to [{raw text, raw text}] on any failure."""
        try:
            payload = await asyncio.wait_for(
                self.oracle.extract_dishes(raw_entry_text),
                timeout=self.timeout_seconds,
            )
            dishes = parse_extraction_payload(payload)
        except asyncio.TimeoutError:
            return self._fallback(
                raw_entry_text, f"oracle timed out after {self.timeout_seconds}s"
            )
        except Exception as exc:
            return self._fallback(raw_entry_text, str(exc) or type(exc).__name__)

        logger.info("Extracted %d dish(es) from raw entry.", len(dishes))
        return ExtractionResult(dishes=dishes)

    @staticmethod
    def _fallback(raw_entry_text: str, reason: str) -> ExtractionResult:
        logger.warning(
            "Dish extraction degraded (%s), using raw entry text as the only dish.",
            reason,
        )
        return ExtractionResult(
            dishes=[
                ExtractedDish.model_construct(
                    dish_fragment_text=raw_entry_text,
                    dish_name_suggestion=raw_entry_text,
                )
            ],
            degraded=True,
            reason=reason,
        )
