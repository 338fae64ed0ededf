"""
Prediction oracles consumed by the food-entry pipeline.

An extraction oracle maps raw meal text to a JSON payload
{"dishes": [{"dish_fragment_text", "dish_name_suggestion"}]}; a trigger
oracle maps a dish to {"triggers": [name, ...]}. Oracles are untrusted:
they may raise, hang, or return anything, and the orchestrators validate
every payload.

Two implementations of each:
  LLM*   — prompts rendered from foodlog.utils.prompts, answered by Gemini.
  Stub*  — deterministic keyword rules for local development and tests.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Awaitable, Protocol

from foodlog.config import settings
from foodlog.services.llm import call_llm_json
from foodlog.utils.prompts import build_extract_dishes_prompt, build_predict_triggers_prompt

STUB_VERSION = "v1-stub"

LLMCall = Callable[[str], Awaitable[Any]]


class ExtractionOracle(Protocol):
    model_version: str
    prompt_version: str

    async def extract_dishes(self, raw_entry_text: str) -> Any: ...


class TriggerOracle(Protocol):
    model_version: str
    prompt_version: str

    async def predict_triggers(self, dish_name: str, fragment_text: str) -> Any: ...


# ── LLM-backed ───────────────────────────────────────────────────────────────


class LLMExtractionOracle:
    def __init__(
        self,
        llm: LLMCall = call_llm_json,
        model_version: str | None = None,
        prompt_version: str | None = None,
    ) -> None:
        self._llm = llm
        self.model_version = model_version or settings.llm_model
        self.prompt_version = prompt_version or settings.prompt_version

    async def extract_dishes(self, raw_entry_text: str) -> Any:
        prompt = build_extract_dishes_prompt(raw_entry_text, self.prompt_version)
        return await self._llm(prompt)


class LLMTriggerOracle:
    def __init__(
        self,
        llm: LLMCall = call_llm_json,
        model_version: str | None = None,
        prompt_version: str | None = None,
    ) -> None:
        self._llm = llm
        self.model_version = model_version or settings.llm_model
        self.prompt_version = prompt_version or settings.prompt_version

    async def predict_triggers(self, dish_name: str, fragment_text: str) -> Any:
        prompt = build_predict_triggers_prompt(dish_name, fragment_text, self.prompt_version)
        return await self._llm(prompt)


# ── Deterministic stubs ──────────────────────────────────────────────────────

# keyword → trigger, checked against "<dish name> <fragment>" lowercased
_STUB_TRIGGER_RULES: list[tuple[tuple[str, ...], str]] = [
    (("croissant", "turnover"), "gluten"),
    (("latte", "matcha"), "caffeine"),
    (("cheese", "milk", "butter"), "dairy"),
    (("peanut", "walnut", "almond"), "nuts"),
    (("sugar", "sweet"), "added_sugar"),
    (("beef", "steak", "burger"), "red_meat"),
]

_AND_SPLIT = re.compile(r"\s+and\s+", re.IGNORECASE)


class StubExtractionOracle:
    """Splits on the word "and"; everything else is a single dish."""

    model_version = STUB_VERSION
    prompt_version = STUB_VERSION

    async def extract_dishes(self, raw_entry_text: str) -> Any:
        text = raw_entry_text.strip()
        parts = [p.strip() for p in _AND_SPLIT.split(text) if p.strip()] or [text]
        return {
            "dishes": [
                {"dish_fragment_text": part, "dish_name_suggestion": part}
                for part in parts
            ]
        }


class StubTriggerOracle:
    """Keyword rules; salmon and anything unmatched gets no triggers."""

    model_version = STUB_VERSION
    prompt_version = STUB_VERSION

    async def predict_triggers(self, dish_name: str, fragment_text: str) -> Any:
        combined = f"{dish_name} {fragment_text}".lower()
        triggers: list[str] = []
        for keywords, trigger in _STUB_TRIGGER_RULES:
            if any(k in combined for k in keywords) and trigger not in triggers:
                triggers.append(trigger)
        return {"triggers": triggers}


def default_extraction_oracle() -> ExtractionOracle:
    return StubExtractionOracle() if settings.use_stub_oracles else LLMExtractionOracle()


def default_trigger_oracle() -> TriggerOracle:
    return StubTriggerOracle() if settings.use_stub_oracles else LLMTriggerOracle()
