"""
LLM service — wraps Google Generative AI calls used by the oracles.

Primary model  : LLM_MODEL          (default: gemini-2.5-flash)
Fallback model : LLM_FALLBACK_MODEL (default: gemma-3-12b-it)

On any error from the primary (quota exhaustion, 429, network, etc.) the
service retries the same prompt on the fallback model before raising
LLMError. Callers decide what an LLMError means for them; the food-entry
orchestrators turn it into a degraded default.

Both attempts share one deadline derived from ORACLE_TIMEOUT_SECONDS (see
attempt_timeouts), the same budget the orchestrators enforce around the call.
"""

from __future__ import annotations

import asyncio
import json
import logging
from functools import lru_cache
from typing import Any

import google.generativeai as genai

from foodlog.config import settings

logger = logging.getLogger(__name__)

# Both attempts together finish within this share of ORACLE_TIMEOUT_SECONDS,
# so the orchestrator timeout never fires while the fallback is still running.
LLM_BUDGET_SHARE = 0.9
# The primary gets a third of the budget; the fallback gets whatever is left.
PRIMARY_BUDGET_SHARE = 1 / 3

# gRPC / HTTP status codes that indicate quota exhaustion
_QUOTA_INDICATORS = ("RESOURCE_EXHAUSTED", "429", "quota", "rate limit")


class LLMError(Exception):
    """Raised when both primary and fallback models fail, or return unusable output."""


@lru_cache(maxsize=1)
def _models() -> tuple[genai.GenerativeModel, genai.GenerativeModel]:
    """Configure the client on first use so importing this module needs no API key."""
    genai.configure(api_key=settings.google_api_key)
    return (
        genai.GenerativeModel(settings.llm_model),
        genai.GenerativeModel(settings.llm_fallback_model),
    )


def _is_quota_error(exc: Exception) -> bool:
    """Return True if the exception looks like a quota / rate-limit error."""
    msg = str(exc).lower()
    return any(indicator.lower() in msg for indicator in _QUOTA_INDICATORS)


def attempt_timeouts(budget_seconds: float) -> tuple[float, float]:
    """
    Split an oracle timeout into (primary, fallback) attempt timeouts.
    The fallback value is its ceiling; call_llm also hands it any time the
    primary did not use.
    """
    budget = budget_seconds * LLM_BUDGET_SHARE
    primary = budget * PRIMARY_BUDGET_SHARE
    return primary, budget - primary


async def _call_model(model: genai.GenerativeModel, prompt: str, timeout: float) -> str:
    """
    Call a single model with the given timeout.
    Uses the async client so a timeout cancels the request itself.
    Raises the original exception on failure (caller decides whether to retry).
    """
    response = await asyncio.wait_for(
        model.generate_content_async(
            prompt,
            generation_config=genai.GenerationConfig(
                temperature=0.0,
                max_output_tokens=1024,
                response_mime_type="application/json",
            ),
        ),
        timeout=timeout,
    )
    text = (response.text or "").strip()
    if not text:
        raise LLMError("Model returned an empty response")
    return text


async def call_llm(prompt: str) -> str:
    """
    Call the primary model; fall back to the fallback model on any failure.
    Returns the raw text response.
    """
    primary, fallback = _models()
    loop = asyncio.get_running_loop()
    primary_timeout, _ = attempt_timeouts(settings.oracle_timeout_seconds)
    deadline = loop.time() + settings.oracle_timeout_seconds * LLM_BUDGET_SHARE
    logger.debug("LLM prompt (%s, %d chars)", settings.llm_model, len(prompt))

    # ── Attempt 1: primary model ─────────────────────────────────────────────
    try:
        text = await _call_model(primary, prompt, primary_timeout)
        logger.debug("Primary model response:\n%s", text)
        return text
    except Exception as primary_exc:
        if _is_quota_error(primary_exc):
            logger.warning(
                "Primary model '%s' quota exhausted — switching to fallback '%s'",
                settings.llm_model,
                settings.llm_fallback_model,
            )
        else:
            logger.warning(
                "Primary model '%s' failed (%s) — switching to fallback '%s'",
                settings.llm_model,
                primary_exc,
                settings.llm_fallback_model,
            )

    # ── Attempt 2: fallback model ────────────────────────────────────────────
    try:
        text = await _call_model(fallback, prompt, max(deadline - loop.time(), 0.0))
        logger.info("Fallback model '%s' succeeded.", settings.llm_fallback_model)
        return text
    except Exception as fallback_exc:
        logger.error(
            "Fallback model '%s' also failed: %s",
            settings.llm_fallback_model,
            fallback_exc,
        )
        raise LLMError(
            f"Both primary ({settings.llm_model}) and fallback "
            f"({settings.llm_fallback_model}) models failed. "
            f"Last error: {fallback_exc}"
        ) from fallback_exc


def strip_fences(text: str) -> str:
    """Remove markdown code fences (```json ... ```) from a string."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        cleaned = "\n".join(
            lines[1:-1] if lines[-1].startswith("```") else lines[1:]
        )
    return cleaned.strip()


async def call_llm_json(prompt: str) -> Any:
    """
    Call the model (with fallback) and parse the response as JSON.

    Strips markdown fences if present. Raises LLMError on parse failure.
    """
    raw = await call_llm(prompt)
    cleaned = strip_fences(raw)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse model JSON: %s\nRaw: %s", exc, raw[:200])
        raise LLMError(f"Invalid JSON from model: {exc}") from exc
