"""
Prompt template builders for all LLM calls.
All prompt strings live here — no hardcoded prompts elsewhere in the codebase.

Templates are keyed by prompt version so that the version recorded on every
predicted_dish / predicted_dish_triggers row identifies the exact wording used.
"""

from __future__ import annotations

from typing import Callable

from foodlog.utils.trigger_data import TRIGGER_EXAMPLES, VALID_TRIGGER_NAMES


# ── Dish extraction ──────────────────────────────────────────────────────────


def _extract_dishes_v1(raw_entry_text: str) -> str:
    return f"""You are a food logging assistant. Extract individual dishes from the user's food entry text.

## USER INPUT
"{raw_entry_text}"

## OUTPUT FORMAT
Return a JSON object with a "dishes" array where each dish has:
- dish_fragment_text: the exact text fragment that refers to this dish
- dish_name_suggestion: a normalized, properly capitalized dish name

Example: for "Chocolate Croissant and Matcha Latte", return:
{{
  "dishes": [
    {{"dish_fragment_text": "Chocolate Croissant", "dish_name_suggestion": "Chocolate Croissant"}},
    {{"dish_fragment_text": "Matcha Latte", "dish_name_suggestion": "Matcha Latte"}}
  ]
}}

Output only valid JSON with a "dishes" array. No markdown fences. No preamble."""


# ── Trigger prediction ───────────────────────────────────────────────────────


def _predict_triggers_v1(dish_name: str, fragment_text: str) -> str:
    examples = "\n".join(
        f"{name}: {TRIGGER_EXAMPLES[name]}" for name in VALID_TRIGGER_NAMES
    )
    return f"""You are a food trigger prediction assistant. Predict potential food triggers (allergens, intolerances) for a dish.

## DISH
Dish name: "{dish_name}"
Context: "{fragment_text}"

## ALLOWED TRIGGERS
{", ".join(VALID_TRIGGER_NAMES)}

Use only names from the list above, exactly as written.
If no triggers are likely, return an empty array.

## EXAMPLES OF FOODS PER TRIGGER
{examples}

## OUTPUT FORMAT
For "Chocolate Croissant", return:
{{"triggers": ["gluten", "dairy", "added_sugar"]}}

For "Grilled Salmon", return:
{{"triggers": []}}

Output only valid JSON with a "triggers" array. No markdown fences. No preamble."""


PROMPTS: dict[str, dict[str, Callable[..., str]]] = {
    "v1": {
        "extract_dishes": _extract_dishes_v1,
        "predict_triggers": _predict_triggers_v1,
    },
}


def _templates(version: str) -> dict[str, Callable[..., str]]:
    try:
        return PROMPTS[version]
    except KeyError:
        raise ValueError(f"Unknown prompt version: {version}") from None


def build_extract_dishes_prompt(raw_entry_text: str, version: str) -> str:
    """Build the dish-extraction prompt for the given prompt version."""
    return _templates(version)["extract_dishes"](raw_entry_text)


def build_predict_triggers_prompt(dish_name: str, fragment_text: str, version: str) -> str:
    """Build the trigger-prediction prompt for the given prompt version."""
    return _templates(version)["predict_triggers"](dish_name, fragment_text)
