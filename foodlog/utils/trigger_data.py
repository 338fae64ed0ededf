"""
Canonical trigger definitions — single source of truth for all trigger logic.
The catalog seeder, the prompt builder and the trigger orchestrator import
exclusively from here. Names must match the rows of the triggers table.
"""

# Left out of the current vocabulary: polyols_sugar_alcohols,
# artificial_sweeteners, emulsifiers_thickeners, maltodextrin, sulfites.
VALID_TRIGGER_NAMES = [
    "alcohol", "caffeine", "dairy", "spicy", "fried_food", "gluten",
    "added_sugar", "insoluble_fiber", "fructans", "legumes_beans",
    "high_fructose_fruits", "red_meat", "processed_meat", "sesame",
    "shellfish", "fish", "soy", "nuts",
]

_VALID_TRIGGER_SET = frozenset(VALID_TRIGGER_NAMES)

# Display text shown next to each trigger in the review UI
TRIGGER_DISPLAY_TEXT: dict[str, str] = {
    "alcohol":              "Alcohol",
    "caffeine":             "Caffeine",
    "dairy":                "Dairy",
    "spicy":                "Spicy",
    "fried_food":           "Fried Food",
    "gluten":               "Gluten",
    "added_sugar":          "Added Sugar",
    "insoluble_fiber":      "Insoluble Fiber",
    "fructans":             "Fructans",
    "legumes_beans":        "Legumes or Beans",
    "high_fructose_fruits": "High-fructose Fruits",
    "red_meat":             "Red Meat",
    "processed_meat":       "Processed Meat",
    "sesame":               "Sesame",
    "shellfish":            "Shellfish",
    "fish":                 "Fish",
    "soy":                  "Soy",
    "nuts":                 "Nuts",
}

# Example foods per trigger, rendered into the prediction prompt
TRIGGER_EXAMPLES: dict[str, str] = {
    "alcohol":              "red wine, beer",
    "caffeine":             "coffee, tea, energy drink",
    "dairy":                "butter, cream, milk, cheese",
    "spicy":                "spicy food, curry, chili",
    "fried_food":           "fried food, fried chicken, fries",
    "gluten":               "gluten, wheat, barley, rye",
    "added_sugar":          "added sugar, sugar, sweets",
    "insoluble_fiber":      "insoluble fiber, oats",
    "fructans":             "any foods with onions OR garlic",
    "legumes_beans":        "foods with beans",
    "high_fructose_fruits": "apple, pear, mango, watermelon",
    "red_meat":             "red meat, beef, pork",
    "processed_meat":       "processed meat, ham, bacon, hotdog",
    "sesame":               "sesame, sesame seed, tahini",
    "shellfish":            "shellfish, shrimp, crab",
    "fish":                 "fish, salmon, tuna",
    "soy":                  "soy, soybean, soy lecithin",
    "nuts":                 "nuts, almond, walnut, peanut",
}


def is_valid_trigger_name(name: str) -> bool:
    """Return True if name belongs to the closed trigger vocabulary."""
    return name in _VALID_TRIGGER_SET


def get_trigger_display_text(trigger_name: str) -> str:
    """Return the UI label for a trigger, or the raw name if it has none."""
    return TRIGGER_DISPLAY_TEXT.get(trigger_name, trigger_name)
