# Ingredient rows from the recipe form are dropped, not rejected, when the
# user left them blank.


def _filled(value) -> bool:
    return isinstance(value, str) and value.strip() != ""


def is_complete_ingredient(entry) -> bool:
    """Return True if the entry has a non-blank name and unit.

    Amount is optional and not looked at here; the schema checks it.
    """
    if not entry or not isinstance(entry, dict):
        return False
    return _filled(entry.get("name")) and _filled(entry.get("unit"))


def clean_ingredients(entries):
    if not entries:
        return []
    return [e for e in entries if is_complete_ingredient(e)]


def normalize_recipe_payload(raw: dict) -> dict:
    """Clean the ingredient list of a raw recipe payload in place."""
    if raw.get("ingredients") is not None:
        raw["ingredients"] = clean_ingredients(raw["ingredients"])
    return raw
