from recipeshare.normalize import clean_ingredients, is_complete_ingredient, normalize_recipe_payload


def test_soup_ingredients_drop_nameless_row():
    entries = [{"name": "Salt", "unit": "tsp"}, {"name": "", "unit": "tsp"}]
    assert clean_ingredients(entries) == [{"name": "Salt", "unit": "tsp"}]


def test_blank_and_missing_fields_are_dropped():
    entries = [
        None,
        {},
        {"name": "   ", "unit": "g"},
        {"name": "Flour", "unit": " "},
        {"name": "Flour"},
        {"unit": "g", "amount": 3},
        {"name": "Milk", "unit": "ml", "amount": None},
    ]
    assert clean_ingredients(entries) == [{"name": "Milk", "unit": "ml", "amount": None}]


def test_amount_is_not_needed():
    assert is_complete_ingredient({"name": "Pepper", "unit": "pinch"})
    assert not is_complete_ingredient("Pepper")


def test_every_kept_entry_has_trimmed_name_and_unit():
    entries = [
        {"name": n, "unit": u}
        for n in ["", " ", "Egg", " Egg "]
        for u in ["", "\t", "piece"]
    ]
    kept = clean_ingredients(entries)
    assert len(kept) == 2
    for e in kept:
        assert e["name"].strip() and e["unit"].strip()


def test_normalize_payload_cleans_in_place():
    raw = {"title": "Soup", "ingredients": [{"name": "", "unit": "tsp"}]}
    assert normalize_recipe_payload(raw) is raw
    assert raw["ingredients"] == []

    untouched = {"title": "Soup"}
    normalize_recipe_payload(untouched)
    assert "ingredients" not in untouched
