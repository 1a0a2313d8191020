"""
Keyword categorization for receipts.

Rules are an ordered list of (category, keywords) pairs. The first category
with any keyword found in the text wins, so order is priority: Coffee is
checked before the broader Food set.
"""

import json
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

CATEGORIES = ("Coffee", "Food", "Hotel", "Transportation", "Entertainment", "Flights", "Other")

Rules = List[Tuple[str, Tuple[str, ...]]]

DEFAULT_RULES: Rules = [
    ("Coffee", (
        "coffee", "starbucks", "espresso", "latte", "cappuccino", "cafe", "café",
        "coffeehouse", "dunkin", "tim hortons", "peet's", "caribou",
    )),
    ("Food", (
        "restaurant", "pizza", "burger", "food", "kitchen", "diner", "bistro", "grill",
        "grocery", "supermarket", "market", "delicatessen", "bakery", "sushi", "taco", "bbq",
        "walmart", "costco", "aldi", "tesco", "carrefour", "kroger", "whole foods",
        "trader joe", "lidl", "panera", "chipotle", "mcdonald", "kfc", "burger king",
        "domino", "pizza hut", "subway", "wendy", "taco bell", "five guys", "panda express",
    )),
    ("Hotel", (
        "hotel", "motel", "resort", "lodge", "hostel", "holiday inn", "hampton inn",
        "accommodation", "airbnb", "suites",
    )),
    ("Transportation", (
        "taxi", "uber", "lyft", "train", "metro", "transport", "parking", "fuel",
        "gas station", "gasoline", "toll", "petrol", "diesel", "shell", "esso",
        "chevron", "exxon", "railway", "bus fare",
    )),
    ("Entertainment", (
        "movie", "theater", "theatre", "cinema", "concert", "museum", "theme park",
        "entertainment", "admission",
    )),
    ("Flights", (
        "airline", "airways", "flight", "airport", "boarding pass", "baggage",
        "luggage", "airfare",
    )),
]


def load_rules(path: Path) -> Rules:
    """
    Load ordered category rules from a JSON file.

    Format:
        {"categories": [{"category": "Coffee", "keywords": ["starbucks", "latte"]}, ...]}

    A missing file yields the built-in rules.
    """
    if not path.exists():
        return list(DEFAULT_RULES)
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)

    rules: Rules = []
    for entry in data.get("categories", []):
        category = entry.get("category")
        if category not in CATEGORIES:
            raise ValueError(f"Unknown category in {path.name}: {category!r}")
        keywords = tuple(k.casefold() for k in entry.get("keywords", []) if k)
        rules.append((category, keywords))
    return rules


def categorize(merchant: Optional[str], text: str,
               rules: Optional[Sequence[Tuple[str, Sequence[str]]]] = None) -> Optional[str]:
    """
    Categorize a receipt from its merchant name and full text.

    Returns the first category in rule order with a keyword substring match,
    or None when nothing matches.
    """
    haystack = f"{merchant or ''}\n{text or ''}".casefold()
    for category, keywords in (rules if rules is not None else DEFAULT_RULES):
        if any(kw in haystack for kw in keywords):
            return category
    return None


def match_category(value: Optional[str]) -> Optional[str]:
    """Case-insensitive lookup of a category name in the fixed vocabulary."""
    if not value:
        return None
    value = value.strip().casefold()
    for category in CATEGORIES:
        if category.casefold() == value:
            return category
    return None
