"""
Category Resolution

Maps the free-text category label the model chose onto the caller's own
catalog. Resolution order:
1. Exact name match (case-insensitive, trimmed)
2. Common synonym, if the synonym's target exists in the catalog
3. The catalog's "Other" category
4. Nothing: label "Other" with no id (the row is uncategorized)

The lookup is built per run from the catalog passed in, never cached
across users.
"""

from typing import Optional, Sequence

from statement_ingest.models.transaction import OTHER_CATEGORY, Category


# Lower-cased synonym -> lower-cased catalog name
CATEGORY_ALIASES = {
    "food": "groceries",
    "supermarket": "groceries",
    "restaurant": "dining",
    "cafe": "dining",
    "coffee": "dining",
    "taxi": "transport",
    "uber": "transport",
    "lyft": "transport",
    "gas": "transport",
    "fuel": "transport",
    "electric": "utilities",
    "water": "utilities",
    "internet": "utilities",
    "phone": "utilities",
    "mobile": "utilities",
    "movies": "entertainment",
    "games": "entertainment",
    "music": "entertainment",
    "streaming": "subscriptions",
    "netflix": "subscriptions",
    "spotify": "subscriptions",
    "amazon": "shopping",
    "clothes": "shopping",
    "clothing": "shopping",
    "doctor": "healthcare",
    "pharmacy": "healthcare",
    "medical": "healthcare",
    "hospital": "healthcare",
    "salary": "income",
    "wages": "income",
    "transfer": "other",
    "atm": "other",
    "withdrawal": "other",
    "hotel": "travel",
    "flight": "travel",
    "airline": "travel",
    "school": "education",
    "university": "education",
    "course": "education",
    "gym": "personal",
    "beauty": "personal",
    "haircut": "personal",
}


class CategoryResolver:
    """Resolves model labels against one caller's category catalog."""

    def __init__(self, categories: Sequence[Category]):
        self._categories = list(categories)
        self._by_name: dict[str, Category] = {}
        for category in self._categories:
            # First one wins if the catalog has duplicate names
            self._by_name.setdefault(category.name.strip().lower(), category)
        self._other = self._by_name.get(OTHER_CATEGORY.lower())

    @property
    def categories(self) -> list[Category]:
        return list(self._categories)

    @property
    def category_names(self) -> list[str]:
        return [category.name for category in self._categories]

    def resolve(self, label: str) -> tuple[str, Optional[str]]:
        """
        Resolve a label to (category name, category id).

        The id is None only when the catalog has no usable match and no
        "Other" category.
        """
        key = (label or "").strip().lower()

        category = self._by_name.get(key)
        if category is None and key in CATEGORY_ALIASES:
            category = self._by_name.get(CATEGORY_ALIASES[key])
        if category is None:
            category = self._other

        if category is None:
            return OTHER_CATEGORY, None
        return category.name, category.id
