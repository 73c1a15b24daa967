"""Map free-text category answers onto the supplied category catalog.

The completion service is asked for a category id, but it regularly answers
with a category name ("Electronics") or an item word ("sneakers"). Matching
runs in this order:

1. Exact id
2. Exact name (case-insensitive)
3. Fuzzy name match with rapidfuzz (score >= threshold, 0-100)
4. Item keyword map (shoes -> fashion/clothing, phone -> electronics, ...)

Whatever matches, the result is always an id taken from the catalog.
"""

from typing import Iterable, Optional

from rapidfuzz import fuzz, process

from models.schemas import Category
from utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MATCH_THRESHOLD = 90

# (item keywords, category name fragments in preference order)
CATEGORY_KEYWORD_MAP: tuple[tuple[tuple[str, ...], tuple[str, ...]], ...] = (
    (("shoes", "sneakers", "boots", "sandals", "heels"), ("fashion", "clothing", "accessories", "footwear")),
    (("shirt", "tee", "top", "blouse", "tank"), ("fashion", "clothing", "apparel")),
    (("hat", "cap", "beanie"), ("fashion", "accessories", "clothing")),
    (("jacket", "coat", "hoodie", "sweater"), ("fashion", "clothing", "apparel")),
    (("pants", "jeans", "shorts"), ("fashion", "clothing", "apparel")),
    (("dress", "gown", "skirt"), ("fashion", "clothing", "apparel")),
    (("jewelry", "necklace", "bracelet", "ring"), ("accessories", "jewelry", "fashion")),
    (("book", "novel", "magazine"), ("books", "literature", "media")),
    (("phone", "laptop", "computer"), ("electronics", "tech", "gadgets")),
    (("convention", "con", "fest"), ("collectibles", "memorabilia", "events")),
)


def find_category_by_keywords(text: str, categories: Iterable[Category]) -> Optional[str]:
    """Return the id of the first catalog entry suggested by item keywords."""
    message = text.lower()
    categories = list(categories)

    for keywords, name_fragments in CATEGORY_KEYWORD_MAP:
        if not any(keyword in message for keyword in keywords):
            continue
        for fragment in name_fragments:
            for category in categories:
                if fragment in category.name.lower():
                    return category.id
    return None


def match_category_name(
    value: str,
    categories: Iterable[Category],
    threshold: int = DEFAULT_MATCH_THRESHOLD,
) -> Optional[str]:
    """Match a category name to its id, exactly or by rapidfuzz ratio."""
    normalized = value.strip().lower()
    if not normalized:
        return None

    names = {category.id: category.name.lower() for category in categories}
    for category_id, name in names.items():
        if name == normalized:
            return category_id

    if not names:
        return None

    match = process.extractOne(
        normalized,
        names,
        scorer=fuzz.ratio,
        score_cutoff=threshold,
    )
    if match:
        _, score, category_id = match
        logger.debug(f"Fuzzy matched category {value!r} -> {category_id} (score={score:.0f})")
        return category_id
    return None


def resolve_category_id(
    value: str,
    categories: Iterable[Category],
    threshold: int = DEFAULT_MATCH_THRESHOLD,
) -> Optional[str]:
    """Resolve an id, a name or an item word to a catalog id.

    Returns None when nothing in the catalog fits.
    """
    categories = list(categories)
    candidate = value.strip()
    if not candidate or not categories:
        return None

    for category in categories:
        if category.id == candidate:
            return category.id

    return match_category_name(candidate, categories, threshold) or find_category_by_keywords(
        candidate, categories
    )
