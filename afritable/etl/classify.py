"""Keyword tables and classifiers for menus, photos and cuisines."""

import re
from typing import Dict, Iterable, List, Optional, Tuple

from afritable.models import PhotoQuality, PhotoType

DIETARY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("halal", ("halal",)),
    ("kosher", ("kosher",)),
    ("vegan", ("vegan", "plant-based")),
    ("vegetarian", ("vegetarian", "veggie")),
    ("gluten-free", ("gluten-free", "gluten free", "gf")),
    ("dairy-free", ("dairy-free", "dairy free", "lactose-free")),
)
POPULAR_KEYWORDS = ("popular", "favorite", "signature", "specialty", "best", "recommended")
INGREDIENT_KEYWORDS = (
    "chicken",
    "beef",
    "lamb",
    "fish",
    "rice",
    "beans",
    "tomatoes",
    "onions",
    "garlic",
    "ginger",
)

PHOTO_TYPE_KEYWORDS: Tuple[Tuple[PhotoType, Tuple[str, ...]], ...] = (
    (PhotoType.FOOD, ("food", "dish", "meal", "plate")),
    (PhotoType.INTERIOR, ("interior", "inside", "dining", "restaurant")),
    (PhotoType.EXTERIOR, ("exterior", "outside", "building", "storefront")),
    (PhotoType.MENU, ("menu", "board")),
    (PhotoType.CHEF, ("chef", "cook", "kitchen")),
)
PHOTO_TAG_KEYWORDS = ("african", "food", "traditional", "spicy", "halal", "vegetarian")

HIGH_RES_HINTS = ("maxwidth=1200", "large", "hd")
MEDIUM_RES_HINTS = ("800", "medium")
LOW_RES_HINTS = ("400", "small")
DOMAIN_CLARITY: Tuple[Tuple[str, float], ...] = (
    ("googleapis", 0.9),
    ("yelpcdn", 0.8),
    ("foursquare", 0.7),
)
COMPOSITION_SCORE = 0.7


def _word_pattern(keywords: Iterable[str]) -> re.Pattern:
    """Whole-word match for any keyword, allowing a trailing plural s."""
    return re.compile(r"\b(?:" + "|".join(re.escape(keyword) for keyword in keywords) + r")s?\b")


_DIETARY_PATTERNS = tuple((label, _word_pattern(keywords)) for label, keywords in DIETARY_KEYWORDS)
_POPULAR_PATTERN = _word_pattern(POPULAR_KEYWORDS)
_INGREDIENT_PATTERNS = tuple((ingredient, _word_pattern((ingredient,))) for ingredient in INGREDIENT_KEYWORDS)


def _haystack(*parts: Optional[str]) -> str:
    return " ".join(part for part in parts if part).lower()


def classify_dietary(text: str) -> List[str]:
    lowered = (text or "").lower()
    return [label for label, pattern in _DIETARY_PATTERNS if pattern.search(lowered)]


def is_popular(text: str) -> bool:
    lowered = (text or "").lower()
    return bool(_POPULAR_PATTERN.search(lowered))


def extract_ingredients(text: str) -> List[str]:
    lowered = (text or "").lower()
    return [ingredient for ingredient, pattern in _INGREDIENT_PATTERNS if pattern.search(lowered)]


def classify_photo_type(*texts: Optional[str]) -> PhotoType:
    """First matching keyword group wins; OTHER when nothing matches."""
    haystack = _haystack(*texts)
    for photo_type, keywords in PHOTO_TYPE_KEYWORDS:
        if any(keyword in haystack for keyword in keywords):
            return photo_type
    return PhotoType.OTHER


def photo_tags(*texts: Optional[str]) -> List[str]:
    haystack = _haystack(*texts)
    return [tag for tag in PHOTO_TAG_KEYWORDS if tag in haystack]


def cuisine_words(cuisine: Optional[str]) -> List[str]:
    return [word for word in (cuisine or "").lower().replace("-", " ").split() if len(word) > 2]


def estimate_photo_quality(url: str, caption: Optional[str], cuisine: Optional[str]) -> Dict[str, float]:
    """Heuristic sub-scores in [0, 1] derived from the URL and caption."""
    lowered = (url or "").lower()

    if any(hint in lowered for hint in HIGH_RES_HINTS):
        resolution = 0.9
    elif any(hint in lowered for hint in MEDIUM_RES_HINTS):
        resolution = 0.7
    elif any(hint in lowered for hint in LOW_RES_HINTS):
        resolution = 0.5
    else:
        resolution = 0.6

    clarity = 0.6
    for domain, score in DOMAIN_CLARITY:
        if domain in lowered:
            clarity = score
            break

    words = cuisine_words(cuisine)
    haystack = _haystack(url, caption)
    relevance = 0.9 if words and any(word in haystack for word in words) else 0.6

    return {
        "resolution": resolution,
        "clarity": clarity,
        "composition": COMPOSITION_SCORE,
        "relevance": relevance,
    }


def quality_tier(scores: Dict[str, float]) -> PhotoQuality:
    mean = sum(scores.values()) / len(scores) if scores else 0.0
    if mean >= 0.8:
        return PhotoQuality.HIGH
    if mean >= 0.6:
        return PhotoQuality.MEDIUM
    return PhotoQuality.LOW


def is_culturally_relevant(tags: Iterable[str], cuisine: Optional[str]) -> bool:
    tag_set = {tag.lower() for tag in tags}
    if "traditional" in tag_set:
        return True
    return any(word in tag_set for word in cuisine_words(cuisine))
