import enum
import math
from types import MappingProxyType
from typing import Optional


class GiftKey(str, enum.Enum):
    """Spiritual gift categories. Declaration order is the ranking tie-break."""
    LEADERSHIP_ORG = "LEADERSHIP_ORG"
    TEACHING = "TEACHING"
    WISDOM_INSIGHT = "WISDOM_INSIGHT"
    PROPHETIC_DISCERNMENT = "PROPHETIC_DISCERNMENT"
    EXHORTATION = "EXHORTATION"
    SHEPHERDING = "SHEPHERDING"
    FAITH = "FAITH"
    EVANGELISM = "EVANGELISM"
    APOSTLESHIP = "APOSTLESHIP"
    SERVICE_HOSPITALITY = "SERVICE_HOSPITALITY"
    MERCY = "MERCY"
    GIVING = "GIVING"


GIFT_ORDER = tuple(GiftKey)
GIFT_RANK = MappingProxyType({gift: i for i, gift in enumerate(GIFT_ORDER)})

# Maximum attainable total per gift for the current question set
GIFT_MAX_SCORES = MappingProxyType({
    GiftKey.LEADERSHIP_ORG: 35,
    GiftKey.TEACHING: 30,
    GiftKey.WISDOM_INSIGHT: 20,
    GiftKey.PROPHETIC_DISCERNMENT: 30,
    GiftKey.EXHORTATION: 25,
    GiftKey.SHEPHERDING: 20,
    GiftKey.FAITH: 25,
    GiftKey.EVANGELISM: 20,
    GiftKey.APOSTLESHIP: 25,
    GiftKey.SERVICE_HOSPITALITY: 30,
    GiftKey.MERCY: 20,
    GiftKey.GIVING: 20,
})
DEFAULT_MAX_SCORE = 25


def parse_gift_key(value) -> Optional[GiftKey]:
    """Return the GiftKey for ``value`` or None when it is not a known category."""
    if isinstance(value, GiftKey):
        return value
    if not isinstance(value, str):
        return None
    try:
        return GiftKey(value)
    except ValueError:
        return None


def gift_max_score(gift_key) -> int:
    gift = parse_gift_key(gift_key)
    return GIFT_MAX_SCORES[gift] if gift is not None else DEFAULT_MAX_SCORE


def score_percentage(score: float, gift_key=None, max_possible: Optional[float] = None) -> int:
    """Express a gift total as a whole-number percentage of its maximum."""
    max_score = max_possible or (gift_max_score(gift_key) if gift_key is not None else DEFAULT_MAX_SCORE)
    return int(math.floor(score / max_score * 100 + 0.5))
