"""
Spiritual gift scoring.

Scoring runs in two stages. ``score`` is strict: it never raises on bad data,
reports every problem it finds in ``ScoreResult.errors`` and still returns a
usable ranking. ``recover`` is the degraded-mode step a caller invokes on
purpose: it drops individually malformed answers, re-scores what is left and
falls back to a fixed neutral ranking when nothing usable remains.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from kingdomops.services.gifts import GIFT_ORDER, GIFT_RANK, GiftKey, parse_gift_key

logger = logging.getLogger(__name__)

MIN_VALUE = 1
MAX_VALUE = 5
MIN_ANSWERS_PER_GIFT = 3
NEUTRAL_TOP3 = (GiftKey.LEADERSHIP_ORG, GiftKey.TEACHING, GiftKey.WISDOM_INSIGHT)


@dataclass(frozen=True)
class Answer:
    question_id: str
    gift_key: str
    value: int


@dataclass
class ScoreResult:
    totals: Dict[GiftKey, int]
    top3: Tuple[GiftKey, GiftKey, GiftKey]
    is_valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totals": {gift.value: total for gift, total in self.totals.items()},
            "top3": [gift.value for gift in self.top3],
            "is_valid": self.is_valid,
            "errors": list(self.errors),
        }


@dataclass
class _Inspected:
    gift: Optional[GiftKey]
    value: Optional[int]
    errors: List[str]

    @property
    def contributes(self) -> bool:
        return self.gift is not None and self.value is not None


def clamp(value: int) -> int:
    return max(MIN_VALUE, min(MAX_VALUE, value))


def rank_gifts(totals: Mapping[GiftKey, int]) -> List[GiftKey]:
    """All gifts by descending total, ties in declaration order."""
    return sorted(GIFT_ORDER, key=lambda gift: (-totals.get(gift, 0), GIFT_RANK[gift]))


def _as_list(answers) -> Optional[List[Any]]:
    if answers is None or isinstance(answers, (str, bytes, Mapping)):
        return None
    try:
        return list(answers)
    except TypeError:
        return None


def _read(answer, *names):
    for name in names:
        if isinstance(answer, Mapping):
            if name in answer:
                return answer[name]
        elif hasattr(answer, name):
            return getattr(answer, name)
    return None


def is_answer_like(answer) -> bool:
    return isinstance(answer, Mapping) or hasattr(answer, "gift_key")


def read_answer(answer) -> Tuple[Any, Any, Any]:
    """(question_id, gift_key, value) from an Answer, ORM row or camel/snake-case mapping."""
    return (
        _read(answer, "question_id", "questionId"),
        _read(answer, "gift_key", "giftKey"),
        _read(answer, "value"),
    )


def _inspect(index: int, answer) -> _Inspected:
    if not is_answer_like(answer):
        return _Inspected(None, None, [f"Invalid answer object at index {index}"])

    errors: List[str] = []
    question_id, raw_gift, raw_value = read_answer(answer)
    gift = parse_gift_key(raw_gift)
    if gift is None:
        errors.append(f'Invalid gift key "{raw_gift}" at index {index}')

    value = None
    if isinstance(raw_value, bool) or not isinstance(raw_value, (int, float)) or (
        isinstance(raw_value, float) and math.isnan(raw_value)
    ):
        errors.append(f"Invalid answer value at index {index}: must be a number")
    elif isinstance(raw_value, float) and not raw_value.is_integer():
        errors.append(f"Invalid answer value {raw_value} at index {index}: must be an integer")
    else:
        value = int(raw_value)
        if value < MIN_VALUE or value > MAX_VALUE:
            errors.append(
                f"Answer value {value} out of range ({MIN_VALUE}-{MAX_VALUE}) at index {index}"
            )
        value = clamp(value)

    if question_id is None or (isinstance(question_id, str) and not question_id.strip()):
        errors.append(f"Invalid question ID at index {index}")

    return _Inspected(gift, value, errors)


def score(answers: Iterable, min_per_gift: int = MIN_ANSWERS_PER_GIFT) -> ScoreResult:
    """Total every gift and rank the top three.

    Out-of-range values are clamped into [1, 5] and still counted. Answers with
    an unknown gift key or a non-integer value are reported and skipped.
    """
    totals: Dict[GiftKey, int] = {gift: 0 for gift in GIFT_ORDER}
    errors: List[str] = []

    items = _as_list(answers)
    if items is None:
        errors.append("Answer input must be a list")
        items = []
    if not items:
        errors.append("No answers provided")
        return ScoreResult(totals, tuple(rank_gifts(totals)[:3]), False, errors)

    counts: Dict[GiftKey, int] = {gift: 0 for gift in GIFT_ORDER}
    for index, answer in enumerate(items):
        inspected = _inspect(index, answer)
        errors.extend(inspected.errors)
        if inspected.gift is not None:
            counts[inspected.gift] += 1
        if inspected.contributes:
            totals[inspected.gift] += inspected.value

    for gift in GIFT_ORDER:
        if counts[gift] < min_per_gift:
            errors.append(
                f"Insufficient answers for {gift.value}: {counts[gift]} (minimum {min_per_gift} required)"
            )

    ranked = rank_gifts(totals)
    highest, lowest = max(totals.values()), min(totals.values())
    if highest == lowest:
        errors.append("Warning: All gifts have identical scores")
    if highest < MIN_VALUE * 3:
        errors.append("Warning: Suspiciously low maximum score")

    return ScoreResult(totals, tuple(ranked[:3]), not errors, errors)


def neutral_result(errors: List[str]) -> ScoreResult:
    return ScoreResult({gift: 0 for gift in GIFT_ORDER}, NEUTRAL_TOP3, False, list(errors))


def recover(answers: Iterable, min_per_gift: int = MIN_ANSWERS_PER_GIFT) -> ScoreResult:
    """Score with recovery. Never raises.

    Answers that cannot count at all (not an answer, unknown gift, non-integer
    value) are discarded and the rest re-scored. Out-of-range values stay in,
    clamped, with their errors still reported. A recovered result is always
    flagged invalid.
    """
    try:
        result = score(answers, min_per_gift)
        items = _as_list(answers) or []
        if result.is_valid or not items:
            return result

        usable = [answer for index, answer in enumerate(items) if _inspect(index, answer).contributes]
        if not usable:
            logger.warning(f"No valid answers to score, using neutral ranking: {result.errors}")
            return neutral_result(result.errors + ["No valid answers remain; using neutral default ranking"])
        if len(usable) == len(items):
            return result

        discarded = len(items) - len(usable)
        logger.warning(f"Primary scoring failed, recovering with {len(usable)} of {len(items)} answers")
        recovered = score(usable, min_per_gift)
        recovered.errors.insert(0, f"Discarded {discarded} malformed answer(s) during recovery")
        recovered.is_valid = False
        return recovered
    except Exception as exc:
        logger.exception("Critical scoring error")
        return neutral_result([f"Critical error: {exc}"])
