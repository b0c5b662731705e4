"""
Assessment response and result lifecycle.

    OPEN -> SUBMITTED -> SCORED -> EXPIRED

Submitting claims the response with a conditional update on
``submitted_at IS NULL`` and scores it in the same transaction, so a second
submit (sequential or concurrent) fails with InvalidStateError instead of
producing another Result. ``results.response_id`` is unique as a backstop.
Expiry is computed from ``expires_at`` on read; nothing polls for it.
"""
import enum
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kingdomops.core.errors import InvalidStateError, NotFoundError, ValidationError
from kingdomops.core.timeutils import utcnow
from kingdomops.models.orm import Answer as AnswerRow, Response, Result
from kingdomops.services.identity import EffectiveIdentity
from kingdomops.services.scoring import MIN_ANSWERS_PER_GIFT, ScoreResult, is_answer_like, read_answer, recover

logger = logging.getLogger(__name__)


class ResponseState(str, enum.Enum):
    OPEN = "OPEN"
    SUBMITTED = "SUBMITTED"
    SCORED = "SCORED"
    EXPIRED = "EXPIRED"


@dataclass(frozen=True)
class ResultPolicy:
    ttl: timedelta = timedelta(days=90)
    near_expiration_days: int = 30
    very_near_expiration_days: int = 7
    min_answers_per_gift: int = MIN_ANSWERS_PER_GIFT

    @classmethod
    def from_settings(cls, settings) -> "ResultPolicy":
        return cls(
            ttl=timedelta(days=settings.RESULT_TTL_DAYS),
            near_expiration_days=settings.RESULT_NEAR_EXPIRATION_DAYS,
            very_near_expiration_days=settings.RESULT_VERY_NEAR_EXPIRATION_DAYS,
            min_answers_per_gift=settings.MIN_ANSWERS_PER_GIFT,
        )


DEFAULT_POLICY = ResultPolicy()


@dataclass(frozen=True)
class ExpirationStatus:
    expires_at: datetime
    is_expired: bool
    days_until_expiration: int
    is_near_expiration: bool
    is_very_near_expiration: bool

    @property
    def is_viewable(self) -> bool:
        return not self.is_expired


@dataclass(frozen=True)
class ResultView:
    result: Result
    status: ExpirationStatus


def expiration_status(result: Result, now: Optional[datetime] = None, policy: ResultPolicy = DEFAULT_POLICY) -> ExpirationStatus:
    now = now or utcnow()
    days = math.ceil((result.expires_at - now).total_seconds() / 86400)
    return ExpirationStatus(
        expires_at=result.expires_at,
        is_expired=now > result.expires_at,
        days_until_expiration=days,
        is_near_expiration=days <= policy.near_expiration_days,
        is_very_near_expiration=days <= policy.very_near_expiration_days,
    )


def response_state(response: Response, result: Optional[Result] = None, now: Optional[datetime] = None) -> ResponseState:
    if response.submitted_at is None:
        return ResponseState.OPEN
    if result is None:
        return ResponseState.SUBMITTED
    if (now or utcnow()) > result.expires_at:
        return ResponseState.EXPIRED
    return ResponseState.SCORED


def start_response(db: Session, identity: EffectiveIdentity, version_id: str) -> Response:
    response = Response(
        id=str(uuid.uuid4()),
        user_id=identity.principal_id,
        organization_id=identity.organization_id,
        version_id=version_id,
        started_at=utcnow(),
    )
    db.add(response)
    db.commit()
    logger.info(f"Response {response.id} started by {identity.principal_id}")
    return response


def _owned_response(db: Session, response_id: str, user_id: str) -> Response:
    response = db.get(Response, response_id)
    if response is None or response.user_id != user_id:
        raise NotFoundError("Response not found")
    return response


def _coerce_value(question_id, raw_value) -> int:
    if isinstance(raw_value, bool) or not isinstance(raw_value, (int, float)):
        raise ValidationError(f"Answer for question {question_id} must be a number")
    if isinstance(raw_value, float) and not raw_value.is_integer():
        raise ValidationError(f"Answer for question {question_id} must be an integer")
    return int(raw_value)


def _add_answers(db: Session, response: Response, answers: Iterable) -> List[AnswerRow]:
    answered = set(db.scalars(select(AnswerRow.question_id).where(AnswerRow.response_id == response.id)))
    rows = []
    for answer in answers:
        if not is_answer_like(answer):
            raise ValidationError("Answers must be objects with question_id, gift_key and value")
        question_id, gift_key, raw_value = read_answer(answer)
        if question_id is None or gift_key is None:
            raise ValidationError("Answers must have a question_id and gift_key")
        question_id = str(question_id)
        if question_id in answered:
            raise InvalidStateError(f"Question {question_id} already answered")
        answered.add(question_id)
        rows.append(AnswerRow(
            response_id=response.id,
            question_id=question_id,
            gift_key=getattr(gift_key, "value", str(gift_key)),
            value=_coerce_value(question_id, raw_value),
        ))
    db.add_all(rows)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise InvalidStateError("Answer already recorded")
    return rows


def record_answers(db: Session, response_id: str, user_id: str, answers: Iterable) -> List[AnswerRow]:
    response = _owned_response(db, response_id, user_id)
    if response.submitted_at is not None:
        raise InvalidStateError("Assessment already submitted")
    rows = _add_answers(db, response, answers)
    db.commit()
    return rows


def submit(
    db: Session,
    response_id: str,
    user_id: str,
    answers: Optional[Iterable] = None,
    strict: bool = False,
    now: Optional[datetime] = None,
    policy: ResultPolicy = DEFAULT_POLICY,
    age_groups: Optional[Iterable[str]] = None,
    ministry_interests: Optional[Iterable[str]] = None,
    natural_abilities: Optional[Iterable[str]] = None,
) -> Tuple[Result, ScoreResult]:
    """Submit a response and create its Result.

    Answers passed here are recorded before scoring. The age groups, ministry
    interests and natural abilities picked alongside the questionnaire are
    stored on the Result as given. With ``strict`` an invalid score rolls
    everything back and raises ValidationError; otherwise scoring problems are
    stored on the Result and returned for display.
    """
    now = now or utcnow()
    response = _owned_response(db, response_id, user_id)
    if answers:
        if response.submitted_at is not None:
            raise InvalidStateError("Assessment already submitted")
        _add_answers(db, response, answers)

    claimed = db.execute(
        update(Response)
        .where(Response.id == response_id, Response.submitted_at.is_(None))
        .values(submitted_at=now)
    )
    if claimed.rowcount != 1:
        db.rollback()
        raise InvalidStateError("Assessment already submitted")

    rows = db.scalars(select(AnswerRow).where(AnswerRow.response_id == response_id).order_by(AnswerRow.id)).all()
    score = recover(rows, policy.min_answers_per_gift)
    if strict and not score.is_valid:
        db.rollback()
        raise ValidationError("Assessment answers failed validation", score.errors)
    if score.errors:
        logger.warning(f"Scoring warnings for response {response_id}: {score.errors}")

    scored = score.to_dict()
    result = Result(
        id=str(uuid.uuid4()),
        response_id=response_id,
        organization_id=response.organization_id,
        scores_json=scored["totals"],
        top1_gift_key=scored["top3"][0],
        top2_gift_key=scored["top3"][1],
        top3_gift_key=scored["top3"][2],
        is_valid=score.is_valid,
        scoring_errors=scored["errors"],
        age_groups=list(age_groups or []),
        ministry_interests=list(ministry_interests or []),
        natural_abilities=list(natural_abilities or []),
        created_at=now,
        expires_at=now + policy.ttl,
    )
    db.add(result)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise InvalidStateError("Result already exists for this response")
    db.commit()
    logger.info(f"Result {result.id} created for response {response_id}")
    return result, score


def get_user_results(db: Session, user_id: str, now: Optional[datetime] = None, policy: ResultPolicy = DEFAULT_POLICY) -> List[ResultView]:
    stmt = (
        select(Result)
        .join(Response, Response.id == Result.response_id)
        .where(Response.user_id == user_id)
        .order_by(Result.created_at.desc())
    )
    return [ResultView(r, expiration_status(r, now, policy)) for r in db.scalars(stmt)]


def get_result_for_user(db: Session, response_id: str, user_id: str, now: Optional[datetime] = None, policy: ResultPolicy = DEFAULT_POLICY) -> ResultView:
    _owned_response(db, response_id, user_id)
    result = db.scalar(select(Result).where(Result.response_id == response_id))
    if result is None:
        raise NotFoundError("Results not found")
    return ResultView(result, expiration_status(result, now, policy))


def get_organization_results(db: Session, organization_id: str, now: Optional[datetime] = None, policy: ResultPolicy = DEFAULT_POLICY) -> List[ResultView]:
    stmt = select(Result).where(Result.organization_id == organization_id).order_by(Result.created_at.desc())
    return [ResultView(r, expiration_status(r, now, policy)) for r in db.scalars(stmt)]
