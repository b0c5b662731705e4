from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime
from sqlalchemy.orm import Session
from kingdomops.api.deps import get_identity, get_policy, require_permission
from kingdomops.api.results import ResultOut, result_out
from kingdomops.core.config import settings
from kingdomops.core.database import get_db
from kingdomops.services import results as lifecycle
from kingdomops.services.identity import EffectiveIdentity
from kingdomops.services.roles import Permission

router = APIRouter()

class AssessmentStart(BaseModel):
    version_id: Optional[str] = None

class ResponseOut(BaseModel):
    id: str
    user_id: str
    organization_id: Optional[str] = None
    version_id: str
    started_at: datetime
    submitted_at: Optional[datetime] = None

class AnswerIn(BaseModel):
    question_id: str = Field(min_length=1)
    gift_key: str
    value: int

class AnswersIn(BaseModel):
    answers: List[AnswerIn]

class SubmitIn(BaseModel):
    answers: Optional[List[AnswerIn]] = None
    strict: bool = False
    age_groups: List[str] = []
    ministry_interests: List[str] = []
    natural_abilities: List[str] = []

class ScoreOut(BaseModel):
    totals: Dict[str, int]
    top3: List[str]
    is_valid: bool
    errors: List[str]

class SubmissionOut(BaseModel):
    result: ResultOut
    score: ScoreOut

@router.post("", response_model=ResponseOut, status_code=201)
def start_assessment(payload: AssessmentStart, identity: EffectiveIdentity = Depends(require_permission(Permission.ASSESSMENT_TAKE)), db: Session = Depends(get_db)):
    response = lifecycle.start_response(db, identity, payload.version_id or settings.ACTIVE_ASSESSMENT_VERSION)
    return ResponseOut(id=response.id, user_id=response.user_id, organization_id=response.organization_id,
                       version_id=response.version_id, started_at=response.started_at, submitted_at=response.submitted_at)

@router.post("/{response_id}/answers")
def record_answers(response_id: str, payload: AnswersIn, identity: EffectiveIdentity = Depends(get_identity), db: Session = Depends(get_db)):
    rows = lifecycle.record_answers(db, response_id, identity.principal_id, payload.answers)
    return {"response_id": response_id, "recorded": len(rows)}

@router.post("/{response_id}/submit", response_model=SubmissionOut)
def submit_assessment(response_id: str, payload: SubmitIn, identity: EffectiveIdentity = Depends(get_identity), db: Session = Depends(get_db), policy: lifecycle.ResultPolicy = Depends(get_policy)):
    result, score = lifecycle.submit(db, response_id, identity.principal_id, answers=payload.answers, strict=payload.strict, policy=policy,
                                    age_groups=payload.age_groups, ministry_interests=payload.ministry_interests,
                                    natural_abilities=payload.natural_abilities)
    view = lifecycle.ResultView(result, lifecycle.expiration_status(result, policy=policy))
    return SubmissionOut(result=result_out(view), score=ScoreOut(**score.to_dict()))
