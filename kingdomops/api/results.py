from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Dict, List, Optional
from datetime import datetime
from sqlalchemy.orm import Session
from kingdomops.api.deps import get_identity, get_policy
from kingdomops.core.database import get_db
from kingdomops.services import results as lifecycle
from kingdomops.services.authorization import ResourceScope, require
from kingdomops.services.gifts import score_percentage
from kingdomops.services.identity import EffectiveIdentity
from kingdomops.services.roles import Permission

router = APIRouter()

class GiftOut(BaseModel):
    key: str
    score: int
    percentage: int

class ResultOut(BaseModel):
    id: str
    response_id: str
    organization_id: Optional[str] = None
    scores: Dict[str, int]
    gifts: List[GiftOut]
    is_valid: bool
    scoring_errors: List[str]
    age_groups: List[str]
    ministry_interests: List[str]
    natural_abilities: List[str]
    created_at: datetime
    expires_at: datetime
    is_expired: bool
    days_until_expiration: int
    is_near_expiration: bool
    is_very_near_expiration: bool

def result_out(view: lifecycle.ResultView) -> ResultOut:
    r, s = view.result, view.status
    scores = dict(r.scores_json or {})
    gifts = [GiftOut(key=k, score=scores.get(k, 0), percentage=score_percentage(scores.get(k, 0), k)) for k in r.top3]
    return ResultOut(
        id=r.id, response_id=r.response_id, organization_id=r.organization_id,
        scores=scores, gifts=gifts, is_valid=r.is_valid, scoring_errors=list(r.scoring_errors or []),
        age_groups=list(r.age_groups or []), ministry_interests=list(r.ministry_interests or []),
        natural_abilities=list(r.natural_abilities or []),
        created_at=r.created_at, expires_at=r.expires_at,
        is_expired=s.is_expired, days_until_expiration=s.days_until_expiration,
        is_near_expiration=s.is_near_expiration, is_very_near_expiration=s.is_very_near_expiration,
    )

@router.get("/results/mine", response_model=List[ResultOut])
def my_results(identity: EffectiveIdentity = Depends(get_identity), db: Session = Depends(get_db), policy: lifecycle.ResultPolicy = Depends(get_policy)):
    return [result_out(v) for v in lifecycle.get_user_results(db, identity.principal_id, policy=policy)]

@router.get("/results/{response_id}", response_model=ResultOut)
def result_detail(response_id: str, identity: EffectiveIdentity = Depends(get_identity), db: Session = Depends(get_db), policy: lifecycle.ResultPolicy = Depends(get_policy)):
    view = lifecycle.get_result_for_user(db, response_id, identity.principal_id, policy=policy)
    if not view.status.is_viewable:
        raise HTTPException(410, "Results have expired")
    return result_out(view)

@router.get("/organizations/{organization_id}/results", response_model=List[ResultOut])
def organization_results(organization_id: str, identity: EffectiveIdentity = Depends(get_identity), db: Session = Depends(get_db), policy: lifecycle.ResultPolicy = Depends(get_policy)):
    require(identity, Permission.RESULTS_VIEW, ResourceScope(organization_id))
    return [result_out(v) for v in lifecycle.get_organization_results(db, organization_id, policy=policy)]
