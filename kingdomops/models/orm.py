from datetime import datetime
from typing import Dict, List, Optional
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Boolean, ForeignKey, JSON, DateTime, Index, UniqueConstraint, CheckConstraint
from kingdomops.core.timeutils import utcnow

class Base(DeclarativeBase): pass

class Response(Base):
    __tablename__ = "responses"
    __table_args__ = (
        Index("idx_responses_user", "user_id"),
        Index("idx_responses_org", "organization_id"),
    )
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    organization_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    version_id: Mapped[str] = mapped_column(String(100), nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    answers: Mapped[List["Answer"]] = relationship(back_populates="response", order_by="Answer.id")
    result: Mapped[Optional["Result"]] = relationship(back_populates="response", uselist=False)

class Answer(Base):
    __tablename__ = "answers"
    __table_args__ = (
        UniqueConstraint("response_id", "question_id", name="uq_answer_question"),
        Index("idx_answers_response", "response_id"),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    response_id: Mapped[str] = mapped_column(String(36), ForeignKey("responses.id", ondelete="CASCADE"), nullable=False)
    question_id: Mapped[str] = mapped_column(String(100), nullable=False)
    gift_key: Mapped[str] = mapped_column(String(50), nullable=False)
    value: Mapped[int] = mapped_column(Integer, nullable=False)

    response: Mapped["Response"] = relationship(back_populates="answers")

class Result(Base):
    __tablename__ = "results"
    __table_args__ = (
        UniqueConstraint("response_id", name="uq_result_response"),
        Index("idx_results_org", "organization_id"),
        CheckConstraint("expires_at > created_at", name="ck_result_expires"),
    )
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    response_id: Mapped[str] = mapped_column(String(36), ForeignKey("responses.id", ondelete="CASCADE"), nullable=False)
    organization_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    scores_json: Mapped[Dict[str, int]] = mapped_column(JSON, nullable=False)
    top1_gift_key: Mapped[str] = mapped_column(String(50), nullable=False)
    top2_gift_key: Mapped[str] = mapped_column(String(50), nullable=False)
    top3_gift_key: Mapped[str] = mapped_column(String(50), nullable=False)
    is_valid: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    scoring_errors: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    age_groups: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    ministry_interests: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    natural_abilities: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    response: Mapped["Response"] = relationship(back_populates="result")

    @property
    def top3(self) -> List[str]:
        return [self.top1_gift_key, self.top2_gift_key, self.top3_gift_key]
