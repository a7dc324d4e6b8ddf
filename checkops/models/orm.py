from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Question(Base):
    __tablename__ = "question_bank"
    __table_args__ = (
        Index("idx_question_bank_question_type", "question_type"),
        Index("idx_question_bank_is_active", "is_active"),
    )

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[str] = mapped_column(String(50), nullable=False)
    # Option records as persisted: {key, label, order, metadata, disabled, createdAt}
    options: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(JSON, nullable=True)
    validation_rules: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    meta: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Form(Base):
    __tablename__ = "forms"
    __table_args__ = (Index("idx_forms_is_active", "is_active"),)

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    meta: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    questions: Mapped[List["FormQuestion"]] = relationship(
        back_populates="form", cascade="all, delete-orphan", order_by="FormQuestion.position"
    )


class FormQuestion(Base):
    __tablename__ = "form_questions"
    __table_args__ = (
        UniqueConstraint("form_id", "question_id", name="uq_form_question"),
        Index("idx_form_questions_question", "question_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    form_id: Mapped[str] = mapped_column(String(50), ForeignKey("forms.id", ondelete="CASCADE"), nullable=False)
    question_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("question_bank.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    required: Mapped[bool] = mapped_column(Boolean, default=False)

    form: Mapped["Form"] = relationship(back_populates="questions")


class Submission(Base):
    __tablename__ = "submissions"
    __table_args__ = (
        Index("idx_submissions_form_id", "form_id"),
        Index("idx_submissions_submitted_at", "submitted_at"),
    )

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    form_id: Mapped[str] = mapped_column(String(50), ForeignKey("forms.id", ondelete="CASCADE"), nullable=False)
    # question id -> stored value; option answers are always keys
    submission_data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    meta: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, default=dict)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    answers: Mapped[List["SubmissionAnswer"]] = relationship(
        back_populates="submission", cascade="all, delete-orphan"
    )


class SubmissionAnswer(Base):
    """One row per selected value of a non-empty answer, so stats can be grouped in SQL."""

    __tablename__ = "submission_answers"
    __table_args__ = (
        Index("idx_submission_answers_form_question", "form_id", "question_id"),
        Index("idx_submission_answers_submission", "submission_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    submission_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False
    )
    form_id: Mapped[str] = mapped_column(String(50), nullable=False)
    question_id: Mapped[str] = mapped_column(String(50), nullable=False)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # canonical JSON of the whole answer, for distinct-answer counts
    fingerprint: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    submission: Mapped["Submission"] = relationship(back_populates="answers")


class OptionHistory(Base):
    __tablename__ = "question_option_history"
    __table_args__ = (
        Index("idx_option_history_question_option", "question_id", "option_key"),
        Index("idx_option_history_changed_at", "changed_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("question_bank.id", ondelete="CASCADE"), nullable=False
    )
    option_key: Mapped[str] = mapped_column(String(100), nullable=False)
    old_label: Mapped[Optional[str]] = mapped_column(Text)
    new_label: Mapped[Optional[str]] = mapped_column(Text)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    changed_by: Mapped[Optional[str]] = mapped_column(String(100))
    change_reason: Mapped[Optional[str]] = mapped_column(Text)
