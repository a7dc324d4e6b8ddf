from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from checkops.api.deps import get_checkops, get_db
from checkops.models.schemas import (
    OptionHistoryRecord,
    OptionLabelUpdate,
    QuestionCreate,
    QuestionRead,
    QuestionType,
    QuestionUpdate,
)
from checkops.sdk import CheckOps

router = APIRouter()


@router.post("/questions", response_model=QuestionRead, status_code=201)
def create_question(payload: QuestionCreate, ops: CheckOps = Depends(get_checkops), db: Session = Depends(get_db)):
    return ops.questions.create_question(db, payload)


@router.get("/questions", response_model=List[QuestionRead])
def list_questions(
    question_type: Optional[QuestionType] = Query(default=None, alias="questionType"),
    is_active: Optional[bool] = Query(default=None, alias="isActive"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    ops: CheckOps = Depends(get_checkops),
    db: Session = Depends(get_db),
):
    return ops.questions.list_questions(db, question_type, is_active, limit, offset)


@router.get("/questions/{question_id}", response_model=QuestionRead)
def get_question(question_id: str, ops: CheckOps = Depends(get_checkops), db: Session = Depends(get_db)):
    return ops.questions.get_question(db, question_id)


@router.patch("/questions/{question_id}", response_model=QuestionRead)
def update_question(
    question_id: str, payload: QuestionUpdate, ops: CheckOps = Depends(get_checkops), db: Session = Depends(get_db)
):
    return ops.questions.update_question(db, question_id, payload)


@router.delete("/questions/{question_id}", response_model=QuestionRead)
def delete_question(question_id: str, ops: CheckOps = Depends(get_checkops), db: Session = Depends(get_db)):
    return ops.questions.delete_question(db, question_id)


@router.patch("/questions/{question_id}/options/{option_key}", response_model=QuestionRead)
def update_option_label(
    question_id: str,
    option_key: str,
    payload: OptionLabelUpdate,
    ops: CheckOps = Depends(get_checkops),
    db: Session = Depends(get_db),
):
    return ops.history.update_label(
        db, question_id, option_key, payload.label, payload.changed_by, payload.change_reason
    )


@router.get("/questions/{question_id}/options/history", response_model=List[OptionHistoryRecord])
def get_option_history(
    question_id: str,
    option_key: Optional[str] = Query(default=None, alias="optionKey"),
    ops: CheckOps = Depends(get_checkops),
    db: Session = Depends(get_db),
):
    return ops.history.get_history(db, question_id, option_key)
