from typing import Any, Iterable, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from checkops.core.cache import CheckOpsCache
from checkops.core.errors import NotFoundError, ValidationError
from checkops.core.ids import new_id
from checkops.models.orm import FormQuestion, OptionHistory, Question
from checkops.models.schemas import Option, QuestionCreate, QuestionRead, QuestionType, QuestionUpdate
from checkops.services.invalidation import forms_using_question, invalidate_question_dependents
from checkops.services.option_codec import normalize_options, options_from_records, requires_options
import logging

logger = logging.getLogger(__name__)


def to_question_read(question: Question) -> QuestionRead:
    return QuestionRead(
        id=question.id,
        question_text=question.question_text,
        question_type=question.question_type,
        options=options_from_records(question.options),
        validation_rules=question.validation_rules,
        metadata=question.meta or {},
        is_active=question.is_active,
        created_at=question.created_at,
        updated_at=question.updated_at,
    )


def _records(options: Optional[List[Option]]) -> Optional[List[dict]]:
    return None if options is None else [o.to_record() for o in options]


def _require_options(question_type: QuestionType, options: Optional[List[Any]]) -> None:
    if requires_options(question_type) and not options:
        raise ValidationError(f"Question type '{question_type.value}' requires options")


class QuestionService:
    def __init__(self, cache: CheckOpsCache):
        self.cache = cache

    def _load(self, db: Session, question_id: str) -> Question:
        question = db.get(Question, question_id)
        if question is None:
            raise NotFoundError("Question", question_id)
        return question

    def create_question(self, db: Session, data: QuestionCreate) -> QuestionRead:
        question_id = new_id("Q")
        options = normalize_options(data.options, question_id)
        _require_options(data.question_type, options)
        question = Question(
            id=question_id,
            question_text=data.question_text,
            question_type=data.question_type.value,
            options=_records(options),
            validation_rules=data.validation_rules,
            meta=data.metadata,
            is_active=True,
        )
        db.add(question)
        db.commit()
        logger.info(f"Created question {question_id} ({data.question_type.value})")
        return to_question_read(question)

    def get_question(self, db: Session, question_id: str) -> QuestionRead:
        found = self.get_questions(db, [question_id])
        if not found:
            raise NotFoundError("Question", question_id)
        return found[0]

    def get_questions(self, db: Session, ids: Iterable[str]) -> List[QuestionRead]:
        """Batch read through the question cache, in request order. Unknown ids are skipped."""
        ids = list(dict.fromkeys(ids))
        if not ids:
            return []
        cached = self.cache.get_questions(ids)
        if cached is not None:
            # the batch key is order-independent, the cached list is not
            by_id = {q.id: q for q in cached}
            return [by_id[i] for i in ids if i in by_id]
        rows = db.scalars(select(Question).where(Question.id.in_(ids))).all()
        by_id = {row.id: to_question_read(row) for row in rows}
        questions = [by_id[i] for i in ids if i in by_id]
        self.cache.set_questions(ids, questions)
        return questions

    def list_questions(
        self,
        db: Session,
        question_type: Optional[QuestionType] = None,
        is_active: Optional[bool] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[QuestionRead]:
        stmt = select(Question)
        if question_type is not None:
            stmt = stmt.where(Question.question_type == QuestionType(question_type).value)
        if is_active is not None:
            stmt = stmt.where(Question.is_active == is_active)
        stmt = stmt.order_by(Question.created_at.desc(), Question.id).limit(limit).offset(offset)
        return [to_question_read(q) for q in db.scalars(stmt).all()]

    def count_questions(
        self, db: Session, question_type: Optional[QuestionType] = None, is_active: Optional[bool] = None
    ) -> int:
        stmt = select(func.count(Question.id))
        if question_type is not None:
            stmt = stmt.where(Question.question_type == QuestionType(question_type).value)
        if is_active is not None:
            stmt = stmt.where(Question.is_active == is_active)
        return db.scalar(stmt) or 0

    def update_question(self, db: Session, question_id: str, data: QuestionUpdate) -> QuestionRead:
        question = self._load(db, question_id)
        fields = data.model_fields_set
        question_type = data.question_type or QuestionType(question.question_type)
        if "options" in fields:
            options = normalize_options(data.options, question_id)
            question.options = _records(options)
        _require_options(question_type, question.options)
        question.question_type = question_type.value
        if data.question_text is not None:
            question.question_text = data.question_text
        if "validation_rules" in fields:
            question.validation_rules = data.validation_rules
        if data.metadata is not None:
            question.meta = data.metadata
        if data.is_active is not None:
            question.is_active = data.is_active
        db.commit()
        invalidate_question_dependents(db, self.cache, question_id)
        logger.info(f"Updated question {question_id}: {sorted(fields)}")
        return to_question_read(question)

    def activate_question(self, db: Session, question_id: str) -> QuestionRead:
        return self.update_question(db, question_id, QuestionUpdate(is_active=True))

    def deactivate_question(self, db: Session, question_id: str) -> QuestionRead:
        return self.update_question(db, question_id, QuestionUpdate(is_active=False))

    def delete_question(self, db: Session, question_id: str) -> QuestionRead:
        question = self._load(db, question_id)
        deleted = to_question_read(question)
        form_ids = forms_using_question(db, question_id)
        db.execute(delete(FormQuestion).where(FormQuestion.question_id == question_id))
        db.execute(delete(OptionHistory).where(OptionHistory.question_id == question_id))
        db.delete(question)
        db.commit()
        self.cache.invalidate_question(question_id)
        for form_id in form_ids:
            self.cache.invalidate_form(form_id)
        logger.info(f"Deleted question {question_id} (removed from {len(form_ids)} form(s))")
        return deleted
