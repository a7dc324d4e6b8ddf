from typing import List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from checkops.core.cache import CheckOpsCache
from checkops.core.errors import NotFoundError, ValidationError
from checkops.core.ids import new_id
from checkops.models.orm import Form, FormQuestion, Submission, SubmissionAnswer
from checkops.models.schemas import FormCreate, FormQuestion as FormQuestionRead, FormQuestionRef, FormRead, FormUpdate
from checkops.services.questions import QuestionService
import logging

logger = logging.getLogger(__name__)


class FormService:
    def __init__(self, cache: CheckOpsCache, questions: QuestionService):
        self.cache = cache
        self.questions = questions

    def _load(self, db: Session, form_id: str) -> Form:
        form = db.get(Form, form_id)
        if form is None:
            raise NotFoundError("Form", form_id)
        return form

    def _check_refs(self, db: Session, refs: Sequence[FormQuestionRef]) -> None:
        if not refs:
            raise ValidationError("Form must have at least one question")
        errors = []
        seen = set()
        for index, ref in enumerate(refs):
            if ref.question_id in seen:
                errors.append(f"Question at index {index}: '{ref.question_id}' is listed more than once")
            seen.add(ref.question_id)
        found = {q.id for q in self.questions.get_questions(db, [r.question_id for r in refs])}
        for index, ref in enumerate(refs):
            if ref.question_id not in found:
                errors.append(f"Question at index {index}: question '{ref.question_id}' not found")
        ValidationError.collect("Invalid form questions", errors)

    def _to_read(self, db: Session, form: Form) -> FormRead:
        refs = list(form.questions)
        bank = {q.id: q for q in self.questions.get_questions(db, [r.question_id for r in refs])}
        questions = []
        for ref in refs:
            question = bank.get(ref.question_id)
            if question is None:
                continue
            questions.append(
                FormQuestionRead(
                    question_id=ref.question_id,
                    required=ref.required,
                    position=ref.position,
                    question_text=question.question_text,
                    question_type=question.question_type,
                    options=question.options,
                    validation_rules=question.validation_rules,
                )
            )
        return FormRead(
            id=form.id,
            title=form.title,
            description=form.description or "",
            questions=questions,
            metadata=form.meta or {},
            is_active=form.is_active,
            created_at=form.created_at,
            updated_at=form.updated_at,
        )

    @staticmethod
    def _rows(refs: Sequence[FormQuestionRef]) -> List[FormQuestion]:
        return [
            FormQuestion(question_id=ref.question_id, position=index + 1, required=ref.required)
            for index, ref in enumerate(refs)
        ]

    def create_form(self, db: Session, data: FormCreate) -> FormRead:
        self._check_refs(db, data.questions)
        form = Form(
            id=new_id("FORM"),
            title=data.title,
            description=data.description,
            meta=data.metadata,
            is_active=True,
        )
        form.questions = self._rows(data.questions)
        db.add(form)
        db.commit()
        result = self._to_read(db, form)
        self.cache.set_form(form.id, result)
        logger.info(f"Created form {form.id} with {len(data.questions)} question(s)")
        return result

    def get_form(self, db: Session, form_id: str) -> FormRead:
        cached = self.cache.get_form(form_id)
        if cached is not None:
            return cached
        result = self._to_read(db, self._load(db, form_id))
        self.cache.set_form(form_id, result)
        return result

    def list_forms(
        self, db: Session, is_active: Optional[bool] = None, limit: int = 100, offset: int = 0
    ) -> List[FormRead]:
        stmt = select(Form)
        if is_active is not None:
            stmt = stmt.where(Form.is_active == is_active)
        stmt = stmt.order_by(Form.created_at.desc(), Form.id).limit(limit).offset(offset)
        return [self._to_read(db, form) for form in db.scalars(stmt).all()]

    def count_forms(self, db: Session, is_active: Optional[bool] = None) -> int:
        stmt = select(func.count(Form.id))
        if is_active is not None:
            stmt = stmt.where(Form.is_active == is_active)
        return db.scalar(stmt) or 0

    def update_form(self, db: Session, form_id: str, data: FormUpdate) -> FormRead:
        form = self._load(db, form_id)
        if data.questions is not None:
            self._check_refs(db, data.questions)
            form.questions.clear()
            # flush the orphan deletes before re-inserting rows with the same (form, question)
            db.flush()
            form.questions.extend(self._rows(data.questions))
        if data.title is not None:
            form.title = data.title
        if data.description is not None:
            form.description = data.description
        if data.metadata is not None:
            form.meta = data.metadata
        if data.is_active is not None:
            form.is_active = data.is_active
        db.commit()
        self.cache.invalidate_form(form_id)
        logger.info(f"Updated form {form_id}: {sorted(data.model_fields_set)}")
        return self.get_form(db, form_id)

    def activate_form(self, db: Session, form_id: str) -> FormRead:
        return self.update_form(db, form_id, FormUpdate(is_active=True))

    def deactivate_form(self, db: Session, form_id: str) -> FormRead:
        return self.update_form(db, form_id, FormUpdate(is_active=False))

    def delete_form(self, db: Session, form_id: str) -> FormRead:
        form = self._load(db, form_id)
        deleted = self._to_read(db, form)
        submission_ids = select(Submission.id).where(Submission.form_id == form_id)
        db.execute(delete(SubmissionAnswer).where(SubmissionAnswer.submission_id.in_(submission_ids)))
        db.execute(delete(Submission).where(Submission.form_id == form_id))
        db.delete(form)
        db.commit()
        self.cache.invalidate_form(form_id)
        logger.info(f"Deleted form {form_id}")
        return deleted
