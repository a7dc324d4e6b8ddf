"""
Submission storage.

Answers to choice questions are stored as option keys and rendered with the
option's current label on read, so relabeling an option never rewrites or
invalidates stored data.
"""
from typing import Any, Dict, List, NamedTuple, Optional, Sequence
import copy
import json

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from checkops.core.cache import CheckOpsCache
from checkops.core.errors import CheckOpsError, InvalidOperationError, NotFoundError, ValidationError
from checkops.core.ids import new_id
from checkops.models.orm import Submission, SubmissionAnswer
from checkops.models.schemas import (
    BulkItemError,
    BulkSubmissionResult,
    FormQuestion,
    FormRead,
    SubmissionCreate,
    SubmissionRead,
    SubmissionUpdate,
)
from checkops.services.forms import FormService
from checkops.services.option_codec import (
    find_option,
    is_empty,
    is_multi_valued,
    is_valid_answer,
    requires_options,
    to_keys,
    to_labels,
)
import logging

logger = logging.getLogger(__name__)


class DisplayPayload(NamedTuple):
    display: Dict[str, Any]
    raw: Dict[str, Any]


def normalize_for_storage(questions: Sequence[FormQuestion], payload: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a submission payload and convert option answers to keys.

    Every problem (unknown question, missing required answer, unknown option,
    scalar/array mismatch) is collected and raised as one ValidationError.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Submission data must be an object")
    by_id = {q.question_id: q for q in questions}
    errors = [f"Unknown question '{qid}'" for qid in payload if qid not in by_id]
    stored = {}

    for question in questions:
        qid = question.question_id
        value = payload.get(qid)
        if is_empty(value):
            if question.required:
                errors.append(f"Answer for question '{qid}' is required")
            elif qid in payload:
                stored[qid] = value
            continue
        if not requires_options(question.question_type):
            stored[qid] = value
            continue

        options = question.options or []
        multi = is_multi_valued(question.question_type)
        if multi and not isinstance(value, list):
            errors.append(f"Answer for question '{qid}' must be an array")
            continue
        if not multi and isinstance(value, list):
            errors.append(f"Answer for question '{qid}' must be a single value")
            continue
        if not is_valid_answer(value, options, question.question_type):
            unknown = [v for v in (value if multi else [value]) if find_option(options, v) is None]
            errors.append(f"Invalid option(s) {unknown} selected for question '{qid}'")
            continue
        keys = to_keys(value, options)
        stored[qid] = list(dict.fromkeys(keys)) if multi else keys

    ValidationError.collect("Validation failed", errors)
    return stored


def denormalize_for_display(questions: Sequence[FormQuestion], stored: Dict[str, Any]) -> DisplayPayload:
    """Return the payload rendered with current labels alongside the stored keys."""
    raw = copy.deepcopy(stored)
    display = copy.deepcopy(stored)
    for question in questions:
        if question.question_id in display and requires_options(question.question_type):
            display[question.question_id] = to_labels(display[question.question_id], question.options)
    return DisplayPayload(display=display, raw=raw)


def _render(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(_render(v) for v in value)
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, default=str)


def build_answer_rows(questions: Sequence[FormQuestion], stored: Dict[str, Any], form_id: str) -> List[SubmissionAnswer]:
    rows = []
    for question in questions:
        value = stored.get(question.question_id)
        if is_empty(value):
            continue
        if requires_options(question.question_type):
            values = value if isinstance(value, list) else [value]
            fingerprint = json.dumps(sorted(str(v) for v in values))
            rows.extend(
                SubmissionAnswer(form_id=form_id, question_id=question.question_id, value=str(v), fingerprint=fingerprint)
                for v in dict.fromkeys(values)
            )
        else:
            rows.append(
                SubmissionAnswer(
                    form_id=form_id,
                    question_id=question.question_id,
                    value=_render(value),
                    fingerprint=json.dumps(value, sort_keys=True, default=str),
                )
            )
    return rows


class SubmissionService:
    def __init__(self, cache: CheckOpsCache, forms: FormService):
        self.cache = cache
        self.forms = forms

    def _load(self, db: Session, submission_id: str) -> Submission:
        submission = db.get(Submission, submission_id)
        if submission is None:
            raise NotFoundError("Submission", submission_id)
        return submission

    def _open_form(self, db: Session, form_id: str) -> FormRead:
        form = self.forms.get_form(db, form_id)
        if not form.is_active:
            raise InvalidOperationError("Cannot submit to an inactive form")
        return form

    @staticmethod
    def _to_read(submission: Submission, form: FormRead) -> SubmissionRead:
        payload = denormalize_for_display(form.questions, submission.submission_data or {})
        return SubmissionRead(
            id=submission.id,
            form_id=submission.form_id,
            submission_data=payload.display,
            raw_data=payload.raw,
            metadata=submission.meta or {},
            submitted_at=submission.submitted_at,
        )

    def _build(self, form: FormRead, data: SubmissionCreate) -> Submission:
        stored = normalize_for_storage(form.questions, data.submission_data)
        submission = Submission(id=new_id("SUB"), form_id=form.id, submission_data=stored, meta=data.metadata)
        submission.answers = build_answer_rows(form.questions, stored, form.id)
        return submission

    def create_submission(self, db: Session, data: SubmissionCreate) -> SubmissionRead:
        form = self._open_form(db, data.form_id)
        submission = self._build(form, data)
        db.add(submission)
        db.commit()
        self.cache.delete_stats(form.id)
        logger.info(f"Created submission {submission.id} for form {form.id}")
        return self._to_read(submission, form)

    def create_submissions(self, db: Session, items: Sequence[SubmissionCreate]) -> BulkSubmissionResult:
        """Create many submissions; a bad item is reported without failing the others."""
        result = BulkSubmissionResult()
        built = []
        for index, data in enumerate(items):
            try:
                form = self._open_form(db, data.form_id)
                submission = self._build(form, data)
            except CheckOpsError as e:
                result.errors.append(BulkItemError(index=index, message=e.message, details=e.details))
                continue
            db.add(submission)
            built.append((submission, form))
        db.commit()
        for form_id in {form.id for _, form in built}:
            self.cache.delete_stats(form_id)
        result.created = [self._to_read(submission, form) for submission, form in built]
        logger.info(f"Bulk submission: {len(result.created)} created, {len(result.errors)} rejected")
        return result

    def get_submission(self, db: Session, submission_id: str) -> SubmissionRead:
        cached = self.cache.get_submission(submission_id)
        if cached is not None:
            return cached
        submission = self._load(db, submission_id)
        result = self._to_read(submission, self.forms.get_form(db, submission.form_id))
        self.cache.set_submission(submission_id, result)
        return result

    def list_submissions(
        self, db: Session, form_id: Optional[str] = None, limit: int = 100, offset: int = 0
    ) -> List[SubmissionRead]:
        stmt = select(Submission)
        if form_id is not None:
            self.forms.get_form(db, form_id)
            stmt = stmt.where(Submission.form_id == form_id)
        stmt = stmt.order_by(Submission.submitted_at.desc(), Submission.id).limit(limit).offset(offset)
        forms: Dict[str, FormRead] = {}
        results = []
        for submission in db.scalars(stmt).all():
            if submission.form_id not in forms:
                forms[submission.form_id] = self.forms.get_form(db, submission.form_id)
            results.append(self._to_read(submission, forms[submission.form_id]))
        return results

    def count_submissions(self, db: Session, form_id: Optional[str] = None) -> int:
        stmt = select(func.count(Submission.id))
        if form_id is not None:
            stmt = stmt.where(Submission.form_id == form_id)
        return db.scalar(stmt) or 0

    def update_submission(self, db: Session, submission_id: str, data: SubmissionUpdate) -> SubmissionRead:
        submission = self._load(db, submission_id)
        form = self.forms.get_form(db, submission.form_id)
        if data.submission_data is not None:
            stored = normalize_for_storage(form.questions, data.submission_data)
            submission.submission_data = stored
            submission.answers = build_answer_rows(form.questions, stored, form.id)
        if data.metadata is not None:
            submission.meta = data.metadata
        db.commit()
        self.cache.delete_submission(submission_id)
        self.cache.delete_stats(form.id)
        logger.info(f"Updated submission {submission_id}")
        return self._to_read(submission, form)

    def delete_submission(self, db: Session, submission_id: str) -> SubmissionRead:
        submission = self._load(db, submission_id)
        form = self.forms.get_form(db, submission.form_id)
        deleted = self._to_read(submission, form)
        db.delete(submission)
        db.commit()
        self.cache.delete_submission(submission_id)
        self.cache.delete_stats(form.id)
        logger.info(f"Deleted submission {submission_id}")
        return deleted
