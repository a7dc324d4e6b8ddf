from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from checkops.core.cache import CheckOpsCache
from checkops.core.errors import NotFoundError, ValidationError
from checkops.models.orm import OptionHistory, Question
from checkops.models.schemas import OptionHistoryRecord, QuestionRead
from checkops.services.invalidation import invalidate_question_dependents
from checkops.services.option_codec import options_from_records
from checkops.services.questions import to_question_read
import logging

logger = logging.getLogger(__name__)


class OptionHistoryLedger:
    """Relabels options in place and keeps an append-only record of each change."""

    def __init__(self, cache: CheckOpsCache):
        self.cache = cache

    def update_label(
        self,
        db: Session,
        question_id: str,
        option_key: str,
        new_label: str,
        changed_by: Optional[str] = None,
        change_reason: Optional[str] = None,
    ) -> QuestionRead:
        question = db.get(Question, question_id)
        if question is None:
            raise NotFoundError("Question", question_id)
        options = options_from_records(question.options) or []
        # by key only: labels may collide
        target = next((o for o in options if o.key == option_key), None)
        if target is None:
            raise NotFoundError("Option", option_key)
        if not isinstance(new_label, str) or not new_label:
            raise ValidationError("Option label cannot be empty")
        if new_label == target.label:
            return to_question_read(question)
        if any(o.key == new_label for o in options if o.key != option_key):
            raise ValidationError(f"Option label '{new_label}' collides with the key of another option")

        old_label = target.label
        target.label = new_label
        question.options = [o.to_record() for o in options]
        db.add(
            OptionHistory(
                question_id=question_id,
                option_key=option_key,
                old_label=old_label,
                new_label=new_label,
                changed_by=changed_by,
                change_reason=change_reason,
            )
        )
        db.commit()
        invalidate_question_dependents(db, self.cache, question_id)
        logger.info(f"Relabeled option {option_key} of question {question_id}: {old_label!r} -> {new_label!r}")
        return to_question_read(question)

    def get_history(self, db: Session, question_id: str, option_key: Optional[str] = None) -> List[OptionHistoryRecord]:
        """Label changes for a question, most recent first."""
        if db.get(Question, question_id) is None:
            raise NotFoundError("Question", question_id)
        stmt = select(OptionHistory).where(OptionHistory.question_id == question_id)
        if option_key is not None:
            stmt = stmt.where(OptionHistory.option_key == option_key)
        stmt = stmt.order_by(OptionHistory.changed_at.desc(), OptionHistory.id.desc())
        return [
            OptionHistoryRecord(
                id=row.id,
                question_id=row.question_id,
                option_key=row.option_key,
                old_label=row.old_label,
                new_label=row.new_label,
                changed_at=row.changed_at,
                changed_by=row.changed_by,
                change_reason=row.change_reason,
            )
            for row in db.scalars(stmt).all()
        ]
