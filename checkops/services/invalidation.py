from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from checkops.core.cache import CheckOpsCache
from checkops.models.orm import FormQuestion
import logging

logger = logging.getLogger(__name__)


def forms_using_question(db: Session, question_id: str) -> List[str]:
    return list(db.scalars(select(FormQuestion.form_id).where(FormQuestion.question_id == question_id)).all())


def invalidate_question_dependents(db: Session, cache: CheckOpsCache, question_id: str) -> None:
    """Drop every cached value derived from a question.

    That is the question batches holding it, plus each form using it (the
    form itself, its stats and its cached submissions).
    """
    form_ids = forms_using_question(db, question_id)
    cache.invalidate_question(question_id)
    for form_id in form_ids:
        cache.invalidate_form(form_id)
    logger.debug(f"Question {question_id} invalidated; dependent forms: {form_ids}")
