"""
Per-form answer statistics.

Counting happens in SQL over ``submission_answers``: a fixed number of
grouped queries per form, whatever the submission volume. Choice answers
are counted by option key (``_keyDistribution``) and only mapped to the
current labels afterwards, so relabeling never skews the numbers. Two keys
that currently share a label are summed under that label.
"""
from collections import defaultdict
from typing import Dict, Iterable, Optional

from sqlalchemy import distinct, func, select
from sqlalchemy.orm import Session

from checkops.core.cache import CheckOpsCache
from checkops.models.orm import Submission, SubmissionAnswer
from checkops.models.schemas import FormStats, Option, QuestionStats
from checkops.services.forms import FormService
from checkops.services.option_codec import requires_options
import logging

logger = logging.getLogger(__name__)


def label_distribution(key_distribution: Dict[str, int], options: Optional[Iterable[Option]]) -> Dict[str, int]:
    labels = {option.key: option.label for option in options or []}
    result: Dict[str, int] = {}
    for key, count in key_distribution.items():
        # keys no longer on the question keep showing up under the raw key
        label = labels.get(key, key)
        result[label] = result.get(label, 0) + count
    return result


class StatsAggregator:
    def __init__(self, cache: CheckOpsCache, forms: FormService):
        self.cache = cache
        self.forms = forms

    def get_form_stats(self, db: Session, form_id: str) -> FormStats:
        cached = self.cache.get_stats(form_id)
        if cached is not None:
            return cached
        stats = self.compute_form_stats(db, form_id)
        self.cache.set_stats(form_id, stats)
        return stats

    def compute_form_stats(self, db: Session, form_id: str) -> FormStats:
        form = self.forms.get_form(db, form_id)
        question_ids = [q.question_id for q in form.questions]

        total, first, last = db.execute(
            select(func.count(Submission.id), func.min(Submission.submitted_at), func.max(Submission.submitted_at))
            .where(Submission.form_id == form_id)
        ).one()

        scope = (SubmissionAnswer.form_id == form_id, SubmissionAnswer.question_id.in_(question_ids))
        answered_rows = db.execute(
            select(
                SubmissionAnswer.question_id,
                func.count(distinct(SubmissionAnswer.submission_id)),
                func.count(distinct(SubmissionAnswer.fingerprint)),
            )
            .where(*scope)
            .group_by(SubmissionAnswer.question_id)
        ).all()
        answered = {qid: (n_answers, n_unique) for qid, n_answers, n_unique in answered_rows}

        distributions: Dict[str, Dict[str, int]] = defaultdict(dict)
        for qid, value, count in db.execute(
            select(
                SubmissionAnswer.question_id,
                SubmissionAnswer.value,
                func.count(distinct(SubmissionAnswer.submission_id)),
            )
            .where(*scope)
            .group_by(SubmissionAnswer.question_id, SubmissionAnswer.value)
        ).all():
            distributions[qid][value] = count

        question_stats = {}
        for question in form.questions:
            qid = question.question_id
            total_answers, unique = answered.get(qid, (0, 0))
            counts = distributions.get(qid, {})
            if requires_options(question.question_type):
                key_distribution = dict(counts)
                answer_distribution = label_distribution(key_distribution, question.options)
            else:
                key_distribution = None
                answer_distribution = dict(counts)
            question_stats[qid] = QuestionStats(
                question_text=question.question_text,
                question_type=question.question_type,
                total_answers=total_answers,
                empty_answers=total - total_answers,
                unique_answer_count=unique,
                answer_distribution=answer_distribution,
                key_distribution=key_distribution,
            )

        logger.debug(f"Computed stats for form {form_id} over {total} submission(s)")
        return FormStats(
            form_id=form_id,
            total_submissions=total,
            first_submission=first,
            last_submission=last,
            question_stats=question_stats,
        )
