"""
In-process entry point.

``CheckOps`` owns the database engine, the session factory and the single
cache instance, wires the services together and opens one session per call.
"""
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

from sqlalchemy.orm import Session

from checkops.core.cache import CheckOpsCache, TimerFactory
from checkops.core.config import Settings, get_settings
from checkops.core.database import create_db_engine, create_session_factory, init_db, session_scope
from checkops.models.schemas import (
    BulkSubmissionResult,
    FormCreate,
    FormRead,
    FormStats,
    FormUpdate,
    OptionHistoryRecord,
    QuestionCreate,
    QuestionRead,
    QuestionType,
    QuestionUpdate,
    SubmissionCreate,
    SubmissionRead,
    SubmissionUpdate,
)
from checkops.services.forms import FormService
from checkops.services.option_history import OptionHistoryLedger
from checkops.services.questions import QuestionService
from checkops.services.stats import StatsAggregator
from checkops.services.submissions import SubmissionService
import logging

logger = logging.getLogger(__name__)


class CheckOps:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        database_url: Optional[str] = None,
        cache: Optional[CheckOpsCache] = None,
        timer_factory: Optional[TimerFactory] = None,
        create_schema: bool = True,
    ):
        self.settings = settings or get_settings()
        self.engine = create_db_engine(database_url or self.settings.DATABASE_URL, settings=self.settings)
        self.session_factory = create_session_factory(self.engine)
        self.cache = cache or CheckOpsCache.from_settings(self.settings, timer_factory=timer_factory)

        self.questions = QuestionService(self.cache)
        self.forms = FormService(self.cache, self.questions)
        self.submissions = SubmissionService(self.cache, self.forms)
        self.history = OptionHistoryLedger(self.cache)
        self.stats = StatsAggregator(self.cache, self.forms)

        if create_schema:
            init_db(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        with session_scope(self.session_factory) as db:
            yield db

    def close(self) -> None:
        self.cache.clear()
        self.engine.dispose()
        logger.info("CheckOps closed")

    # Forms
    def create_form(self, title: str, questions: Sequence[Dict[str, Any]], description: str = "",
                    metadata: Optional[Dict[str, Any]] = None) -> FormRead:
        data = FormCreate(title=title, description=description, questions=questions, metadata=metadata or {})
        with self.session() as db:
            return self.forms.create_form(db, data)

    def get_form(self, form_id: str) -> FormRead:
        with self.session() as db:
            return self.forms.get_form(db, form_id)

    def get_all_forms(self, is_active: Optional[bool] = None, limit: int = 100, offset: int = 0) -> List[FormRead]:
        with self.session() as db:
            return self.forms.list_forms(db, is_active=is_active, limit=limit, offset=offset)

    def update_form(self, form_id: str, **updates) -> FormRead:
        with self.session() as db:
            return self.forms.update_form(db, form_id, FormUpdate(**updates))

    def delete_form(self, form_id: str) -> FormRead:
        with self.session() as db:
            return self.forms.delete_form(db, form_id)

    def activate_form(self, form_id: str) -> FormRead:
        with self.session() as db:
            return self.forms.activate_form(db, form_id)

    def deactivate_form(self, form_id: str) -> FormRead:
        with self.session() as db:
            return self.forms.deactivate_form(db, form_id)

    def get_form_count(self, is_active: Optional[bool] = None) -> int:
        with self.session() as db:
            return self.forms.count_forms(db, is_active=is_active)

    # Questions
    def create_question(self, question_text: str, question_type: str, options: Optional[List[Any]] = None,
                        validation_rules: Optional[Dict[str, Any]] = None,
                        metadata: Optional[Dict[str, Any]] = None) -> QuestionRead:
        data = QuestionCreate(
            question_text=question_text,
            question_type=question_type,
            options=options,
            validation_rules=validation_rules,
            metadata=metadata or {},
        )
        with self.session() as db:
            return self.questions.create_question(db, data)

    def get_question(self, question_id: str) -> QuestionRead:
        with self.session() as db:
            return self.questions.get_question(db, question_id)

    def get_questions(self, ids: Sequence[str]) -> List[QuestionRead]:
        with self.session() as db:
            return self.questions.get_questions(db, ids)

    def get_all_questions(self, question_type: Optional[QuestionType] = None, is_active: Optional[bool] = None,
                          limit: int = 100, offset: int = 0) -> List[QuestionRead]:
        with self.session() as db:
            return self.questions.list_questions(db, question_type, is_active, limit, offset)

    def update_question(self, question_id: str, **updates) -> QuestionRead:
        with self.session() as db:
            return self.questions.update_question(db, question_id, QuestionUpdate(**updates))

    def delete_question(self, question_id: str) -> QuestionRead:
        with self.session() as db:
            return self.questions.delete_question(db, question_id)

    def activate_question(self, question_id: str) -> QuestionRead:
        with self.session() as db:
            return self.questions.activate_question(db, question_id)

    def deactivate_question(self, question_id: str) -> QuestionRead:
        with self.session() as db:
            return self.questions.deactivate_question(db, question_id)

    def get_question_count(self, question_type: Optional[QuestionType] = None, is_active: Optional[bool] = None) -> int:
        with self.session() as db:
            return self.questions.count_questions(db, question_type, is_active)

    def update_option_label(self, question_id: str, option_key: str, new_label: str,
                            changed_by: Optional[str] = None, change_reason: Optional[str] = None) -> QuestionRead:
        with self.session() as db:
            return self.history.update_label(db, question_id, option_key, new_label, changed_by, change_reason)

    def get_option_history(self, question_id: str, option_key: Optional[str] = None) -> List[OptionHistoryRecord]:
        with self.session() as db:
            return self.history.get_history(db, question_id, option_key)

    # Submissions
    def create_submission(self, form_id: str, submission_data: Dict[str, Any],
                          metadata: Optional[Dict[str, Any]] = None) -> SubmissionRead:
        data = SubmissionCreate(form_id=form_id, submission_data=submission_data, metadata=metadata or {})
        with self.session() as db:
            return self.submissions.create_submission(db, data)

    def create_submissions(self, items: Sequence[Dict[str, Any]]) -> BulkSubmissionResult:
        with self.session() as db:
            return self.submissions.create_submissions(db, [SubmissionCreate.model_validate(i) for i in items])

    def get_submission(self, submission_id: str) -> SubmissionRead:
        with self.session() as db:
            return self.submissions.get_submission(db, submission_id)

    def get_submissions_by_form(self, form_id: str, limit: int = 100, offset: int = 0) -> List[SubmissionRead]:
        with self.session() as db:
            return self.submissions.list_submissions(db, form_id=form_id, limit=limit, offset=offset)

    def get_all_submissions(self, limit: int = 100, offset: int = 0) -> List[SubmissionRead]:
        with self.session() as db:
            return self.submissions.list_submissions(db, limit=limit, offset=offset)

    def update_submission(self, submission_id: str, **updates) -> SubmissionRead:
        with self.session() as db:
            return self.submissions.update_submission(db, submission_id, SubmissionUpdate(**updates))

    def delete_submission(self, submission_id: str) -> SubmissionRead:
        with self.session() as db:
            return self.submissions.delete_submission(db, submission_id)

    def get_submission_count(self, form_id: Optional[str] = None) -> int:
        with self.session() as db:
            return self.submissions.count_submissions(db, form_id=form_id)

    def get_submission_stats(self, form_id: str) -> FormStats:
        with self.session() as db:
            return self.stats.get_form_stats(db, form_id)
