"""
Pydantic models for the persisted option shape and for service input/output.

JSON field names are camelCase (``createdAt``, ``questionId``...) to stay
compatible with data already stored by other CheckOps clients.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
import enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class QuestionType(str, enum.Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    EMAIL = "email"
    PHONE = "phone"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    SELECT = "select"
    MULTISELECT = "multiselect"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    BOOLEAN = "boolean"
    FILE = "file"
    RATING = "rating"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ========== Options ==========

class Option(CamelModel):
    key: str
    label: str
    order: int
    metadata: Dict[str, Any] = Field(default_factory=dict)
    disabled: bool = False
    created_at: str

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class OptionSpec(CamelModel):
    """Raw option input after the boundary parse; ``key`` is None for plain labels."""

    key: Optional[str] = None
    label: str
    order: Optional[int] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    disabled: bool = False
    created_at: Optional[str] = None


class OptionLabelUpdate(CamelModel):
    label: str = Field(min_length=1)
    changed_by: Optional[str] = None
    change_reason: Optional[str] = None


class OptionHistoryRecord(CamelModel):
    id: int
    question_id: str
    option_key: str
    old_label: Optional[str] = None
    new_label: Optional[str] = None
    changed_at: datetime
    changed_by: Optional[str] = None
    change_reason: Optional[str] = None


# ========== Questions ==========

class QuestionCreate(CamelModel):
    question_text: str = Field(min_length=1, max_length=5000)
    question_type: QuestionType
    options: Optional[List[Any]] = None
    validation_rules: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class QuestionUpdate(CamelModel):
    question_text: Optional[str] = Field(default=None, min_length=1, max_length=5000)
    question_type: Optional[QuestionType] = None
    options: Optional[List[Any]] = None
    validation_rules: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None


class QuestionRead(CamelModel):
    id: str
    question_text: str
    question_type: QuestionType
    options: Optional[List[Option]] = None
    validation_rules: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ========== Forms ==========

class FormQuestionRef(CamelModel):
    question_id: str
    required: bool = False


class FormCreate(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    questions: List[FormQuestionRef]
    metadata: Dict[str, Any] = Field(default_factory=dict)


class FormUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    questions: Optional[List[FormQuestionRef]] = None
    metadata: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None


class FormQuestion(CamelModel):
    """A question as it appears on a form: the bank definition plus form flags."""

    question_id: str
    required: bool = False
    position: int
    question_text: str
    question_type: QuestionType
    options: Optional[List[Option]] = None
    validation_rules: Optional[Dict[str, Any]] = None


class FormRead(CamelModel):
    id: str
    title: str
    description: str = ""
    questions: List[FormQuestion]
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ========== Submissions ==========

class SubmissionCreate(CamelModel):
    form_id: str
    submission_data: Dict[str, Any]
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SubmissionUpdate(CamelModel):
    submission_data: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None


class SubmissionRead(CamelModel):
    id: str
    form_id: str
    # answers rendered with current labels
    submission_data: Dict[str, Any]
    # answers as stored (option keys)
    raw_data: Dict[str, Any]
    metadata: Dict[str, Any] = Field(default_factory=dict)
    submitted_at: Optional[datetime] = None


class BulkItemError(CamelModel):
    index: int
    message: str
    details: Optional[Any] = None


class BulkSubmissionResult(CamelModel):
    created: List[SubmissionRead] = Field(default_factory=list)
    errors: List[BulkItemError] = Field(default_factory=list)


# ========== Stats ==========

class QuestionStats(CamelModel):
    question_text: str
    question_type: QuestionType
    total_answers: int = 0
    empty_answers: int = 0
    unique_answer_count: int = 0
    answer_distribution: Dict[str, int] = Field(default_factory=dict)
    # ground truth for option questions, keyed by option key
    key_distribution: Optional[Dict[str, int]] = Field(default=None, alias="_keyDistribution")


class FormStats(CamelModel):
    form_id: str
    total_submissions: int = 0
    first_submission: Optional[datetime] = None
    last_submission: Optional[datetime] = None
    question_stats: Dict[str, QuestionStats] = Field(default_factory=dict)
