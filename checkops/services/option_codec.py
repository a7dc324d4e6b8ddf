"""
Option key/label handling for choice questions.

An option has a stable machine ``key`` and a mutable human ``label``.
Submissions store keys; everything shown to people uses labels.
"""
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Sequence
import hashlib
import re
import time

from pydantic import ValidationError as PydanticValidationError

from checkops.core.errors import ValidationError
from checkops.models.schemas import Option, OptionSpec, QuestionType

OPTION_TYPES = frozenset({QuestionType.SELECT, QuestionType.MULTISELECT, QuestionType.RADIO, QuestionType.CHECKBOX})
MULTI_VALUE_TYPES = frozenset({QuestionType.MULTISELECT, QuestionType.CHECKBOX})

MAX_KEY_LENGTH = 100
MAX_SLUG_LENGTH = 30
DIGEST_LENGTH = 6
KEY_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def _as_type(question_type: Any) -> Optional[QuestionType]:
    try:
        return QuestionType(question_type)
    except ValueError:
        return None


def requires_options(question_type: Any) -> bool:
    return _as_type(question_type) in OPTION_TYPES


def is_multi_valued(question_type: Any) -> bool:
    return _as_type(question_type) in MULTI_VALUE_TYPES


def is_empty(value: Any) -> bool:
    """None, "" and [] all count as "no answer"."""
    return value is None or value == "" or (isinstance(value, (list, tuple)) and len(value) == 0)


def slugify(label: str) -> str:
    slug = _NON_ALNUM.sub("_", label.lower()).strip("_")
    return slug[:MAX_SLUG_LENGTH]


def generate_option_key(label: str, index: int, owner_id: Optional[str] = None) -> str:
    """Build ``opt_<slug>_<digest>``; deterministic when ``owner_id`` is given."""
    if owner_id:
        seed = f"{owner_id}_{label}_{index}"
    else:
        seed = f"{label}_{index}_{time.time_ns()}"
    digest = hashlib.md5(seed.encode("utf-8")).hexdigest()[:DIGEST_LENGTH]
    return f"opt_{slugify(label)}_{digest}"


def sanitize_option_key(key: Any) -> str:
    if not isinstance(key, str):
        raise ValidationError("Option key must be a string")
    sanitized = key.strip()
    if not sanitized:
        raise ValidationError("Option key cannot be empty")
    if len(sanitized) > MAX_KEY_LENGTH:
        raise ValidationError(f"Option key cannot exceed {MAX_KEY_LENGTH} characters")
    if not KEY_PATTERN.match(sanitized):
        raise ValidationError(
            "Option key can only contain alphanumeric characters, underscores, and hyphens"
        )
    return sanitized


def parse_options(raw: Any) -> List[OptionSpec]:
    """Parse raw option input (all strings, or all mappings) into ``OptionSpec``s.

    Structured keys come back sanitized. All problems found are raised
    together as one ValidationError.
    """
    if not isinstance(raw, (list, tuple)):
        raise ValidationError("Options must be an array")
    if all(isinstance(item, str) for item in raw):
        return [OptionSpec(label=label) for label in raw]
    if not all(isinstance(item, dict) for item in raw):
        raise ValidationError(
            "Options must be either all strings or all objects with key and label properties"
        )

    errors = []
    specs = []
    for index, item in enumerate(raw):
        if not item.get("key") or not item.get("label"):
            errors.append(f"Option at index {index}: key and label are required")
            continue
        try:
            spec = OptionSpec.model_validate(item)
            spec.key = sanitize_option_key(spec.key)
        except PydanticValidationError as e:
            errors.append(f"Option at index {index}: {e.errors()[0]['msg']}")
            continue
        except ValidationError as e:
            errors.append(f"Option at index {index}: {e.message}")
            continue
        specs.append(spec)
    ValidationError.collect("Invalid options", errors)
    return specs


def _check_identity(options: Sequence[Option]) -> None:
    errors = []
    seen = set()
    for option in options:
        if option.key in seen:
            errors.append(f"Duplicate option key '{option.key}'")
        seen.add(option.key)
    for option in options:
        if option.label in seen and option.label != option.key:
            errors.append(f"Option label '{option.label}' collides with the key of another option")
    ValidationError.collect("Option keys must be unique within a question", errors)


def normalize_options(raw: Any, owner_id: Optional[str] = None) -> Optional[List[Option]]:
    """Turn raw option input into canonical ``Option`` records.

    ``None`` stays ``None`` and ``[]`` stays ``[]``. Plain labels get generated
    keys and ``order`` 1..n; structured entries keep their keys. Any invalid or
    duplicate entry rejects the whole batch.
    """
    if raw is None:
        return None
    specs = parse_options(raw)
    now = datetime.now(timezone.utc).isoformat()
    options = [
        Option(
            key=spec.key if spec.key is not None else generate_option_key(spec.label, index, owner_id),
            label=spec.label,
            order=spec.order if spec.order is not None else index + 1,
            metadata=spec.metadata,
            disabled=spec.disabled,
            created_at=spec.created_at or now,
        )
        for index, spec in enumerate(specs)
    ]
    _check_identity(options)
    return options


def find_option(options: Optional[Iterable[Option]], value: Any) -> Optional[Option]:
    """Resolve ``value`` as a key first, then as a label."""
    if not options or not isinstance(value, str):
        return None
    options = list(options)
    for option in options:
        if option.key == value:
            return option
    for option in options:
        if option.label == value:
            return option
    return None


def to_keys(value: Any, options: Optional[Sequence[Option]]) -> Any:
    """Translate label(s) to key(s). Unresolved values are returned unchanged."""
    if not options or is_empty(value):
        return value
    if isinstance(value, (list, tuple)):
        return [to_keys(item, options) for item in value]
    option = find_option(options, value)
    return option.key if option else value


def to_labels(value: Any, options: Optional[Sequence[Option]]) -> Any:
    """Translate key(s) to current label(s). Unresolved values are returned unchanged."""
    if not options or is_empty(value):
        return value
    if isinstance(value, (list, tuple)):
        return [to_labels(item, options) for item in value]
    for option in options:
        if option.key == value:
            return option.label
    return value


def is_valid_answer(value: Any, options: Optional[Sequence[Option]], question_type: Any) -> bool:
    if is_empty(value):
        return True
    if not options:
        return False
    if is_multi_valued(question_type):
        if not isinstance(value, (list, tuple)):
            return False
        return all(find_option(options, item) is not None for item in value)
    if isinstance(value, (list, tuple)):
        return False
    return find_option(options, value) is not None


def options_from_records(records: Optional[Iterable[dict]]) -> Optional[List[Option]]:
    if records is None:
        return None
    return [Option.model_validate(record) for record in records]
