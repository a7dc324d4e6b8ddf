import pytest

from checkops.core.config import Settings
from checkops.core.errors import NotFoundError, ValidationError
from checkops.sdk import CheckOps


def test_question_crud(checkops):
    question = checkops.create_question("Email?", "email", metadata={"section": "contact"})
    assert question.id.startswith("Q-")
    assert question.options is None
    assert checkops.get_question(question.id).metadata == {"section": "contact"}

    updated = checkops.update_question(question.id, question_text="Work email?")
    assert updated.question_text == "Work email?"
    assert checkops.get_question(question.id).question_text == "Work email?"

    assert checkops.deactivate_question(question.id).is_active is False
    assert checkops.get_question_count(is_active=False) == 1
    assert checkops.activate_question(question.id).is_active is True

    checkops.delete_question(question.id)
    with pytest.raises(NotFoundError):
        checkops.get_question(question.id)


def test_choice_question_requires_options(checkops):
    with pytest.raises(ValidationError):
        checkops.create_question("Pick", "radio")
    with pytest.raises(ValidationError):
        checkops.create_question("Pick", "radio", options=[])


def test_get_questions_keeps_request_order(checkops):
    a = checkops.create_question("A", "text")
    b = checkops.create_question("B", "text")
    found = checkops.get_questions([b.id, "Q-NOPE", a.id])
    assert [q.id for q in found] == [b.id, a.id]


def test_get_questions_keeps_request_order_on_cache_hit(checkops):
    a = checkops.create_question("A", "text")
    b = checkops.create_question("B", "text")
    assert [q.id for q in checkops.get_questions([a.id, b.id])] == [a.id, b.id]
    assert [q.id for q in checkops.get_questions([b.id, a.id])] == [b.id, a.id]
    assert checkops.cache.question_cache.stats()["hits"] >= 1


def test_list_questions_by_type(checkops, color_question):
    checkops.create_question("Notes", "textarea")
    assert [q.id for q in checkops.get_all_questions(question_type="select")] == [color_question.id]
    assert checkops.get_question_count() == 2


def test_replacing_options_regenerates_display(checkops, color_form, color_question):
    checkops.update_question(
        color_question.id, options=[o.to_record() for o in color_question.options] + [{"key": "g", "label": "Green"}]
    )
    form = checkops.get_form(color_form.id)
    assert [o.label for o in form.questions[0].options] == ["Red", "Blue", "Green"]
    assert [o.key for o in form.questions[0].options][:2] == [o.key for o in color_question.options]


def test_form_crud(checkops, color_question):
    other = checkops.create_question("Comments", "textarea")
    form = checkops.create_form(
        "Feedback",
        questions=[{"questionId": color_question.id, "required": True}, {"questionId": other.id}],
        description="Tell us",
    )
    assert form.id.startswith("FORM-")
    assert [q.question_id for q in form.questions] == [color_question.id, other.id]
    assert [q.position for q in form.questions] == [1, 2]
    assert form.questions[0].required is True
    assert form.questions[0].question_text == "Favourite colour?"

    updated = checkops.update_form(form.id, title="Feedback v2", questions=[{"questionId": other.id}])
    assert updated.title == "Feedback v2"
    assert [q.question_id for q in updated.questions] == [other.id]
    assert checkops.get_form_count() == 1

    checkops.delete_form(form.id)
    with pytest.raises(NotFoundError):
        checkops.get_form(form.id)


def test_form_can_reuse_question_after_replacement(checkops, color_form, color_question):
    updated = checkops.update_form(color_form.id, questions=[{"questionId": color_question.id, "required": False}])
    assert updated.questions[0].required is False


def test_form_question_errors_are_collected(checkops, color_question):
    with pytest.raises(ValidationError) as e:
        checkops.create_form(
            "Bad",
            questions=[{"questionId": color_question.id}, {"questionId": color_question.id}, {"questionId": "Q-NOPE"}],
        )
    assert len(e.value.details) == 2
    with pytest.raises(ValidationError):
        checkops.create_form("Empty", questions=[])


def test_deleting_question_removes_it_from_forms(checkops, color_form, color_question):
    other = checkops.create_question("Comments", "textarea")
    checkops.update_form(color_form.id, questions=[{"questionId": color_question.id}, {"questionId": other.id}])
    checkops.delete_question(other.id)
    assert [q.question_id for q in checkops.get_form(color_form.id).questions] == [color_question.id]


def test_delete_form_removes_submissions(checkops, color_form, color_question):
    checkops.create_submission(color_form.id, {color_question.id: "Red"})
    checkops.delete_form(color_form.id)
    assert checkops.get_submission_count() == 0


def test_close_clears_cache(checkops, color_form):
    checkops.get_form(color_form.id)
    assert checkops.cache.get_cache_stats()["overall"]["totalSize"] > 0
    checkops.close()
    assert checkops.cache.get_cache_stats()["overall"]["totalSize"] == 0


def test_engine_uses_injected_settings():
    settings = Settings(ENVIRONMENT="testing", DATABASE_URL="sqlite:///:memory:", DATABASE_ECHO=True)
    ops = CheckOps(settings=settings)
    try:
        assert ops.engine.echo is True
    finally:
        ops.close()
