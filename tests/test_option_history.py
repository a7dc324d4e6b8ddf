import pytest

from checkops.core.errors import NotFoundError, ValidationError


def test_relabel_records_history(checkops, color_question):
    red = color_question.options[0].key
    updated = checkops.update_option_label(color_question.id, red, "Crimson", changed_by="ada", change_reason="brand")

    assert [o.label for o in updated.options] == ["Crimson", "Blue"]
    assert updated.options[0].key == red
    history = checkops.get_option_history(color_question.id)
    assert len(history) == 1
    assert history[0].option_key == red
    assert history[0].old_label == "Red"
    assert history[0].new_label == "Crimson"
    assert history[0].changed_by == "ada"
    assert history[0].change_reason == "brand"


def test_history_is_most_recent_first_and_filterable(checkops, color_question):
    red, blue = [o.key for o in color_question.options]
    checkops.update_option_label(color_question.id, red, "Crimson")
    checkops.update_option_label(color_question.id, blue, "Navy")
    checkops.update_option_label(color_question.id, red, "Scarlet")

    history = checkops.get_option_history(color_question.id)
    assert [h.new_label for h in history] == ["Scarlet", "Navy", "Crimson"]
    assert [h.new_label for h in checkops.get_option_history(color_question.id, red)] == ["Scarlet", "Crimson"]


def test_same_label_is_a_no_op(checkops, color_question):
    red = color_question.options[0].key
    checkops.update_option_label(color_question.id, red, "Red")
    assert checkops.get_option_history(color_question.id) == []


def test_relabel_errors(checkops, color_question):
    red, blue = [o.key for o in color_question.options]
    with pytest.raises(NotFoundError):
        checkops.update_option_label("Q-NOPE", red, "X")
    with pytest.raises(NotFoundError):
        checkops.update_option_label(color_question.id, "opt_missing", "X")
    with pytest.raises(ValidationError):
        checkops.update_option_label(color_question.id, red, "")
    with pytest.raises(ValidationError):
        checkops.update_option_label(color_question.id, red, blue)
    with pytest.raises(NotFoundError):
        checkops.get_option_history("Q-NOPE")


def test_relabel_is_visible_through_cached_form(checkops, color_form, color_question):
    red = color_question.options[0].key
    assert checkops.get_form(color_form.id).questions[0].options[0].label == "Red"
    checkops.update_option_label(color_question.id, red, "Crimson")
    assert checkops.get_form(color_form.id).questions[0].options[0].label == "Crimson"
    assert checkops.get_question(color_question.id).options[0].label == "Crimson"
