import pytest

from checkops.core.errors import ValidationError
from checkops.services.option_codec import (
    generate_option_key,
    is_valid_answer,
    normalize_options,
    sanitize_option_key,
    to_keys,
    to_labels,
)


def test_plain_labels_get_generated_keys_and_order():
    options = normalize_options(["Red", "Blue"], owner_id="Q-1")
    assert [o.label for o in options] == ["Red", "Blue"]
    assert [o.order for o in options] == [1, 2]
    assert all(o.key.startswith("opt_") for o in options)
    assert options[0].key.startswith("opt_red_")
    assert options[0].disabled is False
    assert options[0].metadata == {}
    assert options[0].created_at


def test_generated_keys_are_stable_for_an_owner():
    assert generate_option_key("Red", 0, "Q-1") == generate_option_key("Red", 0, "Q-1")
    assert generate_option_key("Red", 0, "Q-1") != generate_option_key("Red", 0, "Q-2")
    assert generate_option_key("Red", 0, "Q-1") != generate_option_key("Red", 1, "Q-1")


def test_generated_key_slug_is_truncated():
    key = generate_option_key("A very long label that keeps going and going", 0, "Q-1")
    slug = key[len("opt_"):].rsplit("_", 1)[0]
    assert len(slug) <= 30
    assert len(key) <= 100


def test_structured_options_keep_their_keys():
    options = normalize_options(
        [{"key": "r", "label": "Red", "order": 5}, {"key": " b ", "label": "Blue"}]
    )
    assert [o.key for o in options] == ["r", "b"]
    assert [o.order for o in options] == [5, 2]


def test_normalize_is_idempotent():
    once = normalize_options(["Red", "Blue"], owner_id="Q-1")
    twice = normalize_options([o.to_record() for o in once], owner_id="Q-1")
    assert [o.to_record() for o in twice] == [o.to_record() for o in once]


def test_none_and_empty_pass_through():
    assert normalize_options(None) is None
    assert normalize_options([]) == []


def test_duplicate_keys_reject_the_whole_batch():
    with pytest.raises(ValidationError) as e:
        normalize_options([{"key": "a", "label": "A"}, {"key": "a", "label": "Also A"}])
    assert any("Duplicate option key 'a'" in d for d in e.value.details)


def test_label_colliding_with_other_key_is_rejected():
    with pytest.raises(ValidationError):
        normalize_options([{"key": "a", "label": "b"}, {"key": "b", "label": "Bee"}])


def test_mixed_input_is_rejected():
    with pytest.raises(ValidationError):
        normalize_options(["Red", {"key": "b", "label": "Blue"}])


def test_non_list_is_rejected():
    with pytest.raises(ValidationError):
        normalize_options("Red")


def test_all_invalid_entries_are_reported():
    with pytest.raises(ValidationError) as e:
        normalize_options([{"key": "ok", "label": "Fine"}, {"label": "No key"}, {"key": "bad key!", "label": "X"}])
    assert len(e.value.details) == 2
    assert e.value.details[0].startswith("Option at index 1")
    assert e.value.details[1].startswith("Option at index 2")


@pytest.mark.parametrize("key", ["", "   ", "has space", "x" * 101, 5])
def test_sanitize_rejects_bad_keys(key):
    with pytest.raises(ValidationError):
        sanitize_option_key(key)


def test_sanitize_trims():
    assert sanitize_option_key("  opt-1_a ") == "opt-1_a"


def test_to_keys_and_labels_round_trip():
    options = normalize_options([{"key": "r", "label": "Red"}, {"key": "b", "label": "Blue"}])
    assert to_keys("Red", options) == "r"
    assert to_keys("r", options) == "r"
    assert to_keys(["Blue", "r"], options) == ["b", "r"]
    assert to_labels(["b", "r"], options) == ["Blue", "Red"]
    assert to_labels(to_keys("Blue", options), options) == "Blue"


def test_key_wins_over_label_when_they_match():
    options = normalize_options([{"key": "A", "label": "A"}, {"key": "x", "label": "Other"}])
    assert to_keys("A", options) == "A"


def test_unresolved_values_pass_through():
    options = normalize_options([{"key": "r", "label": "Red"}])
    assert to_keys("Green", options) == "Green"
    assert to_labels("gone", options) == "gone"
    assert to_keys(None, options) is None
    assert to_labels([], options) == []
    assert to_keys("Red", None) == "Red"


def test_is_valid_answer():
    options = normalize_options([{"key": "r", "label": "Red"}, {"key": "b", "label": "Blue"}])
    assert is_valid_answer("Red", options, "select")
    assert is_valid_answer("b", options, "radio")
    assert not is_valid_answer("Green", options, "select")
    assert not is_valid_answer(["r"], options, "select")
    assert is_valid_answer(["r", "Blue"], options, "checkbox")
    assert not is_valid_answer("r", options, "multiselect")
    assert is_valid_answer(None, options, "select")


def test_to_keys_is_idempotent():
    options = normalize_options(["Red", "Blue"], owner_id="Q-1")
    for value in ("Red", "Blue", ["Blue", "Red"], "unknown", None):
        once = to_keys(value, options)
        assert to_keys(once, options) == once
