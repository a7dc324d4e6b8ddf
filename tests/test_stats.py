def test_relabel_keeps_counts_by_key(checkops, color_form, color_question):
    red, blue = [o.key for o in color_question.options]
    for colour in ("Red", "Red", "Blue"):
        checkops.create_submission(color_form.id, {color_question.id: colour})

    before = checkops.get_submission_stats(color_form.id).question_stats[color_question.id]
    assert before.answer_distribution == {"Red": 2, "Blue": 1}
    assert before.key_distribution == {red: 2, blue: 1}

    checkops.update_option_label(color_question.id, red, "Crimson")

    after = checkops.get_submission_stats(color_form.id).question_stats[color_question.id]
    assert after.answer_distribution == {"Crimson": 2, "Blue": 1}
    assert after.key_distribution == before.key_distribution


def test_totals_empty_and_unique_counts(checkops):
    name = checkops.create_question("Name", "text")
    tags = checkops.create_question("Tags", "checkbox", options=["x", "y", "z"])
    form = checkops.create_form("Survey", questions=[{"questionId": name.id}, {"questionId": tags.id}])

    checkops.create_submission(form.id, {name.id: "Ada", tags.id: ["x", "y"]})
    checkops.create_submission(form.id, {name.id: "Ada", tags.id: ["y", "x"]})
    checkops.create_submission(form.id, {name.id: "", tags.id: ["z"]})
    checkops.create_submission(form.id, {})

    stats = checkops.get_submission_stats(form.id)
    assert stats.total_submissions == 4
    assert stats.first_submission is not None
    assert stats.last_submission is not None

    name_stats = stats.question_stats[name.id]
    assert name_stats.total_answers == 2
    assert name_stats.empty_answers == 2
    assert name_stats.unique_answer_count == 1
    assert name_stats.answer_distribution == {"Ada": 2}
    assert name_stats.key_distribution is None

    tag_stats = stats.question_stats[tags.id]
    x, y, z = [o.key for o in tags.options]
    assert tag_stats.total_answers == 3
    assert tag_stats.empty_answers == 1
    # ["x", "y"] and ["y", "x"] are the same answer
    assert tag_stats.unique_answer_count == 2
    assert tag_stats.key_distribution == {x: 2, y: 2, z: 1}
    assert tag_stats.answer_distribution == {"x": 2, "y": 2, "z": 1}


def test_stats_for_form_without_submissions(checkops, color_form, color_question):
    stats = checkops.get_submission_stats(color_form.id)
    assert stats.total_submissions == 0
    assert stats.first_submission is None
    question_stats = stats.question_stats[color_question.id]
    assert question_stats.total_answers == 0
    assert question_stats.answer_distribution == {}


def test_new_submission_refreshes_cached_stats(checkops, color_form, color_question):
    checkops.create_submission(color_form.id, {color_question.id: "Red"})
    assert checkops.get_submission_stats(color_form.id).total_submissions == 1
    checkops.create_submission(color_form.id, {color_question.id: "Blue"})
    assert checkops.get_submission_stats(color_form.id).total_submissions == 2


def test_stats_serialize_key_distribution_with_underscore_alias(checkops, color_form, color_question):
    checkops.create_submission(color_form.id, {color_question.id: "Red"})
    dumped = checkops.get_submission_stats(color_form.id).model_dump(by_alias=True)
    question_stats = dumped["questionStats"][color_question.id]
    assert "_keyDistribution" in question_stats
    assert question_stats["answerDistribution"] == {"Red": 1}


def test_keys_sharing_a_label_are_summed(checkops, color_form, color_question):
    red, blue = [o.key for o in color_question.options]
    checkops.create_submission(color_form.id, {color_question.id: "Red"})
    checkops.create_submission(color_form.id, {color_question.id: "Blue"})

    checkops.update_option_label(color_question.id, blue, "Red")

    question_stats = checkops.get_submission_stats(color_form.id).question_stats[color_question.id]
    assert question_stats.answer_distribution == {"Red": 2}
    assert question_stats.key_distribution == {red: 1, blue: 1}
