def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"
    assert "overall" in r.json()["cache"]


def _seed(client):
    r = client.post("/v1/questions", json={"questionText": "Colour?", "questionType": "radio", "options": ["Red", "Blue"]})
    assert r.status_code == 201
    question = r.json()
    r = client.post("/v1/forms", json={"title": "Colours", "questions": [{"questionId": question["id"], "required": True}]})
    assert r.status_code == 201
    return question, r.json()


def test_submit_relabel_and_stats(client):
    question, form = _seed(client)
    red = question["options"][0]["key"]

    r = client.post("/v1/submissions", json={"formId": form["id"], "submissionData": {question["id"]: "Red"}})
    assert r.status_code == 201
    submission = r.json()
    assert submission["rawData"] == {question["id"]: red}

    r = client.patch(f"/v1/questions/{question['id']}/options/{red}", json={"label": "Crimson", "changedBy": "tester"})
    assert r.status_code == 200
    assert r.json()["options"][0]["label"] == "Crimson"

    r = client.get(f"/v1/submissions/{submission['id']}")
    assert r.json()["submissionData"] == {question["id"]: "Crimson"}

    r = client.get(f"/v1/forms/{form['id']}/stats")
    assert r.status_code == 200
    stats = r.json()["questionStats"][question["id"]]
    assert stats["answerDistribution"] == {"Crimson": 1}
    assert stats["_keyDistribution"] == {red: 1}

    r = client.get(f"/v1/questions/{question['id']}/options/history")
    assert [h["newLabel"] for h in r.json()] == ["Crimson"]


def test_errors_use_the_error_envelope(client):
    question, form = _seed(client)

    r = client.get("/v1/forms/FORM-NOPE")
    assert r.status_code == 404
    assert r.json()["error"]["type"] == "NOT_FOUND"

    r = client.post("/v1/submissions", json={"formId": form["id"], "submissionData": {question["id"]: "Green"}})
    assert r.status_code == 400
    assert r.json()["error"]["type"] == "VALIDATION_ERROR"
    assert len(r.json()["error"]["details"]) == 1

    client.patch(f"/v1/forms/{form['id']}", json={"isActive": False})
    r = client.post("/v1/submissions", json={"formId": form["id"], "submissionData": {question["id"]: "Red"}})
    assert r.status_code == 409

    r = client.post("/v1/questions", json={"questionType": "text"})
    assert r.status_code == 422
    assert r.json()["error"]["type"] == "validation_error"


def test_bulk_submissions(client):
    question, form = _seed(client)
    r = client.post(
        "/v1/submissions/bulk",
        json=[
            {"formId": form["id"], "submissionData": {question["id"]: "Red"}},
            {"formId": form["id"], "submissionData": {}},
        ],
    )
    assert r.status_code == 200
    body = r.json()
    assert len(body["created"]) == 1
    assert body["errors"][0]["index"] == 1

    r = client.get("/v1/submissions", params={"formId": form["id"]})
    assert len(r.json()) == 1
