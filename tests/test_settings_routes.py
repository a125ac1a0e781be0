from conftest import auth_header


def test_defaults_are_created_once(client, db, teacher):
    settings = client.get(f"/api/settings/teacher/{teacher['id']}").json()["settings"]
    assert settings["general"]["questionsPerPage"] == 5
    assert settings["general"]["shuffleQuestions"] is True
    assert settings["security"]["preventCopyPaste"] is True
    assert settings["notifications"]["deliverySchedule"] == "immediately"

    client.get(f"/api/settings/teacher/{teacher['id']}")
    assert db["settings"].count_documents({"teacherId": teacher["id"]}) == 1


def test_update_merges_sections(client, teacher):
    res = client.put(f"/api/settings/update/{teacher['id']}", json={
        "general": {"timeLimit": 45},
        "notifications": {"deliverySchedule": "weekly"},
    })
    assert res.status_code == 200
    settings = res.json()["settings"]
    assert settings["general"]["timeLimit"] == 45
    assert settings["general"]["questionsPerPage"] == 5
    assert settings["notifications"]["deliverySchedule"] == "weekly"
    assert settings["security"]["sessionTimeout"] == 30
    assert settings["lastUpdated"]


def test_invalid_value_is_rejected(client, teacher):
    res = client.put(f"/api/settings/update/{teacher['id']}", json={
        "general": {"timeLimit": 60},
        "notifications": {"deliverySchedule": "hourly"},
    })
    assert res.status_code == 400
    assert res.json()["message"].startswith("notifications.deliverySchedule:")
    settings = client.get(f"/api/settings/teacher/{teacher['id']}").json()["settings"]
    assert settings["general"]["timeLimit"] == 30


def test_reset(client, teacher):
    client.put(f"/api/settings/update/{teacher['id']}", json={"security": {"fullScreenMode": True}})
    res = client.post(f"/api/settings/reset/{teacher['id']}")
    assert res.status_code == 200
    assert res.json()["settings"]["security"]["fullScreenMode"] is False


def test_only_owner_can_update(client, teacher, student):
    headers = auth_header(client, "Student", "ana@school.edu")
    res = client.put(f"/api/settings/update/{teacher['id']}", json={"general": {"timeLimit": 10}}, headers=headers)
    assert res.status_code == 403
