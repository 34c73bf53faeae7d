def test_models_catalog(client):
    data = client.get("/api/models").json()

    assert data["defaultChatModel"] == "gemini-2-0-flash"
    ids = [m["id"] for m in data["models"]]
    assert "deepseek-r1" in ids
    deepseek = next(m for m in data["models"] if m["id"] == "deepseek-r1")
    assert deepseek["supportsTools"] is False


def test_writing_styles(client):
    styles = {s["name"]: s for s in client.get("/api/writing-styles").json()}

    assert set(styles) == {"Normal", "Concise", "Explanatory", "Formal"}
    assert len(styles["Concise"]["tools"]) < len(styles["Normal"]["tools"])


def test_preferences_default_then_update(client, auth_headers):
    initial = client.get("/api/preferences", headers=auth_headers).json()
    updated = client.put(
        "/api/preferences",
        json={"selectedChatModel": "claude-3-7", "selectedWritingStyle": "Formal"},
        headers=auth_headers,
    )
    partial = client.put("/api/preferences", json={"selectedWritingStyle": "Concise"}, headers=auth_headers)

    assert initial == {"selectedChatModel": "gemini-2-0-flash", "selectedWritingStyle": "Normal"}
    assert updated.json() == {"selectedChatModel": "claude-3-7", "selectedWritingStyle": "Formal"}
    assert partial.json() == {"selectedChatModel": "claude-3-7", "selectedWritingStyle": "Concise"}


def test_preferences_reject_unknown_values(client, auth_headers):
    assert client.put("/api/preferences", json={"selectedChatModel": "gpt-404"}, headers=auth_headers).status_code == 400
    assert client.put("/api/preferences", json={"selectedWritingStyle": "Shouty"}, headers=auth_headers).status_code == 400


def test_preferences_require_login(client):
    assert client.get("/api/preferences").status_code == 401


def test_health_without_redis(client):
    assert client.get("/api/health").json() == {"status": "ok", "redis": "unavailable"}
