"""
Tests for error handling: structured error responses, HTTP status codes,
and the custom exception classes.
"""
from app.core.errors import (
    HabitAlreadyTrackedError,
    NotFoundError,
    QuestAlreadyCompletedError,
    QuestExpiredError,
    StaleProfileError,
    UpstreamAIError,
    UsernameTakenError,
)


# ---------------------------------------------------------------------------
# Unit tests on exception classes
# ---------------------------------------------------------------------------

class TestExceptionClasses:
    def test_not_found_code_is_per_resource(self):
        err = NotFoundError("quest", 7)
        assert err.http_status == 404
        assert err.code == "QUEST_NOT_FOUND"
        assert err.to_dict()["details"] == {"id": "7"}

    def test_quest_conflicts(self):
        assert QuestAlreadyCompletedError(3).http_status == 409
        err = QuestExpiredError(3, "2026-01-01T00:00:00+00:00")
        assert err.code == "QUEST_EXPIRED"
        assert err.details["expires_at"] == "2026-01-01T00:00:00+00:00"

    def test_habit_already_tracked(self):
        err = HabitAlreadyTrackedError(5, "2026-03-01")
        assert err.http_status == 409
        assert "2026-03-01" in err.message

    def test_stale_profile_carries_current_state(self):
        err = StaleProfileError("u1", current_version=4, stats={"level": 2})
        d = err.to_dict()
        assert d["code"] == "STALE_PROFILE"
        assert d["details"] == {"user_id": "u1", "version": 4, "stats": {"level": 2}}

    def test_stale_profile_without_state(self):
        assert StaleProfileError("u1").details == {"user_id": "u1"}

    def test_username_taken(self):
        err = UsernameTakenError("kaelen")
        assert err.http_status == 409
        assert err.details["username"] == "kaelen"

    def test_upstream_ai_error(self):
        err = UpstreamAIError("Oracle timed out.")
        assert err.http_status == 502
        assert "details" not in err.to_dict()


# ---------------------------------------------------------------------------
# Integration tests on HTTP error responses
# ---------------------------------------------------------------------------

class TestValidationErrors:
    def test_missing_field_reports_field_name(self, client):
        r = client.post("/api/habits", json={"name": "Read"})
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "VALIDATION_ERROR"
        fields = [e["field"] for e in body["details"]["errors"]]
        assert "user_id" in fields

    def test_wrong_type(self, client):
        r = client.post("/api/habits/track", json={"user_id": "x", "habit_id": "not-a-number"})
        assert r.status_code == 422
        assert r.json()["details"]["errors"][0]["field"] == "habit_id"

    def test_invalid_json_body(self, client):
        r = client.post(
            "/api/auth/login",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"


class TestErrorEnvelope:
    def test_not_found_envelope(self, client):
        r = client.get("/api/quests/nobody")
        assert r.status_code == 404
        body = r.json()
        assert set(body) == {"code", "message", "details"}
        assert body["code"] == "PROFILE_NOT_FOUND"


class TestHealth:
    def test_health_ok(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"
        assert r.json()["db"] == "ok"
