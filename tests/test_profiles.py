"""
Tests for auth and profiles: registration, login, optimistic updates,
follows, cascading deletion and the leaderboard.
"""
import uuid

from app.models.notification import Notification
from app.models.profile import Profile
from app.models.quest import Quest
from app.models.reward_event import RewardEvent
from app.schemas.stats import UserStats


def _name(prefix: str = "seeker") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:10]}"


class TestRegister:
    def test_register_and_read(self, client):
        name = _name()
        r = client.post("/api/auth/register", json={
            "username": name.upper(),
            "password": "secret123",
            "manifesto": "Truth above all.",
            "originStory": "Born at dawn.",
            "stats": {
                "level": 40, "xp": 9999, "xpToNextLevel": 3,
                "intelligence": 50, "physical": 4, "spiritual": -3, "class": "Mystic",
            },
        })
        assert r.status_code == 201, r.text
        body = r.json()
        assert body["success"] is True
        assert body["username"] == name
        uuid.UUID(body["id"])

        profile = client.get(f"/api/profile/{body['id']}").json()
        stats = profile["stats"]
        assert stats["level"] == 1
        assert stats["xp"] == 0
        assert stats["xpToNextLevel"] == 100
        assert stats["intelligence"] == 10
        assert stats["physical"] == 4
        assert stats["spiritual"] == 0
        assert stats["class"] == "Mystic"
        assert profile["rank"] == "E"
        assert profile["origin_story"] == "Born at dawn."
        assert profile["following"] == []
        assert profile["followersCount"] == 0

    def test_duplicate_username(self, client):
        name = _name()
        payload = {"username": name, "password": "secret123"}
        assert client.post("/api/auth/register", json=payload).status_code == 201
        r = client.post("/api/auth/register", json={**payload, "username": name.upper()})
        assert r.status_code == 409
        assert r.json()["code"] == "USERNAME_TAKEN"

    def test_invalid_username(self, client):
        r = client.post("/api/auth/register", json={"username": "a b!", "password": "secret123"})
        assert r.status_code == 422

    def test_short_password(self, client):
        r = client.post("/api/auth/register", json={"username": _name(), "password": "123"})
        assert r.status_code == 422

    def test_password_over_72_bytes_rejected(self, client):
        for password in ("x" * 73, "\u00e9" * 40):
            r = client.post("/api/auth/register", json={"username": _name(), "password": password})
            assert r.status_code == 422
            body = r.json()
            assert body["code"] == "VALIDATION_ERROR"
            assert [e["field"] for e in body["details"]["errors"]] == ["password"]

    def test_password_of_exactly_72_bytes_accepted(self, client):
        r = client.post("/api/auth/register", json={"username": _name(), "password": "x" * 72})
        assert r.status_code == 201

    def test_non_finite_starting_stats_ignored(self, client):
        r = client.post("/api/auth/register", json={
            "username": _name(),
            "password": "secret123",
            "stats": {"physical": "Infinity", "wealth": "-inf", "intelligence": 4},
        })
        assert r.status_code == 201, r.text
        stats = client.get(f"/api/profile/{r.json()['id']}").json()["stats"]
        assert stats["intelligence"] == 4
        assert stats["physical"] == UserStats().physical
        assert stats["wealth"] == UserStats().wealth

    def test_password_is_hashed(self, client, db):
        name = _name()
        client.post("/api/auth/register", json={"username": name, "password": "secret123"})
        row = db.query(Profile).filter(Profile.username == name).one()
        assert row.password_hash != "secret123"
        assert row.password_hash.startswith("$2")

    def test_check_username(self, client, make_user):
        name = _name()
        assert client.get("/api/check-username", params={"username": name}).json() == {"available": True}
        make_user(username=name)
        assert client.get("/api/check-username", params={"username": name.upper()}).json() == {
            "available": False
        }


class TestLogin:
    def test_login_returns_profile(self, client, make_user):
        name = _name()
        uid = make_user(username=name, password="hunter22")
        r = client.post("/api/auth/login", json={"username": name, "password": "hunter22"})
        assert r.status_code == 200
        assert r.json()["id"] == uid
        assert "password_hash" not in r.json()

    def test_wrong_password(self, client, make_user):
        name = _name()
        make_user(username=name, password="hunter22")
        r = client.post("/api/auth/login", json={"username": name, "password": "nope"})
        assert r.status_code == 401
        assert r.json()["code"] == "INVALID_CREDENTIALS"

    def test_unknown_user(self, client):
        r = client.post("/api/auth/login", json={"username": _name(), "password": "whatever"})
        assert r.status_code == 401

    def test_overlong_password_is_a_plain_mismatch(self, client, make_user):
        name = _name()
        make_user(username=name, password="hunter22")
        r = client.post("/api/auth/login", json={"username": name, "password": "x" * 100})
        assert r.status_code == 401
        assert r.json()["code"] == "INVALID_CREDENTIALS"


class TestUpdateProfile:
    def test_cosmetic_fields_update(self, client, make_user):
        uid = make_user()
        r = client.post(f"/api/profile/{uid}/update", json={
            "avatarUrl": "https://img/a.png",
            "goals": ["read more"],
            "entropy": 3,
        })
        assert r.status_code == 200
        body = r.json()
        assert body["avatar_url"] == "https://img/a.png"
        assert body["goals"] == ["read more"]
        assert body["entropy"] == 3

    def test_daily_tasks_round_trip(self, client, make_user):
        uid = make_user()
        assert client.get(f"/api/profile/{uid}").json()["tasks"] == []
        tasks = [
            {"id": "t1", "text": "Cold shower", "completed": False, "type": "DAILY", "difficulty": "E"},
            {"id": "t2", "text": "Journal", "completed": True, "type": "HABIT", "streak": 4},
        ]
        r = client.post(f"/api/profile/{uid}/update", json={"tasks": tasks})
        assert r.status_code == 200, r.text
        assert r.json()["tasks"] == tasks
        assert client.get(f"/api/profile/{uid}").json()["tasks"] == tasks

        r = client.post(f"/api/profile/{uid}/update", json={"tasks": None})
        assert r.json()["tasks"] == []

    def test_stats_are_not_client_writable(self, client, make_user):
        uid = make_user()
        before = client.get(f"/api/profile/{uid}").json()
        r = client.post(f"/api/profile/{uid}/update", json={
            "stats": {"level": 99, "xp": 0, "intelligence": 999},
            "manifesto": "new words",
        })
        assert r.status_code == 200
        assert r.json()["stats"] == before["stats"]
        assert r.json()["manifesto"] == "new words"

    def test_stale_expected_version(self, client, make_user):
        uid = make_user()
        version = client.get(f"/api/profile/{uid}").json()["version"]
        assert client.post(f"/api/profile/{uid}/update", json={
            "coverUrl": "c1", "expectedVersion": version,
        }).status_code == 200

        r = client.post(f"/api/profile/{uid}/update", json={
            "coverUrl": "c2", "expectedVersion": version,
        })
        assert r.status_code == 409
        body = r.json()
        assert body["code"] == "STALE_PROFILE"
        assert body["details"]["version"] == version + 1
        assert body["details"]["stats"]["level"] == 1
        assert client.get(f"/api/profile/{uid}").json()["cover_url"] == "c1"

    def test_missing_profile(self, client):
        r = client.get("/api/profile/does-not-exist")
        assert r.status_code == 404
        assert r.json()["code"] == "PROFILE_NOT_FOUND"


class TestFollow:
    def test_follow_toggle_and_notification(self, client, db, make_user):
        a, b = make_user(), make_user()
        r = client.post(f"/api/profile/{b}/follow", json={"followerId": a})
        assert r.json() == {"success": True, "isFollowing": True, "followersCount": 1}
        assert client.get(f"/api/profile/{a}").json()["following"] == [b]
        assert db.query(Notification).filter(
            Notification.user_id == b, Notification.type == "FOLLOW"
        ).count() == 1

        r = client.post(f"/api/profile/{b}/follow", json={"followerId": a})
        assert r.json() == {"success": True, "isFollowing": False, "followersCount": 0}

    def test_self_follow_rejected(self, client, make_user):
        a = make_user()
        r = client.post(f"/api/profile/{a}/follow", json={"followerId": a})
        assert r.status_code == 422
        assert r.json()["code"] == "INVALID_ACTION"


class TestDeleteProfile:
    def test_delete_cascades(self, client, db, make_user):
        uid = make_user()
        q = client.post("/api/quests/create", json={"user_id": uid, "text": "x", "difficulty": "E"}).json()
        client.post(f"/api/quests/{q['id']}/complete", json={})
        client.post("/api/posts", json={"author_id": uid, "content": "hello"})

        assert client.delete(f"/api/profile/{uid}").json() == {"success": True}
        assert client.get(f"/api/profile/{uid}").status_code == 404
        db.expire_all()
        assert db.query(Quest).filter(Quest.user_id == uid).count() == 0
        assert db.query(RewardEvent).filter(RewardEvent.user_id == uid).count() == 0

    def test_delete_missing(self, client):
        assert client.delete("/api/profile/ghost").status_code == 404


class TestLeaderboard:
    def test_sorted_by_level_then_attribute(self, client, make_user):
        low = make_user(stats={"wealth": 9})
        high = make_user(stats={"wealth": 8})
        for uid, xp in ((high, 1000), (low, 500)):
            q = client.post("/api/quests/create", json={
                "user_id": uid, "text": "grind", "difficulty": "A", "xp_reward": xp,
            }).json()
            client.post(f"/api/quests/{q['id']}/complete", json={})

        rows = client.get("/api/leaderboard", params={"limit": 100}).json()["items"]
        ids = [r["id"] for r in rows]
        assert ids.index(high) < ids.index(low)
        top = next(r for r in rows if r["id"] == high)
        assert top["level"] == 7
        assert top["class"] == "Initiate"
        assert [r["position"] for r in rows] == list(range(1, len(rows) + 1))

        by_wealth = client.get("/api/leaderboard", params={"sort_by": "wealth", "limit": 100}).json()
        wealth_ids = [r["id"] for r in by_wealth["items"]]
        assert by_wealth["sort_by"] == "wealth"
        assert wealth_ids.index(low) < wealth_ids.index(high)

    def test_ties_break_by_username_ascending(self, client, make_user):
        suffix = uuid.uuid4().hex[:8]
        first = make_user(username=f"aa_tie_{suffix}")
        last = make_user(username=f"zz_tie_{suffix}")
        for uid in (last, first):
            q = client.post("/api/quests/create", json={
                "user_id": uid, "text": "grind", "difficulty": "A", "xp_reward": 999,
            }).json()
            client.post(f"/api/quests/{q['id']}/complete", json={})

        ids = [r["id"] for r in client.get("/api/leaderboard", params={"limit": 100}).json()["items"]]
        assert ids.index(first) == ids.index(last) - 1

    def test_unknown_sort_rejected(self, client):
        assert client.get("/api/leaderboard", params={"sort_by": "charm"}).status_code == 422
