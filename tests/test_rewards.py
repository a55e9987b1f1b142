"""
Tests for oracle-judged reward sources: feats (achievements) and mirror
dilemma choices. Oracle output is untrusted and must be clamped.
"""
import json

from app.models.reward_event import RewardEvent


class TestFeats:
    def test_feat_credits_and_records_achievement(self, client, oracle, make_user):
        uid = make_user()
        oracle.push(json.dumps({
            "xpGained": 120,
            "statsIncreased": {"physical": 2, "charisma": 4},
            "systemMessage": "Your legs remember this day.",
        }))
        r = client.post("/api/achievements/calculate", json={"userId": uid, "text": "Ran a marathon"})
        assert r.status_code == 200, r.text
        body = r.json()
        assert body["xpGained"] == 120
        assert body["statsIncreased"] == {"physical": 2}
        assert body["systemMessage"] == "Your legs remember this day."
        assert body["stats"]["level"] == 2
        assert body["stats"]["physical"] == 4
        assert body["leveledUp"] is True

        achievements = client.get(f"/api/achievements/{uid}").json()
        assert len(achievements) == 1
        assert achievements[0]["title"] == "Great Feat Logged"
        assert achievements[0]["description"] == "Ran a marathon"
        assert achievements[0]["icon"] == "🏆"

    def test_absurd_oracle_reward_is_clamped(self, client, oracle, make_user):
        uid = make_user()
        oracle.push('{"xpGained": 99999999, "statsIncreased": {"wealth": 500}, "systemMessage": "!"}')
        body = client.post("/api/achievements/calculate", json={"userId": uid, "text": "Won"}).json()
        assert body["xpGained"] == 1000
        assert body["statsIncreased"] == {"wealth": 10}
        assert 0 <= body["stats"]["xp"] < body["stats"]["xpToNextLevel"]

    def test_non_finite_oracle_numbers_credit_nothing(self, client, oracle, make_user):
        uid = make_user()
        oracle.push(
            '{"xpGained": "Infinity", "statsIncreased": {"wealth": "Infinity", "physical": "-inf"}, '
            '"systemMessage": "Boundless."}',
            '{"xpGained": Infinity, "statsIncreased": {"social": Infinity}, "systemMessage": "Again."}',
        )
        for text in ("Became a god", "Did it twice"):
            r = client.post("/api/achievements/calculate", json={"userId": uid, "text": text})
            assert r.status_code == 200, r.text
            body = r.json()
            assert body["xpGained"] == 0
            assert body["statsIncreased"] == {}
            assert body["stats"]["xp"] == 0
            assert body["stats"]["wealth"] == 1

    def test_fallback_when_oracle_fails(self, client, oracle, make_user):
        uid = make_user()
        oracle.fail = True
        body = client.post("/api/achievements/calculate", json={"userId": uid, "text": "Read a book"}).json()
        assert body["xpGained"] == 10
        assert body["statsIncreased"] == {}
        assert body["systemMessage"] == "The void acknowledges your effort."
        assert body["stats"]["xp"] == 10

    def test_unknown_user(self, client):
        r = client.post("/api/achievements/calculate", json={"userId": "ghost", "text": "x"})
        assert r.status_code == 404

    def test_each_feat_logged_in_reward_events(self, client, db, oracle, make_user):
        uid = make_user()
        oracle.fail = True
        client.post("/api/achievements/calculate", json={"userId": uid, "text": "a"})
        client.post("/api/achievements/calculate", json={"userId": uid, "text": "b"})
        assert db.query(RewardEvent).filter(
            RewardEvent.user_id == uid, RewardEvent.source == "feat"
        ).count() == 2


class TestMirror:
    def test_choice_with_artifact(self, client, oracle, make_user):
        uid = make_user()
        oracle.push(json.dumps({
            "outcome": "You chose mercy.",
            "statChange": {"xp": 30, "spiritual": 2, "luck": 9},
            "reward": {"name": "Shard of Dawn", "description": "Warm", "rarity": "epic",
                       "effect": "+1 calm", "icon": "🌅"},
        }))
        r = client.post("/api/ai/mirror/evaluate", json={
            "userId": uid, "situation": "A thief begs.", "choice": "A", "testedStat": "spiritual",
        })
        assert r.status_code == 200, r.text
        body = r.json()
        assert body["outcome"] == "You chose mercy."
        assert body["statChange"] == {"xp": 30, "spiritual": 2}
        assert body["stats"]["xp"] == 30
        assert body["stats"]["spiritual"] == 3
        assert body["reward"]["name"] == "Shard of Dawn"
        assert body["reward"]["rarity"] == "COMMON"
        assert body["reward"]["id"]
        assert isinstance(body["reward"]["dateAcquired"], int)

        inventory = client.get(f"/api/profile/{uid}").json()["inventory"]
        assert [item["name"] for item in inventory] == ["Shard of Dawn"]

    def test_fallback_judgement(self, client, oracle, make_user):
        uid = make_user()
        oracle.fail = True
        body = client.post("/api/ai/mirror/evaluate", json={
            "userId": uid, "situation": "x", "choice": "B",
        }).json()
        assert body["outcome"] == "Fate ripples."
        assert body["statChange"] == {"xp": 10}
        assert body["reward"] is None
        assert client.get(f"/api/profile/{uid}").json()["inventory"] == []

    def test_invalid_choice(self, client, make_user):
        r = client.post("/api/ai/mirror/evaluate", json={
            "userId": make_user(), "situation": "x", "choice": "C",
        })
        assert r.status_code == 422
