"""
Tests for the ledger: reward normalisation, the looped level-up, the
rank table and the optimistic-lock retry around a unit of work.
"""
import pytest

from app.core.errors import StaleProfileError
from app.db.base import SessionLocal
from app.models.profile import Profile
from app.schemas.stats import UserStats
from app.services.ledger import (
    STALE_RETRY_ATTEMPTS,
    RewardPayload,
    RewardSource,
    apply_reward,
    coerce_int,
    credit_profile,
    get_rank,
    next_threshold,
    normalize_reward,
    normalize_stat_reward,
    run_with_stale_retry,
)


def _stats(**kw) -> UserStats:
    return UserStats(**kw)


class TestApplyReward:
    def test_single_level_up_carries_remainder(self):
        result = apply_reward(_stats(level=1, xp=90, xp_to_next_level=100), RewardPayload(15, {}))
        assert result.stats.level == 2
        assert result.stats.xp == 5
        assert result.stats.xp_to_next_level == 120
        assert result.levels_gained == 1

    def test_large_reward_levels_up_several_times(self):
        result = apply_reward(_stats(level=1, xp=90, xp_to_next_level=100), RewardPayload(250, {}))
        # 340 - 100 = 240 (L2, thr 120); 240 - 120 = 120 (L3, thr 144)
        assert result.stats.level == 3
        assert result.stats.xp == 120
        assert result.stats.xp_to_next_level == 144
        assert result.levels_gained == 2

    def test_exact_threshold_levels_up_to_zero_xp(self):
        result = apply_reward(_stats(xp=0, xp_to_next_level=100), RewardPayload(100, {}))
        assert result.stats.level == 2
        assert result.stats.xp == 0

    @pytest.mark.parametrize("xp", [0, 1, 99, 100, 101, 1000, 5000])
    def test_xp_always_below_threshold(self, xp):
        result = apply_reward(_stats(), RewardPayload(xp, {}))
        assert 0 <= result.stats.xp < result.stats.xp_to_next_level

    def test_zero_reward_changes_nothing(self):
        before = _stats(level=4, xp=30, xp_to_next_level=172)
        result = apply_reward(before, RewardPayload(0, {}))
        assert result.stats == before
        assert result.levels_gained == 0

    def test_attribute_deltas_applied_and_floored_at_zero(self):
        result = apply_reward(
            _stats(intelligence=3, physical=1),
            RewardPayload(0, {"intelligence": 2, "physical": -5}),
        )
        assert result.stats.intelligence == 5
        assert result.stats.physical == 0

    def test_does_not_mutate_input(self):
        before = _stats(xp=90)
        apply_reward(before, RewardPayload(50, {"wealth": 1}))
        assert before.xp == 90
        assert before.wealth == 1


class TestNormalizeReward:
    def test_unknown_keys_dropped(self):
        assert normalize_stat_reward({"charisma": 5, "social": 2}) == {"social": 2}

    def test_non_numeric_values_dropped(self):
        assert normalize_stat_reward({"social": "lots", "wealth": None, "physical": "3"}) == {
            "physical": 3
        }

    def test_deltas_clamped(self):
        assert normalize_stat_reward({"spiritual": 99, "wealth": -99}, max_delta=10) == {
            "spiritual": 10,
            "wealth": -10,
        }

    def test_not_a_dict_is_empty(self):
        assert normalize_stat_reward(["physical"]) == {}

    def test_xp_clamped_to_cap(self):
        assert normalize_reward(10_000, max_xp=1000).xp == 1000

    def test_negative_or_garbage_xp_is_zero(self):
        assert normalize_reward(-50).xp == 0
        assert normalize_reward("a lot").xp == 0

    def test_float_xp_floored(self):
        assert normalize_reward(42.9).xp == 42

    def test_bool_is_not_a_number(self):
        assert coerce_int(True) is None

    @pytest.mark.parametrize("value", ["inf", "-Infinity", " nan ", float("inf")])
    def test_non_finite_numbers_dropped(self, value):
        assert coerce_int(value) is None
        assert normalize_stat_reward({"physical": value}) == {}
        assert normalize_reward(value).xp == 0


class TestRank:
    @pytest.mark.parametrize("level,rank", [
        (1, "E"), (9, "E"), (10, "D"), (19, "D"), (20, "C"), (40, "B"),
        (60, "A"), (79, "A"), (80, "S"), (99, "S"), (100, "NATIONAL"),
    ])
    def test_rank_table(self, level, rank):
        assert get_rank(level) == rank

    def test_threshold_growth_is_floored(self):
        assert next_threshold(100) == 120
        assert next_threshold(120) == 144
        assert next_threshold(144) == 172


class TestUserStatsDocument:
    def test_defaults_round_trip_with_aliases(self):
        doc = UserStats().to_document()
        assert doc["xpToNextLevel"] == 100
        assert doc["class"] == "Initiate"
        assert doc["maxHealth"] == 100

    def test_from_document_ignores_extra_and_floors(self):
        stats = UserStats.from_document({"level": 2.7, "xp": 3, "mood": "calm"})
        assert stats.level == 2

    def test_missing_document_gives_defaults(self):
        assert UserStats.from_document(None) == UserStats()


def _bump_elsewhere(user_id: str) -> None:
    """Commit a profile change from a second session, moving its version on."""
    other = SessionLocal()
    try:
        rival = other.get(Profile, user_id)
        rival.entropy = (rival.entropy or 0) + 1
        other.commit()
    finally:
        other.close()


class TestStaleRetry:
    def test_retries_after_concurrent_write(self, db, make_user):
        uid = make_user()
        calls = []

        def unit():
            calls.append(1)
            profile = db.get(Profile, uid)
            if len(calls) == 1:
                _bump_elsewhere(uid)
            outcome = credit_profile(db, profile, RewardPayload(10, {}), RewardSource.FEAT)
            db.commit()
            return outcome

        outcome = run_with_stale_retry(db, unit, user_id=uid)
        assert len(calls) == 2
        assert outcome.stats.xp == 10
        # 1 at registration, +1 from the rival write, +1 from the credit
        assert outcome.version == 3

        db.expire_all()
        stored = db.get(Profile, uid)
        assert stored.stats["xp"] == 10
        assert stored.entropy == 1

    def test_gives_up_after_every_attempt_goes_stale(self, db, make_user):
        uid = make_user()
        calls = []

        def unit():
            calls.append(1)
            profile = db.get(Profile, uid)
            _bump_elsewhere(uid)
            outcome = credit_profile(db, profile, RewardPayload(10, {}), RewardSource.FEAT)
            db.commit()
            return outcome

        with pytest.raises(StaleProfileError) as exc_info:
            run_with_stale_retry(db, unit, user_id=uid)
        assert len(calls) == STALE_RETRY_ATTEMPTS
        assert exc_info.value.http_status == 409
        assert exc_info.value.code == "STALE_PROFILE"

        db.expire_all()
        assert db.get(Profile, uid).stats["xp"] == 0

