"""
Tests for the evening lineup planner.

Covers sizing, filtering, ranking, light-to-bold ordering and the
bridge-bottle repair of jarring power jumps.
"""

import pytest

from cellarwise.lineup import LineupOrderer, target_bottle_count
from cellarwise.schema import FoodProfile


@pytest.fixture
def orderer():
    return LineupOrderer(min_rating=0.0, max_power_jump=3)


@pytest.fixture
def power_profiles(make_profile):
    """Profiles with known power: 2, 5, 7 and 9."""
    return {
        2: make_profile(body=1, tannin=1, acidity=0, oak=0),
        5: make_profile(body=2, tannin=2, acidity=0, oak=2),
        7: make_profile(body=2, tannin=2, acidity=5, oak=2),
        9: make_profile(body=5, tannin=4, acidity=1, oak=2),
    }


def slot_ids(slots):
    return [slot.bottle.bottle_id for slot in slots]


class TestTargetCount:
    """One bottle per two guests, between 2 and 6."""

    @pytest.mark.parametrize("seats, expected", [
        (0, 2), (1, 2), (3, 2), (4, 2), (5, 3), (8, 4), (11, 6), (12, 6), (40, 6), (-3, 2),
    ])
    def test_clamped(self, seats, expected):
        assert target_bottle_count(seats) == expected


class TestPowerProfiles:
    """Sanity check for the fixture powers."""

    def test_fixture_powers(self, power_profiles):
        for power, profile in power_profiles.items():
            assert profile.power == power


class TestSelection:
    """Filtering and ranking."""

    def test_out_of_stock_and_low_rated_excluded(self, make_bottle, make_profile):
        pool = [
            make_bottle("a", rating=4.0, quantity=0),
            make_bottle("b", rating=2.0),
            make_bottle("c", rating=None),
            make_bottle("d", rating=4.5),
            make_bottle("e", rating=3.5),
        ]
        slots = LineupOrderer(min_rating=3.0).order(pool, None, 4)
        assert sorted(slot_ids(slots)) == ["d", "e"]

    def test_rating_at_threshold_is_kept(self, make_bottle):
        pool = [make_bottle("edge", rating=3.0), make_bottle("below", rating=2.99)]
        slots = LineupOrderer(min_rating=3.0).order(pool, None, 2)
        assert slot_ids(slots) == ["edge"]

    def test_unrated_bottles_count_as_zero(self, make_bottle):
        slots = LineupOrderer(min_rating=0.0).order([make_bottle("a", rating=None)], None, 2)
        assert slot_ids(slots) == ["a"]

    def test_best_pairing_wins(self, make_bottle, make_profile):
        """Beef in rich sauce prefers the tannic red over the light white."""
        food = FoodProfile(protein="beef", sauce="rich")
        pool = [
            make_bottle("light", profile=make_profile(body=1, tannin=0, acidity=2, oak=0), rating=5.0),
            make_bottle("tannic", profile=make_profile(body=5, tannin=5, acidity=4, oak=3), rating=3.0),
            make_bottle("middle", profile=make_profile(body=4, tannin=4, acidity=3, oak=2), rating=3.0),
        ]
        slots = LineupOrderer().order(pool, food, 4)
        assert sorted(slot_ids(slots)) == ["middle", "tannic"]

    def test_one_bottle_per_wine(self, make_bottle):
        pool = [
            make_bottle("a1", wine_id="w1", rating=4.8),
            make_bottle("a2", wine_id="w1", rating=4.8),
            make_bottle("b", wine_id="w2", rating=4.0),
            make_bottle("c", wine_id="w3", rating=3.0),
        ]
        slots = LineupOrderer().order(pool, None, 6)
        wine_ids = [slot.bottle.wine_id for slot in slots]
        assert len(wine_ids) == len(set(wine_ids)) == 3

    def test_pool_smaller_than_target(self, make_bottle):
        slots = LineupOrderer().order([make_bottle("only")], None, 12)
        assert slot_ids(slots) == ["only"]

    def test_empty_pool(self, orderer):
        plan = orderer.plan([], FoodProfile(protein="fish"), 6)
        assert plan.slots == []
        assert plan.target_count == 3


class TestOrdering:
    """Light to bold."""

    def test_ascending_power(self, orderer, make_bottle, power_profiles):
        pool = [
            make_bottle("bold", profile=power_profiles[9]),
            make_bottle("light", profile=power_profiles[2]),
            make_bottle("mid", profile=power_profiles[5]),
            make_bottle("upper", profile=power_profiles[7]),
        ]
        slots = orderer.order(pool, None, 8)
        powers = [slot.power for slot in slots]
        assert powers == sorted(powers)
        assert slot_ids(slots) == ["light", "mid", "upper", "bold"]

    def test_equal_power_breaks_on_rating_then_id(self, orderer, make_bottle, power_profiles):
        pool = [
            make_bottle("b", profile=power_profiles[5], rating=4.0),
            make_bottle("a", profile=power_profiles[5], rating=4.0),
            make_bottle("c", profile=power_profiles[5], rating=4.5),
        ]
        assert slot_ids(orderer.order(pool, None, 6)) == ["c", "a", "b"]

    def test_slots_carry_labels_and_positions(self, orderer, make_bottle, power_profiles):
        pool = [make_bottle("x", profile=power_profiles[2]), make_bottle("y", profile=power_profiles[5])]
        slots = orderer.order(pool, None, 4)
        assert [slot.position for slot in slots] == [1, 2]
        assert [slot.label for slot in slots] == ["Warm-up", "Mid"]
        assert all(slot.explanation for slot in slots)

    def test_missing_profile_is_estimated(self, orderer, make_bottle):
        pool = [make_bottle("n", grapes=["Nebbiolo"], color="red"), make_bottle("u", grapes=[])]
        slots = orderer.order(pool, FoodProfile(protein="lamb"), 4)
        assert len(slots) == 2
        assert all(slot.bottle.profile is not None for slot in slots)


class TestJarringRepair:
    """Bridge bottles smooth out big power jumps."""

    def test_bridge_replaces_lowest_ranked_pick(self, orderer, make_bottle, power_profiles):
        """2 -> 9 is jarring; the power-5 bridge replaces the weaker pick."""
        pool = [
            make_bottle("light", profile=power_profiles[2], rating=4.5),
            make_bottle("bold", profile=power_profiles[9], rating=4.4),
            make_bottle("bridge", profile=power_profiles[5], rating=3.0),
        ]
        plan = orderer.plan(pool, None, 4)
        assert slot_ids(plan.slots) == ["light", "bridge"]
        assert plan.swaps == 1
        assert not plan.best_effort

    def test_best_effort_when_no_bridge(self, orderer, make_bottle, power_profiles):
        pool = [
            make_bottle("light", profile=power_profiles[2], rating=4.5),
            make_bottle("bold", profile=power_profiles[9], rating=4.4),
        ]
        plan = orderer.plan(pool, None, 4)
        assert slot_ids(plan.slots) == ["light", "bold"]
        assert plan.best_effort
        assert plan.jarring_pairs == [("light", "bold")]

    def test_bridge_outside_gap_is_ignored(self, orderer, make_bottle, power_profiles):
        pool = [
            make_bottle("light", profile=power_profiles[2], rating=4.5),
            make_bottle("bold", profile=power_profiles[9], rating=4.4),
            make_bottle("other", profile=power_profiles[2], wine_id="w-other", rating=1.0),
        ]
        plan = orderer.plan(pool, None, 4)
        assert plan.swaps == 0
        assert plan.best_effort

    def test_smooth_lineup_needs_no_repair(self, orderer, make_bottle, power_profiles):
        pool = [
            make_bottle("a", profile=power_profiles[5], rating=4.5),
            make_bottle("b", profile=power_profiles[7], rating=4.4),
            make_bottle("c", profile=power_profiles[2], rating=1.0),
        ]
        plan = orderer.plan(pool, None, 4)
        assert plan.swaps == 0
        assert plan.jarring_pairs == []
