"""
Unit tests for single elimination bracket construction.
"""
import math
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from bracket_engine.elimination import (
    get_round_name,
    get_match_round_name,
    calculate_bracket_size,
    calculate_byes,
    build_bracket,
    build_category_brackets,
    regenerate_bracket,
    has_recorded_results,
    split_roster,
    _generate_bracket_order,
)
from bracket_engine.errors import InsufficientCompetitors, MatchNotPlayable
from bracket_engine.models import BYE, THIRD_PLACE_ROUND, Competitor
from bracket_engine.propagation import record_result
from bracket_engine.summary import count_total_fights, count_total_matches
from conftest import make_competitors


class TestBracketHelpers:
    """Tests for bracket helper functions."""

    def test_get_round_name_final(self):
        """Test round name for 2 competitors (Final)."""
        assert get_round_name(2) == "Final"

    def test_get_round_name_semifinal(self):
        """Test round name for 4 competitors (Semifinal)."""
        assert get_round_name(4) == "Semifinal"

    def test_get_round_name_quarterfinal(self):
        """Test round name for 8 competitors (Quarterfinal)."""
        assert get_round_name(8) == "Quarterfinal"

    def test_get_round_name_round_of_16(self):
        """Test round name for 16 competitors."""
        assert get_round_name(16) == "Round of 16"

    def test_calculate_bracket_size_exact_power(self):
        """Test bracket size for exact power of 2."""
        assert calculate_bracket_size(8) == 8
        assert calculate_bracket_size(16) == 16
        assert calculate_bracket_size(4) == 4

    def test_calculate_bracket_size_not_power(self):
        """Test bracket size rounds up to next power of 2."""
        assert calculate_bracket_size(5) == 8
        assert calculate_bracket_size(7) == 8
        assert calculate_bracket_size(9) == 16
        assert calculate_bracket_size(12) == 16

    def test_calculate_bracket_size_small(self):
        """Test bracket size for small inputs."""
        assert calculate_bracket_size(2) == 2
        assert calculate_bracket_size(3) == 4

    def test_calculate_byes(self):
        """Test byes calculation."""
        assert calculate_byes(8) == 0
        assert calculate_byes(5) == 3
        assert calculate_byes(12) == 4


class TestBracketOrder:
    """Tests for seed line ordering."""

    def test_order_for_4(self):
        """Test 4-position order pairs 1v4 and 3v2."""
        assert _generate_bracket_order(4) == [1, 4, 3, 2]

    def test_order_for_8(self):
        """Test 8-position order."""
        assert _generate_bracket_order(8) == [1, 8, 5, 4, 3, 6, 7, 2]

    def test_order_pairs_sum_to_size_plus_one(self):
        """Test every round 1 pairing is seed k against seed S+1-k."""
        for size in (4, 8, 16, 32):
            order = _generate_bracket_order(size)
            assert sorted(order) == list(range(1, size + 1))
            for i in range(0, size, 2):
                assert order[i] + order[i + 1] == size + 1

    def test_top_seeds_at_top_bottom_and_midpoints(self):
        """Test seed 1 at the top, seed 2 at the bottom, 3 and 4 at the mid-points."""
        order = _generate_bracket_order(16)
        assert order[0] == 1
        assert order[-1] == 2
        assert {order[7], order[8]} == {3, 4}


class TestBuildBracket:
    """Tests for bracket structure."""

    @pytest.mark.parametrize("count", list(range(2, 34)))
    def test_round_and_match_counts(self, count):
        """Test rounds, main tree matches and real fights for every roster size."""
        bracket = build_bracket('cat', make_competitors(count), random_seed=7)
        size = calculate_bracket_size(count)
        assert bracket.bracket_size == size
        assert bracket.total_rounds == math.ceil(math.log2(count))
        assert count_total_matches(bracket) == size - 1
        assert count_total_fights(bracket) == count - 1
        for index in range(1, bracket.total_rounds):
            assert len(bracket.rounds[index]) == len(bracket.rounds[index - 1]) // 2
        assert len(bracket.rounds[-1]) == 1

    @pytest.mark.parametrize("count", [3, 5, 6, 7, 9, 13])
    def test_byes_never_meet(self, count):
        """Test no round 1 match is BYE against BYE."""
        bracket = build_bracket('cat', make_competitors(count), random_seed=1)
        for match in bracket.rounds[0]:
            assert not (match.slot_a == BYE and match.slot_b == BYE)

    def test_byes_resolve_immediately(self, five_competitors):
        """Test a competitor facing a BYE already occupies the round 2 slot."""
        bracket = build_bracket('cat', five_competitors, random_seed=3)
        for index, match in enumerate(bracket.rounds[0]):
            if not match.is_bye():
                assert match.winner_id is None
                continue
            real = match.slot_a if match.slot_b == BYE else match.slot_b
            assert match.winner_id == real
            assert match.loser_id == BYE
            next_match = bracket.get_match(match.next_match_id)
            assert next_match.slots[index % 2] == real

    def test_five_competitor_scenario(self, five_competitors):
        """Test 5 competitors: size 8, 3 byes, 4/2/1 matches, 4 real fights."""
        bracket = build_bracket('cat', five_competitors)
        assert bracket.bracket_size == 8
        assert bracket.participants.count(BYE) == 3
        assert [len(r) for r in bracket.rounds] == [4, 2, 1]
        assert sum(1 for m in bracket.rounds[0] if m.is_completed()) == 3
        assert count_total_fights(bracket) == 4

    def test_links(self, eight_competitors):
        """Test forward and back links are consistent."""
        bracket = build_bracket('cat', eight_competitors, random_seed=1)
        for match in bracket.all_matches():
            if match.next_match_id:
                next_match = bracket.get_match(match.next_match_id)
                assert match.id in next_match.feeder_ids
        assert bracket.final_match.next_match_id is None
        assert bracket.rounds[0][0].feeder_ids == [None, None]

    def test_match_ids_are_prefixed_with_bracket_id(self, eight_competitors):
        """Test match ids are unique and carry the bracket id."""
        bracket = build_bracket('cat', eight_competitors, random_seed=1)
        ids = [m.id for m in bracket.all_matches()]
        assert len(ids) == len(set(ids))
        assert all(i.startswith('cat-M') for i in ids)

    def test_two_competitors(self):
        """Test 2 competitors give a single final and no third place."""
        bracket = build_bracket('cat', make_competitors(2), include_third_place=True)
        assert bracket.total_rounds == 1
        assert bracket.third_place_match is None
        assert get_match_round_name(bracket, bracket.final_match) == "Final"

    def test_insufficient_competitors(self):
        """Test fewer than 2 competitors is rejected."""
        with pytest.raises(InsufficientCompetitors):
            build_bracket('cat', make_competitors(1))
        with pytest.raises(InsufficientCompetitors):
            build_bracket('cat', [])

    def test_duplicate_ids_rejected(self):
        """Test duplicate competitor ids raise ValueError."""
        with pytest.raises(ValueError):
            build_bracket('cat', [Competitor('a'), Competitor('a'), Competitor('b')])

    def test_bye_id_rejected(self):
        """Test the BYE literal cannot be a competitor id."""
        with pytest.raises(ValueError):
            build_bracket('cat', [Competitor(BYE), Competitor('b')])

    def test_same_seed_same_bracket(self, eight_competitors):
        """Test the random seed makes construction reproducible."""
        first = build_bracket('cat', eight_competitors, random_seed=99)
        second = build_bracket('cat', eight_competitors, random_seed=99)
        assert first == second

    def test_random_seed_changes_draw(self, eight_competitors):
        """Test different random seeds produce different draws."""
        draws = {tuple(build_bracket('cat', eight_competitors, random_seed=s).participants) for s in range(20)}
        assert len(draws) > 1

    def test_input_order_does_not_matter(self, eight_competitors):
        """Test the draw depends on the seed, not on the roster order."""
        first = build_bracket('cat', eight_competitors, random_seed=5)
        second = build_bracket('cat', list(reversed(eight_competitors)), random_seed=5)
        assert first.participants == second.participants

    def test_round_names(self, eight_competitors):
        """Test round names for an 8 bracket."""
        bracket = build_bracket('cat', eight_competitors, include_third_place=True, random_seed=1)
        names = [get_match_round_name(bracket, r[0]) for r in bracket.rounds]
        assert names == ["Quarterfinal", "Semifinal", "Final"]
        assert get_match_round_name(bracket, bracket.third_place_match) == "Third Place"


class TestThirdPlace:
    """Tests for the third-place match."""

    def test_four_competitors(self):
        """Test third place is fed by both semifinals and starts empty."""
        bracket = build_bracket('cat', make_competitors(4), include_third_place=True, random_seed=1)
        third = bracket.third_place_match
        assert third.round == THIRD_PLACE_ROUND
        assert third.feeder_ids == [m.id for m in bracket.semifinals]
        assert third.next_match_id is None
        assert third.slots == (None, None)
        assert not third.walkover

    def test_three_competitors_flags_walkover(self):
        """Test a BYE-resolved semifinal sends a BYE and flags the walkover."""
        bracket = build_bracket('cat', make_competitors(3), include_third_place=True, random_seed=1)
        assert bracket.bracket_size == 4
        assert bracket.participants.count(BYE) == 1
        third = bracket.third_place_match
        assert BYE in third.slots
        assert third.walkover
        assert not third.is_completed()

    def test_omitted_when_not_requested(self, eight_competitors):
        """Test no third place by default."""
        bracket = build_bracket('cat', eight_competitors)
        assert bracket.third_place_match is None


class TestSeeding:
    """Tests for seeded placement."""

    def test_seeds_take_classical_lines(self):
        """Test seeds 1-4 land top, bottom and the two mid-points."""
        competitors = make_competitors(8)
        for seed, competitor in enumerate(competitors[:4], start=1):
            competitor.seed = seed
        bracket = build_bracket('cat', competitors, random_seed=11)
        assert bracket.participants[0] == 'c1'
        assert bracket.participants[7] == 'c2'
        assert bracket.participants[4] == 'c3'
        assert bracket.participants[3] == 'c4'

    def test_seeds_placed_by_rank(self):
        """Test seed values are ranked, so seeds 10 and 20 act as lines 1 and 2."""
        competitors = make_competitors(4)
        competitors[2].seed = 10
        competitors[0].seed = 20
        bracket = build_bracket('cat', competitors, random_seed=2)
        assert bracket.participants[0] == 'c3'
        assert bracket.participants[3] == 'c1'

    def test_top_seeds_get_the_byes(self):
        """Test the highest seeds face BYEs when the roster is short."""
        competitors = make_competitors(6)
        competitors[0].seed = 1
        competitors[1].seed = 2
        bracket = build_bracket('cat', competitors, random_seed=4)
        assert bracket.participants[:2] == ['c1', BYE]
        assert bracket.participants[-2:] == [BYE, 'c2']

    def test_extra_seeds_are_unseeded(self):
        """Test only 8 seed lines are honoured."""
        competitors = make_competitors(16)
        for seed, competitor in enumerate(competitors[:10], start=1):
            competitor.seed = seed
        bracket = build_bracket('cat', competitors, random_seed=8)
        order = _generate_bracket_order(16)
        for line in range(1, 9):
            assert bracket.participants[order.index(line)] == f"c{line}"
        assert sorted(bracket.competitor_ids()) == sorted(c.id for c in competitors)


class TestClubSeparation:
    """Tests for spreading club mates across halves."""

    def test_two_clubs_split_evenly(self):
        """Test each half receives the same number of fighters from each club."""
        competitors = make_competitors(8, clubs=['North', 'South'])
        bracket = build_bracket('cat', competitors, random_seed=6, separate_clubs=True)
        club_of = {c.id: c.club for c in competitors}
        top = [club_of[p] for p in bracket.participants[:4]]
        bottom = [club_of[p] for p in bracket.participants[4:]]
        assert top.count('North') == 2 and bottom.count('North') == 2
        assert top.count('South') == 2 and bottom.count('South') == 2

    def test_pair_of_club_mates_in_opposite_halves(self):
        """Test two club mates can only meet in the final."""
        competitors = make_competitors(4)
        competitors[0].club = 'North'
        competitors[1].club = 'North'
        for random_seed in range(10):
            bracket = build_bracket('cat', competitors, random_seed=random_seed, separate_clubs=True)
            top_half = bracket.participants[:2]
            assert ('c1' in top_half) != ('c2' in top_half)

    def test_byes_still_face_real_competitors(self):
        """Test club separation keeps BYEs on the empty seed lines."""
        competitors = make_competitors(5, clubs=['North', 'South'])
        bracket = build_bracket('cat', competitors, random_seed=3, separate_clubs=True)
        for match in bracket.rounds[0]:
            assert not (match.slot_a == BYE and match.slot_b == BYE)
        assert len(bracket.competitor_ids()) == 5


class TestSplitting:
    """Tests for splitting large categories into groups."""

    def test_no_split_when_disabled(self):
        """Test splitting disabled gives one bracket named after the category."""
        brackets = build_category_brackets('cat', make_competitors(10), random_seed=1, max_per_bracket=4)
        assert list(brackets) == ['cat']

    def test_split_into_groups(self):
        """Test 10 competitors with max 4 become groups A, B and C."""
        brackets = build_category_brackets('cat', make_competitors(10), random_seed=1,
                                           splitting_enabled=True, max_per_bracket=4)
        assert sorted(brackets) == ['cat-A', 'cat-B', 'cat-C']
        assert brackets['cat-A'].group_name == 'Group A'
        assert all(b.category_id == 'cat' for b in brackets.values())
        placed = [cid for b in brackets.values() for cid in b.competitor_ids()]
        assert sorted(placed) == sorted(c.id for c in make_competitors(10))

    def test_trailing_single_competitor_merged(self):
        """Test a lone leftover joins the previous group."""
        import random
        groups = split_roster(make_competitors(9), 4, random.Random(1))
        assert [len(g) for g in groups] == [4, 5]

    def test_split_is_reproducible(self):
        """Test splitting with the same seed gives the same groups."""
        first = build_category_brackets('cat', make_competitors(10), random_seed=3,
                                        splitting_enabled=True, max_per_bracket=4)
        second = build_category_brackets('cat', make_competitors(10), random_seed=3,
                                         splitting_enabled=True, max_per_bracket=4)
        assert first == second

    def test_category_needs_two_competitors(self):
        """Test a category with one competitor is rejected."""
        with pytest.raises(InsufficientCompetitors):
            build_category_brackets('cat', make_competitors(1))


class TestRegeneration:
    """Tests for rebuilding a bracket before results."""

    def test_regenerate_keeps_identity(self):
        """Test regeneration keeps id and group and bumps the version."""
        competitors = make_competitors(6)
        bracket = build_bracket('cat', competitors, random_seed=1, bracket_id='cat-A', group_name='Group A')
        rebuilt = regenerate_bracket(bracket, competitors, random_seed=2)
        assert rebuilt.id == 'cat-A'
        assert rebuilt.group_name == 'Group A'
        assert rebuilt.version == bracket.version + 1
        assert sorted(rebuilt.competitor_ids()) == sorted(bracket.competitor_ids())

    def test_regenerate_rejected_after_results(self):
        """Test a bracket with a recorded result cannot be regenerated."""
        competitors = make_competitors(4)
        bracket = build_bracket('cat', competitors, random_seed=1)
        match = bracket.rounds[0][0]
        played = record_result(bracket, match.id, match.slot_a)
        assert not has_recorded_results(bracket)
        assert has_recorded_results(played)
        with pytest.raises(MatchNotPlayable):
            regenerate_bracket(played, competitors)
