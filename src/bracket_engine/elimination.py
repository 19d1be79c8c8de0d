"""
Single elimination bracket construction.
"""
import logging
import math
import random
import time
from typing import Dict, List, Optional

from .errors import InsufficientCompetitors, MatchNotPlayable
from .models import BYE, THIRD_PLACE_ROUND, Bracket, Competitor, Match

logger = logging.getLogger(__name__)

# Seed lines honoured when placing seeded competitors; extra seeds are
# placed like everybody else.
MAX_SEEDED_POSITIONS = 8
GROUP_LETTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def get_round_name(teams_in_round: int) -> str:
    """Get the name of a round based on number of teams."""
    if teams_in_round == 2:
        return "Final"
    elif teams_in_round == 4:
        return "Semifinal"
    elif teams_in_round == 8:
        return "Quarterfinal"
    else:
        return f"Round of {teams_in_round}"


def get_match_round_name(bracket: Bracket, match: Match) -> str:
    """Round name for a match of the given bracket."""
    if match.round == THIRD_PLACE_ROUND:
        return "Third Place"
    teams_in_round = bracket.bracket_size // (2 ** (match.round - 1))
    return get_round_name(teams_in_round)


def calculate_bracket_size(num_teams: int) -> int:
    """Calculate the bracket size (next power of 2)."""
    if num_teams <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_teams))


def calculate_byes(num_teams: int) -> int:
    """Calculate number of byes needed."""
    bracket_size = calculate_bracket_size(num_teams)
    return bracket_size - num_teams


def _generate_bracket_order(bracket_size: int) -> List[int]:
    """
    Generate the seed line of every bracket position, top to bottom.

    Seed 1 sits at the top, seed 2 at the bottom and seeds 3 and 4 at the
    two mid-points, so if all higher seeds win they meet in the proper rounds.

    For 8 positions: [1, 8, 5, 4, 3, 6, 7, 2]
    This gives matchups: 1v8, 5v4, 3v6, 7v2
    """
    if bracket_size == 1:
        return [1]
    if bracket_size == 2:
        return [1, 2]

    half_order = _generate_bracket_order(bracket_size // 2)

    # Each seed is paired with its complement; odd pairs are mirrored so the
    # lower seed of the pair stays on the outside of its half.
    result = []
    for index, seed in enumerate(half_order):
        complement = bracket_size + 1 - seed
        if index % 2 == 0:
            result.extend([seed, complement])
        else:
            result.extend([complement, seed])

    return result


def get_seed_positions(bracket_size: int) -> List[int]:
    """Bracket position (0-indexed) of every seed line, by seed line."""
    positions = [0] * bracket_size
    for position, seed_line in enumerate(_generate_bracket_order(bracket_size)):
        positions[seed_line - 1] = position
    return positions


def _spread_clubs(competitors: List[Competitor], open_positions: List[int],
                  bracket_size: int, rng: random.Random) -> Dict[int, Competitor]:
    """
    Place competitors so that team mates land in opposite bracket halves.

    Clubs with more than one entrant are distributed first (largest first),
    alternating top and bottom halves; single entrants fill what is left.
    """
    by_club: Dict[str, List[Competitor]] = {}
    solitary = []
    for competitor in competitors:
        if competitor.club:
            by_club.setdefault(competitor.club, []).append(competitor)
        else:
            solitary.append(competitor)

    clubs = []
    for club_name, members in by_club.items():
        if len(members) > 1:
            clubs.append((club_name, members))
        else:
            solitary.extend(members)
    clubs.sort(key=lambda item: (-len(item[1]), item[0]))

    pivot = bracket_size // 2
    top = [p for p in open_positions if p < pivot]
    bottom = [p for p in open_positions if p >= pivot]
    rng.shuffle(top)
    rng.shuffle(bottom)

    placement = {}
    for club_name, members in clubs:
        for index, competitor in enumerate(members):
            first, second = (top, bottom) if index % 2 == 0 else (bottom, top)
            halves = first if first else second
            placement[halves.pop()] = competitor
        logger.debug("Spread %d competitors of %s across both halves", len(members), club_name)

    remaining = sorted(top + bottom)
    for position, competitor in zip(remaining, solitary):
        placement[position] = competitor

    return placement


def place_competitors(competitors: List[Competitor], bracket_size: int,
                      rng: random.Random, separate_clubs: bool = False) -> List[str]:
    """
    Lay out round 1: one competitor id or BYE per bracket position.

    Seeded competitors (sorted by seed) take the classical seed lines, the
    shuffled remainder fills the following seed lines, and the lines beyond
    the roster size stay empty and become BYEs. Empty lines always face a
    real competitor.
    """
    seeded = sorted((c for c in competitors if c.seed is not None), key=lambda c: (c.seed, c.id))
    capacity = min(bracket_size, MAX_SEEDED_POSITIONS)
    placed_seeds = seeded[:capacity]
    if len(seeded) > capacity:
        logger.info("%d seeded competitors exceed the %d seed positions; placing them unseeded",
                    len(seeded) - capacity, capacity)

    unseeded = sorted((c for c in competitors if c.seed is None), key=lambda c: c.id)
    unseeded.extend(seeded[capacity:])
    rng.shuffle(unseeded)

    seed_positions = get_seed_positions(bracket_size)
    slots: List[Optional[str]] = [None] * bracket_size
    for line, competitor in enumerate(placed_seeds):
        slots[seed_positions[line]] = competitor.id

    open_positions = seed_positions[len(placed_seeds):len(competitors)]
    if separate_clubs:
        placement = _spread_clubs(unseeded, open_positions, bracket_size, rng)
    else:
        placement = dict(zip(open_positions, unseeded))
    for position, competitor in placement.items():
        slots[position] = competitor.id

    return [slot if slot is not None else BYE for slot in slots]


def _resolve_bye(match: Match):
    """Resolve a match decided by a BYE; returns the advancing slot value or None."""
    a, b = match.slot_a, match.slot_b
    if a == BYE and b == BYE:
        match.winner_id, match.loser_id = BYE, BYE
    elif a == BYE and b is not None:
        match.winner_id, match.loser_id = b, BYE
    elif b == BYE and a is not None:
        match.winner_id, match.loser_id = a, BYE
    return match.winner_id


def _build_rounds(bracket_id: str, participants: List[str]) -> List[List[Match]]:
    rounds = []
    current = list(participants)
    round_number = 1
    match_counter = 0

    while len(current) > 1:
        round_matches = []
        advancing = []
        for i in range(0, len(current), 2):
            match_counter += 1
            match = Match(
                id=f"{bracket_id}-M{match_counter}",
                round=round_number,
                position=i // 2 + 1,
                slot_a=current[i],
                slot_b=current[i + 1],
            )
            advancing.append(_resolve_bye(match))
            round_matches.append(match)
        rounds.append(round_matches)
        current = advancing
        round_number += 1

    # Link every match to the one consuming its winner
    for round_index in range(len(rounds) - 1):
        next_round = rounds[round_index + 1]
        for index, match in enumerate(rounds[round_index]):
            next_match = next_round[index // 2]
            match.next_match_id = next_match.id
            next_match.feeder_ids[index % 2] = match.id

    return rounds


def _build_third_place_match(bracket_id: str, rounds: List[List[Match]]) -> Match:
    semifinals = rounds[-2]
    match_count = sum(len(r) for r in rounds)
    match = Match(
        id=f"{bracket_id}-M{match_count + 1}",
        round=THIRD_PLACE_ROUND,
        position=1,
        feeder_ids=[semifinals[0].id, semifinals[1].id],
    )
    # A semifinal decided by a BYE has no real loser to send here
    for index, semifinal in enumerate(semifinals):
        if semifinal.is_completed():
            match.set_slot(index, semifinal.loser_id)
    match.walkover = match.is_bye()
    return match


def build_bracket(category_id: str, competitors: List[Competitor],
                  include_third_place: bool = False, random_seed: Optional[int] = None,
                  separate_clubs: bool = False, bracket_id: Optional[str] = None,
                  group_name: Optional[str] = None) -> Bracket:
    """
    Build a seeded single elimination bracket for one category.

    Round 1 byes are resolved immediately and their winners already occupy
    the round 2 slots. The third-place match is only added when the bracket
    has semifinals.
    """
    bracket_id = bracket_id or category_id
    num_competitors = len(competitors)
    if num_competitors < 2:
        raise InsufficientCompetitors(num_competitors, category_id)

    ids = [c.id for c in competitors]
    if len(set(ids)) != len(ids):
        raise ValueError(f"Duplicate competitor ids in {bracket_id}")
    if BYE in ids:
        raise ValueError(f"'{BYE}' is reserved and cannot be used as a competitor id")

    if random_seed is None:
        random_seed = int(time.time() * 1000)
    rng = random.Random(random_seed)

    bracket_size = calculate_bracket_size(num_competitors)
    participants = place_competitors(competitors, bracket_size, rng, separate_clubs)
    rounds = _build_rounds(bracket_id, participants)

    third_place_match = None
    if include_third_place and len(rounds) >= 2:
        third_place_match = _build_third_place_match(bracket_id, rounds)

    logger.info("Built bracket %s: %d competitors, size %d, %d byes, %d rounds%s",
                bracket_id, num_competitors, bracket_size, calculate_byes(num_competitors),
                len(rounds), " + third place" if third_place_match else "")
    logger.debug("Bracket %s random seed %s", bracket_id, random_seed)

    return Bracket(
        id=bracket_id,
        category_id=category_id,
        bracket_size=bracket_size,
        rounds=rounds,
        participants=participants,
        third_place_match=third_place_match,
        group_name=group_name,
    )


def split_roster(competitors: List[Competitor], max_per_bracket: int,
                 rng: random.Random) -> List[List[Competitor]]:
    """
    Split a roster into groups of at most max_per_bracket competitors.

    A trailing group of a single competitor is merged into the previous one.
    """
    shuffled = sorted(competitors, key=lambda c: c.id)
    rng.shuffle(shuffled)
    groups = [shuffled[i:i + max_per_bracket] for i in range(0, len(shuffled), max_per_bracket)]
    if len(groups) > 1 and len(groups[-1]) == 1:
        groups[-2].extend(groups.pop())
    return groups


def build_category_brackets(category_id: str, competitors: List[Competitor],
                            include_third_place: bool = False, random_seed: Optional[int] = None,
                            separate_clubs: bool = False, splitting_enabled: bool = False,
                            max_per_bracket: Optional[int] = None) -> Dict[str, Bracket]:
    """
    Build every bracket for a category, splitting oversized rosters into groups.

    Returns dict of bracket_id -> Bracket. Split brackets get ids
    "<category>-A", "<category>-B", ... and group names "Group A", ...
    """
    if len(competitors) < 2:
        raise InsufficientCompetitors(len(competitors), category_id)

    if not (splitting_enabled and max_per_bracket and max_per_bracket > 1
            and len(competitors) > max_per_bracket):
        bracket = build_bracket(category_id, competitors, include_third_place,
                                random_seed, separate_clubs)
        return {bracket.id: bracket}

    if random_seed is None:
        random_seed = int(time.time() * 1000)
    rng = random.Random(random_seed)
    groups = split_roster(competitors, max_per_bracket, rng)
    logger.info("Splitting %s into %d brackets of at most %d", category_id, len(groups), max_per_bracket)

    brackets = {}
    for index, group in enumerate(groups):
        suffix = GROUP_LETTERS[index] if index < len(GROUP_LETTERS) else str(index + 1)
        bracket = build_bracket(
            category_id, group, include_third_place,
            random_seed=rng.randrange(2 ** 31),
            separate_clubs=separate_clubs,
            bracket_id=f"{category_id}-{suffix}",
            group_name=f"Group {suffix}",
        )
        brackets[bracket.id] = bracket
    return brackets


def has_recorded_results(bracket: Bracket) -> bool:
    """True once any real (non-BYE) match has a winner."""
    return any(m.is_completed() and not m.is_bye() for m in bracket.all_matches())


def regenerate_bracket(bracket: Bracket, competitors: List[Competitor],
                       include_third_place: bool = False, random_seed: Optional[int] = None,
                       separate_clubs: bool = False) -> Bracket:
    """
    Rebuild a bracket from its own participants, keeping its id and group.

    Only allowed before any result has been recorded.
    """
    if has_recorded_results(bracket):
        raise MatchNotPlayable(f"Bracket {bracket.id} already has results; it cannot be regenerated")

    by_id = {c.id: c for c in competitors}
    missing = [cid for cid in bracket.competitor_ids() if cid not in by_id]
    if missing:
        raise ValueError(f"Unknown competitors for bracket {bracket.id}: {', '.join(missing)}")

    rebuilt = build_bracket(
        bracket.category_id,
        [by_id[cid] for cid in bracket.competitor_ids()],
        include_third_place, random_seed, separate_clubs,
        bracket_id=bracket.id,
        group_name=bracket.group_name,
    )
    rebuilt.version = bracket.version + 1
    return rebuilt
