"""
Match result propagation.

Every operation takes a bracket and returns a new bracket version; the input
is never modified, and a rejected operation leaves no trace.

Recording a result is single-step: the winner fills exactly one downstream
slot (plus the third-place slot for a semifinal loser) and nothing is
resolved further. Overturning a result requires an explicit retract first.
"""
import copy
import logging
from typing import Optional

from .errors import InvalidResult, MatchNotPlayable
from .models import BYE, RESULT_TYPES, Bracket, Match

logger = logging.getLogger(__name__)


def _find_match(bracket: Bracket, match_id: str) -> Match:
    match = bracket.get_match(match_id)
    if match is None:
        raise InvalidResult(f"Unknown match {match_id} in bracket {bracket.id}")
    return match


def _fill_slot(target: Match, feeder_id: str, value):
    target.set_slot(target.feeder_ids.index(feeder_id), value)
    target.walkover = target.is_bye() and not target.is_completed()


def _apply(bracket: Bracket, match: Match, winner_id: str, loser_id: str, result: dict):
    match.winner_id = winner_id
    match.loser_id = loser_id
    match.result = result

    if match.next_match_id:
        _fill_slot(bracket.get_match(match.next_match_id), match.id, winner_id)
    elif match.is_third_place:
        bracket.third_place_winner_id = winner_id
    else:
        bracket.winner_id = winner_id
        bracket.runner_up_id = loser_id
        logger.info("Bracket %s decided: winner %s, runner-up %s", bracket.id, winner_id, loser_id)

    third_place = bracket.third_place_match
    if third_place is not None and match.id in third_place.feeder_ids:
        _fill_slot(third_place, match.id, loser_id)


def record_result(bracket: Bracket, match_id: str, winner_id: str, loser_id: Optional[str] = None,
                  result_type: Optional[str] = None, details: Optional[str] = None) -> Bracket:
    """
    Record the outcome of a playable match and advance the winner.

    Re-recording the winner already stored is a no-op. A different winner is
    rejected with MatchNotPlayable; retract the old result first.
    """
    match = _find_match(bracket, match_id)

    if not winner_id or winner_id == BYE or loser_id == BYE:
        raise InvalidResult(f"A BYE cannot win or lose match {match_id}")
    if result_type is not None and result_type not in RESULT_TYPES:
        raise InvalidResult(f"Unknown result type {result_type!r}")
    entrants = bracket.competitor_ids()
    for competitor_id in (winner_id, loser_id):
        if competitor_id is not None and competitor_id not in entrants:
            raise InvalidResult(f"{competitor_id} is not drawn in bracket {bracket.id}")
    if match.is_pending():
        raise MatchNotPlayable(f"Match {match_id} is still waiting for its competitors")
    if match.is_bye():
        raise MatchNotPlayable(f"Match {match_id} has a BYE side; it cannot take a fought result")
    if winner_id not in match.slots:
        raise InvalidResult(f"{winner_id} is not competing in match {match_id}")

    expected_loser = match.slot_b if winner_id == match.slot_a else match.slot_a
    if loser_id is not None and loser_id != expected_loser:
        raise InvalidResult(f"{loser_id} cannot lose match {match_id} to {winner_id}")

    if match.is_completed():
        if match.winner_id == winner_id:
            logger.debug("Match %s already won by %s; nothing to do", match_id, winner_id)
            return copy.deepcopy(bracket)
        raise MatchNotPlayable(
            f"Match {match_id} already won by {match.winner_id}; retract it before recording a new result"
        )

    updated = copy.deepcopy(bracket)
    target = updated.get_match(match_id)
    result = {'type': result_type, 'details': details} if result_type or details else None
    _apply(updated, target, winner_id, expected_loser, result)
    updated.version += 1

    logger.info("Recorded %s: %s beat %s", match_id, winner_id, expected_loser)
    return updated


def _retract(bracket: Bracket, match: Match):
    match.winner_id = None
    match.loser_id = None
    match.result = None

    if match.next_match_id:
        next_match = bracket.get_match(match.next_match_id)
        if next_match.is_completed():
            _retract(bracket, next_match)
        _fill_slot(next_match, match.id, None)
    elif match.is_third_place:
        bracket.third_place_winner_id = None
    else:
        bracket.winner_id = None
        bracket.runner_up_id = None

    third_place = bracket.third_place_match
    if third_place is not None and match.id in third_place.feeder_ids:
        if third_place.is_completed():
            _retract(bracket, third_place)
        _fill_slot(third_place, match.id, None)

    logger.debug("Cleared result of %s", match.id)


def retract_result(bracket: Bracket, match_id: str) -> Bracket:
    """
    Clear a recorded result and everything that depended on it.

    Downstream matches that consumed the old winner, and the third-place
    match that consumed the old loser, are retracted recursively and their
    slots cleared. Results decided by a BYE at construction cannot be retracted.
    """
    match = _find_match(bracket, match_id)
    if not match.is_completed():
        raise MatchNotPlayable(f"Match {match_id} has no result to retract")
    if match.is_bye() and not match.result:
        raise InvalidResult(f"Match {match_id} was decided by a BYE and cannot be retracted")

    updated = copy.deepcopy(bracket)
    _retract(updated, updated.get_match(match_id))
    updated.version += 1

    logger.info("Retracted result of %s", match_id)
    return updated


def award_walkover(bracket: Bracket, match_id: str, details: Optional[str] = None) -> Bracket:
    """Resolve a flagged walkover match in favour of its only real entrant."""
    match = _find_match(bracket, match_id)
    if match.is_completed():
        raise MatchNotPlayable(f"Match {match_id} already has a result")
    if match.is_pending():
        raise MatchNotPlayable(f"Match {match_id} is still waiting for its competitors")

    entrants = [slot for slot in match.slots if slot != BYE]
    if not match.walkover or len(entrants) != 1:
        raise InvalidResult(f"Match {match_id} is not a walkover")

    updated = copy.deepcopy(bracket)
    target = updated.get_match(match_id)
    _apply(updated, target, entrants[0], BYE, {'type': 'walkover', 'details': details})
    target.walkover = True
    updated.version += 1

    logger.info("Awarded walkover in %s to %s", match_id, entrants[0])
    return updated
