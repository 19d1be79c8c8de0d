"""
Read-only views over brackets: status, fight counters, placings and
per-mat progress.
"""
from typing import Dict, List, Optional

from .models import BYE, Bracket, Category, Match
from .scheduling import get_mat_names, group_brackets_by_category, is_schedulable, order_bracket_matches


def count_total_matches(bracket: Bracket) -> int:
    """Matches in the main tree, leaving out any match between two BYEs."""
    return sum(
        1 for round_matches in bracket.rounds for m in round_matches
        if not (m.slot_a == BYE and m.slot_b == BYE)
    )


def count_total_fights(bracket: Bracket) -> int:
    """Matches that will actually be fought (no BYE side), third place included."""
    return sum(1 for m in bracket.all_matches() if not m.is_bye())


def count_completed_fights(bracket: Bracket) -> int:
    return sum(1 for m in bracket.all_matches() if m.is_completed() and not m.is_bye())


def count_remaining_fights(bracket: Bracket) -> int:
    return count_total_fights(bracket) - count_completed_fights(bracket)


def find_next_fight(bracket: Bracket, exclude_match_id: Optional[str] = None) -> Optional[Match]:
    """First match in fight order that can have a result recorded now."""
    for match in order_bracket_matches(bracket):
        if match.id == exclude_match_id:
            continue
        if match.is_recordable() and not match.is_completed():
            return match
    return None


def is_bracket_complete(bracket: Bracket) -> bool:
    return bracket.winner_id is not None and find_next_fight(bracket) is None


def get_bracket_status(bracket: Optional[Bracket]) -> str:
    """One of: not_generated, generated, in_progress, finished."""
    if bracket is None or not bracket.rounds:
        return 'not_generated'
    if bracket.winner_id is not None:
        return 'finished'
    if count_completed_fights(bracket) > 0:
        return 'in_progress'
    return 'generated'


def get_competitor_placing(bracket: Bracket, competitor_id: str) -> Dict:
    """
    Where a competitor stands in a bracket.

    Returns dict with 'placing' (1st, 2nd, 3rd, eliminated, active) and, for
    eliminated competitors, the fight number and winner of the losing match.
    """
    if bracket.winner_id == competitor_id:
        return {'placing': '1st'}
    if bracket.runner_up_id == competitor_id:
        return {'placing': '2nd'}
    if bracket.third_place_winner_id == competitor_id:
        return {'placing': '3rd'}

    for match in bracket.all_matches():
        if match.loser_id == competitor_id and match.winner_id:
            return {
                'placing': 'eliminated',
                'eliminated_in_fight': match.fight_number,
                'eliminated_by': match.winner_id,
            }
    return {'placing': 'active'}


def get_fight_number_display(match: Match) -> str:
    """Mat and fight number as shown to operators, e.g. "1-5"; "N/A" when unscheduled."""
    if not match.resource or match.fight_number is None:
        return 'N/A'
    return f"{match.resource.replace('Mat ', '')}-{match.fight_number}"


def format_duration(minutes: int) -> str:
    hours, mins = divmod(int(minutes), 60)
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def summarize_mats(brackets: Dict[str, Bracket], categories: Dict[str, Category],
                   assignments: Dict[str, str], resource_count: int,
                   fight_duration_minutes: int = 5) -> List[Dict]:
    """
    Per-mat progress report.

    Returns list of dicts (one per mat, in mat order) with:
    - mat: mat name
    - categories: list of per-category dicts (category_id, name, brackets,
      competitors, total_fights, remaining_fights, status)
    - total_fights / remaining_fights: sums over the mat
    - estimated_remaining_minutes and estimated_remaining (formatted)
    """
    by_category = group_brackets_by_category(brackets)
    report = []

    for mat in get_mat_names(resource_count):
        assigned = [categories[cid] for cid, m in assignments.items() if m == mat and cid in categories]
        assigned.sort(key=lambda c: c.sort_key())

        entries = []
        for category in assigned:
            category_brackets = by_category.get(category.id, [])
            statuses = {get_bracket_status(b) for b in category_brackets}
            if not category_brackets:
                status = 'not_generated'
            elif statuses == {'finished'}:
                status = 'finished'
            elif statuses & {'in_progress', 'finished'}:
                status = 'in_progress'
            else:
                status = 'generated'
            entries.append({
                'category_id': category.id,
                'name': category.name,
                'brackets': [b.id for b in category_brackets],
                'competitors': sum(len(b.competitor_ids()) for b in category_brackets),
                'total_fights': sum(count_total_fights(b) for b in category_brackets),
                'remaining_fights': sum(count_remaining_fights(b) for b in category_brackets),
                'scheduled_fights': sum(
                    1 for b in category_brackets for m in b.all_matches() if is_schedulable(m)
                ),
                'status': status,
            })

        remaining = sum(e['remaining_fights'] for e in entries)
        report.append({
            'mat': mat,
            'categories': entries,
            'total_fights': sum(e['total_fights'] for e in entries),
            'remaining_fights': remaining,
            'estimated_remaining_minutes': remaining * fight_duration_minutes,
            'estimated_remaining': format_duration(remaining * fight_duration_minutes),
        })

    return report
