"""
Fight scheduling across mats.

The schedule is always recomputed from scratch: categories assigned to a mat
are sorted canonically (or by a caller-supplied key), and their matches are numbered one after the other,
round by round, with the third-place match after the final.
"""
import copy
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from .models import THIRD_PLACE_ROUND, Bracket, Category, FightSchedule, Match

logger = logging.getLogger(__name__)


def get_mat_names(resource_count: int) -> List[str]:
    """Names of the available mats: Mat 1 .. Mat n."""
    return [f"Mat {i + 1}" for i in range(resource_count)]


def sort_categories(categories: Iterable[Category],
                    sort_key: Optional[Callable[[Category], Any]] = None) -> List[Category]:
    """Gender, then age band, then belt, then weight limit, then display name, unless sort_key is given."""
    return sorted(categories, key=sort_key or Category.sort_key)


def _match_order_key(bracket: Bracket, match: Match):
    round_index = bracket.total_rounds + 1 if match.round == THIRD_PLACE_ROUND else match.round
    return (round_index, match.position)


def order_bracket_matches(bracket: Bracket) -> List[Match]:
    """All matches of a bracket in fight order."""
    return sorted(bracket.all_matches(), key=lambda m: _match_order_key(bracket, m))


def is_schedulable(match: Match) -> bool:
    """BYE matches are never fought; matches with no known competitor wait."""
    return not match.is_bye() and not match.is_empty()


def group_brackets_by_category(brackets: Dict[str, Bracket]) -> Dict[str, List[Bracket]]:
    grouped: Dict[str, List[Bracket]] = {}
    for bracket in brackets.values():
        grouped.setdefault(bracket.category_id, []).append(bracket)
    for category_brackets in grouped.values():
        category_brackets.sort(key=lambda b: (b.group_name or '', b.id))
    return grouped


def _annotations(bracket: Bracket):
    return [(m.id, m.fight_number, m.resource) for m in bracket.all_matches()]


def schedule_fights(brackets: Dict[str, Bracket],
                    categories: Union[Dict[str, Category], Iterable[Category]],
                    assignments: Dict[str, str],
                    resource_count: int,
                    sort_key: Optional[Callable[[Category], Any]] = None) -> Tuple[Dict[str, Bracket], FightSchedule]:
    """
    Number every fight on every mat.

    Args:
        brackets: bracket_id -> Bracket for the whole event
        categories: the event's categories (dict by id or any iterable)
        assignments: category_id -> mat name; unassigned categories are left out
        resource_count: number of mats available
        sort_key: category order within a mat; defaults to the canonical order

    Returns:
        (updated brackets annotated with fight_number and resource, FightSchedule)
    """
    if isinstance(categories, dict):
        categories = categories.values()
    categories_by_id = {c.id: c for c in categories}

    updated = copy.deepcopy(brackets)
    before = {bracket_id: _annotations(b) for bracket_id, b in updated.items()}
    for bracket in updated.values():
        for match in bracket.all_matches():
            match.fight_number = None
            match.resource = None

    mats = get_mat_names(resource_count)
    categories_on_mat: Dict[str, List[Category]] = {mat: [] for mat in mats}
    for category_id, mat in sorted(assignments.items()):
        if not mat:
            continue
        if mat not in categories_on_mat:
            logger.warning("Category %s is assigned to %s, which is not one of the %d mats",
                           category_id, mat, resource_count)
            continue
        category = categories_by_id.get(category_id)
        if category is None:
            logger.warning("Ignoring assignment of unknown category %s to %s", category_id, mat)
            continue
        categories_on_mat[mat].append(category)

    brackets_by_category = group_brackets_by_category(updated)
    mat_fight_order: Dict[str, List[str]] = {}

    for mat in mats:
        mat_fight_order[mat] = []
        fight_number = 1
        for category in sort_categories(categories_on_mat[mat], sort_key):
            for bracket in brackets_by_category.get(category.id, []):
                for match in order_bracket_matches(bracket):
                    if not is_schedulable(match):
                        continue
                    match.fight_number = fight_number
                    match.resource = mat
                    mat_fight_order[mat].append(match.id)
                    fight_number += 1
        logger.debug("%s: %d fights", mat, len(mat_fight_order[mat]))

    for bracket_id, bracket in updated.items():
        if _annotations(bracket) != before[bracket_id]:
            bracket.version += 1

    logger.info("Scheduled %d fights on %d mats",
                sum(len(ids) for ids in mat_fight_order.values()), len(mats))
    return updated, FightSchedule(mat_fight_order)
