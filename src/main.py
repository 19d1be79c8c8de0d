# Command line entry point: build brackets from a roster and print the fight order per mat

import logging
import sys

from bracket_engine.elimination import build_category_brackets, get_match_round_name
from bracket_engine.errors import InsufficientCompetitors
from bracket_engine.roster import group_by_category, load_roster
from bracket_engine.scheduling import get_mat_names, schedule_fights, sort_categories
from bracket_engine.settings import load_settings
from bracket_engine.summary import count_total_fights, format_duration, get_fight_number_display


def default_assignments(categories, num_mats):
    """Deal categories out over the mats in canonical order."""
    mats = get_mat_names(num_mats)
    return {category.id: mats[i % len(mats)] for i, category in enumerate(sort_categories(categories.values()))}


def build_all_brackets(categories, competitors, settings):
    brackets = {}
    by_category = group_by_category(competitors)
    for category_id in sorted(categories):
        try:
            brackets.update(build_category_brackets(
                category_id, by_category.get(category_id, []),
                include_third_place=settings['include_third_place'],
                random_seed=settings['random_seed'],
                separate_clubs=settings['separate_clubs'],
                splitting_enabled=settings['bracket_splitting_enabled'],
                max_per_bracket=settings['max_competitors_per_bracket'],
            ))
        except InsufficientCompetitors as e:
            print(f"Skipping {categories[category_id].name}: {e}")
    return brackets


def describe_side(slot, names):
    if slot is None:
        return "TBD"
    return names.get(slot, slot)


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print("Usage: python src/main.py roster.yaml [settings.yaml]")
        return 1

    logging.basicConfig(level=logging.WARNING)
    roster_file = argv[0]
    settings = load_settings(argv[1] if len(argv) > 1 else None)
    categories, competitors = load_roster(roster_file)

    if not competitors:
        print(f"No eligible competitors loaded. Check {roster_file}")
        return 1

    brackets = build_all_brackets(categories, competitors, settings)
    assignments = settings['mat_assignments'] or default_assignments(categories, settings['num_mats'])
    brackets, schedule = schedule_fights(brackets, categories, assignments, settings['num_mats'])

    names = {c.id: c.name or c.id for c in competitors}
    matches = {m.id: (b, m) for b in brackets.values() for m in b.all_matches()}

    print(f"\n--- {settings['event_name']}: Fight Order ---")
    for mat in schedule.mats:
        fights = schedule.fights_on(mat)
        duration = format_duration(len(fights) * settings['fight_duration_minutes'])
        print(f"\n{mat} ({len(fights)} fights, ~{duration})")
        if not fights:
            print("  No fights scheduled.")
        for match_id in fights:
            bracket, match = matches[match_id]
            label = categories[bracket.category_id].name
            if bracket.group_name:
                label = f"{label} ({bracket.group_name})"
            print(f"  {get_fight_number_display(match):>5}. {label} - {get_match_round_name(bracket, match)}: "
                  f"{describe_side(match.slot_a, names)} vs {describe_side(match.slot_b, names)}")

    print(f"\nTotal: {sum(count_total_fights(b) for b in brackets.values())} fights "
          f"in {len(brackets)} brackets")
    return 0


if __name__ == "__main__":
    sys.exit(main())
