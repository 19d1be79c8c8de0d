"""
Roster loading: categories and eligible competitors from a YAML file.

Expected layout:

    categories:
      - id: adult-male-blue-76
        name: Adult Male Blue -76kg
        gender: Male
        age_band: Adult
        belt: Blue
        max_weight: 76
    competitors:
      - id: c1
        name: Ana Costa
        club: North Academy
        category: adult-male-blue-76
        seed: 1            # optional
        approved: true     # optional, defaults to true
        checked_in: true   # optional, defaults to true
"""
import logging
import os
from typing import Dict, List

import yaml

from .models import Category, CategoryKey, Competitor

logger = logging.getLogger(__name__)


def is_eligible(entry: Dict) -> bool:
    """Only approved, checked-in competitors are placed in brackets."""
    return bool(entry.get('approved', True)) and bool(entry.get('checked_in', True))


def parse_categories(entries) -> Dict[str, Category]:
    categories = {}
    for entry in entries or []:
        category_id = str(entry['id'])
        key = CategoryKey(
            entry.get('gender', 'Mixed'),
            entry.get('age_band', 'Undefined'),
            entry.get('belt', 'All'),
        )
        categories[category_id] = Category(
            id=category_id,
            name=entry.get('name', category_id),
            key=key,
            max_weight=entry.get('max_weight'),
        )
    return categories


def parse_competitors(entries, categories: Dict[str, Category]) -> List[Competitor]:
    competitors = []
    for entry in entries or []:
        if not is_eligible(entry):
            continue
        category_id = entry.get('category')
        category_id = str(category_id) if category_id is not None else None
        if category_id not in categories:
            logger.warning("Competitor %s has unknown category %s; skipping", entry.get('id'), category_id)
            continue
        competitors.append(Competitor(
            id=str(entry['id']),
            name=entry.get('name'),
            club=entry.get('club'),
            seed=entry.get('seed'),
            category_id=category_id,
        ))
    return competitors


def load_roster(file_path):
    """
    Load categories and eligible competitors.

    Returns (categories, competitors): dict of category_id -> Category and a
    list of Competitor. A missing or empty file yields an empty roster.
    """
    if not file_path or not os.path.exists(file_path):
        return {}, []
    with open(file_path, mode='r', encoding='utf-8') as file:
        data = yaml.safe_load(file) or {}
    categories = parse_categories(data.get('categories'))
    competitors = parse_competitors(data.get('competitors'), categories)
    logger.debug("Loaded %d categories and %d eligible competitors from %s",
                 len(categories), len(competitors), file_path)
    return categories, competitors


def group_by_category(competitors: List[Competitor]) -> Dict[str, List[Competitor]]:
    grouped: Dict[str, List[Competitor]] = {}
    for competitor in competitors:
        grouped.setdefault(competitor.category_id, []).append(competitor)
    return grouped
