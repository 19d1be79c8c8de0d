"""
Event settings stored as YAML, merged with defaults.
"""
import os

import yaml

DATA_DIR_ENV = 'BRACKET_DATA_DIR'


def get_default_settings():
    """Return default event settings."""
    return {
        'event_name': 'Open Championship',
        'include_third_place': False,
        'bracket_splitting_enabled': False,
        'max_competitors_per_bracket': 16,
        'separate_clubs': False,
        'num_mats': 1,
        'fight_duration_minutes': 5,
        'random_seed': None,
        # category_id -> mat name
        'mat_assignments': {},
    }


def get_data_dir(base_dir=None):
    """Data directory from the environment, else <base_dir>/data."""
    base_dir = base_dir or os.getcwd()
    return os.environ.get(DATA_DIR_ENV, os.path.join(base_dir, 'data'))


def load_settings(path):
    """Load settings from YAML file, merging with defaults."""
    defaults = get_default_settings()
    if not path or not os.path.exists(path):
        return defaults
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    if not data:
        return defaults
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")
    # Merge with defaults to ensure all keys exist
    for key, value in defaults.items():
        if key not in data:
            data[key] = value
    if data['mat_assignments'] is None:
        data['mat_assignments'] = {}
    return data


def save_settings(path, settings):
    """Save settings to YAML file."""
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        yaml.dump(settings, f, default_flow_style=False)
