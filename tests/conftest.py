"""
Shared pytest fixtures for bracket engine tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os
import yaml

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from bracket_engine.models import Category, CategoryKey, Competitor
from bracket_engine.storage import EventStore


def make_competitors(count, prefix='c', category_id='cat', clubs=None):
    """Create competitors c1..cN, optionally cycling through clubs."""
    competitors = []
    for i in range(1, count + 1):
        club = clubs[(i - 1) % len(clubs)] if clubs else None
        competitors.append(Competitor(id=f"{prefix}{i}", name=f"Fighter {i}", club=club, category_id=category_id))
    return competitors


@pytest.fixture
def five_competitors():
    """Five unseeded competitors in one category."""
    return make_competitors(5)


@pytest.fixture
def eight_competitors():
    """Eight unseeded competitors in one category."""
    return make_competitors(8)


@pytest.fixture
def sample_categories():
    """Categories that sort in a known canonical order."""
    return {
        'adult-female-white': Category('adult-female-white', 'Adult Female White',
                                       CategoryKey('Female', 'Adult', 'White')),
        'adult-male-blue-76': Category('adult-male-blue-76', 'Adult Male Blue -76kg',
                                       CategoryKey('Male', 'Adult', 'Blue'), max_weight=76),
        'adult-male-blue-64': Category('adult-male-blue-64', 'Adult Male Blue -64kg',
                                       CategoryKey('Male', 'Adult', 'Blue'), max_weight=64),
        'teen-male-white': Category('teen-male-white', 'Teen Male White',
                                    CategoryKey('Male', 'Teen', 'White')),
    }


@pytest.fixture
def store(tmp_path):
    """EventStore rooted in a temporary directory."""
    return EventStore(str(tmp_path / "data"), lock_timeout=2)


@pytest.fixture
def roster_data():
    """Roster dict with two categories, one ineligible competitor and one unknown category."""
    return {
        'categories': [
            {'id': 'male-blue', 'name': 'Adult Male Blue', 'gender': 'Male',
             'age_band': 'Adult', 'belt': 'Blue', 'max_weight': 76},
            {'id': 'female-white', 'name': 'Adult Female White', 'gender': 'Female',
             'age_band': 'Adult', 'belt': 'White'},
        ],
        'competitors': [
            {'id': 'm1', 'name': 'Ana', 'club': 'North', 'category': 'male-blue', 'seed': 1},
            {'id': 'm2', 'name': 'Bruno', 'club': 'South', 'category': 'male-blue'},
            {'id': 'm3', 'name': 'Caio', 'club': 'North', 'category': 'male-blue'},
            {'id': 'm4', 'name': 'Davi', 'club': 'East', 'category': 'male-blue'},
            {'id': 'm5', 'name': 'Enzo', 'club': 'West', 'category': 'male-blue'},
            {'id': 'f1', 'name': 'Fernanda', 'club': 'North', 'category': 'female-white'},
            {'id': 'f2', 'name': 'Gabi', 'club': 'South', 'category': 'female-white'},
            {'id': 'f3', 'name': 'Helena', 'club': 'East', 'category': 'female-white'},
            {'id': 'f4', 'name': 'Iris', 'club': 'West', 'category': 'female-white', 'approved': False},
            {'id': 'x1', 'name': 'Lost', 'category': 'no-such-category'},
        ],
    }


@pytest.fixture
def roster_file(tmp_path, roster_data):
    """roster.yaml written to a temporary directory."""
    path = tmp_path / "roster.yaml"
    path.write_text(yaml.dump(roster_data, default_flow_style=False))
    return str(path)


@pytest.fixture
def event_dir(tmp_path, monkeypatch, roster_data):
    """Point the Flask app at a temporary data dir holding event 'open' with a roster and settings."""
    import app as app_module

    data_dir = tmp_path / "data"
    event_path = data_dir / "open"
    event_path.mkdir(parents=True)
    (event_path / "roster.yaml").write_text(yaml.dump(roster_data, default_flow_style=False))
    (event_path / "settings.yaml").write_text(yaml.dump({
        'include_third_place': True,
        'num_mats': 2,
        'random_seed': 42,
        'mat_assignments': {'male-blue': 'Mat 1', 'female-white': 'Mat 1'},
    }, default_flow_style=False))

    monkeypatch.setattr(app_module, 'DATA_DIR', str(data_dir))
    monkeypatch.setattr(app_module, 'store', EventStore(str(data_dir), lock_timeout=2))
    return str(event_path)


@pytest.fixture
def client(event_dir):
    """Flask test client bound to the temporary event."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client
