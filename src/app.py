"""
Flask JSON API for the bracket engine.
"""
import os

from flask import Flask, jsonify, request

from bracket_engine.elimination import build_category_brackets, get_match_round_name, has_recorded_results
from bracket_engine.errors import (BracketError, ConcurrentModification, InsufficientCompetitors,
                                   InvalidResult, MatchNotPlayable, ScheduleConflict)
from bracket_engine.propagation import award_walkover, record_result, retract_result
from bracket_engine.roster import group_by_category, load_roster
from bracket_engine.scheduling import group_brackets_by_category
from bracket_engine.settings import get_data_dir, load_settings, save_settings
from bracket_engine.storage import EventStore
from bracket_engine.summary import get_bracket_status, get_competitor_placing, is_bracket_complete, summarize_mats

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = get_data_dir(BASE_DIR)

SETTINGS_FILE = 'settings.yaml'
ROSTER_FILE = 'roster.yaml'

ERROR_STATUS = {
    InsufficientCompetitors: 422,
    InvalidResult: 422,
    MatchNotPlayable: 409,
    ScheduleConflict: 409,
    ConcurrentModification: 409,
}

store = EventStore(DATA_DIR)


def _log_change(event_id, change, payload):
    app.logger.debug(f'{event_id}: {change} changed {payload}')


store.add_listener(_log_change)


def load_event_settings(event_id):
    """Load settings.yaml for an event, merged with defaults."""
    return load_settings(os.path.join(store.event_dir(event_id), SETTINGS_FILE))


def save_event_settings(event_id, settings):
    save_settings(os.path.join(store.event_dir(event_id), SETTINGS_FILE), settings)


def load_event_roster(event_id):
    """Load (categories, competitors) from roster.yaml for an event."""
    return load_roster(os.path.join(store.event_dir(event_id), ROSTER_FILE))


def reschedule(event_id):
    """Renumber the fights of the event after any bracket change."""
    settings = load_event_settings(event_id)
    categories, _ = load_event_roster(event_id)
    return store.recompute_schedule(event_id, categories, settings['mat_assignments'], settings['num_mats'])


def bracket_payload(bracket):
    data = bracket.to_dict()
    data['status'] = get_bracket_status(bracket)
    data['round_names'] = {m.id: get_match_round_name(bracket, m) for m in bracket.all_matches()}
    data['complete'] = is_bracket_complete(bracket)
    data['placings'] = {cid: get_competitor_placing(bracket, cid) for cid in bracket.competitor_ids()}
    return data


def not_found(message):
    return jsonify({'error': message, 'kind': 'NotFound'}), 404


@app.errorhandler(BracketError)
def handle_bracket_error(error):
    status = ERROR_STATUS.get(type(error), 400)
    app.logger.warning(f'{type(error).__name__}: {error}')
    return jsonify({'error': str(error), 'kind': type(error).__name__}), status


@app.errorhandler(ValueError)
def handle_value_error(error):
    return jsonify({'error': str(error), 'kind': 'ValueError'}), 400


@app.route('/api/events/<event_id>/brackets', methods=['GET'])
def api_list_brackets(event_id):
    """All brackets of an event with their status."""
    revision, brackets = store.load_brackets(event_id)
    return jsonify({
        'revision': revision,
        'brackets': {bracket_id: bracket_payload(b) for bracket_id, b in sorted(brackets.items())},
    })


@app.route('/api/events/<event_id>/brackets/generate', methods=['POST'])
def api_generate_brackets(event_id):
    """Build (or rebuild) brackets for the requested categories, then reschedule."""
    data = request.get_json(silent=True) or {}
    settings = load_event_settings(event_id)
    categories, competitors = load_event_roster(event_id)
    by_category = group_by_category(competitors)

    category_ids = data.get('category_ids') or sorted(categories)
    unknown = [cid for cid in category_ids if cid not in categories]
    if unknown:
        return not_found(f'Unknown categories: {", ".join(unknown)}')

    random_seed = data.get('random_seed', settings['random_seed'])
    revision, existing = store.load_brackets(event_id)
    existing_by_category = group_brackets_by_category(existing)

    generated, remove_ids, skipped = {}, [], []
    for category_id in category_ids:
        previous = existing_by_category.get(category_id, [])
        for bracket in previous:
            if has_recorded_results(bracket):
                raise MatchNotPlayable(f'Bracket {bracket.id} already has results; it cannot be regenerated')

        entrants = by_category.get(category_id, [])
        if len(entrants) < 2:
            app.logger.info(f'Skipping {category_id}: {len(entrants)} eligible competitors')
            skipped.append(category_id)
            remove_ids.extend(b.id for b in previous)
            continue

        brackets = build_category_brackets(
            category_id, entrants,
            include_third_place=settings['include_third_place'],
            random_seed=random_seed,
            separate_clubs=settings['separate_clubs'],
            splitting_enabled=settings['bracket_splitting_enabled'],
            max_per_bracket=settings['max_competitors_per_bracket'],
        )
        remove_ids.extend(b.id for b in previous if b.id not in brackets)
        generated.update(brackets)

    if generated or remove_ids:
        store.replace_brackets(event_id, generated, remove_ids, expected_revision=revision)
        reschedule(event_id)

    return jsonify({
        'success': True,
        'brackets': sorted(generated),
        'removed': sorted(remove_ids),
        'skipped': skipped,
    }), 201


def _update_and_reschedule(event_id, bracket_id, operation):
    try:
        bracket = store.update_bracket(event_id, bracket_id, operation)
    except LookupError:
        return not_found(f'Bracket {bracket_id} not found')
    reschedule(event_id)
    return jsonify({'success': True, 'bracket': bracket_payload(store.load_bracket(event_id, bracket.id))})


@app.route('/api/events/<event_id>/brackets/<bracket_id>/matches/<match_id>/result', methods=['POST'])
def api_record_result(event_id, bracket_id, match_id):
    """Record the winner of a match."""
    data = request.get_json(silent=True) or {}
    winner_id = data.get('winner_id')
    if not winner_id:
        raise InvalidResult('winner_id is required')
    return _update_and_reschedule(event_id, bracket_id, lambda b: record_result(
        b, match_id, winner_id,
        loser_id=data.get('loser_id'),
        result_type=data.get('result_type'),
        details=data.get('details'),
    ))


@app.route('/api/events/<event_id>/brackets/<bracket_id>/matches/<match_id>/result', methods=['DELETE'])
def api_retract_result(event_id, bracket_id, match_id):
    """Clear a result and everything downstream of it."""
    return _update_and_reschedule(event_id, bracket_id, lambda b: retract_result(b, match_id))


@app.route('/api/events/<event_id>/brackets/<bracket_id>/matches/<match_id>/walkover', methods=['POST'])
def api_award_walkover(event_id, bracket_id, match_id):
    """Award a flagged walkover match to its only entrant."""
    data = request.get_json(silent=True) or {}
    return _update_and_reschedule(event_id, bracket_id,
                                  lambda b: award_walkover(b, match_id, data.get('details')))


@app.route('/api/events/<event_id>/schedule', methods=['POST'])
def api_update_schedule(event_id):
    """Update mat assignments and/or mat count, then recompute the schedule."""
    data = request.get_json(silent=True) or {}
    settings = load_event_settings(event_id)

    changed = False
    if 'num_mats' in data:
        num_mats = int(data['num_mats'])
        if num_mats < 1:
            raise ValueError('num_mats must be at least 1')
        settings['num_mats'] = num_mats
        changed = True
    if 'mat_assignments' in data:
        settings['mat_assignments'] = dict(data['mat_assignments'] or {})
        changed = True
    if changed:
        save_event_settings(event_id, settings)

    schedule = reschedule(event_id)
    return jsonify({'success': True, 'mat_fight_order': schedule.to_dict()})


@app.route('/api/events/<event_id>/schedule', methods=['GET'])
def api_get_schedule(event_id):
    """Stored fight order per mat."""
    brackets_revision, schedule = store.load_schedule(event_id)
    revision, _ = store.load_brackets(event_id)
    return jsonify({
        'brackets_revision': brackets_revision,
        'stale': brackets_revision != revision,
        'mat_fight_order': schedule.to_dict(),
    })


@app.route('/api/events/<event_id>/mats', methods=['GET'])
def api_mat_summary(event_id):
    """Per-mat progress and remaining time estimate."""
    settings = load_event_settings(event_id)
    categories, _ = load_event_roster(event_id)
    _, brackets = store.load_brackets(event_id)
    return jsonify({'mats': summarize_mats(
        brackets, categories,
        settings['mat_assignments'], settings['num_mats'],
        settings['fight_duration_minutes'],
    )})


if __name__ == '__main__':
    app.run(debug=True, port=5000)
