"""
Flask JSON API for the bracket engine.
"""
import os
from functools import wraps

from flask import Flask, jsonify, request, session

from bracket.errors import (
    BracketError,
    InvalidWinnerError,
    NotEnoughEntriesError,
    NotFoundError,
    OutOfOrderError,
    PersistenceError,
)
from bracket.models import TournamentType
from bracket.service import TournamentService
from bracket.store import TournamentStore

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('BRACKET_DATA_DIR', os.path.join(BASE_DIR, 'data'))
LOCK_TIMEOUT = float(os.environ.get('BRACKET_LOCK_TIMEOUT', '10'))
MAX_ENTRY_NAME_LENGTH = 50


def _get_or_create_secret_key() -> bytes:
    """Get SECRET_KEY from env, or generate and persist to file."""
    env_key = os.environ.get('SECRET_KEY')
    if env_key:
        return env_key.encode() if isinstance(env_key, str) else env_key
    key_file = os.path.join(DATA_DIR, '.secret_key')
    if os.path.exists(key_file):
        with open(key_file, 'rb') as f:
            return f.read()
    key = os.urandom(24)
    os.makedirs(os.path.dirname(key_file), exist_ok=True)
    with open(key_file, 'wb') as f:
        f.write(key)
    return key


app.secret_key = _get_or_create_secret_key()

service = TournamentService(TournamentStore(DATA_DIR, lock_timeout=LOCK_TIMEOUT))


def login_required(f):
    """Reject requests without an authenticated user in the session."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user' not in session:
            return jsonify({'error': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated_function


@app.errorhandler(BracketError)
def handle_bracket_error(e):
    if isinstance(e, NotFoundError):
        app.logger.warning(f'Not found: {e.message} ({request.path})')
        return jsonify({'error': e.message}), 404
    if isinstance(e, (NotEnoughEntriesError, OutOfOrderError, InvalidWinnerError)):
        app.logger.warning(f'Bad request: {e.message} ({request.path})')
        return jsonify({'error': e.message}), 400
    if isinstance(e, PersistenceError):
        app.logger.error(f'Persistence failure on {request.method} {request.path}', exc_info=e)
    else:
        app.logger.error(f'Unexpected bracket error on {request.method} {request.path}', exc_info=e)
    return jsonify({'error': 'Internal Server Error'}), 500


def _tournament_json(tournament):
    return tournament.to_dict()


def _bracket_json(display):
    bracket = display['bracket']
    sides = {}
    for side in ('winners', 'losers', 'finals'):
        names = display['round_names'][side]
        sides[side] = [
            {
                'round_number': round_number,
                'name': names.get(round_number),
                'matches': [m.to_dict() for m in matches],
            }
            for round_number, matches in bracket[side]
        ]
    return sides


@app.route('/api/tournaments', methods=['GET'])
@login_required
def api_list_tournaments():
    """List the current user's tournaments, newest first."""
    tournaments = service.get_tournaments_for_user(session['user'])
    return jsonify({'tournaments': [_tournament_json(t) for t in tournaments]})


@app.route('/api/tournaments', methods=['POST'])
@login_required
def api_create_tournament():
    """Create a tournament from a name, type and ordered entry list."""
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return jsonify({'error': 'Request body must be a JSON object'}), 400

    name = data.get('name')
    if name is not None and not isinstance(name, str):
        return jsonify({'error': 'Tournament name must be a string'}), 400
    name = (name or '').strip()
    if not name:
        return jsonify({'error': 'Missing tournament name'}), 400

    type_str = data.get('type') or TournamentType.SINGLE.value
    if not isinstance(type_str, str) or type_str not in {t.value for t in TournamentType}:
        return jsonify({'error': f'Unknown tournament type: {type_str}'}), 400

    entries = data.get('entries') or []
    if not isinstance(entries, list):
        return jsonify({'error': 'Entries must be a list'}), 400

    rows = []
    for raw in entries:
        if isinstance(raw, str):
            raw = {'name': raw}
        if not isinstance(raw, dict):
            return jsonify({'error': 'Invalid entry'}), 400
        entry_name = raw.get('name')
        embed_link = raw.get('embed_link')
        if entry_name is not None and not isinstance(entry_name, str):
            return jsonify({'error': 'Entry name must be a string'}), 400
        if embed_link is not None and not isinstance(embed_link, str):
            return jsonify({'error': 'Embed link must be a string'}), 400
        entry_name = (entry_name or '').strip()
        if len(entry_name) > MAX_ENTRY_NAME_LENGTH:
            return jsonify({'error': f"Entry name '{entry_name}' exceeds {MAX_ENTRY_NAME_LENGTH} characters"}), 400
        rows.append({'name': entry_name, 'embed_link': embed_link})

    tournament_id = service.create_tournament(session['user'], name, type_str, rows)
    return jsonify({'success': True, 'id': tournament_id}), 201


@app.route('/api/tournaments/<tournament_id>', methods=['GET'])
@login_required
def api_get_tournament(tournament_id):
    """Tournament with entries, bracket layout and the next match to decide."""
    display = service.get_bracket_display(tournament_id)
    return jsonify({
        'tournament': _tournament_json(display['tournament']),
        'entries': [e.to_dict() for e in display['entries']],
        'bracket': _bracket_json(display),
        'next_match_id': display['next_match_id'],
    })


@app.route('/api/matches/<match_id>', methods=['GET'])
@login_required
def api_get_match(match_id):
    data = service.get_match_view_data(match_id)
    return jsonify({
        'match': data['match'].to_dict(),
        'entry1': data['entry1'].to_dict() if data['entry1'] else None,
        'entry2': data['entry2'].to_dict() if data['entry2'] else None,
        'embed1': data['embed1'],
        'embed2': data['embed2'],
        'next_match_id': data['next_match_id'],
    })


@app.route('/api/matches/<match_id>/advance', methods=['POST'])
@login_required
def api_advance_winner(match_id):
    """Declare the winner of a match."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'Request body must be a JSON object'}), 400

    winner_id = data.get('winner_id')
    if not winner_id or not isinstance(winner_id, str):
        return jsonify({'error': 'Missing winner_id'}), 400

    score_1 = data.get('score_1')
    score_2 = data.get('score_2')
    for score in (score_1, score_2):
        # bool is an int subclass; JSON true/false are not scores
        if score is not None and (isinstance(score, bool) or not isinstance(score, int)):
            return jsonify({'error': 'Scores must be integers'}), 400

    tournament_id = service.advance_winner(match_id, winner_id, score_1, score_2)

    view = service.get_match_view_data(match_id)
    tournament = service.get_tournament_data(tournament_id)['tournament']
    return jsonify({
        'success': True,
        'tournament_id': tournament_id,
        'winner_slot': view['match'].winner_slot,
        'next_match_id': view['next_match_id'],
        'tournament_status': tournament.status.value,
    })


if __name__ == '__main__':
    app.run(debug=True)
