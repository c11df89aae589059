"""
Shared pytest fixtures for bracket engine tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from bracket.elimination import seed_entries
from bracket.models import BracketSide
from bracket.service import TournamentService
from bracket.store import TournamentStore


@pytest.fixture
def store(tmp_path):
    """Store rooted in a temporary data directory."""
    return TournamentStore(str(tmp_path / 'data'), lock_timeout=1)


@pytest.fixture
def service(store):
    return TournamentService(store)


@pytest.fixture
def client(service, monkeypatch):
    """Create an authenticated test client backed by a temporary store."""
    import app as app_module
    monkeypatch.setattr(app_module, 'service', service)
    app_module.app.config['TESTING'] = True
    with app_module.app.test_client() as client:
        with client.session_transaction() as sess:
            sess['user'] = 'testuser'
        yield client


def make_entries(count, tournament_id='t-1'):
    """Seeded entries named '1'..'count'."""
    return seed_entries(tournament_id, [{'name': str(i)} for i in range(1, count + 1)])


def entry_inputs(count):
    return [{'name': f'Entry {i}'} for i in range(1, count + 1)]


def find_match(matches, side, round_number, match_order):
    for match in matches:
        if (match.bracket_side == BracketSide(side) and match.round_number == round_number
                and match.match_order == match_order):
            return match
    return None
