"""
Tournament operations exposed to the presentation layer.
"""
import logging
import uuid
from typing import Dict, List

from . import advancement
from .double_elimination import (
    calculate_losers_bracket_rounds,
    generate_double_elimination_bracket,
    get_losers_round_name,
    get_winners_round_name,
)
from .elimination import (
    calculate_bracket_size,
    generate_single_elimination_bracket,
    get_round_name,
    seed_entries,
)
from .embed import get_embed_info
from .errors import NotEnoughEntriesError
from .graph import find_next_pending_match, prepare_bracket_data
from .models import BracketSide, Tournament, TournamentStatus, TournamentType
from .store import TournamentStore

logger = logging.getLogger(__name__)


class TournamentService:
    def __init__(self, store: TournamentStore):
        self.store = store

    def create_tournament(self, owner_id: str, name: str, tournament_type,
                          entry_inputs: List[Dict]) -> str:
        """
        Create a tournament with its entries and full match graph.

        Args:
            owner_id: Id of the creating user
            name: Tournament name
            tournament_type: 'single' or 'double'
            entry_inputs: Rows of {'name', 'embed_link'} in seed order

        Returns:
            The new tournament id.
        """
        tournament_type = TournamentType(tournament_type)
        tournament_id = str(uuid.uuid4())
        entries = seed_entries(tournament_id, entry_inputs)

        if tournament_type == TournamentType.DOUBLE:
            graph = generate_double_elimination_bracket(tournament_id, entries)
        else:
            if not entries:
                raise NotEnoughEntriesError("Single elimination needs at least 1 entry")
            graph = generate_single_elimination_bracket(tournament_id, entries)

        tournament = Tournament(
            id=tournament_id,
            owner_id=owner_id,
            name=name,
            tournament_type=tournament_type,
            status=TournamentStatus.STARTED,
        )

        with self.store.transaction(tournament_id, create=True) as tx:
            tx.create_tournament(tournament)
            tx.create_entries(entries)
            tx.create_matches(graph.matches())

        logger.info(
            f"Created {tournament_type.value} elimination tournament {tournament_id} "
            f"with {len(entries)} entries and {len(graph)} matches"
        )
        return tournament_id

    def advance_winner(self, match_id: str, winner_entry_id: str,
                       score_1=None, score_2=None) -> str:
        """Decide a match and propagate the result. Returns the tournament id."""
        tournament_id = self.store.find_tournament_for_match(match_id)
        with self.store.transaction(tournament_id) as tx:
            advancement.advance_winner(tx, match_id, winner_entry_id, score_1, score_2)
        return tournament_id

    def get_tournament_data(self, tournament_id: str) -> Dict:
        """Tournament, entries, matches and the next pending match id."""
        snapshot = self.store.load(tournament_id)
        tournament = snapshot.get_tournament()
        entries = snapshot.get_entries()
        matches = snapshot.get_matches()
        next_match = find_next_pending_match(matches)

        return {
            'tournament': tournament,
            'entries': entries,
            'matches': matches,
            'next_match_id': next_match.id if next_match else None,
        }

    def get_bracket_display(self, tournament_id: str) -> Dict:
        """Tournament data plus matches grouped by side and round for display."""
        data = self.get_tournament_data(tournament_id)
        layout = prepare_bracket_data(data['entries'], data['matches'])
        data['bracket'] = layout
        data['round_names'] = _round_names(data['tournament'], len(data['entries']), layout)
        return data

    def get_match_view_data(self, match_id: str) -> Dict:
        """A match, the entries seated in it, and the tournament's next pending match id."""
        tournament_id = self.store.find_tournament_for_match(match_id)
        snapshot = self.store.load(tournament_id)
        match = snapshot.get_match(match_id)

        entry1 = snapshot.get_entry(match.entry_1_id) if match.entry_1_id else None
        entry2 = snapshot.get_entry(match.entry_2_id) if match.entry_2_id else None
        next_match = find_next_pending_match(snapshot.get_matches())

        return {
            'match': match,
            'entry1': entry1,
            'entry2': entry2,
            'embed1': get_embed_info(entry1.embed_link if entry1 else None),
            'embed2': get_embed_info(entry2.embed_link if entry2 else None),
            'next_match_id': next_match.id if next_match else None,
        }

    def get_tournaments_for_user(self, owner_id: str) -> List[Tournament]:
        return self.store.list_tournaments(owner_id)


def _round_names(tournament: Tournament, num_entries: int, layout: Dict) -> Dict[str, Dict[int, str]]:
    bracket_size = calculate_bracket_size(num_entries)
    names: Dict[str, Dict[int, str]] = {}
    double = tournament.tournament_type == TournamentType.DOUBLE

    winners = {}
    for round_number, _ in layout[BracketSide.WINNERS.value]:
        teams_in_round = bracket_size // (2 ** (round_number - 1))
        if double:
            winners[round_number] = get_winners_round_name(teams_in_round, bracket_size)
        else:
            winners[round_number] = get_round_name(teams_in_round, bracket_size)
    names[BracketSide.WINNERS.value] = winners

    total_losers_rounds = calculate_losers_bracket_rounds(bracket_size) if double else 0
    names[BracketSide.LOSERS.value] = {
        round_number: get_losers_round_name(round_number - 1, total_losers_rounds)
        for round_number, _ in layout[BracketSide.LOSERS.value]
    }
    names[BracketSide.FINALS.value] = {
        round_number: "Grand Final" for round_number, _ in layout[BracketSide.FINALS.value]
    }
    return names
