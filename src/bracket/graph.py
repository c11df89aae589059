"""
In-memory match graph and the orderings shared by generation, advancement
and display.
"""
import uuid
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import NotFoundError
from .models import BracketSide, Entry, Match, MatchStatus

SIDE_RANK = {
    BracketSide.WINNERS: 0,
    BracketSide.LOSERS: 1,
    BracketSide.FINALS: 2,
}


def sequence_key(match: Match) -> Tuple[int, int, int]:
    """Total order used for 'decide in sequence' and the next pending match."""
    return (SIDE_RANK[match.bracket_side], match.round_number, match.match_order)


def sort_matches(matches: Iterable[Match]) -> List[Match]:
    return sorted(matches, key=sequence_key)


def find_next_pending_match(matches: Iterable[Match]) -> Optional[Match]:
    """First match in sequence order that is not finished."""
    for match in sort_matches(matches):
        if match.status != MatchStatus.FINISHED:
            return match
    return None


def find_earlier_open_match(match: Match, matches: Iterable[Match]) -> Optional[Match]:
    """Return an unfinished match on the same side that comes before ``match``."""
    key = sequence_key(match)
    for other in sort_matches(matches):
        if sequence_key(other) >= key:
            break
        if other.bracket_side == match.bracket_side and not other.is_finished:
            return other
    return None


class MatchGraph:
    """
    Match graph for one tournament, indexed by (side, round, order) and by id.

    Rounds and orders are kept in nested dicts whose iteration is always done
    through sorted keys, so placement never depends on insertion order.
    """

    def __init__(self, tournament_id: str):
        self.tournament_id = tournament_id
        self._positions: Dict[BracketSide, Dict[int, Dict[int, Match]]] = {
            side: {} for side in BracketSide
        }
        self._by_id: Dict[str, Match] = {}

    def add(self, side: BracketSide, round_number: int, match_order: int) -> Match:
        rounds = self._positions[side].setdefault(round_number, {})
        if match_order in rounds:
            raise ValueError(f"Duplicate match position: {side.value} R{round_number} M{match_order}")
        match = Match(
            id=str(uuid.uuid4()),
            tournament_id=self.tournament_id,
            bracket_side=side,
            round_number=round_number,
            match_order=match_order,
        )
        rounds[match_order] = match
        self._by_id[match.id] = match
        return match

    def at(self, side: BracketSide, round_number: int, match_order: int) -> Match:
        return self._positions[side][round_number][match_order]

    def round(self, side: BracketSide, round_number: int) -> List[Match]:
        matches = self._positions[side].get(round_number, {})
        return [matches[order] for order in sorted(matches)]

    def rounds(self, side: BracketSide) -> List[int]:
        return sorted(self._positions[side])

    def matches(self) -> List[Match]:
        """All matches in topological (sequence) order."""
        ordered = []
        for side in sorted(self._positions, key=SIDE_RANK.get):
            for round_number in self.rounds(side):
                ordered.extend(self.round(side, round_number))
        return ordered

    def __len__(self):
        return len(self._by_id)

    # The advancement engine talks to this graph and to a store transaction
    # through the same three methods.

    def get_match(self, match_id: str) -> Match:
        try:
            return self._by_id[match_id]
        except KeyError:
            raise NotFoundError("Match not found") from None

    get_match_for_update = get_match

    def update_match(self, match: Match):
        if match.id not in self._by_id:
            raise NotFoundError("Match not found")


def link_winner(match: Match, target: Match, slot: int):
    match.winner_next_match_id = target.id
    match.winner_next_slot = slot


def link_loser(match: Match, target: Match, slot: int):
    match.loser_next_match_id = target.id
    match.loser_next_slot = slot


def prepare_bracket_data(entries: List[Entry], matches: List[Match]) -> Dict:
    """
    Group matches for display.

    Returns dict with:
    - 'winners' / 'losers' / 'finals': list of (round_number, [matches]) in
      ascending round order, matches sorted by order
    - 'entry_map': entry id -> Entry
    """
    grouped: Dict[BracketSide, Dict[int, List[Match]]] = {side: {} for side in BracketSide}
    for match in matches:
        grouped[match.bracket_side].setdefault(match.round_number, []).append(match)

    result = {'entry_map': {entry.id: entry for entry in entries}}
    for side, rounds in grouped.items():
        result[side.value] = [
            (round_number, sorted(rounds[round_number], key=lambda m: m.match_order))
            for round_number in sorted(rounds)
        ]
    return result
