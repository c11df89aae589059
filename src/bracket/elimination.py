"""
Single elimination bracket generation.
"""
import math
import uuid
from typing import Dict, List, Tuple

from .advancement import resolve_byes
from .graph import MatchGraph, link_winner
from .models import BracketSide, Entry, MatchStatus


def get_round_name(teams_in_round: int, total_teams: int) -> str:
    """Get the name of a round based on number of teams."""
    if teams_in_round == 2:
        return "Final"
    elif teams_in_round == 4:
        return "Semifinal"
    elif teams_in_round == 8:
        return "Quarterfinal"
    else:
        return f"Round of {teams_in_round}"


def calculate_bracket_size(num_entries: int) -> int:
    """Calculate the bracket size (next power of 2)."""
    if num_entries <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_entries))


def calculate_byes(num_entries: int) -> int:
    """Calculate number of byes needed."""
    return calculate_bracket_size(num_entries) - num_entries


def calculate_total_rounds(bracket_size: int) -> int:
    if bracket_size < 2:
        return 0
    return int(math.log2(bracket_size))


def generate_round1_pairs(bracket_size: int) -> List[Tuple[int, int]]:
    """
    Generate round 1 pairings as 0-based slot indices.

    Starting from [0], each doubling replaces every index s with (s, k-1-s)
    where k is the new length. Slot 0 therefore meets the last slot, and the
    top and bottom halves mirror each other.

    For 8 slots: [(0, 7), (3, 4), (1, 6), (2, 5)]
    """
    if bracket_size <= 0:
        return []

    order = [0]
    while len(order) < bracket_size:
        current_count = len(order) * 2
        next_order = []
        for seed in order:
            next_order.append(seed)
            next_order.append((current_count - 1) - seed)
        order = next_order

    return [(order[i], order[i + 1]) for i in range(0, len(order), 2)]


def seed_entries(tournament_id: str, entry_inputs: List[Dict]) -> List[Entry]:
    """
    Create seeded entries from input rows.

    Each row is a dict with 'name' and optional 'embed_link'. Seeds follow the
    input order and are dense from 1; rows with a blank name are skipped.
    """
    entries = []
    for row in entry_inputs:
        name = (row.get('name') or '').strip()
        if not name:
            continue
        entries.append(Entry(
            id=str(uuid.uuid4()),
            tournament_id=tournament_id,
            name=name,
            seed=len(entries) + 1,
            embed_link=(row.get('embed_link') or '').strip() or None,
        ))
    return entries


def build_winners_bracket(graph: MatchGraph, total_rounds: int):
    """
    Create the winners-side rounds and their winner links.

    Rounds are built from the final backwards so every match can point at its
    parent: match i of round r feeds match ceil(i/2) of round r+1, slot 1 when
    i is odd and slot 2 when even.
    """
    for round_number in range(total_rounds, 0, -1):
        matches_in_round = 2 ** (total_rounds - round_number)
        for match_order in range(1, matches_in_round + 1):
            match = graph.add(BracketSide.WINNERS, round_number, match_order)
            if round_number < total_rounds:
                parent = graph.at(BracketSide.WINNERS, round_number + 1, (match_order + 1) // 2)
                link_winner(match, parent, 1 if match_order % 2 else 2)


def seat_first_round(graph: MatchGraph, entries: List[Entry]):
    """Seat entries into winners round 1 using the standard pairing order."""
    by_seed = sorted(entries, key=lambda e: e.seed)
    pairs = generate_round1_pairs(calculate_bracket_size(len(by_seed)))
    first_round = graph.round(BracketSide.WINNERS, 1)

    for match, (index1, index2) in zip(first_round, pairs):
        if index1 < len(by_seed):
            match.entry_1_id = by_seed[index1].id
        if index2 < len(by_seed):
            match.entry_2_id = by_seed[index2].id


def mark_byes(graph: MatchGraph):
    """
    Flag matches that can never have two entries.

    Walks the graph in sequence order counting, for each match, how many of
    its slots can ever be filled. A winner output is live when at least one
    input is; a loser output only when both are. Matches with one live input
    become byes. Matches with none are finished immediately as empty byes:
    they are the only matches that are finished with ``winner_slot`` None,
    and they never route an entry anywhere.
    Loser links that can never carry an entry are removed.
    """
    live_inputs: Dict[str, int] = {}

    for match in graph.matches():
        if match.bracket_side == BracketSide.WINNERS and match.round_number == 1:
            live = (match.entry_1_id is not None) + (match.entry_2_id is not None)
        else:
            live = live_inputs.get(match.id, 0)

        if live < 2:
            match.is_bye = True
        if live == 0:
            match.status = MatchStatus.FINISHED

        if live >= 1 and match.winner_next_match_id is not None:
            target = match.winner_next_match_id
            live_inputs[target] = live_inputs.get(target, 0) + 1

        if match.loser_next_match_id is not None:
            if live == 2:
                target = match.loser_next_match_id
                live_inputs[target] = live_inputs.get(target, 0) + 1
            else:
                match.loser_next_match_id = None
                match.loser_next_slot = None


def generate_single_elimination_bracket(tournament_id: str, entries: List[Entry]) -> MatchGraph:
    """
    Generate the complete single elimination match graph.

    Byes are resolved and their winners forwarded before the graph is
    returned, so it can be persisted as-is. Fewer than two entries produce an
    empty graph.
    """
    graph = MatchGraph(tournament_id)
    bracket_size = calculate_bracket_size(len(entries))
    if bracket_size < 2:
        return graph

    build_winners_bracket(graph, calculate_total_rounds(bracket_size))
    seat_first_round(graph, entries)
    mark_byes(graph)
    resolve_byes(graph)
    return graph
