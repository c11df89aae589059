"""
Double elimination bracket generation.

In double elimination:
- Entries must lose twice to be eliminated
- Winners Bracket: entries that haven't lost yet
- Losers Bracket: entries that have lost once
- Grand Final: Winners bracket champion (slot 1) vs Losers bracket champion (slot 2)
"""
from typing import List

from .advancement import resolve_byes
from .elimination import (
    build_winners_bracket,
    calculate_bracket_size,
    calculate_total_rounds,
    mark_byes,
    seat_first_round,
)
from .errors import NotEnoughEntriesError
from .graph import MatchGraph, link_loser, link_winner
from .models import BracketSide, Entry

GRAND_FINAL_ROUND = 1


def get_losers_round_name(round_num: int, total_losers_rounds: int) -> str:
    """Get the name for a losers bracket round (0-indexed)."""
    rounds_from_end = total_losers_rounds - round_num - 1
    if rounds_from_end == 0:
        return "Losers Final"
    elif rounds_from_end == 1:
        return "Losers Semifinal"
    else:
        return f"Losers Round {round_num + 1}"


def get_winners_round_name(teams_in_round: int, bracket_size: int) -> str:
    """Get the name for a winners bracket round."""
    if teams_in_round == 2:
        return "Winners Final"
    elif teams_in_round == 4:
        return "Winners Semifinal"
    elif teams_in_round == 8:
        return "Winners Quarterfinal"
    else:
        return f"Winners Round of {teams_in_round}"


def calculate_losers_bracket_rounds(bracket_size: int) -> int:
    """
    Calculate number of rounds in losers bracket.
    For N entries in winners bracket (power of 2):
    - Winners bracket has log2(N) rounds
    - Losers bracket has 2 * (log2(N) - 1) rounds

    Pattern: minor, major, minor, major, ... ending with a major round
    """
    if bracket_size < 2:
        return 0
    return 2 * (calculate_total_rounds(bracket_size) - 1)


def calculate_losers_round_size(bracket_size: int, losers_round: int) -> int:
    """
    Number of matches in a losers round (1-based).

    Rounds come in pairs of equal size that halve each time: for 8 entries
    the losers rounds hold 2, 2, 1, 1 matches.
    """
    pair_index = (losers_round + 1) // 2
    return bracket_size // (2 ** (pair_index + 1))


def _build_losers_bracket(graph: MatchGraph, bracket_size: int, total_losers_rounds: int):
    """
    Create the losers rounds and their winner links.

    Odd (minor) rounds send their winner to the same order in the next round,
    slot 1, where it meets an entry dropping from the winners bracket. Even
    (major) rounds halve: match i feeds match ceil(i/2), slot by parity.
    """
    for round_number in range(1, total_losers_rounds + 1):
        for match_order in range(1, calculate_losers_round_size(bracket_size, round_number) + 1):
            graph.add(BracketSide.LOSERS, round_number, match_order)

    for round_number in range(1, total_losers_rounds):
        for match in graph.round(BracketSide.LOSERS, round_number):
            order = match.match_order
            if round_number % 2:
                link_winner(match, graph.at(BracketSide.LOSERS, round_number + 1, order), 1)
            else:
                target = graph.at(BracketSide.LOSERS, round_number + 1, (order + 1) // 2)
                link_winner(match, target, 1 if order % 2 else 2)


def _route_losers(graph: MatchGraph, total_rounds: int, total_losers_rounds: int):
    """
    Link every winners match to where its loser drops.

    Round 1 losers pair off in losers round 1 (match ceil(i/2), slot by
    parity). Losers of winners round r > 1 land in slot 2 of losers round
    2*(r-1), in reversed order so a dropped entry does not immediately meet
    the side of the bracket it just came from. With no losers rounds the
    winners final loser goes straight to the grand final.
    """
    grand_final = graph.at(BracketSide.FINALS, GRAND_FINAL_ROUND, 1)

    for round_number in range(1, total_rounds + 1):
        winners_round = graph.round(BracketSide.WINNERS, round_number)
        match_count = len(winners_round)

        for match in winners_round:
            order = match.match_order
            if total_losers_rounds == 0:
                link_loser(match, grand_final, 2)
            elif round_number == 1:
                target = graph.at(BracketSide.LOSERS, 1, (order + 1) // 2)
                link_loser(match, target, 1 if order % 2 else 2)
            else:
                target = graph.at(BracketSide.LOSERS, 2 * (round_number - 1), match_count - order + 1)
                link_loser(match, target, 2)


def generate_double_elimination_bracket(tournament_id: str, entries: List[Entry]) -> MatchGraph:
    """
    Generate the complete double elimination match graph.

    Raises:
        NotEnoughEntriesError: fewer than two entries
    """
    if len(entries) < 2:
        raise NotEnoughEntriesError("Double elimination needs at least 2 entries")

    graph = MatchGraph(tournament_id)
    bracket_size = calculate_bracket_size(len(entries))
    total_rounds = calculate_total_rounds(bracket_size)
    total_losers_rounds = calculate_losers_bracket_rounds(bracket_size)

    build_winners_bracket(graph, total_rounds)
    _build_losers_bracket(graph, bracket_size, total_losers_rounds)
    grand_final = graph.add(BracketSide.FINALS, GRAND_FINAL_ROUND, 1)

    link_winner(graph.at(BracketSide.WINNERS, total_rounds, 1), grand_final, 1)
    if total_losers_rounds:
        link_winner(graph.at(BracketSide.LOSERS, total_losers_rounds, 1), grand_final, 2)
    _route_losers(graph, total_rounds, total_losers_rounds)

    seat_first_round(graph, entries)
    mark_byes(graph)
    resolve_byes(graph)
    return graph
