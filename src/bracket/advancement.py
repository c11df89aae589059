"""
Match advancement state machine.

A match goes from pending to finished exactly once. Deciding a match routes
its winner (and, in double elimination, its loser) to the dependent matches;
any dependent bye match that thereby receives its only entry is resolved on
the spot. Propagation runs off an explicit stack, so its depth is bounded by
the number of rounds rather than by recursion.

The functions here work against a *session*: any object providing
``get_match_for_update(match_id)``, ``update_match(match)`` and, for human
decisions, ``get_matches()`` and ``update_tournament_status(status)``.
A store transaction is one; the in-memory MatchGraph used during generation
provides the first two.
"""
import logging
from typing import List, Tuple

from .errors import InvalidWinnerError, MatchAlreadyDecidedError, OutOfOrderError
from .graph import find_earlier_open_match
from .models import MatchStatus, TournamentStatus

logger = logging.getLogger(__name__)


def advance_winner(session, match_id: str, winner_entry_id: str,
                   score_1=None, score_2=None) -> bool:
    """
    Record a human decision and propagate it.

    Args:
        session: Store transaction for the match's tournament
        match_id: Match being decided
        winner_entry_id: Entry declared the winner; must be seated in the match
        score_1, score_2: Optional scores stored on the match as-is

    Returns:
        True if this decision completed the tournament.

    Raises:
        MatchAlreadyDecidedError: the match is already finished
        OutOfOrderError: an earlier match on the same side is still open, or
            the match is still waiting for an opponent
        InvalidWinnerError: the winner is not seated in this match
    """
    match = session.get_match_for_update(match_id)

    if match.is_finished:
        raise MatchAlreadyDecidedError()

    # Byes have no human decision point and skip the sequencing rules.
    if not match.is_bye:
        earlier = find_earlier_open_match(match, session.get_matches())
        if earlier is not None:
            logger.warning(
                f"Rejected out-of-order decision for match {match.id}: "
                f"{earlier.bracket_side.value} R{earlier.round_number} M{earlier.match_order} is still open"
            )
            raise OutOfOrderError()
        if match.entry_1_id is None or match.entry_2_id is None:
            raise OutOfOrderError("Match is still waiting for an opponent")

    if match.slot_of(winner_entry_id) is None:
        raise InvalidWinnerError()

    if score_1 is not None or score_2 is not None:
        match.score_1 = score_1 if score_1 is not None else match.score_1
        match.score_2 = score_2 if score_2 is not None else match.score_2
        session.update_match(match)

    completed = propagate(session, match.id, winner_entry_id)
    if completed:
        session.update_tournament_status(TournamentStatus.COMPLETED)
        logger.info(f"Tournament {match.tournament_id} completed")
    return completed


def propagate(session, match_id: str, winner_entry_id: str) -> bool:
    """
    Finish a match with the given winner and push results downstream.

    Returns True if a terminal match (no winner target) was finished.
    """
    completed = False
    stack: List[Tuple[str, str]] = [(match_id, winner_entry_id)]

    while stack:
        current_id, winner_id = stack.pop()
        match = session.get_match_for_update(current_id)

        slot = match.slot_of(winner_id)
        if slot is None:
            raise InvalidWinnerError()

        match.status = MatchStatus.FINISHED
        match.winner_slot = slot
        session.update_match(match)

        loser_id = match.loser_entry_id()

        if match.winner_next_match_id is not None:
            _route(session, stack, match.winner_next_match_id, match.winner_next_slot, winner_id)
        else:
            completed = True

        if match.loser_next_match_id is not None and loser_id is not None:
            _route(session, stack, match.loser_next_match_id, match.loser_next_slot, loser_id)

    return completed


def _route(session, stack: List[Tuple[str, str]], target_id: str, slot: int, entry_id: str):
    target = session.get_match_for_update(target_id)
    target.seat(slot, entry_id)
    session.update_match(target)
    logger.debug(
        f"Entry {entry_id} routed to {target.bracket_side.value} "
        f"R{target.round_number} M{target.match_order} slot {slot}"
    )

    if target.is_bye and not target.is_finished:
        sole = target.sole_entry_id()
        if sole is not None:
            logger.debug(f"Auto-resolving bye match {target.id}")
            stack.append((target.id, sole))


def resolve_byes(graph):
    """Resolve every bye match that already holds its only entry."""
    for match in graph.matches():
        if match.is_bye and not match.is_finished:
            sole = match.sole_entry_id()
            if sole is not None:
                propagate(graph, match.id, sole)
