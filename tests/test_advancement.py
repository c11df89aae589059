"""
Tests for the match advancement engine, driven through the service and store.
"""
import pytest

from bracket.errors import (
    InvalidWinnerError,
    MatchAlreadyDecidedError,
    NotFoundError,
    OutOfOrderError,
    PersistenceError,
)
from bracket.graph import find_next_pending_match
from bracket.models import MatchStatus, TournamentStatus
from bracket.store import Transaction
from conftest import entry_inputs, find_match


def snapshot(service, tournament_id):
    """Comparable view of every match in a tournament."""
    data = service.get_tournament_data(tournament_id)
    return [m.to_dict() for m in data['matches']], data['tournament'].status


def play_out(service, tournament_id, pick=lambda m: m.entry_1_id, limit=200):
    """Decide the next pending match until none is left."""
    for _ in range(limit):
        data = service.get_tournament_data(tournament_id)
        match = find_next_pending_match(data['matches'])
        if match is None:
            return
        service.advance_winner(match.id, pick(match))
    raise AssertionError("Tournament did not finish")


class TestAdvanceWinnerSingle:
    def _create(self, service, count=4):
        tid = service.create_tournament('owner', 'Test Tournament', 'single', entry_inputs(count))
        data = service.get_tournament_data(tid)
        return tid, data['entries'], data['matches']

    def test_winners_move_to_final(self, service):
        tid, entries, matches = self._create(service)
        assert len(matches) == 3
        match1 = find_match(matches, 'winners', 1, 1)
        match2 = find_match(matches, 'winners', 1, 2)
        final = find_match(matches, 'winners', 2, 1)
        seed1, seed2 = entries[0], entries[1]

        assert service.advance_winner(match1.id, seed1.id) == tid

        data = service.get_tournament_data(tid)
        updated1 = find_match(data['matches'], 'winners', 1, 1)
        assert updated1.status == MatchStatus.FINISHED
        assert updated1.winner_slot == 1
        updated_final = find_match(data['matches'], 'winners', 2, 1)
        assert updated_final.entry_1_id == seed1.id
        assert updated_final.entry_2_id is None

        service.advance_winner(match2.id, seed2.id)
        data = service.get_tournament_data(tid)
        updated_final = find_match(data['matches'], 'winners', 2, 1)
        assert updated_final.entry_2_id == seed2.id
        assert data['next_match_id'] == final.id

    def test_enforce_order(self, service):
        tid, entries, matches = self._create(service)
        match1, match2, final = matches
        seed1, seed3 = entries[0], entries[2]

        with pytest.raises(OutOfOrderError, match="must be decided in order"):
            service.advance_winner(match2.id, seed3.id)

        service.advance_winner(match1.id, seed1.id)

        with pytest.raises(OutOfOrderError):
            service.advance_winner(final.id, seed1.id)

        service.advance_winner(match2.id, seed3.id)
        service.advance_winner(final.id, seed1.id)

    def test_invalid_winner(self, service):
        tid, entries, matches = self._create(service)
        match1 = matches[0]
        not_seated = entries[1]  # seed 2 plays in match 2
        before = snapshot(service, tid)

        with pytest.raises(InvalidWinnerError):
            service.advance_winner(match1.id, not_seated.id)

        assert snapshot(service, tid) == before

    def test_out_of_order_leaves_state_unchanged(self, service):
        tid, entries, matches = self._create(service)
        before = snapshot(service, tid)

        with pytest.raises(OutOfOrderError):
            service.advance_winner(matches[1].id, matches[1].entry_1_id)

        assert snapshot(service, tid) == before

    def test_unknown_match(self, service):
        self._create(service)
        with pytest.raises(NotFoundError):
            service.advance_winner('no-such-match', 'whoever')

    def test_completion(self, service):
        tid, entries, matches = self._create(service)
        match1, match2, final = matches
        service.advance_winner(match1.id, match1.entry_1_id)
        service.advance_winner(match2.id, match2.entry_2_id)

        assert service.get_tournament_data(tid)['tournament'].status == TournamentStatus.STARTED
        service.advance_winner(final.id, match1.entry_1_id)

        data = service.get_tournament_data(tid)
        assert data['tournament'].status == TournamentStatus.COMPLETED
        assert data['next_match_id'] is None

    def test_no_advancement_after_completion(self, service):
        tid, entries, matches = self._create(service, count=2)
        final = matches[0]
        service.advance_winner(final.id, final.entry_1_id)
        before = snapshot(service, tid)

        with pytest.raises(MatchAlreadyDecidedError):
            service.advance_winner(final.id, final.entry_2_id)
        assert snapshot(service, tid) == before

    def test_already_decided_is_out_of_order(self):
        assert issubclass(MatchAlreadyDecidedError, OutOfOrderError)

    def test_scores_recorded(self, service):
        tid, entries, matches = self._create(service)
        service.advance_winner(matches[0].id, matches[0].entry_2_id, score_1=1, score_2=3)
        updated = find_match(service.get_tournament_data(tid)['matches'], 'winners', 1, 1)
        assert (updated.score_1, updated.score_2) == (1, 3)
        assert updated.winner_slot == 2

    def test_bye_winner_can_still_meet_opponent(self, service):
        """5 entries: seed 1 gets a bye and meets the 4v5 winner."""
        tid, entries, matches = self._create(service, count=5)
        m2 = find_match(matches, 'winners', 1, 2)
        service.advance_winner(m2.id, m2.entry_2_id)
        semi = find_match(service.get_tournament_data(tid)['matches'], 'winners', 2, 1)
        assert semi.entry_1_id == entries[0].id
        assert semi.entry_2_id == m2.entry_2_id

    @pytest.mark.parametrize("count", [2, 3, 5, 8, 13])
    def test_play_out_completes(self, service, count):
        tid = service.create_tournament('owner', 'T', 'single', entry_inputs(count))
        play_out(service, tid)
        data = service.get_tournament_data(tid)
        assert data['tournament'].status == TournamentStatus.COMPLETED
        assert all(m.is_finished for m in data['matches'])


class TestAdvanceWinnerDouble:
    def test_loser_drops_to_losers_bracket(self, service):
        tid = service.create_tournament('owner', 'Double Elim Test', 'double', entry_inputs(4))
        matches = service.get_tournament_data(tid)['matches']

        wb_r1_m1 = find_match(matches, 'winners', 1, 1)
        assert wb_r1_m1.entry_1_id is not None and wb_r1_m1.entry_2_id is not None
        winner_id, loser_id = wb_r1_m1.entry_1_id, wb_r1_m1.entry_2_id

        service.advance_winner(wb_r1_m1.id, winner_id)

        matches = service.get_tournament_data(tid)['matches']
        assert find_match(matches, 'winners', 2, 1).entry_1_id == winner_id
        lb_r1_m1 = find_match(matches, 'losers', 1, 1)
        assert loser_id in (lb_r1_m1.entry_1_id, lb_r1_m1.entry_2_id)

    def test_bye_handling_five_entries(self, service):
        """The fifth seed's losers-bracket bye advances without a separate request."""
        tid = service.create_tournament('owner', 'Bye Test', 'double', entry_inputs(5))
        data = service.get_tournament_data(tid)
        p5 = next(e for e in data['entries'] if e.seed == 5)
        p4 = next(e for e in data['entries'] if e.seed == 4)

        assert find_match(data['matches'], 'losers', 2, 2).is_bye

        wb_r1_m2 = find_match(data['matches'], 'winners', 1, 2)
        assert {wb_r1_m2.entry_1_id, wb_r1_m2.entry_2_id} == {p4.id, p5.id}
        service.advance_winner(wb_r1_m2.id, p4.id)

        matches = service.get_tournament_data(tid)['matches']
        lb_r1_m1 = find_match(matches, 'losers', 1, 1)
        assert lb_r1_m1.status == MatchStatus.FINISHED
        lb_r2_m1 = find_match(matches, 'losers', 2, 1)
        assert p5.id in (lb_r2_m1.entry_1_id, lb_r2_m1.entry_2_id)

    def test_dropdown_resolves_losers_bye(self, service):
        """5 entries: the loser of winners round 2 match 1 passes straight through its bye."""
        tid = service.create_tournament('owner', 'Bye Test', 'double', entry_inputs(5))
        matches = service.get_tournament_data(tid)['matches']
        wb_r1_m2 = find_match(matches, 'winners', 1, 2)
        service.advance_winner(wb_r1_m2.id, wb_r1_m2.entry_1_id)

        matches = service.get_tournament_data(tid)['matches']
        wb_r2_m1 = find_match(matches, 'winners', 2, 1)
        service.advance_winner(wb_r2_m1.id, wb_r2_m1.entry_1_id)
        dropped = wb_r2_m1.entry_2_id

        matches = service.get_tournament_data(tid)['matches']
        lb_r2_m2 = find_match(matches, 'losers', 2, 2)
        assert lb_r2_m2.status == MatchStatus.FINISHED
        assert lb_r2_m2.entry_2_id == dropped
        lb_r3_m1 = find_match(matches, 'losers', 3, 1)
        assert lb_r3_m1.entry_2_id == dropped

    def test_losers_match_waits_for_opponent(self, service):
        tid = service.create_tournament('owner', 'T', 'double', entry_inputs(8))
        matches = service.get_tournament_data(tid)['matches']
        for match in (find_match(matches, 'winners', 1, o) for o in range(1, 5)):
            service.advance_winner(match.id, match.entry_1_id)
        matches = service.get_tournament_data(tid)['matches']
        for order in (1, 2):
            match = find_match(matches, 'losers', 1, order)
            service.advance_winner(match.id, match.entry_1_id)

        matches = service.get_tournament_data(tid)['matches']
        lb_r2_m1 = find_match(matches, 'losers', 2, 1)
        assert lb_r2_m1.entry_1_id is not None
        assert lb_r2_m1.entry_2_id is None

        with pytest.raises(OutOfOrderError, match="waiting for an opponent"):
            service.advance_winner(lb_r2_m1.id, lb_r2_m1.entry_1_id)

    def test_grand_final_completes(self, service):
        tid = service.create_tournament('owner', 'T', 'double', entry_inputs(2))
        matches = service.get_tournament_data(tid)['matches']
        final = find_match(matches, 'winners', 1, 1)
        service.advance_winner(final.id, final.entry_2_id)

        data = service.get_tournament_data(tid)
        grand_final = find_match(data['matches'], 'finals', 1, 1)
        assert grand_final.entry_1_id == final.entry_2_id
        assert grand_final.entry_2_id == final.entry_1_id
        assert data['tournament'].status == TournamentStatus.STARTED

        service.advance_winner(grand_final.id, grand_final.entry_2_id)
        assert service.get_tournament_data(tid)['tournament'].status == TournamentStatus.COMPLETED

    @pytest.mark.parametrize("count", [2, 3, 4, 5, 6, 7, 8, 9, 12, 16])
    def test_play_out_completes(self, service, count):
        """Always deciding the next pending match finishes every bracket size."""
        tid = service.create_tournament('owner', 'T', 'double', entry_inputs(count))
        play_out(service, tid)
        data = service.get_tournament_data(tid)
        assert data['tournament'].status == TournamentStatus.COMPLETED
        assert all(m.is_finished for m in data['matches'])

    @pytest.mark.parametrize("count", [5, 8, 11])
    def test_every_entry_loses_at_most_twice(self, service, count):
        tid = service.create_tournament('owner', 'T', 'double', entry_inputs(count))
        play_out(service, tid, pick=lambda m: m.entry_2_id)
        losses = {}
        for match in service.get_tournament_data(tid)['matches']:
            loser = match.loser_entry_id()
            if loser is not None:
                losses[loser] = losses.get(loser, 0) + 1
        assert losses
        assert max(losses.values()) <= 2
        # Everyone but the champion was eliminated
        assert len(losses) == count


class TestAtomicity:
    def test_failure_mid_propagation_rolls_back(self, service, monkeypatch):
        """A store failure after the decision was recorded leaves nothing behind."""
        tid = service.create_tournament('owner', 'T', 'double', entry_inputs(4))
        before = snapshot(service, tid)
        match = find_match(service.get_tournament_data(tid)['matches'], 'winners', 1, 1)

        original_update = Transaction.update_match
        calls = {'count': 0}

        def failing_update(self, m):
            calls['count'] += 1
            if calls['count'] == 3:
                raise PersistenceError()
            return original_update(self, m)

        monkeypatch.setattr(Transaction, 'update_match', failing_update)
        with pytest.raises(PersistenceError):
            service.advance_winner(match.id, match.entry_1_id)
        monkeypatch.setattr(Transaction, 'update_match', original_update)

        assert calls['count'] == 3
        assert snapshot(service, tid) == before

        # The same decision succeeds afterwards
        service.advance_winner(match.id, match.entry_1_id)
