"""
YAML-backed tournament store.

Each tournament is one YAML document under ``<data_dir>/tournaments/``
holding its tournament row, entries and matches. All mutation goes through
``TournamentStore.transaction()``, which holds the tournament's file lock for
the whole unit of work and writes the document back atomically only when the
block finishes without an exception.
"""
import glob
import logging
import os
import tempfile
from contextlib import contextmanager
from typing import Dict, List, Optional

import yaml
from filelock import FileLock, Timeout

from .errors import NotFoundError, PersistenceError
from .graph import sort_matches
from .models import Entry, Match, Tournament, TournamentStatus

logger = logging.getLogger(__name__)

INDEX_FILENAME = 'index.yaml'


def _write_yaml_atomic(path: str, data):
    """Write YAML to a temporary file in the same directory, then replace."""
    directory = os.path.dirname(path)
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.tmp-', suffix='.yaml')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def _read_yaml(path: str):
    with open(path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f)


class Transaction:
    """
    Handle for one unit of work on a single tournament.

    Reads return detached copies; only the update/create methods change the
    pending document. Nothing reaches disk until the owning
    ``TournamentStore.transaction()`` block exits cleanly.
    """

    def __init__(self, tournament_id: str, document: Optional[Dict] = None):
        self.tournament_id = tournament_id
        document = document or {}
        self._tournament = document.get('tournament')
        self._entries = {e['id']: e for e in document.get('entries') or []}
        self._matches = {m['id']: m for m in document.get('matches') or []}
        self.dirty = False

    def to_document(self) -> Dict:
        return {
            'tournament': self._tournament,
            'entries': sorted(self._entries.values(), key=lambda e: e['seed']),
            'matches': [m.to_dict() for m in self.get_matches()],
        }

    def new_match_ids(self, previous: 'Transaction') -> List[str]:
        return [mid for mid in self._matches if mid not in previous._matches]

    # Tournament

    def create_tournament(self, tournament: Tournament):
        if self._tournament is not None:
            raise PersistenceError()
        self._tournament = tournament.to_dict()
        self.dirty = True

    def get_tournament(self) -> Tournament:
        if self._tournament is None:
            raise NotFoundError("Tournament not found")
        return Tournament.from_dict(self._tournament)

    def update_tournament_status(self, status: TournamentStatus):
        if self._tournament is None:
            raise NotFoundError("Tournament not found")
        self._tournament = dict(self._tournament, status=TournamentStatus(status).value)
        self.dirty = True

    # Entries

    def create_entries(self, entries: List[Entry]):
        for entry in entries:
            self._entries[entry.id] = entry.to_dict()
        if entries:
            self.dirty = True

    def get_entries(self) -> List[Entry]:
        return [Entry.from_dict(e) for e in sorted(self._entries.values(), key=lambda e: e['seed'])]

    def get_entry(self, entry_id: str) -> Entry:
        try:
            return Entry.from_dict(self._entries[entry_id])
        except KeyError:
            raise NotFoundError("Entry not found") from None

    # Matches

    def create_matches(self, matches: List[Match]):
        for match in matches:
            self._matches[match.id] = match.to_dict()
        if matches:
            self.dirty = True

    def get_matches(self) -> List[Match]:
        return sort_matches(Match.from_dict(m) for m in self._matches.values())

    def get_match(self, match_id: str) -> Match:
        try:
            return Match.from_dict(self._matches[match_id])
        except KeyError:
            raise NotFoundError("Match not found") from None

    # The tournament lock is held for the whole transaction.
    get_match_for_update = get_match

    def update_match(self, match: Match):
        if match.id not in self._matches:
            raise NotFoundError("Match not found")
        self._matches[match.id] = match.to_dict()
        self.dirty = True


class TournamentStore:
    def __init__(self, data_dir: str, lock_timeout: float = 10):
        self.data_dir = data_dir
        self.lock_timeout = lock_timeout
        self.tournaments_dir = os.path.join(data_dir, 'tournaments')
        self.index_file = os.path.join(data_dir, INDEX_FILENAME)
        self._index_lock = FileLock(os.path.join(data_dir, '.index.lock'), timeout=lock_timeout)

    def _document_path(self, tournament_id: str) -> str:
        if not tournament_id or os.sep in tournament_id or tournament_id.startswith('.'):
            raise NotFoundError("Tournament not found")
        return os.path.join(self.tournaments_dir, f'{tournament_id}.yaml')

    def _lock_for(self, tournament_id: str) -> FileLock:
        return FileLock(os.path.join(self.tournaments_dir, f'{tournament_id}.lock'),
                        timeout=self.lock_timeout)

    def _load_document(self, tournament_id: str) -> Dict:
        path = self._document_path(tournament_id)
        if not os.path.exists(path):
            raise NotFoundError("Tournament not found")
        try:
            return _read_yaml(path) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f'Failed to read {path}: {e}', exc_info=True)
            raise PersistenceError() from e

    @contextmanager
    def transaction(self, tournament_id: str, create: bool = False):
        """
        Open a locked unit of work on one tournament.

        Args:
            tournament_id: Tournament to operate on
            create: True when the tournament document does not exist yet

        Raises:
            NotFoundError: the tournament does not exist (and create is False)
            PersistenceError: the lock could not be taken in time, or the
                document could not be read or written
        """
        path = self._document_path(tournament_id)
        os.makedirs(self.tournaments_dir, exist_ok=True)
        lock = self._lock_for(tournament_id)
        try:
            lock.acquire()
        except Timeout as e:
            logger.error(f'Timed out waiting for lock on tournament {tournament_id}')
            raise PersistenceError() from e

        try:
            if create:
                if os.path.exists(path):
                    raise PersistenceError()
                before = Transaction(tournament_id)
                tx = Transaction(tournament_id)
            else:
                document = self._load_document(tournament_id)
                before = Transaction(tournament_id, document)
                tx = Transaction(tournament_id, document)

            try:
                yield tx
            except BaseException:
                logger.debug(f'Rolled back transaction on tournament {tournament_id}')
                raise

            if tx.dirty:
                self._commit(path, tx, before, create)
        finally:
            lock.release()

    def _commit(self, path: str, tx: Transaction, before: Transaction, create: bool):
        try:
            _write_yaml_atomic(path, tx.to_document())
        except (OSError, yaml.YAMLError) as e:
            logger.error(f'Failed to write {path}: {e}', exc_info=True)
            raise PersistenceError() from e

        new_ids = tx.new_match_ids(before)
        if not new_ids:
            return
        try:
            self._add_to_index(tx.tournament_id, new_ids)
        except (OSError, yaml.YAMLError, Timeout, PersistenceError) as e:
            logger.error(f'Failed to index matches of tournament {tx.tournament_id}: {e}', exc_info=True)
            if create:
                os.remove(path)
            raise PersistenceError() from e

    def _add_to_index(self, tournament_id: str, match_ids: List[str]):
        with self._index_lock:
            index = self._read_index()
            matches = index.setdefault('matches', {})
            for match_id in match_ids:
                matches[match_id] = tournament_id
            _write_yaml_atomic(self.index_file, index)

    def _read_index(self) -> Dict:
        if not os.path.exists(self.index_file):
            return {'matches': {}}
        try:
            return _read_yaml(self.index_file) or {'matches': {}}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f'Failed to read {self.index_file}: {e}', exc_info=True)
            raise PersistenceError() from e

    def find_tournament_for_match(self, match_id: str) -> str:
        tournament_id = self._read_index().get('matches', {}).get(match_id)
        if tournament_id is None:
            raise NotFoundError("Match not found")
        return tournament_id

    def load(self, tournament_id: str) -> Transaction:
        """
        Read-only snapshot of a tournament.

        Documents are replaced atomically, so no lock is needed to get a
        consistent view. Changes made to the snapshot are never saved.
        """
        return Transaction(tournament_id, self._load_document(tournament_id))

    def list_tournaments(self, owner_id: str) -> List[Tournament]:
        """Tournaments owned by ``owner_id``, newest first."""
        tournaments = []
        for path in glob.glob(os.path.join(self.tournaments_dir, '*.yaml')):
            try:
                document = _read_yaml(path) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f'Skipping unreadable tournament file {path}: {e}')
                continue
            data = document.get('tournament')
            if data and data.get('owner_id') == owner_id:
                tournaments.append(Tournament.from_dict(data))
        tournaments.sort(key=lambda t: t.created_at, reverse=True)
        return tournaments
