"""
Tournament, entry and match records.

Records are plain objects that convert to and from the flat mappings stored
in the YAML documents (see store.py).
"""
from datetime import datetime
from enum import Enum
from typing import Dict, Optional


class TournamentStatus(str, Enum):
    DRAFT = "draft"
    STARTED = "started"
    COMPLETED = "completed"


class TournamentType(str, Enum):
    SINGLE = "single"
    DOUBLE = "double"


class BracketSide(str, Enum):
    WINNERS = "winners"
    LOSERS = "losers"
    FINALS = "finals"


class MatchStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


def _timestamp(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


class Tournament:
    def __init__(self, id, owner_id, name, tournament_type=TournamentType.SINGLE,
                 status=TournamentStatus.DRAFT, created_at=None):
        self.id = id
        self.owner_id = owner_id
        self.name = name
        self.tournament_type = TournamentType(tournament_type)
        self.status = TournamentStatus(status)
        self.created_at = _timestamp(created_at) or datetime.now()

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'owner_id': self.owner_id,
            'name': self.name,
            'status': self.status.value,
            'tournament_type': self.tournament_type.value,
            'created_at': self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Tournament':
        return cls(
            id=data['id'],
            owner_id=data['owner_id'],
            name=data['name'],
            tournament_type=data['tournament_type'],
            status=data['status'],
            created_at=data.get('created_at'),
        )

    def __repr__(self):
        return f"Tournament(id={self.id}, name={self.name}, type={self.tournament_type.value}, status={self.status.value})"


class Entry:
    def __init__(self, id, tournament_id, name, seed, embed_link=None):
        self.id = id
        self.tournament_id = tournament_id
        self.name = name
        self.seed = seed
        self.embed_link = embed_link or None

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'name': self.name,
            'seed': self.seed,
            'embed_link': self.embed_link,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Entry':
        return cls(
            id=data['id'],
            tournament_id=data['tournament_id'],
            name=data['name'],
            seed=data['seed'],
            embed_link=data.get('embed_link'),
        )

    def __repr__(self):
        return f"Entry(name={self.name}, seed={self.seed})"


class Match:
    """
    One node of the match graph.

    Slots are numbered 1 and 2. ``winner_next_*`` / ``loser_next_*`` point at
    the match and slot the winner / loser is routed to; both are None for the
    terminal match of a bracket arm.
    """

    def __init__(self, id, tournament_id, bracket_side, round_number, match_order,
                 entry_1_id=None, entry_2_id=None, score_1=0, score_2=0,
                 status=MatchStatus.PENDING, winner_slot=None,
                 winner_next_match_id=None, winner_next_slot=None,
                 loser_next_match_id=None, loser_next_slot=None,
                 is_bye=False, created_at=None):
        self.id = id
        self.tournament_id = tournament_id
        self.bracket_side = BracketSide(bracket_side)
        self.round_number = round_number
        self.match_order = match_order
        self.entry_1_id = entry_1_id
        self.entry_2_id = entry_2_id
        self.score_1 = score_1
        self.score_2 = score_2
        self.status = MatchStatus(status)
        self.winner_slot = winner_slot
        self.winner_next_match_id = winner_next_match_id
        self.winner_next_slot = winner_next_slot
        self.loser_next_match_id = loser_next_match_id
        self.loser_next_slot = loser_next_slot
        self.is_bye = is_bye
        self.created_at = _timestamp(created_at) or datetime.now()

    @property
    def is_finished(self) -> bool:
        return self.status == MatchStatus.FINISHED

    def entry_in_slot(self, slot: int) -> Optional[str]:
        if slot == 1:
            return self.entry_1_id
        if slot == 2:
            return self.entry_2_id
        raise ValueError(f"Invalid slot: {slot}")

    def seat(self, slot: int, entry_id: str):
        """Place an entry into slot 1 or 2."""
        if slot == 1:
            self.entry_1_id = entry_id
        elif slot == 2:
            self.entry_2_id = entry_id
        else:
            raise ValueError(f"Invalid slot: {slot}")

    def slot_of(self, entry_id: str) -> Optional[int]:
        """Return the slot an entry is seated in, or None."""
        if entry_id is None:
            return None
        if self.entry_1_id == entry_id:
            return 1
        if self.entry_2_id == entry_id:
            return 2
        return None

    def sole_entry_id(self) -> Optional[str]:
        """The only seated entry, or None when zero or two are seated."""
        if self.entry_1_id is not None and self.entry_2_id is None:
            return self.entry_1_id
        if self.entry_2_id is not None and self.entry_1_id is None:
            return self.entry_2_id
        return None

    def winner_entry_id(self) -> Optional[str]:
        if not self.is_finished or self.winner_slot is None:
            return None
        return self.entry_in_slot(self.winner_slot)

    def loser_entry_id(self) -> Optional[str]:
        if not self.is_finished or self.winner_slot is None:
            return None
        return self.entry_in_slot(3 - self.winner_slot)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'bracket_side': self.bracket_side.value,
            'round_number': self.round_number,
            'match_order': self.match_order,
            'entry_1_id': self.entry_1_id,
            'entry_2_id': self.entry_2_id,
            'score_1': self.score_1,
            'score_2': self.score_2,
            'status': self.status.value,
            'winner_slot': self.winner_slot,
            'winner_next_match_id': self.winner_next_match_id,
            'winner_next_slot': self.winner_next_slot,
            'loser_next_match_id': self.loser_next_match_id,
            'loser_next_slot': self.loser_next_slot,
            'is_bye': self.is_bye,
            'created_at': self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Match':
        return cls(**data)

    def __repr__(self):
        return (f"Match(side={self.bracket_side.value}, round={self.round_number}, "
                f"order={self.match_order}, status={self.status.value}, is_bye={self.is_bye})")
