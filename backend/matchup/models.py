import random
import re
import string
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Set


class Choice(str, Enum):
    YES = 'YES'
    NEUTRAL = 'NEUTRAL'
    NO = 'NO'


class Phase(str, Enum):
    IDLE = 'idle'
    AWAITING_SECOND = 'awaiting_second'
    SUBMITTING = 'submitting'
    RATING = 'rating'
    ENDED = 'ended'


def generate_room_code(length=6, taken=()):
    """Generate a short room code not present in `taken`."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if code not in taken:
            return code


def make_item_id(name: str) -> str:
    """Build an item id from its name: slug, millisecond clock and a random salt.

    Unique enough that two participants typing the same name at the same
    moment still get distinct ids, but not a cryptographic guarantee.
    """
    slug = re.sub(r'\s+', '-', name.lower())
    salt = ''.join(random.choices(string.ascii_lowercase + string.digits, k=8))
    return f"{slug}-{int(time.time() * 1000)}-{salt}"


@dataclass(frozen=True)
class Item:
    id: str
    name: str

    @classmethod
    def from_name(cls, name: str) -> 'Item':
        return cls(id=make_item_id(name), name=name)

    def to_dict(self):
        return {'id': self.id, 'name': self.name}


class Notification(NamedTuple):
    """One outbound event.

    Addressed to a single participant when `participant_id` is set,
    otherwise broadcast to everyone in `room_code`.
    """
    event: str
    payload: Dict[str, Any]
    participant_id: Optional[str] = None
    room_code: Optional[str] = None

    @property
    def is_broadcast(self) -> bool:
        return self.participant_id is None


@dataclass
class Session:
    code: str
    participants: List[str] = field(default_factory=list)
    submitted_by: Set[str] = field(default_factory=set)
    master_items: List[Item] = field(default_factory=list)
    personal_order: Dict[str, List[Item]] = field(default_factory=dict)
    cursor: Dict[str, int] = field(default_factory=dict)
    choice_ledger: Dict[str, Dict[str, Choice]] = field(default_factory=dict)
    round_number: int = 1
    matches: List[Item] = field(default_factory=list)
    neutrals: List[Item] = field(default_factory=list)
    phase: Phase = Phase.IDLE
    # item id -> submitting participant, only used to prune a leaver's items before rating
    item_owner: Dict[str, str] = field(default_factory=dict)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def has_finished(self, participant_id: str) -> bool:
        deck = self.personal_order.get(participant_id)
        if deck is None:
            return False
        return self.cursor.get(participant_id, 0) >= len(deck)

    def is_round_complete(self) -> bool:
        # Every deck holder counts, including one who has since disconnected
        if not self.personal_order:
            return False
        return all(self.has_finished(pid) for pid in self.personal_order)

    def current_item(self, participant_id: str) -> Optional[Item]:
        deck = self.personal_order.get(participant_id) or []
        idx = self.cursor.get(participant_id, 0)
        return deck[idx] if idx < len(deck) else None

    def to_dict(self):
        progress = []
        for position, pid in enumerate(self.participants, start=1):
            deck = self.personal_order.get(pid)
            progress.append({
                'position': position,
                'has_submitted': pid in self.submitted_by,
                'rated': self.cursor.get(pid, 0) if deck is not None else 0,
                'total': len(deck) if deck is not None else 0,
            })
        data = {
            'code': self.code,
            'phase': self.phase.value,
            'round': self.round_number,
            'participant_count': len(self.participants),
            'items': [i.to_dict() for i in self.master_items],
            'progress': progress,
        }
        if self.phase == Phase.ENDED:
            data['matches'] = [i.to_dict() for i in self.matches]
            data['neutrals'] = [i.to_dict() for i in self.neutrals]
        return data
