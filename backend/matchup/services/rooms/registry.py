import logging
import threading
from typing import Dict, Optional

from matchup.models import Session, generate_room_code
from .errors import RoomFull, RoomNotFound

logger = logging.getLogger(__name__)

MAX_PARTICIPANTS = 2


class SessionRegistry:
    """Owns every live Session, keyed by room code.

    Also remembers which room each participant is in. All map changes go
    through one lock so create/join/leave on different rooms can run from
    concurrent handlers. Callers holding a session lock may take this lock,
    never the other way round.
    """

    def __init__(self, code_length: int = 6):
        self.code_length = code_length
        self._lock = threading.Lock()
        self._sessions: Dict[str, Session] = {}
        self._memberships: Dict[str, str] = {}

    def __len__(self):
        with self._lock:
            return len(self._sessions)

    def create_session(self) -> str:
        with self._lock:
            code = generate_room_code(self.code_length, taken=self._sessions)
            self._sessions[code] = Session(code=code)
        logger.info(f"[room-create] room={code}")
        return code

    def lookup(self, code: Optional[str]) -> Optional[Session]:
        if not code:
            return None
        with self._lock:
            return self._sessions.get(code.strip().upper())

    def code_for(self, participant_id: str) -> Optional[str]:
        with self._lock:
            return self._memberships.get(participant_id)

    def session_for(self, participant_id: str) -> Optional[Session]:
        with self._lock:
            code = self._memberships.get(participant_id)
            return self._sessions.get(code) if code else None

    def join(self, code: str, participant_id: str) -> int:
        """Add a participant and return the new participant count."""
        code = (code or '').strip().upper()
        with self._lock:
            session = self._sessions.get(code)
            if session is None:
                raise RoomNotFound()
            if len(session.participants) >= MAX_PARTICIPANTS:
                raise RoomFull()
            session.participants.append(participant_id)
            self._memberships[participant_id] = code
            count = len(session.participants)
        logger.info(f"[room-join] room={code} participant={participant_id} count={count}")
        return count

    def remove_participant(self, code: str, participant_id: str) -> int:
        """Remove a participant, deleting the session once it is empty.

        Returns the remaining participant count. Removing someone who is not
        there is a no-op.
        """
        with self._lock:
            if self._memberships.get(participant_id) == code:
                del self._memberships[participant_id]
            session = self._sessions.get(code)
            if session is None:
                return 0
            if participant_id in session.participants:
                session.participants.remove(participant_id)
            remaining = len(session.participants)
            if remaining == 0:
                del self._sessions[code]
        if remaining == 0:
            logger.info(f"[room-delete] room={code} (empty)")
        return remaining
