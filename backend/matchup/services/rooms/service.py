import functools
import inspect
import logging
import random
from typing import Any, Dict, List, NamedTuple, Optional

from matchup.models import Choice, Notification, Phase, Session
from . import machine
from .errors import AlreadyInRoom, NotInRoom, RoomError, RoomNotFound
from .registry import SessionRegistry

logger = logging.getLogger(__name__)


class Command(NamedTuple):
    """An inbound client action, already stripped of its transport."""
    name: str
    participant_id: str
    payload: Optional[Dict[str, Any]] = None


def _reports_errors(action):
    """Turn a RoomError raised by `action` into an error notification for its caller."""
    @functools.wraps(action)
    def wrapper(self, participant_id, *args, **kwargs):
        try:
            return action(self, participant_id, *args, **kwargs)
        except RoomError as exc:
            if exc.silent:
                logger.debug(f"[ignored] action={action.__name__} participant={participant_id} reason={exc.message}")
                return []
            logger.info(f"[rejected] action={action.__name__} participant={participant_id} reason={exc.message}")
            return [Notification('error', {'message': exc.message}, participant_id=participant_id)]
    return wrapper


class RoomService:
    """Entry point for every room action.

    Resolves the participant's session, serializes work on it through the
    session lock and hands back the notifications to deliver. Sessions in
    different rooms never share a lock.
    """

    def __init__(self, registry: Optional[SessionRegistry] = None, rng: Optional[random.Random] = None):
        self.registry = registry or SessionRegistry()
        self.rng = rng

    def handle(self, command: Command) -> List[Notification]:
        handler = {
            'create_room': self.create_room,
            'join_room': self.join_room,
            'submit_items': self.submit_items,
            'make_choice': self.make_choice,
            'disconnect': self.disconnect,
        }.get(command.name)
        if handler is None:
            return [Notification('error', {'message': f"Unknown action: {command.name}"},
                                 participant_id=command.participant_id)]
        payload = command.payload or {}
        try:
            inspect.signature(handler).bind(command.participant_id, **payload)
        except TypeError:
            return [Notification('error', {'message': f"Malformed payload for {command.name}"},
                                 participant_id=command.participant_id)]
        return handler(command.participant_id, **payload)

    def _session_of(self, participant_id: str) -> Session:
        session = self.registry.session_for(participant_id)
        if session is None:
            raise NotInRoom()
        return session

    @_reports_errors
    def create_room(self, participant_id: str) -> List[Notification]:
        if self.registry.code_for(participant_id):
            raise AlreadyInRoom()
        code = self.registry.create_session()
        session = self.registry.lookup(code)
        with session.lock:
            self.registry.join(code, participant_id)
            notifications = [Notification('room_created', {'code': code}, participant_id=participant_id)]
            notifications.extend(machine.participant_joined(session))
        return notifications

    @_reports_errors
    def join_room(self, participant_id: str, code: str) -> List[Notification]:
        if self.registry.code_for(participant_id):
            raise AlreadyInRoom()
        session = self.registry.lookup(code)
        if session is None:
            raise RoomNotFound()
        with session.lock:
            self.registry.join(session.code, participant_id)
            return machine.participant_joined(session)

    @_reports_errors
    def submit_items(self, participant_id: str, names: List[str]) -> List[Notification]:
        if not isinstance(names, (list, tuple)) or not all(isinstance(n, str) for n in names):
            raise RoomError('names must be a list')
        session = self._session_of(participant_id)
        with session.lock:
            if participant_id not in session.participants:
                raise NotInRoom()
            return machine.submit_items(session, participant_id, list(names), self.rng)

    @_reports_errors
    def make_choice(self, participant_id: str, item_id: str, choice) -> List[Notification]:
        try:
            choice = Choice(choice)
        except ValueError:
            raise RoomError(f"Unknown choice: {choice}")
        if not isinstance(item_id, str) or not item_id:
            raise RoomError('item_id and choice are required')
        session = self._session_of(participant_id)
        with session.lock:
            if participant_id not in session.participants:
                raise NotInRoom()
            return machine.record_choice(session, participant_id, item_id, choice, self.rng)

    def disconnect(self, participant_id: str) -> List[Notification]:
        code = self.registry.code_for(participant_id)
        if code is None:
            return []
        session = self.registry.lookup(code)
        if session is None:
            self.registry.remove_participant(code, participant_id)
            return []
        with session.lock:
            self.registry.remove_participant(code, participant_id)
            logger.info(f"[disconnect] room={code} participant={participant_id} phase={session.phase.value}")
            return machine.participant_left(session, participant_id)

    def expire_choice(self, participant_id: str, item_id: str, round_number: int, index: int) -> List[Notification]:
        """Vote NEUTRAL for a participant still sitting on the given card.

        Used by the choice timer. Anything that moved on in the meantime
        (a real vote, a new round, a disconnect) makes this a no-op.
        """
        session = self.registry.session_for(participant_id)
        if session is None:
            return []
        with session.lock:
            if session.phase != Phase.RATING or session.round_number != round_number:
                return []
            if session.cursor.get(participant_id) != index:
                return []
            current = session.current_item(participant_id)
            if current is None or current.id != item_id:
                return []
            logger.info(f"[auto-neutral] room={session.code} participant={participant_id} item={item_id}")
            return self.make_choice(participant_id, item_id, Choice.NEUTRAL)

    def snapshot(self, code: str) -> Optional[Dict[str, Any]]:
        session = self.registry.lookup(code)
        if session is None:
            return None
        with session.lock:
            return session.to_dict()
