import uuid
from typing import Dict, List, Optional

from flask import current_app, request
from flask_socketio import emit, join_room, leave_room

from matchup import get_room_service, socketio
from matchup.models import Notification
from matchup.services.rooms.scheduler import schedule_choice_timeout


# ---- Connection bookkeeping ----
# Each socket gets an opaque participant token on connect; the room core only
# ever sees the token, never the socket id.
_sid_to_participant: Dict[str, str] = {}
_participant_to_sid: Dict[str, str] = {}


def _room(code: str) -> str:
    return f"room:{code}"


def _current_participant() -> Optional[str]:
    # type: ignore: request.sid exists in Socket.IO context
    return _sid_to_participant.get(request.sid)  # type: ignore


def _deliver(notifications: List[Notification], namespace: Optional[str] = None) -> None:
    """Emit core notifications: per-participant ones to that socket, the rest to the room."""
    if not notifications:
        return
    ns = namespace or request.namespace  # type: ignore
    app = current_app._get_current_object()
    service = get_room_service()
    for n in notifications:
        if n.is_broadcast:
            socketio.emit(n.event, n.payload, to=_room(n.room_code), namespace=ns)
            continue
        sid = _participant_to_sid.get(n.participant_id)
        if sid is None:
            continue
        socketio.emit(n.event, n.payload, to=sid, namespace=ns)
        if n.event == 'show_item':
            schedule_choice_timeout(app, service, n, lambda more: _deliver(more, ns))


def _sync_socket_room(participant_id: str) -> None:
    code = get_room_service().registry.code_for(participant_id)
    if code:
        join_room(_room(code))


def handle_connect(auth=None):
    participant_id = uuid.uuid4().hex
    _sid_to_participant[request.sid] = participant_id  # type: ignore
    _participant_to_sid[participant_id] = request.sid  # type: ignore
    emit('connected', {'message': 'Connected to /ws', 'participant_id': participant_id})


def handle_disconnect(reason=None):
    participant_id = _sid_to_participant.pop(request.sid, None)  # type: ignore
    if not participant_id:
        return
    _participant_to_sid.pop(participant_id, None)
    service = get_room_service()
    code = service.registry.code_for(participant_id)
    if code:
        leave_room(_room(code))
    _deliver(service.disconnect(participant_id))


def handle_create_room(data=None):
    participant_id = _current_participant()
    if not participant_id:
        emit('error', {'message': 'Not connected'})
        return
    notifications = get_room_service().create_room(participant_id)
    _sync_socket_room(participant_id)
    _deliver(notifications)


def handle_join_room(data):
    participant_id = _current_participant()
    if not participant_id:
        emit('error', {'message': 'Not connected'})
        return
    # Accept both {'code': 'ABC123'} and a bare code string
    code = data.get('code') if isinstance(data, dict) else data
    if not code or not isinstance(code, str):
        emit('error', {'message': 'code is required'})
        return
    notifications = get_room_service().join_room(participant_id, code)
    _sync_socket_room(participant_id)
    _deliver(notifications)


def handle_submit_items(data):
    participant_id = _current_participant()
    if not participant_id:
        emit('error', {'message': 'Not connected'})
        return
    names = data.get('names') if isinstance(data, dict) else data
    if not isinstance(names, list):
        emit('error', {'message': 'names must be a list'})
        return
    valid = [n.strip() for n in names if isinstance(n, str) and n.strip()]
    minimum = int(current_app.config.get('MIN_ITEMS_PER_SUBMISSION', 3))
    if len(valid) < minimum:
        emit('error', {'message': f'Add at least {minimum} items'})
        return
    _deliver(get_room_service().submit_items(participant_id, valid))


def handle_make_choice(data):
    participant_id = _current_participant()
    if not participant_id:
        emit('error', {'message': 'Not connected'})
        return
    if not isinstance(data, dict):
        emit('error', {'message': 'item_id and choice are required'})
        return
    item_id = data.get('item_id')
    choice = data.get('choice')
    if not item_id or not isinstance(item_id, str) or not choice or not isinstance(choice, str):
        emit('error', {'message': 'item_id and choice are required'})
        return
    _deliver(get_room_service().make_choice(participant_id, item_id, choice.upper()))


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for ns in namespaces:
        socketio.on_event('connect', handle_connect, namespace=ns)
        socketio.on_event('disconnect', handle_disconnect, namespace=ns)
        socketio.on_event('create_room', handle_create_room, namespace=ns)
        socketio.on_event('join_room', handle_join_room, namespace=ns)
        socketio.on_event('submit_items', handle_submit_items, namespace=ns)
        socketio.on_event('make_choice', handle_make_choice, namespace=ns)
        socketio.on_event('ping', handle_ping, namespace=ns)
