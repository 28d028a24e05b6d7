import time
from typing import Callable, List, Set, Tuple

from matchup import socketio
from matchup.models import Notification
from .service import RoomService


_scheduled_choice_keys: Set[Tuple[str, str, int, int]] = set()


def schedule_choice_timeout(app, service: RoomService, notification: Notification,
                            deliver: Callable[[List[Notification]], None]) -> None:
    """Schedule an auto-neutral vote for the card a `show_item` notification just showed.

    - No-ops in TESTING mode and when CHOICE_TIMEOUT_SEC is 0
    - Ensures a single timer per (room, participant, round, card index)
    - When it fires, votes NEUTRAL only if the participant is still on that card,
      then hands the resulting notifications to `deliver`
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return
    duration = int(app.config.get('CHOICE_TIMEOUT_SEC', 0))
    if duration <= 0 or notification.event != 'show_item':
        return

    participant_id = notification.participant_id
    session = service.registry.session_for(participant_id)
    if session is None:
        return
    with session.lock:
        round_number = session.round_number
    item_id = notification.payload['item']['id']
    index = notification.payload['index']
    key = (session.code, participant_id, round_number, index)

    if key in _scheduled_choice_keys:
        app.logger.debug(f"[timer-skip] room={session.code} participant={participant_id} round={round_number} index={index}")
        return
    _scheduled_choice_keys.add(key)
    app.logger.debug(
        f"[timer-set] room={session.code} participant={participant_id} round={round_number} index={index} duration={duration}s"
    )

    def _worker(delay: int):
        time.sleep(delay)
        _scheduled_choice_keys.discard(key)
        with app.app_context():
            notifications = service.expire_choice(participant_id, item_id, round_number, index)
            if not notifications:
                app.logger.debug(f"[timer-abort] room={key[0]} participant={participant_id} card already answered")
                return
            deliver(notifications)

    socketio.start_background_task(_worker, duration)
