"""Round state machine for a single Session.

Every function here mutates one Session and returns the notifications the
change produces. Callers must hold `session.lock`; nothing here blocks or
touches the registry.

Phases run idle -> awaiting_second -> submitting -> rating -> ended, with
rating looping back onto itself for each runoff round.
"""

import logging
import random
from typing import Dict, Iterable, List, Optional

from matchup.models import Choice, Item, Notification, Phase, Session
from .classifier import Verdict, classify
from .deck import shuffled
from .errors import DuplicateChoice, DuplicateSubmission, InvalidPhase
from .registry import MAX_PARTICIPANTS

logger = logging.getLogger(__name__)

_PRE_RATING = (Phase.IDLE, Phase.AWAITING_SECOND, Phase.SUBMITTING)


def _broadcast(session: Session, event: str, payload: dict) -> Notification:
    return Notification(event, payload, room_code=session.code)


def _to(participant_id: str, event: str, payload: dict) -> Notification:
    return Notification(event, payload, participant_id=participant_id)


def _show_item(session: Session, participant_id: str) -> Notification:
    deck = session.personal_order[participant_id]
    idx = session.cursor[participant_id]
    return _to(participant_id, 'show_item', {
        'item': deck[idx].to_dict(),
        'index': idx,
        'total': len(deck),
    })


def dedupe_items(items: Iterable[Item]) -> List[Item]:
    """Drop case-insensitive duplicate names.

    The last item submitted under a name wins, but it takes the slot where
    that name first appeared.
    """
    unique: Dict[str, Item] = {}
    for item in items:
        unique[item.name.lower()] = item
    return list(unique.values())


def participant_joined(session: Session) -> List[Notification]:
    count = len(session.participants)
    if session.phase in (Phase.IDLE, Phase.AWAITING_SECOND):
        session.phase = Phase.SUBMITTING if count >= MAX_PARTICIPANTS else Phase.AWAITING_SECOND
    return [_broadcast(session, 'participant_count_changed', {'count': count})]


def participant_left(session: Session, participant_id: str) -> List[Notification]:
    """Adjust state after `participant_id` was removed from `session.participants`.

    Before rating starts the leaver's submission is withdrawn so a new second
    participant can take the seat. Once rating has started nothing is undone:
    the leaver keeps their deck, so the round can never complete.
    """
    count = len(session.participants)
    if session.phase in _PRE_RATING:
        session.submitted_by.discard(participant_id)
        dropped = {iid for iid, owner in session.item_owner.items() if owner == participant_id}
        if dropped:
            session.master_items = [i for i in session.master_items if i.id not in dropped]
            for iid in dropped:
                del session.item_owner[iid]
        session.phase = Phase.AWAITING_SECOND if count else Phase.IDLE
    elif session.phase == Phase.RATING:
        logger.warning(f"[round-stranded] room={session.code} round={session.round_number} left={participant_id}")
    if not count:
        return []
    return [_broadcast(session, 'participant_count_changed', {'count': count})]


def submit_items(session: Session, participant_id: str, names: List[str],
                 rng: Optional[random.Random] = None) -> List[Notification]:
    if participant_id in session.submitted_by:
        raise DuplicateSubmission()
    if session.phase != Phase.SUBMITTING:
        raise InvalidPhase('Items can only be submitted once both participants have joined')

    for name in names:
        item = Item.from_name(name)
        session.master_items.append(item)
        session.item_owner[item.id] = participant_id
    session.submitted_by.add(participant_id)
    logger.info(
        f"[submit] room={session.code} participant={participant_id} items={len(names)} "
        f"submitted={len(session.submitted_by)}/{MAX_PARTICIPANTS}"
    )

    if len(session.submitted_by) < MAX_PARTICIPANTS:
        return []
    items = dedupe_items(session.master_items)
    session.item_owner.clear()
    return start_round(session, items, rng)


def start_round(session: Session, items: List[Item],
                rng: Optional[random.Random] = None) -> List[Notification]:
    """Deal every participant an independently shuffled deck of `items` and open voting."""
    session.phase = Phase.RATING
    session.master_items = list(items)
    session.matches = []
    session.neutrals = []
    session.choice_ledger = {}
    session.personal_order = {pid: shuffled(items, rng) for pid in session.participants}
    session.cursor = {pid: 0 for pid in session.participants}
    logger.info(f"[round-start] room={session.code} round={session.round_number} items={len(items)}")

    notifications = [_broadcast(session, 'round_started', {
        'round': session.round_number,
        'items': [i.to_dict() for i in session.master_items],
    })]
    for pid, deck in session.personal_order.items():
        if deck:
            notifications.append(_show_item(session, pid))
    return notifications


def record_choice(session: Session, participant_id: str, item_id: str, choice: Choice,
                  rng: Optional[random.Random] = None) -> List[Notification]:
    """Record one vote and move the participant to their next card.

    The cursor advances by one whichever item id was voted on; clients must
    answer cards in the order they were shown.
    """
    if participant_id in session.choice_ledger.get(item_id, {}):
        raise DuplicateChoice()
    if session.phase != Phase.RATING:
        raise InvalidPhase('Voting is not open')
    if participant_id not in session.personal_order:
        raise InvalidPhase('No cards to rate this round')
    if session.has_finished(participant_id):
        raise InvalidPhase('No cards left to rate')

    session.choice_ledger.setdefault(item_id, {})[participant_id] = Choice(choice)
    session.cursor[participant_id] += 1
    logger.debug(
        f"[choice] room={session.code} participant={participant_id} item={item_id} choice={Choice(choice).value} "
        f"rated={session.cursor[participant_id]}/{len(session.personal_order[participant_id])}"
    )

    if not session.has_finished(participant_id):
        return [_show_item(session, participant_id)]

    notifications = [_to(participant_id, 'waiting_for_other', {})]
    if session.is_round_complete():
        notifications.extend(complete_round(session, rng))
    return notifications


def complete_round(session: Session, rng: Optional[random.Random] = None) -> List[Notification]:
    """Classify the round's items, then either start a runoff or end the game."""
    matches: List[Item] = []
    neutrals: List[Item] = []
    for item in session.master_items:
        choices = list(session.choice_ledger.get(item.id, {}).values())
        if len(choices) < 2:
            continue
        verdict = classify(choices)
        if verdict == Verdict.MATCH:
            matches.append(item)
        elif verdict == Verdict.NEUTRAL:
            neutrals.append(item)
    session.matches = matches
    session.neutrals = neutrals
    logger.info(
        f"[round-end] room={session.code} round={session.round_number} "
        f"matches={len(matches)} neutrals={len(neutrals)}"
    )

    if len(matches) >= 2:
        session.round_number += 1
        return start_round(session, matches, rng)

    session.phase = Phase.ENDED
    return [_broadcast(session, 'round_ended', {
        'matches': [i.to_dict() for i in matches],
        'neutrals': [i.to_dict() for i in neutrals],
    })]
