NS = '/ws'


def _named(events, name):
    return [e['args'][0] if e['args'] else None for e in events if e['name'] == name]


def _connect_pair(sio_factory):
    alice = sio_factory()
    bob = sio_factory()
    alice.get_received(NS)
    bob.get_received(NS)
    alice.emit('create_room', namespace=NS)
    code = _named(alice.get_received(NS), 'room_created')[0]['code']
    bob.emit('join_room', {'code': code}, namespace=NS)
    return alice, bob, code


def _play_deck(test_client, first_card, rule):
    """Answer cards as they arrive until the server says to wait."""
    events = []
    card = first_card
    while card:
        test_client.emit('make_choice', {
            'item_id': card['item']['id'],
            'choice': rule(card['item']['name']),
        }, namespace=NS)
        received = test_client.get_received(NS)
        events += received
        if _named(received, 'waiting_for_other'):
            break
        cards = _named(received, 'show_item')
        card = cards[-1] if cards else None
    return events


def test_connect_issues_participant_token(sio_factory):
    test_client = sio_factory()
    assert test_client.is_connected(NS)
    connected = _named(test_client.get_received(NS), 'connected')
    assert connected and connected[0]['participant_id']


def test_ping_pong(sio_factory):
    test_client = sio_factory()
    test_client.get_received(NS)
    test_client.emit('ping', {'n': 1}, namespace=NS)
    assert _named(test_client.get_received(NS), 'pong') == [{'n': 1}]


def test_create_and_join_broadcast_count(sio_factory):
    alice = sio_factory()
    alice.get_received(NS)
    alice.emit('create_room', namespace=NS)
    received = alice.get_received(NS)
    code = _named(received, 'room_created')[0]['code']
    assert len(code) == 6
    assert _named(received, 'participant_count_changed') == [{'count': 1}]

    bob = sio_factory()
    bob.get_received(NS)
    bob.emit('join_room', {'code': code.lower()}, namespace=NS)
    assert _named(bob.get_received(NS), 'participant_count_changed') == [{'count': 2}]
    assert _named(alice.get_received(NS), 'participant_count_changed') == [{'count': 2}]


def test_join_errors_reach_only_the_caller(sio_factory):
    alice, bob, code = _connect_pair(sio_factory)
    alice.get_received(NS)
    bob.get_received(NS)

    carol = sio_factory()
    carol.get_received(NS)
    carol.emit('join_room', {'code': code}, namespace=NS)
    assert _named(carol.get_received(NS), 'error') == [{'message': 'Room is full'}]
    carol.emit('join_room', 'NOPE42', namespace=NS)
    assert _named(carol.get_received(NS), 'error') == [{'message': 'Room not found'}]
    assert alice.get_received(NS) == []
    assert bob.get_received(NS) == []


def test_short_submission_is_rejected(sio_factory):
    alice, bob, _ = _connect_pair(sio_factory)
    alice.get_received(NS)
    alice.emit('submit_items', {'names': ['Tacos', '   ', '']}, namespace=NS)
    assert _named(alice.get_received(NS), 'error') == [{'message': 'Add at least 3 items'}]


def test_malformed_choices_are_rejected(sio_factory):
    alice, bob, _ = _connect_pair(sio_factory)
    alice.emit('submit_items', {'names': ['A', 'B', 'C']}, namespace=NS)
    bob.emit('submit_items', {'names': ['D', 'E', 'F']}, namespace=NS)
    alice.get_received(NS)
    bob.get_received(NS)

    alice.emit('make_choice', {'item_id': ['x'], 'choice': 'YES'}, namespace=NS)
    assert _named(alice.get_received(NS), 'error') == [{'message': 'item_id and choice are required'}]
    alice.emit('make_choice', 'YES', namespace=NS)
    assert _named(alice.get_received(NS), 'error') == [{'message': 'item_id and choice are required'}]
    alice.emit('make_choice', {'item_id': 'x', 'choice': 1}, namespace=NS)
    assert _named(alice.get_received(NS), 'error') == [{'message': 'item_id and choice are required'}]
    assert bob.get_received(NS) == []


def test_actions_outside_a_room_report_not_in_room(sio_factory):
    test_client = sio_factory()
    test_client.get_received(NS)
    test_client.emit('submit_items', {'names': ['A', 'B', 'C']}, namespace=NS)
    assert _named(test_client.get_received(NS), 'error') == [{'message': 'Not in a room'}]
    test_client.emit('make_choice', {'item_id': 'x', 'choice': 'yes'}, namespace=NS)
    assert _named(test_client.get_received(NS), 'error') == [{'message': 'Not in a room'}]


def test_full_game_with_runoff(sio_factory):
    alice, bob, _ = _connect_pair(sio_factory)
    alice.get_received(NS)
    bob.get_received(NS)

    alice.emit('submit_items', {'names': ['A', 'B', ' C ']}, namespace=NS)
    assert alice.get_received(NS) == []
    bob.emit('submit_items', {'names': ['b', 'D', 'E']}, namespace=NS)

    alice_events = alice.get_received(NS)
    bob_events = bob.get_received(NS)
    for events in (alice_events, bob_events):
        started = _named(events, 'round_started')
        assert started[0]['round'] == 1
        # bob's "b" replaces alice's "B" in B's slot; names arrive trimmed
        assert [i['name'] for i in started[0]['items']] == ['A', 'b', 'C', 'D', 'E']
        cards = _named(events, 'show_item')
        assert len(cards) == 1
        assert cards[0]['index'] == 0 and cards[0]['total'] == 5

    likes = lambda name: 'YES' if name in ('b', 'D') else 'NO'
    _play_deck(alice, _named(alice_events, 'show_item')[0], likes)
    bob_round_one = _play_deck(bob, _named(bob_events, 'show_item')[0], likes)

    runoff = _named(bob_round_one, 'round_started')
    assert runoff[0]['round'] == 2
    assert sorted(i['name'] for i in runoff[0]['items']) == ['D', 'b']
    assert _named(bob_round_one, 'round_ended') == []

    alice_runoff = alice.get_received(NS)
    alice_card = _named(alice_runoff, 'show_item')[0]
    bob_card = _named(bob_round_one, 'show_item')[-1]
    assert alice_card['total'] == 2 and bob_card['total'] == 2

    _play_deck(alice, alice_card, lambda name: 'YES' if name == 'D' else 'NEUTRAL')
    final = _play_deck(bob, bob_card, lambda name: 'YES')
    final += bob.get_received(NS)

    ended = _named(final, 'round_ended')
    assert len(ended) == 1
    assert [i['name'] for i in ended[0]['matches']] == ['D']
    assert [i['name'] for i in ended[0]['neutrals']] == ['b']
    assert _named(alice.get_received(NS), 'round_ended') == ended


def test_disconnect_updates_count_and_destroys_room(flask_app, sio_factory):
    alice, bob, code = _connect_pair(sio_factory)
    alice.get_received(NS)
    registry = flask_app.extensions['matchup'].registry

    bob.disconnect(namespace=NS)
    assert _named(alice.get_received(NS), 'participant_count_changed') == [{'count': 1}]
    assert registry.lookup(code) is not None

    alice.disconnect(namespace=NS)
    assert registry.lookup(code) is None
