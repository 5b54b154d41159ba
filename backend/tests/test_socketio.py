import pytest

from conftest import NAMESPACE, events_named


def _join(sio_factory, name, room_id='party', room_name='Party Room'):
    test_client = sio_factory()
    test_client.emit('join_room', {'room_id': room_id, 'room_name': room_name, 'display_name': name}, namespace=NAMESPACE)
    joined = events_named(test_client.get_received(NAMESPACE), 'room_joined')
    assert joined, 'expected room_joined'
    return test_client, joined[0]['player_id']


def _table(sio_factory, size=4):
    """Seat ``size`` players; returns [(client, player_id)] in join order."""
    seats = [_join(sio_factory, f"Player {i}") for i in range(size)]
    _flush(seats)
    return seats


def _flush(seats):
    for test_client, _ in seats:
        test_client.get_received(NAMESPACE)


def _start(seats):
    creator = seats[0][0]
    creator.emit('start_game', {'room_id': 'party'}, namespace=NAMESPACE)
    started = events_named(creator.get_received(NAMESPACE), 'game_started')
    _flush(seats)
    return started[0]['current_asker']['id']


def _by_id(seats):
    return {pid: c for c, pid in seats}


def _to_duel(seats):
    clients = _by_id(seats)
    asker = _start(seats)
    others = [pid for _, pid in seats if pid != asker]
    receiver, answerer = others[0], others[1]
    clients[asker].emit('ask_question', {'room_id': 'party', 'question': 'Crush?', 'receiver_id': receiver}, namespace=NAMESPACE)
    clients[receiver].emit('select_answer', {'room_id': 'party', 'answerer_id': answerer}, namespace=NAMESPACE)
    _flush(seats)
    return asker, receiver, answerer


def test_socket_connect_and_join(sio_factory):
    test_client = sio_factory()
    assert test_client.is_connected(NAMESPACE)
    test_client.emit('join_room', {'room_id': 'party', 'room_name': 'Party Room', 'display_name': 'Alice'}, namespace=NAMESPACE)
    received = test_client.get_received(NAMESPACE)
    joined = events_named(received, 'room_joined')[0]
    assert joined['room_id'] == 'party'
    assert joined['room_name'] == 'Party Room'
    roster = events_named(received, 'roster_updated')[0]
    assert roster['phase'] == 'waiting'
    assert [p['name'] for p in roster['players']] == ['Alice']


def test_full_round_receiver_wins_keeps_secret(sio_factory, client):
    seats = _table(sio_factory)
    clients = _by_id(seats)
    asker = _start(seats)
    receiver, answerer = [pid for _, pid in seats if pid != asker][:2]
    bystander = next(pid for _, pid in seats if pid not in (asker, receiver, answerer))

    clients[asker].emit('ask_question', {'room_id': 'party', 'question': 'Crush?', 'receiver_id': receiver}, namespace=NAMESPACE)
    receiver_got = clients[receiver].get_received(NAMESPACE)
    bystander_got = clients[bystander].get_received(NAMESPACE)
    assert events_named(receiver_got, 'question_delivered')[0]['question'] == 'Crush?'
    assert events_named(bystander_got, 'question_delivered') == []
    assert events_named(bystander_got, 'question_announced')
    _flush(seats)

    clients[receiver].emit('select_answer', {'room_id': 'party', 'answerer_id': answerer}, namespace=NAMESPACE)
    answerer_got = clients[answerer].get_received(NAMESPACE)
    bystander_got = clients[bystander].get_received(NAMESPACE)
    assert events_named(answerer_got, 'rps_challenge')
    assert events_named(bystander_got, 'rps_challenge') == []
    started = events_named(bystander_got, 'rps_started')[0]
    assert started['participants'] == [receiver, answerer]
    _flush(seats)

    clients[receiver].emit('rps_choice', {'room_id': 'party', 'choice': 'rock'}, namespace=NAMESPACE)
    assert events_named(clients[bystander].get_received(NAMESPACE), 'rps_resolved') == []
    clients[answerer].emit('rps_choice', {'room_id': 'party', 'choice': 'scissors'}, namespace=NAMESPACE)
    got = clients[bystander].get_received(NAMESPACE)
    result = events_named(got, 'rps_resolved')[0]
    assert result['outcome'] == 'receiver'
    assert result['revealed'] is False
    assert result['question'] is None
    assert result['winner_id'] == receiver
    assert result['next_asker']['id'] == receiver
    assert result['receiver_choice'] == 'rock'
    assert result['answerer_choice'] == 'scissors'
    assert events_named(got, 'roster_updated')[-1]['phase'] == 'playing'

    history = client.get('/api/rooms/party/history').get_json()
    assert history['rounds'][0]['question'] is None
    assert history['rounds'][0]['revealed'] is False


def test_answerer_win_reveals_question_to_everyone(sio_factory):
    seats = _table(sio_factory)
    clients = _by_id(seats)
    asker, receiver, answerer = _to_duel(seats)
    clients[receiver].emit('rps_choice', {'room_id': 'party', 'choice': 'rock'}, namespace=NAMESPACE)
    clients[answerer].emit('rps_choice', {'room_id': 'party', 'choice': 'paper'}, namespace=NAMESPACE)
    result = events_named(clients[asker].get_received(NAMESPACE), 'rps_resolved')[0]
    assert result['outcome'] == 'answerer'
    assert result['question'] == 'Crush?'
    assert result['next_asker']['id'] == answerer


def test_tie_asks_for_a_replay(sio_factory, dispatcher):
    seats = _table(sio_factory)
    clients = _by_id(seats)
    asker, receiver, answerer = _to_duel(seats)
    clients[receiver].emit('rps_choice', {'room_id': 'party', 'choice': 'paper'}, namespace=NAMESPACE)
    clients[answerer].emit('rps_choice', {'room_id': 'party', 'choice': 'paper'}, namespace=NAMESPACE)
    got = clients[asker].get_received(NAMESPACE)
    assert events_named(got, 'rps_resolved')[0]['outcome'] == 'tie'
    assert events_named(got, 'roster_updated') == []
    room = dispatcher.registry.get('party')
    assert room.phase.value == 'rps_pending'
    assert room.history == []


def test_outsider_rps_choice_is_rejected(sio_factory):
    seats = _table(sio_factory)
    clients = _by_id(seats)
    asker, receiver, answerer = _to_duel(seats)
    clients[asker].emit('rps_choice', {'room_id': 'party', 'choice': 'rock'}, namespace=NAMESPACE)
    rejected = events_named(clients[asker].get_received(NAMESPACE), 'rejected')
    assert rejected[0]['reason'] == 'invalid_rps_participant'
    assert clients[receiver].get_received(NAMESPACE) == []


def test_only_creator_can_start(sio_factory):
    seats = _table(sio_factory)
    seats[1][0].emit('start_game', {'room_id': 'party'}, namespace=NAMESPACE)
    rejected = events_named(seats[1][0].get_received(NAMESPACE), 'rejected')
    assert rejected[0]['reason'] == 'not_authorized'
    # nobody else hears about it
    assert seats[0][0].get_received(NAMESPACE) == []


def test_start_needs_four_players(sio_factory):
    seats = _table(sio_factory, size=3)
    seats[0][0].emit('start_game', {'room_id': 'party'}, namespace=NAMESPACE)
    rejected = events_named(seats[0][0].get_received(NAMESPACE), 'rejected')
    assert rejected[0]['reason'] == 'not_enough_players'


def test_unknown_room_is_rejected(sio_factory):
    seats = _table(sio_factory, size=1)
    seats[0][0].emit('start_game', {'room_id': 'nowhere'}, namespace=NAMESPACE)
    rejected = events_named(seats[0][0].get_received(NAMESPACE), 'rejected')
    assert rejected[0]['reason'] == 'room_not_found'


def test_ninth_player_cannot_join(sio_factory, dispatcher):
    _table(sio_factory, size=8)
    late = sio_factory()
    late.emit('join_room', {'room_id': 'party', 'display_name': 'Late'}, namespace=NAMESPACE)
    rejected = events_named(late.get_received(NAMESPACE), 'rejected')
    assert rejected[0]['reason'] == 'room_full'
    assert len(dispatcher.registry.get('party').players) == 8


def test_joining_twice_is_rejected(sio_factory):
    test_client, _ = _join(sio_factory, 'Alice')
    test_client.emit('join_room', {'room_id': 'other', 'display_name': 'Alice'}, namespace=NAMESPACE)
    rejected = events_named(test_client.get_received(NAMESPACE), 'rejected')
    assert rejected[0]['reason'] == 'already_in_room'


def test_skip_passes_turn_to_next_player(sio_factory, dispatcher):
    seats = _table(sio_factory)
    clients = _by_id(seats)
    asker = _start(seats)
    order = [pid for _, pid in seats]
    clients[asker].emit('skip_question', {'room_id': 'party'}, namespace=NAMESPACE)
    skipped = events_named(seats[0][0].get_received(NAMESPACE), 'turn_skipped')[0]
    expected = order[(order.index(asker) + 1) % len(order)]
    assert skipped['next_asker']['id'] == expected
    assert dispatcher.registry.get('party').history == []


def test_disconnect_below_four_returns_to_lobby(sio_factory):
    seats = _table(sio_factory)
    _to_duel(seats)
    leaving, _ = seats[3]
    leaving.disconnect(namespace=NAMESPACE)
    roster = events_named(seats[0][0].get_received(NAMESPACE), 'roster_updated')[-1]
    assert roster['phase'] == 'waiting'
    assert roster['rps_participants'] == []
    assert len(roster['players']) == 3


def test_last_player_leaving_destroys_room(sio_factory, client):
    test_client, _ = _join(sio_factory, 'Solo', room_id='lonely')
    assert any(r['id'] == 'lonely' for r in client.get('/api/rooms').get_json())
    test_client.emit('leave_room', {}, namespace=NAMESPACE)
    assert events_named(test_client.get_received(NAMESPACE), 'left')
    assert all(r['id'] != 'lonely' for r in client.get('/api/rooms').get_json())


def test_chat_is_relayed_to_room(sio_factory):
    seats = _table(sio_factory, size=2)
    seats[0][0].emit('send_chat_message', {'room_id': 'party', 'message': 'hi all'}, namespace=NAMESPACE)
    chat = events_named(seats[1][0].get_received(NAMESPACE), 'chat_message')[0]
    assert chat['text'] == 'hi all'
    assert chat['sender_id'] == seats[0][1]
    assert chat['sender_name'] == 'Player 0'


def _bystander(seats, *busy):
    return next(c for c, pid in seats if pid not in busy)


@pytest.mark.parametrize('receiver_choice, answerer_choice, announcer', [
    ('paper', 'paper', None),
    ('rock', 'scissors', 'receiver'),
    ('rock', 'paper', 'answerer'),
])
def test_every_duel_result_is_announced_in_chat(sio_factory, receiver_choice, answerer_choice, announcer):
    seats = _table(sio_factory)
    clients = _by_id(seats)
    asker, receiver, answerer = _to_duel(seats)
    bystander = _bystander(seats, asker, receiver, answerer)

    clients[receiver].emit('rps_choice', {'room_id': 'party', 'choice': receiver_choice}, namespace=NAMESPACE)
    clients[answerer].emit('rps_choice', {'room_id': 'party', 'choice': answerer_choice}, namespace=NAMESPACE)
    chat = events_named(bystander.get_received(NAMESPACE), 'chat_message')
    assert len(chat) == 1
    line = chat[0]

    if announcer is None:
        assert line['sender_id'] is None
        assert line['sender_name'] == 'Game'
        assert 'Tie' in line['text']
        assert 'Crush?' not in line['text']
    elif announcer == 'receiver':
        assert line['sender_id'] == receiver
        assert 'stays secret' in line['text']
        assert 'Crush?' not in line['text']
    else:
        assert line['sender_id'] == answerer
        assert 'Crush?' in line['text']
