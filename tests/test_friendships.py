import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from skillnet import models
from skillnet.errors import ConflictError, ForbiddenError, NotFoundError
from skillnet.services import FriendshipService


@pytest.fixture
def users(make_user):
    return make_user('alice'), make_user('bob'), make_user('carol')


def _rows(session):
    return session.exec(select(models.Friendship)).all()


def test_request_creates_pending_row(session, users):
    alice, bob, _ = users
    f = FriendshipService(session).request(alice.id, bob.id)
    assert f.requester_id == alice.id
    assert f.target_id == bob.id
    assert f.accepted is False
    assert len(_rows(session)) == 1


def test_request_unknown_user(session, users):
    alice, _, _ = users
    svc = FriendshipService(session)
    with pytest.raises(NotFoundError):
        svc.request(alice.id, 999)
    with pytest.raises(NotFoundError):
        svc.request(999, alice.id)
    with pytest.raises(NotFoundError):
        svc.request_by_pseudo(alice.id, 'ghost')


def test_request_refuses_self_and_duplicates(session, users):
    alice, bob, _ = users
    svc = FriendshipService(session)
    with pytest.raises(ConflictError):
        svc.request(alice.id, alice.id)
    svc.request(alice.id, bob.id)
    with pytest.raises(ConflictError):
        svc.request(alice.id, bob.id)
    # the other direction is covered by the pending request too
    with pytest.raises(ConflictError):
        svc.request(bob.id, alice.id)


def test_accept_flips_row_and_creates_mirror(session, users):
    alice, bob, _ = users
    svc = FriendshipService(session)
    f = svc.request(alice.id, bob.id)
    accepted = svc.accept(f.id, bob.id)
    assert accepted.accepted is True
    mirror = svc.find_by_user_and_friend(bob.id, alice.id)
    assert mirror.accepted is True
    assert mirror.id != f.id
    assert len(_rows(session)) == 2


def test_accept_by_non_target_is_forbidden(session, users):
    alice, bob, carol = users
    svc = FriendshipService(session)
    f = svc.request(alice.id, bob.id)
    for actor in (alice.id, carol.id):
        with pytest.raises(ForbiddenError):
            svc.accept(f.id, actor)
    assert svc.find_one(f.id).accepted is False
    assert len(_rows(session)) == 1


def test_accept_twice_is_a_conflict(session, users):
    alice, bob, _ = users
    svc = FriendshipService(session)
    f = svc.request(alice.id, bob.id)
    svc.accept(f.id, bob.id)
    with pytest.raises(ConflictError):
        svc.accept(f.id, bob.id)


def test_accept_missing_row(session, users):
    with pytest.raises(NotFoundError):
        FriendshipService(session).accept(42, users[0].id)


def test_remove_pending_deletes_one_row(session, users):
    alice, bob, _ = users
    svc = FriendshipService(session)
    f = svc.request(alice.id, bob.id)
    svc.remove(f.id, bob.id)
    assert _rows(session) == []


def test_remove_accepted_deletes_mirror(session, users):
    alice, bob, _ = users
    svc = FriendshipService(session)
    f = svc.request(alice.id, bob.id)
    svc.accept(f.id, bob.id)
    svc.remove(f.id, alice.id)
    assert _rows(session) == []
    with pytest.raises(NotFoundError):
        svc.find_by_user_and_friend(alice.id, bob.id)
    with pytest.raises(NotFoundError):
        svc.find_by_user_and_friend(bob.id, alice.id)


def test_remove_tolerates_missing_mirror(session, users):
    alice, bob, _ = users
    svc = FriendshipService(session)
    f = svc.request(alice.id, bob.id)
    svc.accept(f.id, bob.id)
    mirror = svc.find_by_user_and_friend(bob.id, alice.id)
    session.delete(mirror)
    session.commit()
    svc.remove(f.id, bob.id)
    assert _rows(session) == []


def test_remove_by_outsider_is_forbidden(session, users):
    alice, bob, carol = users
    svc = FriendshipService(session)
    f = svc.request(alice.id, bob.id)
    with pytest.raises(ForbiddenError):
        svc.remove(f.id, carol.id)
    assert len(_rows(session)) == 1


def _add_trigger(session, ddl):
    session.connection().exec_driver_sql(ddl)
    session.commit()


def test_failed_mirror_insert_rolls_back_accept(session, users):
    alice, bob, _ = users
    svc = FriendshipService(session)
    f = svc.request(alice.id, bob.id)
    _add_trigger(
        session,
        "CREATE TRIGGER refuse_mirror BEFORE INSERT ON friendship "
        f"WHEN NEW.requester_id = {bob.id} AND NEW.target_id = {alice.id} "
        "BEGIN SELECT RAISE(ABORT, 'boom'); END",
    )
    with pytest.raises(ConflictError):
        svc.accept(f.id, bob.id)
    # the session is usable again and the primary row is still pending
    assert svc.find_one(f.id).accepted is False
    assert len(_rows(session)) == 1

    _add_trigger(session, "DROP TRIGGER refuse_mirror")
    assert svc.accept(f.id, bob.id).accepted is True
    assert len(_rows(session)) == 2


def test_failed_delete_rolls_back_remove(session, users):
    alice, bob, _ = users
    svc = FriendshipService(session)
    f = svc.request(alice.id, bob.id)
    svc.accept(f.id, bob.id)
    _add_trigger(
        session,
        "CREATE TRIGGER keep_primary BEFORE DELETE ON friendship "
        f"WHEN OLD.id = {f.id} "
        "BEGIN SELECT RAISE(ABORT, 'boom'); END",
    )
    with pytest.raises(IntegrityError):
        svc.remove(f.id, alice.id)
    # the mirror delete was rolled back with the primary one
    assert svc.find_by_user_and_friend(bob.id, alice.id).accepted is True
    assert len(_rows(session)) == 2


def test_same_direction_rows_are_unique(session, users):
    alice, bob, _ = users
    session.add(models.Friendship(requester_id=alice.id, target_id=bob.id))
    session.commit()
    session.add(models.Friendship(requester_id=alice.id, target_id=bob.id))
    with pytest.raises(IntegrityError):
        session.commit()
    session.rollback()
    assert len(_rows(session)) == 1


def test_request_racing_past_the_check_is_a_conflict(session, users, monkeypatch):
    alice, bob, _ = users
    svc = FriendshipService(session)
    svc.request(alice.id, bob.id)
    # another request already passed the in-process check
    monkeypatch.setattr(svc.repo, "exists_between", lambda *_args: False)
    with pytest.raises(ConflictError):
        svc.request(alice.id, bob.id)
    assert len(_rows(session)) == 1
    assert [f.requester_id for f in svc.list_pending(bob.id)] == [alice.id]


def test_friends_and_pending_listings(session, users):
    alice, bob, carol = users
    svc = FriendshipService(session)
    f1 = svc.request(alice.id, bob.id)
    svc.request(carol.id, bob.id)
    assert [f.requester_id for f in svc.list_pending(bob.id)] == [alice.id, carol.id]
    svc.accept(f1.id, bob.id)
    assert [f.requester_id for f in svc.list_pending(bob.id)] == [carol.id]
    assert [f.target_id for f in svc.list_friends(alice.id)] == [bob.id]
    assert [f.target_id for f in svc.list_friends(bob.id)] == [alice.id]
    assert svc.list_friends(carol.id) == []


def test_request_accept_remove_over_http(client, auth_headers):
    alice = auth_headers('alice')
    bob = auth_headers('bob')

    r = client.post('/friendships', json={'pseudo': 'bob'}, headers=alice)
    assert r.status_code == 201
    first = r.json()
    assert first['id'] == 1
    assert first['accepted'] is False

    pending = client.get('/friendships/pending', headers=bob)
    assert [f['id'] for f in pending.json()] == [1]

    r2 = client.patch('/friendships/1', headers=bob)
    assert r2.status_code == 200
    assert r2.json()['accepted'] is True

    mirror = client.get('/friendships/2', headers=alice)
    assert mirror.status_code == 200
    assert mirror.json()['requester_id'] == first['target_id']
    assert mirror.json()['target_id'] == first['requester_id']
    assert mirror.json()['accepted'] is True

    friends = client.get('/friendships', headers=bob)
    assert [f['id'] for f in friends.json()] == [2]

    r3 = client.delete('/friendships/1', headers=alice)
    assert r3.status_code == 204
    assert client.get('/friendships/1', headers=alice).status_code == 404
    assert client.get('/friendships/2', headers=alice).status_code == 404


def test_http_error_statuses(client, auth_headers):
    alice = auth_headers('alice')
    bob = auth_headers('bob')
    carol = auth_headers('carol')

    assert client.post('/friendships', json={'pseudo': 'ghost'}, headers=alice).status_code == 404
    assert client.post('/friendships', json={'pseudo': 'alice'}, headers=alice).status_code == 400
    assert client.post('/friendships', json={'pseudo': 'bob'}, headers=alice).status_code == 201
    assert client.post('/friendships', json={'pseudo': 'bob'}, headers=alice).status_code == 400

    assert client.get('/friendships/99', headers=alice).status_code == 404
    assert client.patch('/friendships/99', headers=bob).status_code == 404
    assert client.patch('/friendships/1', headers=alice).status_code == 403
    assert client.delete('/friendships/1', headers=carol).status_code == 403
    assert client.delete('/friendships/99', headers=carol).status_code == 404

    assert client.patch('/friendships/1', headers=bob).status_code == 200
    r = client.patch('/friendships/1', headers=bob)
    assert r.status_code == 400
    assert r.json()['detail'] == 'friendship already accepted'


def test_friendship_routes_require_token(client):
    assert client.post('/friendships', json={'pseudo': 'bob'}).status_code == 401
    assert client.get('/friendships/1').status_code == 401
    assert client.patch('/friendships/1').status_code == 401
    assert client.delete('/friendships/1').status_code == 401
