"""Signup invariants: capacity, duplicates, ownership, cancel, notifications.

Test Coverage:
S1: Capacity limit of 6 -> raid_full (409) on the 7th
S2: Same character twice -> duplicate_signup (409)
S3: Foreign character -> 403, missing raid/character -> 404
S4: Cancel removes only the caller's signup; second cancel -> 404
S5: Listing joins character/owner fields, oldest first
S6: Concurrent signups never exceed capacity
S7: Notifier failures never change the outcome
"""

import threading

import pytest

from raid_api.db.models import Character, Signup
from raid_api.domain import signups as signups_module
from raid_api.domain.signups import RAID_CAPACITY, cancel_signup, create_signup, list_signups
from raid_api.errors import ConflictError, NotFoundError
from raid_api.notifications import FailingNotifier

FUTURE = "2099-06-01T20:00:00Z"


def _character(client, headers, name: str, **fields) -> int:
    resp = client.post("/me/characters", json={"name": name, **fields}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


def _raid(client, headers, title: str = "Dragon Raid") -> int:
    resp = client.post("/raids", json={"title": title, "startTime": FUTURE}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


def _signup(client, headers, raid_id: int, character_id: int):
    return client.post(f"/raids/{raid_id}/signup", json={"characterId": character_id}, headers=headers)


# ============================================================================
# S1/S2/S3: Creation rules
# ============================================================================


def test_signup_returns_joined_detail(test_client, login):
    identity_id, headers = login("U-s1", "Sigrid")
    cid = _character(test_client, headers, "Valk", job="Warrior", level=60)
    raid_id = _raid(test_client, headers)

    resp = _signup(test_client, headers, raid_id, cid)

    assert resp.status_code == 201
    body = resp.json()
    assert body["raidId"] == raid_id
    assert body["characterName"] == "Valk"
    assert body["characterJob"] == "Warrior"
    assert body["characterLevel"] == 60
    assert body["userId"] == identity_id
    assert body["userDisplayName"] == "Sigrid"
    assert body["status"] == "confirmed"


def test_seventh_signup_is_rejected(test_client, login):
    _, creator = login("U-creator")
    raid_id = _raid(test_client, creator)

    for i in range(RAID_CAPACITY):
        _, headers = login(f"U-member-{i}")
        cid = _character(test_client, headers, f"Member {i}")
        assert _signup(test_client, headers, raid_id, cid).status_code == 201

    _, late = login("U-late")
    late_cid = _character(test_client, late, "Latecomer")
    resp = _signup(test_client, late, raid_id, late_cid)

    assert resp.status_code == 409
    assert resp.json()["code"] == "raid_full"
    assert len(test_client.get(f"/raids/{raid_id}/signups").json()) == RAID_CAPACITY


def test_duplicate_signup_rejected(test_client, login):
    _, headers = login("U-s2")
    cid = _character(test_client, headers, "Twice")
    raid_id = _raid(test_client, headers)

    assert _signup(test_client, headers, raid_id, cid).status_code == 201
    resp = _signup(test_client, headers, raid_id, cid)

    assert resp.status_code == 409
    assert resp.json()["code"] == "duplicate_signup"


def test_one_owner_may_bring_several_characters(test_client, login):
    _, headers = login("U-alts")
    raid_id = _raid(test_client, headers)

    for name in ("Main", "Alt"):
        assert _signup(test_client, headers, raid_id, _character(test_client, headers, name)).status_code == 201

    assert len(test_client.get(f"/raids/{raid_id}/signups").json()) == 2


def test_foreign_character_forbidden(test_client, login):
    _, owner = login("U-s3-owner")
    _, other = login("U-s3-other")
    cid = _character(test_client, owner, "NotYours")
    raid_id = _raid(test_client, other)

    resp = _signup(test_client, other, raid_id, cid)

    assert resp.status_code == 403
    assert resp.json()["code"] == "not_character_owner"


def test_missing_raid_or_character(test_client, login):
    _, headers = login("U-s3")
    cid = _character(test_client, headers, "Lost")
    raid_id = _raid(test_client, headers)

    resp = _signup(test_client, headers, 999999, cid)
    assert resp.status_code == 404
    assert resp.json()["code"] == "raid_not_found"

    resp = _signup(test_client, headers, raid_id, 999999)
    assert resp.status_code == 404
    assert resp.json()["code"] == "character_not_found"


def test_signup_requires_identity(test_client):
    resp = test_client.post("/raids/1/signup", json={"characterId": 1})

    assert resp.status_code == 401
    assert resp.json()["code"] == "token_missing"


def test_domain_raises_typed_errors(db_session, make_user, make_character, make_raid):
    user = make_user()
    character = make_character(user)
    raid = make_raid(user)

    create_signup(db_session, user.id, raid.id, character.id)
    with pytest.raises(ConflictError) as exc_info:
        create_signup(db_session, user.id, raid.id, character.id)
    assert exc_info.value.code == "duplicate_signup"

    with pytest.raises(NotFoundError) as exc_info:
        create_signup(db_session, user.id, raid.id + 1000, character.id)
    assert exc_info.value.code == "raid_not_found"


def test_character_deleted_mid_signup_is_not_found(
    monkeypatch, session_factory, db_session, make_user, make_character, make_raid
):
    user = make_user()
    character = make_character(user)
    raid = make_raid(user)
    real_guard = signups_module.require_character_owner

    def guard_then_delete(db, identity_id, character_id, for_update=False):
        owned = real_guard(db, identity_id, character_id, for_update=for_update)
        other = session_factory()
        try:
            other.delete(other.get(Character, character_id))
            other.commit()
        finally:
            other.close()
        return owned

    monkeypatch.setattr(signups_module, "require_character_owner", guard_then_delete)

    with pytest.raises(NotFoundError) as exc_info:
        create_signup(db_session, user.id, raid.id, character.id)

    assert exc_info.value.code == "character_not_found"
    assert list_signups(db_session, raid.id) == []


# ============================================================================
# S4: Cancel
# ============================================================================


def test_cancel_then_cancel_again(test_client, login):
    _, headers = login("U-s4")
    cid = _character(test_client, headers, "Quitter")
    raid_id = _raid(test_client, headers)
    _signup(test_client, headers, raid_id, cid)

    assert test_client.delete(f"/raids/{raid_id}/signup", headers=headers).status_code == 204
    assert test_client.get(f"/raids/{raid_id}/signups").json() == []

    resp = test_client.delete(f"/raids/{raid_id}/signup", headers=headers)
    assert resp.status_code == 404
    assert resp.json()["code"] == "signup_not_found"


def test_cancel_on_missing_raid(test_client, login):
    _, headers = login("U-s4b")
    resp = test_client.delete("/raids/999999/signup", headers=headers)

    assert resp.status_code == 404
    assert resp.json()["code"] == "raid_not_found"


def test_cancel_leaves_other_players(test_client, login):
    _, alice = login("U-s4-alice")
    _, bob = login("U-s4-bob")
    raid_id = _raid(test_client, alice)
    _signup(test_client, alice, raid_id, _character(test_client, alice, "A"))
    _signup(test_client, bob, raid_id, _character(test_client, bob, "B"))

    assert test_client.delete(f"/raids/{raid_id}/signup", headers=bob).status_code == 204

    remaining = test_client.get(f"/raids/{raid_id}/signups").json()
    assert [s["characterName"] for s in remaining] == ["A"]


def test_cancel_removes_earliest_of_several(db_session, make_user, make_character, make_raid):
    user = make_user()
    first = make_character(user, name="First")
    second = make_character(user, name="Second")
    raid = make_raid(user)
    create_signup(db_session, user.id, raid.id, first.id)
    create_signup(db_session, user.id, raid.id, second.id)

    cancel_signup(db_session, user.id, raid.id)

    assert [d.character_name for d in list_signups(db_session, raid.id)] == ["Second"]


def test_cancel_frees_a_slot(test_client, login):
    _, creator = login("U-slot")
    raid_id = _raid(test_client, creator)
    members = []
    for i in range(RAID_CAPACITY):
        _, headers = login(f"U-slot-{i}")
        _signup(test_client, headers, raid_id, _character(test_client, headers, f"S{i}"))
        members.append(headers)

    _, waiting = login("U-slot-wait")
    waiting_cid = _character(test_client, waiting, "Waiting")
    assert _signup(test_client, waiting, raid_id, waiting_cid).status_code == 409

    test_client.delete(f"/raids/{raid_id}/signup", headers=members[0])
    assert _signup(test_client, waiting, raid_id, waiting_cid).status_code == 201


# ============================================================================
# S5: Listing
# ============================================================================


def test_list_oldest_first_with_owner_fields(test_client, login):
    _, first = login("U-l1", "First Player")
    _, second = login("U-l2", "Second Player")
    raid_id = _raid(test_client, first)
    _signup(test_client, first, raid_id, _character(test_client, first, "One"))
    _signup(test_client, second, raid_id, _character(test_client, second, "Two"))

    listed = test_client.get(f"/raids/{raid_id}/signups").json()

    assert [s["characterName"] for s in listed] == ["One", "Two"]
    assert [s["userDisplayName"] for s in listed] == ["First Player", "Second Player"]


def test_list_for_unknown_raid_is_empty(test_client):
    resp = test_client.get("/raids/999999/signups")

    assert resp.status_code == 200
    assert resp.json() == []


# ============================================================================
# S6: Concurrency
# ============================================================================


def test_concurrent_signups_respect_capacity(session_factory, db_session, make_user, make_character, make_raid):
    creator = make_user()
    raid = make_raid(creator)
    contenders = []
    for i in range(12):
        user = make_user()
        contenders.append((user.id, make_character(user, name=f"Racer {i}").id))

    successes = []
    failures = []
    barrier = threading.Barrier(len(contenders))

    def worker(user_id: int, character_id: int) -> None:
        session = session_factory()
        try:
            barrier.wait()
            successes.append(create_signup(session, user_id, raid.id, character_id))
        except ConflictError as e:
            failures.append(e.code)
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=c) for c in contenders]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(successes) == RAID_CAPACITY
    assert failures == ["raid_full"] * (len(contenders) - RAID_CAPACITY)
    db_session.expire_all()
    assert db_session.query(Signup).filter_by(raid_id=raid.id).count() == RAID_CAPACITY


def test_concurrent_duplicate_signup_inserts_once(session_factory, db_session, make_user, make_character, make_raid):
    user = make_user()
    character = make_character(user)
    raid = make_raid(user)
    codes = []
    barrier = threading.Barrier(4)

    def worker() -> None:
        session = session_factory()
        try:
            barrier.wait()
            create_signup(session, user.id, raid.id, character.id)
            codes.append("created")
        except ConflictError as e:
            codes.append(e.code)
        finally:
            session.close()

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(codes) == ["created"] + ["duplicate_signup"] * 3


# ============================================================================
# S7: Notifications
# ============================================================================


def test_signup_and_cancel_notify(test_client, login, notifier):
    _, headers = login("U-n1", "Notified")
    cid = _character(test_client, headers, "Bell")
    raid_id = _raid(test_client, headers, title="Bell Raid")

    _signup(test_client, headers, raid_id, cid)
    test_client.delete(f"/raids/{raid_id}/signup", headers=headers)

    assert notifier.names() == ["raid_created", "signup_created", "signup_cancelled"]
    created = notifier.events[1][1]
    assert created.raid_title == "Bell Raid"
    assert created.character_name == "Bell"
    assert (created.current_count, created.max_count) == (1, RAID_CAPACITY)
    assert created.creator_name == "Notified"
    assert notifier.events[2][1].current_count == 0


def test_rejected_signup_sends_nothing(test_client, login, notifier):
    _, headers = login("U-n2")
    cid = _character(test_client, headers, "Quiet")
    raid_id = _raid(test_client, headers)
    _signup(test_client, headers, raid_id, cid)
    _signup(test_client, headers, raid_id, cid)

    assert notifier.names().count("signup_created") == 1


def test_failing_notifier_does_not_affect_outcome(db_session, make_user, make_character, make_raid):
    user = make_user()
    character = make_character(user)
    raid = make_raid(user)

    detail = create_signup(db_session, user.id, raid.id, character.id, notifier=FailingNotifier())
    assert detail.character_id == character.id

    cancel_signup(db_session, user.id, raid.id, notifier=FailingNotifier())
    assert list_signups(db_session, raid.id) == []
