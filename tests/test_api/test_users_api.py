from __future__ import annotations

import logging

from sqlalchemy import select

from issuetracker.models.security import User
from issuetracker.models.tracker import AuditEntry


def test_read_me_returns_caller(client, auth, users):
    resp = client.get("/users/me", headers=auth("QA"))
    assert resp.status_code == 200
    assert resp.json()["email"] == users["QA"]["email"]


def test_self_update_of_profile_fields_is_allowed(client, app_db, auth, users):
    # PM holds no user-admin grants; self-service needs none.
    resp = client.patch("/users/me", json={"given_name": "Patricia"}, headers=auth("PM"))
    assert resp.status_code == 200

    with app_db() as db:
        user = db.get(User, users["PM"]["id"])
        assert user.given_name == "Patricia"
        assert user.full_name == "Patricia Pm"
        assert user.last_updated_by == users["PM"]["email"]


def test_self_update_cannot_change_own_role_even_with_role_admin_grants(client, app_db, auth, users):
    resp = client.patch("/users/me", json={"role": "BA"}, headers=auth("TM"))
    assert resp.status_code == 403

    with app_db() as db:
        assert db.get(User, users["TM"]["id"]).role == ["TM", "DEV"]


def test_same_role_payload_on_another_user_succeeds(client, app_db, auth, users):
    resp = client.patch(f"/users/{users['DEV']['id']}", json={"role": "BA"}, headers=auth("TM"))
    assert resp.status_code == 200

    with app_db() as db:
        assert db.get(User, users["DEV"]["id"]).role == "BA"


def test_role_change_on_another_user_requires_role_admin(client, auth, users):
    resp = client.patch(f"/users/{users['PM']['id']}", json={"role": "BA"}, headers=auth("BA"))
    assert resp.status_code == 403


def test_new_role_takes_effect_on_next_request(client, auth, users, make_bug):
    bug_id = make_bug(author_of_bug="someone@example.com", created_by="someone@example.com")
    assert client.patch(f"/bugs/{bug_id}/close", json={"closed": True}, headers=auth("DEV")).status_code == 403

    client.patch(f"/users/{users['DEV']['id']}", json={"role": ["BA"]}, headers=auth("TM"))

    assert client.patch(f"/bugs/{bug_id}/close", json={"closed": True}, headers=auth("DEV")).status_code == 200


def test_editing_another_users_profile_requires_edit_any_user(client, auth, users):
    resp = client.patch(f"/users/{users['QA']['id']}", json={"given_name": "Q"}, headers=auth("DEV"))
    assert resp.status_code == 403

    resp = client.patch(f"/users/{users['QA']['id']}", json={"given_name": "Q"}, headers=auth("TM"))
    assert resp.status_code == 200


def test_user_update_writes_audit_entry(client, app_db, auth, users):
    client.patch(f"/users/{users['QA']['id']}", json={"family_name": "Quality"}, headers=auth("TM"))

    with app_db() as db:
        entry = db.scalars(select(AuditEntry).where(AuditEntry.collection == "user")).one()
    assert entry.target == {"user_id": users["QA"]["id"]}
    assert entry.update["family_name"] == "Quality"


def test_malformed_user_id_is_not_found(client, auth):
    resp = client.patch("/users/12345", json={"role": "BA"}, headers=auth("TM"))
    assert resp.status_code == 404


def test_delete_user_checks_existence_then_permission(client, auth, users):
    assert client.delete("/users/abcdefabcdefabcdefabcdef", headers=auth("DEV")).status_code == 404
    assert client.delete(f"/users/{users['PM']['id']}", headers=auth("DEV")).status_code == 403
    assert client.delete(f"/users/{users['PM']['id']}", headers=auth("TM")).status_code == 200
    assert client.get(f"/users/{users['PM']['id']}", headers=auth("TM")).status_code == 404


def test_list_users_filters_by_role(client, auth, users):
    resp = client.get("/users", params={"role": "DEV", "page_size": 10}, headers=auth("QA"))
    assert resp.status_code == 200
    emails = {u["email"] for u in resp.json()}
    # TM holds ["TM", "DEV"].
    assert emails == {users["DEV"]["email"], users["TM"]["email"]}


def test_list_roles_accepts_either_grant(client, auth):
    resp = client.get("/roles", headers=auth("DEV"))
    assert resp.status_code == 200
    assert [r["code"] for r in resp.json()] == ["BA", "DEV", "PM", "QA", "TM"]


def test_empty_body_on_another_user_still_requires_edit_any_user(client, app_db, auth, users):
    assert client.patch(f"/users/{users['QA']['id']}", json={}, headers=auth("PM")).status_code == 403
    assert client.patch(f"/users/{users['QA']['id']}", headers=auth("PM")).status_code == 403

    with app_db() as db:
        assert db.get(User, users["QA"]["id"]).last_updated_by is None
        assert db.scalars(select(AuditEntry)).all() == []


def test_null_role_still_requires_role_admin(client, auth, users):
    resp = client.patch(f"/users/{users['QA']['id']}", json={"role": None}, headers=auth("PM"))
    assert resp.status_code == 403


def test_no_op_update_is_rejected_after_authorization(client, app_db, auth, users):
    assert client.patch(f"/users/{users['QA']['id']}", json={}, headers=auth("TM")).status_code == 400
    assert client.patch(f"/users/{users['QA']['id']}", json={"role": None}, headers=auth("TM")).status_code == 400

    with app_db() as db:
        assert db.scalars(select(AuditEntry)).all() == []


def test_own_role_denial_logs_reason_without_permission_names(client, auth, caplog):
    with caplog.at_level(logging.INFO, logger="issuetracker.errors"):
        resp = client.patch("/users/me", json={"role": "BA"}, headers=auth("TM"))

    assert resp.status_code == 403
    assert "reason=cannot change own role" in caplog.text
    assert "missing=[]" in caplog.text


def test_list_users_sorts_and_pages(client, auth):
    resp = client.get(
        "/users", params={"sort_by": "family_name", "page_size": 2, "page_number": 2}, headers=auth("DEV")
    )
    assert resp.status_code == 200
    assert [u["family_name"] for u in resp.json()] == ["Pm", "Qa"]


def test_list_users_keyword_search(client, auth, users):
    resp = client.get("/users", params={"keywords": "quinn"}, headers=auth("DEV"))
    assert [u["id"] for u in resp.json()] == [users["QA"]["id"]]
