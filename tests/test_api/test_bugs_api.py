"""
End-to-end tests for the bug routes: route gates, resource-scoped mutation
rules, and the NotFound-before-authorization ordering.
"""
from __future__ import annotations

from unittest.mock import patch

from sqlalchemy import select

from issuetracker.models.security import User
from issuetracker.models.tracker import AuditEntry, Bug
from issuetracker.security.resolver import SqlRoleStore


def test_health_is_public(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_list_bugs_requires_authentication(client):
    resp = client.get("/bugs")
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"
    assert resp.json() == {"detail": "You are not logged in!"}


def test_malformed_authorization_header_is_rejected(client, users):
    resp = client.get("/bugs", headers={"Authorization": f"Token {users['DEV']['id']}"})
    assert resp.status_code == 401


def test_unknown_user_token_is_rejected(client, auth):
    resp = client.get("/bugs", headers=auth("ffffffffffffffffffffffff"))
    assert resp.status_code == 401


def test_actor_without_roles_is_forbidden(client, app_db, auth):
    with app_db() as db:
        db.add(User(id="0000000000000000000000aa", email="nobody@example.com", role=None))
        db.commit()

    resp = client.get("/bugs", headers=auth("0000000000000000000000aa"))
    assert resp.status_code == 403
    assert resp.json() == {"detail": "Forbidden"}


def test_role_list_led_by_empty_entry_grants_nothing(client, app_db, auth):
    with app_db() as db:
        db.add(User(id="0000000000000000000000ab", email="odd@example.com", role=["", "BA"]))
        db.commit()

    resp = client.get("/bugs", headers=auth("0000000000000000000000ab"))
    assert resp.status_code == 403


def test_list_bugs_paginates(client, auth, make_bug):
    for i in range(7):
        make_bug(title=f"Bug number {i}")

    resp = client.get("/bugs", params={"page_size": 5, "page_number": 2}, headers=auth("DEV"))
    assert resp.status_code == 200
    body = resp.json()
    pagination = body["pagination"]
    # Two demo bugs are seeded alongside the seven created here.
    assert pagination["total_bugs"] == 9
    assert pagination["total_pages"] == 2
    assert pagination["current_page"] == 2
    assert pagination["has_next_page"] is False
    assert pagination["has_previous_page"] is True
    assert len(body["bugs"]) == 4


def test_list_bugs_filters_by_keyword_and_closed(client, auth, make_bug):
    make_bug(title="Printer on fire", closed=True)
    make_bug(title="Printer jams")

    resp = client.get("/bugs", params={"keywords": "printer", "closed": "false"}, headers=auth("QA"))
    assert resp.status_code == 200
    titles = [b["title"] for b in resp.json()["bugs"]]
    assert titles == ["Printer jams"]


def test_create_bug_sets_author_and_defaults(client, app_db, auth, users):
    resp = client.post(
        "/bugs",
        json={"title": "Broken link", "description": "404 on docs", "steps_to_reproduce": "Click docs"},
        headers=auth("PM"),
    )
    assert resp.status_code == 200
    bug_id = resp.json()["id"]

    with app_db() as db:
        bug = db.get(Bug, bug_id)
        assert bug.author_of_bug == users["PM"]["email"]
        assert bug.classification == "unclassified"
        assert bug.closed is False


def test_create_bug_rejects_unknown_fields(client, auth):
    resp = client.post(
        "/bugs",
        json={"title": "t", "description": "d", "steps_to_reproduce": "s", "closed": True},
        headers=auth("DEV"),
    )
    assert resp.status_code == 400


def test_author_with_edit_my_bug_can_edit(client, auth, make_bug):
    bug_id = make_bug()

    resp = client.patch(f"/bugs/{bug_id}", json={"title": "Crash on save (macOS)"}, headers=auth("DEV"))
    assert resp.status_code == 200


def test_non_author_without_scope_cannot_edit(client, auth, make_bug):
    bug_id = make_bug()

    resp = client.patch(f"/bugs/{bug_id}", json={"title": "Hijacked"}, headers=auth("PM"))
    assert resp.status_code == 403
    assert resp.json() == {"detail": "Forbidden"}


def test_assignee_can_edit_by_id(client, auth, users, make_bug):
    bug_id = make_bug(assigned_to_user_id=users["QA"]["id"], assigned_to_user_name="Quinn Qa")

    assert client.patch(f"/bugs/{bug_id}", json={"description": "More detail"}, headers=auth("QA")).status_code == 200
    assert client.patch(f"/bugs/{bug_id}", json={"description": "Mine now"}, headers=auth("PM")).status_code == 403


def test_blanket_grant_allows_any_bug(client, auth, make_bug):
    bug_id = make_bug()

    resp = client.patch(f"/bugs/{bug_id}/classify", json={"classification": "feature"}, headers=auth("BA"))
    assert resp.status_code == 200


def test_classify_validates_after_authorization(client, auth, make_bug):
    bug_id = make_bug()

    # Unauthorized caller learns nothing about the body.
    assert (
        client.patch(f"/bugs/{bug_id}/classify", json={"classification": "nope"}, headers=auth("PM")).status_code
        == 403
    )
    assert (
        client.patch(f"/bugs/{bug_id}/classify", json={"classification": "nope"}, headers=auth("BA")).status_code
        == 400
    )


def test_assign_records_assignee(client, app_db, auth, users, make_bug):
    bug_id = make_bug()

    resp = client.patch(
        f"/bugs/{bug_id}/assign",
        json={"assigned_to_user_id": users["QA"]["id"], "assigned_to_user_name": "Quinn Qa"},
        headers=auth("TM"),
    )
    assert resp.status_code == 200

    with app_db() as db:
        bug = db.get(Bug, bug_id)
        assert bug.assigned_to_user_id == users["QA"]["id"]
        assert bug.assigned_by == users["TM"]["email"]
        assert bug.assigned_on is not None


def test_close_requires_blanket_grant(client, auth, make_bug):
    bug_id = make_bug()

    # The author still cannot close: close has no scoped grants.
    resp = client.patch(f"/bugs/{bug_id}/close", json={"closed": True}, headers=auth("DEV"))
    assert resp.status_code == 403


def test_close_then_reopen_clears_metadata(client, app_db, auth, users, make_bug):
    bug_id = make_bug()

    resp = client.patch(f"/bugs/{bug_id}/close", json={"closed": True}, headers=auth("BA"))
    assert resp.status_code == 200
    with app_db() as db:
        bug = db.get(Bug, bug_id)
        assert bug.closed is True
        assert bug.closed_by == users["BA"]["email"]
        assert bug.closed_on is not None

    resp = client.patch(f"/bugs/{bug_id}/close", json={"closed": False}, headers=auth("BA"))
    assert resp.status_code == 200
    with app_db() as db:
        bug = db.get(Bug, bug_id)
        assert bug.closed is False
        assert bug.closed_by is None
        assert bug.closed_on is None


def test_close_rejects_non_boolean(client, auth, make_bug):
    bug_id = make_bug()

    resp = client.patch(f"/bugs/{bug_id}/close", json={"closed": "yes"}, headers=auth("BA"))
    assert resp.status_code == 400


def test_malformed_bug_id_is_not_found_before_roles_are_read(client, auth):
    with patch.object(SqlRoleStore, "find_by_codes") as find_by_codes:
        resp = client.patch("/bugs/not-a-real-id/close", json={"closed": True}, headers=auth("DEV"))

    assert resp.status_code == 404
    find_by_codes.assert_not_called()


def test_missing_bug_is_not_found_for_unprivileged_actor(client, auth):
    resp = client.patch("/bugs/abcdefabcdefabcdefabcdef", json={"title": "x"}, headers=auth("PM"))
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Bug abcdefabcdefabcdefabcdef not found."}


def test_successful_mutation_writes_audit_entry(client, app_db, auth, users, make_bug):
    bug_id = make_bug()

    client.patch(f"/bugs/{bug_id}/classify", json={"classification": "bug"}, headers=auth("BA"))

    with app_db() as db:
        entries = db.scalars(select(AuditEntry).where(AuditEntry.collection == "bug")).all()
    assert len(entries) == 1
    assert entries[0].op == "update"
    assert entries[0].target == {"bug_id": bug_id}
    assert entries[0].performed_by == users["BA"]["email"]
    assert entries[0].update["classification"] == "bug"


def test_forbidden_mutation_writes_no_audit_entry(client, app_db, auth, make_bug):
    bug_id = make_bug()

    client.patch(f"/bugs/{bug_id}/close", json={"closed": True}, headers=auth("PM"))

    with app_db() as db:
        assert db.scalars(select(AuditEntry)).all() == []


def test_audit_failure_does_not_change_outcome(client, app_db, auth, make_bug):
    bug_id = make_bug()

    with patch("issuetracker.audit.jsonable_encoder", side_effect=RuntimeError("audit store down")):
        resp = client.patch(f"/bugs/{bug_id}/close", json={"closed": True}, headers=auth("BA"))

    assert resp.status_code == 200
    with app_db() as db:
        assert db.get(Bug, bug_id).closed is True
        assert db.scalars(select(AuditEntry)).all() == []
