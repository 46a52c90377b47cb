from __future__ import annotations


def test_add_and_read_comment(client, auth, users, make_bug):
    bug_id = make_bug()

    resp = client.post(f"/bugs/{bug_id}/comments", json={"text": "Seen on Linux too."}, headers=auth("PM"))
    assert resp.status_code == 200
    comment_id = resp.json()["id"]

    listed = client.get(f"/bugs/{bug_id}/comments", headers=auth("QA")).json()
    assert [c["text"] for c in listed] == ["Seen on Linux too."]

    one = client.get(f"/bugs/{bug_id}/comments/{comment_id}", headers=auth("QA")).json()
    assert one["created_by"] == users["PM"]["email"]


def test_comment_on_missing_bug_is_not_found(client, auth):
    resp = client.post("/bugs/abcdefabcdefabcdefabcdef/comments", json={"text": "hi"}, headers=auth("DEV"))
    assert resp.status_code == 404


def test_non_numeric_comment_id_is_not_found(client, auth, make_bug):
    bug_id = make_bug()
    assert client.get(f"/bugs/{bug_id}/comments/abc", headers=auth("DEV")).status_code == 404


def test_test_case_lifecycle_requires_qa_grants(client, auth, make_bug):
    bug_id = make_bug()
    body = {"test_name": "Save works", "test_description": "Save a file twice", "passed": False}

    assert client.post(f"/bugs/{bug_id}/test-cases", json=body, headers=auth("DEV")).status_code == 403

    resp = client.post(f"/bugs/{bug_id}/test-cases", json=body, headers=auth("QA"))
    assert resp.status_code == 200
    test_id = resp.json()["id"]

    assert client.patch(f"/bugs/{bug_id}/test-cases/{test_id}", json={"passed": True}, headers=auth("BA")).status_code == 403
    assert client.patch(f"/bugs/{bug_id}/test-cases/{test_id}", json={"passed": True}, headers=auth("QA")).status_code == 200
    assert client.get(f"/bugs/{bug_id}/test-cases/{test_id}", headers=auth("DEV")).json()["passed"] is True

    assert client.delete(f"/bugs/{bug_id}/test-cases/{test_id}", headers=auth("QA")).status_code == 200
    assert client.get(f"/bugs/{bug_id}/test-cases", headers=auth("DEV")).json() == []


def test_missing_test_case_is_not_found_before_permission_check(client, auth, make_bug):
    bug_id = make_bug()
    assert client.delete(f"/bugs/{bug_id}/test-cases/999", headers=auth("DEV")).status_code == 404
