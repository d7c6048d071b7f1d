from datetime import date

import pytest

from glz.app import db
from glz.models import Certificate, Group, User

from conftest import cert_payload, login, make_group, make_user


@pytest.fixture
def admin_id(app):
    return make_user("admin", "admin", "admin-pass").id


def test_login_is_case_insensitive(client, admin_id):
    resp = client.post("/api/auth/login", json={"username": "ADMIN", "password": "admin-pass"})
    assert resp.status_code == 200
    assert resp.get_json()["user"]["role"] == "admin"
    me = client.get("/api/auth/me").get_json()["user"]
    assert me["id"] == admin_id


def test_login_rejects_wrong_password(client, admin_id):
    resp = client.post("/api/auth/login", json={"username": "admin", "password": "nope"})
    assert resp.status_code == 401
    assert client.get("/api/auth/me").status_code == 401


def test_logout(client, admin_id):
    login(client, admin_id)
    assert client.post("/api/auth/logout").status_code == 200
    assert client.get("/api/auth/me").status_code == 401


def test_admin_creates_user_with_default_role(client, admin_id):
    login(client, admin_id)
    resp = client.post("/api/users", json={"username": "clerk", "password": "long-enough"})
    assert resp.status_code == 201
    assert resp.get_json()["user"]["role"] == "user"
    dup = client.post("/api/users", json={"username": "CLERK", "password": "long-enough"})
    assert dup.status_code == 400
    short = client.post("/api/users", json={"username": "other", "password": "short"})
    assert short.status_code == 400


def test_non_admin_cannot_manage_users(client, admin_id):
    manager = make_user("manager", "manager")
    login(client, manager.id)
    assert client.get("/api/users").status_code == 403
    assert client.post("/api/users", json={"username": "x", "password": "long-enough"}).status_code == 403


def test_admin_cannot_demote_or_delete_self(client, admin_id):
    login(client, admin_id)
    resp = client.put(f"/api/users/{admin_id}", json={"role": "user"})
    assert resp.status_code == 400
    assert client.delete(f"/api/users/{admin_id}").status_code == 400
    assert db.session.get(User, admin_id).role == "admin"


def test_admin_changes_other_role_and_deletes(client, admin_id):
    clerk = make_user("clerk", "user")
    login(client, admin_id)
    resp = client.put(f"/api/users/{clerk.id}", json={"role": "manager"})
    assert resp.get_json()["user"]["role"] == "manager"
    assert client.delete(f"/api/users/{clerk.id}").status_code == 200
    assert client.get(f"/api/users/{clerk.id}").status_code == 404


def test_profile_update(client, admin_id):
    clerk = make_user("clerk", "user")
    login(client, clerk.id)
    assert client.get("/api/users/profile").get_json()["user"]["username"] == "clerk"
    resp = client.put("/api/users/profile", json={"password": "new-password"})
    assert resp.status_code == 200
    client.post("/api/auth/logout")
    resp = client.post("/api/auth/login", json={"username": "clerk", "password": "new-password"})
    assert resp.status_code == 200


def test_group_crud(client, admin_id):
    login(client, admin_id)
    resp = client.post(
        "/api/groups",
        json={"level": "A2", "startDate": "15.01.2024", "timeSlot": "NM", "name": "Berlin"},
    )
    assert resp.status_code == 201
    group = resp.get_json()["group"]
    assert group["groupCode"] == "A2-15.01.2024-NM-Berlin"
    assert group["startDate"] == "2024-01-15"
    assert group["createdBy"] == "admin"

    resp = client.put(f"/api/groups/{group['id']}", json={"name": "Hamburg"})
    assert resp.get_json()["group"]["groupCode"] == "A2-15.01.2024-NM-Hamburg"

    assert client.delete(f"/api/groups/{group['id']}").status_code == 200
    assert Group.query.count() == 0


def test_group_listing_order(client, admin_id):
    make_group(level="B1", start=date(2024, 1, 1), name="Old")
    make_group(level="B2", start=date(2024, 6, 1), name="NewB2")
    make_group(level="A1", start=date(2024, 6, 1), name="NewA1")
    login(client, make_user("clerk", "user").id)
    items = client.get("/api/groups").get_json()["items"]
    assert [g["name"] for g in items] == ["NewA1", "NewB2", "Old"]


def test_only_admin_manages_groups(client, admin_id):
    login(client, make_user("manager", "manager").id)
    resp = client.post(
        "/api/groups",
        json={"level": "A2", "startDate": "2024-01-15", "timeSlot": "NM", "name": "Berlin"},
    )
    assert resp.status_code == 403


def test_referenced_group_is_locked(client, admin_id):
    group = make_group(level="B1", start=date(2024, 1, 1), time_slot="MO", name="Alpha")
    login(client, admin_id)
    assert client.post("/api/certificates", json=cert_payload(group)).status_code == 201

    resp = client.put(f"/api/groups/{group.id}", json={"startDate": "2024-01-08"})
    assert resp.status_code == 400
    assert "start date" in resp.get_json()["error"]

    resp = client.put(f"/api/groups/{group.id}", json={"timeSlot": "AB"})
    assert resp.status_code == 200
    db.session.expire_all()
    assert Certificate.query.one().group_code == "B1-01.01.2024-AB-Alpha"

    assert client.delete(f"/api/groups/{group.id}").status_code == 400
    detail = client.get(f"/api/groups/{group.id}").get_json()["group"]
    assert detail["certificateCount"] == 1
