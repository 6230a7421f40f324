from conftest import MEMBER_EMAIL, MEMBER_PASSWORD, MEMBER_SFN


def test_me_includes_permissions(client, member_headers):
    r = client.get("/api/users/me", headers=member_headers)
    assert r.status_code == 200
    perms = r.json["user"]["permissions"]
    assert perms["canViewEvents"] is True
    assert perms["canManageUsers"] is False
    assert r.json["user"]["transferHistory"] == []


def test_update_me_and_change_password(client, member_headers, login):
    r = client.patch(
        "/api/users/me",
        headers=member_headers,
        json={"occupationTitle": "Engineer", "address": {"city": "Vadodara", "pincode": "390001"}},
    )
    assert r.status_code == 200
    assert r.json["user"]["occupationTitle"] == "Engineer"
    assert r.json["user"]["address"]["city"] == "Vadodara"

    r = client.patch(
        "/api/users/change-password",
        headers=member_headers,
        json={"currentPassword": "nope", "newPassword": "abc12345"},
    )
    assert r.status_code == 401

    r = client.patch(
        "/api/users/change-password",
        headers=member_headers,
        json={"currentPassword": MEMBER_PASSWORD, "newPassword": "abc12345"},
    )
    assert r.status_code == 200
    login(MEMBER_EMAIL, "abc12345")


def test_user_listing_requires_permission(client, member_headers, admin_headers):
    assert client.get("/api/users/", headers=member_headers).status_code == 403

    r = client.get("/api/users/?search=Mehul", headers=admin_headers)
    assert r.status_code == 200
    assert r.json["total"] == 1
    assert r.json["users"][0]["email"] == MEMBER_EMAIL
    assert r.json["pages"] == 1


def test_approve_reject_and_bulk(client, admin_headers, make_user):
    a = make_user("p1@samaj.test", "9000000011", status="pending")
    b = make_user("p2@samaj.test", "9000000012", status="pending")

    r = client.patch(f"/api/users/{a}/approve", headers=admin_headers)
    assert r.status_code == 200
    assert r.json["user"]["status"] == "approved"
    assert r.json["nextPendingUser"]["id"] == b

    r = client.patch(f"/api/users/{a}/reject", headers=admin_headers, json={"reason": "duplicate"})
    assert r.json["user"]["status"] == "rejected"

    r = client.patch("/api/users/bulk-approve", headers=admin_headers, json={"userIds": [a, b]})
    assert r.status_code == 200
    assert r.json["modifiedCount"] == 2

    r = client.patch("/api/users/bulk-reject", headers=admin_headers, json={"userIds": []})
    assert r.status_code == 400


def test_committee_role_requires_position(client, admin_headers, ids):
    member = ids["member"]
    r = client.patch(f"/api/users/{member}/role", headers=admin_headers, json={"role": "committee"})
    assert r.status_code == 400

    r = client.patch(
        f"/api/users/{member}/role",
        headers=admin_headers,
        json={"role": "committee", "committeePosition": "Secretary", "committeeDisplayOrder": 2},
    )
    assert r.status_code == 200
    assert r.json["user"]["role"] == "committee"
    assert r.json["user"]["roleRef"]["roleKey"] == "committee"

    r = client.get("/api/users/committee-members")
    assert r.status_code == 200
    assert [m["committeePosition"] for m in r.json["data"]] == ["Secretary"]


def test_invalid_role_rejected(client, admin_headers, ids):
    r = client.patch(f"/api/users/{ids['member']}/role", headers=admin_headers, json={"role": "overlord"})
    assert r.status_code == 400


def test_deactivate_blocks_existing_token(client, admin_headers, member_headers, ids):
    r = client.patch(f"/api/users/{ids['member']}/deactivate", headers=admin_headers)
    assert r.status_code == 200
    assert r.json["user"]["isActive"] is False

    r = client.get("/api/users/me", headers=member_headers)
    assert r.status_code == 403
    assert r.json["message"] == "Your account has been deactivated"

    r = client.patch(f"/api/users/{ids['member']}/deactivate", headers=admin_headers)
    assert r.json["user"]["isActive"] is True


def test_soft_delete_restore_cycle(client, admin_headers, member_headers, ids):
    member = ids["member"]
    r = client.patch(f"/api/users/{ids['admin']}/soft-delete", headers=admin_headers)
    assert r.status_code == 400

    r = client.delete(f"/api/users/{member}/soft", headers=admin_headers, json={"reason": "moved away"})
    assert r.status_code == 200
    assert r.json["user"]["deleteType"] == "soft"

    assert client.get("/api/users/me", headers=member_headers).status_code == 403

    r = client.get("/api/users/deleted", headers=admin_headers)
    assert [u["id"] for u in r.json["users"]] == [member]

    r = client.patch(f"/api/users/{member}/restore", headers=admin_headers)
    assert r.status_code == 200
    assert r.json["user"]["deletedAt"] is None
    assert r.json["user"]["isActive"] is True

    r = client.patch(f"/api/users/{member}/restore", headers=admin_headers)
    assert r.status_code == 400


def test_hard_delete_reports_dependencies(client, admin_headers, member_headers, ids):
    client.post(
        "/api/family-members/",
        headers=member_headers,
        json={"firstName": "Riya", "lastName": "Patel", "relationshipToUser": "Daughter"},
    )
    member = ids["member"]
    r = client.delete(f"/api/users/{member}/hard", headers=admin_headers, json={})
    assert r.status_code == 400
    assert r.json["dependencies"]["familyMembers"] == 1

    r = client.delete(f"/api/users/{member}/hard", headers=admin_headers, json={"deleteDependentData": True})
    assert r.status_code == 200
    assert client.get(f"/api/users/{member}", headers=admin_headers).status_code == 404


def test_family_views(client, member_headers, admin_headers):
    client.post(
        "/api/family-members/",
        headers=member_headers,
        json={"firstName": "Riya", "lastName": "Patel", "relationshipToUser": "Daughter"},
    )
    r = client.get(f"/api/users/family/{MEMBER_SFN}", headers=member_headers)
    assert r.status_code == 200
    assert r.json["count"] == 1

    r = client.get(f"/api/users/family-complete/{MEMBER_SFN}", headers=member_headers)
    assert r.status_code == 200
    assert len(r.json["data"]) == 2

    r = client.get("/api/users/search-family?q=SF-10", headers=member_headers)
    assert r.status_code == 200
    assert r.json["count"] >= 1

    r = client.get("/api/users/admin/all-users", headers=admin_headers)
    assert r.status_code == 200
    assert r.json["pagination"]["total"] >= 3
