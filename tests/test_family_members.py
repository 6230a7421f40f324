from conftest import MEMBER_SFN


def _child(**overrides):
    payload = {"firstName": "Riya", "lastName": "Patel", "relationshipToUser": "Daughter", "dateOfBirth": "2010-04-02"}
    payload.update(overrides)
    return payload


def test_primary_adds_member_directly(client, member_headers):
    r = client.post("/api/family-members/", headers=member_headers, json=_child())
    assert r.status_code == 201
    data = r.json["data"]
    assert data["approvalStatus"] == "approved"
    assert data["subFamilyNumber"] == MEMBER_SFN
    assert data["age"] >= 14

    r = client.get("/api/family-members/my", headers=member_headers)
    assert r.json["count"] == 1

    r = client.get("/api/users/me", headers=member_headers)
    assert r.json["user"]["familyMembersCount"] == 1


def test_validation_errors(client, member_headers):
    r = client.post(
        "/api/family-members/",
        headers=member_headers,
        json={"firstName": "", "relationshipToUser": "Pet", "mobileNumber": "123", "bloodGroup": "Z"},
    )
    assert r.status_code == 400
    messages = [e["message"] for e in r.json["errors"]]
    assert "First name is required" in messages
    assert "Last name is required" in messages
    assert "Invalid relationship type" in messages
    assert "Please enter a valid 10-digit Indian mobile number" in messages


def test_members_beyond_threshold_need_approval(client, member_headers, admin_headers):
    for i in range(5):
        r = client.post("/api/family-members/", headers=member_headers, json=_child(firstName=f"Kid{i}x"))
        assert r.json["data"]["approvalStatus"] == "approved"

    r = client.post("/api/family-members/", headers=member_headers, json=_child(firstName="Sixth"))
    assert r.status_code == 201
    assert r.json["data"]["approvalStatus"] == "pending"
    assert r.json["message"] == "Family member added, pending approval"
    sixth = r.json["data"]["id"]

    assert client.get("/api/family-members/pending", headers=member_headers).status_code == 403
    r = client.get("/api/family-members/pending", headers=admin_headers)
    assert [m["id"] for m in r.json["data"]] == [sixth]

    r = client.patch(f"/api/family-members/{sixth}/approve", headers=admin_headers)
    assert r.json["data"]["approvalStatus"] == "approved"

    r = client.get(f"/api/family-members/sub-family/{MEMBER_SFN}", headers=member_headers)
    assert r.json["count"] == 6


def test_reject_decrements_owner_count(client, member_headers, admin_headers):
    member_id = client.post("/api/family-members/", headers=member_headers, json=_child()).json["data"]["id"]
    r = client.patch(f"/api/family-members/{member_id}/reject", headers=admin_headers, json={"reason": "duplicate"})
    assert r.json["data"]["approvalStatus"] == "rejected"
    assert r.json["data"]["rejectionReason"] == "duplicate"
    r = client.get("/api/users/me", headers=member_headers)
    assert r.json["user"]["familyMembersCount"] == 0


def test_create_login_account_defaults_to_mobile(client, member_headers, login):
    r = client.post(
        "/api/family-members/",
        headers=member_headers,
        json=_child(firstName="Anil", relationshipToUser="Son", mobileNumber="9812345670", createLoginAccount=True),
    )
    assert r.status_code == 201
    info = r.json["loginInfo"]
    assert info["linked"] is False
    assert info["passwordSet"] is True
    assert "password" not in info
    assert r.json["data"]["hasUserAccount"] is True

    headers = login("9812345670", "9812345670")
    r = client.get("/api/users/me", headers=headers)
    assert r.json["user"]["isPrimaryAccount"] is False
    assert r.json["user"]["subFamilyNumber"] == MEMBER_SFN


def test_create_login_account_with_chosen_password(client, member_headers, login):
    r = client.post(
        "/api/family-members/",
        headers=member_headers,
        json=_child(firstName="Anil", mobileNumber="9811111111", createLoginAccount=True, password="MySecret99"),
    )
    assert r.status_code == 201
    info = r.json["loginInfo"]
    assert info["passwordSet"] is True
    assert "password" not in info
    assert "MySecret99" not in r.get_data(as_text=True)

    headers = login("9811111111", "MySecret99")
    assert client.get("/api/users/me", headers=headers).status_code == 200


def test_create_login_account_links_existing_user(client, member_headers, make_user):
    existing = make_user("anil@samaj.test", "9812345670")
    r = client.post(
        "/api/family-members/",
        headers=member_headers,
        json=_child(firstName="Anil", relationshipToUser="Son", email="anil@samaj.test", createLoginAccount=True),
    )
    assert r.json["loginInfo"] == {
        "linked": True,
        "userId": existing,
        "email": "anil@samaj.test",
        "mobileNumber": "+919812345670",
    }


def test_non_primary_cannot_add_directly(client, login, make_user):
    make_user("son@samaj.test", "9000000041", sub_family_number=MEMBER_SFN, is_primary_account=False)
    headers = login("son@samaj.test", "secret-pass")
    r = client.post("/api/family-members/", headers=headers, json=_child())
    assert r.status_code == 403


def test_update_and_delete_own_member_only(client, member_headers, admin_headers, login, make_user):
    member_id = client.post("/api/family-members/", headers=member_headers, json=_child()).json["data"]["id"]

    r = client.patch(f"/api/family-members/{member_id}", headers=member_headers, json={"occupationTitle": "Student"})
    assert r.status_code == 200
    assert r.json["data"]["occupationTitle"] == "Student"

    make_user("nosy@samaj.test", "9000000042", sub_family_number="SF-7777")
    nosy = login("nosy@samaj.test", "secret-pass")
    assert client.delete(f"/api/family-members/{member_id}", headers=nosy).status_code == 403

    r = client.delete(f"/api/family-members/{member_id}", headers=member_headers)
    assert r.status_code == 200
    assert client.patch(f"/api/family-members/{member_id}", headers=member_headers, json={}).status_code == 404


def test_admin_edit_and_delete(client, member_headers, admin_headers):
    member_id = client.post("/api/family-members/", headers=member_headers, json=_child()).json["data"]["id"]

    r = client.patch(
        f"/api/family-members/admin/family-members/{member_id}",
        headers=admin_headers,
        json={"lastName": "Shah", "isActive": False},
    )
    assert r.status_code == 200
    assert r.json["data"]["lastName"] == "Shah"
    assert r.json["data"]["isActive"] is False

    r = client.delete(f"/api/family-members/admin/family-members/{member_id}", headers=admin_headers, json={"reason": "error"})
    assert r.status_code == 200

    r = client.get("/api/admin/activity-logs/?actionType=family_member_deleted", headers=admin_headers)
    assert r.json["total"] == 1
    assert r.json["data"][0]["details"] == {"reason": "error"}
