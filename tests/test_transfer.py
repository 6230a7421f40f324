from conftest import MEMBER_SFN


def _add_child(client, headers, first_name="Riya"):
    r = client.post(
        "/api/family-members/",
        headers=headers,
        json={"firstName": first_name, "lastName": "Patel", "relationshipToUser": "Daughter"},
    )
    assert r.status_code == 201
    return r.json["data"]["id"]


def test_family_for_transfer_lists_eligible_accounts(client, admin_headers, member_headers, ids, make_user):
    son = make_user("son@samaj.test", "9000000021", sub_family_number=MEMBER_SFN, is_primary_account=False)
    make_user("other@samaj.test", "9000000022", sub_family_number="SF-9999", is_primary_account=False)
    _add_child(client, member_headers)

    r = client.get(f"/api/users/{ids['member']}/family-for-transfer", headers=admin_headers)
    assert r.status_code == 200
    assert [u["id"] for u in r.json["data"]["eligibleForPrimary"]] == [son]
    assert len(r.json["data"]["familyMemberRecords"]) == 1


def test_transfer_moves_records_and_marks_deceased(client, admin_headers, member_headers, ids, make_user):
    son = make_user("son@samaj.test", "9000000021", sub_family_number=MEMBER_SFN, is_primary_account=False)
    kept = _add_child(client, member_headers, "Riya")
    _add_child(client, member_headers, "Nisha")

    r = client.patch(
        f"/api/users/admin/{ids['member']}/transfer-primary",
        headers=admin_headers,
        json={"newPrimaryUserId": son, "reason": "Father passed away", "familyMemberIds": [kept]},
    )
    assert r.status_code == 200
    data = r.json["data"]
    assert data["familyMembersMigrated"] == 1
    assert data["previousPrimary"]["isPrimaryAccount"] is False
    assert data["previousPrimary"]["status"] == "deceased"
    assert data["previousPrimary"]["isActive"] is False
    assert data["newPrimary"]["isPrimaryAccount"] is True
    assert data["newPrimary"]["transferredFrom"] == ids["member"]
    assert [h["toUserId"] for h in data["transferHistory"]] == [son]

    r = client.get(f"/api/users/{son}/family-members", headers=admin_headers)
    assert [m["id"] for m in r.json["data"]] == [kept]


def test_transfer_chain_history(client, admin_headers, ids, make_user):
    son = make_user("son@samaj.test", "9000000021", sub_family_number=MEMBER_SFN, is_primary_account=False)
    url = "/api/users/admin/{}/transfer-primary"

    r = client.patch(url.format(ids["member"]), headers=admin_headers, json={"newPrimaryUserId": son, "reason": "Moved abroad"})
    assert r.status_code == 200
    assert r.json["data"]["previousPrimary"]["status"] == "approved"

    r = client.patch(url.format(son), headers=admin_headers, json={"newPrimaryUserId": ids["member"]})
    assert r.status_code == 200
    history = r.json["data"]["transferHistory"]
    assert [(h["fromUserId"], h["toUserId"]) for h in history] == [(ids["member"], son), (son, ids["member"])]
    assert history[1]["reason"] == "Primary account transfer"


def test_transfer_rejections(client, admin_headers, member_headers, ids, make_user):
    url = f"/api/users/admin/{ids['member']}/transfer-primary"
    stranger = make_user("x@samaj.test", "9000000031", sub_family_number="SF-2000", is_primary_account=False)
    sibling = make_user("y@samaj.test", "9000000032", sub_family_number=MEMBER_SFN, is_primary_account=True)

    assert client.patch(url, headers=admin_headers, json={}).status_code == 400
    r = client.patch(url, headers=admin_headers, json={"newPrimaryUserId": stranger})
    assert r.json["message"] == "Both users must belong to the same sub-family"
    r = client.patch(url, headers=admin_headers, json={"newPrimaryUserId": sibling})
    assert r.json["message"] == "Selected user is already a primary account"
    r = client.patch(f"/api/users/admin/{stranger}/transfer-primary", headers=admin_headers, json={"newPrimaryUserId": sibling})
    assert r.json["message"] == "Current user is not a primary account"

    assert client.patch(url, headers=member_headers, json={"newPrimaryUserId": sibling}).status_code == 403


def test_empty_selection_moves_no_records(client, admin_headers, member_headers, ids, make_user):
    son = make_user("son@samaj.test", "9000000021", sub_family_number=MEMBER_SFN, is_primary_account=False)
    _add_child(client, member_headers)

    r = client.patch(
        f"/api/users/admin/{ids['member']}/transfer-primary",
        headers=admin_headers,
        json={"newPrimaryUserId": son, "familyMemberIds": []},
    )
    assert r.status_code == 200
    assert r.json["data"]["familyMembersMigrated"] == 0
    assert client.get(f"/api/users/{son}/family-members", headers=admin_headers).json["data"] == []
    r = client.get(f"/api/users/{ids['member']}/family-members", headers=admin_headers)
    assert len(r.json["data"]) == 1


def test_transfer_rejects_malformed_ids(client, admin_headers, ids, make_user):
    url = f"/api/users/admin/{ids['member']}/transfer-primary"
    son = make_user("son@samaj.test", "9000000021", sub_family_number=MEMBER_SFN, is_primary_account=False)

    r = client.patch(url, headers=admin_headers, json={"newPrimaryUserId": "abc"})
    assert r.status_code == 400
    assert r.json["message"] == "newPrimaryUserId is required"

    r = client.patch(url, headers=admin_headers, json={"newPrimaryUserId": son, "familyMemberIds": ["first"]})
    assert r.status_code == 400
    assert r.json["message"] == "Invalid family member selected"

    r = client.patch(url, headers=admin_headers, json={"newPrimaryUserId": son, "familyMemberIds": "all"})
    assert r.status_code == 400
