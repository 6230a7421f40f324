import pytest


@pytest.fixture()
def cousin(login, make_user):
    uid = make_user("cousin@samaj.test", "9000000071", first_name="Kiran", sub_family_number="SF-2001")
    return uid, login("cousin@samaj.test", "secret-pass")


def _ask(client, headers, user2_id, rel_type="Brother"):
    return client.post(
        "/api/user-relationships/",
        headers=headers,
        json={"user2Id": user2_id, "relationshipType": rel_type, "note": "Mama's side"},
    )


def test_request_validation(client, member_headers, ids):
    assert _ask(client, member_headers, ids["member"]).status_code == 400
    assert _ask(client, member_headers, ids["admin"], rel_type="Rival").status_code == 400
    assert _ask(client, member_headers, 9999).status_code == 404
    r = client.post("/api/user-relationships/", headers=member_headers, json={"relationshipType": "Brother"})
    assert r.json["message"] == "user2Id is required"


def test_request_and_accept(client, member_headers, cousin, ids):
    cousin_id, cousin_headers = cousin
    r = _ask(client, member_headers, cousin_id)
    assert r.status_code == 201
    rel = r.json["data"]
    assert rel["status"] == "pending"
    assert rel["user1"]["id"] == ids["member"]
    assert rel["user2"]["firstName"] == "Kiran"
    assert rel["requestedBy"] == ids["member"]

    r = _ask(client, cousin_headers, ids["member"])
    assert r.status_code == 400

    r = client.patch(f"/api/user-relationships/{rel['id']}/accept", headers=member_headers)
    assert r.status_code == 400
    assert r.json["message"] == "You cannot respond to your own request"

    r = client.patch(f"/api/user-relationships/{rel['id']}/accept", headers=cousin_headers)
    assert r.json["data"]["status"] == "accepted"
    assert r.json["data"]["approvedBy"] == cousin_id

    r = client.patch(f"/api/user-relationships/{rel['id']}/reject", headers=cousin_headers)
    assert r.status_code == 400


def test_outsider_cannot_respond(client, member_headers, cousin, admin_headers):
    cousin_id, _ = cousin
    rel_id = _ask(client, member_headers, cousin_id).json["data"]["id"]
    r = client.patch(f"/api/user-relationships/{rel_id}/accept", headers=admin_headers)
    assert r.status_code == 403
    assert client.delete(f"/api/user-relationships/{rel_id}", headers=admin_headers).status_code == 403
    assert client.patch("/api/user-relationships/999/accept", headers=admin_headers).status_code == 404


def test_rejected_pair_can_be_reopened_by_other_side(client, member_headers, cousin, ids):
    cousin_id, cousin_headers = cousin
    rel_id = _ask(client, member_headers, cousin_id).json["data"]["id"]
    client.patch(f"/api/user-relationships/{rel_id}/reject", headers=cousin_headers)

    r = _ask(client, cousin_headers, ids["member"], rel_type="Sister")
    assert r.status_code == 201
    data = r.json["data"]
    assert data["id"] == rel_id
    assert data["status"] == "pending"
    assert data["user1"]["id"] == cousin_id
    assert data["user2"]["id"] == ids["member"]
    assert data["relationshipType"] == "Sister"


def test_list_sent_and_received(client, member_headers, cousin, ids):
    cousin_id, cousin_headers = cousin
    _ask(client, member_headers, cousin_id)
    _ask(client, member_headers, ids["admin"], rel_type="Uncle")

    r = client.get("/api/user-relationships/?type=sent", headers=member_headers)
    assert r.json["count"] == 2
    r = client.get("/api/user-relationships/?type=received", headers=member_headers)
    assert r.json["count"] == 0
    r = client.get("/api/user-relationships/?type=received", headers=cousin_headers)
    assert r.json["count"] == 1
    r = client.get("/api/user-relationships/?status=accepted", headers=member_headers)
    assert r.json["count"] == 0
    assert client.get("/api/user-relationships/?status=maybe", headers=member_headers).status_code == 400


def test_delete_by_either_party(client, member_headers, cousin):
    cousin_id, cousin_headers = cousin
    rel_id = _ask(client, member_headers, cousin_id).json["data"]["id"]
    assert client.delete(f"/api/user-relationships/{rel_id}", headers=cousin_headers).status_code == 200
    assert client.get("/api/user-relationships/", headers=member_headers).json["count"] == 0


def test_family_tree(client, member_headers, cousin, admin_headers, ids):
    cousin_id, cousin_headers = cousin
    rel_id = _ask(client, member_headers, cousin_id).json["data"]["id"]
    _ask(client, member_headers, ids["admin"], rel_type="Uncle")
    client.patch(f"/api/user-relationships/{rel_id}/accept", headers=cousin_headers)

    r = client.get(f"/api/user-relationships/family-tree/{ids['member']}", headers=member_headers)
    tree = r.json["data"]
    assert tree["user"]["id"] == ids["member"]
    assert len(tree["relationships"]) == 1
    roots = [n["id"] for n in tree["nodes"] if n["isRoot"]]
    assert roots == [ids["member"]]
    assert {n["id"] for n in tree["nodes"]} == {ids["member"], cousin_id}
    assert tree["edges"][0]["relationshipType"] == "Brother"

    assert client.get(f"/api/user-relationships/family-tree/{ids['admin']}", headers=member_headers).status_code == 403
    r = client.get(f"/api/user-relationships/family-tree/{ids['member']}", headers=admin_headers)
    assert r.status_code == 200
    assert client.get("/api/user-relationships/family-tree/9999", headers=admin_headers).status_code == 404
