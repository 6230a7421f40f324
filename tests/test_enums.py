URL = "/api/admin/enums"


def test_public_listing(client):
    r = client.get(f"{URL}/")
    assert "Kadva Patidar" in r.json["data"]["SAMAJ_TYPES"]
    assert len(r.json["enums"]) == len(r.json["data"])

    r = client.get(f"{URL}/MARITAL_STATUS")
    assert r.json["data"]["values"] == ["single", "married", "divorced", "widowed"]
    assert client.get(f"{URL}/NOPE").status_code == 404


def test_changes_need_permission(client, member_headers):
    r = client.patch(f"{URL}/SAMAJ_TYPES/add-value", headers=member_headers, json={"value": "Leva Patidar"})
    assert r.status_code == 403
    assert client.post(f"{URL}/initialize", headers=member_headers).status_code == 403


def test_upsert(client, admin_headers):
    r = client.post(f"{URL}/", headers=admin_headers, json={"enumType": "COLOURS", "values": ["red"]})
    assert r.status_code == 400

    r = client.post(
        f"{URL}/",
        headers=admin_headers,
        json={"enumType": "OCCUPATION_TYPES", "values": ["job", " job ", "farming"], "description": "Work"},
    )
    assert r.status_code == 200
    assert r.json["data"]["values"] == ["job", "farming"]
    assert client.get(f"{URL}/").json["data"]["OCCUPATION_TYPES"] == ["job", "farming"]


def test_add_and_remove_values(client, admin_headers, member_headers):
    r = client.patch(f"{URL}/SAMAJ_TYPES/add-value", headers=admin_headers, json={"value": "Leva Patidar"})
    assert r.json["data"]["values"][-1] == "Leva Patidar"
    r = client.patch(f"{URL}/SAMAJ_TYPES/add-value", headers=admin_headers, json={"value": "Leva Patidar"})
    assert r.status_code == 409
    assert client.patch(f"{URL}/SAMAJ_TYPES/add-value", headers=admin_headers, json={"value": " "}).status_code == 400

    r = client.patch(f"{URL}/SAMAJ_TYPES/remove-value", headers=admin_headers, json={"value": "Martian"})
    assert r.status_code == 404
    r = client.patch(f"{URL}/SAMAJ_TYPES/remove-value", headers=admin_headers, json={"value": "Other"})
    assert "Other" not in r.json["data"]["values"]

    client.post(f"{URL}/", headers=admin_headers, json={"enumType": "USER_STATUS", "values": ["approved"]})
    r = client.patch(f"{URL}/USER_STATUS/remove-value", headers=admin_headers, json={"value": "approved"})
    assert r.status_code == 400
    assert r.json["message"] == "Cannot remove the last value from an enum"


def test_runtime_values_drive_validation(client, admin_headers, member_headers, ids):
    client.patch(f"{URL}/RELATIONSHIP_TYPES/add-value", headers=admin_headers, json={"value": "Mentor"})
    r = client.post(
        "/api/user-relationships/",
        headers=member_headers,
        json={"user2Id": ids["admin"], "relationshipType": "Mentor"},
    )
    assert r.status_code == 201


def test_initialize_skips_existing(client, admin_headers):
    r = client.post(f"{URL}/initialize", headers=admin_headers)
    assert r.json["created"] == []
