import csv
import io
from datetime import date, datetime

from conftest import MEMBER_SFN


def _csv(resp):
    return list(csv.reader(io.StringIO(resp.data.decode("utf-8"))))


def test_stats(client, admin_headers, member_headers, make_user):
    assert client.get("/api/admin/stats/", headers=member_headers).status_code == 403

    make_user("waiting@samaj.test", "9000000081", status="pending", sub_family_number="SF-3001")
    make_user("off@samaj.test", "9000000082", is_active=False, sub_family_number="SF-3002")
    stats = client.get("/api/admin/stats/", headers=admin_headers).json["stats"]
    assert stats["total"] == 4
    assert stats["pending"] == 1
    assert stats["approved"] == 3
    assert stats["admins"] == 1
    assert stats["users"] == 3
    assert stats["inactiveUsers"] == 1
    assert stats["totalFamilies"] == 4
    assert stats["recentRegistrations"] == 4


def test_export_users_csv(client, admin_headers, member_headers):
    assert client.get("/api/admin/export/users", headers=member_headers).status_code == 403

    r = client.get("/api/admin/export/users", headers=admin_headers)
    assert r.status_code == 200
    assert r.mimetype == "text/csv"
    assert f"users-{date.today().isoformat()}.csv" in r.headers["Content-Disposition"]
    rows = _csv(r)
    assert rows[0][:3] == ["First Name", "Middle Name", "Last Name"]
    assert {row[3] for row in rows[1:]} == {"admin@samaj.test", "member@samaj.test"}
    member = next(row for row in rows[1:] if row[3] == "member@samaj.test")
    assert member[4] == "9123456780"

    r = client.get("/api/admin/activity-logs/?actionType=data_exported", headers=admin_headers)
    assert r.json["data"][0]["details"] == {"export": "users", "rowCount": 2}


def test_empty_exports_are_404(client, admin_headers):
    r = client.get("/api/admin/export/pending-users", headers=admin_headers)
    assert r.status_code == 404
    assert r.json["message"] == "No data found to export"
    assert client.get("/api/admin/export/committee-members", headers=admin_headers).status_code == 404
    assert client.get("/api/admin/export/family-tree/SF-404", headers=admin_headers).status_code == 404


def test_export_pending_and_family_tree(client, admin_headers, member_headers, make_user):
    make_user("waiting@samaj.test", "9000000081", status="pending")
    rows = _csv(client.get("/api/admin/export/pending-users", headers=admin_headers))
    assert [row[3] for row in rows[1:]] == ["waiting@samaj.test"]

    client.post(
        "/api/family-members/",
        headers=member_headers,
        json={"firstName": "Riya", "lastName": "Patel", "relationshipToUser": "Daughter"},
    )
    rows = _csv(client.get(f"/api/admin/export/family-tree/{MEMBER_SFN}", headers=admin_headers))
    assert [row[0] for row in rows[1:]] == ["Main User", "Family Member"]
    assert rows[2][1] == "Riya"
    assert rows[2][4] == "Daughter"


def test_activity_log_filters(client, admin_headers, member_headers, ids):
    client.patch("/api/admin/enums/SAMAJ_TYPES/add-value", headers=admin_headers, json={"value": "Leva Patidar"})
    client.post("/api/user-relationships/", headers=member_headers, json={"user2Id": ids["admin"], "relationshipType": "Uncle"})

    assert client.get("/api/admin/activity-logs/", headers=member_headers).status_code == 403

    r = client.get(f"/api/admin/activity-logs/?performedBy={ids['member']}&actionType=relationship_request_sent", headers=admin_headers)
    assert r.json["total"] == 1
    entry = r.json["data"][0]
    assert entry["performedBy"]["id"] == ids["member"]
    assert entry["targetUser"]["id"] == ids["admin"]

    r = client.get(f"/api/admin/activity-logs/?targetUser={ids['admin']}&actionType=user_login", headers=admin_headers)
    assert r.json["total"] == 1

    today = datetime.utcnow().date().isoformat()
    r = client.get(f"/api/admin/activity-logs/?startDate={today}&endDate={today}&limit=1", headers=admin_headers)
    assert r.json["count"] == 1
    assert r.json["pages"] == r.json["total"]

    r = client.get("/api/admin/activity-logs/?startDate=someday", headers=admin_headers)
    assert r.status_code == 400
    assert r.json["message"] == "Invalid startDate"

    r = client.get(f"/api/admin/activity-logs/{entry['id']}", headers=admin_headers)
    assert r.json["data"]["actionType"] == "relationship_request_sent"
    assert client.get("/api/admin/activity-logs/99999", headers=admin_headers).status_code == 404
