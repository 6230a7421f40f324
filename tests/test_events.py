import io
from datetime import datetime, timedelta

import pytest

from conftest import MEMBER_SFN


def iso_in(days: float) -> str:
    return (datetime.utcnow() + timedelta(days=days)).replace(microsecond=0).isoformat()


def _event(**overrides):
    payload = {
        "eventName": "Navratri Garba",
        "eventType": "festival",
        "description": "Nine nights of garba",
        "startDate": iso_in(3),
        "endDate": iso_in(4),
        "location": {"venue": "Community Hall", "city": "Ahmedabad"},
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def event_id(client, admin_headers):
    r = client.post("/api/events/", headers=admin_headers, json=_event())
    assert r.status_code == 201
    return r.json["data"]["id"]


def test_admin_event_is_auto_approved(client, admin_headers):
    r = client.post("/api/events/", headers=admin_headers, json=_event())
    data = r.json["data"]
    assert data["approvalStatus"] == "approved"
    assert data["status"] == "upcoming"
    assert data["rsvpCounts"] == {"attending": 0, "notAttending": 0, "maybe": 0}


def test_event_validation(client, admin_headers):
    r = client.post(
        "/api/events/",
        headers=admin_headers,
        json=_event(eventName="", eventType="party", startDate=iso_in(5), endDate=iso_in(1), visibility="secret"),
    )
    assert r.status_code == 400
    messages = [e["message"] for e in r.json["errors"]]
    assert "Event name is required" in messages
    assert "End date must be after start date" in messages
    assert any(m.startswith("Invalid event type") for m in messages)
    assert any(m.startswith("Invalid visibility") for m in messages)


def test_event_rejects_malformed_ids(client, admin_headers):
    r = client.post("/api/events/", headers=admin_headers, json=_event(visibleToRoles=["x"], relatedPersonId="someone"))
    assert r.status_code == 400
    messages = [e["message"] for e in r.json["errors"]]
    assert "visibleToRoles must be a list of role ids" in messages
    assert "relatedPersonId must be an integer" in messages


def test_member_without_permission_cannot_create(client, member_headers):
    assert client.post("/api/events/", headers=member_headers, json=_event()).status_code == 403


def test_member_event_waits_for_moderation(client, member_headers, admin_headers, ids, grant):
    grant(ids["member"], "canCreateEvents")
    r = client.post("/api/events/", headers=member_headers, json=_event(eventName="Housewarming"))
    assert r.status_code == 201
    event_id = r.json["data"]["id"]
    assert r.json["data"]["approvalStatus"] == "pending"

    assert client.get("/api/events/").json["total"] == 0
    assert client.get("/api/events/", headers=member_headers).json["total"] == 1
    assert client.get(f"/api/events/{event_id}").status_code == 403

    r = client.patch(f"/api/events/admin/{event_id}/approve", headers=admin_headers, json={"action": "maybe"})
    assert r.status_code == 400
    r = client.patch(f"/api/events/admin/{event_id}/approve", headers=admin_headers, json={"action": "approve"})
    assert r.json["data"]["approvalStatus"] == "approved"

    assert client.get("/api/events/").json["total"] == 1
    r = client.get("/api/events/my", headers=member_headers)
    assert [e["id"] for e in r.json["data"]] == [event_id]


def test_list_filters_and_pinning(client, admin_headers):
    client.post("/api/events/", headers=admin_headers, json=_event(eventName="Later", startDate=iso_in(10), endDate=None))
    client.post(
        "/api/events/",
        headers=admin_headers,
        json=_event(eventName="Pinned", eventType="religious", startDate=iso_in(20), endDate=None, isPinned=True),
    )
    client.post("/api/events/", headers=admin_headers, json=_event(eventName="Past", startDate=iso_in(-5), endDate=iso_in(-4)))

    r = client.get("/api/events/")
    assert [e["eventName"] for e in r.json["data"]] == ["Pinned", "Past", "Later"]

    r = client.get("/api/events/?eventType=religious")
    assert [e["eventName"] for e in r.json["data"]] == ["Pinned"]

    r = client.get("/api/events/?status=completed")
    assert [e["eventName"] for e in r.json["data"]] == ["Past"]

    r = client.get("/api/events/?upcoming=true&search=late")
    assert [e["eventName"] for e in r.json["data"]] == ["Later"]

    r = client.get("/api/events/?limit=1&page=2")
    assert r.json["count"] == 1
    assert r.json["pages"] == 3


def test_family_visibility(client, admin_headers, member_headers):
    r = client.post(
        "/api/events/",
        headers=admin_headers,
        json=_event(visibility="family", visibleToFamilies=[MEMBER_SFN]),
    )
    event_id = r.json["data"]["id"]
    assert client.get(f"/api/events/{event_id}").status_code == 403
    assert client.get(f"/api/events/{event_id}", headers=member_headers).status_code == 200

    r = client.post("/api/events/", headers=admin_headers, json=_event(visibility="family", visibleToFamilies=["SF-0"]))
    assert client.get(f"/api/events/{r.json['data']['id']}", headers=member_headers).status_code == 403


def test_detail_counts_views_and_shows_rsvp(client, event_id, member_headers):
    client.get(f"/api/events/{event_id}")
    r = client.post(f"/api/events/{event_id}/rsvp", headers=member_headers, json={"status": "attending"})
    assert r.json["rsvpCounts"]["attending"] == 1

    r = client.post(f"/api/events/{event_id}/rsvp", headers=member_headers, json={"status": "maybe"})
    assert r.json["rsvpCounts"] == {"attending": 0, "notAttending": 0, "maybe": 1}

    r = client.get(f"/api/events/{event_id}", headers=member_headers)
    assert r.json["data"]["userRsvp"] == "maybe"
    assert r.json["data"]["viewCount"] == 2
    assert r.json["data"]["isLive"] is False

    r = client.post(f"/api/events/{event_id}/rsvp", headers=member_headers, json={"status": "perhaps"})
    assert r.status_code == 400


def test_rsvp_disabled(client, admin_headers, member_headers):
    event_id = client.post("/api/events/", headers=admin_headers, json=_event(allowRSVP=False)).json["data"]["id"]
    r = client.post(f"/api/events/{event_id}/rsvp", headers=member_headers, json={"status": "attending"})
    assert r.status_code == 400


def test_live_youtube_event(client, admin_headers):
    r = client.post(
        "/api/events/",
        headers=admin_headers,
        json=_event(
            eventType="youtube_live",
            startDate=iso_in(-0.1),
            endDate=iso_in(0.1),
            youtubeLinks=[{"url": "https://youtu.be/abc", "isLive": True}],
        ),
    )
    assert r.json["data"]["status"] == "ongoing"
    r = client.get(f"/api/events/{r.json['data']['id']}")
    assert r.json["data"]["isLive"] is True


def test_update_and_delete_need_owner_or_permission(client, event_id, admin_headers, member_headers):
    r = client.patch(f"/api/events/{event_id}", headers=member_headers, json={"eventName": "Hijack"})
    assert r.status_code == 403

    r = client.patch(f"/api/events/{event_id}", headers=admin_headers, json={"status": "cancelled"})
    assert r.json["data"]["status"] == "cancelled"

    assert client.delete(f"/api/events/{event_id}", headers=member_headers).status_code == 403
    assert client.delete(f"/api/events/{event_id}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/events/{event_id}").status_code == 404


def test_media_upload_serve_and_remove(client, event_id, admin_headers):
    r = client.post(
        f"/api/events/{event_id}/media",
        headers=admin_headers,
        data={"file": (io.BytesIO(b"\x89PNG fake"), "garba.png", "image/png"), "caption": "Night one"},
        content_type="multipart/form-data",
    )
    assert r.status_code == 201
    media = r.json["media"]
    assert media["caption"] == "Night one"
    assert len(r.json["data"]["photos"]) == 1

    served = client.get(media["url"])
    assert served.status_code == 200
    assert served.data == b"\x89PNG fake"

    r = client.delete(f"/api/events/{event_id}/media/{media['id']}", headers=admin_headers)
    assert r.json["data"]["photos"] == []
    assert client.get(media["url"]).status_code == 404


def test_media_rejects_non_media(client, event_id, admin_headers):
    r = client.post(
        f"/api/events/{event_id}/media",
        headers=admin_headers,
        data={"file": (io.BytesIO(b"hello"), "notes.txt", "text/plain")},
        content_type="multipart/form-data",
    )
    assert r.status_code == 400
