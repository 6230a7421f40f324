from datetime import datetime, timedelta

import pytest

from app.samaj.db import session_scope
from app.samaj.modules.comments.models import Comment


@pytest.fixture()
def event_id(client, admin_headers):
    r = client.post(
        "/api/events/",
        headers=admin_headers,
        json={
            "eventName": "Shraddhanjali sabha",
            "eventType": "condolence",
            "startDate": (datetime.utcnow() + timedelta(days=1)).replace(microsecond=0).isoformat(),
        },
    )
    return r.json["data"]["id"]


def _post(client, headers, event_id, text="Om Shanti"):
    r = client.post(f"/api/comments/events/{event_id}/comments", headers=headers, json={"commentText": text})
    assert r.status_code == 201, r.json
    return r.json["data"]


def test_post_and_list(client, event_id, member_headers, admin_headers):
    first = _post(client, member_headers, event_id, "First")
    _post(client, admin_headers, event_id, "Second")
    assert first["canEdit"] is True
    assert first["canDelete"] is True

    r = client.get(f"/api/comments/events/{event_id}/comments")
    assert r.json["total"] == 2
    assert [c["commentText"] for c in r.json["data"]] == ["Second", "First"]

    r = client.get(f"/api/comments/events/{event_id}/comments?sort=oldest")
    assert [c["commentText"] for c in r.json["data"]] == ["First", "Second"]

    assert client.get(f"/api/events/{event_id}").json["data"]["commentCount"] == 2


def test_comment_validation(client, event_id, member_headers, admin_headers):
    url = f"/api/comments/events/{event_id}/comments"
    assert client.post(url, json={"commentText": "hi"}).status_code == 401
    assert client.post(url, headers=member_headers, json={"commentText": "  "}).status_code == 400
    assert client.post(url, headers=member_headers, json={"commentText": "x" * 1001}).status_code == 400
    assert client.post(url, headers=member_headers, json={"commentText": "hi", "commentType": "rant"}).status_code == 400
    assert client.post("/api/comments/events/999/comments", headers=member_headers, json={"commentText": "hi"}).status_code == 404

    client.patch(f"/api/events/{event_id}", headers=admin_headers, json={"allowComments": False})
    r = client.post(url, headers=member_headers, json={"commentText": "hi"})
    assert r.status_code == 400
    assert r.json["message"] == "Comments are disabled for this event"


def test_edit_rules(app, client, event_id, member_headers, admin_headers):
    comment = _post(client, member_headers, event_id)

    assert client.patch(f"/api/comments/{comment['id']}", headers=admin_headers, json={"commentText": "x"}).status_code == 403

    r = client.patch(f"/api/comments/{comment['id']}", headers=member_headers, json={"commentText": "Om Shanti Shanti"})
    assert r.status_code == 200
    assert r.json["data"]["editCount"] == 1
    assert r.json["data"]["editedAt"] is not None

    with session_scope(app) as s:
        s.get(Comment, comment["id"]).created_at = datetime.utcnow() - timedelta(minutes=16)
    r = client.patch(f"/api/comments/{comment['id']}", headers=member_headers, json={"commentText": "late"})
    assert r.status_code == 403


def test_no_edit_after_reply(client, event_id, member_headers, admin_headers):
    comment = _post(client, member_headers, event_id)
    r = client.post(f"/api/comments/{comment['id']}/reply", headers=admin_headers, json={"commentText": "Condolences"})
    assert r.status_code == 201
    reply = r.json["data"]
    assert reply["parentCommentId"] == comment["id"]

    r = client.patch(f"/api/comments/{comment['id']}", headers=member_headers, json={"commentText": "changed"})
    assert r.status_code == 403

    r = client.post(f"/api/comments/{reply['id']}/reply", headers=member_headers, json={"commentText": "nested"})
    assert r.status_code == 400

    r = client.get(f"/api/comments/events/{event_id}/comments")
    assert r.json["total"] == 1
    top = r.json["data"][0]
    assert top["replyCount"] == 1
    assert [x["commentText"] for x in top["replies"]] == ["Condolences"]

    client.delete(f"/api/comments/{reply['id']}", headers=admin_headers)
    r = client.get(f"/api/comments/events/{event_id}/comments")
    assert r.json["data"][0]["replyCount"] == 0
    assert r.json["data"][0]["replies"] == []


def test_delete_own_or_with_permission(client, event_id, member_headers, admin_headers, login, make_user):
    comment = _post(client, member_headers, event_id)
    make_user("other@samaj.test", "9000000061")
    other = login("other@samaj.test", "secret-pass")

    assert client.delete(f"/api/comments/{comment['id']}", headers=other).status_code == 403
    assert client.delete(f"/api/comments/{comment['id']}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/comments/{comment['id']}", headers=admin_headers).status_code == 400

    r = client.get("/api/admin/activity-logs/?actionType=comment_deleted", headers=admin_headers)
    assert r.json["total"] == 1


def test_like_toggle_and_sort(client, event_id, member_headers, admin_headers):
    a = _post(client, member_headers, event_id, "A")
    _post(client, member_headers, event_id, "B")

    r = client.post(f"/api/comments/{a['id']}/like", headers=admin_headers)
    assert r.json == {"success": True, "liked": True, "likeCount": 1}

    r = client.get(f"/api/comments/events/{event_id}/comments?sort=most_liked", headers=admin_headers)
    assert r.json["data"][0]["commentText"] == "A"
    assert r.json["data"][0]["userLiked"] is True

    r = client.post(f"/api/comments/{a['id']}/like", headers=admin_headers)
    assert r.json["liked"] is False
    assert r.json["likeCount"] == 0


def test_report_and_moderation(client, event_id, member_headers, admin_headers):
    comment = _post(client, admin_headers, event_id)

    r = client.post(f"/api/comments/{comment['id']}/report", headers=member_headers, json={"reason": "spam"})
    assert r.status_code == 200
    r = client.post(f"/api/comments/{comment['id']}/report", headers=member_headers, json={"reason": "spam"})
    assert r.status_code == 400

    assert client.get("/api/comments/admin/flagged", headers=member_headers).status_code == 403
    r = client.get("/api/comments/admin/flagged", headers=admin_headers)
    assert r.json["total"] == 1
    assert r.json["data"][0]["flaggedBy"][0]["reason"] == "spam"

    r = client.patch(f"/api/comments/admin/{comment['id']}/approve", headers=admin_headers, json={"action": "nuke"})
    assert r.status_code == 400

    r = client.patch(f"/api/comments/admin/{comment['id']}/approve", headers=admin_headers, json={"action": "dismiss"})
    assert r.json["data"]["flagged"] is False
    assert client.get("/api/comments/admin/flagged", headers=admin_headers).json["total"] == 0

    r = client.patch(f"/api/comments/admin/{comment['id']}/approve", headers=admin_headers, json={"action": "hide"})
    assert r.json["data"]["status"] == "hidden"
    assert client.get(f"/api/comments/events/{event_id}/comments").json["total"] == 0


def test_pending_queue(app, client, event_id, member_headers, admin_headers):
    comment = _post(client, member_headers, event_id)
    with session_scope(app) as s:
        s.get(Comment, comment["id"]).status = "pending"

    r = client.get("/api/comments/admin/pending", headers=admin_headers)
    assert [c["id"] for c in r.json["data"]] == [comment["id"]]

    r = client.patch(f"/api/comments/admin/{comment['id']}/approve", headers=admin_headers, json={"action": "approve"})
    assert r.json["data"]["status"] == "published"
    assert client.get("/api/comments/admin/pending", headers=admin_headers).json["total"] == 0


def test_moderation_reject_updates_parent_reply_count(client, event_id, member_headers, admin_headers):
    comment = _post(client, member_headers, event_id)
    reply = client.post(f"/api/comments/{comment['id']}/reply", headers=member_headers, json={"commentText": "Spam"}).json["data"]
    url = f"/api/comments/admin/{reply['id']}/approve"

    client.patch(url, headers=admin_headers, json={"action": "reject"})
    client.patch(url, headers=admin_headers, json={"action": "reject"})
    r = client.get(f"/api/comments/events/{event_id}/comments")
    assert r.json["data"][0]["replyCount"] == 0

    client.patch(url, headers=admin_headers, json={"action": "approve"})
    r = client.get(f"/api/comments/events/{event_id}/comments")
    assert r.json["data"][0]["replyCount"] == 1
