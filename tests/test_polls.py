from datetime import datetime, timedelta

from app.samaj.db import session_scope
from app.samaj.modules.polls.models import Poll


def iso_in(days: float) -> str:
    return (datetime.utcnow() + timedelta(days=days)).replace(microsecond=0).isoformat()


def _poll(**overrides):
    payload = {
        "question": "Which venue for Diwali milan?",
        "options": ["Community Hall", "Temple Ground", "School Auditorium"],
        "endDate": iso_in(7),
    }
    payload.update(overrides)
    return payload


def _create(client, headers, **overrides):
    r = client.post("/api/polls/", headers=headers, json=_poll(**overrides))
    assert r.status_code == 201, r.json
    return r.json["data"]


def test_create_requires_permission_and_valid_payload(client, admin_headers, member_headers):
    assert client.post("/api/polls/", headers=member_headers, json=_poll()).status_code == 403

    r = client.post("/api/polls/", headers=admin_headers, json=_poll(question="", options=["Only"], endDate=iso_in(-1)))
    assert r.status_code == 400
    messages = [e["message"] for e in r.json["errors"]]
    assert "Question is required" in messages
    assert "Poll must have between 2 and 10 options" in messages
    assert "End date must be in the future" in messages


def test_yes_no_defaults(client, admin_headers):
    data = _create(client, admin_headers, pollType="yes_no", options=[])
    assert [o["optionText"] for o in data["options"]] == ["Yes", "No"]
    assert data["maxVotesPerUser"] == 1


def test_single_choice_vote_and_results(client, admin_headers, member_headers):
    poll = _create(client, admin_headers)
    first, second = poll["options"][0]["id"], poll["options"][1]["id"]

    r = client.post(f"/api/polls/{poll['id']}/vote", headers=member_headers, json={"optionIds": [first, second]})
    assert r.status_code == 400

    r = client.post(f"/api/polls/{poll['id']}/vote", headers=member_headers, json={"optionIds": [first]})
    assert r.status_code == 200
    data = r.json["data"]
    assert data["totalVotes"] == 1
    assert data["userHasVoted"] is True
    assert data["userVote"] == [first]
    assert data["options"][0]["percentage"] == 100.0
    assert data["winner"]["id"] == first

    r = client.post(f"/api/polls/{poll['id']}/vote", headers=member_headers, json={"optionIds": [second]})
    assert r.status_code == 400
    assert r.json["message"] == "You have already voted in this poll"

    r = client.patch(f"/api/polls/{poll['id']}/vote", headers=member_headers, json={"optionIds": [second]})
    assert r.status_code == 400


def test_vote_changes_when_allowed(client, admin_headers, member_headers):
    poll = _create(client, admin_headers, allowVoteChanges=True)
    first, second = poll["options"][0]["id"], poll["options"][1]["id"]
    url = f"/api/polls/{poll['id']}/vote"

    client.post(url, headers=member_headers, json={"optionIds": [first]})
    r = client.patch(url, headers=member_headers, json={"optionIds": [second]})
    assert r.status_code == 200
    counts = [o["voteCount"] for o in r.json["data"]["options"]]
    assert counts == [0, 1, 0]
    assert r.json["data"]["totalVotes"] == 1


def test_multiple_choice_limit(client, admin_headers, member_headers):
    poll = _create(client, admin_headers, pollType="multiple_choice", maxVotesPerUser=2)
    ids = [o["id"] for o in poll["options"]]
    url = f"/api/polls/{poll['id']}/vote"

    assert client.post(url, headers=member_headers, json={"optionIds": ids}).status_code == 400
    r = client.post(url, headers=member_headers, json={"optionIds": ids[:2]})
    assert r.json["data"]["totalVotes"] == 2
    assert r.json["data"]["options"][0]["percentage"] == 50.0


def test_tie_goes_to_later_option(client, admin_headers, member_headers):
    poll = _create(client, admin_headers)
    first, second = poll["options"][0]["id"], poll["options"][1]["id"]
    client.post(f"/api/polls/{poll['id']}/vote", headers=member_headers, json={"optionIds": [first]})
    r = client.post(f"/api/polls/{poll['id']}/vote", headers=admin_headers, json={"optionIds": [second]})
    assert r.json["data"]["winner"]["id"] == second


def test_voting_needs_login_even_when_anonymous_allowed(client, admin_headers):
    poll = _create(client, admin_headers, allowAnonymous=True)
    url = f"/api/polls/{poll['id']}/vote"
    for _ in range(3):
        r = client.post(url, json={"optionIds": [poll["options"][0]["id"]]})
        assert r.status_code == 401

    r = client.get(f"/api/polls/{poll['id']}")
    assert r.json["data"]["totalVotes"] == 0
    assert r.json["data"]["userHasVoted"] is False


def test_hidden_live_results(client, admin_headers, member_headers):
    poll = _create(client, admin_headers, showLiveResults=False)
    client.post(f"/api/polls/{poll['id']}/vote", headers=member_headers, json={"optionIds": [poll["options"][0]["id"]]})

    r = client.get(f"/api/polls/{poll['id']}", headers=member_headers)
    assert r.json["data"]["totalVotes"] is None
    assert r.json["data"]["options"][0]["voteCount"] is None
    assert r.json["data"]["winner"] is None

    r = client.get(f"/api/polls/{poll['id']}", headers=admin_headers)
    assert r.json["data"]["totalVotes"] == 1

    client.patch(f"/api/polls/{poll['id']}/close", headers=admin_headers)
    r = client.get(f"/api/polls/{poll['id']}", headers=member_headers)
    assert r.json["data"]["totalVotes"] == 1
    assert r.json["data"]["canVote"] is False


def test_family_restriction(client, admin_headers, member_headers):
    poll = _create(client, admin_headers, restrictTo="family", restrictedToFamilies=["SF-0001"])
    r = client.post(f"/api/polls/{poll['id']}/vote", headers=member_headers, json={"optionIds": [poll["options"][0]["id"]]})
    assert r.status_code == 403
    r = client.get(f"/api/polls/{poll['id']}", headers=admin_headers)
    assert r.json["data"]["canVote"] is True


def test_expired_poll_closes_on_read(app, client, admin_headers, member_headers):
    poll = _create(client, admin_headers)
    with session_scope(app) as s:
        s.get(Poll, poll["id"]).end_date = datetime.utcnow() - timedelta(minutes=1)

    r = client.get(f"/api/polls/{poll['id']}")
    assert r.json["data"]["status"] == "closed"
    r = client.post(f"/api/polls/{poll['id']}/vote", headers=member_headers, json={"optionIds": [poll["options"][0]["id"]]})
    assert r.status_code == 403


def test_event_polls_and_counter(client, admin_headers):
    event = client.post(
        "/api/events/",
        headers=admin_headers,
        json={"eventName": "AGM", "eventType": "community_function", "startDate": iso_in(2)},
    ).json["data"]
    _create(client, admin_headers, eventId=event["id"])
    _create(client, admin_headers, eventId=event["id"], question="Second question?")

    r = client.get(f"/api/polls/event/{event['id']}")
    assert r.json["count"] == 2
    assert client.get(f"/api/events/{event['id']}").json["data"]["pollCount"] == 2

    r = client.post("/api/polls/", headers=admin_headers, json=_poll(eventId=9999))
    assert r.status_code == 404


def test_close_and_delete_need_creator_or_permission(client, admin_headers, member_headers):
    poll = _create(client, admin_headers)
    assert client.patch(f"/api/polls/{poll['id']}/close", headers=member_headers).status_code == 403
    assert client.delete(f"/api/polls/{poll['id']}", headers=member_headers).status_code == 403

    r = client.patch(f"/api/polls/{poll['id']}/close", headers=admin_headers)
    assert r.json["data"]["status"] == "closed"
    assert client.delete(f"/api/polls/{poll['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/polls/{poll['id']}").status_code == 404


def test_create_rejects_malformed_ids(client, admin_headers):
    r = client.post("/api/polls/", headers=admin_headers, json=_poll(eventId="abc", restrictedToRoles=["x"]))
    assert r.status_code == 400
    messages = [e["message"] for e in r.json["errors"]]
    assert "eventId must be an integer" in messages
    assert "restrictedToRoles must be a list of role ids" in messages
