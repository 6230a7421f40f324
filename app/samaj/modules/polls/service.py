from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.samaj.audit import log_activity
from app.samaj.constants import POLL_MAX_OPTIONS, POLL_MIN_OPTIONS, POLL_RESTRICT_TO, POLL_TYPES
from app.samaj.errors import ApiError
from app.samaj.modules.events.models import Event
from app.samaj.modules.polls.models import Poll, PollOption, PollVote
from app.samaj.rbac import user_has_permission
from app.samaj.utils import as_bool, as_int, as_int_list, clean_str, parse_datetime

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.samaj.models import User


# ---------- Rules ----------
def refresh_status(poll: Poll, now: datetime | None = None) -> bool:
    """Close an active poll whose end date has passed. Returns True if it changed."""
    now = now or datetime.utcnow()
    if poll.status == "active" and poll.end_date < now:
        poll.status = "closed"
        poll.updated_at = now
        return True
    return False


def can_user_vote(poll: Poll, user: "User | None") -> bool:
    if poll.status != "active":
        return False
    if user is None:
        return poll.allow_anonymous
    if poll.restrict_to == "samaj":
        allowed = poll.restricted_to_samaj or []
        return not allowed or user.samaj in allowed
    if poll.restrict_to == "role":
        allowed = as_int_list(poll.restricted_to_roles) or []
        return not allowed or user.role_id in allowed
    if poll.restrict_to == "family":
        allowed = poll.restricted_to_families or []
        return not allowed or user.sub_family_number in allowed
    return True


def recount(poll: Poll) -> None:
    poll.total_votes = sum(o.vote_count for o in poll.options)


def winner(poll: Poll) -> PollOption | None:
    """Option with the most votes; a tie goes to the later option."""
    best: PollOption | None = None
    for option in poll.options:
        if option.vote_count > 0 and (best is None or option.vote_count >= best.vote_count):
            best = option
    return best


def can_manage(poll: Poll, user: "User") -> bool:
    return poll.created_by_id == user.id or user_has_permission(user, "canManagePolls")


# ---------- Create ----------
def _clean_options(raw: Any) -> list[str]:
    out: list[str] = []
    for item in raw or []:
        text = item.get("optionText") if isinstance(item, dict) else item
        text = clean_str(text)
        if text:
            out.append(text)
    return out


def validate_poll_payload(payload: dict) -> list[str]:
    errors: list[str] = []
    question = clean_str(payload.get("question"))
    if not question:
        errors.append("Question is required")
    elif len(question) > 200:
        errors.append("Question cannot exceed 200 characters")
    description = payload.get("description")
    if description and len(str(description)) > 500:
        errors.append("Description cannot exceed 500 characters")

    poll_type = payload.get("pollType") or "single_choice"
    if poll_type not in POLL_TYPES:
        errors.append(f"Invalid poll type. Must be one of: {', '.join(POLL_TYPES)}")
    options = _clean_options(payload.get("options"))
    if not (poll_type == "yes_no" and not options):
        if not POLL_MIN_OPTIONS <= len(options) <= POLL_MAX_OPTIONS:
            errors.append(f"Poll must have between {POLL_MIN_OPTIONS} and {POLL_MAX_OPTIONS} options")

    restrict_to = payload.get("restrictTo") or "all"
    if restrict_to not in POLL_RESTRICT_TO:
        errors.append(f"Invalid restriction. Must be one of: {', '.join(POLL_RESTRICT_TO)}")
    if payload.get("restrictedToRoles") and as_int_list(payload.get("restrictedToRoles")) is None:
        errors.append("restrictedToRoles must be a list of role ids")
    if payload.get("eventId") and as_int(payload.get("eventId")) is None:
        errors.append("eventId must be an integer")

    try:
        end = parse_datetime(payload.get("endDate"))
    except ValueError:
        errors.append("End date must be a valid ISO date")
    else:
        if end is None:
            errors.append("End date is required")
        elif end <= datetime.utcnow():
            errors.append("End date must be in the future")
    try:
        parse_datetime(payload.get("startDate"))
    except ValueError:
        errors.append("Start date must be a valid ISO date")
    return errors


def create_poll(s: "Session", payload: dict, user: "User") -> Poll:
    poll_type = payload.get("pollType") or "single_choice"
    texts = _clean_options(payload.get("options"))
    if poll_type == "yes_no" and not texts:
        texts = ["Yes", "No"]

    event: Event | None = None
    if payload.get("eventId"):
        event = s.get(Event, as_int(payload["eventId"]))
        if event is None or not event.is_active:
            raise ApiError("Event not found", 404)

    if poll_type == "multiple_choice":
        max_votes = as_int(payload.get("maxVotesPerUser"), len(texts)) or len(texts)
    else:
        max_votes = 1

    now = datetime.utcnow()
    poll = Poll(
        question=clean_str(payload.get("question")),
        description=clean_str(payload.get("description")),
        event_id=event.id if event else None,
        poll_type=poll_type,
        allow_anonymous=as_bool(payload.get("allowAnonymous")),
        show_live_results=as_bool(payload.get("showLiveResults", True)),
        allow_vote_changes=as_bool(payload.get("allowVoteChanges")),
        max_votes_per_user=max_votes,
        start_date=parse_datetime(payload.get("startDate")) or now,
        end_date=parse_datetime(payload["endDate"]),
        status="active",
        restrict_to=payload.get("restrictTo") or "all",
        restricted_to_samaj=payload.get("restrictedToSamaj") or None,
        restricted_to_roles=as_int_list(payload.get("restrictedToRoles")) or None,
        restricted_to_families=payload.get("restrictedToFamilies") or None,
        created_by_id=user.id,
        total_votes=0,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    poll.options = [PollOption(option_text=t, vote_count=0, order=i) for i, t in enumerate(texts)]
    s.add(poll)
    if event is not None:
        event.poll_count = event.poll_count + 1
    s.flush()
    log_activity(s, performed_by=user, action_type="poll_created", details={"pollId": poll.id, "question": poll.question})
    return poll


# ---------- Read ----------
def get_poll_or_404(s: "Session", poll_id: int) -> Poll:
    poll = s.get(Poll, poll_id)
    if poll is None or not poll.is_active:
        raise ApiError("Poll not found", 404)
    refresh_status(poll)
    return poll


def event_polls(s: "Session", event_id: int) -> list[Poll]:
    polls = (
        s.query(Poll)
        .filter(Poll.event_id == event_id, Poll.is_active.is_(True))
        .order_by(Poll.created_at.desc())
        .all()
    )
    for p in polls:
        refresh_status(p)
    return polls


def user_vote_option_ids(poll: Poll, user: "User | None") -> list[int]:
    if user is None:
        return []
    return [v.option_id for v in poll.votes if v.user_id == user.id]


def poll_results(poll: Poll, user: "User | None") -> dict[str, Any]:
    hide = (
        not poll.show_live_results
        and poll.status == "active"
        and (user is None or user.id != poll.created_by_id)
    )
    data = poll.to_dict(hide_counts=hide)
    if not hide:
        total = poll.total_votes
        for option_data, option in zip(data["options"], poll.options):
            option_data["percentage"] = round(option.vote_count / total * 100, 1) if total else 0.0
        best = winner(poll)
        data["winner"] = best.to_dict() if best else None
    else:
        data["winner"] = None
    chosen = user_vote_option_ids(poll, user)
    data["userHasVoted"] = bool(chosen)
    data["userVote"] = chosen
    data["canVote"] = can_user_vote(poll, user)
    return data


# ---------- Vote ----------
def _validated_option_ids(poll: Poll, raw: Any) -> list[int]:
    if not isinstance(raw, list) or not raw:
        raise ApiError("Please select at least one option", 400)
    try:
        ids = list(dict.fromkeys(int(i) for i in raw))
    except (TypeError, ValueError) as e:
        raise ApiError("Invalid option selected", 400) from e
    valid = {o.id for o in poll.options}
    if any(i not in valid for i in ids):
        raise ApiError("Invalid option selected", 400)
    limit = poll.max_votes_per_user if poll.poll_type == "multiple_choice" else 1
    if len(ids) > limit:
        raise ApiError(f"You can select at most {limit} option(s)", 400)
    return ids


def _clear_votes(s: "Session", poll: Poll, user: "User") -> None:
    by_id = {o.id: o for o in poll.options}
    for vote in [v for v in poll.votes if v.user_id == user.id]:
        option = by_id.get(vote.option_id)
        if option is not None:
            option.vote_count = max(option.vote_count - 1, 0)
        poll.votes.remove(vote)
        s.delete(vote)


def _cast(poll: Poll, user: "User", ids: list[int]) -> None:
    by_id = {o.id: o for o in poll.options}
    now = datetime.utcnow()
    for option_id in ids:
        by_id[option_id].vote_count += 1
        poll.votes.append(PollVote(option_id=option_id, user_id=user.id, voted_at=now))
    recount(poll)
    poll.updated_at = now


def vote(s: "Session", poll: Poll, user: "User", option_ids: Any) -> Poll:
    if not can_user_vote(poll, user):
        raise ApiError("You are not allowed to vote in this poll", 403)
    if user_vote_option_ids(poll, user):
        if not poll.allow_vote_changes:
            raise ApiError("You have already voted in this poll", 400)
        ids = _validated_option_ids(poll, option_ids)
        _clear_votes(s, poll, user)
    else:
        ids = _validated_option_ids(poll, option_ids)
    _cast(poll, user, ids)
    s.flush()
    return poll


def change_vote(s: "Session", poll: Poll, user: "User", option_ids: Any) -> Poll:
    if not poll.allow_vote_changes:
        raise ApiError("Vote changes are not allowed for this poll", 400)
    if not can_user_vote(poll, user):
        raise ApiError("You are not allowed to vote in this poll", 403)
    if not user_vote_option_ids(poll, user):
        raise ApiError("You have not voted in this poll yet", 400)
    ids = _validated_option_ids(poll, option_ids)
    _clear_votes(s, poll, user)
    _cast(poll, user, ids)
    s.flush()
    return poll


# ---------- Lifecycle ----------
def close_poll(s: "Session", poll: Poll, user: "User") -> Poll:
    poll.status = "closed"
    poll.updated_at = datetime.utcnow()
    s.flush()
    log_activity(s, performed_by=user, action_type="poll_closed", details={"pollId": poll.id})
    return poll


def delete_poll(s: "Session", poll: Poll, user: "User") -> None:
    poll.status = "cancelled"
    poll.is_active = False
    poll.updated_at = datetime.utcnow()
    s.flush()
    log_activity(s, performed_by=user, action_type="poll_deleted", details={"pollId": poll.id})
