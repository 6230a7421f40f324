"""
Central constants for the Samaj application.

The first eight lists can be overridden at runtime through the Enum admin
module; see app.samaj.modules.enums.service.get_enum_values.
"""
from __future__ import annotations

USER_ROLES = ["user", "committee", "moderator", "admin"]

USER_STATUS = ["pending", "approved", "rejected"]

# Set only by a primary transfer whose reason reports a death.
STATUS_DECEASED = "deceased"

COMMITTEE_POSITIONS = [
    "President",
    "Vice President",
    "Secretary",
    "Treasurer",
    "Committee Member",
    "Advisor",
]

MARITAL_STATUS = ["single", "married", "divorced", "widowed"]

OCCUPATION_TYPES = ["job", "business", "student", "retired", "homemaker", "other"]

RELATIONSHIP_TYPES = [
    "Father",
    "Mother",
    "Son",
    "Daughter",
    "Husband",
    "Wife",
    "Brother",
    "Sister",
    "Grandfather",
    "Grandmother",
    "Grandson",
    "Granddaughter",
    "Uncle",
    "Aunt",
    "Nephew",
    "Niece",
    "Cousin",
    "Father-in-law",
    "Mother-in-law",
    "Son-in-law",
    "Daughter-in-law",
    "Brother-in-law",
    "Sister-in-law",
    "Other",
]

SAMAJ_TYPES = ["Kadva Patidar", "Anjana Patidar", "Other"]

COUNTRIES = [
    "India",
    "USA",
    "UK",
    "Canada",
    "Australia",
    "United Arab Emirates",
    "Saudi Arabia",
    "Singapore",
    "Malaysia",
    "South Africa",
    "New Zealand",
    "Germany",
    "France",
    "Other",
]

BLOOD_GROUPS = ["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-", "Unknown"]

GENDERS = ["male", "female", "other"]

RELATIONSHIP_DIRECTIONS = ["user1_to_user2", "user2_to_user1", "bidirectional"]

RELATIONSHIP_STATUS = ["pending", "accepted", "rejected"]

DELETE_TYPES = ["soft", "hard"]

APPROVAL_STATUS = ["pending", "approved", "rejected"]

# Enum types an admin may edit at runtime.
EDITABLE_ENUMS: dict[str, list[str]] = {
    "USER_ROLES": USER_ROLES,
    "USER_STATUS": USER_STATUS,
    "COMMITTEE_POSITIONS": COMMITTEE_POSITIONS,
    "MARITAL_STATUS": MARITAL_STATUS,
    "OCCUPATION_TYPES": OCCUPATION_TYPES,
    "RELATIONSHIP_TYPES": RELATIONSHIP_TYPES,
    "SAMAJ_TYPES": SAMAJ_TYPES,
    "COUNTRIES": COUNTRIES,
}

# Events
EVENT_TYPES = [
    "funeral",
    "condolence",
    "festival",
    "marriage",
    "engagement",
    "reception",
    "birthday",
    "anniversary",
    "housewarming",
    "community_function",
    "religious",
    "spiritual",
    "informational",
    "youtube_live",
    "other",
]
EVENT_VISIBILITY = ["public", "samaj", "family", "role"]
EVENT_STATUS = ["upcoming", "ongoing", "completed", "cancelled"]
RSVP_STATUS = ["attending", "not_attending", "maybe"]
MAX_EVENT_PHOTOS = 10
MAX_EVENT_VIDEOS = 5

# Polls
POLL_TYPES = ["single_choice", "multiple_choice", "yes_no"]
POLL_STATUS = ["active", "closed", "cancelled"]
POLL_RESTRICT_TO = ["all", "samaj", "role", "family"]
POLL_MIN_OPTIONS = 2
POLL_MAX_OPTIONS = 10

# Comments
COMMENT_TYPES = ["general", "condolence", "congratulation", "question", "feedback"]
COMMENT_STATUS = ["published", "pending", "hidden", "deleted"]
COMMENT_EDIT_WINDOW_MINUTES = 15
COMMENT_MAX_LENGTH = 1000
MAX_REPLIES_PER_COMMENT = 10

# Family members
FAMILY_APPROVAL_THRESHOLD = 5
DELETED_USER_LABEL = "[Deleted User]"
DELETED_COMMENT_TEXT = "[Deleted by user]"
DECEASED_REASON_MARKERS = ("deceased", "death", "passed away")

# Uploads
ALLOWED_MEDIA_PREFIXES = ("image/", "video/")
MAX_UPLOAD_BYTES = 50 * 1024 * 1024
