"""
Events module.

Scope:
- Events with visibility rules (public / samaj / family / role)
- Photo and video media through the storage backend
- RSVPs with a per-event tally
- Moderation of events created by regular members
"""
