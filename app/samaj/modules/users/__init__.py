"""
Users module.

Scope:
- Self-service profile (/me, password change, profile image)
- Admin approval workflow, role and status changes, bulk actions
- Soft delete / restore / hard delete with dependency counts
- Family search and the primary-account transfer (linked transfer history)
"""
