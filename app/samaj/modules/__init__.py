"""
Feature modules live under this package.

Each module owns its models, service functions and blueprint, and reuses the
platform pieces in app.samaj (auth, RBAC, activity log, storage, DB session).
"""
