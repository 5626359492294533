"""Authentication and authorization.

Learn: One authentication path — tenant admins log in with
email/password (optionally scoped by tenant slug) and receive a signed
JWT session token. The token carries tenant slug, role, and identity
claims, so every authenticated request resolves to a TenantContext
without touching the database.

Two roles: org_admin (tenant-scoped) and system_admin (platform-wide,
granted through an email allow-list).
"""
