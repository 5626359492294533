"""Role resolution against the system-admin allow-list."""

from pulseforge.db.models import ORG_ADMIN, SYSTEM_ADMIN


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def role_for_email(email: str, system_admins: frozenset[str]) -> str:
    """system_admin if the email is allow-listed, otherwise org_admin."""
    return SYSTEM_ADMIN if normalize_email(email) in system_admins else ORG_ADMIN
