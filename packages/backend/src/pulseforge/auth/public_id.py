"""Public user identifiers — 7-digit numeric strings.

Learn: Internal primary keys never leave the database. Users are
identified externally (token `sub`, API responses) by a random 7-digit
string in 1000000–9999999. With 9M candidates collisions are rare, but
the allocator still checks the users table and retries a bounded number
of times so a pathological run can't spin forever.

Works with both AsyncSession and AsyncConnection: the bootstrapper
backfills legacy rows on a raw connection before any session exists.
"""

import re
import secrets
from typing import Callable, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession

from pulseforge.db.models import User
from pulseforge.errors import ResourceExhausted

PUBLIC_ID_MIN = 1_000_000
PUBLIC_ID_SPAN = 9_000_000
MAX_ATTEMPTS = 20

_PUBLIC_ID_RE = re.compile(r"^[0-9]{7}$")


def is_valid_public_id(value: str | None) -> bool:
    return bool(value) and _PUBLIC_ID_RE.match(value) is not None


def random_public_id(randbelow: Callable[[int], int] = secrets.randbelow) -> str:
    return f"{PUBLIC_ID_MIN + randbelow(PUBLIC_ID_SPAN):07d}"


async def allocate_public_id(
    db: Union[AsyncSession, AsyncConnection],
    *,
    max_attempts: int = MAX_ATTEMPTS,
    randbelow: Callable[[int], int] = secrets.randbelow,
) -> str:
    """Return a 7-digit id not present in the users table.

    Raises ResourceExhausted after `max_attempts` collisions.
    """
    for _ in range(max_attempts):
        candidate = random_public_id(randbelow)
        existing = await db.scalar(
            select(User.id).where(User.public_id == candidate).limit(1)
        )
        if existing is None:
            return candidate
    raise ResourceExhausted("user id generation failed")
