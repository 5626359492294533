"""System update service — platform announcements and their broadcast.

Learn: Announcements are not tenant-scoped: every tenant sees the same
list. Creating or revising one mails every distinct org_admin on the
platform. Mail goes through the bounded MailQueue, so the response
reports how many messages were *queued* (and how many were dropped
because the queue was full), not how many were delivered.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pulseforge.db.models import ORG_ADMIN, SystemUpdate, User
from pulseforge.errors import NotFound
from pulseforge.notifications import MailQueue
from pulseforge.services.validation import parse_day, require_future_day

logger = structlog.get_logger()

DEFAULT_CREATOR = "system-admin"


@dataclass
class BroadcastCounts:
    recipients: int = 0
    queued: int = 0
    dropped: int = 0


class UpdateService:
    """Business logic for system updates."""

    def __init__(self, db: AsyncSession, mail_queue: Optional[MailQueue] = None):
        self.db = db
        self.mail_queue = mail_queue

    async def list_updates(self) -> list[SystemUpdate]:
        """Soonest first; same-day entries newest first."""
        result = await self.db.execute(
            select(SystemUpdate).order_by(
                SystemUpdate.scheduled_date.asc(), SystemUpdate.id.desc()
            )
        )
        return list(result.scalars().all())

    async def create_update(
        self,
        scheduled_date: str,
        title: str,
        feature_brief: str,
        expectations: str,
        created_by: str = "",
        today: Optional[date] = None,
    ) -> tuple[SystemUpdate, BroadcastCounts]:
        day = require_future_day(parse_day(scheduled_date, "scheduled_date"), "scheduled_date", today)
        item = SystemUpdate(
            scheduled_date=day,
            title=title,
            feature_brief=feature_brief,
            expectations=expectations,
            created_by_email=created_by.strip() or DEFAULT_CREATOR,
        )
        self.db.add(item)
        await self.db.commit()
        logger.info("update.created", update_id=item.id, scheduled_date=str(day))

        counts = await self.broadcast(
            f"[PulseForge] Platform update scheduled: {item.title}",
            _announcement(item, "A new platform update has been scheduled.",
                          "Please prepare your organization accordingly."),
        )
        return item, counts

    async def revise_update(
        self,
        update_id: int,
        scheduled_date: str,
        title: str,
        feature_brief: str,
        expectations: str,
        today: Optional[date] = None,
    ) -> tuple[SystemUpdate, BroadcastCounts]:
        day = require_future_day(parse_day(scheduled_date, "scheduled_date"), "scheduled_date", today)
        item = await self.db.get(SystemUpdate, update_id)
        if item is None:
            raise NotFound("system update not found")

        item.scheduled_date = day
        item.title = title
        item.feature_brief = feature_brief
        item.expectations = expectations
        await self.db.commit()
        logger.info("update.revised", update_id=item.id, scheduled_date=str(day))

        counts = await self.broadcast(
            f"[PulseForge] Platform update revised: {item.title}",
            _announcement(item, "A scheduled platform update has been revised.",
                          "Please align your organization plans accordingly."),
        )
        return item, counts

    # ─── Broadcast ──────────────────────────────────────

    async def org_admin_emails(self) -> list[str]:
        """Distinct, normalized emails of every org_admin on the platform."""
        result = await self.db.execute(
            select(func.lower(func.trim(User.email)))
            .where(User.role == ORG_ADMIN)
            .distinct()
        )
        return sorted({email.strip() for email in result.scalars().all() if email and email.strip()})

    async def broadcast(self, subject: str, message: str) -> BroadcastCounts:
        recipients = await self.org_admin_emails()
        counts = BroadcastCounts(recipients=len(recipients))
        if self.mail_queue is None:
            counts.dropped = counts.recipients
            return counts
        for to in recipients:
            if self.mail_queue.submit(to, subject, message):
                counts.queued += 1
            else:
                counts.dropped += 1
        logger.info(
            "update.broadcast",
            recipients=counts.recipients,
            queued=counts.queued,
            dropped=counts.dropped,
        )
        return counts


def _announcement(item: SystemUpdate, opening: str, closing: str) -> str:
    return (
        f"Hello,\n\n{opening}\n\n"
        f"Date: {item.scheduled_date.isoformat()}\n"
        f"Feature: {item.title}\n\n"
        f"Brief:\n{item.feature_brief}\n\n"
        f"Expectation:\n{item.expectations}\n\n"
        f"{closing}"
    )
