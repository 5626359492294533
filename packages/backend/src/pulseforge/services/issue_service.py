"""Issue and forum services — tenant-scoped reports and discussion posts."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulseforge.db.models import ForumPost, Issue, Project
from pulseforge.errors import NotFound

UNKNOWN_AUTHOR = "unknown@tenant"


class IssueService:
    """Business logic for one tenant's issues."""

    def __init__(self, db: AsyncSession, tenant_slug: str):
        self.db = db
        self.tenant_slug = tenant_slug

    async def list_issues(self) -> list[tuple[Issue, Optional[str]]]:
        result = await self.db.execute(
            select(Issue, Project.name)
            .outerjoin(Project, Project.id == Issue.project_id)
            .where(Issue.tenant_id == self.tenant_slug)
            .order_by(Issue.id.desc())
        )
        return [(issue, name) for issue, name in result.all()]

    async def create_issue(
        self,
        title: str,
        description: str,
        severity: str = "",
        project_id: Optional[int] = None,
        created_by: str = "",
    ) -> tuple[Issue, Optional[str]]:
        """File an issue, optionally against a project of this tenant."""
        project_name = None
        if project_id is not None:
            project_name = await self.db.scalar(
                select(Project.name).where(
                    Project.id == project_id, Project.tenant_id == self.tenant_slug
                )
            )
            if project_name is None:
                raise NotFound("project not found for this tenant")

        issue = Issue(
            tenant_id=self.tenant_slug,
            project_id=project_id,
            title=title,
            description=description,
            severity=severity or "medium",
            status="open",
            created_by_email=created_by.strip() or UNKNOWN_AUTHOR,
        )
        self.db.add(issue)
        await self.db.commit()
        return issue, project_name

    async def update_issue(
        self,
        issue_id: int,
        status: Optional[str] = None,
        severity: Optional[str] = None,
    ) -> tuple[Issue, Optional[str]]:
        issue = await self.db.scalar(
            select(Issue).where(Issue.id == issue_id, Issue.tenant_id == self.tenant_slug)
        )
        if issue is None:
            raise NotFound("issue not found")
        if status is not None:
            issue.status = status
        if severity is not None:
            issue.severity = severity
        await self.db.commit()

        project_name = None
        if issue.project_id is not None:
            project_name = await self.db.scalar(
                select(Project.name).where(Project.id == issue.project_id)
            )
        return issue, project_name


class ForumService:
    """Business logic for one tenant's forum."""

    def __init__(self, db: AsyncSession, tenant_slug: str):
        self.db = db
        self.tenant_slug = tenant_slug

    async def list_posts(self) -> list[ForumPost]:
        result = await self.db.execute(
            select(ForumPost)
            .where(ForumPost.tenant_id == self.tenant_slug)
            .order_by(ForumPost.id.desc())
        )
        return list(result.scalars().all())

    async def create_post(self, title: str, body: str, author: str = "") -> ForumPost:
        post = ForumPost(
            tenant_id=self.tenant_slug,
            author_email=author.strip() or UNKNOWN_AUTHOR,
            title=title,
            body=body,
        )
        self.db.add(post)
        await self.db.commit()
        return post

    async def delete_post(self, post_id: int) -> None:
        post = await self.db.scalar(
            select(ForumPost).where(
                ForumPost.id == post_id, ForumPost.tenant_id == self.tenant_slug
            )
        )
        if post is None:
            raise NotFound("forum post not found")
        await self.db.delete(post)
        await self.db.commit()
