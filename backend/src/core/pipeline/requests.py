"""
Execution Request Store - Persistence for the request lifecycle.
"""

from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.models import ExecutionRequest, ExecutionStatus


class ExecutionRequestStore:
    """Create, read and re-status execution requests."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, user_id: UUID, instruction: str, repo_path: str) -> ExecutionRequest:
        """Insert a new request in status pending."""
        request = ExecutionRequest(
            id=uuid4(),
            user_id=user_id,
            instruction=instruction,
            repo_path=repo_path,
            status=ExecutionStatus.PENDING,
        )
        self.db.add(request)
        await self.db.commit()
        await self.db.refresh(request)
        return request

    async def update_status(self, request: ExecutionRequest, status: ExecutionStatus) -> None:
        request.status = status
        await self.db.commit()

    async def get(self, request_id: UUID) -> Optional[ExecutionRequest]:
        result = await self.db.execute(
            select(ExecutionRequest).where(ExecutionRequest.id == request_id)
        )
        return result.scalar_one_or_none()

    async def list_by_user(self, user_id: UUID, limit: Optional[int] = None) -> list[ExecutionRequest]:
        """A user's requests, newest first."""
        query = (
            select(ExecutionRequest)
            .where(ExecutionRequest.user_id == user_id)
            .order_by(ExecutionRequest.created_at.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())
