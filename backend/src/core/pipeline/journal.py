"""
Change Journal - Write-ahead record of proposed edits.

Every proposed edit gets a ChangeRecord before its file is written.
The applied flag is the only thing that changes afterwards, which keeps
the journal a full audit trail even for edits that never landed.
"""

from uuid import UUID, uuid4

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.models import ChangeRecord
from src.core.schemas import ProposedEdit

logger = structlog.get_logger(__name__)


class ChangeJournal:
    """Append-only store of ChangeRecords, one batch per execution request."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(self, request_id: UUID, edit: ProposedEdit) -> ChangeRecord:
        """
        Durably record one proposed edit with applied=False.

        Commits before returning; the caller may only write the file
        after this call completes.
        """
        sequence = await self._next_sequence(request_id)

        change = ChangeRecord(
            id=uuid4(),
            request_id=request_id,
            sequence=sequence,
            file_path=edit.file_path,
            original_content=edit.original_content,
            modified_content=edit.modified_content,
            description=edit.description,
            applied=False,
        )
        self.db.add(change)
        await self.db.commit()
        await self.db.refresh(change)

        logger.debug("change_recorded", request_id=str(request_id), file_path=edit.file_path, sequence=sequence)
        return change

    async def mark_applied(self, change_id: UUID) -> None:
        """Flip applied to True. Safe to call more than once."""
        await self.db.execute(
            update(ChangeRecord)
            .where(ChangeRecord.id == change_id)
            .values(applied=True)
        )
        await self.db.commit()

    async def list_by_request(self, request_id: UUID) -> list[ChangeRecord]:
        """All records for a request in creation order."""
        result = await self.db.execute(
            select(ChangeRecord)
            .where(ChangeRecord.request_id == request_id)
            .order_by(ChangeRecord.sequence, ChangeRecord.created_at)
        )
        return list(result.scalars().all())

    async def _next_sequence(self, request_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(ChangeRecord.id)).where(ChangeRecord.request_id == request_id)
        )
        return result.scalar_one()
