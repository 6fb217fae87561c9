"""
Applier - Write proposed edits to disk with per-file failure isolation.
"""

import asyncio
import os
from dataclasses import dataclass, field
from typing import Sequence

import structlog

from src.core.models import ChangeRecord
from src.core.pipeline.journal import ChangeJournal
from src.core.schemas import ProposedEdit

logger = structlog.get_logger(__name__)


@dataclass
class ApplyOutcome:
    """Counts for one batch. applied_count + len(errors) == edits attempted."""
    applied_count: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def write_file(full_path: str, content: str) -> None:
    """Create missing parent directories, then overwrite the file."""
    parent = os.path.dirname(full_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(full_path, "w", encoding="utf-8") as f:
        f.write(content)


class EditApplier:
    """
    Applies edits in order. A failed write is recorded and the batch
    moves on; a successful one flips its ChangeRecord to applied.

    No check is made that the file still holds `original_content`;
    concurrent external edits are overwritten.
    """

    def __init__(self, journal: ChangeJournal):
        self.journal = journal

    async def apply(
        self,
        repo_path: str,
        edits: Sequence[ProposedEdit],
        changes: Sequence[ChangeRecord],
    ) -> ApplyOutcome:
        """
        Apply each edit paired with the ChangeRecord journaled for it.

        Args:
            repo_path: Repository root; edit paths are joined onto it
            edits: Edits in oracle order
            changes: ChangeRecords, same length and order as edits

        Returns:
            ApplyOutcome with the applied count and "path: message" errors
        """
        if len(edits) != len(changes):
            raise ValueError("every edit needs exactly one change record")

        outcome = ApplyOutcome()
        total = len(edits)

        for index, (edit, change) in enumerate(zip(edits, changes), start=1):
            full_path = os.path.join(repo_path, edit.file_path)
            action = "create" if edit.is_new_file else "modify"

            try:
                await asyncio.to_thread(write_file, full_path, edit.modified_content)
            except (OSError, ValueError) as e:
                message = e.strerror if isinstance(e, OSError) and e.strerror else str(e)
                outcome.errors.append(f"{edit.file_path}: {message}")
                logger.warning(
                    "edit_failed",
                    step=f"{index}/{total}",
                    file_path=edit.file_path,
                    error=message,
                )
                continue

            await self.journal.mark_applied(change.id)
            outcome.applied_count += 1
            logger.info("edit_applied", step=f"{index}/{total}", action=action, file_path=edit.file_path)

        return outcome
