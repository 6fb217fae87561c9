"""
Execution Orchestrator - Instruction in, applied edits out.

Single entry point for the CLI and the HTTP API.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.core.models import ExecutionRequest, ExecutionStatus
from src.core.pipeline.applier import EditApplier
from src.core.pipeline.journal import ChangeJournal
from src.core.pipeline.oracle import EditOracle
from src.core.pipeline.requests import ExecutionRequestStore
from src.core.pipeline.scanner import TreeScanner
from src.core.pipeline.selector import select_relevant
from src.core.schemas import EditPlan, ProposedEdit

logger = structlog.get_logger(__name__)


@dataclass
class ExecutionResult:
    """Summary returned to callers; never replaced by a raised exception."""
    success: bool
    request_id: Optional[UUID] = None
    plan: str = ""
    edits: list[ProposedEdit] = field(default_factory=list)
    applied_count: int = 0
    errors: list[str] = field(default_factory=list)


class ExecutionOrchestrator:
    """
    Runs one execution request end to end:

    scan -> select -> oracle -> journal (write-ahead) -> apply -> status

    Request lifecycle: PENDING -> PROCESSING -> COMPLETED | FAILED.
    COMPLETED means zero apply errors. A fatal error after the request
    exists marks it FAILED; a failure before it exists yields a result
    with no request id.

    All collaborators are passed in; only the session is required.
    """

    def __init__(
        self,
        db: AsyncSession,
        scanner: Optional[TreeScanner] = None,
        oracle: Optional[EditOracle] = None,
        fallback_files: Optional[int] = None,
    ):
        self.db = db
        self.scanner = scanner or TreeScanner()
        self.oracle = oracle or EditOracle()
        self.fallback_files = settings.FALLBACK_CONTEXT_FILES if fallback_files is None else fallback_files

        self.requests = ExecutionRequestStore(db)
        self.journal = ChangeJournal(db)
        self.applier = EditApplier(self.journal)

    async def execute(self, user_id: UUID, instruction: str, repo_path: str) -> ExecutionResult:
        """
        Execute an instruction against a repository.

        Args:
            user_id: Resolved identity of the caller
            instruction: Natural-language request
            repo_path: Repository root on this machine

        Returns:
            ExecutionResult; errors hold literal messages
        """
        try:
            request = await self.requests.create(user_id, instruction, repo_path)
        except Exception as e:
            logger.error("execution_request_not_created", error=str(e), exc_info=True)
            return ExecutionResult(success=False, errors=[str(e)])

        request_id = request.id
        log = logger.bind(request_id=str(request_id))
        log.info("execution_request_created", user_id=str(user_id), repo_path=repo_path)

        plan: Optional[EditPlan] = None
        try:
            await self.requests.update_status(request, ExecutionStatus.PROCESSING)

            # Scan
            scan = await asyncio.to_thread(self.scanner.scan, repo_path)

            # Select
            relevant = select_relevant(scan.files, instruction)
            log.info(
                "relevant_files_selected",
                count=len(relevant),
                preview=[f.relative_path for f in relevant[:5]],
            )
            context = relevant if relevant else scan.files[: self.fallback_files]

            # Consult oracle
            plan = await self.oracle.propose(instruction, context, scan.structure)

            # Journal every edit before any file is written
            changes = [await self.journal.record(request_id, edit) for edit in plan.edits]

            # Apply
            outcome = await self.applier.apply(repo_path, plan.edits, changes)

        except Exception as e:
            log.error("execution_failed", error=str(e), exc_info=True)
            await self._mark_failed(request, request_id)
            return ExecutionResult(
                success=False,
                request_id=request_id,
                plan=plan.plan if plan else "",
                edits=list(plan.edits) if plan else [],
                errors=[str(e)],
            )

        status = ExecutionStatus.COMPLETED if outcome.ok else ExecutionStatus.FAILED
        await self.requests.update_status(request, status)

        log.info(
            "execution_finished",
            status=status.value,
            applied=outcome.applied_count,
            total=len(plan.edits),
            errors=len(outcome.errors),
        )

        return ExecutionResult(
            success=outcome.ok,
            request_id=request_id,
            plan=plan.plan,
            edits=list(plan.edits),
            applied_count=outcome.applied_count,
            errors=outcome.errors,
        )

    async def _mark_failed(self, request: ExecutionRequest, request_id: UUID) -> None:
        """Best-effort FAILED transition after a fatal error."""
        try:
            await self.db.rollback()
            await self.requests.update_status(request, ExecutionStatus.FAILED)
        except Exception as e:
            logger.error("execution_status_not_saved", request_id=str(request_id), error=str(e))
