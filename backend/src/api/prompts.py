"""
CodeShift - Prompt Execution API
================================

Execute instructions against a repository and inspect past runs.
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, HTTPException, status

from src.api.deps import CurrentUser, DbSession, Orchestrator
from src.core.pipeline import ChangeJournal, ExecutionRequestStore
from src.core.schemas import (
    ChangeRecordResponse,
    ExecuteRequest,
    ExecutionDetailsResponse,
    ExecutionRequestResponse,
    ExecutionResultResponse,
    HistoryResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/prompts", tags=["Prompts"])


@router.post(
    "/execute",
    response_model=ExecutionResultResponse,
    response_model_by_alias=True,
    summary="Execute an instruction",
    responses={
        200: {"description": "Pipeline ran; see `success` and `errors`"},
        401: {"description": "Not authenticated"},
        422: {"description": "Missing prompt or targetRepo"},
    },
)
async def execute_prompt(
    data: ExecuteRequest,
    current_user: CurrentUser,
    orchestrator: Orchestrator,
) -> ExecutionResultResponse:
    """
    Run the edit pipeline synchronously and return its summary.

    Pipeline failures are reported in the body (`success: false`),
    not as HTTP errors.
    """
    result = await orchestrator.execute(current_user.id, data.prompt, data.target_repo)
    return ExecutionResultResponse(
        success=result.success,
        request_id=result.request_id,
        plan=result.plan,
        edits=result.edits,
        applied_count=result.applied_count,
        errors=result.errors,
    )


@router.get(
    "/history",
    response_model=HistoryResponse,
    summary="List your execution requests",
)
async def history(current_user: CurrentUser, db: DbSession) -> HistoryResponse:
    requests = await ExecutionRequestStore(db).list_by_user(current_user.id)
    return HistoryResponse(
        prompts=[ExecutionRequestResponse.model_validate(r) for r in requests],
    )


@router.get(
    "/{request_id}",
    response_model=ExecutionDetailsResponse,
    summary="Execution request with its change records",
    responses={
        403: {"description": "Request belongs to another user"},
        404: {"description": "Request not found"},
    },
)
async def details(request_id: UUID, current_user: CurrentUser, db: DbSession) -> ExecutionDetailsResponse:
    request = await ExecutionRequestStore(db).get(request_id)

    if request is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prompt not found")

    if request.user_id != current_user.id:
        logger.warning("execution_access_denied", request_id=str(request_id), user_id=str(current_user.id))
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    changes = await ChangeJournal(db).list_by_request(request.id)
    return ExecutionDetailsResponse(
        prompt=ExecutionRequestResponse.model_validate(request),
        changes=[ChangeRecordResponse.model_validate(c) for c in changes],
    )
