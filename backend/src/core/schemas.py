"""
CodeShift - Pydantic Schemas
============================

Request/response schemas for the API and the edit oracle's reply contract.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from src.core.config import settings
from src.core.models import ExecutionStatus


# ==========================================================================
# Base Schemas
# ==========================================================================

class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class CamelSchema(BaseModel):
    """Wire schema with camelCase keys; content is never stripped."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


# ==========================================================================
# Auth Schemas
# ==========================================================================

class UserCreate(BaseSchema):
    """Schema for user registration."""

    username: str = Field(min_length=settings.USERNAME_MIN_LENGTH, max_length=100)
    email: EmailStr
    password: str = Field(min_length=settings.PASSWORD_MIN_LENGTH, max_length=100)


class UserLogin(BaseSchema):
    """Schema for user login."""

    username: str
    password: str


class UserResponse(BaseSchema):
    """User in responses. Carries the API key, never the password hash."""

    id: UUID
    username: str
    email: EmailStr
    api_key: str
    created_at: datetime


class TokenResponse(BaseSchema):
    """Login result."""

    user: UserResponse
    token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until the token expires


# ==========================================================================
# Oracle Contract
# ==========================================================================

class ProposedEdit(CamelSchema):
    """
    One file's complete target content, as returned by the oracle.

    `modified_content` is the whole final file body, never a diff.
    """

    file_path: str = Field(min_length=1)
    original_content: Optional[str] = None
    modified_content: str
    description: Optional[str] = None
    is_new_file: bool = False


class EditPlan(CamelSchema):
    """Oracle reply: a plan and an ordered list of edits."""

    plan: str = ""
    edits: list[ProposedEdit] = Field(
        default_factory=list,
        validation_alias=AliasChoices("edits", "modifications"),
    )

    @field_validator("plan", mode="before")
    @classmethod
    def default_plan(cls, v):
        return "" if v is None else v

    @field_validator("edits", mode="before")
    @classmethod
    def default_edits(cls, v):
        return [] if v is None else v


# ==========================================================================
# Execution Schemas
# ==========================================================================

class ExecuteRequest(BaseSchema):
    """Body of POST /prompts/execute."""

    prompt: str = Field(min_length=1, description="Natural-language instruction")
    target_repo: str = Field(
        min_length=1,
        validation_alias=AliasChoices("target_repo", "targetRepo"),
        description="Repository path on the server",
    )


class ExecutionResultResponse(CamelSchema):
    """Outcome of one pipeline run."""

    success: bool
    request_id: Optional[UUID] = None
    plan: str = ""
    edits: list[ProposedEdit] = Field(default_factory=list)
    applied_count: int = 0
    errors: list[str] = Field(default_factory=list)


class ExecutionRequestResponse(BaseSchema):
    """Persisted execution request."""

    id: UUID
    user_id: UUID
    instruction: str
    repo_path: str
    status: ExecutionStatus
    created_at: datetime


class ChangeRecordResponse(BaseSchema):
    """Journal entry for one proposed edit."""

    id: UUID
    request_id: UUID
    sequence: int
    file_path: str
    original_content: Optional[str] = None
    modified_content: Optional[str] = None
    description: Optional[str] = None
    applied: bool
    created_at: datetime


class HistoryResponse(BaseSchema):
    """A user's execution requests, newest first."""

    prompts: list[ExecutionRequestResponse]


class ExecutionDetailsResponse(BaseSchema):
    """An execution request with its change journal."""

    prompt: ExecutionRequestResponse
    changes: list[ChangeRecordResponse]


# ==========================================================================
# Common Response Schemas
# ==========================================================================

class MessageResponse(BaseSchema):
    """Generic message response."""

    message: str
    success: bool = True


class ErrorResponse(BaseSchema):
    """Error response schema."""

    error: str
    detail: Optional[str] = None
    code: Optional[str] = None


class HealthResponse(BaseSchema):
    """Health check response."""

    status: str
    version: str
    environment: str
    database: str
    redis: str
