"""
CodeShift - Database Models
===========================

SQLAlchemy models for users, execution requests and their change journal.
"""

import enum
from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database import Base


# ==========================================================================
# Enums
# ==========================================================================

class ExecutionStatus(str, enum.Enum):
    """Lifecycle of an execution request."""
    PENDING = "pending"          # Record created
    PROCESSING = "processing"    # Scan has begun
    COMPLETED = "completed"      # Every edit applied
    FAILED = "failed"            # Apply errors or a fatal pipeline error

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)


# ==========================================================================
# Mixins
# ==========================================================================

class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


# ==========================================================================
# Models
# ==========================================================================

class User(Base, TimestampMixin):
    """User account. Owns execution requests; authenticates by JWT or API key."""

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    username: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        index=True,
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    api_key: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        index=True,
        nullable=False,
    )

    # Relationships
    execution_requests: Mapped[list["ExecutionRequest"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<User {self.username}>"


class ExecutionRequest(Base, TimestampMixin):
    """
    One instruction-to-edits run against a repository.

    Only the orchestrator moves `status`:
    pending -> processing -> completed | failed
    """

    __tablename__ = "prompts"

    id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    user_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    instruction: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    repo_path: Mapped[str] = mapped_column(
        String(2000),
        nullable=False,
    )
    status: Mapped[ExecutionStatus] = mapped_column(
        Enum(ExecutionStatus),
        default=ExecutionStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Relationships
    user: Mapped["User"] = relationship(
        back_populates="execution_requests",
    )
    changes: Mapped[list["ChangeRecord"]] = relationship(
        back_populates="request",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ChangeRecord.sequence",
    )

    def __repr__(self) -> str:
        return f"<ExecutionRequest {self.id} [{self.status.value}]>"


class ChangeRecord(Base, TimestampMixin):
    """
    Write-ahead journal entry for one proposed edit.

    Created before the file is touched; `applied` is the only field
    that changes afterwards.
    """

    __tablename__ = "code_changes"

    id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    request_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("prompts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )  # position within the request's batch
    file_path: Mapped[str] = mapped_column(
        String(2000),
        nullable=False,
    )
    original_content: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    modified_content: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    applied: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Relationships
    request: Mapped["ExecutionRequest"] = relationship(
        back_populates="changes",
    )

    def __repr__(self) -> str:
        return f"<ChangeRecord {self.file_path} applied={self.applied}>"
