"""
CodeShift - Change Journal and Request Store Tests
==================================================
"""

from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.models import ExecutionStatus, User
from src.core.pipeline import ChangeJournal, ExecutionRequestStore
from src.core.schemas import ProposedEdit


def proposed(file_path: str, content: str = "body", new: bool = False) -> ProposedEdit:
    return ProposedEdit(
        file_path=file_path,
        original_content=None if new else "old",
        modified_content=content,
        description=f"touch {file_path}",
        is_new_file=new,
    )


# ==========================================================================
# Request Store
# ==========================================================================

class TestExecutionRequestStore:

    async def test_create_is_pending(self, db_session: AsyncSession, test_user: User):
        store = ExecutionRequestStore(db_session)

        request = await store.create(test_user.id, "add a readme", "/tmp/repo")

        assert request.status == ExecutionStatus.PENDING
        assert request.instruction == "add a readme"
        assert request.repo_path == "/tmp/repo"
        assert request.created_at is not None

    async def test_update_status(self, db_session: AsyncSession, test_user: User):
        store = ExecutionRequestStore(db_session)
        request = await store.create(test_user.id, "x", "/r")

        await store.update_status(request, ExecutionStatus.PROCESSING)

        loaded = await store.get(request.id)
        assert loaded.status == ExecutionStatus.PROCESSING
        assert not loaded.status.is_terminal

    async def test_get_missing(self, db_session: AsyncSession):
        assert await ExecutionRequestStore(db_session).get(uuid4()) is None

    async def test_list_by_user_scoped(
        self, db_session: AsyncSession, test_user: User, other_user: User
    ):
        store = ExecutionRequestStore(db_session)
        await store.create(test_user.id, "one", "/r")
        await store.create(test_user.id, "two", "/r")
        await store.create(other_user.id, "theirs", "/r")

        mine = await store.list_by_user(test_user.id)
        limited = await store.list_by_user(test_user.id, limit=1)

        assert sorted(r.instruction for r in mine) == ["one", "two"]
        assert len(limited) == 1


# ==========================================================================
# Change Journal
# ==========================================================================

class TestChangeJournal:

    async def test_record_is_unapplied(self, db_session: AsyncSession, test_user: User):
        request = await ExecutionRequestStore(db_session).create(test_user.id, "x", "/r")
        journal = ChangeJournal(db_session)

        change = await journal.record(request.id, proposed("src/a.ts", "new body"))

        assert change.applied is False
        assert change.request_id == request.id
        assert change.file_path == "src/a.ts"
        assert change.original_content == "old"
        assert change.modified_content == "new body"
        assert change.description == "touch src/a.ts"

    async def test_new_file_has_no_original(self, db_session: AsyncSession, test_user: User):
        request = await ExecutionRequestStore(db_session).create(test_user.id, "x", "/r")

        change = await ChangeJournal(db_session).record(request.id, proposed("b.ts", new=True))

        assert change.original_content is None

    async def test_list_keeps_record_order(self, db_session: AsyncSession, test_user: User):
        request = await ExecutionRequestStore(db_session).create(test_user.id, "x", "/r")
        journal = ChangeJournal(db_session)
        for name in ("c.ts", "a.ts", "b.ts"):
            await journal.record(request.id, proposed(name))

        changes = await journal.list_by_request(request.id)

        assert [c.file_path for c in changes] == ["c.ts", "a.ts", "b.ts"]
        assert [c.sequence for c in changes] == [0, 1, 2]

    async def test_list_is_per_request(self, db_session: AsyncSession, test_user: User):
        store = ExecutionRequestStore(db_session)
        first = await store.create(test_user.id, "first", "/r")
        second = await store.create(test_user.id, "second", "/r")
        journal = ChangeJournal(db_session)
        await journal.record(first.id, proposed("one.ts"))
        await journal.record(second.id, proposed("two.ts"))

        changes = await journal.list_by_request(second.id)

        assert [c.file_path for c in changes] == ["two.ts"]
        assert changes[0].sequence == 0

    async def test_mark_applied_is_idempotent(self, db_session: AsyncSession, test_user: User):
        request = await ExecutionRequestStore(db_session).create(test_user.id, "x", "/r")
        journal = ChangeJournal(db_session)
        change = await journal.record(request.id, proposed("a.ts"))
        other = await journal.record(request.id, proposed("b.ts"))

        await journal.mark_applied(change.id)
        await journal.mark_applied(change.id)

        changes = await journal.list_by_request(request.id)
        assert {c.id: c.applied for c in changes} == {change.id: True, other.id: False}
