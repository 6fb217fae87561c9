#!/usr/bin/env python3
"""
CodeShift CLI
=============

Command-line front end: account commands, `run` for executing an
instruction against a local repository, and history/details views.

Usage:
    codeshift register
    codeshift login
    codeshift run -r ./my-repo -p "add input validation to the signup form"
    codeshift history -l 5
    codeshift details <request-id>
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional, Sequence
from uuid import UUID

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from src.cli.credentials import CredentialStore, SavedUser
from src.core.accounts import AccountService
from src.core.cache import SessionCache
from src.core.config import settings
from src.core.database import close_db, get_db_session, init_db
from src.core.errors import CodeShiftError
from src.core.log_config import configure_logging
from src.core.models import ExecutionRequest
from src.core.pipeline import (
    ChangeJournal,
    EditOracle,
    ExecutionOrchestrator,
    ExecutionRequestStore,
    ExecutionResult,
)

console = Console()

INSTRUCTION_PREVIEW = 100


# ==========================================================================
# Rendering helpers
# ==========================================================================

def section(title: str) -> None:
    console.print()
    console.rule(f"[bold magenta]{title}[/bold magenta]")


def error(message: str) -> None:
    console.print(f"[red][ERROR][/red] {message}")


def success(message: str) -> None:
    console.print(f"[green][SUCCESS][/green] {message}")


def truncate(text: str, limit: int = INSTRUCTION_PREVIEW) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def ask(label: str, min_length: int = 1, password: bool = False, must_contain: Optional[str] = None) -> str:
    """Prompt until the answer passes the length/containment checks."""
    while True:
        value = Prompt.ask(label, password=password).strip()
        if len(value) < min_length:
            error(f"{label} must be at least {min_length} characters")
        elif must_contain and must_contain not in value:
            error(f"Please enter a valid {label.lower()}")
        else:
            return value


def render_result(result: ExecutionResult) -> None:
    section("EXECUTION PLAN")
    console.print(result.plan or "(no plan provided)")

    section("PROPOSED EDITS")
    table = Table(show_lines=False)
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Action", style="yellow")
    table.add_column("File", style="white")
    table.add_column("Description")
    for index, edit in enumerate(result.edits, start=1):
        table.add_row(
            str(index),
            "CREATE" if edit.is_new_file else "MODIFY",
            edit.file_path,
            edit.description or "",
        )
    console.print(table)

    section("EXECUTION SUMMARY")
    console.print(f"Applied {result.applied_count} out of {len(result.edits)} edits")
    if result.errors:
        error(f"Encountered {len(result.errors)} errors:")
        for message in result.errors:
            console.print(f"  - {message}")

    if result.request_id:
        console.print(f"Request ID: {result.request_id}")
    if result.success:
        success("Execution completed successfully!")
    else:
        error("Execution completed with errors.")


def render_history(requests: Sequence[ExecutionRequest], limit: int) -> None:
    section("PROMPT HISTORY")
    if not requests:
        console.print("No prompts found")
        return

    table = Table()
    table.add_column("#", justify="right", style="cyan")
    table.add_column("ID")
    table.add_column("Status", style="yellow")
    table.add_column("Prompt")
    table.add_column("Repo")
    table.add_column("Date", style="green")
    for index, request in enumerate(requests[:limit], start=1):
        table.add_row(
            str(index),
            str(request.id),
            request.status.value,
            truncate(request.instruction),
            request.repo_path,
            request.created_at.isoformat() if request.created_at else "",
        )
    console.print(table)

    if len(requests) > limit:
        console.print(f"... and {len(requests) - limit} more")


# ==========================================================================
# Commands
# ==========================================================================

def require_login(store: CredentialStore) -> Optional[SavedUser]:
    user = store.load()
    if user is None:
        error('You must be logged in. Use "codeshift login" or "codeshift register"')
    return user


async def cmd_register(args: argparse.Namespace, store: CredentialStore) -> int:
    username = ask("Username", min_length=settings.USERNAME_MIN_LENGTH)
    email = ask("Email", must_contain="@")
    password = ask("Password", min_length=settings.PASSWORD_MIN_LENGTH, password=True)

    cache = SessionCache()
    try:
        async with get_db_session() as db:
            user = await AccountService(db, cache).register(username, email, password)
            saved = SavedUser(id=str(user.id), username=user.username, api_key=user.api_key)
    finally:
        await cache.close()

    store.save(saved)
    success("Registration successful!")
    console.print(f"Username: {saved.username}")
    console.print(f"API Key: {saved.api_key}")
    console.print("Your API key has been saved. Keep it secure!")
    return 0


async def cmd_login(args: argparse.Namespace, store: CredentialStore) -> int:
    username = ask("Username")
    password = ask("Password", password=True)

    cache = SessionCache()
    try:
        async with get_db_session() as db:
            user, _token = await AccountService(db, cache).login(username, password)
            saved = SavedUser(id=str(user.id), username=user.username, api_key=user.api_key)
    finally:
        await cache.close()

    store.save(saved)
    success(f"Logged in as {saved.username}")
    return 0


async def cmd_logout(args: argparse.Namespace, store: CredentialStore) -> int:
    store.clear()
    success("Logged out successfully")
    return 0


async def cmd_run(args: argparse.Namespace, store: CredentialStore) -> int:
    user = require_login(store)
    if user is None:
        return 1

    instruction = args.prompt or ask("Enter your prompt")
    repo_path = os.path.abspath(args.repo)

    console.print(Panel.fit(
        f"Target Repository: {repo_path}\nPrompt: {instruction}",
        title="CODESHIFT",
    ))

    oracle = EditOracle()
    try:
        async with get_db_session() as db:
            with console.status("Running pipeline..."):
                orchestrator = ExecutionOrchestrator(db, oracle=oracle)
                result = await orchestrator.execute(UUID(user.id), instruction, repo_path)
    finally:
        await oracle.close()

    render_result(result)
    return 0 if result.success else 1


async def cmd_history(args: argparse.Namespace, store: CredentialStore) -> int:
    user = require_login(store)
    if user is None:
        return 1

    async with get_db_session() as db:
        requests = await ExecutionRequestStore(db).list_by_user(UUID(user.id))

    render_history(requests, args.limit)
    return 0


async def cmd_details(args: argparse.Namespace, store: CredentialStore) -> int:
    user = require_login(store)
    if user is None:
        return 1

    try:
        request_id = UUID(args.request_id)
    except ValueError:
        error("Prompt not found")
        return 1

    async with get_db_session() as db:
        request = await ExecutionRequestStore(db).get(request_id)
        if request is None:
            error("Prompt not found")
            return 1
        if str(request.user_id) != user.id:
            error("Access denied - this prompt belongs to another user")
            return 1
        changes = await ChangeJournal(db).list_by_request(request_id)

    section("PROMPT DETAILS")
    console.print(f"ID: {request.id}")
    console.print(f"Status: {request.status.value}")
    console.print(f"Prompt: {request.instruction}")
    console.print(f"Repository: {request.repo_path}")
    console.print(f"Created: {request.created_at}")

    section("CODE CHANGES")
    console.print(f"Total changes: {len(changes)}")
    for index, change in enumerate(changes, start=1):
        console.print(f"\n[{index}] {change.file_path}", markup=False)
        console.print(f"  Description: {change.description or 'N/A'}")
        console.print(f"  Applied: {'Yes' if change.applied else 'No'}")
    return 0


async def cmd_whoami(args: argparse.Namespace, store: CredentialStore) -> int:
    user = store.load()
    if user is None:
        console.print("Not logged in")
        return 0

    section("CURRENT USER")
    console.print(f"Username: {user.username}")
    console.print(f"User ID: {user.id}")
    console.print(f"API Key: {user.api_key}")
    return 0


async def cmd_migrate(args: argparse.Namespace, store: CredentialStore) -> int:
    console.print("Running database migrations...")
    await init_db()
    success("Migration completed successfully!")
    return 0


# ==========================================================================
# Entry point
# ==========================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codeshift",
        description="AI-powered code generation and modification CLI",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {settings.APP_VERSION}")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("register", help="Register a new user account").set_defaults(handler=cmd_register)
    sub.add_parser("login", help="Login to your account").set_defaults(handler=cmd_login)
    sub.add_parser("logout", help="Logout from your account").set_defaults(handler=cmd_logout)

    run = sub.add_parser("run", help="Execute a natural language prompt to modify code")
    run.add_argument("-r", "--repo", default=settings.DEFAULT_TARGET_REPO, help="Target repository path")
    run.add_argument("-p", "--prompt", help="Prompt text (interactive if not provided)")
    run.set_defaults(handler=cmd_run)

    history = sub.add_parser("history", help="View your prompt execution history")
    history.add_argument("-l", "--limit", type=int, default=10, help="Limit number of results")
    history.set_defaults(handler=cmd_history)

    details = sub.add_parser("details", help="View a specific prompt execution")
    details.add_argument("request_id")
    details.set_defaults(handler=cmd_details)

    sub.add_parser("whoami", help="Display current user information").set_defaults(handler=cmd_whoami)
    sub.add_parser("migrate", help="Create database tables").set_defaults(handler=cmd_migrate)

    return parser


async def _dispatch(args: argparse.Namespace, store: CredentialStore) -> int:
    try:
        if args.command not in ("logout", "whoami", "migrate"):
            await init_db()
        return await args.handler(args, store)
    finally:
        await close_db()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(logging.WARNING)

    try:
        return asyncio.run(_dispatch(args, CredentialStore()))
    except CodeShiftError as e:
        error(str(e))
    except SQLAlchemyError as e:
        error(f"Database error: {e}")
    except OSError as e:
        error(str(e))
    except KeyboardInterrupt:
        error("Cancelled")
    return 1


if __name__ == "__main__":
    sys.exit(main())
