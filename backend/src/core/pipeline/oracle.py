"""
Edit Oracle Adapter - Bounded context in, structured edit plan out.

Packages the instruction, the tree rendering and a capped number of
files into a single chat completion request and parses the reply into
an EditPlan.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

import structlog
from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from src.core.config import settings
from src.core.errors import OracleError, OracleParseError
from src.core.pipeline.scanner import FileRecord
from src.core.schemas import EditPlan

logger = structlog.get_logger(__name__)


SYSTEM_PROMPT = """You are an expert software engineer assistant. Your task is to analyze a codebase and generate or modify code based on user requirements.

When given a task:
1. First, create a clear plan explaining what changes you'll make
2. Identify which files need to be modified or created
3. Generate the complete modified code for each file
4. Provide clear descriptions of each change

Return your response as a single JSON object in the following format:
{
  "plan": "Detailed explanation of what you will do",
  "edits": [
    {
      "filePath": "relative/path/to/file.ts",
      "originalContent": "existing content or null if new file",
      "modifiedContent": "complete new content",
      "description": "what this change does",
      "isNewFile": true/false
    }
  ]
}

IMPORTANT:
- Always provide the COMPLETE file content in modifiedContent, not just the changes
- For new files, set isNewFile to true and originalContent to null
- For existing files, include the original content
- File paths are relative to the repository root
- Follow the conventions of the existing codebase"""


# ==========================================================================
# Parse results
# ==========================================================================

@dataclass(frozen=True)
class ParsedPlan:
    """Reply parsed into a typed plan."""
    plan: EditPlan


@dataclass(frozen=True)
class ParseFailure:
    """Reply held no usable plan; keeps the raw text for diagnosis."""
    raw_text: str
    reason: str


ParseResult = Union[ParsedPlan, ParseFailure]


_FENCED_BLOCK = re.compile(r"```json[ \t]*\n?([\s\S]*?)\n?```")
_BRACE_SPAN = re.compile(r"\{[\s\S]*\}")


def _embedded_blocks(text: str) -> list[str]:
    """First ```json fenced block, then the outermost brace-delimited span."""
    blocks = []
    match = _FENCED_BLOCK.search(text)
    if match:
        blocks.append(match.group(1))
    match = _BRACE_SPAN.search(text)
    if match:
        blocks.append(match.group(0))
    return blocks


def _load_plan(candidate: str) -> EditPlan:
    data = json.loads(candidate)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return EditPlan.model_validate(data)


def parse_reply(text: str) -> ParseResult:
    """
    Parse an oracle reply.

    Tier 1 reads the whole reply as JSON. Tier 2 tries a ```json fenced
    block, then the brace-delimited span, inside surrounding prose; a
    candidate that fails to load falls through to the next. Missing
    `plan`/`edits` default to empty; anything else malformed is a
    ParseFailure.
    """
    candidates = [text]
    for block in _embedded_blocks(text):
        if block not in candidates:
            candidates.append(block)

    reason = "reply is empty"
    for candidate in candidates:
        try:
            return ParsedPlan(plan=_load_plan(candidate))
        except (json.JSONDecodeError, ValueError, ValidationError) as e:
            reason = str(e)

    return ParseFailure(raw_text=text, reason=reason)


# ==========================================================================
# Context building
# ==========================================================================

def build_context(
    files: Sequence[FileRecord],
    structure: str,
    max_files: int,
) -> str:
    """Render the tree and at most `max_files` labeled file bodies."""
    parts = ["=== CODEBASE STRUCTURE ===\n", structure, "\n\n", "=== RELEVANT FILES ===\n\n"]

    for record in files[:max_files]:
        parts.append(f"--- {record.relative_path} ---\n")
        parts.append(record.content + "\n\n")

    if len(files) > max_files:
        parts.append(f"... and {len(files) - max_files} more files\n")

    return "".join(parts)


# ==========================================================================
# Adapter
# ==========================================================================

class EditOracle:
    """
    Adapter around the code-generation model.

    One request per execution: fixed temperature, an output token
    ceiling and JSON-object response format. The client only needs
    `chat.completions.create`, so tests can pass a stand-in.
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        max_context_files: Optional[int] = None,
    ):
        self._client = client
        self._owns_client = client is None
        self.model = model or settings.OPENAI_MODEL
        self.temperature = settings.ORACLE_TEMPERATURE if temperature is None else temperature
        self.max_tokens = max_tokens or settings.ORACLE_MAX_TOKENS
        self.max_context_files = max_context_files or settings.ORACLE_MAX_CONTEXT_FILES

    @property
    def client(self) -> Any:
        if self._client is None:
            try:
                self._client = AsyncOpenAI(
                    api_key=settings.OPENAI_API_KEY or None,
                    base_url=settings.OPENAI_BASE_URL,
                )
            except OpenAIError as e:
                raise OracleError(f"Oracle client unavailable: {e}") from e
        return self._client

    async def close(self) -> None:
        """Close the client this adapter built; an injected client is left to its owner."""
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    def build_user_message(
        self,
        instruction: str,
        files: Sequence[FileRecord],
        structure: str,
    ) -> str:
        context = build_context(files, structure, self.max_context_files)
        return (
            f"{context}\n"
            f"User Request: {instruction}\n\n"
            "Please analyze the codebase and provide your response in the specified JSON format."
        )

    async def propose(
        self,
        instruction: str,
        files: Sequence[FileRecord],
        structure: str,
    ) -> EditPlan:
        """
        Ask the oracle for an edit plan.

        Args:
            instruction: User's natural-language request
            files: Context files; only the first max_context_files are sent
            structure: Tree rendering of the repository

        Returns:
            Parsed EditPlan (edits in oracle order)

        Raises:
            OracleError: Transport failure
            OracleParseError: Reply failed both parse tiers
        """
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": self.build_user_message(instruction, files, structure)},
        ]

        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            logger.error("oracle_request_failed", model=self.model, error=str(e))
            raise OracleError(f"Oracle request failed: {e}") from e

        text = ""
        if completion.choices:
            text = completion.choices[0].message.content or ""

        result = parse_reply(text)
        if isinstance(result, ParseFailure):
            logger.warning("oracle_reply_unparseable", reason=result.reason, length=len(text))
            raise OracleParseError(
                f"Failed to parse LLM response: {result.reason}",
                raw_text=result.raw_text,
            )

        logger.info(
            "oracle_reply_received",
            model=self.model,
            context_files=min(len(files), self.max_context_files),
            edits=len(result.plan.edits),
        )
        return result.plan
