"""
CodeShift - Edit Oracle Tests
=============================

Reply parsing, context packaging and the request sent to the model.
"""

import json
from types import SimpleNamespace

import pytest
from openai import OpenAIError

from src.core.errors import OracleError, OracleParseError
from src.core.pipeline import EditOracle, FileRecord, ParsedPlan, ParseFailure, parse_reply
from src.core.pipeline.oracle import SYSTEM_PROMPT, build_context
from tests.fakes import edit, fake_client, plan_reply


def record(relative_path: str, content: str = "body") -> FileRecord:
    return FileRecord(
        path=f"/repo/{relative_path}",
        relative_path=relative_path,
        content=content,
        extension=".ts",
        size=len(content),
    )


# ==========================================================================
# Parsing
# ==========================================================================

class TestParseReply:
    """Two-tier reply parsing."""

    def test_plain_json(self):
        result = parse_reply(plan_reply("Do it", edit("a.ts", "A"), edit("b.ts", "B", new=True)))

        assert isinstance(result, ParsedPlan)
        assert result.plan.plan == "Do it"
        assert [e.file_path for e in result.plan.edits] == ["a.ts", "b.ts"]
        assert result.plan.edits[1].is_new_file is True
        assert result.plan.edits[1].original_content is None

    def test_fenced_block_inside_prose(self):
        body = plan_reply("Fenced", edit("x.py", "print(1)\n"))
        text = f"Sure! Here is the plan:\n```json\n{body}\n```\nLet me know."

        result = parse_reply(text)

        assert isinstance(result, ParsedPlan)
        assert result.plan.plan == "Fenced"
        assert result.plan.edits[0].modified_content == "print(1)\n"

    def test_other_language_fence_in_prose_is_skipped(self):
        """A ```ts sample before the plan does not hide the brace span."""
        body = plan_reply("After sample", edit("a.ts", "const a = 2;\n"))
        text = f"I'll change this:\n```ts\nconst a = 1;\n```\nHere is the result: {body}"

        result = parse_reply(text)

        assert isinstance(result, ParsedPlan)
        assert result.plan.plan == "After sample"
        assert result.plan.edits[0].modified_content == "const a = 2;\n"

    def test_fence_inside_edit_content(self):
        """Markdown with a fence inside modifiedContent still parses."""
        readme = "# R\n```bash\nnpm i\n```\n"
        text = "Sure: " + plan_reply("Docs", edit("README.md", readme))

        result = parse_reply(text)

        assert isinstance(result, ParsedPlan)
        assert result.plan.edits[0].file_path == "README.md"
        assert result.plan.edits[0].modified_content == readme

    def test_broken_json_fence_falls_through_to_brace_span(self):
        body = plan_reply("Second try", edit("b.ts", "B"))
        text = f"Draft:\n```json\nnot valid yet\n```\nFinal: {body}"

        result = parse_reply(text)

        assert isinstance(result, ParsedPlan)
        assert result.plan.plan == "Second try"

    def test_brace_span_inside_prose(self):
        text = "Answer: " + plan_reply("Braced", edit("y.ts", "Y")) + " -- done"

        result = parse_reply(text)

        assert isinstance(result, ParsedPlan)
        assert result.plan.edits[0].file_path == "y.ts"

    def test_missing_fields_default_to_empty(self):
        result = parse_reply("{}")

        assert isinstance(result, ParsedPlan)
        assert result.plan.plan == ""
        assert result.plan.edits == []

    def test_null_fields_default_to_empty(self):
        result = parse_reply('{"plan": null, "edits": null}')

        assert isinstance(result, ParsedPlan)
        assert result.plan.plan == ""
        assert result.plan.edits == []

    def test_modifications_alias(self):
        text = json.dumps({"plan": "Legacy", "modifications": [edit("m.ts", "M")]})

        result = parse_reply(text)

        assert isinstance(result, ParsedPlan)
        assert [e.file_path for e in result.plan.edits] == ["m.ts"]

    def test_prose_only_fails(self):
        result = parse_reply("I cannot help with that.")

        assert isinstance(result, ParseFailure)
        assert result.raw_text == "I cannot help with that."
        assert result.reason

    def test_empty_reply_fails(self):
        assert isinstance(parse_reply(""), ParseFailure)

    def test_non_object_json_fails(self):
        assert isinstance(parse_reply("[1, 2, 3]"), ParseFailure)

    def test_edit_without_path_fails(self):
        text = json.dumps({"plan": "p", "edits": [{"modifiedContent": "x"}]})

        assert isinstance(parse_reply(text), ParseFailure)

    def test_content_whitespace_preserved(self):
        content = "  indented\n\n\ttabbed  \n"
        result = parse_reply(plan_reply("p", edit("w.py", content)))

        assert isinstance(result, ParsedPlan)
        assert result.plan.edits[0].modified_content == content


# ==========================================================================
# Context
# ==========================================================================

class TestContext:
    """Bounded context packaging."""

    def test_sections_and_labels(self):
        context = build_context([record("a.ts", "AAA")], "└── a.ts\n", max_files=10)

        assert context.startswith("=== CODEBASE STRUCTURE ===\n└── a.ts\n")
        assert "=== RELEVANT FILES ===" in context
        assert "--- a.ts ---\nAAA\n\n" in context
        assert "more files" not in context

    def test_caps_files_and_notes_remainder(self):
        files = [record(f"f{i:02d}.ts", f"content {i}") for i in range(14)]

        context = build_context(files, "", max_files=10)

        assert context.count("--- f") == 10
        assert "--- f09.ts ---" in context
        assert "--- f10.ts ---" not in context
        assert context.endswith("... and 4 more files\n")

    def test_user_message_carries_instruction(self):
        oracle = EditOracle(client=fake_client("{}"))

        message = oracle.build_user_message("add tests", [record("a.ts")], "└── a.ts\n")

        assert "User Request: add tests" in message
        assert "--- a.ts ---" in message


# ==========================================================================
# Adapter
# ==========================================================================

class TestEditOracle:
    """One chat completion per proposal."""

    async def test_propose_returns_plan(self):
        client = fake_client(plan_reply("Rename", edit("a.ts", "renamed")))
        oracle = EditOracle(client=client, model="test-model")

        plan = await oracle.propose("rename things", [record("a.ts")], "└── a.ts\n")

        assert plan.plan == "Rename"
        assert plan.edits[0].modified_content == "renamed"

        call = client.chat.completions.calls[0]
        assert call["model"] == "test-model"
        assert call["temperature"] == 0.2
        assert call["max_tokens"] == 4096
        assert call["response_format"] == {"type": "json_object"}
        assert call["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert call["messages"][1]["role"] == "user"
        assert "User Request: rename things" in call["messages"][1]["content"]

    async def test_only_max_context_files_sent(self):
        client = fake_client("{}")
        oracle = EditOracle(client=client, max_context_files=2)
        files = [record(f"f{i}.ts") for i in range(5)]

        await oracle.propose("anything", files, "")

        content = client.chat.completions.calls[0]["messages"][1]["content"]
        assert content.count("--- f") == 2
        assert "... and 3 more files" in content

    async def test_unparseable_reply_raises(self):
        oracle = EditOracle(client=fake_client("Sorry, no JSON today."))

        with pytest.raises(OracleParseError) as exc_info:
            await oracle.propose("anything", [], "")

        assert str(exc_info.value).startswith("Failed to parse LLM response")
        assert exc_info.value.raw_text == "Sorry, no JSON today."

    async def test_empty_content_raises_parse_error(self):
        oracle = EditOracle(client=fake_client(None))

        with pytest.raises(OracleParseError):
            await oracle.propose("anything", [], "")

    async def test_transport_error_raises_oracle_error(self):
        oracle = EditOracle(client=fake_client(OpenAIError("connection refused")))

        with pytest.raises(OracleError) as exc_info:
            await oracle.propose("anything", [], "")

        assert not isinstance(exc_info.value, OracleParseError)
        assert "connection refused" in str(exc_info.value)

    async def test_close_releases_built_client(self):
        closed = []

        async def close():
            closed.append(True)

        oracle = EditOracle()
        oracle._client = SimpleNamespace(close=close)

        await oracle.close()
        await oracle.close()

        assert closed == [True]
        assert oracle._client is None

    async def test_close_leaves_injected_client_open(self):
        client = fake_client("{}")
        oracle = EditOracle(client=client)

        await oracle.close()

        assert oracle.client is client
