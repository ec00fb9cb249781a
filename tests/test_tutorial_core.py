"""
Tests for tutorial_core.py
Data loading, prompt building, the OpenAI call wrapper and the ask() pipeline.
"""

import json
import logging
from unittest.mock import MagicMock, Mock

import pytest

import tutorial_core
from tutorial_core import (
    TutorialContext,
    ask,
    build_messages,
    build_system_prompt,
    call_llm,
    clean_base_url,
    load_steps,
    load_transcript,
    load_tutorial_context,
    require_env,
)


def make_client(content="Start with Step 3 and Step 4."):
    client = MagicMock()
    client.chat.completions.create.return_value = Mock(
        choices=[Mock(message=Mock(content=content))]
    )
    return client


@pytest.fixture
def context():
    return TutorialContext(
        steps=(
            {"step": 1, "guidance": "Open the spreadsheet."},
            {"step": 3, "guidance": "Start the mail merge wizard."},
            {"step": 4, "guidance": "Choose letters."},
        ),
        transcript="Intro. Then we start the mail merge from the Mailings tab.",
    )


class TestLoadSteps:
    """Test load_steps function."""

    def test_loads_array(self, tmp_path):
        path = tmp_path / "rag_data.json"
        path.write_text(json.dumps([{"step": 1, "guidance": "a"}]), encoding="utf-8")
        assert load_steps(path) == [{"step": 1, "guidance": "a"}]

    def test_non_array_is_empty(self, tmp_path, caplog):
        path = tmp_path / "rag_data.json"
        path.write_text(json.dumps({"step": 1}), encoding="utf-8")
        with caplog.at_level(logging.ERROR, logger="tutorial_core"):
            assert load_steps(path) == []
        assert "Could not load step data" in caplog.text

    def test_missing_file_is_empty(self, tmp_path):
        assert load_steps(tmp_path / "nope.json") == []

    def test_invalid_json_is_empty(self, tmp_path):
        path = tmp_path / "rag_data.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_steps(path) == []


class TestLoadTranscript:
    """Test load_transcript function."""

    @pytest.mark.parametrize(
        "payload, expected",
        [
            ("plain text", "plain text"),
            ({"text": "from text key"}, "from text key"),
            ({"title": "first string", "body": "second"}, "first string"),
            ([1, 2], "[1, 2]"),
        ],
    )
    def test_shapes(self, tmp_path, payload, expected):
        path = tmp_path / "transcript.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        assert load_transcript(path) == expected

    def test_missing_file_is_empty(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING, logger="tutorial_core"):
            assert load_transcript(tmp_path / "nope.json") == ""
        assert "Could not load transcript" in caplog.text


class TestLoadTutorialContext:
    def test_builds_immutable_context(self, tmp_path):
        (tmp_path / "rag_data.json").write_text(json.dumps([{"step": 1, "guidance": "a"}]), encoding="utf-8")
        (tmp_path / "transcript.json").write_text(json.dumps({"text": "hello"}), encoding="utf-8")

        ctx = load_tutorial_context(tmp_path)
        assert ctx.steps == ({"step": 1, "guidance": "a"},)
        assert ctx.transcript == "hello"
        with pytest.raises(AttributeError):
            ctx.transcript = "changed"

    def test_empty_dir_degrades(self, tmp_path):
        ctx = load_tutorial_context(tmp_path)
        assert ctx.steps == ()
        assert ctx.transcript == ""


class TestConfigHelpers:
    def test_require_env_missing(self, monkeypatch):
        monkeypatch.delenv("TUTORIAL_TEST_VAR", raising=False)
        with pytest.raises(ValueError):
            require_env("TUTORIAL_TEST_VAR")

    def test_require_env_present(self, monkeypatch):
        monkeypatch.setenv("TUTORIAL_TEST_VAR", "x")
        assert require_env("TUTORIAL_TEST_VAR") == "x"

    def test_clean_base_url(self):
        assert clean_base_url(' "https://example.com/v1" ') == "https://example.com/v1"
        assert clean_base_url(None) is None

    def test_clean_base_url_rejects_scheme(self):
        with pytest.raises(ValueError):
            clean_base_url("example.com")


class TestPromptBuilding:
    """Test build_system_prompt and build_messages."""

    def test_system_prompt_embeds_context(self):
        prompt = build_system_prompt("Step 3: Start.", "Some tips.")
        assert "Step 3: Start." in prompt
        assert "Some tips." in prompt
        assert "currently on Step" not in prompt

    def test_current_step_note(self):
        prompt = build_system_prompt("", "", {"stepNumber": 5, "stepCaption": "Insert fields"})
        assert prompt.endswith(
            'The user is currently on Step 5: "Insert fields". '
            "Always prioritize answering about this step unless the question is explicitly about something else."
        )

    def test_current_step_note_needs_caption(self):
        prompt = build_system_prompt("", "", {"stepNumber": 5})
        assert "currently on Step" not in prompt

    def test_messages_append_question(self):
        history = [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]
        messages = build_messages("SYS", "next?", history)
        assert messages[0] == {"role": "system", "content": "SYS"}
        assert messages[1:3] == history
        assert messages[-1] == {"role": "user", "content": "next?"}

    def test_messages_skip_duplicate_question(self):
        history = [{"role": "user", "content": "next?"}]
        messages = build_messages("SYS", "next?", history)
        assert len(messages) == 2
        assert messages[-1] == {"role": "user", "content": "next?"}

    def test_messages_without_history(self):
        assert build_messages("SYS", "q", None) == [
            {"role": "system", "content": "SYS"},
            {"role": "user", "content": "q"},
        ]


class TestCallLLM:
    def test_returns_content(self):
        client = make_client("hello")
        assert call_llm(client, [{"role": "user", "content": "q"}]) == "hello"
        _, kwargs = client.chat.completions.create.call_args
        assert kwargs["model"] == tutorial_core.CHAT_MODEL

    def test_none_content_is_empty(self):
        assert call_llm(make_client(None), []) == ""


class TestAsk:
    """Test the ask() pipeline."""

    def test_formats_answer_once(self, context):
        client = make_client()
        result = ask("How do I start the mail merge?", context, openai_client=client)

        assert result["answer"] == (
            "Start with Step 3 and Step 4."
            '<br><br>Relevant steps: <a href="#step-3">Steps 3–4</a>'
        )
        assert client.chat.completions.create.call_count == 1

    def test_prompt_carries_retrieval(self, context):
        client = make_client()
        result = ask("How do I start the mail merge?", context, openai_client=client)

        messages = client.chat.completions.create.call_args.kwargs["messages"]
        assert "Step 3: Start the mail merge wizard." in messages[0]["content"]
        assert "Mailings tab" in messages[0]["content"]
        assert messages[-1] == {"role": "user", "content": "How do I start the mail merge?"}
        assert result["steps"][0] == {"step": 3, "score": 6}

    def test_direct_step_question(self, context):
        client = make_client("See Step 4.")
        result = ask("what is step 4", context, openai_client=client)
        assert result["steps"] == [{"step": 4, "score": None}]

    def test_llm_errors_propagate(self, context):
        client = MagicMock()
        client.chat.completions.create.side_effect = RuntimeError("network down")
        with pytest.raises(RuntimeError):
            ask("anything", context, openai_client=client)

    def test_empty_context_still_calls_llm(self):
        client = make_client("No steps mentioned.")
        result = ask("hello there", TutorialContext(), openai_client=client)
        assert result["answer"] == "No steps mentioned."
        assert result["steps"] == []
        assert result["transcript_excerpt"] == ""
