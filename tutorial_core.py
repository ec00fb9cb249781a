import os
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv
from openai import OpenAI

from step_links import format_steps_in_answer
from step_retrieval import (
    StepRecord,
    format_steps_context,
    select_steps,
    select_transcript_excerpt,
    validate_strategy,
)

# NOTE: In production, env vars come from platform settings.
# load_dotenv() is harmless locally, but not relied upon in deployment.
load_dotenv()

logger = logging.getLogger(__name__)

# =========================
# Model
# =========================
CHAT_MODEL = os.environ.get("CHAT_MODEL", "gpt-4o")

# =========================
# Retrieval parameters (reported in /api/stats)
# =========================
RETRIEVAL_STRATEGY = validate_strategy(os.environ.get("RETRIEVAL_STRATEGY", "keyword"))
MAX_STEPS = int(os.environ.get("MAX_STEPS", "4"))
SNIPPET_CHARS = int(os.environ.get("SNIPPET_CHARS", "1200"))

# =========================
# Data files
# =========================
DATA_DIR = Path(os.environ.get("TUTORIAL_DATA_DIR", "data"))
STEPS_FILE = "rag_data.json"
TRANSCRIPT_FILE = "transcript.json"

SYSTEM_PROMPT = """
You are a friendly, conversational AI assistant for a technical tutorial and onboarding system. Your goal is to help users by providing clear, concise answers that blend step-by-step instructions with expert best-practices.

When referring to steps, group consecutive steps into ranges (e.g., 52–59) and provide clickable links for each step using the format <a href="#step-52">Step 52</a> or <a href="#step-52">Steps 52–59</a>.
Do NOT mention the word 'context' or refer to your source material (e.g., do not say 'as mentioned in the transcript'). Just provide a direct, friendly answer.

Here are the most relevant steps and best practices for this question:

{steps_context}

Expert explanation or tips:

{transcript_context}
""".strip()

CURRENT_STEP_NOTE = (
    'The user is currently on Step {number}: "{caption}". '
    "Always prioritize answering about this step unless the question is explicitly about something else."
)


# =========================
# Config helpers
# =========================
def require_env(name: str) -> str:
    val = os.getenv(name)
    if not val:
        raise ValueError(f"Missing required environment variable: {name}")
    return val


def clean_base_url(url: Optional[str]) -> Optional[str]:
    """Remove accidental quotes/spaces and validate protocol."""
    if not url:
        return None
    url = url.strip().strip('"').strip("'").strip()
    if not url.startswith(("http://", "https://")):
        raise ValueError(f"OPENAI_BASE_URL must start with http:// or https://, got: {url}")
    return url


# =========================
# Tutorial data
# =========================
@dataclass(frozen=True)
class TutorialContext:
    """Step records and transcript, loaded once and shared read-only."""

    steps: Tuple[StepRecord, ...] = ()
    transcript: str = ""


def load_steps(path: Path) -> List[StepRecord]:
    try:
        with Path(path).open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"{path} is not an array")
    except (OSError, ValueError) as err:
        logger.error("Could not load step data from %s: %s", path, err)
        return []
    return [s for s in data if isinstance(s, dict)]


def load_transcript(path: Path) -> str:
    try:
        with Path(path).open("r", encoding="utf-8") as f:
            parsed = json.load(f)
    except (OSError, ValueError) as err:
        logger.warning("Could not load transcript from %s: %s", path, err)
        return ""

    if isinstance(parsed, str):
        return parsed
    if isinstance(parsed, dict):
        if isinstance(parsed.get("text"), str) and parsed["text"]:
            return parsed["text"]
        for v in parsed.values():
            if isinstance(v, str) and v:
                return v
    return json.dumps(parsed, ensure_ascii=False)


def load_tutorial_context(data_dir: Optional[Path] = None) -> TutorialContext:
    base = Path(data_dir) if data_dir is not None else DATA_DIR
    steps = load_steps(base / STEPS_FILE)
    transcript = load_transcript(base / TRANSCRIPT_FILE)
    logger.info("Loaded %d steps and %d transcript chars from %s", len(steps), len(transcript), base)
    return TutorialContext(steps=tuple(steps), transcript=transcript)


# =========================
# Prompt construction
# =========================
def build_system_prompt(
    steps_context: str,
    transcript_context: str,
    step_context: Optional[Dict[str, Any]] = None,
) -> str:
    prompt = SYSTEM_PROMPT.format(
        steps_context=steps_context,
        transcript_context=transcript_context,
    )

    if step_context and step_context.get("stepNumber") and step_context.get("stepCaption"):
        prompt += "\n\n" + CURRENT_STEP_NOTE.format(
            number=step_context["stepNumber"],
            caption=step_context["stepCaption"],
        )
    return prompt


def build_messages(
    system_prompt: str,
    question: str,
    history: Optional[List[Dict[str, str]]] = None,
) -> List[Dict[str, str]]:
    messages = [{"role": "system", "content": system_prompt}]
    history = history or []
    messages.extend(history)

    # The front-end may already have appended the question to its history
    last = history[-1] if history else None
    if not last or last.get("role") != "user" or last.get("content") != question:
        messages.append({"role": "user", "content": question})
    return messages


# =========================
# LLM call (never returns None)
# =========================
def get_client() -> OpenAI:
    return OpenAI(
        api_key=require_env("OPENAI_API_KEY"),
        base_url=clean_base_url(os.environ.get("OPENAI_BASE_URL")),
    )


def call_llm(openai_client: OpenAI, messages: List[Dict[str, str]]) -> str:
    resp = openai_client.chat.completions.create(
        model=CHAT_MODEL,
        messages=messages,
    )

    content = None
    if resp and getattr(resp, "choices", None):
        msg = resp.choices[0].message
        content = getattr(msg, "content", None)

    return content if isinstance(content, str) else ""


# =========================
# Main entry
# =========================
def ask(
    question: str,
    context: TutorialContext,
    openai_client: Optional[OpenAI] = None,
    history: Optional[List[Dict[str, str]]] = None,
    step_context: Optional[Dict[str, Any]] = None,
    max_steps: int = MAX_STEPS,
    snippet_chars: int = SNIPPET_CHARS,
    strategy: str = RETRIEVAL_STRATEGY,
) -> Dict[str, Any]:
    """
    Answer one question: retrieve, prompt, call the model once, linkify.

    Errors from the OpenAI client propagate to the caller.
    """
    steps = select_steps(question, context.steps, max_steps=max_steps, strategy=strategy)
    excerpt = select_transcript_excerpt(question, context.transcript, snippet_chars)

    system_prompt = build_system_prompt(format_steps_context(steps), excerpt, step_context)
    messages = build_messages(system_prompt, question, history)

    client = openai_client or get_client()
    raw = call_llm(client, messages)

    return {
        "answer": format_steps_in_answer(raw),
        "steps": [{"step": s.get("step"), "score": s.get("score")} for s in steps],
        "transcript_excerpt": excerpt,
    }


# =========================
# Local test (prints JSON)
# =========================
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    ctx = load_tutorial_context()

    test_questions = [
        "How do I set up a mail merge?",
        "What do I do in step 3?",
    ]

    for q in test_questions:
        result = ask(q, ctx)
        print("\n" + "=" * 80)
        print("QUESTION:", q)
        print("=" * 80)
        print(json.dumps(result, ensure_ascii=False, indent=2))
